# admin_referrals.py
from flask import Blueprint, request, jsonify

import members
import network
from auth import admin_required
from db import db

admin_referrals_bp = Blueprint("admin_referrals", __name__, url_prefix="/api/admin")


def _parse_level(level):
    try:
        return int(level)
    except (TypeError, ValueError):
        return None


@admin_referrals_bp.route("/referral-network")
@admin_required
def referral_network():
    root_user_id = (request.args.get("root_user_id") or "").strip()

    root_id = None
    if root_user_id:
        root_id = members.to_object_id(root_user_id)
        if root_id is None:
            return jsonify({"message": "Invalid root user id"}), 400

    result = network.admin_network(db, root_id=root_id)
    return jsonify({
        "success": True,
        "message": f"{network.max_level()}-level hierarchical network retrieved successfully",
        **result,
    })


@admin_referrals_bp.route("/level-users/<branch_user_id>/<level>")
@admin_required
def level_users(branch_user_id, level):
    target_level = _parse_level(level)
    if target_level is None or target_level < network.FIRST_BRANCH_LEVEL or target_level > network.max_level():
        return jsonify({"message": f"Level must be between {network.FIRST_BRANCH_LEVEL} and {network.max_level()}"}), 400

    branch_user = members.find_member(branch_user_id)
    if not branch_user:
        return jsonify({"message": "Branch user not found"}), 404

    users = []
    for m in network.users_at_level(db, branch_user["_id"], target_level, include_legacy=True):
        row = network.summarize(m)
        row["introducer_name"] = m.get("introducer_name") or "Unknown"
        row["introducer_mobile"] = m.get("introducer_mobile") or "Unknown"
        users.append(row)

    return jsonify({
        "success": True,
        "message": f"Level {target_level} users retrieved successfully",
        "branch_user": network.summarize(branch_user),
        "level": target_level,
        "users": users,
        "total_users": len(users),
    })


@admin_referrals_bp.route("/referral-chain/<user_id>")
@admin_required
def referral_chain(user_id):
    root_user = members.find_member(user_id)
    if not root_user:
        return jsonify({"message": "User not found"}), 404

    tree = network.referral_tree(db, root_user["_id"], max_depth=5)
    return jsonify({
        "message": "Referral chain retrieved successfully",
        "root_user": network.summarize(root_user),
        "referral_tree": tree["tree"],
        "level_counts": tree["level_totals"],
        "total_referrals": tree["total_users"],
    })


@admin_referrals_bp.route("/hierarchical-chain/<user_id>")
@admin_required
def hierarchical_chain(user_id):
    max_levels = _parse_level(request.args.get("max_levels")) or 5
    max_levels = min(max(max_levels, 1), network.max_level())

    root_user = members.find_member(user_id)
    if not root_user:
        return jsonify({"message": "User not found"}), 404

    tree = network.referral_tree(db, root_user["_id"], max_depth=max_levels)
    return jsonify({
        "message": "Hierarchical referral chain retrieved successfully",
        "root_user": network.summarize(root_user),
        "hierarchical_chain": tree["tree"],
        "level_totals": tree["level_totals"],
        "total_users": tree["total_users"],
        "max_levels": max_levels,
    })


# Level N here counts from the root's own referrals (level 1)
@admin_referrals_bp.route("/level-users-hierarchical/<user_id>/<level>")
@admin_required
def level_users_hierarchical(user_id, level):
    target_level = _parse_level(level)
    if target_level is None or target_level < 1 or target_level > network.max_level():
        return jsonify({"message": f"Level must be between 1 and {network.max_level()}"}), 400

    root_user = members.find_member(user_id)
    if not root_user:
        return jsonify({"message": "Root user not found"}), 404

    users = []
    for m in network.expand_levels(db, root_user["_id"], target_level, include_legacy=True)[-1]:
        row = network.summarize(m)
        row["level"] = target_level
        row["referral_count"] = network.count_direct_referrals(db, m["ids"])
        users.append(row)

    return jsonify({
        "message": f"Level {target_level} users retrieved successfully",
        "root_user": network.summarize(root_user),
        "level": target_level,
        "users": users,
        "total_users": len(users),
    })
