# routes/referral.py
from flask import Blueprint, request, jsonify, g

import members
import network
from auth import token_required
from db import db

referral_bp = Blueprint("referral", __name__, url_prefix="/api/users")


def _int_arg(name, default):
    try:
        return int(request.args.get(name, default))
    except (TypeError, ValueError):
        return default


@referral_bp.route("/my-referral-chain")
@token_required
def my_referral_chain():
    return jsonify(network.referral_chain(db, g.user["_id"]))


# Same branch table the admin sees, for any member
@referral_bp.route("/referral-network/<user_id>")
@token_required
def referral_network(user_id):
    _id = members.to_object_id(user_id)
    result = network.member_network(db, _id) if _id else None
    if not result:
        return jsonify({"message": "User not found"}), 404
    return jsonify(result)


@referral_bp.route("/level-users/<branch_user_id>/<level>")
@token_required
def level_users(branch_user_id, level):
    try:
        level_num = int(level)
    except ValueError:
        level_num = 0

    if level_num < network.FIRST_BRANCH_LEVEL or level_num > network.max_level():
        return jsonify({"message": f"Level must be between {network.FIRST_BRANCH_LEVEL} and {network.max_level()}"}), 400

    branch_user = members.find_member(branch_user_id, include_legacy=False)
    if not branch_user:
        return jsonify({"message": "Branch user not found"}), 404

    user_type = request.args.get("user_type")
    found = network.users_at_level(db, branch_user["_id"], level_num, user_type)

    users = []
    for m in found:
        row = network.summarize(m)
        row["introducer_name"] = m.get("introducer_name")
        users.append(row)

    return jsonify({
        "success": True,
        "branch_user": network.summarize(branch_user),
        "level": level_num,
        "users": users,
        "total_users": len(users),
        "user_type": network.normalize_user_type(user_type) or "All",
    })


@referral_bp.route("/ranking")
@token_required
def ranking():
    page = _int_arg("page", 1)
    limit = _int_arg("limit", 10)
    return jsonify(network.ranking(db, page=page, limit=limit))
