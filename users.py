# users.py
from flask import Blueprint, request, jsonify, g

import members
import network
from auth import token_required
from db import db

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


# Direct referrals of the logged-in member
@users_bp.route("/all-users")
@token_required
def all_users():
    me = g.user
    referred = network.expand_levels(db, me["_id"], 1)[0]

    introducer_data = {
        "name": me.get("name"),
        "display_name": me.get("display_name"),
        "mobile": me.get("mobile"),
    }

    users = []
    for m in referred:
        row = network.summarize(m)
        row["introducer_name"] = me.get("display_name") or me.get("name")
        row["introducer_data"] = introducer_data
        users.append(row)

    return jsonify({"users": users})


@users_bp.route("/search-introducers")
@token_required
def search_introducers():
    q = (request.args.get("q") or "").strip()
    if len(q) < 2:
        return jsonify({"users": []})

    found = members.search(q, limit=10)
    return jsonify({"users": [network.summarize(m) for m in found]})


# Public: used by the signup form to pick an introducer
@users_bp.route("/search")
def search_by_mobile():
    mobile = (request.args.get("mobile") or "").strip()
    if not mobile:
        return jsonify({"message": "Mobile number is required"}), 400

    found = members.search(mobile, limit=10, fields=("mobile",))
    return jsonify({"users": [network.summarize(m) for m in found]})


@users_bp.route("/search-all")
@token_required
def search_all():
    query = (request.args.get("query") or "").strip()
    if len(query) < 2:
        return jsonify({"message": "Search query must be at least 2 characters"}), 400

    found = members.search(query, limit=20, include_legacy=True)
    return jsonify({"users": [network.summarize(m) for m in found]})
