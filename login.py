from flask import Blueprint, request, jsonify, g
from werkzeug.security import check_password_hash

import members
from auth import generate_token, token_required
from logger import jlog, mask_mobile

login_bp = Blueprint("login", __name__, url_prefix="/api/auth")


@login_bp.route("/login", methods=["POST"])
def login():
    data = request.get_json(silent=True) or {}
    mobile = members.text_value(data, "mobile")
    password = members.text_value(data, "password", strip=False)

    if not mobile or not password:
        return jsonify({"message": "Mobile number and password are required"}), 400

    # ChannelPartner collection first, then Customer
    user, source = members.find_by_mobile(mobile)

    if not user or not check_password_hash(user.get("password", ""), password):
        jlog("login_failed", mobile=mask_mobile(mobile))
        return jsonify({"message": "Invalid credentials"}), 400

    jlog("login_success", user_id=str(user["_id"]), collection=source)

    default_type = "CP" if source == members.CHANNEL_PARTNERS else "Customer"
    return jsonify({
        "message": "Login successful",
        "token": generate_token(user["_id"]),
        "user": {
            "id": user["_id"],
            "name": user.get("name"),
            "mobile": user.get("mobile"),
            "display_name": user.get("display_name"),
            "user_type": user.get("user_type") or default_type,
            "created_at": user.get("created_at"),
        },
    })


@login_bp.route("/me")
@token_required
def me():
    return jsonify({"user": members.public_member(g.user)})
