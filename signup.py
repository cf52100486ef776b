from flask import Blueprint, request, jsonify
from pymongo.errors import DuplicateKeyError

import members
import network
from auth import generate_token
from logger import jlog, mask_mobile

signup_bp = Blueprint("signup", __name__, url_prefix="/api/auth")


@signup_bp.route("/signup", methods=["POST"])
def signup():
    data = request.get_json(silent=True) or {}

    # Form data
    name = members.text_value(data, "name")
    mobile = members.text_value(data, "mobile")
    display_name = members.text_value(data, "display_name")
    password = members.text_value(data, "password", strip=False)
    introducer_id = members.text_value(data, "introducer_id")
    introducer_mobile = members.text_value(data, "introducer_mobile")
    introducer_name = members.text_value(data, "introducer_name")
    requested_type = members.text_value(data, "user_type").lower()

    jlog("signup_attempt", mobile=mask_mobile(mobile), user_type=requested_type, introducer_id=introducer_id)

    if not introducer_id or not introducer_mobile or not introducer_name:
        return jsonify({"message": "Introducer is required. Please select a referral member."}), 400

    if requested_type not in ("channelpartner", "customer", "both"):
        return jsonify({"message": "Please select your user type"}), 400
    user_type = network.normalize_user_type(requested_type)

    errors = members.validate_fields(name=name, mobile=mobile, display_name=display_name, password=password)
    if errors:
        return jsonify({"message": ", ".join(errors)}), 400

    if members.mobile_taken(mobile):
        return jsonify({"message": "User with this mobile number already exists"}), 400

    try:
        introducer, introducer_model = members.find_introducer(introducer_id)
    except members.MemberError as e:
        jlog("signup_introducer_missing", introducer_id=introducer_id)
        return jsonify({"message": e.message}), e.status

    try:
        user = members.create_member({
            "name": name,
            "mobile": mobile,
            "display_name": display_name,
            "password": password,
            "introducer": introducer["_id"],
            "introducer_model": introducer_model,
            "introducer_mobile": introducer_mobile,
            "introducer_name": introducer_name,
        }, user_type)
    except DuplicateKeyError:
        return jsonify({"message": f"This mobile ({mobile}) is already registered. Please use a different mobile."}), 400

    jlog("signup_success", user_id=str(user["_id"]), user_type=user_type)

    return jsonify({
        "message": "User registered successfully",
        "token": generate_token(user["_id"]),
        "user": {
            "id": user["_id"],
            "name": user["name"],
            "mobile": user["mobile"],
            "display_name": user["display_name"],
            "introducer_name": user["introducer_name"],
            "user_type": user["user_type"],
        },
    }), 201
