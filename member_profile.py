# member_profile.py
from flask import Blueprint, request, jsonify, g
from werkzeug.security import generate_password_hash, check_password_hash

import members
import network
from auth import token_required
from logger import jlog

member_profile_bp = Blueprint("member_profile", __name__, url_prefix="/api/users")


def _is_self(user_id):
    return user_id in {str(i) for i in g.user.get("ids", [g.user["_id"]])}


@member_profile_bp.route("/profile", methods=["GET"])
@token_required
def get_profile():
    return jsonify({"user": members.public_member(g.user)})


@member_profile_bp.route("/profile", methods=["PUT"])
@token_required
def update_profile():
    data = request.get_json(silent=True) or {}
    user_id = g.user["_id"]

    member = members.find_document(user_id)
    if not member:
        return jsonify({"message": "User not found"}), 404

    name = members.text_value(data, "name") or None
    display_name = members.text_value(data, "display_name") or None
    mobile = members.text_value(data, "mobile") or None

    errors = members.validate_fields(name=name, mobile=mobile, display_name=display_name, partial=True)
    if errors:
        return jsonify({"message": ", ".join(errors)}), 400

    if mobile and mobile != member.get("mobile") and members.mobile_taken(mobile, exclude_id=user_id):
        return jsonify({"message": "User with this mobile number already exists"}), 400

    user_type = None
    requested_type = members.text_value(data, "user_type")
    if requested_type:
        user_type = network.normalize_user_type(requested_type)
        if not user_type:
            return jsonify({"message": "Invalid user type"}), 400

    updates = {}
    if name:
        updates["name"] = name
    if display_name:
        updates["display_name"] = display_name
    if mobile:
        updates["mobile"] = mobile

    # Handle password update
    new_password = members.text_value(data, "new_password", strip=False)
    if new_password:
        current_password = members.text_value(data, "current_password", strip=False)
        if not check_password_hash(member.get("password", ""), current_password):
            return jsonify({"message": "Current password is incorrect."}), 400
        if new_password != members.text_value(data, "confirm_password", strip=False):
            return jsonify({"message": "New passwords do not match."}), 400
        if len(new_password) < 6:
            return jsonify({"message": "Password must be at least 6 characters long"}), 400
        updates["password"] = generate_password_hash(new_password)

    # Nothing is written until every field has passed
    members.update_fields(user_id, updates)
    if user_type:
        members.set_user_type(user_id, user_type)

    jlog("profile_updated", user_id=str(user_id), fields=sorted(k for k in updates if k != "password"),
         password_changed="password" in updates, user_type=user_type)

    return jsonify({
        "message": "Profile updated successfully",
        "user": members.public_member(members.find_member(user_id)),
    })


@member_profile_bp.route("/update-introducer/<user_id>", methods=["PUT"])
@token_required
def update_introducer(user_id):
    if not _is_self(user_id):
        return jsonify({"message": "You can only update your own introducer"}), 403

    data = request.get_json(silent=True) or {}

    try:
        user, introducer = members.change_introducer(user_id, data.get("introducer_id"))
    except members.MemberError as e:
        return jsonify({"message": e.message}), e.status

    jlog("introducer_changed", user_id=user_id, introducer_id=str(introducer["_id"]))

    result = members.public_member(user)
    result["introducer_name"] = introducer.get("display_name") or introducer.get("name")
    return jsonify({
        "message": "Introducer updated successfully. Network relationships have been refreshed.",
        "user": result,
    })


@member_profile_bp.route("/update-user-type/<user_id>", methods=["PUT"])
@token_required
def update_user_type(user_id):
    if not _is_self(user_id):
        return jsonify({"message": "You can only change your own user type"}), 403

    data = request.get_json(silent=True) or {}
    user_type = network.normalize_user_type(data.get("user_type"))

    try:
        members.set_user_type(user_id, user_type)
    except members.MemberError as e:
        return jsonify({"message": e.message}), e.status

    return jsonify({
        "message": f"User type updated to {user_type} successfully",
        "user_type": user_type,
    })
