from datetime import datetime, timedelta
import hmac

from flask import Blueprint, request, jsonify

import config
import network
from auth import admin_required, generate_admin_token
from db import db
from logger import jlog

admin_dashboard_bp = Blueprint("admin_dashboard", __name__, url_prefix="/api/admin")


@admin_dashboard_bp.route("/login", methods=["POST"])
def admin_login():
    data = request.get_json(silent=True) or {}
    username = data.get("username") or ""
    password = data.get("password") or ""

    valid = (hmac.compare_digest(username.encode(), config.ADMIN_USERNAME.encode())
             and hmac.compare_digest(password.encode(), config.ADMIN_PASSWORD.encode()))
    if not valid:
        jlog("admin_login_failed", username=username)
        return jsonify({"message": "Invalid admin credentials"}), 400

    return jsonify({
        "message": "Admin login successful",
        "token": generate_admin_token(config.ADMIN_USERNAME),
        "admin": {"username": config.ADMIN_USERNAME, "role": "admin"},
    })


@admin_dashboard_bp.route("/users/stats")
@admin_required
def user_stats():
    now = datetime.utcnow()
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    week_ago = now - timedelta(days=7)
    month_start = today.replace(day=1)

    everyone = network.all_members(db)
    joined = [m.get("created_at") for m in everyone if m.get("created_at")]

    return jsonify({
        "message": "User statistics retrieved successfully",
        "stats": {
            "total_users": len(everyone),
            "users_today": sum(1 for d in joined if d >= today),
            "users_this_week": sum(1 for d in joined if d >= week_ago),
            "users_this_month": sum(1 for d in joined if d >= month_start),
            "top_introducers": network.top_introducers(db, limit=5),
        },
    })


# Public: landing page leaderboard
@admin_dashboard_bp.route("/public-top-introducers")
def public_top_introducers():
    return jsonify({
        "message": "Top introducers retrieved successfully",
        "top_introducers": network.top_introducers(db, limit=10),
    })
