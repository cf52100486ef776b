# auth.py
from datetime import datetime, timedelta, timezone
from functools import wraps

import jwt
from flask import g, jsonify, request

import config
import members
from logger import jlog


def generate_token(user_id):
    payload = {
        "user_id": str(user_id),
        "exp": datetime.now(timezone.utc) + timedelta(days=config.JWT_EXPIRES_DAYS),
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm="HS256")


def generate_admin_token(username):
    payload = {
        "username": username,
        "role": "admin",
        "exp": datetime.now(timezone.utc) + timedelta(hours=config.ADMIN_JWT_EXPIRES_HOURS),
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm="HS256")


def _bearer_token():
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        return header[len("Bearer "):].strip()
    return header.strip() or None


def _unauthorized(message, code=None):
    body = {"message": message}
    if code:
        body["code"] = code
    return jsonify(body), 401


def token_required(f):
    """Resolve the bearer token to a member and expose it as ``g.user``."""
    @wraps(f)
    def decorated(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return _unauthorized("No token, authorization denied")

        try:
            decoded = jwt.decode(token, config.JWT_SECRET, algorithms=["HS256"])
        except jwt.ExpiredSignatureError:
            jlog("auth_token_expired")
            return _unauthorized("Session expired. Please login again.", "TOKEN_EXPIRED")
        except jwt.InvalidTokenError as e:
            jlog("auth_token_invalid", error=str(e))
            return _unauthorized("Invalid token. Please login again.", "INVALID_TOKEN")

        user = members.find_member(decoded.get("user_id"), include_legacy=False)
        if not user:
            return _unauthorized("User not found. Please login again.", "USER_NOT_FOUND")

        g.user = user
        return f(*args, **kwargs)

    return decorated


def admin_required(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return _unauthorized("No token, authorization denied")

        try:
            decoded = jwt.decode(token, config.JWT_SECRET, algorithms=["HS256"])
        except jwt.InvalidTokenError:
            return _unauthorized("Token is not valid")

        if decoded.get("role") != "admin":
            return _unauthorized("Access denied. Admin only.")

        g.admin = decoded
        return f(*args, **kwargs)

    return decorated
