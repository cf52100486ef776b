from datetime import datetime
import logging
import os
import traceback

from bson import ObjectId
from flask import Flask, jsonify
from flask.json.provider import DefaultJSONProvider
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

import config
from logger import jlog

from signup import signup_bp
from login import login_bp
from users import users_bp
from member_profile import member_profile_bp
from referral import referral_bp
from images import images_bp
from admin_dashboard import admin_dashboard_bp
from admin_users import admin_users_bp
from admin_referrals import admin_referrals_bp
from admin_promo_images import admin_promo_images_bp


class MongoJSONProvider(DefaultJSONProvider):
    """ObjectId -> str, datetime -> ISO 8601."""

    @staticmethod
    def default(o):
        if isinstance(o, ObjectId):
            return str(o)
        if isinstance(o, datetime):
            return o.isoformat()
        return DefaultJSONProvider.default(o)


def create_app():
    app = Flask(__name__)
    app.json = MongoJSONProvider(app)
    app.secret_key = config.SECRET_KEY
    app.config["MAX_CONTENT_LENGTH"] = config.MAX_UPLOAD_MB * 1024 * 1024

    CORS(app, origins=config.CORS_ORIGINS, supports_credentials=True)

    # Only the migration scripts read from here now
    os.makedirs(config.UPLOAD_FOLDER, exist_ok=True)

    # Register Blueprints
    app.register_blueprint(signup_bp)
    app.register_blueprint(login_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(member_profile_bp)
    app.register_blueprint(referral_bp)
    app.register_blueprint(images_bp)
    app.register_blueprint(admin_dashboard_bp)
    app.register_blueprint(admin_users_bp)
    app.register_blueprint(admin_referrals_bp)
    app.register_blueprint(admin_promo_images_bp)

    @app.route("/")
    def home():
        return jsonify({"message": "Promotion API is running"})

    # Simple health check for Render
    @app.route("/health")
    def health():
        return jsonify({"status": "ok", "timestamp": datetime.utcnow()})

    @app.errorhandler(413)
    def too_large(e):
        return jsonify({"message": f"File too large. Maximum size is {config.MAX_UPLOAD_MB}MB"}), 413

    @app.errorhandler(Exception)
    def unhandled(e):
        if isinstance(e, HTTPException):
            return jsonify({"message": e.description}), e.code
        jlog("unhandled_error", level=logging.ERROR, error=str(e), trace=traceback.format_exc())
        return jsonify({"message": "Something went wrong!"}), 500

    return app


# Expose a module-level app for Gunicorn (`gunicorn app:app`)
app = create_app()

if __name__ == "__main__":
    # Local dev only; Render uses Gunicorn
    app.run(debug=True)
