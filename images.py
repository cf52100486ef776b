# images.py
import binascii
from datetime import datetime
from io import BytesIO

from PIL import UnidentifiedImageError
from flask import Blueprint, request, jsonify, g, send_file

import image_store
import members
from auth import token_required
from db import db, PROMO_IMAGES
from logger import jlog

images_bp = Blueprint("images", __name__, url_prefix="/api/images")
promo_col = db[PROMO_IMAGES]


def _active_image(image_id):
    _id = members.to_object_id(image_id)
    if _id is None:
        return None
    return promo_col.find_one({"_id": _id, "is_active": True})


@images_bp.route("/generate", methods=["POST"])
@token_required
def generate():
    user = g.user
    data = request.get_json(silent=True) or {}
    image_id = data.get("image_id")
    language = data.get("language") or "en"

    promo = _active_image(image_id)
    if not promo:
        return jsonify({"message": "Promotional image not found or not active"}), 404

    if not promo.get("image_data"):
        jlog("promo_image_data_missing", image_id=str(promo["_id"]))
        promo_col.update_one({"_id": promo["_id"]}, {"$set": {"is_active": False, "updated_at": datetime.utcnow()}})
        return jsonify({
            "message": "Image data not found. Please contact admin to re-upload this promotional image.",
            "image_id": image_id,
        }), 404

    try:
        png = image_store.personalize(
            image_store.decode(promo["image_data"]),
            user.get("display_name"),
            user.get("mobile"),
        )
    except (UnidentifiedImageError, binascii.Error, ValueError) as e:
        jlog("promo_image_generate_failed", image_id=str(promo["_id"]), error=str(e))
        return jsonify({"message": "Error generating personalized image"}), 500

    encoded = image_store.encode(png)
    return jsonify({
        "message": "Personalized image generated successfully",
        "image_url": image_store.data_url(encoded),
        "base64": encoded,
        "user_friendly_filename": f"{user.get('display_name')}-{language}-promotional.png",
        "language": language,
        "image_id": image_id,
        "storage_type": "mongodb-base64",
    })


def _send_promo(image_id, as_attachment):
    promo = _active_image(image_id)
    if not promo or not promo.get("image_data"):
        return jsonify({"message": "File not found"}), 404

    mime_type = promo.get("mime_type") or image_store.mime_type_for(promo.get("filename"))
    return send_file(
        BytesIO(image_store.decode(promo["image_data"])),
        mimetype=mime_type,
        as_attachment=as_attachment,
        download_name=promo.get("filename") or f"{promo['_id']}.png",
    )


@images_bp.route("/file/<image_id>")
def promo_file(image_id):
    return _send_promo(image_id, as_attachment=False)


@images_bp.route("/download/<image_id>")
def download(image_id):
    return _send_promo(image_id, as_attachment=True)
