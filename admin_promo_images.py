# admin_promo_images.py
from datetime import datetime

import requests
from flask import Blueprint, request, jsonify

import image_store
import members
from auth import admin_required
from db import db, PROMO_IMAGES
from logger import jlog

admin_promo_images_bp = Blueprint("admin_promo_images", __name__, url_prefix="/api/admin")
promo_col = db[PROMO_IMAGES]


def _image_json(img, include_admin_fields=True):
    doc = {
        "id": img["_id"],
        "filename": img.get("filename"),
        "title": img.get("title"),
        "description": img.get("description", ""),
        "event_date": img.get("event_date"),
        "image_url": f"/api/images/file/{img['_id']}",
    }
    if include_admin_fields:
        doc.update({
            "original_name": img.get("original_name"),
            "mime_type": img.get("mime_type"),
            "is_active": img.get("is_active", False),
            "has_image_data": bool(img.get("image_data")),
            "cloudinary_url": img.get("cloudinary_url"),
            "created_at": img.get("created_at"),
        })
    return doc


# =======================
#   FILE UPLOAD API
# =======================
@admin_promo_images_bp.route("/upload-promo-image", methods=["POST"])
@admin_required
def upload_promo_image():
    title = (request.form.get("title") or "").strip() or "Promotional Event"
    description = (request.form.get("description") or "").strip()
    image_url = (request.form.get("image_url") or "").strip()

    file = request.files.get("promoImage")
    if file and file.filename.strip():
        if not (file.mimetype or "").startswith("image/") or not image_store.allowed_file(file.filename):
            return jsonify({"message": "Please upload an image file"}), 400
        content = file.read()
        original_name = file.filename
        mime_type = file.mimetype
    elif image_url:
        try:
            content, mime_type = image_store.fetch_remote(image_url)
        except requests.RequestException as e:
            jlog("promo_image_fetch_failed", url=image_url, error=str(e))
            return jsonify({"message": "Could not download the image from the given URL"}), 400
        original_name = image_url.split("?", 1)[0].rsplit("/", 1)[-1] or "remote-image"
    else:
        return jsonify({"message": "Please upload an image file"}), 400

    if not content:
        return jsonify({"message": "Please upload an image file"}), 400

    now = datetime.utcnow()
    doc = {
        "filename": image_store.promo_filename(original_name),
        "original_name": original_name,
        "image_data": image_store.encode(content),
        "mime_type": mime_type,
        "cloudinary_url": image_url or None,
        "title": title,
        "description": description,
        "is_active": True,
        "event_date": now,
        "created_at": now,
        "updated_at": now,
    }
    doc["_id"] = promo_col.insert_one(doc).inserted_id
    jlog("promo_image_uploaded", image_id=str(doc["_id"]), bytes=len(content))

    return jsonify({
        "message": "Promotional image uploaded successfully",
        "promo_image": _image_json(doc),
    })


@admin_promo_images_bp.route("/promo-images")
@admin_required
def list_promo_images():
    images = list(promo_col.find().sort("event_date", -1))
    return jsonify({
        "message": "Promotional images retrieved successfully",
        "images": [_image_json(img) for img in images],
    })


@admin_promo_images_bp.route("/promo-image/<image_id>/activate", methods=["PUT"])
@admin_required
def activate_promo_image(image_id):
    _id = members.to_object_id(image_id)
    promo = promo_col.find_one({"_id": _id}) if _id else None
    if not promo:
        return jsonify({"message": "Promotional image not found"}), 404

    # Only one campaign image is live at a time
    now = datetime.utcnow()
    promo_col.update_many({"_id": {"$ne": _id}}, {"$set": {"is_active": False, "updated_at": now}})
    promo_col.update_one({"_id": _id}, {"$set": {"is_active": True, "updated_at": now}})

    return jsonify({
        "message": "Promotional image activated successfully",
        "promo_image": _image_json(promo_col.find_one({"_id": _id})),
    })


@admin_promo_images_bp.route("/promo-image/<image_id>", methods=["DELETE"])
@admin_required
def delete_promo_image(image_id):
    _id = members.to_object_id(image_id)
    res = promo_col.delete_one({"_id": _id}) if _id else None
    if not res or not res.deleted_count:
        return jsonify({"message": "Promotional image not found"}), 404

    jlog("promo_image_deleted", image_id=image_id)
    return jsonify({"message": "Promotional image deleted successfully"})


# Public: images shown on the member home page
@admin_promo_images_bp.route("/public-images")
def public_images():
    images = []
    for img in promo_col.find({"is_active": True}).sort("event_date", -1):
        if not img.get("image_data"):
            jlog("promo_image_data_missing", image_id=str(img["_id"]))
            continue
        images.append(_image_json(img, include_admin_fields=False))

    return jsonify({"message": "Promotional images retrieved successfully", "images": images})


@admin_promo_images_bp.route("/cleanup-orphaned-images", methods=["DELETE"])
@admin_required
def cleanup_orphaned_images():
    orphaned = list(promo_col.find({"$or": [
        {"image_data": {"$exists": False}},
        {"image_data": None},
        {"image_data": ""},
    ]}))
    if orphaned:
        promo_col.delete_many({"_id": {"$in": [img["_id"] for img in orphaned]}})

    return jsonify({
        "message": "Cleanup completed successfully",
        "orphaned_images_removed": len(orphaned),
        "valid_images_remaining": promo_col.count_documents({}),
        "removed_images": [
            {"id": img["_id"], "filename": img.get("filename"), "title": img.get("title")}
            for img in orphaned
        ],
    })
