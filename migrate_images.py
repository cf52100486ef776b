import os

import requests
from tabulate import tabulate

import config
import image_store
from db import db, PROMO_IMAGES
from logger import jlog


def _load_bytes(image, upload_folder):
    filename = image.get("filename") or ""
    path = os.path.join(upload_folder, filename)
    if filename and os.path.isfile(path):
        with open(path, "rb") as fh:
            return fh.read(), image_store.mime_type_for(filename)

    if image.get("cloudinary_url"):
        return image_store.fetch_remote(image["cloudinary_url"])

    return None, None


def migrate_images(database=db, upload_folder=None):
    """Fill image_data for promo images that still point at a file or a remote URL."""
    upload_folder = upload_folder or config.UPLOAD_FOLDER
    promo_col = database[PROMO_IMAGES]
    summary = {"migrated": 0, "skipped": 0, "errors": 0, "total": 0}
    missing = []

    for image in promo_col.find():
        summary["total"] += 1
        if image.get("image_data"):
            summary["skipped"] += 1
            continue

        try:
            content, mime_type = _load_bytes(image, upload_folder)
        except requests.RequestException as e:
            jlog("migrate_image_fetch_failed", image_id=str(image["_id"]), error=str(e))
            content, mime_type = None, None

        if not content:
            summary["errors"] += 1
            missing.append(image.get("filename"))
            continue

        promo_col.update_one(
            {"_id": image["_id"]},
            {"$set": {"image_data": image_store.encode(content), "mime_type": mime_type}},
        )
        summary["migrated"] += 1

    summary["missing"] = missing
    return summary


if __name__ == "__main__":
    result = migrate_images()
    print(tabulate(
        [[result["migrated"], result["skipped"], result["errors"], result["total"]]],
        headers=["Migrated", "Skipped", "Errors", "Total"],
        tablefmt="grid",
    ))
    for filename in result["missing"]:
        print(f"✗ {filename}: re-upload this image through the admin panel")
