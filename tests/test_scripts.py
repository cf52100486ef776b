from datetime import datetime

from bson import ObjectId
from werkzeug.security import check_password_hash

import image_store
from add_default_introducer import add_default_introducer
from cleanup_data import cleanup_data
from db import CHANNEL_PARTNERS, CUSTOMERS, LEGACY_USERS, PROMO_IMAGES
from migrate_images import migrate_images
from migrate_users import migrate_users
from verify_migration import verify_migration


def test_add_default_introducer_is_idempotent(database):
    seed, created = add_default_introducer(database)
    assert created
    assert seed["mobile"] == "9867477227"
    assert check_password_hash(seed["password"], "123456")

    again, created = add_default_introducer(database)
    assert not created
    assert again["_id"] == seed["_id"]
    assert database[LEGACY_USERS].count_documents({}) == 1


def test_migrate_users_keeps_ids(database, add_member):
    seed = add_member("Seed", "9867477227", "legacy")
    child = add_member("Child", "9000000001", "legacy", introducer=seed)
    add_member("Already", "9000000002", "CP")
    database[LEGACY_USERS].insert_one({"name": "Already", "mobile": "9000000002"})

    summary = migrate_users(database)

    assert summary == {"migrated": 2, "skipped": 1, "errors": 0, "total": 3}
    migrated = database[CHANNEL_PARTNERS].find_one({"_id": child["_id"]})
    assert migrated["introducer"] == seed["_id"]
    assert migrated["user_type"] == "CP"
    assert database[LEGACY_USERS].count_documents({}) == 3


def test_cleanup_data(database, add_member):
    migrated = add_member("Moved", "9000000001", "CP")
    database[LEGACY_USERS].insert_one(dict(migrated))
    leftover = add_member("Leftover", "9000000002", "legacy")

    result = cleanup_data(database)

    assert result == {"duplicates_removed": 1, "typed_as_customer": 1}
    assert database[LEGACY_USERS].find_one({"_id": leftover["_id"]})["user_type"] == "Customer"


def test_migrate_images_from_upload_folder(database, tmp_path):
    (tmp_path / "old.png").write_bytes(b"\x89PNG fake")
    database[PROMO_IMAGES].insert_one({"filename": "old.png", "title": "Old"})
    database[PROMO_IMAGES].insert_one({"filename": "done.png", "image_data": "AAAA"})
    database[PROMO_IMAGES].insert_one({"filename": "gone.png"})

    summary = migrate_images(database, upload_folder=str(tmp_path))

    assert summary["migrated"] == 1
    assert summary["skipped"] == 1
    assert summary["errors"] == 1
    assert summary["missing"] == ["gone.png"]
    old = database[PROMO_IMAGES].find_one({"filename": "old.png"})
    assert image_store.decode(old["image_data"]) == b"\x89PNG fake"
    assert old["mime_type"] == "image/png"


def test_migrate_images_from_remote_url(database, tmp_path, monkeypatch):
    monkeypatch.setattr(image_store, "fetch_remote", lambda url: (b"remote", "image/webp"))
    database[PROMO_IMAGES].insert_one({"filename": "r.webp", "cloudinary_url": "https://example.com/r.webp"})

    summary = migrate_images(database, upload_folder=str(tmp_path))

    assert summary["migrated"] == 1
    assert database[PROMO_IMAGES].find_one({})["mime_type"] == "image/webp"


def test_verify_migration(database, add_member):
    seed = add_member("Seed", "9867477227", "legacy")
    add_member("Child", "9000000001", "CP", introducer=seed)
    add_member("Customer", "9000000002", "Customer", introducer=seed)
    database[CHANNEL_PARTNERS].insert_one({
        "name": "Orphan",
        "mobile": "9000000003",
        "introducer": ObjectId(),
        "created_at": datetime.utcnow(),
    })

    report = verify_migration(database, mobile="9867477227")

    assert report["counts"] == {LEGACY_USERS: 1, CHANNEL_PARTNERS: 2, CUSTOMERS: 1}
    assert report["valid_references"] == 1
    assert [b["name"] for b in report["broken_references"]] == ["Orphan"]
    assert report["member"]["referrals_by_collection"] == {CHANNEL_PARTNERS: 1, CUSTOMERS: 1, LEGACY_USERS: 0}
