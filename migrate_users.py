from datetime import datetime

from pymongo.errors import PyMongoError
from tabulate import tabulate

import network
from db import db, CHANNEL_PARTNERS, LEGACY_USERS
from logger import jlog


def _introducer_model(database, introducer_id):
    if introducer_id is None:
        return None
    if database[CHANNEL_PARTNERS].find_one({"_id": introducer_id}, {"_id": 1}):
        return "ChannelPartner"
    return "User"


def migrate_users(database=db):
    """
    Copy every legacy user into channelpartners with the same _id.

    Users already present there (by id or mobile) are skipped. The legacy
    collection is left untouched as a backup.
    """
    cp_col = database[CHANNEL_PARTNERS]
    summary = {"migrated": 0, "skipped": 0, "errors": 0, "total": 0}

    for user in database[LEGACY_USERS].find():
        summary["total"] += 1
        clash = {"_id": user["_id"]}
        if user.get("mobile"):
            clash = {"$or": [clash, {"mobile": user["mobile"]}]}
        if cp_col.find_one(clash, {"_id": 1}):
            summary["skipped"] += 1
            continue

        doc = {
            "_id": user["_id"],
            "name": user.get("name"),
            "display_name": user.get("display_name") or user.get("name"),
            "mobile": user.get("mobile"),
            "password": user.get("password"),
            "user_type": network.normalize_user_type(user.get("user_type")) or "CP",
            "introducer": user.get("introducer"),
            "introducer_model": _introducer_model(database, user.get("introducer")),
            "introducer_name": user.get("introducer_name"),
            "introducer_mobile": user.get("introducer_mobile"),
            "created_at": user.get("created_at") or datetime.utcnow(),
            "updated_at": datetime.utcnow(),
        }
        try:
            cp_col.insert_one(doc)
            summary["migrated"] += 1
        except PyMongoError as e:
            jlog("migrate_user_failed", user_id=str(user["_id"]), error=str(e))
            summary["errors"] += 1

    return summary


if __name__ == "__main__":
    result = migrate_users()
    print(tabulate(
        [[result["migrated"], result["skipped"], result["errors"], result["total"]]],
        headers=["Migrated", "Skipped", "Errors", "Total"],
        tablefmt="grid",
    ))
    print("The legacy users collection was kept as a backup.")
