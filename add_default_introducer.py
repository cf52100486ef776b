from datetime import datetime

from tabulate import tabulate
from werkzeug.security import generate_password_hash

from db import db, LEGACY_USERS

DEFAULT_INTRODUCER = {
    "name": "System Admin",
    "display_name": "System Admin",
    "mobile": "9867477227",
}
DEFAULT_PASSWORD = "123456"


def add_default_introducer(database=db):
    """Insert the seed introducer into the legacy users collection. Returns (doc, created)."""
    users_col = database[LEGACY_USERS]

    existing = users_col.find_one({"mobile": DEFAULT_INTRODUCER["mobile"]})
    if existing:
        return existing, False

    now = datetime.utcnow()
    doc = {
        **DEFAULT_INTRODUCER,
        "password": generate_password_hash(DEFAULT_PASSWORD),
        "introducer": None,
        "created_at": now,
        "updated_at": now,
    }
    doc["_id"] = users_col.insert_one(doc).inserted_id
    return doc, True


if __name__ == "__main__":
    user, created = add_default_introducer()
    if created:
        print("✅ Default introducer inserted.")
    else:
        print("Default introducer already exists.")
    print(tabulate(
        [[str(user["_id"]), user.get("name"), user.get("display_name"), user.get("mobile")]],
        headers=["ID", "Name", "Display Name", "Mobile"],
        tablefmt="grid",
    ))
    print(f"Users can search for mobile {DEFAULT_INTRODUCER['mobile']} when signing up.")
