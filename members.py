# members.py
import re
from datetime import datetime

from bson import ObjectId
from bson.errors import InvalidId
from werkzeug.security import generate_password_hash

import network
from db import db, CHANNEL_PARTNERS, CUSTOMERS, LEGACY_USERS

cp_col = db[CHANNEL_PARTNERS]
customers_col = db[CUSTOMERS]
legacy_col = db[LEGACY_USERS]

MODEL_NAMES = {
    CHANNEL_PARTNERS: "ChannelPartner",
    CUSTOMERS: "Customer",
    LEGACY_USERS: "User",
}
USER_TYPES = ("CP", "Customer", "Both")
MOBILE_RE = re.compile(r"^[0-9]{10}$")


class MemberError(Exception):
    def __init__(self, message, status=400):
        super().__init__(message)
        self.message = message
        self.status = status


def to_object_id(value):
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def text_value(data, key, strip=True):
    """Request field as a string; numbers and other JSON scalars are coerced."""
    value = data.get(key)
    if value is None:
        return ""
    value = str(value)
    return value.strip() if strip else value


def collections_for_type(user_type):
    if user_type == "CP":
        return [CHANNEL_PARTNERS]
    if user_type == "Customer":
        return [CUSTOMERS]
    return [CHANNEL_PARTNERS, CUSTOMERS]


def find_member(member_id, include_legacy=True):
    _id = to_object_id(member_id)
    if _id is None:
        return None
    return network.lookup_member(db, _id, include_legacy=include_legacy)


def find_document(member_id):
    """Full stored document (with password hash), ChannelPartner copy first."""
    _id = to_object_id(member_id)
    if _id is None:
        return None
    return cp_col.find_one({"_id": _id}) or customers_col.find_one({"_id": _id})


def find_by_mobile(mobile):
    """Login lookup: ChannelPartner collection first, then Customer."""
    user = cp_col.find_one({"mobile": mobile})
    if user:
        return user, CHANNEL_PARTNERS
    user = customers_col.find_one({"mobile": mobile})
    if user:
        return user, CUSTOMERS
    return None, None


def mobile_taken(mobile, exclude_id=None):
    query = {"mobile": mobile}
    if exclude_id is not None:
        query["_id"] = {"$ne": exclude_id}
    return bool(cp_col.find_one(query) or customers_col.find_one(query))


def validate_fields(name=None, mobile=None, display_name=None, password=None, partial=False):
    errors = []

    def _check_text(value, label):
        if value is None and partial:
            return
        value = (value or "").strip()
        if not value:
            errors.append(f"{label} is required")
        elif len(value) < 2:
            errors.append(f"{label} must be at least 2 characters long")
        elif len(value) > 50:
            errors.append(f"{label} cannot exceed 50 characters")

    _check_text(name, "Name")
    _check_text(display_name, "Display name")

    if not (mobile is None and partial):
        if not mobile:
            errors.append("Mobile number is required")
        elif not MOBILE_RE.match(mobile):
            errors.append("Please enter a valid 10-digit mobile number")

    if not (password is None and partial):
        if not password:
            errors.append("Password is required")
        elif len(password) < 6:
            errors.append("Password must be at least 6 characters long")

    return errors


def find_introducer(introducer_id):
    """Introducer lookup for signup: ChannelPartner, Customer, then the legacy seed users."""
    _id = to_object_id(introducer_id)
    if _id is None:
        raise MemberError("Invalid introducer ID format. Please select a valid referral member.")
    for name in (CHANNEL_PARTNERS, CUSTOMERS, LEGACY_USERS):
        doc = db[name].find_one({"_id": _id})
        if doc:
            return doc, MODEL_NAMES[name]
    raise MemberError("Introducer not found. Please select a valid referral member.")


def create_member(data, user_type):
    """Insert a member into every collection its type requires, sharing one _id."""
    now = datetime.utcnow()
    doc = {
        "_id": ObjectId(),
        "name": data["name"].strip(),
        "display_name": data["display_name"].strip(),
        "mobile": data["mobile"],
        "password": generate_password_hash(data["password"]),
        "introducer": data.get("introducer"),
        "introducer_model": data.get("introducer_model"),
        "introducer_mobile": data.get("introducer_mobile"),
        "introducer_name": data.get("introducer_name"),
        "user_type": user_type,
        "created_at": now,
        "updated_at": now,
    }

    inserted = []
    try:
        for name in collections_for_type(user_type):
            db[name].insert_one(dict(doc))
            inserted.append(name)
    except Exception:
        for name in inserted:
            db[name].delete_one({"_id": doc["_id"]})
        raise
    return doc


def set_user_type(member_id, user_type):
    """
    Move a member to the collection(s) matching ``user_type``.

    The member keeps its _id, so referral links stay intact.
    """
    if user_type not in USER_TYPES:
        raise MemberError("Invalid user type")

    doc = find_document(member_id)
    if not doc:
        raise MemberError("User not found", 404)

    now = datetime.utcnow()
    wanted = collections_for_type(user_type)
    for name in (CHANNEL_PARTNERS, CUSTOMERS):
        col = db[name]
        if name in wanted:
            if col.find_one({"_id": doc["_id"]}):
                col.update_one({"_id": doc["_id"]}, {"$set": {"user_type": user_type, "updated_at": now}})
            else:
                col.insert_one(dict(doc, user_type=user_type, updated_at=now))
        else:
            col.delete_one({"_id": doc["_id"]})

    return dict(doc, user_type=user_type, updated_at=now)


def update_fields(member_id, fields):
    """$set ``fields`` on every copy of the member."""
    if not fields:
        return
    fields = dict(fields, updated_at=datetime.utcnow())
    for name in (CHANNEL_PARTNERS, CUSTOMERS):
        db[name].update_one({"_id": member_id}, {"$set": fields})


def change_introducer(member_id, introducer_id):
    _id = to_object_id(member_id)
    new_introducer_id = to_object_id(introducer_id)
    if _id is None:
        raise MemberError("User not found", 404)
    if new_introducer_id is None:
        raise MemberError("Invalid introducer ID format")

    doc = find_document(_id)
    if not doc:
        raise MemberError("User not found", 404)

    introducer = network.lookup_member(db, new_introducer_id)
    if not introducer:
        raise MemberError("Introducer not found", 404)
    if new_introducer_id == _id or new_introducer_id in network.downline_ids(db, _id):
        raise MemberError("A member cannot be introduced by themselves or by their own referral")

    update_fields(_id, {
        "introducer": new_introducer_id,
        "introducer_model": MODEL_NAMES.get(introducer["source"]),
        "introducer_name": introducer.get("display_name") or introducer.get("name"),
        "introducer_mobile": introducer.get("mobile"),
    })
    return find_member(_id), introducer


def remove_member(member_id):
    """
    Delete a member, and every copy merged with it by mobile, from all collections.

    Direct referrals are re-parented to the removed member's introducer when
    that introducer still exists. Returns (member, reassigned_count).
    """
    member = find_member(member_id)
    if not member:
        raise MemberError("User not found", 404)

    ids = list(member["ids"])
    if member.get("mobile"):
        for copy in network.all_members(db, query={"mobile": member["mobile"]}):
            ids.extend(i for i in copy["ids"] if i not in ids)

    referred = network.dedupe_members(network.find_referrals(db, ids, include_legacy=True))
    referred = [m for m in referred if not set(m["ids"]) & set(ids)]
    reassigned = 0

    if referred and member.get("introducer") and member["introducer"] not in ids:
        new_introducer = network.lookup_member(db, member["introducer"])
        if new_introducer:
            reassigned = len(referred)
            for name in (CHANNEL_PARTNERS, CUSTOMERS, LEGACY_USERS):
                db[name].update_many(
                    {"introducer": {"$in": ids}},
                    {"$set": {
                        "introducer": new_introducer["_id"],
                        "introducer_model": MODEL_NAMES.get(new_introducer["source"]),
                        "introducer_mobile": new_introducer.get("mobile"),
                        "introducer_name": new_introducer.get("name"),
                        "updated_at": datetime.utcnow(),
                    }},
                )

    for name in (CHANNEL_PARTNERS, CUSTOMERS, LEGACY_USERS):
        db[name].delete_many({"_id": {"$in": ids}})

    return member, reassigned


def search(text, limit=10, include_legacy=False, fields=("mobile", "name", "display_name")):
    regex = {"$regex": re.escape(text), "$options": "i"}
    query = {"$or": [{f: regex} for f in fields]}
    names = [CHANNEL_PARTNERS, CUSTOMERS] + ([LEGACY_USERS] if include_legacy else [])

    records = []
    for name in names:
        for doc in db[name].find(query, network.MEMBER_FIELDS).sort("name", 1).limit(limit):
            doc["source"] = name
            records.append(doc)
    return network.dedupe_members(records)[:limit]


def public_member(member):
    """JSON-safe view of a member document; never includes the password hash."""
    return {
        "id": member["_id"],
        "name": member.get("name"),
        "display_name": member.get("display_name"),
        "mobile": member.get("mobile"),
        "user_type": member.get("member_type") or network.normalize_user_type(member.get("user_type")) or member.get("user_type"),
        "introducer_name": member.get("introducer_name"),
        "created_at": member.get("created_at"),
    }
