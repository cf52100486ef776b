"""Shared fixtures: an in-memory MongoDB and the Flask test client."""

import itertools
import os
import sys
from datetime import datetime, timedelta
from pathlib import Path

import mongomock
from bson import ObjectId
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ["MONGODB_URI"] = "mongodb://localhost:27017"
os.environ["MONGODB_DB"] = "promotionDB_test"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["ADMIN_USERNAME"] = "admin"
os.environ["ADMIN_PASSWORD"] = "admin123"

# pymongo.MongoClient must be replaced before db.py connects
_mongo_patch = mongomock.patch(servers=(("localhost", 27017),))
_mongo_patch.start()

import members  # noqa: E402
from auth import generate_admin_token, generate_token  # noqa: E402
from db import db as mongo_db, LEGACY_USERS  # noqa: E402
from werkzeug.security import generate_password_hash  # noqa: E402


def pytest_unconfigure(config):
    _mongo_patch.stop()


@pytest.fixture(autouse=True)
def clean_db():
    for name in mongo_db.list_collection_names():
        mongo_db.drop_collection(name)
    yield
    for name in mongo_db.list_collection_names():
        mongo_db.drop_collection(name)


@pytest.fixture
def database():
    return mongo_db


@pytest.fixture(scope="session")
def app():
    from app import app as flask_app

    flask_app.config.update(TESTING=True)
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def add_member():
    """Insert a member straight into MongoDB. ``user_type='legacy'`` writes an untyped legacy user."""
    clock = itertools.count()
    start = datetime(2025, 1, 1)

    def _add(name, mobile, user_type="CP", introducer=None, password="secret1"):
        now = start + timedelta(minutes=next(clock))
        doc = {
            "_id": ObjectId(),
            "name": name,
            "display_name": name,
            "mobile": mobile,
            "password": generate_password_hash(password),
            "introducer": introducer["_id"] if introducer else None,
            "introducer_name": introducer["name"] if introducer else None,
            "introducer_mobile": introducer["mobile"] if introducer else None,
            "created_at": now,
            "updated_at": now,
        }
        if user_type == "legacy":
            names = [LEGACY_USERS]
        else:
            doc["user_type"] = user_type
            names = members.collections_for_type(user_type)
        for name_ in names:
            mongo_db[name_].insert_one(dict(doc))
        return doc

    return _add


@pytest.fixture
def sample_network(add_member):
    """
    root (CP)
    ├── a (CP)
    │   └── c (Both)
    │       └── d (Customer)
    └── b (Customer)
        └── e (CP)
    """
    root = add_member("Root", "9000000001", "CP")
    a = add_member("Alpha", "9000000002", "CP", introducer=root)
    b = add_member("Bravo", "9000000003", "Customer", introducer=root)
    c = add_member("Charlie", "9000000004", "Both", introducer=a)
    d = add_member("Delta", "9000000005", "Customer", introducer=c)
    e = add_member("Echo", "9000000006", "CP", introducer=b)
    return {"root": root, "a": a, "b": b, "c": c, "d": d, "e": e}


@pytest.fixture
def member_headers():
    def _headers(member):
        return {"Authorization": f"Bearer {generate_token(member['_id'])}"}

    return _headers


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {generate_admin_token('admin')}"}
