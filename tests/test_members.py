import pytest
from bson import ObjectId

import members
from db import CHANNEL_PARTNERS, CUSTOMERS, LEGACY_USERS


def test_validate_fields():
    errors = members.validate_fields(name="A", mobile="123", display_name="", password="123")
    assert "Name must be at least 2 characters long" in errors
    assert "Display name is required" in errors
    assert "Please enter a valid 10-digit mobile number" in errors
    assert "Password must be at least 6 characters long" in errors

    assert members.validate_fields(name="Alice", mobile="9000000001", display_name="Ali", password="secret1") == []
    assert members.validate_fields(name="Alice", partial=True) == []


def test_create_both_member_shares_id(database):
    doc = members.create_member(
        {"name": "Alice", "display_name": "Ali", "mobile": "9000000001", "password": "secret1"},
        "Both",
    )
    cp = database[CHANNEL_PARTNERS].find_one({"_id": doc["_id"]})
    cust = database[CUSTOMERS].find_one({"_id": doc["_id"]})
    assert cp and cust
    assert cp["password"] != "secret1"
    assert members.find_member(doc["_id"])["member_type"] == "Both"


def test_set_user_type_moves_member(database, add_member):
    alice = add_member("Alice", "9000000001", "CP")

    members.set_user_type(alice["_id"], "Customer")
    assert database[CHANNEL_PARTNERS].find_one({"_id": alice["_id"]}) is None
    assert database[CUSTOMERS].find_one({"_id": alice["_id"]})["user_type"] == "Customer"

    members.set_user_type(alice["_id"], "Both")
    assert database[CHANNEL_PARTNERS].find_one({"_id": alice["_id"]})["user_type"] == "Both"


def test_set_user_type_rejects_unknown_type(add_member):
    alice = add_member("Alice", "9000000001", "CP")
    with pytest.raises(members.MemberError):
        members.set_user_type(alice["_id"], "Admin")


def test_mobile_taken(add_member):
    alice = add_member("Alice", "9000000001", "Customer")
    assert members.mobile_taken("9000000001")
    assert not members.mobile_taken("9000000001", exclude_id=alice["_id"])
    assert not members.mobile_taken("9000000009")


def test_find_introducer(add_member):
    seed = add_member("System Admin", "9867477227", "legacy")
    doc, model = members.find_introducer(str(seed["_id"]))
    assert doc["_id"] == seed["_id"]
    assert model == "User"

    with pytest.raises(members.MemberError):
        members.find_introducer("not-an-id")
    with pytest.raises(members.MemberError):
        members.find_introducer(str(ObjectId()))


def test_change_introducer(database, sample_network):
    echo = sample_network["e"]
    user, introducer = members.change_introducer(echo["_id"], str(sample_network["a"]["_id"]))

    assert introducer["name"] == "Alpha"
    stored = database[CHANNEL_PARTNERS].find_one({"_id": echo["_id"]})
    assert stored["introducer"] == sample_network["a"]["_id"]
    assert stored["introducer_name"] == "Alpha"
    assert stored["introducer_model"] == "ChannelPartner"


def test_change_introducer_rejects_own_downline(sample_network):
    with pytest.raises(members.MemberError):
        members.change_introducer(sample_network["a"]["_id"], sample_network["d"]["_id"])
    with pytest.raises(members.MemberError):
        members.change_introducer(sample_network["a"]["_id"], sample_network["a"]["_id"])


def test_remove_member_reparents_referrals(database, sample_network):
    member, reassigned = members.remove_member(sample_network["a"]["_id"])

    assert member["name"] == "Alpha"
    assert reassigned == 1
    assert members.find_member(sample_network["a"]["_id"]) is None
    for name in (CHANNEL_PARTNERS, CUSTOMERS):
        charlie = database[name].find_one({"_id": sample_network["c"]["_id"]})
        assert charlie["introducer"] == sample_network["root"]["_id"]


def test_remove_top_member_leaves_referrals(sample_network):
    _, reassigned = members.remove_member(sample_network["root"]["_id"])
    assert reassigned == 0


def test_search(sample_network):
    assert [m["name"] for m in members.search("alp")] == ["Alpha"]
    assert members.search(".*") == []
    assert len(members.search("90000000", limit=3)) == 3


def test_remove_member_covers_copies_merged_by_mobile(database, add_member):
    root = add_member("Root", "9000000001", "CP")
    alice = add_member("Alice", "9000000002", "CP", introducer=root)
    old_alice = add_member("Alice", "9000000002", "legacy")
    referred_to_copy = add_member("Bob", "9000000003", "Customer", introducer=old_alice)

    member, reassigned = members.remove_member(alice["_id"])

    assert member["name"] == "Alice"
    assert reassigned == 1
    assert database[LEGACY_USERS].find_one({"_id": old_alice["_id"]}) is None
    bob = database[CUSTOMERS].find_one({"_id": referred_to_copy["_id"]})
    assert bob["introducer"] == root["_id"]


def test_text_value():
    assert members.text_value({"mobile": 9000000001}, "mobile") == "9000000001"
    assert members.text_value({"name": "  Ann "}, "name") == "Ann"
    assert members.text_value({"password": " pw "}, "password", strip=False) == " pw "
    assert members.text_value({}, "name") == ""
