from db import CHANNEL_PARTNERS, CUSTOMERS


def test_all_users_lists_direct_referrals(client, sample_network, member_headers):
    res = client.get("/api/users/all-users", headers=member_headers(sample_network["root"]))

    assert res.status_code == 200
    users = res.get_json()["users"]
    assert [u["name"] for u in users] == ["Bravo", "Alpha"]
    assert users[0]["introducer_data"]["mobile"] == "9000000001"


def test_all_users_dedupes_both_members(client, sample_network, member_headers):
    res = client.get("/api/users/all-users", headers=member_headers(sample_network["a"]))
    users = res.get_json()["users"]
    assert len(users) == 1
    assert users[0]["user_type"] == "Both"


def test_search_introducers(client, sample_network, member_headers):
    headers = member_headers(sample_network["root"])

    assert client.get("/api/users/search-introducers?q=a", headers=headers).get_json()["users"] == []
    users = client.get("/api/users/search-introducers?q=char", headers=headers).get_json()["users"]
    assert [u["name"] for u in users] == ["Charlie"]


def test_public_search_by_mobile(client, sample_network):
    assert client.get("/api/users/search").status_code == 400

    res = client.get("/api/users/search?mobile=9000000004")
    assert res.status_code == 200
    assert [u["name"] for u in res.get_json()["users"]] == ["Charlie"]


def test_search_all_includes_legacy(client, add_member, member_headers):
    seed = add_member("System Admin", "9867477227", "legacy")
    me = add_member("Me", "9000000001", "CP", introducer=seed)
    headers = member_headers(me)

    assert client.get("/api/users/search-all?query=s", headers=headers).status_code == 400
    users = client.get("/api/users/search-all?query=system", headers=headers).get_json()["users"]
    assert [u["mobile"] for u in users] == ["9867477227"]


def test_get_profile(client, add_member, member_headers):
    me = add_member("Me", "9000000001", "Customer")
    res = client.get("/api/users/profile", headers=member_headers(me))
    assert res.get_json()["user"]["name"] == "Me"


def test_update_profile_fields(client, database, add_member, member_headers):
    me = add_member("Me", "9000000001", "Both")
    res = client.put("/api/users/profile", headers=member_headers(me),
                     json={"name": "Renamed", "display_name": "Rena"})

    assert res.status_code == 200
    assert res.get_json()["user"]["display_name"] == "Rena"
    for name in (CHANNEL_PARTNERS, CUSTOMERS):
        assert database[name].find_one({"_id": me["_id"]})["name"] == "Renamed"


def test_update_profile_rejects_taken_mobile(client, add_member, member_headers):
    me = add_member("Me", "9000000001", "CP")
    add_member("Other", "9000000002", "Customer")
    res = client.put("/api/users/profile", headers=member_headers(me), json={"mobile": "9000000002"})
    assert res.status_code == 400


def test_change_password(client, add_member, member_headers):
    me = add_member("Me", "9000000001", "CP", password="oldpass1")
    headers = member_headers(me)

    res = client.put("/api/users/profile", headers=headers,
                     json={"current_password": "wrong", "new_password": "newpass1", "confirm_password": "newpass1"})
    assert res.status_code == 400

    res = client.put("/api/users/profile", headers=headers,
                     json={"current_password": "oldpass1", "new_password": "newpass1", "confirm_password": "other"})
    assert res.status_code == 400

    res = client.put("/api/users/profile", headers=headers,
                     json={"current_password": "oldpass1", "new_password": "newpass1", "confirm_password": "newpass1"})
    assert res.status_code == 200

    login = client.post("/api/auth/login", json={"mobile": "9000000001", "password": "newpass1"})
    assert login.status_code == 200


def test_profile_user_type_change(client, database, add_member, member_headers):
    me = add_member("Me", "9000000001", "CP")
    res = client.put("/api/users/profile", headers=member_headers(me), json={"user_type": "customer"})

    assert res.status_code == 200
    assert res.get_json()["user"]["user_type"] == "Customer"
    assert database[CHANNEL_PARTNERS].find_one({"_id": me["_id"]}) is None


def test_update_introducer(client, sample_network, member_headers):
    headers = member_headers(sample_network["e"])
    echo_id = sample_network["e"]["_id"]

    res = client.put(f"/api/users/update-introducer/{echo_id}", headers=headers,
                     json={"introducer_id": str(sample_network["a"]["_id"])})
    assert res.status_code == 200
    assert res.get_json()["user"]["introducer_name"] == "Alpha"


def test_update_introducer_rejects_downline(client, sample_network, member_headers):
    headers = member_headers(sample_network["root"])
    res = client.put(f"/api/users/update-introducer/{sample_network['root']['_id']}", headers=headers,
                     json={"introducer_id": str(sample_network["d"]["_id"])})
    assert res.status_code == 400


def test_update_user_type(client, database, sample_network, member_headers):
    headers = member_headers(sample_network["b"])
    bravo_id = sample_network["b"]["_id"]

    assert client.put(f"/api/users/update-user-type/{bravo_id}", headers=headers,
                      json={"user_type": "wizard"}).status_code == 400

    res = client.put(f"/api/users/update-user-type/{bravo_id}", headers=headers, json={"user_type": "both"})
    assert res.status_code == 200
    assert res.get_json()["user_type"] == "Both"
    assert database[CHANNEL_PARTNERS].find_one({"_id": bravo_id})


def test_invalid_user_type_leaves_profile_untouched(client, database, add_member, member_headers):
    me = add_member("Me", "9000000001", "CP", password="oldpass1")

    res = client.put("/api/users/profile", headers=member_headers(me), json={
        "name": "Renamed",
        "current_password": "oldpass1",
        "new_password": "newpass1",
        "confirm_password": "newpass1",
        "user_type": "wizard",
    })

    assert res.status_code == 400
    assert res.get_json()["message"] == "Invalid user type"
    stored = database[CHANNEL_PARTNERS].find_one({"_id": me["_id"]})
    assert stored["name"] == "Me"
    assert client.post("/api/auth/login", json={"mobile": "9000000001", "password": "newpass1"}).status_code == 400
    assert client.post("/api/auth/login", json={"mobile": "9000000001", "password": "oldpass1"}).status_code == 200


def test_profile_numeric_fields_are_validated(client, add_member, member_headers):
    me = add_member("Me", "9000000001", "CP")
    headers = member_headers(me)

    res = client.put("/api/users/profile", headers=headers, json={"name": 7})
    assert res.status_code == 400
    assert "at least 2 characters" in res.get_json()["message"]

    res = client.put("/api/users/profile", headers=headers, json={"mobile": 9000000009})
    assert res.status_code == 200
    assert res.get_json()["user"]["mobile"] == "9000000009"


def test_members_cannot_edit_other_members(client, database, sample_network, member_headers):
    headers = member_headers(sample_network["root"])
    echo_id = sample_network["e"]["_id"]

    res = client.put(f"/api/users/update-introducer/{echo_id}", headers=headers,
                     json={"introducer_id": str(sample_network["a"]["_id"])})
    assert res.status_code == 403

    res = client.put(f"/api/users/update-user-type/{echo_id}", headers=headers, json={"user_type": "customer"})
    assert res.status_code == 403

    stored = database[CHANNEL_PARTNERS].find_one({"_id": echo_id})
    assert stored["introducer"] == sample_network["b"]["_id"]
    assert stored["user_type"] == "CP"
