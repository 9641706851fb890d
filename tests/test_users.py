def test_staff_user_list_includes_stats(client, staff, make_user):
    make_user("b1@example.com", "BRAND")
    make_user("b2@example.com", "BRAND", onboarded=False)
    r = client.get("/api/staff/users?roles=BRAND", headers=staff)
    assert r.status_code == 200
    assert r.json["total"] == 2
    assert r.json["stats"]["by_role"]["BRAND"] == 2
    assert r.json["stats"]["by_role"]["STAFF"] == 1

    r = client.get("/api/staff/users?roles=BRAND&is_onboarded=false", headers=staff)
    assert [u["email"] for u in r.json["data"]] == ["b2@example.com"]


def test_create_user_validates_and_rejects_duplicates(client, staff):
    r = client.post("/api/staff/users", json={"email": "nope", "role": "WIZARD"}, headers=staff)
    assert r.status_code == 400
    assert len(r.json["errors"]) == 2

    payload = {"email": "Brand@Example.com", "role": "brand", "profile": {"first_name": "Bea"}}
    r = client.post("/api/staff/users", json=payload, headers=staff)
    assert r.status_code == 201
    assert r.json["user"]["email"] == "brand@example.com"
    assert r.json["user"]["role"] == "BRAND"
    assert r.json["user"]["profile"]["first_name"] == "Bea"

    r = client.post("/api/staff/users", json=payload, headers=staff)
    assert r.status_code == 409


def test_role_change_is_admin_only_and_audited(client, staff, admin, make_user):
    uid = make_user("b@example.com", "BRAND")
    r = client.patch(f"/api/users/{uid}/update-role", json={"role": "STAFF"}, headers=staff)
    assert r.status_code == 403

    r = client.patch(f"/api/users/{uid}/update-role", json={"role": "staff", "reason": "hired"}, headers=admin)
    assert r.status_code == 200
    assert r.json["user"]["role"] == "STAFF"

    r = client.get("/api/audit?action=user.role_change", headers=admin)
    assert r.status_code == 200
    ev = r.json["data"][0]
    assert ev["entity_id"] == uid
    assert ev["reason"] == "hired"
    assert ev["metadata"] == {"old": "BRAND", "new": "STAFF"}
    assert ev["actor_email"] == "admin@example.com"


def test_invalid_role_rejected(client, admin, make_user):
    uid = make_user("b@example.com", "BRAND")
    r = client.patch(f"/api/users/{uid}/update-role", json={"role": "OWNER"}, headers=admin)
    assert r.status_code == 400


def test_delete_user(client, admin, make_user):
    uid = make_user("b@example.com", "BRAND")
    assert client.delete(f"/api/users/{uid}", headers=admin).status_code == 200
    assert client.delete(f"/api/users/{uid}", headers=admin).status_code == 404


def test_cannot_delete_self(client, admin):
    me = client.get("/api/me", headers=admin).json["user"]["id"]
    r = client.delete(f"/api/users/{me}", headers=admin)
    assert r.status_code == 400


def test_own_profile_update(client, make_user, as_user):
    make_user("b@example.com", "BRAND")
    h = as_user("b@example.com")
    r = client.patch("/api/me/profile", json={"bio": "  Hello  ", "role": "ADMIN"}, headers=h)
    assert r.status_code == 200
    assert r.json["user"]["profile"]["bio"] == "Hello"
    assert r.json["user"]["role"] == "BRAND"

    r = client.patch("/api/me/profile", json={"role": "ADMIN"}, headers=h)
    assert r.status_code == 400
