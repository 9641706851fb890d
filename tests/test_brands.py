def _onboard(client, headers, **overrides):
    payload = {"company_name": "Acme Foods", "industry": "Food", "first_name": "Bea", "last_name": "Brand", "job_title": "CMO"}
    payload.update(overrides)
    return client.post("/api/brand/onboarding", json=payload, headers=headers)


def test_brand_onboarding_is_idempotent(client, make_user, as_user):
    make_user("bea@example.com", "BRAND", onboarded=False)
    me = as_user("bea@example.com")

    r = client.get("/api/brand/profile", headers=me)
    assert r.status_code == 200
    assert r.json == {"brand": None, "onboarded": False}

    r = _onboard(client, me)
    assert r.status_code == 200
    brand = r.json["brand"]
    assert brand["company_name"] == "Acme Foods"
    assert brand["contacts"] == [
        {"id": brand["contacts"][0]["id"], "name": "Bea Brand", "email": "bea@example.com", "role": "CMO", "phone": None, "is_primary": True}
    ]

    again = _onboard(client, me, company_name="Other Name")
    assert again.status_code == 200
    assert again.json["brand"]["id"] == brand["id"]
    assert again.json["brand"]["company_name"] == "Acme Foods"

    profile = client.get("/api/me", headers=me).json
    assert profile["user"]["profile"]["is_onboarded"] is True


def test_onboarding_requires_body_and_brand_role(client, make_user, as_user, staff):
    make_user("bea@example.com", "BRAND")
    assert client.post("/api/brand/onboarding", json={}, headers=as_user("bea@example.com")).status_code == 400
    assert _onboard(client, as_user("bea@example.com"), company_name="  ").status_code == 400
    assert _onboard(client, staff).status_code == 403


def test_staff_brand_crud_and_stats(client, staff):
    r = client.post(
        "/api/brands",
        json={
            "company_name": "Zeta Drinks",
            "industry": "Beverage",
            "contacts": [{"name": "Zed", "email": "ZED@zeta.test"}],
        },
        headers=staff,
    )
    assert r.status_code == 201
    brand = r.json["brand"]
    assert brand["contacts"][0]["email"] == "zed@zeta.test"
    assert brand["contacts"][0]["is_primary"] is True

    client.post("/api/brands", json={"company_name": "Alpha Apparel", "industry": "Fashion"}, headers=staff)

    r = client.get("/api/brands?stats=1", headers=staff)
    assert [b["company_name"] for b in r.json["data"]] == ["Alpha Apparel", "Zeta Drinks"]
    assert r.json["stats"]["total"] == 2
    assert r.json["stats"]["by_industry"] == {"Beverage": 1, "Fashion": 1}

    r = client.get("/api/brands?search=zeta", headers=staff)
    assert r.json["total"] == 1

    r = client.patch(f"/api/brands/{brand['id']}", json={"description": "Fizzy"}, headers=staff)
    assert r.json["brand"]["description"] == "Fizzy"

    assert client.post("/api/brands", json={"contacts": [{"name": "", "email": "nope"}]}, headers=staff).status_code == 400

    assert client.delete(f"/api/brands/{brand['id']}", headers=staff).status_code == 200
    assert client.get(f"/api/brands/{brand['id']}", headers=staff).status_code == 404


def test_contacts_primary_handling(client, make_user, as_user):
    make_user("bea@example.com", "BRAND")
    me = as_user("bea@example.com")
    brand_id = _onboard(client, me).json["brand"]["id"]
    first = client.get(f"/api/brands/{brand_id}", headers=me).json["brand"]["contacts"][0]["id"]

    r = client.post(
        f"/api/brands/{brand_id}/contacts", json={"name": "Finance", "email": "ap@acme.test", "is_primary": True}, headers=me
    )
    assert r.status_code == 201
    second = r.json["contact"]["id"]
    contacts = {c["id"]: c["is_primary"] for c in client.get(f"/api/brands/{brand_id}", headers=me).json["brand"]["contacts"]}
    assert contacts == {first: False, second: True}

    assert client.delete(f"/api/brands/{brand_id}/contacts/{second}", headers=me).status_code == 200
    contacts = client.get(f"/api/brands/{brand_id}", headers=me).json["brand"]["contacts"]
    assert [(c["id"], c["is_primary"]) for c in contacts] == [(first, True)]

    assert client.delete(f"/api/brands/{brand_id}/contacts/missing", headers=me).status_code == 404


def test_brand_owner_access_only(client, make_user, as_user):
    make_user("bea@example.com", "BRAND")
    make_user("rival@example.com", "BRAND")
    brand_id = _onboard(client, as_user("bea@example.com")).json["brand"]["id"]

    rival = as_user("rival@example.com")
    assert client.get(f"/api/brands/{brand_id}", headers=rival).status_code == 403
    assert client.patch(f"/api/brands/{brand_id}", json={"industry": "x"}, headers=rival).status_code == 403
    assert client.get("/api/brands", headers=rival).status_code == 403
