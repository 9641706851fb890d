import pytest


@pytest.fixture()
def brand(client, make_user, as_user):
    make_user("bea@example.com", "BRAND")
    headers = as_user("bea@example.com")
    r = client.post("/api/brand/onboarding", json={"company_name": "Acme"}, headers=headers)
    return headers, r.json["brand"]["id"]


def _influencers(client, staff, *names):
    ids = []
    for name in names:
        r = client.post(
            "/api/influencers",
            json={"display_name": name, "platforms": [{"platform": "instagram", "username": name.lower(), "followers": 1000}]},
            headers=staff,
        )
        ids.append(r.json["influencer"]["id"])
    return ids


def test_brand_creates_and_manages_shortlist(client, staff, brand):
    headers, brand_id = brand
    ava, ben, cat = _influencers(client, staff, "Ava", "Ben", "Cat")

    r = client.post("/api/shortlists", json={"name": "Summer picks", "influencer_ids": [ava, ben]}, headers=headers)
    assert r.status_code == 201
    sl = r.json["shortlist"]
    assert sl["brand_id"] == brand_id
    assert sl["influencer_count"] == 2
    assert {m["display_name"] for m in sl["influencers"]} == {"Ava", "Ben"}

    r = client.post(f"/api/shortlists/{sl['id']}/influencers", json={"influencer_ids": [ben, cat], "notes": "maybe"}, headers=headers)
    assert r.status_code == 200
    assert r.json["added"] == 1
    assert r.json["shortlist"]["influencer_count"] == 3

    r = client.post(f"/api/shortlists/{sl['id']}/influencers", json={"influencer_ids": ["missing"]}, headers=headers)
    assert r.status_code == 404
    assert client.post(f"/api/shortlists/{sl['id']}/influencers", json={}, headers=headers).status_code == 400

    r = client.delete(f"/api/shortlists/{sl['id']}/influencers/{ava}", headers=headers)
    assert r.json["shortlist"]["influencer_count"] == 2
    assert client.delete(f"/api/shortlists/{sl['id']}/influencers/{ava}", headers=headers).status_code == 404

    r = client.patch(f"/api/shortlists/{sl['id']}", json={"name": "Renamed", "description": "Final"}, headers=headers)
    assert r.json["shortlist"]["name"] == "Renamed"
    assert client.patch(f"/api/shortlists/{sl['id']}", json={"name": " "}, headers=headers).status_code == 400

    r = client.get("/api/shortlists", headers=headers)
    assert [x["id"] for x in r.json["data"]] == [sl["id"]]
    assert r.json["stats"] == {"total_shortlists": 1, "total_influencers": 2, "unique_influencers": 2, "average_size": 2.0}

    r = client.get(f"/api/shortlists?influencer_id={cat}", headers=headers)
    assert [x["name"] for x in r.json["data"]] == ["Renamed"]
    assert "influencers" not in r.json["data"][0]


def test_duplicate_shortlist(client, staff, brand):
    headers, _ = brand
    (ava,) = _influencers(client, staff, "Ava")
    sl = client.post("/api/shortlists", json={"name": "Base", "influencer_ids": ava}, headers=headers).json["shortlist"]

    r = client.post(f"/api/shortlists/{sl['id']}/duplicate", json={}, headers=headers)
    assert r.status_code == 201
    copy = r.json["shortlist"]
    assert copy["name"] == "Base (Copy)"
    assert copy["id"] != sl["id"]
    assert [m["influencer_id"] for m in copy["influencers"]] == [ava]

    stats = client.get("/api/shortlists", headers=headers).json["stats"]
    assert stats["total_shortlists"] == 2
    assert stats["unique_influencers"] == 1


def test_shortlists_are_brand_scoped(client, staff, brand, make_user, as_user):
    headers, brand_id = brand
    sl = client.post("/api/shortlists", json={"name": "Private"}, headers=headers).json["shortlist"]

    make_user("rival@example.com", "BRAND")
    rival = as_user("rival@example.com")
    client.post("/api/brand/onboarding", json={"company_name": "Rival"}, headers=rival)
    assert client.get(f"/api/shortlists/{sl['id']}", headers=rival).status_code == 404
    assert client.delete(f"/api/shortlists/{sl['id']}", headers=rival).status_code == 404
    assert client.get("/api/shortlists", headers=rival).json["data"] == []

    # staff must name the brand when creating
    r = client.post("/api/shortlists", json={"name": "Staff list"}, headers=staff)
    assert r.status_code == 400
    assert r.json["error"] == "brand_id is required."
    r = client.post("/api/shortlists", json={"name": "Staff list", "brand_id": brand_id}, headers=staff)
    assert r.status_code == 201
    assert len(client.get("/api/shortlists", headers=staff).json["data"]) == 2
    assert len(client.get(f"/api/shortlists?brand_id={brand_id}", headers=staff).json["data"]) == 2

    assert client.delete(f"/api/shortlists/{sl['id']}", headers=headers).status_code == 200
    assert client.get(f"/api/shortlists/{sl['id']}", headers=staff).status_code == 404


def test_influencers_cannot_use_shortlists(client, make_user, as_user):
    make_user("ava@example.com", "INFLUENCER_SIGNED")
    assert client.get("/api/shortlists", headers=as_user("ava@example.com")).status_code == 403
