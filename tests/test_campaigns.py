def _influencer(client, staff, name="Ava", **extra):
    payload = {"display_name": name, "platforms": [{"platform": "instagram", "username": name.lower(), "followers": 10000}]}
    payload.update(extra)
    r = client.post("/api/influencers", json=payload, headers=staff)
    assert r.status_code == 201
    return r.json["influencer"]["id"]


def _campaign(client, staff, **extra):
    payload = {
        "name": "Summer Launch",
        "brand_name": "Acme",
        "total_budget": "1000",
        "per_influencer_budget": "250",
        "platforms": ["instagram"],
        "start_date": "2026-06-01",
        "end_date": "2026-06-30",
    }
    payload.update(extra)
    r = client.post("/api/campaigns", json=payload, headers=staff)
    assert r.status_code == 201, r.json
    return r.json["campaign"]


def test_create_campaign_defaults_to_draft(client, staff):
    c = _campaign(client, staff)
    assert c["status"] == "DRAFT"
    assert c["total_budget"] == "1000.00"
    assert c["start_date"].startswith("2026-06-01")
    assert c["counts"] == {"total": 0, "accepted": 0, "invited": 0}


def test_create_campaign_validation(client, staff):
    r = client.post(
        "/api/campaigns",
        json={"start_date": "2026-06-30", "end_date": "2026-06-01", "total_budget": "-5", "platforms": ["myspace"]},
        headers=staff,
    )
    assert r.status_code == 400
    errors = r.json["errors"]
    assert "name is required." in errors
    assert "end_date must be on or after start_date." in errors
    assert "total_budget must be >= 0." in errors
    assert "Invalid platforms: myspace" in errors


def test_status_transitions(client, staff):
    c = _campaign(client, staff)
    url = f"/api/campaigns/{c['id']}/status"

    assert client.post(url, json={}, headers=staff).status_code == 400
    r = client.post(url, json={"status": "completed"}, headers=staff)
    assert r.status_code == 400
    assert r.json["error"] == "Cannot change campaign status from DRAFT to COMPLETED"

    for status in ("ACTIVE", "PAUSED", "ACTIVE", "COMPLETED"):
        r = client.post(url, json={"status": status}, headers=staff)
        assert r.status_code == 200
        assert r.json["campaign"]["status"] == status

    assert client.post(url, json={"status": "ACTIVE"}, headers=staff).status_code == 400
    r = client.patch(f"/api/campaigns/{c['id']}", json={"name": "Renamed"}, headers=staff)
    assert r.status_code == 400


def test_update_rejects_status_field(client, staff):
    c = _campaign(client, staff)
    r = client.patch(f"/api/campaigns/{c['id']}", json={"status": "ACTIVE"}, headers=staff)
    assert r.status_code == 400

    r = client.patch(f"/api/campaigns/{c['id']}", json={"description": "Brief"}, headers=staff)
    assert r.status_code == 200
    assert r.json["campaign"]["description"] == "Brief"
    assert r.json["campaign"]["name"] == "Summer Launch"


def test_duplicate_copies_brief_not_participants(client, staff):
    c = _campaign(client, staff)
    inf = _influencer(client, staff)
    client.post(f"/api/campaigns/{c['id']}/influencers", json={"influencer_id": inf}, headers=staff)
    client.post(f"/api/campaigns/{c['id']}/status", json={"status": "ACTIVE"}, headers=staff)

    r = client.post(f"/api/campaigns/{c['id']}/duplicate", json={}, headers=staff)
    assert r.status_code == 201
    copy = r.json["campaign"]
    assert copy["name"] == "Summer Launch (Copy)"
    assert copy["status"] == "DRAFT"
    assert copy["total_budget"] == "1000.00"
    assert copy["counts"]["total"] == 0

    named = client.post(f"/api/campaigns/{c['id']}/duplicate", json={"name": "Autumn"}, headers=staff).json["campaign"]
    assert named["name"] == "Autumn"


def test_assign_update_and_remove(client, staff):
    c = _campaign(client, staff)
    inf = _influencer(client, staff)
    base = f"/api/campaigns/{c['id']}/influencers"

    assert client.post(base, json={}, headers=staff).status_code == 400
    assert client.post(base, json={"influencer_id": "missing"}, headers=staff).status_code == 404

    r = client.post(base, json={"influencer_id": inf}, headers=staff)
    assert r.status_code == 201
    row = r.json["participation"]
    assert row["status"] == "INVITED"
    assert row["compensation_amount"] == "250.00"

    r = client.patch(f"{base}/{inf}", json={"status": "PAID"}, headers=staff)
    assert r.status_code == 400
    assert client.patch(f"{base}/{inf}", json={}, headers=staff).status_code == 400

    r = client.patch(
        f"{base}/{inf}",
        json={"status": "ACCEPTED", "product_shipped": True, "tracking_number": "TRK1", "compensation_amount": "300"},
        headers=staff,
    )
    assert r.status_code == 200
    row = r.json["participation"]
    assert row["status"] == "ACCEPTED"
    assert row["accepted_at"] is not None
    assert row["product_shipped"] is True
    assert "Tracking: TRK1" in row["notes"]
    assert row["compensation_amount"] == "300.00"

    listed = client.get(f"{base}?status=accepted", headers=staff).json["data"]
    assert [p["influencer_id"] for p in listed] == [inf]

    assert client.delete(f"{base}/{inf}", headers=staff).status_code == 200
    assert client.delete(f"{base}/{inf}", headers=staff).status_code == 404


def test_influencer_portal_respond_and_submit(client, staff, as_user):
    c = _campaign(client, staff)
    inf = _influencer(client, staff, email="ava@example.com", clerk_id="clerk_ava")
    client.post(f"/api/campaigns/{c['id']}/influencers", json={"influencer_id": inf}, headers=staff)
    me = as_user("ava@example.com")

    r = client.get("/api/influencer/campaigns", headers=me)
    assert r.status_code == 200
    assert r.json["data"][0]["campaign"]["name"] == "Summer Launch"

    url = f"/api/influencer/campaigns/{c['id']}"
    r = client.post(f"{url}/submit-content", json={"links": ["https://insta.test/p/1"]}, headers=me)
    assert r.status_code == 400

    assert client.post(f"{url}/respond", json={"response": "maybe"}, headers=me).status_code == 400
    r = client.post(f"{url}/respond", json={"response": "accept", "message": "Excited!"}, headers=me)
    assert r.status_code == 200
    assert r.json["participation"]["status"] == "ACCEPTED"
    assert "Influencer: Excited!" in r.json["participation"]["notes"]
    assert client.post(f"{url}/respond", json={"response": "decline"}, headers=me).status_code == 400

    r = client.post(f"{url}/submit-content", json={"links": ["ftp://bad"]}, headers=me)
    assert r.status_code == 400
    r = client.post(f"{url}/submit-content", json={"links": ["https://insta.test/p/1"]}, headers=me)
    assert r.status_code == 200
    assert r.json["participation"]["status"] == "CONTENT_SUBMITTED"
    assert r.json["participation"]["content_posted"] is True

    r = client.post(f"{url}/submit-content", json={"links": "https://insta.test/p/1,https://insta.test/p/2"}, headers=me)
    assert r.json["participation"]["content_links"] == ["https://insta.test/p/1", "https://insta.test/p/2"]

    other = _campaign(client, staff, name="Other")
    assert client.post(f"/api/influencer/campaigns/{other['id']}/respond", json={"response": "accept"}, headers=me).status_code == 404
    assert client.get("/api/campaigns", headers=me).status_code == 403


def test_statistics_and_timeline(client, staff):
    c = _campaign(client, staff)
    a = _influencer(client, staff, "Ava")
    b = _influencer(client, staff, "Ben")
    base = f"/api/campaigns/{c['id']}/influencers"
    client.post(base, json={"influencer_id": a}, headers=staff)
    client.post(base, json={"influencer_id": b, "compensation_amount": "100"}, headers=staff)
    client.patch(f"{base}/{b}", json={"status": "DECLINED"}, headers=staff)

    stats = client.get(f"/api/campaigns/{c['id']}/statistics", headers=staff).json["statistics"]
    assert stats["total_participants"] == 2
    assert stats["by_status"]["INVITED"] == 1
    assert stats["by_status"]["DECLINED"] == 1
    assert stats["total_reach"] == 10000
    assert stats["budget"] == {
        "total": "1000.00",
        "committed": "250.00",
        "paid": "0.00",
        "remaining": "750.00",
        "committed_display": stats["budget"]["committed_display"],
    }

    events = client.get(f"/api/campaigns/{c['id']}/timeline", headers=staff).json["events"]
    kinds = [e["type"] for e in events]
    assert "created" in kinds
    assert "start_date" in kinds and "end_date" in kinds
    assert kinds.count("invited") == 2
    assert "declined" in kinds


def test_brand_sees_only_own_campaigns(client, staff, make_user, as_user):
    make_user("bea@example.com", "BRAND")
    make_user("rival@example.com", "BRAND")
    bea = as_user("bea@example.com")
    rival = as_user("rival@example.com")

    assert client.get("/api/campaigns", headers=bea).status_code == 400

    brand_id = client.post("/api/brand/onboarding", json={"company_name": "Acme"}, headers=bea).json["brand"]["id"]
    client.post("/api/brand/onboarding", json={"company_name": "Rival"}, headers=rival)

    mine = _campaign(client, staff, brand_id=brand_id, brand_name=None)
    assert mine["brand_name"] == "Acme"
    _campaign(client, staff, name="Unrelated")

    r = client.get("/api/campaigns", headers=bea)
    assert [c["id"] for c in r.json["data"]] == [mine["id"]]
    assert client.get(f"/api/campaigns/{mine['id']}", headers=bea).status_code == 200
    assert client.get(f"/api/campaigns/{mine['id']}", headers=rival).status_code == 404
    assert client.post("/api/campaigns", json={"name": "x"}, headers=bea).status_code == 403

    r = client.get("/api/campaigns?search=unrel", headers=staff)
    assert [c["name"] for c in r.json["data"]] == ["Unrelated"]


def test_delete_campaign(client, staff):
    c = _campaign(client, staff)
    assert client.delete(f"/api/campaigns/{c['id']}", headers=staff).status_code == 200
    assert client.get(f"/api/campaigns/{c['id']}", headers=staff).status_code == 404
