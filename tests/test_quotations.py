import pytest


@pytest.fixture()
def brand(client, make_user, as_user):
    make_user("bea@example.com", "BRAND")
    headers = as_user("bea@example.com")
    client.post("/api/brand/onboarding", json={"company_name": "Acme", "industry": "Food"}, headers=headers)
    return headers


def _quote(client, brand, **extra):
    payload = {
        "campaign_description": "Summer snack launch",
        "budget": "5000",
        "platforms": "instagram, tiktok",
        "deliverables": ["1 reel", "3 stories"],
    }
    payload.update(extra)
    r = client.post("/api/brand/quotations", json=payload, headers=brand)
    assert r.status_code == 201, r.json
    return r.json["quotation"]


def _influencer(client, staff, name):
    r = client.post("/api/influencers", json={"display_name": name}, headers=staff)
    return r.json["influencer"]["id"]


def test_brand_creates_quotation_with_brand_defaults(client, brand):
    q = _quote(client, brand)
    assert q["status"] == "pending"
    assert q["brand_name"] == "Acme"
    assert q["brand_email"] == "bea@example.com"
    assert q["industry"] == "Food"
    assert q["budget"] == "5000.00"
    assert q["platforms"] == ["INSTAGRAM", "TIKTOK"]
    assert q["submitted_at"] is not None

    r = client.get("/api/brand/quotations", headers=brand)
    assert r.json["total"] == 1


def test_quotation_validation(client, brand, staff):
    r = client.post("/api/brand/quotations", json={"budget": "-1"}, headers=brand)
    assert r.status_code == 400
    assert set(r.json["errors"]) == {"campaign_description is required.", "budget must be >= 0."}

    assert client.post("/api/brand/quotations", json={"campaign_description": "x"}, headers=staff).status_code == 403


def test_brand_without_onboarding_sees_empty_list(client, make_user, as_user):
    make_user("new@example.com", "BRAND")
    r = client.get("/api/brand/quotations", headers=as_user("new@example.com"))
    assert r.status_code == 200
    assert r.json["data"] == []


def test_review_flow(client, brand, staff):
    q = _quote(client, brand)
    url = f"/api/staff/quotations/{q['id']}"

    r = client.patch(url, json={"status": "in_review", "timeline": "Q3"}, headers=staff)
    assert r.status_code == 200
    assert r.json["quotation"]["status"] == "in_review"
    assert r.json["quotation"]["timeline"] == "Q3"

    assert client.patch(url, json={"status": "approved"}, headers=staff).status_code == 400

    r = client.post(f"{url}/reject", json={}, headers=staff)
    assert r.status_code == 400
    assert r.json["error"] == "Notes are required when rejecting a quotation."

    r = client.post(f"{url}/approve", json={"notes": "Looks good"}, headers=staff)
    assert r.status_code == 200
    body = r.json["quotation"]
    assert body["status"] == "approved"
    assert body["notes"] == "Looks good"
    assert body["reviewed_at"] is not None
    assert body["reviewed_by"] is not None

    assert client.post(f"{url}/reject", json={"notes": "Too late"}, headers=staff).status_code == 400


def test_reject_with_notes(client, brand, staff):
    q = _quote(client, brand)
    r = client.post(f"/api/staff/quotations/{q['id']}/reject", json={"notes": "Budget too low"}, headers=staff)
    assert r.status_code == 200
    assert r.json["quotation"]["status"] == "rejected"

    r = client.get("/api/staff/quotations?status=REJECTED", headers=staff)
    assert [x["id"] for x in r.json["data"]] == [q["id"]]


def test_proposed_influencers_and_convert(client, brand, staff):
    q = _quote(client, brand)
    url = f"/api/staff/quotations/{q['id']}"
    ava = _influencer(client, staff, "Ava")
    ben = _influencer(client, staff, "Ben")

    assert client.post(f"{url}/influencers", json={"influencer_id": "missing"}, headers=staff).status_code == 404
    assert client.post(f"{url}/influencers", json={"influencer_id": ava, "proposed_rate": "-3"}, headers=staff).status_code == 400

    client.post(f"{url}/influencers", json={"influencer_id": ava, "proposed_rate": "400"}, headers=staff)
    r = client.post(f"{url}/influencers", json={"influencer_id": ben, "proposed_rate": "300"}, headers=staff)
    assert r.status_code == 201
    assert r.json["quotation"]["influencer_count"] == 2

    r = client.patch(f"{url}/influencers/{ava}", json={"proposed_rate": "450", "notes": "Top pick"}, headers=staff)
    rates = {i["influencer_id"]: i["proposed_rate"] for i in r.json["quotation"]["influencers"]}
    assert rates == {ava: "450.00", ben: "300.00"}

    r = client.delete(f"{url}/influencers/{ben}", headers=staff)
    assert r.json["quotation"]["influencer_count"] == 1
    assert client.delete(f"{url}/influencers/{ben}", headers=staff).status_code == 404

    r = client.post(f"{url}/convert", headers=staff)
    assert r.status_code == 400

    client.post(f"{url}/approve", json={}, headers=staff)
    r = client.post(f"{url}/convert", headers=staff)
    assert r.status_code == 201
    campaign = r.json["campaign"]
    assert campaign["name"] == "Acme Campaign"
    assert campaign["status"] == "DRAFT"
    assert campaign["quotation_id"] == q["id"]
    assert campaign["total_budget"] == "5000.00"
    assert campaign["counts"] == {"total": 1, "accepted": 0, "invited": 1}
    assert r.json["quotation"]["status"] == "completed"
    assert r.json["quotation"]["campaign_id"] == campaign["id"]

    participants = client.get(f"/api/campaigns/{campaign['id']}/influencers", headers=staff).json["data"]
    assert [(p["influencer_id"], p["compensation_amount"]) for p in participants] == [(ava, "450.00")]

    assert client.post(f"{url}/convert", headers=staff).status_code == 400
    assert client.patch(url, json={"timeline": "Q4"}, headers=staff).status_code == 400

    # the brand sees its converted campaign
    r = client.get("/api/campaigns", headers=brand)
    assert [c["id"] for c in r.json["data"]] == [campaign["id"]]


def test_staff_search_and_delete(client, brand, staff):
    q = _quote(client, brand, campaign_description="Winter coats")
    _quote(client, brand, campaign_description="Spring shoes")

    r = client.get("/api/staff/quotations?search=winter", headers=staff)
    assert [x["id"] for x in r.json["data"]] == [q["id"]]

    assert client.get(f"/api/staff/quotations/{q['id']}", headers=brand).status_code == 403
    assert client.delete(f"/api/staff/quotations/{q['id']}", headers=staff).status_code == 200
    assert client.get(f"/api/staff/quotations/{q['id']}", headers=staff).status_code == 404
