def _template(client, staff, **extra):
    payload = {
        "name": "Beauty launch",
        "industry": "beauty",
        "goals": ["awareness"],
        "platforms": ["instagram", "tiktok"],
        "min_followers": 5000,
        "budget_min": "500",
        "budget_max": "2500",
        "preparation_days": 7,
        "execution_days": 14,
        "deliverables": ["1 reel", "2 stories"],
    }
    payload.update(extra)
    r = client.post("/api/campaign-templates", json=payload, headers=staff)
    assert r.status_code == 201, r.json
    return r.json["template"]


def test_create_template_derives_total_days(client, staff):
    t = _template(client, staff)
    assert t["total_days"] == 21
    assert t["platforms"] == ["INSTAGRAM", "TIKTOK"]
    assert t["budget_max"] == "2500.00"
    assert t["is_active"] is True


def test_template_validation(client, staff):
    r = client.post(
        "/api/campaign-templates",
        json={"budget_min": "900", "budget_max": "100", "platforms": ["myspace"], "total_days": -1},
        headers=staff,
    )
    assert r.status_code == 400
    errors = r.json["errors"]
    assert "name is required." in errors
    assert "budget_max must be >= budget_min." in errors
    assert "Invalid platforms: myspace" in errors
    assert "total_days must be a whole number >= 0." in errors


def test_list_hides_inactive_unless_asked(client, staff, make_user, as_user):
    keep = _template(client, staff)
    retired = _template(client, staff, name="Old fashion brief", industry="fashion")
    r = client.patch(f"/api/campaign-templates/{retired['id']}", json={"is_active": False}, headers=staff)
    assert r.json["template"]["is_active"] is False
    assert r.json["template"]["name"] == "Old fashion brief"

    make_user("bea@example.com", "BRAND")
    brand = as_user("bea@example.com")
    ids = [t["id"] for t in client.get("/api/campaign-templates", headers=brand).json["data"]]
    assert ids == [keep["id"]]
    r = client.get("/api/campaign-templates?includeInactive=true&industry=fashion", headers=staff)
    assert [t["id"] for t in r.json["data"]] == [retired["id"]]

    assert client.post("/api/campaign-templates", json={"name": "x"}, headers=brand).status_code == 403
    assert client.get("/api/campaign-templates").status_code == 401


def test_put_replaces_and_delete(client, staff):
    t = _template(client, staff)
    r = client.put(f"/api/campaign-templates/{t['id']}", json={"name": "Minimal"}, headers=staff)
    assert r.status_code == 200
    assert r.json["template"]["platforms"] == []
    assert r.json["template"]["budget_max"] is None

    assert client.delete(f"/api/campaign-templates/{t['id']}", headers=staff).json == {"success": True}
    assert client.get(f"/api/campaign-templates/{t['id']}", headers=staff).status_code == 404


def test_create_campaign_from_template(client, staff):
    t = _template(client, staff)
    r = client.post(
        f"/api/campaign-templates/{t['id']}/create-campaign",
        json={"start_date": "2026-07-01", "brand_name": "Glow"},
        headers=staff,
    )
    assert r.status_code == 201, r.json
    c = r.json["campaign"]
    assert c["status"] == "DRAFT"
    assert c["name"] == "Beauty launch"
    assert c["brand_name"] == "Glow"
    assert c["start_date"].startswith("2026-07-01")
    assert c["end_date"].startswith("2026-07-22")
    assert c["total_budget"] == "2500.00"
    assert c["platforms"] == ["INSTAGRAM", "TIKTOK"]

    r = client.post(
        f"/api/campaign-templates/{t['id']}/create-campaign",
        json={"name": "Override", "start_date": "2026-07-01", "end_date": "2026-07-05", "total_budget": "100"},
        headers=staff,
    )
    c = r.json["campaign"]
    assert c["name"] == "Override"
    assert c["end_date"].startswith("2026-07-05")
    assert c["total_budget"] == "100.00"

    r = client.post(f"/api/campaign-templates/{t['id']}/create-campaign", json={"start_date": "soon"}, headers=staff)
    assert r.status_code == 400
