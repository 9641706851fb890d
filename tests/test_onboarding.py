from app.stride.constants import ONBOARDING_REQUIRED_STEPS
from app.stride.db import session_scope
from app.stride.models import User
from app.stride.modules.onboarding.models import TalentBrandCollaboration, TalentPaymentHistory


def _partnered(client, headers, **overrides):
    payload = {"first_name": "Pat", "last_name": "Ner", "display_name": "Pat Creates", "location": "UK", "website": "pat.example.com"}
    payload.update(overrides)
    return client.post("/api/influencer/onboarding", json=payload, headers=headers)


def test_partnered_onboarding_creates_then_updates_influencer(app, client, make_user, as_user):
    make_user("pat@example.com", "INFLUENCER_PARTNERED", onboarded=False)
    me = as_user("pat@example.com")

    r = _partnered(client, me, location="")
    assert r.status_code == 400
    assert r.json["error"] == "Missing required field: location"

    r = _partnered(client, me)
    assert r.status_code == 200, r.json
    inf = r.json["influencer"]
    assert inf["display_name"] == "Pat Creates"
    assert inf["influencer_type"] == "PARTNERED"

    again = _partnered(client, me, display_name="Pat Renamed")
    assert again.json["influencer"]["id"] == inf["id"]
    assert again.json["influencer"]["display_name"] == "Pat Renamed"

    with session_scope(app) as s:
        u = s.query(User).filter(User.email == "pat@example.com").one()
        assert u.profile.is_onboarded is True
        assert u.profile.website_url == "https://pat.example.com"
        assert u.profile.location_country == "UK"


def test_signed_steps_are_talent_only(client, make_user, as_user):
    make_user("pat@example.com", "INFLUENCER_PARTNERED")
    make_user("bea@example.com", "BRAND")
    for email in ("pat@example.com", "bea@example.com"):
        assert client.get("/api/influencer/onboarding/signed", headers=as_user(email)).status_code == 403
    assert client.get("/api/influencer/onboarding/signed").status_code == 401


def test_signed_step_progress(client, make_user, as_user):
    make_user("sia@example.com", "INFLUENCER_SIGNED", onboarded=False)
    me = as_user("sia@example.com")
    url = "/api/influencer/onboarding/signed"

    progress = client.get(url, headers=me).json
    assert progress["total_steps"] == 12
    assert progress["completed_steps"] == 0
    assert progress["is_complete"] is False

    assert client.post(url, json={}, headers=me).json["error"] == "Missing required field: step_key"
    assert client.post(url, json={"step_key": "dance_off"}, headers=me).status_code == 400

    # Draft data does not complete the step
    r = client.patch(url, json={"step_key": "personal_info", "data": {"city": "Leeds"}}, headers=me)
    assert r.json["step"]["completed"] is False
    r = client.post(url, json={"step_key": "personal_info", "data": {"city": "York"}}, headers=me)
    assert r.json["step"]["completed"] is True
    assert r.json["step"]["data"] == {"city": "York"}

    progress = client.get(url, headers=me).json
    assert progress["completed_steps"] == 1
    assert "personal_info" not in progress["missing_required"]

    r = client.post(f"{url}/complete", headers=me)
    assert r.status_code == 400
    assert r.json["error"] == "All onboarding steps must be completed first"
    assert "welcome_video" in r.json["missing_steps"]


def test_brand_preferences(client, staff, make_user, as_user):
    make_user("sia@example.com", "INFLUENCER_SIGNED")
    me = as_user("sia@example.com")
    zeta = client.post("/api/brands", json={"company_name": "Zeta"}, headers=staff).json["brand"]["id"]
    acme = client.post("/api/brands", json={"company_name": "Acme"}, headers=staff).json["brand"]["id"]

    brands = client.get("/api/influencer/onboarding/signed/brands", headers=me).json["brands"]
    assert [b["company_name"] for b in brands] == ["Acme", "Zeta"]

    url = "/api/influencer/onboarding/signed/brands"
    assert client.post(url, json={"brand_ids": acme}, headers=me).json["error"] == "brand_ids must be an array"
    assert client.post(url, json={"brand_ids": ["nope"]}, headers=me).status_code == 400

    r = client.post(url, json={"brand_ids": [acme, zeta, acme]}, headers=me)
    assert r.json["brand_ids"] == [acme, zeta]
    client.post(url, json={"brand_ids": [zeta]}, headers=me)
    prefs = client.get("/api/influencer/onboarding/signed", headers=me).json["brand_preferences"]
    assert prefs == [{"brand_id": zeta, "company_name": "Zeta"}]


def test_complete_signed_onboarding_copies_step_data(app, client, make_user, as_user):
    make_user("sia@example.com", "INFLUENCER_SIGNED", onboarded=False)
    me = as_user("sia@example.com")
    url = "/api/influencer/onboarding/signed"
    step_data = {
        "brand_inbound_setup": {"email_setup_type": "email_forwarding", "manager_email": "mgr@example.com"},
        "instagram_bio_setup": {"instagram_bio_setup": "done"},
        "uk_events_chat": {"uk_events_chat_joined": True},
    }
    for key in ONBOARDING_REQUIRED_STEPS:
        client.post(url, json={"step_key": key, "data": step_data.get(key, {})}, headers=me)
    client.post(
        url,
        json={"step_key": "payment_information", "data": {"previous_payment_amount": "750", "payment_method": "bank"}},
        headers=me,
    )
    client.post(
        url,
        json={
            "step_key": "previous_collaborations",
            "data": {"collaborations": [{"brand_name": "Glow", "collaboration_type": "reel"}, {"notes": "no brand"}]},
        },
        headers=me,
    )

    r = client.post(f"{url}/complete", headers=me)
    assert r.status_code == 200, r.json
    assert r.json["is_complete"] is True
    assert r.json["is_onboarded"] is True
    assert r.json["payment_history"][0]["previous_payment_amount"] == "750.00"
    assert r.json["payment_history"][0]["currency"] == "GBP"
    assert [c["brand_name"] for c in r.json["collaborations"]] == ["Glow"]

    with session_scope(app) as s:
        u = s.query(User).filter(User.email == "sia@example.com").one()
        assert u.profile.is_onboarded is True
        assert u.profile.email_forwarding_setup is True
        assert u.profile.manager_email == "mgr@example.com"
        assert u.profile.instagram_bio_setup is True
        assert u.profile.uk_events_chat_joined is True
        assert s.query(TalentPaymentHistory).count() == 1
        assert s.query(TalentBrandCollaboration).count() == 1
