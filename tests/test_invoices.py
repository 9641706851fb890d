from decimal import Decimal

import pytest

from app.stride.modules.invoices.service import compute_amounts


def test_compute_amounts():
    assert compute_amounts(Decimal("300"), True, Decimal("20")) == (Decimal("60.00"), Decimal("360.00"))
    assert compute_amounts(Decimal("99.99"), True, Decimal("17.5")) == (Decimal("17.50"), Decimal("117.49"))
    assert compute_amounts(Decimal("300"), False, Decimal("20")) == (Decimal("0.00"), Decimal("300.00"))


@pytest.fixture()
def setup(client, staff, as_user):
    """A campaign with ava@example.com invited; returns (influencer headers, campaign id, influencer id)."""
    c = client.post("/api/campaigns", json={"name": "Launch", "brand_name": "Acme"}, headers=staff).json["campaign"]
    inf = client.post(
        "/api/influencers",
        json={"display_name": "Ava", "email": "ava@example.com", "clerk_id": "clerk_ava"},
        headers=staff,
    ).json["influencer"]["id"]
    client.post(f"/api/campaigns/{c['id']}/influencers", json={"influencer_id": inf, "compensation_amount": "300"}, headers=staff)
    return as_user("ava@example.com"), c["id"], inf


def _payload(campaign_id, **extra):
    payload = {
        "campaign_id": campaign_id,
        "creator_name": "Ava Styles",
        "campaign_reference": "PO-77",
        "brand_name": "Acme",
        "content_description": "1 reel",
        "content_link": "https://insta.test/p/1",
        "agreed_price": "300",
        "vat_required": True,
        "invoice_date": "2026-03-05",
    }
    payload.update(extra)
    return payload


def test_create_invoice_numbers_and_vat(client, setup):
    me, campaign_id, _ = setup

    r = client.post("/api/influencer/invoices", json=_payload(campaign_id), headers=me)
    assert r.status_code == 201, r.json
    inv = r.json["invoice"]
    assert inv["invoice_number"] == "INV-2026-03-0001"
    assert inv["status"] == "SENT"
    assert inv["vat_rate"] == "20.00"
    assert inv["vat_amount"] == "60.00"
    assert inv["total_amount"] == "360.00"
    assert inv["total_display"] == "£360.00"
    assert inv["due_date"].startswith("2026-04-04")
    assert inv["currency"] == "GBP"
    assert inv["payment_terms"] == "Net 30"
    assert inv["creator_email"] == "ava@example.com"
    assert inv["campaign_name"] == "Launch"

    second = client.post("/api/influencer/invoices", json=_payload(campaign_id, vat_rate="0"), headers=me).json["invoice"]
    assert second["invoice_number"] == "INV-2026-03-0002"
    assert second["vat_rate"] == "0.00"
    assert second["total_amount"] == "300.00"

    april = client.post("/api/influencer/invoices", json=_payload(campaign_id, invoice_date="2026-04-01"), headers=me)
    assert april.json["invoice"]["invoice_number"] == "INV-2026-04-0001"

    r = client.get("/api/influencer/invoices", headers=me)
    assert r.json["total"] == 3
    assert r.json["stats"]["by_status"]["SENT"]["count"] == 3
    assert r.json["stats"]["outstanding_value"] == "1020.00"


def test_create_invoice_validation(client, setup):
    me, campaign_id, _ = setup
    r = client.post("/api/influencer/invoices", json={"agreed_price": "0", "vat_rate": "150", "currency": "POUND"}, headers=me)
    assert r.status_code == 400
    errors = r.json["errors"]
    assert "campaign_id is required." in errors
    assert "agreed_price must be greater than 0." in errors
    assert "vat_rate must be between 0 and 100." in errors
    assert "currency must be a 3-letter code." in errors

    r = client.post("/api/influencer/invoices", json=_payload(campaign_id, due_date="2026-03-01"), headers=me)
    assert r.status_code == 400
    r = client.post("/api/influencer/invoices", json=_payload(campaign_id, agreed_price="1e30"), headers=me)
    assert r.status_code == 400
    assert r.json["error"] == "agreed_price must be a number."
    r = client.post("/api/influencer/invoices", json=_payload("not-my-campaign"), headers=me)
    assert r.status_code == 400
    assert r.json["error"] == "You are not part of this campaign."


def test_influencer_without_profile_cannot_invoice(client, make_user, as_user):
    make_user("lonely@example.com", "INFLUENCER_PARTNERED")
    me = as_user("lonely@example.com")
    assert client.post("/api/influencer/invoices", json={}, headers=me).status_code == 403
    r = client.get("/api/influencer/invoices", headers=me)
    assert r.status_code == 200
    assert r.json["data"] == []


def test_staff_workflow_marks_participation_paid(client, staff, setup):
    me, campaign_id, inf = setup
    inv = client.post("/api/influencer/invoices", json=_payload(campaign_id), headers=me).json["invoice"]
    url = f"/api/staff/invoices/{inv['id']}"

    assert client.patch(url, json={}, headers=staff).status_code == 400
    assert client.patch(url, json={"action": "refund"}, headers=staff).status_code == 400
    r = client.patch(url, json={"action": "mark_paid"}, headers=staff)
    assert r.status_code == 400
    assert r.json["error"] == "Cannot mark paid an invoice that is SENT"

    r = client.patch(url, json={"action": "delay"}, headers=staff)
    assert r.json["error"] == "Notes are required to delay an invoice."
    r = client.patch(url, json={"action": "delay", "notes": "Awaiting PO"}, headers=staff)
    assert r.json["invoice"]["status"] == "DELAYED"
    assert r.json["invoice"]["staff_notes"] == "Awaiting PO"

    r = client.patch(url, json={"action": "approve"}, headers=staff)
    assert r.json["invoice"]["status"] == "VERIFIED"
    assert r.json["invoice"]["verified_at"] is not None

    r = client.patch(url, json={"action": "mark_paid"}, headers=staff)
    assert r.status_code == 200
    assert r.json["invoice"]["status"] == "PAID"
    assert r.json["invoice"]["paid_at"] is not None

    participants = client.get(f"/api/campaigns/{campaign_id}/influencers", headers=staff).json["data"]
    row = next(p for p in participants if p["influencer_id"] == inf)
    assert row["status"] == "PAID"
    assert row["payment_released"] is True

    stats = client.get("/api/staff/invoices", headers=staff).json["stats"]
    assert stats["paid_value"] == "360.00"
    assert stats["outstanding_value"] == "0.00"


def test_reject_requires_notes_and_is_final(client, staff, setup):
    me, campaign_id, _ = setup
    inv = client.post("/api/influencer/invoices", json=_payload(campaign_id), headers=me).json["invoice"]
    url = f"/api/staff/invoices/{inv['id']}"

    assert client.patch(url, json={"action": "reject"}, headers=staff).status_code == 400
    r = client.patch(url, json={"action": "reject", "staff_notes": "Wrong amount"}, headers=staff)
    assert r.json["invoice"]["status"] == "VOIDED"
    assert client.patch(url, json={"action": "approve"}, headers=staff).status_code == 400


def test_staff_filters_and_access(client, staff, setup):
    me, campaign_id, _ = setup
    client.post("/api/influencer/invoices", json=_payload(campaign_id), headers=me)
    client.post("/api/influencer/invoices", json=_payload(campaign_id, invoice_date="2026-05-10", brand_name="Other"), headers=me)

    r = client.get("/api/staff/invoices?status=sent", headers=staff)
    assert r.json["total"] == 2
    assert [i["invoice_number"] for i in r.json["data"]] == ["INV-2026-05-0001", "INV-2026-03-0001"]

    assert client.get("/api/staff/invoices?search=other", headers=staff).json["total"] == 1
    assert client.get("/api/staff/invoices?date_from=2026-04-01", headers=staff).json["total"] == 1
    assert client.get("/api/staff/invoices?status=bogus", headers=staff).status_code == 400
    assert client.get("/api/staff/invoices?date_to=nope", headers=staff).status_code == 400
    assert client.get("/api/staff/invoices/missing", headers=staff).status_code == 404

    assert client.get("/api/staff/invoices", headers=me).status_code == 403
