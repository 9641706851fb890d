import pytest

from app.stride.modules.payments.crypto import PaymentCipher, cipher_from_config
from app.stride.modules.payments.service import mask_account, mask_email

PAYPAL = {"email": "ava.styles@example.com", "firstName": "Ava", "lastName": "Styles"}
BANK = {"accountHolderName": "Ava Styles", "accountNumber": "12345678", "routingNumber": "04-00-04", "iban": "GB00TEST"}


@pytest.fixture()
def setup(client, staff, as_user):
    """ava@example.com on a campaign; returns (influencer headers, campaign id, influencer id)."""
    c = client.post("/api/campaigns", json={"name": "Launch", "brand_name": "Acme"}, headers=staff).json["campaign"]
    inf = client.post(
        "/api/influencers",
        json={"display_name": "Ava", "email": "ava@example.com", "clerk_id": "clerk_ava"},
        headers=staff,
    ).json["influencer"]["id"]
    client.post(f"/api/campaigns/{c['id']}/influencers", json={"influencer_id": inf}, headers=staff)
    return as_user("ava@example.com"), c["id"], inf


def test_masking():
    assert mask_email("ava.styles@example.com") == "av***@example.com"
    assert mask_email("al@example.com") == "al@example.com"
    assert mask_email(None) == ""
    assert mask_account("12345678") == "****5678"
    assert mask_account("123") == "123"


def test_cipher_from_config():
    assert cipher_from_config({}) is None
    assert cipher_from_config({"PAYMENT_ENCRYPTION_KEY": "not-a-key"}) is None


def test_save_paypal_masks_and_encrypts(app, client, setup):
    me, _, inf = setup
    r = client.post("/api/influencer/payments", json={"payment_method": "paypal", "payment_details": PAYPAL}, headers=me)
    assert r.status_code == 200, r.json
    assert r.json["message"] == "Payment information saved successfully"

    info = client.get("/api/influencer/payments", headers=me).json["payment_info"]
    assert info["payment_method"] == "PAYPAL"
    assert info["is_verified"] is True
    assert info["masked_details"] == {"email": "av***@example.com"}

    from app.stride.db import session_scope
    from app.stride.modules.payments.models import InfluencerPayment

    with session_scope(app) as s:
        row = s.query(InfluencerPayment).filter(InfluencerPayment.influencer_id == inf).one()
        assert "ava.styles" not in row.encrypted_details
        assert isinstance(app.extensions["payment_cipher"], PaymentCipher)

    # Switching to bank details replaces the single row
    r = client.post("/api/influencer/payments", json={"payment_method": "BANK_TRANSFER", "payment_details": BANK}, headers=me)
    assert r.status_code == 200
    edit = client.get("/api/influencer/payments/edit", headers=me).json
    assert edit["payment_method"] == "BANK_TRANSFER"
    assert edit["payment_details"] == BANK
    info = client.get("/api/influencer/payments", headers=me).json["payment_info"]
    assert info["masked_details"] == {"accountNumber": "****5678", "accountHolderName": "Ava Styles"}


def test_payment_validation(client, setup):
    me, _, _ = setup
    url = "/api/influencer/payments"
    cases = [
        ({}, "Payment method and details are required"),
        ({"payment_method": "CHEQUE", "payment_details": PAYPAL}, "Invalid payment method"),
        ({"payment_method": "PAYPAL", "payment_details": {"email": "a@b.c"}}, "PayPal details incomplete"),
        ({"payment_method": "PAYPAL", "payment_details": {**PAYPAL, "email": "nope"}}, "Invalid PayPal email"),
        ({"payment_method": "BANK_TRANSFER", "payment_details": {"accountNumber": "1"}}, "Bank details incomplete"),
    ]
    for payload, message in cases:
        r = client.post(url, json=payload, headers=me)
        assert r.status_code == 400
        assert r.json["error"] == message

    r = client.get("/api/influencer/payments/edit", headers=me)
    assert r.status_code == 404
    assert r.json["error"] == "No payment information on file"


def test_summary_counts_paid_and_pending_invoices(client, staff, setup):
    me, campaign_id, _ = setup
    invoice = {
        "campaign_id": campaign_id,
        "creator_name": "Ava Styles",
        "campaign_reference": "PO-77",
        "brand_name": "Acme",
        "content_description": "1 reel",
        "content_link": "https://insta.test/p/1",
        "agreed_price": "300",
    }
    paid = client.post("/api/influencer/invoices", json=invoice, headers=me).json["invoice"]
    client.post("/api/influencer/invoices", json={**invoice, "agreed_price": "120"}, headers=me)
    url = f"/api/staff/invoices/{paid['id']}"
    client.patch(url, json={"action": "approve"}, headers=staff)
    client.patch(url, json={"action": "mark_paid"}, headers=staff)

    body = client.get("/api/influencer/payments", headers=me).json
    assert body["payment_info"] is None
    summary = body["payment_summary"]
    assert summary["total_earned"] == "300.00"
    assert summary["paid_out"] == "300.00"
    assert summary["this_month"] == "300.00"
    assert summary["pending_amount"] == "120.00"
    assert summary["total_earned_display"] == "£300.00"
    assert {h["status"] for h in body["payment_history"]} == {"PAID", "SENT"}


def test_staff_roster_view(client, staff, setup, make_user, as_user):
    me, _, inf = setup
    r = client.get(f"/api/roster/{inf}/payments", headers=staff)
    assert r.status_code == 200
    assert r.json["payment_info"] is None

    client.post("/api/influencer/payments", json={"payment_method": "PAYPAL", "payment_details": PAYPAL}, headers=me)
    r = client.get(f"/api/roster/{inf}/payments", headers=staff)
    assert r.json["payment_info"]["payment_details"]["email"] == PAYPAL["email"]

    assert client.get(f"/api/roster/{inf}/payments", headers=me).status_code == 403
    assert client.get("/api/roster/missing/payments", headers=staff).status_code == 404

    make_user("lonely@example.com", "INFLUENCER_PARTNERED")
    r = client.get("/api/influencer/payments", headers=as_user("lonely@example.com"))
    assert r.status_code == 404
    assert r.json["error"] == "Influencer not found"


def test_saving_without_key_is_unavailable(app, client, setup):
    me, _, _ = setup
    app.extensions["payment_cipher"] = None
    r = client.post("/api/influencer/payments", json={"payment_method": "PAYPAL", "payment_details": PAYPAL}, headers=me)
    assert r.status_code == 503
    assert r.json["error"] == "Payment details storage is not configured"
