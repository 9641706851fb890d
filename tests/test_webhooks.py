import json
from datetime import datetime, timezone

from svix.webhooks import Webhook

from app.stride.db import session_scope
from app.stride.models import AuditEvent, User


def _signed(secret: str, event: dict, msg_id: str = "msg_1"):
    body = json.dumps(event)
    now = datetime.now(timezone.utc)
    sig = Webhook(secret).sign(msg_id, now, body)
    headers = {
        "svix-id": msg_id,
        "svix-timestamp": str(int(now.timestamp())),
        "svix-signature": sig,
        "Content-Type": "application/json",
    }
    return body, headers


def _clerk_user(clerk_id="user_abc", email="new@example.com", role=None, **extra):
    data = {
        "id": clerk_id,
        "primary_email_address_id": "em_1",
        "email_addresses": [{"id": "em_0", "email_address": "old@example.com"}, {"id": "em_1", "email_address": email}],
        "first_name": "New",
        "last_name": "Person",
        **extra,
    }
    if role:
        data["public_metadata"] = {"role": role}
    return data


def test_user_created_provisions_user(app, client, webhook_secret):
    body, headers = _signed(webhook_secret, {"type": "user.created", "data": _clerk_user(role="influencer_signed")})
    r = client.post("/api/webhooks/clerk", data=body, headers=headers)
    assert r.status_code == 200
    assert r.json["received"] is True

    with session_scope(app) as s:
        u = s.query(User).filter(User.clerk_id == "user_abc").one()
        assert u.email == "new@example.com"
        assert u.role == "INFLUENCER_SIGNED"
        assert u.profile.first_name == "New"
        assert u.profile.is_onboarded is False
        assert s.query(AuditEvent).filter(AuditEvent.action == "user.clerk_created").count() == 1


def test_user_created_defaults_to_brand(app, client, webhook_secret):
    body, headers = _signed(webhook_secret, {"type": "user.created", "data": _clerk_user()})
    assert client.post("/api/webhooks/clerk", data=body, headers=headers).status_code == 200
    with session_scope(app) as s:
        assert s.query(User).filter(User.clerk_id == "user_abc").one().role == "BRAND"


def test_user_created_links_precreated_email(app, client, make_user, webhook_secret):
    make_user("new@example.com", "STAFF")
    with session_scope(app) as s:
        s.query(User).filter(User.email == "new@example.com").one().clerk_id = None

    body, headers = _signed(webhook_secret, {"type": "user.created", "data": _clerk_user()})
    assert client.post("/api/webhooks/clerk", data=body, headers=headers).status_code == 200
    with session_scope(app) as s:
        users = s.query(User).filter(User.email == "new@example.com").all()
        assert len(users) == 1
        assert users[0].clerk_id == "user_abc"
        assert users[0].role == "STAFF"


def test_user_deleted_deactivates(app, client, webhook_secret):
    body, headers = _signed(webhook_secret, {"type": "user.created", "data": _clerk_user()})
    client.post("/api/webhooks/clerk", data=body, headers=headers)
    body, headers = _signed(webhook_secret, {"type": "user.deleted", "data": {"id": "user_abc", "deleted": True}}, "msg_2")
    assert client.post("/api/webhooks/clerk", data=body, headers=headers).status_code == 200
    with session_scope(app) as s:
        assert s.query(User).filter(User.clerk_id == "user_abc").one().is_active is False


def test_unknown_event_is_acknowledged(client, webhook_secret):
    body, headers = _signed(webhook_secret, {"type": "session.created", "data": {"id": "sess_1"}})
    r = client.post("/api/webhooks/clerk", data=body, headers=headers)
    assert r.status_code == 200
    assert r.json["user_id"] is None


def test_bad_signature_rejected(client, webhook_secret):
    body, headers = _signed(webhook_secret, {"type": "user.created", "data": _clerk_user()})
    tampered = body.replace("new@example.com", "evil@example.com")
    r = client.post("/api/webhooks/clerk", data=tampered, headers=headers)
    assert r.status_code == 400
    assert r.json["error"] == "Invalid signature"


def test_missing_svix_headers_rejected(client):
    r = client.post("/api/webhooks/clerk", json={"type": "user.created", "data": {}})
    assert r.status_code == 400


def test_missing_secret_is_server_error(app, client, webhook_secret):
    app.config["CLERK_WEBHOOK_SECRET"] = ""
    body, headers = _signed(webhook_secret, {"type": "user.created", "data": _clerk_user()})
    r = client.post("/api/webhooks/clerk", data=body, headers=headers)
    assert r.status_code == 500


def test_signed_event_body_is_parsed(app, client, webhook_secret):
    event = {"type": "user.created", "data": _clerk_user(clerk_id="user_sig", email="sig@example.com")}
    body, headers = _signed(webhook_secret, event, "msg_sig")
    r = client.post("/api/webhooks/clerk", data=body, headers=headers)
    assert r.status_code == 200
    assert r.json["type"] == "user.created"
    assert r.json["user_id"] is not None


def test_user_created_with_linked_email_is_acknowledged(app, client, make_user, webhook_secret):
    make_user("taken@example.com", "BRAND")
    event = {"type": "user.created", "data": _clerk_user(clerk_id="user_dup", email="taken@example.com")}
    body, headers = _signed(webhook_secret, event)
    r = client.post("/api/webhooks/clerk", data=body, headers=headers)
    assert r.status_code == 200
    assert r.json["user_id"] is None

    with session_scope(app) as s:
        users = s.query(User).filter(User.email == "taken@example.com").all()
        assert len(users) == 1
        assert users[0].clerk_id == "clerk_taken"
        assert s.query(User).filter(User.clerk_id == "user_dup").count() == 0


def test_user_updated_syncs_role_from_public_metadata(app, client, webhook_secret):
    body, headers = _signed(webhook_secret, {"type": "user.created", "data": _clerk_user()})
    client.post("/api/webhooks/clerk", data=body, headers=headers)

    updated = _clerk_user(role="staff", first_name="Renamed")
    body, headers = _signed(webhook_secret, {"type": "user.updated", "data": updated}, "msg_2")
    r = client.post("/api/webhooks/clerk", data=body, headers=headers)
    assert r.status_code == 200

    with session_scope(app) as s:
        u = s.query(User).filter(User.clerk_id == "user_abc").one()
        assert u.role == "STAFF"
        assert u.profile.first_name == "Renamed"
        assert s.query(AuditEvent).filter(AuditEvent.action == "user.clerk_updated").count() == 1


def test_user_updated_to_taken_email_keeps_own_email(app, client, make_user, webhook_secret):
    make_user("other@example.com", "BRAND")
    body, headers = _signed(webhook_secret, {"type": "user.created", "data": _clerk_user()})
    client.post("/api/webhooks/clerk", data=body, headers=headers)

    body, headers = _signed(
        webhook_secret, {"type": "user.updated", "data": _clerk_user(email="other@example.com")}, "msg_2"
    )
    assert client.post("/api/webhooks/clerk", data=body, headers=headers).status_code == 200
    with session_scope(app) as s:
        assert s.query(User).filter(User.clerk_id == "user_abc").one().email == "new@example.com"
