import json
from datetime import datetime, timedelta, timezone

from svix.webhooks import Webhook

from app.stride.db import session_scope
from app.stride.models import User
from app.stride.modules.invitations.models import UserInvitation


def _invite(client, staff, email="talent@example.com", role="influencer_signed", **extra):
    return client.post("/api/staff/invitations", json={"email": email, "role": role, **extra}, headers=staff)


def _expire(app, clerk_invitation_id):
    with session_scope(app) as s:
        inv = s.query(UserInvitation).filter(UserInvitation.clerk_invitation_id == clerk_invitation_id).one()
        inv.expires_at = datetime(2020, 1, 1)


def test_create_invitation_calls_clerk(client, staff, clerk):
    r = _invite(client, staff, "Talent@Example.com", firstName="Tia", lastName="Lee")
    assert r.status_code == 201, r.json
    inv = r.json["invitation"]
    assert inv["email"] == "talent@example.com"
    assert inv["role"] == "INFLUENCER_SIGNED"
    assert inv["status"] == "invited"
    assert inv["invited_by"] == "staff@example.com"
    assert inv["expires_at"] is not None
    assert r.json["message"] == "Invitation sent to talent@example.com"

    kind, email, metadata, redirect = clerk.calls[0]
    assert (kind, email) == ("invite", "talent@example.com")
    assert metadata["role"] == "INFLUENCER_SIGNED"
    assert metadata["firstName"] == "Tia"
    assert redirect == "https://app.example.com/invitation/accept"


def test_create_invitation_rejections(client, staff, make_user, clerk, as_user):
    assert _invite(client, staff, email="").json["error"] == "Email and role are required"
    assert _invite(client, staff, role="wizard").json["error"] == "Invalid role specified"

    r = _invite(client, staff, email="staff@example.com")
    assert r.status_code == 409
    assert r.json["error"] == "User with this email already exists"

    assert _invite(client, staff).status_code == 201
    r = _invite(client, staff)
    assert r.status_code == 409
    assert r.json["error"] == "A pending invitation already exists for this email"

    clerk.fail_with = (400, "duplicate_record")
    r = _invite(client, staff, email="other@example.com")
    assert r.status_code == 409
    assert r.json["error"] == "A pending invitation already exists for this email address"
    clerk.fail_with = (500, None)
    assert _invite(client, staff, email="other@example.com").status_code == 502

    make_user("bea@example.com", "BRAND")
    assert _invite(client, as_user("bea@example.com"), email="x@example.com").status_code == 403


def test_list_expires_stale_and_reports_stats(app, client, staff):
    _invite(client, staff, "a@example.com")
    _invite(client, staff, "b@example.com", role="BRAND")
    _expire(app, "inv_1")

    body = client.get("/api/staff/invitations", headers=staff).json
    assert body["total"] == 2
    assert body["limit"] == 50
    assert body["stats"]["total"] == 2
    assert body["stats"]["invited"] == 1
    assert body["stats"]["expired"] == 1

    r = client.get("/api/staff/invitations?status=expired", headers=staff)
    assert [i["email"] for i in r.json["data"]] == ["a@example.com"]
    r = client.get("/api/staff/invitations?role=brand", headers=staff)
    assert [i["email"] for i in r.json["data"]] == ["b@example.com"]
    assert client.get("/api/staff/invitations?status=lost", headers=staff).status_code == 400


def test_revoke_and_resend(client, staff, clerk):
    inv = _invite(client, staff).json["invitation"]

    r = client.post(f"/api/staff/invitations/{inv['id']}/resend", headers=staff)
    assert r.status_code == 201
    fresh = r.json["invitation"]
    assert fresh["id"] != inv["id"]
    assert fresh["clerk_invitation_id"] == "inv_2"
    assert ("revoke", "inv_1") in clerk.calls

    # Lookup by Clerk id works too
    r = client.delete("/api/staff/invitations/inv_2", headers=staff)
    assert r.status_code == 200
    assert r.json["invitation"]["status"] == "declined"
    assert r.json["invitation"]["revoked_at"] is not None

    r = client.delete("/api/staff/invitations/inv_2", headers=staff)
    assert r.status_code == 400
    assert client.delete("/api/staff/invitations/missing", headers=staff).status_code == 404

    stats = client.get("/api/staff/invitations", headers=staff).json["stats"]
    assert stats["declined"] == 2


def test_accept_creates_user_with_invited_role(app, client, staff, clerk):
    _invite(client, staff)
    payload = {"invitationId": "inv_1", "firstName": "Tia", "lastName": "Lee", "password": "s3cret-Passw0rd"}

    assert client.post("/api/invitations/accept", json={"invitationId": "inv_1"}).json["error"] == "Missing required fields"
    r = client.post("/api/invitations/accept", json={**payload, "invitationId": "inv_9"})
    assert r.status_code == 404
    assert r.json["error"] == "Invalid or expired invitation"

    r = client.post("/api/invitations/accept", json=payload)
    assert r.status_code == 201, r.json
    assert r.json["user"]["email"] == "talent@example.com"
    assert r.json["user"]["role"] == "INFLUENCER_SIGNED"
    assert clerk.calls[-1][0] == "user"

    with session_scope(app) as s:
        u = s.query(User).filter(User.email == "talent@example.com").one()
        assert u.clerk_id == "user_2"
        assert u.profile.first_name == "Tia"
        inv = s.query(UserInvitation).one()
        assert inv.status == "ACCEPTED"
        assert inv.accepted_user_id == u.id

    # Accepted invitations cannot be reused
    assert client.post("/api/invitations/accept", json=payload).status_code == 404


def test_accept_expired_invitation(app, client, staff):
    _invite(client, staff)
    _expire(app, "inv_1")
    r = client.post(
        "/api/invitations/accept",
        json={"invitationId": "inv_1", "firstName": "Tia", "lastName": "Lee", "password": "pw"},
    )
    assert r.status_code == 400
    assert r.json["error"] == "This invitation has expired"


def test_accept_rejected_password_is_a_bad_request(client, staff, clerk):
    _invite(client, staff)
    clerk.fail_with = (422, "form_password_pwned")
    r = client.post(
        "/api/invitations/accept",
        json={"invitationId": "inv_1", "firstName": "Tia", "lastName": "Lee", "password": "password"},
    )
    assert r.status_code == 400


def test_clerk_signup_webhook_closes_invitation(app, client, staff, webhook_secret):
    _invite(client, staff)
    event = {
        "type": "user.created",
        "data": {
            "id": "user_tia",
            "primary_email_address_id": "em_1",
            "email_addresses": [{"id": "em_1", "email_address": "talent@example.com"}],
            "public_metadata": {"role": "INFLUENCER_SIGNED"},
        },
    }
    body = json.dumps(event)
    now = datetime.now(timezone.utc)
    headers = {
        "svix-id": "msg_inv",
        "svix-timestamp": str(int(now.timestamp())),
        "svix-signature": Webhook(webhook_secret).sign("msg_inv", now, body),
        "Content-Type": "application/json",
    }
    assert client.post("/api/webhooks/clerk", data=body, headers=headers).status_code == 200

    with session_scope(app) as s:
        inv = s.query(UserInvitation).one()
        assert inv.status == "ACCEPTED"
        assert inv.clerk_id == "user_tia"
        assert inv.accepted_at is not None
        assert inv.accepted_at > datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(minutes=5)
