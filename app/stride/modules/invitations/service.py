from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

from sqlalchemy import func

from app.stride.audit import record_event
from app.stride.constants import INVITATION_EXPIRY_DAYS, VALID_INVITATION_STATUSES, VALID_ROLES
from app.stride.errors import BadRequest, Conflict, NotFound, UpstreamError
from app.stride.models import User, UserProfile
from app.stride.modules.invitations.clerk_client import ClerkClient, ClerkError
from app.stride.modules.invitations.models import UserInvitation
from app.stride.utils import PaginatedResult, clean_str, iso, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


def _clerk_time(value: Any) -> datetime | None:
    """Clerk timestamps are epoch milliseconds."""
    if not isinstance(value, (int, float)):
        return None
    return datetime.fromtimestamp(value / 1000, timezone.utc).replace(tzinfo=None)


def get_invitation_or_404(s: "Session", invitation_id: str) -> UserInvitation:
    """Looks up by local id, then by Clerk invitation id."""
    inv = s.get(UserInvitation, invitation_id)
    if inv is None:
        inv = s.query(UserInvitation).filter(UserInvitation.clerk_invitation_id == invitation_id).one_or_none()
    if inv is None:
        raise NotFound("Invitation not found")
    return inv


def _send(
    s: "Session",
    clerk: ClerkClient,
    *,
    email: str,
    role: str,
    first_name: str | None,
    last_name: str | None,
    actor: User | None,
    redirect_url: str,
) -> UserInvitation:
    now = utcnow()
    metadata: dict[str, Any] = {"role": role, "invitedBy": actor.role if actor else None, "invitedAt": now.isoformat() + "Z"}
    if first_name and last_name:
        metadata.update({"firstName": first_name, "lastName": last_name})
    try:
        sent = clerk.create_invitation(email, public_metadata=metadata, redirect_url=redirect_url)
    except ClerkError as e:
        if e.status == 400 and e.code == "duplicate_record":
            raise Conflict("A pending invitation already exists for this email address") from e
        logger.error("Clerk invitation for %s failed: %s", email, e)
        raise UpstreamError("Failed to create invitation") from e

    inv = UserInvitation(
        clerk_invitation_id=sent["id"],
        email=email,
        role=role,
        status="INVITED",
        first_name=first_name,
        last_name=last_name,
        invited_by=actor.id if actor else None,
        invited_by_email=actor.email if actor else None,
        invited_at=now,
        expires_at=_clerk_time(sent.get("expires_at")) or now + timedelta(days=INVITATION_EXPIRY_DAYS),
    )
    s.add(inv)
    s.flush()
    return inv


def create_invitation(s: "Session", clerk: ClerkClient, payload: dict, actor: User | None, *, app_url: str) -> UserInvitation:
    email = (clean_str(payload.get("email")) or "").lower()
    role = (clean_str(payload.get("role")) or "").upper()
    if not email or not role:
        raise BadRequest("Email and role are required")
    if "@" not in email:
        raise BadRequest("A valid email is required.")
    if role not in VALID_ROLES:
        raise BadRequest("Invalid role specified")
    if s.query(User).filter(User.email == email).one_or_none():
        raise Conflict("User with this email already exists")
    pending = s.query(UserInvitation).filter(UserInvitation.email == email, UserInvitation.status == "INVITED").first()
    if pending:
        raise Conflict("A pending invitation already exists for this email")

    inv = _send(
        s,
        clerk,
        email=email,
        role=role,
        first_name=clean_str(payload.get("first_name") or payload.get("firstName")),
        last_name=clean_str(payload.get("last_name") or payload.get("lastName")),
        actor=actor,
        redirect_url=app_url.rstrip("/") + "/invitation/accept",
    )
    record_event(
        s,
        actor=actor,
        action="invitation.create",
        entity_type="UserInvitation",
        entity_id=inv.id,
        metadata={"email": email, "role": role},
    )
    logger.info("Invitation sent to %s as %s", email, role)
    return inv


def _revoke_remote(clerk: ClerkClient, inv: UserInvitation) -> None:
    try:
        clerk.revoke_invitation(inv.clerk_invitation_id)
    except ClerkError as e:
        logger.error("Revoking Clerk invitation %s failed: %s", inv.clerk_invitation_id, e)
        raise UpstreamError("Failed to cancel invitation") from e


def revoke_invitation(s: "Session", clerk: ClerkClient, inv: UserInvitation, actor: User | None) -> UserInvitation:
    if inv.status != "INVITED":
        raise BadRequest(f"Cannot cancel an invitation that is {inv.status}")
    _revoke_remote(clerk, inv)
    now = utcnow()
    inv.status = "DECLINED"
    inv.revoked_at = now
    record_event(s, actor=actor, action="invitation.revoke", entity_type="UserInvitation", entity_id=inv.id, metadata={"email": inv.email})
    return inv


def resend_invitation(
    s: "Session", clerk: ClerkClient, inv: UserInvitation, actor: User | None, *, app_url: str
) -> UserInvitation:
    """Revoke the old Clerk invitation and send a fresh one with the same details."""
    if inv.status == "ACCEPTED":
        raise BadRequest("This invitation has already been accepted")
    if inv.status == "INVITED":
        _revoke_remote(clerk, inv)
        inv.status = "DECLINED"
        inv.revoked_at = utcnow()
    s.flush()
    fresh = _send(
        s,
        clerk,
        email=inv.email,
        role=inv.role,
        first_name=inv.first_name,
        last_name=inv.last_name,
        actor=actor,
        redirect_url=app_url.rstrip("/") + "/invitation/accept",
    )
    record_event(
        s,
        actor=actor,
        action="invitation.resend",
        entity_type="UserInvitation",
        entity_id=fresh.id,
        metadata={"email": inv.email, "previous_invitation_id": inv.id},
    )
    return fresh


def expire_stale_invitations(s: "Session") -> int:
    now = utcnow()
    stale = (
        s.query(UserInvitation)
        .filter(UserInvitation.status == "INVITED", UserInvitation.expires_at.is_not(None), UserInvitation.expires_at < now)
        .all()
    )
    for inv in stale:
        inv.status = "EXPIRED"
    return len(stale)


def list_invitations(s: "Session", filters: dict[str, Any], page: int = 1, limit: int = 50) -> PaginatedResult:
    q = s.query(UserInvitation)
    status = (clean_str(filters.get("status")) or "").upper()
    if status and status != "ALL":
        if status not in VALID_INVITATION_STATUSES:
            raise BadRequest(f"Invalid status: {filters.get('status')}")
        q = q.filter(UserInvitation.status == status)
    role = (clean_str(filters.get("role")) or "").upper()
    if role:
        q = q.filter(UserInvitation.role == role)
    total = q.count()
    rows = q.order_by(UserInvitation.invited_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return PaginatedResult(data=rows, total=total, page=page, limit=limit)


def invitation_stats(s: "Session") -> dict[str, int]:
    counts = {st.lower(): 0 for st in VALID_INVITATION_STATUSES}
    for status, count in s.query(UserInvitation.status, func.count(UserInvitation.id)).group_by(UserInvitation.status).all():
        counts[status.lower()] = count
    return {"total": sum(counts.values()), **counts}


def mark_accepted(s: "Session", email: str, user: User) -> UserInvitation | None:
    """Close out the pending invitation for `email` once its user exists."""
    inv = (
        s.query(UserInvitation)
        .filter(UserInvitation.email == email, UserInvitation.status == "INVITED")
        .order_by(UserInvitation.invited_at.desc())
        .first()
    )
    if inv is None:
        return None
    inv.status = "ACCEPTED"
    inv.accepted_at = utcnow()
    inv.accepted_user_id = user.id
    inv.clerk_id = user.clerk_id
    return inv


def accept_invitation(s: "Session", clerk: ClerkClient, payload: dict) -> User:
    """
    Public sign-up from an invitation link: creates the Clerk user with the
    given password, then the local user and profile with the invited role.
    """
    invitation_id = clean_str(payload.get("invitationId") or payload.get("invitation_id"))
    first_name = clean_str(payload.get("firstName") or payload.get("first_name"))
    last_name = clean_str(payload.get("lastName") or payload.get("last_name"))
    password = payload.get("password")
    if not invitation_id or not first_name or not last_name or not password:
        raise BadRequest("Missing required fields")

    inv = s.query(UserInvitation).filter(
        UserInvitation.clerk_invitation_id == invitation_id, UserInvitation.status == "INVITED"
    ).one_or_none()
    if inv is None:
        raise NotFound("Invalid or expired invitation")
    if inv.expires_at and inv.expires_at < utcnow():
        raise BadRequest("This invitation has expired")
    if s.query(User).filter(User.email == inv.email).one_or_none():
        raise BadRequest("A user with this email already exists")

    try:
        clerk_user = clerk.create_user(
            inv.email,
            first_name=first_name,
            last_name=last_name,
            password=str(password),
            public_metadata={"role": inv.role},
        )
    except ClerkError as e:
        logger.error("Creating Clerk user for invitation %s failed: %s", inv.id, e)
        if e.status in (400, 422):
            raise BadRequest("Failed to create user account. Check the password and try again.") from e
        raise UpstreamError("Failed to create user account. Please try again.") from e

    now = utcnow()
    user = User(email=inv.email, role=inv.role, clerk_id=clerk_user["id"], is_active=True, created_at=now, updated_at=now)
    user.profile = UserProfile(first_name=first_name, last_name=last_name, is_onboarded=False, created_at=now, updated_at=now)
    s.add(user)
    s.flush()
    mark_accepted(s, inv.email, user)
    record_event(
        s,
        actor=user,
        action="invitation.accept",
        entity_type="UserInvitation",
        entity_id=inv.id,
        metadata={"user_id": user.id, "role": user.role},
    )
    return user


def serialize_invitation(inv: UserInvitation) -> dict:
    return {
        "id": inv.id,
        "clerk_invitation_id": inv.clerk_invitation_id,
        "email": inv.email,
        "role": inv.role,
        "status": inv.status.lower(),
        "first_name": inv.first_name,
        "last_name": inv.last_name,
        "invited_by": inv.invited_by_email,
        "invited_at": iso(inv.invited_at),
        "expires_at": iso(inv.expires_at),
        "accepted_at": iso(inv.accepted_at),
        "revoked_at": iso(inv.revoked_at),
    }
