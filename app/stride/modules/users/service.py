from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, or_

from app.stride.audit import record_event
from app.stride.constants import ROLE_BRAND, VALID_ROLES
from app.stride.errors import BadRequest, Conflict, NotFound, validation_error
from app.stride.models import User, UserProfile
from app.stride.utils import PaginatedResult, clean_str, iso, parse_bool, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

PROFILE_FIELDS = (
    "first_name",
    "last_name",
    "avatar_url",
    "phone",
    "location_country",
    "location_city",
    "bio",
    "website_url",
)


def get_user_or_404(s: "Session", user_id: str) -> User:
    user = s.get(User, user_id)
    if not user:
        raise NotFound("User not found")
    return user


def validate_user_payload(payload: dict) -> list[str]:
    errors: list[str] = []
    email = clean_str(payload.get("email"))
    if not email or "@" not in email:
        errors.append("A valid email is required.")
    role = (clean_str(payload.get("role")) or "").upper()
    if role not in VALID_ROLES:
        errors.append(f"Invalid role. Must be one of: {', '.join(VALID_ROLES)}")
    return errors


def create_user(s: "Session", payload: dict, actor: User | None) -> User:
    """Create a user and its profile together (caller commits)."""
    errors = validate_user_payload(payload)
    if errors:
        raise validation_error(errors)

    email = clean_str(payload.get("email")).lower()
    if s.query(User).filter(User.email == email).one_or_none():
        raise Conflict("A user with this email already exists")

    now = utcnow()
    user = User(
        email=email,
        role=clean_str(payload.get("role")).upper(),
        clerk_id=clean_str(payload.get("clerk_id")),
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    profile_data = payload.get("profile") or {}
    user.profile = UserProfile(
        **{k: clean_str(profile_data.get(k)) for k in PROFILE_FIELDS},
        is_onboarded=bool(parse_bool(profile_data.get("is_onboarded"))),
        created_at=now,
        updated_at=now,
    )
    s.add(user)
    s.flush()

    record_event(
        s,
        actor=actor,
        action="user.create",
        entity_type="User",
        entity_id=user.id,
        metadata={"email": user.email, "role": user.role},
    )
    return user


def list_users(
    s: "Session",
    *,
    search: str | None = None,
    roles: list[str] | None = None,
    is_onboarded: bool | None = None,
    page: int = 1,
    limit: int = 20,
) -> PaginatedResult:
    q = s.query(User).outerjoin(UserProfile, UserProfile.user_id == User.id)
    if search:
        like = f"%{search}%"
        q = q.filter(or_(User.email.ilike(like), UserProfile.first_name.ilike(like), UserProfile.last_name.ilike(like)))
    if roles:
        q = q.filter(User.role.in_([r.upper() for r in roles]))
    if is_onboarded is not None:
        q = q.filter(UserProfile.is_onboarded.is_(is_onboarded))
    total = q.count()
    rows = q.order_by(User.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return PaginatedResult(data=rows, total=total, page=page, limit=limit)


def update_user_role(s: "Session", user: User, role: str, actor: User | None, reason: str | None = None) -> User:
    role = (clean_str(role) or "").upper()
    if role not in VALID_ROLES:
        raise BadRequest(f"Invalid role. Must be one of: {', '.join(VALID_ROLES)}")
    old = user.role
    if old == role:
        return user
    user.role = role
    user.updated_at = utcnow()
    record_event(
        s,
        actor=actor,
        action="user.role_change",
        entity_type="User",
        entity_id=user.id,
        reason=reason,
        metadata={"old": old, "new": role},
    )
    return user


def update_user_profile(s: "Session", user: User, payload: dict, actor: User | None) -> UserProfile:
    """Only PROFILE_FIELDS (plus is_onboarded) are writable here."""
    updates = {k: payload[k] for k in PROFILE_FIELDS if k in payload}
    onboarded = parse_bool(payload.get("is_onboarded")) if "is_onboarded" in payload else None
    if not updates and onboarded is None:
        raise BadRequest("No valid fields to update")

    now = utcnow()
    profile = user.profile
    if profile is None:
        profile = UserProfile(user_id=user.id, created_at=now)
        user.profile = profile
    changes: dict[str, Any] = {}
    for key, value in updates.items():
        new = clean_str(value)
        if new != getattr(profile, key):
            changes[key] = {"old": getattr(profile, key), "new": new}
            setattr(profile, key, new)
    if onboarded is not None and onboarded != profile.is_onboarded:
        changes["is_onboarded"] = {"old": profile.is_onboarded, "new": onboarded}
        profile.is_onboarded = onboarded
    profile.updated_at = now
    s.flush()

    record_event(
        s,
        actor=actor,
        action="user.profile_edit",
        entity_type="User",
        entity_id=user.id,
        metadata={"changes": changes},
    )
    return profile


def delete_user(s: "Session", user: User, actor: User | None) -> None:
    """Removes the profile and the user (profile goes via cascade)."""
    if actor is not None and actor.id == user.id:
        raise BadRequest("You cannot delete your own account")
    record_event(
        s,
        actor=actor,
        action="user.delete",
        entity_type="User",
        entity_id=user.id,
        metadata={"email": user.email, "role": user.role},
    )
    s.delete(user)
    s.flush()


def user_stats(s: "Session") -> dict[str, Any]:
    total = s.query(func.count(User.id)).scalar() or 0
    by_role = {r: c for r, c in s.query(User.role, func.count(User.id)).group_by(User.role).all()}
    recent = s.query(func.count(User.id)).filter(User.created_at >= utcnow() - timedelta(days=7)).scalar() or 0
    onboarded = (
        s.query(func.count(UserProfile.user_id)).filter(UserProfile.is_onboarded.is_(True)).scalar() or 0
    )
    return {
        "total": total,
        "by_role": {r: by_role.get(r, 0) for r in VALID_ROLES},
        "joined_last_7_days": recent,
        "onboarded": onboarded,
    }


# ---------- Clerk webhook sync ----------
def _primary_email(data: dict) -> str | None:
    addresses = data.get("email_addresses") or []
    primary_id = data.get("primary_email_address_id")
    for a in addresses:
        if a.get("id") == primary_id and a.get("email_address"):
            return a["email_address"].strip().lower()
    for a in addresses:
        if a.get("email_address"):
            return a["email_address"].strip().lower()
    return None


def _metadata_role(data: dict) -> str | None:
    role = str((data.get("public_metadata") or {}).get("role") or "").upper()
    return role if role in VALID_ROLES else None


def sync_clerk_user(s: "Session", data: dict) -> User | None:
    """Create or update the local user for a Clerk user payload."""
    clerk_id = clean_str(data.get("id"))
    email = _primary_email(data)
    if not clerk_id or not email:
        logger.warning("Clerk user payload missing id or email; ignoring")
        return None

    user = s.query(User).filter(User.clerk_id == clerk_id).one_or_none()
    owner = s.query(User).filter(User.email == email).one_or_none()
    if user is None and owner is not None:
        if owner.clerk_id is not None:
            logger.warning(
                "Clerk user %s uses email %s already linked to Clerk user %s; not provisioning",
                clerk_id,
                email,
                owner.clerk_id,
            )
            return None
        # Staff may have pre-created the user by email before first sign-in.
        user = owner
    elif user is not None and owner is not None and owner.id != user.id:
        logger.warning(
            "Clerk user %s changed email to %s, which belongs to another user; keeping %s", clerk_id, email, user.email
        )
        email = user.email

    now = utcnow()
    created = user is None
    if created:
        user = User(email=email, role=_metadata_role(data) or ROLE_BRAND, created_at=now)
        user.profile = UserProfile(created_at=now, updated_at=now, is_onboarded=False)
        s.add(user)
    user.clerk_id = clerk_id
    user.email = email
    user.is_active = True
    role = _metadata_role(data)
    if role and not created and role != user.role:
        user.role = role
    user.updated_at = now

    profile = user.profile
    if profile is None:
        profile = UserProfile(created_at=now, is_onboarded=False)
        user.profile = profile
    profile.first_name = clean_str(data.get("first_name")) or profile.first_name
    profile.last_name = clean_str(data.get("last_name")) or profile.last_name
    profile.avatar_url = clean_str(data.get("image_url")) or profile.avatar_url
    profile.updated_at = now
    s.flush()
    if created:
        from app.stride.modules.invitations.service import mark_accepted

        mark_accepted(s, email, user)

    record_event(
        s,
        actor=None,
        action="user.clerk_created" if created else "user.clerk_updated",
        entity_type="User",
        entity_id=user.id,
        metadata={"clerk_id": clerk_id, "email": email, "role": user.role},
    )
    return user


def handle_clerk_event(s: "Session", event_type: str, data: dict) -> User | None:
    if event_type in ("user.created", "user.updated"):
        return sync_clerk_user(s, data)
    if event_type == "user.deleted":
        clerk_id = clean_str(data.get("id"))
        user = s.query(User).filter(User.clerk_id == clerk_id).one_or_none() if clerk_id else None
        if user:
            user.is_active = False
            user.updated_at = utcnow()
            record_event(s, actor=None, action="user.clerk_deleted", entity_type="User", entity_id=user.id)
        return user
    logger.info("Ignoring Clerk webhook event type %s", event_type)
    return None


def serialize_user(user: User) -> dict:
    p = user.profile
    return {
        "id": user.id,
        "clerk_id": user.clerk_id,
        "email": user.email,
        "role": user.role,
        "is_active": user.is_active,
        "created_at": iso(user.created_at),
        "profile": (
            {**{k: getattr(p, k) for k in PROFILE_FIELDS}, "is_onboarded": p.is_onboarded} if p else None
        ),
    }
