from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, or_, select

from app.stride.audit import record_event
from app.stride.constants import (
    INFLUENCER_ROLES,
    ROLE_INFLUENCER_SIGNED,
    VALID_CONTENT_TYPES,
    VALID_INFLUENCER_TYPES,
    VALID_PLATFORMS,
    VALID_RELATIONSHIP_STATUSES,
    VALID_TIERS,
)
from app.stride.errors import BadRequest, Conflict, NotFound, validation_error
from app.stride.models import User, UserProfile
from app.stride.modules.influencers.models import Influencer, InfluencerPlatform
from app.stride.utils import (
    PaginatedResult,
    clean_str,
    format_number,
    format_percentage,
    iso,
    load_json_object,
    money,
    parse_bool,
    parse_decimal,
    parse_int,
    parse_str_list,
    utcnow,
)

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


def get_influencer_or_404(s: "Session", influencer_id: str) -> Influencer:
    inf = s.get(Influencer, influencer_id)
    if not inf:
        raise NotFound("Influencer not found")
    return inf


def influencer_for_user(s: "Session", user: User) -> Influencer | None:
    return s.query(Influencer).filter(Influencer.user_id == user.id).one_or_none()


def normalize_platform(value: Any) -> str:
    p = (str(value or "")).strip().upper()
    if p not in VALID_PLATFORMS:
        raise BadRequest(f"Invalid platform. Must be one of: {', '.join(VALID_PLATFORMS)}")
    return p


# ---------- Aggregates ----------
def compute_aggregates(rows: list[tuple[Any, Any, Any]]) -> dict[str, Any]:
    """
    rows: (followers, engagement_rate, avg_views) per platform.
    Only platforms with followers > 0 count. Followers are summed,
    engagement is follower-weighted over platforms that report it, and
    views are a simple mean over platforms that report them.
    """
    counted = [(int(f or 0), float(e or 0), float(v or 0)) for f, e, v in rows if (f or 0) > 0]
    if not counted:
        return {"total_followers": 0, "total_engagement_rate": 0.0, "total_avg_views": 0}

    total_followers = sum(f for f, _, _ in counted)

    weighted = 0.0
    weight = 0
    for f, e, _ in counted:
        if f > 0 and e > 0:
            weighted += e * f
            weight += f
    engagement = weighted / weight if weight > 0 else 0.0

    views = [v for _, _, v in counted if v > 0]
    avg_views = sum(views) / len(views) if views else 0

    return {
        "total_followers": total_followers,
        "total_engagement_rate": engagement,
        "total_avg_views": int(round(avg_views)),
    }


def update_aggregated_stats(s: "Session", influencer_id: str) -> dict[str, Any] | None:
    """Recalculate influencers.total_* from platform rows. Returns None for an unknown influencer."""
    rows = (
        s.query(InfluencerPlatform.followers, InfluencerPlatform.engagement_rate, InfluencerPlatform.avg_views)
        .filter(InfluencerPlatform.influencer_id == influencer_id)
        .all()
    )
    totals = compute_aggregates([tuple(r) for r in rows])
    inf = s.get(Influencer, influencer_id)
    if inf is None:
        logger.warning("Aggregate update skipped; influencer %s not found", influencer_id)
        return None
    inf.total_followers = totals["total_followers"]
    inf.total_engagement_rate = totals["total_engagement_rate"]
    inf.total_avg_views = totals["total_avg_views"]
    inf.updated_at = utcnow()
    s.flush()
    logger.info(
        "Aggregated stats for influencer %s: followers=%s engagement=%.4f views=%s",
        influencer_id,
        totals["total_followers"],
        totals["total_engagement_rate"],
        totals["total_avg_views"],
    )
    return totals


def upsert_platform(s: "Session", influencer: Influencer, platform: str, **fields: Any) -> InfluencerPlatform:
    """Insert or update the (influencer, platform) row."""
    platform = normalize_platform(platform)
    row = (
        s.query(InfluencerPlatform)
        .filter(InfluencerPlatform.influencer_id == influencer.id, InfluencerPlatform.platform == platform)
        .one_or_none()
    )
    now = utcnow()
    if row is None:
        row = InfluencerPlatform(
            influencer_id=influencer.id,
            platform=platform,
            username=fields.pop("username", None) or "unknown",
            created_at=now,
        )
        s.add(row)
        influencer.platforms.append(row)
    for key, value in fields.items():
        if hasattr(InfluencerPlatform, key):
            setattr(row, key, value)
    row.updated_at = now
    s.flush()
    return row


# ---------- Queries ----------
def list_influencers(s: "Session", filters: dict[str, Any], page: int = 1, limit: int = 20) -> PaginatedResult:
    q = s.query(Influencer)

    if not filters.get("include_inactive"):
        q = q.filter(Influencer.is_active.is_(True))

    search = clean_str(filters.get("search"))
    if search:
        like = f"%{search}%"
        handle_match = select(InfluencerPlatform.influencer_id).where(InfluencerPlatform.username.ilike(like))
        q = q.filter(or_(Influencer.display_name.ilike(like), Influencer.id.in_(handle_match)))

    platforms = [p.upper() for p in parse_str_list(filters.get("platforms"))]
    if platforms:
        on_platform = select(InfluencerPlatform.influencer_id).where(InfluencerPlatform.platform.in_(platforms))
        q = q.filter(Influencer.id.in_(on_platform))

    countries = parse_str_list(filters.get("countries"))
    if countries:
        located = select(UserProfile.user_id).where(UserProfile.location_country.in_(countries))
        q = q.filter(Influencer.user_id.in_(located))

    for key, column, op in (
        ("min_followers", Influencer.total_followers, "ge"),
        ("max_followers", Influencer.total_followers, "le"),
        ("min_engagement", Influencer.total_engagement_rate, "ge"),
        ("max_engagement", Influencer.total_engagement_rate, "le"),
        ("min_price", Influencer.price_per_post, "ge"),
        ("max_price", Influencer.price_per_post, "le"),
    ):
        raw = filters.get(key)
        if raw in (None, ""):
            continue
        try:
            value = float(raw)
        except (TypeError, ValueError):
            raise BadRequest(f"{key} must be a number")
        q = q.filter(column >= value if op == "ge" else column <= value)

    for key, column in (("tier", Influencer.tier), ("influencer_type", Influencer.influencer_type)):
        value = clean_str(filters.get(key))
        if value:
            q = q.filter(column == value.upper())

    q = q.order_by(Influencer.total_followers.desc(), Influencer.display_name.asc())

    # Niches are a JSON list; matched in Python to stay portable across Postgres/SQLite.
    niches = {n.lower() for n in parse_str_list(filters.get("niches"))}
    if niches:
        matched = [r for r in q.all() if niches & {str(n).lower() for n in (r.niches or [])}]
        start = (page - 1) * limit
        return PaginatedResult(data=matched[start : start + limit], total=len(matched), page=page, limit=limit)

    total = q.order_by(None).count()
    rows = q.offset((page - 1) * limit).limit(limit).all()
    return PaginatedResult(data=rows, total=total, page=page, limit=limit)


def influencer_campaigns(s: "Session", influencer_id: str) -> list:
    from app.stride.modules.campaigns.models import CampaignInfluencer

    return (
        s.query(CampaignInfluencer)
        .filter(CampaignInfluencer.influencer_id == influencer_id)
        .order_by(CampaignInfluencer.created_at.desc())
        .all()
    )


# ---------- Validation ----------
def validate_influencer_payload(payload: dict, *, creating: bool) -> list[str]:
    errors: list[str] = []
    if creating and not clean_str(payload.get("display_name")):
        errors.append("display_name is required.")
    if creating and payload.get("email") is not None and "@" not in str(payload.get("email")):
        errors.append("email is invalid.")
    checks = (
        ("tier", VALID_TIERS, str.upper),
        ("content_type", VALID_CONTENT_TYPES, str.upper),
        ("influencer_type", VALID_INFLUENCER_TYPES, str.upper),
        ("relationship_status", VALID_RELATIONSHIP_STATUSES, str.lower),
    )
    for key, allowed, norm in checks:
        value = clean_str(payload.get(key))
        if value and norm(value) not in allowed:
            errors.append(f"Invalid {key}. Must be one of: {', '.join(allowed)}")
    try:
        price = parse_decimal(payload.get("price_per_post"))
        if price is not None and price < 0:
            errors.append("price_per_post must be >= 0.")
    except ValueError:
        errors.append("price_per_post must be a number.")
    for p in payload.get("platforms") or []:
        if not isinstance(p, dict) or str(p.get("platform") or "").upper() not in VALID_PLATFORMS:
            errors.append("Each platform needs a valid platform name.")
        elif not clean_str(p.get("username")):
            errors.append(f"{p.get('platform')}: username is required.")
    return errors


# ---------- Mutations ----------
def create_influencer(s: "Session", payload: dict, actor: User | None) -> Influencer:
    """
    Create an influencer. With an email, a user + profile is created in the
    same transaction (the caller commits); without one it is roster-only.
    """
    errors = validate_influencer_payload(payload, creating=True)
    if errors:
        raise validation_error(errors)

    now = utcnow()
    user: User | None = None
    email = clean_str(payload.get("email"))
    if email:
        email = email.lower()
        if s.query(User).filter(User.email == email).one_or_none():
            raise Conflict("A user with this email already exists")
        role = (clean_str(payload.get("role")) or ROLE_INFLUENCER_SIGNED).upper()
        if role not in INFLUENCER_ROLES:
            raise BadRequest("role must be an influencer role")
        user = User(email=email, role=role, clerk_id=clean_str(payload.get("clerk_id")), created_at=now, updated_at=now)
        user.profile = UserProfile(
            first_name=clean_str(payload.get("first_name")),
            last_name=clean_str(payload.get("last_name")),
            location_country=clean_str(payload.get("location_country")),
            location_city=clean_str(payload.get("location_city")),
            bio=clean_str(payload.get("bio")),
            is_onboarded=False,
        )
        s.add(user)
        s.flush()

    inf = Influencer(
        user_id=user.id if user else None,
        display_name=clean_str(payload.get("display_name")),
        niches=parse_str_list(payload.get("niches")),
        content_type=(clean_str(payload.get("content_type")) or "STANDARD").upper(),
        tier=(clean_str(payload.get("tier")) or "").upper() or None,
        influencer_type=(clean_str(payload.get("influencer_type")) or "SIGNED").upper(),
        price_per_post=parse_decimal(payload.get("price_per_post")),
        relationship_status=(clean_str(payload.get("relationship_status")) or "").lower() or None,
        assigned_to=clean_str(payload.get("assigned_to")),
        labels=parse_str_list(payload.get("labels")),
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    s.add(inf)
    s.flush()

    for p in payload.get("platforms") or []:
        upsert_platform(
            s,
            inf,
            p["platform"],
            username=clean_str(p.get("username")).lstrip("@"),
            profile_url=clean_str(p.get("profile_url")),
            modash_user_id=clean_str(p.get("modash_user_id")),
            followers=parse_int(p.get("followers"), 0),
            engagement_rate=float(p.get("engagement_rate") or 0),
            avg_views=parse_int(p.get("avg_views"), 0),
        )
    update_aggregated_stats(s, inf.id)

    record_event(
        s,
        actor=actor,
        action="influencer.create",
        entity_type="Influencer",
        entity_id=inf.id,
        metadata={"display_name": inf.display_name, "user_id": inf.user_id, "platforms": len(inf.platforms)},
    )
    return inf


_UPDATABLE = ("display_name", "tier", "content_type", "influencer_type", "relationship_status", "assigned_to")


def update_influencer(s: "Session", inf: Influencer, payload: dict, actor: User | None) -> Influencer:
    errors = validate_influencer_payload(payload, creating=False)
    if errors:
        raise validation_error(errors)

    changes: dict[str, Any] = {}
    for key in _UPDATABLE:
        if key not in payload:
            continue
        value = clean_str(payload.get(key))
        if value and key in ("tier", "content_type", "influencer_type"):
            value = value.upper()
        elif value and key == "relationship_status":
            value = value.lower()
        if key == "display_name" and not value:
            raise BadRequest("display_name cannot be blank.")
        if value != getattr(inf, key):
            changes[key] = {"old": getattr(inf, key), "new": value}
            setattr(inf, key, value)

    for key in ("niches", "labels"):
        if key in payload:
            value = parse_str_list(payload.get(key))
            if value != list(getattr(inf, key) or []):
                changes[key] = {"old": getattr(inf, key), "new": value}
                setattr(inf, key, value)

    if "price_per_post" in payload:
        price = parse_decimal(payload.get("price_per_post"))
        if price != inf.price_per_post:
            changes["price_per_post"] = {"old": money(inf.price_per_post), "new": money(price)}
            inf.price_per_post = price

    for key in ("is_active", "auto_update_enabled"):
        if key in payload:
            value = parse_bool(payload.get(key))
            if value is None:
                raise BadRequest(f"{key} must be a boolean.")
            if value != getattr(inf, key):
                changes[key] = {"old": getattr(inf, key), "new": value}
                setattr(inf, key, value)

    inf.updated_at = utcnow()
    record_event(
        s,
        actor=actor,
        action="influencer.edit",
        entity_type="Influencer",
        entity_id=inf.id,
        metadata={"display_name": inf.display_name, "changes": changes},
    )
    return inf


def set_platform_username(s: "Session", inf: Influencer, platform: str, username: str, actor: User | None) -> InfluencerPlatform:
    handle = (clean_str(username) or "").lstrip("@")
    if not handle:
        raise BadRequest("username is required.")
    row = upsert_platform(s, inf, platform, username=handle)
    record_event(
        s,
        actor=actor,
        action="influencer.platform_username",
        entity_type="Influencer",
        entity_id=inf.id,
        metadata={"platform": row.platform, "username": handle},
    )
    return row


def delete_influencer(s: "Session", inf: Influencer, actor: User | None) -> None:
    record_event(
        s,
        actor=actor,
        action="influencer.delete",
        entity_type="Influencer",
        entity_id=inf.id,
        metadata={"display_name": inf.display_name},
    )
    s.delete(inf)
    s.flush()


def influencer_stats(s: "Session") -> dict[str, Any]:
    total = s.query(func.count(Influencer.id)).scalar() or 0
    active = s.query(func.count(Influencer.id)).filter(Influencer.is_active.is_(True)).scalar() or 0
    by_tier = dict(s.query(Influencer.tier, func.count(Influencer.id)).group_by(Influencer.tier).all())
    reach, engagement = (
        s.query(func.coalesce(func.sum(Influencer.total_followers), 0), func.avg(Influencer.total_engagement_rate))
        .filter(Influencer.is_active.is_(True))
        .one()
    )
    return {
        "total": total,
        "active": active,
        "by_tier": {str(k): v for k, v in by_tier.items()},
        "total_reach": int(reach or 0),
        "total_reach_display": format_number(reach),
        "avg_engagement_display": format_percentage(engagement),
    }


# ---------- Serialization ----------
def serialize_platform(p: InfluencerPlatform) -> dict:
    return {
        "id": p.id,
        "platform": p.platform,
        "username": p.username,
        "modash_user_id": p.modash_user_id,
        "profile_url": p.profile_url,
        "followers": p.followers,
        "following": p.following,
        "engagement_rate": p.engagement_rate,
        "avg_views": p.avg_views,
        "avg_likes": p.avg_likes,
        "avg_comments": p.avg_comments,
        "is_verified": p.is_verified,
        "is_connected": p.is_connected,
        "last_synced": iso(p.last_synced),
    }


def serialize_influencer(inf: Influencer, *, detail: bool = False) -> dict:
    out = {
        "id": inf.id,
        "user_id": inf.user_id,
        "display_name": inf.display_name,
        "niches": inf.niches or [],
        "content_type": inf.content_type,
        "tier": inf.tier,
        "influencer_type": inf.influencer_type,
        "total_followers": inf.total_followers,
        "total_engagement_rate": inf.total_engagement_rate,
        "total_avg_views": inf.total_avg_views,
        "price_per_post": money(inf.price_per_post),
        "is_active": inf.is_active,
        "relationship_status": inf.relationship_status,
        "assigned_to": inf.assigned_to,
        "labels": inf.labels or [],
        "platforms": [serialize_platform(p) for p in inf.platforms],
        "modash_last_updated": iso(inf.modash_last_updated),
    }
    if detail:
        profile = inf.user.profile if inf.user else None
        out["email"] = inf.user.email if inf.user else None
        out["profile"] = (
            {
                "first_name": profile.first_name,
                "last_name": profile.last_name,
                "location_country": profile.location_country,
                "location_city": profile.location_city,
                "bio": profile.bio,
                "avatar_url": profile.avatar_url,
            }
            if profile
            else None
        )
        out["modash_data"] = load_json_object(inf.notes).get("modash_data")
        out["auto_update_enabled"] = inf.auto_update_enabled
        out["modash_update_priority"] = inf.modash_update_priority
    return out
