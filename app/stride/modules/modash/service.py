from __future__ import annotations

import json
import logging
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import case, func

from app.stride.audit import record_event
from app.stride.errors import BadRequest, Conflict, NotFound, UpstreamError
from app.stride.modules.campaigns.models import CampaignInfluencer
from app.stride.modules.influencers.models import Influencer, InfluencerPlatform
from app.stride.modules.influencers.service import update_aggregated_stats, upsert_platform
from app.stride.modules.modash.client import ModashError
from app.stride.modules.modash.identifiers import is_valid_modash_user_id
from app.stride.modules.modash.models import ModashProfileCache
from app.stride.modules.modash.tiers import calculate_priority, calculate_tier, needs_update, next_update_date
from app.stride.utils import clean_str, iso, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from app.stride.models import User

logger = logging.getLogger(__name__)

CACHE_TTL = timedelta(weeks=4)
PRIORITY_REFRESH_THRESHOLD = 75
LIVE_PARTICIPATION = ("ACCEPTED", "IN_PROGRESS")
TIER_ORDER = {"GOLD": 1, "SILVER": 2, "PARTNERED": 3, "BRONZE": 4}


def _num(v: Any) -> int:
    try:
        return int(v or 0)
    except (TypeError, ValueError):
        return 0


def _refresh_priority(s: "Session", influencer_platform_id: str, previous: ModashProfileCache | None, followers: int) -> int:
    """Priority for the next refresh: tier, staleness, live campaigns and follower growth."""
    platform_row = s.get(InfluencerPlatform, influencer_platform_id)
    inf = s.get(Influencer, platform_row.influencer_id) if platform_row else None
    if inf is None:
        return 50
    days_since = 0.0
    growth = 0.0
    if previous is not None:
        days_since = (utcnow() - previous.last_updated).total_seconds() / 86400
        if previous.followers:
            growth = (followers - previous.followers) / previous.followers * 100
    active_campaigns = (
        s.query(func.count(CampaignInfluencer.id))
        .filter(CampaignInfluencer.influencer_id == inf.id, CampaignInfluencer.status.in_(LIVE_PARTICIPATION))
        .scalar()
        or 0
    )
    priority = calculate_priority(inf.tier, days_since, active_campaigns, growth)
    inf.modash_update_priority = priority
    return priority


def cache_profile(
    s: "Session",
    client,
    influencer_platform_id: str,
    modash_user_id: str,
    platform: str,
) -> tuple[bool, str | None]:
    """
    Fetch a Modash report and replace the cache row for this platform row.
    Returns (ok, error message); failures are logged and never raised.
    """
    platform = platform.lower()
    try:
        report = client.get_profile_report(modash_user_id, platform)
    except ModashError as e:
        logger.error("Modash cache fetch failed for %s/%s: %s", platform, modash_user_id, e)
        return False, str(e)

    body = (report or {}).get("profile") if isinstance(report, dict) else None
    if not body:
        logger.error("Modash cache fetch returned no profile for %s/%s", platform, modash_user_id)
        return False, "Invalid Modash response"

    profile = body.get("profile") or {}
    now = utcnow()
    previous = (
        s.query(ModashProfileCache)
        .filter(ModashProfileCache.influencer_platform_id == influencer_platform_id, ModashProfileCache.platform == platform)
        .order_by(ModashProfileCache.last_updated.desc())
        .first()
    )
    priority = _refresh_priority(s, influencer_platform_id, previous, _num(profile.get("followers")))
    s.query(ModashProfileCache).filter(
        ModashProfileCache.influencer_platform_id == influencer_platform_id,
        ModashProfileCache.platform == platform,
    ).delete(synchronize_session=False)

    row = ModashProfileCache(
        influencer_platform_id=influencer_platform_id,
        modash_user_id=modash_user_id,
        platform=platform,
        cached_at=now,
        last_updated=now,
        expires_at=now + CACHE_TTL,
        update_priority=priority,
        username=profile.get("username"),
        fullname=profile.get("fullname"),
        followers=_num(profile.get("followers")),
        following=_num(profile.get("following")),
        engagement_rate=float(profile.get("engagementRate") or 0),
        avg_likes=_num(profile.get("avgLikes")),
        avg_comments=_num(profile.get("avgComments")),
        avg_views=_num(profile.get("avgViews")),
        avg_reels_plays=_num(profile.get("avgReelsPlays")),
        posts_count=_num(profile.get("postsCount")),
        profile_url=profile.get("url"),
        picture_url=profile.get("picture"),
        bio=profile.get("bio"),
        city=body.get("city") or profile.get("city"),
        country=body.get("country") or profile.get("country"),
        is_private=bool(body.get("isPrivate") or profile.get("isPrivate")),
        is_verified=bool(body.get("isVerified") or profile.get("isVerified")),
        contacts=body.get("contacts") or profile.get("contacts") or [],
        hashtags=body.get("hashtags") or [],
        mentions=body.get("mentions") or [],
        stats=body.get("stats") or {},
        recent_posts=body.get("recentPosts") or [],
        popular_posts=body.get("popularPosts") or [],
        sponsored_posts=body.get("sponsoredPosts") or [],
        audience=body.get("audience") or {},
        credits_used=1,
    )
    s.add(row)
    s.flush()
    logger.info("Cached Modash profile %s/%s (platform row %s)", platform, modash_user_id, influencer_platform_id)
    return True, None


def get_cached_profile(s: "Session", influencer_platform_id: str, platform: str) -> ModashProfileCache | None:
    """Latest cached row. Expired rows are still returned; refresh is lazy."""
    return (
        s.query(ModashProfileCache)
        .filter(
            ModashProfileCache.influencer_platform_id == influencer_platform_id,
            ModashProfileCache.platform == platform.lower(),
        )
        .order_by(ModashProfileCache.last_updated.desc())
        .first()
    )


def profiles_needing_update(s: "Session", limit: int = 10) -> list[ModashProfileCache]:
    now = utcnow()
    expired_first = case((ModashProfileCache.expires_at <= now, 1), else_=2)
    return (
        s.query(ModashProfileCache)
        .filter(
            (ModashProfileCache.expires_at <= now + timedelta(days=1))
            | (ModashProfileCache.update_priority > PRIORITY_REFRESH_THRESHOLD)
        )
        .order_by(expired_first, ModashProfileCache.update_priority.desc(), ModashProfileCache.expires_at.asc())
        .limit(limit)
        .all()
    )


def update_expired_profiles(s: "Session", client, limit: int = 10) -> dict[str, int]:
    """Re-fetch the most urgent cache rows. The client's fixed delay spaces the calls."""
    updated = 0
    errors = 0
    credits = 0
    for row in profiles_needing_update(s, limit):
        ok, err = cache_profile(s, client, row.influencer_platform_id, row.modash_user_id, row.platform)
        if ok:
            updated += 1
            credits += 1
        else:
            errors += 1
            logger.warning("Cache refresh failed for %s/%s: %s", row.platform, row.modash_user_id, err)
    logger.info("Cache update completed: %d updated, %d errors, %d credits used", updated, errors, credits)
    return {"updated": updated, "errors": errors, "credits_used": credits}


def influencers_due_for_update(s: "Session", limit: int = 50) -> list[dict[str, Any]]:
    """
    Active, auto-updating influencers whose tier interval has elapsed.
    GOLD first, never-updated before stale, then by stored priority.
    """
    now = utcnow()
    rows = (
        s.query(Influencer)
        .filter(Influencer.is_active.is_(True), Influencer.auto_update_enabled.is_(True))
        .all()
    )
    due = [inf for inf in rows if needs_update(inf.tier, inf.modash_last_updated, now)]
    due.sort(
        key=lambda inf: (
            TIER_ORDER.get((inf.tier or "").upper(), 5),
            inf.modash_last_updated is not None,
            inf.modash_last_updated or now,
            -(inf.modash_update_priority or 0),
        )
    )
    return [
        {
            "id": inf.id,
            "display_name": inf.display_name,
            "tier": inf.tier,
            "priority": inf.modash_update_priority,
            "modash_last_updated": iso(inf.modash_last_updated),
            "next_update_due": iso(next_update_date(inf.tier, inf.modash_last_updated)) if inf.modash_last_updated else None,
        }
        for inf in due[:limit]
    ]


def cache_stats(s: "Session") -> dict[str, Any]:
    now = utcnow()
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    total = s.query(func.count(ModashProfileCache.id)).scalar() or 0
    needing = s.query(func.count(ModashProfileCache.id)).filter(ModashProfileCache.expires_at <= now).scalar() or 0
    last = s.query(func.max(ModashProfileCache.last_updated)).scalar()
    credits = (
        s.query(func.coalesce(func.sum(ModashProfileCache.credits_used), 0))
        .filter(ModashProfileCache.cached_at >= month_start)
        .scalar()
    )
    return {
        "total_cached_profiles": total,
        "profiles_needing_update": needing,
        "last_update_run": iso(last),
        "credits_used_this_month": int(credits or 0),
    }


def refresh_platform_profile(s: "Session", client, influencer_platform_id: str, actor: "User | None") -> ModashProfileCache:
    """Re-cache one platform row and copy the headline numbers back onto it."""
    row = s.get(InfluencerPlatform, influencer_platform_id)
    if not row:
        raise NotFound("Influencer platform not found")
    platform = row.platform.lower()
    if not is_valid_modash_user_id(row.modash_user_id, platform):
        raise BadRequest("Platform has no valid Modash user id")
    ok, err = cache_profile(s, client, row.id, row.modash_user_id, platform)
    if not ok:
        raise UpstreamError(f"Modash refresh failed: {err}")
    cached = get_cached_profile(s, row.id, platform)
    row.followers = cached.followers
    row.following = cached.following
    row.engagement_rate = cached.engagement_rate
    row.avg_views = cached.avg_views or cached.avg_reels_plays
    row.avg_likes = cached.avg_likes
    row.avg_comments = cached.avg_comments
    row.is_verified = cached.is_verified
    row.last_synced = cached.last_updated
    s.flush()
    update_aggregated_stats(s, row.influencer_id)
    inf = s.get(Influencer, row.influencer_id)
    if inf is not None:
        inf.modash_last_updated = cached.last_updated
    record_event(
        s,
        actor=actor,
        action="modash.profile_refresh",
        entity_type="InfluencerPlatform",
        entity_id=row.id,
        metadata={"platform": row.platform, "modash_user_id": row.modash_user_id},
    )
    return cached


def add_discovered_to_roster(s: "Session", payload: dict, actor: "User | None") -> Influencer:
    """
    Import a discovery search result as a roster-only influencer with one
    platform row. Importing the same Modash account twice is a conflict.
    """
    platform = (clean_str(payload.get("platform")) or "instagram").lower()
    user_id = clean_str(payload.get("userId"))
    username = (clean_str(payload.get("username")) or "").lstrip("@")
    if not user_id or not is_valid_modash_user_id(user_id, platform) or not username:
        raise BadRequest("userId and username are required.")

    existing = (
        s.query(InfluencerPlatform)
        .filter(InfluencerPlatform.platform == platform.upper(), InfluencerPlatform.modash_user_id == user_id)
        .first()
    )
    if existing:
        raise Conflict("Influencer already in roster")

    followers = _num(payload.get("followers"))
    engagement = float(payload.get("engagement_rate") or 0)
    now = utcnow()
    inf = Influencer(
        display_name=clean_str(payload.get("display_name")) or username,
        niches=[],
        labels=[],
        tier=calculate_tier(followers, engagement),
        influencer_type="PARTNERED",
        relationship_status="prospect",
        created_at=now,
        updated_at=now,
    )
    s.add(inf)
    s.flush()
    upsert_platform(
        s,
        inf,
        platform.upper(),
        username=username,
        modash_user_id=user_id,
        profile_url=clean_str(payload.get("url")),
        followers=followers,
        engagement_rate=engagement,
        avg_views=_num(payload.get("avg_views")),
        is_verified=bool(payload.get("verified")),
    )
    update_aggregated_stats(s, inf.id)
    inf.notes = json.dumps(
        {"modash_data": {"platform": platform, "userId": user_id, "username": username, "source": "discovery"}}
    )
    record_event(
        s,
        actor=actor,
        action="influencer.import_discovery",
        entity_type="Influencer",
        entity_id=inf.id,
        metadata={"platform": platform, "modash_user_id": user_id, "username": username},
    )
    return inf


def serialize_cache(row: ModashProfileCache) -> dict:
    return {
        "id": row.id,
        "influencer_platform_id": row.influencer_platform_id,
        "modash_user_id": row.modash_user_id,
        "platform": row.platform,
        "username": row.username,
        "fullname": row.fullname,
        "followers": row.followers,
        "following": row.following,
        "engagement_rate": row.engagement_rate,
        "avg_likes": row.avg_likes,
        "avg_comments": row.avg_comments,
        "avg_views": row.avg_views,
        "avg_reels_plays": row.avg_reels_plays,
        "posts_count": row.posts_count,
        "profile_url": row.profile_url,
        "picture_url": row.picture_url,
        "city": row.city,
        "country": row.country,
        "is_verified": row.is_verified,
        "cached_at": iso(row.cached_at),
        "expires_at": iso(row.expires_at),
        "is_expired": row.expires_at <= utcnow(),
    }
