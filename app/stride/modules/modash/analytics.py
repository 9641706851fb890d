"""
Roster analytics refresh.

Resolves which Modash account an influencer maps to, pulls (or accepts)
fresh metrics, writes them to the platform row and the influencer's
`notes.modash_data` snapshot, then recalculates the influencer totals.
"""
from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from app.stride.audit import record_event
from app.stride.errors import BadRequest, NotFound, UpstreamError
from app.stride.modules.influencers.models import Influencer
from app.stride.modules.influencers.service import update_aggregated_stats, upsert_platform
from app.stride.modules.modash.client import ModashError
from app.stride.modules.modash.identifiers import Candidate, resolve_modash_user_id
from app.stride.modules.modash.metrics import NormalizedMetrics, normalize_metrics
from app.stride.utils import load_json_object, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from app.stride.models import User

logger = logging.getLogger(__name__)

REFRESH_SOURCE = "roster_panel_refresh"


def resolve_user_id_for_refresh(payload: dict, notes: dict, platform: str) -> str:
    """
    Priority: explicit payload id, then the id stored for this platform,
    then the legacy top-level id (only if it was stored for this platform
    or with no platform at all).
    """
    modash_data = notes.get("modash_data") or {}
    stored_platforms = modash_data.get("platforms") or {}
    stored_platform_id = (stored_platforms.get(platform) or {}).get("userId")
    legacy_id = modash_data.get("userId") or modash_data.get("modash_user_id")

    def _legacy_platform_matches() -> bool:
        legacy_platform = str(modash_data.get("platform") or "").lower()
        return not legacy_platform or legacy_platform == platform

    resolved = resolve_modash_user_id(
        [
            Candidate(payload.get("modashUserId"), "payload"),
            Candidate(stored_platform_id, "platform-specific"),
            Candidate(legacy_id, "legacy", _legacy_platform_matches),
        ],
        platform,
    )
    if not resolved:
        raise BadRequest(
            "No valid Modash user ID found - cannot refresh analytics. "
            "Please ensure userId is a valid Modash identifier (not an internal UUID)."
        )
    user_id, source = resolved
    logger.debug("Resolved Modash user id from %s source", source)
    return user_id


def fetch_or_use_metrics(client, user_id: str, platform: str, supplied: dict | None) -> tuple[dict, dict | None]:
    """Returns (raw metrics, profile snapshot). Supplied metrics skip the API call."""
    if supplied is not None:
        return supplied, None

    try:
        report = client.get_profile_report(user_id, platform)
    except ModashError as e:
        logger.error("Modash report fetch failed for %s/%s: %s", platform, user_id, e)
        raise UpstreamError("Failed to fetch fresh analytics from Modash") from e

    if not isinstance(report, dict) or not report.get("profile"):
        raise UpstreamError("Failed to fetch fresh analytics from Modash")

    profile = (report.get("profile") or {}).get("profile") or {}
    avg_views = profile.get("avgViews")
    if avg_views is None:
        avg_views = profile.get("avgReelsPlays")
    if avg_views is None:
        avg_views = 0

    raw = {
        "followers": profile.get("followers"),
        "engagementRate": profile.get("engagementRate"),
        "avgViews": avg_views,
        "avgLikes": profile.get("avgLikes"),
        "avgComments": profile.get("avgComments"),
        "username": profile.get("username"),
        "url": profile.get("url"),
        "picture": profile.get("picture"),
    }
    snapshot = {
        "userId": user_id,
        "username": profile.get("username"),
        "fullname": profile.get("fullname"),
        "followers": profile.get("followers"),
        "engagementRate": profile.get("engagementRate"),
        "avgLikes": profile.get("avgLikes"),
        "avgComments": profile.get("avgComments"),
        "averageViews": avg_views,
        "url": profile.get("url"),
        "picture": profile.get("picture"),
    }
    return raw, snapshot


def _merged_notes(
    notes: dict,
    *,
    platform: str,
    user_id: str,
    metrics: NormalizedMetrics,
    snapshot: dict | None,
    display_name: str,
    refreshed_by: str,
    now_iso: str,
) -> dict:
    existing = dict(notes.get("modash_data") or {})
    platforms = dict(existing.get("platforms") or {})
    prev = dict(platforms.get(platform) or {})

    platforms[platform] = {
        **prev,
        "userId": user_id,
        "username": metrics["username"],
        "fullname": (snapshot or {}).get("fullname") or prev.get("fullname") or display_name,
        "followers": metrics["followers"],
        "engagementRate": metrics["engagementRate"],
        "avgViews": metrics["avgViews"],
        "avgLikes": metrics["avgLikes"],
        "avgComments": metrics["avgComments"],
        "url": metrics["profileUrl"],
        "picture": metrics["picture"],
        "last_refreshed": now_iso,
        "refreshed_by": refreshed_by,
        "cached_payload": snapshot or prev.get("cached_payload"),
    }

    return {
        **notes,
        "modash_data": {
            **existing,
            "platform": platform,
            "latest_platform": platform,
            "userId": user_id,
            "modash_user_id": user_id,
            "username": metrics["username"],
            "url": metrics["profileUrl"],
            "picture": metrics["picture"],
            "followers": metrics["followers"],
            "engagementRate": metrics["engagementRate"],
            "avgViews": metrics["avgViews"],
            "avgLikes": metrics["avgLikes"],
            "avgComments": metrics["avgComments"],
            "last_refreshed": now_iso,
            "refreshed_by": refreshed_by,
            "source": REFRESH_SOURCE,
            "profile_snapshot": snapshot or existing.get("profile_snapshot"),
            "platforms": platforms,
        },
    }


def refresh_influencer_analytics(
    s: "Session",
    client,
    influencer_id: str,
    *,
    refreshed_by: str,
    payload: dict | None = None,
    actor: "User | None" = None,
) -> dict[str, Any]:
    """
    Refresh one influencer's analytics. The platform upsert and notes rewrite
    share the caller's transaction; the caller commits.
    """
    payload = payload or {}
    inf = s.get(Influencer, influencer_id)
    if not inf:
        raise NotFound("Influencer not found")

    notes = load_json_object(inf.notes)
    stored = notes.get("modash_data") or {}
    platform = str(payload.get("platform") or stored.get("platform") or "instagram").lower()
    platform_upper = platform.upper()

    user_id = resolve_user_id_for_refresh(payload, notes, platform)
    logger.info("Refreshing analytics influencer=%s modash_user_id=%s platform=%s", influencer_id, user_id, platform)

    raw, snapshot = fetch_or_use_metrics(client, user_id, platform, payload.get("metrics"))
    metrics = normalize_metrics(
        raw,
        {
            "username": (snapshot or {}).get("username") or stored.get("username") or inf.display_name,
            "profileUrl": (snapshot or {}).get("url") or stored.get("url"),
            "picture": (snapshot or {}).get("picture") or stored.get("picture"),
        },
    )

    now = utcnow()
    now_iso = now.isoformat() + "Z"

    upsert_platform(
        s,
        inf,
        platform_upper,
        username=metrics["username"],
        modash_user_id=user_id,
        profile_url=metrics["profileUrl"],
        followers=int(metrics["followers"] or 0),
        engagement_rate=float(metrics["engagementRate"] or 0),
        avg_views=int(round(float(metrics["avgViews"] or 0))),
        avg_likes=int(metrics["avgLikes"]) if metrics["avgLikes"] is not None else None,
        avg_comments=int(metrics["avgComments"]) if metrics["avgComments"] is not None else None,
        is_connected=True,
        last_synced=now,
    )
    inf.notes = json.dumps(
        _merged_notes(
            notes,
            platform=platform,
            user_id=user_id,
            metrics=metrics,
            snapshot=snapshot,
            display_name=inf.display_name,
            refreshed_by=refreshed_by,
            now_iso=now_iso,
        )
    )
    inf.modash_last_updated = now
    inf.updated_at = now
    s.flush()

    update_aggregated_stats(s, inf.id)

    record_event(
        s,
        actor=actor,
        action="influencer.analytics_refresh",
        entity_type="Influencer",
        entity_id=inf.id,
        metadata={"platform": platform_upper, "modash_user_id": user_id, "fetched": snapshot is not None},
    )

    return {
        "influencerId": inf.id,
        "platform": platform_upper,
        "modashUserId": user_id,
        "metrics": {
            "followers": metrics["followers"],
            "engagementRate": metrics["engagementRate"],
            "avgViews": metrics["avgViews"],
            "avgLikes": metrics["avgLikes"],
            "avgComments": metrics["avgComments"],
        },
        "totals": {
            "total_followers": inf.total_followers,
            "total_engagement_rate": inf.total_engagement_rate,
            "total_avg_views": inf.total_avg_views,
        },
        "lastRefreshed": now_iso,
    }


def bulk_refresh(s: "Session", client, *, refreshed_by: str, actor: "User | None" = None) -> dict[str, Any]:
    """
    Refresh every influencer that has stored Modash data. Influencers with
    no resolvable id are skipped; one failure never stops the batch.
    """
    candidates = (
        s.query(Influencer)
        .filter(Influencer.notes.isnot(None), Influencer.notes != "")
        .order_by(Influencer.display_name.asc())
        .all()
    )
    success = 0
    skipped = 0
    errors: list[str] = []
    for inf in candidates:
        notes = load_json_object(inf.notes)
        platform = str((notes.get("modash_data") or {}).get("platform") or "instagram").lower()
        try:
            resolve_user_id_for_refresh({}, notes, platform)
        except BadRequest:
            skipped += 1
            continue
        # A failed refresh rolls back to this savepoint; earlier influencers stay pending for commit.
        try:
            with s.begin_nested():
                refresh_influencer_analytics(s, client, inf.id, refreshed_by=refreshed_by, actor=actor)
            success += 1
        except Exception as e:
            message = getattr(e, "message", None) or str(e)
            logger.warning("Bulk refresh failed for influencer %s: %s", inf.id, message)
            errors.append(f"{inf.display_name}: {message}")

    logger.info("Bulk refresh complete: success=%d errors=%d skipped=%d", success, len(errors), skipped)
    return {
        "total": len(candidates),
        "success": success,
        "errors": len(errors),
        "skipped": skipped,
        "messages": errors,
    }
