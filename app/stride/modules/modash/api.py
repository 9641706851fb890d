from __future__ import annotations

import logging

from flask import Blueprint, current_app, jsonify, request

from app.stride.auth import current_user
from app.stride.cache import get_cache
from app.stride.constants import MODASH_PLATFORMS
from app.stride.db import db_session
from app.stride.errors import BadRequest, NotFound, UpstreamError
from app.stride.modules.influencers.api import invalidate_influencer_cache
from app.stride.modules.influencers.service import serialize_influencer
from app.stride.modules.modash.analytics import bulk_refresh, refresh_influencer_analytics
from app.stride.modules.modash.client import ModashError
from app.stride.modules.modash.service import (
    add_discovered_to_roster,
    cache_stats,
    influencers_due_for_update,
    refresh_platform_profile,
    serialize_cache,
    update_expired_profiles,
)
from app.stride.rbac import require_permission, require_portal
from app.stride.utils import clean_str, json_body, parse_int

bp = Blueprint("modash", __name__)
logger = logging.getLogger(__name__)

CREDITS_CACHE_KEY = "modash:credits"
CREDITS_CACHE_TTL = 300


def modash_client():
    return current_app.extensions["modash_client"]


# ---------- Roster analytics ----------
@bp.post("/roster/<influencer_id>/refresh-analytics")
@require_portal("staff")
def roster_refresh_analytics(influencer_id: str):
    s = db_session()
    u = current_user()
    result = refresh_influencer_analytics(
        s, modash_client(), influencer_id, refreshed_by=u.email, payload=json_body(), actor=u
    )
    s.commit()
    invalidate_influencer_cache()
    return jsonify({"success": True, "data": result})


@bp.post("/roster/bulk-refresh-analytics")
@require_portal("staff")
def roster_bulk_refresh():
    s = db_session()
    u = current_user()
    summary = bulk_refresh(s, modash_client(), refreshed_by=u.email, actor=u)
    s.commit()
    invalidate_influencer_cache()
    return jsonify({"success": True, "data": summary})


# ---------- Profile cache ----------
@bp.post("/modash/refresh-profile")
@require_permission("SCRAPE_INFLUENCERS")
def modash_refresh_profile():
    s = db_session()
    platform_id = clean_str(json_body().get("influencer_platform_id"))
    if not platform_id:
        raise BadRequest("influencer_platform_id is required.")
    cached = refresh_platform_profile(s, modash_client(), platform_id, current_user())
    s.commit()
    invalidate_influencer_cache()
    return jsonify({"success": True, "profile": serialize_cache(cached)})


@bp.post("/modash/update-expired")
@require_permission("SCRAPE_INFLUENCERS")
def modash_update_expired():
    s = db_session()
    limit = min(max(parse_int(json_body().get("limit"), 10) or 10, 1), 50)
    summary = update_expired_profiles(s, modash_client(), limit)
    s.commit()
    return jsonify({"success": True, "data": summary})


@bp.get("/modash/credits")
@require_portal("staff")
def modash_credits():
    def _fetch() -> dict:
        try:
            return modash_client().get_credit_usage()
        except ModashError as e:
            logger.error("Modash credit lookup failed: %s", e)
            raise UpstreamError("Failed to fetch Modash credit usage") from e

    return jsonify(get_cache().cached_json(CREDITS_CACHE_KEY, _fetch, CREDITS_CACHE_TTL))


@bp.get("/modash/cache-stats")
@require_portal("staff")
def modash_cache_stats():
    return jsonify(cache_stats(db_session()))


@bp.get("/modash/update-queue")
@require_portal("staff")
def modash_update_queue():
    limit = min(max(parse_int(request.args.get("limit"), 50) or 50, 1), 200)
    return jsonify({"success": True, "data": influencers_due_for_update(db_session(), limit)})


# ---------- Discovery ----------
@bp.post("/discovery/search")
@require_permission("SCRAPE_INFLUENCERS")
def discovery_search():
    payload = json_body()
    platform = (clean_str(payload.get("platform")) or "instagram").lower()
    if platform not in MODASH_PLATFORMS:
        raise BadRequest(f"Invalid platform. Must be one of: {', '.join(MODASH_PLATFORMS)}")
    filters = payload.get("filters") or {}
    if not isinstance(filters, dict):
        raise BadRequest("filters must be an object.")
    page = max(parse_int(payload.get("page"), 0) or 0, 0)
    limit = min(max(parse_int(payload.get("limit"), 20) or 20, 1), 50)
    try:
        results = modash_client().search(platform, filters, page=page, limit=limit)
    except ModashError as e:
        logger.error("Modash discovery search failed (platform=%s): %s", platform, e)
        raise UpstreamError("Discovery search failed") from e
    return jsonify({"success": True, "data": results})


@bp.post("/discovery/add-to-roster")
@require_permission("SCRAPE_INFLUENCERS")
def discovery_add_to_roster():
    s = db_session()
    inf = add_discovered_to_roster(s, json_body(), current_user())
    s.commit()
    invalidate_influencer_cache()
    return jsonify({"success": True, "influencer": serialize_influencer(inf, detail=True)}), 201


def _platform_arg() -> str:
    platform = (clean_str(request.args.get("platform")) or "instagram").lower()
    if platform not in MODASH_PLATFORMS:
        raise BadRequest(f"Invalid platform. Must be one of: {', '.join(MODASH_PLATFORMS)}")
    return platform


@bp.get("/discovery/lookup")
@require_permission("SCRAPE_INFLUENCERS")
def discovery_lookup():
    platform = _platform_arg()
    handle = clean_str(request.args.get("handle"))
    if not handle:
        raise BadRequest("handle is required.")
    try:
        match = modash_client().search_by_handle(handle, platform)
    except ModashError as e:
        logger.error("Modash handle lookup failed (%s @%s): %s", platform, handle, e)
        raise UpstreamError("Handle lookup failed") from e
    if match is None:
        raise NotFound("No Modash account found for that handle")
    return jsonify({"success": True, "data": match})


@bp.get("/discovery/users")
@require_permission("SCRAPE_INFLUENCERS")
def discovery_users():
    """Typeahead over Modash accounts."""
    platform = _platform_arg()
    limit = min(max(parse_int(request.args.get("limit"), 10) or 10, 1), 50)
    try:
        users = modash_client().list_users(platform, clean_str(request.args.get("query")), limit)
    except ModashError as e:
        logger.error("Modash user listing failed (%s): %s", platform, e)
        raise UpstreamError("User lookup failed") from e
    return jsonify({"success": True, "data": users})
