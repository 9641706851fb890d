from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from app.stride.auth import current_user
from app.stride.cache import get_cache
from app.stride.db import db_session
from app.stride.errors import BadRequest, Forbidden, NotFound
from app.stride.modules.campaigns.service import serialize_participation
from app.stride.modules.influencers.service import (
    create_influencer,
    delete_influencer,
    get_influencer_or_404,
    influencer_campaigns,
    influencer_for_user,
    influencer_stats,
    list_influencers,
    serialize_influencer,
    serialize_platform,
    set_platform_username,
    update_influencer,
)
from app.stride.modules.users.service import PROFILE_FIELDS, update_user_profile
from app.stride.rbac import is_staff, require_auth, require_permission, require_portal
from app.stride.utils import json_body, page_args

bp = Blueprint("influencers", __name__)
logger = logging.getLogger(__name__)

LIST_CACHE_PREFIX = "influencers:list:"
_FILTER_KEYS = (
    "search",
    "niches",
    "platforms",
    "countries",
    "min_followers",
    "max_followers",
    "min_engagement",
    "max_engagement",
    "min_price",
    "max_price",
    "tier",
    "influencer_type",
    "include_inactive",
)
# Fields an influencer may edit on their own record
_SELF_EDITABLE = ("display_name", "niches", "price_per_post")


def invalidate_influencer_cache() -> None:
    removed = get_cache().delete_pattern(f"{LIST_CACHE_PREFIX}*")
    if removed:
        logger.debug("Invalidated %d cached influencer list pages", removed)


@bp.get("/influencers")
@require_permission("VIEW_ALL_INFLUENCERS")
def influencers_list():
    page, limit = page_args(request.args)
    filters = {k: request.args.get(k) for k in _FILTER_KEYS if request.args.get(k) not in (None, "")}
    key = LIST_CACHE_PREFIX + "&".join(f"{k}={v}" for k, v in sorted(filters.items())) + f"&page={page}&limit={limit}"

    def _produce() -> dict:
        result = list_influencers(db_session(), filters, page, limit)
        return result.to_dict(serialize_influencer)

    return jsonify(get_cache().cached_json(key, _produce))


@bp.post("/influencers")
@require_portal("staff")
def influencers_create():
    s = db_session()
    inf = create_influencer(s, json_body(), current_user())
    s.commit()
    invalidate_influencer_cache()
    return jsonify({"influencer": serialize_influencer(inf, detail=True)}), 201


@bp.get("/influencers/stats")
@require_portal("staff")
def influencers_stats():
    return jsonify(influencer_stats(db_session()))


@bp.get("/influencers/<influencer_id>")
@require_permission("VIEW_ALL_INFLUENCERS")
def influencer_detail(influencer_id: str):
    s = db_session()
    inf = get_influencer_or_404(s, influencer_id)
    body = serialize_influencer(inf, detail=True)
    if is_staff(current_user()):
        body["campaigns"] = [serialize_participation(r) for r in influencer_campaigns(s, inf.id)]
    return jsonify({"influencer": body})


@bp.patch("/influencers/<influencer_id>")
@require_permission("EDIT_INFLUENCER_TAGS")
def influencer_update(influencer_id: str):
    s = db_session()
    inf = update_influencer(s, get_influencer_or_404(s, influencer_id), json_body(), current_user())
    s.commit()
    invalidate_influencer_cache()
    return jsonify({"influencer": serialize_influencer(inf, detail=True)})


@bp.delete("/influencers/<influencer_id>")
@require_portal("staff")
def influencer_delete(influencer_id: str):
    s = db_session()
    delete_influencer(s, get_influencer_or_404(s, influencer_id), current_user())
    s.commit()
    invalidate_influencer_cache()
    return jsonify({"success": True})


@bp.put("/influencers/<influencer_id>/platform-username")
@require_auth
def influencer_platform_username(influencer_id: str):
    s = db_session()
    u = current_user()
    inf = get_influencer_or_404(s, influencer_id)
    if not is_staff(u) and inf.user_id != u.id:
        raise Forbidden("You can only update your own platforms")
    payload = json_body()
    if not payload.get("platform"):
        raise BadRequest("platform is required.")
    row = set_platform_username(s, inf, payload["platform"], payload.get("username"), u)
    s.commit()
    invalidate_influencer_cache()
    return jsonify({"platform": serialize_platform(row)})


# ---------- Influencer portal ----------
def _own_influencer(s):
    inf = influencer_for_user(s, current_user())
    if inf is None:
        raise NotFound("No influencer profile for this account")
    return inf


@bp.get("/influencer/profile")
@require_portal("influencer")
def influencer_profile():
    s = db_session()
    return jsonify({"influencer": serialize_influencer(_own_influencer(s), detail=True)})


@bp.patch("/influencer/profile")
@require_portal("influencer")
def influencer_profile_update():
    s = db_session()
    u = current_user()
    inf = _own_influencer(s)
    payload = json_body()
    own = {k: payload[k] for k in _SELF_EDITABLE if k in payload}
    profile = {k: payload[k] for k in PROFILE_FIELDS if k in payload}
    if not own and not profile:
        raise BadRequest("No valid fields to update")
    if own:
        update_influencer(s, inf, own, u)
    if profile:
        update_user_profile(s, u, profile, u)
    s.commit()
    invalidate_influencer_cache()
    return jsonify({"influencer": serialize_influencer(inf, detail=True)})
