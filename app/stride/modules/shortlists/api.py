from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.stride.auth import current_user
from app.stride.db import db_session
from app.stride.modules.brands.service import require_brand_scope
from app.stride.modules.shortlists.service import (
    add_influencers,
    create_shortlist,
    delete_shortlist,
    duplicate_shortlist,
    get_shortlist_or_404,
    influencer_shortlists,
    list_shortlists,
    remove_influencer,
    serialize_shortlist,
    shortlist_stats,
    update_shortlist,
)
from app.stride.rbac import require_portal
from app.stride.utils import clean_str, json_body

bp = Blueprint("shortlists", __name__)


def _scoped(shortlist_id: str):
    s = db_session()
    scope = require_brand_scope(s, current_user(), None)
    return s, get_shortlist_or_404(s, shortlist_id, scope)


@bp.get("/shortlists")
@require_portal("staff", "brand")
def shortlists_list():
    s = db_session()
    brand_id = require_brand_scope(s, current_user(), (request.args.get("brand_id") or "").strip() or None)
    influencer_id = (request.args.get("influencer_id") or "").strip()
    if influencer_id:
        rows = influencer_shortlists(s, brand_id, influencer_id)
        return jsonify({"data": [serialize_shortlist(sl, detail=False) for sl in rows]})
    rows = list_shortlists(s, brand_id)
    return jsonify({"data": [serialize_shortlist(sl) for sl in rows], "stats": shortlist_stats(s, brand_id)})


@bp.post("/shortlists")
@require_portal("staff", "brand")
def shortlists_create():
    s = db_session()
    payload = json_body()
    brand_id = require_brand_scope(s, current_user(), clean_str(payload.get("brand_id")))
    sl = create_shortlist(s, brand_id, payload, current_user())
    s.commit()
    return jsonify({"shortlist": serialize_shortlist(sl)}), 201


@bp.get("/shortlists/<shortlist_id>")
@require_portal("staff", "brand")
def shortlist_detail(shortlist_id: str):
    _, sl = _scoped(shortlist_id)
    return jsonify({"shortlist": serialize_shortlist(sl)})


@bp.patch("/shortlists/<shortlist_id>")
@require_portal("staff", "brand")
def shortlist_update(shortlist_id: str):
    s, sl = _scoped(shortlist_id)
    update_shortlist(s, sl, json_body(), current_user())
    s.commit()
    return jsonify({"shortlist": serialize_shortlist(sl)})


@bp.delete("/shortlists/<shortlist_id>")
@require_portal("staff", "brand")
def shortlist_delete(shortlist_id: str):
    s, sl = _scoped(shortlist_id)
    delete_shortlist(s, sl, current_user())
    s.commit()
    return jsonify({"success": True})


@bp.post("/shortlists/<shortlist_id>/duplicate")
@require_portal("staff", "brand")
def shortlist_duplicate(shortlist_id: str):
    s, sl = _scoped(shortlist_id)
    copy = duplicate_shortlist(s, sl, json_body().get("name"), current_user())
    s.commit()
    return jsonify({"shortlist": serialize_shortlist(copy)}), 201


@bp.post("/shortlists/<shortlist_id>/influencers")
@require_portal("staff", "brand")
def shortlist_add_influencers(shortlist_id: str):
    s, sl = _scoped(shortlist_id)
    added = add_influencers(s, sl, json_body(), current_user())
    s.commit()
    return jsonify({"added": added, "shortlist": serialize_shortlist(sl)})


@bp.delete("/shortlists/<shortlist_id>/influencers/<influencer_id>")
@require_portal("staff", "brand")
def shortlist_remove_influencer(shortlist_id: str, influencer_id: str):
    s, sl = _scoped(shortlist_id)
    remove_influencer(s, sl, influencer_id, current_user())
    s.commit()
    return jsonify({"success": True, "shortlist": serialize_shortlist(sl)})
