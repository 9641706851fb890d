from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.stride.auth import current_user
from app.stride.db import db_session
from app.stride.errors import BadRequest, NotFound
from app.stride.modules.brands.service import require_brand_scope
from app.stride.modules.campaigns.service import (
    assign_influencer,
    campaign_statistics,
    campaign_timeline,
    change_campaign_status,
    create_campaign,
    delete_campaign,
    duplicate_campaign,
    get_campaign_or_404,
    influencer_participations,
    list_campaigns,
    remove_influencer,
    respond_to_invitation,
    serialize_campaign,
    serialize_participation,
    submit_content,
    update_campaign,
    update_participation,
)
from app.stride.modules.influencers.service import influencer_for_user
from app.stride.rbac import require_permission, require_portal
from app.stride.utils import json_body, page_args

bp = Blueprint("campaigns", __name__)


def _visible_campaign(campaign_id: str):
    """Staff see every campaign; brand users only their own brand's."""
    s = db_session()
    c = get_campaign_or_404(s, campaign_id)
    scope = require_brand_scope(s, current_user(), None)
    if scope is not None and c.brand_id != scope:
        raise NotFound("Campaign not found")
    return s, c


@bp.get("/campaigns")
@require_portal("staff", "brand")
def campaigns_list():
    s = db_session()
    page, limit = page_args(request.args)
    brand_id = require_brand_scope(s, current_user(), (request.args.get("brand_id") or "").strip() or None)
    result = list_campaigns(
        s,
        brand_id=brand_id,
        status=(request.args.get("status") or "").strip() or None,
        search=(request.args.get("search") or "").strip() or None,
        page=page,
        limit=limit,
    )
    return jsonify(result.to_dict(serialize_campaign))


@bp.post("/campaigns")
@require_permission("CREATE_CAMPAIGNS")
def campaigns_create():
    s = db_session()
    c = create_campaign(s, json_body(), current_user())
    s.commit()
    return jsonify({"campaign": serialize_campaign(c, detail=True)}), 201


@bp.get("/campaigns/<campaign_id>")
@require_portal("staff", "brand")
def campaign_detail(campaign_id: str):
    _, c = _visible_campaign(campaign_id)
    return jsonify({"campaign": serialize_campaign(c, detail=True)})


@bp.patch("/campaigns/<campaign_id>")
@require_permission("CREATE_CAMPAIGNS")
def campaign_update(campaign_id: str):
    s = db_session()
    c = update_campaign(s, get_campaign_or_404(s, campaign_id), json_body(), current_user())
    s.commit()
    return jsonify({"campaign": serialize_campaign(c, detail=True)})


@bp.delete("/campaigns/<campaign_id>")
@require_permission("CREATE_CAMPAIGNS")
def campaign_delete(campaign_id: str):
    s = db_session()
    delete_campaign(s, get_campaign_or_404(s, campaign_id), current_user())
    s.commit()
    return jsonify({"success": True})


@bp.post("/campaigns/<campaign_id>/status")
@require_permission("CREATE_CAMPAIGNS")
def campaign_status(campaign_id: str):
    s = db_session()
    payload = json_body()
    if not payload.get("status"):
        raise BadRequest("status is required.")
    c = change_campaign_status(
        s, get_campaign_or_404(s, campaign_id), payload["status"], current_user(), reason=payload.get("reason")
    )
    s.commit()
    return jsonify({"campaign": serialize_campaign(c)})


@bp.post("/campaigns/<campaign_id>/duplicate")
@require_permission("CREATE_CAMPAIGNS")
def campaign_duplicate(campaign_id: str):
    s = db_session()
    copy = duplicate_campaign(s, get_campaign_or_404(s, campaign_id), json_body().get("name"), current_user())
    s.commit()
    return jsonify({"campaign": serialize_campaign(copy, detail=True)}), 201


# ---------- Participants ----------
@bp.get("/campaigns/<campaign_id>/influencers")
@require_portal("staff", "brand")
def campaign_influencers(campaign_id: str):
    _, c = _visible_campaign(campaign_id)
    status = (request.args.get("status") or "").strip().upper()
    rows = [r for r in c.participants if not status or r.status == status]
    return jsonify({"data": [serialize_participation(r) for r in rows]})


@bp.post("/campaigns/<campaign_id>/influencers")
@require_permission("ASSIGN_CAMPAIGNS")
def campaign_assign(campaign_id: str):
    s = db_session()
    row = assign_influencer(s, get_campaign_or_404(s, campaign_id), json_body(), current_user())
    s.commit()
    return jsonify({"participation": serialize_participation(row)}), 201


@bp.patch("/campaigns/<campaign_id>/influencers/<influencer_id>")
@require_permission("ASSIGN_CAMPAIGNS")
def campaign_participation_update(campaign_id: str, influencer_id: str):
    s = db_session()
    row = update_participation(s, get_campaign_or_404(s, campaign_id), influencer_id, json_body(), current_user())
    s.commit()
    return jsonify({"participation": serialize_participation(row)})


@bp.delete("/campaigns/<campaign_id>/influencers/<influencer_id>")
@require_permission("ASSIGN_CAMPAIGNS")
def campaign_unassign(campaign_id: str, influencer_id: str):
    s = db_session()
    remove_influencer(s, get_campaign_or_404(s, campaign_id), influencer_id, current_user())
    s.commit()
    return jsonify({"success": True})


@bp.get("/campaigns/<campaign_id>/timeline")
@require_portal("staff", "brand")
def campaign_timeline_get(campaign_id: str):
    _, c = _visible_campaign(campaign_id)
    return jsonify({"campaign_id": c.id, "events": campaign_timeline(c)})


@bp.get("/campaigns/<campaign_id>/statistics")
@require_portal("staff", "brand")
def campaign_statistics_get(campaign_id: str):
    _, c = _visible_campaign(campaign_id)
    return jsonify({"campaign_id": c.id, "statistics": campaign_statistics(c)})


# ---------- Influencer portal ----------
@bp.get("/influencer/campaigns")
@require_portal("influencer")
def influencer_campaigns_list():
    s = db_session()
    inf = influencer_for_user(s, current_user())
    if inf is None:
        return jsonify({"data": []})
    rows = influencer_participations(s, inf.id, (request.args.get("status") or "").strip() or None)
    return jsonify({"data": [serialize_participation(r, with_campaign=True) for r in rows]})


@bp.post("/influencer/campaigns/<campaign_id>/respond")
@require_portal("influencer")
def influencer_campaign_respond(campaign_id: str):
    s = db_session()
    row = respond_to_invitation(s, current_user(), campaign_id, json_body())
    s.commit()
    return jsonify({"participation": serialize_participation(row)})


@bp.post("/influencer/campaigns/<campaign_id>/submit-content")
@require_portal("influencer")
def influencer_campaign_submit(campaign_id: str):
    s = db_session()
    row = submit_content(s, current_user(), campaign_id, json_body())
    s.commit()
    return jsonify({"participation": serialize_participation(row)})
