from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.stride.auth import current_user
from app.stride.db import db_session
from app.stride.modules.brands.service import brand_for_user
from app.stride.modules.campaigns.service import serialize_campaign
from app.stride.modules.quotations.service import (
    add_quotation_influencer,
    approve_quotation,
    create_campaign_from_quotation,
    create_quotation,
    delete_quotation,
    get_quotation_or_404,
    list_quotations,
    reject_quotation,
    remove_quotation_influencer,
    serialize_quotation,
    update_quotation,
    update_quotation_influencer,
)
from app.stride.rbac import require_portal
from app.stride.utils import PaginatedResult, json_body, page_args

bp = Blueprint("quotations", __name__)


# ---------- Brand portal ----------
@bp.get("/brand/quotations")
@require_portal("brand")
def brand_quotations_list():
    s = db_session()
    page, limit = page_args(request.args)
    brand = brand_for_user(s, current_user())
    if brand is None:
        return jsonify(PaginatedResult(page=page, limit=limit).to_dict(serialize_quotation))
    result = list_quotations(
        s, brand_id=brand.id, status=(request.args.get("status") or "").strip() or None, page=page, limit=limit
    )
    return jsonify(result.to_dict(serialize_quotation))


@bp.post("/brand/quotations")
@require_portal("brand")
def brand_quotations_create():
    s = db_session()
    q = create_quotation(s, json_body(), current_user())
    s.commit()
    return jsonify({"quotation": serialize_quotation(q, detail=True)}), 201


# ---------- Staff ----------
@bp.get("/staff/quotations")
@require_portal("staff")
def staff_quotations_list():
    s = db_session()
    page, limit = page_args(request.args)
    result = list_quotations(
        s,
        brand_id=(request.args.get("brand_id") or "").strip() or None,
        status=(request.args.get("status") or "").strip() or None,
        search=(request.args.get("search") or "").strip() or None,
        page=page,
        limit=limit,
    )
    return jsonify(result.to_dict(serialize_quotation))


@bp.get("/staff/quotations/<quotation_id>")
@require_portal("staff")
def staff_quotation_detail(quotation_id: str):
    s = db_session()
    return jsonify({"quotation": serialize_quotation(get_quotation_or_404(s, quotation_id), detail=True)})


@bp.patch("/staff/quotations/<quotation_id>")
@require_portal("staff")
def staff_quotation_update(quotation_id: str):
    s = db_session()
    q = update_quotation(s, get_quotation_or_404(s, quotation_id), json_body(), current_user())
    s.commit()
    return jsonify({"quotation": serialize_quotation(q, detail=True)})


@bp.delete("/staff/quotations/<quotation_id>")
@require_portal("staff")
def staff_quotation_delete(quotation_id: str):
    s = db_session()
    delete_quotation(s, get_quotation_or_404(s, quotation_id), current_user())
    s.commit()
    return jsonify({"success": True})


@bp.post("/staff/quotations/<quotation_id>/approve")
@require_portal("staff")
def staff_quotation_approve(quotation_id: str):
    s = db_session()
    q = approve_quotation(s, get_quotation_or_404(s, quotation_id), current_user(), json_body().get("notes"))
    s.commit()
    return jsonify({"quotation": serialize_quotation(q, detail=True)})


@bp.post("/staff/quotations/<quotation_id>/reject")
@require_portal("staff")
def staff_quotation_reject(quotation_id: str):
    s = db_session()
    q = reject_quotation(s, get_quotation_or_404(s, quotation_id), current_user(), json_body().get("notes"))
    s.commit()
    return jsonify({"quotation": serialize_quotation(q, detail=True)})


@bp.post("/staff/quotations/<quotation_id>/convert")
@require_portal("staff")
def staff_quotation_convert(quotation_id: str):
    s = db_session()
    q = get_quotation_or_404(s, quotation_id)
    campaign = create_campaign_from_quotation(s, q, current_user())
    s.commit()
    return jsonify({"quotation": serialize_quotation(q), "campaign": serialize_campaign(campaign, detail=True)}), 201


@bp.post("/staff/quotations/<quotation_id>/influencers")
@require_portal("staff")
def staff_quotation_influencer_add(quotation_id: str):
    s = db_session()
    q = get_quotation_or_404(s, quotation_id)
    add_quotation_influencer(s, q, json_body(), current_user())
    s.commit()
    return jsonify({"quotation": serialize_quotation(q, detail=True)}), 201


@bp.patch("/staff/quotations/<quotation_id>/influencers/<influencer_id>")
@require_portal("staff")
def staff_quotation_influencer_update(quotation_id: str, influencer_id: str):
    s = db_session()
    q = get_quotation_or_404(s, quotation_id)
    update_quotation_influencer(s, q, influencer_id, json_body(), current_user())
    s.commit()
    return jsonify({"quotation": serialize_quotation(q, detail=True)})


@bp.delete("/staff/quotations/<quotation_id>/influencers/<influencer_id>")
@require_portal("staff")
def staff_quotation_influencer_remove(quotation_id: str, influencer_id: str):
    s = db_session()
    q = get_quotation_or_404(s, quotation_id)
    remove_quotation_influencer(s, q, influencer_id, current_user())
    s.commit()
    return jsonify({"quotation": serialize_quotation(q, detail=True)})
