from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.stride.auth import current_user
from app.stride.db import db_session
from app.stride.errors import BadRequest
from app.stride.modules.influencers.service import influencer_for_user
from app.stride.modules.invoices.service import (
    create_invoice,
    get_invoice_or_404,
    invoice_stats,
    list_invoices,
    serialize_invoice,
    transition_invoice,
)
from app.stride.rbac import require_permission, require_portal
from app.stride.utils import PaginatedResult, json_body, page_args

bp = Blueprint("invoices", __name__)

_FILTER_KEYS = ("status", "influencer_id", "campaign_id", "search", "date_from", "date_to")


# ---------- Influencer portal ----------
@bp.get("/influencer/invoices")
@require_portal("influencer")
def influencer_invoices_list():
    s = db_session()
    page, limit = page_args(request.args)
    inf = influencer_for_user(s, current_user())
    if inf is None:
        return jsonify(PaginatedResult(page=page, limit=limit).to_dict(serialize_invoice))
    filters = {k: request.args.get(k) for k in _FILTER_KEYS}
    filters["influencer_id"] = inf.id
    body = list_invoices(s, filters, page, limit).to_dict(serialize_invoice)
    body["stats"] = invoice_stats(s, inf.id)
    return jsonify(body)


@bp.post("/influencer/invoices")
@require_portal("influencer")
def influencer_invoices_create():
    s = db_session()
    inv = create_invoice(s, current_user(), json_body())
    s.commit()
    return jsonify({"invoice": serialize_invoice(inv)}), 201


# ---------- Staff ----------
@bp.get("/staff/invoices")
@require_permission("VIEW_FINANCIAL_DATA")
def staff_invoices_list():
    s = db_session()
    page, limit = page_args(request.args)
    filters = {k: request.args.get(k) for k in _FILTER_KEYS}
    body = list_invoices(s, filters, page, limit).to_dict(serialize_invoice)
    body["stats"] = invoice_stats(s)
    return jsonify(body)


@bp.get("/staff/invoices/<invoice_id>")
@require_permission("VIEW_FINANCIAL_DATA")
def staff_invoice_detail(invoice_id: str):
    s = db_session()
    return jsonify({"invoice": serialize_invoice(get_invoice_or_404(s, invoice_id))})


@bp.patch("/staff/invoices/<invoice_id>")
@require_permission("VIEW_FINANCIAL_DATA")
def staff_invoice_action(invoice_id: str):
    s = db_session()
    payload = json_body()
    if not payload.get("action"):
        raise BadRequest("action is required.")
    inv = transition_invoice(
        s, get_invoice_or_404(s, invoice_id), payload["action"], current_user(), payload.get("staff_notes") or payload.get("notes")
    )
    s.commit()
    return jsonify({"invoice": serialize_invoice(inv)})
