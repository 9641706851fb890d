from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.stride.auth import current_user
from app.stride.db import db_session
from app.stride.errors import BadRequest, Forbidden
from app.stride.modules.brands.service import (
    add_contact,
    brand_for_user,
    brand_stats,
    create_brand,
    delete_brand,
    get_brand_or_404,
    list_brands,
    onboard_brand,
    remove_contact,
    serialize_brand,
    serialize_contact,
    update_brand,
)
from app.stride.rbac import is_staff, require_auth, require_portal
from app.stride.utils import json_body, page_args

bp = Blueprint("brands", __name__)


@bp.get("/brands")
@require_portal("staff")
def brands_list():
    s = db_session()
    page, limit = page_args(request.args)
    result, counts = list_brands(
        s,
        search=(request.args.get("search") or "").strip() or None,
        industry=(request.args.get("industry") or "").strip() or None,
        page=page,
        limit=limit,
    )
    body = result.to_dict(lambda b: serialize_brand(b, counts.get(b.id, 0)))
    if request.args.get("stats") == "1":
        body["stats"] = brand_stats(s)
    return jsonify(body)


@bp.post("/brands")
@require_portal("staff")
def brands_create():
    s = db_session()
    brand = create_brand(s, json_body(), current_user())
    s.commit()
    return jsonify({"brand": serialize_brand(brand)}), 201


def _visible_brand(brand_id: str):
    s = db_session()
    u = current_user()
    brand = get_brand_or_404(s, brand_id)
    if not is_staff(u) and brand.user_id != u.id:
        raise Forbidden("You do not have access to this brand")
    return s, u, brand


@bp.get("/brands/<brand_id>")
@require_auth
def brand_detail(brand_id: str):
    _, _, brand = _visible_brand(brand_id)
    return jsonify({"brand": serialize_brand(brand)})


@bp.patch("/brands/<brand_id>")
@require_auth
def brand_update(brand_id: str):
    s, u, brand = _visible_brand(brand_id)
    update_brand(s, brand, json_body(), u)
    s.commit()
    return jsonify({"brand": serialize_brand(brand)})


@bp.delete("/brands/<brand_id>")
@require_portal("staff")
def brand_delete(brand_id: str):
    s = db_session()
    delete_brand(s, get_brand_or_404(s, brand_id), current_user())
    s.commit()
    return jsonify({"success": True})


@bp.post("/brands/<brand_id>/contacts")
@require_auth
def brand_contact_add(brand_id: str):
    s, u, brand = _visible_brand(brand_id)
    contact = add_contact(s, brand, json_body(), u)
    s.commit()
    return jsonify({"contact": serialize_contact(contact)}), 201


@bp.delete("/brands/<brand_id>/contacts/<contact_id>")
@require_auth
def brand_contact_remove(brand_id: str, contact_id: str):
    s, u, brand = _visible_brand(brand_id)
    remove_contact(s, brand, contact_id, u)
    s.commit()
    return jsonify({"success": True})


# ---------- Brand portal ----------
@bp.get("/brand/profile")
@require_portal("brand")
def brand_profile():
    s = db_session()
    brand = brand_for_user(s, current_user())
    return jsonify({"brand": serialize_brand(brand) if brand else None, "onboarded": brand is not None})


@bp.post("/brand/onboarding")
@require_portal("brand")
def brand_onboarding():
    s = db_session()
    payload = json_body()
    if not payload:
        raise BadRequest("Request body is required")
    brand = onboard_brand(s, current_user(), payload)
    s.commit()
    return jsonify({"success": True, "brand": serialize_brand(brand)})
