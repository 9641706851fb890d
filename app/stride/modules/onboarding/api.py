from __future__ import annotations

from flask import Blueprint, jsonify

from app.stride.auth import current_user
from app.stride.db import db_session
from app.stride.errors import BadRequest
from app.stride.modules.influencers.service import serialize_influencer
from app.stride.modules.onboarding.service import (
    complete_signed_onboarding,
    complete_step,
    onboard_partnered,
    onboarding_progress,
    save_brand_preferences,
    save_step_data,
    selectable_brands,
    serialize_step,
)
from app.stride.rbac import require_portal
from app.stride.utils import json_body

bp = Blueprint("onboarding", __name__)


@bp.post("/influencer/onboarding")
@require_portal("influencer")
def influencer_onboarding():
    s = db_session()
    payload = json_body()
    if not payload:
        raise BadRequest("Request body is required")
    inf = onboard_partnered(s, current_user(), payload)
    s.commit()
    return jsonify({"success": True, "influencer": serialize_influencer(inf)})


# ---------- Signed talent ----------
@bp.get("/influencer/onboarding/signed")
@require_portal("talent")
def signed_progress():
    return jsonify(onboarding_progress(db_session(), current_user()))


@bp.post("/influencer/onboarding/signed")
@require_portal("talent")
def signed_complete_step():
    s = db_session()
    row = complete_step(s, current_user(), json_body())
    s.commit()
    return jsonify({"success": True, "step": serialize_step(row)})


@bp.patch("/influencer/onboarding/signed")
@require_portal("talent")
def signed_save_step():
    s = db_session()
    row = save_step_data(s, current_user(), json_body())
    s.commit()
    return jsonify({"success": True, "step": serialize_step(row)})


@bp.get("/influencer/onboarding/signed/brands")
@require_portal("talent")
def signed_brands():
    brands = selectable_brands(db_session())
    return jsonify(
        {
            "brands": [
                {"id": b.id, "company_name": b.company_name, "industry": b.industry, "website_url": b.website_url}
                for b in brands
            ]
        }
    )


@bp.post("/influencer/onboarding/signed/brands")
@require_portal("talent")
def signed_brands_save():
    s = db_session()
    rows = save_brand_preferences(s, current_user(), json_body().get("brand_ids"))
    s.commit()
    return jsonify({"success": True, "brand_ids": [r.brand_id for r in rows]})


@bp.post("/influencer/onboarding/signed/complete")
@require_portal("talent")
def signed_complete():
    s = db_session()
    progress = complete_signed_onboarding(s, current_user())
    s.commit()
    return jsonify({"success": True, **progress})
