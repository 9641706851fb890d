from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from app.stride.auth import current_user
from app.stride.db import db_session
from app.stride.errors import NotFound
from app.stride.modules.influencers.service import get_influencer_or_404, influencer_for_user
from app.stride.modules.payments.service import (
    masked_payment_info,
    payment_details_for_edit,
    payment_for_influencer,
    payment_history,
    payment_summary,
    save_payment_details,
)
from app.stride.rbac import require_permission, require_portal
from app.stride.utils import json_body

bp = Blueprint("payments", __name__)


def payment_cipher():
    return current_app.extensions.get("payment_cipher")


def _own_influencer_id(s) -> str:
    inf = influencer_for_user(s, current_user())
    if inf is None:
        raise NotFound("Influencer not found")
    return inf.id


# ---------- Influencer portal ----------
@bp.get("/influencer/payments")
@require_portal("influencer")
def influencer_payments():
    s = db_session()
    influencer_id = _own_influencer_id(s)
    return jsonify(
        {
            "payment_info": masked_payment_info(payment_cipher(), payment_for_influencer(s, influencer_id)),
            "payment_summary": payment_summary(s, influencer_id),
            "payment_history": payment_history(s, influencer_id),
        }
    )


@bp.post("/influencer/payments")
@require_portal("influencer")
def influencer_payments_save():
    s = db_session()
    influencer_id = _own_influencer_id(s)
    row = save_payment_details(s, payment_cipher(), influencer_id, json_body(), current_user())
    s.commit()
    return jsonify({"id": row.id, "message": "Payment information saved successfully"})


@bp.get("/influencer/payments/edit")
@require_portal("influencer")
def influencer_payments_edit():
    s = db_session()
    return jsonify(payment_details_for_edit(s, payment_cipher(), _own_influencer_id(s)))


# ---------- Staff ----------
@bp.get("/roster/<influencer_id>/payments")
@require_permission("VIEW_FINANCIAL_DATA")
def roster_payments(influencer_id: str):
    s = db_session()
    inf = get_influencer_or_404(s, influencer_id)
    row = payment_for_influencer(s, inf.id)
    return jsonify(
        {
            "influencer_id": inf.id,
            "payment_info": payment_details_for_edit(s, payment_cipher(), inf.id) if row else None,
            "payment_summary": payment_summary(s, inf.id),
            "payment_history": payment_history(s, inf.id),
        }
    )
