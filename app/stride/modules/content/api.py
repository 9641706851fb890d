from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.stride.auth import current_user
from app.stride.db import db_session
from app.stride.errors import Forbidden
from app.stride.modules.campaigns.service import get_participation_or_404
from app.stride.modules.content.service import (
    get_submission_or_404,
    list_submissions,
    participation_submissions,
    review_submission,
    serialize_submission,
    submission_stats,
    submit_content_piece,
)
from app.stride.modules.influencers.service import influencer_for_user
from app.stride.rbac import require_portal
from app.stride.utils import json_body, page_args

bp = Blueprint("content", __name__)


# ---------- Influencer portal ----------
@bp.get("/influencer/campaigns/<campaign_id>/content-submissions")
@require_portal("influencer")
def influencer_submissions_list(campaign_id: str):
    s = db_session()
    inf = influencer_for_user(s, current_user())
    if inf is None:
        raise Forbidden("No influencer profile for this account")
    row = get_participation_or_404(s, campaign_id, inf.id)
    return jsonify({"data": [serialize_submission(sub, with_score=True) for sub in participation_submissions(s, row.id)]})


@bp.post("/influencer/campaigns/<campaign_id>/content-submissions")
@require_portal("influencer")
def influencer_submissions_create(campaign_id: str):
    s = db_session()
    sub = submit_content_piece(s, current_user(), campaign_id, json_body())
    s.commit()
    return jsonify({"submission": serialize_submission(sub, with_score=True)}), 201


# ---------- Staff review ----------
@bp.get("/staff/content-submissions")
@require_portal("staff")
def staff_submissions_list():
    s = db_session()
    page, limit = page_args(request.args)
    filters = {
        "status": request.args.get("status"),
        "campaign_id": request.args.get("campaign_id") or request.args.get("campaignId"),
        "platform": request.args.get("platform"),
        "search": request.args.get("search"),
    }
    body = list_submissions(s, filters, page, limit).to_dict(serialize_submission)
    body["stats"] = submission_stats(s, filters["campaign_id"])
    return jsonify(body)


@bp.get("/staff/content-submissions/<submission_id>")
@require_portal("staff")
def staff_submission_detail(submission_id: str):
    s = db_session()
    return jsonify({"submission": serialize_submission(get_submission_or_404(s, submission_id), with_score=True)})


@bp.post("/staff/content-submissions/<submission_id>/review")
@require_portal("staff")
def staff_submission_review(submission_id: str):
    s = db_session()
    payload = json_body()
    sub = review_submission(s, get_submission_or_404(s, submission_id), payload.get("action"), current_user(), payload.get("notes"))
    s.commit()
    return jsonify({"submission": serialize_submission(sub)})
