from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

from sqlalchemy import case, func, or_

from app.stride.audit import record_event
from app.stride.constants import VALID_PLATFORMS, VALID_SUBMISSION_CONTENT_TYPES, VALID_SUBMISSION_STATUSES
from app.stride.errors import BadRequest, Forbidden, NotFound, validation_error
from app.stride.models import User
from app.stride.modules.campaigns.models import Campaign, CampaignInfluencer
from app.stride.modules.content.models import ContentSubmission
from app.stride.modules.influencers.models import Influencer
from app.stride.utils import PaginatedResult, clean_str, iso, parse_int, parse_str_list, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

AWAITING_REVIEW = ("PENDING", "SUBMITTED")

# action -> (status, wording used when notes are missing)
REVIEW_ACTIONS: dict[str, tuple[str, str | None]] = {
    "approve": ("APPROVED", None),
    "reject": ("REJECTED", "rejecting"),
    "revision": ("REVISION_REQUESTED", "requesting revision"),
}

_METRICS = ("views", "likes", "comments", "shares", "saves")
_SUBMITTABLE = ("ACCEPTED", "IN_PROGRESS", "CONTENT_SUBMITTED")


def get_submission_or_404(s: "Session", submission_id: str) -> ContentSubmission:
    sub = s.get(ContentSubmission, submission_id)
    if not sub:
        raise NotFound("Content submission not found")
    return sub


def quality_score(sub: ContentSubmission) -> dict[str, Any]:
    """
    Heuristic 0-100 scores for a submission.

    content: completeness of the written fields; engagement: self-reported
    metrics, each capped at 25; brand_alignment: format, platform, caption
    length and hashtag count; technical: presence of url/type/platform/screenshot.
    overall is the plain average of the four.
    """
    hashtags = list(sub.hashtags or [])
    content = 20 * sum(bool(v) for v in (sub.title, sub.description, sub.caption, hashtags, sub.screenshot_url))

    engagement = 0.0
    for value, per_point in ((sub.views, 1000), (sub.likes, 100), (sub.comments, 10), (sub.shares, 5)):
        if value and value > 0:
            engagement += min(value / per_point, 25)

    alignment = 0
    if sub.content_type in ("post", "reel"):
        alignment += 25
    if sub.platform in ("instagram", "tiktok"):
        alignment += 25
    if sub.caption and len(sub.caption) > 50:
        alignment += 25
    if len(hashtags) >= 3:
        alignment += 25

    technical = 25 * sum(bool(v) for v in (sub.content_url, sub.content_type, sub.platform, sub.screenshot_url))

    recommendations: list[str] = []
    if not sub.title:
        recommendations.append("Add a descriptive title")
    if not sub.description:
        recommendations.append("Include a detailed description")
    if not sub.caption:
        recommendations.append("Add an engaging caption")
    if len(hashtags) < 3:
        recommendations.append("Include at least 3 relevant hashtags")
    if not sub.screenshot_url:
        recommendations.append("Upload a screenshot for verification")
    if sub.views and sub.views < 100:
        recommendations.append("Content has low visibility - consider timing and hashtags")

    return {
        "content_score": round(content),
        "engagement_score": round(engagement),
        "brand_alignment_score": round(alignment),
        "technical_quality_score": round(technical),
        "overall_score": round((content + engagement + alignment + technical) / 4),
        "recommendations": recommendations,
    }


def validate_submission_payload(payload: dict) -> list[str]:
    errors: list[str] = []
    url = clean_str(payload.get("content_url"))
    if not url:
        errors.append("content_url is required.")
    else:
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            errors.append("content_url must be an http(s) URL.")
    content_type = (clean_str(payload.get("content_type")) or "").lower()
    if not content_type:
        errors.append("content_type is required.")
    elif content_type not in VALID_SUBMISSION_CONTENT_TYPES:
        errors.append(f"content_type must be one of: {', '.join(VALID_SUBMISSION_CONTENT_TYPES)}")
    platform = (clean_str(payload.get("platform")) or "").upper()
    if not platform:
        errors.append("platform is required.")
    elif platform not in VALID_PLATFORMS:
        errors.append(f"Invalid platform: {payload.get('platform')}")
    for key in _METRICS:
        value = payload.get(key)
        if value in (None, ""):
            continue
        n = parse_int(value)
        if n is None:
            errors.append(f"{key} must be a whole number.")
        elif n < 0:
            errors.append(f"{key} cannot be negative.")
    return errors


def submit_content_piece(s: "Session", user: User, campaign_id: str, payload: dict) -> ContentSubmission:
    """
    An influencer records one posted piece for a campaign they are working on.
    The participation moves to CONTENT_SUBMITTED and the link is added to its
    content_links.
    """
    from app.stride.modules.campaigns.service import get_participation_or_404, transition_participation
    from app.stride.modules.influencers.service import influencer_for_user

    inf = influencer_for_user(s, user)
    if inf is None:
        raise Forbidden("No influencer profile for this account")
    row = get_participation_or_404(s, campaign_id, inf.id)
    if row.status not in _SUBMITTABLE:
        raise BadRequest(f"Cannot submit content while {row.status}")

    errors = validate_submission_payload(payload)
    if errors:
        raise validation_error(errors)

    now = utcnow()
    url = clean_str(payload.get("content_url"))
    sub = ContentSubmission(
        campaign_influencer_id=row.id,
        content_url=url,
        content_type=clean_str(payload.get("content_type")).lower(),
        platform=clean_str(payload.get("platform")).lower(),
        title=clean_str(payload.get("title")),
        description=clean_str(payload.get("description")),
        caption=clean_str(payload.get("caption")),
        hashtags=[t.lstrip("#") for t in parse_str_list(payload.get("hashtags"))],
        screenshot_url=clean_str(payload.get("screenshot_url")),
        **{k: parse_int(payload.get(k)) for k in _METRICS},
        status="PENDING",
        submitted_at=now,
        created_at=now,
        updated_at=now,
    )
    s.add(sub)

    old = row.status
    if row.status != "CONTENT_SUBMITTED":
        transition_participation(row, "CONTENT_SUBMITTED")
    if url not in (row.content_links or []):
        row.content_links = [*(row.content_links or []), url]
    row.updated_at = now
    s.flush()
    record_event(
        s,
        actor=user,
        action="content.submit",
        entity_type="ContentSubmission",
        entity_id=sub.id,
        metadata={"campaign_id": campaign_id, "influencer_id": inf.id, "participation_old": old, "url": url},
    )
    return sub


def participation_submissions(s: "Session", participation_id: str) -> list[ContentSubmission]:
    return (
        s.query(ContentSubmission)
        .filter(ContentSubmission.campaign_influencer_id == participation_id)
        .order_by(ContentSubmission.submitted_at.desc())
        .all()
    )


def _filtered(s: "Session", filters: dict[str, Any]):
    q = (
        s.query(ContentSubmission)
        .join(CampaignInfluencer, CampaignInfluencer.id == ContentSubmission.campaign_influencer_id)
        .join(Influencer, Influencer.id == CampaignInfluencer.influencer_id)
        .join(Campaign, Campaign.id == CampaignInfluencer.campaign_id)
    )
    if filters.get("campaign_id"):
        q = q.filter(CampaignInfluencer.campaign_id == filters["campaign_id"])
    return q


def list_submissions(s: "Session", filters: dict[str, Any], page: int = 1, limit: int = 20) -> PaginatedResult:
    """Review queue: anything awaiting review first, then newest submissions."""
    q = _filtered(s, filters)
    status = (clean_str(filters.get("status")) or "").lower()
    if status == "pending":
        q = q.filter(ContentSubmission.status.in_(AWAITING_REVIEW))
    elif status and status != "all":
        if status.upper() not in VALID_SUBMISSION_STATUSES:
            raise BadRequest(f"Invalid status: {filters.get('status')}")
        q = q.filter(ContentSubmission.status == status.upper())
    platform = (clean_str(filters.get("platform")) or "").lower()
    if platform and platform != "all":
        q = q.filter(ContentSubmission.platform == platform)
    search = clean_str(filters.get("search"))
    if search:
        like = f"%{search}%"
        q = q.filter(
            or_(
                Influencer.display_name.ilike(like),
                Campaign.name.ilike(like),
                ContentSubmission.title.ilike(like),
                ContentSubmission.content_url.ilike(like),
            )
        )
    total = q.count()
    awaiting_first = case((ContentSubmission.status.in_(AWAITING_REVIEW), 0), else_=1)
    rows = (
        q.order_by(awaiting_first, ContentSubmission.submitted_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return PaginatedResult(data=rows, total=total, page=page, limit=limit)


def submission_stats(s: "Session", campaign_id: str | None = None) -> dict[str, Any]:
    q = _filtered(s, {"campaign_id": campaign_id}).with_entities(ContentSubmission.status, func.count(ContentSubmission.id))
    counts = {st: 0 for st in VALID_SUBMISSION_STATUSES}
    for status, count in q.group_by(ContentSubmission.status).all():
        counts[status] = count
    return {
        "total": sum(counts.values()),
        "pending": counts["PENDING"] + counts["SUBMITTED"],
        "approved": counts["APPROVED"],
        "rejected": counts["REJECTED"],
        "revision_requested": counts["REVISION_REQUESTED"],
    }


def review_submission(
    s: "Session", sub: ContentSubmission, action: str, actor: User | None, notes: str | None = None
) -> ContentSubmission:
    action = (clean_str(action) or "").lower()
    if action not in REVIEW_ACTIONS:
        raise BadRequest(f"Invalid action. Must be one of: {', '.join(REVIEW_ACTIONS)}")
    status, notes_wording = REVIEW_ACTIONS[action]
    notes = clean_str(notes)
    if notes_wording and not notes:
        raise BadRequest(f"Notes are required when {notes_wording}")

    old = sub.status
    now = utcnow()
    sub.status = status
    sub.reviewed_at = now
    sub.reviewed_by = actor.id if actor else None
    sub.review_notes = notes
    sub.updated_at = now
    record_event(
        s,
        actor=actor,
        action=f"content.{action}",
        entity_type="ContentSubmission",
        entity_id=sub.id,
        reason=notes,
        metadata={"old": old, "new": status},
    )
    logger.info("Content submission %s %s -> %s", sub.id, old, status)
    return sub


def serialize_submission(sub: ContentSubmission, *, with_score: bool = False) -> dict:
    row = sub.participation
    campaign = row.campaign if row else None
    out = {
        "id": sub.id,
        "campaign_influencer_id": sub.campaign_influencer_id,
        "campaign_id": row.campaign_id if row else None,
        "campaign_name": campaign.name if campaign else None,
        "brand_name": campaign.brand_name if campaign else None,
        "influencer_id": row.influencer_id if row else None,
        "influencer_name": row.influencer.display_name if row and row.influencer else None,
        "content_url": sub.content_url,
        "content_type": sub.content_type,
        "platform": sub.platform,
        "title": sub.title,
        "description": sub.description,
        "caption": sub.caption,
        "hashtags": list(sub.hashtags or []),
        "screenshot_url": sub.screenshot_url,
        **{k: getattr(sub, k) for k in _METRICS},
        "status": sub.status,
        "submitted_at": iso(sub.submitted_at),
        "reviewed_at": iso(sub.reviewed_at),
        "reviewed_by": sub.reviewed_by,
        "review_notes": sub.review_notes,
    }
    if with_score:
        out["quality"] = quality_score(sub)
    return out
