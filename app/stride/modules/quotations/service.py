from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import or_

from app.stride.audit import record_event
from app.stride.constants import VALID_QUOTATION_STATUSES
from app.stride.errors import BadRequest, NotFound, validation_error
from app.stride.models import User
from app.stride.modules.campaigns.models import Campaign, CampaignInfluencer
from app.stride.modules.influencers.models import Influencer
from app.stride.modules.quotations.models import Quotation, QuotationInfluencer
from app.stride.utils import PaginatedResult, clean_str, iso, money, parse_decimal, parse_str_list, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

# approved -> completed happens only through create_campaign_from_quotation
QUOTATION_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"in_review", "approved", "rejected"}),
    "in_review": frozenset({"approved", "rejected"}),
    "approved": frozenset(),
    "rejected": frozenset(),
    "completed": frozenset(),
}

_EDITABLE = ("brand_name", "brand_email", "industry", "campaign_description", "target_audience", "timeline")


def get_quotation_or_404(s: "Session", quotation_id: str) -> Quotation:
    q = s.get(Quotation, quotation_id)
    if not q:
        raise NotFound("Quotation not found")
    return q


def validate_quotation_payload(payload: dict, *, creating: bool) -> list[str]:
    errors: list[str] = []
    for key in ("brand_name", "brand_email", "campaign_description"):
        if creating and not clean_str(payload.get(key)):
            errors.append(f"{key} is required.")
        elif not creating and key in payload and not clean_str(payload.get(key)):
            errors.append(f"{key} cannot be blank.")
    email = clean_str(payload.get("brand_email"))
    if email and "@" not in email:
        errors.append("brand_email is invalid.")
    try:
        budget = parse_decimal(payload.get("budget"))
        if budget is not None and budget < 0:
            errors.append("budget must be >= 0.")
    except ValueError:
        errors.append("budget must be a number.")
    return errors


def _move(q: Quotation, new: str) -> str:
    if new not in VALID_QUOTATION_STATUSES:
        raise BadRequest(f"Invalid status. Must be one of: {', '.join(VALID_QUOTATION_STATUSES)}")
    old = q.status
    if new not in QUOTATION_TRANSITIONS.get(old, frozenset()):
        raise BadRequest(f"Cannot change quotation status from {old} to {new}")
    q.status = new
    q.updated_at = utcnow()
    return old


def create_quotation(s: "Session", payload: dict, user: User) -> Quotation:
    """Brand-submitted request for a quote. Always starts `pending`."""
    from app.stride.modules.brands.service import brand_for_user

    brand = brand_for_user(s, user)
    payload = {
        **payload,
        "brand_name": clean_str(payload.get("brand_name")) or (brand.company_name if brand else None),
        "brand_email": clean_str(payload.get("brand_email")) or user.email,
    }
    errors = validate_quotation_payload(payload, creating=True)
    if errors:
        raise validation_error(errors)

    now = utcnow()
    q = Quotation(
        brand_id=brand.id if brand else None,
        brand_name=clean_str(payload["brand_name"]),
        brand_email=clean_str(payload["brand_email"]).lower(),
        industry=clean_str(payload.get("industry")) or (brand.industry if brand else None),
        campaign_description=clean_str(payload.get("campaign_description")),
        target_audience=clean_str(payload.get("target_audience")),
        budget=parse_decimal(payload.get("budget")),
        timeline=clean_str(payload.get("timeline")),
        deliverables=parse_str_list(payload.get("deliverables")),
        platforms=[p.upper() for p in parse_str_list(payload.get("platforms"))],
        status="pending",
        submitted_at=now,
        created_at=now,
        updated_at=now,
    )
    s.add(q)
    s.flush()
    record_event(
        s,
        actor=user,
        action="quotation.create",
        entity_type="Quotation",
        entity_id=q.id,
        metadata={"brand_name": q.brand_name, "budget": money(q.budget)},
    )
    return q


def list_quotations(
    s: "Session",
    *,
    brand_id: str | None = None,
    status: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> PaginatedResult:
    q = s.query(Quotation)
    if brand_id:
        q = q.filter(Quotation.brand_id == brand_id)
    if status:
        q = q.filter(Quotation.status == status.lower())
    if search:
        like = f"%{search}%"
        q = q.filter(
            or_(Quotation.brand_name.ilike(like), Quotation.brand_email.ilike(like), Quotation.campaign_description.ilike(like))
        )
    total = q.count()
    rows = q.order_by(Quotation.submitted_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return PaginatedResult(data=rows, total=total, page=page, limit=limit)


def update_quotation(s: "Session", q: Quotation, payload: dict, actor: User | None) -> Quotation:
    errors = validate_quotation_payload(payload, creating=False)
    if errors:
        raise validation_error(errors)
    if q.status == "completed":
        raise BadRequest("Completed quotations cannot be edited.")

    changes: dict[str, Any] = {}
    for key in _EDITABLE:
        if key in payload:
            new = clean_str(payload.get(key))
            if new != getattr(q, key):
                changes[key] = {"old": getattr(q, key), "new": new}
                setattr(q, key, new)
    if "budget" in payload:
        budget = parse_decimal(payload.get("budget"))
        if budget != q.budget:
            changes["budget"] = {"old": money(q.budget), "new": money(budget)}
            q.budget = budget
    for key in ("deliverables", "platforms"):
        if key in payload:
            values = parse_str_list(payload.get(key))
            if key == "platforms":
                values = [v.upper() for v in values]
            changes[key] = {"old": getattr(q, key), "new": values}
            setattr(q, key, values)
    if "notes" in payload:
        q.notes = clean_str(payload.get("notes"))
        changes["notes"] = q.notes
    if payload.get("status"):
        new_status = str(payload["status"]).strip().lower()
        if new_status != q.status:
            if new_status in ("approved", "rejected", "completed"):
                raise BadRequest("Use the approve, reject or convert endpoints for that status.")
            changes["status"] = {"old": _move(q, new_status), "new": new_status}

    q.updated_at = utcnow()
    record_event(
        s,
        actor=actor,
        action="quotation.edit",
        entity_type="Quotation",
        entity_id=q.id,
        metadata={"changes": changes},
    )
    return q


def _review(s: "Session", q: Quotation, status: str, actor: User | None, notes: str | None) -> Quotation:
    old = _move(q, status)
    now = utcnow()
    q.reviewed_at = now
    q.reviewed_by = actor.id if actor else None
    if notes:
        q.notes = notes
    record_event(
        s,
        actor=actor,
        action=f"quotation.{'approve' if status == 'approved' else 'reject'}",
        entity_type="Quotation",
        entity_id=q.id,
        reason=notes,
        metadata={"old": old, "new": status},
    )
    return q


def approve_quotation(s: "Session", q: Quotation, actor: User | None, notes: str | None = None) -> Quotation:
    return _review(s, q, "approved", actor, clean_str(notes))


def reject_quotation(s: "Session", q: Quotation, actor: User | None, notes: str | None) -> Quotation:
    notes = clean_str(notes)
    if not notes:
        raise BadRequest("Notes are required when rejecting a quotation.")
    return _review(s, q, "rejected", actor, notes)


def delete_quotation(s: "Session", q: Quotation, actor: User | None) -> None:
    record_event(
        s,
        actor=actor,
        action="quotation.delete",
        entity_type="Quotation",
        entity_id=q.id,
        metadata={"brand_name": q.brand_name, "status": q.status},
    )
    s.delete(q)
    s.flush()


# ---------- Proposed influencers ----------
def _rate(value: Any) -> Any:
    try:
        rate = parse_decimal(value)
    except ValueError as e:
        raise BadRequest("proposed_rate must be a number.") from e
    if rate is not None and rate < 0:
        raise BadRequest("proposed_rate must be >= 0.")
    return rate


def add_quotation_influencer(s: "Session", q: Quotation, payload: dict, actor: User | None) -> QuotationInfluencer:
    """Propose an influencer at a rate; proposing the same influencer again updates the rate."""
    if q.status in ("completed", "rejected"):
        raise BadRequest(f"Cannot change influencers on a {q.status} quotation.")
    influencer_id = clean_str(payload.get("influencer_id"))
    if not influencer_id or not s.get(Influencer, influencer_id):
        raise NotFound("Influencer not found")
    rate = _rate(payload.get("proposed_rate"))
    row = next((r for r in q.influencers if r.influencer_id == influencer_id), None)
    if row is None:
        row = QuotationInfluencer(influencer_id=influencer_id, created_at=utcnow())
        q.influencers.append(row)
    row.proposed_rate = rate
    row.notes = clean_str(payload.get("notes"))
    q.updated_at = utcnow()
    s.flush()
    record_event(
        s,
        actor=actor,
        action="quotation.influencer_add",
        entity_type="Quotation",
        entity_id=q.id,
        metadata={"influencer_id": influencer_id, "proposed_rate": money(rate)},
    )
    return row


def update_quotation_influencer(
    s: "Session", q: Quotation, influencer_id: str, payload: dict, actor: User | None
) -> QuotationInfluencer:
    row = next((r for r in q.influencers if r.influencer_id == influencer_id), None)
    if row is None:
        raise NotFound("Influencer is not on this quotation")
    if "proposed_rate" in payload:
        row.proposed_rate = _rate(payload.get("proposed_rate"))
    if "notes" in payload:
        row.notes = clean_str(payload.get("notes"))
    q.updated_at = utcnow()
    record_event(
        s,
        actor=actor,
        action="quotation.influencer_update",
        entity_type="Quotation",
        entity_id=q.id,
        metadata={"influencer_id": influencer_id, "proposed_rate": money(row.proposed_rate)},
    )
    return row


def remove_quotation_influencer(s: "Session", q: Quotation, influencer_id: str, actor: User | None) -> None:
    row = next((r for r in q.influencers if r.influencer_id == influencer_id), None)
    if row is None:
        raise NotFound("Influencer is not on this quotation")
    q.influencers.remove(row)
    q.updated_at = utcnow()
    s.flush()
    record_event(
        s,
        actor=actor,
        action="quotation.influencer_remove",
        entity_type="Quotation",
        entity_id=q.id,
        metadata={"influencer_id": influencer_id},
    )


def create_campaign_from_quotation(s: "Session", q: Quotation, actor: User | None) -> Campaign:
    """
    Convert an approved quotation into a DRAFT campaign. Every proposed
    influencer is invited at the proposed rate; the quotation becomes
    `completed` and points at the new campaign. The caller commits once.
    """
    if q.status != "approved":
        raise BadRequest("Only approved quotations can be converted to campaigns.")

    now = utcnow()
    campaign = Campaign(
        name=f"{q.brand_name} Campaign",
        brand_id=q.brand_id,
        brand_name=q.brand_name,
        description=q.campaign_description,
        status="DRAFT",
        goals=[],
        total_budget=q.budget,
        platforms=list(q.platforms or []),
        target_niches=[],
        deliverables=list(q.deliverables or []),
        quotation_id=q.id,
        created_by=actor.id if actor else None,
        created_at=now,
        updated_at=now,
    )
    s.add(campaign)
    s.flush()
    for qi in q.influencers:
        campaign.participants.append(
            CampaignInfluencer(
                influencer_id=qi.influencer_id,
                status="INVITED",
                compensation_amount=qi.proposed_rate,
                notes=qi.notes,
                created_at=now,
                updated_at=now,
            )
        )

    q.status = "completed"
    q.campaign_id = campaign.id
    q.updated_at = now
    s.flush()
    record_event(
        s,
        actor=actor,
        action="quotation.convert",
        entity_type="Quotation",
        entity_id=q.id,
        metadata={"campaign_id": campaign.id, "influencers": len(q.influencers)},
    )
    logger.info("Quotation %s converted to campaign %s", q.id, campaign.id)
    return campaign


def serialize_quotation(q: Quotation, *, detail: bool = False) -> dict:
    out = {
        "id": q.id,
        "brand_id": q.brand_id,
        "brand_name": q.brand_name,
        "brand_email": q.brand_email,
        "industry": q.industry,
        "campaign_description": q.campaign_description,
        "target_audience": q.target_audience,
        "budget": money(q.budget),
        "timeline": q.timeline,
        "deliverables": q.deliverables or [],
        "platforms": q.platforms or [],
        "status": q.status,
        "submitted_at": iso(q.submitted_at),
        "reviewed_at": iso(q.reviewed_at),
        "campaign_id": q.campaign_id,
        "influencer_count": len(q.influencers),
    }
    if detail:
        out["notes"] = q.notes
        out["reviewed_by"] = q.reviewed_by
        out["influencers"] = [
            {
                "influencer_id": r.influencer_id,
                "display_name": r.influencer.display_name if r.influencer else None,
                "proposed_rate": money(r.proposed_rate),
                "notes": r.notes,
            }
            for r in q.influencers
        ]
    return out
