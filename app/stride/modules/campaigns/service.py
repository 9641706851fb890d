from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

from sqlalchemy import or_

from app.stride.audit import record_event
from app.stride.constants import VALID_CAMPAIGN_STATUSES, VALID_PARTICIPATION_STATUSES, VALID_PLATFORMS
from app.stride.errors import BadRequest, Forbidden, NotFound, validation_error
from app.stride.models import User
from app.stride.modules.campaigns.models import Campaign, CampaignInfluencer
from app.stride.modules.influencers.models import Influencer
from app.stride.utils import (
    PaginatedResult,
    clean_str,
    format_currency,
    iso,
    money,
    parse_bool,
    parse_date,
    parse_decimal,
    parse_int,
    parse_str_list,
    utcnow,
)

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

CAMPAIGN_TRANSITIONS: dict[str, frozenset[str]] = {
    "DRAFT": frozenset({"ACTIVE", "CANCELLED"}),
    "ACTIVE": frozenset({"PAUSED", "COMPLETED", "CANCELLED"}),
    "PAUSED": frozenset({"ACTIVE", "CANCELLED"}),
    "COMPLETED": frozenset(),
    "CANCELLED": frozenset(),
}

PARTICIPATION_TRANSITIONS: dict[str, frozenset[str]] = {
    "INVITED": frozenset({"ACCEPTED", "DECLINED"}),
    "ACCEPTED": frozenset({"IN_PROGRESS", "CONTENT_SUBMITTED"}),
    "DECLINED": frozenset(),
    "IN_PROGRESS": frozenset({"CONTENT_SUBMITTED"}),
    "CONTENT_SUBMITTED": frozenset({"COMPLETED"}),
    "COMPLETED": frozenset({"PAID"}),
    "PAID": frozenset(),
}

_STATUS_STAMPS = {
    "ACCEPTED": "accepted_at",
    "DECLINED": "declined_at",
    "CONTENT_SUBMITTED": "content_submitted_at",
    "PAID": "paid_at",
}

_TEXT_FIELDS = ("name", "brand_name", "description", "content_guidelines")
_DATE_FIELDS = ("start_date", "end_date", "application_deadline", "content_deadline")
_MONEY_FIELDS = ("total_budget", "per_influencer_budget")
_LIST_FIELDS = ("goals", "platforms", "target_niches", "deliverables")


def get_campaign_or_404(s: "Session", campaign_id: str) -> Campaign:
    c = s.get(Campaign, campaign_id)
    if not c:
        raise NotFound("Campaign not found")
    return c


def get_participation_or_404(s: "Session", campaign_id: str, influencer_id: str) -> CampaignInfluencer:
    row = (
        s.query(CampaignInfluencer)
        .filter(CampaignInfluencer.campaign_id == campaign_id, CampaignInfluencer.influencer_id == influencer_id)
        .one_or_none()
    )
    if not row:
        raise NotFound("Influencer is not assigned to this campaign")
    return row


# ---------- Validation ----------
def validate_campaign_payload(payload: dict, *, creating: bool) -> list[str]:
    errors: list[str] = []
    if creating and not clean_str(payload.get("name")):
        errors.append("name is required.")
    if not creating and "name" in payload and not clean_str(payload.get("name")):
        errors.append("name cannot be blank.")

    dates = {}
    for key in _DATE_FIELDS:
        try:
            dates[key] = parse_date(payload.get(key))
        except ValueError:
            errors.append(f"{key} must be a date (YYYY-MM-DD).")
    if dates.get("start_date") and dates.get("end_date") and dates["end_date"] < dates["start_date"]:
        errors.append("end_date must be on or after start_date.")

    for key in _MONEY_FIELDS:
        try:
            value = parse_decimal(payload.get(key))
            if value is not None and value < 0:
                errors.append(f"{key} must be >= 0.")
        except ValueError:
            errors.append(f"{key} must be a number.")

    bad = [p for p in parse_str_list(payload.get("platforms")) if p.upper() not in VALID_PLATFORMS]
    if bad:
        errors.append(f"Invalid platforms: {', '.join(bad)}")

    if payload.get("min_engagement") not in (None, ""):
        try:
            float(payload["min_engagement"])
        except (TypeError, ValueError):
            errors.append("min_engagement must be a number.")

    lo = parse_int(payload.get("min_followers"))
    hi = parse_int(payload.get("max_followers"))
    if lo is not None and hi is not None and hi < lo:
        errors.append("max_followers must be >= min_followers.")
    return errors


def _audit_value(v: Any) -> Any:
    if isinstance(v, Decimal):
        return money(v)
    if hasattr(v, "isoformat"):
        return iso(v)
    return v


def _apply_fields(c: Campaign, payload: dict, *, only_present: bool) -> dict[str, Any]:
    changes: dict[str, Any] = {}

    def _set(key: str, new: Any) -> None:
        old = getattr(c, key)
        if new != old:
            changes[key] = {"old": _audit_value(old), "new": _audit_value(new)}
            setattr(c, key, new)

    for key in _TEXT_FIELDS:
        if not only_present or key in payload:
            _set(key, clean_str(payload.get(key)))
    for key in _DATE_FIELDS:
        if not only_present or key in payload:
            _set(key, parse_date(payload.get(key)))
    for key in _MONEY_FIELDS:
        if not only_present or key in payload:
            _set(key, parse_decimal(payload.get(key)))
    for key in _LIST_FIELDS:
        if not only_present or key in payload:
            values = parse_str_list(payload.get(key))
            if key == "platforms":
                values = [v.upper() for v in values]
            _set(key, values)
    for key in ("min_followers", "max_followers"):
        if not only_present or key in payload:
            _set(key, parse_int(payload.get(key)))
    if not only_present or "min_engagement" in payload:
        raw = payload.get("min_engagement")
        _set("min_engagement", float(raw) if raw not in (None, "") else None)
    if not only_present or "demographics" in payload:
        demo = payload.get("demographics")
        _set("demographics", demo if isinstance(demo, dict) else None)
    return changes


# ---------- Queries ----------
def list_campaigns(
    s: "Session",
    *,
    brand_id: str | None = None,
    status: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> PaginatedResult:
    q = s.query(Campaign)
    if brand_id:
        q = q.filter(Campaign.brand_id == brand_id)
    if status:
        q = q.filter(Campaign.status == status.upper())
    if search:
        like = f"%{search}%"
        q = q.filter(or_(Campaign.name.ilike(like), Campaign.brand_name.ilike(like), Campaign.description.ilike(like)))
    total = q.count()
    rows = q.order_by(Campaign.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return PaginatedResult(data=rows, total=total, page=page, limit=limit)


def influencer_participations(s: "Session", influencer_id: str, status: str | None = None) -> list[CampaignInfluencer]:
    q = s.query(CampaignInfluencer).filter(CampaignInfluencer.influencer_id == influencer_id)
    if status:
        q = q.filter(CampaignInfluencer.status == status.upper())
    return q.order_by(CampaignInfluencer.created_at.desc()).all()


# ---------- Campaign mutations ----------
def create_campaign(s: "Session", payload: dict, actor: User | None) -> Campaign:
    errors = validate_campaign_payload(payload, creating=True)
    if errors:
        raise validation_error(errors)

    brand_id = clean_str(payload.get("brand_id"))
    brand_name = clean_str(payload.get("brand_name"))
    if brand_id:
        from app.stride.modules.brands.service import get_brand_or_404

        brand = get_brand_or_404(s, brand_id)
        brand_name = brand_name or brand.company_name

    now = utcnow()
    c = Campaign(status="DRAFT", brand_id=brand_id, created_by=actor.id if actor else None, created_at=now, updated_at=now)
    _apply_fields(c, {**payload, "brand_name": brand_name}, only_present=False)
    s.add(c)
    s.flush()
    record_event(
        s,
        actor=actor,
        action="campaign.create",
        entity_type="Campaign",
        entity_id=c.id,
        metadata={"name": c.name, "brand_id": c.brand_id},
    )
    return c


def update_campaign(s: "Session", c: Campaign, payload: dict, actor: User | None) -> Campaign:
    if "status" in payload:
        raise BadRequest("Use the status endpoint to change campaign status.")
    errors = validate_campaign_payload(payload, creating=False)
    if errors:
        raise validation_error(errors)
    if c.status in ("COMPLETED", "CANCELLED"):
        raise BadRequest(f"Cannot edit a {c.status.lower()} campaign.")
    changes = _apply_fields(c, payload, only_present=True)
    c.updated_at = utcnow()
    record_event(
        s,
        actor=actor,
        action="campaign.edit",
        entity_type="Campaign",
        entity_id=c.id,
        metadata={"name": c.name, "changes": changes},
    )
    return c


def change_campaign_status(s: "Session", c: Campaign, status: str, actor: User | None, reason: str | None = None) -> Campaign:
    new = (clean_str(status) or "").upper()
    if new not in VALID_CAMPAIGN_STATUSES:
        raise BadRequest(f"Invalid status. Must be one of: {', '.join(VALID_CAMPAIGN_STATUSES)}")
    old = c.status
    if new not in CAMPAIGN_TRANSITIONS.get(old, frozenset()):
        raise BadRequest(f"Cannot change campaign status from {old} to {new}")
    c.status = new
    c.updated_at = utcnow()
    record_event(
        s,
        actor=actor,
        action="campaign.status_change",
        entity_type="Campaign",
        entity_id=c.id,
        reason=reason,
        metadata={"old": old, "new": new},
    )
    logger.info("Campaign %s status %s -> %s", c.id, old, new)
    return c


def delete_campaign(s: "Session", c: Campaign, actor: User | None) -> None:
    record_event(
        s,
        actor=actor,
        action="campaign.delete",
        entity_type="Campaign",
        entity_id=c.id,
        metadata={"name": c.name, "participants": len(c.participants)},
    )
    s.delete(c)
    s.flush()


def duplicate_campaign(s: "Session", c: Campaign, new_name: str | None, actor: User | None) -> Campaign:
    """Copy the brief into a new DRAFT campaign. Participants are not copied."""
    now = utcnow()
    copy = Campaign(
        name=clean_str(new_name) or f"{c.name} (Copy)",
        brand_id=c.brand_id,
        brand_name=c.brand_name,
        description=c.description,
        status="DRAFT",
        goals=list(c.goals or []),
        start_date=c.start_date,
        end_date=c.end_date,
        application_deadline=c.application_deadline,
        content_deadline=c.content_deadline,
        total_budget=c.total_budget,
        per_influencer_budget=c.per_influencer_budget,
        min_followers=c.min_followers,
        max_followers=c.max_followers,
        min_engagement=c.min_engagement,
        platforms=list(c.platforms or []),
        target_niches=list(c.target_niches or []),
        demographics=dict(c.demographics) if c.demographics else None,
        content_guidelines=c.content_guidelines,
        deliverables=list(c.deliverables or []),
        created_by=actor.id if actor else None,
        created_at=now,
        updated_at=now,
    )
    s.add(copy)
    s.flush()
    record_event(
        s,
        actor=actor,
        action="campaign.duplicate",
        entity_type="Campaign",
        entity_id=copy.id,
        metadata={"source_campaign_id": c.id, "name": copy.name},
    )
    return copy


# ---------- Participation ----------
def _stamp(row: CampaignInfluencer, status: str) -> None:
    now = utcnow()
    attr = _STATUS_STAMPS.get(status)
    if attr:
        setattr(row, attr, now)
    if status == "PAID":
        row.payment_released = True
    if status == "CONTENT_SUBMITTED":
        row.content_posted = True
    row.updated_at = now


def transition_participation(row: CampaignInfluencer, status: str) -> tuple[str, str]:
    """Move a participation to `status`, stamping the matching timestamp. Returns (old, new)."""
    new = (clean_str(status) or "").upper()
    if new not in VALID_PARTICIPATION_STATUSES:
        raise BadRequest(f"Invalid status. Must be one of: {', '.join(VALID_PARTICIPATION_STATUSES)}")
    old = row.status
    if new == old:
        return old, new
    if new not in PARTICIPATION_TRANSITIONS.get(old, frozenset()):
        raise BadRequest(f"Cannot change participation status from {old} to {new}")
    row.status = new
    _stamp(row, new)
    return old, new


def assign_influencer(s: "Session", c: Campaign, payload: dict, actor: User | None) -> CampaignInfluencer:
    """Invite an influencer. Re-assigning an existing participant resets it to INVITED."""
    influencer_id = clean_str(payload.get("influencer_id"))
    if not influencer_id:
        raise BadRequest("influencer_id is required.")
    inf = s.get(Influencer, influencer_id)
    if not inf:
        raise NotFound("Influencer not found")
    if c.status in ("COMPLETED", "CANCELLED"):
        raise BadRequest(f"Cannot assign influencers to a {c.status.lower()} campaign.")
    try:
        compensation = parse_decimal(payload.get("compensation_amount"))
        deadline = parse_date(payload.get("deadline"))
    except ValueError as e:
        raise BadRequest(str(e)) from e
    if compensation is not None and compensation < 0:
        raise BadRequest("compensation_amount must be >= 0.")

    now = utcnow()
    row = (
        s.query(CampaignInfluencer)
        .filter(CampaignInfluencer.campaign_id == c.id, CampaignInfluencer.influencer_id == inf.id)
        .one_or_none()
    )
    reassigned = row is not None
    if row is None:
        row = CampaignInfluencer(campaign_id=c.id, influencer_id=inf.id, created_at=now)
        c.participants.append(row)
    row.status = "INVITED"
    row.compensation_amount = compensation if compensation is not None else c.per_influencer_budget
    row.deadline = deadline or c.content_deadline
    row.notes = clean_str(payload.get("notes"))
    row.accepted_at = None
    row.declined_at = None
    row.content_submitted_at = None
    row.paid_at = None
    row.updated_at = now
    s.flush()
    record_event(
        s,
        actor=actor,
        action="campaign.influencer_reassign" if reassigned else "campaign.influencer_assign",
        entity_type="Campaign",
        entity_id=c.id,
        metadata={"influencer_id": inf.id, "compensation_amount": money(row.compensation_amount)},
    )
    return row


def remove_influencer(s: "Session", c: Campaign, influencer_id: str, actor: User | None) -> None:
    row = get_participation_or_404(s, c.id, influencer_id)
    if row.status == "PAID":
        raise BadRequest("Cannot remove a participant who has been paid.")
    c.participants.remove(row)
    s.flush()
    record_event(
        s,
        actor=actor,
        action="campaign.influencer_remove",
        entity_type="Campaign",
        entity_id=c.id,
        metadata={"influencer_id": influencer_id, "status": row.status},
    )


def update_participation(
    s: "Session", c: Campaign, influencer_id: str, payload: dict, actor: User | None
) -> CampaignInfluencer:
    """Status, notes, compensation and tracking flags for one participant."""
    row = get_participation_or_404(s, c.id, influencer_id)
    changes: dict[str, Any] = {}

    if payload.get("status"):
        old, new = transition_participation(row, payload["status"])
        if old != new:
            changes["status"] = {"old": old, "new": new}

    if "notes" in payload:
        row.notes = clean_str(payload.get("notes"))
        changes["notes"] = row.notes

    if "compensation_amount" in payload:
        try:
            amount = parse_decimal(payload.get("compensation_amount"))
        except ValueError as e:
            raise BadRequest(str(e)) from e
        if amount is not None and amount < 0:
            raise BadRequest("compensation_amount must be >= 0.")
        changes["compensation_amount"] = {"old": money(row.compensation_amount), "new": money(amount)}
        row.compensation_amount = amount

    if "discount_code" in payload:
        row.discount_code = clean_str(payload.get("discount_code"))
        changes["discount_code"] = row.discount_code

    if "product_shipped" in payload:
        shipped = bool(parse_bool(payload.get("product_shipped")))
        tracking = clean_str(payload.get("tracking_number"))
        if shipped and not row.product_shipped and tracking:
            row.notes = f"{row.notes or ''} Tracking: {tracking}".strip()
        row.product_shipped = shipped
        changes["product_shipped"] = shipped

    if "content_posted" in payload:
        posted = bool(parse_bool(payload.get("content_posted")))
        post_url = clean_str(payload.get("post_url"))
        if posted and not row.content_posted and post_url:
            row.notes = f"{row.notes or ''} Post URL: {post_url}".strip()
            if post_url not in (row.content_links or []):
                row.content_links = [*(row.content_links or []), post_url]
        row.content_posted = posted
        changes["content_posted"] = posted

    if not changes:
        raise BadRequest("No valid fields to update")

    row.updated_at = utcnow()
    s.flush()
    record_event(
        s,
        actor=actor,
        action="campaign.participation_update",
        entity_type="Campaign",
        entity_id=c.id,
        metadata={"influencer_id": influencer_id, "changes": changes},
    )
    return row


def _own_participation(s: "Session", user: User, campaign_id: str) -> CampaignInfluencer:
    from app.stride.modules.influencers.service import influencer_for_user

    inf = influencer_for_user(s, user)
    if inf is None:
        raise Forbidden("No influencer profile for this account")
    return get_participation_or_404(s, campaign_id, inf.id)


def respond_to_invitation(s: "Session", user: User, campaign_id: str, payload: dict) -> CampaignInfluencer:
    row = _own_participation(s, user, campaign_id)
    response = (clean_str(payload.get("response")) or clean_str(payload.get("status")) or "").upper()
    mapping = {"ACCEPT": "ACCEPTED", "ACCEPTED": "ACCEPTED", "DECLINE": "DECLINED", "DECLINED": "DECLINED"}
    if response not in mapping:
        raise BadRequest("response must be accept or decline.")
    if row.status != "INVITED":
        raise BadRequest("This invitation has already been answered.")
    old, new = transition_participation(row, mapping[response])
    note = clean_str(payload.get("message"))
    if note:
        row.notes = f"{row.notes or ''} Influencer: {note}".strip()
    s.flush()
    record_event(
        s,
        actor=user,
        action="campaign.invitation_response",
        entity_type="Campaign",
        entity_id=campaign_id,
        metadata={"influencer_id": row.influencer_id, "old": old, "new": new},
    )
    return row


def _valid_link(link: str) -> bool:
    parsed = urlparse(link)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def submit_content(s: "Session", user: User, campaign_id: str, payload: dict) -> CampaignInfluencer:
    row = _own_participation(s, user, campaign_id)
    links = parse_str_list(payload.get("links") or payload.get("content_links"))
    if not links:
        raise BadRequest("At least one content link is required.")
    bad = [link for link in links if not _valid_link(link)]
    if bad:
        raise BadRequest(f"Content links must be http(s) URLs: {', '.join(bad)}")
    if row.status not in ("ACCEPTED", "IN_PROGRESS", "CONTENT_SUBMITTED"):
        raise BadRequest(f"Cannot submit content while {row.status}")

    old = row.status
    if row.status != "CONTENT_SUBMITTED":
        transition_participation(row, "CONTENT_SUBMITTED")
    else:
        _stamp(row, "CONTENT_SUBMITTED")
    merged = list(row.content_links or [])
    merged.extend(link for link in links if link not in merged)
    row.content_links = merged
    note = clean_str(payload.get("notes"))
    if note:
        row.notes = f"{row.notes or ''} {note}".strip()
    s.flush()
    record_event(
        s,
        actor=user,
        action="campaign.content_submit",
        entity_type="Campaign",
        entity_id=campaign_id,
        metadata={"influencer_id": row.influencer_id, "old": old, "links": links},
    )
    return row


# ---------- Reporting ----------
def campaign_timeline(c: Campaign) -> list[dict]:
    events: list[dict] = [{"at": iso(c.created_at), "type": "created", "label": f"Campaign '{c.name}' created"}]
    for key, label in (("start_date", "Campaign starts"), ("application_deadline", "Applications close"),
                       ("content_deadline", "Content due"), ("end_date", "Campaign ends")):
        value = getattr(c, key)
        if value:
            events.append({"at": iso(value), "type": key, "label": label})
    for p in c.participants:
        name = p.influencer.display_name if p.influencer else p.influencer_id
        events.append({"at": iso(p.created_at), "type": "invited", "label": f"{name} invited", "influencer_id": p.influencer_id})
        for attr, kind in (("accepted_at", "accepted"), ("declined_at", "declined"),
                           ("content_submitted_at", "content_submitted"), ("paid_at", "paid")):
            stamp = getattr(p, attr)
            if stamp:
                events.append(
                    {"at": iso(stamp), "type": kind, "label": f"{name} {kind.replace('_', ' ')}", "influencer_id": p.influencer_id}
                )
    return sorted(events, key=lambda e: e["at"] or "")


def campaign_statistics(c: Campaign) -> dict[str, Any]:
    rows = list(c.participants)
    by_status = {st: 0 for st in VALID_PARTICIPATION_STATUSES}
    for r in rows:
        by_status[r.status] = by_status.get(r.status, 0) + 1
    committed = sum((r.compensation_amount or Decimal("0") for r in rows if r.status != "DECLINED"), Decimal("0"))
    paid = sum((r.compensation_amount or Decimal("0") for r in rows if r.status == "PAID"), Decimal("0"))
    budget = c.total_budget or Decimal("0")
    return {
        "total_participants": len(rows),
        "by_status": by_status,
        "products_shipped": sum(1 for r in rows if r.product_shipped),
        "content_posted": sum(1 for r in rows if r.content_posted),
        "payments_released": sum(1 for r in rows if r.payment_released),
        "total_reach": sum(r.influencer.total_followers or 0 for r in rows if r.influencer and r.status != "DECLINED"),
        "budget": {
            "total": money(c.total_budget),
            "committed": money(committed),
            "paid": money(paid),
            "remaining": money(budget - committed) if c.total_budget is not None else None,
            "committed_display": format_currency(committed),
        },
    }


# ---------- Serialization ----------
def serialize_participation(r: CampaignInfluencer, *, with_campaign: bool = False) -> dict:
    out = {
        "id": r.id,
        "campaign_id": r.campaign_id,
        "influencer_id": r.influencer_id,
        "influencer_name": r.influencer.display_name if r.influencer else None,
        "status": r.status,
        "compensation_amount": money(r.compensation_amount),
        "deadline": iso(r.deadline),
        "notes": r.notes,
        "accepted_at": iso(r.accepted_at),
        "declined_at": iso(r.declined_at),
        "content_submitted_at": iso(r.content_submitted_at),
        "paid_at": iso(r.paid_at),
        "product_shipped": r.product_shipped,
        "content_posted": r.content_posted,
        "payment_released": r.payment_released,
        "content_links": r.content_links or [],
        "discount_code": r.discount_code,
    }
    if with_campaign and r.campaign is not None:
        out["campaign"] = serialize_campaign(r.campaign)
    return out


def serialize_campaign(c: Campaign, *, detail: bool = False) -> dict:
    rows = c.participants
    out = {
        "id": c.id,
        "brand_id": c.brand_id,
        "brand_name": c.brand_name,
        "name": c.name,
        "description": c.description,
        "status": c.status,
        "goals": c.goals or [],
        "start_date": iso(c.start_date),
        "end_date": iso(c.end_date),
        "application_deadline": iso(c.application_deadline),
        "content_deadline": iso(c.content_deadline),
        "total_budget": money(c.total_budget),
        "per_influencer_budget": money(c.per_influencer_budget),
        "platforms": c.platforms or [],
        "target_niches": c.target_niches or [],
        "quotation_id": c.quotation_id,
        "created_at": iso(c.created_at),
        "counts": {
            "total": len(rows),
            "accepted": sum(1 for r in rows if r.status not in ("INVITED", "DECLINED")),
            "invited": sum(1 for r in rows if r.status == "INVITED"),
        },
    }
    if detail:
        out.update(
            {
                "min_followers": c.min_followers,
                "max_followers": c.max_followers,
                "min_engagement": c.min_engagement,
                "demographics": c.demographics,
                "content_guidelines": c.content_guidelines,
                "deliverables": c.deliverables or [],
                "participants": [serialize_participation(r) for r in rows],
            }
        )
    return out
