from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from app.stride.audit import record_event
from app.stride.constants import VALID_PLATFORMS
from app.stride.errors import NotFound, validation_error
from app.stride.models import User
from app.stride.modules.campaigns.models import Campaign
from app.stride.modules.templates.models import CampaignTemplate
from app.stride.utils import clean_str, iso, money, parse_bool, parse_date, parse_decimal, parse_int, parse_str_list, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

_TEXT_FIELDS = ("name", "description", "industry", "content_guidelines")
_LIST_FIELDS = ("goals", "platforms", "deliverables")
_INT_FIELDS = ("min_followers", "max_followers", "preparation_days", "execution_days", "total_days")
_MONEY_FIELDS = ("budget_min", "budget_max")


def get_template_or_404(s: "Session", template_id: str) -> CampaignTemplate:
    t = s.get(CampaignTemplate, template_id)
    if not t:
        raise NotFound("Campaign template not found")
    return t


def validate_template_payload(payload: dict, *, creating: bool) -> list[str]:
    errors: list[str] = []
    if (creating or "name" in payload) and not clean_str(payload.get("name")):
        errors.append("name is required.")

    for key in _INT_FIELDS:
        raw = payload.get(key)
        if raw in (None, ""):
            continue
        n = parse_int(raw)
        if n is None or n < 0:
            errors.append(f"{key} must be a whole number >= 0.")

    budgets: dict[str, Decimal | None] = {}
    for key in _MONEY_FIELDS:
        try:
            budgets[key] = parse_decimal(payload.get(key))
            if budgets[key] is not None and budgets[key] < 0:
                errors.append(f"{key} must be >= 0.")
        except ValueError:
            errors.append(f"{key} must be a number.")
    if budgets.get("budget_min") is not None and budgets.get("budget_max") is not None:
        if budgets["budget_max"] < budgets["budget_min"]:
            errors.append("budget_max must be >= budget_min.")

    bad = [p for p in parse_str_list(payload.get("platforms")) if p.upper() not in VALID_PLATFORMS]
    if bad:
        errors.append(f"Invalid platforms: {', '.join(bad)}")

    if payload.get("min_engagement") not in (None, ""):
        try:
            float(payload["min_engagement"])
        except (TypeError, ValueError):
            errors.append("min_engagement must be a number.")
    return errors


def _apply(t: CampaignTemplate, payload: dict, *, only_present: bool) -> list[str]:
    changed: list[str] = []

    def _set(key: str, new: Any) -> None:
        if getattr(t, key) != new:
            setattr(t, key, new)
            changed.append(key)

    for key in _TEXT_FIELDS:
        if not only_present or key in payload:
            _set(key, clean_str(payload.get(key)))
    for key in _LIST_FIELDS:
        if not only_present or key in payload:
            values = parse_str_list(payload.get(key))
            _set(key, [v.upper() for v in values] if key == "platforms" else values)
    for key in _INT_FIELDS:
        if not only_present or key in payload:
            _set(key, parse_int(payload.get(key)))
    for key in _MONEY_FIELDS:
        if not only_present or key in payload:
            _set(key, parse_decimal(payload.get(key)))
    if not only_present or "min_engagement" in payload:
        raw = payload.get("min_engagement")
        _set("min_engagement", float(raw) if raw not in (None, "") else None)
    if not only_present or "demographics" in payload:
        demo = payload.get("demographics")
        _set("demographics", demo if isinstance(demo, dict) else None)
    if "is_active" in payload:
        _set("is_active", bool(parse_bool(payload.get("is_active"))))

    # total_days falls back to preparation + execution
    if t.total_days is None and (t.preparation_days or t.execution_days):
        _set("total_days", (t.preparation_days or 0) + (t.execution_days or 0))
    return changed


def list_templates(s: "Session", *, include_inactive: bool = False, industry: str | None = None) -> list[CampaignTemplate]:
    q = s.query(CampaignTemplate)
    if not include_inactive:
        q = q.filter(CampaignTemplate.is_active.is_(True))
    if industry:
        q = q.filter(CampaignTemplate.industry == industry)
    return q.order_by(CampaignTemplate.created_at.desc()).all()


def create_template(s: "Session", payload: dict, actor: User | None) -> CampaignTemplate:
    errors = validate_template_payload(payload, creating=True)
    if errors:
        raise validation_error(errors)
    now = utcnow()
    t = CampaignTemplate(is_active=True, created_by=actor.id if actor else None, created_at=now, updated_at=now)
    _apply(t, payload, only_present=False)
    s.add(t)
    s.flush()
    record_event(
        s,
        actor=actor,
        action="campaign_template.create",
        entity_type="CampaignTemplate",
        entity_id=t.id,
        metadata={"name": t.name, "industry": t.industry},
    )
    return t


def update_template(s: "Session", t: CampaignTemplate, payload: dict, *, replace: bool, actor: User | None) -> CampaignTemplate:
    """PUT replaces every field; PATCH only touches the keys sent."""
    errors = validate_template_payload(payload, creating=replace)
    if errors:
        raise validation_error(errors)
    changed = _apply(t, payload, only_present=not replace)
    t.updated_at = utcnow()
    record_event(
        s,
        actor=actor,
        action="campaign_template.update",
        entity_type="CampaignTemplate",
        entity_id=t.id,
        metadata={"fields": changed},
    )
    return t


def delete_template(s: "Session", t: CampaignTemplate, actor: User | None) -> None:
    record_event(
        s,
        actor=actor,
        action="campaign_template.delete",
        entity_type="CampaignTemplate",
        entity_id=t.id,
        metadata={"name": t.name},
    )
    s.delete(t)
    s.flush()


def create_campaign_from_template(s: "Session", t: CampaignTemplate, payload: dict, actor: User | None) -> Campaign:
    """
    A DRAFT campaign seeded from the template brief. The start date defaults
    to today and the end date to start + total_days; the upper budget bound
    becomes the total budget unless one is given.
    """
    from app.stride.modules.campaigns.service import create_campaign

    try:
        start = parse_date(payload.get("start_date")) or utcnow().date()
    except ValueError:
        raise validation_error(["start_date must be a date (YYYY-MM-DD)."]) from None
    end = payload.get("end_date")
    if not end and t.total_days:
        end = (start + timedelta(days=t.total_days)).isoformat()

    seeded = {
        "name": clean_str(payload.get("name")) or t.name,
        "description": t.description,
        "goals": list(t.goals or []),
        "min_followers": t.min_followers,
        "max_followers": t.max_followers,
        "min_engagement": t.min_engagement,
        "platforms": list(t.platforms or []),
        "demographics": dict(t.demographics) if t.demographics else None,
        "content_guidelines": t.content_guidelines,
        "deliverables": list(t.deliverables or []),
        "total_budget": money(t.budget_max),
    }
    seeded.update({k: v for k, v in payload.items() if k not in ("name", "start_date", "end_date")})
    seeded.update({"start_date": start.isoformat(), "end_date": end})

    c = create_campaign(s, seeded, actor)
    record_event(
        s,
        actor=actor,
        action="campaign_template.use",
        entity_type="CampaignTemplate",
        entity_id=t.id,
        metadata={"campaign_id": c.id},
    )
    return c


def serialize_template(t: CampaignTemplate) -> dict:
    return {
        "id": t.id,
        "name": t.name,
        "description": t.description,
        "industry": t.industry,
        "goals": list(t.goals or []),
        "min_followers": t.min_followers,
        "max_followers": t.max_followers,
        "min_engagement": t.min_engagement,
        "platforms": list(t.platforms or []),
        "demographics": t.demographics,
        "content_guidelines": t.content_guidelines,
        "deliverables": list(t.deliverables or []),
        "budget_min": money(t.budget_min),
        "budget_max": money(t.budget_max),
        "preparation_days": t.preparation_days,
        "execution_days": t.execution_days,
        "total_days": t.total_days,
        "is_active": t.is_active,
        "created_by": t.created_by,
        "created_at": iso(t.created_at),
        "updated_at": iso(t.updated_at),
    }
