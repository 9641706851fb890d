from __future__ import annotations

import logging
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, or_

from app.stride.audit import record_event
from app.stride.constants import (
    DEFAULT_CURRENCY,
    DEFAULT_PAYMENT_TERMS,
    DEFAULT_VAT_RATE,
    INVOICE_DUE_DAYS,
    VALID_INVOICE_STATUSES,
)
from app.stride.errors import BadRequest, Forbidden, NotFound, validation_error
from app.stride.models import User
from app.stride.modules.campaigns.models import Campaign, CampaignInfluencer
from app.stride.modules.invoices.models import InfluencerInvoice
from app.stride.utils import (
    PaginatedResult,
    clean_str,
    format_currency,
    iso,
    money,
    parse_bool,
    parse_date,
    parse_decimal,
    parse_str_list,
    utcnow,
)

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

INVOICE_TRANSITIONS: dict[str, frozenset[str]] = {
    "DRAFT": frozenset({"SENT"}),
    "SENT": frozenset({"VERIFIED", "DELAYED", "VOIDED"}),
    "DELAYED": frozenset({"VERIFIED", "VOIDED"}),
    "VERIFIED": frozenset({"PAID"}),
    "PAID": frozenset(),
    "VOIDED": frozenset(),
}

# action -> (target status, notes required)
STAFF_ACTIONS: dict[str, tuple[str, bool]] = {
    "approve": ("VERIFIED", False),
    "reject": ("VOIDED", True),
    "mark_paid": ("PAID", False),
    "delay": ("DELAYED", True),
}

REQUIRED_FIELDS = (
    "campaign_id",
    "creator_name",
    "campaign_reference",
    "brand_name",
    "content_description",
    "content_link",
)

_CENT = Decimal("0.01")


def compute_amounts(agreed_price: Decimal, vat_required: bool, vat_rate: Decimal) -> tuple[Decimal, Decimal]:
    """Returns (vat_amount, total_amount), both rounded to pennies."""
    price = agreed_price.quantize(_CENT, rounding=ROUND_HALF_UP)
    vat = (price * vat_rate / Decimal(100)).quantize(_CENT, rounding=ROUND_HALF_UP) if vat_required else Decimal("0.00")
    return vat, price + vat


def next_invoice_number(s: "Session", on: date) -> str:
    """INV-YYYY-MM-NNNN, numbered from 0001 within each calendar month."""
    prefix = f"INV-{on.year:04d}-{on.month:02d}-"
    numbers = s.query(InfluencerInvoice.invoice_number).filter(InfluencerInvoice.invoice_number.like(f"{prefix}%")).all()
    seq = 0
    for (number,) in numbers:
        tail = number[len(prefix):]
        if tail.isdigit():
            seq = max(seq, int(tail))
    return f"{prefix}{seq + 1:04d}"


def get_invoice_or_404(s: "Session", invoice_id: str) -> InfluencerInvoice:
    inv = s.get(InfluencerInvoice, invoice_id)
    if not inv:
        raise NotFound("Invoice not found")
    return inv


def validate_invoice_payload(payload: dict) -> list[str]:
    errors: list[str] = []
    for key in REQUIRED_FIELDS:
        if not clean_str(payload.get(key)):
            errors.append(f"{key} is required.")
    try:
        price = parse_decimal(payload.get("agreed_price"))
        if price is None or price <= 0:
            errors.append("agreed_price must be greater than 0.")
    except ValueError:
        errors.append("agreed_price must be a number.")
    try:
        rate = parse_decimal(payload.get("vat_rate"))
        if rate is not None and not (0 <= rate <= 100):
            errors.append("vat_rate must be between 0 and 100.")
    except ValueError:
        errors.append("vat_rate must be a number.")
    for key in ("invoice_date", "due_date"):
        try:
            parse_date(payload.get(key))
        except ValueError:
            errors.append(f"{key} must be a date (YYYY-MM-DD).")
    currency = clean_str(payload.get("currency"))
    if currency and len(currency) != 3:
        errors.append("currency must be a 3-letter code.")
    return errors


def create_invoice(s: "Session", user: User, payload: dict) -> InfluencerInvoice:
    """An influencer invoices a campaign they take part in. Starts as SENT."""
    from app.stride.modules.influencers.service import influencer_for_user

    inf = influencer_for_user(s, user)
    if inf is None:
        raise Forbidden("No influencer profile for this account")

    errors = validate_invoice_payload(payload)
    if errors:
        raise validation_error(errors)

    campaign_id = clean_str(payload.get("campaign_id"))
    participation = (
        s.query(CampaignInfluencer)
        .filter(CampaignInfluencer.campaign_id == campaign_id, CampaignInfluencer.influencer_id == inf.id)
        .one_or_none()
    )
    if participation is None:
        raise BadRequest("You are not part of this campaign.")

    invoice_date = parse_date(payload.get("invoice_date")) or utcnow().date()
    due_date = parse_date(payload.get("due_date")) or invoice_date + timedelta(days=INVOICE_DUE_DAYS)
    if due_date < invoice_date:
        raise BadRequest("due_date must be on or after invoice_date.")

    agreed_price = parse_decimal(payload.get("agreed_price"))
    vat_required = bool(parse_bool(payload.get("vat_required")))
    vat_rate = parse_decimal(payload.get("vat_rate"))
    if vat_rate is None:
        vat_rate = Decimal(DEFAULT_VAT_RATE)
    vat_amount, total = compute_amounts(agreed_price, vat_required, vat_rate)

    now = utcnow()
    inv = InfluencerInvoice(
        influencer_id=inf.id,
        campaign_id=campaign_id,
        invoice_number=next_invoice_number(s, invoice_date),
        invoice_date=invoice_date,
        due_date=due_date,
        creator_name=clean_str(payload.get("creator_name")),
        creator_address=clean_str(payload.get("creator_address")),
        creator_email=clean_str(payload.get("creator_email")) or user.email,
        campaign_reference=clean_str(payload.get("campaign_reference")),
        brand_name=clean_str(payload.get("brand_name")),
        content_description=clean_str(payload.get("content_description")),
        content_link=clean_str(payload.get("content_link")),
        agreed_price=agreed_price,
        currency=(clean_str(payload.get("currency")) or DEFAULT_CURRENCY).upper(),
        vat_required=vat_required,
        vat_rate=vat_rate,
        vat_amount=vat_amount,
        total_amount=total,
        status="SENT",
        payment_terms=clean_str(payload.get("payment_terms")) or DEFAULT_PAYMENT_TERMS,
        created_by=user.id,
        created_at=now,
        updated_at=now,
    )
    s.add(inv)
    s.flush()
    record_event(
        s,
        actor=user,
        action="invoice.create",
        entity_type="InfluencerInvoice",
        entity_id=inv.id,
        metadata={"invoice_number": inv.invoice_number, "campaign_id": campaign_id, "total_amount": money(total)},
    )
    logger.info("Invoice %s created by influencer %s (total %s)", inv.invoice_number, inf.id, total)
    return inv


def transition_invoice(s: "Session", inv: InfluencerInvoice, action: str, actor: User | None, notes: str | None = None) -> InfluencerInvoice:
    action = (clean_str(action) or "").lower()
    if action not in STAFF_ACTIONS:
        raise BadRequest(f"Invalid action. Must be one of: {', '.join(STAFF_ACTIONS)}")
    target, notes_required = STAFF_ACTIONS[action]
    notes = clean_str(notes)
    if notes_required and not notes:
        raise BadRequest(f"Notes are required to {action.replace('_', ' ')} an invoice.")
    old = inv.status
    if target not in INVOICE_TRANSITIONS.get(old, frozenset()):
        raise BadRequest(f"Cannot {action.replace('_', ' ')} an invoice that is {old}")

    now = utcnow()
    inv.status = target
    if notes:
        inv.staff_notes = notes
    if target == "VERIFIED":
        inv.verified_by = actor.id if actor else None
        inv.verified_at = now
    if target == "PAID":
        inv.paid_at = now
        _mark_participation_paid(s, inv)
    inv.updated_at = now
    record_event(
        s,
        actor=actor,
        action=f"invoice.{action}",
        entity_type="InfluencerInvoice",
        entity_id=inv.id,
        reason=notes,
        metadata={"invoice_number": inv.invoice_number, "old": old, "new": target},
    )
    return inv


def _mark_participation_paid(s: "Session", inv: InfluencerInvoice) -> None:
    row = (
        s.query(CampaignInfluencer)
        .filter(CampaignInfluencer.campaign_id == inv.campaign_id, CampaignInfluencer.influencer_id == inv.influencer_id)
        .one_or_none()
    )
    if row is None:
        logger.warning("Invoice %s paid but no participation row found", inv.invoice_number)
        return
    now = utcnow()
    row.status = "PAID"
    row.paid_at = now
    row.payment_released = True
    row.updated_at = now


def list_invoices(s: "Session", filters: dict[str, Any], page: int = 1, limit: int = 20) -> PaginatedResult:
    q = s.query(InfluencerInvoice)
    statuses = [st.upper() for st in parse_str_list(filters.get("status"))]
    if statuses:
        bad = [st for st in statuses if st not in VALID_INVOICE_STATUSES]
        if bad:
            raise BadRequest(f"Invalid status: {', '.join(bad)}")
        q = q.filter(InfluencerInvoice.status.in_(statuses))
    if filters.get("influencer_id"):
        q = q.filter(InfluencerInvoice.influencer_id == filters["influencer_id"])
    if filters.get("campaign_id"):
        q = q.filter(InfluencerInvoice.campaign_id == filters["campaign_id"])
    search = clean_str(filters.get("search"))
    if search:
        like = f"%{search}%"
        q = q.filter(
            or_(
                InfluencerInvoice.invoice_number.ilike(like),
                InfluencerInvoice.creator_name.ilike(like),
                InfluencerInvoice.brand_name.ilike(like),
                InfluencerInvoice.campaign_reference.ilike(like),
            )
        )
    try:
        date_from = parse_date(filters.get("date_from"))
        date_to = parse_date(filters.get("date_to"))
    except ValueError as e:
        raise BadRequest("date filters must be YYYY-MM-DD") from e
    if date_from:
        q = q.filter(InfluencerInvoice.invoice_date >= date_from)
    if date_to:
        q = q.filter(InfluencerInvoice.invoice_date <= date_to)
    total = q.count()
    rows = (
        q.order_by(InfluencerInvoice.invoice_date.desc(), InfluencerInvoice.invoice_number.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return PaginatedResult(data=rows, total=total, page=page, limit=limit)


def invoice_stats(s: "Session", influencer_id: str | None = None) -> dict[str, Any]:
    q = s.query(InfluencerInvoice.status, func.count(InfluencerInvoice.id), func.coalesce(func.sum(InfluencerInvoice.total_amount), 0))
    if influencer_id:
        q = q.filter(InfluencerInvoice.influencer_id == influencer_id)
    by_status = {st: {"count": 0, "total": Decimal("0.00")} for st in VALID_INVOICE_STATUSES}
    for status, count, total in q.group_by(InfluencerInvoice.status).all():
        by_status[status] = {"count": count, "total": Decimal(str(total)).quantize(_CENT)}
    overall = sum((v["total"] for v in by_status.values()), Decimal("0.00"))
    outstanding = sum((by_status[st]["total"] for st in ("SENT", "VERIFIED", "DELAYED")), Decimal("0.00"))
    return {
        "total_invoices": sum(v["count"] for v in by_status.values()),
        "by_status": {k: {"count": v["count"], "total": money(v["total"])} for k, v in by_status.items()},
        "total_value": money(overall),
        "paid_value": money(by_status["PAID"]["total"]),
        "outstanding_value": money(outstanding),
        "paid_value_display": format_currency(by_status["PAID"]["total"]),
    }


def serialize_invoice(inv: InfluencerInvoice) -> dict:
    campaign: Campaign | None = inv.campaign
    return {
        "id": inv.id,
        "invoice_number": inv.invoice_number,
        "influencer_id": inv.influencer_id,
        "influencer_name": inv.influencer.display_name if inv.influencer else None,
        "campaign_id": inv.campaign_id,
        "campaign_name": campaign.name if campaign else None,
        "invoice_date": iso(inv.invoice_date),
        "due_date": iso(inv.due_date),
        "creator_name": inv.creator_name,
        "creator_address": inv.creator_address,
        "creator_email": inv.creator_email,
        "campaign_reference": inv.campaign_reference,
        "brand_name": inv.brand_name,
        "content_description": inv.content_description,
        "content_link": inv.content_link,
        "agreed_price": money(inv.agreed_price),
        "currency": inv.currency,
        "vat_required": inv.vat_required,
        "vat_rate": money(inv.vat_rate),
        "vat_amount": money(inv.vat_amount),
        "total_amount": money(inv.total_amount),
        "total_display": format_currency(inv.total_amount, inv.currency),
        "status": inv.status,
        "staff_notes": inv.staff_notes,
        "payment_terms": inv.payment_terms,
        "verified_at": iso(inv.verified_at),
        "paid_at": iso(inv.paid_at),
        "created_at": iso(inv.created_at),
    }
