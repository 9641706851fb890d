from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from app.stride.audit import record_event
from app.stride.constants import VALID_PAYMENT_METHODS
from app.stride.errors import ApiError, BadRequest, NotFound
from app.stride.models import User
from app.stride.modules.invoices.models import InfluencerInvoice
from app.stride.modules.payments.crypto import EncryptionError, PaymentCipher
from app.stride.modules.payments.models import InfluencerPayment
from app.stride.utils import clean_str, format_currency, iso, money, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

PAYPAL_FIELDS = ("email", "firstName", "lastName")
BANK_REQUIRED = ("accountHolderName", "accountNumber", "routingNumber")
BANK_OPTIONAL = ("bankName", "swiftCode", "iban", "address", "city", "country", "currency")

PENDING_INVOICE_STATUSES = ("SENT", "VERIFIED", "DELAYED")


def mask_email(email: str | None) -> str:
    if not email:
        return ""
    local, _, domain = email.partition("@")
    if len(local) <= 2:
        return email
    return f"{local[:2]}***@{domain}"


def mask_account(number: str | None) -> str:
    if not number:
        return ""
    if len(number) <= 4:
        return number
    return f"****{number[-4:]}"


def _require_cipher(cipher: PaymentCipher | None) -> PaymentCipher:
    if cipher is None:
        raise ApiError("Payment details storage is not configured", 503)
    return cipher


def validate_payment_details(method: str, details: Any) -> dict[str, str]:
    """Returns the cleaned details for `method`; raises BadRequest when incomplete."""
    if method not in VALID_PAYMENT_METHODS:
        raise BadRequest("Invalid payment method")
    if not isinstance(details, dict):
        raise BadRequest("Payment method and details are required")
    if method == "PAYPAL":
        cleaned = {k: clean_str(details.get(k)) for k in PAYPAL_FIELDS}
        if not all(cleaned.values()):
            raise BadRequest("PayPal details incomplete")
        if "@" not in cleaned["email"]:
            raise BadRequest("Invalid PayPal email")
        return cleaned
    cleaned = {k: clean_str(details.get(k)) for k in BANK_REQUIRED}
    if not all(cleaned.values()):
        raise BadRequest("Bank details incomplete")
    cleaned.update({k: clean_str(details[k]) for k in BANK_OPTIONAL if clean_str(details.get(k))})
    return cleaned


def payment_for_influencer(s: "Session", influencer_id: str) -> InfluencerPayment | None:
    return s.query(InfluencerPayment).filter(InfluencerPayment.influencer_id == influencer_id).one_or_none()


def save_payment_details(
    s: "Session", cipher: PaymentCipher | None, influencer_id: str, payload: dict, actor: User | None
) -> InfluencerPayment:
    """Insert or replace the influencer's payout details."""
    method = (clean_str(payload.get("payment_method")) or "").upper()
    details = payload.get("payment_details")
    if not method or not details:
        raise BadRequest("Payment method and details are required")
    cleaned = validate_payment_details(method, details)
    token = _require_cipher(cipher).encrypt(cleaned)

    now = utcnow()
    row = payment_for_influencer(s, influencer_id)
    created = row is None
    if created:
        row = InfluencerPayment(influencer_id=influencer_id, created_at=now)
        s.add(row)
    old_method = None if created else row.payment_method
    row.payment_method = method
    row.encrypted_details = token
    # saved details count as confirmed by the influencer
    row.is_verified = True
    row.updated_at = now
    s.flush()
    # details themselves never go into the audit log
    record_event(
        s,
        actor=actor,
        action="payment_details.create" if created else "payment_details.update",
        entity_type="Influencer",
        entity_id=influencer_id,
        metadata={"payment_method": method, "old_method": old_method},
    )
    return row


def decrypted_details(cipher: PaymentCipher | None, row: InfluencerPayment) -> dict[str, Any]:
    try:
        return _require_cipher(cipher).decrypt(row.encrypted_details)
    except EncryptionError as e:
        logger.error("Payment details for influencer %s: %s", row.influencer_id, e)
        raise ApiError("Failed to decrypt payment information", 500) from e


def masked_payment_info(cipher: PaymentCipher | None, row: InfluencerPayment | None) -> dict[str, Any] | None:
    if row is None:
        return None
    details = decrypted_details(cipher, row)
    if row.payment_method == "PAYPAL":
        masked = {"email": mask_email(details.get("email"))}
    else:
        masked = {
            "accountNumber": mask_account(details.get("accountNumber")),
            "accountHolderName": details.get("accountHolderName"),
        }
    return {
        "id": row.id,
        "payment_method": row.payment_method,
        "is_verified": row.is_verified,
        "created_at": iso(row.created_at),
        "updated_at": iso(row.updated_at),
        "masked_details": masked,
    }


def payment_summary(s: "Session", influencer_id: str) -> dict[str, Any]:
    """Earnings from the influencer's invoices: PAID counts as earned, SENT/VERIFIED/DELAYED as pending."""
    month_start = utcnow().replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    earned = pending = this_month = Decimal("0.00")
    invoices = s.query(InfluencerInvoice).filter(InfluencerInvoice.influencer_id == influencer_id).all()
    for inv in invoices:
        if inv.status == "PAID":
            earned += inv.total_amount
            if inv.paid_at and inv.paid_at >= month_start:
                this_month += inv.total_amount
        elif inv.status in PENDING_INVOICE_STATUSES:
            pending += inv.total_amount
    return {
        "total_earned": money(earned),
        "pending_amount": money(pending),
        "paid_out": money(earned),
        "this_month": money(this_month),
        "total_earned_display": format_currency(earned),
    }


def payment_history(s: "Session", influencer_id: str) -> list[dict[str, Any]]:
    rows = (
        s.query(InfluencerInvoice)
        .filter(InfluencerInvoice.influencer_id == influencer_id)
        .order_by(InfluencerInvoice.invoice_date.desc(), InfluencerInvoice.invoice_number.desc())
        .all()
    )
    return [
        {
            "invoice_id": inv.id,
            "invoice_number": inv.invoice_number,
            "campaign_id": inv.campaign_id,
            "campaign_name": inv.campaign.name if inv.campaign else None,
            "amount": money(inv.total_amount),
            "currency": inv.currency,
            "status": inv.status,
            "invoice_date": iso(inv.invoice_date),
            "paid_at": iso(inv.paid_at),
        }
        for inv in rows
    ]


def payment_details_for_edit(s: "Session", cipher: PaymentCipher | None, influencer_id: str) -> dict[str, Any]:
    row = payment_for_influencer(s, influencer_id)
    if row is None:
        raise NotFound("No payment information on file")
    return {
        "payment_method": row.payment_method,
        "is_verified": row.is_verified,
        "payment_details": decrypted_details(cipher, row),
        "updated_at": iso(row.updated_at),
    }
