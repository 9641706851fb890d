from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from app.stride.audit import record_event
from app.stride.constants import (
    DEFAULT_CURRENCY,
    ONBOARDING_OPTIONAL_STEPS,
    ONBOARDING_REQUIRED_STEPS,
    ROLE_INFLUENCER_PARTNERED,
)
from app.stride.errors import BadRequest, validation_error
from app.stride.models import User, UserProfile
from app.stride.modules.brands.models import Brand
from app.stride.modules.influencers.models import Influencer
from app.stride.modules.onboarding.models import (
    TalentBrandCollaboration,
    TalentBrandPreference,
    TalentOnboardingStep,
    TalentPaymentHistory,
)
from app.stride.utils import clean_str, iso, money, parse_decimal, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

ALL_STEPS = ONBOARDING_REQUIRED_STEPS + ONBOARDING_OPTIONAL_STEPS
PARTNERED_REQUIRED = ("first_name", "last_name", "display_name", "location")


def _profile(user: User) -> UserProfile:
    if user.profile is None:
        user.profile = UserProfile(created_at=utcnow(), is_onboarded=False)
    return user.profile


# ---------- Partnered influencers: single form ----------
def onboard_partnered(s: "Session", user: User, payload: dict) -> Influencer:
    """
    Saves the profile and creates (or renames) the user's influencer record.
    Re-submitting updates both in place.
    """
    errors = [f"Missing required field: {k}" for k in PARTNERED_REQUIRED if not clean_str(payload.get(k))]
    if errors:
        raise validation_error(errors)
    website = clean_str(payload.get("website"))
    if website and not website.startswith("http"):
        website = "https://" + website

    now = utcnow()
    profile = _profile(user)
    profile.first_name = clean_str(payload.get("first_name"))
    profile.last_name = clean_str(payload.get("last_name"))
    profile.location_country = clean_str(payload.get("location"))
    profile.phone = clean_str(payload.get("phone_number") or payload.get("phone")) or profile.phone
    profile.avatar_url = clean_str(payload.get("profile_picture")) or profile.avatar_url
    profile.website_url = website or profile.website_url
    profile.is_onboarded = True
    profile.updated_at = now

    inf = s.query(Influencer).filter(Influencer.user_id == user.id).one_or_none()
    created = inf is None
    if created:
        inf = Influencer(
            user_id=user.id,
            display_name=clean_str(payload.get("display_name")),
            influencer_type="PARTNERED" if user.role == ROLE_INFLUENCER_PARTNERED else "SIGNED",
            is_active=True,
            created_at=now,
        )
        s.add(inf)
    else:
        inf.display_name = clean_str(payload.get("display_name"))
    inf.updated_at = now
    s.flush()
    record_event(
        s,
        actor=user,
        action="influencer.onboarding_complete",
        entity_type="Influencer",
        entity_id=inf.id,
        metadata={"created": created, "display_name": inf.display_name},
    )
    return inf


# ---------- Signed talent: step-by-step ----------
def _check_step(step_key: Any) -> str:
    key = clean_str(step_key)
    if not key:
        raise BadRequest("Missing required field: step_key")
    if key not in ALL_STEPS:
        raise BadRequest(f"Unknown onboarding step: {key}")
    return key


def _step_row(s: "Session", user: User, step_key: str) -> TalentOnboardingStep:
    row = (
        s.query(TalentOnboardingStep)
        .filter(TalentOnboardingStep.user_id == user.id, TalentOnboardingStep.step_key == step_key)
        .one_or_none()
    )
    if row is None:
        now = utcnow()
        row = TalentOnboardingStep(user_id=user.id, step_key=step_key, completed=False, data={}, created_at=now, updated_at=now)
        s.add(row)
    return row


def complete_step(s: "Session", user: User, payload: dict) -> TalentOnboardingStep:
    key = _check_step(payload.get("step_key"))
    data = payload.get("data") or {}
    if not isinstance(data, dict):
        raise BadRequest("data must be an object")
    row = _step_row(s, user, key)
    now = utcnow()
    row.data = data
    row.completed = True
    row.completed_at = now
    row.updated_at = now
    s.flush()
    return row


def save_step_data(s: "Session", user: User, payload: dict) -> TalentOnboardingStep:
    """Stores draft data for a step without completing it."""
    key = _check_step(payload.get("step_key"))
    data = payload.get("data") or {}
    if not isinstance(data, dict):
        raise BadRequest("data must be an object")
    row = _step_row(s, user, key)
    row.data = data
    row.updated_at = utcnow()
    s.flush()
    return row


def selectable_brands(s: "Session") -> list[Brand]:
    return s.query(Brand).order_by(Brand.company_name.asc()).all()


def save_brand_preferences(s: "Session", user: User, brand_ids: Any) -> list[TalentBrandPreference]:
    if not isinstance(brand_ids, list):
        raise BadRequest("brand_ids must be an array")
    wanted = list(dict.fromkeys(str(b) for b in brand_ids if clean_str(b)))
    found = {b.id for b in s.query(Brand).filter(Brand.id.in_(wanted)).all()} if wanted else set()
    missing = [b for b in wanted if b not in found]
    if missing:
        raise BadRequest(f"Unknown brands: {', '.join(missing)}")

    s.query(TalentBrandPreference).filter(TalentBrandPreference.user_id == user.id).delete(synchronize_session=False)
    now = utcnow()
    rows = [TalentBrandPreference(user_id=user.id, brand_id=b, created_at=now) for b in wanted]
    s.add_all(rows)
    s.flush()
    return rows


def onboarding_progress(s: "Session", user: User) -> dict[str, Any]:
    steps = {
        row.step_key: row
        for row in s.query(TalentOnboardingStep).filter(TalentOnboardingStep.user_id == user.id).all()
    }
    prefs = s.query(TalentBrandPreference).filter(TalentBrandPreference.user_id == user.id).all()
    payments = (
        s.query(TalentPaymentHistory)
        .filter(TalentPaymentHistory.user_id == user.id)
        .order_by(TalentPaymentHistory.created_at.desc())
        .all()
    )
    collabs = (
        s.query(TalentBrandCollaboration)
        .filter(TalentBrandCollaboration.user_id == user.id)
        .order_by(TalentBrandCollaboration.created_at.desc())
        .all()
    )
    missing = [k for k in ONBOARDING_REQUIRED_STEPS if not (k in steps and steps[k].completed)]
    return {
        "steps": [
            {
                "step_key": key,
                "required": key in ONBOARDING_REQUIRED_STEPS,
                "completed": bool(steps[key].completed) if key in steps else False,
                "completed_at": iso(steps[key].completed_at) if key in steps else None,
                "data": dict(steps[key].data or {}) if key in steps else {},
            }
            for key in ALL_STEPS
        ],
        "completed_steps": sum(1 for row in steps.values() if row.completed),
        "total_steps": len(ALL_STEPS),
        "missing_required": missing,
        "is_complete": not missing,
        "is_onboarded": bool(user.profile and user.profile.is_onboarded),
        "brand_preferences": [
            {"brand_id": p.brand_id, "company_name": p.brand.company_name if p.brand else None} for p in prefs
        ],
        "payment_history": [
            {
                "id": p.id,
                "previous_payment_amount": money(p.previous_payment_amount),
                "currency": p.currency,
                "payment_method": p.payment_method,
                "notes": p.notes,
            }
            for p in payments
        ],
        "collaborations": [
            {
                "id": c.id,
                "brand_name": c.brand_name,
                "collaboration_type": c.collaboration_type,
                "date_range": c.date_range,
                "notes": c.notes,
            }
            for c in collabs
        ],
    }


def _step_data(s: "Session", user: User, key: str) -> dict:
    row = (
        s.query(TalentOnboardingStep)
        .filter(TalentOnboardingStep.user_id == user.id, TalentOnboardingStep.step_key == key)
        .one_or_none()
    )
    return dict(row.data or {}) if row else {}


def complete_signed_onboarding(s: "Session", user: User) -> dict[str, Any]:
    """
    Finalise signed-talent onboarding once every required step is done:
    copies payment history, past collaborations and setup flags out of the
    step data and marks the profile onboarded.
    """
    progress = onboarding_progress(s, user)
    if not progress["is_complete"]:
        raise BadRequest("All onboarding steps must be completed first", details={"missing_steps": progress["missing_required"]})

    now = utcnow()
    payment = _step_data(s, user, "payment_information")
    if payment.get("previous_payment_amount") or payment.get("payment_method"):
        try:
            amount = parse_decimal(payment.get("previous_payment_amount"))
        except ValueError:
            amount = None
            logger.warning("Ignoring non-numeric previous_payment_amount for user %s", user.id)
        s.add(
            TalentPaymentHistory(
                user_id=user.id,
                previous_payment_amount=amount,
                currency=(clean_str(payment.get("currency")) or DEFAULT_CURRENCY).upper()[:3],
                payment_method=clean_str(payment.get("payment_method")),
                notes=clean_str(payment.get("payment_notes")),
                created_at=now,
            )
        )

    collaborations = _step_data(s, user, "previous_collaborations").get("collaborations")
    for c in collaborations if isinstance(collaborations, list) else []:
        if not isinstance(c, dict) or not clean_str(c.get("brand_name")):
            continue
        s.add(
            TalentBrandCollaboration(
                user_id=user.id,
                brand_name=clean_str(c.get("brand_name")),
                collaboration_type=clean_str(c.get("collaboration_type")),
                date_range=clean_str(c.get("date_range")),
                notes=clean_str(c.get("notes")),
                created_at=now,
            )
        )

    profile = _profile(user)
    inbound = _step_data(s, user, "brand_inbound_setup")
    if inbound:
        profile.email_forwarding_setup = inbound.get("email_setup_type") == "email_forwarding"
        profile.manager_email = clean_str(inbound.get("manager_email"))
    bio = _step_data(s, user, "instagram_bio_setup")
    if bio:
        profile.instagram_bio_setup = bio.get("instagram_bio_setup") == "done"
    events = _step_data(s, user, "uk_events_chat")
    if events:
        profile.uk_events_chat_joined = events.get("uk_events_chat_joined") is True
    profile.is_onboarded = True
    profile.updated_at = now
    s.flush()

    record_event(s, actor=user, action="talent.onboarding_complete", entity_type="User", entity_id=user.id)
    logger.info("Signed talent %s completed onboarding", user.id)
    return onboarding_progress(s, user)


def serialize_step(row: TalentOnboardingStep) -> dict:
    return {
        "step_key": row.step_key,
        "completed": row.completed,
        "completed_at": iso(row.completed_at),
        "data": dict(row.data or {}),
    }
