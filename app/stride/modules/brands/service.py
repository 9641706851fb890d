from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import func, or_

from app.stride.audit import record_event
from app.stride.errors import BadRequest, NotFound, validation_error
from app.stride.models import User, UserProfile
from app.stride.modules.brands.models import Brand, BrandContact
from app.stride.utils import PaginatedResult, clean_str, iso, parse_bool, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

BRAND_FIELDS = ("company_name", "industry", "website_url", "description", "logo_url")


def get_brand_or_404(s: "Session", brand_id: str) -> Brand:
    brand = s.get(Brand, brand_id)
    if not brand:
        raise NotFound("Brand not found")
    return brand


def brand_for_user(s: "Session", user: User) -> Brand | None:
    return s.query(Brand).filter(Brand.user_id == user.id).order_by(Brand.created_at.asc()).first()


def validate_brand_payload(payload: dict, *, creating: bool) -> list[str]:
    errors: list[str] = []
    if creating and not clean_str(payload.get("company_name")):
        errors.append("company_name is required.")
    if not creating and "company_name" in payload and not clean_str(payload.get("company_name")):
        errors.append("company_name cannot be blank.")
    for c in payload.get("contacts") or []:
        errors.extend(validate_contact_payload(c))
    return errors


def validate_contact_payload(payload: dict) -> list[str]:
    errors: list[str] = []
    if not clean_str(payload.get("name")):
        errors.append("Contact name is required.")
    email = clean_str(payload.get("email"))
    if not email or "@" not in email:
        errors.append("Contact email is invalid.")
    return errors


def list_brands(
    s: "Session", *, search: str | None = None, industry: str | None = None, page: int = 1, limit: int = 20
) -> tuple[PaginatedResult, dict[str, int]]:
    """Returns the page plus a {brand_id: campaign_count} map for it."""
    from app.stride.modules.campaigns.models import Campaign

    q = s.query(Brand)
    if search:
        like = f"%{search}%"
        q = q.filter(or_(Brand.company_name.ilike(like), Brand.description.ilike(like)))
    if industry:
        q = q.filter(Brand.industry == industry)
    total = q.count()
    rows = q.order_by(Brand.company_name.asc()).offset((page - 1) * limit).limit(limit).all()
    ids = [b.id for b in rows]
    counts: dict[str, int] = {}
    if ids:
        counts = dict(
            s.query(Campaign.brand_id, func.count(Campaign.id)).filter(Campaign.brand_id.in_(ids)).group_by(Campaign.brand_id).all()
        )
    return PaginatedResult(data=rows, total=total, page=page, limit=limit), counts


def _add_contact(brand: Brand, payload: dict) -> BrandContact:
    is_primary = bool(parse_bool(payload.get("is_primary")))
    if is_primary:
        for c in brand.contacts:
            c.is_primary = False
    contact = BrandContact(
        name=clean_str(payload.get("name")),
        email=clean_str(payload.get("email")).lower(),
        role=clean_str(payload.get("role")),
        phone=clean_str(payload.get("phone")),
        is_primary=is_primary or not brand.contacts,
        created_at=utcnow(),
    )
    brand.contacts.append(contact)
    return contact


def create_brand(s: "Session", payload: dict, actor: User | None, *, owner: User | None = None) -> Brand:
    errors = validate_brand_payload(payload, creating=True)
    if errors:
        raise validation_error(errors)
    now = utcnow()
    brand = Brand(
        user_id=owner.id if owner else clean_str(payload.get("user_id")),
        created_at=now,
        updated_at=now,
        **{k: clean_str(payload.get(k)) for k in BRAND_FIELDS},
    )
    s.add(brand)
    for c in payload.get("contacts") or []:
        _add_contact(brand, c)
    s.flush()
    record_event(
        s,
        actor=actor,
        action="brand.create",
        entity_type="Brand",
        entity_id=brand.id,
        metadata={"company_name": brand.company_name, "user_id": brand.user_id},
    )
    return brand


def update_brand(s: "Session", brand: Brand, payload: dict, actor: User | None) -> Brand:
    errors = validate_brand_payload(payload, creating=False)
    if errors:
        raise validation_error(errors)
    changes: dict[str, Any] = {}
    for key in BRAND_FIELDS:
        if key not in payload:
            continue
        new = clean_str(payload.get(key))
        if new != getattr(brand, key):
            changes[key] = {"old": getattr(brand, key), "new": new}
            setattr(brand, key, new)
    brand.updated_at = utcnow()
    record_event(
        s,
        actor=actor,
        action="brand.edit",
        entity_type="Brand",
        entity_id=brand.id,
        metadata={"company_name": brand.company_name, "changes": changes},
    )
    return brand


def delete_brand(s: "Session", brand: Brand, actor: User | None) -> None:
    record_event(
        s,
        actor=actor,
        action="brand.delete",
        entity_type="Brand",
        entity_id=brand.id,
        metadata={"company_name": brand.company_name},
    )
    s.delete(brand)
    s.flush()


def add_contact(s: "Session", brand: Brand, payload: dict, actor: User | None) -> BrandContact:
    errors = validate_contact_payload(payload)
    if errors:
        raise validation_error(errors)
    contact = _add_contact(brand, payload)
    s.flush()
    record_event(
        s,
        actor=actor,
        action="brand.contact_add",
        entity_type="Brand",
        entity_id=brand.id,
        metadata={"contact_id": contact.id, "email": contact.email, "is_primary": contact.is_primary},
    )
    return contact


def remove_contact(s: "Session", brand: Brand, contact_id: str, actor: User | None) -> None:
    contact = next((c for c in brand.contacts if c.id == contact_id), None)
    if contact is None:
        raise NotFound("Contact not found")
    brand.contacts.remove(contact)
    if contact.is_primary and brand.contacts:
        brand.contacts[0].is_primary = True
    s.flush()
    record_event(
        s,
        actor=actor,
        action="brand.contact_remove",
        entity_type="Brand",
        entity_id=brand.id,
        metadata={"contact_id": contact_id, "email": contact.email},
    )


def onboard_brand(s: "Session", user: User, payload: dict) -> Brand:
    """
    Brand self-onboarding: brand + primary contact + profile flag in one
    transaction. Repeating it returns the user's existing brand unchanged.
    """
    existing = brand_for_user(s, user)
    if existing is not None:
        if user.profile is not None and not user.profile.is_onboarded:
            user.profile.is_onboarded = True
            user.profile.updated_at = utcnow()
        return existing
    contact = payload.get("contact") or {
        "name": " ".join(x for x in (clean_str(payload.get("first_name")), clean_str(payload.get("last_name"))) if x)
        or user.email,
        "email": user.email,
        "role": clean_str(payload.get("job_title")),
        "phone": clean_str(payload.get("phone")),
    }
    contact = {**contact, "is_primary": True}
    brand = create_brand(s, {**payload, "contacts": [contact]}, user, owner=user)

    now = utcnow()
    if user.profile is None:
        user.profile = UserProfile(created_at=now)
    for key in ("first_name", "last_name", "phone"):
        value = clean_str(payload.get(key))
        if value:
            setattr(user.profile, key, value)
    user.profile.is_onboarded = True
    user.profile.updated_at = now
    s.flush()
    record_event(s, actor=user, action="brand.onboarding_complete", entity_type="Brand", entity_id=brand.id)
    return brand


def brand_stats(s: "Session") -> dict[str, Any]:
    total = s.query(func.count(Brand.id)).scalar() or 0
    by_industry = dict(
        s.query(Brand.industry, func.count(Brand.id)).filter(Brand.industry.isnot(None)).group_by(Brand.industry).all()
    )
    with_owner = s.query(func.count(Brand.id)).filter(Brand.user_id.isnot(None)).scalar() or 0
    return {"total": total, "with_portal_user": with_owner, "by_industry": by_industry}


def serialize_contact(c: BrandContact) -> dict:
    return {"id": c.id, "name": c.name, "email": c.email, "role": c.role, "phone": c.phone, "is_primary": c.is_primary}


def serialize_brand(b: Brand, campaign_count: int | None = None) -> dict:
    out = {
        "id": b.id,
        "user_id": b.user_id,
        "company_name": b.company_name,
        "industry": b.industry,
        "website_url": b.website_url,
        "description": b.description,
        "logo_url": b.logo_url,
        "contacts": [serialize_contact(c) for c in b.contacts],
        "created_at": iso(b.created_at),
    }
    if campaign_count is not None:
        out["campaign_count"] = campaign_count
    return out


def require_brand_scope(s: "Session", user: User, brand_id: str | None) -> str | None:
    """
    Brand users are pinned to their own brand; staff may pass any brand id.
    Returns the brand id to scope queries to (None = unscoped, staff only).
    """
    from app.stride.rbac import is_staff

    if is_staff(user):
        return brand_id
    own = brand_for_user(s, user)
    if own is None:
        raise BadRequest("Complete brand onboarding first")
    if brand_id and brand_id != own.id:
        raise NotFound("Brand not found")
    return own.id
