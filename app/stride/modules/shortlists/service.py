from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import func

from app.stride.audit import record_event
from app.stride.errors import BadRequest, NotFound, validation_error
from app.stride.models import User
from app.stride.modules.influencers.models import Influencer
from app.stride.modules.shortlists.models import Shortlist, ShortlistInfluencer
from app.stride.utils import clean_str, iso, parse_str_list, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


def get_shortlist_or_404(s: "Session", shortlist_id: str, brand_id: str | None = None) -> Shortlist:
    """brand_id, when given, restricts the lookup to that brand."""
    sl = s.get(Shortlist, shortlist_id)
    if not sl or (brand_id is not None and sl.brand_id != brand_id):
        raise NotFound("Shortlist not found")
    return sl


def list_shortlists(s: "Session", brand_id: str | None = None) -> list[Shortlist]:
    q = s.query(Shortlist)
    if brand_id:
        q = q.filter(Shortlist.brand_id == brand_id)
    return q.order_by(Shortlist.updated_at.desc()).all()


def create_shortlist(s: "Session", brand_id: str | None, payload: dict, actor: User | None) -> Shortlist:
    errors: list[str] = []
    if not brand_id:
        errors.append("brand_id is required.")
    if not clean_str(payload.get("name")):
        errors.append("name is required.")
    if errors:
        raise validation_error(errors)

    from app.stride.modules.brands.service import get_brand_or_404

    get_brand_or_404(s, brand_id)
    now = utcnow()
    sl = Shortlist(
        brand_id=brand_id,
        name=clean_str(payload.get("name")),
        description=clean_str(payload.get("description")),
        created_at=now,
        updated_at=now,
    )
    s.add(sl)
    s.flush()
    ids = parse_str_list(payload.get("influencer_ids"))
    if ids:
        _add_members(s, sl, ids, actor)
    record_event(
        s,
        actor=actor,
        action="shortlist.create",
        entity_type="Shortlist",
        entity_id=sl.id,
        metadata={"name": sl.name, "brand_id": brand_id, "members": len(sl.members)},
    )
    return sl


def update_shortlist(s: "Session", sl: Shortlist, payload: dict, actor: User | None) -> Shortlist:
    changes: dict[str, Any] = {}
    if "name" in payload:
        name = clean_str(payload.get("name"))
        if not name:
            raise BadRequest("name cannot be blank.")
        if name != sl.name:
            changes["name"] = {"old": sl.name, "new": name}
            sl.name = name
    if "description" in payload:
        desc = clean_str(payload.get("description"))
        if desc != sl.description:
            changes["description"] = {"old": sl.description, "new": desc}
            sl.description = desc
    sl.updated_at = utcnow()
    record_event(s, actor=actor, action="shortlist.edit", entity_type="Shortlist", entity_id=sl.id, metadata={"changes": changes})
    return sl


def delete_shortlist(s: "Session", sl: Shortlist, actor: User | None) -> None:
    record_event(
        s,
        actor=actor,
        action="shortlist.delete",
        entity_type="Shortlist",
        entity_id=sl.id,
        metadata={"name": sl.name, "members": len(sl.members)},
    )
    s.delete(sl)
    s.flush()


def duplicate_shortlist(s: "Session", sl: Shortlist, new_name: str | None, actor: User | None) -> Shortlist:
    now = utcnow()
    copy = Shortlist(
        brand_id=sl.brand_id,
        name=clean_str(new_name) or f"{sl.name} (Copy)",
        description=sl.description,
        created_at=now,
        updated_at=now,
    )
    for m in sl.members:
        copy.members.append(
            ShortlistInfluencer(influencer_id=m.influencer_id, notes=m.notes, added_by=actor.id if actor else None, added_at=now)
        )
    s.add(copy)
    s.flush()
    record_event(
        s,
        actor=actor,
        action="shortlist.duplicate",
        entity_type="Shortlist",
        entity_id=copy.id,
        metadata={"source_shortlist_id": sl.id, "members": len(copy.members)},
    )
    return copy


def _add_members(s: "Session", sl: Shortlist, influencer_ids: list[str], actor: User | None, notes: str | None = None) -> int:
    existing = {m.influencer_id for m in sl.members}
    wanted = [i for i in dict.fromkeys(influencer_ids) if i not in existing]
    if not wanted:
        return 0
    found = {i for (i,) in s.query(Influencer.id).filter(Influencer.id.in_(wanted)).all()}
    missing = [i for i in wanted if i not in found]
    if missing:
        raise NotFound(f"Influencer not found: {', '.join(missing)}")
    now = utcnow()
    for influencer_id in wanted:
        sl.members.append(
            ShortlistInfluencer(influencer_id=influencer_id, notes=notes, added_by=actor.id if actor else None, added_at=now)
        )
    sl.updated_at = now
    s.flush()
    return len(wanted)


def add_influencers(s: "Session", sl: Shortlist, payload: dict, actor: User | None) -> int:
    """Add influencers; ones already on the list are skipped. Returns how many were added."""
    ids = parse_str_list(payload.get("influencer_ids") or payload.get("influencer_id"))
    if not ids:
        raise BadRequest("influencer_ids is required.")
    added = _add_members(s, sl, ids, actor, clean_str(payload.get("notes")))
    record_event(
        s,
        actor=actor,
        action="shortlist.influencers_add",
        entity_type="Shortlist",
        entity_id=sl.id,
        metadata={"requested": len(ids), "added": added},
    )
    return added


def remove_influencer(s: "Session", sl: Shortlist, influencer_id: str, actor: User | None) -> None:
    member = next((m for m in sl.members if m.influencer_id == influencer_id), None)
    if member is None:
        raise NotFound("Influencer is not on this shortlist")
    sl.members.remove(member)
    sl.updated_at = utcnow()
    s.flush()
    record_event(
        s,
        actor=actor,
        action="shortlist.influencer_remove",
        entity_type="Shortlist",
        entity_id=sl.id,
        metadata={"influencer_id": influencer_id},
    )


def influencer_shortlists(s: "Session", brand_id: str | None, influencer_id: str) -> list[Shortlist]:
    q = (
        s.query(Shortlist)
        .join(ShortlistInfluencer, ShortlistInfluencer.shortlist_id == Shortlist.id)
        .filter(ShortlistInfluencer.influencer_id == influencer_id)
    )
    if brand_id:
        q = q.filter(Shortlist.brand_id == brand_id)
    return q.order_by(Shortlist.name.asc()).all()


def shortlist_stats(s: "Session", brand_id: str | None = None) -> dict[str, Any]:
    lists = s.query(func.count(Shortlist.id))
    members = s.query(func.count(ShortlistInfluencer.id)).join(Shortlist, Shortlist.id == ShortlistInfluencer.shortlist_id)
    unique = s.query(func.count(func.distinct(ShortlistInfluencer.influencer_id))).join(
        Shortlist, Shortlist.id == ShortlistInfluencer.shortlist_id
    )
    if brand_id:
        lists = lists.filter(Shortlist.brand_id == brand_id)
        members = members.filter(Shortlist.brand_id == brand_id)
        unique = unique.filter(Shortlist.brand_id == brand_id)
    total_lists = lists.scalar() or 0
    total_members = members.scalar() or 0
    return {
        "total_shortlists": total_lists,
        "total_influencers": total_members,
        "unique_influencers": unique.scalar() or 0,
        "average_size": round(total_members / total_lists, 1) if total_lists else 0,
    }


def serialize_shortlist(sl: Shortlist, *, detail: bool = True) -> dict:
    out = {
        "id": sl.id,
        "brand_id": sl.brand_id,
        "name": sl.name,
        "description": sl.description,
        "influencer_count": len(sl.members),
        "created_at": iso(sl.created_at),
        "updated_at": iso(sl.updated_at),
    }
    if detail:
        out["influencers"] = [
            {
                "influencer_id": m.influencer_id,
                "display_name": m.influencer.display_name if m.influencer else None,
                "tier": m.influencer.tier if m.influencer else None,
                "total_followers": m.influencer.total_followers if m.influencer else None,
                "notes": m.notes,
                "added_at": iso(m.added_at),
            }
            for m in sl.members
        ]
    return out
