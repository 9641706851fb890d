from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.stride.audit import list_events, serialize_event
from app.stride.auth import current_user
from app.stride.db import db_session
from app.stride.errors import BadRequest
from app.stride.modules.users.service import (
    create_user,
    delete_user,
    get_user_or_404,
    list_users,
    serialize_user,
    update_user_profile,
    update_user_role,
    user_stats,
)
from app.stride.rbac import require_auth, require_permission, require_portal
from app.stride.utils import json_body, page_args, parse_bool, parse_int, parse_str_list

bp = Blueprint("users", __name__)


@bp.get("/staff/users")
@require_portal("staff")
def staff_users_list():
    s = db_session()
    page, limit = page_args(request.args)
    onboarded = request.args.get("is_onboarded")
    result = list_users(
        s,
        search=(request.args.get("search") or "").strip() or None,
        roles=parse_str_list(request.args.get("roles") or request.args.get("role")),
        is_onboarded=parse_bool(onboarded) if onboarded else None,
        page=page,
        limit=limit,
    )
    body = result.to_dict(serialize_user)
    body["stats"] = user_stats(s)
    return jsonify(body)


@bp.post("/staff/users")
@require_permission("CREATE_USERS")
def staff_users_create():
    s = db_session()
    user = create_user(s, json_body(), current_user())
    s.commit()
    return jsonify({"user": serialize_user(user)}), 201


@bp.patch("/users/<user_id>/update-role")
@require_permission("EDIT_ALL_USERS")
def user_update_role(user_id: str):
    s = db_session()
    payload = json_body()
    if not payload.get("role"):
        raise BadRequest("role is required.")
    user = update_user_role(s, get_user_or_404(s, user_id), payload["role"], current_user(), payload.get("reason"))
    s.commit()
    return jsonify({"user": serialize_user(user)})


@bp.delete("/users/<user_id>")
@require_permission("DELETE_USERS")
def user_delete(user_id: str):
    s = db_session()
    delete_user(s, get_user_or_404(s, user_id), current_user())
    s.commit()
    return jsonify({"success": True})


@bp.get("/me/profile")
@require_auth
def me_profile():
    return jsonify({"user": serialize_user(current_user())})


@bp.patch("/me/profile")
@require_auth
def me_profile_update():
    s = db_session()
    u = current_user()
    update_user_profile(s, u, json_body(), u)
    s.commit()
    return jsonify({"user": serialize_user(u)})


@bp.get("/audit")
@require_permission("VIEW_AUDIT_LOGS")
def audit_list():
    s = db_session()
    events = list_events(
        s,
        action=(request.args.get("action") or "").strip() or None,
        entity_type=(request.args.get("entity_type") or "").strip() or None,
        entity_id=(request.args.get("entity_id") or "").strip() or None,
        actor_user_id=(request.args.get("actor_user_id") or "").strip() or None,
        limit=parse_int(request.args.get("limit"), 100) or 100,
    )
    return jsonify({"data": [serialize_event(e) for e in events]})
