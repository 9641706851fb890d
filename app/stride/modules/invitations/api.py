from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from app.stride.auth import current_user
from app.stride.db import db_session
from app.stride.modules.invitations.service import (
    accept_invitation,
    create_invitation,
    expire_stale_invitations,
    get_invitation_or_404,
    invitation_stats,
    list_invitations,
    resend_invitation,
    revoke_invitation,
    serialize_invitation,
)
from app.stride.modules.users.service import serialize_user
from app.stride.rbac import require_permission, require_portal
from app.stride.utils import json_body, page_args

bp = Blueprint("invitations", __name__)


def clerk_client():
    return current_app.extensions["clerk_client"]


def _app_url() -> str:
    return current_app.config.get("APP_URL") or request.host_url


@bp.get("/staff/invitations")
@require_portal("staff")
def staff_invitations_list():
    s = db_session()
    if expire_stale_invitations(s):
        s.commit()
    page, limit = page_args(request.args, default_limit=50)
    filters = {"status": request.args.get("status"), "role": request.args.get("role")}
    body = list_invitations(s, filters, page, limit).to_dict(serialize_invitation)
    body["stats"] = invitation_stats(s)
    return jsonify(body)


@bp.post("/staff/invitations")
@require_permission("CREATE_USERS")
def staff_invitations_create():
    s = db_session()
    inv = create_invitation(s, clerk_client(), json_body(), current_user(), app_url=_app_url())
    s.commit()
    return jsonify({"invitation": serialize_invitation(inv), "message": f"Invitation sent to {inv.email}"}), 201


@bp.delete("/staff/invitations/<invitation_id>")
@require_permission("CREATE_USERS")
def staff_invitations_revoke(invitation_id: str):
    s = db_session()
    inv = revoke_invitation(s, clerk_client(), get_invitation_or_404(s, invitation_id), current_user())
    s.commit()
    return jsonify({"invitation": serialize_invitation(inv), "message": "Invitation cancelled successfully"})


@bp.post("/staff/invitations/<invitation_id>/resend")
@require_permission("CREATE_USERS")
def staff_invitations_resend(invitation_id: str):
    s = db_session()
    inv = resend_invitation(s, clerk_client(), get_invitation_or_404(s, invitation_id), current_user(), app_url=_app_url())
    s.commit()
    return jsonify({"invitation": serialize_invitation(inv), "message": "Invitation resent successfully"}), 201


# Public: the invitee has no session yet.
@bp.post("/invitations/accept")
def invitations_accept():
    s = db_session()
    user = accept_invitation(s, clerk_client(), json_body())
    s.commit()
    return jsonify({"user": serialize_user(user), "message": "Account created successfully"}), 201
