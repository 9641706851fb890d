from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.stride.auth import current_user
from app.stride.db import db_session
from app.stride.modules.campaigns.service import serialize_campaign
from app.stride.modules.templates.service import (
    create_campaign_from_template,
    create_template,
    delete_template,
    get_template_or_404,
    list_templates,
    serialize_template,
    update_template,
)
from app.stride.rbac import require_auth, require_permission, require_portal
from app.stride.utils import json_body, parse_bool

bp = Blueprint("templates", __name__)


@bp.get("/campaign-templates")
@require_auth
def templates_list():
    s = db_session()
    rows = list_templates(
        s,
        include_inactive=bool(parse_bool(request.args.get("includeInactive") or request.args.get("include_inactive"))),
        industry=(request.args.get("industry") or "").strip() or None,
    )
    return jsonify({"data": [serialize_template(t) for t in rows]})


@bp.post("/campaign-templates")
@require_portal("staff")
def templates_create():
    s = db_session()
    t = create_template(s, json_body(), current_user())
    s.commit()
    return jsonify({"template": serialize_template(t)}), 201


@bp.get("/campaign-templates/<template_id>")
@require_auth
def templates_detail(template_id: str):
    s = db_session()
    return jsonify({"template": serialize_template(get_template_or_404(s, template_id))})


@bp.route("/campaign-templates/<template_id>", methods=["PUT", "PATCH"])
@require_portal("staff")
def templates_update(template_id: str):
    s = db_session()
    t = update_template(
        s, get_template_or_404(s, template_id), json_body(), replace=request.method == "PUT", actor=current_user()
    )
    s.commit()
    return jsonify({"template": serialize_template(t)})


@bp.delete("/campaign-templates/<template_id>")
@require_portal("staff")
def templates_delete(template_id: str):
    s = db_session()
    delete_template(s, get_template_or_404(s, template_id), current_user())
    s.commit()
    return jsonify({"success": True})


@bp.post("/campaign-templates/<template_id>/create-campaign")
@require_permission("CREATE_CAMPAIGNS")
def templates_use(template_id: str):
    s = db_session()
    c = create_campaign_from_template(s, get_template_or_404(s, template_id), json_body(), current_user())
    s.commit()
    return jsonify({"campaign": serialize_campaign(c, detail=True)}), 201
