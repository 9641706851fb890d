from __future__ import annotations

import json
import logging
import time
import urllib.request
import uuid
from typing import Any

from flask import Blueprint, current_app, g, jsonify, request
from jose import JWTError, jwt
from svix.webhooks import Webhook, WebhookVerificationError

from app.stride.db import db_session
from app.stride.errors import Unauthorized
from app.stride.models import User
from app.stride.rbac import PERMISSIONS, role_redirect_path, user_has_permission

bp = Blueprint("auth", __name__)
logger = logging.getLogger(__name__)

_JWKS_TTL_SECONDS = 3600
_jwks_cache: dict[str, tuple[float, dict]] = {}


def _fetch_jwks(url: str) -> dict:
    cached = _jwks_cache.get(url)
    if cached and time.monotonic() - cached[0] < _JWKS_TTL_SECONDS:
        return cached[1]
    req = urllib.request.Request(url, method="GET")
    req.add_header("Accept", "application/json")
    secret = current_app.config.get("CLERK_SECRET_KEY")
    if secret:
        req.add_header("Authorization", f"Bearer {secret}")
    with urllib.request.urlopen(req, timeout=10) as resp:
        jwks = json.loads(resp.read().decode("utf-8"))
    _jwks_cache[url] = (time.monotonic(), jwks)
    return jwks


def verify_session_token(token: str, config: dict) -> dict[str, Any]:
    """
    Verify a Clerk session JWT and return its claims.

    Uses CLERK_JWT_KEY when set (networkless verification), otherwise the
    instance JWKS at CLERK_JWKS_URL.
    """
    algorithms = config.get("CLERK_JWT_ALGORITHMS") or ["RS256"]
    key: Any = config.get("CLERK_JWT_KEY")
    if not key:
        jwks_url = config.get("CLERK_JWKS_URL")
        if not jwks_url:
            raise Unauthorized("Authentication is not configured")
        try:
            key = _fetch_jwks(jwks_url)
        except Exception as e:
            logger.error("Failed to fetch Clerk JWKS from %s: %s", jwks_url, e)
            raise Unauthorized("Unable to verify session") from e
    try:
        claims = jwt.decode(token, key, algorithms=algorithms, options={"verify_aud": False})
    except JWTError as e:
        raise Unauthorized("Invalid session token") from e
    if not claims.get("sub"):
        raise Unauthorized("Session token has no subject")
    return claims


def _token_from_request() -> str | None:
    header = request.headers.get("Authorization") or ""
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return request.cookies.get("__session") or None


def load_current_user() -> None:
    """
    Loads g.current_user from the Clerk session token.
    Also assigns a simple per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    g.current_user = None
    g.clerk_user_id = None
    g.user_deactivated = False
    if request.path.startswith(("/health", "/healthz", "/api/webhooks/")):
        return

    token = _token_from_request()
    if not token:
        return

    try:
        claims = verify_session_token(token, current_app.config)
    except Unauthorized as e:
        logger.info("Rejected session token: %s (request_id=%s)", e.message, g.request_id)
        return

    g.clerk_user_id = claims["sub"]
    try:
        s = db_session()
        user = s.query(User).filter(User.clerk_id == claims["sub"]).one_or_none()
        if not user:
            return
        if not user.is_active:
            g.user_deactivated = True
            return
        g.current_user = user
    except Exception as e:
        current_app.logger.error("load_current_user DB error: %s", e)
        g.current_user = None


def current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise Unauthorized("Authentication required")
    return u


@bp.get("/me")
def me():
    from app.stride.modules.users.service import serialize_user

    user = getattr(g, "current_user", None)
    if not user:
        if getattr(g, "user_deactivated", False):
            return jsonify({"error": "Account is deactivated"}), 403
        if getattr(g, "clerk_user_id", None):
            # Signed in with Clerk but not yet provisioned by the webhook.
            return jsonify({"error": "User not provisioned", "clerk_id": g.clerk_user_id}), 404
        return jsonify({"error": "Authentication required"}), 401
    return jsonify(
        {
            "user": serialize_user(user),
            "home": role_redirect_path(user.role),
            "permissions": sorted(k for k in PERMISSIONS if user_has_permission(user, k)),
        }
    )


@bp.post("/webhooks/clerk")
def clerk_webhook():
    from app.stride.modules.users.service import handle_clerk_event

    secret = current_app.config.get("CLERK_WEBHOOK_SECRET")
    if not secret:
        logger.error("CLERK_WEBHOOK_SECRET is not configured; rejecting webhook")
        return jsonify({"error": "Webhook secret not configured"}), 500

    headers = {
        "svix-id": request.headers.get("svix-id") or "",
        "svix-timestamp": request.headers.get("svix-timestamp") or "",
        "svix-signature": request.headers.get("svix-signature") or "",
    }
    if not all(headers.values()):
        return jsonify({"error": "Missing svix headers"}), 400

    body = request.get_data(as_text=True)
    try:
        # raises on a bad signature; the payload is parsed below
        Webhook(secret).verify(body, headers)
    except WebhookVerificationError:
        logger.warning("Clerk webhook signature verification failed (svix-id=%s)", headers["svix-id"])
        return jsonify({"error": "Invalid signature"}), 400

    try:
        event = json.loads(body)
    except json.JSONDecodeError:
        return jsonify({"error": "Invalid JSON payload"}), 400
    if not isinstance(event, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400

    event_type = event.get("type") or ""
    data = event.get("data") or {}
    s = db_session()
    user = handle_clerk_event(s, event_type, data)
    s.commit()
    logger.info("Clerk webhook %s handled (clerk_id=%s)", event_type, data.get("id"))
    return jsonify({"received": True, "type": event_type, "user_id": user.id if user else None})
