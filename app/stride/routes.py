from flask import Blueprint, current_app, jsonify
from sqlalchemy import text

from app.stride.db import db_session

bp = Blueprint("routes", __name__)


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON, including DB and cache reachability."""
    db_ok = True
    try:
        db_session().execute(text("SELECT 1"))
    except Exception as e:
        current_app.logger.error("Health check DB error: %s", e)
        db_ok = False
    cache = current_app.extensions.get("redis_cache")
    return jsonify({"ok": db_ok, "database": db_ok, "cache": bool(cache and cache.is_available)}), (200 if db_ok else 503)


@bp.get("/healthz")
def healthz():
    """
    Fast health check for container liveness checks. No DB access, minimal overhead.
    """
    return "ok", 200
