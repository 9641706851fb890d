from __future__ import annotations

import logging

from flask import Flask, g, jsonify
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class ApiError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: int | None = None, details: dict | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details


class BadRequest(ApiError):
    status_code = 400


class Unauthorized(ApiError):
    status_code = 401


class Forbidden(ApiError):
    status_code = 403


class NotFound(ApiError):
    status_code = 404


class Conflict(ApiError):
    status_code = 409


class UpstreamError(ApiError):
    status_code = 502


def validation_error(errors: list[str]) -> BadRequest:
    return BadRequest(errors[0] if len(errors) == 1 else "Validation failed", details={"errors": errors})


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ApiError)
    def _api_error(e: ApiError):
        body: dict = {"error": e.message}
        if e.details:
            body.update(e.details)
        if e.status_code >= 500:
            logger.error("%s (request_id=%s)", e.message, getattr(g, "request_id", None))
        return jsonify(body), e.status_code

    @app.errorhandler(IntegrityError)
    def _integrity_error(e: IntegrityError):
        logger.warning("Integrity error (request_id=%s): %s", getattr(g, "request_id", None), str(e.orig)[:300])
        s = getattr(g, "db_session", None)
        if s is not None:
            s.rollback()
        return jsonify({"error": "Conflicts with an existing record"}), 409

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):
        return jsonify({"error": e.description or e.name}), e.code or 500

    @app.errorhandler(Exception)
    def _err_500(e: Exception):
        rid = getattr(g, "request_id", None)
        app.logger.exception("Unhandled 500 (request_id=%s)", rid)
        return jsonify({"error": "Internal server error", "request_id": rid}), 500
