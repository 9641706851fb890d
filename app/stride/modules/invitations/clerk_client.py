from __future__ import annotations

import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


class ClerkError(RuntimeError):
    def __init__(self, message: str, status: int | None = None, code: str | None = None):
        super().__init__(message)
        self.status = status
        self.code = code


def _error_code(raw: str) -> str | None:
    try:
        errors = json.loads(raw).get("errors") or []
    except (ValueError, AttributeError):
        return None
    return errors[0].get("code") if errors and isinstance(errors[0], dict) else None


@dataclass
class ClerkClient:
    """Minimal Clerk Backend API client (invitations and user creation)."""

    secret_key: str
    base_url: str = "https://api.clerk.com"
    timeout_seconds: int = 30

    def request_json(self, path: str, *, method: str = "GET", body: dict[str, Any] | None = None) -> dict[str, Any]:
        if not self.secret_key:
            raise ClerkError("CLERK_SECRET_KEY is not configured.")
        url = self.base_url.rstrip("/") + path
        data = json.dumps(body).encode("utf-8") if body is not None else None
        req = urllib.request.Request(url, data=data, method=method)
        req.add_header("Authorization", f"Bearer {self.secret_key}")
        req.add_header("Accept", "application/json")
        req.add_header("Content-Type", "application/json")
        # Not retried: invitation and user creation are not idempotent.
        try:
            with urllib.request.urlopen(req, timeout=self.timeout_seconds) as resp:
                raw = resp.read()
        except urllib.error.HTTPError as e:
            try:
                err_body = e.read().decode("utf-8", errors="ignore")
            except Exception:
                err_body = ""
            raise ClerkError(f"HTTP {e.code} from Clerk: {err_body[:300]}", status=e.code, code=_error_code(err_body)) from e
        except OSError as e:
            logger.warning("Clerk request %s %s failed: %s", method, path, e)
            raise ClerkError(f"Clerk request failed: {e}") from e
        try:
            return json.loads(raw.decode("utf-8")) if raw else {}
        except ValueError as e:
            raise ClerkError(f"Invalid JSON from Clerk ({path})") from e

    def create_invitation(
        self, email: str, *, public_metadata: dict[str, Any], redirect_url: str | None = None
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"email_address": email, "public_metadata": public_metadata, "notify": True}
        if redirect_url:
            body["redirect_url"] = redirect_url
        return self.request_json("/v1/invitations", method="POST", body=body)

    def revoke_invitation(self, invitation_id: str) -> dict[str, Any]:
        return self.request_json(f"/v1/invitations/{urllib.parse.quote(invitation_id)}/revoke", method="POST")

    def create_user(
        self, email: str, *, first_name: str, last_name: str, password: str, public_metadata: dict[str, Any]
    ) -> dict[str, Any]:
        return self.request_json(
            "/v1/users",
            method="POST",
            body={
                "email_address": [email],
                "first_name": first_name,
                "last_name": last_name,
                "password": password,
                "public_metadata": public_metadata,
            },
        )


def client_from_config(config) -> ClerkClient:
    return ClerkClient(
        secret_key=config.get("CLERK_SECRET_KEY") or "",
        base_url=config.get("CLERK_API_URL") or "https://api.clerk.com",
    )
