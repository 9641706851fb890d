from __future__ import annotations

import json
import logging
import re
import time
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass, field
from typing import Any

from app.stride.constants import MODASH_PLATFORMS

logger = logging.getLogger(__name__)

_USERNAME_RE = re.compile(r"^[a-zA-Z0-9._@]+$")


class ModashError(RuntimeError):
    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class ModashRateLimited(ModashError):
    pass


def build_influencer_filter(filters: dict[str, Any]) -> dict[str, Any]:
    """
    Map discovery UI filters onto the Modash `filter.influencer` object.

    Engagement is entered as a percentage and sent as a decimal. A single
    username-looking search term becomes an exact handle search.
    """
    out: dict[str, Any] = {}

    followers = filters.get("followers") or {}
    if followers.get("min") or followers.get("max"):
        out["followers"] = {k: followers[k] for k in ("min", "max") if followers.get(k)}

    if filters.get("engagementRate"):
        out["engagementRate"] = float(filters["engagementRate"]) / 100

    bio = (filters.get("bio") or "").strip()
    if bio:
        out["bio"] = bio

    tags = [{"type": "hashtag", "value": t.replace("#", "")} for t in filters.get("hashtags") or []]
    tags += [{"type": "mention", "value": m.replace("@", "")} for m in filters.get("mentions") or []]
    if tags:
        out["textTags"] = tags

    if filters.get("topics"):
        out["relevance"] = list(filters["topics"])

    terms = [t for t in (filters.get("relevance") or []) if t and t.strip()]
    if terms:
        if len(terms) == 1 and _USERNAME_RE.match(terms[0].strip()):
            username = terms[0].replace("@", "").strip()
            out["username"] = username
            out["relevance"] = [f"@{username}", username]
        else:
            out["relevance"] = terms

    for key in ("location", "language", "gender", "lastposted"):
        if filters.get(key):
            out[key] = filters[key]

    if filters.get("verified"):
        out["isVerified"] = True

    if not out:
        # Unfiltered browsing: skip the long tail of tiny accounts.
        out["followers"] = {"min": 1000}
    return out


def transform_search_result(data: dict[str, Any], platform: str) -> dict[str, Any]:
    profile = data.get("profile") or data.get("userInfo") or data
    return {
        "userId": data.get("userId") or data.get("id") or profile.get("userId"),
        "username": profile.get("username") or profile.get("handle") or data.get("username"),
        "display_name": profile.get("fullname") or profile.get("fullName") or profile.get("username"),
        "platform": platform,
        "followers": profile.get("followers") or 0,
        # Modash reports engagement as a fraction
        "engagement_rate": round(float(profile.get("engagementRate") or 0) * 100, 2),
        "avg_views": profile.get("avgViews") or profile.get("avgReelsPlays"),
        "profile_picture": profile.get("picture") or profile.get("profile_picture"),
        "url": profile.get("url"),
        "verified": bool(profile.get("isVerified") or profile.get("verified")),
    }


@dataclass
class ModashClient:
    api_key: str
    base_url: str = "https://api.modash.io"
    request_delay_ms: int = 500
    timeout_seconds: int = 60
    _last_request_at: float = field(default=0.0, init=False, repr=False)

    def _throttle(self) -> None:
        # Fixed client-side delay between calls (Modash allows ~2 req/s).
        wait = self.request_delay_ms / 1000.0 - (time.monotonic() - self._last_request_at)
        if wait > 0:
            time.sleep(wait)
        self._last_request_at = time.monotonic()

    def request_json(
        self,
        path: str,
        *,
        method: str = "GET",
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
        retries: int = 3,
    ) -> dict[str, Any]:
        if not self.api_key:
            raise ModashError("MODASH_API_KEY is not configured.")
        url = self.base_url.rstrip("/") + path
        if params:
            url += "?" + urllib.parse.urlencode({k: v for k, v in params.items() if v is not None})
        data = json.dumps(body).encode("utf-8") if body is not None else None

        last_err: Exception | None = None
        for attempt in range(retries + 1):
            self._throttle()
            try:
                req = urllib.request.Request(url, data=data, method=method)
                req.add_header("Authorization", f"Bearer {self.api_key}")
                req.add_header("Accept", "application/json")
                req.add_header("Content-Type", "application/json")
                with urllib.request.urlopen(req, timeout=self.timeout_seconds) as resp:
                    raw = resp.read()
                    try:
                        return json.loads(raw.decode("utf-8"))
                    except Exception as e:
                        raise ModashError(f"Invalid JSON from Modash ({path})") from e
            except urllib.error.HTTPError as e:
                if e.code == 429:
                    # rate limit; brief backoff
                    time.sleep(min(2 * (attempt + 1), 10))
                    last_err = ModashRateLimited("Rate limited (429)", status=429)
                    continue
                try:
                    err_body = e.read().decode("utf-8", errors="ignore")
                except Exception:
                    err_body = ""
                raise ModashError(f"HTTP {e.code} from Modash: {err_body[:300]}", status=e.code) from e
            except OSError as e:
                # URLError, connection resets and socket timeouts
                last_err = e
                logger.warning("Modash request %s %s failed (attempt %d): %s", method, path, attempt + 1, e)
                time.sleep(min(1 * (attempt + 1), 5))
                continue
        raise ModashError(f"Modash request failed after retries: {last_err}")

    def get_profile_report(self, user_id: str, platform: str = "instagram") -> dict[str, Any]:
        platform = _check_platform(platform)
        return self.request_json(f"/v1/{platform}/profile/{urllib.parse.quote(str(user_id))}/report")

    def search(self, platform: str, filters: dict[str, Any], *, page: int = 0, limit: int = 20) -> dict[str, Any]:
        platform = _check_platform(platform)
        influencer_filter = build_influencer_filter(filters)
        j = self.request_json(
            f"/v1/{platform}/search",
            method="POST",
            body={
                "page": page,
                "limit": limit,
                "sort": {"field": "followers", "direction": "desc"},
                "filter": {"influencer": influencer_filter},
            },
        )
        # A search term means exact matches only; browsing includes lookalikes.
        is_search = bool(filters.get("relevance"))
        rows = list(j.get("directs") or [])
        if not is_search:
            rows += list(j.get("lookalikes") or [])
        total = len(j.get("directs") or []) if is_search else int(j.get("total") or 0)
        return {
            "results": [transform_search_result(r, platform) for r in rows if isinstance(r, dict)],
            "total": total,
            "page": page,
            "limit": limit,
            "hasMore": (not is_search) and (page + 1) * limit < int(j.get("total") or 0),
        }

    def search_by_handle(self, handle: str, platform: str) -> dict[str, Any] | None:
        platform = _check_platform(platform)
        clean = handle.replace("@", "").strip()
        j = self.request_json(
            f"/v1/{platform}/search",
            method="POST",
            body={"page": 0, "limit": 1, "filter": {"influencer": {"relevance": [f"@{clean}"]}}},
        )
        directs = j.get("directs") or []
        return transform_search_result(directs[0], platform) if directs else None

    def list_users(self, platform: str, query: str | None = None, limit: int = 10) -> list[dict[str, Any]]:
        platform = _check_platform(platform)
        j = self.request_json(f"/v1/{platform}/users", params={"query": query or None, "limit": limit})
        users = j.get("users") or []
        return users if isinstance(users, list) else []

    def get_credit_usage(self) -> dict[str, Any]:
        j = self.request_json("/user/info")
        used, limit, remaining = (j.get(k) for k in ("credits_used", "credits_limit", "credits_remaining"))
        return {
            "used": 0 if used is None else used,
            "limit": 3000 if limit is None else limit,
            "remaining": 3000 if remaining is None else remaining,
            "reset_date": j.get("reset_date"),
        }


def _check_platform(platform: str) -> str:
    p = (platform or "").strip().lower()
    if p not in MODASH_PLATFORMS:
        raise ModashError(f"Unsupported Modash platform: {platform!r}")
    return p


def client_from_config(config) -> ModashClient:
    return ModashClient(
        api_key=config.get("MODASH_API_KEY") or "",
        base_url=config.get("MODASH_BASE_URL") or "https://api.modash.io",
        request_delay_ms=int(config.get("MODASH_REQUEST_DELAY_MS") or 0),
    )
