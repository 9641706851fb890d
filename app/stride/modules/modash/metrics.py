"""
Normalize raw Modash metrics (report payloads or client-supplied numbers)
into one shape. Field names vary between Modash endpoints and older
stored snapshots, so each metric is read from a list of aliases.
"""
from __future__ import annotations

import math
from typing import Any, TypedDict


class NormalizedMetrics(TypedDict):
    followers: float
    engagementRate: float
    avgViews: float
    avgLikes: float | None
    avgComments: float | None
    username: str
    profileUrl: str | None
    picture: str | None


def coerce_number(*values: Any) -> float | int | None:
    """First value that converts to a finite number, else None."""
    for v in values:
        if v is None or isinstance(v, bool):
            continue
        try:
            n = float(v)
        except (TypeError, ValueError):
            continue
        if math.isfinite(n):
            return int(n) if n.is_integer() else n
    return None


def coerce_string(*values: Any) -> str | None:
    """First non-blank string, stripped, else None."""
    for v in values:
        if isinstance(v, str) and v.strip():
            return v.strip()
    return None


def _first(value, fallback):
    return value if value is not None else fallback


def normalize_metrics(raw: dict[str, Any] | None, fallbacks: dict[str, Any] | None = None) -> NormalizedMetrics:
    fb = fallbacks or {}
    if not raw:
        return {
            "followers": _first(fb.get("followers"), 0),
            "engagementRate": _first(fb.get("engagementRate"), 0),
            "avgViews": _first(fb.get("avgViews"), 0),
            "avgLikes": None,
            "avgComments": None,
            "username": _first(fb.get("username"), "unknown"),
            "profileUrl": fb.get("profileUrl"),
            "picture": fb.get("picture"),
        }

    return {
        "followers": _first(_first(coerce_number(raw.get("followers")), fb.get("followers")), 0),
        "engagementRate": _first(
            _first(coerce_number(raw.get("engagementRate"), raw.get("engagement_rate")), fb.get("engagementRate")), 0
        ),
        "avgViews": _first(
            _first(
                coerce_number(raw.get("avgViews"), raw.get("averageViews"), raw.get("avg_views"), raw.get("avg_reels_views")),
                fb.get("avgViews"),
            ),
            0,
        ),
        "avgLikes": coerce_number(raw.get("avgLikes"), raw.get("avg_likes")),
        "avgComments": coerce_number(raw.get("avgComments"), raw.get("avg_comments")),
        "username": _first(_first(coerce_string(raw.get("username"), raw.get("handle")), fb.get("username")), "unknown"),
        "profileUrl": _first(coerce_string(raw.get("url"), raw.get("profileUrl")), fb.get("profileUrl")),
        "picture": _first(coerce_string(raw.get("picture")), fb.get("picture")),
    }
