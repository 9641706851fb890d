from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

_UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)


def is_valid_modash_user_id(value: Any, platform: str | None = None) -> bool:
    """
    Modash ids are opaque strings. Our own influencer ids are UUIDs and
    occasionally leaked into stored notes, so those are rejected.
    YouTube ids are channel ids ("UC...").
    """
    if not isinstance(value, str):
        return False
    v = value.strip()
    if not v or _UUID_RE.match(v):
        return False
    if (platform or "").lower() == "youtube" and not v.startswith("UC"):
        return False
    return True


@dataclass(frozen=True)
class Candidate:
    value: Any
    name: str
    platform_check: Callable[[], bool] | None = None


def resolve_modash_user_id(candidates: list[Candidate], platform: str | None = None) -> tuple[str, str] | None:
    """Return (user_id, source name) for the first usable candidate, in order."""
    for c in candidates:
        if not is_valid_modash_user_id(c.value, platform):
            continue
        if c.platform_check is not None and not c.platform_check():
            continue
        return c.value.strip(), c.name
    return None
