from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any


def utcnow() -> datetime:
    """Naive UTC timestamp (columns are timezone=False)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def clean_str(v: Any) -> str | None:
    """Strip a value to a string, returning None when blank."""
    if v is None:
        return None
    s = str(v).strip()
    return s or None


def parse_date(s: Any) -> date | None:
    """Parse YYYY-MM-DD (or a full ISO timestamp) into a date."""
    if s is None or isinstance(s, date) and not isinstance(s, datetime):
        return s
    if isinstance(s, datetime):
        return s.date()
    raw = str(s).strip()
    if not raw:
        return None
    return date.fromisoformat(raw[:10])


def parse_datetime(s: Any) -> datetime | None:
    if s is None or isinstance(s, datetime):
        return s
    raw = str(s).strip()
    if not raw:
        return None
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    dt = datetime.fromisoformat(raw)
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def parse_decimal(v: Any, places: int = 2) -> Decimal | None:
    """Parse money-ish input into a Decimal rounded to `places`. Raises ValueError on junk."""
    if v is None or (isinstance(v, str) and not v.strip()):
        return None
    try:
        d = Decimal(str(v).strip())
    except InvalidOperation as e:
        raise ValueError(f"Invalid number: {v!r}") from e
    if not d.is_finite():
        raise ValueError(f"Invalid number: {v!r}")
    try:
        return d.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        raise ValueError(f"Number out of range: {v!r}") from e


def parse_int(v: Any, default: int | None = None) -> int | None:
    if v is None or (isinstance(v, str) and not v.strip()):
        return default
    try:
        return int(v)
    except (TypeError, ValueError):
        return default


def parse_bool(v: Any) -> bool | None:
    if v is None or isinstance(v, bool):
        return v
    s = str(v).strip().lower()
    if s in ("1", "true", "yes", "on"):
        return True
    if s in ("0", "false", "no", "off"):
        return False
    return None


def parse_str_list(v: Any) -> list[str]:
    """Accept a list or a comma-separated string; drop blanks."""
    if v is None:
        return []
    if isinstance(v, str):
        items = v.split(",")
    elif isinstance(v, (list, tuple)):
        items = v
    else:
        return []
    return [str(i).strip() for i in items if i is not None and str(i).strip()]


def load_json_object(raw: str | None) -> dict:
    """Parse a JSON text column; blank or invalid text yields an empty dict."""
    if not raw or not raw.strip():
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        return {}
    return value if isinstance(value, dict) else {}


def iso(v: date | datetime | None) -> str | None:
    return v.isoformat() if v is not None else None


def money(v: Decimal | None) -> str | None:
    if v is None:
        return None
    return str(Decimal(str(v)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


@dataclass
class PaginatedResult:
    data: list = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 20

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def to_dict(self, serialize) -> dict:
        return {
            "data": [serialize(x) for x in self.data],
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
            "total_pages": self.total_pages,
        }


def page_args(args, default_limit: int = 20, max_limit: int = 100) -> tuple[int, int]:
    page = max(parse_int(args.get("page"), 1) or 1, 1)
    limit = parse_int(args.get("limit"), default_limit) or default_limit
    limit = min(max(limit, 1), max_limit)
    return page, limit


# ---------- Display formatting ----------
def format_number(n: int | float | None) -> str:
    """Compact follower counts: 1.2K, 3.4M."""
    if n is None:
        return "0"
    n = float(n)
    if abs(n) >= 1_000_000:
        return f"{n / 1_000_000:.1f}M"
    if abs(n) >= 1_000:
        return f"{n / 1_000:.1f}K"
    return str(int(n))


def format_currency(amount: Decimal | float | None, currency: str = "GBP") -> str:
    symbols = {"GBP": "£", "USD": "$", "EUR": "€"}
    value = Decimal(str(amount or 0)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    symbol = symbols.get((currency or "").upper())
    if symbol:
        return f"{symbol}{value:,.2f}"
    return f"{value:,.2f} {currency}"


def format_percentage(rate: float | None, places: int = 1) -> str:
    return f"{float(rate or 0):.{places}f}%"


def json_body() -> dict:
    """Request JSON object; anything else is a 400."""
    from flask import request

    from app.stride.errors import BadRequest

    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise BadRequest("Request body must be a JSON object")
    return data
