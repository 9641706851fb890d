from __future__ import annotations

from datetime import datetime, timedelta

from app.stride.utils import utcnow

# How often each tier's Modash data should be refreshed
UPDATE_INTERVALS: dict[str, timedelta] = {
    "GOLD": timedelta(days=28),
    "SILVER": timedelta(days=42),
    "PARTNERED": timedelta(days=42),
    "BRONZE": timedelta(days=56),
}

TIER_PRIORITY_BONUS = {"GOLD": 30, "SILVER": 10, "PARTNERED": 5, "BRONZE": 0}


def calculate_tier(followers: int, engagement_rate: float, campaign_count: int = 0) -> str:
    """Engagement is a percentage (3.5 == 3.5%)."""
    if followers >= 100_000 and engagement_rate >= 3.5 and campaign_count >= 2:
        return "GOLD"
    if followers >= 50_000 and engagement_rate >= 2.5:
        return "SILVER"
    if followers < 10_000 or engagement_rate < 1.5:
        return "BRONZE"
    return "SILVER"


def _interval(tier: str | None) -> timedelta:
    return UPDATE_INTERVALS.get((tier or "").upper(), UPDATE_INTERVALS["BRONZE"])


def next_update_date(tier: str | None, last_updated: datetime | None = None) -> datetime:
    return (last_updated or utcnow()) + _interval(tier)


def needs_update(tier: str | None, last_updated: datetime | None, now: datetime | None = None) -> bool:
    if last_updated is None:
        return True
    return (now or utcnow()) - last_updated >= _interval(tier)


def calculate_priority(tier: str | None, days_since_update: float, active_campaigns: int, follower_growth_rate: float) -> int:
    priority = 50.0
    priority += TIER_PRIORITY_BONUS.get((tier or "").upper(), 0)
    priority += min(days_since_update * 0.5, 20)
    priority += active_campaigns * 5
    if follower_growth_rate > 5:
        priority += 10
    elif follower_growth_rate > 2:
        priority += 5
    return int(min(max(priority, 1), 100))
