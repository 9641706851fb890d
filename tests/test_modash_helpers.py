from datetime import datetime, timedelta

from app.stride.modules.modash.client import build_influencer_filter, transform_search_result
from app.stride.modules.modash.identifiers import Candidate, is_valid_modash_user_id, resolve_modash_user_id
from app.stride.modules.modash.metrics import coerce_number, coerce_string, normalize_metrics
from app.stride.modules.modash.tiers import calculate_priority, calculate_tier, needs_update, next_update_date


def test_coerce_number():
    assert coerce_number(None, "abc", "12") == 12
    assert coerce_number("2.5") == 2.5
    assert coerce_number(float("nan"), float("inf"), 3) == 3
    assert coerce_number(True, None) is None


def test_coerce_string():
    assert coerce_string("  ", None, " ava ") == "ava"
    assert coerce_string(5, "") is None


def test_normalize_metrics_aliases_and_fallbacks():
    m = normalize_metrics(
        {"followers": "1200", "engagement_rate": 0.04, "averageViews": 300, "handle": "ava"},
        {"username": "fallback", "profileUrl": "https://x.test/ava"},
    )
    assert m["followers"] == 1200
    assert m["engagementRate"] == 0.04
    assert m["avgViews"] == 300
    assert m["avgLikes"] is None
    assert m["username"] == "ava"
    assert m["profileUrl"] == "https://x.test/ava"


def test_normalize_metrics_empty_uses_defaults():
    m = normalize_metrics(None, {"followers": 10})
    assert m["followers"] == 10
    assert m["engagementRate"] == 0
    assert m["username"] == "unknown"


def test_modash_user_id_validation():
    assert is_valid_modash_user_id("173560420")
    assert not is_valid_modash_user_id("3f2b8c1e-1d2a-4b5c-9d8e-7f6a5b4c3d2e")
    assert not is_valid_modash_user_id("  ")
    assert not is_valid_modash_user_id(12345)
    assert not is_valid_modash_user_id("173560420", "youtube")
    assert is_valid_modash_user_id("UCabc123", "youtube")


def test_resolve_candidates_in_order():
    uuid_like = "3f2b8c1e-1d2a-4b5c-9d8e-7f6a5b4c3d2e"
    assert resolve_modash_user_id([Candidate(uuid_like, "payload"), Candidate(" 42 ", "stored")]) == ("42", "stored")
    assert resolve_modash_user_id([Candidate("42", "legacy", lambda: False)]) is None
    assert resolve_modash_user_id([]) is None


def test_calculate_tier():
    assert calculate_tier(150_000, 4.0, campaign_count=2) == "GOLD"
    assert calculate_tier(150_000, 4.0) == "SILVER"
    assert calculate_tier(60_000, 2.5) == "SILVER"
    assert calculate_tier(9_000, 5.0) == "BRONZE"
    assert calculate_tier(20_000, 1.0) == "BRONZE"
    assert calculate_tier(20_000, 2.0) == "SILVER"


def test_update_schedule():
    last = datetime(2026, 1, 1)
    assert next_update_date("GOLD", last) == last + timedelta(days=28)
    assert next_update_date(None, last) == last + timedelta(days=56)
    assert needs_update("GOLD", None)
    assert needs_update("GOLD", last, now=last + timedelta(days=28))
    assert not needs_update("BRONZE", last, now=last + timedelta(days=28))


def test_calculate_priority_is_clamped():
    assert calculate_priority("BRONZE", 0, 0, 0) == 50
    assert calculate_priority("GOLD", 100, 10, 6) == 100
    assert calculate_priority("SILVER", 10, 1, 3) == 50 + 10 + 5 + 5 + 5


def test_build_influencer_filter_and_transform():
    f = build_influencer_filter({"followers": {"min": 1000, "max": 5000}, "engagementRate": 3, "relevance": ["@ava"]})
    assert f["followers"] == {"min": 1000, "max": 5000}
    assert f["engagementRate"] == 0.03
    assert f["username"] == "ava"
    assert build_influencer_filter({}) == {"followers": {"min": 1000}}

    row = transform_search_result(
        {"userId": "99", "profile": {"username": "ava", "fullname": "Ava", "followers": 10, "engagementRate": 0.1}},
        "instagram",
    )
    assert row["userId"] == "99"
    assert row["username"] == "ava"
    assert row["platform"] == "instagram"
