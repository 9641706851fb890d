import fnmatch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from app.stride.cache import RedisCache


class DictRedis:
    def __init__(self):
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, ex=None):
        self.data[key] = value
        self.ttls[key] = ex

    def delete(self, *keys):
        return sum(1 for k in keys if self.data.pop(k, None) is not None)

    def scan_iter(self, match="*", count=100):
        return iter([k for k in list(self.data) if fnmatch.fnmatch(k, match)])


class BrokenRedis(DictRedis):
    def get(self, key):
        raise RedisConnectionError("down")

    def set(self, key, value, ex=None):
        raise RedisConnectionError("down")


def _live(client_impl) -> RedisCache:
    cache = RedisCache(None, default_ttl=60)
    cache._client = client_impl
    cache._available = True
    return cache


def test_disabled_cache_is_a_noop():
    cache = RedisCache("")
    assert cache.is_available is False
    assert cache.get_json("k") is None
    assert cache.set_json("k", {"a": 1}) is False
    assert cache.delete("k") is False
    assert cache.delete_pattern("*") == 0

    calls = []
    assert cache.cached_json("k", lambda: calls.append(1) or {"n": len(calls)}) == {"n": 1}
    assert cache.cached_json("k", lambda: calls.append(1) or {"n": len(calls)}) == {"n": 2}


def test_cached_json_stores_with_prefix_and_ttl():
    backend = DictRedis()
    cache = _live(backend)

    calls = []

    def produce():
        calls.append(1)
        return {"n": len(calls)}

    assert cache.cached_json("k", produce, ttl=30) == {"n": 1}
    assert cache.cached_json("k", produce, ttl=30) == {"n": 1}
    assert backend.ttls["stride:k"] == 30

    cache.set_json("other", [1, 2])
    assert backend.ttls["stride:other"] == 60
    assert cache.get_json("other") == [1, 2]


def test_delete_pattern_only_touches_matching_keys():
    cache = _live(DictRedis())
    cache.set_json("influencers:list:a", 1)
    cache.set_json("influencers:list:b", 2)
    cache.set_json("modash:credits", 3)
    assert cache.delete_pattern("influencers:list:*") == 2
    assert cache.get_json("modash:credits") == 3
    assert cache.delete("modash:credits") is True


def test_redis_errors_are_swallowed():
    cache = _live(BrokenRedis())
    assert cache.get_json("k") is None
    assert cache.set_json("k", 1) is False
    assert cache.cached_json("k", lambda: "fresh") == "fresh"


@pytest.fixture()
def live_cache(app):
    cache = _live(DictRedis())
    app.extensions["redis_cache"] = cache
    return cache


def test_influencer_list_is_cached_and_invalidated(client, staff, live_cache):
    assert client.get("/api/influencers", headers=staff).json["total"] == 0
    assert any(k.startswith("stride:influencers:list:") for k in live_cache._client.data)

    client.post("/api/influencers", json={"display_name": "Ava"}, headers=staff)
    assert not any(k.startswith("stride:influencers:list:") for k in live_cache._client.data)
    assert client.get("/api/influencers", headers=staff).json["total"] == 1


def test_modash_credits_are_cached(client, staff, modash, live_cache):
    client.get("/api/modash/credits", headers=staff)
    client.get("/api/modash/credits", headers=staff)
    assert modash.calls.count(("credits",)) == 1
