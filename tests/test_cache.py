from workshop_crm.cache import Cache, TTLCache


def test_ttl_cache_full_purges_expired_before_evicting():
    clock = [0.0]
    cache = TTLCache(60, max_entries=2, clock=lambda: clock[0])
    cache.set("old", 1)
    clock[0] = 30.0
    cache.set("recent", 2)

    clock[0] = 70.0
    cache.set("new", 3)

    assert len(cache) == 2
    assert cache.get_stale("old") is None
    assert cache.get("recent") == 2
    assert cache.get("new") == 3


def test_ttl_cache_full_evicts_oldest_when_nothing_expired():
    clock = [0.0]
    cache = TTLCache(60, max_entries=2, clock=lambda: clock[0])
    cache.set("a", 1)
    clock[0] = 1.0
    cache.set("b", 2)
    clock[0] = 2.0
    cache.set("c", 3)

    assert cache.get_stale("a") is None
    assert (cache.get("b"), cache.get("c")) == (2, 3)


def test_shared_cache_without_redis_fails_open():
    cache = Cache(client_factory=lambda: None)

    assert not cache.available
    assert cache.get("workshop_theme:w1") is None
    assert cache.set("workshop_theme:w1", "Robotics Basics") is False
