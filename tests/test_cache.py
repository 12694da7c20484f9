import threading

import pytest

from gallery_api.cache import ListingCache
from gallery_api.models import MediaRecord


class ManualClock:
    def __init__(self, start: float = 0.0):
        self.value = start

    def __call__(self) -> float:
        return self.value


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def cache(clock):
    return ListingCache(max_entries=3, stale_ttl_seconds=60, now=clock)


def record(name):
    return MediaRecord(name=name, full_url=f"https://cdn/{name}", thumb_url=f"https://cdn/thumbnails/{name}")


def test_get_missing_returns_none(cache):
    assert cache.get("missing") is None


def test_put_records_timestamps(cache, clock):
    clock.value = 10
    entry = cache.put("k", [record("a.jpg")], "fp", 300, is_truncated=True, next_cursor="next")

    assert cache.get("k") is entry
    assert entry.created_at == 10
    assert entry.expires_at == 310
    assert entry.stale_until == 370
    assert entry.files == (record("a.jpg"),)
    assert entry.is_truncated is True
    assert entry.next_cursor == "next"


def test_put_overwrites_existing_key(cache):
    cache.put("k", [record("a.jpg")], "fp-1", 300)
    cache.put("k", [record("b.jpg")], "fp-2", 300)

    assert len(cache) == 1
    assert cache.get("k").fingerprint == "fp-2"


def test_expired_entry_is_kept_for_stale_reads(cache, clock):
    entry = cache.put("k", [], "fp", 300)
    clock.value = 320

    assert cache.evict() == 0
    assert cache.get("k") is entry
    assert not entry.is_fresh(clock())


def test_evict_drops_entries_past_stale_window(cache, clock):
    cache.put("old", [], "fp", 10)
    cache.put("new", [], "fp", 300)
    clock.value = 71

    assert cache.evict() == 1
    assert cache.get("old") is None
    assert cache.get("new") is not None


def test_evict_trims_soonest_expiring_first(cache):
    cache.put("a", [], "fp", 400)
    cache.put("b", [], "fp", 100)
    cache.put("c", [], "fp", 300)
    cache.put("d", [], "fp", 200)
    cache.put("e", [], "fp", 500)

    assert cache.evict() == 2
    assert len(cache) == 3
    assert cache.get("b") is None
    assert cache.get("d") is None
    assert {k for k in "ace" if cache.get(k)} == {"a", "c", "e"}


def test_evict_on_empty_cache_is_noop(cache):
    assert cache.evict() == 0


def test_many_distinct_keys_never_exceed_bound_after_evict(clock):
    cache = ListingCache(max_entries=50, now=clock)
    for i in range(500):
        cache.put(f"key-{i}", [], "fp", 300 + i)
        cache.evict()
        assert len(cache) <= 50


def test_concurrent_writers_respect_bound():
    cache = ListingCache(max_entries=20)

    def writer(worker):
        for i in range(200):
            cache.put(f"{worker}-{i}", [], "fp", 300)
            cache.evict()

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    cache.evict()
    assert len(cache) <= 20


def test_clear_removes_everything(cache):
    cache.put("k", [], "fp", 300)
    cache.clear()
    assert len(cache) == 0
    assert cache.evict() == 0
