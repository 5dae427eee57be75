import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core.dependency_cache import EMPTY_STATE_HASH, DependencyCache, build_state_hash
from core.diagnostics import DiagnosticCollector


def test_state_hash_is_sorted_and_skips_zero_levels():
    first = build_state_hash({"sand_depot": 2, "queen": 4, "spring": 0})
    second = build_state_hash({"queen": 4, "sand_depot": 2})

    assert first == second == "queen:4|sand_depot:2"


def test_state_hash_of_empty_state():
    assert build_state_hash({}) == EMPTY_STATE_HASH
    assert build_state_hash({"queen": 0}) == EMPTY_STATE_HASH


def test_make_key_combines_target_and_state():
    cache = DependencyCache()

    assert cache.make_key("queen", 3, {"b": 1, "a": 2, "c": 0}) == "queen-3-a:2|b:1"
    assert cache.make_key("queen", 3, {}) == "queen-3-empty"


def test_get_and_put_track_hits_and_misses():
    cache = DependencyCache()

    assert cache.get("missing") is None
    cache.put("key", ("value",))
    assert cache.get("key") == ("value",)
    assert "key" in cache
    assert len(cache) == 1

    metrics = cache.metrics()
    assert metrics["cache_hits"] == 1
    assert metrics["cache_misses"] == 1
    assert metrics["hit_rate"] == pytest.approx(0.5)


def test_oldest_entries_are_evicted_at_threshold():
    collector = DiagnosticCollector()
    cache = DependencyCache(max_size=10, cleanup_threshold=10, eviction_ratio=0.2, notifier=collector)
    for index in range(10):
        cache.put(f"k{index}", index)

    cache.put("k10", 10)

    assert len(cache) == 9
    assert "k0" not in cache and "k1" not in cache
    assert "k2" in cache and "k10" in cache
    assert collector.codes() == ["cache_evicted"]
    assert collector.events[0].details == {"removed": 2, "remaining": 8}


def test_eviction_trims_back_to_max_size():
    cache = DependencyCache(max_size=4, cleanup_threshold=8, eviction_ratio=0.2)
    for index in range(8):
        cache.put(f"k{index}", index)

    cache.put("k8", 8)

    assert len(cache) == 5
    assert [key for key in (f"k{i}" for i in range(9)) if key in cache] == ["k4", "k5", "k6", "k7", "k8"]


def test_overwriting_existing_key_does_not_evict():
    cache = DependencyCache(max_size=2, cleanup_threshold=2)
    cache.put("a", 1)
    cache.put("b", 2)

    cache.put("a", 3)

    assert len(cache) == 2
    assert cache.get("a") == 3


def test_clear_resets_entries_and_metrics():
    cache = DependencyCache()
    cache.put("a", 1)
    cache.get("a")
    cache.make_key("queen", 2, {"queen": 1})

    cache.clear()

    assert len(cache) == 0
    metrics = cache.metrics()
    assert metrics["cache_hits"] == 0
    assert metrics["cache_misses"] == 0
    assert metrics["average_key_size"] == 0.0


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_size": 10, "cleanup_threshold": 5},
        {"eviction_ratio": 0.0},
        {"eviction_ratio": 1.5},
    ],
)
def test_invalid_sizing_is_rejected(kwargs):
    with pytest.raises(ValueError):
        DependencyCache(**kwargs)
