"""Tests for the scorecard read-through cache."""

from app.services.scorecards.cache import (
    ReadThroughCache,
    agent_by_id_key,
    agent_metrics_key,
    agent_series_key,
    agents_list_key,
    manager_dashboard_key,
    team_dashboard_key,
)


def test_cached_calls_supplier_once_within_ttl(cache, clock):
    calls = []

    def supplier():
        calls.append(1)
        return {"value": len(calls)}

    assert cache.cached("k", supplier) == {"value": 1}
    clock.advance(59)
    assert cache.cached("k", supplier) == {"value": 1}
    assert len(calls) == 1


def test_cached_reloads_after_ttl(cache, clock):
    values = iter([1, 2])
    cache.cached("k", lambda: next(values))
    clock.advance(60)
    assert cache.cached("k", lambda: next(values)) == 2


def test_cached_keeps_empty_results_but_not_none(cache):
    assert cache.cached("empty", lambda: []) == []
    assert cache.get("empty") == []
    assert cache.cached("none", lambda: None) is None
    assert len(cache) == 1


def test_load_overlapping_an_invalidation_is_not_stored(cache):
    key = agent_metrics_key("a1")

    def supplier():
        # a write for the same agent lands while this read is loading
        cache.invalidate_agent("a1")
        return {"percentage": 67.5}

    assert cache.cached(key, supplier) == {"percentage": 67.5}
    assert cache.get(key) is None
    assert cache.cached(key, lambda: {"percentage": 75.0}) == {"percentage": 75.0}
    assert cache.get(key) == {"percentage": 75.0}


def test_load_overlapping_clear_is_not_stored(cache):
    def supplier():
        cache.clear()
        return 1

    assert cache.cached("k", supplier) == 1
    assert len(cache) == 0


def test_custom_ttl(cache, clock):
    cache.set("short", "x", ttl_seconds=5)
    clock.advance(5)
    assert cache.get("short") is None


def test_invalidate_keys(cache):
    cache.set("a", 1)
    cache.set("b", 2)
    cache.invalidate(["a", "missing"])
    assert cache.get("a") is None
    assert cache.get("b") == 2


def test_invalidate_prefix(cache):
    cache.set("dashboard:team_leader:1:2026-01", 1)
    cache.set("dashboard:manager:2:2026-01", 2)
    cache.set("agents:all", 3)
    assert cache.invalidate_by_pattern("dashboard:") == 2
    assert cache.get("agents:all") == 3
    assert len(cache) == 1


def test_invalidate_agent_drops_every_family(cache):
    agent_id = "a1"
    other = "b2"
    cache.set(agent_metrics_key(agent_id), "metrics")
    cache.set(agent_series_key(agent_id, 6), "series")
    cache.set(agent_by_id_key(agent_id), "agent")
    cache.set(agents_list_key(), "list")
    cache.set(team_dashboard_key("t", 1, 2026), "team")
    cache.set(manager_dashboard_key("m", 1, 2026), "manager")
    cache.set(agent_metrics_key(other), "other")

    cache.invalidate_agent(agent_id)

    assert cache.get(agent_metrics_key(agent_id)) is None
    assert cache.get(agent_series_key(agent_id, 6)) is None
    assert cache.get(agent_by_id_key(agent_id)) is None
    assert cache.get(agents_list_key()) is None
    assert cache.get(team_dashboard_key("t", 1, 2026)) is None
    assert cache.get(manager_dashboard_key("m", 1, 2026)) is None
    assert cache.get(agent_metrics_key(other)) == "other"


def test_cleanup_drops_expired(cache, clock):
    cache.set("old", 1, ttl_seconds=1)
    cache.set("new", 2, ttl_seconds=100)
    clock.advance(2)
    assert cache.cleanup() == 1
    assert len(cache) == 1


def test_instances_are_isolated(clock):
    first = ReadThroughCache(clock=clock)
    second = ReadThroughCache(clock=clock)
    first.set("k", 1)
    assert second.get("k") is None


def test_dashboard_keys_are_zero_padded():
    assert team_dashboard_key("t", 3, 2026) == "dashboard:team_leader:t:2026-03"
    assert manager_dashboard_key("m", 11, 2026) == "dashboard:manager:m:2026-11"
