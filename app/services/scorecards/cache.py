"""Short-TTL read-through cache fronting the scorecard store.

NOTE: This is a per-process cache. Every write path in this package
invalidates synchronously before returning, so the TTL only bounds staleness
for changes made outside the engine (another worker, a manual SQL fix).
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from threading import Lock
from typing import Any, TypeVar

from app.logging import get_logger
from app.services.scorecards.observability import CACHE_INVALIDATIONS, CACHE_REQUESTS

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 60
AGENTS_LIST_KEY = "agents:all"
DASHBOARD_PREFIX = "dashboard:"


@dataclass
class _CacheEntry:
    value: Any
    expires_at: float


def agent_by_id_key(agent_id: str) -> str:
    return f"agent:{agent_id}"


def agent_metrics_key(agent_id: str) -> str:
    return f"agent:{agent_id}:metrics"


def agent_series_key(agent_id: str, limit: int) -> str:
    return f"{agent_metrics_key(agent_id)}:series:{limit}"


def agents_list_key() -> str:
    return AGENTS_LIST_KEY


def team_dashboard_key(team_leader_id: str, month: int, year: int) -> str:
    return f"{DASHBOARD_PREFIX}team_leader:{team_leader_id}:{year}-{month:02d}"


def manager_dashboard_key(manager_id: str, month: int, year: int) -> str:
    return f"{DASHBOARD_PREFIX}manager:{manager_id}:{year}-{month:02d}"


class ReadThroughCache:
    def __init__(self, default_ttl_seconds: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] | None = None):
        self.default_ttl_seconds = default_ttl_seconds
        self._clock = clock or time.monotonic
        self._entries: dict[str, _CacheEntry] = {}
        self._lock = Lock()
        # Bumped on every invalidation; a load that started before a bump is not stored.
        self._generation = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _expired(self, entry: _CacheEntry) -> bool:
        return entry.expires_at <= self._clock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if not entry:
                return None
            if self._expired(entry):
                self._entries.pop(key, None)
                return None
            return entry.value

    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        with self._lock:
            self._entries[key] = _CacheEntry(value=value, expires_at=self._clock() + ttl)

    def cached(self, key: str, supplier: Callable[[], T], ttl_seconds: float | None = None) -> T:
        value = self.get(key)
        if value is not None:
            CACHE_REQUESTS.labels(result="hit").inc()
            return value
        CACHE_REQUESTS.labels(result="miss").inc()
        with self._lock:
            generation = self._generation
        value = supplier()
        if value is None:
            return value
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        with self._lock:
            if self._generation == generation:
                self._entries[key] = _CacheEntry(value=value, expires_at=self._clock() + ttl)
        return value

    def invalidate(self, keys: Iterable[str]) -> None:
        with self._lock:
            self._generation += 1
            for key in keys:
                self._entries.pop(key, None)
                CACHE_INVALIDATIONS.labels(kind="key").inc()

    def invalidate_prefix(self, prefix: str) -> int:
        with self._lock:
            self._generation += 1
            keys = [key for key in self._entries if key.startswith(prefix)]
            for key in keys:
                self._entries.pop(key, None)
        CACHE_INVALIDATIONS.labels(kind="prefix").inc()
        return len(keys)

    invalidate_by_pattern = invalidate_prefix

    def invalidate_agent(self, agent_id: str) -> None:
        """Drop everything a write to ``agent_id``'s scorecards can make stale."""
        self.invalidate([agent_metrics_key(agent_id), agents_list_key(), agent_by_id_key(agent_id)])
        self.invalidate_prefix(f"{agent_metrics_key(agent_id)}:")
        self.invalidate_prefix(DASHBOARD_PREFIX)
        logger.debug("scorecard_cache_invalidated agent_id=%s", agent_id)

    def cleanup(self) -> int:
        with self._lock:
            expired = [key for key, entry in self._entries.items() if self._expired(entry)]
            for key in expired:
                self._entries.pop(key, None)
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._generation += 1
            self._entries.clear()
