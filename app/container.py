"""Dependency injection container.

The scorecard services share one read-through cache per process; every
service that reads or writes scorecards receives that same instance, so a
write through the store is visible to the next report or dashboard read.

Usage:
    from app.container import container

    # In route handlers (see app.api.deps)
    store = container.scorecard_store()

    # In tests
    with container.scorecard_cache.override(ReadThroughCache(clock=fake_clock)):
        response = client.get("/scorecards/agents")
"""

from __future__ import annotations

from dependency_injector import containers, providers  # type: ignore[import-not-found]

from app.config import settings
from app.services.scorecards.cache import ReadThroughCache
from app.services.scorecards.imports import ScorecardSpreadsheetService
from app.services.scorecards.reports import ScorecardReportsService
from app.services.scorecards.rollups import ScorecardRollupService
from app.services.scorecards.store import ScorecardStore


class Container(containers.DeclarativeContainer):
    """Application dependency injection container.

    Provides:
    - Configuration management
    - The process-wide scorecard read cache
    - Scorecard services wired to that cache
    """

    config = providers.Configuration()

    scorecard_cache = providers.Singleton(
        ReadThroughCache,
        default_ttl_seconds=settings.scorecard_cache_ttl_seconds,
    )

    # -------------------------------------------------------------------------
    # Service Providers
    # -------------------------------------------------------------------------
    # Services hold no per-request state; the session is passed to each call.

    scorecard_store = providers.Singleton(ScorecardStore, cache=scorecard_cache)
    scorecard_reports = providers.Singleton(ScorecardReportsService, store=scorecard_store, cache=scorecard_cache)
    scorecard_rollups = providers.Singleton(ScorecardRollupService, store=scorecard_store, cache=scorecard_cache)
    scorecard_spreadsheets = providers.Singleton(ScorecardSpreadsheetService, store=scorecard_store)


# Global container instance
container = Container()


def get_container() -> Container:
    """Get the global container instance."""
    return container
