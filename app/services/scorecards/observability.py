"""Prometheus metrics for the scorecard engine."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

CACHE_REQUESTS = Counter(
    "scorecard_cache_requests_total",
    "Scorecard read-cache lookups",
    ["result"],  # result: hit, miss
)

CACHE_INVALIDATIONS = Counter(
    "scorecard_cache_invalidations_total",
    "Scorecard read-cache invalidations",
    ["kind"],  # kind: key, prefix
)

SCORECARD_WRITES = Counter(
    "scorecard_writes_total",
    "Scorecard upserts",
    ["status"],  # status: success, error
)

IMPORT_ROWS = Counter(
    "scorecard_import_rows_total",
    "Spreadsheet rows processed by the scorecard importer",
    ["status"],  # status: imported, failed
)

IMPORT_DURATION = Histogram(
    "scorecard_import_seconds",
    "Time to process one scorecard spreadsheet",
)
