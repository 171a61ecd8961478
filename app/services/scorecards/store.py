"""Persistence for monthly agent scorecards.

Every write is a single upsert keyed by (agent_id, month, year) and leaves the
read cache invalidated for the agent before returning.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import and_, insert, or_
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.logging import get_logger
from app.models.scorecard import AgentMetric
from app.models.user import User, UserRole
from app.schemas.scorecards import ScorecardRead
from app.services.common import coerce_uuid
from app.services.scorecards.cache import ReadThroughCache, agent_series_key
from app.services.scorecards.calculator import MetricSet, WeightSet, calculate_score
from app.services.scorecards.errors import NotFoundError, ScorecardValidationError, StorageUnavailableError
from app.services.scorecards.observability import SCORECARD_WRITES

logger = get_logger(__name__)

_CONFLICT_COLUMNS = ("agent_id", "month", "year")
_NATIVE_UPSERT = {"postgresql": pg_insert, "sqlite": sqlite_insert}

Period = tuple[int, int]  # (year, month)


def validate_period(month: Any, year: Any) -> tuple[int, int]:
    if isinstance(month, bool) or not isinstance(month, int) or not 1 <= month <= 12:
        raise ScorecardValidationError("invalid_month", f"Month must be between 1 and 12 (got {month})")
    if isinstance(year, bool) or not isinstance(year, int):
        raise ScorecardValidationError("invalid_year", f"Year must be an integer (got {year})")
    if not settings.scorecard_min_year <= year <= settings.scorecard_max_year:
        raise ScorecardValidationError(
            "invalid_year",
            f"Year must be between {settings.scorecard_min_year} and {settings.scorecard_max_year} (got {year})",
        )
    return month, year


def _period_value(period: Period) -> int:
    year, month = period
    return year * 12 + (month - 1)


class ScorecardStore:
    def __init__(self, cache: ReadThroughCache):
        self.cache = cache

    def upsert(
        self,
        db: Session,
        agent_id: str | uuid.UUID,
        month: int,
        year: int,
        metrics: MetricSet | Mapping[str, Any],
        weights: WeightSet | Mapping[str, Any] | None = None,
        notes: str | None = None,
        actor_id: str | uuid.UUID | None = None,
    ) -> ScorecardRead:
        validate_period(month, year)
        agent_uuid = coerce_uuid(agent_id)
        metric_set = metrics if isinstance(metrics, MetricSet) else MetricSet.from_mapping(metrics)
        if weights is None:
            weight_set = WeightSet()
        elif isinstance(weights, WeightSet):
            weight_set = weights
        else:
            weight_set = WeightSet.from_partial(weights)
        score = calculate_score(metric_set, weight_set).rounded()

        now = datetime.now(UTC)
        values: dict[str, Any] = {
            "agent_id": agent_uuid,
            "month": month,
            "year": year,
            **metric_set.as_dict(),
            "weights_json": weight_set.as_dict(),
            "total_score": score.total_score,
            "percentage": score.percentage,
            "notes": notes,
            "updated_by_id": coerce_uuid(actor_id) if actor_id else None,
            "updated_at": now,
        }

        try:
            agent = db.get(User, agent_uuid)
            if not agent or agent.role != UserRole.agent:
                raise NotFoundError("agent_not_found", "Agent not found")
            self._write(db, values, now)
            db.commit()
            record = (
                db.query(AgentMetric)
                .filter(AgentMetric.agent_id == agent_uuid)
                .filter(AgentMetric.month == month, AgentMetric.year == year)
                .populate_existing()
                .one()
            )
            result = ScorecardRead.model_validate(record)
        except SQLAlchemyError as exc:
            db.rollback()
            SCORECARD_WRITES.labels(status="error").inc()
            logger.exception("scorecard_upsert_failed agent_id=%s period=%s-%02d", agent_uuid, year, month)
            raise StorageUnavailableError() from exc

        self.cache.invalidate_agent(str(agent_uuid))
        SCORECARD_WRITES.labels(status="success").inc()
        logger.info(
            "scorecard_upsert agent_id=%s period=%s-%02d percentage=%s",
            agent_uuid,
            year,
            month,
            result.percentage,
        )
        return result

    def _write(self, db: Session, values: dict[str, Any], now: datetime) -> None:
        dialect = db.get_bind().dialect.name
        update_values = {key: value for key, value in values.items() if key not in _CONFLICT_COLUMNS}
        native_insert = _NATIVE_UPSERT.get(dialect)
        if native_insert is not None:
            stmt = native_insert(AgentMetric).values(id=uuid.uuid4(), created_at=now, **values)
            stmt = stmt.on_conflict_do_update(index_elements=list(_CONFLICT_COLUMNS), set_=update_values)
            db.execute(stmt)
            return

        # No native upsert: update first, insert on miss, and retry the update
        # when a concurrent writer wins the insert.
        if self._update_existing(db, values, update_values):
            return
        try:
            db.execute(insert(AgentMetric).values(id=uuid.uuid4(), created_at=now, **values))
        except IntegrityError:
            db.rollback()
            if not self._update_existing(db, values, update_values):
                raise

    def _update_existing(self, db: Session, values: dict[str, Any], update_values: dict[str, Any]) -> bool:
        updated = (
            db.query(AgentMetric)
            .filter(AgentMetric.agent_id == values["agent_id"])
            .filter(AgentMetric.month == values["month"], AgentMetric.year == values["year"])
            .update(update_values, synchronize_session=False)
        )
        return bool(updated)

    def get(self, db: Session, agent_id: str | uuid.UUID, month: int, year: int) -> ScorecardRead | None:
        try:
            record = (
                db.query(AgentMetric)
                .filter(AgentMetric.agent_id == coerce_uuid(agent_id))
                .filter(AgentMetric.month == month, AgentMetric.year == year)
                .first()
            )
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("scorecard_get_failed agent_id=%s period=%s-%02d", agent_id, year, month)
            raise StorageUnavailableError() from exc
        return ScorecardRead.model_validate(record) if record else None

    def recent_series(self, db: Session, agent_id: str | uuid.UUID, limit: int | None = None) -> list[ScorecardRead]:
        """Most recent scorecards first, at most ``limit`` of them."""
        agent_uuid = coerce_uuid(agent_id)
        limit = max(1, limit or settings.scorecard_history_limit)

        def _load() -> list[ScorecardRead]:
            try:
                records = (
                    db.query(AgentMetric)
                    .filter(AgentMetric.agent_id == agent_uuid)
                    .order_by(AgentMetric.year.desc(), AgentMetric.month.desc())
                    .limit(limit)
                    .all()
                )
            except SQLAlchemyError as exc:
                db.rollback()
                logger.exception("scorecard_series_failed agent_id=%s", agent_uuid)
                raise StorageUnavailableError() from exc
            return [ScorecardRead.model_validate(record) for record in records]

        return self.cache.cached(agent_series_key(str(agent_uuid), limit), _load)

    def roll_up(
        self, db: Session, agent_ids: Iterable[str | uuid.UUID], month: int, year: int
    ) -> dict[uuid.UUID, float]:
        """Percentage per agent for one period; agents without a record are absent."""
        ids = {coerce_uuid(agent_id) for agent_id in agent_ids}
        if not ids:
            return {}
        try:
            rows = (
                db.query(AgentMetric.agent_id, AgentMetric.percentage)
                .filter(AgentMetric.agent_id.in_(list(ids)))
                .filter(AgentMetric.month == month, AgentMetric.year == year)
                .all()
            )
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("scorecard_rollup_failed period=%s-%02d agents=%d", year, month, len(ids))
            raise StorageUnavailableError() from exc
        return {row[0]: float(row[1]) for row in rows}

    def latest_for_agents(self, db: Session, agent_ids: Iterable[str | uuid.UUID]) -> dict[uuid.UUID, ScorecardRead]:
        ids = {coerce_uuid(agent_id) for agent_id in agent_ids}
        if not ids:
            return {}
        try:
            records = (
                db.query(AgentMetric)
                .filter(AgentMetric.agent_id.in_(list(ids)))
                .order_by(AgentMetric.year.desc(), AgentMetric.month.desc())
                .all()
            )
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("scorecard_latest_failed agents=%d", len(ids))
            raise StorageUnavailableError() from exc
        latest: dict[uuid.UUID, ScorecardRead] = {}
        for record in records:
            if record.agent_id not in latest:
                latest[record.agent_id] = ScorecardRead.model_validate(record)
        return latest

    def list_records(
        self,
        db: Session,
        agent_ids: Iterable[str | uuid.UUID] | None = None,
        start: Period | None = None,
        end: Period | None = None,
        limit: int | None = None,
    ) -> list[AgentMetric]:
        """Records for export, newest first. ``start``/``end`` are inclusive (year, month) bounds."""
        limit = max(1, min(limit or settings.scorecard_export_limit, settings.scorecard_export_limit))
        query = db.query(AgentMetric)
        if agent_ids is not None:
            ids = {coerce_uuid(agent_id) for agent_id in agent_ids}
            if not ids:
                return []
            query = query.filter(AgentMetric.agent_id.in_(list(ids)))
        if start and end and _period_value(start) > _period_value(end):
            raise ScorecardValidationError("invalid_range", "Start period must not be after end period")
        if start:
            start_year, start_month = start
            query = query.filter(
                or_(
                    AgentMetric.year > start_year,
                    and_(AgentMetric.year == start_year, AgentMetric.month >= start_month),
                )
            )
        if end:
            end_year, end_month = end
            query = query.filter(
                or_(AgentMetric.year < end_year, and_(AgentMetric.year == end_year, AgentMetric.month <= end_month))
            )
        try:
            return query.order_by(AgentMetric.year.desc(), AgentMetric.month.desc()).limit(limit).all()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("scorecard_list_failed")
            raise StorageUnavailableError() from exc

    def delete_for_agent(self, db: Session, agent_id: str | uuid.UUID) -> int:
        agent_uuid = coerce_uuid(agent_id)
        try:
            deleted = (
                db.query(AgentMetric)
                .filter(AgentMetric.agent_id == agent_uuid)
                .delete(synchronize_session=False)
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("scorecard_delete_failed agent_id=%s", agent_uuid)
            raise StorageUnavailableError() from exc
        self.cache.invalidate_agent(str(agent_uuid))
        logger.info("scorecard_delete agent_id=%s count=%d", agent_uuid, deleted)
        return deleted

    def existing_weights(
        self, db: Session, keys: Iterable[tuple[uuid.UUID, int, int]]
    ) -> dict[tuple[uuid.UUID, int, int], dict[str, float]]:
        """Stored weight sets for (agent_id, month, year) keys, fetched in one query."""
        keys = set(keys)
        if not keys:
            return {}
        try:
            rows = (
                db.query(AgentMetric.agent_id, AgentMetric.month, AgentMetric.year, AgentMetric.weights_json)
                .filter(AgentMetric.agent_id.in_(list({key[0] for key in keys})))
                .all()
            )
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("scorecard_weights_failed keys=%d", len(keys))
            raise StorageUnavailableError() from exc
        return {
            (row[0], row[1], row[2]): dict(row[3] or {}) for row in rows if (row[0], row[1], row[2]) in keys
        }
