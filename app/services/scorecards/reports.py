from __future__ import annotations

import uuid

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.logging import get_logger
from app.models.user import User, UserRole
from app.schemas.scorecards import (
    AgentMetricsSummary,
    AgentRead,
    HistoricalScore,
    PeriodDeltaRead,
    ScorecardPeriodView,
    ScorecardRead,
)
from app.services.common import coerce_uuid
from app.services.scorecards.cache import ReadThroughCache, agent_by_id_key, agent_metrics_key, agents_list_key
from app.services.scorecards.calculator import METRIC_NAMES
from app.services.scorecards.errors import NotFoundError, StorageUnavailableError
from app.services.scorecards.normalizer import percentage_metrics
from app.services.scorecards.store import ScorecardStore, validate_period
from app.services.scorecards.trends import average_metrics, calculate_trend, metric_deltas, previous_period

logger = get_logger(__name__)


def _agent_read(agent: User, latest: ScorecardRead | None) -> AgentRead:
    return AgentRead(
        id=agent.id,
        name=agent.display_name,
        email=agent.email,
        employee_id=agent.employee_id,
        role=agent.role,
        team_leader_id=agent.team_leader_id,
        latest_percentage=latest.percentage if latest else None,
        latest_month=latest.month if latest else None,
        latest_year=latest.year if latest else None,
    )


class ScorecardReportsService:
    def __init__(self, store: ScorecardStore, cache: ReadThroughCache):
        self.store = store
        self.cache = cache

    def _require_agent(self, db: Session, agent_id: uuid.UUID) -> User:
        try:
            agent = db.get(User, agent_id)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("scorecard_agent_lookup_failed agent_id=%s", agent_id)
            raise StorageUnavailableError() from exc
        if not agent or agent.role != UserRole.agent:
            raise NotFoundError("agent_not_found", "Agent not found")
        return agent

    def agent_metrics_summary(self, db: Session, agent_id: str | uuid.UUID, limit: int | None = None) -> AgentMetricsSummary:
        """Latest score, per-metric percentages and the recent trend for one agent."""
        agent_uuid = coerce_uuid(agent_id)
        limit = limit or settings.scorecard_history_limit

        def _load() -> AgentMetricsSummary:
            self._require_agent(db, agent_uuid)
            series = self.store.recent_series(db, agent_uuid, limit)
            if not series:
                return AgentMetricsSummary(agent_id=agent_uuid)
            trend = calculate_trend(series)
            latest = series[0]
            return AgentMetricsSummary(
                agent_id=agent_uuid,
                overall_score=trend.current_percentage,
                previous_score=trend.previous_percentage,
                current_metrics=percentage_metrics({name: getattr(latest, name) for name in METRIC_NAMES}),
                historical_scores=[
                    HistoricalScore(year=item.year, month=item.month, percentage=item.percentage)
                    for item in reversed(series)
                ],
                session_count=trend.session_count,
                average_score=trend.average_percentage,
                improvement=trend.improvement_delta,
                deltas=[PeriodDeltaRead.model_validate(delta) for delta in trend.deltas],
                metric_changes=metric_deltas(latest, series[1]) if len(series) >= 2 else {},
                metric_averages=average_metrics(series),
            )

        # The summary key is per agent; the history limit is fixed by configuration.
        if limit == settings.scorecard_history_limit:
            return self.cache.cached(agent_metrics_key(str(agent_uuid)), _load)
        return _load()

    def list_agents(self, db: Session) -> list[AgentRead]:
        def _load() -> list[AgentRead]:
            try:
                agents = (
                    db.query(User)
                    .filter(User.role == UserRole.agent)
                    .filter(User.is_active.is_(True))
                    .order_by(User.name.asc(), User.email.asc())
                    .all()
                )
            except SQLAlchemyError as exc:
                db.rollback()
                logger.exception("scorecard_agent_list_failed")
                raise StorageUnavailableError() from exc
            latest = self.store.latest_for_agents(db, [agent.id for agent in agents])
            return [_agent_read(agent, latest.get(agent.id)) for agent in agents]

        return self.cache.cached(agents_list_key(), _load)

    def get_agent(self, db: Session, agent_id: str | uuid.UUID) -> AgentRead:
        agent_uuid = coerce_uuid(agent_id)

        def _load() -> AgentRead:
            agent = self._require_agent(db, agent_uuid)
            latest = self.store.latest_for_agents(db, [agent_uuid])
            return _agent_read(agent, latest.get(agent_uuid))

        return self.cache.cached(agent_by_id_key(str(agent_uuid)), _load)

    def scorecard_for_period(
        self, db: Session, agent_id: str | uuid.UUID, year: int, month: int | None = None
    ) -> ScorecardPeriodView:
        """An agent's scorecard for one month, or every month of ``year`` when no month is given.

        A single month is compared against the calendar month before it, so
        January is compared against December of the previous year. A whole
        year carries the per-metric average of the months on record.
        """
        validate_period(1 if month is None else month, year)
        agent_uuid = coerce_uuid(agent_id)
        agent = self._require_agent(db, agent_uuid)
        latest = self.store.latest_for_agents(db, [agent_uuid]).get(agent_uuid)
        agent_read = _agent_read(agent, latest)

        if month is not None:
            before = previous_period(year, month)
            found = {
                (record.year, record.month): record
                for record in self.store.list_records(db, agent_ids=[agent_uuid], start=before, end=(year, month))
            }
            current = found.get((year, month))
            previous = found.get(before)
            return ScorecardPeriodView(
                agent=agent_read,
                year=year,
                month=month,
                records=[ScorecardRead.model_validate(current)] if current else [],
                changes=metric_deltas(current, previous) if current and previous else {},
            )

        records = list(
            reversed(self.store.list_records(db, agent_ids=[agent_uuid], start=(year, 1), end=(year, 12)))
        )
        return ScorecardPeriodView(
            agent=agent_read,
            year=year,
            records=[ScorecardRead.model_validate(record) for record in records],
            yearly_average=average_metrics(records) if records else None,
        )
