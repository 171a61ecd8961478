"""Team and manager dashboards.

A team average covers only the agents scored for the period. A manager average
is the mean of team averages, so every team counts once regardless of size.
"""

from __future__ import annotations

import uuid
from collections import defaultdict

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.logging import get_logger
from app.models.user import User, UserRole
from app.schemas.scorecards import AgentScoreRow, ManagerSummary, TeamSummary
from app.services.common import coerce_uuid, safe_div
from app.services.scorecards.cache import ReadThroughCache, manager_dashboard_key, team_dashboard_key
from app.services.scorecards.errors import NotFoundError, StorageUnavailableError
from app.services.scorecards.store import ScorecardStore, validate_period

logger = get_logger(__name__)


def _mean(values: list[float]) -> float | None:
    if not values:
        return None
    return safe_div(sum(values), len(values))


def _average(values: list[float]) -> float | None:
    mean = _mean(values)
    return None if mean is None else round(mean, 2)


def build_team_summary(
    leader: User, agents: list[User], scores: dict[uuid.UUID, float], month: int, year: int
) -> TeamSummary:
    rows = [
        AgentScoreRow(agent_id=agent.id, name=agent.display_name, percentage=scores.get(agent.id))
        for agent in agents
    ]
    scored = [row.percentage for row in rows if row.percentage is not None]
    return TeamSummary(
        team_leader_id=leader.id,
        name=leader.display_name,
        month=month,
        year=year,
        agent_count=len(rows),
        scored_count=len(scored),
        average_percentage=_average(scored),
        agents=rows,
    )


class ScorecardRollupService:
    def __init__(self, store: ScorecardStore, cache: ReadThroughCache):
        self.store = store
        self.cache = cache

    def _get_user(self, db: Session, user_id: uuid.UUID, role: UserRole) -> User:
        try:
            user = db.get(User, user_id)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("scorecard_rollup_lookup_failed user_id=%s", user_id)
            raise StorageUnavailableError() from exc
        if not user or user.role != role:
            label = role.value.replace("_", " ").capitalize()
            raise NotFoundError(f"{role.value}_not_found", f"{label} not found")
        return user

    def _agents_for(self, db: Session, team_leader_ids: list[uuid.UUID]) -> list[User]:
        if not team_leader_ids:
            return []
        try:
            return (
                db.query(User)
                .filter(User.role == UserRole.agent)
                .filter(User.is_active.is_(True))
                .filter(User.team_leader_id.in_(team_leader_ids))
                .order_by(User.name.asc(), User.email.asc())
                .all()
            )
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("scorecard_rollup_agents_failed leaders=%d", len(team_leader_ids))
            raise StorageUnavailableError() from exc

    def team_summary(self, db: Session, team_leader_id: str | uuid.UUID, month: int, year: int) -> TeamSummary:
        validate_period(month, year)
        leader_uuid = coerce_uuid(team_leader_id)

        def _load() -> TeamSummary:
            leader = self._get_user(db, leader_uuid, UserRole.team_leader)
            agents = self._agents_for(db, [leader.id])
            scores = self.store.roll_up(db, [agent.id for agent in agents], month, year)
            return build_team_summary(leader, agents, scores, month, year)

        return self.cache.cached(team_dashboard_key(str(leader_uuid), month, year), _load)

    def manager_summary(self, db: Session, manager_id: str | uuid.UUID, month: int, year: int) -> ManagerSummary:
        validate_period(month, year)
        manager_uuid = coerce_uuid(manager_id)

        def _load() -> ManagerSummary:
            manager = self._get_user(db, manager_uuid, UserRole.manager)
            try:
                leaders = (
                    db.query(User)
                    .filter(User.role == UserRole.team_leader)
                    .filter(User.is_active.is_(True))
                    .filter(User.manager_id == manager.id)
                    .order_by(User.name.asc(), User.email.asc())
                    .all()
                )
            except SQLAlchemyError as exc:
                db.rollback()
                logger.exception("scorecard_rollup_leaders_failed manager_id=%s", manager.id)
                raise StorageUnavailableError() from exc

            agents = self._agents_for(db, [leader.id for leader in leaders])
            scores = self.store.roll_up(db, [agent.id for agent in agents], month, year)
            agents_by_leader: dict[uuid.UUID, list[User]] = defaultdict(list)
            for agent in agents:
                agents_by_leader[agent.team_leader_id].append(agent)

            teams = [
                build_team_summary(leader, agents_by_leader.get(leader.id, []), scores, month, year)
                for leader in leaders
            ]
            # Rounded team averages are for display; the manager mean is taken over the exact ones.
            team_means = [
                mean
                for mean in (
                    _mean([row.percentage for row in team.agents if row.percentage is not None]) for team in teams
                )
                if mean is not None
            ]
            logger.debug(
                "scorecard_manager_rollup manager_id=%s teams=%d agents=%d scored=%d",
                manager.id,
                len(teams),
                len(agents),
                len(scores),
            )
            return ManagerSummary(
                manager_id=manager.id,
                name=manager.display_name,
                month=month,
                year=year,
                team_count=len(teams),
                agent_count=len(agents),
                average_percentage=_average(team_means),
                teams=teams,
            )

        return self.cache.cached(manager_dashboard_key(str(manager_uuid), month, year), _load)
