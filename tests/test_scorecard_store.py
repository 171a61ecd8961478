"""Tests for scorecard persistence."""

import uuid
from unittest.mock import MagicMock

import pytest
from sqlalchemy import event
from sqlalchemy.exc import OperationalError

from app.models.scorecard import AgentMetric
from app.services.scorecards.cache import agent_metrics_key
from app.services.scorecards.errors import NotFoundError, ScorecardValidationError, StorageUnavailableError
from app.services.scorecards.store import ScorecardStore


def test_upsert_computes_derived_fields(db_session, store, agent, metrics):
    record = store.upsert(db_session, agent.id, 3, 2026, metrics, notes="steady month")
    # 4+5+3+4+5+4+3+2 = 30 of 40
    assert record.total_score == 30.0
    assert record.percentage == 75.0
    assert record.notes == "steady month"
    assert record.weights["service"] == 1.0
    assert record.agent_id == agent.id


def test_upsert_twice_keeps_one_record_with_second_values(db_session, store, agent, metrics):
    first = store.upsert(db_session, agent.id, 3, 2026, metrics)
    second = store.upsert(db_session, agent.id, 3, 2026, {**metrics, "service": 1})

    rows = db_session.query(AgentMetric).filter(AgentMetric.agent_id == agent.id).all()
    assert len(rows) == 1
    assert rows[0].service == 1
    assert second.id == first.id
    assert second.total_score == 27.0


def test_upsert_records_actor(db_session, store, agent, team_leader, metrics):
    store.upsert(db_session, agent.id, 3, 2026, metrics, actor_id=str(team_leader.id))
    row = db_session.query(AgentMetric).filter(AgentMetric.agent_id == agent.id).one()
    assert row.updated_by_id == team_leader.id


def test_upsert_applies_weights(db_session, store, agent, metrics):
    record = store.upsert(db_session, agent.id, 1, 2026, metrics, weights={"service": 0, "breakExceeds": 0})
    # service (4) and break_exceeds (2) drop out: 24 of 30
    assert record.total_score == 24.0
    assert record.percentage == 80.0
    assert record.weights["break_exceeds"] == 0.0


def test_upsert_with_all_zero_weights(db_session, store, agent, metrics):
    zero = {name: 0 for name in metrics}
    record = store.upsert(db_session, agent.id, 1, 2026, metrics, weights=zero)
    assert record.percentage == 0.0


@pytest.mark.parametrize("month, year", [(0, 2026), (13, 2026), (5, 1999), (5, 2101)])
def test_upsert_rejects_bad_period(db_session, store, agent, metrics, month, year):
    with pytest.raises(ScorecardValidationError):
        store.upsert(db_session, agent.id, month, year, metrics)


def test_upsert_rejects_incomplete_metrics(db_session, store, agent):
    with pytest.raises(ScorecardValidationError):
        store.upsert(db_session, agent.id, 1, 2026, {"service": 4})


def test_upsert_unknown_agent(db_session, store, metrics):
    with pytest.raises(NotFoundError):
        store.upsert(db_session, uuid.uuid4(), 1, 2026, metrics)


def test_upsert_rejects_non_agents(db_session, store, team_leader, manager, metrics):
    for user in (team_leader, manager):
        with pytest.raises(NotFoundError) as excinfo:
            store.upsert(db_session, user.id, 1, 2026, metrics)
        assert excinfo.value.code == "agent_not_found"
    assert db_session.query(AgentMetric).count() == 0


def test_upsert_invalidates_before_returning(db_session, store, cache, agent, metrics):
    store.upsert(db_session, agent.id, 1, 2026, metrics)
    assert store.recent_series(db_session, agent.id, 6)[0].service == 4
    cache.set(agent_metrics_key(str(agent.id)), "stale")

    store.upsert(db_session, agent.id, 1, 2026, {**metrics, "service": 2})

    assert cache.get(agent_metrics_key(str(agent.id))) is None
    assert store.recent_series(db_session, agent.id, 6)[0].service == 2


def test_storage_failure_is_reported_as_unavailable(agent, metrics, cache):
    db = MagicMock()
    db.get.side_effect = OperationalError("SELECT 1", {}, Exception("connection refused"))
    store = ScorecardStore(cache)

    with pytest.raises(StorageUnavailableError) as exc:
        store.upsert(db, agent.id, 1, 2026, metrics)

    assert exc.value.status_code == 503
    assert exc.value.retryable
    db.rollback.assert_called_once()
    db.commit.assert_not_called()


def test_recent_series_is_newest_first_and_bounded(db_session, store, agent, metrics):
    for year, month in [(2025, 11), (2025, 12), (2026, 1), (2026, 2)]:
        store.upsert(db_session, agent.id, month, year, metrics)

    series = store.recent_series(db_session, agent.id, 3)

    assert [(item.year, item.month) for item in series] == [(2026, 2), (2026, 1), (2025, 12)]


def test_get(db_session, store, agent, metrics):
    assert store.get(db_session, agent.id, 1, 2026) is None
    store.upsert(db_session, agent.id, 1, 2026, metrics)
    assert store.get(db_session, agent.id, 1, 2026).percentage == 75.0


def test_roll_up_uses_one_query(db_session, engine, store, make_user, team_leader, metrics):
    agents = [make_user(team_leader=team_leader) for _ in range(5)]
    for index, agent in enumerate(agents[:4]):
        store.upsert(db_session, agent.id, 2, 2026, {**metrics, "service": index + 1})
    store.upsert(db_session, agents[0].id, 1, 2026, metrics)

    agent_ids = [agent.id for agent in agents]
    statements = []

    def _count(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement)

    event.listen(engine, "before_cursor_execute", _count)
    try:
        scores = store.roll_up(db_session, agent_ids, 2, 2026)
    finally:
        event.remove(engine, "before_cursor_execute", _count)

    assert len(statements) == 1
    assert set(scores) == {agent.id for agent in agents[:4]}
    assert agents[4].id not in scores
    assert scores[agents[0].id] == 67.5


def test_roll_up_empty(db_session, store):
    assert store.roll_up(db_session, [], 1, 2026) == {}


def test_list_records_filters_by_period(db_session, store, agent, metrics):
    for year, month in [(2025, 11), (2025, 12), (2026, 1), (2026, 2)]:
        store.upsert(db_session, agent.id, month, year, metrics)

    records = store.list_records(db_session, agent_ids=[agent.id], start=(2025, 12), end=(2026, 1))

    assert [(record.year, record.month) for record in records] == [(2026, 1), (2025, 12)]


def test_list_records_rejects_inverted_range(db_session, store):
    with pytest.raises(ScorecardValidationError):
        store.list_records(db_session, start=(2026, 2), end=(2026, 1))


def test_delete_for_agent(db_session, store, cache, agent, metrics):
    store.upsert(db_session, agent.id, 1, 2026, metrics)
    store.upsert(db_session, agent.id, 2, 2026, metrics)
    cache.set(agent_metrics_key(str(agent.id)), "cached")

    assert store.delete_for_agent(db_session, agent.id) == 2
    assert store.get(db_session, agent.id, 1, 2026) is None
    assert cache.get(agent_metrics_key(str(agent.id))) is None


def test_existing_weights(db_session, store, agent, metrics):
    store.upsert(db_session, agent.id, 1, 2026, metrics, weights={"service": 2})
    weights = store.existing_weights(db_session, [(agent.id, 1, 2026), (agent.id, 2, 2026)])
    assert list(weights) == [(agent.id, 1, 2026)]
    assert weights[(agent.id, 1, 2026)]["service"] == 2.0
