import os
import sqlite3
import uuid

import pytest
from dotenv import load_dotenv
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db import Base

load_dotenv(os.path.join(os.getcwd(), ".env"))

# Register UUID adapter for SQLite - store as string
sqlite3.register_adapter(uuid.UUID, lambda u: str(u))


# Monkey-patch SQLAlchemy's UUID type for SQLite compatibility
# This must happen before any models are imported
from sqlalchemy.sql import sqltypes  # noqa: E402

_original_uuid_bind_processor = sqltypes.Uuid.bind_processor
_original_uuid_result_processor = sqltypes.Uuid.result_processor


def _sqlite_uuid_bind_processor(self, dialect):
    if dialect.name == "sqlite":
        def process(value):
            if value is not None:
                if isinstance(value, uuid.UUID):
                    return str(value)
                return str(uuid.UUID(value)) if value else None
            return None
        return process
    return _original_uuid_bind_processor(self, dialect)


def _sqlite_uuid_result_processor(self, dialect, coltype):
    if dialect.name == "sqlite":
        def process(value):
            if value is not None:
                if isinstance(value, uuid.UUID):
                    return value
                return uuid.UUID(value) if value else None
            return None
        return process
    return _original_uuid_result_processor(self, dialect, coltype)


sqltypes.Uuid.bind_processor = _sqlite_uuid_bind_processor
sqltypes.Uuid.result_processor = _sqlite_uuid_result_processor

from app.models import AgentMetric, User, UserRole  # noqa: E402,F401
from app.services.scorecards.cache import ReadThroughCache  # noqa: E402
from app.services.scorecards.imports import ScorecardSpreadsheetService  # noqa: E402
from app.services.scorecards.reports import ScorecardReportsService  # noqa: E402
from app.services.scorecards.rollups import ScorecardRollupService  # noqa: E402
from app.services.scorecards.store import ScorecardStore  # noqa: E402


class FakeClock:
    """Manually advanced monotonic clock for TTL tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(scope="session")
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={
            "check_same_thread": False,
            "detect_types": sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES,
        },
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    return engine


@pytest.fixture()
def db_session(engine):
    connection = engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(bind=connection, autoflush=False, autocommit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def cache(clock):
    return ReadThroughCache(default_ttl_seconds=60, clock=clock)


@pytest.fixture()
def store(cache):
    return ScorecardStore(cache)


@pytest.fixture()
def reports(store, cache):
    return ScorecardReportsService(store, cache)


@pytest.fixture()
def rollups(store, cache):
    return ScorecardRollupService(store, cache)


@pytest.fixture()
def spreadsheets(store):
    return ScorecardSpreadsheetService(store)


def _unique_email() -> str:
    return f"test-{uuid.uuid4().hex}@example.com"


@pytest.fixture()
def make_user(db_session):
    def _make_user(role=UserRole.agent, name=None, email=None, employee_id=None, team_leader=None, manager=None):
        user = User(
            name=name or f"{role.value.title()} {uuid.uuid4().hex[:6]}",
            email=email or _unique_email(),
            employee_id=employee_id,
            role=role,
            team_leader_id=team_leader.id if team_leader else None,
            manager_id=manager.id if manager else None,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture()
def manager(make_user):
    return make_user(UserRole.manager, name="Morgan Manager")


@pytest.fixture()
def team_leader(make_user, manager):
    return make_user(UserRole.team_leader, name="Taylor Lead", manager=manager)


@pytest.fixture()
def agent(make_user, team_leader):
    return make_user(UserRole.agent, name="Alex Agent", employee_id="EMP-001", team_leader=team_leader)


@pytest.fixture()
def metrics():
    return {
        "service": 4,
        "productivity": 5,
        "quality": 3,
        "assiduity": 4,
        "performance": 5,
        "adherence": 4,
        "lateness": 3,
        "break_exceeds": 2,
    }
