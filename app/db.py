from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from app.config import settings


class Base(DeclarativeBase):
    pass


_engine = None


def _engine_options(database_url: str) -> dict:
    # SQLite runs without a sized connection pool.
    if make_url(database_url).get_backend_name() == "sqlite":
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_timeout": settings.db_pool_timeout,
        "pool_recycle": settings.db_pool_recycle,
    }


def get_engine():
    global _engine
    if _engine is None:
        _engine = create_engine(settings.database_url, **_engine_options(settings.database_url))
    return _engine


SessionLocal = sessionmaker(bind=get_engine(), autoflush=False, autocommit=False)


def get_db():
    """Database session dependency for FastAPI.

    Yields a session and closes it after the request. Scorecard services
    commit their own writes; the session is only closed here.

    Example:
        @router.get("/agents")
        def list_agents(db: Session = Depends(get_db)):
            return reports.list_agents(db)
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope():
    """Session for scripts and other code running outside a request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
