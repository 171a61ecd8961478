from fastapi import Depends, HTTPException, Request

from app.db import get_db


def get_current_actor(request: Request) -> dict:
    """Authenticated actor placed on ``request.state.auth`` by the upstream auth layer.

    Returns a dict with person_id and roles. Role and ownership checks have
    already run by the time a scorecard route sees the request.
    """
    auth = getattr(request.state, "auth", None)
    if not auth or not auth.get("person_id"):
        raise HTTPException(status_code=401, detail="Unauthorized")
    return auth


# -------------------------------------------------------------------------
# Container-based Dependencies
# -------------------------------------------------------------------------
# These provide services from the DI container for use in route handlers.
# They can be easily mocked in tests by overriding the container providers.


def get_scorecard_store():
    """Get scorecard store from container."""
    from app.container import container
    return container.scorecard_store()


def get_scorecard_reports():
    """Get scorecard reports service from container."""
    from app.container import container
    return container.scorecard_reports()


def get_scorecard_rollups():
    """Get team/manager roll-up service from container."""
    from app.container import container
    return container.scorecard_rollups()


def get_scorecard_spreadsheets():
    """Get spreadsheet import/export service from container."""
    from app.container import container
    return container.scorecard_spreadsheets()


def get_actor_id(auth: dict = Depends(get_current_actor)) -> str:
    return str(auth["person_id"])


__all__ = [
    "get_db",
    "get_current_actor",
    "get_actor_id",
    # Container-based dependencies
    "get_scorecard_store",
    "get_scorecard_reports",
    "get_scorecard_rollups",
    "get_scorecard_spreadsheets",
]
