from __future__ import annotations

import uuid
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from sqlalchemy.orm import Session
from starlette.responses import Response

from app.api.deps import (
    get_actor_id,
    get_db,
    get_scorecard_reports,
    get_scorecard_rollups,
    get_scorecard_spreadsheets,
    get_scorecard_store,
)
from app.schemas.scorecards import (
    AgentMetricsSummary,
    AgentRead,
    ImportResultRead,
    ManagerSummary,
    ScorecardPeriodView,
    ScorecardRead,
    ScorecardUpsert,
    TeamSummary,
)
from app.services.common import coerce_uuid
from app.services.scorecards.calculator import MetricSet
from app.services.scorecards.errors import ScorecardError, as_http_exception
from app.services.scorecards.imports import ScorecardSpreadsheetService
from app.services.scorecards.reports import ScorecardReportsService
from app.services.scorecards.rollups import ScorecardRollupService
from app.services.scorecards.spreadsheets import CONTENT_TYPES
from app.services.scorecards.store import ScorecardStore

router = APIRouter(prefix="/scorecards", tags=["scorecards"])


def _parse_id(value: str) -> uuid.UUID:
    try:
        return coerce_uuid(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid id") from exc


def _parse_month(value: str | None, label: str) -> tuple[int, int] | None:
    """``YYYY-MM`` -> (year, month)."""
    if not value:
        return None
    try:
        parsed = datetime.strptime(value, "%Y-%m")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"{label} must be formatted YYYY-MM") from exc
    return parsed.year, parsed.month


@router.get("/agents", response_model=list[AgentRead])
def list_agents(
    db: Session = Depends(get_db),
    _actor: str = Depends(get_actor_id),
    reports: ScorecardReportsService = Depends(get_scorecard_reports),
):
    try:
        return reports.list_agents(db)
    except ScorecardError as exc:
        raise as_http_exception(exc) from exc


@router.get("/agents/{agent_id}", response_model=AgentRead)
def get_agent(
    agent_id: str,
    db: Session = Depends(get_db),
    _actor: str = Depends(get_actor_id),
    reports: ScorecardReportsService = Depends(get_scorecard_reports),
):
    try:
        return reports.get_agent(db, _parse_id(agent_id))
    except ScorecardError as exc:
        raise as_http_exception(exc) from exc


@router.get("/agents/{agent_id}/metrics", response_model=AgentMetricsSummary)
def agent_metrics(
    agent_id: str,
    db: Session = Depends(get_db),
    _actor: str = Depends(get_actor_id),
    reports: ScorecardReportsService = Depends(get_scorecard_reports),
):
    try:
        return reports.agent_metrics_summary(db, _parse_id(agent_id))
    except ScorecardError as exc:
        raise as_http_exception(exc) from exc


@router.get("/agents/{agent_id}/scorecard", response_model=ScorecardPeriodView)
def agent_scorecard(
    agent_id: str,
    year: int | None = Query(None),
    month: int | None = Query(None, ge=1, le=12),
    db: Session = Depends(get_db),
    _actor: str = Depends(get_actor_id),
    reports: ScorecardReportsService = Depends(get_scorecard_reports),
):
    year = year or datetime.now(UTC).year
    try:
        return reports.scorecard_for_period(db, _parse_id(agent_id), year, month)
    except ScorecardError as exc:
        raise as_http_exception(exc) from exc


@router.get("/agents/{agent_id}/history", response_model=list[ScorecardRead])
def agent_history(
    agent_id: str,
    limit: int = Query(6, ge=1, le=60),
    db: Session = Depends(get_db),
    _actor: str = Depends(get_actor_id),
    store: ScorecardStore = Depends(get_scorecard_store),
):
    try:
        return store.recent_series(db, _parse_id(agent_id), limit)
    except ScorecardError as exc:
        raise as_http_exception(exc) from exc


@router.put("/agents/{agent_id}/{year}/{month}", response_model=ScorecardRead)
def upsert_scorecard(
    agent_id: str,
    year: int,
    month: int,
    payload: ScorecardUpsert,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_actor_id),
    store: ScorecardStore = Depends(get_scorecard_store),
):
    weights = payload.weights.model_dump(exclude_none=True) if payload.weights else None
    try:
        return store.upsert(
            db,
            _parse_id(agent_id),
            month,
            year,
            MetricSet.from_partial(payload.metrics.model_dump(exclude_none=True)),
            weights=weights,
            notes=payload.notes,
            actor_id=actor_id,
        )
    except ScorecardError as exc:
        raise as_http_exception(exc) from exc


@router.post("/import", response_model=ImportResultRead)
def import_scorecards(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_actor_id),
    spreadsheets: ScorecardSpreadsheetService = Depends(get_scorecard_spreadsheets),
):
    content = file.file.read()
    result = spreadsheets.import_scorecards(db, content, file.filename or "", actor_id=actor_id)
    return ImportResultRead(**result.to_dict())


@router.get("/import/template")
def import_template(
    format: str = Query("xlsx", pattern="^(xlsx|csv)$"),
    year: int | None = Query(None),
    _actor: str = Depends(get_actor_id),
    spreadsheets: ScorecardSpreadsheetService = Depends(get_scorecard_spreadsheets),
):
    try:
        content = spreadsheets.import_template(format, year)
    except ScorecardError as exc:
        raise as_http_exception(exc) from exc
    return Response(
        content=content,
        media_type=CONTENT_TYPES[format],
        headers={"Content-Disposition": f"attachment; filename=scorecard_import_template.{format}"},
    )


@router.get("/export")
def export_scorecards(
    format: str = Query("xlsx", pattern="^(xlsx|csv)$"),
    agent_id: list[str] | None = Query(None),
    start: str | None = Query(None, description="First period, YYYY-MM"),
    end: str | None = Query(None, description="Last period, YYYY-MM"),
    db: Session = Depends(get_db),
    _actor: str = Depends(get_actor_id),
    spreadsheets: ScorecardSpreadsheetService = Depends(get_scorecard_spreadsheets),
):
    agent_ids = [_parse_id(value) for value in agent_id] if agent_id else None
    try:
        content = spreadsheets.export_scorecards(
            db,
            format,
            agent_ids=agent_ids,
            start=_parse_month(start, "start"),
            end=_parse_month(end, "end"),
        )
    except ScorecardError as exc:
        raise as_http_exception(exc) from exc
    filename = f"scorecards_{datetime.now(UTC).strftime('%Y%m%d')}.{format}"
    return Response(
        content=content,
        media_type=CONTENT_TYPES[format],
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.get("/teams/{team_leader_id}", response_model=TeamSummary)
def team_summary(
    team_leader_id: str,
    month: int = Query(..., ge=1, le=12),
    year: int = Query(...),
    db: Session = Depends(get_db),
    _actor: str = Depends(get_actor_id),
    rollups: ScorecardRollupService = Depends(get_scorecard_rollups),
):
    try:
        return rollups.team_summary(db, _parse_id(team_leader_id), month, year)
    except ScorecardError as exc:
        raise as_http_exception(exc) from exc


@router.get("/managers/{manager_id}", response_model=ManagerSummary)
def manager_summary(
    manager_id: str,
    month: int = Query(..., ge=1, le=12),
    year: int = Query(...),
    db: Session = Depends(get_db),
    _actor: str = Depends(get_actor_id),
    rollups: ScorecardRollupService = Depends(get_scorecard_rollups),
):
    try:
        return rollups.manager_summary(db, _parse_id(manager_id), month, year)
    except ScorecardError as exc:
        raise as_http_exception(exc) from exc
