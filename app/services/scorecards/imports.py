"""Bulk scorecard import and export.

Each sheet row moves through parse, validate, resolve and persist on its own.
A row that fails at any step is reported as ``Row N: <reason>`` and never
affects its siblings; only an unreadable file fails the whole batch.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError
from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.logging import get_logger
from app.models.user import User, UserRole
from app.schemas.imports import ScorecardImportRow
from app.services.scorecards.calculator import METRIC_NAMES, WeightSet
from app.services.scorecards.errors import ScorecardError, SpreadsheetFormatError, StorageUnavailableError
from app.services.scorecards.observability import IMPORT_DURATION, IMPORT_ROWS
from app.services.scorecards.spreadsheets import (
    SUPPORTED_FORMATS,
    SheetRow,
    detect_format,
    read_rows,
    write_rows,
    write_template,
)
from app.services.scorecards.store import Period, ScorecardStore, validate_period

logger = get_logger(__name__)

FIELD_LABELS: dict[str, str] = {
    "agent_email": "Agent Email",
    "employee_id": "Employee ID",
    "month": "Month",
    "year": "Year",
    "service": "Service",
    "productivity": "Productivity",
    "quality": "Quality",
    "assiduity": "Assiduity",
    "performance": "Performance",
    "adherence": "Adherence",
    "lateness": "Lateness",
    "break_exceeds": "Break Exceeds",
    "notes": "Notes",
}


@dataclass(frozen=True)
class ImportRow:
    row_number: int
    data: ScorecardImportRow


@dataclass(frozen=True)
class RowError:
    row_number: int
    reason: str

    def __str__(self) -> str:
        return f"Row {self.row_number}: {self.reason}"


@dataclass
class ImportResult:
    success: bool
    imported: int
    errors: list[str] = field(default_factory=list)
    total: int = 0
    failed: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def format_validation_error(exc: ValidationError) -> str:
    messages: list[str] = []
    for error in exc.errors():
        loc = error.get("loc") or ()
        name = loc[0] if loc else None
        label = FIELD_LABELS.get(str(name), str(name)) if name is not None else None
        if label and (error.get("type") == "missing" or error.get("input") is None):
            message = f"{label} is required"
        else:
            message = str(error.get("msg", "Invalid value")).removeprefix("Value error, ")
            if label and error.get("type") != "value_error":
                message = f"{label}: {message}"
        if message not in messages:
            messages.append(message)
    return "; ".join(messages)


def parse_row(sheet_row: SheetRow) -> ImportRow | RowError:
    try:
        data = ScorecardImportRow.model_validate(sheet_row.values)
    except ValidationError as exc:
        return RowError(sheet_row.row_number, format_validation_error(exc))
    return ImportRow(sheet_row.row_number, data)


class ScorecardSpreadsheetService:
    def __init__(self, store: ScorecardStore):
        self.store = store

    def _resolve_agents(self, db: Session, rows: list[ImportRow]) -> tuple[dict[str, User], dict[str, User]]:
        """Agents for every identifier in the file, keyed by lowercased email and by employee id."""
        emails = {row.data.agent_email for row in rows if row.data.agent_email}
        employee_ids = {row.data.employee_id for row in rows if row.data.employee_id}
        filters = []
        if emails:
            filters.append(func.lower(User.email).in_(list(emails)))
        if employee_ids:
            filters.append(User.employee_id.in_(list(employee_ids)))
        if not filters:
            return {}, {}
        try:
            agents = db.query(User).filter(User.role == UserRole.agent).filter(or_(*filters)).all()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("scorecard_import_resolve_failed")
            raise StorageUnavailableError() from exc
        by_email = {agent.email.lower(): agent for agent in agents}
        by_employee_id = {agent.employee_id: agent for agent in agents if agent.employee_id}
        return by_email, by_employee_id

    def import_scorecards(
        self,
        db: Session,
        content: bytes,
        filename: str,
        *,
        weights: WeightSet | Mapping[str, Any] | None = None,
        actor_id: str | uuid.UUID | None = None,
        max_rows: int | None = None,
    ) -> ImportResult:
        max_rows = max_rows or settings.scorecard_import_max_rows
        with IMPORT_DURATION.time():
            try:
                sheet_rows = read_rows(content, detect_format(filename))
            except SpreadsheetFormatError as exc:
                logger.warning("scorecard_import_rejected filename=%s reason=%s", filename, exc.detail)
                return ImportResult(success=False, imported=0, errors=[exc.detail])
            if len(sheet_rows) > max_rows:
                logger.warning("scorecard_import_too_large filename=%s rows=%d", filename, len(sheet_rows))
                return ImportResult(
                    success=False,
                    imported=0,
                    errors=[f"File has {len(sheet_rows)} rows; at most {max_rows} can be imported at once"],
                    total=len(sheet_rows),
                    failed=len(sheet_rows),
                )

            failures: list[RowError] = []
            parsed: list[ImportRow] = []
            for sheet_row in sheet_rows:
                outcome = parse_row(sheet_row)
                if isinstance(outcome, RowError):
                    failures.append(outcome)
                else:
                    parsed.append(outcome)

            imported = self._persist(db, parsed, failures, weights=weights, actor_id=actor_id)

        failures.sort(key=lambda failure: failure.row_number)
        for failure in failures:
            logger.warning("scorecard_import_row_failed filename=%s %s", filename, failure)
        IMPORT_ROWS.labels(status="imported").inc(imported)
        IMPORT_ROWS.labels(status="failed").inc(len(failures))
        logger.info(
            "scorecard_import filename=%s total=%d imported=%d failed=%d",
            filename,
            len(sheet_rows),
            imported,
            len(failures),
        )
        return ImportResult(
            success=not failures,
            imported=imported,
            errors=[str(failure) for failure in failures],
            total=len(sheet_rows),
            failed=len(failures),
        )

    def _persist(
        self,
        db: Session,
        rows: list[ImportRow],
        failures: list[RowError],
        *,
        weights: WeightSet | Mapping[str, Any] | None,
        actor_id: str | uuid.UUID | None,
    ) -> int:
        if not rows:
            return 0
        try:
            by_email, by_employee_id = self._resolve_agents(db, rows)
        except StorageUnavailableError as exc:
            failures.extend(RowError(row.row_number, exc.detail) for row in rows)
            return 0

        resolved: list[tuple[ImportRow, User]] = []
        for row in rows:
            agent = None
            if row.data.agent_email:
                agent = by_email.get(row.data.agent_email)
            if agent is None and row.data.employee_id:
                agent = by_employee_id.get(row.data.employee_id)
            if agent is None:
                failures.append(RowError(row.row_number, "Agent not found"))
                continue
            resolved.append((row, agent))

        stored_weights: dict[tuple[uuid.UUID, int, int], dict[str, float]] = {}
        if weights is None and resolved:
            try:
                stored_weights = self.store.existing_weights(
                    db, [(agent.id, row.data.month, row.data.year) for row, agent in resolved]
                )
            except StorageUnavailableError:
                logger.warning("scorecard_import_weights_unavailable rows=%d", len(resolved))

        imported = 0
        for row, agent in resolved:
            row_weights = weights
            if row_weights is None:
                row_weights = stored_weights.get((agent.id, row.data.month, row.data.year))
            try:
                self.store.upsert(
                    db,
                    agent.id,
                    row.data.month,
                    row.data.year,
                    row.data.metrics(),
                    weights=row_weights,
                    notes=row.data.notes,
                    actor_id=actor_id,
                )
            except ScorecardError as exc:
                failures.append(RowError(row.row_number, exc.detail))
                continue
            imported += 1
        return imported

    def export_scorecards(
        self,
        db: Session,
        fmt: str,
        agent_ids: Iterable[str | uuid.UUID] | None = None,
        start: Period | None = None,
        end: Period | None = None,
        limit: int | None = None,
    ) -> bytes:
        """Render stored scorecards in the import layout plus Total Score and Percentage."""
        fmt = (fmt or "").lower()
        if fmt not in SUPPORTED_FORMATS:
            raise SpreadsheetFormatError("unsupported_format", f"Unsupported format '{fmt}'; expected xlsx or csv")
        records = self.store.list_records(db, agent_ids=agent_ids, start=start, end=end, limit=limit)
        agent_map: dict[uuid.UUID, User] = {}
        if records:
            try:
                agents = db.query(User).filter(User.id.in_(list({record.agent_id for record in records}))).all()
            except SQLAlchemyError as exc:
                db.rollback()
                logger.exception("scorecard_export_agents_failed")
                raise StorageUnavailableError() from exc
            agent_map = {agent.id: agent for agent in agents}

        rows: list[list[Any]] = []
        for record in records:
            agent = agent_map.get(record.agent_id)
            rows.append(
                [
                    agent.email if agent else None,
                    agent.employee_id if agent else None,
                    record.month,
                    record.year,
                    *(int(getattr(record, name)) for name in METRIC_NAMES),
                    record.notes,
                    round(float(record.total_score), 2),
                    round(float(record.percentage), 2),
                ]
            )
        logger.info("scorecard_export format=%s rows=%d", fmt, len(rows))
        return write_rows(rows, fmt)

    def import_template(self, fmt: str, year: int | None = None) -> bytes:
        """Empty import sheet with one example row, ready to fill in."""
        fmt = (fmt or "").lower()
        if fmt not in SUPPORTED_FORMATS:
            raise SpreadsheetFormatError("unsupported_format", f"Unsupported format '{fmt}'; expected xlsx or csv")
        _, year = validate_period(1, year or datetime.now(UTC).year)
        logger.info("scorecard_import_template format=%s year=%d", fmt, year)
        return write_template(fmt, year)
