from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from app.config import settings
from app.services.scorecards.normalizer import METRIC_MAX, METRIC_MIN, percentage_to_metric


class CSVRowModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    @field_validator("*", mode="before")
    @classmethod
    def _normalize_csv_value(cls, value):
        if value is None:
            return None
        if isinstance(value, str):
            stripped = value.strip()
            if stripped == "":
                return None
            return stripped
        return value


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _as_int(value: Any, label: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{label} must be a whole number")
    if isinstance(value, int):
        return value
    try:
        number = float(str(value))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{label} must be a whole number") from exc
    if not number.is_integer():
        raise ValueError(f"{label} must be a whole number")
    return int(number)


class ScorecardImportRow(CSVRowModel):
    """One validated spreadsheet line, ready for agent resolution and scoring."""

    agent_email: str | None = None
    employee_id: str | None = None
    month: int
    year: int
    service: int
    productivity: int
    quality: int
    assiduity: int
    performance: int
    adherence: int
    lateness: int
    break_exceeds: int
    notes: str | None = None

    @field_validator("agent_email", "employee_id", "notes", mode="before")
    @classmethod
    def _text(cls, value):
        if value is None:
            return None
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        text = str(value).strip()
        return text or None

    @field_validator("agent_email")
    @classmethod
    def _lower_email(cls, value: str | None) -> str | None:
        return value.lower() if value else value

    @field_validator("month", mode="before")
    @classmethod
    def _month(cls, value):
        if _is_blank(value):
            raise ValueError("Month is required")
        month = _as_int(value, "Month")
        if not 1 <= month <= 12:
            raise ValueError(f"Month must be between 1 and 12 (got {month})")
        return month

    @field_validator("year", mode="before")
    @classmethod
    def _year(cls, value):
        if _is_blank(value):
            raise ValueError("Year is required")
        year = _as_int(value, "Year")
        if not settings.scorecard_min_year <= year <= settings.scorecard_max_year:
            raise ValueError(
                f"Year must be between {settings.scorecard_min_year} and {settings.scorecard_max_year} (got {year})"
            )
        return year

    @field_validator(
        "service",
        "productivity",
        "quality",
        "assiduity",
        "performance",
        "adherence",
        "lateness",
        "break_exceeds",
        mode="before",
    )
    @classmethod
    def _metric(cls, value, info):
        label = info.field_name.replace("_", " ").title()
        if _is_blank(value):
            raise ValueError(f"{label} is required")
        if isinstance(value, str) and value.strip().endswith("%"):
            try:
                return percentage_to_metric(float(value.strip()[:-1]))
            except ValueError as exc:
                raise ValueError(f"{label} percentage is not a number") from exc
        score = _as_int(value, label)
        if not METRIC_MIN <= score <= METRIC_MAX:
            raise ValueError(f"{label} must be between {METRIC_MIN} and {METRIC_MAX} (got {score})")
        return score

    @model_validator(mode="after")
    def _identifier_required(self):
        if not self.agent_email and not self.employee_id:
            raise ValueError("Agent Email or Employee ID is required")
        return self

    def metrics(self) -> dict[str, int]:
        return self.model_dump(
            include={
                "service",
                "productivity",
                "quality",
                "assiduity",
                "performance",
                "adherence",
                "lateness",
                "break_exceeds",
            }
        )
