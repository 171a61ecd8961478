from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from app.models.user import UserRole


class ScorecardMetricsInput(BaseModel):
    """Raw 1-5 metric scores; omitted metrics fall back to the scale midpoint."""

    model_config = ConfigDict(populate_by_name=True)

    service: int | None = None
    productivity: int | None = None
    quality: int | None = None
    assiduity: int | None = None
    performance: int | None = None
    adherence: int | None = None
    lateness: int | None = None
    break_exceeds: int | None = Field(default=None, validation_alias=AliasChoices("break_exceeds", "breakExceeds"))


class ScorecardWeightsInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    service: float | None = None
    productivity: float | None = None
    quality: float | None = None
    assiduity: float | None = None
    performance: float | None = None
    adherence: float | None = None
    lateness: float | None = None
    break_exceeds: float | None = Field(default=None, validation_alias=AliasChoices("break_exceeds", "breakExceeds"))


class ScorecardUpsert(BaseModel):
    metrics: ScorecardMetricsInput
    weights: ScorecardWeightsInput | None = None
    notes: str | None = None


class ScorecardRead(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True, populate_by_name=True)

    id: UUID
    agent_id: UUID
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
    weights: dict[str, float] = Field(validation_alias=AliasChoices("weights", "weights_json"))
    total_score: float
    percentage: float
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class HistoricalScore(BaseModel):
    model_config = ConfigDict(frozen=True)

    year: int
    month: int
    percentage: float


class PeriodDeltaRead(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    year: int
    month: int
    percentage: float
    delta: float | None = None


class AgentMetricsSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    agent_id: UUID
    overall_score: float = 0.0
    previous_score: float | None = None
    current_metrics: dict[str, float] = Field(default_factory=dict)
    historical_scores: list[HistoricalScore] = Field(default_factory=list)
    session_count: int = 0
    average_score: float = 0.0
    improvement: float = 0.0
    deltas: list[PeriodDeltaRead] = Field(default_factory=list)
    # latest minus previous period, per metric plus total_score and percentage
    metric_changes: dict[str, float] = Field(default_factory=dict)
    metric_averages: dict[str, float] = Field(default_factory=dict)


class AgentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: UUID
    name: str | None = None
    email: str
    employee_id: str | None = None
    role: UserRole
    team_leader_id: UUID | None = None
    latest_percentage: float | None = None
    latest_month: int | None = None
    latest_year: int | None = None


class AgentScoreRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    agent_id: UUID
    name: str
    percentage: float | None = None


class TeamSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    team_leader_id: UUID
    name: str
    month: int
    year: int
    agent_count: int = 0
    scored_count: int = 0
    average_percentage: float | None = None
    agents: list[AgentScoreRow] = Field(default_factory=list)


class ManagerSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    manager_id: UUID
    name: str
    month: int
    year: int
    team_count: int = 0
    agent_count: int = 0
    average_percentage: float | None = None
    teams: list[TeamSummary] = Field(default_factory=list)


class ImportResultRead(BaseModel):
    success: bool
    imported: int
    total: int
    failed: int
    errors: list[str]


class ScorecardPeriodView(BaseModel):
    """One agent's scorecards for a month or a whole year."""

    model_config = ConfigDict(frozen=True)

    agent: AgentRead
    year: int
    month: int | None = None
    records: list[ScorecardRead] = Field(default_factory=list)
    changes: dict[str, float] = Field(default_factory=dict)
    yearly_average: dict[str, float] | None = None
