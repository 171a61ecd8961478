import uuid
from datetime import UTC, datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, Numeric, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db import Base


class AgentMetric(Base):
    """One monthly scorecard for one agent, keyed by (agent_id, month, year)."""

    __tablename__ = "agent_metrics"
    __table_args__ = (
        UniqueConstraint("agent_id", "month", "year", name="uq_agent_metrics_agent_period"),
        Index("ix_agent_metrics_period", "year", "month"),
        Index("ix_agent_metrics_agent_recent", "agent_id", "year", "month"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    agent_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)

    service: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    productivity: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    quality: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    assiduity: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    performance: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    adherence: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    lateness: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    break_exceeds: Mapped[int] = mapped_column(Integer, nullable=False, default=3)

    weights_json: Mapped[dict] = mapped_column(JSON, nullable=False)
    total_score: Mapped[float] = mapped_column(Numeric(8, 2), nullable=False)
    percentage: Mapped[float] = mapped_column(Numeric(5, 2), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    updated_by_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), onupdate=lambda: datetime.now(UTC)
    )

    agent = relationship("User", back_populates="metrics", foreign_keys=[agent_id])
    updated_by = relationship("User", foreign_keys=[updated_by_id])
