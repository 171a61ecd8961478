import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db import Base


class UserRole(enum.Enum):
    agent = "agent"
    team_leader = "team_leader"
    manager = "manager"
    admin = "admin"


class User(Base):
    """Anyone in the coaching hierarchy.

    Agents point at their team leader; team leaders point at their manager.
    """

    __tablename__ = "users"
    __table_args__ = (
        Index("ix_users_role", "role"),
        Index("ix_users_team_leader_id", "team_leader_id"),
        Index("ix_users_manager_id", "manager_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str | None] = mapped_column(String(160))
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    employee_id: Mapped[str | None] = mapped_column(String(64), unique=True)
    role: Mapped[UserRole] = mapped_column(Enum(UserRole), nullable=False, default=UserRole.agent)
    team_leader_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"))
    manager_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    team_leader = relationship("User", remote_side=[id], foreign_keys=[team_leader_id])
    manager = relationship("User", remote_side=[id], foreign_keys=[manager_id])
    metrics = relationship(
        "AgentMetric", back_populates="agent", foreign_keys="AgentMetric.agent_id", cascade="all, delete-orphan"
    )

    @property
    def display_name(self) -> str:
        return (self.name or "").strip() or self.email
