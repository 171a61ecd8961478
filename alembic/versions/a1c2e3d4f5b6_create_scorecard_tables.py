"""create users and agent scorecard tables

Revision ID: a1c2e3d4f5b6
Revises:
Create Date: 2026-10-18 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "a1c2e3d4f5b6"
down_revision = None
branch_labels = None
depends_on = None

METRIC_COLUMNS = (
    "service",
    "productivity",
    "quality",
    "assiduity",
    "performance",
    "adherence",
    "lateness",
    "break_exceeds",
)


def upgrade() -> None:
    user_role = postgresql.ENUM("agent", "team_leader", "manager", "admin", name="userrole", create_type=False)
    user_role.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("name", sa.String(160), nullable=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("employee_id", sa.String(64), nullable=True),
        sa.Column("role", user_role, nullable=False, server_default="agent"),
        sa.Column("team_leader_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("manager_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["team_leader_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["manager_id"], ["users.id"]),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.UniqueConstraint("employee_id", name="uq_users_employee_id"),
    )
    op.create_index("ix_users_role", "users", ["role"])
    op.create_index("ix_users_team_leader_id", "users", ["team_leader_id"])
    op.create_index("ix_users_manager_id", "users", ["manager_id"])

    op.create_table(
        "agent_metrics",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("agent_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        *(sa.Column(name, sa.Integer(), nullable=False, server_default="3") for name in METRIC_COLUMNS),
        sa.Column("weights_json", sa.JSON(), nullable=False),
        sa.Column("total_score", sa.Numeric(8, 2), nullable=False),
        sa.Column("percentage", sa.Numeric(5, 2), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("updated_by_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["agent_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["updated_by_id"], ["users.id"]),
        sa.UniqueConstraint("agent_id", "month", "year", name="uq_agent_metrics_agent_period"),
        sa.CheckConstraint("month BETWEEN 1 AND 12", name="ck_agent_metrics_month"),
    )
    op.create_index("ix_agent_metrics_period", "agent_metrics", ["year", "month"])
    op.create_index("ix_agent_metrics_agent_recent", "agent_metrics", ["agent_id", "year", "month"])


def downgrade() -> None:
    op.drop_index("ix_agent_metrics_agent_recent", table_name="agent_metrics")
    op.drop_index("ix_agent_metrics_period", table_name="agent_metrics")
    op.drop_table("agent_metrics")

    op.drop_index("ix_users_manager_id", table_name="users")
    op.drop_index("ix_users_team_leader_id", table_name="users")
    op.drop_index("ix_users_role", table_name="users")
    op.drop_table("users")

    sa.Enum(name="userrole").drop(op.get_bind(), checkfirst=True)
