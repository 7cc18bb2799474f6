"""Initial schema — agents, assignments, transfer audit, custom fields.

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Agents (directory mirror: id + held skills)
    op.create_table(
        "agents",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("skills", sa.JSON, nullable=False, server_default="[]"),
    )

    # Assignments
    op.create_table(
        "assignments",
        sa.Column("id", sa.String(40), primary_key=True),
        sa.Column("entity_type", sa.String(20), nullable=False),
        sa.Column("entity_id", sa.String(64), nullable=False),
        sa.Column("agent_id", sa.String(64), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("assignment_type", sa.String(20), nullable=False, server_default="manual"),
        sa.Column("assignment_reason", sa.String(500), nullable=True),
        sa.Column("priority", sa.String(10), nullable=False, server_default="medium"),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("assigned_by", sa.String(64), nullable=True),
        sa.Column("escalation_level", sa.Integer, nullable=False, server_default="0"),
        sa.Column("escalated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("escalated_to", sa.String(64), nullable=True),
        sa.Column("sla_deadline", sa.DateTime(timezone=True), nullable=False),
        sa.Column("sla_met", sa.Boolean, nullable=True),
        sa.Column("sla_breach_reason", sa.Text, nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completion_reason", sa.String(20), nullable=True),
        sa.Column("satisfaction_score", sa.Float, nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.Text, nullable=True),
        sa.Column("workload_score", sa.Float, nullable=False, server_default="0"),
        sa.Column("capacity_utilization", sa.Float, nullable=False, server_default="0"),
        sa.Column("required_skills", sa.JSON, nullable=False, server_default="[]"),
        sa.Column("agent_skills", sa.JSON, nullable=False, server_default="[]"),
        sa.Column("skill_match_score", sa.Float, nullable=False, server_default="1"),
        sa.Column("first_response_time", sa.Float, nullable=True),
        sa.Column("average_response_time", sa.Float, nullable=True),
        sa.Column("resolution_time", sa.Float, nullable=True),
        sa.Column("total_messages", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_interactions", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_activity_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("tags", sa.JSON, nullable=False, server_default="[]"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "uq_assignments_active_entity",
        "assignments",
        ["entity_type", "entity_id"],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
    )
    op.create_index("idx_assignments_agent", "assignments", ["agent_id"])
    op.create_index(
        "idx_assignments_agent_status", "assignments", ["agent_id", "status", "assigned_at"]
    )
    op.create_index("idx_assignments_sla", "assignments", ["sla_deadline", "status"])
    op.create_index(
        "idx_assignments_entity", "assignments", ["entity_type", "entity_id", "status"]
    )

    # Transfer audit trail
    op.create_table(
        "assignment_transfers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "assignment_id",
            sa.String(40),
            sa.ForeignKey("assignments.id"),
            nullable=False,
        ),
        sa.Column("sequence", sa.Integer, nullable=False),
        sa.Column("from_agent_id", sa.String(64), nullable=False),
        sa.Column("to_agent_id", sa.String(64), nullable=False),
        sa.Column("reason", sa.Text, nullable=True),
        sa.Column("transferred_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "uq_assignment_transfers_seq",
        "assignment_transfers",
        ["assignment_id", "sequence"],
        unique=True,
    )

    # Custom fields side table
    op.create_table(
        "assignment_custom_fields",
        sa.Column(
            "assignment_id",
            sa.String(40),
            sa.ForeignKey("assignments.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("key", sa.String(100), primary_key=True),
        sa.Column("value", sa.JSON, nullable=True),
    )


def downgrade() -> None:
    op.drop_table("assignment_custom_fields")
    op.drop_table("assignment_transfers")
    op.drop_table("assignments")
    op.drop_table("agents")
