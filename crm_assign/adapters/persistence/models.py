"""SQLAlchemy ORM models — maps to PostgreSQL tables."""

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crm_assign.adapters.persistence.database import Base

ACTIVE_STATUS_CLAUSE = text("status = 'active'")

# Column widths shared with the request schemas
ID_LENGTH = 64
REASON_LENGTH = 500
CUSTOM_FIELD_KEY_LENGTH = 100


class AgentModel(Base):
    __tablename__ = "agents"

    id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    skills: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)


class AssignmentModel(Base):
    __tablename__ = "assignments"

    id: Mapped[str] = mapped_column(String(40), primary_key=True)
    entity_type: Mapped[str] = mapped_column(String(20), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(ID_LENGTH), nullable=False)
    agent_id: Mapped[str] = mapped_column(String(ID_LENGTH), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    assignment_type: Mapped[str] = mapped_column(String(20), nullable=False, default="manual")
    assignment_reason: Mapped[str | None] = mapped_column(String(REASON_LENGTH), nullable=True)
    priority: Mapped[str] = mapped_column(String(10), nullable=False, default="medium")
    assigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    assigned_by: Mapped[str | None] = mapped_column(String(ID_LENGTH), nullable=True)

    escalation_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    escalated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    escalated_to: Mapped[str | None] = mapped_column(String(ID_LENGTH), nullable=True)

    sla_deadline: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    sla_met: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    sla_breach_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completion_reason: Mapped[str | None] = mapped_column(String(20), nullable=True)
    satisfaction_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    workload_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    capacity_utilization: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    required_skills: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    agent_skills: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    skill_match_score: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)

    first_response_time: Mapped[float | None] = mapped_column(Float, nullable=True)
    average_response_time: Mapped[float | None] = mapped_column(Float, nullable=True)
    resolution_time: Mapped[float | None] = mapped_column(Float, nullable=True)
    total_messages: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_interactions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_activity_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    transfers: Mapped[list["AssignmentTransferModel"]] = relationship(
        back_populates="assignment",
        order_by="AssignmentTransferModel.sequence",
        lazy="selectin",
    )
    custom_fields: Mapped[list["AssignmentCustomFieldModel"]] = relationship(
        back_populates="assignment",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        # At most one active assignment per work item, enforced by the database.
        Index(
            "uq_assignments_active_entity",
            "entity_type",
            "entity_id",
            unique=True,
            postgresql_where=ACTIVE_STATUS_CLAUSE,
            sqlite_where=ACTIVE_STATUS_CLAUSE,
        ),
        Index("idx_assignments_agent", "agent_id"),
        Index("idx_assignments_agent_status", "agent_id", "status", "assigned_at"),
        Index("idx_assignments_sla", "sla_deadline", "status"),
        Index("idx_assignments_entity", "entity_type", "entity_id", "status"),
    )


class AssignmentTransferModel(Base):
    """Append-only hand-off audit trail."""

    __tablename__ = "assignment_transfers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    assignment_id: Mapped[str] = mapped_column(
        String(40), ForeignKey("assignments.id"), nullable=False
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    from_agent_id: Mapped[str] = mapped_column(String(ID_LENGTH), nullable=False)
    to_agent_id: Mapped[str] = mapped_column(String(ID_LENGTH), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    transferred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    assignment: Mapped["AssignmentModel"] = relationship(back_populates="transfers")

    __table_args__ = (
        Index("uq_assignment_transfers_seq", "assignment_id", "sequence", unique=True),
    )


class AssignmentCustomFieldModel(Base):
    """Open key/value side table. Nothing in the lifecycle reads it."""

    __tablename__ = "assignment_custom_fields"

    assignment_id: Mapped[str] = mapped_column(
        String(40), ForeignKey("assignments.id", ondelete="CASCADE"), primary_key=True
    )
    key: Mapped[str] = mapped_column(String(CUSTOM_FIELD_KEY_LENGTH), primary_key=True)
    value: Mapped[Any] = mapped_column(JSON, nullable=True)

    assignment: Mapped["AssignmentModel"] = relationship(back_populates="custom_fields")
