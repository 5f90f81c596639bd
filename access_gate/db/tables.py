"""SQLAlchemy mappings for the tables this service reads.

The schema is owned and migrated by the CRUD side of the platform.
Only the columns the access engine needs are mapped; repos convert rows
to the frozen dataclasses in access_gate/models/.
"""

from __future__ import annotations

import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from access_gate.db.engine import Base

# --- Lesson plans ---


class LessonPlanRow(Base):
    __tablename__ = "lesson_plan_builder_plans"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True)
    owner_id: Mapped[str | None] = mapped_column(UUID(as_uuid=False), nullable=True)
    latest_export_path: Mapped[str | None] = mapped_column(Text, nullable=True)


# --- Research ---


class ResearchProjectRow(Base):
    __tablename__ = "research_projects"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True)
    created_by: Mapped[str | None] = mapped_column(UUID(as_uuid=False), nullable=True)


class ResearchParticipantRow(Base):
    __tablename__ = "research_participants"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True)
    project_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("research_projects.id"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False)


class ResearchDocumentRow(Base):
    __tablename__ = "research_documents"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True)
    project_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("research_projects.id"), nullable=False
    )
    storage_path: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str | None] = mapped_column(
        String(32), nullable=True
    )  # draft|participants|public


class ResearchSubmissionRow(Base):
    __tablename__ = "research_submissions"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True)
    project_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("research_projects.id"), nullable=False
    )
    participant_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False), nullable=True
    )
    storage_path: Mapped[str | None] = mapped_column(Text, nullable=True)


# --- Shared resources ---


class ResourceRow(Base):
    __tablename__ = "resources"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True)
    status: Mapped[str] = mapped_column(
        String(32), nullable=False
    )  # pending|approved|rejected
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    storage_path: Mapped[str | None] = mapped_column(Text, nullable=True)
    url: Mapped[str | None] = mapped_column(Text, nullable=True)


# --- Administration ---


class AppAdminRow(Base):
    __tablename__ = "app_admins"

    user_id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True)


class AuditLogRow(Base):
    __tablename__ = "audit_logs"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )
    action: Mapped[str] = mapped_column(String(128), nullable=False)
    actor_id: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False)
    target_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    # "metadata" is reserved on declarative classes
    metadata_: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSONB, nullable=True
    )
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
