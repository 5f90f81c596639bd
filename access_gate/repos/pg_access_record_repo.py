"""PostgreSQL implementation of AccessRecordRepo."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import Select, exists, select
from sqlalchemy.exc import MultipleResultsFound, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from access_gate.db.tables import (
    AppAdminRow,
    AuditLogRow,
    LessonPlanRow,
    ResearchDocumentRow,
    ResearchParticipantRow,
    ResearchProjectRow,
    ResearchSubmissionRow,
    ResourceRow,
)
from access_gate.models.audit import AuditEntry
from access_gate.models.resources import (
    LessonPlanExport,
    ResearchDocument,
    ResearchProject,
    ResearchSubmission,
    Resource,
)
from access_gate.repos.access_record_repo import RecordStoreError

logger = logging.getLogger(__name__)


class PgAccessRecordRepo:
    """Satisfies the AccessRecordRepo Protocol using PostgreSQL via SQLAlchemy.

    Each lookup opens its own short session: the access path is read-only
    and each query depends on the previous one's result, so there is no
    transaction worth holding open across them.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def _one_or_none(self, stmt: Select[Any]) -> Any:
        try:
            async with self._session_factory() as session:
                return (await session.execute(stmt)).scalar_one_or_none()
        except MultipleResultsFound as e:
            raise RecordStoreError("multiple rows matched a single-row lookup") from e
        except SQLAlchemyError as e:
            logger.warning("Record lookup failed: %s", e.__class__.__name__)
            raise RecordStoreError(str(e)) from e

    async def find_lesson_plan_export(self, path: str) -> LessonPlanExport | None:
        row = await self._one_or_none(
            select(LessonPlanRow).where(LessonPlanRow.latest_export_path == path)
        )
        if row is None:
            return None
        return LessonPlanExport(
            id=row.id,
            owner_id=row.owner_id,
            latest_export_path=row.latest_export_path or path,
        )

    async def find_research_document(self, path: str) -> ResearchDocument | None:
        row = await self._one_or_none(
            select(ResearchDocumentRow).where(ResearchDocumentRow.storage_path == path)
        )
        return None if row is None else _row_to_document(row)

    async def get_research_document(self, document_id: str) -> ResearchDocument | None:
        row = await self._one_or_none(
            select(ResearchDocumentRow).where(ResearchDocumentRow.id == document_id)
        )
        return None if row is None else _row_to_document(row)

    async def find_research_submission(self, path: str) -> ResearchSubmission | None:
        row = await self._one_or_none(
            select(ResearchSubmissionRow).where(
                ResearchSubmissionRow.storage_path == path
            )
        )
        if row is None:
            return None
        return ResearchSubmission(
            id=row.id,
            project_id=row.project_id,
            participant_id=row.participant_id,
            storage_path=row.storage_path or path,
        )

    async def get_research_project(self, project_id: str) -> ResearchProject | None:
        row = await self._one_or_none(
            select(ResearchProjectRow).where(ResearchProjectRow.id == project_id)
        )
        if row is None:
            return None
        return ResearchProject(id=row.id, created_by=row.created_by)

    async def is_participant(self, project_id: str, user_id: str) -> bool:
        stmt = select(
            exists().where(
                ResearchParticipantRow.project_id == project_id,
                ResearchParticipantRow.user_id == user_id,
            )
        )
        return bool(await self._one_or_none(stmt))

    async def is_listed_admin(self, user_id: str) -> bool:
        user = await self._one_or_none(
            select(AppAdminRow.user_id).where(AppAdminRow.user_id == user_id)
        )
        return user == user_id

    async def get_resource(self, resource_id: str) -> Resource | None:
        row = await self._one_or_none(
            select(ResourceRow).where(ResourceRow.id == resource_id)
        )
        if row is None:
            return None
        return Resource(
            id=row.id,
            status=row.status,
            is_active=row.is_active,
            storage_path=row.storage_path,
            url=row.url,
        )

    async def add_audit_entry(self, entry: AuditEntry) -> None:
        try:
            async with self._session_factory() as session:
                session.add(
                    AuditLogRow(
                        action=entry.action,
                        actor_id=entry.actor_id,
                        target_id=entry.target_id,
                        metadata_=entry.metadata,
                        created_at=entry.created_at,
                    )
                )
                await session.commit()
        except SQLAlchemyError as e:
            raise RecordStoreError(str(e)) from e


def _row_to_document(row: ResearchDocumentRow) -> ResearchDocument:
    return ResearchDocument(
        id=row.id,
        project_id=row.project_id,
        storage_path=row.storage_path,
        status=row.status,
    )
