from __future__ import annotations

from typing import Protocol, TypeVar

from access_gate.models.audit import AuditEntry
from access_gate.models.resources import (
    LessonPlanExport,
    ResearchDocument,
    ResearchParticipant,
    ResearchProject,
    ResearchSubmission,
    Resource,
)

T = TypeVar("T")


class RecordStoreError(Exception):
    """The relational store failed or returned an ambiguous result."""


class AccessRecordRepo(Protocol):
    async def find_lesson_plan_export(self, path: str) -> LessonPlanExport | None: ...
    async def find_research_document(self, path: str) -> ResearchDocument | None: ...
    async def get_research_document(
        self, document_id: str
    ) -> ResearchDocument | None: ...
    async def find_research_submission(
        self, path: str
    ) -> ResearchSubmission | None: ...
    async def get_research_project(self, project_id: str) -> ResearchProject | None: ...
    async def is_participant(self, project_id: str, user_id: str) -> bool: ...
    async def is_listed_admin(self, user_id: str) -> bool: ...
    async def get_resource(self, resource_id: str) -> Resource | None: ...
    async def add_audit_entry(self, entry: AuditEntry) -> None: ...


def _at_most_one(matches: list[T], what: str) -> T | None:
    if len(matches) > 1:
        raise RecordStoreError(f"multiple {what} rows matched")
    return matches[0] if matches else None


class InMemoryAccessRecordRepo:
    """Record store for tests and local dev.

    Lookups follow the same at-most-one rule as the Postgres repo: two
    rows claiming one path is an error, not a choice.
    """

    def __init__(self) -> None:
        self._lesson_plans: list[LessonPlanExport] = []
        self._documents: list[ResearchDocument] = []
        self._submissions: list[ResearchSubmission] = []
        self._projects: dict[str, ResearchProject] = {}
        self._participants: set[tuple[str, str]] = set()
        self._admins: set[str] = set()
        self._resources: dict[str, Resource] = {}
        self.audit_log: list[AuditEntry] = []

    # -- seeding -------------------------------------------------------------

    def add_lesson_plan(self, plan: LessonPlanExport) -> None:
        self._lesson_plans.append(plan)

    def add_document(self, document: ResearchDocument) -> None:
        self._documents.append(document)

    def add_submission(self, submission: ResearchSubmission) -> None:
        self._submissions.append(submission)

    def add_project(self, project: ResearchProject) -> None:
        self._projects[project.id] = project

    def add_participant(self, participant: ResearchParticipant) -> None:
        self._participants.add((participant.project_id, participant.user_id))

    def add_admin(self, user_id: str) -> None:
        self._admins.add(user_id)

    def add_resource(self, resource: Resource) -> None:
        self._resources[resource.id] = resource

    # -- AccessRecordRepo ----------------------------------------------------

    async def find_lesson_plan_export(self, path: str) -> LessonPlanExport | None:
        return _at_most_one(
            [p for p in self._lesson_plans if p.latest_export_path == path],
            "lesson_plan_builder_plans",
        )

    async def find_research_document(self, path: str) -> ResearchDocument | None:
        return _at_most_one(
            [d for d in self._documents if d.storage_path == path],
            "research_documents",
        )

    async def get_research_document(self, document_id: str) -> ResearchDocument | None:
        return _at_most_one(
            [d for d in self._documents if d.id == document_id],
            "research_documents",
        )

    async def find_research_submission(self, path: str) -> ResearchSubmission | None:
        return _at_most_one(
            [s for s in self._submissions if s.storage_path == path],
            "research_submissions",
        )

    async def get_research_project(self, project_id: str) -> ResearchProject | None:
        return self._projects.get(project_id)

    async def is_participant(self, project_id: str, user_id: str) -> bool:
        return (project_id, user_id) in self._participants

    async def is_listed_admin(self, user_id: str) -> bool:
        return user_id in self._admins

    async def get_resource(self, resource_id: str) -> Resource | None:
        return self._resources.get(resource_id)

    async def add_audit_entry(self, entry: AuditEntry) -> None:
        self.audit_log.append(entry)
