"""FileAccessService exercised directly, below the HTTP layer."""

from __future__ import annotations

import asyncio

import pytest

from access_gate.core.errors import NotFound, UpstreamFailure, ValidationError
from access_gate.models.access import Bucket, Family, ProjectAccess
from access_gate.models.principal import Principal
from access_gate.models.resources import (
    ResearchDocument,
    ResearchParticipant,
    ResearchProject,
    ResearchSubmission,
)
from access_gate.repos.access_record_repo import (
    InMemoryAccessRecordRepo,
    RecordStoreError,
)
from access_gate.services.backends import AccessBackends
from access_gate.services.file_access_service import (
    FileAccessService,
    parse_signed_request,
)


class _CountingRecords(InMemoryAccessRecordRepo):
    def __init__(self) -> None:
        super().__init__()
        self.participant_queries = 0

    async def is_participant(self, project_id: str, user_id: str) -> bool:
        self.participant_queries += 1
        return await super().is_participant(project_id, user_id)


class _BrokenSubmissions(InMemoryAccessRecordRepo):
    async def find_research_submission(self, path: str):
        raise RecordStoreError("statement timeout")


def _service(backends: AccessBackends, records: InMemoryAccessRecordRepo):
    return FileAccessService(
        AccessBackends.assemble(
            identity=backends.identity,
            records=records,
            store=backends.store,
            audit=backends.audit,
        )
    )


# ---- parse_signed_request ----


def test_parse_returns_enum_and_path() -> None:
    assert parse_signed_request("research", "a/b.pdf") == (Bucket.RESEARCH, "a/b.pdf")


def test_parse_does_not_strip_path() -> None:
    # Paths are matched exactly; only blank detection trims.
    assert parse_signed_request("research", " a.pdf")[1] == " a.pdf"


def test_parse_rejects_unknown_bucket() -> None:
    with pytest.raises(ValidationError, match="Unsupported storage bucket"):
        parse_signed_request("resources", "r.zip")


# ---- locate ----


def test_locate_probes_documents_then_submissions(backends: AccessBackends) -> None:
    records = InMemoryAccessRecordRepo()
    submission = ResearchSubmission(
        id="s", project_id="p", participant_id="u", storage_path="x.pdf"
    )
    records.add_submission(submission)
    service = _service(backends, records)

    assert asyncio.run(service.locate(Bucket.RESEARCH, "x.pdf")) == submission

    document = ResearchDocument(id="d", project_id="p", storage_path="x.pdf")
    records.add_document(document)
    assert asyncio.run(service.locate(Bucket.RESEARCH, "x.pdf")) == document


def test_locate_buckets_do_not_cross(backends: AccessBackends) -> None:
    records = InMemoryAccessRecordRepo()
    records.add_document(ResearchDocument(id="d", project_id="p", storage_path="x"))
    service = _service(backends, records)
    assert asyncio.run(service.locate(Bucket.LESSON_PLANS, "x")) is None


def test_locate_store_failure_names_the_family(backends: AccessBackends) -> None:
    service = _service(backends, _BrokenSubmissions())
    with pytest.raises(UpstreamFailure) as exc_info:
        asyncio.run(service.locate(Bucket.RESEARCH, "x.pdf"))
    assert exc_info.value.message == "Failed to verify research submission access"


# ---- evaluate ----


def test_evaluate_none_is_not_found(backends: AccessBackends) -> None:
    service = _service(backends, InMemoryAccessRecordRepo())
    with pytest.raises(NotFound):
        asyncio.run(service.evaluate(None, Principal(user_id="u"), False))


def test_evaluate_reports_family(backends: AccessBackends) -> None:
    records = InMemoryAccessRecordRepo()
    submission = ResearchSubmission(
        id="s", project_id="p", participant_id="u", storage_path="x"
    )
    service = _service(backends, records)
    family, granted = asyncio.run(
        service.evaluate(submission, Principal(user_id="u"), False)
    )
    assert family is Family.RESEARCH_SUBMISSION
    assert granted is True


# ---- project_access ----


def test_creator_skips_membership_query(backends: AccessBackends) -> None:
    records = _CountingRecords()
    records.add_project(ResearchProject(id="p", created_by="creator"))
    service = _service(backends, records)

    access = asyncio.run(service.project_access("p", "creator"))
    assert access == ProjectAccess.creator()
    assert records.participant_queries == 0


def test_participant_access_needs_membership_query(backends: AccessBackends) -> None:
    records = _CountingRecords()
    records.add_project(ResearchProject(id="p", created_by="creator"))
    records.add_participant(ResearchParticipant(project_id="p", user_id="member"))
    service = _service(backends, records)

    access = asyncio.run(service.project_access("p", "member"))
    assert access == ProjectAccess.participant()
    assert records.participant_queries == 1
