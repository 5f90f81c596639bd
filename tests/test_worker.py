"""Audit worker: drains the audit queue into the record store."""

from __future__ import annotations

import asyncio

import pytest

from access_gate import worker
from access_gate.models.audit import AuditEntry
from access_gate.repos.access_record_repo import InMemoryAccessRecordRepo
from access_gate.services.task_queue import AUDIT_QUEUE, task_queue


@pytest.fixture
def audit_records(monkeypatch: pytest.MonkeyPatch) -> InMemoryAccessRecordRepo:
    repo = InMemoryAccessRecordRepo()
    monkeypatch.setattr(worker, "records", repo)
    return repo


def test_audit_queue_has_a_handler() -> None:
    assert AUDIT_QUEUE in worker.HANDLERS


def test_process_one_persists_entry(audit_records: InMemoryAccessRecordRepo) -> None:
    entry = AuditEntry(
        action="research.document.download",
        actor_id="user-1",
        target_id="doc-1",
        metadata={"project_id": "proj-1"},
    )
    asyncio.run(task_queue.enqueue(AUDIT_QUEUE, entry.to_payload()))

    assert asyncio.run(worker.process_one(AUDIT_QUEUE)) is True
    assert audit_records.audit_log == [entry]


def test_incomplete_payload_is_dropped(
    audit_records: InMemoryAccessRecordRepo,
) -> None:
    asyncio.run(task_queue.enqueue(AUDIT_QUEUE, {"action": "resource.download"}))

    assert asyncio.run(worker.process_one(AUDIT_QUEUE)) is True
    assert audit_records.audit_log == []


def test_empty_queue_processes_nothing(
    audit_records: InMemoryAccessRecordRepo,
) -> None:
    assert asyncio.run(worker.process_one(AUDIT_QUEUE)) is False


def test_handler_failure_does_not_escape(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    class _Failing(InMemoryAccessRecordRepo):
        async def add_audit_entry(self, entry: AuditEntry) -> None:
            raise RuntimeError("insert failed")

    monkeypatch.setattr(worker, "records", _Failing())
    payload = AuditEntry("resource.download", "user-1").to_payload()
    asyncio.run(task_queue.enqueue(AUDIT_QUEUE, payload))

    assert asyncio.run(worker.process_one(AUDIT_QUEUE)) is True
    assert asyncio.run(task_queue.queue_length(AUDIT_QUEUE)) == 0
