from __future__ import annotations

import asyncio
import sys
from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from access_gate.main import app
from access_gate.models.audit import AuditEntry
from access_gate.repos.access_record_repo import InMemoryAccessRecordRepo
from access_gate.services.audit import QueueAuditSink
from access_gate.services.backends import AccessBackends, get_backends
from access_gate.services.identity_provider import InMemoryIdentityProvider
from access_gate.services.object_store import InMemoryObjectStore
from access_gate.services.task_queue import (
    AUDIT_QUEUE,
    InMemoryTaskQueue,
    task_queue,
)

# Ensure repo root is on sys.path so `import access_gate` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture
def identity() -> InMemoryIdentityProvider:
    return InMemoryIdentityProvider()


@pytest.fixture
def records() -> InMemoryAccessRecordRepo:
    return InMemoryAccessRecordRepo()


@pytest.fixture
def store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture
def audit_queue() -> InMemoryTaskQueue:
    return InMemoryTaskQueue()


@pytest.fixture(autouse=True)
def backends(
    identity: InMemoryIdentityProvider,
    records: InMemoryAccessRecordRepo,
    store: InMemoryObjectStore,
    audit_queue: InMemoryTaskQueue,
) -> Iterator[AccessBackends]:
    """Fresh in-memory backends for every test, injected into the app."""
    bundle = AccessBackends.assemble(
        identity=identity,
        records=records,
        store=store,
        audit=QueueAuditSink(audit_queue),
    )
    app.dependency_overrides[get_backends] = lambda: bundle
    yield bundle
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_task_queue() -> None:
    """Clear the process-wide task queue between tests."""
    if hasattr(task_queue, "_queues"):
        task_queue._queues.clear()  # type: ignore[union-attr]


@pytest.fixture
def client() -> TestClient:
    # Redirects are asserted on, never followed.
    return TestClient(app, follow_redirects=False)


def mint_token(
    identity: InMemoryIdentityProvider,
    user_id: str = "user-1",
    app_role: str | None = None,
) -> str:
    """Register a bearer token for ``user_id`` with the fake provider."""
    token = f"token-{user_id}"
    identity.add_token(token, user_id, app_role=app_role)
    return token


def drain_audit(queue: InMemoryTaskQueue) -> list[AuditEntry]:
    """Pop every queued audit entry, oldest first."""
    entries: list[AuditEntry] = []
    while True:
        task = asyncio.run(queue.dequeue(AUDIT_QUEUE))
        if task is None:
            return entries
        entries.append(AuditEntry.from_payload(task.payload))
