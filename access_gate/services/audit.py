"""Fire-and-forget audit trail for access decisions.

``AuditSink.record`` never raises and never changes a response: an
incomplete entry is dropped, and an enqueue failure is logged and
discarded.  The worker drains the queue into the audit_logs table.
"""

from __future__ import annotations

import logging
from typing import Protocol

from access_gate.core.metrics import AUDIT_ENTRIES_ENQUEUED
from access_gate.models.audit import AuditEntry
from access_gate.services.task_queue import AUDIT_QUEUE, TaskQueue

logger = logging.getLogger(__name__)

ACTION_FILE_GRANTED = "file.access.granted"
ACTION_FILE_DENIED = "file.access.denied"
ACTION_RESOURCE_DOWNLOAD = "resource.download"
ACTION_DOCUMENT_DOWNLOAD = "research.document.download"


class AuditSink(Protocol):
    async def record(self, entry: AuditEntry) -> None: ...


class QueueAuditSink:
    """AuditSink that hands entries to the background task queue."""

    def __init__(self, queue: TaskQueue) -> None:
        self._queue = queue

    async def record(self, entry: AuditEntry) -> None:
        if not entry.is_complete:
            return
        try:
            await self._queue.enqueue(AUDIT_QUEUE, entry.to_payload())
            AUDIT_ENTRIES_ENQUEUED.labels(action=entry.action).inc()
        except Exception:
            # Audit delivery is best-effort; the decision already stands.
            logger.warning("Dropped audit entry action=%s", entry.action, exc_info=True)
