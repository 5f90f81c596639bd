"""Background worker process.

RUN:  python -m access_gate.worker

The API only enqueues audit entries; this process drains them into the
audit_logs table so a slow or unavailable database never adds latency
to a download.  Same image as the API, different command:

  api:    uvicorn access_gate.main:app --host 0.0.0.0 --port 8000
  worker: python -m access_gate.worker
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from access_gate.core.config import SETTINGS
from access_gate.core.logging import setup_logging
from access_gate.core.metrics import AUDIT_QUEUE_DEPTH
from access_gate.db import engine as db_engine
from access_gate.models.audit import AuditEntry
from access_gate.repos.access_record_repo import (
    AccessRecordRepo,
    InMemoryAccessRecordRepo,
)
from access_gate.repos.pg_access_record_repo import PgAccessRecordRepo
from access_gate.services.task_queue import AUDIT_QUEUE, task_queue

TaskHandler = Callable[[dict], Coroutine[Any, Any, None]]

logger = logging.getLogger("worker")


def _build_records() -> AccessRecordRepo:
    if db_engine.async_session_factory is not None:
        return PgAccessRecordRepo(db_engine.async_session_factory)
    logger.warning("No DATABASE_URL configured — audit entries kept in memory")
    return InMemoryAccessRecordRepo()


records: AccessRecordRepo = _build_records()


# ---------------------------------------------------------------------------
# Handler registry
# ---------------------------------------------------------------------------

HANDLERS: dict[str, TaskHandler] = {}


def register_handler(queue: str):
    """Decorator: register a coroutine as the handler for a queue."""

    def decorator(func):
        HANDLERS[queue] = func
        return func

    return decorator


@register_handler(AUDIT_QUEUE)
async def handle_audit_entry(payload: dict) -> None:
    """Persist one audit entry.  Incomplete payloads are dropped."""
    entry = AuditEntry.from_payload(payload)
    if not entry.is_complete:
        logger.warning("Dropping incomplete audit payload keys=%s", sorted(payload))
        return
    await records.add_audit_entry(entry)
    logger.debug("Audit entry stored action=%s actor=%s", entry.action, entry.actor_id)


# ---------------------------------------------------------------------------
# Main worker loop
# ---------------------------------------------------------------------------


async def process_one(queue_name: str, timeout: int = 1) -> bool:
    """Dequeue and handle at most one task.  Returns True if one ran."""
    task = await task_queue.dequeue(queue_name, timeout=timeout)
    if task is None:
        return False

    handler = HANDLERS[queue_name]
    try:
        await handler(task.payload)
        logger.info("Task %s on [%s] completed", task.id, queue_name)
    except Exception:
        # At-most-once: a failed audit write is logged, not retried.
        logger.exception("Task %s on [%s] failed", task.id, queue_name)
    finally:
        if queue_name == AUDIT_QUEUE:
            AUDIT_QUEUE_DEPTH.set(await task_queue.queue_length(queue_name))
    return True


async def run_worker() -> None:
    """Poll all registered queues and dispatch tasks to handlers."""
    queues = list(HANDLERS.keys())
    logger.info("Worker started — listening on queues: %s", queues)

    while True:
        for queue_name in queues:
            await process_one(queue_name)


if __name__ == "__main__":
    setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
    asyncio.run(run_worker())
