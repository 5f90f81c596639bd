"""Background task queue on Redis lists.

The API process only produces: it LPUSHes and moves on.  The worker
(``python -m access_gate.worker``) BRPOPs from the other end, so each
queue is FIFO.

Delivery is at-most-once.  The sole consumer is the audit trail, which
is best-effort anyway: a worker dying mid-task loses one audit row and
never affects an access decision.
"""

from __future__ import annotations

import json
import uuid
from collections import deque
from dataclasses import asdict, dataclass
from typing import Protocol, runtime_checkable

import redis.asyncio as aioredis

from access_gate.db.redis import redis_pool

AUDIT_QUEUE = "audit_log"


@dataclass(frozen=True, slots=True)
class Task:
    id: str
    queue: str
    payload: dict

    @classmethod
    def new(cls, queue: str, payload: dict) -> Task:
        return cls(id=str(uuid.uuid4()), queue=queue, payload=payload)

    def to_json(self) -> str:
        return json.dumps(asdict(self), separators=(",", ":"))

    @classmethod
    def from_json(cls, raw: str) -> Task:
        data = json.loads(raw)
        return cls(id=data["id"], queue=data["queue"], payload=data["payload"])


@runtime_checkable
class TaskQueue(Protocol):
    async def enqueue(self, queue: str, payload: dict) -> Task: ...
    async def dequeue(self, queue: str, timeout: int = 0) -> Task | None: ...
    async def queue_length(self, queue: str) -> int: ...


class InMemoryTaskQueue:
    """Process-local queue for tests and single-process dev runs."""

    def __init__(self) -> None:
        self._queues: dict[str, deque[Task]] = {}

    async def enqueue(self, queue: str, payload: dict) -> Task:
        task = Task.new(queue, payload)
        self._queues.setdefault(queue, deque()).append(task)
        return task

    async def dequeue(self, queue: str, timeout: int = 0) -> Task | None:
        # Never blocks; timeout exists for Protocol compatibility.
        pending = self._queues.get(queue)
        return pending.popleft() if pending else None

    async def queue_length(self, queue: str) -> int:
        return len(self._queues.get(queue, ()))


class RedisTaskQueue:
    """LPUSH/BRPOP queue shared by every API replica and the worker."""

    _KEY_PREFIX = "access-gate:queue:"

    def __init__(self, client: aioredis.Redis) -> None:  # type: ignore[type-arg]
        self._redis = client

    def _key(self, queue: str) -> str:
        return f"{self._KEY_PREFIX}{queue}"

    async def enqueue(self, queue: str, payload: dict) -> Task:
        task = Task.new(queue, payload)
        await self._redis.lpush(self._key(queue), task.to_json())  # type: ignore[misc]
        return task

    async def dequeue(self, queue: str, timeout: int = 5) -> Task | None:
        key = self._key(queue)
        popped = await self._redis.brpop([key], timeout=timeout)  # type: ignore[misc]
        if popped is None:
            return None
        _, raw = popped
        return Task.from_json(raw)

    async def queue_length(self, queue: str) -> int:
        return await self._redis.llen(self._key(queue))  # type: ignore[misc]


def create_task_queue(
    client: aioredis.Redis | None,  # type: ignore[type-arg]
) -> TaskQueue:
    return RedisTaskQueue(client) if client is not None else InMemoryTaskQueue()


task_queue: TaskQueue = create_task_queue(redis_pool)
