"""The per-process bundle of collaborators the access engine talks to.

Built once in the application lifespan and injected into each request
through ``Depends(get_backends)``.  Request code never reaches for a
module-level client; tests swap the whole bundle for in-memory fakes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from access_gate.core.config import Settings
from access_gate.repos.access_record_repo import (
    AccessRecordRepo,
    InMemoryAccessRecordRepo,
)
from access_gate.repos.pg_access_record_repo import PgAccessRecordRepo
from access_gate.services.admin_detector import AdminDetector
from access_gate.services.audit import AuditSink, QueueAuditSink
from access_gate.services.identity_provider import (
    IdentityProvider,
    InMemoryIdentityProvider,
    SupabaseIdentityProvider,
)
from access_gate.services.object_store import (
    InMemoryObjectStore,
    ObjectStore,
    SupabaseObjectStore,
)
from access_gate.services.task_queue import TaskQueue

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessBackends:
    identity: IdentityProvider
    records: AccessRecordRepo
    store: ObjectStore
    audit: AuditSink
    admin: AdminDetector

    @classmethod
    def assemble(
        cls,
        identity: IdentityProvider,
        records: AccessRecordRepo,
        store: ObjectStore,
        audit: AuditSink,
    ) -> AccessBackends:
        return cls(
            identity=identity,
            records=records,
            store=store,
            audit=audit,
            admin=AdminDetector.default(identity, records),
        )


def create_upstream_client(settings: Settings) -> httpx.AsyncClient | None:
    """Pooled httpx client for the identity provider and object store."""
    if not settings.has_upstream:
        return None
    return httpx.AsyncClient(
        base_url=settings.supabase_url or "",
        timeout=httpx.Timeout(settings.upstream_timeout_seconds),
        limits=httpx.Limits(max_connections=50, max_keepalive_connections=20),
    )


def build_backends(
    settings: Settings,
    *,
    http: httpx.AsyncClient | None,
    session_factory: async_sessionmaker[AsyncSession] | None,
    queue: TaskQueue,
) -> AccessBackends:
    if session_factory is not None:
        records: AccessRecordRepo = PgAccessRecordRepo(session_factory)
    else:
        records = InMemoryAccessRecordRepo()

    if http is not None and settings.supabase_service_key:
        identity: IdentityProvider = SupabaseIdentityProvider(
            http, settings.supabase_service_key
        )
        store: ObjectStore = SupabaseObjectStore(http, settings.supabase_service_key)
    else:
        if settings.is_prod:
            raise RuntimeError(
                "SUPABASE_URL and SUPABASE_SERVICE_KEY are required when APP_ENV=prod"
            )
        logger.warning(
            "No identity provider configured — in-memory identity and object store"
        )
        identity = InMemoryIdentityProvider()
        store = InMemoryObjectStore()

    return AccessBackends.assemble(
        identity=identity,
        records=records,
        store=store,
        audit=QueueAuditSink(queue),
    )


def get_backends(request: Request) -> AccessBackends:
    """FastAPI dependency: the bundle built by the lifespan."""
    backends = getattr(request.app.state, "backends", None)
    if backends is None:
        raise RuntimeError("Access backends are not initialised")
    return backends
