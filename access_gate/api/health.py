"""Health and readiness endpoints.

  /health (liveness):
    "Is this process alive?"  Always 200; the body reports per-dependency
    status so an operator can see what is degraded.

  /ready (readiness):
    "Can this instance take traffic?"  Every backing service has an
    in-memory fallback outside prod, so the process is ready as soon as
    it can answer.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Response

from access_gate.db import engine as db_engine
from access_gate.db.redis import redis_pool
from access_gate.repos.pg_access_record_repo import PgAccessRecordRepo
from access_gate.services.backends import AccessBackends, get_backends
from access_gate.services.identity_provider import SupabaseIdentityProvider

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(
    backends: Annotated[AccessBackends, Depends(get_backends)],
) -> dict:
    """Liveness probe + dependency status.

    Returns 200 even when degraded; the status field carries the real
    answer.  A 503 here would get a merely impaired container restarted.
    """
    checks: dict[str, str] = {}
    overall = "ok"

    if redis_pool is not None:
        try:
            await redis_pool.ping()  # type: ignore[misc]
            checks["redis"] = "ok"
        except Exception:
            checks["redis"] = "degraded"
            overall = "degraded"
    else:
        checks["redis"] = "not_configured"

    if db_engine.engine is None:
        checks["database"] = "not_configured"
    elif isinstance(backends.records, PgAccessRecordRepo):
        checks["database"] = "configured"
    else:
        checks["database"] = "in_memory"

    if isinstance(backends.identity, SupabaseIdentityProvider):
        checks["identity"] = "configured"
    else:
        checks["identity"] = "in_memory"

    return {"status": overall, "checks": checks}


@router.get("/ready")
async def ready() -> Response:
    """Readiness probe: if the process can respond, it is ready."""
    return Response(status_code=200)
