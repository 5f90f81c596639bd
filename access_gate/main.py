from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from access_gate.api.admin import router as admin_router
from access_gate.api.downloads import router as downloads_router
from access_gate.api.files import router as files_router
from access_gate.api.health import router as health_router
from access_gate.api.metrics_endpoint import router as metrics_router
from access_gate.core.config import SETTINGS
from access_gate.core.errors import AccessError, access_error_handler
from access_gate.core.logging import setup_logging
from access_gate.db import engine as db_engine
from access_gate.db.engine import lifespan_db
from access_gate.db.redis import lifespan_redis
from access_gate.middleware.metrics import MetricsMiddleware
from access_gate.middleware.request_context import RequestContextMiddleware
from access_gate.services.backends import build_backends, create_upstream_client
from access_gate.services.task_queue import task_queue

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Nested so teardown runs in reverse order even if one step fails.
    async with lifespan_db():
        async with lifespan_redis():
            http = create_upstream_client(SETTINGS)
            try:
                app.state.backends = build_backends(
                    SETTINGS,
                    http=http,
                    session_factory=db_engine.async_session_factory,
                    queue=task_queue,
                )
                yield
            finally:
                if http is not None:
                    await http.aclose()
                    logger.info("Upstream HTTP client closed")


app = FastAPI(
    title="access-gate",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

app.add_exception_handler(AccessError, access_error_handler)  # type: ignore[arg-type]

# Last-added runs first: RequestContext (outermost) → Metrics → route.
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(files_router)
app.include_router(downloads_router)
app.include_router(admin_router)

logger.info(
    "access-gate started  env=%s log_level=%s port=%d upstream=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.has_upstream else "in-memory",
)
