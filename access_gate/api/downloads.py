"""Id-based download redirects.

Both endpoints answer with a 302 to a freshly signed URL (or, for
resources hosted elsewhere, to their external URL).  Redirects are
marked no-store so a shared cache never replays someone else's link.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import RedirectResponse

from access_gate.api.dependencies import authenticate, get_file_access_service
from access_gate.services.backends import AccessBackends, get_backends
from access_gate.services.file_access_service import FileAccessService, require_id

logger = logging.getLogger(__name__)

router = APIRouter(tags=["downloads"])


def _redirect(location: str) -> RedirectResponse:
    return RedirectResponse(
        location,
        status_code=status.HTTP_302_FOUND,
        headers={"Cache-Control": "no-store"},
    )


@router.get("/resources/{resource_id}/download", response_class=RedirectResponse)
async def download_resource(
    resource_id: str,
    request: Request,
    backends: Annotated[AccessBackends, Depends(get_backends)],
    service: Annotated[FileAccessService, Depends(get_file_access_service)],
) -> RedirectResponse:
    """Approved, active resources are downloadable by any signed-in user."""
    resource_id = require_id(resource_id, "A resource id is required")
    principal = await authenticate(request, backends)

    location = await service.resource_download_url(resource_id, principal)
    logger.info("Resource download user=%s resource=%s", principal.user_id, resource_id)
    return _redirect(location)


@router.get(
    "/research/documents/{document_id}/download",
    response_class=RedirectResponse,
)
async def download_research_document(
    document_id: str,
    request: Request,
    backends: Annotated[AccessBackends, Depends(get_backends)],
    service: Annotated[FileAccessService, Depends(get_file_access_service)],
) -> RedirectResponse:
    """Public documents for anyone signed in; others for participants only."""
    document_id = require_id(document_id, "A document id is required")
    principal = await authenticate(request, backends)

    location = await service.document_download_url(document_id, principal)
    logger.info(
        "Research document download user=%s document=%s",
        principal.user_id,
        document_id,
    )
    return _redirect(location)
