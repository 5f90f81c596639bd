"""Signed, short-lived links to privately stored files.

GET /files/signed?bucket=<bucket>&path=<path>

Checks run in this order, and the first failure answers:

    bucket present → path present → bucket allowed      400
    bearer credential resolves                          401
    some family owns the path                           404
    policy grants the caller                            403
    object store signs the URL                          500

The structural checks deliberately run before authentication so a
malformed request never costs an identity-provider round trip.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, Response
from pydantic import BaseModel

from access_gate.api.dependencies import authenticate, get_file_access_service
from access_gate.models.access import AccessRequest
from access_gate.services.backends import AccessBackends, get_backends
from access_gate.services.file_access_service import (
    FileAccessService,
    parse_signed_request,
)

router = APIRouter(prefix="/files", tags=["files"])


class SignedUrlOut(BaseModel):
    url: str


@router.get("/signed", response_model=SignedUrlOut)
async def get_signed_file_url(
    request: Request,
    response: Response,
    backends: Annotated[AccessBackends, Depends(get_backends)],
    service: Annotated[FileAccessService, Depends(get_file_access_service)],
    bucket: Annotated[str | None, Query()] = None,
    path: Annotated[str | None, Query()] = None,
) -> SignedUrlOut:
    parsed_bucket, object_path = parse_signed_request(bucket, path)
    principal = await authenticate(request, backends)

    grant = await service.sign(
        AccessRequest(bucket=parsed_bucket, path=object_path, principal=principal)
    )
    response.headers["Cache-Control"] = "no-store"
    return SignedUrlOut(url=grant.url)
