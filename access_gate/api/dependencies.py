from __future__ import annotations

import logging
import re
from typing import Annotated
from urllib.parse import unquote

from fastapi import Depends, Request

from access_gate.core.config import SETTINGS
from access_gate.core.errors import AuthenticationRequired, Forbidden
from access_gate.models.principal import Principal
from access_gate.services.backends import AccessBackends, get_backends
from access_gate.services.file_access_service import FileAccessService

logger = logging.getLogger(__name__)

_BEARER_RE = re.compile(r"^Bearer\s+(.+)$", re.IGNORECASE)


def _usable(token: str) -> str | None:
    # Upstream headers are ASCII-only; anything else can never resolve.
    token = token.strip()
    if not token or not token.isascii() or not token.isprintable():
        return None
    return token


def extract_access_token(
    request: Request, cookie_name: str | None = None
) -> str | None:
    """Bearer token from the Authorization header, else the session cookie.

    Header lookup is case-insensitive.  A header that is present but not a
    usable Bearer credential falls through to the cookie.  Tokens that are
    not printable ASCII are treated as absent.
    """
    header = request.headers.get("authorization")
    if header:
        match = _BEARER_RE.match(header.strip())
        token = _usable(match.group(1)) if match else None
        if token:
            return token

    cookie = request.cookies.get(cookie_name or SETTINGS.session_cookie_name)
    return _usable(unquote(cookie)) if cookie else None


async def authenticate(request: Request, backends: AccessBackends) -> Principal:
    """Resolve the caller in one round trip to the identity provider.

    Called explicitly (rather than as a dependency) where request
    validation has to run before any identity-provider call.
    """
    token = extract_access_token(request)
    if not token:
        logger.info("Request without credentials rejected path=%s", request.url.path)
        raise AuthenticationRequired()

    principal = await backends.identity.resolve_principal(token)
    logger.debug("Principal resolved user=%s", principal.user_id)
    return principal


async def require_principal(
    request: Request,
    backends: Annotated[AccessBackends, Depends(get_backends)],
) -> Principal:
    """FastAPI dependency: 401 unless the bearer credential resolves."""
    return await authenticate(request, backends)


async def require_admin(
    principal: Annotated[Principal, Depends(require_principal)],
    backends: Annotated[AccessBackends, Depends(get_backends)],
) -> Principal:
    """FastAPI dependency: 403 unless the admin detector says yes."""
    if not await backends.admin.is_admin(principal):
        logger.warning("Access denied: user=%s is not an admin", principal.user_id)
        raise Forbidden("You do not have permission to perform this action")
    return principal


def get_file_access_service(
    backends: Annotated[AccessBackends, Depends(get_backends)],
) -> FileAccessService:
    return FileAccessService(backends)
