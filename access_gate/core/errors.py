"""Error taxonomy for the access engine.

Every failing step raises exactly one of these.  The HTTP layer maps
them 1:1 to a status code and the short ``message``; internal detail
(store error text, stack traces) stays in the server log.
"""

from __future__ import annotations

from fastapi import Request, status
from fastapi.responses import JSONResponse


class AccessError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AccessError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class AuthenticationRequired(AccessError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"


class Forbidden(AccessError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You do not have permission to access this file"


class NotFound(AccessError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "File not found"


class UpstreamFailure(AccessError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Upstream service failure"


async def access_error_handler(_request: Request, exc: AccessError) -> JSONResponse:
    """Render an AccessError as ``{"error": message}``."""
    headers = {"Cache-Control": "no-store"}
    if isinstance(exc, AuthenticationRequired):
        headers["WWW-Authenticate"] = "Bearer"
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message},
        headers=headers,
    )
