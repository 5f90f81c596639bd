"""Identity provider port: bearer token → Principal, plus the is_admin RPC.

The service never decodes or verifies tokens itself.  Every token is
exchanged with the provider in a single round trip; any failure (network,
non-2xx, missing user) is reported as AuthenticationRequired.  There is
no retry.

Production talks to a Supabase-compatible deployment:

    GET  {base}/auth/v1/user           Authorization: Bearer <user token>
    POST {base}/rest/v1/rpc/is_admin   {"user_id": ...}  (explicit subject)
    POST {base}/rest/v1/rpc/is_admin   {}                (ambient caller)
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from access_gate.core.errors import AuthenticationRequired
from access_gate.models.principal import Principal

logger = logging.getLogger(__name__)


class IdentityProviderError(Exception):
    """The provider could not answer an RPC (transport error or non-2xx)."""


class IdentityProvider(Protocol):
    async def resolve_principal(self, access_token: str) -> Principal:
        """Exchange a bearer token for a Principal.

        Raises AuthenticationRequired when the token cannot be resolved.
        """
        ...

    async def rpc_is_admin(
        self, principal: Principal, *, explicit_subject: bool
    ) -> Any:
        """Call the is_admin decision procedure and return its raw result.

        With ``explicit_subject`` the principal id is passed as an
        argument; without it the provider infers the subject from the
        caller's own credential.  Raises IdentityProviderError on failure.
        """
        ...


def _role_from_metadata(user: dict[str, Any]) -> str | None:
    metadata = user.get("app_metadata")
    if not isinstance(metadata, dict):
        return None
    role = metadata.get("role")
    return role.lower() if isinstance(role, str) else None


class SupabaseIdentityProvider:
    """IdentityProvider over httpx against a Supabase-style REST surface."""

    def __init__(self, http: httpx.AsyncClient, service_key: str) -> None:
        self._http = http
        self._service_key = service_key

    async def resolve_principal(self, access_token: str) -> Principal:
        try:
            response = await self._http.get(
                "/auth/v1/user",
                headers={
                    "apikey": self._service_key,
                    "Authorization": f"Bearer {access_token}",
                },
            )
        except httpx.HTTPError as e:
            logger.warning("Identity provider unreachable: %s", e.__class__.__name__)
            raise AuthenticationRequired() from None
        except UnicodeEncodeError:
            logger.info("Rejected token that cannot be sent as a header")
            raise AuthenticationRequired() from None

        if response.status_code != 200:
            logger.info("Identity provider rejected token: %d", response.status_code)
            raise AuthenticationRequired()

        try:
            body = response.json()
        except ValueError:
            logger.warning("Identity provider returned a non-JSON user payload")
            raise AuthenticationRequired() from None

        user = body.get("user", body) if isinstance(body, dict) else None
        user_id = user.get("id") if isinstance(user, dict) else None
        if not isinstance(user_id, str) or not user_id:
            raise AuthenticationRequired()

        return Principal(
            user_id=user_id,
            app_role=_role_from_metadata(user),
            access_token=access_token,
        )

    async def rpc_is_admin(
        self, principal: Principal, *, explicit_subject: bool
    ) -> Any:
        if explicit_subject:
            bearer = self._service_key
            body: dict[str, Any] = {"user_id": principal.user_id}
        else:
            bearer = principal.access_token
            body = {}

        try:
            response = await self._http.post(
                "/rest/v1/rpc/is_admin",
                json=body,
                headers={
                    "apikey": self._service_key,
                    "Authorization": f"Bearer {bearer}",
                },
            )
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise IdentityProviderError(e.__class__.__name__) from e


class InMemoryIdentityProvider:
    """Token table for tests and local dev.

    ``explicit_rpc`` / ``ambient_rpc`` map user ids to whatever the RPC
    should return; an Exception instance is raised instead of returned.
    Users absent from the map get an IdentityProviderError, the same as a
    deployment where the function does not exist.
    """

    def __init__(self) -> None:
        self._tokens: dict[str, Principal] = {}
        self.explicit_rpc: dict[str, Any] = {}
        self.ambient_rpc: dict[str, Any] = {}
        self.rpc_calls: list[tuple[str, bool]] = []

    def add_token(self, token: str, user_id: str, app_role: str | None = None) -> None:
        self._tokens[token] = Principal(
            user_id=user_id,
            app_role=app_role.lower() if app_role else None,
            access_token=token,
        )

    async def resolve_principal(self, access_token: str) -> Principal:
        principal = self._tokens.get(access_token)
        if principal is None:
            raise AuthenticationRequired()
        return principal

    async def rpc_is_admin(
        self, principal: Principal, *, explicit_subject: bool
    ) -> Any:
        self.rpc_calls.append((principal.user_id, explicit_subject))
        table = self.explicit_rpc if explicit_subject else self.ambient_rpc
        if principal.user_id not in table:
            raise IdentityProviderError("function is_admin not found")
        result = table[principal.user_id]
        if isinstance(result, Exception):
            raise result
        return result
