"""Object store port and the signed-URL issuer.

``issue_signed_url`` is the only way the rest of the service obtains a
URL.  It has no authorization logic: callers invoke it strictly after
a grant, and it always asks for SIGNED_URL_TTL_SECONDS.
"""

from __future__ import annotations

import logging
import secrets
from typing import Protocol
from urllib.parse import quote

import httpx

from access_gate.core.errors import UpstreamFailure
from access_gate.core.metrics import SIGNED_URLS_ISSUED
from access_gate.models.access import SIGNED_URL_TTL_SECONDS, SignedUrlGrant

logger = logging.getLogger(__name__)


class ObjectStoreError(Exception):
    """The object store refused or failed to sign a URL."""


class ObjectStore(Protocol):
    async def create_signed_url(
        self, bucket: str, path: str, expires_in: int
    ) -> str | None:
        """Return a signed URL (None/empty if the store returned none)."""
        ...


class SupabaseObjectStore:
    """ObjectStore over httpx against Supabase Storage."""

    def __init__(self, http: httpx.AsyncClient, service_key: str) -> None:
        self._http = http
        self._service_key = service_key

    async def create_signed_url(
        self, bucket: str, path: str, expires_in: int
    ) -> str | None:
        object_ref = f"{quote(bucket, safe='')}/{quote(path.lstrip('/'), safe='/')}"
        try:
            response = await self._http.post(
                f"/storage/v1/object/sign/{object_ref}",
                json={"expiresIn": expires_in},
                headers={
                    "apikey": self._service_key,
                    "Authorization": f"Bearer {self._service_key}",
                },
            )
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ObjectStoreError(e.__class__.__name__) from e

        signed = body.get("signedURL") if isinstance(body, dict) else None
        if not signed:
            return None
        if signed.startswith("http://") or signed.startswith("https://"):
            return signed
        # Storage answers with a path relative to /storage/v1
        return f"{str(self._http.base_url).rstrip('/')}/storage/v1{signed}"


class InMemoryObjectStore:
    """Mints unguessable fake URLs and records every signing call."""

    def __init__(self, base_url: str = "https://storage.local") -> None:
        self._base_url = base_url
        self.calls: list[tuple[str, str, int]] = []
        self.fail_with: Exception | None = None
        self.return_empty = False

    async def create_signed_url(
        self, bucket: str, path: str, expires_in: int
    ) -> str | None:
        self.calls.append((bucket, path, expires_in))
        if self.fail_with is not None:
            raise self.fail_with
        if self.return_empty:
            return None
        token = secrets.token_urlsafe(24)
        return f"{self._base_url}/{bucket}/{path}?token={token}&expires={expires_in}"


async def issue_signed_url(
    store: ObjectStore,
    bucket: str,
    path: str,
    *,
    failure_message: str = "Failed to generate a signed download link",
) -> SignedUrlGrant:
    """Mint a SIGNED_URL_TTL_SECONDS URL for an already-approved object.

    Store errors and empty URLs both surface as UpstreamFailure carrying
    ``failure_message``.
    """
    try:
        url = await store.create_signed_url(bucket, path, SIGNED_URL_TTL_SECONDS)
    except ObjectStoreError as e:
        logger.error("Signed URL request failed bucket=%s: %s", bucket, e)
        raise UpstreamFailure(failure_message) from None

    if not url:
        logger.error("Object store returned no signed URL bucket=%s", bucket)
        raise UpstreamFailure(failure_message)

    SIGNED_URLS_ISSUED.labels(bucket=bucket).inc()
    return SignedUrlGrant(url=url)
