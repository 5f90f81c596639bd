"""Administrator detection as an ordered chain of strategies.

    shortcut:  role claim "admin" already on the principal  → admin
    1. rpc_explicit:  is_admin(user_id=<principal>)
    2. rpc_ambient:   is_admin() using the caller's own credential
    3. admin_table:   row in app_admins for the principal

Each strategy answers ``(is_admin, ok)``.  ``ok=False`` means "I could
not decide" (error, non-boolean or empty result) and the next strategy
runs.  The first ``ok=True`` answer wins.  When every strategy abstains
the principal is not an admin.

``AdminDetector.is_admin`` never raises.  Strategy failures are logged
and discarded inside the strategy; they never reach the request.
"""

from __future__ import annotations

import logging
from typing import Protocol

from access_gate.core.metrics import ADMIN_DETECTION
from access_gate.models.principal import Principal
from access_gate.repos.access_record_repo import AccessRecordRepo, RecordStoreError
from access_gate.services.identity_provider import (
    IdentityProvider,
    IdentityProviderError,
)

logger = logging.getLogger(__name__)

Detection = tuple[bool, bool]  # (is_admin, ok)

_UNDECIDED: Detection = (False, False)


class AdminStrategy(Protocol):
    name: str

    async def detect(self, principal: Principal) -> Detection: ...


class RpcAdminStrategy:
    """Ask the provider's is_admin procedure."""

    def __init__(self, identity: IdentityProvider, *, explicit_subject: bool) -> None:
        self._identity = identity
        self._explicit_subject = explicit_subject
        self.name = "rpc_explicit" if explicit_subject else "rpc_ambient"

    async def detect(self, principal: Principal) -> Detection:
        try:
            result = await self._identity.rpc_is_admin(
                principal, explicit_subject=self._explicit_subject
            )
        except IdentityProviderError as e:
            # Abstain; the next strategy decides.
            logger.debug("Admin strategy %s unavailable: %s", self.name, e)
            return _UNDECIDED
        if not isinstance(result, bool):
            return _UNDECIDED
        return (result, True)


class AdminTableStrategy:
    """Look the principal up in the app_admins allow-list."""

    name = "admin_table"

    def __init__(self, records: AccessRecordRepo) -> None:
        self._records = records

    async def detect(self, principal: Principal) -> Detection:
        try:
            listed = await self._records.is_listed_admin(principal.user_id)
        except RecordStoreError as e:
            # Abstain; a failing lookup degrades to "not admin".
            logger.warning("Admin allow-list lookup failed: %s", e)
            return _UNDECIDED
        return (listed, True)


class AdminDetector:
    def __init__(self, strategies: list[AdminStrategy]) -> None:
        self._strategies = strategies

    @classmethod
    def default(
        cls, identity: IdentityProvider, records: AccessRecordRepo
    ) -> AdminDetector:
        return cls(
            [
                RpcAdminStrategy(identity, explicit_subject=True),
                RpcAdminStrategy(identity, explicit_subject=False),
                AdminTableStrategy(records),
            ]
        )

    async def is_admin(self, principal: Principal) -> bool:
        if principal.has_admin_claim():
            ADMIN_DETECTION.labels(strategy="role_claim", result="admin").inc()
            return True

        for strategy in self._strategies:
            try:
                is_admin, ok = await strategy.detect(principal)
            except Exception:
                # Unexpected strategy bug: count it as an abstention.
                logger.warning(
                    "Admin strategy %s raised", strategy.name, exc_info=True
                )
                is_admin, ok = _UNDECIDED
            if not ok:
                ADMIN_DETECTION.labels(
                    strategy=strategy.name, result="unavailable"
                ).inc()
                continue
            ADMIN_DETECTION.labels(
                strategy=strategy.name, result="admin" if is_admin else "not_admin"
            ).inc()
            logger.debug(
                "Admin detection user=%s strategy=%s admin=%s",
                principal.user_id,
                strategy.name,
                is_admin,
            )
            return is_admin

        return False
