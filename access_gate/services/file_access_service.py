"""Resource location, policy evaluation and delivery.

Each public coroutine runs the steps strictly in order and stops at the
first failure:

    admin detection → locate owning record → evaluate policy → sign URL

A URL is only ever requested after the policy has granted that exact
(bucket, path, principal).  There is no caching: two identical requests
mint two distinct URLs.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from typing import TypeVar, assert_never

from access_gate.core.errors import (
    Forbidden,
    NotFound,
    UpstreamFailure,
    ValidationError,
)
from access_gate.core.metrics import ACCESS_DECISIONS
from access_gate.models.access import (
    RESOURCES_BUCKET,
    AccessRequest,
    Bucket,
    Family,
    ProjectAccess,
    ResearchMatch,
    ResourceMatch,
    SignedUrlGrant,
)
from access_gate.models.audit import AuditEntry
from access_gate.models.principal import Principal
from access_gate.models.resources import (
    LessonPlanExport,
    ResearchDocument,
    ResearchSubmission,
)
from access_gate.repos.access_record_repo import RecordStoreError
from access_gate.services import access_policy
from access_gate.services.audit import (
    ACTION_DOCUMENT_DOWNLOAD,
    ACTION_FILE_DENIED,
    ACTION_FILE_GRANTED,
    ACTION_RESOURCE_DOWNLOAD,
)
from access_gate.services.backends import AccessBackends
from access_gate.services.object_store import issue_signed_url

logger = logging.getLogger(__name__)

T = TypeVar("T")

_DOWNLOAD_LINK_FAILED = "Failed to create download link"


def parse_signed_request(
    bucket: str | None, path: str | None
) -> tuple[Bucket, str]:
    """Structural checks for GET /files/signed, in the order they are reported."""
    if not bucket or not bucket.strip():
        raise ValidationError("A storage bucket is required")
    if not path or not path.strip():
        raise ValidationError("A file path is required")
    parsed = Bucket.parse(bucket)
    if parsed is None:
        raise ValidationError("Unsupported storage bucket requested")
    return parsed, path


def require_id(raw: str | None, message: str) -> str:
    if raw is None or not raw.strip():
        raise ValidationError(message)
    return raw


async def _fetch(lookup: Awaitable[T], failure_message: str) -> T:
    try:
        return await lookup
    except RecordStoreError as e:
        logger.error("%s: %s", failure_message, e)
        raise UpstreamFailure(failure_message) from None


class FileAccessService:
    def __init__(self, backends: AccessBackends) -> None:
        self._backends = backends
        self._records = backends.records

    # -- GET /files/signed ---------------------------------------------------

    async def sign(self, request: AccessRequest) -> SignedUrlGrant:
        principal = request.principal
        is_admin = await self._backends.admin.is_admin(principal)

        found = await self.locate(request.bucket, request.path)
        family, granted = await self.evaluate(found, principal, is_admin)
        if not granted:
            ACCESS_DECISIONS.labels(family=family.value, decision="forbidden").inc()
            logger.warning(
                "File access denied user=%s bucket=%s family=%s",
                principal.user_id,
                request.bucket.value,
                family.value,
                extra={
                    "user_id": principal.user_id,
                    "bucket": request.bucket.value,
                    "family": family.value,
                    "decision": "forbidden",
                },
            )
            await self._audit(
                ACTION_FILE_DENIED, principal, found, request.bucket, family
            )
            raise Forbidden()

        logger.info(
            "File access granted user=%s bucket=%s family=%s admin=%s",
            principal.user_id,
            request.bucket.value,
            family.value,
            is_admin,
            extra={
                "user_id": principal.user_id,
                "bucket": request.bucket.value,
                "family": family.value,
                "decision": "granted",
            },
        )
        ACCESS_DECISIONS.labels(family=family.value, decision="granted").inc()
        grant = await issue_signed_url(
            self._backends.store, request.bucket.value, request.path
        )
        # Audited only once a URL actually exists.
        await self._audit(ACTION_FILE_GRANTED, principal, found, request.bucket, family)
        return grant

    async def locate(self, bucket: Bucket, path: str) -> ResourceMatch:
        """Find the single record that owns ``path`` within ``bucket``."""
        match bucket:
            case Bucket.LESSON_PLANS:
                return await _fetch(
                    self._records.find_lesson_plan_export(path),
                    "Failed to verify lesson plan export access",
                )
            case Bucket.RESEARCH:
                return await self._locate_research(path)
            case _:
                assert_never(bucket)

    async def _locate_research(self, path: str) -> ResearchMatch:
        # Documents are probed before submissions; the first hit wins.
        document = await _fetch(
            self._records.find_research_document(path),
            "Failed to verify research document access",
        )
        if document is not None:
            return document
        return await _fetch(
            self._records.find_research_submission(path),
            "Failed to verify research submission access",
        )

    async def evaluate(
        self, found: ResourceMatch, principal: Principal, is_admin: bool
    ) -> tuple[Family, bool]:
        """Grant/deny for the located record.

        Raises NotFound when no family owns the path.
        """
        user_id = principal.user_id
        match found:
            case None:
                ACCESS_DECISIONS.labels(family="none", decision="not_found").inc()
                logger.warning("File not found for user=%s", user_id)
                raise NotFound()
            case LessonPlanExport():
                family = Family.LESSON_PLAN_EXPORT
                granted = access_policy.can_read_lesson_plan_export(
                    found, user_id, is_admin
                )
            case ResearchDocument():
                family = Family.RESEARCH_DOCUMENT
                access = await self.project_access(found.project_id, user_id)
                granted = access_policy.can_read_research_document(
                    found, access, is_admin
                )
            case ResearchSubmission():
                family = Family.RESEARCH_SUBMISSION
                granted = access_policy.can_read_research_submission(
                    found, user_id, is_admin
                )
                if not granted:
                    access = await self.project_access(found.project_id, user_id)
                    granted = access_policy.can_read_research_submission(
                        found, user_id, is_admin, access
                    )
            case _:
                assert_never(found)

        return family, granted

    async def project_access(self, project_id: str, user_id: str) -> ProjectAccess:
        project = await _fetch(
            self._records.get_research_project(project_id),
            "Failed to verify research project access",
        )
        if project is not None and project.created_by == user_id:
            return access_policy.project_access(project, user_id, is_participant=False)
        is_participant = await _fetch(
            self._records.is_participant(project_id, user_id),
            "Failed to verify research project access",
        )
        return access_policy.project_access(project, user_id, is_participant)

    # -- GET /resources/{id}/download ---------------------------------------

    async def resource_download_url(
        self, resource_id: str, principal: Principal
    ) -> str:
        """URL to redirect to for an approved, active shared resource."""
        resource = await _fetch(
            self._records.get_resource(resource_id), "Failed to load resource"
        )
        if resource is None or not resource.is_downloadable:
            ACCESS_DECISIONS.labels(
                family=Family.RESOURCE.value, decision="not_found"
            ).inc()
            raise NotFound("Resource not found")

        if resource.storage_path:
            grant = await issue_signed_url(
                self._backends.store,
                RESOURCES_BUCKET,
                resource.storage_path,
                failure_message=_DOWNLOAD_LINK_FAILED,
            )
            target = grant.url
        elif resource.url:
            target = resource.url
        else:
            raise NotFound("Resource not found")

        ACCESS_DECISIONS.labels(family=Family.RESOURCE.value, decision="granted").inc()
        await self._backends.audit.record(
            AuditEntry(
                action=ACTION_RESOURCE_DOWNLOAD,
                actor_id=principal.user_id,
                target_id=resource.id,
                metadata={"storage": bool(resource.storage_path)},
            )
        )
        return target

    # -- GET /research/documents/{id}/download ------------------------------

    async def document_download_url(
        self, document_id: str, principal: Principal
    ) -> str:
        document = await _fetch(
            self._records.get_research_document(document_id), "Failed to load document"
        )
        if document is None or not document.storage_path:
            ACCESS_DECISIONS.labels(
                family=Family.RESEARCH_DOCUMENT.value, decision="not_found"
            ).inc()
            raise NotFound("Document not found")

        is_participant = False
        if not document.is_public:
            is_participant = await _fetch(
                self._records.is_participant(document.project_id, principal.user_id),
                "Failed to verify access",
            )
        if not access_policy.can_download_document_directly(document, is_participant):
            ACCESS_DECISIONS.labels(
                family=Family.RESEARCH_DOCUMENT.value, decision="forbidden"
            ).inc()
            logger.warning(
                "Document download denied user=%s document=%s",
                principal.user_id,
                document.id,
            )
            raise Forbidden("You do not have access to this document")

        grant = await issue_signed_url(
            self._backends.store,
            Bucket.RESEARCH.value,
            document.storage_path,
            failure_message=_DOWNLOAD_LINK_FAILED,
        )
        ACCESS_DECISIONS.labels(
            family=Family.RESEARCH_DOCUMENT.value, decision="granted"
        ).inc()
        await self._backends.audit.record(
            AuditEntry(
                action=ACTION_DOCUMENT_DOWNLOAD,
                actor_id=principal.user_id,
                target_id=document.id,
                metadata={"project_id": document.project_id},
            )
        )
        return grant.url

    async def _audit(
        self,
        action: str,
        principal: Principal,
        found: ResourceMatch,
        bucket: Bucket,
        family: Family,
    ) -> None:
        metadata = {"family": family.value, "bucket": bucket.value}
        await self._backends.audit.record(
            AuditEntry(
                action=action,
                actor_id=principal.user_id,
                target_id=found.id if found is not None else None,
                metadata=metadata,
            )
        )
