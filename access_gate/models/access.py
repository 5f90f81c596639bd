from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from access_gate.models.principal import Principal
from access_gate.models.resources import (
    LessonPlanExport,
    ResearchDocument,
    ResearchSubmission,
)

# Fixed for every delivery endpoint; never taken from the caller.
SIGNED_URL_TTL_SECONDS = 60 * 10


class Bucket(str, Enum):
    """Object-store buckets accepted by GET /files/signed."""

    LESSON_PLANS = "lesson-plans"
    RESEARCH = "research"

    @classmethod
    def parse(cls, raw: str) -> Bucket | None:
        try:
            return cls(raw)
        except ValueError:
            return None


# Bucket used for approved shared resources (GET /resources/{id}/download).
RESOURCES_BUCKET = "resources"


class Family(str, Enum):
    LESSON_PLAN_EXPORT = "lesson_plan_export"
    RESEARCH_DOCUMENT = "research_document"
    RESEARCH_SUBMISSION = "research_submission"
    RESOURCE = "resource"


# What the locator found for a (bucket, path).  None means no family
# claims the path.
ResearchMatch = ResearchDocument | ResearchSubmission | None
ResourceMatch = LessonPlanExport | ResearchDocument | ResearchSubmission | None


@dataclass(frozen=True, slots=True)
class AccessRequest:
    bucket: Bucket
    path: str
    principal: Principal


@dataclass(frozen=True, slots=True)
class ProjectAccess:
    """What a principal may see inside one research project.

    Creators see documents and submissions; enrolled participants see
    documents only.
    """

    can_access_documents: bool
    can_access_submissions: bool

    @classmethod
    def creator(cls) -> ProjectAccess:
        return cls(can_access_documents=True, can_access_submissions=True)

    @classmethod
    def participant(cls) -> ProjectAccess:
        return cls(can_access_documents=True, can_access_submissions=False)

    @classmethod
    def none(cls) -> ProjectAccess:
        return cls(can_access_documents=False, can_access_submissions=False)


@dataclass(frozen=True, slots=True)
class SignedUrlGrant:
    url: str
    expires_in_seconds: int = SIGNED_URL_TTL_SECONDS
