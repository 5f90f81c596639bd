"""Read-only views of the tables that can own a stored object.

The rows are written by the CRUD side of the platform; this service only
ever reads them.  Ids are provider-issued UUID strings.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class LessonPlanExport:
    """A lesson plan whose latest export lives at ``latest_export_path``."""

    id: str
    owner_id: str | None
    latest_export_path: str


@dataclass(frozen=True, slots=True)
class ResearchDocument:
    id: str
    project_id: str
    storage_path: str | None
    status: str | None = None  # draft|participants|public

    @property
    def is_public(self) -> bool:
        return self.status == "public"


@dataclass(frozen=True, slots=True)
class ResearchSubmission:
    id: str
    project_id: str
    participant_id: str | None
    storage_path: str


@dataclass(frozen=True, slots=True)
class ResearchProject:
    id: str
    created_by: str | None


@dataclass(frozen=True, slots=True)
class ResearchParticipant:
    """Membership fact: ``user_id`` is enrolled in ``project_id``."""

    project_id: str
    user_id: str


@dataclass(frozen=True, slots=True)
class Resource:
    """A shared teaching resource that may be downloaded once approved."""

    id: str
    status: str  # pending|approved|rejected
    is_active: bool
    storage_path: str | None = None
    url: str | None = None

    @property
    def is_downloadable(self) -> bool:
        return self.status == "approved" and self.is_active is True
