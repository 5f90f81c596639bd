"""Pure grant/deny rules per resource family.

Nothing here does I/O.  The locator gathers the record and any
membership facts first; these functions only decide.

The research rules are deliberately asymmetric:

  - documents are visible to the project creator and to any enrolled
    participant;
  - submissions are visible to their own author (even with no
    participant row) and to the project creator, never to sibling
    participants.

Admins pass every family.
"""

from __future__ import annotations

from access_gate.models.access import ProjectAccess
from access_gate.models.resources import (
    LessonPlanExport,
    ResearchDocument,
    ResearchProject,
    ResearchSubmission,
)


def project_access(
    project: ResearchProject | None, user_id: str, is_participant: bool
) -> ProjectAccess:
    """Derive a principal's standing in a project.

    A missing project row has no creator; only membership can help then.
    """
    if project is not None and project.created_by == user_id:
        return ProjectAccess.creator()
    if is_participant:
        return ProjectAccess.participant()
    return ProjectAccess.none()


def can_read_lesson_plan_export(
    record: LessonPlanExport, user_id: str, is_admin: bool
) -> bool:
    if is_admin:
        return True
    return record.owner_id is not None and record.owner_id == user_id


def can_read_research_document(
    record: ResearchDocument, access: ProjectAccess, is_admin: bool
) -> bool:
    return is_admin or access.can_access_documents


def is_submission_author(record: ResearchSubmission, user_id: str) -> bool:
    return record.participant_id is not None and record.participant_id == user_id


def can_read_research_submission(
    record: ResearchSubmission,
    user_id: str,
    is_admin: bool,
    access: ProjectAccess | None = None,
) -> bool:
    """Author and admin pass without project access; everyone else needs
    creator-level access.  ``access`` may be None when the caller already
    passed on authorship.
    """
    if is_admin or is_submission_author(record, user_id):
        return True
    return access is not None and access.can_access_submissions


def can_download_document_directly(
    record: ResearchDocument, is_participant: bool
) -> bool:
    """Direct download by id: public documents for anyone signed in,
    otherwise enrolled participants only."""
    return record.is_public or is_participant
