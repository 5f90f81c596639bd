from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import Any


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


@dataclass(frozen=True, slots=True)
class AuditEntry:
    """One row for the audit_logs table."""

    action: str
    actor_id: str
    target_id: str | None = None
    metadata: dict[str, Any] | None = None
    created_at: datetime.datetime = field(default_factory=_utcnow)

    @property
    def is_complete(self) -> bool:
        return bool(self.action and self.actor_id)

    def to_payload(self) -> dict[str, Any]:
        """JSON-safe form used on the audit queue."""
        return {
            "action": self.action,
            "actor_id": self.actor_id,
            "target_id": self.target_id,
            "metadata": self.metadata,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> AuditEntry:
        raw_created = payload.get("created_at")
        created_at = (
            datetime.datetime.fromisoformat(raw_created) if raw_created else _utcnow()
        )
        return cls(
            action=str(payload.get("action") or ""),
            actor_id=str(payload.get("actor_id") or ""),
            target_id=payload.get("target_id"),
            metadata=payload.get("metadata"),
            created_at=created_at,
        )
