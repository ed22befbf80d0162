"""Pipeline instance record. Serializable for persistence/resumption."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PipelineStatus(str, Enum):
    RUNNING = "running"
    SUSPENDED = "suspended"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class Suspension:
    """Why and where an instance is paused."""

    reason: str
    payload: dict[str, Any]
    stage_name: str
    suspended_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "reason": self.reason,
            "payload": self.payload,
            "stage_name": self.stage_name,
            "suspended_at": self.suspended_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Suspension:
        return cls(
            reason=d["reason"],
            payload=dict(d.get("payload", {})),
            stage_name=d["stage_name"],
            suspended_at=datetime.fromisoformat(d["suspended_at"]),
        )


@dataclass
class StageEvent:
    """One entry in an instance's audit trail."""

    stage_name: str
    event: str  # "continued", "suspended", "failed"
    at: datetime
    detail: str | None = None


@dataclass
class PipelineInstance:
    """A single run of a pipeline definition.

    Mutated only by the executor. `revision` increases on every save and is
    used by stores for compare-and-set.
    """

    pipeline_id: str
    definition_version: int
    state: dict[str, Any]
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    stage_index: int = 0
    status: PipelineStatus = PipelineStatus.RUNNING
    suspension: Suspension | None = None
    result: dict[str, Any] | None = None
    error: str | None = None
    revision: int = 0
    history: list[StageEvent] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_suspended(self) -> bool:
        return self.status is PipelineStatus.SUSPENDED

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "pipeline_id": self.pipeline_id,
            "definition_version": self.definition_version,
            "stage_index": self.stage_index,
            "state": self.state,
            "status": self.status.value,
            "suspension": self.suspension.to_dict() if self.suspension else None,
            "result": self.result,
            "error": self.error,
            "revision": self.revision,
            "history": [
                {
                    "stage_name": e.stage_name,
                    "event": e.event,
                    "at": e.at.isoformat(),
                    "detail": e.detail,
                }
                for e in self.history
            ],
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> PipelineInstance:
        suspension = d.get("suspension")
        return cls(
            id=d["id"],
            pipeline_id=d["pipeline_id"],
            definition_version=d["definition_version"],
            stage_index=d["stage_index"],
            state=dict(d.get("state", {})),
            status=PipelineStatus(d["status"]),
            suspension=Suspension.from_dict(suspension) if suspension else None,
            result=d.get("result"),
            error=d.get("error"),
            revision=d.get("revision", 0),
            history=[
                StageEvent(
                    stage_name=e["stage_name"],
                    event=e["event"],
                    at=datetime.fromisoformat(e["at"]),
                    detail=e.get("detail"),
                )
                for e in d.get("history", [])
            ],
            created_at=datetime.fromisoformat(d["created_at"]),
            updated_at=datetime.fromisoformat(d["updated_at"]),
        )
