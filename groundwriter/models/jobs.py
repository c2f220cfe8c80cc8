"""Job/document lifecycle models and the status events published about them.

A :class:`DocumentRecord` is the persisted source of truth for one
processing unit.  :data:`StatusEvent` values are ephemeral notifications
that only live on the status bus and in transit to subscribers.

Lifecycle::

    uploaded(25) -> processing(50) -> analyzing(75) -> completed(100)
          \\______________\\_______________\\__________> failed(0)

Transitions only move forward; ``failed`` is reachable from any
non-terminal state and both ``completed`` and ``failed`` are terminal.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from groundwriter.models.rag import SourceType, utc_now
from groundwriter.utils.errors import InvalidStatusTransitionError


class JobStatus(str, Enum):
    """Closed set of lifecycle states for a job/document record."""

    UPLOADED = "uploaded"
    PROCESSING = "processing"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def progress(self) -> int:
        """Canonical progress percentage for this milestone."""
        return _PROGRESS[self]

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)

    def can_transition_to(self, target: JobStatus) -> bool:
        """Return ``True`` if a record in this state may move to *target*.

        Repeating a non-terminal state is allowed (a stage may report more
        than one message).
        """
        if self.is_terminal:
            return False
        if target is JobStatus.FAILED:
            return True
        return _RANK[target] >= _RANK[self]


_PROGRESS: dict[JobStatus, int] = {
    JobStatus.UPLOADED: 25,
    JobStatus.PROCESSING: 50,
    JobStatus.ANALYZING: 75,
    JobStatus.COMPLETED: 100,
    JobStatus.FAILED: 0,
}

_RANK: dict[JobStatus, int] = {
    JobStatus.UPLOADED: 0,
    JobStatus.PROCESSING: 1,
    JobStatus.ANALYZING: 2,
    JobStatus.COMPLETED: 3,
}


# ---------------------------------------------------------------------------
# DocumentRecord — persisted lifecycle state.
# ---------------------------------------------------------------------------
class DocumentRecord(BaseModel):
    """Persisted state of one uploaded document and its processing job."""

    model_config = ConfigDict(frozen=True)

    id: str
    filename: str
    source_type: SourceType
    status: JobStatus = JobStatus.UPLOADED
    error_message: str | None = None
    text_length: int | None = None
    chunk_count: int | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def transition(self, status: JobStatus, **updates: Any) -> DocumentRecord:
        """Return a copy moved to *status*, enforcing the lifecycle rules.

        Raises
        ------
        InvalidStatusTransitionError
            If the move goes backwards or leaves a terminal state.
        """
        if not self.status.can_transition_to(status):
            raise InvalidStatusTransitionError(
                message=(
                    f"Cannot move document {self.id} from "
                    f"{self.status.value} to {status.value}"
                )
            )
        return self.model_copy(
            update={"status": status, "updated_at": utc_now(), **updates}
        )


# ---------------------------------------------------------------------------
# StatusEvent — tagged union, one variant per lifecycle status.
# ---------------------------------------------------------------------------
class _StatusEventBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    job_id: str
    message: str
    timestamp: datetime = Field(default_factory=utc_now)

    def to_frame(self) -> dict[str, Any]:
        """JSON-ready payload for a ``status`` stream frame."""
        return {"type": "status", **self.model_dump(mode="json")}


class UploadedEvent(_StatusEventBase):
    status: Literal[JobStatus.UPLOADED] = JobStatus.UPLOADED
    progress: Literal[25] = 25


class ProcessingEvent(_StatusEventBase):
    status: Literal[JobStatus.PROCESSING] = JobStatus.PROCESSING
    progress: Literal[50] = 50


class AnalyzingEvent(_StatusEventBase):
    status: Literal[JobStatus.ANALYZING] = JobStatus.ANALYZING
    progress: Literal[75] = 75


class CompletedEvent(_StatusEventBase):
    """Terminal success; ``data`` carries the job result summary."""

    status: Literal[JobStatus.COMPLETED] = JobStatus.COMPLETED
    progress: Literal[100] = 100
    data: dict[str, Any] = Field(default_factory=dict)


class FailedEvent(_StatusEventBase):
    """Terminal failure; ``error`` is the human-readable cause."""

    status: Literal[JobStatus.FAILED] = JobStatus.FAILED
    progress: Literal[0] = 0
    error: str


StatusEvent = Annotated[
    Union[UploadedEvent, ProcessingEvent, AnalyzingEvent, CompletedEvent, FailedEvent],
    Field(discriminator="status"),
]

status_event_adapter: TypeAdapter[StatusEvent] = TypeAdapter(StatusEvent)
