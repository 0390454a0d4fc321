"""Job lifecycle records."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field

from deckschema_core.schemas.base import SchemaModel
from deckschema_core.schemas.universal import utc_now


class JobStatus(str, Enum):
    """Lifecycle states of a job."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


_ALLOWED_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.PENDING: {JobStatus.PROCESSING, JobStatus.FAILED},
    JobStatus.PROCESSING: {JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
}


def can_transition(current: JobStatus, target: JobStatus) -> bool:
    """Return whether ``current -> target`` is a legal transition."""
    return target in _ALLOWED_TRANSITIONS[current]


class JobType(str, Enum):
    """Kinds of background work."""

    PPTX_TO_JSON = "pptx2json"
    JSON_TO_PPTX = "json2pptx"
    EXTRACT_ASSETS = "extract-assets"
    EXTRACT_METADATA = "extract-metadata"
    THUMBNAILS = "thumbnails"


class Job(SchemaModel):
    """A tracked unit of asynchronous work.

    Records are replaced whole on every update; nothing mutates a stored
    instance in place.
    """

    id: str
    type: JobType
    status: JobStatus = JobStatus.PENDING
    progress: int = Field(0, ge=0, le=100)
    error: str | None = None
    error_code: str | None = None
    user_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    timeout_seconds: float | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    completed_at: datetime | None = None
    processing_time_ms: float | None = None
