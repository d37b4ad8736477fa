import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path


class JobVariant(str, Enum):
    SINGLE = "single"
    STITCH = "stitch"
    IMAGE_OVERLAY = "image-overlay"


class JobStatus(str, Enum):
    CREATED = "created"
    FETCHING = "fetching"
    PROBING = "probing"
    TRANSFORMING = "transforming"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class AssetKind(str, Enum):
    VIDEO = "video"
    AUDIO = "audio"
    OVERLAY_IMAGE = "overlay-image"
    BASE_IMAGE = "base-image"


@dataclass(frozen=True)
class Asset:
    """A fetched input: where it came from and where it lives in the workspace."""

    kind: AssetKind
    source_url: str
    local_path: Path


def new_job_id() -> str:
    return str(uuid.uuid4())


@dataclass
class Job:
    variant: JobVariant
    id: str = field(default_factory=new_job_id)
    status: JobStatus = JobStatus.CREATED
    working_dir: Path | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    error: str | None = None
    artifact_path: Path | None = None

    def transition(self, status: JobStatus) -> None:
        """Move the job to another stage. Terminal states are final."""
        if self.status.is_terminal:
            raise RuntimeError(f"Job {self.id} is already {self.status.value}")
        if status is JobStatus.CREATED:
            raise RuntimeError(f"Job {self.id} cannot return to {status.value}")
        self.status = status
        self.updated_at = datetime.now(timezone.utc)

    def fail(self, error: str) -> None:
        self.transition(JobStatus.FAILED)
        self.error = error

    def __repr__(self) -> str:
        return f"<Job {self.id} {self.variant.value} ({self.status.value})>"
