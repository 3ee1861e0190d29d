"""State for a single stream transfer.

A ``DownloadJob`` lives only for the duration of one transfer and is
updated in place by the download engine as chunks arrive. Progress
callbacks receive the same object.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Optional


class JobStatus(str, Enum):
    """Lifecycle of a transfer: idle -> requesting -> streaming -> completed | failed."""

    IDLE = "idle"
    REQUESTING = "requesting"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


# Allowed transitions; anything else is a programming error
_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.IDLE: {JobStatus.REQUESTING},
    JobStatus.REQUESTING: {JobStatus.STREAMING, JobStatus.FAILED},
    JobStatus.STREAMING: {JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
}


@dataclass
class DownloadJob:
    """Tracks the state and progress of a single download."""

    url: str
    destination: Path
    resume: bool = False
    status: JobStatus = JobStatus.IDLE
    # Bytes already on disk before this transfer started (resume only)
    existing_bytes: int = 0
    # Bytes on disk so far, including ``existing_bytes`` when appending
    downloaded_bytes: int = 0
    # 0 means unknown
    total_bytes: int = 0
    http_status: Optional[int] = None
    error: Optional[str] = None
    started_at: float = field(default_factory=time.time)
    finished_at: Optional[float] = None

    def transition(self, status: JobStatus) -> None:
        """Move to *status*, enforcing the job state machine."""
        if status not in _TRANSITIONS[self.status]:
            raise RuntimeError(f"invalid job transition {self.status.value} -> {status.value}")
        self.status = status
        if status in (JobStatus.COMPLETED, JobStatus.FAILED):
            self.finished_at = time.time()

    def fail(self, error: str) -> None:
        self.error = error
        self.transition(JobStatus.FAILED)

    @property
    def is_appending(self) -> bool:
        return self.existing_bytes > 0 and self.http_status == 206

    @property
    def progress(self) -> float:
        """0-100 progress, or 0 when the total is unknown."""
        if self.total_bytes <= 0:
            return 0.0
        return min(100.0, self.downloaded_bytes * 100 / self.total_bytes)


ProgressCallback = Callable[[DownloadJob], None]
