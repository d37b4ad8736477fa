"""In-memory job table with TTL for finished jobs.

Per-process only: after a restart, status falls back to checking the
output area for the artifact.
"""

import threading
import time
from dataclasses import dataclass

from meme_engine.models.job import Job


@dataclass
class _Entry:
    job: Job
    finished_at: float | None = None


class JobRegistry:
    """Thread-safe job table. Terminal jobs expire after ``ttl_seconds``."""

    def __init__(self, ttl_seconds: int = 3600) -> None:
        self._jobs: dict[str, _Entry] = {}
        self._lock = threading.Lock()
        self._ttl = ttl_seconds

    def register(self, job: Job) -> None:
        """Insert a newly accepted job."""
        with self._lock:
            self._purge_expired(time.monotonic())
            self._jobs[job.id] = _Entry(job=job)

    def update(self, job: Job) -> None:
        """Record a stage transition; starts the TTL once the job is terminal."""
        with self._lock:
            entry = self._jobs.get(job.id)
            if entry is None:
                entry = self._jobs[job.id] = _Entry(job=job)
            entry.job = job
            if job.status.is_terminal and entry.finished_at is None:
                entry.finished_at = time.monotonic()

    def get(self, job_id: str) -> Job | None:
        with self._lock:
            entry = self._jobs.get(job_id)
            if entry is None:
                return None
            if self._is_expired(entry, time.monotonic()):
                del self._jobs[job_id]
                return None
            return entry.job

    def purge_expired(self) -> int:
        """Drop expired terminal jobs, returning how many were removed."""
        with self._lock:
            return self._purge_expired(time.monotonic())

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def _is_expired(self, entry: _Entry, now: float) -> bool:
        return entry.finished_at is not None and now - entry.finished_at > self._ttl

    def _purge_expired(self, now: float) -> int:
        """Called under lock."""
        expired = [job_id for job_id, entry in self._jobs.items() if self._is_expired(entry, now)]
        for job_id in expired:
            del self._jobs[job_id]
        return len(expired)
