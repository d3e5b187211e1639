"""In-memory job store for queued extraction jobs."""

from __future__ import annotations

from collections.abc import Mapping
from threading import Lock
from typing import Callable, Dict, Optional

from critcss.core.logging import get_logger
from critcss.models.job import JobMetadata, JobStatus

logger = get_logger(__name__)


class InMemoryJobStore:
    """Thread-safe job registry shared by the API and eager workers.

    Status changes go through ``update``, which reads and writes a job under
    one lock so a worker finishing a job cannot race another writer.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._jobs: Dict[str, JobMetadata] = {}

    def create_job(self, job: JobMetadata) -> None:
        with self._lock:
            if job.job_id in self._jobs:
                raise ValueError(f"Job {job.job_id} already exists")
            self._jobs[job.job_id] = job

    def update(self, job_id: str, change: Callable[[JobMetadata], JobMetadata]) -> JobMetadata:
        """Apply ``change`` to the stored job and return the new record."""

        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise KeyError(f"Job {job_id} not found")
            if job.finished:
                raise ValueError(f"Job {job_id} already finished as {job.status.value}")
            updated = change(job)
            self._jobs[job_id] = updated
            return updated

    def get_job(self, job_id: str) -> Optional[JobMetadata]:
        with self._lock:
            return self._jobs.get(job_id)

    def all_jobs(self) -> Mapping[str, JobMetadata]:
        with self._lock:
            return dict(self._jobs)

    def clear(self) -> None:
        with self._lock:
            self._jobs.clear()


job_store = InMemoryJobStore()


def create_job(job_id: str, job_type: str, payload: dict) -> JobMetadata:
    """Register a new job in queued state."""

    job = JobMetadata(job_id=job_id, job_type=job_type, status=JobStatus.queued, payload=payload)
    job_store.create_job(job)
    logger.debug("job_created", job_id=job_id, job_type=job_type)
    return job


def mark_processing(job_id: str) -> JobMetadata:
    return job_store.update(job_id, lambda job: job.with_status(JobStatus.processing))


def mark_completed(job_id: str, result: dict) -> JobMetadata:
    """Store the result. A finished job is never overwritten."""

    return job_store.update(job_id, lambda job: job.with_result(result))


def mark_failed(job_id: str, message: str, kind: Optional[str] = None) -> JobMetadata:
    """Record the error; ``kind == "timeout"`` ends the job as timed out."""

    return job_store.update(job_id, lambda job: job.with_error(message, kind))
