"""Job records for queued extractions."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    queued = "queued"
    processing = "processing"
    completed = "completed"
    failed = "failed"
    timed_out = "timed_out"


FINISHED_STATUSES = frozenset({JobStatus.completed, JobStatus.failed, JobStatus.timed_out})


class JobMetadata(BaseModel):
    """One job as tracked by the store. Copies are returned on every change."""

    job_id: str
    job_type: str
    status: JobStatus
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)
    result: Optional[Dict[str, Any]] = None

    @property
    def finished(self) -> bool:
        return self.status in FINISHED_STATUSES

    def with_status(self, status: JobStatus) -> "JobMetadata":
        now = _utcnow()
        update: Dict[str, Any] = {"status": status, "updated_at": now}
        if status is JobStatus.processing and self.started_at is None:
            update["started_at"] = now
        return self.model_copy(update=update)

    def with_result(self, result: Dict[str, Any]) -> "JobMetadata":
        return self._finish(JobStatus.completed, result=result)

    def with_error(self, message: str, kind: Optional[str] = None) -> "JobMetadata":
        """Failed copy; a ``timeout`` kind ends the job as ``timed_out`` instead."""

        status = JobStatus.timed_out if kind == "timeout" else JobStatus.failed
        return self._finish(status, error=message, error_kind=kind)

    def _finish(self, status: JobStatus, **fields: Any) -> "JobMetadata":
        now = _utcnow()
        return self.model_copy(update={**fields, "status": status, "updated_at": now, "finished_at": now})
