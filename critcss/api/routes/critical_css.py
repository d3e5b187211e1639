"""Routes for critical CSS extraction jobs."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import PlainTextResponse

from critcss.api.dependencies import get_auth_dependency
from critcss.core.logging import get_logger
from critcss.models.critical_css import (
    CriticalCSSJobStatusResponse,
    CriticalCSSRequest,
    CriticalCSSResult,
)
from critcss.models.job import JobMetadata, JobStatus
from critcss.services import job_store
from critcss.tasks.css_tasks import generate_critical_css

logger = get_logger(__name__)

router = APIRouter(prefix="/critical-css", tags=["critical-css"], dependencies=[Depends(get_auth_dependency)])

JOB_TYPE = "critical_css"


def _load_job(job_id: str) -> JobMetadata:
    job = job_store.job_store.get_job(job_id)
    if job is None or job.job_type != JOB_TYPE:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    return job


@router.post(
    "/generate",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Enqueue a critical CSS extraction job",
)
def enqueue_critical_css(payload: CriticalCSSRequest) -> dict:
    """Queue extraction of the above-the-fold rules of ``css`` for the page at ``url``."""

    job_id = f"css_{uuid.uuid4().hex}"
    options = payload.model_dump(mode="json")
    job_store.create_job(job_id=job_id, job_type=JOB_TYPE, payload=options)
    generate_critical_css.delay(job_id=job_id, payload=options)
    logger.info("critical_css_job_enqueued", job_id=job_id, url=payload.url)
    return {"job_id": job_id, "status": JobStatus.queued}


@router.get(
    "/{job_id}",
    response_model=CriticalCSSJobStatusResponse,
    summary="Retrieve critical CSS job status",
)
def get_critical_css_job(job_id: str) -> CriticalCSSJobStatusResponse:
    """Job status, with the result once completed or the error kind once failed."""

    job = _load_job(job_id)
    return CriticalCSSJobStatusResponse(
        job_id=job.job_id,
        status=job.status,
        url=job.payload.get("url"),
        created_at=job.created_at,
        updated_at=job.updated_at,
        started_at=job.started_at,
        finished_at=job.finished_at,
        result=CriticalCSSResult.model_validate(job.result) if job.result else None,
        error=job.error,
        error_kind=job.error_kind,
    )


@router.get(
    "/{job_id}/css",
    response_class=PlainTextResponse,
    summary="Download the critical CSS of a completed job",
)
def get_critical_css_text(job_id: str) -> PlainTextResponse:
    """The extracted stylesheet as ``text/css``, ready to inline."""

    job = _load_job(job_id)
    if job.status is not JobStatus.completed:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Job is {job.status.value}, no CSS available",
        )
    return PlainTextResponse(job.result["critical_css"], media_type="text/css")
