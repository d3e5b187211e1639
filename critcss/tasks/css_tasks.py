"""Celery tasks for critical CSS extraction."""

from __future__ import annotations

import asyncio

from critcss.core.errors import CriticalCSSError
from critcss.core.logging import get_logger
from critcss.models.critical_css import CriticalCSSRequest
from critcss.services import job_store
from critcss.services.critical_css import critical_css_extractor
from critcss.worker.celery_app import celery_app

logger = get_logger(__name__)


@celery_app.task(name="critical_css.generate")
def generate_critical_css(job_id: str, payload: dict) -> dict:
    """Produce critical CSS using the extractor service."""

    logger.info("critical_css_task_started", job_id=job_id)
    job_store.mark_processing(job_id)
    try:
        request = CriticalCSSRequest(**payload)
        result = asyncio.run(critical_css_extractor.extract(request))
    except CriticalCSSError as exc:
        logger.warning("critical_css_task_failed", job_id=job_id, kind=exc.kind, error=str(exc))
        job_store.mark_failed(job_id, str(exc), exc.kind)
        return {"job_id": job_id, "error": str(exc), "error_kind": exc.kind}
    except Exception as exc:
        logger.exception("critical_css_task_crashed", job_id=job_id, error=str(exc))
        job_store.mark_failed(job_id, str(exc))
        raise

    result_payload = result.model_dump(mode="json")
    job_store.mark_completed(job_id, result_payload)
    logger.info("critical_css_task_completed", job_id=job_id)
    return result_payload
