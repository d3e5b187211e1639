"""Celery application configuration."""

from celery import Celery

from critcss.core.config import settings

celery_app = Celery("critcss")

broker_url = settings.celery_broker_url or settings.redis_url
result_backend = settings.celery_result_backend or settings.redis_url

# Jobs enforce their own timeout; the hard limit only catches a wedged browser.
hard_limit_seconds = settings.default_timeout_ms // 1000 + 60

celery_app.conf.update(
    broker_url=broker_url,
    result_backend=result_backend,
    task_default_queue="critcss",
    task_soft_time_limit=hard_limit_seconds - 10,
    task_time_limit=hard_limit_seconds,
    worker_max_tasks_per_child=100,
    # Each task holds a browser; take one message at a time.
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    broker_connection_retry_on_startup=True,
    task_track_started=True,
    task_always_eager=settings.debug,
)

celery_app.autodiscover_tasks(["critcss.tasks"])
