"""
Celery configuration for the settlement workers.

This module configures the Celery application with:
- Redis broker and result backend
- Task routing to the settlements and fees queues
- Beat schedule for the backup sweep and the treasury fee retry
- Worker configuration
- Logfire instrumentation for observability
"""

import logging

import logfire
from celery import Celery
from celery.signals import worker_process_init

from whisp.config import get_settings
from whisp.observability import configure_logging

logger = logging.getLogger(__name__)

settings = get_settings()

celery_app = Celery(
    "whisp",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "whisp.tasks.settlement_tasks",
        "whisp.tasks.fee_tasks",
    ],
)

celery_app.conf.update(
    # Serialization
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],

    # Timezone
    timezone="UTC",
    enable_utc=True,

    # Task results
    result_expires=3600,

    # Task routing
    task_routes={
        "tasks.run_settlement_sweep": {"queue": "settlements"},
        "tasks.retry_treasury_fees": {"queue": "fees"},
    },

    # Worker configuration
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=100,
    worker_concurrency=1,

    # Task execution
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    # Monitoring
    worker_send_task_events=True,
    task_send_sent_event=True,
)

celery_app.conf.beat_schedule = {
    # Backup settlement: reconcile statuses, pay stale winners
    "run-settlement-sweep": {
        "task": "tasks.run_settlement_sweep",
        "schedule": float(settings.sweep.interval_seconds),
    },
    # Treasury fees that failed during a payout
    "retry-treasury-fees": {
        "task": "tasks.retry_treasury_fees",
        "schedule": float(settings.fees.retry_interval_minutes * 60),
    },
}


@worker_process_init.connect
def init_worker_process(**kwargs) -> None:
    """
    Initialize each worker process with logging and observability.

    This runs once per worker process (not per task).
    """
    configure_logging(settings.log_level)

    if settings.logfire_token:
        logfire.configure(
            token=settings.logfire_token,
            service_name="whisp-celery-worker",
            console=False,
        )
        logfire.instrument_httpx()
    else:
        logfire.configure(send_to_logfire=False, console=False)

    logger.info(f"Celery worker initialized (logfire={'on' if settings.logfire_token else 'off'})")


@celery_app.task(name="health_check")
def health_check() -> dict:
    """Health check task for monitoring worker status."""
    return {
        "status": "healthy",
        "service": "whisp-celery-worker",
    }
