"""Treasury fee retry Celery task."""

import asyncio
import logging

from whisp.celery_config import celery_app
from whisp.config import get_settings
from whisp.exceptions import ConfigurationError
from whisp.services.container import open_services

logger = logging.getLogger(__name__)


@celery_app.task(name="tasks.retry_treasury_fees", queue="fees")
def retry_treasury_fees() -> dict:
    """
    Scheduled: every fees.retry_interval_minutes

    Retries one batch of queued treasury fee transfers.
    """

    async def _retry() -> dict:
        async with open_services(get_settings()) as services:
            report = await services.fees.process_pending(services.rail_factory)

        return {
            "processed": report.processed,
            "successful": report.successful,
            "failed": report.failed,
        }

    try:
        return asyncio.run(_retry())
    except ConfigurationError as e:
        # Not retryable until an operator fixes the vault key
        logger.error(f"Fee retry skipped: {e.message}")
        return {"skipped": True, "reason": e.message}
