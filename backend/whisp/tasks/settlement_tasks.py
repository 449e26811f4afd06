"""Settlement-related Celery tasks."""

import asyncio
import logging

from whisp.celery_config import celery_app
from whisp.config import get_settings
from whisp.services.container import open_services

logger = logging.getLogger(__name__)


@celery_app.task(name="tasks.run_settlement_sweep", queue="settlements")
def run_settlement_sweep() -> dict:
    """
    Scheduled: every sweep.interval_seconds

    One backup sweep iteration: status reconciliation, then stale payouts.
    """

    async def _sweep() -> dict:
        async with open_services(get_settings()) as services:
            report = await services.sweep.run_once()

        return {
            "pending_bets": report.pending_bets,
            "markets_checked": report.markets_checked,
            "markets_resolved": report.markets_resolved,
            "bets_won": report.bets_won,
            "bets_lost": report.bets_lost,
            "stale_paid": report.stale_paid,
            "stale_skipped": report.stale_skipped,
            "errors": report.errors,
        }

    return asyncio.run(_sweep())
