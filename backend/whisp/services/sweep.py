"""
Backup Settlement Sweep

Periodic job that keeps bet status in step with market results and pays out
winners who never came back to claim.

Phase 1 - status reconciliation:
    pending bets grouped by market, one oracle fetch per market, each bet
    moved pending -> won | lost (claimed stays false)

Phase 2 - stale auto-payout:
    won, unclaimed bets older than the grace period and not locked are
    locked with the sweep timeout and paid through the same settler the
    claim path uses

Failures are isolated per market and per bet; one bad market never stops
the rest of the iteration.
"""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Optional

from whisp.config import SweepConfig
from whisp.exceptions import ClaimError, OracleError
from whisp.models import Bet
from whisp.services.bet_store import BetStore
from whisp.services.claim_lock import ClaimLockManager
from whisp.services.oracle import MarketOracle
from whisp.services.settler import PayoutSettler
from whisp.utils import Clock, hours_to_ms, now_ms

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    """Counts from one sweep iteration."""

    pending_bets: int = 0
    markets_checked: int = 0
    markets_resolved: int = 0
    bets_won: int = 0
    bets_lost: int = 0
    stale_found: int = 0
    stale_paid: int = 0
    stale_skipped: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def idle(self) -> bool:
        return self.pending_bets == 0 and self.stale_found == 0


class SettlementSweep:
    """Backup settlement authority running alongside user claims."""

    def __init__(
        self,
        bets: BetStore,
        locks: ClaimLockManager,
        oracle: MarketOracle,
        settler: PayoutSettler,
        config: Optional[SweepConfig] = None,
        clock: Clock = now_ms,
    ):
        self.bets = bets
        self.locks = locks
        self.oracle = oracle
        self.settler = settler
        self.config = config or SweepConfig()
        self.clock = clock

    async def run_once(self) -> SweepReport:
        """Run both phases once."""
        report = SweepReport()
        await self.reconcile_statuses(report)
        await self.pay_stale_winners(report)

        logger.info(
            f"Sweep done: {report.markets_resolved}/{report.markets_checked} markets resolved, "
            f"{report.bets_won} won, {report.bets_lost} lost, "
            f"{report.stale_paid}/{report.stale_found} stale bets paid"
        )
        return report

    async def reconcile_statuses(self, report: SweepReport) -> None:
        pending = await self.bets.list_pending()
        report.pending_bets = len(pending)
        if not pending:
            logger.debug("No pending bets")
            return

        by_market: dict[str, list[Bet]] = defaultdict(list)
        for bet in pending:
            by_market[bet.market_id].append(bet)

        logger.info(f"Found {len(pending)} pending bets across {len(by_market)} markets")

        semaphore = asyncio.Semaphore(max(1, self.config.max_parallel_markets))

        async def bounded(market_id: str, market_bets: list[Bet]) -> None:
            async with semaphore:
                await self._reconcile_market(market_id, market_bets, report)

        await asyncio.gather(*(bounded(mid, mbets) for mid, mbets in by_market.items()))

    async def _reconcile_market(self, market_id: str, market_bets: list[Bet], report: SweepReport) -> None:
        report.markets_checked += 1
        try:
            market = await self.oracle.get_market(market_id)
        except OracleError as e:
            logger.error(f"Error checking market {market_id}: {e}")
            report.errors.append(f"{market_id}: {e}")
            return

        if market.status != "closed":
            return
        if market.result is None:
            logger.info(f"Market {market_id} resolved to invalid result '{market.raw_result}', skipping")
            return

        report.markets_resolved += 1
        logger.info(f"Market {market_id} resolved: {market.result.upper()}")

        for bet in market_bets:
            status = "won" if bet.outcome == market.result else "lost"
            try:
                changed = await self.bets.resolve_status(bet.tx, status)
            except Exception as e:
                logger.exception(f"Failed to resolve bet {bet.tx}")
                report.errors.append(f"{bet.tx}: {e}")
                continue

            if not changed:
                continue
            if status == "won":
                report.bets_won += 1
            else:
                report.bets_lost += 1

    async def pay_stale_winners(self, report: SweepReport) -> None:
        now = self.clock()
        stale = await self.bets.list_stale_unclaimed(
            placed_before=now - hours_to_ms(self.config.grace_period_hours),
            lock_expired_before=now - self.locks.timeout_ms,
        )
        report.stale_found = len(stale)
        if stale:
            logger.info(f"Found {len(stale)} unclaimed winning bets past the grace period")

        for bet in stale:
            if await self._pay_stale(bet, report):
                report.stale_paid += 1
            else:
                report.stale_skipped += 1

    async def _pay_stale(self, candidate: Bet, report: SweepReport) -> bool:
        held = await self.locks.acquire(candidate.tx)
        if held is None:
            logger.info(f"Bet {candidate.tx} locked or claimed meanwhile, skipping")
            return False

        bet = held.bet
        try:
            if bet.status != "won":
                return False
            receipt = await self.settler.settle(bet, bet.outcome, bet.nullifier)
            logger.info(f"Auto-paid stale bet {bet.tx}: {receipt.payout} ({receipt.payout_tx})")
            return True

        except ClaimError as e:
            logger.error(f"Auto-payout failed for {bet.tx}: {e.message}")
            report.errors.append(f"{bet.tx}: {e.message}")
            return False
        except Exception as e:
            logger.exception(f"Auto-payout error for {bet.tx}")
            report.errors.append(f"{bet.tx}: {e}")
            return False
        finally:
            try:
                await self.locks.release(bet.tx, held.token)
            except Exception:
                logger.exception(f"Failed to release sweep lock on {bet.tx}")

    async def run_forever(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Loop until ``stop_event`` is set, sleeping less when there is nothing to do."""
        stop_event = stop_event or asyncio.Event()
        logger.info("Settlement sweep starting")

        while not stop_event.is_set():
            delay = self.config.interval_seconds
            try:
                report = await self.run_once()
                if report.idle:
                    delay = self.config.idle_interval_seconds
            except Exception:
                logger.exception("Sweep loop error")

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass

        logger.info("Settlement sweep stopped")
