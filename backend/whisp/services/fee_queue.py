"""
Treasury Fee Retry Queue

Durable queue of protocol-fee transfers that failed during a claim or sweep,
keyed by bet tx so a bet never owes more than one fee row.

Lifecycle of a row:
- enqueue: created with retry_count=0; a re-enqueue increments retry_count
  and overwrites the error
- process_pending: oldest-first batches of rows still owed; each row is taken
  with a conditional UPDATE on retry_lock before its transfer, so overlapping
  retry runs never pay the same fee twice; success records success_tx and
  the row is never retried again, failure increments retry_count
- rows reaching max_retries stay put for manual operator review
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, or_, select, update

from whisp.database import SessionFactory
from whisp.database.dialects import insert_for
from whisp.models import PendingFee
from whisp.services.payment_rail import RailFactory
from whisp.utils import Clock, now_ms, seconds_to_ms

logger = logging.getLogger(__name__)


@dataclass
class FeeRetryResult:
    bet_tx: str
    success: bool
    signature: Optional[str] = None
    error: Optional[str] = None


@dataclass
class FeeRetryReport:
    processed: int = 0
    successful: int = 0
    failed: int = 0
    results: list[FeeRetryResult] = field(default_factory=list)


@dataclass(frozen=True)
class FeeBucket:
    count: int
    total: Decimal


@dataclass(frozen=True)
class FeeQueueSummary:
    pending: FeeBucket
    failed: FeeBucket
    successful: FeeBucket


class TreasuryFeeQueue:
    """Queue of treasury fees owed, retried out of band."""

    def __init__(
        self,
        session_factory: SessionFactory,
        treasury_address: str,
        max_retries: int = 5,
        batch_size: int = 10,
        lock_timeout_seconds: float = 60,
        clock: Clock = now_ms,
    ):
        self.session_factory = session_factory
        self.treasury_address = treasury_address
        self.max_retries = max_retries
        self.batch_size = batch_size
        self.lock_timeout_ms = seconds_to_ms(lock_timeout_seconds)
        self.clock = clock

    async def enqueue(self, bet_tx: str, amount: Decimal, asset: str, error: str) -> None:
        """Upsert the fee owed for a bet; never creates a second row."""
        now = self.clock()
        table = PendingFee.__table__

        async with self.session_factory() as session:
            stmt = insert_for(session, table).values(
                bet_tx=bet_tx,
                amount=amount,
                asset=asset,
                error=error,
                created_at=now,
                updated_at=now,
                retry_count=0,
                success_tx=None,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["bet_tx"],
                set_={
                    "retry_count": table.c.retry_count + 1,
                    "error": stmt.excluded.error,
                    "updated_at": stmt.excluded.updated_at,
                },
                where=table.c.success_tx.is_(None),
            )
            await session.execute(stmt)
            await session.commit()

        logger.info(f"[Treasury Fee] Queued for retry: {bet_tx} ({amount} {asset})")

    async def get(self, bet_tx: str) -> Optional[PendingFee]:
        async with self.session_factory() as session:
            result = await session.execute(select(PendingFee).where(PendingFee.bet_tx == bet_tx))
            return result.scalar_one_or_none()

    async def list_due(self) -> list[PendingFee]:
        """Rows still owed, under the retry cap and not held by another run, oldest first."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(PendingFee)
                .where(
                    PendingFee.success_tx.is_(None),
                    PendingFee.retry_count < self.max_retries,
                    self._lock_free(self.clock()),
                )
                .order_by(PendingFee.created_at)
                .limit(self.batch_size)
            )
            return list(result.scalars().all())

    async def process_pending(self, rail_factory: RailFactory) -> FeeRetryReport:
        """
        Retry one batch of queued fees against the treasury.

        Process:
        1. Select up to batch_size due rows, oldest first
        2. Take each row's retry lock, skipping rows another run holds
        3. Transfer the fee to the treasury
        4. Record success_tx on success, bump retry_count on failure; both free the lock
        """
        report = FeeRetryReport()
        due = await self.list_due()
        if not due:
            return report

        rail = rail_factory()

        for candidate in due:
            taken = await self._take(candidate.bet_tx)
            if taken is None:
                logger.info(f"[Retry Fee] {candidate.bet_tx} settled or held by another run, skipping")
                continue

            fee, token = taken
            logger.info(f"[Retry Fee] Processing {fee.bet_tx}, amount: {fee.amount}")
            try:
                transfer = await rail.transfer(self.treasury_address, fee.amount, fee.asset)
            except Exception as e:
                logger.exception(f"[Retry Fee] Exception for {fee.bet_tx}")
                await self._record_failure(fee.bet_tx, token, str(e) or e.__class__.__name__)
                report.results.append(FeeRetryResult(fee.bet_tx, False, error=str(e)))
                continue

            if transfer.success:
                await self._record_success(fee.bet_tx, transfer.signature or "")
                report.results.append(FeeRetryResult(fee.bet_tx, True, signature=transfer.signature))
                logger.info(f"[Retry Fee] Success: {transfer.signature}")
            else:
                error = transfer.error or "Unknown error"
                await self._record_failure(fee.bet_tx, token, error)
                report.results.append(FeeRetryResult(fee.bet_tx, False, error=error))
                logger.error(f"[Retry Fee] Failed: {error}")

        report.processed = len(report.results)
        report.successful = sum(1 for r in report.results if r.success)
        report.failed = report.processed - report.successful
        return report

    def _lock_free(self, now: int):
        return or_(
            PendingFee.retry_lock.is_(None),
            PendingFee.retry_lock < now - self.lock_timeout_ms,
        )

    async def _take(self, bet_tx: str) -> Optional[tuple[PendingFee, int]]:
        """Lock one owed row for this run. None when it is settled or held elsewhere."""
        token = self.clock()
        async with self.session_factory() as session:
            result = await session.execute(
                update(PendingFee)
                .where(
                    PendingFee.bet_tx == bet_tx,
                    PendingFee.success_tx.is_(None),
                    PendingFee.retry_count < self.max_retries,
                    self._lock_free(token),
                )
                .values(retry_lock=token)
                .returning(PendingFee)
                .execution_options(synchronize_session=False)
            )
            fee = result.scalars().first()
            await session.commit()

        if fee is None:
            return None
        return fee, token

    async def _record_success(self, bet_tx: str, signature: str) -> None:
        async with self.session_factory() as session:
            await session.execute(
                update(PendingFee)
                .where(PendingFee.bet_tx == bet_tx, PendingFee.success_tx.is_(None))
                .values(success_tx=signature, retry_lock=None, updated_at=self.clock())
                .execution_options(synchronize_session=False)
            )
            await session.commit()

    async def _record_failure(self, bet_tx: str, token: int, error: str) -> None:
        async with self.session_factory() as session:
            await session.execute(
                update(PendingFee)
                .where(
                    PendingFee.bet_tx == bet_tx,
                    PendingFee.success_tx.is_(None),
                    PendingFee.retry_lock == token,
                )
                .values(
                    retry_count=PendingFee.retry_count + 1,
                    error=error,
                    retry_lock=None,
                    updated_at=self.clock(),
                )
                .execution_options(synchronize_session=False)
            )
            await session.commit()

    async def summary(self) -> FeeQueueSummary:
        """Counts and totals of pending, exhausted and settled fees."""
        owed = PendingFee.success_tx.is_(None)
        return FeeQueueSummary(
            pending=await self._bucket(owed, PendingFee.retry_count < self.max_retries),
            failed=await self._bucket(owed, PendingFee.retry_count >= self.max_retries),
            successful=await self._bucket(PendingFee.success_tx.is_not(None)),
        )

    async def _bucket(self, *conditions) -> FeeBucket:
        async with self.session_factory() as session:
            result = await session.execute(
                select(func.count(), func.sum(PendingFee.amount)).where(*conditions)
            )
            count, total = result.one()
        return FeeBucket(count=int(count or 0), total=Decimal(str(total or 0)))
