"""
Claim Lock Manager

Advisory, timeout-bounded mutual exclusion on one bet row, built from a
single conditional UPDATE because the store offers no transactions:

    UPDATE bets SET claim_lock = :now
    WHERE tx = :tx AND claimed = false
      AND (claim_lock IS NULL OR claim_lock < :now - :timeout)
    RETURNING *

The lock is held iff a row comes back. A crashed holder blocks the bet only
until the timeout elapses; nothing it did is rolled back.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from sqlalchemy import or_, select, update

from whisp.database import SessionFactory
from whisp.models import Bet
from whisp.utils import Clock, now_ms, seconds_to_ms

logger = logging.getLogger(__name__)


class LockFailure(str, Enum):
    """Why an acquire attempt returned no row."""

    NOT_FOUND = "not_found"
    ALREADY_CLAIMED = "already_claimed"
    IN_PROGRESS = "in_progress"


@dataclass(frozen=True)
class HeldLock:
    """A successfully acquired lock and the bet as it was locked."""

    bet: Bet
    token: int


class ClaimLockManager:
    """Acquire and release the claim lock on individual bets."""

    def __init__(
        self,
        session_factory: SessionFactory,
        timeout_seconds: float,
        clock: Clock = now_ms,
    ):
        self.session_factory = session_factory
        self.timeout_ms = seconds_to_ms(timeout_seconds)
        self.clock = clock

    async def acquire(self, tx: str) -> Optional[HeldLock]:
        """Try to lock an unclaimed bet. Returns None when someone else holds it."""
        token = self.clock()
        stale_before = token - self.timeout_ms

        async with self.session_factory() as session:
            result = await session.execute(
                update(Bet)
                .where(
                    Bet.tx == tx,
                    Bet.claimed.is_(False),
                    or_(Bet.claim_lock.is_(None), Bet.claim_lock < stale_before),
                )
                .values(claim_lock=token)
                .returning(Bet)
                .execution_options(synchronize_session=False)
            )
            bet = result.scalars().first()
            await session.commit()

        if bet is None:
            return None

        logger.debug(f"Acquired claim lock on {tx} (token={token})")
        return HeldLock(bet=bet, token=token)

    async def diagnose(self, tx: str) -> LockFailure:
        """Classify a failed acquire: missing bet, already claimed, or held."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(Bet.claimed, Bet.claim_lock).where(Bet.tx == tx)
            )
            row = result.first()

        if row is None:
            return LockFailure.NOT_FOUND
        if row.claimed:
            return LockFailure.ALREADY_CLAIMED
        return LockFailure.IN_PROGRESS

    async def release(self, tx: str, token: int) -> bool:
        """
        Clear the lock if this holder still owns it.

        A holder whose lock expired and was taken over cannot clear the new
        holder's lock. Returns True when a lock was cleared.
        """
        async with self.session_factory() as session:
            result = await session.execute(
                update(Bet)
                .where(Bet.tx == tx, Bet.claim_lock == token)
                .values(claim_lock=None)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            released = result.rowcount == 1

        if released:
            logger.debug(f"Released claim lock on {tx}")
        return released
