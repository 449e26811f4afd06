"""
BetStore

Row-level access to the bets table. Each method is one statement in its own
short session; no method relies on a multi-statement transaction.

Methods:
- create(...): Insert a placed wager (insert-if-absent)
- get(tx) / list_by_wallet(wallet) / list_pending() / list_by_market(id)
- pool_totals(market_id): Stake sums per outcome, recomputed on every call
- resolve_status(tx, status): Conditional pending -> won|lost transition
- mark_claimed(tx): Final won/claimed write, clears the claim lock
- list_stale_unclaimed(...): Won, unclaimed, unlocked bets past a cutoff
- delete_lost(wallet): Remove resolved, non-claimable bets on request
"""

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import delete, func, or_, select, update

from whisp.database import SessionFactory
from whisp.database.dialects import insert_for
from whisp.models import Bet
from whisp.services.payout import PoolTotals
from whisp.utils import Clock, now_ms

logger = logging.getLogger(__name__)


class BetStore:
    """Durable record of every bet."""

    def __init__(self, session_factory: SessionFactory, clock: Clock = now_ms):
        self.session_factory = session_factory
        self.clock = clock

    async def create(
        self,
        tx: str,
        market_id: str,
        outcome: str,
        amount: Decimal,
        wallet: str,
        asset: Optional[str] = None,
        market_title: str = "",
        placed_at: Optional[int] = None,
        commitment: Optional[dict] = None,
        odds: Optional[float] = None,
        potential_payout: Optional[float] = None,
    ) -> Optional[Bet]:
        """
        Record a wager whose transfer succeeded.

        Returns the stored bet, or None if a bet with this tx already exists.
        """
        async with self.session_factory() as session:
            stmt = (
                insert_for(session, Bet)
                .values(
                    tx=tx,
                    market_id=market_id,
                    market_title=market_title,
                    outcome=outcome,
                    amount=amount,
                    wallet=wallet,
                    asset=asset,
                    placed_at=placed_at if placed_at is not None else self.clock(),
                    status="pending",
                    claimed=False,
                    claim_lock=None,
                    commitment=commitment,
                    odds=odds,
                    potential_payout=potential_payout,
                )
                .on_conflict_do_nothing(index_elements=["tx"])
                .returning(Bet)
            )
            result = await session.execute(stmt)
            bet = result.scalars().first()
            await session.commit()

        if bet is None:
            logger.info(f"Bet {tx} already recorded, skipping insert")
        else:
            logger.info(f"Recorded bet {tx}: {outcome} {amount} on {market_id}")
        return bet

    async def get(self, tx: str) -> Optional[Bet]:
        """Get a bet by its transfer receipt."""
        async with self.session_factory() as session:
            result = await session.execute(select(Bet).where(Bet.tx == tx))
            return result.scalar_one_or_none()

    async def list_by_wallet(self, wallet: str) -> list[Bet]:
        """All bets of one bettor, newest first."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(Bet).where(Bet.wallet == wallet).order_by(Bet.placed_at.desc())
            )
            return list(result.scalars().all())

    async def list_pending(self) -> list[Bet]:
        """Bets whose market outcome has not been observed yet."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(Bet).where(Bet.status == "pending").order_by(Bet.placed_at)
            )
            return list(result.scalars().all())

    async def list_by_market(self, market_id: str) -> list[Bet]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Bet).where(Bet.market_id == market_id).order_by(Bet.placed_at)
            )
            return list(result.scalars().all())

    async def pool_totals(self, market_id: str) -> PoolTotals:
        """
        Sum of stakes per outcome over every bet in the market.

        Includes unclaimed and unsettled bets. Never cached: new bets may land
        between two settlement decisions.
        """
        async with self.session_factory() as session:
            result = await session.execute(
                select(Bet.outcome, func.sum(Bet.amount))
                .where(Bet.market_id == market_id)
                .group_by(Bet.outcome)
            )
            rows = result.all()

        totals = {"yes": Decimal("0"), "no": Decimal("0")}
        for outcome, total in rows:
            if outcome in totals and total is not None:
                totals[outcome] = Decimal(str(total))
        return PoolTotals(yes=totals["yes"], no=totals["no"])

    async def resolve_status(self, tx: str, status: str) -> bool:
        """
        Move a pending bet to won or lost.

        Returns True only for the call that performed the transition; a bet
        never leaves won or lost once set.
        """
        if status not in ("won", "lost"):
            raise ValueError(f"Invalid resolution status: {status}")

        async with self.session_factory() as session:
            result = await session.execute(
                update(Bet)
                .where(Bet.tx == tx, Bet.status == "pending")
                .values(status=status)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount == 1

    async def mark_claimed(self, tx: str) -> bool:
        """Finalize a paid bet: status=won, claimed=true, lock cleared."""
        async with self.session_factory() as session:
            result = await session.execute(
                update(Bet)
                .where(Bet.tx == tx, Bet.claimed.is_(False), Bet.status != "lost")
                .values(status="won", claimed=True, claim_lock=None)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount == 1

    async def list_stale_unclaimed(
        self,
        placed_before: int,
        lock_expired_before: int,
    ) -> list[Bet]:
        """Won bets nobody claimed, placed before the cutoff and not locked."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(Bet)
                .where(
                    Bet.status == "won",
                    Bet.claimed.is_(False),
                    Bet.placed_at < placed_before,
                    or_(Bet.claim_lock.is_(None), Bet.claim_lock < lock_expired_before),
                )
                .order_by(Bet.placed_at)
            )
            return list(result.scalars().all())

    async def delete_lost(self, wallet: str) -> int:
        """Delete a bettor's lost bets. Won or pending bets are never touched."""
        async with self.session_factory() as session:
            result = await session.execute(
                delete(Bet)
                .where(Bet.wallet == wallet, Bet.status == "lost", Bet.claimed.is_(False))
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            deleted = result.rowcount or 0

        logger.info(f"Cleared {deleted} lost bets for {wallet}")
        return deleted
