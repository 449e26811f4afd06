"""Nullifier Registry: append-only set of consumed claim tokens."""

import logging

from sqlalchemy import select

from whisp.database import SessionFactory
from whisp.database.dialects import insert_for
from whisp.models import Nullifier
from whisp.utils import Clock, now_ms

logger = logging.getLogger(__name__)


class NullifierRegistry:
    """
    Unique-key registry of nullifiers.

    Secondary defense only: the claimed flag guarded by the lock precondition
    is what prevents a second payout.
    """

    def __init__(self, session_factory: SessionFactory, clock: Clock = now_ms):
        self.session_factory = session_factory
        self.clock = clock

    async def is_used(self, nullifier: str) -> bool:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Nullifier.nullifier).where(Nullifier.nullifier == nullifier)
            )
            return result.first() is not None

    async def record(self, nullifier: str) -> bool:
        """Insert-if-absent. Returns False for a duplicate; never raises on conflict."""
        async with self.session_factory() as session:
            stmt = (
                insert_for(session, Nullifier.__table__)
                .values(nullifier=nullifier, used_at=self.clock())
                .on_conflict_do_nothing(index_elements=["nullifier"])
            )
            result = await session.execute(stmt)
            await session.commit()
            inserted = result.rowcount == 1

        if not inserted:
            logger.info(f"Nullifier {nullifier[:16]}... already recorded")
        return inserted
