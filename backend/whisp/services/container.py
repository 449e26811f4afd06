"""Wiring of the settlement services for one process."""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from whisp.config import Settings
from whisp.database import SessionFactory, close_db, create_engine, create_session_factory, init_db
from whisp.services.bet_store import BetStore
from whisp.services.claim_lock import ClaimLockManager
from whisp.services.claims import ClaimCoordinator
from whisp.services.fee_queue import TreasuryFeeQueue
from whisp.services.nullifiers import NullifierRegistry
from whisp.services.oracle import JupiterMarketOracle, MarketOracle, OracleConfig
from whisp.services.payment_rail import RailFactory, cached_rail_factory
from whisp.services.settler import PayoutSettler
from whisp.services.sweep import SettlementSweep
from whisp.utils import Clock, now_ms


@dataclass
class SettlementServices:
    settings: Settings
    rail_factory: RailFactory
    bets: BetStore
    nullifiers: NullifierRegistry
    fees: TreasuryFeeQueue
    settler: PayoutSettler
    claims: ClaimCoordinator
    sweep: SettlementSweep


def build_services(
    settings: Settings,
    session_factory: SessionFactory,
    oracle: MarketOracle,
    rail_factory: Optional[RailFactory] = None,
    clock: Clock = now_ms,
) -> SettlementServices:
    """Build every service over one session factory, oracle and rail."""
    rail_factory = rail_factory or cached_rail_factory(settings)

    bets = BetStore(session_factory, clock=clock)
    nullifiers = NullifierRegistry(session_factory, clock=clock)
    fees = TreasuryFeeQueue(
        session_factory,
        treasury_address=settings.treasury_address,
        max_retries=settings.fees.max_retries,
        batch_size=settings.fees.batch_size,
        lock_timeout_seconds=settings.fees.lock_timeout_seconds,
        clock=clock,
    )
    settler = PayoutSettler(
        bets=bets,
        nullifiers=nullifiers,
        fees=fees,
        rail_factory=rail_factory,
        treasury_address=settings.treasury_address,
        protocol_fee=settings.claims.protocol_fee,
    )

    # Claim path and sweep use different lock timeouts on the same column
    claim_locks = ClaimLockManager(session_factory, settings.claims.lock_timeout_seconds, clock=clock)
    sweep_locks = ClaimLockManager(session_factory, settings.sweep.lock_timeout_seconds, clock=clock)

    return SettlementServices(
        settings=settings,
        rail_factory=rail_factory,
        bets=bets,
        nullifiers=nullifiers,
        fees=fees,
        settler=settler,
        claims=ClaimCoordinator(bets, claim_locks, nullifiers, oracle, settler),
        sweep=SettlementSweep(bets, sweep_locks, oracle, settler, config=settings.sweep, clock=clock),
    )


@asynccontextmanager
async def open_services(
    settings: Settings,
    oracle: Optional[MarketOracle] = None,
    rail_factory: Optional[RailFactory] = None,
) -> AsyncIterator[SettlementServices]:
    """
    Engine, oracle client and services for one worker run.

    Usage:
        async with open_services(settings) as services:
            await services.sweep.run_once()
    """
    engine = create_engine(settings.database_url)
    owned_oracle: Optional[JupiterMarketOracle] = None
    try:
        await init_db(engine)
        if oracle is None:
            owned_oracle = JupiterMarketOracle(OracleConfig(base_url=settings.oracle_base_url))
            await owned_oracle.open()
            oracle = owned_oracle

        yield build_services(
            settings,
            create_session_factory(engine),
            oracle,
            rail_factory=rail_factory,
        )
    finally:
        if owned_oracle is not None:
            await owned_oracle.close()
        await close_db(engine)
