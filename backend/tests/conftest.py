"""Shared fixtures: on-disk SQLite store, fake oracle, paper rail, controllable clock."""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Optional

import pytest

from whisp.config import Settings
from whisp.database import SessionFactory, close_db, create_engine, create_session_factory, init_db
from whisp.exceptions import OracleError
from whisp.services.container import SettlementServices, build_services
from whisp.services.oracle import MarketResolution
from whisp.services.payment_rail import PaperPaymentRail

VAULT = "VaultWallet1111111111111111111111111111111"
TREASURY = "TreasuryWallet111111111111111111111111111"
ASSET = "So11111111111111111111111111111111111111112"

START_MS = 1_760_000_000_000


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, start: int = START_MS):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float = 0, hours: float = 0) -> None:
        self.now += int(seconds * 1000 + hours * 3600 * 1000)


class StaticMarketOracle:
    """Oracle answering from a dict; unknown markets are open."""

    def __init__(self):
        self.markets: dict[str, MarketResolution] = {}
        self.failing: set[str] = set()
        self.calls: list[str] = []

    def resolve(self, market_id: str, result: Optional[str]) -> None:
        self.markets[market_id] = MarketResolution(
            market_id=market_id,
            status="closed",
            result=result,
            raw_result=result or "void",
        )

    async def get_market(self, market_id: str) -> MarketResolution:
        self.calls.append(market_id)
        if market_id in self.failing:
            raise OracleError(f"Oracle unavailable for {market_id}")
        return self.markets.get(market_id) or MarketResolution(market_id=market_id, status="open")


def make_settings(db_path: Path, **overrides) -> Settings:
    values = dict(
        database_url=f"sqlite+aiosqlite:///{db_path}",
        vault_address=VAULT,
        treasury_address=TREASURY,
        paper_mode=True,
        logfire_token="",
        cron_secret="",
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


@dataclass
class Harness:
    settings: Settings
    session_factory: SessionFactory
    services: SettlementServices
    oracle: StaticMarketOracle
    rail: PaperPaymentRail
    clock: FakeClock

    async def place_bet(
        self,
        tx: str,
        market_id: str = "MKT-1",
        outcome: str = "yes",
        amount: Decimal | int | str = 100,
        wallet: str = "alice",
        asset: Optional[str] = ASSET,
        nullifier: Optional[str] = None,
    ):
        commitment = None
        if nullifier is not None:
            commitment = {"commitmentHash": f"hash-{tx}", "nullifier": nullifier, "timestamp": self.clock()}
        return await self.services.bets.create(
            tx=tx,
            market_id=market_id,
            outcome=outcome,
            amount=Decimal(str(amount)),
            wallet=wallet,
            asset=asset,
            commitment=commitment,
        )


@asynccontextmanager
async def open_harness(db_path: Path, **settings_overrides):
    settings = make_settings(db_path, **settings_overrides)
    engine = create_engine(settings.database_url)
    await init_db(engine)

    clock = FakeClock()
    oracle = StaticMarketOracle()
    rail = PaperPaymentRail()
    session_factory = create_session_factory(engine)
    services = build_services(settings, session_factory, oracle, rail_factory=lambda: rail, clock=clock)

    try:
        yield Harness(settings, session_factory, services, oracle, rail, clock)
    finally:
        await close_db(engine)


@pytest.fixture
def harness(tmp_path):
    """Factory: ``async with harness() as h: ...`` inside one asyncio.run."""

    def factory(**settings_overrides):
        return open_harness(tmp_path / "whisp.db", **settings_overrides)

    return factory


@dataclass
class ApiHarness:
    client: "TestClient"
    settings: Settings
    oracle: StaticMarketOracle
    rail: PaperPaymentRail
    clock: FakeClock


@pytest.fixture
def api(tmp_path):
    """Running app over its own SQLite file, with fake oracle and paper rail."""
    from fastapi.testclient import TestClient

    from whisp.main import create_app

    settings = make_settings(tmp_path / "api.db", cron_secret="s3cret")
    oracle = StaticMarketOracle()
    rail = PaperPaymentRail()
    clock = FakeClock()

    app = create_app(settings=settings, oracle=oracle, rail_factory=lambda: rail, clock=clock)
    with TestClient(app) as client:
        yield ApiHarness(client, settings, oracle, rail, clock)
