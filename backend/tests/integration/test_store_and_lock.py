"""
Integration Tests: Bet Store, Claim Lock, Nullifier Registry

On-disk SQLite per test. Covers:
- insert-if-absent bets and fresh pool totals
- conditional pending -> won/lost transitions
- lock acquire, contention, expiry takeover and owner-guarded release
- nullifier insert-if-absent
"""

import asyncio
from decimal import Decimal

from whisp.services.claim_lock import ClaimLockManager, LockFailure


def test_create_is_insert_if_absent(harness) -> None:
    async def run() -> None:
        async with harness() as h:
            first = await h.place_bet("tx-1", amount="1.25")
            duplicate = await h.place_bet("tx-1", amount="99")
            stored = await h.services.bets.get("tx-1")

            assert first is not None
            assert duplicate is None
            assert stored.amount == Decimal("1.25")
            assert stored.status == "pending"
            assert stored.claimed is False
            assert stored.claim_lock is None

    asyncio.run(run())


def test_pool_totals_include_every_bet(harness) -> None:
    async def run() -> None:
        async with harness() as h:
            await h.place_bet("y1", outcome="yes", amount=60)
            await h.place_bet("y2", outcome="yes", amount=40, wallet="bob")
            await h.place_bet("n1", outcome="no", amount=300, wallet="carol")
            await h.place_bet("other", market_id="MKT-2", outcome="no", amount=7)

            totals = await h.services.bets.pool_totals("MKT-1")
            assert totals.yes == Decimal("100")
            assert totals.no == Decimal("300")

            await h.place_bet("n2", outcome="no", amount=100, wallet="dave")
            totals = await h.services.bets.pool_totals("MKT-1")
            assert totals.no == Decimal("400")

    asyncio.run(run())


def test_resolve_status_only_from_pending(harness) -> None:
    async def run() -> None:
        async with harness() as h:
            await h.place_bet("tx-1")
            bets = h.services.bets

            assert await bets.resolve_status("tx-1", "won")
            assert not await bets.resolve_status("tx-1", "lost")
            assert (await bets.get("tx-1")).status == "won"

    asyncio.run(run())


def test_delete_lost_only_touches_lost_bets(harness) -> None:
    async def run() -> None:
        async with harness() as h:
            await h.place_bet("lost-1")
            await h.place_bet("won-1")
            await h.place_bet("pending-1")
            await h.place_bet("bob-lost", wallet="bob")
            await h.services.bets.resolve_status("lost-1", "lost")
            await h.services.bets.resolve_status("won-1", "won")
            await h.services.bets.resolve_status("bob-lost", "lost")

            assert await h.services.bets.delete_lost("alice") == 1
            remaining = {b.tx for b in await h.services.bets.list_by_wallet("alice")}
            assert remaining == {"won-1", "pending-1"}
            assert await h.services.bets.get("bob-lost") is not None

    asyncio.run(run())


def test_lock_contention_and_expiry(harness) -> None:
    async def run() -> None:
        async with harness() as h:
            await h.place_bet("tx-1")
            locks = ClaimLockManager(h.session_factory, timeout_seconds=30, clock=h.clock)

            held = await locks.acquire("tx-1")
            assert held is not None
            assert held.bet.claim_lock == held.token

            h.clock.advance(seconds=29)
            assert await locks.acquire("tx-1") is None
            assert await locks.diagnose("tx-1") is LockFailure.IN_PROGRESS

            h.clock.advance(seconds=2)
            takeover = await locks.acquire("tx-1")
            assert takeover is not None

            # The expired holder cannot clear the new holder's lock
            assert not await locks.release("tx-1", held.token)
            assert (await h.services.bets.get("tx-1")).claim_lock == takeover.token

            assert await locks.release("tx-1", takeover.token)
            assert (await h.services.bets.get("tx-1")).claim_lock is None

    asyncio.run(run())


def test_lock_refused_for_missing_and_claimed_bets(harness) -> None:
    async def run() -> None:
        async with harness() as h:
            locks = ClaimLockManager(h.session_factory, timeout_seconds=30, clock=h.clock)
            assert await locks.acquire("nope") is None
            assert await locks.diagnose("nope") is LockFailure.NOT_FOUND

            await h.place_bet("tx-1")
            assert await h.services.bets.mark_claimed("tx-1")
            assert await locks.acquire("tx-1") is None
            assert await locks.diagnose("tx-1") is LockFailure.ALREADY_CLAIMED

            claimed = await h.services.bets.get("tx-1")
            assert claimed.claimed and claimed.status == "won"

    asyncio.run(run())


def test_concurrent_acquire_has_single_winner(harness) -> None:
    async def run() -> None:
        async with harness() as h:
            await h.place_bet("tx-1")
            locks = ClaimLockManager(h.session_factory, timeout_seconds=30, clock=h.clock)

            results = await asyncio.gather(*(locks.acquire("tx-1") for _ in range(5)))
            assert sum(1 for r in results if r is not None) == 1

    asyncio.run(run())


def test_nullifier_record_is_idempotent(harness) -> None:
    async def run() -> None:
        async with harness() as h:
            registry = h.services.nullifiers

            assert not await registry.is_used("null-1")
            assert await registry.record("null-1")
            assert not await registry.record("null-1")
            assert await registry.is_used("null-1")

    asyncio.run(run())
