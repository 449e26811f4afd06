"""
Claim Coordinator

Orchestrates one user-initiated claim end to end:

    Requested -> Locked -> Verified -> Computed -> Paid -> FeeSettled -> Finalized

with early exits as ClaimRejected / ClaimContention / PaymentFailed /
ConfigurationError. Verification happens only after the lock is held, and the
lock is released on every exit path.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from whisp.commitments import ClaimProof
from whisp.exceptions import (
    ClaimContention,
    ClaimError,
    ClaimFailureReason,
    ClaimRejected,
    OracleError,
)
from whisp.models import Bet
from whisp.services.bet_store import BetStore
from whisp.services.claim_lock import ClaimLockManager, LockFailure
from whisp.services.nullifiers import NullifierRegistry
from whisp.services.oracle import MarketOracle, MarketResolution
from whisp.services.settler import PayoutSettler

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClaimReceipt:
    """A successful claim."""

    bet_tx: str
    payout: Decimal
    payout_tx: Optional[str]
    fee: Decimal
    fee_queued: bool
    market_result: str

    @property
    def message(self) -> str:
        return f"Claimed {self.payout:.2f} tokens!"


@dataclass(frozen=True)
class ClaimStatus:
    """Read-only view of whether a bet can be claimed right now."""

    claimable: bool
    reason: Optional[str] = None
    status: Optional[str] = None
    estimated_payout: Optional[Decimal] = None
    market_result: Optional[str] = None


class ClaimCoordinator:
    """Runs claims submitted by bettors."""

    def __init__(
        self,
        bets: BetStore,
        locks: ClaimLockManager,
        nullifiers: NullifierRegistry,
        oracle: MarketOracle,
        settler: PayoutSettler,
    ):
        self.bets = bets
        self.locks = locks
        self.nullifiers = nullifiers
        self.oracle = oracle
        self.settler = settler

    async def submit_claim(self, proof: ClaimProof, bet_tx: str, wallet: str) -> ClaimReceipt:
        """
        Claim a winning bet.

        Process:
        1. Acquire the claim lock (or explain why not)
        2. Verify ownership, bet state, nullifier, market result and proof
        3. Compute, pay, settle the fee and finalize via the settler
        4. Release the lock whatever happened
        """
        held = await self.locks.acquire(bet_tx)
        if held is None:
            raise await self._lock_failure(bet_tx)

        try:
            result = await self._verify(held.bet, proof, wallet)
            receipt = await self.settler.settle(held.bet, result, proof.nullifier)

            logger.info(f"Claim complete for {bet_tx}: paid {receipt.payout} ({receipt.payout_tx})")
            return ClaimReceipt(
                bet_tx=bet_tx,
                payout=receipt.payout,
                payout_tx=receipt.payout_tx,
                fee=receipt.fee,
                fee_queued=receipt.fee_queued,
                market_result=result,
            )

        except ClaimError as e:
            logger.info(f"Claim for {bet_tx} ended: {e.reason.value} - {e.message}")
            raise
        except Exception as e:
            logger.exception(f"Claim error for {bet_tx}")
            raise ClaimError(
                ClaimFailureReason.INTERNAL_ERROR,
                "Internal server error",
                status_code=500,
            ) from e
        finally:
            await self._release(bet_tx, held.token)

    async def claim_status(self, bet_tx: str, wallet: str) -> ClaimStatus:
        """Whether a bet is claimable, with an estimated payout when it is."""
        bet = await self.bets.get(bet_tx)
        if bet is None:
            return ClaimStatus(claimable=False, reason="Bet not found")
        if bet.wallet != wallet:
            return ClaimStatus(claimable=False, reason="Not your bet")
        if bet.claimed:
            return ClaimStatus(claimable=False, reason="Already claimed", status=bet.status)
        if bet.status == "lost":
            return ClaimStatus(claimable=False, reason="Bet lost", status="lost")

        market = await self.oracle.get_market(bet.market_id)
        if market.status != "closed":
            return ClaimStatus(claimable=False, reason="Market not settled", status="pending")
        if market.result is None:
            return ClaimStatus(claimable=False, reason="Market has no valid result", status="pending")

        if bet.outcome != market.result:
            return ClaimStatus(
                claimable=False,
                reason="Bet lost",
                status="lost",
                market_result=market.result,
            )

        quote = await self.settler.quote(bet, market.result)
        return ClaimStatus(
            claimable=True,
            status="won",
            estimated_payout=quote.payout,
            market_result=market.result,
        )

    async def _lock_failure(self, bet_tx: str) -> ClaimError:
        failure = await self.locks.diagnose(bet_tx)
        if failure is LockFailure.NOT_FOUND:
            return ClaimRejected(ClaimFailureReason.NOT_FOUND, "Bet not found", status_code=404)
        if failure is LockFailure.ALREADY_CLAIMED:
            return ClaimRejected(ClaimFailureReason.ALREADY_CLAIMED, "Already claimed")
        logger.info(f"Claim lock on {bet_tx} is held, asking caller to retry")
        return ClaimContention()

    async def _verify(self, bet: Bet, proof: ClaimProof, wallet: str) -> str:
        """Check the locked bet against the caller and the oracle. Returns the market result."""
        if bet.wallet != wallet:
            raise ClaimRejected(ClaimFailureReason.NOT_OWNER, "Not your bet", status_code=403)

        if bet.status == "lost":
            raise ClaimRejected(ClaimFailureReason.BET_LOST, "Bet was lost - nothing to claim")

        if await self.nullifiers.is_used(proof.nullifier):
            raise ClaimRejected(
                ClaimFailureReason.NULLIFIER_USED,
                "Nullifier already used - possible double claim attempt",
            )

        market = await self._fetch_market(bet.market_id)
        if market.status != "closed":
            raise ClaimRejected(ClaimFailureReason.MARKET_NOT_SETTLED, "Market not yet settled")
        if market.result is None:
            raise ClaimRejected(ClaimFailureReason.INVALID_RESULT, "Market has no valid result")

        if proof.outcome != bet.outcome or proof.market_id != bet.market_id:
            raise ClaimRejected(ClaimFailureReason.PROOF_MISMATCH, "Proof outcome mismatch")

        if proof.outcome != market.result:
            if await self.bets.resolve_status(bet.tx, "lost"):
                logger.info(f"Bet {bet.tx} marked lost (result {market.result})")
            raise ClaimRejected(
                ClaimFailureReason.OUTCOME_LOST,
                "Your bet lost - outcome did not match result",
            )

        return market.result

    async def _fetch_market(self, market_id: str) -> MarketResolution:
        try:
            return await self.oracle.get_market(market_id)
        except OracleError as e:
            logger.error(f"Oracle lookup failed for {market_id}: {e}")
            raise ClaimError(
                ClaimFailureReason.INTERNAL_ERROR,
                "Failed to fetch market result",
                status_code=502,
            ) from e

    async def _release(self, bet_tx: str, token: int) -> None:
        try:
            await self.locks.release(bet_tx, token)
        except Exception:
            # The lock still expires on its own after the timeout
            logger.exception(f"Failed to release claim lock on {bet_tx}")
