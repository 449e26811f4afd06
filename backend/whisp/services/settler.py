"""
Payout execution shared by the claim path and the backup sweep.

Runs the post-verification steps for one locked, winning bet:

1. Computed: fresh pool totals and the parimutuel quote
2. Paid: payout from the vault to the bettor (failure aborts, no mutation)
3. FeeSettled: protocol fee to the treasury (failure is queued, not fatal)
4. Finalized: status=won, claimed=true, lock cleared, then the nullifier

The caller owns the lock and releases it on every exit path.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from whisp.exceptions import ClaimFailureReason, ClaimRejected, PaymentFailed
from whisp.models import Bet
from whisp.services.bet_store import BetStore
from whisp.services.fee_queue import TreasuryFeeQueue
from whisp.services.nullifiers import NullifierRegistry
from whisp.services.payment_rail import RailFactory
from whisp.services.payout import PayoutQuote, quote_payout

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SettlementReceipt:
    """What happened when a bet was paid."""

    bet_tx: str
    quote: PayoutQuote
    payout_tx: Optional[str]
    fee_tx: Optional[str]
    fee_queued: bool
    nullifier_recorded: bool

    @property
    def payout(self) -> Decimal:
        return self.quote.payout

    @property
    def fee(self) -> Decimal:
        return self.quote.protocol_fee


class PayoutSettler:
    """Computes, pays, collects the fee and finalizes one winning bet."""

    def __init__(
        self,
        bets: BetStore,
        nullifiers: NullifierRegistry,
        fees: TreasuryFeeQueue,
        rail_factory: RailFactory,
        treasury_address: str,
        protocol_fee: float,
    ):
        self.bets = bets
        self.nullifiers = nullifiers
        self.fees = fees
        self.rail_factory = rail_factory
        self.treasury_address = treasury_address
        self.protocol_fee = Decimal(str(protocol_fee))

    async def quote(self, bet: Bet, result: str) -> PayoutQuote:
        """Quote against pool totals read now, never a cached snapshot."""
        totals = await self.bets.pool_totals(bet.market_id)
        return quote_payout(bet.amount, result, totals, self.protocol_fee)

    async def settle(self, bet: Bet, result: str, nullifier: Optional[str]) -> SettlementReceipt:
        """Pay a locked bet whose outcome matches ``result``."""
        quote = await self.quote(bet, result)

        if not bet.asset:
            raise ClaimRejected(
                ClaimFailureReason.MISSING_ASSET,
                "Bet missing asset address",
            )

        # Raises ConfigurationError before any money moves
        rail = self.rail_factory()

        payout = await rail.transfer(bet.wallet, quote.payout, bet.asset)
        if not payout.success:
            logger.error(f"Payout failed for {bet.tx}: {payout.error}")
            raise PaymentFailed(f"Payout failed: {payout.error}")

        logger.info(f"Paid {quote.payout} {bet.asset} to {bet.wallet} for {bet.tx} ({payout.signature})")

        fee_tx, fee_queued = await self._collect_fee(bet, quote, rail)

        finalized = await self.bets.mark_claimed(bet.tx)
        if not finalized:
            # Lock precondition excludes claimed rows, so this means the row changed under us
            logger.error(f"Bet {bet.tx} paid but could not be marked claimed")

        nullifier_recorded = False
        if nullifier:
            # The bet is already paid and claimed; the claimed flag still blocks a repeat
            try:
                nullifier_recorded = await self.nullifiers.record(nullifier)
            except Exception:
                logger.exception(f"Failed to record nullifier for paid bet {bet.tx}")

        return SettlementReceipt(
            bet_tx=bet.tx,
            quote=quote,
            payout_tx=payout.signature,
            fee_tx=fee_tx,
            fee_queued=fee_queued,
            nullifier_recorded=nullifier_recorded,
        )

    async def _collect_fee(self, bet: Bet, quote: PayoutQuote, rail) -> tuple[Optional[str], bool]:
        """Move the protocol fee to the treasury; queue it on any failure."""
        if quote.protocol_fee <= 0:
            return None, False

        logger.info(f"[Treasury Fee] Transferring {quote.protocol_fee} to treasury for {bet.tx}")
        try:
            transfer = await rail.transfer(self.treasury_address, quote.protocol_fee, bet.asset)
        except Exception as e:
            logger.exception(f"[Treasury Fee] Transfer raised for {bet.tx}")
            return None, await self._queue_fee(bet, quote, str(e) or e.__class__.__name__)

        if not transfer.success:
            return None, await self._queue_fee(bet, quote, transfer.error or "Unknown error")

        logger.info(f"[Treasury Fee] Success: {transfer.signature}")
        return transfer.signature, False

    async def _queue_fee(self, bet: Bet, quote: PayoutQuote, error: str) -> bool:
        """Queue the fee for retry. The bettor is already paid, so a queue failure only logs."""
        try:
            await self.fees.enqueue(bet.tx, quote.protocol_fee, bet.asset, error)
            return True
        except Exception:
            logger.exception(
                f"[Treasury Fee] Could not queue {quote.protocol_fee} {bet.asset} for {bet.tx}; "
                f"fee owed needs manual recovery"
            )
            return False
