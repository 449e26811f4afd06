"""
Payout Calculator

Parimutuel payout shared by the claim path, the claim status query and the
backup sweep. There is exactly one implementation of the formula:

    share          = bet_amount / winning_pool
    net_losing     = losing_pool * (1 - fee_rate)
    payout         = bet_amount + share * net_losing
    protocol_fee   = losing_pool * fee_rate * share

The winning pool includes the claimant's own stake. A winning pool of zero
returns the stake unchanged with no fee.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Union

Number = Union[Decimal, int, float, str]

ZERO = Decimal("0")
ONE = Decimal("1")


def _dec(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps floats at their shortest repr instead of the binary expansion
    return Decimal(str(value))


@dataclass(frozen=True)
class PoolTotals:
    """Sum of placed stakes per outcome for one market."""

    yes: Decimal = ZERO
    no: Decimal = ZERO

    def winning(self, result: str) -> Decimal:
        return self.yes if result == "yes" else self.no

    def losing(self, result: str) -> Decimal:
        return self.no if result == "yes" else self.yes


@dataclass(frozen=True)
class PayoutQuote:
    """Everything the pay and fee steps need for one winning bet."""

    bet_amount: Decimal
    winning_pool: Decimal
    losing_pool: Decimal
    fee_rate: Decimal
    share: Decimal
    payout: Decimal
    protocol_fee: Decimal


def calculate_share(bet_amount: Number, winning_pool: Number) -> Decimal:
    """Fraction of the winning pool owned by this bet."""
    winning = _dec(winning_pool)
    if winning == ZERO:
        return ONE
    return _dec(bet_amount) / winning


def calculate_claim_amount(
    bet_amount: Number,
    winning_pool: Number,
    losing_pool: Number,
    fee_rate: Number = Decimal("0.02"),
) -> Decimal:
    """Payout = stake + share of the losing pool net of the protocol fee."""
    stake = _dec(bet_amount)
    winning = _dec(winning_pool)
    if winning == ZERO:
        return stake

    share = stake / winning
    net_losing_pool = _dec(losing_pool) * (ONE - _dec(fee_rate))
    return stake + share * net_losing_pool


def calculate_protocol_fee(
    bet_amount: Number,
    winning_pool: Number,
    losing_pool: Number,
    fee_rate: Number = Decimal("0.02"),
) -> Decimal:
    """Treasury fee owed for this bet's slice of the losing pool."""
    winning = _dec(winning_pool)
    if winning == ZERO:
        return ZERO

    share = _dec(bet_amount) / winning
    return _dec(losing_pool) * _dec(fee_rate) * share


def quote_payout(
    bet_amount: Number,
    result: str,
    totals: PoolTotals,
    fee_rate: Number,
) -> PayoutQuote:
    """Quote payout and fee for a bet on the winning side of ``result``."""
    winning_pool = totals.winning(result)
    losing_pool = totals.losing(result)

    return PayoutQuote(
        bet_amount=_dec(bet_amount),
        winning_pool=winning_pool,
        losing_pool=losing_pool,
        fee_rate=_dec(fee_rate),
        share=calculate_share(bet_amount, winning_pool),
        payout=calculate_claim_amount(bet_amount, winning_pool, losing_pool, fee_rate),
        protocol_fee=calculate_protocol_fee(bet_amount, winning_pool, losing_pool, fee_rate),
    )
