"""Database models module."""

from whisp.models.bet import BET_STATUSES, OUTCOMES, Bet
from whisp.models.nullifier import Nullifier
from whisp.models.pending_fee import PendingFee

__all__ = [
    "BET_STATUSES",
    "OUTCOMES",
    "Bet",
    "Nullifier",
    "PendingFee",
]
