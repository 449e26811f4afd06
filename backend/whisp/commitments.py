"""
Bet commitments and claim proofs.

A commitment hides a bet's details behind a hash stored with the wager
transfer; its nullifier is the single-use token consumed on the first
successful claim.

    commitment_hash = H(market_id : outcome : amount : salt)
    nullifier       = H("nullifier" : wallet : market_id : timestamp)
"""

import hashlib
import secrets
from decimal import Decimal
from typing import Literal

from pydantic import Field

from whisp.schemas.common import BaseSchema
from whisp.utils import now_ms

MEMO_PREFIX = "WM:"


class BetCommitment(BaseSchema):
    commitment_hash: str
    nullifier: str
    timestamp: int


class ClaimProof(BaseSchema):
    """Proof a bettor submits to claim a winning bet."""

    commitment_hash: str = ""
    nullifier: str = Field(min_length=1)
    market_id: str
    outcome: Literal["yes", "no"]
    amount: Decimal = Field(gt=0)
    signature: str = ""
    claimable: bool = True


def _hash(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def generate_bet_commitment(
    market_id: str,
    outcome: str,
    amount: Decimal,
    wallet: str,
    timestamp: int | None = None,
) -> BetCommitment:
    """Commitment and nullifier for a new wager."""
    timestamp = timestamp if timestamp is not None else now_ms()
    salt = f"{wallet}-{timestamp}-{secrets.token_hex(8)}"

    return BetCommitment(
        commitment_hash=_hash(f"{market_id}:{outcome}:{amount}:{salt}"),
        nullifier=_hash(f"nullifier:{wallet}:{market_id}:{timestamp}"),
        timestamp=timestamp,
    )


def generate_claim_proof(
    market_id: str,
    outcome: str,
    amount: Decimal,
    wallet: str,
    commitment: BetCommitment,
    market_result: str,
) -> ClaimProof:
    """Signed attestation that a bet backs a claim against ``market_result``."""
    return ClaimProof(
        commitment_hash=commitment.commitment_hash,
        nullifier=commitment.nullifier,
        market_id=market_id,
        outcome=outcome,
        amount=amount,
        signature=_hash(f"claim:{market_id}:{outcome}:{market_result}:{wallet}"),
        claimable=outcome == market_result,
    )


def create_commitment_memo(commitment: BetCommitment) -> str:
    """Compact on-chain memo: first 16 chars of the hash and of the nullifier."""
    return f"{MEMO_PREFIX}{commitment.commitment_hash[:16]}:{commitment.nullifier[:16]}"
