"""Unit tests for bet commitments and claim proofs."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from whisp.commitments import (
    ClaimProof,
    create_commitment_memo,
    generate_bet_commitment,
    generate_claim_proof,
)


def test_nullifier_is_deterministic_per_wallet_market_and_time() -> None:
    first = generate_bet_commitment("MKT-1", "yes", Decimal("1.5"), "alice", timestamp=123)
    second = generate_bet_commitment("MKT-1", "yes", Decimal("1.5"), "alice", timestamp=123)
    other = generate_bet_commitment("MKT-1", "yes", Decimal("1.5"), "bob", timestamp=123)

    assert first.nullifier == second.nullifier
    assert first.nullifier != other.nullifier
    # Salted, so the hash differs even for identical inputs
    assert first.commitment_hash != second.commitment_hash
    assert len(first.commitment_hash) == 64


def test_claim_proof_carries_nullifier_and_claimability() -> None:
    commitment = generate_bet_commitment("MKT-1", "no", Decimal("2"), "alice", timestamp=1)

    winning = generate_claim_proof("MKT-1", "no", Decimal("2"), "alice", commitment, "no")
    losing = generate_claim_proof("MKT-1", "no", Decimal("2"), "alice", commitment, "yes")

    assert winning.nullifier == commitment.nullifier
    assert winning.claimable
    assert not losing.claimable
    assert winning.signature != losing.signature


def test_memo_format() -> None:
    commitment = generate_bet_commitment("MKT-1", "yes", Decimal("1"), "alice", timestamp=1)
    memo = create_commitment_memo(commitment)

    prefix, hash_part, nullifier_part = memo.split(":")
    assert prefix == "WM"
    assert hash_part == commitment.commitment_hash[:16]
    assert nullifier_part == commitment.nullifier[:16]


def test_proof_accepts_camel_case_payload() -> None:
    proof = ClaimProof.model_validate(
        {
            "commitmentHash": "abc",
            "nullifier": "n-1",
            "marketId": "MKT-1",
            "outcome": "yes",
            "amount": 10,
            "signature": "sig",
            "claimable": True,
        }
    )
    assert proof.market_id == "MKT-1"
    assert proof.amount == Decimal("10")


@pytest.mark.parametrize(
    "payload",
    [
        {"nullifier": "n", "marketId": "M", "outcome": "maybe", "amount": 1},
        {"nullifier": "", "marketId": "M", "outcome": "yes", "amount": 1},
        {"nullifier": "n", "marketId": "M", "outcome": "yes", "amount": 0},
        {"nullifier": "n", "outcome": "yes", "amount": 1},
    ],
)
def test_proof_rejects_malformed_payloads(payload: dict) -> None:
    with pytest.raises(ValidationError):
        ClaimProof.model_validate(payload)
