"""Claim request and response schemas."""

from decimal import Decimal
from typing import Literal, Optional

from pydantic import Field

from whisp.commitments import ClaimProof
from whisp.schemas.common import BaseSchema


class ClaimRequest(BaseSchema):
    proof: ClaimProof
    bet_tx: str = Field(min_length=1)
    wallet_address: str = Field(min_length=1)


class ClaimResponse(BaseSchema):
    success: bool = True
    payout: float
    payout_tx: Optional[str] = None
    message: str
    model: Literal["parimutuel"] = "parimutuel"
    fee_queued: bool = False


class ClaimStatusResponse(BaseSchema):
    claimable: bool
    reason: Optional[str] = None
    status: Optional[str] = None
    estimated_payout: Optional[float] = None
    market_result: Optional[str] = None
    model: Optional[Literal["parimutuel"]] = None

    @classmethod
    def from_status(cls, status) -> "ClaimStatusResponse":
        payout: Optional[Decimal] = status.estimated_payout
        return cls(
            claimable=status.claimable,
            reason=status.reason,
            status=status.status,
            estimated_payout=float(payout) if payout is not None else None,
            market_result=status.market_result,
            model="parimutuel" if status.claimable else None,
        )
