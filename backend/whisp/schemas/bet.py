"""Bet schemas."""

from decimal import Decimal
from typing import Literal, Optional

from pydantic import Field, field_serializer

from whisp.commitments import BetCommitment
from whisp.schemas.common import BaseSchema


class BetCreate(BaseSchema):
    """A placed wager whose transfer into the vault already succeeded."""

    tx: str = Field(min_length=1, max_length=128)
    market_id: str = Field(min_length=1, max_length=128)
    market_title: str = ""
    outcome: Literal["yes", "no"]
    amount: Decimal = Field(gt=0)
    wallet: str = Field(min_length=1, max_length=64)
    asset: Optional[str] = Field(default=None, alias="mint")
    timestamp: Optional[int] = None
    odds: Optional[float] = None
    potential_payout: Optional[float] = None
    commitment: Optional[BetCommitment] = None


class BetResponse(BaseSchema):
    tx: str
    market_id: str
    market_title: str
    outcome: str
    amount: Decimal
    wallet: str
    asset: Optional[str] = Field(default=None, serialization_alias="mint")
    timestamp: int = Field(validation_alias="placed_at")
    status: str
    claimed: bool
    odds: Optional[float] = None
    potential_payout: Optional[float] = None
    commitment: Optional[dict] = None

    @field_serializer("amount")
    def serialize_amount(self, amount: Decimal) -> float:
        return float(amount)


class BetListResponse(BaseSchema):
    bets: list[BetResponse]
    count: int


class ClearLostResponse(BaseSchema):
    success: bool = True
    deleted: int
