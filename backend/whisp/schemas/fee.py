"""Treasury fee retry schemas."""

from decimal import Decimal
from typing import Optional

from pydantic import field_serializer

from whisp.schemas.common import BaseSchema


class FeeRetryResultSchema(BaseSchema):
    bet_tx: str
    success: bool
    signature: Optional[str] = None
    error: Optional[str] = None


class FeeRetryResponse(BaseSchema):
    success: bool = True
    processed: int
    successful: int = 0
    failed: int = 0
    results: list[FeeRetryResultSchema] = []
    message: Optional[str] = None


class FeeBucketSchema(BaseSchema):
    count: int
    total: Decimal

    @field_serializer("total")
    def serialize_total(self, total: Decimal) -> float:
        return float(total)


class FeeStatusResponse(BaseSchema):
    pending: FeeBucketSchema
    failed: FeeBucketSchema
    successful: FeeBucketSchema
