"""
API Routes: Treasury Fees

POST /api/retry-fees - Retry queued treasury fee transfers (cron-callable)
GET /api/retry-fees - Pending, exhausted and settled fee totals
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse

from whisp.api.dependencies import get_app_settings, get_services
from whisp.config import Settings
from whisp.schemas.fee import (
    FeeBucketSchema,
    FeeRetryResponse,
    FeeRetryResultSchema,
    FeeStatusResponse,
)
from whisp.services.container import SettlementServices

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/retry-fees", tags=["Fees"])


@router.post("", response_model=FeeRetryResponse, response_model_exclude_none=True)
async def retry_fees(
    authorization: Optional[str] = Header(default=None),
    services: SettlementServices = Depends(get_services),
    settings: Settings = Depends(get_app_settings),
):
    if settings.cron_secret and authorization != f"Bearer {settings.cron_secret}":
        return JSONResponse(status_code=401, content={"error": "Unauthorized"})

    report = await services.fees.process_pending(services.rail_factory)
    if report.processed == 0:
        return FeeRetryResponse(processed=0, message="No pending fees to process")

    logger.info(f"Fee retry: {report.successful}/{report.processed} succeeded")
    return FeeRetryResponse(
        processed=report.processed,
        successful=report.successful,
        failed=report.failed,
        results=[
            FeeRetryResultSchema(
                bet_tx=r.bet_tx,
                success=r.success,
                signature=r.signature,
                error=r.error,
            )
            for r in report.results
        ],
    )


@router.get("", response_model=FeeStatusResponse)
async def fee_status(services: SettlementServices = Depends(get_services)) -> FeeStatusResponse:
    summary = await services.fees.summary()
    return FeeStatusResponse(
        pending=FeeBucketSchema(count=summary.pending.count, total=summary.pending.total),
        failed=FeeBucketSchema(count=summary.failed.count, total=summary.failed.total),
        successful=FeeBucketSchema(count=summary.successful.count, total=summary.successful.total),
    )
