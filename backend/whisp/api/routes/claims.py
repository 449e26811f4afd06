"""
API Routes: Claims

POST /api/claim - Claim a winning bet with its proof
GET /api/claim?betTx=&wallet= - Read-only claimability check
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from whisp.api.dependencies import get_rate_limiter, get_services
from whisp.exceptions import OracleError, WhispError
from whisp.schemas.claim import ClaimRequest, ClaimResponse, ClaimStatusResponse
from whisp.services.container import SettlementServices
from whisp.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/claim", tags=["Claims"])


@router.post("", response_model=ClaimResponse)
async def submit_claim(
    request: ClaimRequest,
    services: SettlementServices = Depends(get_services),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> ClaimResponse:
    limiter.enforce("claim", request.wallet_address)

    receipt = await services.claims.submit_claim(
        request.proof,
        bet_tx=request.bet_tx,
        wallet=request.wallet_address,
    )
    return ClaimResponse(
        payout=float(receipt.payout),
        payout_tx=receipt.payout_tx,
        message=receipt.message,
        fee_queued=receipt.fee_queued,
    )


@router.get("", response_model=ClaimStatusResponse, response_model_exclude_none=True)
async def claim_status(
    bet_tx: Optional[str] = Query(default=None, alias="betTx"),
    wallet: Optional[str] = Query(default=None),
    services: SettlementServices = Depends(get_services),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> ClaimStatusResponse:
    if not bet_tx or not wallet:
        raise WhispError("Missing betTx or wallet", status_code=400)

    limiter.enforce("status", wallet)

    try:
        status = await services.claims.claim_status(bet_tx, wallet)
    except OracleError as e:
        logger.error(f"Claim status error for {bet_tx}: {e}")
        raise WhispError("Failed to check claim status", status_code=500) from e

    return ClaimStatusResponse.from_status(status)
