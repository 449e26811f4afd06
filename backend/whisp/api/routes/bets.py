"""
API Routes: Bets

POST /api/bets - Record a wager after its transfer into the vault succeeded
GET /api/bets?wallet= - A bettor's bets, newest first
DELETE /api/bets/lost?wallet= - Clear a bettor's lost bets
"""

from fastapi import APIRouter, Depends, Query, status

from whisp.api.dependencies import get_rate_limiter, get_services
from whisp.exceptions import WhispError
from whisp.schemas.bet import BetCreate, BetListResponse, BetResponse, ClearLostResponse
from whisp.services.container import SettlementServices
from whisp.services.rate_limiter import RateLimiter

router = APIRouter(prefix="/api/bets", tags=["Bets"])


@router.post("", response_model=BetResponse, status_code=status.HTTP_201_CREATED)
async def record_bet(
    bet: BetCreate,
    services: SettlementServices = Depends(get_services),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> BetResponse:
    limiter.enforce("deposit", bet.wallet)

    stored = await services.bets.create(
        tx=bet.tx,
        market_id=bet.market_id,
        outcome=bet.outcome,
        amount=bet.amount,
        wallet=bet.wallet,
        asset=bet.asset,
        market_title=bet.market_title,
        placed_at=bet.timestamp,
        commitment=bet.commitment.model_dump(by_alias=True) if bet.commitment else None,
        odds=bet.odds,
        potential_payout=bet.potential_payout,
    )
    if stored is None:
        raise WhispError("Bet already recorded", status_code=409)

    return BetResponse.model_validate(stored)


@router.get("", response_model=BetListResponse)
async def list_bets(
    wallet: str = Query(min_length=1),
    services: SettlementServices = Depends(get_services),
) -> BetListResponse:
    bets = await services.bets.list_by_wallet(wallet)
    return BetListResponse(
        bets=[BetResponse.model_validate(b) for b in bets],
        count=len(bets),
    )


@router.delete("/lost", response_model=ClearLostResponse)
async def clear_lost_bets(
    wallet: str = Query(min_length=1),
    services: SettlementServices = Depends(get_services),
) -> ClearLostResponse:
    deleted = await services.bets.delete_lost(wallet)
    return ClearLostResponse(deleted=deleted)
