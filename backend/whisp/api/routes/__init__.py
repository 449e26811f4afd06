"""API route modules."""

from whisp.api.routes.bets import router as bets_router
from whisp.api.routes.claims import router as claims_router
from whisp.api.routes.fees import router as fees_router

__all__ = ["bets_router", "claims_router", "fees_router"]
