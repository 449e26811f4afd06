"""FastAPI dependencies resolving lifespan-owned components from app state."""

from fastapi import Request

from whisp.config import Settings
from whisp.services.container import SettlementServices
from whisp.services.rate_limiter import RateLimiter


def get_services(request: Request) -> SettlementServices:
    return request.app.state.services


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings
