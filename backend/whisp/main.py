"""
Main FastAPI application entry point for Whisp.

This is the core application file that:
- Initializes FastAPI with lifespan management
- Builds the settlement services and the rate limiter once per process
- Configures CORS for the wallet frontend
- Sets up Logfire observability
- Maps the error taxonomy onto JSON envelopes
- Provides health check endpoints
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from whisp import __version__
from whisp.api.routes import bets_router, claims_router, fees_router
from whisp.config import Settings, get_settings
from whisp.database import (
    check_db_connection,
    close_db,
    create_engine,
    create_session_factory,
    init_db,
)
from whisp.exceptions import ClaimError, RateLimitExceeded, WhispError
from whisp.schemas.common import ErrorResponse
from whisp.observability import configure_logging, initialize_logfire
from whisp.services.container import build_services
from whisp.services.oracle import JupiterMarketOracle, MarketOracle, OracleConfig
from whisp.services.payment_rail import RailFactory
from whisp.services.rate_limiter import RateLimiter
from whisp.utils import Clock, now_ms

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    oracle: Optional[MarketOracle] = None,
    rail_factory: Optional[RailFactory] = None,
    clock: Clock = now_ms,
) -> FastAPI:
    """Build the API. Oracle, rail and clock can be swapped for tests or paper runs."""
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            f"Starting Whisp API Server (environment={settings.environment}, "
            f"paper_mode={settings.paper_mode})"
        )

        engine = create_engine(settings.database_url)
        await init_db(engine)
        session_factory = create_session_factory(engine)

        if await check_db_connection(session_factory):
            logger.info("Database connection successful")
        else:
            logger.error("Database connection failed")

        owned_oracle: Optional[JupiterMarketOracle] = None
        market_oracle = oracle
        if market_oracle is None:
            owned_oracle = JupiterMarketOracle(OracleConfig(base_url=settings.oracle_base_url))
            await owned_oracle.open()
            market_oracle = owned_oracle

        app.state.settings = settings
        app.state.session_factory = session_factory
        app.state.services = build_services(
            settings,
            session_factory,
            market_oracle,
            rail_factory=rail_factory,
            clock=clock,
        )
        app.state.rate_limiter = RateLimiter(settings.rate_limits, clock=clock)

        logger.info("Whisp API Server startup complete")

        yield

        logger.info("Shutting down Whisp API Server")
        if owned_oracle is not None:
            await owned_oracle.close()
        await close_db(engine)

    app = FastAPI(
        title="Whisp API",
        description="Settlement and claim service for private prediction-market wagers",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    initialize_logfire(settings, app)
    _register_exception_handlers(app)

    app.include_router(claims_router)
    app.include_router(fees_router)
    app.include_router(bets_router)

    # ========================================================================
    # Health Check Endpoints
    # ========================================================================

    @app.get("/health", tags=["Health"])
    async def health_check(request: Request) -> Dict[str, str]:
        """
        Health check endpoint for load balancers and monitoring.

        Returns:
            dict: Health status of the application and database
        """
        db_connected = await check_db_connection(getattr(request.app.state, "session_factory", None))

        return {
            "status": "healthy" if db_connected else "degraded",
            "service": "whisp-api",
            "version": __version__,
            "database": "connected" if db_connected else "disconnected",
            "environment": settings.environment,
            "mode": "paper" if settings.paper_mode else "live",
        }

    @app.get("/", tags=["Root"])
    async def root() -> Dict[str, str]:
        """API information."""
        return {
            "name": "Whisp API",
            "version": __version__,
            "description": "Settlement and claim service for private prediction-market wagers",
            "docs": "/docs",
            "health": "/health",
        }

    return app


def _error_body(message: str, **extra: Any) -> Dict[str, Any]:
    return ErrorResponse(error=message, **extra).model_dump(by_alias=True, exclude_none=True)


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ClaimError)
    async def claim_error_handler(request: Request, exc: ClaimError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.message, reason=exc.reason.value),
        )

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.message, retry_after=exc.retry_after_seconds),
            headers={"Retry-After": str(exc.retry_after_seconds)},
        )

    @app.exception_handler(WhispError)
    async def whisp_error_handler(request: Request, exc: WhispError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        missing = any(e.get("type") == "missing" for e in errors)
        message = "Missing required fields" if missing else "Invalid request"
        logger.info(f"Rejected request to {request.url.path}: {errors}")
        return JSONResponse(status_code=400, content=_error_body(message))


app = create_app()


if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run(
        "whisp.main:app",
        host=_settings.host,
        port=_settings.port,
        reload=_settings.is_development,
        log_level=_settings.log_level.lower(),
    )
