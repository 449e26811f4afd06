"""Logging setup and Logfire observability initialization."""

import logging

import logfire

from whisp import __version__
from whisp.config import Settings

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure stdlib logging for CLI, workers and the API server."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def initialize_logfire(settings: Settings, app=None) -> bool:
    """
    Initialize Logfire with instrumentation.

    Must be called ONCE at process startup, before serving requests or
    running the sweep.

    Instruments:
    - FastAPI request handling (when an app is passed)
    - HTTPX clients (market oracle, payment rail)
    - Python logging (bridges to Logfire)

    Returns:
        True when Logfire is active, False when observability is disabled.
    """
    if not settings.logfire_token:
        logger.warning("Logfire token not set - observability disabled")
        return False

    try:
        logfire.configure(
            token=settings.logfire_token,
            service_name="whisp-settlement",
            service_version=__version__,
            environment="paper" if settings.paper_mode else "live",
        )

        if app is not None:
            logfire.instrument_fastapi(app)

        logfire.instrument_httpx()

        root_logger = logging.getLogger()
        root_logger.addHandler(logfire.LogfireLoggingHandler())

        logger.info("Logfire tracking initialized")
        return True

    except Exception as e:
        # Observability is optional; keep running without it
        logger.warning(f"Failed to initialize Logfire: {e}")
        return False
