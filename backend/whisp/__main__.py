"""Whisp CLI entry point."""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

from dotenv import load_dotenv

env_file = Path(__file__).parent.parent / ".env"
load_dotenv(env_file)

from whisp import __version__
from whisp.config import get_settings
from whisp.database import close_db, create_engine, init_db
from whisp.exceptions import ConfigurationError
from whisp.observability import configure_logging, initialize_logfire
from whisp.services.container import open_services

configure_logging()

logger = logging.getLogger(__name__)


def cmd_init_db(args: argparse.Namespace) -> int:
    """Create the bets, nullifiers and pending_fees tables."""
    settings = get_settings()

    async def run() -> None:
        engine = create_engine(settings.database_url)
        try:
            await init_db(engine)
        finally:
            await close_db(engine)

    try:
        asyncio.run(run())
        print("\n✓ Database initialized\n")
        return 0
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        print(f"\n❌ Initialization failed: {e}\n")
        return 1


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "whisp.main:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        reload=settings.is_development,
        log_level=settings.log_level.lower(),
    )
    return 0


def cmd_sweep(args: argparse.Namespace) -> int:
    """Run the backup settlement sweep once or as a long-lived loop."""
    settings = get_settings()
    initialize_logfire(settings)

    async def run() -> None:
        async with open_services(settings) as services:
            if args.once:
                report = await services.sweep.run_once()
                print(
                    f"\nMarkets resolved: {report.markets_resolved}/{report.markets_checked}"
                    f"\nBets won/lost:    {report.bets_won}/{report.bets_lost}"
                    f"\nStale paid:       {report.stale_paid}/{report.stale_found}"
                    f"\nErrors:           {len(report.errors)}\n"
                )
                return

            stop_event = asyncio.Event()
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, stop_event.set)

            logger.info("Press Ctrl+C to stop")
            await services.sweep.run_forever(stop_event)

    try:
        asyncio.run(run())
        return 0
    except ConfigurationError as e:
        logger.error(f"Sweep configuration error: {e.message}")
        return 1


def cmd_retry_fees(args: argparse.Namespace) -> int:
    """Retry one batch of queued treasury fees."""
    settings = get_settings()

    async def run() -> int:
        async with open_services(settings) as services:
            report = await services.fees.process_pending(services.rail_factory)

        print(f"\nProcessed: {report.processed}  Successful: {report.successful}  Failed: {report.failed}")
        for result in report.results:
            mark = "✓" if result.success else "✗"
            print(f"  {mark} {result.bet_tx}  {result.signature or result.error}")
        print()
        return 0 if report.failed == 0 else 2

    try:
        return asyncio.run(run())
    except ConfigurationError as e:
        logger.error(f"Fee retry configuration error: {e.message}")
        return 1


def cmd_fee_status(args: argparse.Namespace) -> int:
    """Show pending, exhausted and settled treasury fees."""
    settings = get_settings()

    async def run() -> None:
        async with open_services(settings) as services:
            summary = await services.fees.summary()

        print("\n=== Treasury Fee Queue ===\n")
        print(f"  Pending:    {summary.pending.count:>5}  ({summary.pending.total})")
        print(f"  Failed:     {summary.failed.count:>5}  ({summary.failed.total})")
        print(f"  Successful: {summary.successful.count:>5}  ({summary.successful.total})\n")

    asyncio.run(run())
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    """Display merged configuration."""
    settings = get_settings()

    print("\n=== Whisp Configuration ===\n")
    print(f"Environment: {settings.environment}")
    print(f"Paper Mode: {settings.paper_mode}")
    print(f"Database: {settings.database_url.split('@')[-1]}")
    print(f"Oracle: {settings.oracle_base_url}\n")

    print("Claims:")
    print(f"  Protocol Fee: {settings.claims.protocol_fee:.0%}")
    print(f"  Lock Timeout: {settings.claims.lock_timeout_seconds}s\n")

    print("Sweep:")
    print(f"  Interval: {settings.sweep.interval_seconds}s (idle {settings.sweep.idle_interval_seconds}s)")
    print(f"  Grace Period: {settings.sweep.grace_period_hours}h")
    print(f"  Lock Timeout: {settings.sweep.lock_timeout_seconds}s")
    print(f"  Parallel Markets: {settings.sweep.max_parallel_markets}\n")

    print("Fees:")
    print(f"  Max Retries: {settings.fees.max_retries}")
    print(f"  Batch Size: {settings.fees.batch_size}")
    print(f"  Retry Interval: {settings.fees.retry_interval_minutes} min\n")

    print("Rate Limits (per minute):")
    print(f"  Claim: {settings.rate_limits.claim.max_requests}")
    print(f"  Deposit: {settings.rate_limits.deposit.max_requests}")
    print(f"  Status: {settings.rate_limits.status.max_requests}\n")

    print("Wallets:")
    print(f"  Vault: {settings.vault_address}")
    print(f"  Treasury: {settings.treasury_address}\n")

    print("Secrets:")
    print(f"  Vault Key: {'✓ Set' if settings.vault_secret_key else '✗ Not set'}")
    print(f"  Cron Secret: {'✓ Set' if settings.cron_secret else '✗ Not set'}")
    print(f"  Logfire: {'✓ Set' if settings.logfire_token else '✗ Not set'}\n")

    if not settings.paper_mode:
        try:
            settings.get_vault_secret_key()
        except ConfigurationError as e:
            print(f"❌ {e.message}\n")
            return 1

    return 0


def main() -> int:
    parser = argparse.ArgumentParser(
        prog="whisp",
        description="Whisp settlement and claim service",
    )
    parser.add_argument("--version", action="version", version=f"whisp {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create database tables").set_defaults(func=cmd_init_db)

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    serve.set_defaults(func=cmd_serve)

    sweep = subparsers.add_parser("sweep", help="Run the backup settlement sweep")
    sweep.add_argument("--once", action="store_true", help="Run a single iteration and exit")
    sweep.set_defaults(func=cmd_sweep)

    subparsers.add_parser("retry-fees", help="Retry queued treasury fees").set_defaults(func=cmd_retry_fees)
    subparsers.add_parser("fee-status", help="Show treasury fee queue totals").set_defaults(func=cmd_fee_status)
    subparsers.add_parser("config", help="Show merged configuration").set_defaults(func=cmd_config)

    args = parser.parse_args()
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
