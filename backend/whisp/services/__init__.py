"""Services module."""

from whisp.services.bet_store import BetStore
from whisp.services.claims import ClaimCoordinator, ClaimReceipt, ClaimStatus
from whisp.services.container import SettlementServices, build_services, open_services
from whisp.services.fee_queue import TreasuryFeeQueue
from whisp.services.nullifiers import NullifierRegistry
from whisp.services.rate_limiter import RateLimiter
from whisp.services.settler import PayoutSettler
from whisp.services.sweep import SettlementSweep, SweepReport

__all__ = [
    "BetStore",
    "ClaimCoordinator",
    "ClaimReceipt",
    "ClaimStatus",
    "NullifierRegistry",
    "PayoutSettler",
    "RateLimiter",
    "SettlementServices",
    "SettlementSweep",
    "SweepReport",
    "TreasuryFeeQueue",
    "build_services",
    "open_services",
]
