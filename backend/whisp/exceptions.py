"""
Exception hierarchy for the settlement and claim core.

Exception Classes:
- WhispError: Base exception carrying an HTTP status
- ClaimError: Claim path failure tagged with a ClaimFailureReason
  - ClaimRejected: Proof/ownership/state mismatch, terminal until state changes
  - ClaimContention: Lock held by another claim or sweep, retry later
  - PaymentFailed: Payout transfer failed, claim fully retryable
  - ConfigurationError: Missing or invalid vault key, operator actionable
- OracleError: Market data could not be fetched or validated
- RateLimitExceeded: Identity exhausted its request budget
"""

from enum import Enum


class ClaimFailureReason(str, Enum):
    """Distinguishable reasons a claim can fail."""

    NOT_FOUND = "not_found"
    ALREADY_CLAIMED = "already_claimed"
    IN_PROGRESS = "in_progress"
    NOT_OWNER = "not_owner"
    BET_LOST = "bet_lost"
    NULLIFIER_USED = "nullifier_used"
    MARKET_NOT_SETTLED = "market_not_settled"
    INVALID_RESULT = "invalid_result"
    PROOF_MISMATCH = "proof_mismatch"
    OUTCOME_LOST = "outcome_lost"
    MISSING_ASSET = "missing_asset"
    PAYMENT_FAILED = "payment_failed"
    MISCONFIGURED = "misconfigured"
    INTERNAL_ERROR = "internal_error"


class WhispError(Exception):
    """Base exception for Whisp errors."""

    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ClaimError(WhispError):
    """A claim attempt ended without paying out."""

    def __init__(
        self,
        reason: ClaimFailureReason,
        message: str,
        status_code: int | None = None,
    ):
        super().__init__(message, status_code)
        self.reason = reason


class ClaimRejected(ClaimError):
    """Terminal rejection: retrying will not help until state changes."""

    status_code = 400


class ClaimContention(ClaimError):
    """Another holder owns the claim lock."""

    status_code = 409

    def __init__(self, message: str = "Claim in progress, please wait"):
        super().__init__(ClaimFailureReason.IN_PROGRESS, message)


class PaymentFailed(ClaimError):
    """The payout transfer did not go through."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(ClaimFailureReason.PAYMENT_FAILED, message)


class ConfigurationError(ClaimError):
    """Server-side configuration is missing or invalid."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(ClaimFailureReason.MISCONFIGURED, message)


class OracleError(WhispError):
    """Market oracle request failed or returned an unusable payload."""

    status_code = 502


class RateLimitExceeded(WhispError):
    """Request budget exhausted for this identity."""

    status_code = 429

    def __init__(self, retry_after_seconds: int, message: str = "Too many requests. Please wait."):
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds
