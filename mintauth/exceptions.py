"""
Exceptions for the mint authorization service.

Every exception carries the HTTP status the orchestrator answers with and a
machine-readable rejection code.
"""
from enum import Enum
from typing import Optional


class RejectionCode(str, Enum):
    """
    Machine-readable codes returned next to the human error message.
    """
    INVALID_REQUEST = "INVALID_REQUEST"
    NAME_NOT_ALLOWED = "NAME_NOT_ALLOWED"
    ALREADY_CLAIMED = "ALREADY_CLAIMED"
    SUPPLY_EXHAUSTED = "SUPPLY_EXHAUSTED"
    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"
    SIGNING_FAILED = "SIGNING_FAILED"
    INTERNAL = "INTERNAL"


class MintAuthError(Exception):
    """Base exception for mint authorization errors."""
    status_code = 500
    code = RejectionCode.INTERNAL


class ValidationError(MintAuthError):
    """Raised when a claim request is malformed."""
    status_code = 400
    code = RejectionCode.INVALID_REQUEST

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class PolicyViolationError(MintAuthError):
    """Raised when the display name is not on the allow-list."""
    status_code = 400
    code = RejectionCode.NAME_NOT_ALLOWED


class DuplicateClaimError(MintAuthError):
    """Raised when the holder already reached the per-holder limit."""
    status_code = 400
    code = RejectionCode.ALREADY_CLAIMED


class SupplyExhaustedError(MintAuthError):
    """Raised when the collection reached its maximum supply."""
    status_code = 400
    code = RejectionCode.SUPPLY_EXHAUSTED


class UpstreamError(MintAuthError):
    """Raised when the ledger or media storage is unreachable."""
    status_code = 502
    code = RejectionCode.UPSTREAM_UNAVAILABLE

    def __init__(self, message: str, retryable: bool = True):
        self.retryable = retryable
        super().__init__(message)


class UpstreamTimeoutError(UpstreamError):
    """Raised when an upstream call times out."""
    pass


class SigningError(MintAuthError):
    """Raised when the signing key is misconfigured. Always fatal."""
    status_code = 500
    code = RejectionCode.SIGNING_FAILED


class InternalError(MintAuthError):
    """Wraps any unclassified failure."""
    status_code = 500
    code = RejectionCode.INTERNAL


# Domain errors are deterministic given ledger state and never retried
DOMAIN_ERRORS = (ValidationError, PolicyViolationError, DuplicateClaimError, SupplyExhaustedError)
