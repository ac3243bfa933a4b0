"""
mintauth - signature-based mint authorization.

Checks claims against an allocation policy and issues EIP-712 signed
vouchers that the collection contract redeems later.
"""
from .version import __version__
from .models import (
    ClaimRequest, EligibilityPolicy, LedgerSnapshot, EligibilityVerdict,
    Voucher, VoucherMetadata, SignedVoucher
)
from .exceptions import (
    MintAuthError, ValidationError, PolicyViolationError, DuplicateClaimError,
    SupplyExhaustedError, UpstreamError, UpstreamTimeoutError, SigningError,
    InternalError, RejectionCode
)
from .validator import RequestValidator, ValidationResult
from .eligibility import EligibilityEngine
from .signer import SigningAuthority, VoucherDomain, VoucherSigner
from .service import AuthorizationService, AuthorizationResponse, ClaimState
from .ledger import AllocationLedger, InMemoryLedger, ContractLedger
from .storage import MediaStorage
from .config import ServiceConfig, NetworkConfig

__all__ = [
    "ClaimRequest",
    "EligibilityPolicy",
    "LedgerSnapshot",
    "EligibilityVerdict",
    "Voucher",
    "VoucherMetadata",
    "SignedVoucher",
    "MintAuthError",
    "ValidationError",
    "PolicyViolationError",
    "DuplicateClaimError",
    "SupplyExhaustedError",
    "UpstreamError",
    "UpstreamTimeoutError",
    "SigningError",
    "InternalError",
    "RejectionCode",
    "RequestValidator",
    "ValidationResult",
    "EligibilityEngine",
    "SigningAuthority",
    "VoucherDomain",
    "VoucherSigner",
    "AuthorizationService",
    "AuthorizationResponse",
    "ClaimState",
    "AllocationLedger",
    "InMemoryLedger",
    "ContractLedger",
    "MediaStorage",
    "ServiceConfig",
    "NetworkConfig",
    "__version__",
]
