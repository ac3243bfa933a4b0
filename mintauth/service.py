"""
AuthorizationService - orchestrates one mint authorization request.

request -> RequestValidator -> MediaStorage (optional, outside the lock)
        -> EligibilityEngine (reads the ledger) -> VoucherSigner -> response

The eligibility check and signing run under the reservation lock.
"""
import time
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, Optional, List, Callable

from .eligibility import EligibilityEngine
from .exceptions import (
    MintAuthError, InternalError, SigningError, UpstreamError, DOMAIN_ERRORS
)
from .ledger.base import AllocationLedger
from .models import ClaimRequest, EligibilityPolicy, SignedVoucher, VoucherMetadata
from .reservations import ReservationBook, DEFAULT_LOCK_TIMEOUT
from .signer import SigningAuthority, VoucherSigner
from .storage import MediaStorage
from .utils import short_address
from .validator import RequestValidator, DEFAULT_MAX_NAME_LENGTH
from ._rate_limited_log import rate_limited_log

logger = logging.getLogger(__name__)

# Seconds a reservation outlives a bounded voucher
RESERVATION_GRACE = 60

# Messages for server-side failures; details stay in the log
UPSTREAM_MESSAGE = "Upstream service unavailable"
SERVER_ERROR_MESSAGE = "Server error"


class ClaimState(str, Enum):
    """Lifecycle of one authorization request"""
    RECEIVED = "RECEIVED"
    VALIDATED = "VALIDATED"
    ELIGIBLE = "ELIGIBLE"
    REJECTED = "REJECTED"
    SIGNED = "SIGNED"
    RESPONDED = "RESPONDED"


_TRANSITIONS = {
    ClaimState.RECEIVED: {ClaimState.VALIDATED, ClaimState.REJECTED},
    ClaimState.VALIDATED: {ClaimState.ELIGIBLE, ClaimState.REJECTED},
    ClaimState.ELIGIBLE: {ClaimState.SIGNED, ClaimState.REJECTED},
    ClaimState.SIGNED: {ClaimState.RESPONDED},
    ClaimState.REJECTED: set(),
    ClaimState.RESPONDED: set(),
}


@dataclass(frozen=True)
class AuthorizationResponse:
    """HTTP status and JSON body for one request"""
    status_code: int
    body: Dict[str, Any]


@dataclass
class ClaimTransaction:
    """
    Tracks one request through its states.

    States only move forward and exactly one response is recorded.
    """
    state: ClaimState = ClaimState.RECEIVED
    history: List[ClaimState] = field(default_factory=lambda: [ClaimState.RECEIVED])
    response: Optional[AuthorizationResponse] = None

    def advance(self, new_state: ClaimState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise InternalError(f"Illegal claim transition {self.state.value} -> {new_state.value}")
        self.state = new_state
        self.history.append(new_state)

    def respond(self, response: AuthorizationResponse) -> AuthorizationResponse:
        if self.response is not None:
            raise InternalError("Request already responded to")
        self.response = response
        return response


class AuthorizationService:
    """
    Issues signed vouchers for eligible claims.

    The service holds no mutable state besides the reservation book; the
    signing authority and policy are fixed at construction.
    """

    def __init__(
        self,
        authority: SigningAuthority,
        policy: EligibilityPolicy,
        ledger: AllocationLedger,
        storage: Optional[MediaStorage] = None,
        validity_seconds: Optional[int] = None,
        reserve_claims: bool = True,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
        max_name_length: int = DEFAULT_MAX_NAME_LENGTH,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize the service

        Args:
            authority: Signing authority loaded at startup
            policy: Eligibility policy
            ledger: Allocation ledger to read
            storage: Optional media storage used to pin metadata
            validity_seconds: Voucher lifetime, None for open-ended vouchers
            reserve_claims: Hold reservations across check and sign. When
                False, concurrent requests can both be granted the last slot.
            lock_timeout: Seconds a request waits for the reservation lock
                before failing with UPSTREAM_UNAVAILABLE
            max_name_length: Maximum display name length
            clock: Source of the current unix time
        """
        self.authority = authority
        self.policy = policy
        self.ledger = ledger
        self.storage = storage
        self.validator = RequestValidator(policy, max_name_length=max_name_length)
        self.engine = EligibilityEngine(policy)
        self.signer = VoucherSigner(authority, validity_seconds=validity_seconds, clock=clock)

        self.reservations: Optional[ReservationBook] = None
        if reserve_claims:
            # Open-ended vouchers keep their reservation for good
            ttl = None if validity_seconds is None else validity_seconds + RESERVATION_GRACE
            self.reservations = ReservationBook(
                ttl=ttl,
                maxsize=policy.max_supply + 1,
                lock_timeout=lock_timeout,
            )
        else:
            logger.warning("Claim reservations disabled: concurrent claims may exceed the supply cap")

    @classmethod
    def from_config(cls, config, ledger: Optional[AllocationLedger] = None) -> "AuthorizationService":
        """
        Build the service from a ServiceConfig.

        Args:
            config: ServiceConfig
            ledger: Ledger override (defaults to the configured ledger)

        Raises:
            SigningError: If the signing key is missing or invalid
            ValueError: If no usable ledger or collection is configured
        """
        from .ledger import get_ledger
        from .signer import VoucherDomain

        domain = VoucherDomain(
            chain_id=config.chain_id,
            verifying_contract=config.collection_address,
            name=config.domain_name,
            version=config.domain_version,
        )
        authority = SigningAuthority.from_key(config.signer_key, domain)
        storage = None
        if config.pinner_url:
            storage = MediaStorage(
                config.pinner_url,
                timeout=config.upstream_timeout,
                max_retries=config.upstream_retries,
            )
        return cls(
            authority=authority,
            policy=config.policy(),
            ledger=ledger or get_ledger(config),
            storage=storage,
            validity_seconds=config.validity_seconds,
            reserve_claims=config.reserve_claims,
            lock_timeout=config.lock_timeout,
            max_name_length=config.max_name_length,
        )

    def authorize(self, body: Any) -> AuthorizationResponse:
        """
        Handle one request body and produce exactly one response.

        Args:
            body: JSON-decoded request body

        Returns:
            AuthorizationResponse (200 with the signed voucher, or an error)
        """
        txn = ClaimTransaction()
        address = body.get("requesterAddress") if isinstance(body, dict) else None
        try:
            claim = self.validator.validate(body).unwrap()
            txn.advance(ClaimState.VALIDATED)
            signed = self._issue(claim, txn)
            txn.advance(ClaimState.RESPONDED)
        except MintAuthError as e:
            return self._reject(txn, e, address)
        except Exception as e:
            logger.exception(f"Unexpected error authorizing claim for {short_address(str(address or ''))}")
            return self._reject(txn, InternalError(str(e)), address)

        logger.info(
            f"Issued voucher sequence={signed.voucher.sequence_number} "
            f"to {short_address(signed.voucher.to)}"
        )
        return txn.respond(AuthorizationResponse(200, signed.to_response()))

    def issue(self, claim: ClaimRequest) -> SignedVoucher:
        """
        Check a validated claim and sign its voucher.

        Args:
            claim: Validated claim

        Returns:
            SignedVoucher

        Raises:
            PolicyViolationError, DuplicateClaimError, SupplyExhaustedError:
                If the claim is not eligible
            UpstreamError: If the ledger or storage is unreachable
            SigningError: If the signing key is misconfigured
        """
        txn = ClaimTransaction()
        txn.advance(ClaimState.VALIDATED)
        return self._issue(claim, txn)

    def _issue(self, claim: ClaimRequest, txn: ClaimTransaction) -> SignedVoucher:
        uri = self._pin(claim)
        if self.reservations is None:
            return self._check_and_sign(claim, txn, uri)
        with self.reservations.hold():
            return self._check_and_sign(claim, txn, uri)

    def _pin(self, claim: ClaimRequest) -> str:
        """Pin the claim's metadata outside the reservation lock"""
        if self.storage is None:
            return ""
        # Claims the ledger alone rules out are rejected before pinning
        self.engine.evaluate(claim, self.engine.snapshot(self.ledger, claim))
        return self.storage.pin_metadata(VoucherMetadata(
            name=claim.display_name,
            description=claim.description,
            image=claim.media_reference,
        ))

    def _check_and_sign(self, claim: ClaimRequest, txn: ClaimTransaction, uri: str = "") -> SignedVoucher:
        snapshot = self.engine.snapshot(self.ledger, claim)
        if self.reservations is not None:
            snapshot = self.reservations.adjust(claim.requester_address, snapshot)

        verdict = self.engine.evaluate(claim, snapshot)
        txn.advance(ClaimState.ELIGIBLE)

        signed = self.signer.sign(verdict, claim, uri)
        if self.reservations is not None:
            self.reservations.reserve(
                claim.requester_address,
                verdict.sequence_number,
                snapshot.holder_claim_count,
            )
        txn.advance(ClaimState.SIGNED)
        return signed

    def _reject(self, txn: ClaimTransaction, error: MintAuthError, address: Optional[str]) -> AuthorizationResponse:
        who = short_address(str(address or ""))
        if isinstance(error, DOMAIN_ERRORS):
            field_name = getattr(error, "field", None)
            logger.info(f"Claim rejected for {who}: code={error.code.value} field={field_name} reason={error}")
            message = str(error)
        elif isinstance(error, UpstreamError):
            rate_limited_log(
                f"Upstream failure while authorizing claim: {error}",
                level="warning",
                logger_instance=logger
            )
            message = UPSTREAM_MESSAGE
        elif isinstance(error, SigningError):
            logger.critical(f"Signing failure for {who}: {error}")
            message = SERVER_ERROR_MESSAGE
        else:
            logger.error(f"Internal error for {who}: {error}")
            message = SERVER_ERROR_MESSAGE

        if ClaimState.REJECTED in _TRANSITIONS[txn.state]:
            txn.advance(ClaimState.REJECTED)
        return txn.respond(AuthorizationResponse(
            error.status_code,
            {"error": message, "code": error.code.value}
        ))
