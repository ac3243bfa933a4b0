"""
Eligibility rules for claims.

Checks run in a fixed order and the first failure wins:

1. display name on the allow-list (when one is configured)
2. holder below the per-holder limit
3. collection below the maximum supply
"""
import logging

from .exceptions import PolicyViolationError, DuplicateClaimError, SupplyExhaustedError
from .ledger.base import AllocationLedger
from .models import ClaimRequest, EligibilityPolicy, EligibilityVerdict, LedgerSnapshot
from .utils import short_address

logger = logging.getLogger(__name__)


class EligibilityEngine:
    """Read-only evaluation of a claim against a ledger snapshot"""

    def __init__(self, policy: EligibilityPolicy):
        self.policy = policy

    def snapshot(self, ledger: AllocationLedger, claim: ClaimRequest) -> LedgerSnapshot:
        """Read a fresh snapshot for the claim's holder"""
        return ledger.snapshot(claim.requester_address)

    def evaluate(self, claim: ClaimRequest, snapshot: LedgerSnapshot) -> EligibilityVerdict:
        """
        Evaluate a claim.

        Args:
            claim: Validated claim
            snapshot: Ledger state to evaluate against

        Returns:
            EligibilityVerdict with the next sequence number

        Raises:
            PolicyViolationError: If the name is not allow-listed
            DuplicateClaimError: If the holder reached the per-holder limit
            SupplyExhaustedError: If the maximum supply is reached
        """
        address = short_address(claim.requester_address)

        if not self.policy.is_name_allowed(claim.display_name):
            logger.info(f"Claim rejected: check=allowed_names address={address}")
            raise PolicyViolationError(f"'{claim.display_name}' is not an approved name")

        if snapshot.holder_claim_count >= self.policy.per_holder_limit:
            logger.info(
                f"Claim rejected: check=per_holder_limit address={address} "
                f"held={snapshot.holder_claim_count} limit={self.policy.per_holder_limit}"
            )
            raise DuplicateClaimError("Address has already claimed")

        if snapshot.total_issued >= self.policy.max_supply:
            logger.info(
                f"Claim rejected: check=max_supply address={address} "
                f"issued={snapshot.total_issued} max={self.policy.max_supply}"
            )
            raise SupplyExhaustedError("Supply exhausted")

        return EligibilityVerdict(sequence_number=snapshot.total_issued + 1, snapshot=snapshot)
