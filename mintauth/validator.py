"""
Request validation for claim requests.

Turns an untrusted JSON body into a typed ClaimRequest, or a ValidationError
naming the offending field. Nothing here touches the ledger.
"""
import re
import logging
import urllib.parse
from dataclasses import dataclass
from typing import Any, Dict, Optional

import base58
from web3 import Web3

from .exceptions import ValidationError
from .models import ClaimRequest, EligibilityPolicy

logger = logging.getLogger(__name__)

DEFAULT_MAX_NAME_LENGTH = 64
DEFAULT_MAX_DESCRIPTION_LENGTH = 1024

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_CONTENT_HASH = re.compile(r"^0x[0-9a-fA-F]{64}$")
# CIDv1 in the default base32 multibase encoding
_CID_V1_BASE32 = re.compile(r"^b[a-z2-7]{50,}$")


@dataclass(frozen=True)
class ValidationResult:
    """
    Tagged result of request validation.

    Exactly one of ``claim`` and ``error`` is set.
    """
    claim: Optional[ClaimRequest] = None
    error: Optional[ValidationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> ClaimRequest:
        """Return the claim or raise the validation error"""
        if self.error is not None:
            raise self.error
        return self.claim


def is_valid_cid(cid: str) -> bool:
    """
    Check that a string looks like an IPFS CID.

    CIDv0 is decoded and checked for a sha2-256 multihash; CIDv1 is only
    checked for its base32 shape.

    Args:
        cid: Candidate CID

    Returns:
        True if the CID is well formed
    """
    if cid.startswith("Qm"):
        try:
            raw = base58.b58decode(cid)
        except ValueError:
            return False
        # 0x12 = sha2-256, 0x20 = 32 byte digest
        return len(raw) == 34 and raw[0] == 0x12 and raw[1] == 0x20
    return bool(_CID_V1_BASE32.match(cid))


def is_valid_media_reference(reference: str) -> bool:
    """
    Check a media reference: ipfs:// URI, bare CID, https URL or 0x content hash.

    Args:
        reference: Candidate reference

    Returns:
        True if the reference is well formed
    """
    if _CONTENT_HASH.match(reference):
        return True
    if reference.startswith("ipfs://"):
        cid = reference[len("ipfs://"):].split("/", 1)[0]
        return is_valid_cid(cid)
    parsed = urllib.parse.urlparse(reference)
    if parsed.scheme == "https":
        return bool(parsed.netloc)
    if parsed.scheme:
        return False
    return is_valid_cid(reference)


class RequestValidator:
    """Validates raw claim request bodies"""

    def __init__(
        self,
        policy: Optional[EligibilityPolicy] = None,
        max_name_length: int = DEFAULT_MAX_NAME_LENGTH,
        max_description_length: int = DEFAULT_MAX_DESCRIPTION_LENGTH
    ):
        """
        Initialize the validator

        Args:
            policy: Eligibility policy (only ``require_media`` is consulted here)
            max_name_length: Maximum display name length in characters
            max_description_length: Maximum description length in characters
        """
        self.require_media = bool(policy and policy.require_media)
        self.max_name_length = max_name_length
        self.max_description_length = max_description_length

    def validate(self, body: Any) -> ValidationResult:
        """
        Validate a raw request body.

        Args:
            body: JSON-decoded request body

        Returns:
            ValidationResult holding either the claim or the error
        """
        try:
            return ValidationResult(claim=self._parse(body))
        except ValidationError as e:
            logger.debug(f"Rejected claim request: field={e.field} reason={e}")
            return ValidationResult(error=e)

    def _parse(self, body: Any) -> ClaimRequest:
        if not isinstance(body, dict):
            raise ValidationError(
                f"Request body must be a JSON object, got {type(body).__name__}", field="body"
            )

        address = self._require_string(body, "requesterAddress")
        if not Web3.is_address(address):
            raise ValidationError("requesterAddress is not a valid address", field="requesterAddress")
        address = Web3.to_checksum_address(address)

        name = self._require_string(body, "displayName").strip()
        if not name:
            raise ValidationError("displayName must not be empty", field="displayName")
        if len(name) > self.max_name_length:
            raise ValidationError(
                f"displayName must be at most {self.max_name_length} characters", field="displayName"
            )
        if _CONTROL_CHARS.search(name):
            raise ValidationError("displayName contains control characters", field="displayName")

        media = self._optional_string(body, "mediaReference")
        if media is not None:
            media = media.strip()
            if not is_valid_media_reference(media):
                raise ValidationError("mediaReference is not a valid reference", field="mediaReference")
        elif self.require_media:
            raise ValidationError("mediaReference is required", field="mediaReference")

        description = self._optional_string(body, "description")
        if description is not None and len(description) > self.max_description_length:
            raise ValidationError(
                f"description must be at most {self.max_description_length} characters",
                field="description"
            )

        return ClaimRequest(
            requester_address=address,
            display_name=name,
            media_reference=media or None,
            description=description or None,
        )

    @staticmethod
    def _require_string(body: Dict[str, Any], field: str) -> str:
        value = body.get(field)
        if value is None:
            raise ValidationError(f"{field} is required", field=field)
        if not isinstance(value, str):
            raise ValidationError(f"{field} must be a string", field=field)
        return value

    @staticmethod
    def _optional_string(body: Dict[str, Any], field: str) -> Optional[str]:
        value = body.get(field)
        if value is None:
            return None
        if not isinstance(value, str):
            raise ValidationError(f"{field} must be a string", field=field)
        return value
