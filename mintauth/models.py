"""
Data models for the mint authorization service.
"""
from typing import Dict, Any, Optional, FrozenSet
from pydantic import BaseModel, Field, field_serializer, field_validator


class ClaimRequest(BaseModel):
    """A validated claim for one unit of the collection"""
    requester_address: str = Field(..., alias="requesterAddress")
    display_name: str = Field(..., alias="displayName")
    media_reference: Optional[str] = Field(None, alias="mediaReference")
    description: Optional[str] = None

    class Config:
        populate_by_name = True
        frozen = True


class EligibilityPolicy(BaseModel):
    """Process-wide allocation rules"""
    max_supply: int = Field(..., ge=0, alias="maxSupply")
    per_holder_limit: int = Field(1, ge=0, alias="perHolderLimit")
    allowed_names: Optional[FrozenSet[str]] = Field(None, alias="allowedNames")
    require_media: bool = Field(False, alias="requireMedia")

    class Config:
        populate_by_name = True
        frozen = True

    @field_validator("allowed_names", mode="before")
    @classmethod
    def _lowercase_names(cls, value):
        if value is None:
            return None
        return frozenset(str(name).strip().lower() for name in value)

    def is_name_allowed(self, name: str) -> bool:
        """
        Check a display name against the allow-list (case-insensitive).

        Args:
            name: Display name from the claim

        Returns:
            True when no allow-list is configured or the name is a member
        """
        if self.allowed_names is None:
            return True
        return name.strip().lower() in self.allowed_names


class LedgerSnapshot(BaseModel):
    """Point-in-time read of the allocation ledger"""
    holder_claim_count: int = Field(..., ge=0, alias="holderClaimCount")
    total_issued: int = Field(..., ge=0, alias="totalIssued")

    class Config:
        populate_by_name = True
        frozen = True


class EligibilityVerdict(BaseModel):
    """Outcome of a successful eligibility check"""
    sequence_number: int = Field(..., ge=1, alias="sequenceNumber")
    snapshot: LedgerSnapshot

    class Config:
        populate_by_name = True
        frozen = True


class VoucherMetadata(BaseModel):
    """Token metadata embedded in the voucher"""
    name: str
    description: Optional[str] = None
    image: Optional[str] = None

    class Config:
        frozen = True


class Voucher(BaseModel):
    """Unsigned mint authorization. Field order is the canonical order."""
    to: str
    metadata: VoucherMetadata
    uri: str = ""
    sequence_number: int = Field(..., ge=1, alias="sequenceNumber")
    uid: str
    price: int = 0
    currency: str
    validity_start_timestamp: int = Field(..., ge=0, alias="validityStartTimestamp")
    validity_end_timestamp: int = Field(..., ge=0, alias="validityEndTimestamp")

    class Config:
        populate_by_name = True
        frozen = True

    # uint128/uint256 fields are decimal strings on the wire
    @field_validator(
        "sequence_number", "price", "validity_start_timestamp", "validity_end_timestamp",
        mode="before"
    )
    @classmethod
    def _uint_from_string(cls, value):
        if isinstance(value, str) and value.isascii() and value.isdigit():
            return int(value)
        return value

    @field_serializer(
        "sequence_number", "price", "validity_start_timestamp", "validity_end_timestamp",
        when_used="json"
    )
    def _uint_as_string(self, value: int) -> str:
        return str(value)

    def to_json_dict(self) -> Dict[str, Any]:
        """Serialize with wire (camelCase) field names, uints as decimal strings"""
        return self.model_dump(by_alias=True, mode="json")


class SignedVoucher(BaseModel):
    """Voucher plus the authority's signature over its canonical encoding"""
    voucher: Voucher
    signature: str
    signer: str

    class Config:
        frozen = True

    def to_response(self) -> Dict[str, Any]:
        """Body returned by the HTTP endpoint"""
        return {
            "voucher": self.voucher.to_json_dict(),
            "signature": self.signature,
        }
