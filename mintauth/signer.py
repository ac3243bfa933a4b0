"""
Voucher construction and EIP-712 signing.

A voucher is encoded as EIP-712 typed data bound to the collection's chain id
and contract address, then signed with deterministic ECDSA (RFC 6979,
secp256k1). Changing any field of the voucher, or replaying it against
another chain or contract, invalidates the signature.
"""
import time
import logging
from dataclasses import dataclass, field
from typing import Dict, Any, Optional, Callable

from eth_account import Account
from eth_account.messages import encode_typed_data, SignableMessage
from eth_account.signers.local import LocalAccount
from eth_keys.exceptions import BadSignature, ValidationError as KeyValidationError
from eth_utils import ValidationError as EthValidationError
from web3 import Web3

from .exceptions import SigningError
from .models import ClaimRequest, EligibilityVerdict, Voucher, VoucherMetadata, SignedVoucher
from .utils import short_address

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
# Largest uint128, used as the end of an open-ended validity window
OPEN_ENDED = 2 ** 128 - 1

EIP712_DOMAIN_TYPE = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]

MINT_VOUCHER_TYPE = [
    {"name": "to", "type": "address"},
    {"name": "name", "type": "string"},
    {"name": "description", "type": "string"},
    {"name": "image", "type": "string"},
    {"name": "uri", "type": "string"},
    {"name": "sequenceNumber", "type": "uint256"},
    {"name": "uid", "type": "bytes32"},
    {"name": "price", "type": "uint256"},
    {"name": "currency", "type": "address"},
    {"name": "validityStartTimestamp", "type": "uint128"},
    {"name": "validityEndTimestamp", "type": "uint128"},
]


@dataclass(frozen=True)
class VoucherDomain:
    """EIP-712 domain of the collection the vouchers are redeemed against"""
    chain_id: int
    verifying_contract: str
    name: str = "MintVoucher"
    version: str = "1"

    def to_eip712(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "chainId": self.chain_id,
            "verifyingContract": Web3.to_checksum_address(self.verifying_contract),
        }


@dataclass(frozen=True, repr=False)
class SigningAuthority:
    """
    The process-held signing key and the domain it signs for.

    Built once at startup and passed to the service. The key never leaves
    this object: it is excluded from repr and comparisons.
    """
    account: LocalAccount = field(compare=False)
    domain: VoucherDomain

    @classmethod
    def from_key(cls, private_key: Optional[str], domain: VoucherDomain) -> "SigningAuthority":
        """
        Load a signing authority from a hex private key.

        Args:
            private_key: Hex encoded secp256k1 private key
            domain: Domain the authority signs for

        Returns:
            SigningAuthority

        Raises:
            SigningError: If the key is missing or malformed
        """
        if not private_key:
            raise SigningError("No signing key configured")
        try:
            account = Account.from_key(private_key)
        except (ValueError, TypeError, KeyValidationError, EthValidationError) as e:
            # The exception text may echo key material, keep only its type
            raise SigningError(f"Invalid signing key ({type(e).__name__})") from None
        logger.info(f"Loaded signing authority {short_address(account.address)} for chain {domain.chain_id}")
        return cls(account=account, domain=domain)

    @property
    def address(self) -> str:
        return self.account.address

    def __repr__(self) -> str:
        return f"SigningAuthority(address={self.address!r}, chain_id={self.domain.chain_id})"


def derive_uid(domain: VoucherDomain, sequence_number: int) -> str:
    """
    Derive the voucher's unique id from its sequence number.

    The id is bound to the domain so the same sequence on another
    collection yields a different id.

    Args:
        domain: Voucher domain
        sequence_number: Sequence number of the voucher

    Returns:
        0x-prefixed bytes32 hex string
    """
    digest = Web3.solidity_keccak(
        ["uint256", "address", "uint256"],
        [domain.chain_id, Web3.to_checksum_address(domain.verifying_contract), sequence_number]
    )
    return Web3.to_hex(digest)


def typed_data(voucher: Voucher, domain: VoucherDomain) -> Dict[str, Any]:
    """
    Build the EIP-712 typed data document for a voucher.

    Args:
        voucher: Voucher to encode
        domain: Domain to bind it to

    Returns:
        Typed data dictionary accepted by eth_account
    """
    return {
        "types": {
            "EIP712Domain": EIP712_DOMAIN_TYPE,
            "MintVoucher": MINT_VOUCHER_TYPE,
        },
        "primaryType": "MintVoucher",
        "domain": domain.to_eip712(),
        "message": {
            "to": voucher.to,
            "name": voucher.metadata.name,
            "description": voucher.metadata.description or "",
            "image": voucher.metadata.image or "",
            "uri": voucher.uri,
            "sequenceNumber": voucher.sequence_number,
            "uid": bytes.fromhex(voucher.uid[2:]),
            "price": voucher.price,
            "currency": voucher.currency,
            "validityStartTimestamp": voucher.validity_start_timestamp,
            "validityEndTimestamp": voucher.validity_end_timestamp,
        },
    }


def encode_voucher(voucher: Voucher, domain: VoucherDomain) -> bytes:
    """
    Canonical byte encoding of a voucher under a domain.

    Returns:
        66 bytes: 0x19 0x01 || domain separator || struct hash
    """
    message = encode_typed_data(full_message=typed_data(voucher, domain))
    return b"\x19" + message.version + message.header + message.body


def _signable_from_bytes(encoded: bytes) -> Optional[SignableMessage]:
    # 0x19 || version || domain separator (32) || struct hash (32)
    if len(encoded) != 66 or encoded[0] != 0x19:
        return None
    return SignableMessage(version=encoded[1:2], header=encoded[2:34], body=encoded[34:66])


class VoucherSigner:
    """Builds and signs vouchers for one signing authority"""

    def __init__(
        self,
        authority: SigningAuthority,
        validity_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize the signer

        Args:
            authority: Signing authority
            validity_seconds: Voucher lifetime, None for open-ended vouchers
            clock: Source of the current unix time
        """
        if validity_seconds is not None and validity_seconds <= 0:
            raise ValueError("validity_seconds must be positive")
        self.authority = authority
        self.domain = authority.domain
        self.validity_seconds = validity_seconds
        self.clock = clock

    def build_voucher(self, verdict: EligibilityVerdict, claim: ClaimRequest, uri: str = "") -> Voucher:
        """
        Build the unsigned voucher for an eligible claim.

        Args:
            verdict: Eligibility verdict carrying the sequence number
            claim: Validated claim
            uri: Metadata URI, empty when metadata is not pinned

        Returns:
            Voucher
        """
        start = int(self.clock())
        end = OPEN_ENDED if self.validity_seconds is None else start + self.validity_seconds
        return Voucher(
            to=claim.requester_address,
            metadata=VoucherMetadata(
                name=claim.display_name,
                description=claim.description,
                image=claim.media_reference,
            ),
            uri=uri,
            sequence_number=verdict.sequence_number,
            uid=derive_uid(self.domain, verdict.sequence_number),
            price=0,
            currency=ZERO_ADDRESS,
            validity_start_timestamp=start,
            validity_end_timestamp=end,
        )

    def signable(self, voucher: Voucher) -> SignableMessage:
        """EIP-712 signable message for a voucher"""
        return encode_typed_data(full_message=typed_data(voucher, self.domain))

    def encode(self, voucher: Voucher) -> bytes:
        """
        Canonical byte encoding of a voucher.

        Returns:
            66 bytes: 0x19 0x01 || domain separator || struct hash
        """
        return encode_voucher(voucher, self.domain)

    def digest(self, voucher: Voucher) -> str:
        """Keccak-256 digest that is actually signed, as 0x hex"""
        return Web3.to_hex(Web3.keccak(self.encode(voucher)))

    def sign(self, verdict: EligibilityVerdict, claim: ClaimRequest, uri: str = "") -> SignedVoucher:
        """
        Build and sign a voucher.

        Args:
            verdict: Eligibility verdict carrying the sequence number
            claim: Validated claim
            uri: Metadata URI

        Returns:
            SignedVoucher

        Raises:
            SigningError: If signing fails or the signature does not verify
        """
        voucher = self.build_voucher(verdict, claim, uri)
        return self.sign_voucher(voucher)

    def sign_voucher(self, voucher: Voucher) -> SignedVoucher:
        """
        Sign an already built voucher.

        Raises:
            SigningError: If signing fails or the signature does not verify
        """
        try:
            message = self.signable(voucher)
            signed = self.authority.account.sign_message(message)
        except (ValueError, TypeError, KeyValidationError, EthValidationError) as e:
            logger.error(f"Voucher signing failed for sequence {voucher.sequence_number}: {type(e).__name__}")
            raise SigningError(f"Failed to sign voucher: {type(e).__name__}") from None

        signature = Web3.to_hex(signed.signature)
        if Account.recover_message(message, signature=signature) != self.authority.address:
            raise SigningError("Signature does not recover to the signing authority")

        logger.debug(f"Signed voucher sequence={voucher.sequence_number} for {short_address(voucher.to)}")
        return SignedVoucher(voucher=voucher, signature=signature, signer=self.authority.address)

    def verify(self, signed_voucher: SignedVoucher, expected_signer: Optional[str] = None) -> bool:
        """
        Verify a signed voucher against this signer's domain.

        Args:
            signed_voucher: Voucher and signature
            expected_signer: Address that must have signed (defaults to this authority)

        Returns:
            True if the signature is valid for the voucher and signer
        """
        return self.verify_encoded(
            self.encode(signed_voucher.voucher),
            signed_voucher.signature,
            expected_signer or self.authority.address
        )

    @staticmethod
    def verify_encoded(encoded: bytes, signature: str, signer: str) -> bool:
        """
        Verify a signature over a canonical voucher encoding.

        Args:
            encoded: Output of ``encode``
            signature: 0x-prefixed 65-byte signature
            signer: Expected signer address

        Returns:
            True if the signature recovers to ``signer``
        """
        message = _signable_from_bytes(encoded)
        if message is None:
            return False
        try:
            raw_signature = Web3.to_bytes(hexstr=signature)
        except (ValueError, TypeError):
            return False
        # r (32) || s (32) || v (1)
        if len(raw_signature) != 65:
            return False
        try:
            recovered = Account.recover_message(message, signature=raw_signature)
        except (ValueError, TypeError, BadSignature, KeyValidationError, EthValidationError):
            return False
        return recovered == Web3.to_checksum_address(signer)
