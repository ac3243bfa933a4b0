"""
Tests for voucher construction and EIP-712 signing.
"""
import pytest
from eth_account import Account
from web3 import Web3

from mintauth.exceptions import SigningError
from mintauth.models import ClaimRequest, EligibilityVerdict, LedgerSnapshot
from mintauth.signer import (
    SigningAuthority, VoucherDomain, VoucherSigner, OPEN_ENDED, ZERO_ADDRESS,
    derive_uid, encode_voucher
)
from tests.test_helpers import (
    create_test_authority, TEST_PRIV_KEY, TEST_CHAIN_ID, TEST_COLLECTION, TEST_NOW, HOLDER_A
)


def _verdict(total=9):
    return EligibilityVerdict(
        sequence_number=total + 1,
        snapshot=LedgerSnapshot(holder_claim_count=0, total_issued=total),
    )


def _claim(**overrides):
    fields = {"requester_address": HOLDER_A, "display_name": "Owl"}
    fields.update(overrides)
    return ClaimRequest(**fields)


@pytest.fixture
def signer(authority):
    return VoucherSigner(authority, clock=lambda: TEST_NOW)


class TestSigningAuthority:

    def test_from_key(self, authority):
        assert authority.address == Account.from_key(TEST_PRIV_KEY).address
        assert authority.domain.chain_id == TEST_CHAIN_ID

    def test_repr_hides_key(self, authority):
        text = repr(authority)

        assert authority.address in text
        assert TEST_PRIV_KEY[2:] not in text
        assert "0123456789abcdef" not in text

    @pytest.mark.parametrize("key", [None, ""])
    def test_missing_key(self, key):
        with pytest.raises(SigningError, match="No signing key"):
            SigningAuthority.from_key(key, VoucherDomain(TEST_CHAIN_ID, TEST_COLLECTION))

    @pytest.mark.parametrize("key", ["0x1234", "not-a-key", "0x" + "00" * 32])
    def test_invalid_key_does_not_echo_key(self, key):
        with pytest.raises(SigningError) as excinfo:
            SigningAuthority.from_key(key, VoucherDomain(TEST_CHAIN_ID, TEST_COLLECTION))

        assert key not in str(excinfo.value)


class TestVoucherConstruction:

    def test_voucher_fields(self, signer):
        voucher = signer.build_voucher(_verdict(total=9), _claim(media_reference="https://example.com/owl.png"))

        assert voucher.to == HOLDER_A
        assert voucher.metadata.name == "Owl"
        assert voucher.metadata.image == "https://example.com/owl.png"
        assert voucher.sequence_number == 10
        assert voucher.price == 0
        assert voucher.currency == ZERO_ADDRESS
        assert voucher.validity_start_timestamp == TEST_NOW
        assert voucher.validity_end_timestamp == OPEN_ENDED
        assert voucher.uid == derive_uid(signer.domain, 10)

    def test_validity_window(self, authority):
        signer = VoucherSigner(authority, validity_seconds=3600, clock=lambda: TEST_NOW)

        voucher = signer.build_voucher(_verdict(), _claim())

        assert voucher.validity_end_timestamp == TEST_NOW + 3600

    def test_invalid_validity_window(self, authority):
        with pytest.raises(ValueError):
            VoucherSigner(authority, validity_seconds=0)

    def test_uid_depends_on_sequence_and_domain(self):
        domain = VoucherDomain(TEST_CHAIN_ID, TEST_COLLECTION)
        other_chain = VoucherDomain(1, TEST_COLLECTION)

        uid = derive_uid(domain, 1)
        assert uid.startswith("0x") and len(uid) == 66
        assert uid == derive_uid(domain, 1)
        assert uid != derive_uid(domain, 2)
        assert uid != derive_uid(other_chain, 1)

    def test_json_uses_wire_names(self, signer):
        data = signer.build_voucher(_verdict(), _claim()).to_json_dict()

        assert list(data) == [
            "to", "metadata", "uri", "sequenceNumber", "uid", "price", "currency",
            "validityStartTimestamp", "validityEndTimestamp",
        ]
        assert data["metadata"]["name"] == "Owl"
        assert data["validityEndTimestamp"] == "340282366920938463463374607431768211455"
        assert data["price"] == "0"


class TestSignatures:

    def test_signature_round_trip(self, signer, authority):
        signed = signer.sign(_verdict(), _claim())

        assert signed.signer == authority.address
        assert signer.verify(signed)
        assert VoucherSigner.verify_encoded(signer.encode(signed.voucher), signed.signature, authority.address)

    def test_signature_is_deterministic(self, signer):
        voucher = signer.build_voucher(_verdict(), _claim())

        assert signer.sign_voucher(voucher).signature == signer.sign_voucher(voucher).signature
        assert signer.encode(voucher) == signer.encode(voucher)

    def test_encoding_layout(self, signer):
        encoded = signer.encode(signer.build_voucher(_verdict(), _claim()))

        assert len(encoded) == 66
        assert encoded[:2] == b"\x19\x01"
        assert signer.digest(signer.build_voucher(_verdict(), _claim())) == Web3.to_hex(Web3.keccak(encoded))

    def test_every_flipped_byte_fails(self, signer, authority):
        signed = signer.sign(_verdict(), _claim())
        encoded = signer.encode(signed.voucher)

        for index in range(len(encoded)):
            tampered = bytearray(encoded)
            tampered[index] ^= 0x01
            assert not VoucherSigner.verify_encoded(bytes(tampered), signed.signature, authority.address), index

    def test_field_mutation_invalidates(self, signer):
        signed = signer.sign(_verdict(), _claim())

        for change in (
            {"to": Web3.to_checksum_address("0x" + "44" * 20)},
            {"sequence_number": signed.voucher.sequence_number + 1},
            {"price": 1},
            {"uri": "ipfs://QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG"},
            {"validity_end_timestamp": TEST_NOW},
        ):
            mutated = signed.model_copy(update={"voucher": signed.voucher.model_copy(update=change)})
            assert not signer.verify(mutated), change

    def test_metadata_is_signed(self, signer):
        signed = signer.sign(_verdict(), _claim())
        metadata = signed.voucher.metadata.model_copy(update={"name": "Fox"})
        mutated = signed.model_copy(update={"voucher": signed.voucher.model_copy(update={"metadata": metadata})})

        assert not signer.verify(mutated)

    def test_domain_separation(self, signer, authority):
        signed = signer.sign(_verdict(), _claim())
        other_domain = VoucherDomain(chain_id=1, verifying_contract=TEST_COLLECTION)

        assert not VoucherSigner.verify_encoded(
            encode_voucher(signed.voucher, other_domain), signed.signature, authority.address
        )

    def test_wrong_signer(self, signer):
        signed = signer.sign(_verdict(), _claim())

        assert not signer.verify(signed, expected_signer=HOLDER_A)

    @pytest.mark.parametrize("signature", ["0x", "0x1234", "not-hex"])
    def test_malformed_signature(self, signer, authority, signature):
        voucher = signer.build_voucher(_verdict(), _claim())

        assert not VoucherSigner.verify_encoded(signer.encode(voucher), signature, authority.address)

    def test_wrong_length_encoding(self, signer, authority):
        signed = signer.sign(_verdict(), _claim())
        encoded = signer.encode(signed.voucher)

        assert not VoucherSigner.verify_encoded(encoded[:-1], signed.signature, authority.address)
        assert not VoucherSigner.verify_encoded(encoded + b"\x00", signed.signature, authority.address)

    def test_signing_failure_is_signing_error(self, authority, monkeypatch):
        signer = VoucherSigner(authority, clock=lambda: TEST_NOW)

        def broken(*_a, **_kw):
            raise ValueError("bad key material")

        monkeypatch.setattr(type(authority.account), "sign_message", broken)
        with pytest.raises(SigningError):
            signer.sign(_verdict(), _claim())


def test_different_authorities_disagree():
    other = create_test_authority(priv_key="0x" + "ab" * 32)
    signer = VoucherSigner(create_test_authority(), clock=lambda: TEST_NOW)
    other_signer = VoucherSigner(other, clock=lambda: TEST_NOW)

    signed = other_signer.sign(_verdict(), _claim())

    assert not signer.verify(signed)
    assert other_signer.verify(signed)
