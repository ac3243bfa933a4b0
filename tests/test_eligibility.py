"""
Tests for the eligibility rules.
"""
import pytest

from mintauth.eligibility import EligibilityEngine
from mintauth.exceptions import PolicyViolationError, DuplicateClaimError, SupplyExhaustedError
from mintauth.ledger import InMemoryLedger
from mintauth.models import ClaimRequest, EligibilityPolicy, LedgerSnapshot
from tests.test_helpers import HOLDER_A


def _claim(name="Owl", address=HOLDER_A):
    return ClaimRequest(requester_address=address, display_name=name)


def _snapshot(held=0, total=0):
    return LedgerSnapshot(holder_claim_count=held, total_issued=total)


class TestEligibilityEngine:
    """Tests for EligibilityEngine.evaluate"""

    def test_eligible_claim_gets_next_sequence(self):
        engine = EligibilityEngine(EligibilityPolicy(max_supply=100))

        verdict = engine.evaluate(_claim(), _snapshot(total=41))

        assert verdict.sequence_number == 42
        assert verdict.snapshot.total_issued == 41

    def test_supply_exhausted(self):
        """maxSupply=100, totalIssued=100 -> supply exhausted"""
        engine = EligibilityEngine(EligibilityPolicy(max_supply=100))

        with pytest.raises(SupplyExhaustedError, match="Supply exhausted"):
            engine.evaluate(_claim(), _snapshot(total=100))

    def test_supply_over_cap_is_exhausted(self):
        engine = EligibilityEngine(EligibilityPolicy(max_supply=100))

        with pytest.raises(SupplyExhaustedError):
            engine.evaluate(_claim(), _snapshot(total=101))

    def test_last_slot_is_available(self):
        engine = EligibilityEngine(EligibilityPolicy(max_supply=100))

        assert engine.evaluate(_claim(), _snapshot(total=99)).sequence_number == 100

    def test_already_claimed(self):
        """Holder with one claim and perHolderLimit=1 -> already claimed"""
        engine = EligibilityEngine(EligibilityPolicy(max_supply=100, per_holder_limit=1))

        with pytest.raises(DuplicateClaimError, match="already claimed"):
            engine.evaluate(_claim(), _snapshot(held=1, total=5))

    def test_higher_per_holder_limit(self):
        engine = EligibilityEngine(EligibilityPolicy(max_supply=100, per_holder_limit=3))

        assert engine.evaluate(_claim(), _snapshot(held=2, total=5)).sequence_number == 6
        with pytest.raises(DuplicateClaimError):
            engine.evaluate(_claim(), _snapshot(held=3, total=5))

    def test_zero_limit_rejects_everyone(self):
        engine = EligibilityEngine(EligibilityPolicy(max_supply=100, per_holder_limit=0))

        with pytest.raises(DuplicateClaimError):
            engine.evaluate(_claim(), _snapshot())

    @pytest.mark.parametrize("name", ["Fox", "fox", "FOX", "Owl", " owl "])
    def test_allow_list_is_case_insensitive(self, name):
        engine = EligibilityEngine(EligibilityPolicy(max_supply=100, allowed_names={"fox", "owl"}))

        assert engine.evaluate(_claim(name), _snapshot()).sequence_number == 1

    @pytest.mark.parametrize("name", ["dog", "Dog", "foxes"])
    def test_name_not_on_allow_list(self, name):
        engine = EligibilityEngine(EligibilityPolicy(max_supply=100, allowed_names={"fox", "owl"}))

        with pytest.raises(PolicyViolationError, match="not an approved name"):
            engine.evaluate(_claim(name), _snapshot())

    def test_allow_list_entries_are_normalized(self):
        policy = EligibilityPolicy(max_supply=1, allowed_names=["Fox", " OWL "])

        assert policy.allowed_names == frozenset({"fox", "owl"})

    def test_no_allow_list_accepts_any_name(self):
        engine = EligibilityEngine(EligibilityPolicy(max_supply=100))

        assert engine.evaluate(_claim("Anything at all"), _snapshot()).sequence_number == 1


class TestCheckOrder:
    """The first failing check decides the error"""

    def test_name_checked_before_duplicate(self):
        engine = EligibilityEngine(EligibilityPolicy(max_supply=10, allowed_names={"owl"}))

        with pytest.raises(PolicyViolationError):
            engine.evaluate(_claim("Dog"), _snapshot(held=1, total=10))

    def test_duplicate_checked_before_supply(self):
        engine = EligibilityEngine(EligibilityPolicy(max_supply=10))

        with pytest.raises(DuplicateClaimError):
            engine.evaluate(_claim(), _snapshot(held=1, total=10))


def test_snapshot_reads_ledger():
    ledger = InMemoryLedger(holdings={HOLDER_A: 1}, total_issued=7)
    engine = EligibilityEngine(EligibilityPolicy(max_supply=10))

    snapshot = engine.snapshot(ledger, _claim())

    assert snapshot.holder_claim_count == 1
    assert snapshot.total_issued == 7


def test_evaluate_is_idempotent():
    engine = EligibilityEngine(EligibilityPolicy(max_supply=10))
    snapshot = _snapshot(total=3)

    first = engine.evaluate(_claim(), snapshot)
    second = engine.evaluate(_claim(), snapshot)

    assert first == second
