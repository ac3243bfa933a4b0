"""
Pytest fixtures for the mint authorization tests.
"""
import os
import time

import pytest

from mintauth._rate_limited_log import reset_rate_limits
from mintauth.config import NetworkConfig
from mintauth.ledger import InMemoryLedger
from mintauth.exceptions import UpstreamError, UpstreamTimeoutError

from tests.test_helpers import create_test_service, create_test_authority, HOLDER_A
from tests.test_helpers.ledgers import FailingLedger


# Make time.sleep instantaneous so retries don't slow the suite down
@pytest.fixture(autouse=True)
def _fast_sleep(monkeypatch):
    monkeypatch.setattr(time, "sleep", lambda *_a, **_kw: None)


@pytest.fixture(autouse=True)
def _reset_module_state():
    reset_rate_limits()
    NetworkConfig._networks_cache = None
    yield
    reset_rate_limits()
    NetworkConfig._networks_cache = None


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep developer MINTAUTH_* variables out of the tests"""
    for name in list(os.environ):
        if name.startswith("MINTAUTH_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def authority():
    return create_test_authority()


@pytest.fixture
def ledger():
    return InMemoryLedger()


@pytest.fixture
def service(ledger):
    return create_test_service(ledger=ledger)


@pytest.fixture
def owl_request():
    return {"requesterAddress": HOLDER_A, "displayName": "Owl"}


@pytest.fixture
def failing_ledger():
    return FailingLedger(UpstreamError("ledger down"))


@pytest.fixture
def timeout_ledger():
    return FailingLedger(UpstreamTimeoutError("ledger timed out"))
