"""
In-memory allocation ledger.

Used for development and tests in place of a deployed collection. Redemption
is simulated with ``record_mint``.
"""
import logging
import threading
from collections import Counter
from typing import Optional, Dict

from web3 import Web3

from .base import AllocationLedger

logger = logging.getLogger(__name__)


class InMemoryLedger(AllocationLedger):
    """Thread-safe ledger backed by a Counter"""

    def __init__(self, holdings: Optional[Dict[str, int]] = None, total_issued: Optional[int] = None):
        """
        Initialize the ledger.

        Args:
            holdings: Initial units per holder address
            total_issued: Initial total; defaults to the sum of ``holdings``
        """
        self._lock = threading.RLock()
        self._holdings = Counter()
        for address, count in (holdings or {}).items():
            self._holdings[Web3.to_checksum_address(address)] = count
        self._total = sum(self._holdings.values()) if total_issued is None else total_issued
        if self._total < sum(self._holdings.values()):
            raise ValueError("total_issued cannot be less than the sum of holdings")

    def holder_claim_count(self, address: str) -> int:
        with self._lock:
            return self._holdings[Web3.to_checksum_address(address)]

    def total_issued(self) -> int:
        with self._lock:
            return self._total

    def record_mint(self, address: str) -> int:
        """
        Record a redeemed voucher.

        Args:
            address: Recipient address

        Returns:
            The new total
        """
        with self._lock:
            self._holdings[Web3.to_checksum_address(address)] += 1
            self._total += 1
            logger.debug(f"Recorded mint for {address[:6]}…, total now {self._total}")
            return self._total
