"""
Allocation ledger interface.

The ledger is the external source of truth for how many units exist and who
holds them. This service only ever reads from it.
"""
import logging
from abc import ABC, abstractmethod

from ..models import LedgerSnapshot

logger = logging.getLogger(__name__)


class AllocationLedger(ABC):
    """
    Abstract base class for allocation ledger implementations.

    Implementations must raise UpstreamError (or a subclass) when the
    backing store cannot be reached, never hang indefinitely.
    """

    @abstractmethod
    def holder_claim_count(self, address: str) -> int:
        """
        Number of units currently held by an address.

        Args:
            address: Checksummed holder address

        Returns:
            Unit count

        Raises:
            UpstreamError: If the ledger cannot be read
        """
        pass

    @abstractmethod
    def total_issued(self) -> int:
        """
        Total number of units issued so far.

        Raises:
            UpstreamError: If the ledger cannot be read
        """
        pass

    def snapshot(self, address: str) -> LedgerSnapshot:
        """
        Read a fresh point-in-time snapshot for one holder.

        The two reads are not isolated from each other; the snapshot is
        stale as soon as it is returned.

        Args:
            address: Checksummed holder address

        Returns:
            LedgerSnapshot
        """
        holder_count = self.holder_claim_count(address)
        total = self.total_issued()
        logger.debug(f"Ledger snapshot for {address[:6]}…: holder={holder_count} total={total}")
        return LedgerSnapshot(holder_claim_count=holder_count, total_issued=total)

    def close(self) -> None:
        """Close any open connections or resources."""
        pass
