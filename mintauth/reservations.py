"""
Reservation book for issued but not yet redeemed vouchers.

The ledger only changes when a voucher is redeemed, long after it was
signed. Without reservations two requests that read the ledger before
either voucher is redeemed both see the same free slot. The book closes
that gap inside one process:

* a lock is held across snapshot, eligibility check and signing
* every issued voucher is recorded for as long as it can be redeemed
* snapshots are adjusted by the vouchers still outstanding

A reservation lives at least as long as its voucher. Bounded vouchers get
a TTLCache entry that expires after them; open-ended vouchers keep their
reservation for the life of the process.
"""
import time
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional, Union

from cachetools import TTLCache

from .exceptions import UpstreamTimeoutError
from .models import LedgerSnapshot
from .utils import short_address

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT = 30.0


@dataclass(frozen=True)
class Reservation:
    """One outstanding voucher"""
    address: str
    sequence_number: int
    # Holder's adjusted claim count when the voucher was issued
    holder_count: int


class ReservationBook:
    """Process-local reservations keyed by sequence number"""

    def __init__(
        self,
        ttl: Optional[float] = None,
        maxsize: int = 100_000,
        timer: Callable[[], float] = time.monotonic,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT
    ):
        """
        Initialize the book

        Args:
            ttl: Seconds a reservation is held, None to hold it until the
                process exits (for open-ended vouchers)
            maxsize: Maximum number of outstanding reservations
            timer: Clock used for expiry
            lock_timeout: Seconds to wait for the lock before giving up
        """
        if ttl is not None and ttl <= 0:
            raise ValueError("Reservation ttl must be positive")
        if lock_timeout <= 0:
            raise ValueError("Lock timeout must be positive")
        self.ttl = ttl
        self.lock_timeout = lock_timeout
        self._lock = threading.Lock()
        self._pending: Union[Dict[int, Reservation], TTLCache]
        if ttl is None:
            self._pending = {}
        else:
            self._pending = TTLCache(maxsize=maxsize, ttl=ttl, timer=timer)

    @contextmanager
    def hold(self, timeout: Optional[float] = None) -> Iterator["ReservationBook"]:
        """
        Hold the book's lock across a check-and-sign sequence.

        Args:
            timeout: Seconds to wait for the lock (defaults to ``lock_timeout``)

        Raises:
            UpstreamTimeoutError: If the lock is not acquired in time
        """
        wait = self.lock_timeout if timeout is None else timeout
        if not self._lock.acquire(timeout=wait):
            raise UpstreamTimeoutError(f"Timed out after {wait}s waiting for the reservation lock")
        try:
            yield self
        finally:
            self._lock.release()

    def _live(self) -> List[Reservation]:
        if isinstance(self._pending, TTLCache):
            # Freeze the cache clock so nothing expires mid-iteration
            with self._pending.timer:
                return list(self._pending.values())
        return list(self._pending.values())

    def adjust(self, address: str, snapshot: LedgerSnapshot) -> LedgerSnapshot:
        """
        Add outstanding reservations to a ledger snapshot.

        A reservation counts against the total while its sequence number is
        above the ledger's total, and against its holder while the holder's
        ledger count has not caught up with it. Call while holding the lock.

        Args:
            address: Holder the snapshot was read for
            snapshot: Fresh ledger snapshot

        Returns:
            Adjusted snapshot
        """
        live = self._live()
        outstanding = sum(1 for r in live if r.sequence_number > snapshot.total_issued)
        holder_outstanding = sum(
            1 for r in live
            if r.address == address and r.holder_count >= snapshot.holder_claim_count
        )
        if outstanding or holder_outstanding:
            logger.debug(
                f"Adjusting snapshot for {short_address(address)}: "
                f"+{holder_outstanding} holder, +{outstanding} total"
            )
        return LedgerSnapshot(
            holder_claim_count=snapshot.holder_claim_count + holder_outstanding,
            total_issued=snapshot.total_issued + outstanding,
        )

    def reserve(self, address: str, sequence_number: int, holder_count: int) -> Reservation:
        """
        Record an issued voucher. Call while holding the lock.

        Args:
            address: Recipient
            sequence_number: Voucher sequence number
            holder_count: Adjusted holder count the voucher was issued at

        Returns:
            The reservation
        """
        reservation = Reservation(address=address, sequence_number=sequence_number, holder_count=holder_count)
        self._pending[sequence_number] = reservation
        logger.debug(f"Reserved sequence {sequence_number} for {short_address(address)}")
        return reservation

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)
