"""
Allocation ledger implementations.

``ContractLedger`` reads a deployed collection over JSON-RPC;
``InMemoryLedger`` stands in for it during development and tests.
"""
import logging
from typing import TYPE_CHECKING, Optional

from web3 import Web3

from .base import AllocationLedger
from .memory import InMemoryLedger
from .contract import ContractLedger

if TYPE_CHECKING:
    from ..config import ServiceConfig

__all__ = ['AllocationLedger', 'InMemoryLedger', 'ContractLedger', 'get_ledger']

logger = logging.getLogger(__name__)


LEDGER_BACKENDS = ("contract", "memory")


def _has_collection(address: Optional[str]) -> bool:
    return bool(address) and Web3.is_address(address) and int(address, 16) != 0


def get_ledger(config: "ServiceConfig") -> AllocationLedger:
    """
    Get the ledger described by a configuration.

    Args:
        config: Service configuration

    Returns:
        ContractLedger, or an empty InMemoryLedger when ``ledger`` is "memory"

    Raises:
        ValueError: If the backend is unknown, or the contract ledger has no
            RPC URL or no collection address
    """
    if config.ledger not in LEDGER_BACKENDS:
        raise ValueError(f"Unknown ledger '{config.ledger}'. Available: {', '.join(LEDGER_BACKENDS)}")

    if config.ledger == "memory":
        logger.warning("MINTAUTH_LEDGER=memory: using an empty in-memory ledger, for development only")
        return InMemoryLedger()

    if not config.rpc_url:
        raise ValueError("MINTAUTH_RPC_URL is required (set MINTAUTH_LEDGER=memory for local development)")
    if not _has_collection(config.collection_address):
        raise ValueError("MINTAUTH_COLLECTION_ADDRESS is required for the contract ledger")

    logger.info("Using contract ledger")
    return ContractLedger(
        rpc_url=config.rpc_url,
        collection_address=config.collection_address,
        timeout=config.upstream_timeout,
        max_retries=config.upstream_retries,
    )
