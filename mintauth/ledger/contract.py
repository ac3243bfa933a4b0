"""
Allocation ledger backed by a deployed ERC-721 collection.

Reads ``balanceOf`` and ``totalSupply`` over JSON-RPC. Every call carries a
timeout and is retried with exponential backoff before surfacing as an
UpstreamError.
"""
import logging
from typing import Callable, Optional, TypeVar

import requests
from web3 import Web3
from web3.exceptions import Web3Exception, ContractLogicError, BadFunctionCallOutput

from .base import AllocationLedger
from .._retry import call_with_retries
from ..exceptions import UpstreamError, UpstreamTimeoutError
from ..utils import short_address, validate_upstream_url

T = TypeVar('T')

logger = logging.getLogger(__name__)


class ContractLedger(AllocationLedger):
    """
    Read-only view of an NFT collection contract.
    """

    # Minimal ERC-721 (enumerable) ABI
    COLLECTION_ABI = [
        {
            "inputs": [{"internalType": "address", "name": "owner", "type": "address"}],
            "name": "balanceOf",
            "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
            "stateMutability": "view",
            "type": "function"
        },
        {
            "inputs": [],
            "name": "totalSupply",
            "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
            "stateMutability": "view",
            "type": "function"
        }
    ]

    def __init__(
        self,
        rpc_url: str,
        collection_address: str,
        timeout: int = 10,
        max_retries: int = 3,
        backoff_base: float = 0.5,
        w3: Optional[Web3] = None
    ):
        """
        Initialize the ledger

        Args:
            rpc_url: JSON-RPC endpoint URL
            collection_address: Address of the collection contract
            timeout: Per-call timeout in seconds
            max_retries: Retries after the first attempt for transient failures
            backoff_base: Base delay for exponential backoff in seconds
            w3: Preconfigured Web3 instance (tests)

        Raises:
            ValueError: If the URL is insecure or the address is invalid
        """
        validate_upstream_url("rpc_url", rpc_url)
        if not Web3.is_address(collection_address):
            raise ValueError(f"Invalid collection address: {collection_address}")

        self.rpc_url = rpc_url
        self.collection_address = Web3.to_checksum_address(collection_address)
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_base = backoff_base

        self.w3 = w3 or Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))
        self.contract = self.w3.eth.contract(
            address=self.collection_address,
            abi=self.COLLECTION_ABI
        )
        logger.debug(f"Initialized contract ledger for {short_address(self.collection_address)}")

    def holder_claim_count(self, address: str) -> int:
        checksum = Web3.to_checksum_address(address)
        return self._read(
            lambda: self.contract.functions.balanceOf(checksum).call(),
            f"balanceOf({short_address(checksum)})"
        )

    def total_issued(self) -> int:
        return self._read(
            lambda: self.contract.functions.totalSupply().call(),
            "totalSupply()"
        )

    def _read(self, call: Callable[[], T], description: str) -> T:
        def attempt():
            try:
                return int(call())
            except requests.Timeout as e:
                raise UpstreamTimeoutError(f"Ledger call {description} timed out after {self.timeout}s") from e
            except requests.RequestException as e:
                raise UpstreamError(f"Ledger unreachable during {description}: {e}") from e
            except (ContractLogicError, BadFunctionCallOutput) as e:
                # The node answered; retrying would give the same answer
                raise UpstreamError(f"Ledger rejected {description}: {e}", retryable=False) from e
            except Web3Exception as e:
                raise UpstreamError(f"Ledger error during {description}: {e}") from e

        return call_with_retries(
            attempt,
            f"Ledger call {description}",
            max_retries=self.max_retries,
            backoff_base=self.backoff_base
        )

