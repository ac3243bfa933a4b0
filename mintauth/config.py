"""
Configuration for the mint authorization service.

Settings come from ``MINTAUTH_*`` environment variables. Named networks
(chain id, RPC endpoint, collection address) ship in ``networks.json``.
"""
import os
import json
import logging
import importlib.resources
from dataclasses import dataclass, field
from typing import Dict, Any, Optional, FrozenSet, Mapping

from .models import EligibilityPolicy

logger = logging.getLogger(__name__)

_TRUE_VALUES = ("1", "true", "yes", "on")


class NetworkConfig:
    """Access to the packaged network definitions"""

    _networks_cache: Optional[Dict[str, Dict[str, Any]]] = None

    @classmethod
    def load_networks(cls) -> Dict[str, Dict[str, Any]]:
        """
        Load network definitions, cached after the first call.

        Returns:
            Mapping of network name to its settings
        """
        if cls._networks_cache is None:
            resource = importlib.resources.files("mintauth").joinpath("networks.json")
            with resource.open("r", encoding="utf-8") as f:
                cls._networks_cache = json.load(f)
        return cls._networks_cache

    @classmethod
    def get_network(cls, name: str) -> Dict[str, Any]:
        """
        Get one network definition.

        Args:
            name: Network name, e.g. "polygon-amoy"

        Returns:
            Network settings

        Raises:
            ValueError: If the network is unknown
        """
        networks = cls.load_networks()
        if name not in networks:
            raise ValueError(f"Unknown network '{name}'. Available: {', '.join(sorted(networks))}")
        return networks[name]


def _get(environ: Mapping[str, str], name: str, default: Optional[str] = None) -> Optional[str]:
    value = environ.get(f"MINTAUTH_{name}")
    if value is None or value.strip() == "":
        return default
    return value.strip()


def _get_int(environ: Mapping[str, str], name: str, default: Optional[int]) -> Optional[int]:
    value = _get(environ, name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"MINTAUTH_{name} must be an integer, got {value!r}")


def _get_bool(environ: Mapping[str, str], name: str, default: bool) -> bool:
    value = _get(environ, name)
    if value is None:
        return default
    return value.lower() in _TRUE_VALUES


@dataclass(frozen=True)
class ServiceConfig:
    """
    Immutable service settings.

    Attributes:
        signer_key: Hex private key of the signing authority (never logged)
        chain_id: Chain id the vouchers are bound to
        collection_address: Collection contract (EIP-712 verifying contract)
        ledger: Ledger backend, "contract" (needs rpc_url and a collection) or
            "memory" for local development
        rpc_url: JSON-RPC endpoint of the collection contract
        pinner_url: IPFS pinning service, None to skip metadata pinning
        max_supply: Maximum number of units
        per_holder_limit: Units one holder may claim
        allowed_names: Optional allow-list of display names
        require_media: Whether claims must carry a media reference
        validity_seconds: Voucher lifetime, None for open-ended vouchers
        reserve_claims: Hold a reservation across check and sign
        lock_timeout: Seconds a request waits for the reservation lock
        upstream_timeout: Timeout for ledger and storage calls in seconds
        upstream_retries: Retries for transient upstream failures
        domain_name: EIP-712 domain name
        domain_version: EIP-712 domain version
        max_name_length: Maximum display name length
        log_level: Root log level for the server and CLI
    """
    signer_key: Optional[str] = field(default=None, repr=False)
    chain_id: int = 31337
    collection_address: str = "0x0000000000000000000000000000000000000000"
    ledger: str = "contract"
    rpc_url: Optional[str] = None
    pinner_url: Optional[str] = None
    max_supply: int = 100
    per_holder_limit: int = 1
    allowed_names: Optional[FrozenSet[str]] = None
    require_media: bool = False
    validity_seconds: Optional[int] = None
    reserve_claims: bool = True
    lock_timeout: int = 30
    upstream_timeout: int = 10
    upstream_retries: int = 3
    domain_name: str = "MintVoucher"
    domain_version: str = "1"
    max_name_length: int = 64
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ServiceConfig":
        """
        Build the configuration from environment variables.

        ``MINTAUTH_NETWORK`` selects a packaged network whose values act as
        defaults for chain id, RPC URL and collection address.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            ServiceConfig

        Raises:
            ValueError: If a variable has an invalid value
        """
        env = os.environ if environ is None else environ

        network: Dict[str, Any] = {}
        network_name = _get(env, "NETWORK")
        if network_name:
            network = NetworkConfig.get_network(network_name)
            logger.info(f"Using network '{network_name}' (chain id {network.get('chainId')})")

        names = _get(env, "ALLOWED_NAMES")
        allowed_names = None
        if names:
            allowed_names = frozenset(n.strip().lower() for n in names.split(",") if n.strip())

        return cls(
            signer_key=_get(env, "SIGNER_KEY"),
            chain_id=_get_int(env, "CHAIN_ID", network.get("chainId", cls.chain_id)),
            collection_address=_get(env, "COLLECTION_ADDRESS", network.get("collection") or cls.collection_address),
            ledger=_get(env, "LEDGER", cls.ledger).lower(),
            rpc_url=_get(env, "RPC_URL", network.get("rpc")),
            pinner_url=_get(env, "PINNER_URL"),
            max_supply=_get_int(env, "MAX_SUPPLY", cls.max_supply),
            per_holder_limit=_get_int(env, "PER_HOLDER_LIMIT", cls.per_holder_limit),
            allowed_names=allowed_names,
            require_media=_get_bool(env, "REQUIRE_MEDIA", cls.require_media),
            validity_seconds=_get_int(env, "VALIDITY_SECONDS", None),
            reserve_claims=_get_bool(env, "RESERVE_CLAIMS", cls.reserve_claims),
            lock_timeout=_get_int(env, "LOCK_TIMEOUT", cls.lock_timeout),
            upstream_timeout=_get_int(env, "UPSTREAM_TIMEOUT", cls.upstream_timeout),
            upstream_retries=_get_int(env, "UPSTREAM_RETRIES", cls.upstream_retries),
            domain_name=_get(env, "DOMAIN_NAME", cls.domain_name),
            domain_version=_get(env, "DOMAIN_VERSION", cls.domain_version),
            max_name_length=_get_int(env, "MAX_NAME_LENGTH", cls.max_name_length),
            log_level=_get(env, "LOG_LEVEL", cls.log_level).upper(),
        )

    def policy(self) -> EligibilityPolicy:
        """The eligibility policy described by this configuration"""
        return EligibilityPolicy(
            max_supply=self.max_supply,
            per_holder_limit=self.per_holder_limit,
            allowed_names=self.allowed_names,
            require_media=self.require_media,
        )
