"""
Configuration for the EthLayer SDK.

``NetworkConfig`` serves the packaged table of named networks.
``ServiceConfig`` is the explicit, per-client configuration object that
replaces any process-wide default provider or signer.
"""
import importlib.resources
import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

ALCHEMY_API_KEY_ENV = "ALCHEMY_API_KEY"
PRIVATE_KEY_ENV = "PRIVATE_KEY"
DEFAULT_NETWORK_ENV = "DEFAULT_NETWORK"
IPFS_GATEWAY_ENV = "IPFS_GATEWAY"

DEFAULT_IPFS_GATEWAY = "https://ipfs.io/ipfs/"
DEFAULT_LOG_SCAN_BLOCK_RANGE = 50_000
DEFAULT_MAX_OWNED_TOKENS = 100


class NetworkConfig:
    """Access to the named networks shipped in ``networks.json``."""

    _networks_cache: Optional[Dict[str, Dict[str, Any]]] = None
    _alias_cache: Optional[Dict[str, str]] = None

    @classmethod
    def load_networks(cls) -> Dict[str, Dict[str, Any]]:
        """
        Load the network table, caching it after the first read.

        Returns:
            Mapping of canonical network name to its configuration
        """
        if cls._networks_cache is not None:
            return cls._networks_cache

        resource = importlib.resources.files("ethlayer_sdk").joinpath("networks.json")
        with resource.open("r", encoding="utf-8") as f:
            cls._networks_cache = json.load(f)
        cls._alias_cache = None
        logger.debug("Loaded %d network definitions", len(cls._networks_cache))
        return cls._networks_cache

    @classmethod
    def _aliases(cls) -> Dict[str, str]:
        if cls._alias_cache is None:
            aliases = {}
            for name, network in cls.load_networks().items():
                aliases[name] = name
                for alias in network.get("aliases", []):
                    aliases[alias] = name
            cls._alias_cache = aliases
        return cls._alias_cache

    @classmethod
    def network_names(cls) -> List[str]:
        """Canonical names of all supported networks."""
        return list(cls.load_networks().keys())

    @classmethod
    def resolve_name(cls, name: str) -> Optional[str]:
        """
        Map a network name or display alias ("Polygon PoS") to its canonical name.

        Returns:
            The canonical name, or None if the name is unknown
        """
        return cls._aliases().get(name)

    @classmethod
    def get_network(cls, name: str) -> Dict[str, Any]:
        """
        Get the configuration of a named network.

        Raises:
            ValueError: If the network is unknown (the message lists available networks)
        """
        canonical = cls.resolve_name(name)
        if canonical is None:
            available = ", ".join(cls.network_names())
            raise ValueError(f"Network '{name}' not found. Available networks: {available}")
        return cls.load_networks()[canonical]

    @classmethod
    def get_chain_id(cls, name: str) -> int:
        """Chain ID of a named network."""
        return int(cls.get_network(name)["chainId"])

    @classmethod
    def get_rpc_url(cls, name: str, api_key: Optional[str] = None, override: Optional[str] = None) -> str:
        """
        Build the RPC URL of a named network.

        Precedence: explicit override, then ``<NAME>_RPC_URL`` from the
        environment, then the Alchemy endpoint built from ``api_key``.

        Raises:
            ValueError: If the network is unknown or no API key is available
        """
        if override:
            return override

        canonical = cls.resolve_name(name) or name
        env_var = f"{canonical.upper().replace('-', '_')}_RPC_URL"
        env_url = os.environ.get(env_var)
        if env_url:
            return env_url

        network = cls.get_network(name)
        if not api_key:
            raise ValueError(f"Missing {ALCHEMY_API_KEY_ENV} for network '{canonical}'")
        return f"https://{network['alchemy']}.g.alchemy.com/v2/{api_key}"


@dataclass
class ServiceConfig:
    """
    Configuration owned by one client instance.

    ``provider`` and ``signer`` are the instance-level defaults set through the
    client setters. Mutation is last-writer-wins and is not safe while other
    threads are using the same client.

    Attributes:
        default_network: Network name or RPC URL used when a call names none
        alchemy_api_key: API key for named networks
        private_key: Signing key used when no signer is set or passed
        ipfs_gateway: HTTP gateway prefix for ipfs:// metadata URIs
        metadata_timeout: Timeout in seconds for metadata document requests
        log_scan_block_range: Blocks scanned back from head when a contract
            cannot enumerate tokens of an owner
        max_owned_tokens: Upper bound on tokens returned by owner scans
        provider: Instance-level default connection (Web3 or identifier)
        signer: Instance-level default signer
    """
    default_network: str = "mainnet"
    alchemy_api_key: Optional[str] = None
    private_key: Optional[str] = None
    ipfs_gateway: str = DEFAULT_IPFS_GATEWAY
    metadata_timeout: int = 30
    log_scan_block_range: int = DEFAULT_LOG_SCAN_BLOCK_RANGE
    max_owned_tokens: int = DEFAULT_MAX_OWNED_TOKENS
    provider: Any = None
    signer: Any = None

    @classmethod
    def from_env(cls, **overrides: Any) -> "ServiceConfig":
        """
        Build a configuration from environment variables.

        Reads DEFAULT_NETWORK, ALCHEMY_API_KEY, PRIVATE_KEY and IPFS_GATEWAY;
        keyword arguments take precedence over the environment.
        """
        values: Dict[str, Any] = {
            "default_network": os.environ.get(DEFAULT_NETWORK_ENV) or "mainnet",
            "alchemy_api_key": os.environ.get(ALCHEMY_API_KEY_ENV) or None,
            "private_key": os.environ.get(PRIVATE_KEY_ENV) or None,
            "ipfs_gateway": os.environ.get(IPFS_GATEWAY_ENV) or DEFAULT_IPFS_GATEWAY,
        }
        values.update(overrides)
        return cls(**values)

    def __repr__(self) -> str:
        # Keys are never rendered
        return (
            f"ServiceConfig(default_network={self.default_network!r}, "
            f"alchemy_api_key={'***' if self.alchemy_api_key else None}, "
            f"private_key={'***' if self.private_key else None}, "
            f"provider={'set' if self.provider is not None else None}, "
            f"signer={'set' if self.signer is not None else None})"
        )
