"""
Network resolution: turn a network name, RPC URL or nothing at all into a
live JSON-RPC connection.
"""
import logging
import urllib.parse
from typing import Any, List, Optional, Union

from web3 import Web3
from web3.middleware import ExtraDataToPOAMiddleware

from ._rate_limited_log import rate_limited_log
from .config import ALCHEMY_API_KEY_ENV, NetworkConfig, ServiceConfig
from .exceptions import InvalidNetworkError, InvalidUrlError, MissingCredentialError
from .models import NativeCurrency, NetworkDescriptor

logger = logging.getLogger(__name__)


class ConnectionHandle:
    """
    A resolved connection, created for one call and never pooled.

    Attributes:
        w3: Web3 instance bound to the endpoint
        network: Canonical network name, or None for a raw URL
        endpoint: Endpoint label with credentials redacted
        warnings: Warnings recorded while resolving
    """

    def __init__(
        self,
        w3: Web3,
        network: Optional[str] = None,
        endpoint: str = "",
        chain_id: Optional[int] = None,
        warnings: Optional[List[str]] = None,
    ):
        self.w3 = w3
        self.network = network
        self.endpoint = endpoint
        self._chain_id = chain_id
        self.warnings: List[str] = warnings or []

    @property
    def chain_id(self) -> int:
        """Chain ID of the connection; queried from the node when not known up front."""
        if self._chain_id is None:
            self._chain_id = int(self.w3.eth.chain_id)
        return self._chain_id

    def fresh(self) -> "ConnectionHandle":
        """A new handle on the same endpoint with no recorded warnings"""
        return ConnectionHandle(self.w3, network=self.network, endpoint=self.endpoint, chain_id=self._chain_id)

    def __repr__(self) -> str:
        return f"ConnectionHandle(network={self.network!r}, endpoint={self.endpoint!r})"


def redact_url(url: str) -> str:
    """Drop credentials, query string and API-key path segments from a URL."""
    parsed = urllib.parse.urlparse(url)
    # netloc without userinfo; the port text is kept even when out of range
    host = parsed.netloc.rpartition("@")[2]
    path = parsed.path
    if "alchemy.com" in host and "/v2/" in path:
        path = path.split("/v2/")[0] + "/v2/***"
    return f"{parsed.scheme}://{host}{path}"


def validate_rpc_url(url: str) -> str:
    """
    Check that a raw endpoint is a well-formed http(s) URL with a host.

    Raises:
        InvalidUrlError: If the URL is malformed
    """
    try:
        parsed = urllib.parse.urlparse(url)
        host = parsed.hostname
        # Accessing .port validates the port component
        parsed.port
    except ValueError as e:
        raise InvalidUrlError(f"Invalid RPC URL: {redact_url(url)}", details={"reason": str(e)}) from e
    if parsed.scheme not in ("http", "https") or not host:
        raise InvalidUrlError(
            f"Invalid RPC URL: {redact_url(url)}. Expected an http:// or https:// URL with a host"
        )
    return url


class NetworkResolver:
    """
    Resolves network identifiers against one ``ServiceConfig``.

    Args:
        config: Configuration holding the API key, default network and the
            instance-level provider slot
    """

    def __init__(self, config: ServiceConfig):
        self.config = config

    def resolve(
        self,
        identifier: Optional[Union[str, Web3, ConnectionHandle]] = None,
        chain_id: Optional[int] = None,
    ) -> ConnectionHandle:
        """
        Resolve an identifier to a connection.

        Args:
            identifier: Network name or alias, http(s) URL, Web3 instance, or
                None for the configured default
            chain_id: Expected chain ID; a mismatch is reported as a warning

        Returns:
            A new ConnectionHandle, never shared with another call

        Raises:
            MissingCredentialError: If a named network is used without an API key
            InvalidUrlError: If a raw URL is malformed
            InvalidNetworkError: If the identifier is not recognised
        """
        if identifier is None:
            identifier = self.config.provider if self.config.provider is not None else self.config.default_network

        if isinstance(identifier, ConnectionHandle):
            # Each call owns its handle, so warnings never carry over
            handle = identifier.fresh()
        elif isinstance(identifier, Web3):
            handle = ConnectionHandle(identifier, endpoint="<injected>")
        elif not isinstance(identifier, str) or not identifier.strip():
            raise InvalidNetworkError(self._unknown_network_message(identifier))
        elif identifier.startswith("http"):
            url = validate_rpc_url(identifier)
            handle = ConnectionHandle(Web3(Web3.HTTPProvider(url)), endpoint=redact_url(url))
        else:
            handle = self._named(identifier)

        if chain_id is not None:
            self._check_chain_id(handle, int(chain_id))
        return handle

    def _named(self, name: str) -> ConnectionHandle:
        canonical = NetworkConfig.resolve_name(name)
        if canonical is None:
            raise InvalidNetworkError(self._unknown_network_message(name))

        network = NetworkConfig.get_network(canonical)
        try:
            url = NetworkConfig.get_rpc_url(canonical, api_key=self.config.alchemy_api_key)
        except ValueError as e:
            raise MissingCredentialError(
                f"Missing {ALCHEMY_API_KEY_ENV}: an API key is required to connect to '{canonical}'",
                config_key=ALCHEMY_API_KEY_ENV,
            ) from e

        w3 = Web3(Web3.HTTPProvider(url))
        if network.get("poa"):
            w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)

        logger.debug(f"Resolved network {canonical} to {redact_url(url)}")
        return ConnectionHandle(w3, network=canonical, endpoint=redact_url(url), chain_id=int(network["chainId"]))

    def _check_chain_id(self, handle: ConnectionHandle, expected: int) -> None:
        actual = handle.chain_id
        if actual != expected:
            warning = (
                f"Chain ID mismatch: specified {expected} but provider network is {actual}, "
                f"using provider's chain ID"
            )
            handle.warnings.append(warning)
            rate_limited_log(warning, logger_instance=logger)

    @staticmethod
    def _unknown_network_message(identifier: Any) -> str:
        supported = ", ".join(NetworkConfig.network_names())
        return (
            f"Invalid network identifier: {identifier!r}. "
            f"Use a supported network name ({supported}) or an http(s) RPC URL"
        )

    def supported_networks(self) -> List[NetworkDescriptor]:
        """
        List the supported networks.

        Recomputed on every call; ``is_default`` reflects the current default.
        """
        default = NetworkConfig.resolve_name(self.config.default_network) or self.config.default_network
        descriptors = []
        for name, network in NetworkConfig.load_networks().items():
            currency = network.get("currency")
            descriptors.append(
                NetworkDescriptor(
                    name=name,
                    chain_id=network.get("chainId"),
                    is_testnet=bool(network.get("testnet", False)),
                    is_default=(name == default),
                    native_currency=NativeCurrency(**currency) if currency else None,
                )
            )
        return descriptors
