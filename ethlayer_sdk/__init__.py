"""
EthLayer SDK - EVM network access and token standard adapters.
"""
from .client import EthLayerClient
from .config import NetworkConfig, ServiceConfig
from .exceptions import (
    ErrorKind,
    EthLayerError,
    GenericError,
    InvalidNetworkError,
    InvalidUrlError,
    MissingCredentialError,
    NetworkError,
    ProviderError,
    TokenError,
    TokenErrorCode,
    ValidationError,
    WrongCallKindError,
)
from .models import (
    CollectionInfo,
    FungibleInfo,
    NetworkDescriptor,
    OwnedToken,
    TokenMetadata,
    TransactionOutcome,
    TransactionRequest,
    TxOverrides,
)
from .normalizer import normalize_error, serialize_value
from .provider import ConnectionHandle, NetworkResolver
from .signer import LocalSigner, Signer
from .units import format_ether, format_units, parse_ether, parse_units
from .version import __version__

__all__ = [
    "EthLayerClient",
    "NetworkConfig",
    "ServiceConfig",
    "NetworkResolver",
    "ConnectionHandle",
    "Signer",
    "LocalSigner",
    "CollectionInfo",
    "FungibleInfo",
    "NetworkDescriptor",
    "OwnedToken",
    "TokenMetadata",
    "TransactionOutcome",
    "TransactionRequest",
    "TxOverrides",
    "ErrorKind",
    "EthLayerError",
    "ValidationError",
    "NetworkError",
    "InvalidUrlError",
    "InvalidNetworkError",
    "MissingCredentialError",
    "ProviderError",
    "WrongCallKindError",
    "TokenError",
    "TokenErrorCode",
    "GenericError",
    "normalize_error",
    "serialize_value",
    "format_ether",
    "format_units",
    "parse_ether",
    "parse_units",
    "__version__",
]
