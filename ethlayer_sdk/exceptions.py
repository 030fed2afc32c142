"""
Exceptions for the EthLayer SDK.

Every public operation raises exactly one of these. Callers branch on the
exception class or on ``error.kind`` instead of matching message text.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Kinds of failure reported by the SDK."""
    VALIDATION = "VALIDATION"
    NETWORK = "NETWORK"
    MISSING_CREDENTIAL = "MISSING_CREDENTIAL"
    PROVIDER = "PROVIDER"
    WRONG_CALL_KIND = "WRONG_CALL_KIND"
    TOKEN = "TOKEN"
    GENERIC = "GENERIC"


class TokenErrorCode(str, Enum):
    """Token-domain failure codes carried by TokenError."""
    INVALID_TOKEN = "INVALID_TOKEN"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    INSUFFICIENT_ALLOWANCE = "INSUFFICIENT_ALLOWANCE"
    NOT_FOUND = "NOT_FOUND"
    METADATA_ERROR = "METADATA_ERROR"
    TRANSFER_FAILED = "TRANSFER_FAILED"


class EthLayerError(Exception):
    """Base exception for all EthLayer SDK errors."""

    kind: ErrorKind = ErrorKind.GENERIC

    def __init__(
        self,
        message: str,
        context: Optional[str] = None,
        details: Optional[Dict[str, str]] = None,
    ):
        self.message = message
        self.context = context
        self.details = details or {}
        # Set once the error has passed through normalize_error
        self.normalized = False
        super().__init__(message)


class ValidationError(EthLayerError):
    """Raised when an address, amount, hash or argument has the wrong shape."""
    kind = ErrorKind.VALIDATION


class NetworkError(EthLayerError):
    """Raised when a network connection cannot be resolved or constructed."""
    kind = ErrorKind.NETWORK


class InvalidUrlError(NetworkError):
    """Raised when an RPC URL is malformed."""
    pass


class InvalidNetworkError(NetworkError):
    """Raised when a network identifier is neither a known name nor a URL."""
    pass


class MissingCredentialError(EthLayerError):
    """Raised when a required API key or signing credential is absent."""
    kind = ErrorKind.MISSING_CREDENTIAL

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs: Any):
        self.config_key = config_key
        super().__init__(message, **kwargs)


class ProviderError(EthLayerError):
    """Raised when the RPC transport or node reports a failure."""
    kind = ErrorKind.PROVIDER

    def __init__(self, message: str, provider_reason: Optional[str] = None, **kwargs: Any):
        self.provider_reason = provider_reason
        super().__init__(message, **kwargs)


class WrongCallKindError(EthLayerError):
    """Raised when a read call targets a state-changing function."""
    kind = ErrorKind.WRONG_CALL_KIND


class TokenError(EthLayerError):
    """Raised for token-domain failures (ERC20, ERC721, ERC1155)."""
    kind = ErrorKind.TOKEN

    def __init__(
        self,
        message: str,
        code: TokenErrorCode,
        token_address: Optional[str] = None,
        **kwargs: Any,
    ):
        self.code = code
        self.token_address = token_address
        super().__init__(message, **kwargs)


class GenericError(EthLayerError):
    """Fallback for failures that fit no other kind."""
    kind = ErrorKind.GENERIC
