"""
Error normalization and safe value rendering.

Every public operation funnels its failures through ``normalize_error`` so
callers see one error class per failure kind, with a message of the form
``Failed to <context>: <reason>``.
"""
import json
import logging
from collections.abc import Mapping
from typing import Any, Dict, NoReturn, Optional

import requests
from hexbytes import HexBytes
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from web3.exceptions import (
    BadResponseFormat,
    ContractLogicError,
    ProviderConnectionError,
    TimeExhausted,
    Web3RPCError,
)

from .exceptions import (
    EthLayerError,
    GenericError,
    ProviderError,
    TokenError,
    ValidationError,
)
from .validation import first_violation

logger = logging.getLogger(__name__)

PROVIDER_FAILURES = (
    ProviderError,
    Web3RPCError,
    ContractLogicError,
    ProviderConnectionError,
    TimeExhausted,
    BadResponseFormat,
    requests.RequestException,
    ConnectionError,
    TimeoutError,
)


class _Undefined:
    """Marker for a value the caller did not supply."""

    def __repr__(self) -> str:
        return "undefined"


UNDEFINED = _Undefined()


def _error_message(error: BaseException) -> str:
    if isinstance(error, EthLayerError):
        return error.message
    message = str(error)
    return message or type(error).__name__


def _provider_reason(error: BaseException) -> str:
    """The node's own message where the error carries a JSON-RPC response"""
    if isinstance(error, ProviderError) and error.provider_reason:
        return error.provider_reason
    response = getattr(error, "rpc_response", None)
    if isinstance(response, dict) and isinstance(response.get("error"), dict):
        message = response["error"].get("message")
        if message:
            return str(message)
    return _error_message(error)


def normalize_error(
    error: BaseException,
    context: str,
    details: Optional[Dict[str, Any]] = None,
) -> NoReturn:
    """
    Classify ``error`` and raise the matching normalized SDK error.

    Args:
        error: The caught exception
        context: Operation description, e.g. "fetch balance"
        details: Offending inputs, rendered with ``serialize_value``

    Raises:
        ValidationError: For schema/shape violations
        ProviderError: For transport and RPC failures
        EthLayerError: Any other failure, keeping its kind when it has one
    """
    if isinstance(error, TokenError) or getattr(error, "normalized", False):
        raise error

    rendered = {key: serialize_value(value) for key, value in (details or {}).items()}

    if isinstance(error, PydanticValidationError):
        normalized: EthLayerError = ValidationError(
            f"Invalid input format: {first_violation(error)}", context=context, details=rendered
        )
    elif isinstance(error, ValidationError):
        message = error.message
        if not message.startswith("Invalid input format"):
            message = f"Invalid input format: {message}"
        normalized = ValidationError(message, context=context, details={**error.details, **rendered})
    elif isinstance(error, PROVIDER_FAILURES):
        reason = _provider_reason(error)
        normalized = ProviderError(
            f"Failed to {context}: Provider error: {reason}",
            provider_reason=reason,
            context=context,
            details=rendered,
        )
    else:
        details_str = ""
        if rendered:
            details_str = " Details: " + ", ".join(f"{k}={v}" for k, v in rendered.items())
        message = f"Failed to {context}: {_error_message(error)}{details_str}"
        if isinstance(error, EthLayerError):
            normalized = _rebuild(error, message, context, rendered)
        else:
            normalized = GenericError(message, context=context, details=rendered)

    normalized.normalized = True
    logger.debug("Normalized %s during '%s': %s", type(error).__name__, context, normalized.message)
    raise normalized from error


def _rebuild(error: EthLayerError, message: str, context: str, details: Dict[str, str]) -> EthLayerError:
    """Copy an SDK error with a new message, keeping its class and extra attributes."""
    rebuilt = type(error).__new__(type(error))
    rebuilt.__dict__.update(error.__dict__)
    EthLayerError.__init__(rebuilt, message, context=context, details={**error.details, **details})
    return rebuilt


def to_serializable(value: Any) -> Any:
    """
    Convert a web3 result into plain JSON-safe values.

    Integers become decimal strings, bytes become 0x hex, AttributeDicts and
    pydantic models become dicts.
    """
    if value is None or isinstance(value, (bool, str, float)):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, (bytes, bytearray, HexBytes)):
        return "0x" + bytes(value).hex()
    if isinstance(value, BaseModel):
        return to_serializable(value.model_dump(by_alias=True))
    if isinstance(value, Mapping):
        return {str(k): to_serializable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [to_serializable(v) for v in value]
    return str(value)


def serialize_value(value: Any) -> str:
    """
    Render any value as text. Never raises and never loses integer precision.
    """
    try:
        if value is UNDEFINED:
            return "undefined"
        if value is None:
            return "null"
        if isinstance(value, bool):
            return str(value).lower()
        if isinstance(value, int):
            return str(value)
        if isinstance(value, (list, tuple)):
            return "[" + ", ".join(serialize_value(v) for v in value) + "]"
        if isinstance(value, BaseModel):
            return value.model_dump_json(by_alias=True)
        to_json = getattr(value, "to_json", None)
        if callable(to_json):
            return str(to_json())
        if isinstance(value, (bytes, bytearray)):
            return "0x" + bytes(value).hex()
        if isinstance(value, (Mapping, set)):
            return json.dumps(to_serializable(value), default=str)
        return str(value)
    except Exception:
        return object.__repr__(value)
