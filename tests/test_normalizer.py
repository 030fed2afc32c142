"""
Tests for error normalization and value rendering.
"""
import pytest
import requests
from hexbytes import HexBytes
from pydantic import BaseModel
from web3.exceptions import ContractLogicError, Web3RPCError

from ethlayer_sdk.exceptions import (
    ErrorKind,
    GenericError,
    InvalidNetworkError,
    MissingCredentialError,
    ProviderError,
    TokenError,
    TokenErrorCode,
    ValidationError,
)
from ethlayer_sdk.models import TxOverrides
from ethlayer_sdk.normalizer import UNDEFINED, normalize_error, serialize_value, to_serializable


def _normalized(error, context="fetch balance", details=None):
    with pytest.raises(Exception) as exc:
        normalize_error(error, context, details)
    return exc.value


class TestNormalizeError:
    """Tests for normalize_error classification"""

    def test_validation_error_keeps_prefix(self):
        """Validation errors keep a single 'Invalid input format' prefix"""
        err = _normalized(ValidationError("Invalid input format: address: bad"))
        assert isinstance(err, ValidationError)
        assert err.message == "Invalid input format: address: bad"
        assert err.normalized
        assert err.context == "fetch balance"

    def test_validation_error_gains_prefix(self):
        err = _normalized(ValidationError("abi must be a list"))
        assert err.message == "Invalid input format: abi must be a list"

    def test_pydantic_error_becomes_validation_error(self):
        """Schema violations from request models surface as ValidationError"""
        with pytest.raises(Exception) as raised:
            TxOverrides(gasPrice="1", maxFeePerGas="2")
        err = _normalized(raised.value, "send transaction")
        assert isinstance(err, ValidationError)
        assert err.kind == ErrorKind.VALIDATION
        assert err.message.startswith("Invalid input format")

    @pytest.mark.parametrize("error", [
        Web3RPCError("nonce too low"),
        ContractLogicError("execution reverted: paused"),
        requests.ConnectionError("connection refused"),
        TimeoutError("timed out"),
    ])
    def test_provider_failures(self, error):
        """Transport and node failures become ProviderError with the reason preserved"""
        err = _normalized(error)
        assert isinstance(err, ProviderError)
        assert err.message.startswith("Failed to fetch balance: Provider error: ")
        assert err.provider_reason in err.message
        assert err.__cause__ is error

    def test_provider_error_reason_is_not_nested(self):
        """A ProviderError keeps its original reason when normalized again"""
        inner = ProviderError("boom", provider_reason="insufficient funds")
        err = _normalized(inner, "send transaction")
        assert err.message == "Failed to send transaction: Provider error: insufficient funds"

    def test_node_message_is_the_reason(self):
        """The JSON-RPC error message is kept, not the whole response"""
        error = Web3RPCError(
            "{'code': -32000, 'message': 'nonce too low'}",
            rpc_response={"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "nonce too low"}},
        )
        err = _normalized(error, "send raw transaction")
        assert err.provider_reason == "nonce too low"
        assert err.message == "Failed to send raw transaction: Provider error: nonce too low"

    def test_generic_error_with_details(self):
        """Unknown failures become GenericError and list the offending inputs"""
        err = _normalized(RuntimeError("kaput"), "fetch balance", {"address": "0xabc", "amount": 10 ** 30})
        assert isinstance(err, GenericError)
        assert err.message == (
            "Failed to fetch balance: kaput Details: address=0xabc, amount=1000000000000000000000000000000"
        )
        assert err.details == {"address": "0xabc", "amount": "1000000000000000000000000000000"}

    def test_sdk_errors_keep_their_class(self):
        """Credential and network errors keep their class and attributes"""
        err = _normalized(MissingCredentialError("Missing PRIVATE_KEY", config_key="PRIVATE_KEY"), "sign message")
        assert isinstance(err, MissingCredentialError)
        assert err.config_key == "PRIVATE_KEY"
        assert err.message == "Failed to sign message: Missing PRIVATE_KEY"

        err = _normalized(InvalidNetworkError("Invalid network identifier: 'x'"), "get block number")
        assert isinstance(err, InvalidNetworkError)
        assert err.kind == ErrorKind.NETWORK

    def test_token_error_passes_through(self):
        """Token errors reach the caller unchanged"""
        original = TokenError("No contract", TokenErrorCode.INVALID_TOKEN, token_address="0x1")
        err = _normalized(original, "get ERC20 token info")
        assert err is original
        assert err.code == TokenErrorCode.INVALID_TOKEN

    def test_already_normalized_passes_through(self):
        """Normalizing twice does not double the prefix"""
        first = _normalized(RuntimeError("kaput"), "inner")
        second = _normalized(first, "outer")
        assert second is first
        assert second.message.count("Failed to") == 1

    def test_empty_message_uses_class_name(self):
        err = _normalized(KeyError(), "look up")
        assert "KeyError" in err.message


class _Model(BaseModel):
    amount: int


class _Broken:
    def __str__(self):
        raise RuntimeError("cannot render")


class _JsonAware:
    def to_json(self):
        return '{"ok": true}'


class TestSerializeValue:
    """Tests for serialize_value and to_serializable"""

    def test_scalars(self):
        assert serialize_value(None) == "null"
        assert serialize_value(UNDEFINED) == "undefined"
        assert serialize_value(True) == "true"
        assert serialize_value("text") == "text"

    def test_big_integers_are_exact(self):
        """Integers render with every digit"""
        assert serialize_value(10 ** 30) == "1000000000000000000000000000000"
        assert serialize_value(2 ** 256 - 1) == str(2 ** 256 - 1)

    def test_structures(self):
        assert serialize_value([1, "a", None]) == "[1, a, null]"
        assert serialize_value({"big": 10 ** 30}) == '{"big": "1000000000000000000000000000000"}'
        assert serialize_value(b"\x01\x02") == "0x0102"
        assert serialize_value(_Model(amount=5)) == '{"amount":5}'
        assert serialize_value(_JsonAware()) == '{"ok": true}'

    def test_never_raises(self):
        """Values whose rendering fails still produce text"""
        rendered = serialize_value(_Broken())
        assert "_Broken" in rendered

    def test_to_serializable(self):
        """Web3 results become JSON-safe values"""
        value = {"number": 16, "hash": HexBytes("0xabcd"), "items": [1, b"\xff"], "ok": True}
        assert to_serializable(value) == {"number": "16", "hash": "0xabcd", "items": ["1", "0xff"], "ok": True}
