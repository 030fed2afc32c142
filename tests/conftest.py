"""
Pytest fixtures for the EthLayer SDK tests.
"""
import pytest
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from eth_abi import encode
from eth_account import Account
from eth_utils import event_signature_to_log_topic, function_signature_to_4byte_selector
from web3.providers.rpc import HTTPProvider

from ethlayer_sdk._rate_limited_log import reset_rate_limited_log
from ethlayer_sdk.config import NetworkConfig

# Constants for testing
TEST_RPC_URL = "https://rpc.example.com"
TEST_PRIV_KEY = "0x0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef"
TEST_ADDRESS = Account.from_key(TEST_PRIV_KEY).address
TEST_TOKEN = "0x1234567890123456789012345678901234567890"
TEST_RECIPIENT = "0x2345678901234567890123456789012345678901"
TEST_SPENDER = "0x3456789012345678901234567890123456789012"
TEST_TX_HASH = "0x" + "ab" * 32
TEST_BLOCK_HASH = "0x" + "cd" * 32


def selector(signature: str) -> str:
    """4-byte selector of a function signature, 0x-prefixed"""
    return "0x" + function_signature_to_4byte_selector(signature).hex()


def topic(signature: str) -> str:
    """Topic hash of an event signature, 0x-prefixed"""
    return "0x" + event_signature_to_log_topic(signature).hex()


def address_topic(address: str) -> str:
    return "0x" + "0" * 24 + address[2:].lower()


def abi_result(types: Sequence[str], values: Sequence[Any]) -> str:
    """ABI-encode return values as an eth_call result"""
    return "0x" + encode(list(types), list(values)).hex()


def revert_error(reason: str) -> Dict[str, Any]:
    """JSON-RPC error for a require() failure with a reason string"""
    return {
        "code": 3,
        "message": f"execution reverted: {reason}",
        "data": "0x08c379a0" + encode(["string"], [reason]).hex(),
    }


def make_log(
    address: str,
    topics: List[str],
    data: str = "0x",
    block_number: int = 5,
    log_index: int = 0,
) -> Dict[str, Any]:
    """A raw eth_getLogs entry"""
    return {
        "address": address.lower(),
        "blockNumber": hex(block_number),
        "blockHash": TEST_BLOCK_HASH,
        "transactionHash": "0x" + format(block_number * 1000 + log_index, "064x"),
        "transactionIndex": "0x0",
        "logIndex": hex(log_index),
        "data": data,
        "topics": topics,
        "removed": False,
    }


DEFAULT_BLOCK = {
    "number": "0x10",
    "hash": TEST_BLOCK_HASH,
    "parentHash": "0x" + "00" * 32,
    "timestamp": "0x64",
    "gasLimit": "0x1c9c380",
    "gasUsed": "0x5208",
    "baseFeePerGas": "0x3b9aca00",
    "miner": "0x0000000000000000000000000000000000000000",
    "extraData": "0x",
    "transactions": [],
}

DEFAULT_RESULTS: Dict[str, Any] = {
    "eth_chainId": "0x1",
    "eth_gasPrice": "0x3b9aca00",  # 1 gwei
    "eth_maxPriorityFeePerGas": "0x77359400",  # 2 gwei
    "eth_blockNumber": "0x10",
    "eth_getTransactionCount": "0x5",
    "eth_estimateGas": "0x5208",
    "eth_getBalance": "0xde0b6b3a7640000",  # 1 ether
    "eth_sendRawTransaction": TEST_TX_HASH,
    "eth_getCode": "0x6080604052",
    "eth_getLogs": [],
    "eth_getBlockByNumber": DEFAULT_BLOCK,
    "eth_getBlockByHash": DEFAULT_BLOCK,
}


class FakeNode:
    """
    In-process JSON-RPC node. Records every request and answers from
    configurable per-method results and per-selector ``eth_call`` results.
    """

    def __init__(self):
        self.calls: List[Tuple[str, Any]] = []
        self.results: Dict[str, Any] = dict(DEFAULT_RESULTS)
        self.errors: Dict[str, Dict[str, Any]] = {}
        self.contract_calls: Dict[str, Any] = {}

    def set(self, method: str, result: Any) -> None:
        """Answer ``method`` with ``result`` (or ``result(params)`` if callable)"""
        self.results[method] = result

    def fail(self, method: str, message: str, code: int = -32000) -> None:
        """Answer ``method`` with a JSON-RPC error"""
        self.errors[method] = {"code": code, "message": message}

    def on_call(
        self,
        signature: str,
        types: Optional[Sequence[str]] = None,
        values: Optional[Sequence[Any]] = None,
        result: Optional[Union[str, Callable[[str], Any]]] = None,
        error: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Answer eth_call for the function ``signature``.

        Pass output ``types`` and ``values``, a raw hex ``result``, a callable
        taking the call data, or a JSON-RPC ``error``.
        """
        if error is not None:
            self.contract_calls[selector(signature)] = {"error": error}
        elif result is not None:
            self.contract_calls[selector(signature)] = {"result": result}
        else:
            self.contract_calls[selector(signature)] = {"result": abi_result(types, values)}

    def methods(self) -> List[str]:
        return [method for method, _ in self.calls]

    def count(self, method: str) -> int:
        return self.methods().count(method)

    def params(self, method: str) -> List[Any]:
        return [params for m, params in self.calls if m == method]

    def handle(self, method: str, params: Any) -> Dict[str, Any]:
        self.calls.append((method, params))
        if method in self.errors:
            return {"jsonrpc": "2.0", "id": 1, "error": self.errors[method]}

        if method == "eth_call":
            data = params[0].get("data") or params[0].get("input") or "0x"
            answer = self.contract_calls.get(data[:10])
            if answer is None:
                return {"jsonrpc": "2.0", "id": 1, "result": "0x"}
            if "error" in answer:
                return {"jsonrpc": "2.0", "id": 1, "error": answer["error"]}
            result = answer["result"]
            if callable(result):
                result = result(data)
            return {"jsonrpc": "2.0", "id": 1, "result": result}

        result = self.results.get(method, "0x0")
        if callable(result):
            result = result(params)
        return {"jsonrpc": "2.0", "id": 1, "result": result}


@pytest.fixture(autouse=True)
def fake_node(monkeypatch):
    """
    Stub every Web3 HTTP call so no DNS / network traffic is triggered.
    Works for all tests because it is autouse.
    """
    node = FakeNode()

    def _dummy(self, method, params=None, _=None):  # signature match
        return node.handle(method, params)

    monkeypatch.setattr(HTTPProvider, "make_request", _dummy, raising=True)
    return node


@pytest.fixture(autouse=True)
def _clean_state(monkeypatch):
    """Isolate tests from the environment and from each other"""
    for var in ("ALCHEMY_API_KEY", "PRIVATE_KEY", "DEFAULT_NETWORK", "IPFS_GATEWAY", "MAINNET_RPC_URL"):
        monkeypatch.delenv(var, raising=False)
    NetworkConfig._networks_cache = None
    NetworkConfig._alias_cache = None
    reset_rate_limited_log()
    yield
    NetworkConfig._networks_cache = None
    NetworkConfig._alias_cache = None


@pytest.fixture
def client():
    """Client on mainnet with an API key and the test private key"""
    from tests.test_helpers import create_test_client
    return create_test_client()


@pytest.fixture
def readonly_client():
    """Client on mainnet with no signing credential"""
    from tests.test_helpers import create_test_client
    return create_test_client(priv_key=None)


@pytest.fixture
def erc20_token(fake_node):
    """A well-behaved 6-decimal ERC20 token at TEST_TOKEN"""
    fake_node.on_call("name()", ["string"], ["USD Coin"])
    fake_node.on_call("symbol()", ["string"], ["USDC"])
    fake_node.on_call("decimals()", ["uint8"], [6])
    fake_node.on_call("totalSupply()", ["uint256"], [1_000_000_500_000])
    fake_node.on_call("balanceOf(address)", ["uint256"], [2_500_000])
    fake_node.on_call("allowance(address,address)", ["uint256"], [1_000_000])
    fake_node.on_call("transfer(address,uint256)", ["bool"], [True])
    fake_node.on_call("approve(address,uint256)", ["bool"], [True])
    fake_node.on_call("transferFrom(address,address,uint256)", ["bool"], [True])
    return fake_node
