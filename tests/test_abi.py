"""
Tests for ABI lookup, argument coercion and decoding.
"""
import pytest
from eth_abi import encode

from ethlayer_sdk.abi import (
    coerce_args,
    decode_log,
    decode_output,
    encode_call,
    find_event,
    find_function,
    is_payable,
    is_read_only,
    match_event,
    parse_abi,
    signature,
)
from ethlayer_sdk.exceptions import ValidationError
from ethlayer_sdk.tokens.abis import ERC20_ABI

from tests.conftest import TEST_RECIPIENT, TEST_TOKEN, address_topic, selector, topic

OVERLOADED_ABI = [
    {
        "type": "function", "name": "mint", "stateMutability": "nonpayable", "outputs": [],
        "inputs": [{"name": "to", "type": "address"}],
    },
    {
        "type": "function", "name": "mint", "stateMutability": "nonpayable", "outputs": [],
        "inputs": [{"name": "to", "type": "address"}, {"name": "amount", "type": "uint256"}],
    },
    {
        "type": "function", "name": "mint", "stateMutability": "nonpayable", "outputs": [],
        "inputs": [{"name": "to", "type": "address"}, {"name": "data", "type": "bytes"}],
    },
    {
        "type": "function", "name": "position", "stateMutability": "view",
        "inputs": [],
        "outputs": [{
            "name": "", "type": "tuple",
            "components": [{"name": "owner", "type": "address"}, {"name": "size", "type": "uint128"}],
        }],
    },
    {
        "type": "function", "name": "open", "stateMutability": "payable", "outputs": [],
        "inputs": [{
            "name": "order", "type": "tuple",
            "components": [{"name": "owner", "type": "address"}, {"name": "size", "type": "uint128"}],
        }],
    },
    {
        "type": "event", "name": "Named", "anonymous": False,
        "inputs": [
            {"name": "label", "type": "string", "indexed": True},
            {"name": "owner", "type": "address", "indexed": True},
            {"name": "note", "type": "string", "indexed": False},
        ],
    },
]


class TestLookup:
    def test_parse_abi_from_json(self):
        assert parse_abi('[{"type": "function", "name": "f", "inputs": []}]')[0]["name"] == "f"

    @pytest.mark.parametrize("abi", ["{not json", '{"type": "function"}', "[1, 2]"])
    def test_parse_abi_rejects_malformed(self, abi):
        with pytest.raises(ValidationError):
            parse_abi(abi)

    def test_overload_by_argument_count(self):
        assert signature(find_function(OVERLOADED_ABI, "mint", [TEST_RECIPIENT])) == "mint(address)"

    def test_ambiguous_overload_names_candidates(self):
        with pytest.raises(ValidationError) as exc_info:
            find_function(OVERLOADED_ABI, "mint", [TEST_RECIPIENT, 1])
        assert "mint(address,uint256)" in str(exc_info.value)
        assert "mint(address,bytes)" in str(exc_info.value)

    def test_overload_by_signature(self):
        fn = find_function(OVERLOADED_ABI, "mint(address, bytes)")
        assert fn["inputs"][1]["type"] == "bytes"

    def test_tuple_signature(self):
        assert signature(find_function(OVERLOADED_ABI, "open")) == "open((address,uint128))"

    def test_unknown_function_and_event(self):
        with pytest.raises(ValidationError):
            find_function(ERC20_ABI, "mint")
        with pytest.raises(ValidationError):
            find_event(ERC20_ABI, "Deposit")

    def test_mutability(self):
        assert is_read_only(find_function(ERC20_ABI, "balanceOf"))
        assert not is_read_only(find_function(ERC20_ABI, "transfer"))
        assert is_read_only({"name": "legacy", "constant": True})
        assert is_payable(find_function(OVERLOADED_ABI, "open"))
        assert not is_payable(find_function(ERC20_ABI, "transfer"))


class TestCoercion:
    def test_numeric_strings(self):
        fn = find_function(ERC20_ABI, "transfer")
        assert coerce_args(fn, [TEST_RECIPIENT.lower(), "0x10"]) == [TEST_RECIPIENT, 16]
        assert coerce_args(fn, [TEST_RECIPIENT, "1000"])[1] == 1000

    @pytest.mark.parametrize("amount", [-1, 2 ** 256, "1.5", True, None])
    def test_bad_uint_names_argument(self, amount):
        fn = find_function(ERC20_ABI, "transfer")
        with pytest.raises(ValidationError) as exc_info:
            coerce_args(fn, [TEST_RECIPIENT, amount])
        assert "amount" in str(exc_info.value)

    def test_argument_count(self):
        with pytest.raises(ValidationError) as exc_info:
            coerce_args(find_function(ERC20_ABI, "transfer"), [TEST_RECIPIENT])
        assert "expects 2 arguments, got 1" in str(exc_info.value)

    def test_tuple_from_dict(self):
        fn = find_function(OVERLOADED_ABI, "open")
        assert coerce_args(fn, [{"owner": TEST_TOKEN, "size": "7"}]) == [(TEST_TOKEN, 7)]

    def test_tuple_field_named_in_error(self):
        fn = find_function(OVERLOADED_ABI, "open")
        with pytest.raises(ValidationError) as exc_info:
            coerce_args(fn, [{"owner": "0x12", "size": 7}])
        assert "order.owner" in str(exc_info.value)

    def test_bytes(self):
        fn = find_function(OVERLOADED_ABI, "mint(address,bytes)")
        assert coerce_args(fn, [TEST_RECIPIENT, "0xdead"])[1] == b"\xde\xad"
        with pytest.raises(ValidationError):
            coerce_args(fn, [TEST_RECIPIENT, "0xdea"])

    def test_encode_call(self):
        data = encode_call(find_function(ERC20_ABI, "transfer"), [TEST_RECIPIENT, 5])
        assert data == selector("transfer(address,uint256)") + encode(["address", "uint256"], [TEST_RECIPIENT, 5]).hex()


class TestDecoding:
    def test_single_output_is_bare(self):
        fn = find_function(ERC20_ABI, "balanceOf")
        assert decode_output(fn, encode(["uint256"], [42])) == 42

    def test_tuple_output_as_dict(self):
        fn = find_function(OVERLOADED_ABI, "position")
        raw = encode(["(address,uint128)"], [(TEST_TOKEN, 9)])
        assert decode_output(fn, raw) == {"owner": TEST_TOKEN, "size": 9}

    def test_no_outputs(self):
        assert decode_output(find_function(OVERLOADED_ABI, "mint(address)"), b"") is None

    def test_decode_transfer_log(self):
        transfer = find_event(ERC20_ABI, "Transfer")
        topics = [
            topic("Transfer(address,address,uint256)"),
            address_topic(TEST_TOKEN),
            address_topic(TEST_RECIPIENT),
        ]
        args = decode_log(transfer, topics, "0x" + encode(["uint256"], [3]).hex())
        assert list(args) == ["from", "to", "value"]
        assert args == {"from": TEST_TOKEN, "to": TEST_RECIPIENT, "value": 3}

    def test_indexed_string_is_hash(self):
        named = find_event(OVERLOADED_ABI, "Named")
        label_hash = "0x" + "11" * 32
        topics = [topic("Named(string,address,string)"), label_hash, address_topic(TEST_TOKEN)]
        args = decode_log(named, topics, "0x" + encode(["string"], ["hi"]).hex())
        assert args == {"label": label_hash, "owner": TEST_TOKEN, "note": "hi"}

    def test_mismatched_log(self):
        transfer = find_event(ERC20_ABI, "Transfer")
        with pytest.raises(ValueError):
            decode_log(transfer, [topic("Approval(address,address,uint256)")], "0x")
        with pytest.raises(ValueError):
            decode_log(transfer, [topic("Transfer(address,address,uint256)")], "0x")

    def test_match_event(self):
        assert match_event(ERC20_ABI, [topic("Approval(address,address,uint256)")])["name"] == "Approval"
        assert match_event(ERC20_ABI, ["0x" + "00" * 32]) is None
        assert match_event(ERC20_ABI, []) is None
