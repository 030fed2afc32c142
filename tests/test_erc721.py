"""
Tests for the ERC721 token adapter.
"""
import base64
import json

import pytest

from ethlayer_sdk.exceptions import TokenError, TokenErrorCode, ValidationError

from tests.conftest import (
    TEST_ADDRESS,
    TEST_RECIPIENT,
    TEST_TOKEN,
    abi_result,
    address_topic,
    make_log,
    revert_error,
    selector,
    topic,
)

TRANSFER = topic("Transfer(address,address,uint256)")
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
STRANGER = "0x4567890123456789012345678901234567890123"


def _uint_arg(data, position):
    """Decode the uint256 argument at ``position`` from call data"""
    body = data[10:]
    return int(body[position * 64:(position + 1) * 64], 16)


def _data_uri(document):
    return "data:application/json;base64," + base64.b64encode(json.dumps(document).encode()).decode()


@pytest.fixture
def collection(fake_node):
    """An ERC721 collection where the signer owns tokens 1 and 2"""
    owners = {1: TEST_ADDRESS, 2: TEST_ADDRESS, 3: STRANGER}

    def owner_of(data):
        token_id = _uint_arg(data, 0)
        if token_id not in owners:
            return None
        return abi_result(["address"], [owners[token_id]])

    fake_node.on_call("name()", ["string"], ["Test Apes"])
    fake_node.on_call("symbol()", ["string"], ["TAPE"])
    fake_node.on_call("totalSupply()", ["uint256"], [3])
    fake_node.on_call("balanceOf(address)", ["uint256"], [2])
    fake_node.on_call("ownerOf(uint256)", result=lambda data: owner_of(data) or "0x")
    fake_node.on_call(
        "tokenURI(uint256)",
        result=lambda data: abi_result(["string"], [_data_uri({"name": f"Ape #{_uint_arg(data, 0)}"})]),
    )
    fake_node.owners = owners
    return fake_node


class TestERC721Reads:
    """Collection info, ownership and metadata"""

    def test_collection_info(self, client, collection):
        info = client.get_erc721_collection_info(TEST_TOKEN)
        assert (info.name, info.symbol, info.total_supply) == ("Test Apes", "TAPE", "3")

    def test_collection_without_total_supply(self, client, collection):
        """totalSupply is optional for ERC721"""
        collection.on_call("totalSupply()", error=revert_error("not supported"))
        info = client.get_erc721_collection_info(TEST_TOKEN)
        assert info.total_supply is None

    def test_owner_of(self, client, collection):
        assert client.get_erc721_owner(TEST_TOKEN, 3) == STRANGER
        assert client.get_erc721_owner(TEST_TOKEN, "0x1") == TEST_ADDRESS

    def test_owner_of_missing_token(self, client, collection):
        collection.on_call("ownerOf(uint256)", error=revert_error("ERC721: invalid token ID"))
        with pytest.raises(TokenError) as exc_info:
            client.get_erc721_owner(TEST_TOKEN, 99)
        assert exc_info.value.code == TokenErrorCode.NOT_FOUND

    def test_invalid_token_id(self, client, fake_node):
        with pytest.raises(ValidationError):
            client.get_erc721_owner(TEST_TOKEN, -1)
        assert fake_node.calls == []

    def test_metadata_from_data_uri(self, client, collection):
        metadata = client.get_erc721_metadata(TEST_TOKEN, 2)
        assert metadata.name == "Ape #2"

    def test_metadata_for_missing_token(self, client, collection):
        collection.on_call("tokenURI(uint256)", error=revert_error("ERC721Metadata: URI query for nonexistent token"))
        with pytest.raises(TokenError) as exc_info:
            client.get_erc721_metadata(TEST_TOKEN, 42)
        assert exc_info.value.code == TokenErrorCode.NOT_FOUND


class TestTokensOfOwner:
    """Owner enumeration"""

    def test_enumerable_contract(self, client, collection):
        """Enumerable contracts are walked by index"""
        collection.on_call("supportsInterface(bytes4)", ["bool"], [True])
        collection.on_call(
            "tokenOfOwnerByIndex(address,uint256)",
            result=lambda data: abi_result(["uint256"], [[1, 2][_uint_arg(data, 1)]]),
        )

        tokens = client.get_erc721_tokens_of_owner(TEST_TOKEN, TEST_ADDRESS)

        assert [t.token_id for t in tokens] == ["1", "2"]
        assert all(t.metadata is None for t in tokens)
        assert collection.count("eth_getLogs") == 0

    def test_zero_balance(self, client, collection):
        collection.on_call("balanceOf(address)", ["uint256"], [0])
        assert client.get_erc721_tokens_of_owner(TEST_TOKEN, TEST_ADDRESS) == []
        assert collection.count("eth_getLogs") == 0

    def test_log_scan_keeps_current_holdings(self, client, collection):
        """Without enumeration, incoming transfers are checked against ownerOf"""
        logs = [
            make_log(TEST_TOKEN, [TRANSFER, address_topic(ZERO_ADDRESS), address_topic(TEST_ADDRESS),
                                  "0x" + format(token_id, "064x")], block_number=block)
            for token_id, block in ((1, 3), (3, 4), (2, 5))
        ]
        collection.set("eth_getLogs", logs)

        tokens = client.get_erc721_tokens_of_owner(TEST_TOKEN, TEST_ADDRESS, include_metadata=True)

        # Newest transfer first; token 3 has moved on
        assert [t.token_id for t in tokens] == ["2", "1"]
        assert tokens[0].metadata.name == "Ape #2"
        assert tokens[0].token_uri.startswith("data:application/json")

        query = collection.params("eth_getLogs")[0][0]
        assert query["topics"][0] == TRANSFER
        assert query["topics"][2] == address_topic(TEST_ADDRESS)

    def test_log_scan_respects_limit(self, collection):
        from tests.test_helpers import create_test_client
        client = create_test_client(max_owned_tokens=1)
        logs = [
            make_log(TEST_TOKEN, [TRANSFER, address_topic(ZERO_ADDRESS), address_topic(TEST_ADDRESS),
                                  "0x" + format(token_id, "064x")], block_number=token_id)
            for token_id in (1, 2)
        ]
        collection.set("eth_getLogs", logs)

        tokens = client.get_erc721_tokens_of_owner(TEST_TOKEN, TEST_ADDRESS)
        assert [t.token_id for t in tokens] == ["2"]

    def test_broken_metadata_is_tolerated(self, client, collection):
        collection.on_call("supportsInterface(bytes4)", ["bool"], [True])
        collection.on_call("tokenOfOwnerByIndex(address,uint256)", ["uint256"], [1])
        collection.on_call("balanceOf(address)", ["uint256"], [1])
        collection.on_call("tokenURI(uint256)", ["string"], ["data:application/json,not-json"])

        tokens = client.get_erc721_tokens_of_owner(TEST_TOKEN, TEST_ADDRESS, include_metadata=True)
        assert tokens[0].token_id == "1"
        assert tokens[0].metadata is None


class TestERC721Transfers:
    """Transfers"""

    def test_transfer(self, client, collection):
        outcome = client.transfer_erc721(TEST_TOKEN, TEST_RECIPIENT, 1)
        assert outcome.data.startswith(selector("transferFrom(address,address,uint256)"))
        assert outcome.data.endswith(format(1, "064x"))
        assert collection.count("eth_sendRawTransaction") == 1

    def test_transfer_not_owned(self, client, collection):
        """Transferring someone else's token fails before broadcasting"""
        with pytest.raises(TokenError) as exc_info:
            client.transfer_erc721(TEST_TOKEN, TEST_RECIPIENT, 3)
        assert exc_info.value.code == TokenErrorCode.INSUFFICIENT_BALANCE
        assert collection.count("eth_sendRawTransaction") == 0

    def test_safe_transfer_with_data(self, client, collection):
        outcome = client.safe_transfer_erc721(TEST_TOKEN, TEST_RECIPIENT, 2, data="0xcafe")
        assert outcome.data.startswith(selector("safeTransferFrom(address,address,uint256,bytes)"))
        assert "cafe" in outcome.data

    def test_safe_transfer_rejects_bad_data(self, client, fake_node):
        with pytest.raises(ValidationError):
            client.safe_transfer_erc721(TEST_TOKEN, TEST_RECIPIENT, 2, data="cafe")
        assert fake_node.calls == []
