"""
Tests for input shape validation.
"""
import pytest
from hypothesis import given, settings, strategies as st

from ethlayer_sdk.exceptions import ValidationError
from ethlayer_sdk.validation import (
    validate_address,
    validate_addresses,
    validate_amount,
    validate_block_tag,
    validate_hex_data,
    validate_token_id,
    validate_tx_hash,
)

from tests.conftest import TEST_ADDRESS, TEST_TOKEN, TEST_TX_HASH

hex_chars = "0123456789abcdefABCDEF"


class TestAddressValidation:
    """Tests for address validation"""

    def test_valid_addresses(self):
        """Lowercase and checksummed addresses are accepted unchanged"""
        assert validate_address(TEST_TOKEN) == TEST_TOKEN
        assert validate_address(TEST_ADDRESS) == TEST_ADDRESS

    @pytest.mark.parametrize("bad", [
        "",
        "0x123",
        "1234567890123456789012345678901234567890",
        "0x12345678901234567890123456789012345678901",
        "0xZZ34567890123456789012345678901234567890",
        None,
        42,
    ])
    def test_invalid_addresses(self, bad):
        """Malformed addresses raise with the field name and a hint"""
        with pytest.raises(ValidationError) as exc:
            validate_address(bad, "recipientAddress")
        message = str(exc.value)
        assert message.startswith("Invalid input format")
        assert "recipientAddress" in message
        assert "40 hexadecimal characters" in message

    def test_address_list_names_index(self):
        """The failing index is named for lists"""
        with pytest.raises(ValidationError) as exc:
            validate_addresses([TEST_TOKEN, "0xnope"], "owners")
        assert "owners[1]" in str(exc.value)

    def test_address_list_rejects_string(self):
        with pytest.raises(ValidationError):
            validate_addresses(TEST_TOKEN, "owners")


class TestOtherShapes:
    """Tests for hashes, hex data, amounts, token ids and block tags"""

    def test_tx_hash(self):
        assert validate_tx_hash(TEST_TX_HASH) == TEST_TX_HASH
        with pytest.raises(ValidationError):
            validate_tx_hash("0x1234")

    def test_hex_data(self):
        """Hex data must be 0x-prefixed with whole bytes"""
        assert validate_hex_data("0x") == "0x"
        assert validate_hex_data("0xdeadbeef") == "0xdeadbeef"
        for bad in ("deadbeef", "0xabc", "0xzz"):
            with pytest.raises(ValidationError):
                validate_hex_data(bad)

    def test_amount(self):
        assert validate_amount("1.5") == "1.5"
        for bad in ("-1", "1,5", "", "1e3"):
            with pytest.raises(ValidationError):
                validate_amount(bad)

    def test_token_id_forms(self):
        """Token ids may be ints, decimal strings or hex strings"""
        assert validate_token_id(7) == 7
        assert validate_token_id("7") == 7
        assert validate_token_id("0x1f") == 31
        assert validate_token_id(2 ** 256 - 1) == 2 ** 256 - 1

    @pytest.mark.parametrize("bad", [-1, 2 ** 256, "abc", "1.5", True, None])
    def test_token_id_rejects(self, bad):
        with pytest.raises(ValidationError):
            validate_token_id(bad)

    def test_block_tags(self):
        """Named tags pass through; numbers and hex become ints"""
        assert validate_block_tag(None) is None
        assert validate_block_tag("latest") == "latest"
        assert validate_block_tag("finalized") == "finalized"
        assert validate_block_tag(12) == 12
        assert validate_block_tag("12") == 12
        assert validate_block_tag("0x10") == 16

    @pytest.mark.parametrize("bad", [-1, "newest", True, 1.5])
    def test_block_tag_rejects(self, bad):
        with pytest.raises(ValidationError):
            validate_block_tag(bad)


@settings(max_examples=100)
@given(body=st.text(alphabet=hex_chars, min_size=40, max_size=40))
def test_any_forty_hex_digits_is_an_address(body):
    """Every 0x + 40 hex digits string is accepted"""
    assert validate_address("0x" + body) == "0x" + body


@settings(max_examples=100)
@given(body=st.text(alphabet=hex_chars, max_size=80).filter(lambda s: len(s) != 40))
def test_wrong_length_is_never_an_address(body):
    """Any other length is rejected"""
    with pytest.raises(ValidationError):
        validate_address("0x" + body)


@settings(max_examples=100)
@given(text=st.text(max_size=60).filter(lambda s: not s.startswith("0x")))
def test_unprefixed_text_is_never_an_address(text):
    with pytest.raises(ValidationError):
        validate_address(text)
