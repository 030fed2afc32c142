"""
Shape validation for values crossing the SDK boundary.

All checks here run before any network access. They use pydantic
``TypeAdapter``s so a malformed value is reported with the same first-violation
message the request models produce.
"""
import re
from typing import Any, List, Optional, Sequence, Union

from pydantic import StringConstraints, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from typing_extensions import Annotated

from .exceptions import ValidationError

ADDRESS_PATTERN = r"^0x[a-fA-F0-9]{40}$"
TX_HASH_PATTERN = r"^0x[a-fA-F0-9]{64}$"
HEX_DATA_PATTERN = r"^0x([a-fA-F0-9]{2})*$"
AMOUNT_PATTERN = r"^[0-9]+(\.[0-9]+)?$"

AddressStr = Annotated[str, StringConstraints(pattern=ADDRESS_PATTERN)]
TxHashStr = Annotated[str, StringConstraints(pattern=TX_HASH_PATTERN)]
HexDataStr = Annotated[str, StringConstraints(pattern=HEX_DATA_PATTERN)]
AmountStr = Annotated[str, StringConstraints(pattern=AMOUNT_PATTERN)]

_address_adapter = TypeAdapter(AddressStr)
_tx_hash_adapter = TypeAdapter(TxHashStr)
_hex_data_adapter = TypeAdapter(HexDataStr)
_amount_adapter = TypeAdapter(AmountStr)
_token_id_adapter = TypeAdapter(Union[int, Annotated[str, StringConstraints(pattern=r"^(0x[a-fA-F0-9]+|[0-9]+)$")]])

ADDRESS_HINT = "Expected a valid Ethereum address (0x followed by 40 hexadecimal characters)"


def first_violation(error: PydanticValidationError) -> str:
    """Return the message of the first violation in a pydantic error."""
    errors = error.errors()
    if not errors:
        return "Invalid input format"
    first = errors[0]
    loc = ".".join(str(part) for part in first.get("loc", ()) if part != "")
    return f"{loc}: {first['msg']}" if loc else first["msg"]


def _check(adapter: TypeAdapter, value: Any, field: str, hint: str) -> Any:
    try:
        return adapter.validate_python(value)
    except PydanticValidationError as e:
        raise ValidationError(
            f"Invalid input format: {field}: {first_violation(e)}. {hint}",
            details={"field": field, "value": repr(value)},
        ) from e


def validate_address(value: Any, field: str = "address") -> str:
    """
    Validate an address: 0x followed by exactly 40 hex characters.

    Raises:
        ValidationError: If the value is not a well-formed address
    """
    return _check(_address_adapter, value, field, ADDRESS_HINT)


def validate_addresses(values: Sequence[Any], field: str = "addresses") -> List[str]:
    """Validate every address of a sequence, naming the failing index."""
    if isinstance(values, (str, bytes)) or not isinstance(values, Sequence):
        raise ValidationError(f"Invalid input format: {field} must be a list of addresses")
    return [validate_address(v, f"{field}[{i}]") for i, v in enumerate(values)]


def validate_tx_hash(value: Any, field: str = "txHash") -> str:
    """Validate a transaction hash: 0x followed by exactly 64 hex characters."""
    return _check(
        _tx_hash_adapter, value, field,
        "Expected a transaction hash (0x followed by 64 hexadecimal characters)",
    )


def validate_hex_data(value: Any, field: str = "data") -> str:
    """Validate a 0x-prefixed, even-length hex payload."""
    return _check(
        _hex_data_adapter, value, field,
        "Expected 0x-prefixed hex data with an even number of digits",
    )


def validate_amount(value: Any, field: str = "amount") -> str:
    """Validate a non-negative decimal amount string such as "1.5"."""
    return _check(
        _amount_adapter, value, field,
        "Expected a non-negative decimal string such as \"1.5\"",
    )


def validate_token_id(value: Any, field: str = "tokenId") -> int:
    """Validate a token id given as int, decimal string or 0x hex string."""
    if isinstance(value, bool):
        raise ValidationError(f"Invalid input format: {field}: expected an integer token id")
    checked = _check(
        _token_id_adapter, value, field,
        "Expected a non-negative integer token id",
    )
    if isinstance(checked, int):
        token_id = checked
    else:
        token_id = int(checked, 16) if checked.startswith("0x") else int(checked)
    if token_id < 0 or token_id >= 2 ** 256:
        raise ValidationError(
            f"Invalid input format: {field}: token id out of range",
            details={"field": field, "value": repr(value)},
        )
    return token_id


def validate_block_tag(value: Optional[Union[int, str]], field: str = "blockTag") -> Optional[Union[int, str]]:
    """Validate a block number or a block tag (latest, earliest, pending, safe, finalized, 0x hex)."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(f"Invalid input format: {field}: expected a block number or tag")
    if isinstance(value, int):
        if value < 0:
            raise ValidationError(f"Invalid input format: {field}: block number must be non-negative")
        return value
    if isinstance(value, str):
        if value in ("latest", "earliest", "pending", "safe", "finalized"):
            return value
        if re.fullmatch(r"[0-9]+", value):
            return int(value)
        if re.fullmatch(r"0x[0-9a-fA-F]+", value):
            return int(value, 16)
    raise ValidationError(
        f"Invalid input format: {field}: expected a block number or tag, got {value!r}"
    )
