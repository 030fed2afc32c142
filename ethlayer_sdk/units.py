"""
Exact conversion between decimal major units and integer minimal units.

Conversions use integer arithmetic on the digit strings only, so no
precision is lost at any magnitude.
"""
from typing import Union

from .exceptions import ValidationError
from .validation import validate_amount

ETHER_DECIMALS = 18
GWEI_DECIMALS = 9
MAX_UINT256 = 2 ** 256 - 1

NAMED_UNITS = {
    "wei": 0,
    "kwei": 3,
    "mwei": 6,
    "gwei": GWEI_DECIMALS,
    "szabo": 12,
    "finney": 15,
    "ether": ETHER_DECIMALS,
}


# 10**77 is the largest power of ten below 2**256
MAX_DECIMALS = 77


def _resolve_decimals(unit: Union[int, str]) -> int:
    if isinstance(unit, bool):
        raise ValidationError(f"Invalid input format: invalid unit {unit!r}")
    if isinstance(unit, int):
        decimals = unit
    elif isinstance(unit, str) and unit.lower() in NAMED_UNITS:
        decimals = NAMED_UNITS[unit.lower()]
    elif isinstance(unit, str) and unit.isascii() and unit.isdigit():
        decimals = int(unit)
    else:
        raise ValidationError(f"Invalid input format: invalid unit {unit!r}")
    if decimals < 0 or decimals > MAX_DECIMALS:
        raise ValidationError(
            f"Invalid input format: decimals must be between 0 and {MAX_DECIMALS}, got {decimals}"
        )
    return decimals


def parse_units(amount: str, unit: Union[int, str] = ETHER_DECIMALS) -> int:
    """
    Convert a decimal string in major units to an integer in minimal units.

    Args:
        amount: Non-negative decimal string, e.g. "1.5"
        unit: Number of decimals or a named unit ("ether", "gwei", ...)

    Returns:
        Exact integer value in minimal units

    Raises:
        ValidationError: If the amount is malformed, has more fractional digits
            than the precision allows, or exceeds 2**256 - 1
    """
    decimals = _resolve_decimals(unit)
    amount = validate_amount(amount)

    whole, _, fraction = amount.partition(".")
    fraction = fraction.rstrip("0")
    if len(fraction) > decimals:
        raise ValidationError(
            f"Invalid input format: {amount} has more than {decimals} decimal places",
            details={"amount": amount, "decimals": str(decimals)},
        )
    value = int(whole) * 10 ** decimals + int(fraction.ljust(decimals, "0") or "0")
    if value > MAX_UINT256:
        raise ValidationError(
            f"Invalid input format: {amount} exceeds the maximum uint256 value",
            details={"amount": amount, "decimals": str(decimals)},
        )
    return value


def format_units(value: Union[int, str], unit: Union[int, str] = ETHER_DECIMALS) -> str:
    """
    Convert an integer in minimal units to its canonical decimal string.

    Trailing fractional zeros are dropped, so 1500000000000000000 wei formats
    as "1.5" and 10**18 wei as "1".
    """
    decimals = _resolve_decimals(unit)
    if isinstance(value, bool):
        raise ValidationError(f"Invalid input format: expected an integer value, got {value!r}")
    if isinstance(value, str):
        text = value.strip()
        try:
            value = int(text, 16) if text.startswith(("0x", "0X")) else int(text)
        except ValueError as e:
            raise ValidationError(f"Invalid input format: expected an integer value, got {value!r}") from e
    if not isinstance(value, int):
        raise ValidationError(f"Invalid input format: expected an integer value, got {value!r}")

    sign = "-" if value < 0 else ""
    digits = str(abs(value))
    if decimals == 0:
        return sign + digits
    digits = digits.rjust(decimals + 1, "0")
    whole, fraction = digits[:-decimals], digits[-decimals:].rstrip("0")
    return f"{sign}{whole}.{fraction}" if fraction else f"{sign}{whole}"


def parse_ether(amount: str) -> int:
    """Convert an ether amount string to wei."""
    return parse_units(amount, ETHER_DECIMALS)


def format_ether(wei: Union[int, str]) -> str:
    """Convert a wei amount to an ether decimal string."""
    return format_units(wei, ETHER_DECIMALS)


def parse_gwei(amount: Union[str, int]) -> int:
    """Convert a gwei amount (decimal string or int) to wei."""
    return parse_units(str(amount), GWEI_DECIMALS)
