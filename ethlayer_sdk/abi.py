"""
Contract ABI handling: resolve functions and events, coerce arguments,
encode calls and decode results and logs.

Functions and events are always looked up in the caller's ABI; a name that
is not declared there is rejected before any network access.
"""
import json
import re
from typing import Any, Dict, List, Optional, Sequence, Union

from eth_abi import decode, encode
from eth_utils import (
    collapse_if_tuple,
    event_signature_to_log_topic,
    function_signature_to_4byte_selector,
)
from hexbytes import HexBytes
from web3 import Web3

from .exceptions import ValidationError
from .validation import validate_address

ABI = List[Dict[str, Any]]

_STATIC_TYPE = re.compile(r"^(u?int[0-9]*|address|bool|bytes[0-9]+)$")
_ARRAY_SUFFIX = re.compile(r"^(.*)\[([0-9]*)\]$")


def parse_abi(abi: Union[str, Sequence[Dict[str, Any]]]) -> ABI:
    """
    Accept an ABI as a JSON string or a list of ABI entries.

    Raises:
        ValidationError: If the ABI is not valid JSON or not a list of entries
    """
    if isinstance(abi, str):
        try:
            abi = json.loads(abi)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid input format: abi is not valid JSON: {e.msg}") from e
    if not isinstance(abi, (list, tuple)) or not all(isinstance(entry, dict) for entry in abi):
        raise ValidationError("Invalid input format: abi must be a list of ABI entries")
    return list(abi)


def signature(entry: Dict[str, Any]) -> str:
    """Canonical signature of a function or event, e.g. ``transfer(address,uint256)``"""
    types = ",".join(collapse_if_tuple(dict(i)) for i in entry.get("inputs", []))
    return f"{entry['name']}({types})"


def _entries(abi: ABI, kind: str) -> List[Dict[str, Any]]:
    return [entry for entry in abi if entry.get("type", "function") == kind and "name" in entry]


def find_function(abi: ABI, method: str, args: Optional[Sequence[Any]] = None) -> Dict[str, Any]:
    """
    Resolve a function by name or full signature.

    Overloads are narrowed by argument count; if that still leaves more than
    one candidate the caller must pass the signature.

    Raises:
        ValidationError: If the function is not in the ABI or is ambiguous
    """
    functions = _entries(abi, "function")
    if "(" in method:
        wanted = method.replace(" ", "")
        matches = [fn for fn in functions if signature(fn) == wanted]
    else:
        matches = [fn for fn in functions if fn["name"] == method]
        if len(matches) > 1 and args is not None:
            matches = [fn for fn in matches if len(fn.get("inputs", [])) == len(args)]

    if not matches:
        raise ValidationError(f"Invalid input format: function '{method}' not found in ABI")
    if len(matches) > 1:
        candidates = ", ".join(signature(fn) for fn in matches)
        raise ValidationError(
            f"Invalid input format: function '{method}' is ambiguous; use one of: {candidates}"
        )
    return matches[0]


def find_event(abi: ABI, name: str) -> Dict[str, Any]:
    """
    Resolve an event by name or full signature.

    Raises:
        ValidationError: If the event is not in the ABI
    """
    events = _entries(abi, "event")
    if "(" in name:
        matches = [ev for ev in events if signature(ev) == name.replace(" ", "")]
    else:
        matches = [ev for ev in events if ev["name"] == name]
    if not matches:
        raise ValidationError(f"Invalid input format: event '{name}' not found in ABI")
    return matches[0]


def is_read_only(fn: Dict[str, Any]) -> bool:
    """True for view and pure functions"""
    mutability = fn.get("stateMutability")
    if mutability is None:
        return bool(fn.get("constant", False))
    return mutability in ("view", "pure")


def is_payable(fn: Dict[str, Any]) -> bool:
    return fn.get("stateMutability") == "payable" or bool(fn.get("payable", False))


def event_topic(event: Dict[str, Any]) -> str:
    """Topic hash of an event, 0x-prefixed"""
    return Web3.to_hex(event_signature_to_log_topic(signature(event)))


def _coerce(abi_type: str, component: Dict[str, Any], value: Any, label: str) -> Any:
    array = _ARRAY_SUFFIX.match(abi_type)
    if array:
        inner, size = array.group(1), array.group(2)
        if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)):
            raise ValidationError(f"Invalid input format: {label}: expected an array for {abi_type}")
        if size and len(value) != int(size):
            raise ValidationError(f"Invalid input format: {label}: expected {size} items for {abi_type}")
        return [_coerce(inner, component, item, f"{label}[{i}]") for i, item in enumerate(value)]

    if abi_type == "tuple":
        components = component.get("components", [])
        if isinstance(value, dict):
            value = [value.get(c.get("name")) for c in components]
        if not isinstance(value, (list, tuple)) or len(value) != len(components):
            raise ValidationError(f"Invalid input format: {label}: expected a tuple of {len(components)} items")
        return tuple(
            _coerce(c["type"], c, item, f"{label}.{c.get('name') or i}")
            for i, (c, item) in enumerate(zip(components, value))
        )

    if abi_type == "address":
        return Web3.to_checksum_address(validate_address(value, label))

    if abi_type.startswith(("uint", "int")):
        if isinstance(value, bool):
            raise ValidationError(f"Invalid input format: {label}: expected an integer for {abi_type}")
        if isinstance(value, int):
            number = value
        elif isinstance(value, str) and re.fullmatch(r"-?[0-9]+", value.strip()):
            number = int(value.strip())
        elif isinstance(value, str) and re.fullmatch(r"0x[0-9a-fA-F]+", value.strip()):
            number = int(value.strip(), 16)
        else:
            raise ValidationError(f"Invalid input format: {label}: expected an integer for {abi_type}, got {value!r}")
        bits = int(re.sub(r"^u?int", "", abi_type) or 256)
        low, high = (0, 2 ** bits - 1) if abi_type.startswith("uint") else (-(2 ** (bits - 1)), 2 ** (bits - 1) - 1)
        if not low <= number <= high:
            raise ValidationError(f"Invalid input format: {label}: {number} out of range for {abi_type}")
        return number

    if abi_type == "bool":
        if isinstance(value, bool):
            return value
        if value in ("true", "false"):
            return value == "true"
        raise ValidationError(f"Invalid input format: {label}: expected a boolean")

    if abi_type.startswith("bytes"):
        if isinstance(value, (bytes, bytearray)):
            raw = bytes(value)
        elif isinstance(value, str) and re.fullmatch(r"0x([0-9a-fA-F]{2})*", value):
            raw = bytes.fromhex(value[2:])
        else:
            raise ValidationError(f"Invalid input format: {label}: expected 0x hex bytes for {abi_type}")
        size = abi_type[len("bytes"):]
        if size and len(raw) > int(size):
            raise ValidationError(f"Invalid input format: {label}: too many bytes for {abi_type}")
        return raw

    if abi_type == "string":
        if not isinstance(value, str):
            raise ValidationError(f"Invalid input format: {label}: expected a string")
        return value

    raise ValidationError(f"Invalid input format: {label}: unsupported ABI type {abi_type}")


def coerce_args(fn: Dict[str, Any], args: Optional[Sequence[Any]]) -> List[Any]:
    """
    Validate and convert caller arguments to the Python values eth_abi encodes.

    Raises:
        ValidationError: On an argument count or type mismatch, naming the argument
    """
    inputs = fn.get("inputs", [])
    args = list(args or [])
    if len(args) != len(inputs):
        raise ValidationError(
            f"Invalid input format: {fn['name']} expects {len(inputs)} arguments, got {len(args)}"
        )
    return [
        _coerce(i["type"], i, value, i.get("name") or f"args[{n}]")
        for n, (i, value) in enumerate(zip(inputs, args))
    ]


def encode_call(fn: Dict[str, Any], args: Optional[Sequence[Any]]) -> str:
    """Encode a function call: 4-byte selector followed by the encoded arguments"""
    values = coerce_args(fn, args)
    types = [collapse_if_tuple(dict(i)) for i in fn.get("inputs", [])]
    selector = function_signature_to_4byte_selector(signature(fn))
    return Web3.to_hex(selector + encode(types, values))


def _normalize(abi_type: str, component: Dict[str, Any], value: Any) -> Any:
    array = _ARRAY_SUFFIX.match(abi_type)
    if array:
        return [_normalize(array.group(1), component, item) for item in value]
    if abi_type == "tuple":
        return {
            (c.get("name") or str(i)): _normalize(c["type"], c, item)
            for i, (c, item) in enumerate(zip(component.get("components", []), value))
        }
    if abi_type == "address":
        return Web3.to_checksum_address(value)
    if isinstance(value, (bytes, bytearray)):
        return Web3.to_hex(value)
    return value


def decode_output(fn: Dict[str, Any], data: Union[bytes, HexBytes]) -> Any:
    """
    Decode a call result.

    A single output is returned bare; several outputs are returned as a dict
    when every output is named and as a list otherwise.
    """
    outputs = fn.get("outputs", [])
    if not outputs:
        return None
    types = [collapse_if_tuple(dict(o)) for o in outputs]
    decoded = decode(types, bytes(data))
    values = [_normalize(o["type"], o, v) for o, v in zip(outputs, decoded)]
    if len(values) == 1:
        return values[0]
    if all(o.get("name") for o in outputs):
        return {o["name"]: v for o, v in zip(outputs, values)}
    return values


def decode_log(event: Dict[str, Any], topics: Sequence[Any], data: Any) -> Dict[str, Any]:
    """
    Decode a log against an event definition.

    Indexed dynamic values (strings, bytes, arrays, tuples) are only present
    as their hash and are returned as 32-byte hex.

    Raises:
        ValueError: If the log does not match the event
    """
    topics = [HexBytes(t) for t in topics]
    if not event.get("anonymous", False):
        if not topics or Web3.to_hex(topics[0]) != event_topic(event):
            raise ValueError(f"log does not match event {signature(event)}")
        topics = topics[1:]

    inputs = event.get("inputs", [])
    keyed = [(param.get("name") or str(position), param) for position, param in enumerate(inputs)]
    indexed = [(key, p) for key, p in keyed if p.get("indexed")]
    plain = [(key, p) for key, p in keyed if not p.get("indexed")]
    if len(topics) != len(indexed):
        raise ValueError(f"expected {len(indexed)} indexed topics for {signature(event)}, got {len(topics)}")

    args: Dict[str, Any] = {}
    for (key, param), topic in zip(indexed, topics):
        if _STATIC_TYPE.match(param["type"]):
            (value,) = decode([param["type"]], bytes(topic))
            args[key] = _normalize(param["type"], param, value)
        else:
            args[key] = Web3.to_hex(topic)

    values = decode([collapse_if_tuple(dict(p)) for _, p in plain], bytes(HexBytes(data or b"")))
    for (key, param), value in zip(plain, values):
        args[key] = _normalize(param["type"], param, value)

    # Declaration order of the event
    return {key: args[key] for key, _ in keyed}


def match_event(abi: ABI, topics: Sequence[Any]) -> Optional[Dict[str, Any]]:
    """Find the event whose topic hash equals the first topic of a log"""
    if not topics:
        return None
    first = Web3.to_hex(HexBytes(topics[0]))
    for event in _entries(abi, "event"):
        if not event.get("anonymous", False) and event_topic(event) == first:
            return event
    return None

