"""
Selector Codec - Message selectors and counter value encoding.

The counter contract exposes five entry points.  Each one is addressed by a
fixed 4-byte selector; call data is the selector followed by the
SCALE-encoded arguments (only the ``new`` constructor takes one, an i32).
Return values are read as a little-endian signed 32-bit integer.
"""

from __future__ import annotations

from typing import Optional, Union

from ..errors import DecodeError
from ..utils import from_hex

GET = "get"
INCREMENT = "increment"
DECREMENT = "decrement"
DEFAULT = "default"
NEW = "new"

SELECTORS: dict[str, bytes] = {
    GET: bytes.fromhex("2f865bd9"),
    INCREMENT: bytes.fromhex("12bd51d3"),
    DECREMENT: bytes.fromhex("4151ffe0"),
    DEFAULT: bytes.fromhex("ed4b9d1b"),
    NEW: bytes.fromhex("9bae9d5e"),
}

# Operations that carry an i32 argument after the selector
_TAKES_VALUE = frozenset({NEW})

# Messages that change contract state and must be signed
MUTATING = frozenset({INCREMENT, DECREMENT})
CONSTRUCTORS = frozenset({DEFAULT, NEW})

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1


def selector(op: str) -> bytes:
    """Return the 4-byte selector for an operation name."""
    try:
        return SELECTORS[op]
    except KeyError:
        raise ValueError(f"Unknown contract operation: {op!r}") from None


def operation_for(sel: bytes) -> str:
    """Reverse lookup: selector bytes to operation name."""
    for op, value in SELECTORS.items():
        if value == sel:
            return op
    raise ValueError(f"Unknown selector: 0x{sel.hex()}")


def encode_counter(value: int) -> bytes:
    if not INT32_MIN <= value <= INT32_MAX:
        raise ValueError(f"Value out of i32 range: {value}")
    return value.to_bytes(4, "little", signed=True)


def encode_call(op: str, value: Optional[int] = None) -> bytes:
    """
    Build call data for a contract operation.

    Args:
        op: Operation name (get, increment, decrement, default, new)
        value: Constructor argument, required for ``new`` only

    Returns:
        Selector bytes followed by encoded arguments
    """
    sel = selector(op)
    if op in _TAKES_VALUE:
        if value is None:
            raise ValueError(f"Operation {op!r} requires a value")
        return sel + encode_counter(value)
    if value is not None:
        raise ValueError(f"Operation {op!r} takes no arguments")
    return sel


def decode_counter(data: Union[bytes, bytearray, str]) -> int:
    """
    Decode a counter value from returned call data.

    Args:
        data: Raw bytes or 0x-prefixed hex string

    Returns:
        Signed 32-bit integer read little-endian from the first 4 bytes

    Raises:
        DecodeError: If the data is missing, shorter than 4 bytes or not valid hex
    """
    if not isinstance(data, (bytes, bytearray, str)):
        raise DecodeError(f"Return data must be bytes or hex, got {type(data).__name__}")
    if isinstance(data, str):
        try:
            data = from_hex(data)
        except ValueError as exc:
            raise DecodeError(f"Return data is not valid hex: {data!r}") from exc

    if len(data) < 4:
        raise DecodeError(f"Return data too short: {len(data)} bytes, need 4")

    return int.from_bytes(bytes(data[:4]), "little", signed=True)
