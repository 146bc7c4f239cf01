"""Conversions between domain values and the ledger's argument encodings.

Move call arguments only accept unsigned integers, booleans, addresses and raw
byte vectors. Signed prices and exponents are therefore split into a
magnitude and a sign flag, and loosely formatted hex strings are normalised
into fixed-length byte sequences.
"""

from __future__ import annotations

import string
from dataclasses import dataclass
from typing import Final

from .errors import FormatError, RangeError

U64_MAX: Final[int] = 2**64 - 1
OBJECT_ID_BYTES: Final[int] = 32
PRICE_FEED_ID_BYTES: Final[int] = 32

_HEX_DIGITS: Final[frozenset[str]] = frozenset(string.hexdigits)


@dataclass(frozen=True, slots=True)
class SignedMagnitude:
    magnitude: int
    is_negative: bool


@dataclass(frozen=True, slots=True)
class PriceFeedValue:
    """Wire form of a signed fixed-point price."""

    magnitude: int
    is_negative: bool
    exponent_magnitude: int
    exponent_is_negative: bool

    @property
    def price(self) -> int:
        return decode_signed_magnitude(self.magnitude, self.is_negative)

    @property
    def exponent(self) -> int:
        return decode_signed_magnitude(self.exponent_magnitude, self.exponent_is_negative)


def ensure_u64(value: int, label: str = "value") -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise RangeError(f"{label} must be an integer, got {value!r}")
    if value < 0 or value > U64_MAX:
        raise RangeError(f"{label} {value} is outside the u64 range")
    return value


def encode_signed_magnitude(value: int) -> SignedMagnitude:
    """Split ``value`` into an unsigned magnitude and a sign flag."""

    if isinstance(value, bool) or not isinstance(value, int):
        raise RangeError(f"Signed value must be an integer, got {value!r}")
    magnitude = abs(value)
    if magnitude > U64_MAX:
        raise RangeError(f"Magnitude of {value} exceeds the u64 range")
    return SignedMagnitude(magnitude=magnitude, is_negative=value < 0)


def decode_signed_magnitude(magnitude: int, is_negative: bool) -> int:
    ensure_u64(magnitude, "magnitude")
    return -magnitude if is_negative else magnitude


def derive_price_feed_value(price: int, exponent: int) -> PriceFeedValue:
    encoded_price = encode_signed_magnitude(price)
    encoded_exponent = encode_signed_magnitude(exponent)
    return PriceFeedValue(
        magnitude=encoded_price.magnitude,
        is_negative=encoded_price.is_negative,
        exponent_magnitude=encoded_exponent.magnitude,
        exponent_is_negative=encoded_exponent.is_negative,
    )


def _strip_hex(value: str) -> str:
    stripped = value.strip()
    if stripped[:2] in {"0x", "0X"}:
        stripped = stripped[2:]
    return stripped.lower()


def _require_hex_digits(digits: str, original: str) -> None:
    if not digits or any(char not in _HEX_DIGITS for char in digits):
        raise FormatError(f"Invalid hex string: {original!r}")


def normalize_hex(value: str) -> str:
    """Return ``value`` as lowercase hex with a ``0x`` prefix."""

    digits = _strip_hex(value)
    _require_hex_digits(digits, value)
    return f"0x{digits}"


def encode_fixed_hex(value: str, expected_byte_length: int) -> bytes:
    """Decode a hex string that must encode exactly ``expected_byte_length`` bytes."""

    digits = _strip_hex(value)
    _require_hex_digits(digits, value)
    if len(digits) != expected_byte_length * 2:
        raise FormatError(
            f"Expected {expected_byte_length} bytes ({expected_byte_length * 2} hex digits), "
            f"got {len(digits)} hex digits in {value!r}"
        )
    return bytes.fromhex(digits)


def decode_hex(data: bytes | bytearray | list[int] | tuple[int, ...]) -> str:
    raw = bytes(data)
    return f"0x{raw.hex()}"


def normalize_object_id(value: str) -> str:
    """Normalise an object id or address to its 32-byte, zero-padded form."""

    digits = _strip_hex(value)
    _require_hex_digits(digits, value)
    if len(digits) > OBJECT_ID_BYTES * 2:
        raise FormatError(f"Object id {value!r} is longer than {OBJECT_ID_BYTES} bytes")
    return f"0x{digits.rjust(OBJECT_ID_BYTES * 2, '0')}"


def same_object_id(left: str, right: str) -> bool:
    return normalize_object_id(left) == normalize_object_id(right)


def encode_price_feed_id(feed_id_hex: str) -> bytes:
    return encode_fixed_hex(feed_id_hex, PRICE_FEED_ID_BYTES)


def _parse_u64(raw: str | int, label: str) -> int:
    if isinstance(raw, int) and not isinstance(raw, bool):
        return ensure_u64(raw, label)
    text = str(raw).strip()
    if not text.isdigit():
        raise FormatError(f"{label} must be an unsigned integer, got {raw!r}")
    return ensure_u64(int(text), label)


def parse_positive_u64(raw: str | int, label: str) -> int:
    value = _parse_u64(raw, label)
    if value == 0:
        raise RangeError(f"{label} must be greater than zero")
    return value


def parse_non_negative_u64(raw: str | int, label: str) -> int:
    return _parse_u64(raw, label)
