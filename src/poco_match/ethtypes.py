"""Coercion helpers for the ABI value types used by orders and identifiers."""

from __future__ import annotations

import re
import secrets
from typing import Any, Protocol, Union, runtime_checkable

from eth_utils import is_address
from eth_utils import to_checksum_address as _eth_checksum

from .constants import NULL_ADDRESS, RLC_DECIMALS, UINT256_MAX
from .errors import InvalidAddress, InvalidOrderField

_BYTES32_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")
_SIGNATURE65_RE = re.compile(r"^0x[0-9a-fA-F]{130}$")
_DECIMAL_RE = re.compile(r"^[0-9]+$")


@runtime_checkable
class AddressEntry(Protocol):
    """Anything that carries an on-chain address (registry entries, accounts)."""

    @property
    def address(self) -> str:  # pragma: no cover - protocol
        ...


AddressLike = Union[str, bytes, AddressEntry, None]


def to_checksum_address(value: AddressLike) -> str:
    """Resolve an address-like value into a checksummed address.

    ``None`` maps to the null address, entry objects are unwrapped through
    their ``address`` attribute and left-padded 32-byte words are narrowed to
    their low 20 bytes.
    """

    if value is None:
        return NULL_ADDRESS
    if isinstance(value, (bytes, bytearray)):
        if len(value) != 20:
            raise InvalidAddress(f"Expected 20 address bytes, got {len(value)}")
        return _eth_checksum("0x" + bytes(value).hex())
    if isinstance(value, str):
        text = value.strip()
        if _BYTES32_RE.match(text):
            if int(text[2:26], 16) != 0:
                raise InvalidAddress(f"bytes32 value does not hold an address: {value}")
            text = "0x" + text[26:]
        if not is_address(text):
            raise InvalidAddress(f"Invalid address: {value!r}")
        return _eth_checksum(text)
    if isinstance(value, AddressEntry):
        return to_checksum_address(value.address)
    raise InvalidAddress(f"Unable to convert {type(value).__name__} to an address")


def is_null_address(value: AddressLike) -> bool:
    return to_checksum_address(value) == NULL_ADDRESS


def is_bytes32(value: Any) -> bool:
    if isinstance(value, (bytes, bytearray)):
        return len(value) == 32
    return isinstance(value, str) and bool(_BYTES32_RE.match(value))


def to_bytes32_hex(value: Any) -> str:
    """Return ``value`` as a lowercase ``0x``-prefixed 32-byte hex string."""

    if isinstance(value, (bytes, bytearray)) and len(value) == 32:
        return "0x" + bytes(value).hex()
    if isinstance(value, str) and _BYTES32_RE.match(value):
        return value.lower()
    raise ValueError(f"Not a bytes32 value: {value!r}")


def is_signature65(value: Any) -> bool:
    if isinstance(value, (bytes, bytearray)):
        return len(value) == 65
    return isinstance(value, str) and bool(_SIGNATURE65_RE.match(value))


def to_uint256(value: Any, field: str = "value") -> int:
    """Coerce ints, decimal strings and hex strings into a uint256."""

    if isinstance(value, bool):
        raise InvalidOrderField(field, f"expected an unsigned integer, got {value!r}")
    if isinstance(value, int):
        number = value
    elif isinstance(value, str):
        text = value.strip()
        if text.lower().startswith("0x"):
            try:
                number = int(text, 16)
            except ValueError as exc:
                raise InvalidOrderField(field, f"invalid hex integer {value!r}") from exc
        elif _DECIMAL_RE.match(text):
            number = int(text)
        else:
            raise InvalidOrderField(field, f"invalid unsigned integer {value!r}")
    else:
        raise InvalidOrderField(field, f"expected an unsigned integer, got {type(value).__name__}")
    if number < 0 or number > UINT256_MAX:
        raise InvalidOrderField(field, f"{number} is outside of the uint256 range")
    return number


def parse_price(value: Any, unit: str = "nRLC", field: str = "price") -> int:
    """Return a price in nRLC.

    Strings may carry their own unit (``"5 RLC"``, ``"100 nRLC"``); bare
    amounts use ``unit``. RLC amounts are scaled by 10**9.
    """

    if value is None:
        raise InvalidOrderField(field, "missing price")
    if isinstance(value, str):
        amount, _, suffix = value.strip().partition(" ")
        price_unit = suffix.strip() or unit
        if price_unit not in ("RLC", "nRLC"):
            raise InvalidOrderField(field, f"invalid price unit {price_unit!r}")
        if not _DECIMAL_RE.match(amount):
            raise InvalidOrderField(field, f"invalid price {value!r}")
        scale = 10**RLC_DECIMALS if price_unit == "RLC" else 1
        return to_uint256(int(amount) * scale, field)
    return to_uint256(value, field)


def random_salt() -> str:
    """Generate a fresh 32-byte order salt."""

    return "0x" + secrets.token_hex(32)


__all__ = [
    "AddressEntry",
    "AddressLike",
    "to_checksum_address",
    "is_null_address",
    "is_bytes32",
    "to_bytes32_hex",
    "is_signature65",
    "to_uint256",
    "parse_price",
    "random_salt",
]
