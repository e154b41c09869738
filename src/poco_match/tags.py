"""Capability tag algebra.

A tag is a subset of ``{tee, gpu}``. It travels in three interchangeable
forms:

* a symbol list such as ``["tee", "gpu"]`` (order-insensitive, at most two
  entries, no duplicates);
* a small integer bitmask: ``0`` (none), ``1`` (tee), ``4`` (gpu) and
  ``5`` (tee+gpu);
* the 32-byte big-endian hex word stored on-chain, where gpu sits at
  ``0x...0100``.

Only those four states are legal. Every conversion and every bitwise
operation re-validates its result.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Optional

from .errors import InvalidTag

TAG_NONE = 0
TAG_TEE = 1
TAG_GPU = 4
TAG_TEE_GPU = TAG_TEE | TAG_GPU

TEE = "tee"
GPU = "gpu"

TAG_NONE_HEX = "0x" + "0" * 64
TAG_TEE_HEX = "0x" + "0" * 63 + "1"
TAG_GPU_HEX = "0x" + "0" * 61 + "100"
TAG_TEE_GPU_HEX = "0x" + "0" * 61 + "101"

LEGAL_TAGS = frozenset((TAG_NONE, TAG_TEE, TAG_GPU, TAG_TEE_GPU))

_INT_TO_HEX = {
    TAG_NONE: TAG_NONE_HEX,
    TAG_TEE: TAG_TEE_HEX,
    TAG_GPU: TAG_GPU_HEX,
    TAG_TEE_GPU: TAG_TEE_GPU_HEX,
}
_HEX_TO_INT = {value: key for key, value in _INT_TO_HEX.items()}

_INT_TO_SYMBOLS = {
    TAG_NONE: (),
    TAG_TEE: (TEE,),
    TAG_GPU: (GPU,),
    TAG_TEE_GPU: (TEE, GPU),
}

# Command-line spelling of the four states.
_ARG_TO_INT = {
    "none": TAG_NONE,
    "tee": TAG_TEE,
    "gpu": TAG_GPU,
    "tee-gpu": TAG_TEE_GPU,
}
_SYMBOL_BITS = {TEE: TAG_TEE, GPU: TAG_GPU}


def from_int(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value not in LEGAL_TAGS:
        raise InvalidTag(f"Invalid tag int {value!r}")
    return value


def from_symbols(symbols: Optional[Iterable[str]]) -> int:
    if symbols is None:
        return TAG_NONE
    if isinstance(symbols, (str, bytes)):
        raise InvalidTag(f"Invalid tag array {symbols!r}")
    items = list(symbols)
    if len(items) > 2:
        raise InvalidTag(f"Invalid tag array {items!r}")
    tag = TAG_NONE
    for item in items:
        bit = _SYMBOL_BITS.get(item) if isinstance(item, str) else None
        if bit is None or tag & bit:
            raise InvalidTag(f"Invalid tag array {items!r}")
        tag |= bit
    return tag


def from_hex(value: Any) -> int:
    if isinstance(value, (bytes, bytearray)):
        value = "0x" + bytes(value).hex()
    if not isinstance(value, str):
        raise InvalidTag(f"Invalid tag bytes32 {value!r}")
    tag = _HEX_TO_INT.get(value.lower())
    if tag is None:
        raise InvalidTag(f"Invalid tag bytes32 {value!r}")
    return tag


def from_arg(value: str) -> int:
    tag = _ARG_TO_INT.get(value)
    if tag is None:
        raise InvalidTag(f"Invalid tag arg {value!r}")
    return tag


def to_int(tag: int) -> int:
    return from_int(tag)


def to_symbols(tag: int) -> List[str]:
    return list(_INT_TO_SYMBOLS[from_int(tag)])


def to_hex(tag: int) -> str:
    return _INT_TO_HEX[from_int(tag)]


def to_arg(tag: int) -> str:
    tag = from_int(tag)
    for arg, value in _ARG_TO_INT.items():
        if value == tag:
            return arg
    raise InvalidTag(f"Invalid tag int {tag!r}")  # pragma: no cover - table is total


def coerce_tag(value: Any) -> int:
    """Accept any tag representation and return the canonical integer.

    ``None`` means no tag. Strings are tried as command-line args first
    (``"tee-gpu"``) and as bytes32 hex second.
    """

    if value is None:
        return TAG_NONE
    if isinstance(value, bool):
        raise InvalidTag(f"Invalid tag {value!r}")
    if isinstance(value, int):
        return from_int(value)
    if isinstance(value, str):
        if value in _ARG_TO_INT:
            return from_arg(value)
        return from_hex(value)
    if isinstance(value, (bytes, bytearray)):
        return from_hex(value)
    if isinstance(value, (list, tuple, set, frozenset)):
        return from_symbols(value)
    raise InvalidTag(f"Invalid tag {value!r}")


def bitwise_and(a: int, b: int) -> int:
    return from_int(from_int(a) & from_int(b))


def bitwise_or(a: int, b: int) -> int:
    return from_int(from_int(a) | from_int(b))


def tag_covers(available: int, needed: int) -> bool:
    """True when every capability in ``needed`` is also in ``available``."""

    return bitwise_and(needed, available) == from_int(needed)


def has_tee(tag: int) -> bool:
    return bitwise_and(tag, TAG_TEE) == TAG_TEE


def has_gpu(tag: int) -> bool:
    return bitwise_and(tag, TAG_GPU) == TAG_GPU


__all__ = [
    "TAG_NONE",
    "TAG_TEE",
    "TAG_GPU",
    "TAG_TEE_GPU",
    "TAG_NONE_HEX",
    "TAG_TEE_HEX",
    "TAG_GPU_HEX",
    "TAG_TEE_GPU_HEX",
    "LEGAL_TAGS",
    "TEE",
    "GPU",
    "from_int",
    "from_symbols",
    "from_hex",
    "from_arg",
    "to_int",
    "to_symbols",
    "to_hex",
    "to_arg",
    "coerce_tag",
    "bitwise_and",
    "bitwise_or",
    "tag_covers",
    "has_tee",
    "has_gpu",
]
