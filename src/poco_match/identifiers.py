"""Deterministic deal and task identifiers.

Both identifiers are ``keccak256(abi.encode(bytes32, uint256))``:

* deal id: ``(requestOrderHash, index)`` where ``index`` is the consumed
  volume of the request order when the match was performed;
* task id: ``(dealId, botFirst + relativeIndex)``.
"""

from __future__ import annotations

from typing import Any, Protocol

from eth_abi import encode
from eth_utils import keccak

from .errors import OutOfBoundsTaskIndex, PocoValidationError
from .ethtypes import is_bytes32, to_bytes32_hex, to_uint256


class BatchWindow(Protocol):
    """The part of a deal needed to address its tasks."""

    @property
    def id(self) -> str:  # pragma: no cover - protocol
        ...

    @property
    def batch_first(self) -> int:  # pragma: no cover - protocol
        ...

    @property
    def batch_size(self) -> int:  # pragma: no cover - protocol
        ...


def _hash_pair(word: Any, index: Any, what: str) -> str:
    if not is_bytes32(word):
        raise PocoValidationError(f"Invalid {what}, not a bytes32: {word!r}")
    encoded = encode(["bytes32", "uint256"], [bytes.fromhex(to_bytes32_hex(word)[2:]), to_uint256(index, "index")])
    return "0x" + keccak(encoded).hex()


def compute_deal_id(request_order_hash: Any, index: Any) -> str:
    return _hash_pair(request_order_hash, index, "request order hash")


def compute_task_id(deal_id: Any, absolute_index: Any) -> str:
    return _hash_pair(deal_id, absolute_index, "deal id")


def task_id_at(deal: BatchWindow, relative_index: int) -> str:
    """Task id of the ``relative_index``-th task of ``deal``.

    Raises:
        OutOfBoundsTaskIndex: unless ``0 <= relative_index < deal.batch_size``.
    """

    if isinstance(relative_index, bool) or not isinstance(relative_index, int):
        raise OutOfBoundsTaskIndex(relative_index, deal.batch_size)
    if relative_index < 0 or relative_index >= deal.batch_size:
        raise OutOfBoundsTaskIndex(relative_index, deal.batch_size)
    return compute_task_id(deal.id, deal.batch_first + relative_index)


__all__ = ["BatchWindow", "compute_deal_id", "compute_task_id", "task_id_at"]
