"""Match validation engine.

Given resolved orders and the externally fetched consumed volumes and stake
balances, :func:`check_match` runs the hub's compatibility and economic
checks in a fixed order and stops at the first failure. Policy failures are
returned as a :class:`MatchOutcome`, not raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from .constants import WORKERPOOL_STAKE_RATIO
from .errors import MatchRejected
from .ethtypes import is_null_address
from .orders import AppOrder, DatasetOrder, RequestOrder, WorkerpoolOrder
from .tags import TAG_NONE, TAG_TEE, bitwise_or, has_tee, tag_covers, to_symbols

logger = logging.getLogger(__name__)


class RejectionKind(str, Enum):
    CATEGORY_MISMATCH = "CATEGORY_MISMATCH"
    INSUFFICIENT_TRUST = "INSUFFICIENT_TRUST"
    TAG_MISMATCH = "TAG_MISMATCH"
    MISSING_TEE_TAG = "MISSING_TEE_TAG"
    PRICE_TOO_LOW = "PRICE_TOO_LOW"
    VOLUME_EXHAUSTED = "VOLUME_EXHAUSTED"
    INSUFFICIENT_REQUESTER_STAKE = "INSUFFICIENT_REQUESTER_STAKE"
    INSUFFICIENT_WORKERPOOL_STAKE = "INSUFFICIENT_WORKERPOOL_STAKE"


@dataclass(frozen=True, slots=True)
class MatchRejection:
    kind: RejectionKind
    message: str


@dataclass(frozen=True, slots=True)
class ConsumedVolumes:
    """Volume already consumed on-chain for each order, keyed by role."""

    app: int = 0
    dataset: int = 0
    workerpool: int = 0
    request: int = 0


@dataclass(frozen=True, slots=True)
class MatchResult:
    matched_volume: int
    requester_lock: int
    workerpool_lock: int


@dataclass(frozen=True, slots=True)
class MatchOutcome:
    """Either a :class:`MatchResult` or a :class:`MatchRejection`."""

    result: Optional[MatchResult] = None
    rejection: Optional[MatchRejection] = None

    @property
    def ok(self) -> bool:
        return self.rejection is None and self.result is not None

    def require_success(self) -> MatchResult:
        if self.rejection is not None:
            raise MatchRejected(self.rejection)
        assert self.result is not None
        return self.result


@dataclass(frozen=True)
class _MatchInputs:
    app: AppOrder
    dataset: Optional[DatasetOrder]
    workerpool: WorkerpoolOrder
    request: RequestOrder
    consumed: ConsumedVolumes
    requester_stake: int
    workerpool_stake: int
    stake_ratio: int


def _reject(kind: RejectionKind, message: str) -> MatchRejection:
    return MatchRejection(kind=kind, message=message)


def check_category(inputs: _MatchInputs) -> Optional[MatchRejection]:
    if inputs.workerpool.category != inputs.request.category:
        return _reject(
            RejectionKind.CATEGORY_MISMATCH,
            f"Category mismatch between requestorder ({inputs.request.category}) "
            f"and workerpoolorder ({inputs.workerpool.category})",
        )
    return None


def check_trust(inputs: _MatchInputs) -> Optional[MatchRejection]:
    if inputs.workerpool.trust < inputs.request.trust:
        return _reject(
            RejectionKind.INSUFFICIENT_TRUST,
            f"workerpoolorder trust is too low (expected {inputs.request.trust}, "
            f"got {inputs.workerpool.trust})",
        )
    return None


def check_tags(inputs: _MatchInputs) -> Optional[MatchRejection]:
    dataset_tag = inputs.dataset.tag if inputs.dataset is not None else TAG_NONE
    requested = bitwise_or(inputs.request.tag, dataset_tag)
    needed = bitwise_or(requested, inputs.app.tag)
    if not tag_covers(inputs.workerpool.tag, needed):
        return _reject(
            RejectionKind.TAG_MISMATCH,
            f"Missing tags {to_symbols(needed)} in workerpoolorder",
        )
    if has_tee(requested) and not has_tee(inputs.app.tag):
        return _reject(
            RejectionKind.MISSING_TEE_TAG,
            f"Missing tag {to_symbols(TAG_TEE)} in apporder",
        )
    return None


def check_prices(inputs: _MatchInputs) -> Optional[MatchRejection]:
    request = inputs.request
    pairs = [
        ("app", request.appmaxprice, inputs.app.appprice),
        ("workerpool", request.workerpoolmaxprice, inputs.workerpool.workerpoolprice),
    ]
    if inputs.dataset is not None:
        pairs.append(("dataset", request.datasetmaxprice, inputs.dataset.datasetprice))
    for role, max_price, price in pairs:
        if max_price < price:
            return _reject(
                RejectionKind.PRICE_TOO_LOW,
                f"{role}maxprice too low (expected {price}, got {max_price})",
            )
    return None


def remaining_volumes(inputs: _MatchInputs) -> List[int]:
    remaining = [
        inputs.app.volume - inputs.consumed.app,
        inputs.workerpool.volume - inputs.consumed.workerpool,
        inputs.request.volume - inputs.consumed.request,
    ]
    if inputs.dataset is not None:
        remaining.append(inputs.dataset.volume - inputs.consumed.dataset)
    return remaining


def compute_locks(
    app_price: int,
    dataset_price: int,
    workerpool_price: int,
    volume: int,
    stake_ratio: int = WORKERPOOL_STAKE_RATIO,
) -> tuple[int, int]:
    """Return ``(requester_lock, workerpool_lock)`` for ``volume`` tasks.

    The workerpool lock divides before multiplying by the volume, as the hub
    does, so the per-task lock is truncated.
    """

    requester_lock = (app_price + dataset_price + workerpool_price) * volume
    workerpool_lock = (workerpool_price * stake_ratio // 100) * volume
    return requester_lock, workerpool_lock


Check = Callable[[_MatchInputs], Optional[MatchRejection]]

COMPATIBILITY_CHECKS: tuple[Check, ...] = (check_category, check_trust, check_tags, check_prices)


def check_match(
    app: AppOrder,
    dataset: Optional[DatasetOrder],
    workerpool: WorkerpoolOrder,
    request: RequestOrder,
    *,
    consumed: Optional[ConsumedVolumes] = None,
    requester_stake: int = 0,
    workerpool_stake: int = 0,
    stake_ratio: int = WORKERPOOL_STAKE_RATIO,
) -> MatchOutcome:
    """Validate a match and compute the matchable volume and locks.

    ``dataset`` may be ``None``; a dataset order pointing to the null address
    is treated the same way. ``stake_ratio`` is the workerpool stake ratio in
    percent.
    """

    if not 0 <= stake_ratio <= 100:
        raise ValueError(f"stake_ratio must be within 0..100, got {stake_ratio}")
    if dataset is not None and is_null_address(dataset.dataset):
        dataset = None
    inputs = _MatchInputs(
        app=app,
        dataset=dataset,
        workerpool=workerpool,
        request=request,
        consumed=consumed or ConsumedVolumes(),
        requester_stake=requester_stake,
        workerpool_stake=workerpool_stake,
        stake_ratio=stake_ratio,
    )

    for check in COMPATIBILITY_CHECKS:
        rejection = check(inputs)
        if rejection is not None:
            return _rejected(rejection)

    volume = min(remaining_volumes(inputs))
    if volume <= 0:
        return _rejected(_reject(RejectionKind.VOLUME_EXHAUSTED, "No volume left to match"))

    requester_lock, workerpool_lock = compute_locks(
        app.appprice,
        dataset.datasetprice if dataset is not None else 0,
        workerpool.workerpoolprice,
        volume,
        stake_ratio,
    )
    if requester_stake < requester_lock:
        return _rejected(
            _reject(
                RejectionKind.INSUFFICIENT_REQUESTER_STAKE,
                f"Requester stake is too low (expected {requester_lock}, got {requester_stake})",
            )
        )
    if workerpool_stake < workerpool_lock:
        return _rejected(
            _reject(
                RejectionKind.INSUFFICIENT_WORKERPOOL_STAKE,
                f"Workerpool owner stake is too low (expected {workerpool_lock}, got {workerpool_stake})",
            )
        )

    result = MatchResult(matched_volume=volume, requester_lock=requester_lock, workerpool_lock=workerpool_lock)
    logger.debug(
        "Match validated",
        extra={
            "event": "match_validated",
            "data": {"volume": volume, "requester_lock": requester_lock, "workerpool_lock": workerpool_lock},
        },
    )
    return MatchOutcome(result=result)


def _rejected(rejection: MatchRejection) -> MatchOutcome:
    logger.debug(
        "Match rejected",
        extra={"event": "match_rejected", "data": {"kind": rejection.kind.value, "reason": rejection.message}},
    )
    return MatchOutcome(rejection=rejection)


__all__ = [
    "RejectionKind",
    "MatchRejection",
    "ConsumedVolumes",
    "MatchResult",
    "MatchOutcome",
    "check_match",
    "compute_locks",
    "remaining_volumes",
]
