"""Prepare a match: fetch chain state, validate, sign and derive the deal id.

The preparer stops short of submitting ``matchOrders``; it returns the four
argument lists ready to hand to a transaction sender.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .chain import ChainReader
from .constants import NULL_BYTES32, WORKERPOOL_STAKE_RATIO
from .domain import EIP712Domain
from .errors import SignerMismatch
from .ethtypes import is_null_address, to_checksum_address
from .identifiers import compute_deal_id
from .matching import ConsumedVolumes, MatchOutcome, MatchResult, check_match
from .orders import AppOrder, DatasetOrder, RequestOrder, WorkerpoolOrder, empty_dataset_order
from .signers import Signer
from .snapshots import Account

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignedOrder:
    """An order with the salt and signer used to hash and sign it."""

    order: Any
    salt: str
    signer: Optional[Signer] = None


@dataclass(frozen=True)
class PreparedMatch:
    domain: EIP712Domain
    outcome: MatchOutcome
    order_hashes: Dict[str, str]
    app_arguments: List[Any]
    dataset_arguments: List[Any]
    workerpool_arguments: List[Any]
    request_arguments: List[Any]
    deal_id: str

    @property
    def result(self) -> MatchResult:
        return self.outcome.require_success()

    def match_orders_arguments(self) -> List[List[Any]]:
        """Positional arguments of the hub's ``matchOrders``."""

        return [self.app_arguments, self.dataset_arguments, self.workerpool_arguments, self.request_arguments]


class MatchPreparer:
    """Run the off-chain checks the hub performs in ``matchOrders``."""

    def __init__(self, reader: ChainReader, *, stake_ratio: int = WORKERPOOL_STAKE_RATIO) -> None:
        if not 0 <= stake_ratio <= 100:
            raise ValueError(f"stake_ratio must be within 0..100, got {stake_ratio}")
        self._reader = reader
        self.stake_ratio = stake_ratio

    async def _workerpool_owner_account(self, workerpool: WorkerpoolOrder) -> Account:
        owner = await self._reader.owner_of(workerpool.workerpool)
        return await self._reader.view_account(owner)

    @staticmethod
    def _check_signer(role: str, expected: str, signed: SignedOrder) -> None:
        if signed.signer is None:
            return
        actual = to_checksum_address(signed.signer.address)
        if to_checksum_address(expected) != actual:
            raise SignerMismatch(role, expected, actual)

    async def prepare(
        self,
        *,
        app: SignedOrder,
        workerpool: SignedOrder,
        request: SignedOrder,
        dataset: Optional[SignedOrder] = None,
        domain: Optional[EIP712Domain] = None,
    ) -> PreparedMatch:
        """Validate the orders against chain state and build the match arguments.

        Raises:
            SignerMismatch: when a resource owner or the requester is not the
                account signing the matching order.
            MatchRejected: when the match validation engine rejects the orders.
            ChainReadError: when a chain read fails.
        """

        app_order: AppOrder = app.order
        workerpool_order: WorkerpoolOrder = workerpool.order
        request_order: RequestOrder = request.order
        if dataset is not None and is_null_address(dataset.order.dataset):
            dataset = None
        dataset_order: Optional[DatasetOrder] = dataset.order if dataset is not None else None

        if domain is None:
            domain = await self._reader.domain()

        hashes = {
            "app": app_order.hash(domain, app.salt),
            "workerpool": workerpool_order.hash(domain, workerpool.salt),
            "request": request_order.hash(domain, request.salt),
        }
        if dataset is not None:
            hashes["dataset"] = dataset_order.hash(domain, dataset.salt)  # type: ignore[union-attr]

        reads = [
            self._reader.view_consumed(hashes["app"]),
            self._reader.view_consumed(hashes["workerpool"]),
            self._reader.view_consumed(hashes["request"]),
            self._reader.owner_of(app_order.app),
            self._reader.view_account(request_order.requester),
            self._workerpool_owner_account(workerpool_order),
        ]
        if dataset is not None:
            reads.append(self._reader.view_consumed(hashes["dataset"]))
            reads.append(self._reader.owner_of(dataset_order.dataset))  # type: ignore[union-attr]
        results = await asyncio.gather(*reads)
        consumed_app, consumed_workerpool, consumed_request, app_owner, requester_account, workerpool_account = results[:6]
        consumed_dataset = results[6] if dataset is not None else 0

        self._check_signer("app", app_owner, app)
        self._check_signer("workerpool", workerpool_account.address, workerpool)
        if dataset is not None:
            self._check_signer("dataset", results[7], dataset)
        self._check_signer("requester", request_order.requester, request)

        consumed = ConsumedVolumes(
            app=consumed_app,
            dataset=consumed_dataset,
            workerpool=consumed_workerpool,
            request=consumed_request,
        )
        outcome = check_match(
            app_order,
            dataset_order,
            workerpool_order,
            request_order,
            consumed=consumed,
            requester_stake=requester_account.stake,
            workerpool_stake=workerpool_account.stake,
            stake_ratio=self.stake_ratio,
        )
        if not outcome.ok:
            logger.warning(
                "Match rejected",
                extra={
                    "event": "match_rejected",
                    "data": {"kind": outcome.rejection.kind.value, "request": hashes["request"]},  # type: ignore[union-attr]
                },
            )
        result = outcome.require_success()

        if dataset is not None:
            dataset_arguments = await dataset_order.compute_match_arguments(  # type: ignore[union-attr]
                domain, dataset.salt, dataset.signer
            )
        else:
            dataset_arguments = await empty_dataset_order().compute_match_arguments(domain, NULL_BYTES32)
        app_arguments, workerpool_arguments, request_arguments = await asyncio.gather(
            app_order.compute_match_arguments(domain, app.salt, app.signer),
            workerpool_order.compute_match_arguments(domain, workerpool.salt, workerpool.signer),
            request_order.compute_match_arguments(domain, request.salt, request.signer),
        )

        deal_id = compute_deal_id(hashes["request"], consumed_request)
        logger.info(
            "Match prepared",
            extra={
                "event": "match_prepared",
                "data": {"deal_id": deal_id, "volume": result.matched_volume},
            },
        )
        return PreparedMatch(
            domain=domain,
            outcome=outcome,
            order_hashes=hashes,
            app_arguments=app_arguments,
            dataset_arguments=dataset_arguments,
            workerpool_arguments=workerpool_arguments,
            request_arguments=request_arguments,
            deal_id=deal_id,
        )


__all__ = ["SignedOrder", "PreparedMatch", "MatchPreparer"]
