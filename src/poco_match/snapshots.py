"""Read-only projections of hub state: deals, tasks, categories and accounts.

Snapshots are built from the values returned by the hub's ``view*`` calls.
web3 returns structs either as tuples or as attribute dictionaries depending
on the ABI decoder settings; ``from_rpc`` accepts both.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from .errors import InvalidTaskStatus, PocoValidationError
from .ethtypes import is_null_address, to_bytes32_hex, to_checksum_address, to_uint256
from .identifiers import task_id_at
from .request_params import RequestParams
from .tags import coerce_tag, to_symbols

RESOURCE_FIELDS = ("pointer", "owner", "price")
DEAL_FIELDS = (
    "app",
    "dataset",
    "workerpool",
    "trust",
    "category",
    "tag",
    "requester",
    "beneficiary",
    "callback",
    "params",
    "startTime",
    "botFirst",
    "botSize",
    "workerStake",
    "schedulerRewardRatio",
)
TASK_FIELDS = (
    "status",
    "dealid",
    "idx",
    "timeref",
    "contributionDeadline",
    "revealDeadline",
    "finalDeadline",
    "consensusValue",
    "revealCounter",
    "winnerCounter",
    "contributors",
    "resultDigest",
    "results",
    "resultsTimestamp",
    "resultsCallback",
)
CATEGORY_FIELDS = ("name", "description", "workClockTimeRef")
ACCOUNT_FIELDS = ("stake", "locked")


def _as_mapping(raw: Any, names: Sequence[str], what: str) -> Mapping[str, Any]:
    if isinstance(raw, Mapping):
        return raw
    if isinstance(raw, (list, tuple)):
        if len(raw) != len(names):
            raise PocoValidationError(f"Expected {len(names)} {what} fields, got {len(raw)}")
        return dict(zip(names, raw))
    raise PocoValidationError(f"Unsupported {what} value: {type(raw).__name__}")


def _to_bytes(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        text = value[2:] if value.startswith("0x") else value
        return bytes.fromhex(text)
    raise PocoValidationError(f"Expected bytes, got {type(value).__name__}")


@dataclass(frozen=True, slots=True)
class Resource:
    """App, dataset or workerpool pointer of a deal."""

    pointer: str
    owner: str
    price: int

    @classmethod
    def from_rpc(cls, raw: Any) -> "Resource":
        data = _as_mapping(raw, RESOURCE_FIELDS, "resource")
        return cls(
            pointer=to_checksum_address(data["pointer"]),
            owner=to_checksum_address(data["owner"]),
            price=to_uint256(data["price"], "price"),
        )

    @property
    def is_null(self) -> bool:
        return is_null_address(self.pointer)

    def to_dict(self) -> Dict[str, Any]:
        return {"pointer": self.pointer, "owner": self.owner, "price": str(self.price)}


@dataclass(frozen=True, slots=True)
class Deal:
    id: str
    app: Resource
    dataset: Resource
    workerpool: Resource
    trust: int
    category: int
    tag: int
    requester: str
    beneficiary: str
    callback: str
    params: RequestParams
    start_time: int
    batch_first: int
    batch_size: int
    worker_stake: int
    scheduler_reward_ratio: int

    @classmethod
    def from_rpc(cls, deal_id: Any, raw: Any) -> "Deal":
        data = _as_mapping(raw, DEAL_FIELDS, "deal")
        return cls(
            id=to_bytes32_hex(deal_id),
            app=Resource.from_rpc(data["app"]),
            dataset=Resource.from_rpc(data["dataset"]),
            workerpool=Resource.from_rpc(data["workerpool"]),
            trust=to_uint256(data["trust"], "trust"),
            category=to_uint256(data["category"], "category"),
            tag=coerce_tag(data["tag"]),
            requester=to_checksum_address(data["requester"]),
            beneficiary=to_checksum_address(data["beneficiary"]),
            callback=to_checksum_address(data["callback"]),
            params=RequestParams.parse(data["params"]),
            start_time=to_uint256(data["startTime"], "startTime"),
            batch_first=to_uint256(data["botFirst"], "botFirst"),
            batch_size=to_uint256(data["botSize"], "botSize"),
            worker_stake=to_uint256(data["workerStake"], "workerStake"),
            scheduler_reward_ratio=to_uint256(data["schedulerRewardRatio"], "schedulerRewardRatio"),
        )

    @property
    def app_price(self) -> int:
        return self.app.price

    @property
    def dataset_price(self) -> int:
        return self.dataset.price

    @property
    def workerpool_price(self) -> int:
        return self.workerpool.price

    @property
    def has_dataset(self) -> bool:
        return not self.dataset.is_null

    def compute_task_id(self, relative_index: int) -> str:
        return task_id_at(self, relative_index)

    def task_ids(self) -> List[str]:
        return [task_id_at(self, index) for index in range(self.batch_size)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "app": self.app.to_dict(),
            "dataset": self.dataset.to_dict(),
            "workerpool": self.workerpool.to_dict(),
            "trust": str(self.trust),
            "category": str(self.category),
            "tag": to_symbols(self.tag),
            "requester": self.requester,
            "beneficiary": self.beneficiary,
            "callback": self.callback,
            "params": self.params.to_dict(),
            "startTime": str(self.start_time),
            "botFirst": str(self.batch_first),
            "botSize": str(self.batch_size),
            "workerStake": str(self.worker_stake),
            "schedulerRewardRatio": str(self.scheduler_reward_ratio),
        }


class TaskStatus(IntEnum):
    UNSET = 0
    ACTIVE = 1
    REVEALING = 2
    COMPLETED = 3
    FAILED = 4

    @classmethod
    def from_value(cls, value: Any) -> "TaskStatus":
        if isinstance(value, TaskStatus):
            return value
        if isinstance(value, str) and value in cls.__members__:
            return cls[value]
        try:
            return cls(int(value))
        except (TypeError, ValueError) as exc:
            raise InvalidTaskStatus(f"Invalid task status value {value!r}") from exc


@dataclass(frozen=True, slots=True)
class TaskResult:
    """``storage`` is ``"none"`` or ``"ipfs"``; ``location`` is set for ipfs."""

    storage: str
    location: str | None = None

    @classmethod
    def parse(cls, raw: bytes) -> "TaskResult":
        if not raw or not any(raw):
            return cls(storage="none")
        try:
            document = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise PocoValidationError("Task results are not a JSON document") from exc
        if not isinstance(document, Mapping):
            raise PocoValidationError("Task results are not a JSON object")
        storage = document.get("storage")
        location = document.get("location")
        if storage != "ipfs" or not isinstance(location, str):
            raise PocoValidationError(f"Unsupported task results {document!r}")
        return cls(storage=storage, location=location)

    def to_dict(self) -> Dict[str, Any]:
        if self.location is None:
            return {"storage": self.storage}
        return {"storage": self.storage, "location": self.location}


@dataclass(frozen=True, slots=True)
class Task:
    id: str
    status: TaskStatus
    deal_id: str
    index: int
    timeref: int
    contribution_deadline: int
    reveal_deadline: int
    final_deadline: int
    consensus_value: str
    reveal_counter: int
    winner_counter: int
    contributors: Tuple[str, ...]
    result_digest: str
    raw_results: bytes = field(repr=False)
    results_timestamp: int
    raw_results_callback: bytes = field(repr=False)

    @classmethod
    def from_rpc(cls, task_id: Any, raw: Any) -> "Task":
        data = _as_mapping(raw, TASK_FIELDS, "task")
        return cls(
            id=to_bytes32_hex(task_id),
            status=TaskStatus.from_value(data["status"]),
            deal_id=to_bytes32_hex(data["dealid"]),
            index=to_uint256(data["idx"], "idx"),
            timeref=to_uint256(data["timeref"], "timeref"),
            contribution_deadline=to_uint256(data["contributionDeadline"], "contributionDeadline"),
            reveal_deadline=to_uint256(data["revealDeadline"], "revealDeadline"),
            final_deadline=to_uint256(data["finalDeadline"], "finalDeadline"),
            consensus_value=to_bytes32_hex(data["consensusValue"]),
            reveal_counter=to_uint256(data["revealCounter"], "revealCounter"),
            winner_counter=to_uint256(data["winnerCounter"], "winnerCounter"),
            contributors=tuple(to_checksum_address(item) for item in data["contributors"]),
            result_digest=to_bytes32_hex(data["resultDigest"]),
            raw_results=_to_bytes(data["results"]),
            results_timestamp=to_uint256(data["resultsTimestamp"], "resultsTimestamp"),
            raw_results_callback=_to_bytes(data["resultsCallback"]),
        )

    @property
    def results(self) -> TaskResult:
        return TaskResult.parse(self.raw_results)

    @property
    def is_completed(self) -> bool:
        return self.status is TaskStatus.COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status.name,
            "dealid": self.deal_id,
            "idx": str(self.index),
            "timeref": str(self.timeref),
            "contributionDeadline": str(self.contribution_deadline),
            "revealDeadline": str(self.reveal_deadline),
            "finalDeadline": str(self.final_deadline),
            "consensusValue": self.consensus_value,
            "revealCounter": str(self.reveal_counter),
            "winnerCounter": str(self.winner_counter),
            "contributors": list(self.contributors),
            "resultDigest": self.result_digest,
            "results": self.results.to_dict(),
            "resultsTimestamp": str(self.results_timestamp),
        }


@dataclass(frozen=True, slots=True)
class Category:
    id: int
    hub: str
    name: str
    description: str
    work_clock_time_ref: int

    @classmethod
    def from_rpc(cls, index: int, hub: Any, raw: Any) -> "Category":
        data = _as_mapping(raw, CATEGORY_FIELDS, "category")
        return cls(
            id=to_uint256(index, "id"),
            hub=to_checksum_address(hub),
            name=str(data["name"]),
            description=str(data["description"]),
            work_clock_time_ref=to_uint256(data["workClockTimeRef"], "workClockTimeRef"),
        )


@dataclass(frozen=True, slots=True)
class Account:
    """Hub balance of an address, in nRLC."""

    address: str
    stake: int
    locked: int

    @classmethod
    def from_rpc(cls, address: Any, raw: Any) -> "Account":
        data = _as_mapping(raw, ACCOUNT_FIELDS, "account")
        return cls(
            address=to_checksum_address(address),
            stake=to_uint256(data["stake"], "stake"),
            locked=to_uint256(data["locked"], "locked"),
        )


__all__ = [
    "Resource",
    "Deal",
    "TaskStatus",
    "TaskResult",
    "Task",
    "Category",
    "Account",
]
