"""Chain-read collaborator: the hub views needed to prepare and follow a match."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol, TypeVar, Union

from web3 import HTTPProvider, Web3

from .constants import DEFAULT_DOMAIN_NAME, DEFAULT_DOMAIN_VERSION
from .domain import EIP712Domain
from .errors import ChainReadError, PocoError
from .ethtypes import AddressLike, to_bytes32_hex, to_checksum_address
from .identifiers import task_id_at
from .snapshots import Account, Category, Deal, Task

logger = logging.getLogger(__name__)

T = TypeVar("T")

_RESOURCE_COMPONENTS = [
    {"name": "pointer", "type": "address"},
    {"name": "owner", "type": "address"},
    {"name": "price", "type": "uint256"},
]

HUB_ABI: List[Dict[str, Any]] = [
    {
        "name": "viewConsumed",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "_id", "type": "bytes32"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "viewAccount",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "_user", "type": "address"}],
        "outputs": [
            {
                "name": "",
                "type": "tuple",
                "components": [
                    {"name": "stake", "type": "uint256"},
                    {"name": "locked", "type": "uint256"},
                ],
            }
        ],
    },
    {
        "name": "viewDeal",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "_id", "type": "bytes32"}],
        "outputs": [
            {
                "name": "",
                "type": "tuple",
                "components": [
                    {"name": "app", "type": "tuple", "components": _RESOURCE_COMPONENTS},
                    {"name": "dataset", "type": "tuple", "components": _RESOURCE_COMPONENTS},
                    {"name": "workerpool", "type": "tuple", "components": _RESOURCE_COMPONENTS},
                    {"name": "trust", "type": "uint256"},
                    {"name": "category", "type": "uint256"},
                    {"name": "tag", "type": "bytes32"},
                    {"name": "requester", "type": "address"},
                    {"name": "beneficiary", "type": "address"},
                    {"name": "callback", "type": "address"},
                    {"name": "params", "type": "string"},
                    {"name": "startTime", "type": "uint256"},
                    {"name": "botFirst", "type": "uint256"},
                    {"name": "botSize", "type": "uint256"},
                    {"name": "workerStake", "type": "uint256"},
                    {"name": "schedulerRewardRatio", "type": "uint256"},
                ],
            }
        ],
    },
    {
        "name": "viewTask",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "_taskid", "type": "bytes32"}],
        "outputs": [
            {
                "name": "",
                "type": "tuple",
                "components": [
                    {"name": "status", "type": "uint8"},
                    {"name": "dealid", "type": "bytes32"},
                    {"name": "idx", "type": "uint256"},
                    {"name": "timeref", "type": "uint256"},
                    {"name": "contributionDeadline", "type": "uint256"},
                    {"name": "revealDeadline", "type": "uint256"},
                    {"name": "finalDeadline", "type": "uint256"},
                    {"name": "consensusValue", "type": "bytes32"},
                    {"name": "revealCounter", "type": "uint256"},
                    {"name": "winnerCounter", "type": "uint256"},
                    {"name": "contributors", "type": "address[]"},
                    {"name": "resultDigest", "type": "bytes32"},
                    {"name": "results", "type": "bytes"},
                    {"name": "resultsTimestamp", "type": "uint256"},
                    {"name": "resultsCallback", "type": "bytes"},
                ],
            }
        ],
    },
    {
        "name": "viewCategory",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "_catid", "type": "uint256"}],
        "outputs": [
            {
                "name": "",
                "type": "tuple",
                "components": [
                    {"name": "name", "type": "string"},
                    {"name": "description", "type": "string"},
                    {"name": "workClockTimeRef", "type": "uint256"},
                ],
            }
        ],
    },
    {
        "name": "countCategory",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]

OWNABLE_ABI: List[Dict[str, Any]] = [
    {
        "name": "owner",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "address"}],
    }
]


class ChainReader(Protocol):
    """Read-only view of the hub consumed by the match preparer."""

    async def domain(self) -> EIP712Domain:  # pragma: no cover - protocol
        ...

    async def view_consumed(self, order_hash: str) -> int:  # pragma: no cover - protocol
        ...

    async def view_account(self, address: AddressLike) -> Account:  # pragma: no cover - protocol
        ...

    async def owner_of(self, resource: AddressLike) -> str:  # pragma: no cover - protocol
        ...

    async def view_deal(self, deal_id: str) -> Deal:  # pragma: no cover - protocol
        ...

    async def view_task(self, task_id: str) -> Task:  # pragma: no cover - protocol
        ...

    async def view_category(self, index: int) -> Category:  # pragma: no cover - protocol
        ...

    async def count_category(self) -> int:  # pragma: no cover - protocol
        ...


@dataclass(slots=True)
class Web3Config:
    rpc_url: str
    chain_id: int
    request_kwargs: Optional[Dict[str, Any]] = None


def get_web3(config: Web3Config) -> Web3:
    logger.debug("Initialising Web3 client", extra={"event": "web3_init", "data": {"rpc_url": config.rpc_url}})
    web3 = Web3(HTTPProvider(config.rpc_url, request_kwargs=config.request_kwargs))
    if not web3.is_connected():
        raise ChainReadError(f"Failed to connect to RPC endpoint: {config.rpc_url}")
    chain_id = web3.eth.chain_id
    if chain_id != config.chain_id:
        raise ChainReadError(f"Chain ID mismatch: expected {config.chain_id} got {chain_id}")
    return web3


ContractFactory = Callable[[str, List[Dict[str, Any]]], Any]


class Web3ChainReader:
    """:class:`ChainReader` backed by web3 contract calls.

    ``contract_factory(address, abi)`` returns a web3 contract object; blocking
    ``.call()`` invocations run in a worker thread.
    """

    def __init__(
        self,
        contract_factory: ContractFactory,
        hub_address: AddressLike,
        *,
        chain_id: int,
        domain_name: str = DEFAULT_DOMAIN_NAME,
        domain_version: str = DEFAULT_DOMAIN_VERSION,
    ) -> None:
        self._contract_factory = contract_factory
        self.hub_address = to_checksum_address(hub_address)
        self.chain_id = chain_id
        self._domain = EIP712Domain(domain_name, domain_version, chain_id, self.hub_address)
        self._hub = contract_factory(self.hub_address, HUB_ABI)

    @classmethod
    def from_web3(cls, web3: Web3, hub_address: AddressLike, **kwargs: Any) -> "Web3ChainReader":
        def factory(address: str, abi: List[Dict[str, Any]]) -> Any:
            return web3.eth.contract(address=to_checksum_address(address), abi=abi)

        kwargs.setdefault("chain_id", web3.eth.chain_id)
        return cls(factory, hub_address, **kwargs)

    @classmethod
    def from_config(cls, config: Web3Config, hub_address: AddressLike, **kwargs: Any) -> "Web3ChainReader":
        """Connect with :func:`get_web3` and read the hub at ``hub_address``."""

        return cls.from_web3(get_web3(config), hub_address, **kwargs)

    async def _call(self, label: str, fn: Callable[[], T]) -> T:
        try:
            return await asyncio.to_thread(fn)
        except PocoError:
            raise
        except Exception as exc:
            logger.warning(
                "Chain read failed",
                extra={"event": "chain_read_failed", "data": {"call": label, "error": str(exc)}},
            )
            raise ChainReadError(f"{label} failed: {exc}") from exc

    async def domain(self) -> EIP712Domain:
        return self._domain

    async def view_consumed(self, order_hash: str) -> int:
        key = to_bytes32_hex(order_hash)
        value = await self._call("viewConsumed", lambda: self._hub.functions.viewConsumed(key).call())
        return int(value)

    async def view_account(self, address: AddressLike) -> Account:
        user = to_checksum_address(address)
        raw = await self._call("viewAccount", lambda: self._hub.functions.viewAccount(user).call())
        return Account.from_rpc(user, raw)

    async def owner_of(self, resource: AddressLike) -> str:
        address = to_checksum_address(resource)
        contract = self._contract_factory(address, OWNABLE_ABI)
        owner = await self._call("owner", lambda: contract.functions.owner().call())
        return to_checksum_address(owner)

    async def view_deal(self, deal_id: str) -> Deal:
        key = to_bytes32_hex(deal_id)
        raw = await self._call("viewDeal", lambda: self._hub.functions.viewDeal(key).call())
        deal = Deal.from_rpc(key, raw)
        logger.info("Fetched deal", extra={"event": "deal_fetched", "data": {"deal_id": key}})
        return deal

    async def view_task(self, task_id: str) -> Task:
        key = to_bytes32_hex(task_id)
        raw = await self._call("viewTask", lambda: self._hub.functions.viewTask(key).call())
        return Task.from_rpc(key, raw)

    async def view_task_at(self, deal: Union[Deal, str], index: int) -> Task:
        """Read the ``index``-th task of ``deal`` (a snapshot or a deal id)."""

        if not isinstance(deal, Deal):
            deal = await self.view_deal(deal)
        return await self.view_task(task_id_at(deal, index))

    async def view_category(self, index: int) -> Category:
        raw = await self._call("viewCategory", lambda: self._hub.functions.viewCategory(index).call())
        return Category.from_rpc(index, self.hub_address, raw)

    async def count_category(self) -> int:
        value = await self._call("countCategory", lambda: self._hub.functions.countCategory().call())
        return int(value)


__all__ = [
    "HUB_ABI",
    "OWNABLE_ABI",
    "ChainReader",
    "Web3Config",
    "get_web3",
    "Web3ChainReader",
]
