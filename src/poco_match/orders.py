"""The four PoCo order kinds and their EIP-712 canonical form.

Each order is a frozen dataclass whose ``ABI_TYPES`` table mirrors the
on-chain struct field for field. The table order is part of the type hash
and must never change. ``hash``, ``sign`` and ``verify`` always operate on
the salted table, i.e. the struct fields followed by ``salt: bytes32``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Tuple, Type, Union

from .constants import NULL_ADDRESS, NULL_SIGNATURE, ORDER_VOLUME_INFINITE
from .domain import EIP712Domain
from .errors import InvalidOrderField, InvalidSalt
from .ethtypes import is_bytes32, is_signature65, parse_price, to_bytes32_hex, to_checksum_address, to_uint256
from .identifiers import compute_deal_id
from .request_params import RequestParams
from .signers import Signer
from .tags import TAG_NONE, coerce_tag, to_hex, to_symbols
from .typed_data import TypeTable, recover_signer, typed_data_hash

logger = logging.getLogger(__name__)

SALT_FIELD = {"name": "salt", "type": "bytes32"}


class _OrderMixin:
    """Hashing, signing and verification shared by every order kind."""

    PRIMARY_TYPE: ClassVar[str]
    ABI_TYPES: ClassVar[Tuple[Tuple[str, str], ...]]
    PRICE_FIELDS: ClassVar[Tuple[str, ...]] = ()

    # Construction -----------------------------------------------------------
    def __post_init__(self) -> None:
        for name, abi_type in self.ABI_TYPES:
            value = getattr(self, name)
            if name == "tag":
                normalized: Any = coerce_tag(value)
            elif name == "params":
                normalized = RequestParams.parse(value)
            elif abi_type == "address":
                try:
                    normalized = to_checksum_address(value)
                except ValueError as exc:
                    raise InvalidOrderField(name, str(exc)) from exc
            elif name in self.PRICE_FIELDS:
                normalized = parse_price(value, field=name)
            elif abi_type == "uint256":
                normalized = to_uint256(value, name)
            else:  # pragma: no cover - tables only use the types above
                raise InvalidOrderField(name, f"unsupported ABI type {abi_type}")
            object.__setattr__(self, name, normalized)

    @classmethod
    def from_fields(cls, data: Mapping[str, Any]):
        """Construct an order from a field mapping, applying field defaults."""

        known = {item.name for item in fields(cls)}  # type: ignore[arg-type]
        unknown = sorted(set(data) - known)
        if unknown:
            raise InvalidOrderField(unknown[0], f"unknown {cls.PRIMARY_TYPE} field")
        values = {key: value for key, value in data.items() if value is not None}
        return cls(**values)

    # Canonical form ---------------------------------------------------------
    @classmethod
    def abi_ordered_types(cls) -> TypeTable:
        return {cls.PRIMARY_TYPE: [{"name": name, "type": abi_type} for name, abi_type in cls.ABI_TYPES]}

    @classmethod
    def salted_abi_ordered_types(cls) -> TypeTable:
        table = cls.abi_ordered_types()
        table[cls.PRIMARY_TYPE].append(dict(SALT_FIELD))
        return table

    def canonical_fields(self) -> Dict[str, Any]:
        """Hash-ready field values: tag as bytes32 hex, params as canonical JSON."""

        values: Dict[str, Any] = {}
        for name, _ in self.ABI_TYPES:
            value = getattr(self, name)
            if name == "tag":
                value = to_hex(value)
            elif name == "params":
                value = value.canonical_serialize()
            values[name] = value
        return values

    def abi_ordered_values(self) -> List[Any]:
        canonical = self.canonical_fields()
        return [canonical[name] for name, _ in self.ABI_TYPES]

    def _salted_payload(self, domain: EIP712Domain, salt: Any) -> Tuple[Dict[str, Any], TypeTable, Dict[str, Any]]:
        if not is_bytes32(salt):
            raise InvalidSalt(f"invalid salt bytes32: {salt!r}")
        message = self.canonical_fields()
        message["salt"] = to_bytes32_hex(salt)
        return domain.as_typed_data(), self.salted_abi_ordered_types(), message

    # Hash / sign / verify ---------------------------------------------------
    def hash(self, domain: EIP712Domain, salt: Any) -> str:
        """EIP-712 hash of the salted order, as computed by the hub contract."""

        domain_data, types, message = self._salted_payload(domain, salt)
        digest = typed_data_hash(domain_data, types, message)
        logger.debug(
            "Computed order hash",
            extra={"event": "order_hash", "data": {"type": self.PRIMARY_TYPE, "hash": digest}},
        )
        return digest

    async def sign(self, domain: EIP712Domain, salt: Any, signer: Optional[Signer] = None) -> str:
        """Return the 65-byte signature as hex, or the null placeholder without a signer."""

        domain_data, types, message = self._salted_payload(domain, salt)
        if signer is None:
            return NULL_SIGNATURE
        raw = await signer.sign_typed_data(domain_data, types, message)
        signature = "0x" + bytes(raw).hex()
        if not is_signature65(signature):
            raise ValueError(f"Signer returned a {len(bytes(raw))}-byte signature, expected 65")
        return signature

    def verify(
        self,
        domain: EIP712Domain,
        salt: Any,
        *,
        signature: Optional[Union[str, bytes]] = None,
        signer_address: Any = None,
        expected_hash: Optional[str] = None,
    ) -> bool:
        """Check every supplied expectation. Never raises.

        Returns False when no expectation is supplied, when only one of
        ``signature`` / ``signer_address`` is supplied, or when a check fails.
        """

        has_signature = signature is not None
        has_signer = signer_address is not None
        has_hash = expected_hash is not None
        if not (has_signature or has_signer or has_hash):
            return False
        if not is_bytes32(salt):
            return False

        if has_hash:
            if not is_bytes32(expected_hash):
                return False
            if self.hash(domain, salt) != to_bytes32_hex(expected_hash):
                return False

        if has_signature or has_signer:
            if not (has_signature and has_signer):
                return False
            if not is_signature65(signature):
                return False
            try:
                expected = to_checksum_address(signer_address)
                domain_data, types, message = self._salted_payload(domain, salt)
                recovered = recover_signer(domain_data, types, message, signature)
            except Exception as exc:  # unrecoverable signatures are a negative answer
                logger.debug(
                    "Signature recovery failed",
                    extra={"event": "order_verify_failed", "data": {"type": self.PRIMARY_TYPE, "error": str(exc)}},
                )
                return False
            if recovered != expected:
                return False

        return True

    async def compute_match_arguments(
        self, domain: EIP712Domain, salt: Any, signer: Optional[Signer] = None
    ) -> List[Any]:
        """Struct values in ABI order followed by ``salt`` and ``sign``."""

        signature = await self.sign(domain, salt, signer)
        return [*self.abi_ordered_values(), to_bytes32_hex(salt), signature]

    # Presentation -----------------------------------------------------------
    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for name, _ in self.ABI_TYPES:
            value = getattr(self, name)
            if name == "tag":
                value = to_symbols(value)
            elif name == "params":
                value = value.to_dict()
            elif isinstance(value, int):
                value = str(value)
            data[name] = value
        return data


@dataclass(frozen=True, kw_only=True)
class AppOrder(_OrderMixin):
    PRIMARY_TYPE: ClassVar[str] = "AppOrder"
    ABI_TYPES: ClassVar[Tuple[Tuple[str, str], ...]] = (
        ("app", "address"),
        ("appprice", "uint256"),
        ("volume", "uint256"),
        ("tag", "bytes32"),
        ("datasetrestrict", "address"),
        ("workerpoolrestrict", "address"),
        ("requesterrestrict", "address"),
    )
    PRICE_FIELDS: ClassVar[Tuple[str, ...]] = ("appprice",)

    app: Any = NULL_ADDRESS
    appprice: Any = 0
    volume: Any = ORDER_VOLUME_INFINITE
    tag: Any = TAG_NONE
    datasetrestrict: Any = NULL_ADDRESS
    workerpoolrestrict: Any = NULL_ADDRESS
    requesterrestrict: Any = NULL_ADDRESS

    @property
    def price(self) -> int:
        return self.appprice


@dataclass(frozen=True, kw_only=True)
class DatasetOrder(_OrderMixin):
    PRIMARY_TYPE: ClassVar[str] = "DatasetOrder"
    ABI_TYPES: ClassVar[Tuple[Tuple[str, str], ...]] = (
        ("dataset", "address"),
        ("datasetprice", "uint256"),
        ("volume", "uint256"),
        ("tag", "bytes32"),
        ("apprestrict", "address"),
        ("workerpoolrestrict", "address"),
        ("requesterrestrict", "address"),
    )
    PRICE_FIELDS: ClassVar[Tuple[str, ...]] = ("datasetprice",)

    dataset: Any = NULL_ADDRESS
    datasetprice: Any = 0
    volume: Any = ORDER_VOLUME_INFINITE
    tag: Any = TAG_NONE
    apprestrict: Any = NULL_ADDRESS
    workerpoolrestrict: Any = NULL_ADDRESS
    requesterrestrict: Any = NULL_ADDRESS

    @property
    def price(self) -> int:
        return self.datasetprice


@dataclass(frozen=True, kw_only=True)
class WorkerpoolOrder(_OrderMixin):
    PRIMARY_TYPE: ClassVar[str] = "WorkerpoolOrder"
    ABI_TYPES: ClassVar[Tuple[Tuple[str, str], ...]] = (
        ("workerpool", "address"),
        ("workerpoolprice", "uint256"),
        ("volume", "uint256"),
        ("tag", "bytes32"),
        ("category", "uint256"),
        ("trust", "uint256"),
        ("apprestrict", "address"),
        ("datasetrestrict", "address"),
        ("requesterrestrict", "address"),
    )
    PRICE_FIELDS: ClassVar[Tuple[str, ...]] = ("workerpoolprice",)

    workerpool: Any = NULL_ADDRESS
    workerpoolprice: Any = 0
    volume: Any = 1
    tag: Any = TAG_NONE
    category: Any = 0
    trust: Any = 0
    apprestrict: Any = NULL_ADDRESS
    datasetrestrict: Any = NULL_ADDRESS
    requesterrestrict: Any = NULL_ADDRESS

    @property
    def price(self) -> int:
        return self.workerpoolprice


@dataclass(frozen=True, kw_only=True)
class RequestOrder(_OrderMixin):
    PRIMARY_TYPE: ClassVar[str] = "RequestOrder"
    ABI_TYPES: ClassVar[Tuple[Tuple[str, str], ...]] = (
        ("app", "address"),
        ("appmaxprice", "uint256"),
        ("dataset", "address"),
        ("datasetmaxprice", "uint256"),
        ("workerpool", "address"),
        ("workerpoolmaxprice", "uint256"),
        ("requester", "address"),
        ("volume", "uint256"),
        ("tag", "bytes32"),
        ("category", "uint256"),
        ("trust", "uint256"),
        ("beneficiary", "address"),
        ("callback", "address"),
        ("params", "string"),
    )
    PRICE_FIELDS: ClassVar[Tuple[str, ...]] = ("appmaxprice", "datasetmaxprice", "workerpoolmaxprice")

    params: Any
    app: Any = NULL_ADDRESS
    appmaxprice: Any = 0
    dataset: Any = NULL_ADDRESS
    datasetmaxprice: Any = 0
    workerpool: Any = NULL_ADDRESS
    workerpoolmaxprice: Any = 0
    requester: Any = NULL_ADDRESS
    volume: Any = 1
    tag: Any = TAG_NONE
    category: Any = 0
    trust: Any = 0
    beneficiary: Any = NULL_ADDRESS
    callback: Any = NULL_ADDRESS

    def deal_id(self, domain: EIP712Domain, salt: Any, index: int) -> str:
        """Id of the deal created when this order is matched at consumed volume ``index``."""

        return compute_deal_id(self.hash(domain, salt), index)


Order = Union[AppOrder, DatasetOrder, WorkerpoolOrder, RequestOrder]

ORDER_KINDS: Dict[str, Type[_OrderMixin]] = {
    "app": AppOrder,
    "dataset": DatasetOrder,
    "workerpool": WorkerpoolOrder,
    "request": RequestOrder,
}


def new_app_order(**values: Any) -> AppOrder:
    return AppOrder.from_fields(values)


def new_dataset_order(**values: Any) -> DatasetOrder:
    return DatasetOrder.from_fields(values)


def new_workerpool_order(**values: Any) -> WorkerpoolOrder:
    return WorkerpoolOrder.from_fields(values)


def new_request_order(**values: Any) -> RequestOrder:
    return RequestOrder.from_fields(values)


def empty_dataset_order() -> DatasetOrder:
    """All-null dataset order submitted when a deal has no dataset."""

    return DatasetOrder(volume=0)


def order_from_mapping(kind: str, data: Mapping[str, Any]) -> Order:
    """Build an order of ``kind`` (``app``, ``AppOrder``, ...) from a document.

    ``salt`` and ``sign`` members of signed order documents are ignored.
    """

    key = kind.lower().removesuffix("order")
    order_cls = ORDER_KINDS.get(key)
    if order_cls is None:
        raise ValueError(f"Unknown order kind {kind!r}")
    fields_only = {key: value for key, value in data.items() if key not in ("salt", "sign")}
    return order_cls.from_fields(fields_only)  # type: ignore[return-value]


__all__ = [
    "AppOrder",
    "DatasetOrder",
    "WorkerpoolOrder",
    "RequestOrder",
    "Order",
    "ORDER_KINDS",
    "SALT_FIELD",
    "new_app_order",
    "new_dataset_order",
    "new_workerpool_order",
    "new_request_order",
    "empty_dataset_order",
    "order_from_mapping",
]
