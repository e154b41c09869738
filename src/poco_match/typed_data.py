"""EIP-712 typed-data encoding helpers built on :mod:`eth_account`."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Sequence

from eth_account import Account
from eth_account.messages import SignableMessage, encode_typed_data
from eth_utils import keccak, to_bytes

from .domain import DOMAIN_ABI_TYPES

TypeTable = Dict[str, List[Dict[str, str]]]


def primary_type_of(types: Mapping[str, Sequence[Mapping[str, str]]]) -> str:
    """Return the single non-domain type of a type table."""

    names = [name for name in types if name != "EIP712Domain"]
    if len(names) != 1:
        raise ValueError(f"Expected exactly one primary type, got {names}")
    return names[0]


def _encodable_message(fields: Sequence[Mapping[str, str]], message: Mapping[str, Any]) -> Dict[str, Any]:
    encodable: Dict[str, Any] = {}
    for item in fields:
        value = message[item["name"]]
        if item["type"].startswith("bytes") and isinstance(value, str):
            value = to_bytes(hexstr=value)
        encodable[item["name"]] = value
    return encodable


def signable_message(
    domain: Mapping[str, Any],
    types: Mapping[str, Sequence[Mapping[str, str]]],
    message: Mapping[str, Any],
) -> SignableMessage:
    """Build the EIP-191 version 0x01 signable for ``(domain, types, message)``.

    ``types`` holds the primary type only; the ``EIP712Domain`` table is
    added here.
    """

    primary = primary_type_of(types)
    full_types: Dict[str, Any] = {"EIP712Domain": list(DOMAIN_ABI_TYPES)}
    full_types[primary] = [dict(item) for item in types[primary]]
    return encode_typed_data(
        full_message={
            "types": full_types,
            "primaryType": primary,
            "domain": dict(domain),
            "message": _encodable_message(types[primary], message),
        }
    )


def typed_data_hash(
    domain: Mapping[str, Any],
    types: Mapping[str, Sequence[Mapping[str, str]]],
    message: Mapping[str, Any],
) -> str:
    """``keccak256(0x19 0x01 ‖ domainSeparator ‖ hashStruct(message))`` as hex."""

    signable = signable_message(domain, types, message)
    digest = keccak(b"\x19" + signable.version + signable.header + signable.body)
    return "0x" + digest.hex()


def recover_signer(
    domain: Mapping[str, Any],
    types: Mapping[str, Sequence[Mapping[str, str]]],
    message: Mapping[str, Any],
    signature: bytes | str,
) -> str:
    """Recover the checksummed address that produced ``signature``."""

    signable = signable_message(domain, types, message)
    return Account.recover_message(signable, signature=signature)


__all__ = ["TypeTable", "primary_type_of", "signable_message", "typed_data_hash", "recover_signer"]
