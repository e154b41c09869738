"""EIP-712 domain shared by every order hash and signature."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping

from .ethtypes import to_checksum_address, to_uint256

DOMAIN_ABI_TYPES: List[Dict[str, str]] = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]


@dataclass(frozen=True)
class EIP712Domain:
    """Immutable (name, version, chain id, verifying contract) record.

    Values are normalised at construction: the chain id becomes an ``int``
    and the verifying contract a checksummed address.
    """

    name: str
    version: str
    chain_id: int
    verifying_contract: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", str(self.name))
        object.__setattr__(self, "version", str(self.version))
        object.__setattr__(self, "chain_id", to_uint256(self.chain_id, "chainId"))
        object.__setattr__(self, "verifying_contract", to_checksum_address(self.verifying_contract))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "EIP712Domain":
        def _resolve(*keys: str) -> Any:
            for key in keys:
                if key in data:
                    return data[key]
            raise KeyError(keys[0])

        return cls(
            name=_resolve("name"),
            version=_resolve("version"),
            chain_id=_resolve("chain_id", "chainId"),
            verifying_contract=_resolve("verifying_contract", "verifyingContract"),
        )

    def as_typed_data(self) -> Dict[str, Any]:
        """Projection used as the ``domain`` member of typed-data payloads."""

        return {
            "name": self.name,
            "version": self.version,
            "chainId": self.chain_id,
            "verifyingContract": self.verifying_contract,
        }


__all__ = ["EIP712Domain", "DOMAIN_ABI_TYPES"]
