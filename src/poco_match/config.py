"""Settings for the chain connection and the signing domain."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from .chain import Web3ChainReader, Web3Config
from .constants import DEFAULT_DOMAIN_NAME, DEFAULT_DOMAIN_VERSION, WORKERPOOL_STAKE_RATIO
from .domain import EIP712Domain
from .ethtypes import to_checksum_address

ENV_FIELDS = {
    "rpc_url": "POCO_RPC_URL",
    "chain_id": "POCO_CHAIN_ID",
    "hub_address": "POCO_HUB_ADDRESS",
    "domain_name": "POCO_DOMAIN_NAME",
    "domain_version": "POCO_DOMAIN_VERSION",
    "workerpool_stake_ratio": "POCO_WORKERPOOL_STAKE_RATIO",
    "log_level": "POCO_LOG_LEVEL",
}


class PocoSettings(BaseModel):
    rpc_url: Optional[str] = Field(None, description="Ethereum JSON-RPC endpoint")
    chain_id: int = Field(134, ge=1)
    hub_address: Optional[str] = Field(None, description="Address of the PoCo hub (verifying contract)")
    domain_name: str = DEFAULT_DOMAIN_NAME
    domain_version: str = DEFAULT_DOMAIN_VERSION
    workerpool_stake_ratio: int = Field(WORKERPOOL_STAKE_RATIO, ge=0, le=100)
    request_timeout: float = Field(30.0, gt=0)
    log_file: Optional[str] = None
    log_level: str = "INFO"

    @field_validator("hub_address")
    @classmethod
    def ensure_hub_address(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return to_checksum_address(value)

    @field_validator("log_level")
    @classmethod
    def ensure_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level {value!r}")
        return level

    @classmethod
    def load(cls, path: Path | str, *, env: bool = False) -> "PocoSettings":
        data = yaml.safe_load(Path(path).read_text()) or {}
        if not isinstance(data, Mapping):
            raise ValueError(f"{path}: expected a mapping at the top level")
        if env:
            data = _apply_env(data, os.environ)
        return cls.model_validate(data)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "PocoSettings":
        return cls.model_validate(_apply_env({}, os.environ if environ is None else environ))

    def domain(self) -> EIP712Domain:
        if self.hub_address is None:
            raise ValueError("hub_address is required to build the signing domain")
        return EIP712Domain(
            name=self.domain_name,
            version=self.domain_version,
            chain_id=self.chain_id,
            verifying_contract=self.hub_address,
        )

    def web3_config(self) -> Web3Config:
        if not self.rpc_url:
            raise ValueError("rpc_url is required to connect to the chain")
        return Web3Config(
            rpc_url=self.rpc_url,
            chain_id=self.chain_id,
            request_kwargs={"timeout": self.request_timeout},
        )

    def chain_reader(self) -> Web3ChainReader:
        if self.hub_address is None:
            raise ValueError("hub_address is required to read the hub")
        return Web3ChainReader.from_config(
            self.web3_config(),
            self.hub_address,
            chain_id=self.chain_id,
            domain_name=self.domain_name,
            domain_version=self.domain_version,
        )


def _apply_env(data: Mapping[str, Any], environ: Mapping[str, str]) -> Dict[str, Any]:
    merged = dict(data)
    for field_name, variable in ENV_FIELDS.items():
        value = environ.get(variable)
        if value:
            merged[field_name] = value
    return merged


__all__ = ["PocoSettings", "ENV_FIELDS"]
