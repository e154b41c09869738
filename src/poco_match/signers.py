"""Signer interfaces used to produce order signatures."""

from __future__ import annotations

import asyncio
from typing import Any, Mapping, Protocol, Sequence, runtime_checkable

from eth_account import Account
from eth_account.signers.local import LocalAccount

from .typed_data import signable_message


@runtime_checkable
class Signer(Protocol):
    """Protocol for objects capable of signing EIP-712 typed data."""

    @property
    def address(self) -> str:  # pragma: no cover - protocol
        """Checksummed address of the signing account."""

    async def sign_typed_data(
        self,
        domain: Mapping[str, Any],
        types: Mapping[str, Sequence[Mapping[str, str]]],
        message: Mapping[str, Any],
    ) -> bytes:  # pragma: no cover - protocol
        """Sign the typed-data triple and return the raw 65-byte signature."""


class LocalAccountSigner:
    """Signer backed by a private key held in process memory."""

    def __init__(self, account: LocalAccount) -> None:
        self._account = account

    @classmethod
    def from_key(cls, private_key: str | bytes) -> "LocalAccountSigner":
        return cls(Account.from_key(private_key))

    @classmethod
    def create(cls) -> "LocalAccountSigner":
        """Generate a throwaway account (development and tests)."""

        return cls(Account.create())

    @property
    def address(self) -> str:
        return self._account.address

    async def sign_typed_data(
        self,
        domain: Mapping[str, Any],
        types: Mapping[str, Sequence[Mapping[str, str]]],
        message: Mapping[str, Any],
    ) -> bytes:
        signable = signable_message(domain, types, message)
        signed = self._account.sign_message(signable)
        # mimic async interface
        await asyncio.sleep(0)
        return bytes(signed.signature)

    def __repr__(self) -> str:
        return f"LocalAccountSigner(address={self.address})"


__all__ = ["Signer", "LocalAccountSigner"]
