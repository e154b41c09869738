"""Exception hierarchy for order building, matching and chain reads."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .matching import MatchRejection


class PocoError(RuntimeError):
    """Base class for every error raised by :mod:`poco_match`."""


class PocoValidationError(PocoError, ValueError):
    """Raised when an input value is malformed. Never retried."""


class InvalidTag(PocoValidationError):
    """Raised when a value is not one of the four legal tag states."""


class InvalidSalt(PocoValidationError):
    """Raised when a salt is not a well-formed 32-byte value."""


class InvalidRequestParams(PocoValidationError):
    """Raised when requester parameters are missing or malformed."""


class OutOfBoundsTaskIndex(PocoValidationError):
    """Raised when a task index falls outside of the deal batch."""

    def __init__(self, index: int, batch_size: int) -> None:
        super().__init__(f"Out of bounds task index {index} (batch size {batch_size})")
        self.index = index
        self.batch_size = batch_size


class InvalidOrderField(PocoValidationError):
    """Raised when an order field does not satisfy its ABI type."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field


class InvalidAddress(PocoValidationError):
    """Raised when a value cannot be coerced into an address."""


class InvalidTaskStatus(PocoValidationError):
    """Raised when an on-chain task status is outside of the known enum."""


class SignerMismatch(PocoError):
    """Raised when a resource owner differs from the account signing its order."""

    def __init__(self, role: str, expected: str, actual: str) -> None:
        super().__init__(f"{role} owner ({expected}) differs from {role} order signer ({actual})")
        self.role = role
        self.expected = expected
        self.actual = actual


class MatchRejected(PocoError):
    """Raised by :meth:`MatchOutcome.require_success` for a rejected match."""

    def __init__(self, rejection: "MatchRejection") -> None:
        super().__init__(f"{rejection.kind.value}: {rejection.message}")
        self.rejection = rejection

    @property
    def kind(self):
        return self.rejection.kind


class ChainReadError(PocoError):
    """Raised when the chain-read collaborator fails to answer a query."""


__all__ = [
    "PocoError",
    "PocoValidationError",
    "InvalidTag",
    "InvalidSalt",
    "InvalidRequestParams",
    "OutOfBoundsTaskIndex",
    "InvalidOrderField",
    "InvalidAddress",
    "InvalidTaskStatus",
    "SignerMismatch",
    "MatchRejected",
    "ChainReadError",
]
