"""
Error taxonomy for service operations.

Service methods never raise for expected business outcomes; they return a
``Result`` holding either a value or a ``ServiceError``.  The HTTP layer turns
the error kind into a status code via ``ErrorKind.status_code``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    INVALID_ARGUMENT = "invalid_argument"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"
    SERVER_ERROR = "server_error"

    @property
    def status_code(self) -> int:
        return _STATUS_BY_KIND[self]


_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.INVALID_ARGUMENT: 400,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.ALREADY_EXISTS: 409,
    ErrorKind.SERVER_ERROR: 500,
}


@dataclass(frozen=True)
class ServiceError:
    kind: ErrorKind
    message: str

    @property
    def status_code(self) -> int:
        return self.kind.status_code


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of a service operation: exactly one of ``value`` / ``error``."""

    value: T | None = None
    error: ServiceError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> Result[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> Result[T]:
        return cls(error=ServiceError(kind=kind, message=message))

    def unwrap(self) -> T:
        """Return the value, or raise ``ServiceFailure`` for a failed result."""
        if self.error is not None:
            raise ServiceFailure(self.error)
        return self.value  # type: ignore[return-value]


class ServiceFailure(Exception):
    """Carries a ``ServiceError`` up to the transport boundary."""

    def __init__(self, error: ServiceError) -> None:
        super().__init__(error.message)
        self.error = error
