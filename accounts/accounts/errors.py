"""Outcome values returned by account operations.

Operations never raise to the HTTP layer; they return an :class:`Outcome`
holding either a value or an :class:`ErrorKind` with a message, and the
routes translate the kind to a status code.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(Enum):
    VALIDATION = "validation"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    FORBIDDEN = "forbidden"
    INVALID_OR_EXPIRED = "invalid_or_expired"
    UPSTREAM_FAILURE = "upstream_failure"
    INTERNAL = "internal"

    @property
    def status_code(self) -> int:
        return _status_codes[self]


_status_codes = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 400,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.INVALID_OR_EXPIRED: 400,
    ErrorKind.UPSTREAM_FAILURE: 500,
    ErrorKind.INTERNAL: 500,
}


@dataclass(frozen=True)
class Outcome(Generic[T]):
    value: Optional[T] = None
    error: Optional[ErrorKind] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Any = None, message: str = "") -> "Outcome":
        return cls(value=value, message=message)

    @classmethod
    def failure(cls, error: ErrorKind, message: str) -> "Outcome":
        return cls(error=error, message=message)


class UpstreamError(Exception):
    """Raised by external collaborators (storage, mail)."""


class StorageError(UpstreamError):
    pass


class MailError(UpstreamError):
    pass
