"""
Outcomes of the chat room operations.

Business failures (a taken name, an unknown participant, a bad limit) are
returned as a Result carrying a Failure. Storage failures are raised as
StorageError and end up as a 500.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class Failure(Enum):
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    UNAUTHENTICATED = "unauthenticated"
    INVALID_ARGUMENT = "invalid_argument"

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]


_STATUS_CODES = {
    Failure.CONFLICT: 409,
    Failure.NOT_FOUND: 404,
    Failure.UNAUTHENTICATED: 422,
    Failure.INVALID_ARGUMENT: 422,
}


@dataclass(frozen=True)
class Result:
    value: Any = None
    failure: Optional[Failure] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, value: Any = None) -> "Result":
        return cls(value=value)

    @classmethod
    def fail(cls, failure: Failure, detail: str) -> "Result":
        return cls(failure=failure, detail=detail)


class StorageError(Exception):
    """The document store could not carry out an operation."""


class UniqueViolation(StorageError):
    """An insert collided with a unique key."""
