"""Domain-level errors and the auth result type.

Repositories raise the exceptions below to express storage-level rule
violations (duplicates, missing rows, lost races). The credential service
catches them and returns an ``AuthResult`` carrying one of the closed
``AuthErrorKind`` values. Route handlers map those kinds to HTTP status codes.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class DomainError(Exception):
    """Base class for all domain errors."""


class NotFoundError(DomainError):
    """Requested entity does not exist."""


class DuplicateError(DomainError):
    """Entity with the same unique key already exists."""

    def __init__(self, field: str, message: str | None = None):
        self.field = field
        super().__init__(message or f"Duplicate value for unique field '{field}'")


class StaleWriteError(DomainError):
    """Conditional update precondition no longer holds."""


class AuthErrorKind(str, Enum):
    """Closed set of failure kinds returned by credential operations."""
    VALIDATION_ERROR = 'validation_error'
    NOT_FOUND = 'not_found'
    CONFLICT = 'conflict'
    INVALID_CREDENTIALS = 'invalid_credentials'
    INVALID_CODE = 'invalid_code'
    INVALID_TOKEN = 'invalid_token'
    EXPIRED = 'expired'
    NOT_VERIFIED = 'not_verified'
    INTERNAL = 'internal'


@dataclass(frozen=True)
class AuthFailure:
    """A classified, caller-safe failure."""
    kind: AuthErrorKind
    message: str
    hint: str | None = None


@dataclass(frozen=True)
class AuthResult(Generic[T]):
    """Outcome of a credential operation: either a value or a failure."""
    value: T | None = None
    error: AuthFailure | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T | None = None) -> 'AuthResult[T]':
        return cls(value=value)

    @classmethod
    def failure(
        cls, kind: AuthErrorKind, message: str, hint: str | None = None,
    ) -> 'AuthResult[T]':
        return cls(error=AuthFailure(kind=kind, message=message, hint=hint))
