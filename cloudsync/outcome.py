"""Typed results returned by the remote file client."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

from cloudsync.exceptions import (
    CloudSyncError,
    InvalidDataError,
    MissingCredentialsError,
    NoRevisionError,
    RemoteFileNotFoundError,
    RevisionMismatchError,
    TransportError,
)

T = TypeVar("T")


class FailureKind(str, Enum):
    CONFIGURATION = "configuration"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    MISSING_REVISION = "missing_revision"
    MALFORMED_PAYLOAD = "malformed_payload"
    TRANSPORT = "transport"


_EXCEPTION_BY_KIND: dict[FailureKind, type[CloudSyncError]] = {
    FailureKind.CONFIGURATION: MissingCredentialsError,
    FailureKind.NOT_FOUND: RemoteFileNotFoundError,
    FailureKind.CONFLICT: RevisionMismatchError,
    FailureKind.MISSING_REVISION: NoRevisionError,
    FailureKind.MALFORMED_PAYLOAD: InvalidDataError,
}


@dataclass(frozen=True)
class Failure:
    kind: FailureKind
    message: str
    status_code: int | None = None

    def to_exception(self) -> CloudSyncError:
        details = {"kind": self.kind.value}
        if self.kind is FailureKind.TRANSPORT:
            return TransportError(self.message, details, status_code=self.status_code)
        return _EXCEPTION_BY_KIND[self.kind](self.message, details)


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Either a value or a :class:`Failure`, never both.

    Callers branch on :attr:`failure` (``outcome.failure.kind``) to handle
    conflicts and missing files separately from generic errors, or call
    :meth:`unwrap` to get the value and let the matching exception propagate.
    """

    value: T | None = None
    failure: Failure | None = None

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failed(cls, kind: FailureKind, message: str, status_code: int | None = None) -> "Outcome[T]":
        return cls(failure=Failure(kind, message, status_code))

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def kind(self) -> FailureKind | None:
        return self.failure.kind if self.failure else None

    def unwrap(self) -> T:
        if self.failure is not None:
            raise self.failure.to_exception()
        return self.value  # type: ignore[return-value]


__all__ = ["Failure", "FailureKind", "Outcome"]
