"""Object store abstraction (in-memory, local filesystem or S3-compatible)."""

from __future__ import annotations

import hashlib
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, Protocol


@dataclass(frozen=True)
class ObjectMeta:
    key: str
    etag: str  # unquoted
    last_modified: datetime
    size: int


@dataclass(frozen=True)
class StoredObject:
    meta: ObjectMeta
    body: bytes


class ObjectStore(Protocol):
    def head(self, key: str) -> ObjectMeta | None:
        ...

    def get(self, key: str) -> StoredObject | None:
        ...

    def put(self, key: str, data: bytes, if_match: str | None = None) -> ObjectMeta:
        """Store ``data``; raises PreconditionFailedError if ``if_match`` is stale."""
        ...

    def delete(self, key: str) -> bool:  # False when nothing was stored
        ...


def compute_etag(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()


def normalize_etag(value: str) -> str:
    return value.strip().strip('"')


def format_etag(etag: str) -> str:
    return f'"{normalize_etag(etag)}"'


def parse_if_match(header: str | None) -> str | None:
    """Return the asserted revision, or None when the write is unconditional.

    ``*`` matches any current revision, which for a create-or-overwrite store
    is the same as no precondition at all.
    """
    if header is None:
        return None
    value = normalize_etag(header)
    if not value or value == "*":
        return None
    return value


class KeyLocks:
    """Per-key mutexes so check-then-write runs atomically for one key."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, list] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    self._locks.pop(key, None)


__all__ = [
    "KeyLocks",
    "ObjectMeta",
    "ObjectStore",
    "StoredObject",
    "compute_etag",
    "format_etag",
    "normalize_etag",
    "parse_if_match",
]
