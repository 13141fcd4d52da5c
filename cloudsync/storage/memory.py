from __future__ import annotations

from datetime import datetime, timezone

from cloudsync.exceptions import PreconditionFailedError
from cloudsync.storage import KeyLocks, ObjectMeta, StoredObject, compute_etag, normalize_etag


class MemoryStorage:
    """Process-local store, used for development and tests."""

    def __init__(self) -> None:
        self._objects: dict[str, StoredObject] = {}
        self._locks = KeyLocks()

    def head(self, key: str) -> ObjectMeta | None:
        obj = self._objects.get(key)
        return obj.meta if obj else None

    def get(self, key: str) -> StoredObject | None:
        return self._objects.get(key)

    def put(self, key: str, data: bytes, if_match: str | None = None) -> ObjectMeta:
        with self._locks.hold(key):
            current = self._objects.get(key)
            if if_match is not None and current is not None and current.meta.etag != normalize_etag(if_match):
                raise PreconditionFailedError(
                    "Precondition Failed",
                    {"key": key, "expected": if_match, "current": current.meta.etag},
                )
            meta = ObjectMeta(
                key=key,
                etag=compute_etag(data),
                last_modified=datetime.now(timezone.utc),
                size=len(data),
            )
            self._objects[key] = StoredObject(meta=meta, body=bytes(data))
            return meta

    def delete(self, key: str) -> bool:
        with self._locks.hold(key):
            return self._objects.pop(key, None) is not None


__all__ = ["MemoryStorage"]
