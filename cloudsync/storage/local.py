from __future__ import annotations

import os
import tempfile
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator
from urllib.parse import quote

from cloudsync.exceptions import InvalidKeyError, PreconditionFailedError, StorageError
from cloudsync.storage import KeyLocks, ObjectMeta, StoredObject, compute_etag, normalize_etag

# Longest file name most filesystems accept, in bytes.
MAX_NAME_BYTES = 255


class LocalStorage:
    """Filesystem-backed store.

    Each key is percent-encoded into one flat file name under ``root``, so
    ``a``, ``a/`` and ``a/b`` are three independent objects.

    Conditional writes are serialized with in-process locks, so a single
    gateway process must own ``root``; use the S3 backend when several
    instances share one store.
    """

    def __init__(self, root: Path) -> None:
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)
        self._resolved_root = self.root.resolve()
        self._locks = KeyLocks()

    def _path(self, key: str) -> Path:
        name = quote(key, safe="")
        if name in {"", ".", ".."} or len(name.encode("ascii")) > MAX_NAME_BYTES:
            raise InvalidKeyError("Invalid key", {"key": key})
        path = self._resolved_root / name
        if path.parent != self._resolved_root:
            raise InvalidKeyError("Invalid key", {"key": key})
        return path

    @contextmanager
    def _io_errors(self, action: str, key: str) -> Iterator[None]:
        # OSError messages carry absolute paths; report the key instead.
        try:
            yield
        except OSError as exc:
            raise StorageError(
                f"Failed to {action} {key}: {exc.strerror or type(exc).__name__}",
                {"key": key},
            ) from exc

    def _meta(self, key: str, path: Path, data: bytes) -> ObjectMeta:
        stat = path.stat()
        return ObjectMeta(
            key=key,
            etag=compute_etag(data),
            last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            size=len(data),
        )

    def head(self, key: str) -> ObjectMeta | None:
        obj = self.get(key)
        return obj.meta if obj else None

    def get(self, key: str) -> StoredObject | None:
        path = self._path(key)
        with self._io_errors("read", key):
            if not path.is_file():
                return None
            data = path.read_bytes()
            return StoredObject(meta=self._meta(key, path, data), body=data)

    def put(self, key: str, data: bytes, if_match: str | None = None) -> ObjectMeta:
        path = self._path(key)
        with self._locks.hold(key), self._io_errors("write", key):
            if if_match is not None and path.is_file():
                current = compute_etag(path.read_bytes())
                if current != normalize_etag(if_match):
                    raise PreconditionFailedError(
                        "Precondition Failed",
                        {"key": key, "expected": if_match, "current": current},
                    )
            fd, tmp_name = tempfile.mkstemp(dir=self._resolved_root, prefix=".upload-")
            try:
                with os.fdopen(fd, "wb") as fp:
                    fp.write(data)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
            return self._meta(key, path, data)

    def delete(self, key: str) -> bool:
        path = self._path(key)
        with self._locks.hold(key), self._io_errors("delete", key):
            if not path.is_file():
                return False
            path.unlink()
            return True


__all__ = ["LocalStorage"]
