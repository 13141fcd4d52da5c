"""Credential persistence for the remote file client.

The client never assumes a storage medium: it reads credentials through a
:class:`CredentialStore` on every call, so a rotated token takes effect on the
next operation.
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Protocol

from loguru import logger
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from cloudsync.exceptions import ConfigurationError


class CloudSyncCredentials(BaseModel):
    base_url: str = ""
    auth_token: str = ""
    sync_folder_path: str | None = None

    @property
    def is_complete(self) -> bool:
        return bool(self.base_url and self.auth_token)


class CredentialStore(Protocol):
    """``load`` raises :class:`~cloudsync.exceptions.ConfigurationError` when stored credentials are unreadable."""

    def load(self) -> CloudSyncCredentials | None:
        ...

    def store(self, credentials: CloudSyncCredentials) -> None:
        ...


class MemoryCredentialStore:
    def __init__(self, credentials: CloudSyncCredentials | None = None) -> None:
        self._credentials = credentials

    def load(self) -> CloudSyncCredentials | None:
        return self._credentials.model_copy() if self._credentials else None

    def store(self, credentials: CloudSyncCredentials) -> None:
        self._credentials = credentials.model_copy()


class FileCredentialStore:
    """JSON file holding one credentials document per provider id.

    Writes replace the file atomically, so concurrent readers see either the
    old or the new document. An unreadable file raises
    :class:`~cloudsync.exceptions.ConfigurationError` from :meth:`load`.
    """

    def __init__(self, path: Path, provider_id: str = "CloudSync") -> None:
        self.path = path
        self.provider_id = provider_id
        self._lock = threading.Lock()

    def _read_all(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except (OSError, ValueError) as exc:
            raise ConfigurationError(f"Credentials file is unreadable: {exc}", {"path": str(self.path)}) from exc
        if not isinstance(payload, dict):
            raise ConfigurationError("Credentials file must hold a JSON object", {"path": str(self.path)})
        return payload

    def load(self) -> CloudSyncCredentials | None:
        data = self._read_all().get(self.provider_id)
        if data is None:
            return None
        try:
            return CloudSyncCredentials.model_validate(data)
        except PydanticValidationError as exc:
            raise ConfigurationError(
                f"Invalid credentials for {self.provider_id}", {"path": str(self.path)}
            ) from exc

    def store(self, credentials: CloudSyncCredentials) -> None:
        with self._lock:
            try:
                payload = self._read_all()
            except ConfigurationError as exc:
                logger.warning("Replacing unreadable credentials file {path}: {error}", path=self.path, error=exc.message)
                payload = {}
            payload[self.provider_id] = credentials.model_dump()
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}-")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fp:
                    json.dump(payload, fp, indent=2)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise


__all__ = [
    "CloudSyncCredentials",
    "CredentialStore",
    "FileCredentialStore",
    "MemoryCredentialStore",
]
