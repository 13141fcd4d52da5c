"""Client side of the wire protocol: key composition, requests, status mapping."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Mapping
from urllib.parse import quote

from cloudsync.outcome import FailureKind
from cloudsync.settings import DEFAULT_SYNC_FOLDER

_SEPARATORS = re.compile(r"/+")
_TRAILING_SEPARATORS = re.compile(r"/+$")

# Non-2xx statuses with a dedicated meaning; everything else is a transport failure.
FAILURE_BY_STATUS: dict[tuple[str, int], FailureKind] = {
    ("HEAD", 404): FailureKind.NOT_FOUND,
    ("GET", 404): FailureKind.NOT_FOUND,
    ("DELETE", 404): FailureKind.NOT_FOUND,
    ("PUT", 412): FailureKind.CONFLICT,
}


def classify_status(method: str, status_code: int) -> FailureKind | None:
    """Return None for success, otherwise the failure kind for this response."""
    if 200 <= status_code < 300:
        return None
    return FAILURE_BY_STATUS.get((method.upper(), status_code), FailureKind.TRANSPORT)


def build_file_path(target_path: str, folder: str | None = None, extra_path: str | None = None) -> str:
    parts = [folder or DEFAULT_SYNC_FOLDER]
    if extra_path:
        parts.append(extra_path)
    parts.append(target_path)
    return _SEPARATORS.sub("/", "/".join(parts))


def build_url(base_url: str, file_path: str) -> str:
    base = _TRAILING_SEPARATORS.sub("", base_url)
    return f"{base}/{quote(file_path, safe='')}"


def revision_from_headers(headers: Mapping[str, str], *, allow_last_modified: bool = True) -> str | None:
    rev = headers.get("ETag") or ""
    if not rev and allow_last_modified:
        rev = headers.get("Last-Modified") or ""
    return rev or None


@dataclass(frozen=True)
class SyncRequest:
    method: str
    url: str
    auth_token: str
    if_match: str | None = None
    content_type: str | None = None
    body: bytes | None = None

    @property
    def headers(self) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {self.auth_token}"}
        if self.if_match:
            headers["If-Match"] = self.if_match
        if self.content_type:
            headers["Content-Type"] = self.content_type
        return headers


__all__ = [
    "FAILURE_BY_STATUS",
    "SyncRequest",
    "build_file_path",
    "build_url",
    "classify_status",
    "revision_from_headers",
]
