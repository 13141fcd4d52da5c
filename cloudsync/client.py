"""Remote file client for the CloudSync gateway.

Talks to any HTTP endpoint that supports GET / PUT / DELETE / HEAD with
ETag-based conditional writes (the bundled gateway, or an equivalent worker in
front of S3/R2).
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from cloudsync.credentials import CloudSyncCredentials, CredentialStore
from cloudsync.exceptions import ConfigurationError
from cloudsync.logging_config import get_logger
from cloudsync.outcome import FailureKind, Outcome
from cloudsync.protocol import (
    SyncRequest,
    build_file_path,
    build_url,
    classify_status,
    revision_from_headers,
)
from cloudsync.settings import ClientSettings, get_settings

JSON_CONTENT_TYPE = "application/json"


@dataclass(frozen=True)
class FileDownload:
    rev: str
    data: str


class CloudSyncClient:
    """Path-addressed, revision-aware accessor for blobs behind the gateway.

    Every network operation is a single request/response round trip and
    returns an :class:`~cloudsync.outcome.Outcome`. ``max_concurrent_requests``
    is advisory for the owning application; the client does not enforce it.
    """

    L = "CloudSync"
    provider_id = "CloudSync"
    is_upload_force_possible = True

    def __init__(
        self,
        credential_store: CredentialStore,
        extra_path: str | None = None,
        *,
        settings: ClientSettings | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.credential_store = credential_store
        self.settings = settings or get_settings().client
        self.max_concurrent_requests = self.settings.max_concurrent_requests
        self._extra_path = extra_path
        self._http_client = http_client
        self._log = get_logger(self.L)

    # credentials

    def is_ready(self) -> bool:
        try:
            creds = self.credential_store.load()
        except ConfigurationError as exc:
            self._log.warning("Credentials unavailable: {error}", error=exc.message)
            return False
        return bool(creds and creds.is_complete)

    def set_credentials(self, credentials: CloudSyncCredentials) -> None:
        self.credential_store.store(credentials)

    def clear_auth_credentials(self) -> None:
        creds = self.credential_store.load()
        if creds and creds.auth_token:
            self.credential_store.store(creds.model_copy(update={"auth_token": ""}))

    # operations

    async def get_file_rev(
        self,
        target_path: str,
        local_rev: str | None = None,
        *,
        timeout: float | None = None,
    ) -> Outcome[str]:
        """Probe ``target_path`` and return its current revision."""
        del local_rev  # the gateway has no cheap "changed since" probe
        prepared = self._build_request("HEAD", target_path)
        if isinstance(prepared, Outcome):
            return prepared
        try:
            res = await self._send(prepared, timeout)
        except httpx.HTTPError as exc:
            return self._transport_failure(prepared, exc)

        failure = self._status_failure(prepared, res, target_path)
        if failure is not None:
            return failure

        rev = revision_from_headers(res.headers)
        if not rev:
            return Outcome.failed(FailureKind.MISSING_REVISION, "No revision in HEAD response", res.status_code)
        return Outcome.success(rev)

    async def download_file(self, target_path: str, *, timeout: float | None = None) -> Outcome[FileDownload]:
        self._log.debug("download_file {target_path}", target_path=target_path)
        prepared = self._build_request("GET", target_path)
        if isinstance(prepared, Outcome):
            return prepared
        try:
            res = await self._send(prepared, timeout)
        except httpx.HTTPError as exc:
            return self._transport_failure(prepared, exc)

        failure = self._status_failure(prepared, res, target_path)
        if failure is not None:
            return failure

        try:
            data = res.content.decode("utf-8")
        except UnicodeDecodeError:
            return Outcome.failed(
                FailureKind.MALFORMED_PAYLOAD,
                f"Remote data is not valid UTF-8 text: {target_path}",
                res.status_code,
            )

        rev = revision_from_headers(res.headers)
        if not rev:
            return Outcome.failed(FailureKind.MISSING_REVISION, "No revision in GET response", res.status_code)
        return Outcome.success(FileDownload(rev=rev, data=data))

    async def upload_file(
        self,
        target_path: str,
        data: str,
        rev_to_match: str | None = None,
        force_overwrite: bool = False,
        *,
        timeout: float | None = None,
    ) -> Outcome[str]:
        """Write ``data``; conditional on ``rev_to_match`` unless ``force_overwrite``."""
        self._log.debug(
            "upload_file {target_path} rev_to_match={rev_to_match} force_overwrite={force_overwrite}",
            target_path=target_path,
            rev_to_match=rev_to_match,
            force_overwrite=force_overwrite,
        )
        prepared = self._build_request(
            "PUT",
            target_path,
            if_match=rev_to_match if rev_to_match and not force_overwrite else None,
            content_type=JSON_CONTENT_TYPE,
            body=data.encode("utf-8"),
        )
        if isinstance(prepared, Outcome):
            return prepared
        try:
            res = await self._send(prepared, timeout)
        except httpx.HTTPError as exc:
            return self._transport_failure(prepared, exc)

        kind = classify_status(prepared.method, res.status_code)
        if kind is FailureKind.CONFLICT:
            self._log.info("upload_file conflict on {target_path}", target_path=target_path)
            return Outcome.failed(
                kind,
                "Remote file changed since last download (ETag mismatch)",
                res.status_code,
            )
        failure = self._status_failure(prepared, res, target_path)
        if failure is not None:
            return failure

        rev = revision_from_headers(res.headers, allow_last_modified=False)
        if not rev:
            return Outcome.failed(FailureKind.MISSING_REVISION, "No ETag in PUT response", res.status_code)
        return Outcome.success(rev)

    async def remove_file(self, target_path: str, *, timeout: float | None = None) -> Outcome[None]:
        self._log.debug("remove_file {target_path}", target_path=target_path)
        prepared = self._build_request("DELETE", target_path)
        if isinstance(prepared, Outcome):
            return prepared
        try:
            res = await self._send(prepared, timeout)
        except httpx.HTTPError as exc:
            return self._transport_failure(prepared, exc)

        failure = self._status_failure(prepared, res, target_path)
        if failure is not None:
            return failure
        return Outcome.success(None)

    # helpers

    def _credentials_or_failure(self) -> CloudSyncCredentials | Outcome:
        try:
            creds = self.credential_store.load()
        except ConfigurationError as exc:
            return Outcome.failed(FailureKind.CONFIGURATION, exc.message)
        if not creds:
            return Outcome.failed(FailureKind.CONFIGURATION, "CloudSync configuration is missing.")
        if not creds.base_url:
            return Outcome.failed(
                FailureKind.CONFIGURATION,
                "CloudSync base URL is not configured. Please check your sync settings.",
            )
        if not creds.auth_token:
            return Outcome.failed(
                FailureKind.CONFIGURATION,
                "CloudSync auth token is not configured. Please check your sync settings.",
            )
        return creds

    def build_file_path(self, target_path: str, credentials: CloudSyncCredentials) -> str:
        folder = credentials.sync_folder_path or self.settings.default_folder
        return build_file_path(target_path, folder, self._extra_path)

    def _build_request(
        self,
        method: str,
        target_path: str,
        *,
        if_match: str | None = None,
        content_type: str | None = None,
        body: bytes | None = None,
    ) -> SyncRequest | Outcome:
        creds = self._credentials_or_failure()
        if isinstance(creds, Outcome):
            return creds
        url = build_url(creds.base_url, self.build_file_path(target_path, creds))
        return SyncRequest(
            method=method,
            url=url,
            auth_token=creds.auth_token,
            if_match=if_match,
            content_type=content_type,
            body=body,
        )

    async def _send(self, request: SyncRequest, timeout: float | None) -> httpx.Response:
        effective_timeout = timeout if timeout is not None else self.settings.timeout_seconds
        if self._http_client is not None:
            return await self._http_client.request(
                request.method,
                request.url,
                headers=request.headers,
                content=request.body,
                timeout=effective_timeout,
            )
        async with httpx.AsyncClient(timeout=effective_timeout) as client:
            return await client.request(
                request.method,
                request.url,
                headers=request.headers,
                content=request.body,
            )

    def _status_failure(self, request: SyncRequest, res: httpx.Response, target_path: str) -> Outcome | None:
        kind = classify_status(request.method, res.status_code)
        if kind is None:
            return None
        if kind is FailureKind.NOT_FOUND:
            return Outcome.failed(kind, f"File not found: {target_path}", res.status_code)
        return Outcome.failed(
            kind,
            f"CloudSync {request.method} failed: {res.status_code} {res.reason_phrase}",
            res.status_code,
        )

    def _transport_failure(self, request: SyncRequest, exc: httpx.HTTPError) -> Outcome:
        self._log.warning("CloudSync {method} transport error: {error}", method=request.method, error=str(exc))
        return Outcome.failed(FailureKind.TRANSPORT, f"CloudSync {request.method} failed: {exc}")


__all__ = ["CloudSyncClient", "FileDownload", "JSON_CONTENT_TYPE"]
