"""FastAPI exception handlers for CloudSync errors."""

from __future__ import annotations

from fastapi import Request, status
from fastapi.responses import PlainTextResponse
from loguru import logger

from cloudsync.exceptions import (
    AuthenticationError,
    CloudSyncError,
    MethodNotAllowedError,
    PreconditionFailedError,
    StorageError,
    ValidationError,
)

# Most specific first; the first isinstance match wins.
STATUS_BY_ERROR: tuple[tuple[type[CloudSyncError], int], ...] = (
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (MethodNotAllowedError, status.HTTP_405_METHOD_NOT_ALLOWED),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (PreconditionFailedError, status.HTTP_412_PRECONDITION_FAILED),
    (StorageError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def status_for(exc: CloudSyncError) -> int:
    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def body_for(exc: CloudSyncError, status_code: int) -> str:
    if status_code == status.HTTP_500_INTERNAL_SERVER_ERROR:
        return f"Internal error: {exc.message}"
    return exc.message


async def cloudsync_exception_handler(request: Request, exc: CloudSyncError) -> PlainTextResponse:
    """Translate CloudSync errors into plain-text protocol responses."""
    status_code = status_for(exc)
    log = logger.error if status_code >= 500 else logger.info
    log(
        "{method} {path} -> {status}: {type} - {message}",
        method=request.method,
        path=request.url.path,
        status=status_code,
        type=type(exc).__name__,
        message=exc.message,
    )
    return PlainTextResponse(body_for(exc, status_code), status_code=status_code)
