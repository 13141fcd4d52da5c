"""Object endpoints: probe, read, conditional write and delete of one key."""

from __future__ import annotations

import hmac
from datetime import timezone
from email.utils import format_datetime
from typing import Any, Callable

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import Response
from loguru import logger
from starlette.concurrency import run_in_threadpool

from cloudsync.exceptions import (
    AuthenticationError,
    CloudSyncError,
    InvalidKeyError,
    MethodNotAllowedError,
    StorageError,
)
from cloudsync.storage import ObjectMeta, ObjectStore, format_etag, parse_if_match


async def require_bearer_token(request: Request) -> None:
    expected = request.app.state.settings.gateway.auth_token
    if not expected:
        logger.warning(
            "Gateway auth token is not configured; refusing {method} {path}",
            method=request.method,
            path=request.url.path,
        )
        raise AuthenticationError("Unauthorized")
    supplied = request.headers.get("Authorization", "")
    if not hmac.compare_digest(supplied.encode("utf-8"), f"Bearer {expected}".encode("utf-8")):
        raise AuthenticationError("Unauthorized")


# Paths served by the gateway itself.
RESERVED_KEYS = frozenset({"healthz"})


def object_key(key: str) -> str:
    # The path is already percent-decoded; the route consumed the leading "/".
    if not key:
        raise InvalidKeyError("Missing key")
    if key in RESERVED_KEYS:
        raise InvalidKeyError("Reserved key", {"key": key})
    return key


def get_object_store(request: Request) -> ObjectStore:
    return request.app.state.object_store


router = APIRouter(dependencies=[Depends(require_bearer_token)], tags=["objects"])


async def _call_store(fn: Callable[..., Any], *args: Any) -> Any:
    try:
        return await run_in_threadpool(fn, *args)
    except CloudSyncError:
        raise
    except Exception as exc:
        logger.exception("Object store failure")
        raise StorageError(str(exc) or type(exc).__name__) from exc


def _revision_headers(meta: ObjectMeta) -> dict[str, str]:
    return {
        "ETag": format_etag(meta.etag),
        "Last-Modified": format_datetime(meta.last_modified.astimezone(timezone.utc), usegmt=True),
    }


@router.head("/{key:path}")
async def probe_object(
    key: str = Depends(object_key),
    store: ObjectStore = Depends(get_object_store),
) -> Response:
    meta = await _call_store(store.head, key)
    if meta is None:
        return Response(status_code=status.HTTP_404_NOT_FOUND)
    return Response(status_code=status.HTTP_200_OK, headers=_revision_headers(meta))


@router.get("/{key:path}")
async def read_object(
    key: str = Depends(object_key),
    store: ObjectStore = Depends(get_object_store),
) -> Response:
    obj = await _call_store(store.get, key)
    if obj is None:
        return Response(status_code=status.HTTP_404_NOT_FOUND)
    return Response(
        content=obj.body,
        status_code=status.HTTP_200_OK,
        media_type="application/json",
        headers=_revision_headers(obj.meta),
    )


@router.put("/{key:path}")
async def write_object(
    request: Request,
    key: str = Depends(object_key),
    store: ObjectStore = Depends(get_object_store),
) -> Response:
    if_match = parse_if_match(request.headers.get("If-Match"))
    body = await request.body()
    meta = await _call_store(store.put, key, body, if_match)
    logger.debug("Stored {key} etag={etag} conditional={conditional}", key=key, etag=meta.etag, conditional=if_match is not None)
    return Response(status_code=status.HTTP_200_OK, headers={"ETag": format_etag(meta.etag)})


@router.delete("/{key:path}")
async def delete_object(
    key: str = Depends(object_key),
    store: ObjectStore = Depends(get_object_store),
) -> Response:
    removed = await _call_store(store.delete, key)
    if not removed:
        return Response(status_code=status.HTTP_404_NOT_FOUND)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.api_route("/{key:path}", methods=["POST", "PATCH"])
async def unsupported_method(key: str = Depends(object_key)) -> Response:
    raise MethodNotAllowedError("Method not allowed")


__all__ = ["RESERVED_KEYS", "router", "require_bearer_token", "object_key", "get_object_store"]
