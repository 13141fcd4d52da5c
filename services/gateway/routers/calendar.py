"""Public iCal proxy so browser clients can read calendar feeds without CORS issues."""

from __future__ import annotations

import httpx
from fastapi import APIRouter, Request, status
from fastapi.responses import PlainTextResponse, Response
from loguru import logger

from cloudsync.settings import CalendarSettings


def build_calendar_router(settings: CalendarSettings) -> APIRouter:
    """One unauthenticated route per configured feed, ``/ical/<name>.ics``."""
    router = APIRouter(prefix="/ical", tags=["calendar"])
    for name in settings.routes:
        router.add_api_route(
            f"/{name}.ics",
            _make_endpoint(name, settings),
            methods=["GET", "HEAD", "PUT", "DELETE", "POST", "PATCH"],
            name=f"calendar_{name}",
        )
    return router


def _make_endpoint(name: str, settings: CalendarSettings):
    async def proxy_calendar(request: Request) -> Response:
        return await proxy_feed(request, name, settings)

    return proxy_calendar


async def proxy_feed(request: Request, name: str, settings: CalendarSettings) -> Response:
    pathname = request.url.path
    if request.method not in {"GET", "HEAD"}:
        return PlainTextResponse("Method not allowed", status_code=status.HTTP_405_METHOD_NOT_ALLOWED)

    source_url = settings.source_url(name)
    if not source_url:
        return PlainTextResponse(
            f"Calendar route not configured: {pathname}",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    client: httpx.AsyncClient = request.app.state.calendar_client
    try:
        upstream = await client.get(
            source_url,
            headers={"User-Agent": settings.user_agent},
            follow_redirects=True,
            timeout=settings.timeout_seconds,
        )
    except httpx.HTTPError as exc:
        logger.warning("Calendar proxy error for {name}: {error}", name=name, error=str(exc))
        return PlainTextResponse(
            f"Calendar proxy error: {exc}",
            status_code=status.HTTP_502_BAD_GATEWAY,
        )

    if not upstream.is_success:
        return PlainTextResponse(
            f"Calendar fetch failed ({upstream.status_code})",
            status_code=status.HTTP_502_BAD_GATEWAY,
        )

    headers = {"Cache-Control": f"public, max-age={settings.cache_max_age}"}
    for header in ("ETag", "Last-Modified"):
        value = upstream.headers.get(header)
        if value:
            headers[header] = value

    return Response(
        content=b"" if request.method == "HEAD" else upstream.content,
        status_code=status.HTTP_200_OK,
        media_type=upstream.headers.get("Content-Type") or "text/calendar",
        headers=headers,
    )


__all__ = ["build_calendar_router", "proxy_feed"]
