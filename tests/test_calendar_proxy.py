from __future__ import annotations

import httpx
import pytest

from cloudsync.settings import Settings
from cloudsync.storage.memory import MemoryStorage
from services.gateway.main import create_app

FEED = b"BEGIN:VCALENDAR\r\nEND:VCALENDAR\r\n"


def _gateway(handler) -> httpx.AsyncClient:
    upstream = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    app = create_app(Settings(), store=MemoryStorage(), calendar_client=upstream)
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://gateway")


@pytest.fixture
def outlook_url(monkeypatch) -> str:
    url = "https://calendar.example.com/outlook.ics"
    monkeypatch.setenv("ICAL_OUTLOOK_URL", url)
    return url


@pytest.mark.asyncio()
async def test_feed_is_proxied_without_auth(outlook_url) -> None:
    seen: list[httpx.Request] = []

    def handler(request):
        seen.append(request)
        return httpx.Response(
            200,
            content=FEED,
            headers={"Content-Type": "text/calendar; charset=utf-8", "ETag": '"cal1"'},
        )

    async with _gateway(handler) as client:
        response = await client.get("/ical/outlook.ics")

    assert response.status_code == 200
    assert response.content == FEED
    assert response.headers["content-type"].startswith("text/calendar")
    assert response.headers["cache-control"] == "public, max-age=300"
    assert response.headers["etag"] == '"cal1"'
    assert response.headers["access-control-allow-origin"] == "*"
    assert str(seen[0].url) == outlook_url
    assert seen[0].headers["User-Agent"] == "sp-calendar-proxy/1.0"


@pytest.mark.asyncio()
async def test_head_returns_no_body(outlook_url) -> None:
    async with _gateway(lambda request: httpx.Response(200, content=FEED)) as client:
        response = await client.head("/ical/outlook.ics")

    assert response.status_code == 200
    assert response.content == b""
    assert response.headers["content-type"].startswith("text/calendar")


@pytest.mark.asyncio()
async def test_write_methods_not_allowed(outlook_url) -> None:
    async with _gateway(lambda request: httpx.Response(200, content=FEED)) as client:
        response = await client.put("/ical/outlook.ics", content=b"x")

    assert response.status_code == 405


@pytest.mark.asyncio()
async def test_unconfigured_feed(monkeypatch) -> None:
    monkeypatch.delenv("ICAL_PERSONAL_URL", raising=False)
    async with _gateway(lambda request: httpx.Response(200, content=FEED)) as client:
        response = await client.get("/ical/personal.ics")

    assert response.status_code == 500
    assert response.text == "Calendar route not configured: /ical/personal.ics"


@pytest.mark.asyncio()
async def test_upstream_failure_is_bad_gateway(outlook_url) -> None:
    async with _gateway(lambda request: httpx.Response(503)) as client:
        response = await client.get("/ical/outlook.ics")

    assert response.status_code == 502
    assert response.text == "Calendar fetch failed (503)"


@pytest.mark.asyncio()
async def test_upstream_transport_error_is_bad_gateway(outlook_url) -> None:
    def handler(request):
        raise httpx.ConnectError("no route to host", request=request)

    async with _gateway(handler) as client:
        response = await client.get("/ical/outlook.ics")

    assert response.status_code == 502
    assert response.text == "Calendar proxy error: no route to host"


@pytest.mark.asyncio()
async def test_unknown_feed_falls_through_to_object_routes() -> None:
    async with _gateway(lambda request: httpx.Response(200)) as client:
        response = await client.get("/ical/other.ics")

    assert response.status_code == 401
