"""CORS, security and rate limiting middleware."""

from __future__ import annotations

import time
from collections import defaultdict
from typing import Any, Callable, Sequence

from fastapi import Request, status
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import PlainTextResponse, Response


class CorsHeadersMiddleware(BaseHTTPMiddleware):
    """Answer preflight requests and expose revision headers to any origin.

    OPTIONS is answered for every path without authentication; all other
    responses get the allow-origin / expose-headers pair, including the 500
    produced for an unhandled exception.
    """

    def __init__(
        self,
        app: Any,
        *,
        allowed_methods: Sequence[str],
        allowed_headers: Sequence[str],
        exposed_headers: Sequence[str],
        max_age: int = 86400,
    ) -> None:
        super().__init__(app)
        self.base_headers = {
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Expose-Headers": ", ".join(exposed_headers),
        }
        self.preflight_headers = {
            **self.base_headers,
            "Access-Control-Allow-Methods": ", ".join(allowed_methods),
            "Access-Control-Allow-Headers": ", ".join(allowed_headers),
            "Access-Control-Max-Age": str(max_age),
        }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.method == "OPTIONS":
            return Response(status_code=status.HTTP_200_OK, headers=self.preflight_headers)
        try:
            response = await call_next(request)
        except Exception as exc:
            # Unhandled errors still carry the CORS headers.
            logger.exception("Unhandled exception on {method} {path}", method=request.method, path=request.url.path)
            response = PlainTextResponse(f"Internal error: {exc}", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
        response.headers.update(self.base_headers)
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rate limiting middleware.

    Limits requests per IP address to prevent abuse.
    """

    def __init__(
        self,
        app: Any,
        *,
        requests_per_minute: int = 600,
        requests_per_hour: int = 10000,
    ) -> None:
        """Initialize rate limiter.

        Args:
            app: FastAPI application.
            requests_per_minute: Maximum requests per minute per IP.
            requests_per_hour: Maximum requests per hour per IP.
        """
        super().__init__(app)
        self.requests_per_minute = requests_per_minute
        self.requests_per_hour = requests_per_hour
        self.minute_requests: dict[str, list[float]] = defaultdict(list)
        self.hour_requests: dict[str, list[float]] = defaultdict(list)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        client_ip = request.client.host if request.client else "unknown"

        current_time = time.time()
        self._clean_old_entries(client_ip, current_time)

        if len(self.minute_requests[client_ip]) >= self.requests_per_minute:
            return PlainTextResponse(
                "Rate limit exceeded. Please try again later.",
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            )
        if len(self.hour_requests[client_ip]) >= self.requests_per_hour:
            return PlainTextResponse(
                "Hourly rate limit exceeded. Please try again later.",
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            )

        self.minute_requests[client_ip].append(current_time)
        self.hour_requests[client_ip].append(current_time)
        return await call_next(request)

    def _clean_old_entries(self, client_ip: str, current_time: float) -> None:
        """Remove old entries from rate limit tracking."""
        self.minute_requests[client_ip] = [
            t for t in self.minute_requests[client_ip]
            if current_time - t < 60
        ]
        self.hour_requests[client_ip] = [
            t for t in self.hour_requests[client_ip]
            if current_time - t < 3600
        ]


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to responses."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response
