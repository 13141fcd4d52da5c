import os
from pathlib import Path

import httpx
from fastapi import FastAPI
from loguru import logger

from cloudsync.exceptions import CloudSyncError
from cloudsync.logging_config import setup_logging
from cloudsync.settings import Settings, get_settings
from cloudsync.storage import ObjectStore
from cloudsync.storage.factory import create_object_store
from services.gateway.exception_handlers import cloudsync_exception_handler
from services.gateway.middleware import CorsHeadersMiddleware, RateLimitMiddleware, SecurityHeadersMiddleware
from services.gateway.routers.calendar import build_calendar_router
from services.gateway.routes import router as objects_router


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in {"true", "1", "yes"}


def create_app(
    settings: Settings | None = None,
    *,
    store: ObjectStore | None = None,
    calendar_client: httpx.AsyncClient | None = None,
) -> FastAPI:
    # Setup structured logging
    log_file = os.getenv("LOG_FILE")
    setup_logging(
        level=os.getenv("LOG_LEVEL", "INFO"),
        json_format=_env_flag("JSON_LOGGING"),
        log_file=Path(log_file) if log_file else None,
    )

    settings = settings or get_settings()

    app = FastAPI(
        title="CloudSync Gateway",
        version="0.1.0",
        description="Revisioned object store with ETag-based conditional writes",
    )
    app.state.settings = settings
    app.state.object_store = store if store is not None else create_object_store(settings.storage)
    app.state.calendar_client = calendar_client if calendar_client is not None else httpx.AsyncClient()

    if not settings.gateway.auth_token:
        logger.warning(
            "Environment variable {env} is empty; all object requests will be rejected",
            env=settings.gateway.auth_token_env,
        )

    if _env_flag("RATE_LIMIT_ENABLED"):
        app.add_middleware(
            RateLimitMiddleware,
            requests_per_minute=int(os.getenv("RATE_LIMIT_PER_MINUTE", "600")),
            requests_per_hour=int(os.getenv("RATE_LIMIT_PER_HOUR", "10000")),
        )

    app.add_middleware(SecurityHeadersMiddleware)

    # CORS middleware - add LAST so it executes FIRST
    app.add_middleware(
        CorsHeadersMiddleware,
        allowed_methods=settings.gateway.allowed_methods,
        allowed_headers=settings.gateway.allowed_headers,
        exposed_headers=settings.gateway.exposed_headers,
        max_age=settings.gateway.cors_max_age,
    )

    @app.on_event("shutdown")
    async def _close_calendar_client() -> None:
        await app.state.calendar_client.aclose()

    @app.get("/healthz", tags=["meta"])
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    app.add_exception_handler(CloudSyncError, cloudsync_exception_handler)

    # Order matters: the object routes match every path.
    app.include_router(build_calendar_router(settings.gateway.calendar))
    app.include_router(objects_router)

    logger.info(
        "Gateway initialised with storage backend={backend}",
        backend=settings.storage.backend,
    )
    return app


app = create_app()


__all__ = ["app", "create_app"]
