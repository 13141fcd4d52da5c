from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

# Load .env file from project root
_env_path = Path(__file__).parent.parent / ".env"
if _env_path.exists():
    load_dotenv(_env_path)


DEFAULT_SYNC_FOLDER = "super-productivity"


class CalendarSettings(BaseModel):
    # route name -> environment variable holding the upstream feed URL
    routes: dict[str, str] = Field(
        default_factory=lambda: {
            "outlook": "ICAL_OUTLOOK_URL",
            "cursus": "ICAL_CURSUS_URL",
            "personal": "ICAL_PERSONAL_URL",
        }
    )
    user_agent: str = "sp-calendar-proxy/1.0"
    cache_max_age: int = Field(300, ge=0)
    timeout_seconds: float = Field(30.0, gt=0.0)

    @field_validator("routes", mode="before")
    @classmethod
    def _default_routes(cls, value: Any) -> dict[str, str]:  # noqa: D401
        if value is None:
            return {}
        return value

    def source_url(self, name: str) -> str | None:
        env_name = self.routes.get(name)
        if not env_name:
            return None
        return os.getenv(env_name) or None


class GatewaySettings(BaseModel):
    auth_token_env: str = "CLOUDSYNC_AUTH_TOKEN"
    cors_max_age: int = Field(86400, ge=0)
    allowed_methods: list[str] = Field(default_factory=lambda: ["GET", "PUT", "DELETE", "HEAD", "OPTIONS"])
    allowed_headers: list[str] = Field(
        default_factory=lambda: ["Authorization", "Content-Type", "If-Match", "If-None-Match"]
    )
    exposed_headers: list[str] = Field(default_factory=lambda: ["ETag", "Last-Modified"])
    calendar: CalendarSettings = Field(default_factory=CalendarSettings)

    @property
    def auth_token(self) -> str:
        return os.getenv(self.auth_token_env, "")


class StorageSettings(BaseModel):
    backend: Literal["memory", "local", "s3"] = "memory"
    root: Path = Path("data/objects")
    bucket: str | None = None
    prefix: str = ""
    region: str | None = None
    endpoint_url: str | None = None


class ClientSettings(BaseModel):
    default_folder: str = DEFAULT_SYNC_FOLDER
    max_concurrent_requests: int = Field(10, ge=1)
    timeout_seconds: float = Field(30.0, gt=0.0)
    credentials_path: Path = Path("data/credentials.json")


class Settings(BaseModel):
    gateway: GatewaySettings = Field(default_factory=GatewaySettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    client: ClientSettings = Field(default_factory=ClientSettings)

    @classmethod
    def load(cls, path: Path | None = None) -> "Settings":
        """Load settings from YAML configuration file.

        Args:
            path: Optional path to configuration file. If not provided, uses
                CLOUDSYNC_CONFIG environment variable or defaults to config/default.yaml.

        Returns:
            Settings instance with loaded configuration. When no path was given
            and the default file is absent, built-in defaults are used.

        Raises:
            FileNotFoundError: If an explicitly requested configuration file does not exist.
            ValueError: If configuration is invalid.
        """
        explicit = path or os.getenv("CLOUDSYNC_CONFIG")
        config_path = Path(explicit) if explicit else Path("config/default.yaml")
        if not config_path.exists():
            if explicit:
                raise FileNotFoundError(f"Configuration file not found: {config_path}")
            return cls()
        with config_path.open("r", encoding="utf-8") as fp:
            payload = yaml.safe_load(fp) or {}
        try:
            return cls(**payload)
        except Exception as exc:
            raise ValueError(f"Invalid configuration: {exc}") from exc


@lru_cache(maxsize=1)
def get_settings(path: str | None = None) -> Settings:
    return Settings.load(Path(path) if path else None)


__all__ = [
    "DEFAULT_SYNC_FOLDER",
    "Settings",
    "CalendarSettings",
    "GatewaySettings",
    "StorageSettings",
    "ClientSettings",
    "get_settings",
]
