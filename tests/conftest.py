"""Shared pytest fixtures."""
from __future__ import annotations

import os
from pathlib import Path

# Must be set before services.gateway.main builds its module-level app.
os.environ.setdefault("CLOUDSYNC_CONFIG", str(Path(__file__).parent / "config.yaml"))

import httpx
import pytest
import pytest_asyncio

from cloudsync.client import CloudSyncClient
from cloudsync.credentials import CloudSyncCredentials, MemoryCredentialStore
from cloudsync.settings import ClientSettings, Settings
from cloudsync.storage.memory import MemoryStorage
from services.gateway.main import create_app

AUTH_TOKEN = "test-token"
BASE_URL = "http://gateway"


@pytest.fixture(autouse=True)
def auth_token(monkeypatch) -> str:
    monkeypatch.setenv("CLOUDSYNC_AUTH_TOKEN", AUTH_TOKEN)
    return AUTH_TOKEN


@pytest.fixture
def store() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def app(store):
    return create_app(Settings(), store=store)


@pytest_asyncio.fixture
async def gateway(app):
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url=BASE_URL) as client:
        yield client


@pytest.fixture
def credential_store() -> MemoryCredentialStore:
    return MemoryCredentialStore(CloudSyncCredentials(base_url=f"{BASE_URL}/", auth_token=AUTH_TOKEN))


@pytest.fixture
def sync_client(credential_store, gateway) -> CloudSyncClient:
    return CloudSyncClient(credential_store, settings=ClientSettings(), http_client=gateway)
