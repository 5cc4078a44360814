"""
Test configuration and fixtures for the A11y Audit API.

Browser drivers, the axe engine and the network are replaced with fakes so
the audit paths run without Chrome or network access.
"""

import os
from typing import Generator

# Settings are read at import time; keep test runs from writing log files
os.environ.setdefault("LOG_TO_FILE", "false")

import httpx
import pytest
from fastapi.testclient import TestClient

from app.platform.config import Settings
from tests.fakes import BrowserCounter, FakeEngine, StaticSite


@pytest.fixture(scope="session")
def test_app():
    """Create FastAPI test application."""
    from app.main import app

    return app


@pytest.fixture(scope="function")
def client(test_app) -> Generator[TestClient, None, None]:
    with TestClient(test_app) as test_client:
        yield test_client


@pytest.fixture
def fast_settings() -> Settings:
    """Short bounds so timeout paths finish quickly."""
    return Settings(
        LOG_TO_FILE=False,
        AUDIT_DEADLINE_MS=1500,
        AUDIT_CLEANUP_GRACE_MS=200,
        AUDIT_ENGINE_TIMEOUT_MS=1000,
        AUDIT_FETCH_TIMEOUT_MS=1000,
        AUDIT_INNER_HEADROOM_MS=200,
        BROWSER_LAUNCH_TIMEOUT_MS=1000,
        BROWSER_WAIT_MS=0,
        AUDIT_MAX_ISSUES=20,
        AUDIT_MAX_FIELD_LENGTH=100,
    )


@pytest.fixture
def browsers() -> BrowserCounter:
    return BrowserCounter()


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def site() -> StaticSite:
    return StaticSite()


@pytest.fixture
def transport(site) -> httpx.MockTransport:
    return httpx.MockTransport(site.handle)
