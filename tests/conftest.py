"""
Pytest configuration and shared fixtures for testing.

Pages are served from the HTML snapshots under `tests/fixtures`, so no test
reaches the upstream site.
"""

import pytest
from fastapi.testclient import TestClient

from tibia_community import app
from tibia_community.playwright_manager import get_fetcher
from tibia_community.residences import TownsCache
from tibia_community.routes import get_towns_cache

from tests.helpers import FakeFetcher, load_fixture


@pytest.fixture
def fixture_page():
    """
    Load an HTML snapshot by file name.

    Returns:
        Callable[[str], str]: Loader for files under tests/fixtures
    """
    return load_fixture


@pytest.fixture
def fetcher():
    """
    Provide an empty fake fetcher; tests register the pages they need.

    Returns:
        FakeFetcher: Fetcher answering from its `pages` mapping
    """
    return FakeFetcher()


@pytest.fixture
def towns_cache():
    return TownsCache()


@pytest.fixture
def client(fetcher, towns_cache):
    """
    Create a test client wired to the fake fetcher and a fresh towns cache.

    The lifespan is not entered, so Playwright never starts.

    Yields:
        TestClient: Client for the FastAPI app
    """
    app.dependency_overrides[get_fetcher] = lambda: fetcher
    app.dependency_overrides[get_towns_cache] = lambda: towns_cache
    yield TestClient(app)
    app.dependency_overrides.clear()
