"""Playwright lifecycle and upstream request manager.

This module centralizes Playwright startup/shutdown and exposes the shared
`TibiaFetcher` used by request handlers. Only Playwright's HTTP request
context is used; no browser is launched.
"""

import asyncio
import logging
import os
from typing import Optional
from contextlib import asynccontextmanager

from playwright.async_api import APIRequestContext, Playwright, async_playwright

from .fetcher import UPSTREAM_TIMEOUT_MS, USER_AGENT, TibiaFetcher

logger = logging.getLogger("app.playwright")

# Config (environment-configurable)
MAX_CONCURRENT_REQUESTS = int(os.getenv("MAX_CONCURRENT_REQUESTS", "10"))

_playwright: Optional[Playwright] = None
_request_context: Optional[APIRequestContext] = None
_fetcher: Optional[TibiaFetcher] = None
# Bounded semaphore to limit concurrent upstream requests
_semaphore = asyncio.BoundedSemaphore(MAX_CONCURRENT_REQUESTS)


async def _ensure_startup() -> None:
    """Start Playwright and open a shared request context.

    Should be safe to call multiple times (no-op if already started).
    """
    global _playwright, _request_context, _fetcher
    if _playwright is None:
        try:
            _playwright = await async_playwright().start()
            _request_context = await _playwright.request.new_context(
                user_agent=USER_AGENT, timeout=UPSTREAM_TIMEOUT_MS
            )
            _fetcher = TibiaFetcher(_request_context, _semaphore)
            logger.info("Playwright started and request context opened")
        except Exception as e:
            logger.exception("Failed to start Playwright: %s", e)
            # Ensure globals are reset on failure
            _playwright = None
            _request_context = None
            _fetcher = None
            raise


async def _shutdown() -> None:
    """Gracefully dispose the request context and stop Playwright.

    Shutdown may fail if the driver already exited; log and continue.
    """
    global _playwright, _request_context, _fetcher
    _fetcher = None
    # Wait briefly for in-flight upstream requests by acquiring all
    # semaphore permits before the context is disposed.
    if _request_context:
        try:
            total_permits = max(1, MAX_CONCURRENT_REQUESTS)
            per_attempt = 5.0 / total_permits
            acquired = 0
            for _ in range(total_permits):
                try:
                    await asyncio.wait_for(_semaphore.acquire(), timeout=per_attempt)
                    acquired += 1
                except asyncio.TimeoutError:
                    logger.warning(
                        "Timed out waiting for upstream requests to finish before shutdown"
                    )
                    break

            await _request_context.dispose()
            # Permits go back so a later startup in the same process can fetch
            for _ in range(acquired):
                _semaphore.release()
        except Exception as e:
            logger.warning("Exception while disposing request context during shutdown: %s", e)

    if _playwright:
        try:
            await _playwright.stop()
        except Exception as e:
            logger.warning("Exception while stopping Playwright during shutdown: %s", e)

    _request_context = None
    _playwright = None
    logger.info("Playwright stopped")


@asynccontextmanager
async def lifespan(app):
    await _ensure_startup()
    try:
        yield
    finally:
        await _shutdown()


def get_fetcher() -> Optional[TibiaFetcher]:
    return _fetcher
