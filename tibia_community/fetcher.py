"""Upstream page fetcher.

Wraps a Playwright `APIRequestContext` and returns raw page text for each
community subtopic. Network failures and error statuses become
`TransportError`; the body itself is never inspected here.
"""

import logging
import os
from typing import Dict

from playwright.async_api import APIRequestContext
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .errors import TransportError
from .models import ResidenceType

logger = logging.getLogger("app.fetcher")

COMMUNITY_URL = os.getenv("TIBIA_COMMUNITY_URL", "https://www.tibia.com/community/")
USER_AGENT = os.getenv(
    "TIBIA_USER_AGENT",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:109.0) Gecko/20100101 Firefox/113.0",
)
UPSTREAM_TIMEOUT_MS = int(os.getenv("UPSTREAM_TIMEOUT_MS", "30000"))


class TibiaFetcher:
    def __init__(self, request: APIRequestContext, semaphore):
        self._request = request
        self._semaphore = semaphore

    async def _get(self, params: Dict[str, str]) -> str:
        # Limit concurrent upstream requests
        async with self._semaphore:
            logger.debug("Fetching %s with %s", COMMUNITY_URL, params)
            try:
                response = await self._request.get(
                    COMMUNITY_URL, params=params, timeout=UPSTREAM_TIMEOUT_MS
                )
            except PlaywrightTimeoutError as e:
                raise TransportError(f"Timed out fetching {params}") from e
            except PlaywrightError as e:
                raise TransportError(f"Request failed for {params}: {e}") from e

            try:
                if response.status > 399:
                    raise TransportError(
                        f"Upstream answered {response.status} for {params}",
                        status=response.status,
                    )
                return await response.text()
            except PlaywrightError as e:
                raise TransportError(f"Could not decode body for {params}: {e}") from e
            finally:
                await response.dispose()

    async def fetch_towns_page(self) -> str:
        return await self._get({"subtopic": "houses"})

    async def fetch_worlds_page(self) -> str:
        return await self._get({"subtopic": "worlds"})

    async def fetch_world_details_page(self, world_name: str) -> str:
        return await self._get({"subtopic": "worlds", "world": world_name})

    async def fetch_guilds_page(self, world_name: str) -> str:
        return await self._get({"subtopic": "guilds", "world": world_name})

    async def fetch_killstatistics_page(self, world_name: str) -> str:
        return await self._get({"subtopic": "killstatistics", "world": world_name})

    async def fetch_residences_page(
        self, world_name: str, residence_type: ResidenceType, town: str
    ) -> str:
        return await self._get(
            {
                "subtopic": "houses",
                "world": world_name,
                "town": town,
                "type": residence_type.subtopic_type,
            }
        )

    async def fetch_character_page(self, character_name: str) -> str:
        return await self._get({"subtopic": "characters", "name": character_name})
