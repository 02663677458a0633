"""HTTP route handlers (FastAPI APIRouter).

Each handler fetches the upstream page through the shared `TibiaFetcher`
from `playwright_manager` and hands the text to an extractor; scraping
failures are mapped to HTTP statuses in `scrape_errors`.
"""

from contextlib import contextmanager
from typing import List, Optional
import logging
import os

from fastapi import APIRouter, Depends, HTTPException, Path, Query

from .errors import Maintenance, NotFound, TransportError, UnexpectedPageContent
from .fetcher import TibiaFetcher
from .models import (
    CharacterInfo,
    Guild,
    KillStatistics,
    Residence,
    ResidenceType,
    WorldDetails,
    WorldsOverview,
)
from .playwright_manager import get_fetcher
from .residences import ResidenceAggregator, TownsCache
from .scraper import (
    extract_character,
    extract_guilds,
    extract_kill_statistics,
    extract_towns,
    extract_world_details,
    extract_worlds,
)

# Seconds clients should wait before retrying during maintenance
MAINTENANCE_RETRY_AFTER = os.getenv("MAINTENANCE_RETRY_AFTER", "300")

logger = logging.getLogger("app.routes")

router = APIRouter()

_towns_cache = TownsCache()


def get_towns_cache() -> TownsCache:
    return _towns_cache


def require_fetcher(fetcher: Optional[TibiaFetcher] = Depends(get_fetcher)) -> TibiaFetcher:
    if fetcher is None:
        raise HTTPException(
            status_code=503,
            detail={"code": "SERVICE_ERROR", "message": "Upstream client not available"},
        )
    return fetcher


@contextmanager
def scrape_errors(resource: str):
    """Translate scraping failures into HTTP errors for `resource`."""
    try:
        yield
    except Maintenance as e:
        logger.warning("%s: %s", resource, e.detail)
        raise HTTPException(
            status_code=503,
            detail={"code": "SERVICE_ERROR", "message": e.detail},
            headers={"Retry-After": MAINTENANCE_RETRY_AFTER},
        )
    except NotFound as e:
        logger.info("%s: %s", resource, e.detail)
        raise HTTPException(
            status_code=404,
            detail={"code": "RESOURCE_NOT_FOUND", "message": NotFound.message},
        )
    except TransportError as e:
        logger.error("Failed to fetch %s: %s", resource, e.detail)
        raise HTTPException(
            status_code=503,
            detail={"code": "SERVICE_ERROR", "message": TransportError.message},
        )
    except UnexpectedPageContent as e:
        logger.exception("Failed to parse %s: %s", resource, e.detail)
        raise HTTPException(status_code=500, detail={"code": "INTERNAL_ERROR", "message": None})


@router.get("/towns", response_model=List[str])
async def get_towns(
    fetcher: TibiaFetcher = Depends(require_fetcher),
    towns_cache: TownsCache = Depends(get_towns_cache),
):
    with scrape_errors("towns"):
        towns = extract_towns(await fetcher.fetch_towns_page())
    await towns_cache.set(towns)
    return towns


@router.get("/worlds", response_model=WorldsOverview, response_model_exclude_none=True)
async def get_worlds(fetcher: TibiaFetcher = Depends(require_fetcher)):
    with scrape_errors("worlds"):
        return extract_worlds(await fetcher.fetch_worlds_page())


@router.get(
    "/worlds/{world_name}", response_model=WorldDetails, response_model_exclude_none=True
)
async def get_world(
    world_name: str = Path(..., min_length=1),
    fetcher: TibiaFetcher = Depends(require_fetcher),
):
    world_name = world_name.capitalize()
    with scrape_errors(f"world {world_name}"):
        html = await fetcher.fetch_world_details_page(world_name)
        return extract_world_details(html, world_name)


@router.get(
    "/worlds/{world_name}/guilds", response_model=List[Guild], response_model_exclude_none=True
)
async def get_world_guilds(
    world_name: str = Path(..., min_length=1),
    fetcher: TibiaFetcher = Depends(require_fetcher),
):
    world_name = world_name.capitalize()
    with scrape_errors(f"guilds of {world_name}"):
        html = await fetcher.fetch_guilds_page(world_name)
        return extract_guilds(html, world_name)


@router.get("/worlds/{world_name}/kill-statistics", response_model=KillStatistics)
async def get_world_kill_statistics(
    world_name: str = Path(..., min_length=1),
    fetcher: TibiaFetcher = Depends(require_fetcher),
):
    world_name = world_name.capitalize()
    with scrape_errors(f"kill statistics of {world_name}"):
        html = await fetcher.fetch_killstatistics_page(world_name)
        return extract_kill_statistics(html, world_name)


@router.get("/worlds/{world_name}/residences", response_model=List[Residence])
async def get_world_residences(
    world_name: str = Path(..., min_length=1),
    town: Optional[str] = Query(None, min_length=1),
    residence_type: Optional[ResidenceType] = Query(None, alias="type"),
    fetcher: TibiaFetcher = Depends(require_fetcher),
    towns_cache: TownsCache = Depends(get_towns_cache),
):
    world_name = world_name.capitalize()
    aggregator = ResidenceAggregator(fetcher, towns_cache)
    with scrape_errors(f"residences of {world_name}"):
        return await aggregator.collect(world_name, town=town, residence_type=residence_type)


@router.get(
    "/characters/{character_name}",
    response_model=CharacterInfo,
    response_model_exclude_none=True,
)
async def get_character(
    character_name: str = Path(..., min_length=1),
    fetcher: TibiaFetcher = Depends(require_fetcher),
):
    with scrape_errors(f"character {character_name}"):
        html = await fetcher.fetch_character_page(character_name)
        return extract_character(html, character_name)


@router.get("/health")
async def health():
    """Lightweight health endpoint that does not touch Playwright.

    This is useful for load balancers and tests that want a quick
    liveness check without reaching the upstream site.
    """
    return {"status": "ok"}
