"""Residence extraction and aggregation.

A residences page lists the houses or guildhalls of one town on one world.
`ResidenceAggregator` fans out over every requested (town, type) pair and
joins the results, failing as a whole when any single page fails.
"""

import asyncio
import logging
import os
import re
from datetime import datetime
from typing import List, Optional, Protocol, Sequence, Tuple

from .errors import NotFound, UnexpectedPageContent
from .models import (
    AuctionFinished,
    AuctionNoBid,
    AuctionWithBid,
    Rented,
    Residence,
    ResidenceType,
)
from .page import cell_text, classify_page
from .parsers import first_number, parse_int, parse_time_left, resolve_expiry, sanitize
from .scraper import extract_towns

logger = logging.getLogger("app.residences")

# Config (environment-configurable)
RESIDENCE_CONCURRENCY = int(os.getenv("RESIDENCE_CONCURRENCY", "10"))
# "fetch": a cold or empty towns cache triggers a towns page fetch
# "empty": a cold or empty towns cache means there are no towns to query
EMPTY_TOWNS_CACHE_POLICY = os.getenv("EMPTY_TOWNS_CACHE_POLICY", "fetch")
CACHE_POLICIES = ("fetch", "empty")

# Both spellings have been served by the site
NO_BID_STATUSES = ("auctioned (no bid yet)", "auction (no bid yet)")

_GOLD_RE = re.compile(r"([\d,]+) gold")


def classify_status(text: str, now: Optional[datetime] = None):
    """Classify the status column of a residence row."""
    value = sanitize(text)
    if value == "rented":
        return Rented()
    if value in NO_BID_STATUSES:
        return AuctionNoBid()

    gold = _GOLD_RE.search(value)
    if gold is None:
        raise UnexpectedPageContent(f"Expected gold in residence status {value!r}")
    bid = parse_int(gold.group(1))

    if "finished" in value:
        return AuctionFinished(bid=bid)

    amount, unit = parse_time_left(value)
    return AuctionWithBid(bid=bid, expiry_time=resolve_expiry(amount, unit, now))


def extract_residences(
    html: str,
    world_name: str,
    residence_type: ResidenceType,
    town: str,
    now: Optional[datetime] = None,
) -> List[Residence]:
    page = classify_page(html)

    # The caption echoes the query; unknown towns or worlds do not match
    label = "Guildhall" if residence_type is ResidenceType.guildhall else "House"
    caption = re.compile(rf"{label}.* in {re.escape(town)} on {re.escape(world_name)}$")
    if caption.search(page.heading()) is None:
        logger.info("No %s listing for %r on %r", label.lower(), town, world_name)
        raise NotFound(f"No {label.lower()} listing for {town!r} on {world_name!r}")

    # results, filter form, towns list
    tables = page.select(".TableContainer table.TableContent")
    if len(tables) != 3:
        raise NotFound(f"No {label.lower()} listing for {town!r} on {world_name!r}")

    rows = tables[0].select("tr")[1:]
    residences = []
    for row in rows:
        texts = [cell_text(cell) for cell in row.find_all("td", recursive=False)]
        texts = [text for text in texts if text]
        house_id = row.select_one('input[name="houseid"]')

        # "No houses found." is the only row of an empty listing
        if house_id is None and len(texts) == 1 and len(rows) == 1:
            break
        if len(texts) < 4:
            raise UnexpectedPageContent(f"Residence row does not contain 4 columns: {texts}")
        name, size, rent, status = texts[:4]

        if house_id is None or not str(house_id.get("value", "")).isdecimal():
            raise UnexpectedPageContent(f"Failed to parse house id for {name!r}")

        residences.append(
            Residence(
                id=int(house_id["value"]),
                town=town,
                residence_type=residence_type,
                name=name,
                size=first_number(size),
                # rent is listed in thousands of gold
                rent=first_number(rent) * 1000,
                status=classify_status(status, now),
            )
        )
    return residences


class ResidencePageFetcher(Protocol):
    async def fetch_towns_page(self) -> str:
        ...

    async def fetch_residences_page(
        self, world_name: str, residence_type: ResidenceType, town: str
    ) -> str:
        ...


class TownsCache:
    """Process-wide list of towns, warmed by the first towns extraction.

    `get` returns None until a value has been stored.
    """

    def __init__(self):
        self._towns: Optional[List[str]] = None
        self._lock = asyncio.Lock()

    def get(self) -> Optional[List[str]]:
        return list(self._towns) if self._towns is not None else None

    async def set(self, towns: Sequence[str]) -> None:
        async with self._lock:
            self._towns = list(towns)


class ResidenceAggregator:
    def __init__(
        self,
        fetcher: ResidencePageFetcher,
        towns_cache: TownsCache,
        concurrency: int = RESIDENCE_CONCURRENCY,
        empty_cache_policy: str = EMPTY_TOWNS_CACHE_POLICY,
    ):
        if empty_cache_policy not in CACHE_POLICIES:
            raise ValueError(
                f"empty_cache_policy must be one of {CACHE_POLICIES}, got {empty_cache_policy!r}"
            )
        self._fetcher = fetcher
        self._towns_cache = towns_cache
        self._concurrency = max(1, concurrency)
        self._empty_cache_policy = empty_cache_policy

    async def towns(self) -> List[str]:
        cached = self._towns_cache.get()
        if cached:
            return cached
        if self._empty_cache_policy == "empty":
            logger.info("Towns cache is empty, no towns to query")
            return []

        logger.info("Towns cache is cold, fetching towns page")
        towns = extract_towns(await self._fetcher.fetch_towns_page())
        await self._towns_cache.set(towns)
        return towns

    async def collect(
        self,
        world_name: str,
        town: Optional[str] = None,
        residence_type: Optional[ResidenceType] = None,
    ) -> List[Residence]:
        towns = [town] if town is not None else await self.towns()
        residence_types = [residence_type] if residence_type is not None else list(ResidenceType)
        combinations = [(t, rt) for t in towns for rt in residence_types]
        return await self.gather(world_name, combinations)

    async def gather(
        self, world_name: str, combinations: Sequence[Tuple[str, ResidenceType]]
    ) -> List[Residence]:
        """Fetch and extract every (town, type) pair with bounded concurrency.

        The first failure cancels the outstanding pages and is raised; no
        partial list is returned.
        """
        if not combinations:
            return []

        semaphore = asyncio.Semaphore(self._concurrency)

        async def run(town: str, residence_type: ResidenceType) -> List[Residence]:
            async with semaphore:
                return await self.fetch_residences(world_name, residence_type, town)

        tasks = [asyncio.ensure_future(run(town, rt)) for town, rt in combinations]
        try:
            await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        for outcome in outcomes:
            if isinstance(outcome, Exception):
                raise outcome
        return [residence for outcome in outcomes for residence in outcome]

    async def fetch_residences(
        self, world_name: str, residence_type: ResidenceType, town: str
    ) -> List[Residence]:
        try:
            html = await self._fetcher.fetch_residences_page(world_name, residence_type, town)
            return extract_residences(html, world_name, residence_type, town)
        except Exception as e:
            logger.error(
                "Failed to get %s residences for %r on %r: %s",
                residence_type.value,
                town,
                world_name,
                e,
            )
            raise
