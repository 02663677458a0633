"""Test doubles and page builders shared across the test modules."""

import asyncio
from pathlib import Path

from tibia_community.errors import TransportError
from tibia_community.models import ResidenceType

FIXTURES = Path(__file__).parent / "fixtures"

PAGE_TITLE = "Tibia - Free Multiplayer Online Role Playing Game - Community"


def load_fixture(name: str) -> str:
    return (FIXTURES / name).read_text(encoding="utf-8")


class FakeFetcher:
    """In-memory stand-in for `TibiaFetcher`.

    `pages` maps a request key to page text, to an exception to raise, or to
    an async callable producing the page. Every request key is recorded in
    `requests`, in call order.
    """

    def __init__(self, pages=None):
        self.pages = dict(pages or {})
        self.requests = []

    async def _page(self, key):
        self.requests.append(key)
        await asyncio.sleep(0)
        if key not in self.pages:
            raise TransportError(f"No page for {key}", status=404)
        page = self.pages[key]
        if isinstance(page, Exception):
            raise page
        if callable(page):
            return await page()
        return page

    async def fetch_towns_page(self):
        return await self._page(("towns",))

    async def fetch_worlds_page(self):
        return await self._page(("worlds",))

    async def fetch_world_details_page(self, world_name):
        return await self._page(("world", world_name))

    async def fetch_guilds_page(self, world_name):
        return await self._page(("guilds", world_name))

    async def fetch_killstatistics_page(self, world_name):
        return await self._page(("killstatistics", world_name))

    async def fetch_residences_page(self, world_name, residence_type, town):
        return await self._page(("residences", world_name, town, residence_type))

    async def fetch_character_page(self, character_name):
        return await self._page(("character", character_name))


def towns_page(names) -> str:
    labels = "".join(
        f'<input type="radio" name="town" id="town_{i}"><label for="town_{i}">{name}</label><br>'
        for i, name in enumerate(names)
    )
    return f"""<html><head><title>{PAGE_TITLE}</title></head><body>
<div class="main-content"><div id="houses">
<table class="TableContent"><tr><td>Houses</td></tr></table>
<table class="TableContent"><tr><td valign="top">{labels}</td>
<td valign="top"><select name="world"></select></td></tr></table>
</div></div></body></html>"""


RESIDENCE_ROW = """<tr class="Odd">
<td width="40%"><nobr>{name}</nobr></td>
<td width="10%"><nobr>{size}&#160;sqm</nobr></td>
<td width="10%"><nobr>{rent}k&#160;gold</nobr></td>
<td width="40%"><nobr>{status}</nobr></td>
<td><form action="https://www.tibia.com/community/?subtopic=houses&amp;page=view" method="post">
<input type="hidden" name="houseid" value="{id}"><input type="submit" value="View"></form></td>
</tr>"""


def residences_page(
    town,
    world_name="Antica",
    residence_type=ResidenceType.house,
    rows=(),
    caption=None,
    tables=3,
) -> str:
    """Build a residences listing for `town` on `world_name`.

    `rows` holds `(id, name, size, rent_k, status)` tuples; an empty listing
    renders the "No ... found." row the site shows instead.
    """
    label = "Houses and Flats" if residence_type is ResidenceType.house else "Guildhalls"
    if caption is None:
        caption = f"Available {label} in {town} on {world_name}"

    if rows:
        body = "".join(
            RESIDENCE_ROW.format(id=id_, name=name, size=size, rent=rent, status=status)
            for id_, name, size, rent, status in rows
        )
    else:
        empty = "houses" if residence_type is ResidenceType.house else "guildhalls"
        body = f'<tr class="Odd"><td colspan="5">No {empty} found.</td></tr>'

    results = f"""<div class="TableContainer">
<div class="CaptionContainer"><div class="Text">{caption}</div></div>
<table class="Table3"><tr><td><div class="InnerTableContainer">
<table class="TableContent">
<tr class="LabelH"><td>Name</td><td>Size</td><td>Rent</td><td>Status</td><td></td></tr>
{body}
</table></div></td></tr></table></div>"""
    extra = """<div class="TableContainer"><table class="Table1"><tr><td>
<table class="TableContent"><tr><td valign="top">Search</td></tr></table>
</td></tr></table></div>"""

    return f"""<html><head><title>{PAGE_TITLE}</title></head><body>
<div class="main-content"><div id="houses">
{results}
{extra * (tables - 1)}
</div></div></body></html>"""
