"""Page classification.

Every extractor starts by wrapping the raw page text in a `TibiaPage`
through `classify_page`, which rejects the site-wide maintenance page before
any structural checks run.
"""

import logging
from typing import List

from bs4 import BeautifulSoup, Tag

from .errors import Maintenance, UnexpectedPageContent
from .parsers import sanitize

logger = logging.getLogger("app.scraper")

MAINTENANCE_TITLE = "Tibia - Free Multiplayer Online Role Playing Game - Maintenance"


class TibiaPage:
    def __init__(self, html: str):
        self.document = BeautifulSoup(html, "html.parser")

    @property
    def title(self) -> str:
        title = self.document.title
        if title is None or title.string is None:
            return ""
        return title.string.strip()

    @property
    def is_maintenance(self) -> bool:
        return self.title == MAINTENANCE_TITLE

    def main_content(self) -> Tag:
        content = self.document.select_one(".main-content")
        if content is None:
            raise UnexpectedPageContent("Main content not found")
        return content

    def select(self, selector: str) -> List[Tag]:
        """CSS-select inside the main content block."""
        return self.main_content().select(selector)

    def heading(self) -> str:
        """Text of the first `.Text` caption, which names the page subject."""
        caption = self.main_content().select_one(".Text")
        return sanitize(caption.get_text()) if caption is not None else ""


def classify_page(html: str) -> TibiaPage:
    page = TibiaPage(html)
    if page.is_maintenance:
        logger.warning("Upstream site is in maintenance mode")
        raise Maintenance()
    return page


def cell_text(cell: Tag) -> str:
    return sanitize(cell.get_text())


def chunked(items: List[Tag], size: int) -> List[List[Tag]]:
    """Split cells into fixed-arity rows, dropping an incomplete tail."""
    return [items[i : i + size] for i in range(0, len(items) - size + 1, size)]
