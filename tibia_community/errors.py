"""Failure types raised by the page extractors and the upstream fetcher.

Routes map each of these to an HTTP status; nothing below the route layer
catches them.
"""

from typing import Optional


class TibiaError(Exception):
    """Base class for every classified scraping failure."""

    message = "Unexpected error while scraping the Tibia website"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail or self.message)
        self.detail = detail or self.message


class Maintenance(TibiaError):
    message = "Tibia is currently undergoing maintenance"


class NotFound(TibiaError):
    message = "The requested resource was not found"


class UnexpectedPageContent(TibiaError):
    """The page format has drifted from what the extractor expects."""

    message = "Unable to parse the response body"


class TransportError(TibiaError):
    message = "Could not connect to the Tibia website"

    def __init__(self, detail: Optional[str] = None, status: Optional[int] = None):
        super().__init__(detail)
        self.status = status
