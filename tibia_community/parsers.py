"""Field parsers shared by every extractor.

Each parser turns one raw text fragment from a Tibia page into a typed
value, raising `UnexpectedPageContent` when the fragment does not have the
expected shape.
"""

import re
from datetime import date, datetime, timedelta, timezone
from typing import Mapping, Optional, Tuple, TypeVar

from .errors import UnexpectedPageContent

T = TypeVar("T")

# Upstream record timestamps carry one of these two labels
TIMEZONE_OFFSETS = {
    "CET": timezone(timedelta(hours=1)),
    "CEST": timezone(timedelta(hours=2)),
}

# Daily server save, used to anchor "N days left" countdowns
SERVER_SAVE_HOUR = 8

_REPLACEMENTS = (
    ("\\n", ""),
    ('\\"', "'"),
    ("\\u00A0", " "),
    ("\\u0026#39;", "'"),
    ("\\u0026", "&"),
    ("&#39;", "'"),
    ("&nbsp;", " "),
    ("&amp;", "&"),
    ("\xa0", " "),
)

_WHITESPACE_RE = re.compile(r"\s+")
_NUMBER_RE = re.compile(r"\d+")
_RECORD_RE = re.compile(r"([\d,]+)\s+players\s*\(on\s+(.+?)\)")
_RECORD_DATETIME_RE = re.compile(r"^(.+?)\s+(CEST|CET)$")
_BATTLEYE_SINCE_RE = re.compile(r"since (.+?)\.")
_TIME_LEFT_RE = re.compile(r"(\d+) (days?|hours?) left")


def sanitize(text: Optional[str]) -> str:
    """Trim, decode the handful of entities Tibia leaks into text, and
    collapse runs of whitespace into a single space."""
    if not text:
        return ""
    for old, new in _REPLACEMENTS:
        text = text.replace(old, new)
    return _WHITESPACE_RE.sub(" ", text).strip()


def parse_int(text: str) -> int:
    """Parse an integer that may use `,` as a thousands separator."""
    cleaned = sanitize(text).replace(",", "")
    if not cleaned.isdecimal():
        raise UnexpectedPageContent(f"Expected an integer, got {text!r}")
    return int(cleaned)


def first_number(text: str) -> int:
    match = _NUMBER_RE.search(text)
    if match is None:
        raise UnexpectedPageContent(f"No number found in {text!r}")
    return int(match.group(0))


def parse_record_datetime(text: str) -> datetime:
    """Parse `"Nov 28 2007, 19:26:00 CET"` into an aware UTC datetime.

    Only the CET and CEST labels are accepted; each maps to a fixed offset.
    """
    match = _RECORD_DATETIME_RE.match(sanitize(text))
    if match is None:
        raise UnexpectedPageContent(f"Missing CET/CEST label in {text!r}")
    local, label = match.groups()
    try:
        naive = datetime.strptime(local, "%b %d %Y, %H:%M:%S")
    except ValueError as e:
        raise UnexpectedPageContent(f"Invalid record date {text!r}") from e
    return naive.replace(tzinfo=TIMEZONE_OFFSETS[label]).astimezone(timezone.utc)


def parse_record(text: str) -> Tuple[int, datetime]:
    """Parse `"<n> players (on <date>)"` into the count and its UTC date."""
    cleaned = sanitize(text)
    match = _RECORD_RE.search(cleaned)
    if match is None:
        raise UnexpectedPageContent(f"Online record not found in {cleaned!r}")
    return parse_int(match.group(1)), parse_record_datetime(match.group(2))


def parse_calendar_date(text: str) -> date:
    """Parse a bare calendar date such as `"August 29, 2017"`."""
    cleaned = sanitize(text)
    try:
        return datetime.strptime(cleaned, "%B %d, %Y").date()
    except ValueError as e:
        raise UnexpectedPageContent(f"Invalid date {text!r}") from e


def parse_creation_date(text: str) -> str:
    """Return the `YYYY-MM` form of a world creation date.

    Accepts both `"10/20"` (month/two-digit year) and `"November 1997"`.
    """
    cleaned = sanitize(text)
    for fmt in ("%m/%y", "%B %Y"):
        try:
            return datetime.strptime(cleaned, fmt).strftime("%Y-%m")
        except ValueError:
            continue
    raise UnexpectedPageContent(f"Invalid creation date {text!r}")


def parse_tibia_time(text: str) -> str:
    """Parse any of the date forms found on the site into an ISO string.

    Record timestamps become full UTC timestamps, BattlEye dates stay bare
    calendar dates and creation dates keep year and month only.
    """
    cleaned = sanitize(text)
    if _RECORD_DATETIME_RE.match(cleaned):
        return parse_record_datetime(cleaned).isoformat()
    try:
        return parse_calendar_date(cleaned).isoformat()
    except UnexpectedPageContent:
        return parse_creation_date(cleaned)


def parse_paid_until(text: str) -> date:
    cleaned = sanitize(text)
    for fmt in ("%b %d %Y", "%B %d %Y"):
        try:
            return datetime.strptime(cleaned, fmt).date()
        except ValueError:
            continue
    raise UnexpectedPageContent(f"Invalid paid until date {text!r}")


def parse_battleye_status(text: str) -> Tuple[bool, Optional[date]]:
    """Read a BattlEye tooltip or status text.

    "release" means protected from the start, "since <date>." means
    protected from that date on; anything else means unprotected.
    """
    cleaned = sanitize(text)
    if "release" in cleaned:
        return True, None
    match = _BATTLEYE_SINCE_RE.search(cleaned)
    if match is not None:
        return True, parse_calendar_date(match.group(1))
    return False, None


def lookup(vocabulary: Mapping[str, T], text: str, what: str) -> T:
    """Map page text onto a closed vocabulary, failing on anything else."""
    key = sanitize(text)
    try:
        return vocabulary[key]
    except KeyError:
        raise UnexpectedPageContent(f"Unexpected {what}: {key!r}") from None


def parse_time_left(text: str) -> Tuple[int, str]:
    """Extract `(amount, unit)` from `"... 2 days left"`."""
    match = _TIME_LEFT_RE.search(text)
    if match is None:
        raise UnexpectedPageContent(f"Time left not found in {text!r}")
    return int(match.group(1)), match.group(2)


def resolve_expiry(amount: int, unit: str, now: Optional[datetime] = None) -> datetime:
    """Turn a coarse "N days/hours left" countdown into a UTC timestamp.

    Day countdowns end at server save on the same day plus N days; hour
    countdowns end at the next full hour plus N hours.
    """
    now = now or datetime.now(timezone.utc)
    anchor = now.astimezone(timezone.utc).replace(minute=0, second=0, microsecond=0)
    if unit in ("day", "days"):
        return anchor.replace(hour=SERVER_SAVE_HOUR) + timedelta(days=amount)
    if unit in ("hour", "hours"):
        return anchor + timedelta(hours=1 + amount)
    raise UnexpectedPageContent(f"Unknown time unit {unit!r}")
