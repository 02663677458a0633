"""Extractors for the Tibia community pages.

Each `extract_*` function takes the raw page text returned by the fetcher
and produces a domain record. Extraction is synchronous and never touches
the network; every failure surfaces as a `TibiaError` subclass.
"""

import logging
import re
from enum import Enum
from typing import Any, Dict, List, Optional

from bs4 import Tag
from pydantic import ValidationError

from .errors import NotFound, UnexpectedPageContent
from .models import (
    CharacterInfo,
    GameWorldType,
    Guild,
    GuildMembership,
    House,
    KilledAmounts,
    KillStatistics,
    Location,
    Player,
    PvpType,
    RaceKillStatistics,
    Sex,
    TransferType,
    Vocation,
    World,
    WorldDetails,
    WorldsOverview,
)
from .page import cell_text, chunked, classify_page
from .parsers import (
    lookup,
    parse_battleye_status,
    parse_creation_date,
    parse_int,
    parse_paid_until,
    parse_record,
    parse_record_datetime,
    sanitize,
)

logger = logging.getLogger("app.scraper")

LOCATIONS = {
    "Europe": Location.europe,
    "North America": Location.north_america,
    "South America": Location.south_america,
    "Oceania": Location.oceania,
}

PVP_TYPES = {
    "Open PvP": PvpType.open,
    "Optional PvP": PvpType.optional,
    "Hardcore PvP": PvpType.hardcore,
    "Retro Open PvP": PvpType.retro_open,
    "Retro Hardcore PvP": PvpType.retro_hardcore,
}

VOCATIONS = {
    "Knight": Vocation.knight,
    "Elite Knight": Vocation.elite_knight,
    "Sorcerer": Vocation.sorcerer,
    "Master Sorcerer": Vocation.master_sorcerer,
    "Druid": Vocation.druid,
    "Elder Druid": Vocation.elder_druid,
    "Paladin": Vocation.paladin,
    "Royal Paladin": Vocation.royal_paladin,
}

TRANSFER_TYPES = {
    "blocked": TransferType.blocked,
    "locked": TransferType.locked,
}

GAME_WORLD_TYPES = {
    "regular": GameWorldType.regular,
    "experimental": GameWorldType.experimental,
}

ONLINE_STATUSES = {"Online": True, "Offline": False}

SEXES = {"male": Sex.male, "female": Sex.female}

ACCOUNT_STATUSES = {"Premium Account": True, "Free Account": False}

ROW_CELLS = "tr.Odd > td, tr.Even > td"

_HOUSE_ID_RE = re.compile(r"houseid=(\d+)")
_HOUSE_PAID_RE = re.compile(r"\((.*?)\) is paid until (.*)")
_TITLE_RE = re.compile(r"^(.*?) \(\d+.*\)$")
_GUILD_ROLE_RE = re.compile(r"^(.*?) of the")


class WorldInfoHeader(str, Enum):
    status = "Status:"
    players_online = "Players Online:"
    online_record = "Online Record:"
    creation_date = "Creation Date:"
    location = "Location:"
    pvp_type = "PvP Type:"
    world_quest_titles = "World Quest Titles:"
    battl_eye = "BattlEye Status:"
    transfer_type = "Transfer Type:"
    premium_type = "Premium Type:"
    game_world_type = "Game World Type:"


class CharacterHeader(str, Enum):
    name = "Name:"
    former_names = "Former Names:"
    title = "Title:"
    sex = "Sex:"
    vocation = "Vocation:"
    level = "Level:"
    achievement_points = "Achievement Points:"
    world = "World:"
    residence = "Residence:"
    house = "House:"
    guild_membership = "Guild Membership:"
    last_login = "Last Login:"
    comment = "Comment:"
    account_status = "Account Status:"


def _header(enum_cls, cell: Tag):
    text = cell_text(cell)
    try:
        return enum_cls(text)
    except ValueError:
        raise UnexpectedPageContent(f"Unexpected header {text!r}") from None


def _first_text(cell: Tag) -> str:
    for text in cell.stripped_strings:
        return sanitize(text)
    raise UnexpectedPageContent("Expected cell to contain text")


def _build(model, fields: Dict[str, Any]):
    try:
        return model(**fields)
    except ValidationError as e:
        raise UnexpectedPageContent(f"Incomplete {model.__name__}: {e}") from e


def _optional_vocation(text: str) -> Optional[Vocation]:
    if sanitize(text) == "None":
        return None
    return lookup(VOCATIONS, text, "vocation")


def extract_towns(html: str) -> List[str]:
    """Town names from the houses search form, in page order."""
    page = classify_page(html)
    tables = page.select("#houses table.TableContent")
    if not tables:
        raise UnexpectedPageContent("Towns table not found")

    towns_cell = tables[-1].select_one('tr > td[valign="top"]')
    if towns_cell is None:
        raise UnexpectedPageContent("Towns row not found")

    towns = []
    for label in towns_cell.select("label"):
        name = sanitize(label.get_text())
        if name:
            towns.append(name)
    return towns


def _extract_world_row(cells: List[Tag]) -> World:
    name_cell, online_cell, location_cell, pvp_cell, battl_eye_cell, info_cell = cells

    link = name_cell.select_one("a")
    if link is None:
        raise UnexpectedPageContent("World name not found")

    indicator = battl_eye_cell.select_one(".HelperDivIndicator")
    tooltip = indicator.get("onmouseover") if indicator is not None else None
    battl_eye, battl_eye_date = parse_battleye_status(tooltip or "")

    # Tags in this cell are lower case words separated by commas
    info = cell_text(info_cell)
    if "blocked" in info:
        transfer_type = TransferType.blocked
    elif "locked" in info:
        transfer_type = TransferType.locked
    else:
        transfer_type = None

    return World(
        name=sanitize(link.get_text()).capitalize(),
        players_online_count=parse_int(cell_text(online_cell)),
        location=lookup(LOCATIONS, cell_text(location_cell), "location"),
        pvp_type=lookup(PVP_TYPES, cell_text(pvp_cell), "pvp type"),
        battl_eye=battl_eye,
        battl_eye_date=battl_eye_date,
        premium_required="premium" in info,
        transfer_type=transfer_type,
        game_world_type=(
            GameWorldType.experimental
            if "experimental" in info
            else GameWorldType.regular
        ),
    )


def extract_worlds(html: str) -> WorldsOverview:
    page = classify_page(html)
    tables = page.select(".TableContent")
    if len(tables) < 3:
        raise UnexpectedPageContent("Worlds tables not found")
    record_table, worlds_table = tables[0], tables[2]

    record_players, record_date = parse_record(cell_text(record_table))
    worlds = [_extract_world_row(row) for row in chunked(worlds_table.select(ROW_CELLS), 6)]

    return WorldsOverview(
        players_online_total=sum(w.players_online_count for w in worlds),
        record_players=record_players,
        record_date=record_date,
        worlds=worlds,
    )


def extract_world_details(html: str, world_name: str) -> WorldDetails:
    page = classify_page(html)
    containers = page.select(".InnerTableContainer")
    # Unknown worlds render the search form alone
    if len(containers) <= 1:
        logger.info("World %r not found", world_name)
        raise NotFound(f"World {world_name!r} not found")

    fields: Dict[str, Any] = {
        "name": world_name,
        "is_online": True,
        "players_online_count": 0,
        "world_quest_titles": [],
        "battl_eye": False,
        "battl_eye_date": None,
        "transfer_type": None,
        "premium_required": False,
        "game_world_type": GameWorldType.regular,
    }

    for header_cell, value in chunked(containers[1].select("td"), 2):
        header = _header(WorldInfoHeader, header_cell)
        text = cell_text(value)
        if header is WorldInfoHeader.status:
            fields["is_online"] = lookup(ONLINE_STATUSES, text, "online status")
        elif header is WorldInfoHeader.players_online:
            fields["players_online_count"] = parse_int(text)
        elif header is WorldInfoHeader.online_record:
            record, record_date = parse_record(text)
            fields["players_online_record"] = record
            fields["players_online_record_date"] = record_date
        elif header is WorldInfoHeader.creation_date:
            fields["creation_date"] = parse_creation_date(text)
        elif header is WorldInfoHeader.location:
            fields["location"] = lookup(LOCATIONS, text, "location")
        elif header is WorldInfoHeader.pvp_type:
            fields["pvp_type"] = lookup(PVP_TYPES, text, "pvp type")
        elif header is WorldInfoHeader.world_quest_titles:
            fields["world_quest_titles"] = [cell_text(a) for a in value.select("a")]
        elif header is WorldInfoHeader.battl_eye:
            fields["battl_eye"], fields["battl_eye_date"] = parse_battleye_status(text)
        elif header is WorldInfoHeader.transfer_type:
            fields["transfer_type"] = lookup(TRANSFER_TYPES, text.lower(), "transfer type")
        elif header is WorldInfoHeader.premium_type:
            fields["premium_required"] = text == "premium"
        elif header is WorldInfoHeader.game_world_type:
            fields["game_world_type"] = lookup(
                GAME_WORLD_TYPES, text.lower(), "game world type"
            )
        else:
            raise UnexpectedPageContent(f"Unhandled header {header.value!r}")

    players = []
    if fields["players_online_count"] > 0:
        if len(containers) < 3:
            raise UnexpectedPageContent("Players online table not found")
        for name, level, vocation in chunked(containers[2].select(ROW_CELLS), 3):
            players.append(
                _build(
                    Player,
                    {
                        "name": _first_text(name),
                        "level": parse_int(cell_text(level)),
                        "vocation": _optional_vocation(cell_text(vocation)),
                    },
                )
            )
    fields["players_online"] = players

    return _build(WorldDetails, fields)


def extract_guilds(html: str, world_name: str) -> List[Guild]:
    """Active guilds followed by guilds still in formation."""
    page = classify_page(html)
    tables = page.select(".TableContainer table.TableContent")
    if len(tables) != 2:
        logger.info("Guilds for world %r not found", world_name)
        raise NotFound(f"World {world_name!r} not found")

    guilds = []
    for index, table in enumerate(tables):
        # first row is the column header
        for row in table.select("tr")[1:]:
            cells = row.find_all("td")
            if len(cells) < 2:
                raise UnexpectedPageContent("Guild row does not contain logo and name")

            img = cells[0].select_one("img")
            texts = [sanitize(t) for t in cells[1].stripped_strings]
            if not texts:
                raise UnexpectedPageContent("Guild name not found")

            guilds.append(
                Guild(
                    logo=img.get("src") if img is not None else None,
                    name=texts[0],
                    description=texts[1] if len(texts) > 1 else None,
                    active=index == 0,
                )
            )
    return guilds


def _killed(killed_players: Tag, killed_by_players: Tag) -> KilledAmounts:
    return KilledAmounts(
        killed_players=parse_int(cell_text(killed_players)),
        killed_by_players=parse_int(cell_text(killed_by_players)),
    )


def extract_kill_statistics(html: str, world_name: str) -> KillStatistics:
    page = classify_page(html)
    cells = page.select("#KillStatisticsTable tr.DataRow > td")
    if not cells:
        logger.info("Kill statistics for world %r not found", world_name)
        raise NotFound(f"World {world_name!r} not found")

    empty = KilledAmounts(killed_players=0, killed_by_players=0)
    totals = {"total_last_day": empty, "total_last_week": empty}
    races = []
    for label, kp_day, kbp_day, kp_week, kbp_week in chunked(cells, 5):
        race = cell_text(label)
        last_day = _killed(kp_day, kbp_day)
        last_week = _killed(kp_week, kbp_week)
        if race == "Total":
            totals["total_last_day"] = last_day
            totals["total_last_week"] = last_week
            continue
        races.append(RaceKillStatistics(race=race, last_day=last_day, last_week=last_week))

    return KillStatistics(races=races, **totals)


def _extract_house(value: Tag) -> House:
    link = value.select_one("a[href]")
    if link is None:
        raise UnexpectedPageContent("House link not found")

    id_match = _HOUSE_ID_RE.search(link["href"])
    if id_match is None:
        raise UnexpectedPageContent(f"House id not found in {link['href']!r}")

    # House names may carry parentheses of their own
    name = cell_text(link)
    text = cell_text(value)
    if text.startswith(name):
        text = text[len(name) :]
    paid_match = _HOUSE_PAID_RE.search(text)
    if paid_match is None:
        raise UnexpectedPageContent(f"Could not parse house {text!r}")

    return House(
        id=int(id_match.group(1)),
        name=name,
        paid_until=parse_paid_until(paid_match.group(2)),
        town=sanitize(paid_match.group(1)),
    )


def _extract_guild_membership(value: Tag) -> GuildMembership:
    link = value.select_one("a")
    if link is None:
        raise UnexpectedPageContent("Guild name not found")

    text = cell_text(value)
    role_match = _GUILD_ROLE_RE.search(text)
    if role_match is None:
        raise UnexpectedPageContent(f"Could not parse guild role {text!r}")

    return GuildMembership(role=sanitize(role_match.group(1)), guild_name=cell_text(link))


def extract_character(html: str, character_name: str) -> CharacterInfo:
    page = classify_page(html)
    tables = page.select(".TableContainer table.TableContent")
    # Unknown characters still answer 200, just without the info table
    if not tables:
        logger.info("Character %r not found", character_name)
        raise NotFound(f"Character {character_name!r} not found")

    fields: Dict[str, Any] = {}
    houses: List[House] = []
    for row in tables[0].select("tr"):
        cells = row.find_all("td", recursive=False)
        if len(cells) != 2:
            raise UnexpectedPageContent("Expected character info rows to contain 2 columns")
        key, value = cells
        header = _header(CharacterHeader, key)

        if header is CharacterHeader.name:
            fields["name"] = _first_text(value)
        elif header is CharacterHeader.former_names:
            fields["former_names"] = [
                sanitize(name) for name in _first_text(value).split(",") if sanitize(name)
            ]
        elif header is CharacterHeader.title:
            text = _first_text(value)
            match = _TITLE_RE.match(text)
            if match is None:
                raise UnexpectedPageContent(f"Could not parse title {text!r}")
            title = sanitize(match.group(1))
            fields["title"] = None if title == "None" else title
        elif header is CharacterHeader.sex:
            fields["sex"] = lookup(SEXES, _first_text(value), "sex")
        elif header is CharacterHeader.vocation:
            fields["vocation"] = _optional_vocation(_first_text(value))
        elif header is CharacterHeader.level:
            fields["level"] = parse_int(_first_text(value))
        elif header is CharacterHeader.achievement_points:
            fields["achievement_points"] = parse_int(_first_text(value))
        elif header is CharacterHeader.world:
            fields["world"] = _first_text(value)
        elif header is CharacterHeader.residence:
            fields["spawn_point"] = _first_text(value)
        elif header is CharacterHeader.house:
            houses.append(_extract_house(value))
        elif header is CharacterHeader.guild_membership:
            fields["guild"] = _extract_guild_membership(value)
        elif header is CharacterHeader.last_login:
            text = cell_text(value)
            if text.lower() != "never logged in":
                fields["last_login"] = parse_record_datetime(text)
        elif header is CharacterHeader.comment:
            fields["comment"] = cell_text(value) or None
        elif header is CharacterHeader.account_status:
            fields["has_premium"] = lookup(ACCOUNT_STATUSES, _first_text(value), "account status")
        else:
            raise UnexpectedPageContent(f"Unhandled header {header.value!r}")

    if houses:
        fields["houses"] = houses
    return _build(CharacterInfo, fields)
