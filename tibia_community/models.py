"""Domain records returned by the extractors and serialized by the routes.

All records are frozen Pydantic models; JSON field names are camelCase.
"""

from datetime import date, datetime
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class Record(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )


class BattlEyeMixin(BaseModel):
    @model_validator(mode="after")
    def _date_requires_battl_eye(self):
        if self.battl_eye_date is not None and not self.battl_eye:
            raise ValueError("battl_eye_date is only set when battl_eye is enabled")
        return self


class Location(str, Enum):
    europe = "europe"
    north_america = "northAmerica"
    south_america = "southAmerica"
    oceania = "oceania"


class PvpType(str, Enum):
    open = "open"
    optional = "optional"
    hardcore = "hardcore"
    retro_open = "retroOpen"
    retro_hardcore = "retroHardcore"


class TransferType(str, Enum):
    blocked = "blocked"
    locked = "locked"


class GameWorldType(str, Enum):
    regular = "regular"
    experimental = "experimental"


class Vocation(str, Enum):
    knight = "knight"
    elite_knight = "eliteKnight"
    sorcerer = "sorcerer"
    master_sorcerer = "masterSorcerer"
    druid = "druid"
    elder_druid = "elderDruid"
    paladin = "paladin"
    royal_paladin = "royalPaladin"


class Sex(str, Enum):
    male = "male"
    female = "female"


class ResidenceType(str, Enum):
    house = "house"
    guildhall = "guildhall"

    @property
    def subtopic_type(self) -> str:
        """Value of the upstream `type` query parameter."""
        return "houses" if self is ResidenceType.house else "guildhalls"


class World(Record, BattlEyeMixin):
    name: str
    players_online_count: int
    location: Location
    pvp_type: PvpType
    battl_eye: bool
    # Only set when battl_eye is true
    battl_eye_date: Optional[date] = None
    premium_required: bool
    transfer_type: Optional[TransferType] = None
    game_world_type: GameWorldType


class WorldsOverview(Record):
    players_online_total: int
    record_players: int
    record_date: datetime
    worlds: List[World]


class Player(Record):
    name: str
    level: int = Field(gt=0)
    vocation: Optional[Vocation] = None


class WorldDetails(Record, BattlEyeMixin):
    name: str
    is_online: bool
    players_online_count: int
    players_online_record: int
    players_online_record_date: datetime
    # Year and month only, e.g. "1997-01"
    creation_date: str
    location: Location
    pvp_type: PvpType
    world_quest_titles: List[str]
    battl_eye: bool
    battl_eye_date: Optional[date] = None
    game_world_type: GameWorldType
    transfer_type: Optional[TransferType] = None
    premium_required: bool
    players_online: List[Player]


class Guild(Record):
    logo: Optional[str] = None
    name: str
    description: Optional[str] = None
    # False while the guild is still in formation
    active: bool


class KilledAmounts(Record):
    killed_players: int
    killed_by_players: int


class RaceKillStatistics(Record):
    race: str
    last_day: KilledAmounts
    last_week: KilledAmounts


class KillStatistics(Record):
    total_last_day: KilledAmounts
    total_last_week: KilledAmounts
    races: List[RaceKillStatistics]


class Rented(Record):
    type: Literal["rented"] = "rented"


class AuctionNoBid(Record):
    type: Literal["auctionNoBid"] = "auctionNoBid"


class AuctionWithBid(Record):
    type: Literal["auctionWithBid"] = "auctionWithBid"
    bid: int
    expiry_time: datetime


class AuctionFinished(Record):
    type: Literal["auctionFinished"] = "auctionFinished"
    bid: int


ResidenceStatus = Annotated[
    Union[Rented, AuctionNoBid, AuctionWithBid, AuctionFinished],
    Field(discriminator="type"),
]


class Residence(Record):
    id: int
    town: str
    residence_type: ResidenceType = Field(alias="type")
    name: str
    size: int
    rent: int
    status: ResidenceStatus


class House(Record):
    id: int
    name: str
    paid_until: date
    town: str


class GuildMembership(Record):
    role: str
    guild_name: str


class CharacterInfo(Record):
    name: str
    former_names: Optional[List[str]] = None
    title: Optional[str] = None
    sex: Sex
    vocation: Optional[Vocation] = None
    level: int
    achievement_points: int
    world: str
    spawn_point: str
    houses: Optional[List[House]] = None
    guild: Optional[GuildMembership] = None
    last_login: Optional[datetime] = None
    comment: Optional[str] = None
    has_premium: bool
