from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


DEFAULT_BOT_NAME = "Anonymous Bot"
DEFAULT_STAT = 80


class WireModel(BaseModel):
    """Base for anything that crosses the wire: camelCase out, either case in."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FightingStyle(StrEnum):
    striker = "striker"
    grappler = "grappler"
    brawler = "brawler"
    balanced = "balanced"
    technician = "technician"


class SessionState(StrEnum):
    entrance = "entrance"
    fighting = "fighting"
    round_break = "round_break"
    finished = "finished"


class FighterRole(StrEnum):
    fighter1 = "fighter1"
    fighter2 = "fighter2"


class MatchMethod(StrEnum):
    ko = "KO"
    decision = "DECISION"
    forfeit = "FORFEIT"


class StandingsOrder(StrEnum):
    wins = "wins"
    score = "score"


class FighterStats(WireModel):
    power: int = DEFAULT_STAT
    speed: int = DEFAULT_STAT
    defense: int = DEFAULT_STAT
    cardio: int = DEFAULT_STAT

    @field_validator("power", "speed", "defense", "cardio")
    @classmethod
    def _clamp(cls, v: int) -> int:
        return max(0, min(100, v))


# ---- inbound (agent -> server) ----


class RegisterBot(WireModel):
    type: Literal["register_bot"]
    name: str = DEFAULT_BOT_NAME
    style: FightingStyle = FightingStyle.balanced
    stats: FighterStats = Field(default_factory=FighterStats)

    @field_validator("name", mode="before")
    @classmethod
    def _default_name(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return DEFAULT_BOT_NAME
        return v.strip() if isinstance(v, str) else v

    @field_validator("style", mode="before")
    @classmethod
    def _normalize_style(cls, v: Any) -> FightingStyle:
        # Unknown or missing styles fight as balanced.
        try:
            return FightingStyle(str(v).strip().casefold())
        except ValueError:
            return FightingStyle.balanced

    @field_validator("stats", mode="before")
    @classmethod
    def _default_stats(cls, v: Any) -> Any:
        return {} if v is None else v


class FighterAction(WireModel):
    type: Literal["fighter_action"]
    game_id: str
    action: str


class GetStatus(WireModel):
    type: Literal["get_status"]


InboundMessage = Annotated[Union[RegisterBot, FighterAction, GetStatus], Field(discriminator="type")]

INBOUND_TYPES: frozenset[str] = frozenset({"register_bot", "fighter_action", "get_status"})


# ---- reporting ----


class StandingsEntry(WireModel):
    id: str
    name: str
    style: FightingStyle
    wins: int = 0
    losses: int = 0
    knockouts: int = 0
    win_rate: int = 0

    @property
    def score(self) -> int:
        return self.wins * 3 + self.knockouts


class MatchHistoryEntry(WireModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    match_id: str
    winner_id: str
    winner: str
    loser_id: str
    loser: str
    method: MatchMethod
    round: int
    time: datetime


class GlobalStats(WireModel):
    total_fights: int = 0
    total_kos: int = Field(default=0, alias="totalKOs")
    active_fights: int = 0


class HealthResponse(WireModel):
    status: str
    version: str
    waiting: int
    fighting: int
    uptime: float


class StatusResponse(WireModel):
    waiting: int
    fighting: int
    total_fights: int
    total_kos: int = Field(alias="totalKOs")
    leaderboard: list[StandingsEntry]


class LeaderboardResponse(WireModel):
    leaderboard: list[StandingsEntry]
    stats: GlobalStats


class LiveFight(WireModel):
    id: str
    fighter1: str
    fighter2: str
    state: SessionState
    round: int
    time: int
    health1: int
    health2: int


class LiveResponse(WireModel):
    fights: list[LiveFight]


class HistoryResponse(WireModel):
    matches: list[MatchHistoryEntry]
