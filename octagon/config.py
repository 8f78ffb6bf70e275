from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv


APP_NAME = "octagon"
APP_VERSION = "0.1.0"


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().casefold() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return list(default)
    return [s.strip() for s in raw.split(",") if s.strip()]


@dataclass(frozen=True, slots=True)
class Settings:
    """Runtime settings for the arena server.

    Timings are in seconds except where noted; the defaults match the pacing
    existing bot clients were written against.
    """

    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"
    allowed_origins: list[str] = field(default_factory=lambda: ["*"])

    # Fight rules.
    max_rounds: int = 3
    round_seconds: int = 300
    max_health: int = 100
    max_stamina: int = 100
    stamina_regen_per_tick: int = 2
    min_action_stamina: int = 10

    # Session timeline.
    tick_interval: float = 1.0
    entrance_delay: float = 1.0
    entrance_duration: float = 5.0
    round_break_seconds: float = 3.0
    retention_seconds: float = 10.0

    # Put both fighters back in the queue when their fight ends.
    requeue_after_fight: bool = True

    def validate(self) -> None:
        if self.max_rounds <= 0:
            raise ValueError("max_rounds must be positive")
        if self.round_seconds <= 0:
            raise ValueError("round_seconds must be positive")
        if self.max_health <= 0 or self.max_stamina <= 0:
            raise ValueError("health and stamina caps must be positive")
        if self.tick_interval <= 0:
            raise ValueError("tick_interval must be positive")
        for name in ("entrance_delay", "entrance_duration", "round_break_seconds", "retention_seconds"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative")

    @property
    def entrance_duration_ms(self) -> int:
        return int(self.entrance_duration * 1000)


def load_settings() -> Settings:
    # Real environment wins over .env.
    load_dotenv(override=False)

    settings = Settings(
        host=os.environ.get("OCTAGON_HOST", "0.0.0.0"),
        port=_env_int("OCTAGON_PORT", _env_int("PORT", 3000)),
        log_level=os.environ.get("OCTAGON_LOG_LEVEL", "INFO").upper(),
        allowed_origins=_env_list("OCTAGON_ALLOWED_ORIGINS", ["*"]),
        round_seconds=_env_int("OCTAGON_ROUND_SECONDS", 300),
        requeue_after_fight=_env_bool("OCTAGON_REQUEUE_AFTER_FIGHT", True),
    )
    settings.validate()
    return settings
