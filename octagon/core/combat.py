from __future__ import annotations

import math
import random
from dataclasses import dataclass

from octagon.api.models import FighterStats
from octagon.errors import InsufficientStamina


HIT_BASE = 0.5
HIT_STAT_BONUS = 0.3
MIN_ACTION_STAMINA = 10


@dataclass(frozen=True, slots=True)
class ActionSpec:
    stamina_cost: int
    base_damage: int


ACTIONS: dict[str, ActionSpec] = {
    "jab": ActionSpec(stamina_cost=5, base_damage=4),
    "cross": ActionSpec(stamina_cost=8, base_damage=8),
    "hook": ActionSpec(stamina_cost=10, base_damage=12),
    "uppercut": ActionSpec(stamina_cost=12, base_damage=15),
    "kick": ActionSpec(stamina_cost=15, base_damage=14),
    "takedown": ActionSpec(stamina_cost=20, base_damage=8),
    "block": ActionSpec(stamina_cost=3, base_damage=0),
}

# Anything outside the catalogue is thrown as a jab. The caller still reports the submitted name.
FALLBACK_ACTION = "jab"


@dataclass(frozen=True, slots=True)
class CombatResult:
    action: str
    resolved_action: str
    hit: bool
    stamina_cost: int
    damage: int


def clamp(x: int, lo: int, hi: int) -> int:
    return max(lo, min(hi, x))


def lookup_action(action: str) -> tuple[str, ActionSpec]:
    key = action if action in ACTIONS else FALLBACK_ACTION
    return key, ACTIONS[key]


def hit_chance(stats: FighterStats) -> float:
    # Tops out at 0.8 with maxed stats, so a strike can always miss.
    accuracy = (stats.power + stats.speed) / 200
    return HIT_BASE + accuracy * HIT_STAT_BONUS


def strike_damage(base_damage: int, stats: FighterStats) -> int:
    return math.floor(base_damage * stats.power / 100)


def resolve_action(
    action: str,
    stats: FighterStats,
    stamina: int,
    *,
    rng: random.Random,
    min_stamina: int = MIN_ACTION_STAMINA,
) -> CombatResult:
    """Resolve one submitted action for the acting fighter.

    Draws exactly one number from `rng`. Nothing is mutated: the caller applies
    `stamina_cost` to the actor and `damage` to the opponent.
    """

    if stamina < min_stamina:
        raise InsufficientStamina(stamina=stamina, required=min_stamina)

    key, spec = lookup_action(action)
    hit = rng.random() < hit_chance(stats)
    damage = strike_damage(spec.base_damage, stats) if hit else 0
    return CombatResult(
        action=action,
        resolved_action=key,
        hit=hit,
        stamina_cost=spec.stamina_cost,
        damage=damage,
    )
