from __future__ import annotations

import random

import pytest

from conftest import ScriptedRandom
from octagon.api.models import FighterStats
from octagon.core.combat import ACTIONS, hit_chance, lookup_action, resolve_action, strike_damage
from octagon.errors import InsufficientResource, InsufficientStamina


def test_action_catalogue() -> None:
    table = {name: (spec.stamina_cost, spec.base_damage) for name, spec in ACTIONS.items()}
    assert table == {
        "jab": (5, 4),
        "cross": (8, 8),
        "hook": (10, 12),
        "uppercut": (12, 15),
        "kick": (15, 14),
        "takedown": (20, 8),
        "block": (3, 0),
    }


def test_unknown_action_falls_back_to_jab_but_keeps_submitted_name() -> None:
    key, spec = lookup_action("spinkick")
    assert key == "jab"
    assert spec == ACTIONS["jab"]

    result = resolve_action("spinkick", FighterStats(), 100, rng=ScriptedRandom([0.0]))
    assert result.action == "spinkick"
    assert result.resolved_action == "jab"
    assert result.stamina_cost == 5
    assert result.damage == 3  # floor(4 * 80 / 100)


def test_damage_scales_with_power_and_floors() -> None:
    assert strike_damage(15, FighterStats(power=100)) == 15
    assert strike_damage(15, FighterStats(power=80)) == 12
    assert strike_damage(4, FighterStats(power=80)) == 3
    assert strike_damage(14, FighterStats(power=0)) == 0


def test_hit_chance_never_reaches_certainty() -> None:
    assert hit_chance(FighterStats(power=0, speed=0)) == pytest.approx(0.5)
    assert hit_chance(FighterStats(power=100, speed=100)) == pytest.approx(0.8)
    assert hit_chance(FighterStats()) == pytest.approx(0.74)


def test_miss_costs_stamina_but_deals_nothing() -> None:
    result = resolve_action("hook", FighterStats(), 50, rng=ScriptedRandom([0.99]))
    assert result.hit is False
    assert result.damage == 0
    assert result.stamina_cost == 10


def test_block_never_damages() -> None:
    result = resolve_action("block", FighterStats(power=100), 50, rng=ScriptedRandom([0.0]))
    assert result.hit is True
    assert result.damage == 0
    assert result.stamina_cost == 3


def test_stamina_gate_rejects_below_minimum() -> None:
    rng = ScriptedRandom([0.0])
    with pytest.raises(InsufficientStamina) as exc:
        resolve_action("jab", FighterStats(), 9, rng=rng)

    assert isinstance(exc.value, InsufficientResource)
    assert str(exc.value) == "Not enough stamina!"
    assert exc.value.stamina == 9
    assert exc.value.required == 10
    # No draw was consumed.
    assert rng.random() == 0.0


def test_stamina_gate_admits_exactly_the_minimum() -> None:
    result = resolve_action("takedown", FighterStats(), 10, rng=ScriptedRandom([0.0]))
    # Cost may exceed what's left; the caller clamps at zero.
    assert result.stamina_cost == 20


def test_same_seed_same_outcomes() -> None:
    a, b = random.Random(1234), random.Random(1234)
    stats = FighterStats(power=60, speed=90)
    for name in ["jab", "cross", "kick", "uppercut", "hook"] * 4:
        assert resolve_action(name, stats, 100, rng=a) == resolve_action(name, stats, 100, rng=b)
