"""Wire protocol: inbound decoding and outbound message builders.

Inbound messages decode into a closed set of models (`RegisterBot`,
`FighterAction`, `GetStatus`). A message with an unrecognized `type` decodes to
`None` and callers treat it as a no-op. Anything else that fails to decode is a
`ProtocolError`.

Outbound builders return plain JSON-serializable dicts.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from pydantic import TypeAdapter, ValidationError

from octagon.api.models import INBOUND_TYPES, FighterRole, InboundMessage, MatchMethod
from octagon.errors import ProtocolError

if TYPE_CHECKING:
    from octagon.core.combat import CombatResult
    from octagon.session import Agent, FightSession


SERVER_NAME = "Octagon Arena"

_INBOUND: TypeAdapter[InboundMessage] = TypeAdapter(InboundMessage)

# Corner positions in arena units; renderers place the fighters here for the walkout.
_POSITIONS: dict[FighterRole, dict[str, int]] = {
    FighterRole.fighter1: {"x": -5, "z": 20},
    FighterRole.fighter2: {"x": 5, "z": 20},
}


def decode_message(raw: str | bytes) -> InboundMessage | None:
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise ProtocolError(f"Invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ProtocolError("Message must be a JSON object")

    msg_type = data.get("type")
    if msg_type is not None and not isinstance(msg_type, str):
        raise ProtocolError(f"Message type must be a string, got {type(msg_type).__name__}")
    if msg_type not in INBOUND_TYPES:
        return None

    try:
        return _INBOUND.validate_python(data)
    except ValidationError as e:
        raise ProtocolError(f"Invalid '{msg_type}' message: {e.error_count()} validation error(s)") from e


# ---- outbound ----


def connected(*, waiting: int) -> dict[str, object]:
    return {
        "type": "connected",
        "message": f"Connected to {SERVER_NAME} Server",
        "lobby": f"{waiting} bots waiting",
    }


def registered(*, agent: "Agent", message: str | None = None) -> dict[str, object]:
    return {
        "type": "registered",
        "botId": agent.id,
        "message": message or f"Welcome {agent.name}! Looking for opponent...",
    }


def match_found(*, session: "FightSession", role: FighterRole) -> dict[str, object]:
    opponent = session.fighter2 if role == FighterRole.fighter1 else session.fighter1
    return {
        "type": "match_found",
        "gameId": session.id,
        "opponent": opponent.name,
        "role": role.value,
        "position": dict(_POSITIONS[role]),
    }


def entrance_start(*, duration_ms: int) -> dict[str, object]:
    return {"type": "entrance_start", "duration": duration_ms}


def fight_start(*, round_number: int, time: int) -> dict[str, object]:
    return {"type": "fight_start", "round": round_number, "time": time}


def timer_tick(*, time: int) -> dict[str, object]:
    return {"type": "timer_tick", "time": time}


def action_result(*, session: "FightSession", actor: "Agent", result: "CombatResult") -> dict[str, object]:
    return {
        "type": "action_result",
        "actor": actor.name,
        "action": result.action,
        "hit": result.hit,
        "damage": result.damage,
        "health1": session.health1,
        "health2": session.health2,
        "stamina1": session.stamina1,
        "stamina2": session.stamina2,
    }


def round_end(*, completed_round: int, next_round: int) -> dict[str, object]:
    return {"type": "round_end", "round": completed_round, "nextRound": next_round}


def fight_end(*, session: "FightSession") -> dict[str, object]:
    winner = session.winner
    assert winner is not None and session.method is not None
    return {
        "type": "fight_end",
        "winner": winner.name,
        "winnerId": winner.id,
        "method": session.method.value,
        "health1": session.health1,
        "health2": session.health2,
    }


def opponent_disconnected() -> dict[str, object]:
    return {
        "type": "opponent_disconnected",
        "message": "Opponent disconnected. You win by forfeit!",
    }


def status(*, waiting: list["Agent"], active: int) -> dict[str, object]:
    return {
        "type": "status",
        "waiting": len(waiting),
        "active": active,
        "bots": [{"id": a.id, "name": a.name, "wins": a.wins} for a in waiting],
    }


def error(message: str) -> dict[str, object]:
    return {"type": "error", "message": message}


def describe_method(method: MatchMethod) -> str:
    return {
        MatchMethod.ko: "knockout",
        MatchMethod.decision: "decision",
        MatchMethod.forfeit: "forfeit",
    }[method]


def summarize(payload: dict[str, Any]) -> str:
    """Short form of a payload for log lines."""

    text = json.dumps(payload, separators=(",", ":"), default=str)
    return text if len(text) <= 120 else text[:117] + "..."
