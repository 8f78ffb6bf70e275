from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from statemachine import State, StateMachine

from octagon.api.models import SessionState

if TYPE_CHECKING:
    from octagon.session import FightSession


@dataclass(frozen=True, slots=True)
class AppliedUpdate:
    """Result of applying one mutation to a session.

    - `state_changed`: if the session's authoritative state mutated.
    - `outbox`: messages to broadcast to both participants, in order.
    - `finished`: this update moved the session to finished.
    """

    state_changed: bool
    outbox: list[dict[str, object]] = field(default_factory=list)
    finished: bool = False


class SessionFSM(StateMachine):
    """FSM wrapper around FightSession.

    - phases: entrance -> fighting <-> round_break -> finished
    - finished is reachable from every other phase (KO, decision, forfeit) and only once.
    - mutations are applied by the session; the FSM only guards transitions.
    """

    entrance = State(SessionState.entrance.value, value=SessionState.entrance.value, initial=True)
    fighting = State(SessionState.fighting.value, value=SessionState.fighting.value)
    round_break = State(SessionState.round_break.value, value=SessionState.round_break.value)
    finished = State(SessionState.finished.value, value=SessionState.finished.value, final=True)

    begin_fight = entrance.to(fighting) | round_break.to(fighting)
    end_round = fighting.to(round_break)
    finish = entrance.to(finished) | fighting.to(finished) | round_break.to(finished)

    def __init__(self, session: "FightSession"):
        self.session = session
        super().__init__(start_value=session.state.value)

    def sync_state_to_model(self) -> None:
        self.session.state = SessionState(str(self.current_state.value))
