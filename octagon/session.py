from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from octagon import protocol
from octagon.api.models import FighterRole, FighterStats, FightingStyle, LiveFight, MatchMethod, SessionState
from octagon.config import Settings
from octagon.core.combat import clamp, resolve_action
from octagon.errors import IllegalActionState
from octagon.fsm import AppliedUpdate, SessionFSM

if TYPE_CHECKING:
    from octagon.scheduler import RoundScheduler


@dataclass(slots=True, eq=False)
class Agent:
    """A registered combat agent. Lives as long as its connection (or its current fight)."""

    id: str
    name: str
    style: FightingStyle
    stats: FighterStats
    connection_id: str
    wins: int = 0
    losses: int = 0
    knockouts: int = 0
    session_id: str | None = None


@dataclass(eq=False)
class FightSession:
    """Authoritative state of one match.

    Every mutating method must be called with `lock` held; each returns an
    `AppliedUpdate` whose outbox the caller broadcasts before releasing it.
    """

    id: str
    fighter1: Agent
    fighter2: Agent
    settings: Settings
    rng: random.Random
    # For reproducibility/debugging.
    seed: int = 0

    state: SessionState = SessionState.entrance
    round: int = 1
    clock: int = 0
    health: dict[FighterRole, int] = field(default_factory=dict)
    stamina: dict[FighterRole, int] = field(default_factory=dict)
    winner: Agent | None = None
    method: MatchMethod | None = None

    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)
    scheduler: "RoundScheduler | None" = field(default=None, repr=False)
    fsm: SessionFSM = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.clock = self.settings.round_seconds
        for role in FighterRole:
            self.health.setdefault(role, self.settings.max_health)
            self.stamina.setdefault(role, self.settings.max_stamina)
        self.fsm = SessionFSM(self)

    # ---- lookups ----

    @property
    def health1(self) -> int:
        return self.health[FighterRole.fighter1]

    @property
    def health2(self) -> int:
        return self.health[FighterRole.fighter2]

    @property
    def stamina1(self) -> int:
        return self.stamina[FighterRole.fighter1]

    @property
    def stamina2(self) -> int:
        return self.stamina[FighterRole.fighter2]

    @property
    def is_fighting(self) -> bool:
        return self.state == SessionState.fighting

    @property
    def is_finished(self) -> bool:
        return self.state == SessionState.finished

    @property
    def participants(self) -> tuple[Agent, Agent]:
        return self.fighter1, self.fighter2

    @property
    def loser(self) -> Agent | None:
        if self.winner is None:
            return None
        return self.fighter2 if self.winner is self.fighter1 else self.fighter1

    def fighter(self, role: FighterRole) -> Agent:
        return self.fighter1 if role == FighterRole.fighter1 else self.fighter2

    def role_of(self, agent_id: str) -> FighterRole | None:
        if agent_id == self.fighter1.id:
            return FighterRole.fighter1
        if agent_id == self.fighter2.id:
            return FighterRole.fighter2
        return None

    def opponent_of(self, agent_id: str) -> Agent:
        role = self.role_of(agent_id)
        if role is None:
            raise IllegalActionState(f"Agent {agent_id} is not in session {self.id}")
        return self.fighter2 if role == FighterRole.fighter1 else self.fighter1

    def live_view(self) -> LiveFight:
        return LiveFight(
            id=self.id,
            fighter1=self.fighter1.name,
            fighter2=self.fighter2.name,
            state=self.state,
            round=self.round,
            time=self.clock,
            health1=self.health1,
            health2=self.health2,
        )

    # ---- transitions ----

    def begin_fight(self) -> AppliedUpdate:
        self.fsm.begin_fight()
        self.fsm.sync_state_to_model()
        self.clock = self.settings.round_seconds
        return AppliedUpdate(
            state_changed=True,
            outbox=[protocol.fight_start(round_number=self.round, time=self.clock)],
        )

    def tick(self) -> AppliedUpdate:
        """One scheduler beat: clock down, stamina up, maybe end the round."""

        if not self.is_fighting:
            return AppliedUpdate(state_changed=False)

        self.clock = max(0, self.clock - 1)
        for role in FighterRole:
            self.stamina[role] = clamp(
                self.stamina[role] + self.settings.stamina_regen_per_tick, 0, self.settings.max_stamina
            )
        outbox = [protocol.timer_tick(time=self.clock)]

        if self.clock > 0:
            return AppliedUpdate(state_changed=True, outbox=outbox)

        ended = self._end_round()
        return AppliedUpdate(state_changed=True, outbox=outbox + ended.outbox, finished=ended.finished)

    def _end_round(self) -> AppliedUpdate:
        if self.round >= self.settings.max_rounds:
            return self.finish(winner=self.decision_winner(), method=MatchMethod.decision)

        self.fsm.end_round()
        self.fsm.sync_state_to_model()
        completed = self.round
        self.round += 1
        self.clock = self.settings.round_seconds
        return AppliedUpdate(
            state_changed=True,
            outbox=[protocol.round_end(completed_round=completed, next_round=self.round)],
        )

    def decision_winner(self) -> Agent:
        # Exact ties go to fighter1.
        return self.fighter1 if self.health1 >= self.health2 else self.fighter2

    def apply_action(self, agent_id: str, action: str) -> AppliedUpdate:
        """Resolve and apply one action from `agent_id`.

        Raises `IllegalActionState` when the session is not fighting or the agent
        is not a participant, and `InsufficientStamina` (nothing applied) below the
        stamina gate.
        """

        role = self.role_of(agent_id)
        if role is None:
            raise IllegalActionState(f"Agent {agent_id} is not in session {self.id}")
        if not self.is_fighting:
            raise IllegalActionState(f"Session {self.id} is {self.state.value}, not fighting")

        actor = self.fighter(role)
        target = FighterRole.fighter2 if role == FighterRole.fighter1 else FighterRole.fighter1

        result = resolve_action(
            action,
            actor.stats,
            self.stamina[role],
            rng=self.rng,
            min_stamina=self.settings.min_action_stamina,
        )

        self.stamina[role] = clamp(self.stamina[role] - result.stamina_cost, 0, self.settings.max_stamina)
        if result.hit:
            self.health[target] = clamp(self.health[target] - result.damage, 0, self.settings.max_health)

        outbox = [protocol.action_result(session=self, actor=actor, result=result)]

        if self.health[target] > 0:
            return AppliedUpdate(state_changed=True, outbox=outbox)

        finished = self.finish(winner=actor, method=MatchMethod.ko)
        return AppliedUpdate(state_changed=True, outbox=outbox + finished.outbox, finished=True)

    def forfeit(self, loser_id: str) -> AppliedUpdate:
        winner = self.opponent_of(loser_id)
        return self.finish(winner=winner, method=MatchMethod.forfeit)

    def finish(self, *, winner: Agent, method: MatchMethod) -> AppliedUpdate:
        """Move to finished. Raises `TransitionNotAllowed` if already finished."""

        self.fsm.finish()
        self.fsm.sync_state_to_model()
        self.winner = winner
        self.method = method
        return AppliedUpdate(state_changed=True, outbox=[protocol.fight_end(session=self)], finished=True)
