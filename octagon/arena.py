"""Arena: connection lifecycle, pairing, and the timed session timeline.

Ownership:
  - `registry`, `queue` and `standings` each guard themselves.
  - the live-session map is guarded by `_sessions_lock`.
  - each session's state is guarded by its own `session.lock`; every mutation
    and the broadcast of its outbox happen under that lock, so actions and
    ticks for one session apply strictly in arrival order.

`_sessions_lock` is never held while waiting on a session lock.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from collections.abc import Callable, Coroutine
from functools import partial
from typing import Any, assert_never
from uuid import uuid4

from octagon import protocol
from octagon.api.models import (
    FighterAction,
    FighterRole,
    GetStatus,
    LiveFight,
    RegisterBot,
    SessionState,
)
from octagon.config import Settings
from octagon.errors import IllegalActionState, InsufficientStamina, ProtocolError
from octagon.fsm import AppliedUpdate
from octagon.matchmaking import MatchQueue
from octagon.registry import ConnectionRegistry
from octagon.scheduler import Clock, RoundScheduler, SystemClock
from octagon.session import Agent, FightSession
from octagon.standings import StandingsStore
from octagon.websocket_hub import Connection, ConnectionHub


logger = logging.getLogger(__name__)


class Arena:
    def __init__(
        self,
        *,
        settings: Settings | None = None,
        hub: ConnectionHub | None = None,
        clock: Clock | None = None,
        rng_factory: Callable[[int], random.Random] | None = None,
        standings: StandingsStore | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.settings.validate()
        self.hub = hub or ConnectionHub()
        self.clock = clock or SystemClock()
        self.registry = ConnectionRegistry()
        self.queue = MatchQueue(self._new_session)
        self.standings = standings or StandingsStore()

        self._rng_factory = rng_factory or random.Random
        self._seeds = random.SystemRandom()
        self._sessions: dict[str, FightSession] = {}
        self._sessions_lock = asyncio.Lock()
        self._tasks: set[asyncio.Task[Any]] = set()
        self._started_at = time.monotonic()

    # ---- connections ----

    async def connect(self, connection: Connection) -> None:
        await self.hub.connect(connection)
        logger.info("Connection %s opened", connection.id)
        await self.hub.send(connection.id, protocol.connected(waiting=len(self.queue)))

    async def handle_message(self, connection_id: str, raw: str | bytes) -> None:
        try:
            msg = protocol.decode_message(raw)
        except ProtocolError as e:
            logger.warning("Connection %s sent an invalid message: %s", connection_id, e)
            return

        if msg is None:
            logger.debug("Connection %s sent an unknown message type; ignoring", connection_id)
            return

        if isinstance(msg, RegisterBot):
            await self.register(connection_id, msg)
        elif isinstance(msg, FighterAction):
            await self.submit_action(connection_id, msg)
        elif isinstance(msg, GetStatus):
            await self.send_status(connection_id)
        else:
            assert_never(msg)

    async def register(self, connection_id: str, msg: RegisterBot) -> Agent:
        agent, created = self.registry.bind(connection_id, msg)

        if agent.session_id is not None:
            await self.hub.send(connection_id, protocol.error("Already in a match"))
            return agent

        if created:
            logger.info("Registered %s (%s) as %s", agent.name, agent.style.value, agent.id)

        queued = self.queue.enqueue(agent)
        message = None if queued else "Already waiting for an opponent..."
        await self.hub.send(connection_id, protocol.registered(agent=agent, message=message))

        await self.try_pair()
        return agent

    async def disconnect(self, connection_id: str) -> None:
        """Drop a connection: leave the queue, forfeit any fight in progress."""

        await self.hub.disconnect(connection_id)
        agent = self.registry.unbind(connection_id)
        if agent is None:
            logger.info("Connection %s closed", connection_id)
            return

        self.queue.remove(agent.id)
        logger.info("Connection %s closed (%s)", connection_id, agent.name)

        if agent.session_id is None:
            return
        session = await self.get_session(agent.session_id)
        if session is None:
            # Not published yet; _open_session notices the missing fighter.
            return

        async with session.lock:
            await self._forfeit(session, agent)

    # ---- pairing ----

    def _new_session(self, first: Agent, second: Agent) -> FightSession:
        seed = self._seeds.randint(1, 2**31 - 1)
        session = FightSession(
            id=uuid4().hex,
            fighter1=first,
            fighter2=second,
            settings=self.settings,
            rng=self._rng_factory(seed),
            seed=seed,
        )
        session.scheduler = RoundScheduler(
            session_id=session.id,
            clock=self.clock,
            interval=self.settings.tick_interval,
            on_tick=partial(self._on_tick, session),
        )
        for agent in session.participants:
            self.registry.attach(agent, session.id)
        return session

    async def try_pair(self) -> list[FightSession]:
        """Pair waiting agents two at a time until fewer than two remain."""

        opened: list[FightSession] = []
        while True:
            session = self.queue.try_pair()
            if session is None:
                return opened
            await self._open_session(session)
            opened.append(session)

    async def _open_session(self, session: FightSession) -> None:
        async with self._sessions_lock:
            self._sessions[session.id] = session

        logger.info(
            "Match %s: %s vs %s (seed %d)", session.id, session.fighter1.name, session.fighter2.name, session.seed
        )

        async with session.lock:
            gone = next((a for a in session.participants if not self.registry.is_connected(a)), None)
            if gone is not None:
                await self._forfeit(session, gone)
                return

            for role in FighterRole:
                fighter = session.fighter(role)
                await self.hub.send(fighter.connection_id, protocol.match_found(session=session, role=role))

        self._spawn(self._run_entrance(session), name=f"entrance:{session.id}")

    # ---- actions ----

    async def submit_action(self, connection_id: str, msg: FighterAction) -> None:
        agent = self.registry.agent_for(connection_id)
        if agent is None:
            logger.debug("Action from unregistered connection %s ignored", connection_id)
            return

        session = await self.get_session(msg.game_id)
        if session is None:
            logger.debug("Action for unknown session %s from %s ignored", msg.game_id, agent.id)
            return

        async with session.lock:
            try:
                update = session.apply_action(agent.id, msg.action)
            except IllegalActionState as e:
                logger.debug("Ignoring %s from %s: %s", msg.action, agent.id, e)
                return
            except InsufficientStamina as e:
                await self.hub.send(connection_id, protocol.error(str(e)))
                return
            await self._apply(session, update)

    async def send_status(self, connection_id: str) -> None:
        await self.hub.send(
            connection_id,
            protocol.status(waiting=self.queue.waiting(), active=await self.active_count()),
        )

    # ---- session timeline ----

    async def _run_entrance(self, session: FightSession) -> None:
        await self.clock.sleep(self.settings.entrance_delay)
        async with session.lock:
            if session.state != SessionState.entrance:
                return
            await self._broadcast(session, protocol.entrance_start(duration_ms=self.settings.entrance_duration_ms))

        await self.clock.sleep(self.settings.entrance_duration)
        await self._start_fighting(session)

    async def _run_round_break(self, session: FightSession) -> None:
        await self.clock.sleep(self.settings.round_break_seconds)
        await self._start_fighting(session)

    async def _start_fighting(self, session: FightSession) -> None:
        async with session.lock:
            if session.state not in (SessionState.entrance, SessionState.round_break):
                return
            await self._apply(session, session.begin_fight())
            if session.scheduler is not None:
                session.scheduler.start()

    async def _on_tick(self, session: FightSession) -> bool:
        async with session.lock:
            if not session.is_fighting:
                return False
            await self._apply(session, session.tick())
            if session.state == SessionState.round_break:
                self._spawn(self._run_round_break(session), name=f"round-break:{session.id}")
            return session.is_fighting

    async def _forfeit(self, session: FightSession, leaver: Agent) -> None:
        # Caller holds session.lock.
        if session.is_finished:
            return
        update = session.forfeit(leaver.id)
        survivor = session.opponent_of(leaver.id)
        logger.info("Match %s: %s disconnected, %s wins by forfeit", session.id, leaver.name, survivor.name)
        await self.hub.send(survivor.connection_id, protocol.opponent_disconnected())
        await self._apply(session, update)

    async def _apply(self, session: FightSession, update: AppliedUpdate) -> None:
        # Caller holds session.lock.
        if update.finished:
            self._record_finish(session)
        for payload in update.outbox:
            await self._broadcast(session, payload)

    def _record_finish(self, session: FightSession) -> None:
        winner, loser, method = session.winner, session.loser, session.method
        assert winner is not None and loser is not None and method is not None

        if session.scheduler is not None:
            session.scheduler.cancel()
        self.standings.record_result(
            winner=winner,
            loser=loser,
            method=method,
            match_id=session.id,
            round=session.round,
        )
        for agent in session.participants:
            self.registry.detach(agent, session.id)

        logger.info(
            "Match %s over: %s beat %s by %s in round %d",
            session.id,
            winner.name,
            loser.name,
            protocol.describe_method(method),
            session.round,
        )
        self._spawn(self._retire(session), name=f"retire:{session.id}")

    async def _retire(self, session: FightSession) -> None:
        await self.clock.sleep(self.settings.retention_seconds)
        await self.remove_session(session.id)

        if not self.settings.requeue_after_fight:
            return
        for agent in session.participants:
            if agent.session_id is not None or not self.registry.is_connected(agent):
                continue
            if self.queue.enqueue(agent):
                await self.hub.send(
                    agent.connection_id,
                    protocol.registered(agent=agent, message="Back in the queue. Looking for opponent..."),
                )
        await self.try_pair()

    async def _broadcast(self, session: FightSession, payload: dict[str, object]) -> None:
        await self.hub.broadcast([a.connection_id for a in session.participants], payload)

    # ---- live sessions ----

    async def get_session(self, session_id: str) -> FightSession | None:
        async with self._sessions_lock:
            return self._sessions.get(session_id)

    async def sessions(self) -> list[FightSession]:
        async with self._sessions_lock:
            return list(self._sessions.values())

    async def remove_session(self, session_id: str) -> FightSession | None:
        async with self._sessions_lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return None
        if session.scheduler is not None:
            session.scheduler.cancel()
        for agent in session.participants:
            self.registry.detach(agent, session.id)
        return session

    async def active_count(self) -> int:
        return sum(1 for s in await self.sessions() if not s.is_finished)

    async def live_fights(self) -> list[LiveFight]:
        views: list[LiveFight] = []
        for session in await self.sessions():
            async with session.lock:
                views.append(session.live_view())
        return views

    def waiting_count(self) -> int:
        return len(self.queue)

    def uptime(self) -> float:
        return time.monotonic() - self._started_at

    # ---- task bookkeeping ----

    def _spawn(self, coro: Coroutine[Any, Any, Any], *, name: str) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background task %s failed", task.get_name(), exc_info=exc)

    async def shutdown(self) -> None:
        """Cancel every timer and background task."""

        for session in await self.sessions():
            if session.scheduler is not None:
                session.scheduler.cancel()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
