from __future__ import annotations

import asyncio
import heapq
import json
import random
from collections.abc import AsyncGenerator, Awaitable, Callable, Generator
from dataclasses import dataclass, field
from typing import Any

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from octagon.arena import Arena
from octagon.config import Settings


async def settle(rounds: int = 25) -> None:
    """Let every ready task run until the loop goes quiet."""

    for _ in range(rounds):
        await asyncio.sleep(0)


class VirtualClock:
    """Manually advanced clock: sleepers wake only when a test advances time."""

    def __init__(self) -> None:
        self._now = 0.0
        self._seq = 0
        self._sleepers: list[tuple[float, int, asyncio.Future[None]]] = []

    async def sleep(self, seconds: float) -> None:
        fut: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._seq += 1
        heapq.heappush(self._sleepers, (self._now + seconds, self._seq, fut))
        await fut

    async def advance(self, seconds: float) -> None:
        target = self._now + seconds
        await settle()
        while self._sleepers and self._sleepers[0][0] <= target:
            due, _, fut = heapq.heappop(self._sleepers)
            self._now = max(self._now, due)
            if not fut.done():
                fut.set_result(None)
            await settle()
        self._now = target
        await settle()


class ScriptedRandom(random.Random):
    """`random()` returns the scripted values in order, then `default` forever."""

    def __init__(self, values: list[float] | None = None, default: float = 0.0) -> None:
        super().__init__(0)
        self._values = list(values or [])
        self._default = default

    def random(self) -> float:
        if self._values:
            return self._values.pop(0)
        return self._default


@dataclass(eq=False)
class FakeConnection:
    id: str
    sent: list[dict[str, Any]] = field(default_factory=list)
    broken: bool = False

    async def send_json(self, payload: dict[str, object]) -> None:
        if self.broken:
            raise RuntimeError("socket closed")
        self.sent.append(payload)

    def of_type(self, msg_type: str) -> list[dict[str, Any]]:
        return [m for m in self.sent if m["type"] == msg_type]

    def last(self, msg_type: str) -> dict[str, Any]:
        found = self.of_type(msg_type)
        assert found, f"no {msg_type!r} message in {[m['type'] for m in self.sent]}"
        return found[-1]

    def types(self) -> list[str]:
        return [m["type"] for m in self.sent]


@pytest.fixture()
def clock() -> VirtualClock:
    return VirtualClock()


@pytest_asyncio.fixture()
async def make_arena(clock: VirtualClock) -> AsyncGenerator[Callable[..., Arena], None]:
    """Build arenas on the virtual clock.

    Strikes always land unless `miss` is set;
    any other keyword overrides a `Settings` field.
    """

    arenas: list[Arena] = []

    def _make(*, miss: bool = False, **overrides: Any) -> Arena:
        settings = Settings(**overrides)
        default = 0.99 if miss else 0.0
        arena = Arena(
            settings=settings,
            clock=clock,
            rng_factory=lambda seed: ScriptedRandom(default=default),
        )
        arenas.append(arena)
        return arena

    yield _make

    for arena in arenas:
        await arena.shutdown()


@pytest.fixture()
def join() -> Callable[..., Awaitable[FakeConnection]]:
    """Connect a fake agent to an arena and register it."""

    counter = {"n": 0}

    async def _join(arena: Arena, name: str, **fields: Any) -> FakeConnection:
        counter["n"] += 1
        conn = FakeConnection(id=f"conn-{counter['n']}-{name}")
        await arena.connect(conn)
        await arena.handle_message(conn.id, json.dumps({"type": "register_bot", "name": name, **fields}))
        return conn

    return _join


def action(game_id: str, name: str) -> str:
    return json.dumps({"type": "fighter_action", "gameId": game_id, "action": name})


@pytest.fixture()
def act() -> Callable[[Arena, FakeConnection, str], Awaitable[None]]:
    """Submit a fighter_action for the connection's current match."""

    async def _act(arena: Arena, conn: FakeConnection, name: str, game_id: str | None = None) -> None:
        gid = game_id or conn.last("match_found")["gameId"]
        await arena.handle_message(conn.id, action(gid, name))

    return _act


@pytest.fixture()
def client() -> Generator[TestClient, None, None]:
    from octagon.main import app

    with TestClient(app) as c:
        yield c
