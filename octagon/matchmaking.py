"""Matchmaking queue."""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Callable

from octagon.session import Agent, FightSession


class MatchQueue:
    """Strict first-come-first-served waiting line.

    No skill matching: the two longest-waiting agents are paired as soon as
    there are two. The earlier arrival always becomes fighter1.
    """

    def __init__(self, session_factory: Callable[[Agent, Agent], FightSession]) -> None:
        self._session_factory = session_factory
        self._waiting: deque[Agent] = deque()
        self._lock = threading.Lock()

    def enqueue(self, agent: Agent) -> bool:
        """Add `agent` to the back of the line. Returns False if it was already waiting."""

        with self._lock:
            if any(a is agent for a in self._waiting):
                return False
            self._waiting.append(agent)
            return True

    def remove(self, agent_id: str) -> bool:
        with self._lock:
            for a in self._waiting:
                if a.id == agent_id:
                    self._waiting.remove(a)
                    return True
            return False

    def try_pair(self) -> FightSession | None:
        """Pair the two longest-waiting agents into a new session, or do nothing."""

        with self._lock:
            if len(self._waiting) < 2:
                return None
            first = self._waiting.popleft()
            second = self._waiting.popleft()
        return self._session_factory(first, second)

    def waiting(self) -> list[Agent]:
        with self._lock:
            return list(self._waiting)

    def __contains__(self, agent_id: object) -> bool:
        with self._lock:
            return any(a.id == agent_id for a in self._waiting)

    def __len__(self) -> int:  # pragma: no cover - trivial
        with self._lock:
            return len(self._waiting)
