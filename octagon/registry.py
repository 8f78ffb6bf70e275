from __future__ import annotations

import threading
from uuid import uuid4

from octagon.api.models import RegisterBot
from octagon.session import Agent


class ConnectionRegistry:
    """Maps live connections to their agent, and agents to their current session.

    One agent per connection. The agent's identity and stats are fixed at its
    first registration; later registrations on the same connection return it.
    """

    def __init__(self) -> None:
        self._by_connection: dict[str, Agent] = {}
        self._lock = threading.Lock()

    def bind(self, connection_id: str, msg: RegisterBot) -> tuple[Agent, bool]:
        """Return the agent for `connection_id`, creating it if needed.

        The bool is True when a new agent was created.
        """

        with self._lock:
            existing = self._by_connection.get(connection_id)
            if existing is not None:
                return existing, False
            agent = Agent(
                id=uuid4().hex,
                name=msg.name,
                style=msg.style,
                stats=msg.stats,
                connection_id=connection_id,
            )
            self._by_connection[connection_id] = agent
            return agent, True

    def agent_for(self, connection_id: str) -> Agent | None:
        with self._lock:
            return self._by_connection.get(connection_id)

    def unbind(self, connection_id: str) -> Agent | None:
        with self._lock:
            return self._by_connection.pop(connection_id, None)

    def is_connected(self, agent: Agent) -> bool:
        with self._lock:
            return self._by_connection.get(agent.connection_id) is agent

    def attach(self, agent: Agent, session_id: str) -> None:
        with self._lock:
            agent.session_id = session_id

    def detach(self, agent: Agent, session_id: str) -> bool:
        """Clear the agent's session if it still points at `session_id`."""

        with self._lock:
            if agent.session_id != session_id:
                return False
            agent.session_id = None
            return True

    def __len__(self) -> int:  # pragma: no cover - trivial
        with self._lock:
            return len(self._by_connection)
