from __future__ import annotations

import math
import threading
from datetime import UTC, datetime

from octagon.api.models import GlobalStats, MatchHistoryEntry, MatchMethod, StandingsEntry, StandingsOrder
from octagon.session import Agent


def win_rate(wins: int, losses: int) -> int:
    fights = wins + losses
    if fights == 0:
        return 0
    # Half rounds up.
    return math.floor(wins * 100 / fights + 0.5)


def standings_entry_for(agent: Agent) -> StandingsEntry:
    return StandingsEntry(
        id=agent.id,
        name=agent.name,
        style=agent.style,
        wins=agent.wins,
        losses=agent.losses,
        knockouts=agent.knockouts,
        win_rate=win_rate(agent.wins, agent.losses),
    )


class StandingsStore:
    """In-memory standings, global totals and the append-only match history.

    Entries are keyed by agent id and outlive the agent's connection.
    """

    def __init__(self) -> None:
        self._entries: dict[str, StandingsEntry] = {}
        self._history: list[MatchHistoryEntry] = []
        self._total_fights = 0
        self._total_kos = 0
        self._lock = threading.Lock()

    def record_result(
        self,
        *,
        winner: Agent,
        loser: Agent,
        method: MatchMethod,
        match_id: str = "",
        round: int = 1,
    ) -> MatchHistoryEntry:
        entry = MatchHistoryEntry(
            match_id=match_id,
            winner_id=winner.id,
            winner=winner.name,
            loser_id=loser.id,
            loser=loser.name,
            method=method,
            round=round,
            time=datetime.now(tz=UTC),
        )
        with self._lock:
            winner.wins += 1
            if method == MatchMethod.ko:
                winner.knockouts += 1
                self._total_kos += 1
            loser.losses += 1
            self._total_fights += 1

            self._entries[winner.id] = standings_entry_for(winner)
            self._entries[loser.id] = standings_entry_for(loser)
            self._history.append(entry)
        return entry

    def get(self, agent_id: str) -> StandingsEntry | None:
        with self._lock:
            return self._entries.get(agent_id)

    def top(self, n: int, order_by: StandingsOrder = StandingsOrder.wins) -> list[StandingsEntry]:
        with self._lock:
            entries = list(self._entries.values())
        if order_by == StandingsOrder.score:
            key = lambda e: e.score  # noqa: E731
        else:
            key = lambda e: e.wins  # noqa: E731
        # sorted() is stable, so equal keys keep first-recorded order.
        return sorted(entries, key=key, reverse=True)[: max(n, 0)]

    def history(self, limit: int | None = None) -> list[MatchHistoryEntry]:
        """Most recent first."""

        with self._lock:
            items = list(reversed(self._history))
        return items if limit is None else items[:limit]

    def totals(self, *, active_fights: int = 0) -> GlobalStats:
        with self._lock:
            return GlobalStats(
                total_fights=self._total_fights,
                total_kos=self._total_kos,
                active_fights=active_fights,
            )
