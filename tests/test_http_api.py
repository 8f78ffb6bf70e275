from __future__ import annotations

from fastapi.testclient import TestClient

from octagon.api.models import FighterStats, FightingStyle, MatchMethod
from octagon.session import Agent


def _agent(name: str) -> Agent:
    return Agent(
        id=f"id-{name}",
        name=name,
        style=FightingStyle.technician,
        stats=FighterStats(),
        connection_id=f"conn-{name}",
    )


def test_health(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["version"] == "0.1.0"
    assert (data["waiting"], data["fighting"]) == (0, 0)
    assert data["uptime"] >= 0


def test_status_on_an_empty_arena(client: TestClient) -> None:
    resp = client.get("/api/status")
    assert resp.status_code == 200
    assert resp.json() == {
        "waiting": 0,
        "fighting": 0,
        "totalFights": 0,
        "totalKOs": 0,
        "leaderboard": [],
    }


def test_leaderboard_orders_by_score(client: TestClient) -> None:
    standings = client.app.state.arena.standings
    grinder, finisher, loser = _agent("Grinder"), _agent("Finisher"), _agent("Loser")
    for _ in range(2):
        standings.record_result(winner=grinder, loser=loser, method=MatchMethod.decision)
    standings.record_result(winner=finisher, loser=loser, method=MatchMethod.ko)
    standings.record_result(winner=finisher, loser=grinder, method=MatchMethod.ko)

    data = client.get("/api/leaderboard").json()

    # Finisher 2W/2KO -> 8, Grinder 2W -> 6.
    assert [e["name"] for e in data["leaderboard"]] == ["Finisher", "Grinder", "Loser"]
    top = data["leaderboard"][0]
    assert top == {
        "id": "id-Finisher",
        "name": "Finisher",
        "style": "technician",
        "wins": 2,
        "losses": 0,
        "knockouts": 2,
        "winRate": 100,
    }
    assert data["stats"] == {"totalFights": 4, "totalKOs": 2, "activeFights": 0}

    status = client.get("/api/status").json()
    assert status["totalFights"] == 4
    assert [e["name"] for e in status["leaderboard"]][:2] == ["Grinder", "Finisher"]


def test_history_is_newest_first(client: TestClient) -> None:
    standings = client.app.state.arena.standings
    a, b = _agent("A"), _agent("B")
    standings.record_result(winner=a, loser=b, method=MatchMethod.ko, match_id="m1")
    standings.record_result(winner=b, loser=a, method=MatchMethod.forfeit, match_id="m2")

    data = client.get("/api/history", params={"limit": 1}).json()

    [latest] = data["matches"]
    assert latest["matchId"] == "m2"
    assert latest["winnerId"] == "id-B"
    assert latest["method"] == "FORFEIT"


def test_history_limit_bounds(client: TestClient) -> None:
    assert client.get("/api/history", params={"limit": 0}).status_code == 422
    assert client.get("/api/history", params={"limit": 101}).status_code == 422
    assert client.get("/api/history", params={"limit": 100}).status_code == 200
    assert client.get("/api/history").json() == {"matches": []}


def test_live_lists_sessions_in_progress(client: TestClient) -> None:
    assert client.get("/api/live").json() == {"fights": []}

    with client.websocket_connect("/ws") as ws1, client.websocket_connect("/ws") as ws2:
        ws1.receive_json()
        ws2.receive_json()
        ws1.send_json({"type": "register_bot", "name": "Alpha"})
        ws1.receive_json()
        ws2.send_json({"type": "register_bot", "name": "Bravo"})
        ws2.receive_json()
        assert ws2.receive_json()["type"] == "match_found"

        [fight] = client.get("/api/live").json()["fights"]
        assert (fight["fighter1"], fight["fighter2"]) == ("Alpha", "Bravo")
        assert fight["state"] == "entrance"
        assert (fight["round"], fight["time"], fight["health1"], fight["health2"]) == (1, 300, 100, 100)

        assert client.get("/health").json()["fighting"] == 1


def test_cors_allows_any_origin_by_default(client: TestClient) -> None:
    resp = client.get("/api/status", headers={"Origin": "https://viewer.example"})
    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "*"


def test_cors_preflight_only_allows_reads(client: TestClient) -> None:
    headers = {"Origin": "https://viewer.example", "Access-Control-Request-Method": "GET"}
    assert client.options("/api/leaderboard", headers=headers).status_code == 200

    headers["Access-Control-Request-Method"] = "POST"
    assert client.options("/api/leaderboard", headers=headers).status_code == 400
