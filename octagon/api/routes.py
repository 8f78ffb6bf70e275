from __future__ import annotations

from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status

from octagon.api.deps import get_arena
from octagon.api.models import (
    HealthResponse,
    HistoryResponse,
    LeaderboardResponse,
    LiveResponse,
    StandingsOrder,
    StatusResponse,
)
from octagon.arena import Arena
from octagon.config import APP_VERSION
from octagon.websocket_hub import WebSocketConnection

router = APIRouter()


@router.websocket("/ws")
@router.websocket("/")
async def agent_ws(websocket: WebSocket, arena: Arena = Depends(get_arena)) -> None:
    await websocket.accept()
    connection = WebSocketConnection(id=uuid4().hex, websocket=websocket)
    await arena.connect(connection)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", status.WS_1000_NORMAL_CLOSURE))
            # Bots may send JSON in text or binary frames.
            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes")
            if raw is None:
                continue
            await arena.handle_message(connection.id, raw)
    except WebSocketDisconnect:
        pass
    finally:
        await arena.disconnect(connection.id)


@router.get("/health", response_model=HealthResponse)
async def health(arena: Arena = Depends(get_arena)) -> HealthResponse:
    return HealthResponse(
        status="healthy",
        version=APP_VERSION,
        waiting=arena.waiting_count(),
        fighting=await arena.active_count(),
        uptime=round(arena.uptime(), 3),
    )


@router.get("/api/status", response_model=StatusResponse)
async def api_status(arena: Arena = Depends(get_arena)) -> StatusResponse:
    totals = arena.standings.totals()
    return StatusResponse(
        waiting=arena.waiting_count(),
        fighting=await arena.active_count(),
        total_fights=totals.total_fights,
        total_kos=totals.total_kos,
        leaderboard=arena.standings.top(10, StandingsOrder.wins),
    )


@router.get("/api/leaderboard", response_model=LeaderboardResponse)
async def api_leaderboard(arena: Arena = Depends(get_arena)) -> LeaderboardResponse:
    return LeaderboardResponse(
        leaderboard=arena.standings.top(20, StandingsOrder.score),
        stats=arena.standings.totals(active_fights=await arena.active_count()),
    )


@router.get("/api/live", response_model=LiveResponse)
async def api_live(arena: Arena = Depends(get_arena)) -> LiveResponse:
    return LiveResponse(fights=await arena.live_fights())


@router.get("/api/history", response_model=HistoryResponse)
async def api_history(limit: int = 20, arena: Arena = Depends(get_arena)) -> HistoryResponse:
    if limit < 1 or limit > 100:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="limit must be between 1 and 100")
    return HistoryResponse(matches=arena.standings.history(limit))
