from __future__ import annotations

from starlette.requests import HTTPConnection

from octagon.arena import Arena


def get_arena(conn: HTTPConnection) -> Arena:
    arena = getattr(conn.app.state, "arena", None)
    if arena is None:
        raise RuntimeError("Arena not initialized. Is the app's startup hook running?")
    return arena
