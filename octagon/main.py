from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from octagon.api.routes import router
from octagon.arena import Arena
from octagon.config import APP_NAME, APP_VERSION, load_settings

settings = load_settings()

# Configure logging
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title=APP_NAME, version=APP_VERSION)

# Reporting endpoints are read-only and public.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["Content-Type"],
)
app.include_router(router)


@app.on_event("startup")
async def _startup() -> None:
    app.state.arena = Arena(settings=settings)
    logger.info("%s %s ready on port %d", APP_NAME, APP_VERSION, settings.port)


@app.on_event("shutdown")
async def _shutdown() -> None:
    arena = getattr(app.state, "arena", None)
    if arena is not None:
        await arena.shutdown()


def run() -> None:
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())
