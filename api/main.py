"""
FastAPI application entrypoint.

Serves still-image overlay analysis and the headless live session; the live
camera is released when the app shuts down.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from api import routes

logging.basicConfig(level=getattr(logging, routes.settings.LOG_LEVEL.upper(), logging.INFO))
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    if routes.live_session.stop():
        logger.info("[api] live session stopped on shutdown")


app = FastAPI(title="Face Feed Overlay API", version="1.0.0", lifespan=lifespan)
app.include_router(routes.router)


@app.get("/health")
def health() -> dict:
    """Liveness plus whether the live camera session is running."""
    return {"status": "ok", "live": routes.live_session.running}
