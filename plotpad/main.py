"""Plotpad - Main Application

Interactive Python session over HTTP. One long-lived interpreter per
process: submit source, read back printed output and rendered
matplotlib figures, edit, run again. Variables persist between runs.

The engine loads in the background at startup so status requests are
answered while numpy/matplotlib import.
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from plotpad import __version__
from plotpad.config import settings
from plotpad.routes import session as session_routes
from plotpad.session import Session

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s | %(name)s | %(levelname)s | %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management"""
    # --- STARTUP ---
    logger.info("=" * 60)
    logger.info(f"Plotpad v{__version__} starting...")
    logger.info("=" * 60)
    logger.info(f"  Preload packages: {settings.PRELOAD_PACKAGES}")
    logger.info(f"  Graphics backend: {settings.GRAPHICS_BACKEND}")
    logger.info(f"  Figure DPI: {settings.FIGURE_DPI}")

    session = Session()
    app.state.session = session
    load_task = asyncio.create_task(session.start())

    yield

    # --- SHUTDOWN ---
    logger.info("Plotpad shutting down...")
    if not load_task.done():
        load_task.cancel()
    session.close()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Plotpad",
    description=(
        "Interactive Python session. Submit source, get back stdout and "
        "rendered matplotlib figures as base64 PNGs."
    ),
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["Health"])
async def health(request: Request):
    session = getattr(request.app.state, 'session', None)
    phase = session.current_phase().phase.value if session else None
    return {"status": "ok", "version": __version__, "phase": phase}


app.include_router(session_routes.router, prefix="/api", tags=["Session"])
