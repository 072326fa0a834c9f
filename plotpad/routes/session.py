"""Plotpad - Session Routes

The trigger surface: one POST /session/run per user action, plus
read-only status and last-result endpoints and a full reload.

A submission that arrives while the session is loading, running or
failed is rejected with 409; it is never queued.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from plotpad.models import PhaseView, RunRequest, RunView
from plotpad.session import Session

logger = logging.getLogger(__name__)

router = APIRouter()


def get_session(request: Request) -> Session:
    """The application's single session, created in the lifespan handler"""
    session = getattr(request.app.state, 'session', None)
    if session is None:
        raise HTTPException(status_code=503, detail="Session not initialized")
    return session


@router.get("/session", response_model=PhaseView)
async def session_status(session: Session = Depends(get_session)):
    """Current phase, with the loader label while loading."""
    return session.current_phase()


@router.get("/session/result", response_model=RunView)
async def session_result(session: Session = Depends(get_session)):
    """Result of the most recently completed run."""
    result = session.last_result()
    if result is None:
        raise HTTPException(status_code=404, detail="No run has completed yet")
    return result


@router.post("/session/run", response_model=RunView)
async def run_source(request: RunRequest, session: Session = Depends(get_session)):
    """Execute source in the session and return this run's result.

    Blocks until the run completes. Run errors are a normal 200 response
    with success=false; only a session that cannot take the run gives 409.
    """
    logger.info(f"run_source: {len(request.source)} chars")

    result = await session.submit(request.source)
    if result is None:
        phase = session.current_phase()
        raise HTTPException(
            status_code=409,
            detail=f"Session is {phase.phase.value}, cannot run now",
        )
    return result


@router.post("/session/reload", response_model=PhaseView)
async def reload_session(session: Session = Depends(get_session)):
    """Discard the engine and load a fresh one (all variables are lost)."""
    if not await session.reload():
        phase = session.current_phase()
        raise HTTPException(
            status_code=409,
            detail=f"Session is {phase.phase.value}, cannot reload now",
        )
    return session.current_phase()
