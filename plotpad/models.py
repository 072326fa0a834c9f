"""Plotpad - API Models

What the presentation layer sees of a session:
- PhaseView: current phase plus loader label / failure message
- RunView: outcome of the most recently completed run
- RunRequest: one source submission
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from plotpad.engine.coordinator import SessionPhase


class RunRequest(BaseModel):
    """Submit source text for one run"""
    source: str = Field(..., description="Python source to execute in the session")


class PhaseView(BaseModel):
    """Current session phase"""
    phase: SessionPhase
    label: Optional[str] = Field(default=None, description="Loader progress label while loading")
    message: Optional[str] = Field(default=None, description="Failure message when failed")


class RunView(BaseModel):
    """Outcome of one run.

    On success `stdout` is never empty (a placeholder stands in) and
    `images` holds base64 PNGs in figure creation order. On failure
    `error_message` is set and `stdout` is whatever was printed before
    the error.
    """
    success: bool
    stdout: str = ""
    stderr: str = ""
    images: List[str] = Field(default_factory=list, description="Base64-encoded PNG images")
    error_message: Optional[str] = None
    error_traceback: Optional[str] = None
    execution_time_ms: int = 0
    execution_count: int = 0
