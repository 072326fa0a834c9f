"""Plotpad - Execution Coordinator

Session state machine around one Engine:

    UNINITIALIZED -> LOADING -> READY <-> RUNNING
                         \
                          -> FAILED (terminal)

- start() brings the engine up once; a LoadError ends in FAILED
- submit() is admitted only from READY and flips to RUNNING before its
  first await, so a second submit during a run is rejected, never queued
- A run error is recorded as the current result and the session goes
  back to READY; the engine survives

No lock is needed: every transition happens on the event loop thread
and the RUNNING check-and-set has no await in between.
"""

import asyncio
import enum
import logging
from typing import Callable, Optional

from plotpad.engine.executor import ExecutionResult, capture_run
from plotpad.engine.loader import Engine, EngineLoader, LoadError

logger = logging.getLogger(__name__)


class SessionPhase(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    RUNNING = "running"
    FAILED = "failed"


LoaderFactory = Callable[[Callable[[str], None]], EngineLoader]


def _default_loader_factory(on_progress) -> EngineLoader:
    return EngineLoader(on_progress=on_progress)


class ExecutionCoordinator:
    """Owns the engine handle and serializes runs against it"""

    def __init__(self, loader_factory: Optional[LoaderFactory] = None):
        self._loader_factory = loader_factory or _default_loader_factory
        self._engine: Optional[Engine] = None
        self._phase = SessionPhase.UNINITIALIZED
        self._progress_label: Optional[str] = None
        self._failure_message: Optional[str] = None
        self._last_result: Optional[ExecutionResult] = None

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def progress_label(self) -> Optional[str]:
        """Latest loader label while LOADING, else None"""
        return self._progress_label

    @property
    def failure_message(self) -> Optional[str]:
        return self._failure_message

    @property
    def last_result(self) -> Optional[ExecutionResult]:
        return self._last_result

    def _set_phase(self, phase: SessionPhase):
        if phase is not self._phase:
            logger.info(f"Session phase: {self._phase.value} -> {phase.value}")
        self._phase = phase

    def _on_progress(self, label: str):
        if self._phase is SessionPhase.LOADING:
            self._progress_label = label

    async def start(self) -> bool:
        """Load the engine. Valid only from UNINITIALIZED.

        Returns True if the session ended up READY.
        """
        if self._phase is not SessionPhase.UNINITIALIZED:
            logger.warning(f"start() ignored: session is {self._phase.value}")
            return False

        self._set_phase(SessionPhase.LOADING)
        loader = self._loader_factory(self._on_progress)

        try:
            engine = await loader.load()
        except LoadError as e:
            self._progress_label = None
            self._failure_message = str(e)
            self._set_phase(SessionPhase.FAILED)
            logger.error(f"Engine load failed: {e}", exc_info=e.cause is not None)
            return False

        self._engine = engine
        self._progress_label = None
        self._set_phase(SessionPhase.READY)
        return True

    async def submit(self, source: str) -> Optional[ExecutionResult]:
        """Run source against the engine. Valid only from READY.

        Returns the result of this run, or None if the submission was
        rejected (session not ready, or a run is already in flight).
        """
        if self._phase is not SessionPhase.READY:
            logger.warning(f"submit() rejected: session is {self._phase.value}")
            return None

        # Admission point: nothing else may touch the engine from here on
        self._set_phase(SessionPhase.RUNNING)

        # User errors come back as a failed result. Cancellation leaves the
        # session RUNNING: the engine thread may still be busy and is
        # considered wedged. Any other failure has already finished on the
        # engine thread, so it is recorded and the session is runnable again.
        try:
            result = await capture_run(self._engine, source)
        except asyncio.CancelledError:
            raise
        except BaseException as e:
            logger.error(f"Run failed outside user code: {e!r}", exc_info=True)
            result = ExecutionResult()
            result.error_message = f"Execution failed: {e!r}"
            result.execution_count = self._engine.execution_count if self._engine else 0

        self._last_result = result
        self._set_phase(SessionPhase.READY)
        return result

    def close(self):
        """Release the engine. The coordinator is unusable afterwards."""
        if self._engine is not None:
            self._engine.close()
            self._engine = None
        if self._phase is not SessionPhase.FAILED:
            self._failure_message = "Session closed"
            self._set_phase(SessionPhase.FAILED)
