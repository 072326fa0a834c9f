"""Plotpad - Session Facade

The narrow contract the presentation layer uses:
- current_phase() / last_result(): read-only projections
- submit(source): the single mutating entry point
- reload(): full reinitialization with a fresh loader

Beyond delegating to the coordinator, the only thing done here is
replacing an empty successful stdout with a placeholder.
"""

import logging
from typing import Optional

from plotpad.config import settings
from plotpad.engine.coordinator import ExecutionCoordinator, LoaderFactory, SessionPhase
from plotpad.engine.executor import ExecutionResult
from plotpad.models import PhaseView, RunView

logger = logging.getLogger(__name__)


class Session:
    """One coordinator and the engine it owns"""

    def __init__(
        self,
        loader_factory: Optional[LoaderFactory] = None,
        empty_output_placeholder: Optional[str] = None,
    ):
        self._loader_factory = loader_factory
        self.empty_output_placeholder = (
            settings.EMPTY_OUTPUT_PLACEHOLDER
            if empty_output_placeholder is None else empty_output_placeholder
        )
        self._coordinator = ExecutionCoordinator(loader_factory)

    async def start(self) -> bool:
        return await self._coordinator.start()

    def current_phase(self) -> PhaseView:
        c = self._coordinator
        return PhaseView(
            phase=c.phase,
            label=c.progress_label,
            message=c.failure_message,
        )

    def last_result(self) -> Optional[RunView]:
        result = self._coordinator.last_result
        if result is None:
            return None
        return self._to_view(result)

    async def submit(self, source: str) -> Optional[RunView]:
        """Run source. Returns None if the session was not ready."""
        result = await self._coordinator.submit(source)
        if result is None:
            return None
        return self._to_view(result)

    async def reload(self) -> bool:
        """Throw the engine away and load a new one.

        Only from READY or FAILED; a load or run in progress makes this
        a no-op returning False.
        """
        phase = self._coordinator.phase
        if phase not in (SessionPhase.READY, SessionPhase.FAILED):
            logger.warning(f"reload() rejected: session is {phase.value}")
            return False

        logger.info("Reloading session with a fresh engine")
        old = self._coordinator
        self._coordinator = ExecutionCoordinator(self._loader_factory)
        old.close()
        return await self._coordinator.start()

    def close(self):
        self._coordinator.close()

    def _to_view(self, result: ExecutionResult) -> RunView:
        data = result.to_dict()
        if result.success and not result.stdout:
            data['stdout'] = self.empty_output_placeholder
        return RunView(**data)
