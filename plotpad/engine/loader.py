"""Plotpad - Engine Loader

Brings up the interpreter engine exactly once per session:
- Creates the persistent globals namespace (variables survive across runs)
- Starts the single engine thread every engine call runs on
- Imports the optional packages (numpy, matplotlib by default)
- Switches matplotlib to a non-interactive, buffer-only backend

Progress is reported as human-readable labels through an optional
callback. The labels are presentation hints only.

The loader never retries. Any failure surfaces as LoadError and the
half-built engine is shut down before it propagates.
"""

import asyncio
import builtins
import importlib
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional

from plotpad.config import settings

logger = logging.getLogger(__name__)


ProgressCallback = Callable[[str], None]

READY_LABEL = "Ready!"


class LoadError(Exception):
    """Engine bring-up failed. The session has no usable engine."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class Engine:
    """Handle to a live interpreter instance.

    Owns the globals namespace user code runs in and the single worker
    thread that performs every engine call. Not reentrant: callers must
    make sure only one call is active at a time.
    """

    def __init__(self):
        self.namespace: Dict[str, Any] = {
            '__name__': '__main__',
            '__builtins__': builtins,
        }
        self.execution_count: int = 0
        self.pyplot = None  # set once plotting is configured
        self._thread = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="plotpad-engine"
        )
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def call(self, fn: Callable, *args):
        """Run fn(*args) on the engine thread and await its result."""
        if self._closed:
            raise RuntimeError("Engine is closed")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._thread, fn, *args)

    def execute(self, source: str):
        """Compile and execute source in the persistent namespace. May raise."""
        self.execution_count += 1
        compiled = compile(source, '<session>', 'exec')
        exec(compiled, self.namespace)

    def figure_numbers(self) -> List[int]:
        if self.pyplot is None:
            return []
        return list(self.pyplot.get_fignums())

    def get_figure(self, num: int):
        return self.pyplot.figure(num)

    def close_figures(self):
        if self.pyplot is not None:
            self.pyplot.close('all')

    def close(self):
        if self._closed:
            return
        self._closed = True
        self._thread.shutdown(wait=False)
        logger.info("Engine closed")


def _noop_show(*args, **kwargs):
    """Replacement for plt.show(): figures stay open for the post-run drain."""
    return None


def _configure_plotting(engine: Engine, backend: str):
    """Select a buffer-only backend and neutralize plt.show(). Runs once."""
    import matplotlib
    matplotlib.use(backend)
    import matplotlib.pyplot as plt
    plt.switch_backend(backend)

    if not getattr(plt, '_plotpad_show_patched', False):
        plt.show = _noop_show
        plt._plotpad_show_patched = True

    plt.close('all')
    engine.pyplot = plt


class EngineLoader:
    """One-shot asynchronous bring-up of an Engine."""

    def __init__(
        self,
        packages: Optional[List[str]] = None,
        backend: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ):
        self.packages = list(settings.PRELOAD_PACKAGES if packages is None else packages)
        self.backend = backend or settings.GRAPHICS_BACKEND
        self._on_progress = on_progress
        self._used = False

    def _report(self, label: str):
        logger.info(f"Load progress: {label}")
        if self._on_progress is not None:
            self._on_progress(label)

    async def load(self) -> Engine:
        """Create, populate and configure an Engine.

        Raises:
            LoadError: on any failure, or if this loader was already used.
        """
        if self._used:
            raise LoadError("Engine loader can only be used once")
        self._used = True

        self._report("Loading Python environment...")
        engine = Engine()

        try:
            if self.packages:
                self._report(f"Loading {', '.join(self.packages)}...")
                for name in self.packages:
                    try:
                        await engine.call(importlib.import_module, name)
                    except Exception as e:
                        raise LoadError(f"Failed to load package '{name}': {e}", e) from e
                    logger.info(f"Package loaded: {name}")

            self._report("Configuring plotting...")
            try:
                await engine.call(_configure_plotting, engine, self.backend)
            except Exception as e:
                raise LoadError(
                    f"Failed to configure plotting backend '{self.backend}': {e}", e
                ) from e

        except BaseException:
            engine.close()
            raise

        self._report(READY_LABEL)
        return engine
