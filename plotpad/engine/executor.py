"""Plotpad - Output Capture Adapter

Wraps a single run of user source against an Engine:
- stdout/stderr redirected into fresh buffers for the duration of the run
- Source compiled and executed in the engine's persistent namespace
- Every open matplotlib figure serialized to PNG, in creation order
- Figures closed and redirection removed on every exit path

Run errors (syntax errors, any raised BaseException) never
propagate. They come back as a failed ExecutionResult that keeps
whatever was printed before the error, and the engine stays usable.

Serialization is fixed (format, DPI, tight bounding box) so the same
source against a freshly loaded engine yields byte-identical images.
"""

import base64
import io
import time
import traceback
import logging
from contextlib import ExitStack, redirect_stdout, redirect_stderr
from typing import Dict, List, Optional

from plotpad.config import settings
from plotpad.engine.loader import Engine

logger = logging.getLogger(__name__)


class ImageArtifact:
    """One rendered figure. `index` is its position in creation order."""

    def __init__(self, index: int, data: bytes, media_type: str = "image/png"):
        self.index = index
        self.data = data
        self.media_type = media_type

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode('utf-8')

    def __repr__(self):
        return f"<ImageArtifact #{self.index}: {len(self.data)} bytes {self.media_type}>"


class ExecutionResult:
    """Result of one run"""
    def __init__(self):
        self.success: bool = False
        self.stdout: str = ""
        self.stderr: str = ""
        self.images: List[ImageArtifact] = []
        self.error_message: Optional[str] = None
        self.error_traceback: Optional[str] = None
        self.execution_time_ms: int = 0
        self.execution_count: int = 0

    def to_dict(self) -> Dict:
        return {
            'success': self.success,
            'stdout': self.stdout,
            'stderr': self.stderr,
            'images': [img.to_base64() for img in self.images],
            'error_message': self.error_message,
            'error_traceback': self.error_traceback,
            'execution_time_ms': self.execution_time_ms,
            'execution_count': self.execution_count,
        }


class OutputCapture:
    """Scoped redirection of the engine's text channels.

    Entering swaps sys.stdout/sys.stderr for fresh buffers. Leaving
    restores them and closes any figure still open, whether the body
    finished or raised. The pairing must hold: a stale redirection
    would swallow the next run's output.

    The swap is process-wide. Anything another thread writes to
    sys.stdout or sys.stderr while a run is in flight (warnings raised
    while serving a status request, for example) lands in that run's
    buffers. One session per process keeps this to the service itself.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self.stdout = io.StringIO()
        self.stderr = io.StringIO()
        self._stack: Optional[ExitStack] = None

    def __enter__(self):
        if self._stack is not None:
            raise RuntimeError("OutputCapture is not reentrant")
        stack = ExitStack()
        stack.callback(self.engine.close_figures)
        stack.enter_context(redirect_stderr(self.stderr))
        stack.enter_context(redirect_stdout(self.stdout))
        self._stack = stack
        return self

    def __exit__(self, exc_type, exc, tb):
        stack, self._stack = self._stack, None
        stack.close()
        return False


def render_figure(fig) -> bytes:
    """Serialize a figure to PNG bytes with fixed settings."""
    buf = io.BytesIO()
    fig.savefig(
        buf,
        format=settings.FIGURE_FORMAT,
        dpi=settings.FIGURE_DPI,
        bbox_inches='tight',
        facecolor='white',
        edgecolor='none',
    )
    return buf.getvalue()


def drain_figures(engine: Engine) -> List[ImageArtifact]:
    """Serialize every open figure in creation order, then close it."""
    images = []
    for position, num in enumerate(engine.figure_numbers()):
        fig = engine.get_figure(num)
        try:
            images.append(ImageArtifact(position, render_figure(fig)))
        finally:
            engine.pyplot.close(fig)
    return images


def _format_error(exc: BaseException) -> str:
    lines = traceback.format_exception_only(type(exc), exc)
    return lines[-1].strip() if lines else type(exc).__name__


def _run_captured(engine: Engine, source: str) -> ExecutionResult:
    """Synchronous body of a run. Executes on the engine thread."""
    result = ExecutionResult()
    start_time = time.time()
    capture = OutputCapture(engine)

    try:
        with capture:
            try:
                engine.execute(source)
            except BaseException as e:
                # Runs on the engine thread: a KeyboardInterrupt here was
                # raised by the source itself, not delivered by a signal
                result.success = False
                result.error_message = _format_error(e)
                result.error_traceback = traceback.format_exc()
            else:
                result.images = drain_figures(engine)
                result.success = True
    except Exception as e:
        # Figure rendering failed after the source itself ran
        result.success = False
        result.images = []
        result.error_message = _format_error(e)
        result.error_traceback = traceback.format_exc()
    finally:
        result.execution_time_ms = int((time.time() - start_time) * 1000)
        result.execution_count = engine.execution_count
        result.stdout = capture.stdout.getvalue()
        result.stderr = capture.stderr.getvalue()

    return result


async def capture_run(engine: Engine, source: str) -> ExecutionResult:
    """Execute source against engine with output captured.

    The caller guarantees the engine is idle. Suspends until the run
    finishes; there is no timeout.
    """
    logger.info(f"Executing code: {len(source)} chars, preview: {source[:200]!r}")

    result = await engine.call(_run_captured, engine, source)

    logger.info(f"Execution completed: success={result.success}, "
                f"time={result.execution_time_ms}ms, "
                f"stdout_len={len(result.stdout)}, "
                f"stderr_len={len(result.stderr)}, "
                f"images={len(result.images)}")
    if result.error_message:
        logger.info(f"Run error: {result.error_message}")

    return result
