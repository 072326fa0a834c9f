from __future__ import annotations

import sys

from plotpad.engine.executor import OutputCapture, capture_run
from plotpad.engine.loader import Engine, EngineLoader

from .conftest import PNG_MAGIC, png_size

TWO_FIGURES = """
import matplotlib.pyplot as plt
plt.figure(figsize=(2, 2))
plt.plot([0, 1], [0, 1])
plt.figure(figsize=(6, 2))
plt.plot([0, 1], [1, 0])
"""

SINE_PLOT = """
import numpy as np
import matplotlib.pyplot as plt

x = np.linspace(0, 10, 100)
plt.figure(figsize=(10, 6))
plt.plot(x, np.sin(x), label='sin(x)')
plt.plot(x, np.cos(x), label='cos(x)')
plt.title('Sine and Cosine Waves')
plt.grid(True)
plt.legend()
plt.show()
print("plotted")
"""


async def test_print_is_captured(engine: Engine) -> None:
    result = await capture_run(engine, "print(1+1)")

    assert result.success
    assert result.stdout == "2\n"
    assert result.images == []
    assert result.error_message is None


async def test_no_output_is_empty_string(engine: Engine) -> None:
    result = await capture_run(engine, "x = 1")

    assert result.success
    assert result.stdout == ""
    assert result.images == []


async def test_stderr_is_captured_separately(engine: Engine) -> None:
    result = await capture_run(engine, "import sys\nprint('out')\nprint('err', file=sys.stderr)")

    assert result.stdout == "out\n"
    assert result.stderr == "err\n"


async def test_figures_come_back_in_creation_order(engine: Engine) -> None:
    result = await capture_run(engine, TWO_FIGURES)

    assert result.success
    assert [img.index for img in result.images] == [0, 1]
    assert all(img.data.startswith(PNG_MAGIC) for img in result.images)
    first_width, _ = png_size(result.images[0].data)
    second_width, _ = png_size(result.images[1].data)
    assert first_width < second_width
    assert engine.figure_numbers() == []


async def test_show_does_not_swallow_figure(engine: Engine) -> None:
    result = await capture_run(engine, SINE_PLOT)

    assert result.success
    assert result.stdout == "plotted\n"
    assert len(result.images) == 1


async def test_error_keeps_partial_stdout(engine: Engine) -> None:
    result = await capture_run(engine, "print('before')\nraise ValueError('x')\nprint('after')")

    assert not result.success
    assert result.stdout == "before\n"
    assert result.error_message == "ValueError: x"
    assert "Traceback" in result.error_traceback
    assert result.images == []


async def test_syntax_error_is_run_error(engine: Engine) -> None:
    result = await capture_run(engine, "def broken(:\n    pass")

    assert not result.success
    assert "SyntaxError" in result.error_message


async def test_system_exit_does_not_escape(engine: Engine) -> None:
    result = await capture_run(engine, "import sys\nsys.exit(3)")

    assert not result.success
    assert "SystemExit" in result.error_message


async def test_cleanup_after_error(engine: Engine) -> None:
    stdout_before, stderr_before = sys.stdout, sys.stderr
    source = "import matplotlib.pyplot as plt\nplt.figure()\nraise RuntimeError('boom')"

    result = await capture_run(engine, source)

    assert not result.success
    assert sys.stdout is stdout_before
    assert sys.stderr is stderr_before
    assert engine.figure_numbers() == []


async def test_engine_survives_error(engine: Engine) -> None:
    await capture_run(engine, "value = 7")
    failed = await capture_run(engine, "1 / 0")
    ok = await capture_run(engine, "print(value * 6)")

    assert not failed.success
    assert "ZeroDivisionError" in failed.error_message
    assert ok.success
    assert ok.stdout == "42\n"
    assert ok.execution_count == 3


async def test_output_capture_restores_streams_on_exception(engine: Engine) -> None:
    stdout_before = sys.stdout
    capture = OutputCapture(engine)
    try:
        with capture:
            print("inside")
            raise KeyError("k")
    except KeyError:
        pass

    assert sys.stdout is stdout_before
    assert capture.stdout.getvalue() == "inside\n"


async def test_images_are_deterministic_across_fresh_engines() -> None:
    results = []
    for _ in range(2):
        fresh = await EngineLoader().load()
        try:
            results.append(await capture_run(fresh, SINE_PLOT))
        finally:
            fresh.close()

    first, second = results
    assert first.stdout == second.stdout
    assert [img.data for img in first.images] == [img.data for img in second.images]


async def test_to_dict_encodes_images(engine: Engine) -> None:
    result = await capture_run(engine, TWO_FIGURES)
    payload = result.to_dict()

    assert payload["success"] is True
    assert len(payload["images"]) == 2
    assert all(isinstance(img, str) for img in payload["images"])


async def test_keyboard_interrupt_from_source_is_run_error(engine: Engine) -> None:
    result = await capture_run(engine, "print('partial')\nraise KeyboardInterrupt")

    assert not result.success
    assert result.stdout == "partial\n"
    assert "KeyboardInterrupt" in result.error_message


async def test_base_exception_subclass_is_run_error(engine: Engine) -> None:
    stdout_before = sys.stdout
    source = "class Boom(BaseException):\n    pass\nprint('partial')\nraise Boom('x')"

    result = await capture_run(engine, source)

    assert not result.success
    assert result.stdout == "partial\n"
    assert result.error_message == "Boom: x"
    assert sys.stdout is stdout_before


async def test_figure_render_failure_keeps_stdout_and_cleans_up(engine: Engine) -> None:
    stdout_before, stderr_before = sys.stdout, sys.stderr
    source = (
        "import matplotlib.pyplot as plt\n"
        "print('before')\n"
        "plt.figure()\n"
        "plt.title(r'$\\frac$')\n"
    )

    result = await capture_run(engine, source)

    assert not result.success
    assert result.stdout == "before\n"
    assert result.error_message.startswith("ValueError")
    assert result.images == []
    assert engine.figure_numbers() == []
    assert sys.stdout is stdout_before
    assert sys.stderr is stderr_before
