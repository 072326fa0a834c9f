from __future__ import annotations

import struct
from typing import Callable, List

import pytest
import pytest_asyncio

from plotpad.engine.loader import EngineLoader
from plotpad.session import Session

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"


def png_size(data: bytes) -> tuple[int, int]:
    """Width and height from a PNG's IHDR chunk."""
    assert data[:8] == PNG_MAGIC
    return struct.unpack(">II", data[16:24])


@pytest.fixture
def failing_loader_factory() -> Callable:
    def factory(on_progress):
        return EngineLoader(packages=["plotpad_missing_package_xyz"], on_progress=on_progress)

    return factory


@pytest.fixture
def recorded_labels() -> List[str]:
    return []


@pytest.fixture
def recording_loader_factory(recorded_labels: List[str]) -> Callable:
    def factory(on_progress):
        def record(label: str) -> None:
            recorded_labels.append(label)
            on_progress(label)

        return EngineLoader(on_progress=record)

    return factory


@pytest_asyncio.fixture
async def engine():
    loaded = await EngineLoader().load()
    try:
        yield loaded
    finally:
        loaded.close_figures()
        loaded.close()


@pytest_asyncio.fixture
async def ready_session():
    session = Session()
    assert await session.start()
    try:
        yield session
    finally:
        session.close()
