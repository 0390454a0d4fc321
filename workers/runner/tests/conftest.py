"""Shared fixtures for runner tests."""

import base64
from collections.abc import AsyncIterator
from io import BytesIO
from pathlib import Path

import pytest
import pytest_asyncio
from pptx import Presentation
from pptx.util import Inches, Pt

from deckschema_core.engine.pptx import PptxEngine

from runner.orchestrator import JobOrchestrator
from runner.service import ConversionService
from runner.storage import InMemoryStorage
from runner.tasks import build_handlers

# 1x1 transparent PNG
PNG_PIXEL = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


@pytest.fixture
def deck_path(tmp_path: Path) -> Path:
    """Two-slide deck with a title, body text and one picture."""
    presentation = Presentation()
    presentation.core_properties.title = "Runner Deck"
    presentation.core_properties.author = "Ops"

    blank = presentation.slide_layouts[6]
    first = presentation.slides.add_slide(blank)
    box = first.shapes.add_textbox(Pt(72), Pt(72), Pt(288), Pt(36))
    box.text_frame.text = "Quarterly numbers"

    second = presentation.slides.add_slide(blank)
    body = second.shapes.add_textbox(Pt(72), Pt(72), Pt(400), Pt(100))
    body.text_frame.text = "Revenue grew"
    second.shapes.add_picture(BytesIO(PNG_PIXEL), Inches(5), Inches(3))

    path = tmp_path / "runner-deck.pptx"
    presentation.save(str(path))
    return path


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest_asyncio.fixture
async def service(storage: InMemoryStorage) -> AsyncIterator[ConversionService]:
    """Started service using python-pptx and in-memory backends."""
    orchestrator = JobOrchestrator(
        handlers=build_handlers(PptxEngine(), storage),
        dispatch_interval=0.01,
        default_timeout=30,
    )
    conversion = ConversionService(orchestrator, storage=storage)
    await conversion.start()
    yield conversion
    await conversion.stop()


@pytest_asyncio.fixture
async def plain_service() -> AsyncIterator[ConversionService]:
    """Started service without object storage."""
    orchestrator = JobOrchestrator(
        handlers=build_handlers(PptxEngine()),
        dispatch_interval=0.01,
        default_timeout=30,
    )
    conversion = ConversionService(orchestrator)
    await conversion.start()
    yield conversion
    await conversion.stop()
