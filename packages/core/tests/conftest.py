"""Shared fixtures built on the in-memory engine in ``fakes``."""

from pathlib import Path

import pytest
from fakes import FakeDocument, FakeEngine, FakeShape, FakeSlide

from deckschema_core.errors import EngineOpenError
from deckschema_core.schemas.universal import ShapeType


@pytest.fixture
def sample_document() -> FakeDocument:
    """Two slides: a title slide and a content slide with a filled box."""
    return FakeDocument(
        [
            FakeSlide(
                [FakeShape(name="Title 1", text="The quarterly results for this year")],
                name="Title",
                notes="Welcome everyone",
            ),
            FakeSlide(
                [
                    FakeShape(name="Body", text="Revenue and costs"),
                    FakeShape(
                        name="Banner",
                        shape_type=ShapeType.AUTO_SHAPE,
                        geometry={"x": 0, "y": 450, "width": 960, "height": 90, "rotation": 0},
                        fill={
                            "type": "Solid",
                            "solidFillColor": {"type": "RGB", "r": 20, "g": 40, "b": 200},
                        },
                    ),
                ]
            ),
        ],
        properties={"title": "Quarterly Review", "author": "Finance"},
    )


@pytest.fixture
def fake_engine(sample_document: FakeDocument) -> FakeEngine:
    return FakeEngine(sample_document)


@pytest.fixture
def deck_file(tmp_path: Path) -> Path:
    """A non-empty file with a supported extension."""
    path = tmp_path / "deck.pptx"
    path.write_bytes(b"not really a pptx")
    return path


@pytest.fixture
def broken_open_engine() -> FakeEngine:
    return FakeEngine(open_error=EngineOpenError("File is corrupt", reason="corrupt"))
