"""Tests for rebuilding documents through an engine writer."""

import logging
from pathlib import Path

import pytest
from fakes import FakeEngine

from deckschema_core.errors import InputValidationError
from deckschema_core.pipeline.builder import BuildComponents, build_universal_document
from deckschema_core.pipeline.reconstruct import reconstruct_document


def _document() -> dict:
    return {
        "metadata": {"title": "Rebuilt", "slideCount": 1, "version": "1.0.0"},
        "slideSize": {"width": 960, "height": 540},
        "slides": [
            {
                "slideIndex": 0,
                "notes": {"hasNotes": True, "text": "Say hello"},
                "shapes": [
                    {
                        "shapeIndex": 0,
                        "shapeType": "textBox",
                        "text": "Hello",
                        "geometry": {"x": 10, "y": 10, "width": 200, "height": 40},
                    },
                    {
                        "shapeIndex": 1,
                        "shapeType": "autoShape",
                        "fillFormat": {
                            "type": "Solid",
                            "solidFillColor": {"r": 255, "g": 0, "b": 0},
                        },
                    },
                    {"shapeIndex": 2, "shapeType": "picture"},
                    {"shapeIndex": 3, "shapeType": "unknown", "error": True},
                ],
            }
        ],
    }


class TestReconstructDocument:
    """Tests for reconstruct_document."""

    def test_writes_text_and_rectangles(self, tmp_path: Path) -> None:
        """Text becomes text boxes, solid fills become rectangles."""
        engine = FakeEngine()
        output = tmp_path / "out.pptx"

        summary = reconstruct_document(_document(), engine, output)

        writer = engine.writers[0]
        assert writer.size == (960.0, 540.0)
        assert writer.properties["title"] == "Rebuilt"
        assert writer.notes == {0: "Say hello"}
        kinds = [item[0] for item in writer.slides[0]]
        assert kinds == ["text", "rect"]
        # No geometry: default placement for the second row
        assert writer.slides[0][1][2]["y"] == 160
        assert writer.slides[0][1][2]["width"] == 300
        assert writer.disposed
        assert summary.slide_count == 1
        assert summary.shape_count == 2
        assert summary.skipped_shapes == 2
        assert summary.file_size == output.stat().st_size

    def test_accepts_built_model(self, tmp_path: Path) -> None:
        """A UniversalDocument model is accepted directly."""
        slide = {
            "slideIndex": 0,
            "shapes": [
                {
                    "shapeIndex": 0,
                    "shapeType": "textBox",
                    "text": "From model",
                    "geometry": {"x": 0, "y": 0, "width": 100, "height": 50},
                }
            ],
        }
        document = build_universal_document(BuildComponents(slides=[slide]))
        summary = reconstruct_document(document, FakeEngine(), tmp_path / "m.pptx")
        assert summary.shape_count == 1

    def test_no_slides_rejected(self, tmp_path: Path) -> None:
        """Documents without slides are rejected before writing."""
        engine = FakeEngine()
        with pytest.raises(InputValidationError, match="No slides"):
            reconstruct_document({"slides": []}, engine, tmp_path / "x.pptx")
        assert engine.writers == []

    def test_rejection_is_logged_with_code(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Classified failures are logged as warnings carrying their code."""
        with caplog.at_level(logging.WARNING, logger="deckschema_core.pipeline.reconstruct"):
            with pytest.raises(InputValidationError):
                reconstruct_document({"slides": []}, FakeEngine(), tmp_path / "x.pptx")

        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert warnings
        assert "[validation_error]" in warnings[0].getMessage()
