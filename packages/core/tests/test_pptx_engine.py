"""Tests for the python-pptx engine against generated decks."""

import base64
from io import BytesIO
from pathlib import Path

import pytest
from pptx import Presentation
from pptx.dml.color import RGBColor
from pptx.enum.shapes import MSO_SHAPE
from pptx.util import Inches, Pt

from deckschema_core.engine.pptx import PptxEngine
from deckschema_core.errors import EngineCapabilityError, EngineOpenError
from deckschema_core.pipeline.extractor import extract_presentation, open_document
from deckschema_core.pipeline.reconstruct import reconstruct_document

# 1x1 transparent PNG
PNG_PIXEL = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


@pytest.fixture
def generated_deck(tmp_path: Path) -> Path:
    """Two-slide deck with text, a filled shape, a table and a picture."""
    presentation = Presentation()
    presentation.core_properties.title = "Generated Deck"
    presentation.core_properties.author = "Test Suite"

    blank = presentation.slide_layouts[6]
    first = presentation.slides.add_slide(blank)
    box = first.shapes.add_textbox(Pt(72), Pt(72), Pt(288), Pt(36))
    box.name = "Headline"
    box.text_frame.text = "Hello from python-pptx"
    box.text_frame.paragraphs[0].runs[0].font.bold = True
    rect = first.shapes.add_shape(MSO_SHAPE.RECTANGLE, Pt(0), Pt(400), Pt(720), Pt(40))
    rect.fill.solid()
    rect.fill.fore_color.rgb = RGBColor(0x10, 0x20, 0xC0)
    first.notes_slide.notes_text_frame.text = "Speaker notes"

    second = presentation.slides.add_slide(blank)
    table = second.shapes.add_table(2, 3, Inches(1), Inches(1), Inches(4), Inches(1)).table
    table.cell(0, 0).text = "Header"
    table.cell(1, 2).text = "Value"
    second.shapes.add_picture(BytesIO(PNG_PIXEL), Inches(5), Inches(3))

    path = tmp_path / "generated.pptx"
    presentation.save(str(path))
    return path


class TestPptxEngine:
    """Tests for PptxEngine.open and the handles it returns."""

    def test_extracts_generated_deck(self, generated_deck: Path) -> None:
        """Shapes, payloads and properties are read from a real file."""
        engine = PptxEngine()
        with open_document(engine, generated_deck) as handle:
            tree, report = extract_presentation(handle, generated_deck, engine)

        assert report.failed_shapes == 0
        assert tree.engine == "python-pptx"
        assert tree.presentation.slide_count == 2
        assert tree.presentation.document_properties["title"] == "Generated Deck"
        assert tree.presentation.slide_size.width == 720
        assert tree.presentation.master_slides

        first = tree.slides[0]
        assert first["notes"]["text"] == "Speaker notes"
        headline, rect = first["shapes"]
        assert headline["shapeType"] == "textBox"
        assert headline["name"] == "Headline"
        assert headline["text"] == "Hello from python-pptx"
        assert headline["textFrame"]["paragraphs"][0]["portions"][0]["fontBold"] is True
        assert headline["geometry"] == {
            "x": 72,
            "y": 72,
            "width": 288,
            "height": 36,
            "rotation": 0,
        }
        assert rect["fillFormat"] == {
            "type": "Solid",
            "solidFillColor": {"type": "RGB", "r": 0x10, "g": 0x20, "b": 0xC0},
        }

        table, picture = tree.slides[1]["shapes"]
        assert table["shapeType"] == "table"
        assert table["properties"]["kind"] == "table"
        assert table["properties"]["rowCount"] == 2
        assert table["properties"]["columnCount"] == 3
        assert table["properties"]["cells"][0][0] == "Header"
        assert picture["shapeType"] == "picture"
        assert picture["properties"]["contentType"] == "image/png"

    def test_render_assets(self, generated_deck: Path) -> None:
        """Embedded pictures are returned as assets."""
        with open_document(PptxEngine(), generated_deck) as handle:
            assets = handle.render("assets")

        assert len(assets) == 1
        assert assets[0].content_type == "image/png"
        assert assets[0].slide_index == 1
        assert assets[0].data == PNG_PIXEL

    def test_unknown_render_format(self, generated_deck: Path) -> None:
        """Formats the engine cannot produce raise a capability error."""
        with open_document(PptxEngine(), generated_deck) as handle:
            with pytest.raises(EngineCapabilityError):
                handle.render("gif")  # type: ignore[arg-type]

    def test_corrupt_file(self, tmp_path: Path) -> None:
        """A non-zip file is reported as corrupt."""
        path = tmp_path / "broken.pptx"
        path.write_bytes(b"this is not a zip archive")
        with pytest.raises(EngineOpenError) as exc_info:
            PptxEngine().open(path)
        assert exc_info.value.reason == "corrupt"

    def test_unsupported_extension(self, tmp_path: Path) -> None:
        """Unknown extensions are refused before reading."""
        path = tmp_path / "deck.key"
        path.write_bytes(b"data")
        with pytest.raises(EngineOpenError) as exc_info:
            PptxEngine().open(path)
        assert exc_info.value.reason == "unsupported-format"


class TestPptxWriter:
    """Tests for reconstruction through the python-pptx writer."""

    def test_round_trip_text(self, tmp_path: Path) -> None:
        """Reconstructed text and fills survive a reopen."""
        document = {
            "metadata": {"title": "Round Trip", "author": "Writer"},
            "slideSize": {"width": 960, "height": 540},
            "slides": [
                {
                    "slideIndex": 0,
                    "shapes": [
                        {
                            "shapeIndex": 0,
                            "shapeType": "textBox",
                            "text": "Rebuilt text",
                            "geometry": {"x": 36, "y": 36, "width": 400, "height": 60},
                        },
                        {
                            "shapeIndex": 1,
                            "shapeType": "autoShape",
                            "geometry": {"x": 36, "y": 200, "width": 100, "height": 100},
                            "fillFormat": {
                                "type": "Solid",
                                "solidFillColor": {"r": 200, "g": 10, "b": 10},
                            },
                        },
                    ],
                }
            ],
        }
        output = tmp_path / "rebuilt.pptx"
        engine = PptxEngine()

        summary = reconstruct_document(document, engine, output)
        assert summary.shape_count == 2

        with open_document(engine, output) as handle:
            tree, _ = extract_presentation(handle)

        assert tree.presentation.document_properties["title"] == "Round Trip"
        assert tree.presentation.slide_size.width == 960
        shapes = tree.slides[0]["shapes"]
        assert shapes[0]["text"] == "Rebuilt text"
        assert shapes[1]["fillFormat"]["solidFillColor"]["r"] == 200
