"""Rebuild a presentation file from a Universal document."""

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from deckschema_core.engine.base import DocumentEngine
from deckschema_core.errors import InputValidationError
from deckschema_core.schemas.base import SchemaModel
from deckschema_core.utils.logging import get_logger, log_exceptions, unit_label

logger = get_logger(__name__)

# Fallback placement for shapes without usable geometry
DEFAULT_BOX_X = 100
DEFAULT_BOX_Y = 100
DEFAULT_BOX_WIDTH = 300
DEFAULT_BOX_HEIGHT = 50
DEFAULT_ROW_SPACING = 60


class ReconstructionSummary(SchemaModel):
    """What was written by ``reconstruct_document``."""

    output_path: str
    file_size: int
    slide_count: int
    shape_count: int
    skipped_shapes: int


def _number(value: Any) -> float | None:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    return None


def _placement(shape: Mapping[str, Any], shape_index: int) -> dict[str, float]:
    geometry = shape.get("geometry") if isinstance(shape.get("geometry"), Mapping) else {}
    x, y = _number(geometry.get("x")), _number(geometry.get("y"))
    width, height = _number(geometry.get("width")), _number(geometry.get("height"))
    return {
        "x": x if x is not None else DEFAULT_BOX_X,
        "y": y if y is not None else DEFAULT_BOX_Y + shape_index * DEFAULT_ROW_SPACING,
        "width": width if width else DEFAULT_BOX_WIDTH,
        "height": height if height else DEFAULT_BOX_HEIGHT,
        "rotation": _number(geometry.get("rotation")) or 0,
    }


def _font(shape: Mapping[str, Any]) -> dict[str, Any] | None:
    frame = shape.get("textFrame") or {}
    for paragraph in frame.get("paragraphs") or []:
        for portion in paragraph.get("portions") or []:
            return {
                "name": portion.get("fontName"),
                "size": portion.get("fontHeight"),
                "bold": portion.get("fontBold"),
                "italic": portion.get("fontItalic"),
            }
    return None


def _solid_rgb(fill: Any) -> tuple[int, int, int] | None:
    if not isinstance(fill, Mapping) or fill.get("type") != "Solid":
        return None
    color = fill.get("solidFillColor")
    if not isinstance(color, Mapping):
        return None
    try:
        return int(color["r"]), int(color["g"]), int(color["b"])
    except (KeyError, TypeError, ValueError):
        return None


@log_exceptions(logger)
def reconstruct_document(
    document: BaseModel | Mapping[str, Any],
    engine: DocumentEngine,
    output_path: str | Path,
) -> ReconstructionSummary:
    """Write a presentation file for ``document``.

    Text-bearing shapes become text boxes and solid-filled shapes become
    rectangles; other shapes are skipped.

    Args:
        document: UniversalDocument or its JSON dict
        engine: Engine providing the writer
        output_path: Destination file

    Returns:
        ReconstructionSummary for the written file

    Raises:
        InputValidationError: If the document has no slides
    """
    if isinstance(document, BaseModel):
        data: Mapping[str, Any] = document.model_dump(mode="json", by_alias=True)
    else:
        data = document

    slides = data.get("slides")
    if not isinstance(slides, list) or not slides:
        raise InputValidationError("No slides found in document")

    output = Path(output_path)
    written = 0
    skipped = 0
    writer = engine.create_writer()
    try:
        size = data.get("slideSize")
        if isinstance(size, Mapping) and _number(size.get("width")) and _number(size.get("height")):
            writer.set_slide_size(float(size["width"]), float(size["height"]))
        metadata = data.get("metadata")
        if isinstance(metadata, Mapping):
            writer.set_properties(dict(metadata))

        for slide_index, slide in enumerate(slides):
            target = writer.add_slide()
            if not isinstance(slide, Mapping):
                logger.warning(f"Skipping non-record slide ({unit_label(slide_index)})")
                continue

            background = slide.get("background")
            if isinstance(background, Mapping):
                rgb = _solid_rgb(background.get("fillFormat"))
                if rgb is not None and rgb != (255, 255, 255):
                    writer.set_background(target, rgb)

            notes = slide.get("notes")
            if isinstance(notes, Mapping) and notes.get("text"):
                writer.set_notes(target, str(notes["text"]))

            for shape_index, shape in enumerate(slide.get("shapes") or []):
                if not isinstance(shape, Mapping) or shape.get("error"):
                    skipped += 1
                    continue
                placement = _placement(shape, shape_index)
                text = shape.get("text")
                if not isinstance(text, str):
                    text = (shape.get("textFrame") or {}).get("text")
                fill_rgb = _solid_rgb(shape.get("fillFormat"))
                if isinstance(text, str) and text.strip():
                    writer.add_text_box(target, placement, text, _font(shape))
                elif fill_rgb is not None:
                    writer.add_rectangle(target, placement, fill_rgb)
                else:
                    skipped += 1
                    continue
                written += 1

        writer.save(output)
    finally:
        writer.dispose()

    summary = ReconstructionSummary(
        output_path=str(output),
        file_size=output.stat().st_size,
        slide_count=len(slides),
        shape_count=written,
        skipped_shapes=skipped,
    )
    logger.info(
        f"Reconstructed {summary.slide_count} slides ({written} shapes, "
        f"{skipped} skipped) to {output}"
    )
    return summary
