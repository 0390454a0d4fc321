"""Extraction: walk an opened document into slide and shape records.

Failures are contained per unit. A shape whose type or geometry cannot be
read becomes an error-tagged placeholder; a slide that cannot be read
becomes an error-tagged placeholder slide. Optional shape facets (text,
fill, line, effects, payload) are read one by one and dropped on failure.
"""

import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from deckschema_core.engine.base import (
    DocumentEngine,
    DocumentHandle,
    ShapeHandle,
    SlideHandle,
)
from deckschema_core.errors import FileValidationError
from deckschema_core.schemas.extraction import (
    ExtractionReport,
    ExtractionTree,
    FileInfo,
    PresentationInfo,
)
from deckschema_core.schemas.universal import SlideSize, SlideSummary, Theme
from deckschema_core.utils.logging import get_logger, unit_label

logger = get_logger(__name__)

SUPPORTED_EXTENSIONS = (".pptx", ".ppt")

ERROR_SHAPE_GEOMETRY = {"x": 0, "y": 0, "width": 100, "height": 100, "rotation": 0}


def validate_presentation_file(
    path: str | Path, extensions: tuple[str, ...] = SUPPORTED_EXTENSIONS
) -> FileInfo:
    """Check that a source file can be handed to the engine.

    Args:
        path: Source file path
        extensions: Accepted lower-case extensions

    Returns:
        FileInfo describing the file

    Raises:
        FileValidationError: If the file is missing, empty or unsupported
    """
    source = Path(path)
    if not source.is_file():
        raise FileValidationError(f"File does not exist: {source}")

    size = source.stat().st_size
    if size == 0:
        raise FileValidationError(f"File is empty: {source}")

    extension = source.suffix.lower()
    if extension not in extensions:
        raise FileValidationError(
            f"Unsupported file type: {extension or '(none)'} "
            f"(expected one of {', '.join(extensions)})"
        )

    return FileInfo(
        path=str(source.resolve()),
        name=source.name,
        extension=extension,
        size_bytes=size,
    )


@contextmanager
def open_document(engine: DocumentEngine, path: str | Path) -> Iterator[DocumentHandle]:
    """Open a document and dispose the handle on every exit path."""
    handle = engine.open(path)
    try:
        yield handle
    finally:
        handle.dispose()
        logger.debug(f"Disposed handle for {path}")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _optional_facet(
    label: str, facet: str, getter: Callable[[], Any]
) -> Any:
    try:
        return getter()
    except Exception as e:
        logger.warning(f"Failed to read {facet} ({label}): {e}")
        return None


def _error_shape(shape_index: int, message: str) -> dict[str, Any]:
    return {
        "shapeIndex": shape_index,
        "shapeType": "unknown",
        "name": f"Error Shape {shape_index + 1}",
        "geometry": dict(ERROR_SHAPE_GEOMETRY),
        "error": True,
        "errorMessage": message,
    }


def _error_slide(slide_index: int, message: str) -> dict[str, Any]:
    return {
        "slideIndex": slide_index,
        "name": f"Slide {slide_index + 1} (Error)",
        "slideType": "Slide",
        "shapes": [],
        "error": True,
        "errorMessage": message,
    }


def extract_shape(shape: ShapeHandle, slide_index: int, shape_index: int) -> dict[str, Any]:
    """Read one shape into a record.

    Raises whatever the engine raises for the core facets (type, geometry).
    """
    label = unit_label(slide_index, shape_index)
    record: dict[str, Any] = {
        "shapeIndex": shape_index,
        "shapeType": shape.shape_type().value,
        "geometry": shape.geometry(),
    }
    record["name"] = (
        _optional_facet(label, "name", shape.name) or f"Shape {shape_index + 1}"
    )

    shape_id = _optional_facet(label, "id", shape.shape_id)
    if shape_id:
        record["shapeId"] = shape_id

    text_frame = _optional_facet(label, "text", shape.text_frame)
    if text_frame is not None:
        record["text"] = text_frame.get("text", "")
        record["textFrame"] = text_frame

    for key, facet, getter in (
        ("fillFormat", "fill", shape.fill),
        ("lineFormat", "line", shape.line),
        ("effectFormat", "effects", shape.effects),
        ("properties", "payload", shape.payload),
    ):
        value = _optional_facet(label, facet, getter)
        if value is not None:
            record[key] = value

    return record


def extract_slide(
    slide: SlideHandle, slide_index: int, report: ExtractionReport
) -> dict[str, Any]:
    """Read one slide, containing per-shape failures."""
    started = time.perf_counter()
    label = unit_label(slide_index)

    shapes: list[dict[str, Any]] = []
    failed = 0
    for shape_index, shape in enumerate(slide.shapes()):
        try:
            shapes.append(extract_shape(shape, slide_index, shape_index))
        except Exception as e:
            failed += 1
            message = f"Failed to extract shape: {e}"
            logger.error(f"{message} ({unit_label(slide_index, shape_index)})")
            report.errors.append(f"{unit_label(slide_index, shape_index)}: {e}")
            shapes.append(_error_shape(shape_index, str(e)))

    record: dict[str, Any] = {
        "slideIndex": slide_index,
        "name": _optional_facet(label, "name", slide.name) or f"Slide {slide_index + 1}",
        "slideType": "Slide",
        "shapes": shapes,
    }
    slide_id = _optional_facet(label, "id", slide.slide_id)
    if slide_id:
        record["slideId"] = slide_id

    background = _optional_facet(label, "background", slide.background)
    if background is not None:
        record["background"] = {"type": background.get("type", "Solid"), "fillFormat": background}

    notes = _optional_facet(label, "notes", slide.notes)
    if notes:
        record["notes"] = {"hasNotes": True, "text": notes}

    transition = _optional_facet(label, "transition", slide.transition)
    if transition is not None:
        record["transition"] = transition

    report.total_shapes += len(shapes)
    report.failed_shapes += failed
    report.successful_shapes += len(shapes) - failed

    record["processingMetadata"] = {
        "processingTime": round((time.perf_counter() - started) * 1000, 3),
        "shapeCount": len(shapes),
        "successfulShapes": len(shapes) - failed,
        "failedShapes": failed,
        "timestamp": _now_iso(),
    }
    return record


def _summaries(
    slides: list[SlideHandle], slide_type: str, fallback: str
) -> list[SlideSummary]:
    summaries = []
    for index, slide in enumerate(slides):
        try:
            shape_count = len(slide.shapes())
        except Exception as e:
            logger.warning(f"Failed to count shapes on {slide_type} {index}: {e}")
            shape_count = 0
        summaries.append(
            SlideSummary(
                slide_id=index,
                name=_optional_facet(slide_type, "name", slide.name)
                or f"{fallback} {index + 1}",
                slide_type=slide_type,
                shape_count=shape_count,
            )
        )
    return summaries


def extract_presentation_info(handle: DocumentHandle) -> PresentationInfo:
    """Read presentation-level metadata.

    Only ``slide_count`` is required; every other getter is optional.
    """
    properties = _optional_facet("document", "properties", handle.document_properties) or {}
    size = _optional_facet("document", "slide size", handle.slide_size)
    theme = _optional_facet("document", "theme", handle.theme)
    masters = _optional_facet("document", "masters", handle.master_slides) or []
    layouts = _optional_facet("document", "layouts", handle.layout_slides) or []

    return PresentationInfo(
        document_properties={k: v for k, v in properties.items() if v is not None},
        slide_size=SlideSize.model_validate(size) if size else None,
        slide_count=handle.slide_count(),
        master_slides=_summaries(masters, "MasterSlide", "Master Slide"),
        layout_slides=_summaries(layouts, "LayoutSlide", "Layout Slide"),
        theme=_theme_from(theme),
    )


def _theme_from(raw: dict[str, Any] | None) -> Theme | None:
    if not raw:
        return None
    defaults = Theme()
    colors = {**defaults.color_scheme, **(raw.get("colorScheme") or {})}
    fonts = {**defaults.font_scheme.to_json_dict(), **(raw.get("fontScheme") or {})}
    return Theme(
        name=raw.get("name") or defaults.name,
        color_scheme=colors,
        font_scheme=fonts,
    )


def extract_presentation(
    handle: DocumentHandle,
    source_path: str | Path | None = None,
    engine: DocumentEngine | None = None,
) -> tuple[ExtractionTree, ExtractionReport]:
    """Extract every slide of an opened document.

    Args:
        handle: Opened document handle
        source_path: Path the handle was opened from
        engine: Engine that opened the handle, for provenance

    Returns:
        Tuple of (extraction tree, extraction report)
    """
    started = time.perf_counter()
    report = ExtractionReport()
    presentation = extract_presentation_info(handle)

    slides: list[dict[str, Any]] = []
    for slide_index in range(presentation.slide_count):
        try:
            slide = handle.slide(slide_index)
            slides.append(extract_slide(slide, slide_index, report))
            report.successful_slides += 1
        except Exception as e:
            logger.error(f"Failed to extract slide ({unit_label(slide_index)}): {e}")
            report.errors.append(f"{unit_label(slide_index)}: {e}")
            report.failed_slides += 1
            slides.append(_error_slide(slide_index, str(e)))

    report.total_slides = len(slides)
    report.duration_ms = round((time.perf_counter() - started) * 1000, 3)

    logger.info(
        f"Extracted {report.successful_slides}/{report.total_slides} slides, "
        f"{report.successful_shapes}/{report.total_shapes} shapes "
        f"in {report.duration_ms:.0f}ms"
    )

    tree = ExtractionTree(
        source_file=str(source_path) if source_path is not None else None,
        engine=engine.name if engine else None,
        engine_version=engine.version if engine else None,
        presentation=presentation,
        slides=slides,
    )
    return tree, report
