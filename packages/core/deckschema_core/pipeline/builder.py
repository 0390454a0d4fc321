"""Assemble extracted and enriched records into a UniversalDocument."""

import time
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from deckschema_core.errors import SchemaBuildError
from deckschema_core.pipeline.enricher import EnrichmentStats
from deckschema_core.schemas.extraction import ExtractionReport, PresentationInfo
from deckschema_core.schemas.universal import (
    SCHEMA_VERSION,
    ConversionMetadata,
    DocumentMetadata,
    ProcessingStats,
    Shape,
    Slide,
    SlideSize,
    SlideSummary,
    Theme,
    UniversalDocument,
    utc_now,
)
from deckschema_core.schemas.validation import StructureCheck
from deckschema_core.utils.logging import get_logger, unit_label

logger = get_logger(__name__)

PIPELINE_VERSION = "1.0.0"

_METADATA_STRING_FIELDS = ("title", "subject", "author", "company", "category", "keywords", "comments")


@dataclass
class BuildComponents:
    """Inputs to ``build_universal_document``.

    ``slides`` is deliberately untyped: anything other than a list of
    mappings is a structural error the builder reports.
    """

    slides: Any
    presentation: PresentationInfo = field(default_factory=PresentationInfo)
    overrides: dict[str, Any] = field(default_factory=dict)
    source_file: str | None = None
    document_id: str | None = None
    conversion_id: str | None = None
    engine: str | None = None
    engine_version: str | None = None
    extraction_report: ExtractionReport | None = None
    enrichment_stats: EnrichmentStats | None = None


def _coerce_datetime(value: Any) -> datetime | None:
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return None
    if not isinstance(value, datetime):
        return None
    # Core properties carry naive UTC timestamps
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def build_metadata(
    overrides: Mapping[str, Any],
    properties: Mapping[str, Any],
    slide_count: int,
    extraction_metadata: dict[str, Any] | None = None,
) -> DocumentMetadata:
    """Merge overrides over document properties over defaults.

    ``slideCount`` always comes from ``slide_count``; upstream values are
    ignored.
    """
    defaults = DocumentMetadata()
    values: dict[str, Any] = {}

    for name in _METADATA_STRING_FIELDS:
        for source in (overrides, properties):
            value = source.get(name)
            if isinstance(value, str) and value.strip():
                values[name] = value
                break

    for name, alias in (("created_time", "createdTime"), ("last_saved_time", "lastSavedTime")):
        for source in (overrides, properties):
            parsed = _coerce_datetime(source.get(alias))
            if parsed is not None:
                values[name] = parsed
                break

    revision = overrides.get("revision", properties.get("revision"))
    if isinstance(revision, int) and not isinstance(revision, bool) and revision >= 1:
        values["revision"] = revision

    if "comments" not in values and properties.get("sourceFile"):
        values["comments"] = f"Converted from: {properties['sourceFile']}"

    return defaults.model_copy(
        update={
            **values,
            "slide_count": slide_count,
            "extraction_metadata": extraction_metadata,
        }
    )


def _error_shape(shape_index: int, message: str) -> Shape:
    return Shape(
        shape_index=shape_index,
        name=f"Error Shape {shape_index + 1}",
        geometry={"x": 0, "y": 0, "width": 100, "height": 100, "rotation": 0},
        error=True,
        error_message=message,
    )


def _build_shape(raw: Any, slide_index: int, shape_index: int) -> Shape:
    if not isinstance(raw, Mapping):
        message = f"Shape record is {type(raw).__name__}, expected a mapping"
        logger.warning(f"{message} ({unit_label(slide_index, shape_index)})")
        return _error_shape(shape_index, message)
    try:
        return Shape.model_validate({**raw, "shapeIndex": shape_index})
    except ValidationError as e:
        message = f"Invalid shape record: {e.error_count()} errors"
        logger.warning(f"{message} ({unit_label(slide_index, shape_index)}): {e}")
        placeholder = _error_shape(shape_index, message)
        if isinstance(raw.get("name"), str):
            placeholder.name = raw["name"]
        return placeholder


def _build_slide(raw: Mapping[str, Any], slide_index: int) -> Slide:
    shapes_raw = raw.get("shapes")
    if shapes_raw is None:
        shapes_raw = []
    if not isinstance(shapes_raw, list):
        raise SchemaBuildError(
            f"Slide {slide_index} shapes is {type(shapes_raw).__name__}, expected a list"
        )
    shapes = [_build_shape(s, slide_index, j) for j, s in enumerate(shapes_raw)]
    slide_fields = {k: v for k, v in raw.items() if k != "shapes"}
    slide_fields["slideIndex"] = slide_index
    slide_fields.setdefault("name", f"Slide {slide_index + 1}")
    try:
        slide = Slide.model_validate(slide_fields)
    except ValidationError as e:
        logger.warning(f"Invalid slide record ({unit_label(slide_index)}): {e}")
        slide = Slide(
            slide_index=slide_index,
            name=f"Slide {slide_index + 1} (Error)",
            error=True,
            error_message=f"Invalid slide record: {e.error_count()} errors",
        )
    slide.shapes = shapes
    return slide


def compute_processing_stats(
    slides: list[Slide], enrichment: EnrichmentStats | None = None
) -> ProcessingStats:
    """Derive counters from the ``error`` and ``processingMetadata`` markers."""
    total_slides = len(slides)
    failed_slides = sum(1 for s in slides if s.error)
    shapes = [shape for s in slides for shape in s.shapes]
    total_shapes = len(shapes)
    failed_shapes = sum(1 for shape in shapes if shape.error)
    enriched = sum(1 for shape in shapes if shape.enrichment_status == "success")
    enrichment_failed = sum(1 for shape in shapes if shape.enrichment_status == "failed")
    if enrichment is not None and not (enriched or enrichment_failed):
        enriched, enrichment_failed = enrichment.enriched, enrichment.failed

    timings = [
        float(s.processing_metadata["processingTime"])
        for s in slides
        if s.processing_metadata
        and isinstance(s.processing_metadata.get("processingTime"), (int, float))
    ]

    def _rate(ok: int, total: int) -> float:
        return round(ok / total * 100, 2) if total else 100

    return ProcessingStats(
        total_slides=total_slides,
        total_shapes=total_shapes,
        successful_slides=total_slides - failed_slides,
        failed_slides=failed_slides,
        successful_shapes=total_shapes - failed_shapes,
        failed_shapes=failed_shapes,
        enriched_shapes=enriched,
        enrichment_failed_shapes=enrichment_failed,
        avg_shapes_per_slide=round(total_shapes / total_slides, 2) if total_slides else 0,
        avg_processing_time_per_slide=round(sum(timings) / len(timings), 3) if timings else 0,
        slide_success_rate=_rate(total_slides - failed_slides, total_slides),
        shape_success_rate=_rate(total_shapes - failed_shapes, total_shapes),
    )


def build_universal_document(components: BuildComponents) -> UniversalDocument:
    """Build a UniversalDocument from extraction output.

    Args:
        components: Slides plus presentation info and provenance

    Returns:
        The assembled document

    Raises:
        SchemaBuildError: If the slide array is missing or a slide is not a record
    """
    started = time.perf_counter()
    raw_slides = components.slides
    if raw_slides is None:
        raise SchemaBuildError("Cannot build document: slide array is missing")
    if not isinstance(raw_slides, list):
        raise SchemaBuildError(
            f"Cannot build document: slides is {type(raw_slides).__name__}, expected a list"
        )
    for index, raw in enumerate(raw_slides):
        if not isinstance(raw, Mapping):
            raise SchemaBuildError(
                f"Cannot build document: slide {index} is {type(raw).__name__}, "
                "expected a record"
            )

    slides = [_build_slide(raw, index) for index, raw in enumerate(raw_slides)]
    presentation = components.presentation
    properties = dict(presentation.document_properties)
    if components.source_file:
        properties.setdefault("sourceFile", components.source_file)

    extraction_metadata = None
    if components.extraction_report is not None:
        extraction_metadata = components.extraction_report.to_json_dict()

    metadata = build_metadata(
        components.overrides, properties, len(slides), extraction_metadata
    )

    masters = list(presentation.master_slides) or [
        SlideSummary(slide_id=0, name="Master Slide", slide_type="MasterSlide")
    ]
    stats = compute_processing_stats(slides, components.enrichment_stats)
    now = utc_now()

    document = UniversalDocument(
        id=components.document_id or str(uuid.uuid4()),
        metadata=metadata,
        slide_size=presentation.slide_size or SlideSize(),
        slides=slides,
        master_slides=masters,
        layout_slides=list(presentation.layout_slides),
        theme=presentation.theme or Theme(),
        conversion_metadata=ConversionMetadata(
            conversion_id=components.conversion_id or str(uuid.uuid4()),
            source_file=components.source_file,
            engine=components.engine,
            engine_version=components.engine_version,
            pipeline_version=PIPELINE_VERSION,
            schema_version=SCHEMA_VERSION,
            converted_at=now,
            build_time_ms=round((time.perf_counter() - started) * 1000, 3),
            total_shapes=stats.total_shapes,
            processing_stats=stats,
        ),
        created_at=now,
        updated_at=now,
    )
    logger.info(
        f"Built document {document.id}: {stats.total_slides} slides, "
        f"{stats.total_shapes} shapes ({stats.failed_slides} slides and "
        f"{stats.failed_shapes} shapes failed)"
    )
    return document


def check_structure(document: UniversalDocument | Mapping[str, Any]) -> StructureCheck:
    """Fast structural pre-check.

    Requires an id, a slide list and a shape list per slide. A slide
    without ``slideId`` is only a warning.
    """
    if isinstance(document, UniversalDocument):
        data: Any = document.to_json_dict()
    else:
        data = document

    errors: list[str] = []
    warnings: list[str] = []
    if not isinstance(data, Mapping):
        return StructureCheck(valid=False, errors=["Document must be an object"])

    if not data.get("id"):
        errors.append("Document id is missing")

    slides = data.get("slides")
    if not isinstance(slides, list):
        errors.append("slides must be an array")
    else:
        for index, slide in enumerate(slides):
            if not isinstance(slide, Mapping):
                errors.append(f"Slide {index} must be an object")
                continue
            if not slide.get("slideId"):
                warnings.append(f"Slide {index} is missing slideId")
            if not isinstance(slide.get("shapes"), list):
                errors.append(f"Slide {index} shapes must be an array")

    return StructureCheck(valid=not errors, errors=errors, warnings=warnings)
