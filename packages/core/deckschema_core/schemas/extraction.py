"""Intermediate extraction records."""

from typing import Any

from pydantic import Field

from deckschema_core.schemas.base import SchemaModel
from deckschema_core.schemas.universal import SlideSize, SlideSummary, Theme


class FileInfo(SchemaModel):
    """Result of validating a source file."""

    path: str = Field(..., description="Absolute path of the source file")
    name: str = Field(..., description="File name including extension")
    extension: str = Field(..., description="Lower-case extension with dot")
    size_bytes: int = Field(..., description="File size in bytes")


class PresentationInfo(SchemaModel):
    """Presentation-level data read from the engine."""

    document_properties: dict[str, Any] = Field(default_factory=dict)
    slide_size: SlideSize | None = None
    slide_count: int = 0
    master_slides: list[SlideSummary] = Field(default_factory=list)
    layout_slides: list[SlideSummary] = Field(default_factory=list)
    theme: Theme | None = None


class ExtractionReport(SchemaModel):
    """Counters for a single extraction run."""

    total_slides: int = 0
    successful_slides: int = 0
    failed_slides: int = 0
    total_shapes: int = 0
    successful_shapes: int = 0
    failed_shapes: int = 0
    duration_ms: float = 0
    errors: list[str] = Field(default_factory=list)


class ExtractionTree(SchemaModel):
    """Raw slide and shape records from one document.

    Slides and shapes are kept as camelCase dicts so enrichment can add
    fields without a model per stage.
    """

    source_file: str | None = None
    engine: str | None = None
    engine_version: str | None = None
    presentation: PresentationInfo = Field(default_factory=PresentationInfo)
    slides: list[dict[str, Any]] = Field(default_factory=list)
