"""Universal Schema document model."""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from deckschema_core.schemas.base import SchemaModel

SCHEMA_VERSION = "1.0.0"


def utc_now() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


class ShapeType(str, Enum):
    """Closed set of shape kinds understood by the schema."""

    TEXT_BOX = "textBox"
    AUTO_SHAPE = "autoShape"
    CHART = "chart"
    TABLE = "table"
    PICTURE = "picture"
    VIDEO = "video"
    AUDIO = "audio"
    GROUP = "group"
    CONNECTOR = "connector"
    SMART_ART = "smartArt"
    OLE_OBJECT = "oleObject"
    PLACEHOLDER = "placeholder"
    FREEFORM = "freeform"
    UNKNOWN = "unknown"


class RgbColor(SchemaModel):
    """An sRGB color."""

    type: Literal["RGB"] = "RGB"
    r: int = Field(..., ge=0, le=255)
    g: int = Field(..., ge=0, le=255)
    b: int = Field(..., ge=0, le=255)


class Geometry(SchemaModel):
    """Shape placement in points."""

    x: float = 0
    y: float = 0
    width: float = Field(100, ge=0)
    height: float = Field(50, ge=0)
    rotation: float = Field(0, ge=0, lt=360)


class TextPortion(SchemaModel):
    """A run of uniformly formatted text."""

    portion_index: int = 0
    text: str = ""
    font_name: str | None = None
    font_height: float | None = None
    font_bold: bool | None = None
    font_italic: bool | None = None
    font_color: RgbColor | None = None


class Paragraph(SchemaModel):
    """A paragraph inside a text frame."""

    paragraph_index: int = 0
    portions: list[TextPortion] = Field(default_factory=list)
    alignment: str | None = None


class TextFrame(SchemaModel):
    """Text content of a shape."""

    text: str = ""
    paragraphs: list[Paragraph] = Field(default_factory=list)


class FillFormat(SchemaModel):
    """Fill of a shape or background."""

    type: str = Field("NoFill", description="Solid, Gradient, Pattern, Picture, NoFill")
    solid_fill_color: RgbColor | None = None


class LineFormat(SchemaModel):
    """Outline of a shape."""

    width: float | None = None
    dash_style: str | None = None
    color: RgbColor | None = None


class TableProperties(SchemaModel):
    """Payload for table shapes."""

    kind: Literal["table"] = "table"
    row_count: int = 0
    column_count: int = 0
    cells: list[list[str]] = Field(default_factory=list)
    first_row_header: bool = False


class ChartProperties(SchemaModel):
    """Payload for chart shapes."""

    kind: Literal["chart"] = "chart"
    chart_type: str | None = None
    title: str | None = None
    has_legend: bool = False
    series_count: int = 0
    categories: list[str] = Field(default_factory=list)


class PictureProperties(SchemaModel):
    """Payload for picture shapes."""

    kind: Literal["picture"] = "picture"
    content_type: str | None = None
    filename: str | None = None
    size_bytes: int = 0
    image_hash: str | None = None


class MediaProperties(SchemaModel):
    """Payload for embedded audio or video."""

    kind: Literal["media"] = "media"
    media_type: Literal["video", "audio"] = "video"
    content_type: str | None = None


class GroupProperties(SchemaModel):
    """Payload for grouped shapes."""

    kind: Literal["group"] = "group"
    child_count: int = 0
    child_names: list[str] = Field(default_factory=list)


ShapeProperties = Annotated[
    Union[
        TableProperties,
        ChartProperties,
        PictureProperties,
        MediaProperties,
        GroupProperties,
    ],
    Field(discriminator="kind"),
]


class Shape(SchemaModel):
    """A single shape on a slide.

    Exactly one type-specific payload may be set in ``properties``; the
    ``kind`` tag selects which variant is present.
    """

    shape_index: int = Field(..., ge=0)
    shape_id: str | None = None
    shape_type: ShapeType = ShapeType.UNKNOWN
    name: str = ""
    geometry: Geometry = Field(default_factory=Geometry)
    text: str | None = None
    text_frame: TextFrame | None = None
    fill_format: FillFormat | None = None
    line_format: LineFormat | None = None
    effect_format: dict[str, Any] | None = None
    properties: ShapeProperties | None = None

    enriched_text: dict[str, Any] | None = None
    enriched_text_frame: dict[str, Any] | None = None
    enriched_geometry: dict[str, Any] | None = None
    enriched_fill_format: dict[str, Any] | None = None
    enriched_properties: dict[str, Any] | None = None
    computed_properties: dict[str, Any] | None = None
    enrichment_metadata: dict[str, Any] | None = None
    enrichment_status: Literal["success", "failed"] | None = None
    enrichment_error: str | None = None

    processing_metadata: dict[str, Any] | None = None
    error: bool | None = None
    error_message: str | None = None


class Background(SchemaModel):
    """Slide background."""

    type: str = "Solid"
    fill_format: FillFormat = Field(
        default_factory=lambda: FillFormat(
            type="Solid", solid_fill_color=RgbColor(r=255, g=255, b=255)
        )
    )


class Notes(SchemaModel):
    """Speaker notes."""

    has_notes: bool = False
    text: str = ""


class Transition(SchemaModel):
    """Slide transition."""

    type: str = "None"
    duration: float = 0


class Slide(SchemaModel):
    """A single slide in a Universal document."""

    slide_index: int = Field(..., ge=0)
    slide_id: str | None = None
    name: str = ""
    slide_type: Literal["Slide", "MasterSlide", "LayoutSlide"] = "Slide"
    shapes: list[Shape] = Field(default_factory=list)
    background: Background = Field(default_factory=Background)
    notes: Notes = Field(default_factory=Notes)
    transition: Transition = Field(default_factory=Transition)
    processing_metadata: dict[str, Any] | None = None
    error: bool | None = None
    error_message: str | None = None


class SlideSummary(SchemaModel):
    """Master or layout slide summary."""

    slide_id: int
    name: str
    slide_type: Literal["MasterSlide", "LayoutSlide"]
    shape_count: int = 0


class SlideSize(SchemaModel):
    """Slide dimensions.

    Extracted decks report points (960x540 for 16:9). The default is a
    pixel-style 1920x1080 canvas used when no deck size is known.
    """

    width: float = Field(1920, gt=0)
    height: float = Field(1080, gt=0)
    type: str = "OnScreen16x9"


class FontScheme(SchemaModel):
    """Theme fonts."""

    major_font: str = "Calibri"
    minor_font: str = "Calibri"


def _default_color_scheme() -> dict[str, str]:
    return {
        "background1": "#ffffff",
        "text1": "#000000",
        "background2": "#f8f9fa",
        "text2": "#333333",
        "accent1": "#007bff",
        "accent2": "#28a745",
    }


class Theme(SchemaModel):
    """Presentation theme."""

    name: str = "Default Theme"
    color_scheme: dict[str, str] = Field(default_factory=_default_color_scheme)
    font_scheme: FontScheme = Field(default_factory=FontScheme)


class DocumentMetadata(SchemaModel):
    """Presentation-level metadata."""

    title: str = "Untitled Presentation"
    subject: str | None = ""
    author: str | None = "Unknown"
    company: str | None = ""
    category: str | None = None
    keywords: str | None = None
    comments: str | None = None
    created_time: datetime = Field(default_factory=utc_now)
    last_saved_time: datetime = Field(default_factory=utc_now)
    slide_count: int = Field(0, ge=0)
    revision: int = 1
    version: str = SCHEMA_VERSION
    extraction_metadata: dict[str, Any] | None = None


class ProcessingStats(SchemaModel):
    """Counters derived from error and enrichment markers."""

    total_slides: int = 0
    total_shapes: int = 0
    successful_slides: int = 0
    failed_slides: int = 0
    successful_shapes: int = 0
    failed_shapes: int = 0
    enriched_shapes: int = 0
    enrichment_failed_shapes: int = 0
    avg_shapes_per_slide: float = 0
    avg_processing_time_per_slide: float = 0
    slide_success_rate: float = 100
    shape_success_rate: float = 100


class ConversionMetadata(SchemaModel):
    """Write-once provenance of a conversion run."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    conversion_id: str
    source_file: str | None = None
    engine: str | None = None
    engine_version: str | None = None
    pipeline_version: str = SCHEMA_VERSION
    schema_version: str = SCHEMA_VERSION
    converted_at: datetime = Field(default_factory=utc_now)
    build_time_ms: float = 0
    total_shapes: int = 0
    processing_stats: ProcessingStats = Field(default_factory=ProcessingStats)


class UniversalDocument(SchemaModel):
    """Normalized, versioned representation of a presentation."""

    id: str
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)
    slide_size: SlideSize = Field(default_factory=SlideSize)
    slides: list[Slide] = Field(default_factory=list)
    master_slides: list[SlideSummary] = Field(default_factory=list)
    layout_slides: list[SlideSummary] = Field(default_factory=list)
    theme: Theme = Field(default_factory=Theme)
    conversion_metadata: ConversionMetadata | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def _check_slide_count(self) -> "UniversalDocument":
        if self.metadata.slide_count != len(self.slides):
            raise ValueError(
                f"metadata.slideCount={self.metadata.slide_count} "
                f"does not match {len(self.slides)} slides"
            )
        return self
