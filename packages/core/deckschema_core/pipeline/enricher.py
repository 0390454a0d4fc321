"""Enrichment: derive denormalized fields from extracted shape records.

Enrichment only adds keys. Extracted values are never removed or
overwritten, and each run keeps its own counters.
"""

import re
import time
from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from deckschema_core.errors import EnrichmentError
from deckschema_core.utils.logging import get_logger, unit_label

logger = get_logger(__name__)

ENRICHMENT_VERSION = "1.0.0"

DEFAULT_FONT = "Arial"
DEFAULT_FONT_SIZE = 12

# Position thresholds in points
POSITION_NEAR = 200
POSITION_FAR = 400

# Area thresholds in square points
SIZE_SMALL = 10_000
SIZE_MEDIUM = 50_000
SIZE_LARGE = 100_000
DECORATIVE_IMAGE_AREA = 20_000

WIDE_SHAPE = 400
TALL_SHAPE = 300

_LANGUAGE_KEYWORDS: dict[str, frozenset[str]] = {
    "en": frozenset(
        {"the", "and", "is", "are", "of", "to", "in", "that", "for", "with", "this"}
    ),
    "es": frozenset(
        {"el", "la", "los", "las", "de", "que", "y", "es", "por", "para", "con", "una"}
    ),
    "fr": frozenset(
        {"le", "les", "des", "et", "est", "une", "pour", "dans", "avec", "sur", "du"}
    ),
    "de": frozenset(
        {"der", "die", "das", "und", "ist", "nicht", "mit", "für", "ein", "eine", "zu"}
    ),
}

_WORD_RE = re.compile(r"\w+", re.UNICODE)
_PARAGRAPH_SPLIT_RE = re.compile(r"\n\s*\n")


@dataclass
class EnrichmentStats:
    """Per-run counters returned alongside enriched output."""

    processed: int = 0
    enriched: int = 0
    failed: int = 0

    def merge(self, other: "EnrichmentStats") -> None:
        self.processed += other.processed
        self.enriched += other.enriched
        self.failed += other.failed

    def as_dict(self) -> dict[str, int]:
        return {"processed": self.processed, "enriched": self.enriched, "failed": self.failed}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def detect_language(text: str) -> str:
    """Guess the language of ``text`` from keyword frequency.

    Returns a language code from a small closed set, or ``unknown`` when no
    keyword matches or the top two languages tie.
    """
    words = [w.lower() for w in _WORD_RE.findall(text)]
    if not words:
        return "unknown"
    scores = {
        lang: sum(1 for w in words if w in keywords)
        for lang, keywords in _LANGUAGE_KEYWORDS.items()
    }
    ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)
    best_lang, best_score = ranked[0]
    if best_score == 0 or best_score == ranked[1][1]:
        return "unknown"
    return best_lang


def _portions(text_frame: Mapping[str, Any] | None) -> list[Mapping[str, Any]]:
    if not text_frame:
        return []
    return [
        portion
        for paragraph in text_frame.get("paragraphs") or []
        for portion in paragraph.get("portions") or []
    ]


def _has_formatting(text_frame: Mapping[str, Any] | None) -> bool:
    return any(
        portion.get("fontBold") or portion.get("fontItalic") or portion.get("fontColor")
        for portion in _portions(text_frame)
    )


def enrich_text(text: str, text_frame: Mapping[str, Any] | None = None) -> dict[str, Any]:
    """Word, character, line and paragraph counts plus a language guess."""
    if not isinstance(text, str):
        raise TypeError(f"text must be a string, got {type(text).__name__}")
    cleaned = " ".join(text.split())
    paragraphs = [p for p in _PARAGRAPH_SPLIT_RE.split(text) if p.strip()]
    return {
        "raw": text,
        "cleaned": cleaned,
        "wordCount": len(cleaned.split()) if cleaned else 0,
        "characterCount": len(text),
        "hasFormatting": _has_formatting(text_frame),
        "textMetrics": {
            "lines": len(text.splitlines()) if text else 0,
            "paragraphs": len(paragraphs),
            "isEmpty": not cleaned,
            "language": detect_language(cleaned),
        },
    }


def enrich_text_frame(text_frame: Mapping[str, Any]) -> dict[str, Any]:
    """Dominant font and average font size over all portions."""
    paragraphs = text_frame.get("paragraphs") or []
    portions = _portions(text_frame)
    fonts = Counter(p["fontName"] for p in portions if p.get("fontName"))
    sizes = [
        float(p["fontHeight"])
        for p in portions
        if isinstance(p.get("fontHeight"), (int, float))
    ]
    return {
        "hasMultipleParagraphs": len(paragraphs) > 1,
        "paragraphCount": len(paragraphs),
        "totalPortions": len(portions),
        "dominantFont": fonts.most_common(1)[0][0] if fonts else DEFAULT_FONT,
        "averageFontSize": round(sum(sizes) / len(sizes), 2) if sizes else DEFAULT_FONT_SIZE,
    }


def _size_label(area: float) -> str:
    if area < SIZE_SMALL:
        return "small"
    if area < SIZE_MEDIUM:
        return "medium"
    if area < SIZE_LARGE:
        return "large"
    return "extra-large"


def enrich_geometry(geometry: Mapping[str, Any]) -> dict[str, Any]:
    """Center, area, aspect ratio, coarse position and size labels."""
    x = float(geometry.get("x", 0))
    y = float(geometry.get("y", 0))
    width = float(geometry.get("width", 0))
    height = float(geometry.get("height", 0))
    area = width * height

    if y < POSITION_NEAR:
        vertical = "top"
    elif y > POSITION_FAR:
        vertical = "bottom"
    else:
        vertical = "middle"
    if x < POSITION_NEAR:
        horizontal = "left"
    elif x > POSITION_FAR:
        horizontal = "right"
    else:
        horizontal = "center"

    return {
        "centerX": x + width / 2,
        "centerY": y + height / 2,
        "area": area,
        "aspectRatio": round(width / height, 3) if height else 1,
        "position": f"{vertical}-{horizontal}",
        "size": _size_label(area),
        "boundingBox": {
            "left": x,
            "top": y,
            "right": x + width,
            "bottom": y + height,
        },
    }


def _color_family(r: int, g: int, b: int) -> str:
    if r == g == b:
        return "gray"
    if r > g and r > b:
        return "red"
    if g > r and g > b:
        return "green"
    if b > r and b > g:
        return "blue"
    return "mixed"


def enrich_fill(fill: Mapping[str, Any]) -> dict[str, Any] | None:
    """Display color, light/dark tone and color family for solid fills."""
    color = fill.get("solidFillColor")
    if fill.get("type") != "Solid" or not color:
        return None
    r, g, b = int(color["r"]), int(color["g"]), int(color["b"])
    luminance = (0.299 * r + 0.587 * g + 0.114 * b) / 255
    return {
        "cssColor": f"rgb({r}, {g}, {b})",
        "hexColor": f"#{r:02x}{g:02x}{b:02x}",
        "luminance": round(luminance, 3),
        "tone": "light" if luminance > 0.5 else "dark",
        "colorFamily": _color_family(r, g, b),
    }


def _has_fill(shape: Mapping[str, Any]) -> bool:
    fill = shape.get("fillFormat")
    return bool(fill) and fill.get("type") not in (None, "NoFill")


def _complexity(text: str, has_fill: bool, paragraph_count: int) -> str:
    score = (1 if has_fill else 0) + paragraph_count
    if text:
        score += 2 if len(text) > 100 else 1
    if score < 2:
        return "low"
    if score < 5:
        return "medium"
    return "high"


def _importance(text: str, area: float) -> str:
    score = 0
    if len(text) > 200:
        score = 3
    elif len(text) > 50:
        score = 2
    elif text:
        score = 1
    if area > 50_000:
        score += 2
    elif area > 20_000:
        score += 1
    if score < 2:
        return "low"
    if score < 4:
        return "medium"
    return "high"


def _readability(word_count: int | None) -> str:
    if word_count is None:
        return "n/a"
    if word_count < 10:
        return "high"
    if word_count < 30:
        return "medium"
    return "low"


_CATEGORY_BY_TYPE = {
    "picture": "image",
    "chart": "chart",
    "table": "table",
    "video": "media",
    "audio": "media",
    "group": "group",
    "connector": "connector",
    "smartArt": "diagram",
}


def _category(shape_type: str, has_text: bool) -> str:
    if shape_type in _CATEGORY_BY_TYPE:
        return _CATEGORY_BY_TYPE[shape_type]
    return "text" if has_text else "shape"


def enrich_shape(
    shape: Mapping[str, Any], slide_index: int, shape_index: int | None = None
) -> dict[str, Any]:
    """Enrich one shape record.

    Args:
        shape: Extracted shape record
        slide_index: Owning slide position, for logging
        shape_index: Shape position, defaults to ``shape["shapeIndex"]``

    Returns:
        A new dict with the original keys plus enrichment blocks

    Raises:
        EnrichmentError: If any derivation fails
    """
    started = time.perf_counter()
    start_time = _now_iso()
    if shape_index is None and isinstance(shape, Mapping):
        shape_index = shape.get("shapeIndex")

    try:
        if not isinstance(shape, Mapping):
            raise TypeError(f"shape record must be a mapping, got {type(shape).__name__}")

        enriched = dict(shape)
        text = shape.get("text")
        text_frame = shape.get("textFrame")
        geometry = shape.get("geometry") or {}
        shape_type = str(shape.get("shapeType") or "unknown")

        word_count = None
        if isinstance(text, str):
            enriched["enrichedText"] = enrich_text(text, text_frame)
            word_count = enriched["enrichedText"]["wordCount"]
        if text_frame:
            enriched["enrichedTextFrame"] = enrich_text_frame(text_frame)

        enriched_geometry = enrich_geometry(geometry)
        enriched["enrichedGeometry"] = enriched_geometry
        area = enriched_geometry["area"]

        fill = shape.get("fillFormat")
        if fill:
            fill_block = enrich_fill(fill)
            if fill_block is not None:
                enriched["enrichedFillFormat"] = fill_block

        text_value = text if isinstance(text, str) else ""
        has_fill = _has_fill(shape)
        paragraph_count = len((text_frame or {}).get("paragraphs") or [])
        complexity = _complexity(text_value, has_fill, paragraph_count)

        payload = shape.get("properties") or {}
        if shape_type == "table":
            specific = {"category": "table", "complexity": "high", "interactivity": "static"}
            if payload.get("kind") == "table":
                specific["rowCount"] = payload.get("rowCount", 0)
                specific["columnCount"] = payload.get("columnCount", 0)
        elif shape_type == "chart":
            specific = {"category": "chart", "complexity": "high", "dataVisualization": True}
            if payload.get("kind") == "chart":
                specific["chartType"] = payload.get("chartType")
        elif shape_type == "picture":
            specific = {
                "category": "image",
                "complexity": "medium",
                "decorative": area < DECORATIVE_IMAGE_AREA,
            }
        else:
            specific = {"category": "generic", "complexity": complexity}
        enriched["enrichedProperties"] = specific

        category = _category(shape_type, bool(text_value.strip()))
        tags = []
        if text_value.strip():
            tags.append("has-text")
        if has_fill:
            tags.append("has-fill")
        if float(geometry.get("width", 0)) > WIDE_SHAPE:
            tags.append("wide")
        if float(geometry.get("height", 0)) > TALL_SHAPE:
            tags.append("tall")
        tags.append(category)

        enriched["computedProperties"] = {
            "complexity": complexity,
            "importance": _importance(text_value, area),
            "readability": _readability(word_count if text_value else None),
            "category": category,
            "tags": tags,
        }
    except Exception as e:
        raise EnrichmentError(str(e), slide_index, shape_index) from e

    enriched["enrichmentMetadata"] = {
        "startTime": start_time,
        "duration": round((time.perf_counter() - started) * 1000, 3),
        "status": "success",
        "version": ENRICHMENT_VERSION,
        "timestamp": _now_iso(),
    }
    enriched["enrichmentStatus"] = "success"
    return enriched


def enrich(shapes: list[Mapping[str, Any]], slide_index: int) -> list[dict[str, Any]]:
    """Enrich every shape, raising on the first failure."""
    return [
        enrich_shape(shape, slide_index, shape_index)
        for shape_index, shape in enumerate(shapes)
    ]


def enrich_shapes(
    shapes: list[Any], slide_index: int
) -> tuple[list[dict[str, Any]], EnrichmentStats]:
    """Enrich every shape of a slide without raising.

    A shape that fails keeps its original keys and gains
    ``enrichmentStatus="failed"`` and ``enrichmentError``.

    Args:
        shapes: Extracted shape records
        slide_index: Owning slide position

    Returns:
        Tuple of (enriched shapes, per-run stats)
    """
    stats = EnrichmentStats()
    enriched: list[dict[str, Any]] = []
    for shape_index, shape in enumerate(shapes):
        stats.processed += 1
        started = time.perf_counter()
        start_time = _now_iso()
        try:
            enriched.append(enrich_shape(shape, slide_index, shape_index))
            stats.enriched += 1
        except EnrichmentError as e:
            stats.failed += 1
            logger.warning(
                f"Enrichment failed ({unit_label(slide_index, shape_index)}): {e.message}"
            )
            original = dict(shape) if isinstance(shape, Mapping) else {"shapeIndex": shape_index}
            enriched.append(
                {
                    **original,
                    "enrichmentStatus": "failed",
                    "enrichmentError": e.message,
                    "enrichmentMetadata": {
                        "startTime": start_time,
                        "duration": round((time.perf_counter() - started) * 1000, 3),
                        "status": "failed",
                        "version": ENRICHMENT_VERSION,
                        "timestamp": _now_iso(),
                    },
                }
            )
    return enriched, stats


def enrich_slides(
    slides: list[dict[str, Any]],
) -> tuple[list[dict[str, Any]], EnrichmentStats]:
    """Enrich the shapes of every slide.

    Slide records are copied; slides without a shape list pass through.
    """
    totals = EnrichmentStats()
    result: list[dict[str, Any]] = []
    for position, slide in enumerate(slides):
        if not isinstance(slide, Mapping) or not isinstance(slide.get("shapes"), list):
            result.append(slide)
            continue
        slide_index = slide.get("slideIndex", position)
        shapes, stats = enrich_shapes(slide["shapes"], slide_index)
        totals.merge(stats)
        result.append({**slide, "shapes": shapes})

    logger.info(
        f"Enriched {totals.enriched}/{totals.processed} shapes "
        f"({totals.failed} failed) across {len(slides)} slides"
    )
    return result, totals
