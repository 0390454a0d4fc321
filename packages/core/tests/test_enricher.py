"""Tests for shape enrichment."""

import pytest

from deckschema_core.errors import EnrichmentError
from deckschema_core.pipeline.enricher import (
    detect_language,
    enrich,
    enrich_fill,
    enrich_geometry,
    enrich_shape,
    enrich_shapes,
    enrich_slides,
    enrich_text,
)


def _text_shape(index: int, text: str = "Hello world") -> dict:
    return {
        "shapeIndex": index,
        "shapeType": "textBox",
        "name": f"Text {index}",
        "text": text,
        "geometry": {"x": 50, "y": 60, "width": 300, "height": 100, "rotation": 0},
    }


class TestBlocks:
    """Tests for the individual derivation blocks."""

    def test_enrich_text_counts(self) -> None:
        """Word, character, line and paragraph counts."""
        block = enrich_text("The cat is here\n\nand  the dog")
        assert block["wordCount"] == 7
        assert block["cleaned"] == "The cat is here and the dog"
        assert block["textMetrics"]["lines"] == 3
        assert block["textMetrics"]["paragraphs"] == 2
        assert block["textMetrics"]["language"] == "en"
        assert block["textMetrics"]["isEmpty"] is False

    def test_detect_language_tie_is_unknown(self) -> None:
        """No keyword hits means the language is unknown."""
        assert detect_language("xyzzy plugh") == "unknown"
        assert detect_language("el perro y la casa para una") == "es"

    def test_enrich_geometry(self) -> None:
        """Center, area and coarse labels."""
        block = enrich_geometry({"x": 500, "y": 10, "width": 100, "height": 50})
        assert block["centerX"] == 550
        assert block["area"] == 5000
        assert block["aspectRatio"] == 2
        assert block["position"] == "top-right"
        assert block["size"] == "small"

    def test_enrich_fill_solid_only(self) -> None:
        """Only solid fills produce a color block."""
        block = enrich_fill(
            {"type": "Solid", "solidFillColor": {"r": 255, "g": 255, "b": 255}}
        )
        assert block is not None
        assert block["hexColor"] == "#ffffff"
        assert block["tone"] == "light"
        assert block["colorFamily"] == "gray"
        assert enrich_fill({"type": "NoFill"}) is None


class TestEnrichShape:
    """Tests for single-shape enrichment."""

    def test_adds_blocks_without_removing_keys(self) -> None:
        """Original keys survive and enrichment keys are added."""
        original = _text_shape(0)
        enriched = enrich_shape(original, slide_index=0)

        for key, value in original.items():
            assert enriched[key] == value
        assert enriched["enrichmentStatus"] == "success"
        assert enriched["enrichedText"]["wordCount"] == 2
        assert enriched["enrichedGeometry"]["size"] == "medium"
        assert "has-text" in enriched["computedProperties"]["tags"]
        assert enriched["enrichmentMetadata"]["status"] == "success"
        assert "enrichedText" not in original

    def test_table_properties(self) -> None:
        """Tables get table-specific derived properties."""
        shape = {
            "shapeIndex": 0,
            "shapeType": "table",
            "geometry": {"x": 0, "y": 0, "width": 400, "height": 200},
            "properties": {"kind": "table", "rowCount": 3, "columnCount": 2},
        }
        enriched = enrich_shape(shape, slide_index=0)
        assert enriched["enrichedProperties"]["rowCount"] == 3
        assert enriched["computedProperties"]["category"] == "table"

    def test_filled_shape_without_text_scores_low(self) -> None:
        """Text contributes nothing to the scores when the shape has none."""
        shape = {
            "shapeIndex": 0,
            "shapeType": "autoShape",
            "geometry": {"x": 0, "y": 0, "width": 150, "height": 200},
            "fillFormat": {"type": "Solid", "solidFillColor": {"r": 0, "g": 0, "b": 255}},
        }
        computed = enrich_shape(shape, slide_index=0)["computedProperties"]

        assert computed["complexity"] == "low"
        assert computed["importance"] == "low"
        assert computed["readability"] == "n/a"
        assert "has-text" not in computed["tags"]

    def test_empty_text_readability_is_na(self) -> None:
        """An empty string reads as no text."""
        enriched = enrich_shape(_text_shape(0, text=""), slide_index=0)
        assert enriched["computedProperties"]["readability"] == "n/a"

    def test_text_buckets(self) -> None:
        """Longer text raises importance and lowers readability."""
        text = " ".join(["word"] * 12)
        computed = enrich_shape(_text_shape(0, text=text), slide_index=0)["computedProperties"]

        assert computed["complexity"] == "low"
        assert computed["importance"] == "medium"
        assert computed["readability"] == "medium"

    def test_bad_geometry_raises(self) -> None:
        """Non-numeric geometry raises EnrichmentError with coordinates."""
        shape = _text_shape(4)
        shape["geometry"] = {"x": 0, "y": 0, "width": "wide", "height": 10}
        with pytest.raises(EnrichmentError) as exc_info:
            enrich_shape(shape, slide_index=2)
        assert exc_info.value.slide_index == 2
        assert exc_info.value.shape_index == 4

    def test_enrich_raises_on_first_failure(self) -> None:
        """The strict variant propagates the failure."""
        shapes = [_text_shape(0), {"shapeIndex": 1, "geometry": {"width": "x"}}]
        with pytest.raises(EnrichmentError):
            enrich(shapes, slide_index=0)


class TestEnrichShapes:
    """Tests for partial-failure isolation."""

    def test_failure_is_isolated(self) -> None:
        """One failing shape does not affect its siblings."""
        bad = _text_shape(1)
        bad["geometry"] = {"x": 0, "y": 0, "width": "wide", "height": 10}
        shapes = [_text_shape(0), bad, _text_shape(2)]

        enriched, stats = enrich_shapes(shapes, slide_index=0)

        assert len(enriched) == 3
        assert enriched[0]["enrichmentStatus"] == "success"
        assert enriched[2]["enrichmentStatus"] == "success"
        assert enriched[1]["enrichmentStatus"] == "failed"
        assert enriched[1]["enrichmentError"]
        assert enriched[1]["name"] == "Text 1"
        assert "enrichedText" not in enriched[1]
        assert stats.processed == 3
        assert stats.enriched == 2
        assert stats.failed == 1

    def test_stats_are_per_run(self) -> None:
        """Each call starts from fresh counters."""
        _, first = enrich_shapes([_text_shape(0)], slide_index=0)
        _, second = enrich_shapes([_text_shape(0)], slide_index=0)
        assert first.processed == 1
        assert second.processed == 1

    def test_enrich_slides_totals(self) -> None:
        """Slide-level enrichment sums counters across slides."""
        slides = [
            {"slideIndex": 0, "shapes": [_text_shape(0)]},
            {"slideIndex": 1, "shapes": [_text_shape(0), _text_shape(1)]},
            {"slideIndex": 2},
        ]
        enriched, stats = enrich_slides(slides)
        assert len(enriched) == 3
        assert enriched[2] == {"slideIndex": 2}
        assert stats.as_dict() == {"processed": 3, "enriched": 3, "failed": 0}
