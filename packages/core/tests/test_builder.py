"""Tests for Universal document assembly."""

from datetime import datetime, timezone

import pytest

from deckschema_core.errors import SchemaBuildError
from deckschema_core.pipeline.builder import (
    BuildComponents,
    build_metadata,
    build_universal_document,
    check_structure,
)
from deckschema_core.pipeline.enricher import enrich_slides
from deckschema_core.schemas.extraction import PresentationInfo
from deckschema_core.schemas.universal import SlideSize


def _slide(index: int, shape_count: int = 1) -> dict:
    return {
        "slideIndex": index,
        "name": f"Slide {index + 1}",
        "shapes": [
            {
                "shapeIndex": j,
                "shapeType": "textBox",
                "name": f"Text {j}",
                "text": "Hello",
                "geometry": {"x": 0, "y": 0, "width": 100, "height": 50, "rotation": 0},
            }
            for j in range(shape_count)
        ],
    }


class TestBuildUniversalDocument:
    """Tests for build_universal_document."""

    def test_slide_count_matches_slides(self) -> None:
        """metadata.slideCount always equals the number of slides."""
        document = build_universal_document(
            BuildComponents(
                slides=[_slide(0), _slide(1, 3)],
                presentation=PresentationInfo(
                    document_properties={"slideCount": 99, "title": "Deck"}
                ),
            )
        )
        assert document.metadata.slide_count == 2
        assert len(document.slides) == 2
        assert document.metadata.title == "Deck"
        assert document.conversion_metadata.total_shapes == 4

    def test_empty_deck(self) -> None:
        """An empty deck builds with defaults."""
        document = build_universal_document(BuildComponents(slides=[]))
        data = document.to_json_dict()

        assert data["slides"] == []
        assert data["metadata"]["slideCount"] == 0
        assert data["metadata"]["title"] == "Untitled Presentation"
        assert data["slideSize"] == {"width": 1920, "height": 1080, "type": "OnScreen16x9"}
        assert data["masterSlides"][0]["name"] == "Master Slide"
        assert data["conversionMetadata"]["processingStats"]["slideSuccessRate"] == 100

    def test_extracted_slide_size_kept_in_points(self) -> None:
        """A size read from the deck replaces the fallback canvas unchanged."""
        presentation = PresentationInfo(slide_size=SlideSize(width=960, height=540))
        document = build_universal_document(
            BuildComponents(slides=[], presentation=presentation)
        )

        assert document.to_json_dict()["slideSize"] == {
            "width": 960,
            "height": 540,
            "type": "OnScreen16x9",
        }

    def test_missing_slides_raises(self) -> None:
        """A missing slide array is a build error."""
        with pytest.raises(SchemaBuildError):
            build_universal_document(BuildComponents(slides=None))

    def test_non_list_slides_raises(self) -> None:
        """A slide collection that is not a list is a build error."""
        with pytest.raises(SchemaBuildError):
            build_universal_document(BuildComponents(slides={"0": _slide(0)}))

    def test_non_record_slide_raises(self) -> None:
        """A slide that is not a record is a build error."""
        with pytest.raises(SchemaBuildError):
            build_universal_document(BuildComponents(slides=[_slide(0), "oops"]))

    def test_invalid_shape_becomes_placeholder(self) -> None:
        """A shape failing model validation is replaced, not dropped."""
        slide = _slide(0, 2)
        slide["shapes"][1]["geometry"]["width"] = -5
        document = build_universal_document(BuildComponents(slides=[slide]))

        shapes = document.slides[0].shapes
        assert len(shapes) == 2
        assert shapes[1].error is True
        assert shapes[1].name == "Text 1"
        stats = document.conversion_metadata.processing_stats
        assert stats.failed_shapes == 1
        assert stats.shape_success_rate == 50

    def test_statistics_from_markers(self) -> None:
        """Failure counters come from the error markers on records."""
        failed = {"slideIndex": 1, "name": "Slide 2 (Error)", "shapes": [], "error": True}
        enriched, stats = enrich_slides([_slide(0, 2)])
        document = build_universal_document(
            BuildComponents(slides=[*enriched, failed], enrichment_stats=stats)
        )
        processing = document.conversion_metadata.processing_stats
        assert processing.total_slides == 2
        assert processing.failed_slides == 1
        assert processing.slide_success_rate == 50
        assert processing.enriched_shapes == 2

    def test_indices_follow_position(self) -> None:
        """slideIndex and shapeIndex are rewritten to positions."""
        slide = _slide(7, 2)
        slide["shapes"][0]["shapeIndex"] = 5
        document = build_universal_document(BuildComponents(slides=[slide]))
        assert document.slides[0].slide_index == 0
        assert [s.shape_index for s in document.slides[0].shapes] == [0, 1]


class TestBuildMetadata:
    """Tests for metadata precedence."""

    def test_overrides_win(self) -> None:
        """Overrides beat document properties, which beat defaults."""
        metadata = build_metadata(
            {"title": "Override"},
            {"title": "From file", "author": "Alice", "sourceFile": "deck.pptx"},
            slide_count=3,
        )
        assert metadata.title == "Override"
        assert metadata.author == "Alice"
        assert metadata.subject == ""
        assert metadata.comments == "Converted from: deck.pptx"
        assert metadata.slide_count == 3

    def test_naive_timestamps_become_utc(self) -> None:
        """Naive property timestamps are read as UTC."""
        metadata = build_metadata(
            {}, {"createdTime": datetime(2024, 1, 2, 3, 4, 5)}, slide_count=0
        )
        assert metadata.created_time == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


class TestCheckStructure:
    """Tests for the structural pre-check."""

    def test_built_document_passes(self) -> None:
        """A freshly built document is structurally valid."""
        document = build_universal_document(BuildComponents(slides=[_slide(0)]))
        result = check_structure(document)
        assert result.valid
        assert result.warnings == ["Slide 0 is missing slideId"]

    def test_reports_structural_errors(self) -> None:
        """Missing id and a bad shape list are errors."""
        result = check_structure({"slides": [{"slideId": "1", "shapes": None}]})
        assert not result.valid
        assert "Document id is missing" in result.errors
        assert "Slide 0 shapes must be an array" in result.errors
