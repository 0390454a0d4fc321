"""Build node: assemble the UniversalDocument."""

from typing import Any

from deckschema_core.errors import SchemaBuildError
from deckschema_core.pipeline.builder import BuildComponents, build_universal_document
from deckschema_core.schemas.extraction import PresentationInfo
from deckschema_core.utils.logging import get_logger

logger = get_logger(__name__)


def build_node(state: dict[str, Any]) -> dict[str, Any]:
    """Build the document from enriched slides.

    Args:
        state: Pipeline state with slides and extraction

    Returns:
        Updated state with document
    """
    extraction = state.get("extraction")
    presentation = extraction.presentation if extraction else PresentationInfo()
    overrides = dict(state.get("overrides") or {})
    if state.get("original_name") and "title" not in overrides:
        properties_title = presentation.document_properties.get("title")
        if not properties_title:
            overrides["title"] = state["original_name"]

    components = BuildComponents(
        slides=state.get("slides"),
        presentation=presentation,
        overrides=overrides,
        source_file=state.get("original_name")
        or (extraction.source_file if extraction else None),
        document_id=state.get("document_id"),
        conversion_id=state.get("conversion_id"),
        engine=extraction.engine if extraction else None,
        engine_version=extraction.engine_version if extraction else None,
        extraction_report=state.get("extraction_report"),
        enrichment_stats=state.get("enrichment_stats"),
    )

    try:
        document = build_universal_document(components)
    except SchemaBuildError as e:
        logger.error(f"Schema build failed: {e.message}")
        return {
            **state,
            "errors": state.get("errors", []) + [e.message],
            "error_code": e.code,
            "current_step": "build",
        }

    return {
        **state,
        "document": document,
        "current_step": "build",
        "progress": 80,
    }
