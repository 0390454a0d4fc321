"""Build the presentation-to-Universal-Schema conversion graph."""

from typing import Annotated, Any, TypedDict

from langgraph.graph import END, StateGraph
from langgraph.types import Checkpointer

from deckschema_core.engine.base import DocumentEngine
from deckschema_core.graph.config import ConversionConfig
from deckschema_core.pipeline.enricher import EnrichmentStats
from deckschema_core.pipeline.validator import SchemaValidator
from deckschema_core.schemas.extraction import ExtractionReport, ExtractionTree, FileInfo
from deckschema_core.schemas.universal import UniversalDocument
from deckschema_core.schemas.validation import ValidationResult


def _merge_errors(existing: list[str], incoming: list[str]) -> list[str]:
    """Combine error lists, deduplicating."""
    if not existing:
        return list(incoming or [])
    if not incoming:
        return list(existing)
    # Use dict.fromkeys to preserve order while deduplicating
    return list(dict.fromkeys([*existing, *incoming]))


def _keep_last_str(existing: str | None, incoming: str | None) -> str | None:
    """Keep the latest value for progress tracking fields."""
    return incoming if incoming else existing


def _keep_max_int(existing: int, incoming: int) -> int:
    """Keep the maximum value for progress fields."""
    return max(existing or 0, incoming or 0)


class ConversionState(TypedDict, total=False):
    """State passed through the conversion pipeline."""

    # Inputs
    file_path: str
    original_name: str
    overrides: dict[str, Any]
    document_id: str
    conversion_id: str
    # Stage outputs
    file_info: FileInfo
    extraction: ExtractionTree
    extraction_report: ExtractionReport
    slides: list[dict[str, Any]]
    enrichment_stats: EnrichmentStats
    document: UniversalDocument
    document_json: dict[str, Any]
    validation: ValidationResult
    # Metadata
    current_step: Annotated[str, _keep_last_str]
    progress: Annotated[int, _keep_max_int]
    errors: Annotated[list[str], _merge_errors]
    error_code: Annotated[str, _keep_last_str]


def _continue_or_end(next_step: str):
    """Route to ``next_step`` unless a fatal error has been recorded."""

    def _route(state: ConversionState) -> str:
        return END if state.get("errors") else next_step

    return _route


def build_conversion_graph(
    engine: DocumentEngine,
    config: ConversionConfig | None = None,
    checkpointer: Checkpointer | None = None,
) -> StateGraph:
    """Build a pipeline that converts one presentation file.

    Stages run ``ingest -> extract -> enrich -> build -> validate``; any
    stage that records an error ends the run.

    Args:
        engine: Document engine used to open the source file
        config: Optional conversion configuration
        checkpointer: Optional LangGraph checkpointer

    Returns:
        Compiled StateGraph ready for invocation
    """
    from deckschema_core.graph.nodes import build, enrich, extract, ingest, validate

    resolved_config = config or ConversionConfig()
    validator = SchemaValidator(max_fix_rounds=resolved_config.max_fix_rounds)

    graph = StateGraph(ConversionState)

    graph.add_node(
        "ingest", ingest.create_ingest_node(resolved_config.supported_extensions)
    )
    graph.add_node("extract", extract.create_extract_node(engine))
    graph.add_node("enrich", enrich.create_enrich_node(resolved_config.enable_enrichment))
    graph.add_node("build", build.build_node)
    graph.add_node(
        "validate",
        validate.create_validate_node(
            resolved_config.to_auto_fix_options(), validator=validator
        ),
    )

    graph.set_entry_point("ingest")
    graph.add_conditional_edges("ingest", _continue_or_end("extract"))
    graph.add_conditional_edges("extract", _continue_or_end("enrich"))
    graph.add_edge("enrich", "build")
    graph.add_conditional_edges("build", _continue_or_end("validate"))
    graph.add_edge("validate", END)

    return graph.compile(checkpointer=checkpointer)
