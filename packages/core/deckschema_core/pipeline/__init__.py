"""Extraction, enrichment, build, validation and reconstruction stages."""

from deckschema_core.pipeline.builder import (
    BuildComponents,
    build_universal_document,
    check_structure,
    compute_processing_stats,
)
from deckschema_core.pipeline.enricher import (
    EnrichmentStats,
    enrich,
    enrich_shape,
    enrich_shapes,
    enrich_slides,
)
from deckschema_core.pipeline.extractor import (
    extract_presentation,
    open_document,
    validate_presentation_file,
)
from deckschema_core.pipeline.reconstruct import (
    ReconstructionSummary,
    reconstruct_document,
)
from deckschema_core.pipeline.validator import SchemaValidator, validate_document

__all__ = [
    "BuildComponents",
    "EnrichmentStats",
    "ReconstructionSummary",
    "SchemaValidator",
    "build_universal_document",
    "check_structure",
    "compute_processing_stats",
    "enrich",
    "enrich_shape",
    "enrich_shapes",
    "enrich_slides",
    "extract_presentation",
    "open_document",
    "reconstruct_document",
    "validate_document",
    "validate_presentation_file",
]
