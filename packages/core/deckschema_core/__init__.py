"""deckschema-core: convert presentation documents to a Universal Schema.

This package reads presentations through a document engine, normalizes them
into a versioned, engine-independent JSON document, validates and repairs
such documents, and rebuilds presentation files from them.

    >>> from deckschema_core.engine import PptxEngine
    >>> from deckschema_core.graph import build_conversion_graph
    >>> graph = build_conversion_graph(PptxEngine())
    >>> result = await graph.ainvoke({"file_path": "deck.pptx"})
    >>> result["document_json"]["metadata"]["slideCount"]

For validation on its own use ``deckschema_core.pipeline.SchemaValidator``.
"""

from deckschema_core.graph import ConversionConfig, build_conversion_graph
from deckschema_core.pipeline import (
    SchemaValidator,
    reconstruct_document,
    validate_document,
)
from deckschema_core.schemas.universal import SCHEMA_VERSION, UniversalDocument

__version__ = "0.1.0"

__all__ = [
    # Conversion pipeline
    "ConversionConfig",
    "build_conversion_graph",
    # Validation and reconstruction
    "SchemaValidator",
    "reconstruct_document",
    "validate_document",
    # Schemas
    "SCHEMA_VERSION",
    "UniversalDocument",
]
