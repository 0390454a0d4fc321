"""LangGraph conversion pipeline.

    >>> from deckschema_core.engine import PptxEngine
    >>> from deckschema_core.graph import build_conversion_graph
    >>> graph = build_conversion_graph(PptxEngine())
    >>> result = await graph.ainvoke({"file_path": "deck.pptx"})
"""

from deckschema_core.graph.build_conversion_graph import (
    ConversionState,
    build_conversion_graph,
)
from deckschema_core.graph.config import ConversionConfig

__all__ = [
    "ConversionConfig",
    "ConversionState",
    "build_conversion_graph",
]
