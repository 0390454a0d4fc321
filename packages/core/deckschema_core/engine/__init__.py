"""Document engine interface and the python-pptx backend."""

from deckschema_core.engine.base import (
    DocumentEngine,
    DocumentHandle,
    DocumentWriter,
    RenderedAsset,
    ShapeHandle,
    SlideHandle,
)
from deckschema_core.engine.pptx import PptxEngine

__all__ = [
    "DocumentEngine",
    "DocumentHandle",
    "DocumentWriter",
    "PptxEngine",
    "RenderedAsset",
    "ShapeHandle",
    "SlideHandle",
]
