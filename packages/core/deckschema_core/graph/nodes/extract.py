"""Extract node: open the document through the engine and walk it."""

import asyncio
from collections.abc import Callable
from typing import Any

from deckschema_core.engine.base import DocumentEngine
from deckschema_core.errors import DeckSchemaError
from deckschema_core.pipeline.extractor import extract_presentation, open_document
from deckschema_core.schemas.extraction import ExtractionReport, ExtractionTree
from deckschema_core.utils.logging import get_logger

logger = get_logger(__name__)


def _extract_sync(
    engine: DocumentEngine, file_path: str
) -> tuple[ExtractionTree, ExtractionReport]:
    """Blocking extraction; the handle is disposed on every path."""
    with open_document(engine, file_path) as handle:
        return extract_presentation(handle, source_path=file_path, engine=engine)


def create_extract_node(
    engine: DocumentEngine,
) -> Callable[[dict[str, Any]], Any]:
    """Create an extract node bound to a document engine.

    Args:
        engine: Engine used to open the source file

    Returns:
        Node function (async so engine calls run in a worker thread)
    """

    async def extract_node(state: dict[str, Any]) -> dict[str, Any]:
        """Extract slide and shape records from the source file.

        Args:
            state: Pipeline state with file_info

        Returns:
            Updated state with extraction, extraction_report and slides
        """
        file_info = state.get("file_info")
        if file_info is None:
            return {
                **state,
                "errors": state.get("errors", []) + ["No file to extract"],
                "error_code": "validation_error",
                "current_step": "extract",
            }

        try:
            tree, report = await asyncio.to_thread(
                _extract_sync, engine, file_info.path
            )
        except DeckSchemaError as e:
            logger.error(f"Extraction failed for {file_info.name}: {e.message}")
            return {
                **state,
                "errors": state.get("errors", []) + [e.message],
                "error_code": e.code,
                "current_step": "extract",
            }
        except Exception as e:
            logger.exception(f"Extraction failed for {file_info.name}")
            return {
                **state,
                "errors": state.get("errors", []) + [f"Extraction error: {e}"],
                "error_code": "extraction_error",
                "current_step": "extract",
            }

        return {
            **state,
            "extraction": tree,
            "extraction_report": report,
            "slides": tree.slides,
            "current_step": "extract",
            "progress": 40,
        }

    return extract_node
