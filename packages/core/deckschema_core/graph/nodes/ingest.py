"""Ingest node: check the source file before the engine sees it."""

from collections.abc import Callable
from typing import Any

from deckschema_core.errors import DeckSchemaError
from deckschema_core.pipeline.extractor import (
    SUPPORTED_EXTENSIONS,
    validate_presentation_file,
)
from deckschema_core.utils.logging import get_logger

logger = get_logger(__name__)


def create_ingest_node(
    extensions: tuple[str, ...] = SUPPORTED_EXTENSIONS,
) -> Callable[[dict[str, Any]], dict[str, Any]]:
    """Create an ingest node accepting the given extensions.

    Args:
        extensions: Accepted lower-case file extensions

    Returns:
        Node function
    """

    def ingest_node(state: dict[str, Any]) -> dict[str, Any]:
        """Validate the file at ``file_path``.

        Args:
            state: Pipeline state with file_path

        Returns:
            Updated state with file_info
        """
        file_path = state.get("file_path")
        logger.info(f"Ingesting presentation (path={file_path})")

        if not file_path:
            error_msg = "No file path provided"
            logger.error(error_msg)
            return {
                **state,
                "errors": state.get("errors", []) + [error_msg],
                "error_code": "validation_error",
                "current_step": "ingest",
                "progress": 0,
            }

        try:
            file_info = validate_presentation_file(file_path, extensions)
        except DeckSchemaError as e:
            logger.error(e.message)
            return {
                **state,
                "errors": state.get("errors", []) + [e.message],
                "error_code": e.code,
                "current_step": "ingest",
                "progress": 0,
            }

        logger.info(f"Accepted {file_info.name} ({file_info.size_bytes} bytes)")
        return {
            **state,
            "file_info": file_info,
            "original_name": state.get("original_name") or file_info.name,
            "current_step": "ingest",
            "progress": 10,
            "errors": state.get("errors", []),
        }

    return ingest_node
