"""Validate node: schema validation and auto-fix of the built document."""

from collections.abc import Callable
from typing import Any

from deckschema_core.pipeline.validator import SchemaValidator
from deckschema_core.schemas.validation import AutoFixOptions
from deckschema_core.utils.logging import get_logger

logger = get_logger(__name__)


def create_validate_node(
    options: AutoFixOptions | None = None,
    validator: SchemaValidator | None = None,
) -> Callable[[dict[str, Any]], dict[str, Any]]:
    """Create a validate node.

    Args:
        options: Auto-fix options applied to every document
        validator: Optional pre-built validator

    Returns:
        Node function
    """
    resolved_validator = validator or SchemaValidator()
    resolved_options = options or AutoFixOptions()

    def validate_node(state: dict[str, Any]) -> dict[str, Any]:
        """Validate the document and keep the repaired JSON form.

        Validation outcomes are data; this node never records a fatal error.
        """
        document = state.get("document")
        if document is None:
            return {
                **state,
                "errors": state.get("errors", []) + ["No document to validate"],
                "error_code": "schema_error",
                "current_step": "validate",
            }

        result = resolved_validator.validate(document, resolved_options)
        document_json = result.fixed_document or document.to_json_dict()
        logger.info(
            f"Validated document {document.id}: valid={result.is_valid}, "
            f"{len(result.errors)} errors, {len(result.warnings)} warnings, "
            f"{result.fixes_applied} fixes"
        )
        return {
            **state,
            "validation": result,
            "document_json": document_json,
            "current_step": "validate",
            "progress": 100,
        }

    return validate_node
