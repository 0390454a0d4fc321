"""Rebuild a presentation file from a Universal document."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import structlog

from deckschema_core.engine.base import DocumentEngine
from deckschema_core.errors import InputValidationError
from deckschema_core.pipeline.reconstruct import reconstruct_document
from deckschema_core.pipeline.validator import SchemaValidator
from deckschema_core.schemas.validation import AutoFixOptions

from runner.orchestrator import JobContext, JobHandler
from runner.storage import StorageBackend
from runner.tasks.helpers import options_of, require

logger = structlog.get_logger()

PPTX_CONTENT_TYPE = (
    "application/vnd.openxmlformats-officedocument.presentationml.presentation"
)


def create_json2pptx_handler(
    engine: DocumentEngine,
    storage: StorageBackend | None = None,
    validator: SchemaValidator | None = None,
) -> JobHandler:
    """Create the handler for ``json2pptx`` jobs.

    Payload fields: ``document`` and ``outputPath`` (required), ``options``
    (``autoFix``, ``generateMissingIds``).
    """
    schema_validator = validator or SchemaValidator()

    async def handle(context: JobContext, payload: dict[str, Any]) -> dict[str, Any]:
        document = require(payload, "document")
        if not isinstance(document, dict):
            raise InputValidationError("document must be an object")
        output_path = Path(require(payload, "outputPath"))
        options = options_of(payload)

        await context.report_progress(20)
        fix_options = AutoFixOptions(
            enable_auto_fix=bool(options.get("autoFix", True)),
            generate_missing_ids=bool(options.get("generateMissingIds", False)),
        )
        validation = await asyncio.to_thread(
            schema_validator.validate, document, fix_options
        )
        source = validation.fixed_document or document

        await context.report_progress(40)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        summary = await asyncio.to_thread(reconstruct_document, source, engine, output_path)
        await context.report_progress(80)

        result: dict[str, Any] = {
            **summary.to_json_dict(),
            "validation": {
                "isValid": validation.is_valid,
                "errorCount": len(validation.errors),
                "warningCount": len(validation.warnings),
                "fixesApplied": validation.fixes_applied,
            },
            "warnings": [issue.message for issue in validation.errors],
        }

        if storage is not None and context.is_owner:
            object_key = f"reconstructed/{context.job_id}/{output_path.name}"
            data = await asyncio.to_thread(output_path.read_bytes)
            await storage.upload_file(object_key, data, PPTX_CONTENT_TYPE)
            result["objectKey"] = object_key

        logger.info(
            "document_reconstructed",
            job_id=context.job_id,
            slides=summary.slide_count,
            shapes=summary.shape_count,
        )
        return result

    return handle
