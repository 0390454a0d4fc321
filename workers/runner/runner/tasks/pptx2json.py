"""Convert a presentation file to a Universal document."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Any

import structlog

from deckschema_core.engine.base import DocumentEngine
from deckschema_core.errors import error_for_code
from deckschema_core.graph import ConversionConfig, build_conversion_graph

from runner.orchestrator import JobContext, JobHandler
from runner.storage import StorageBackend
from runner.tasks.helpers import DOCUMENTS_COLLECTION, options_of, require

logger = structlog.get_logger()

# Job progress after each graph stage
STEP_PROGRESS = {
    "ingest": 20,
    "extract": 50,
    "enrich": 60,
    "build": 70,
    "validate": 80,
}
STORE_PROGRESS = 90


def _config_for(base: ConversionConfig, options: dict[str, Any]) -> ConversionConfig:
    return replace(
        base,
        enable_enrichment=bool(options.get("enableEnrichment", base.enable_enrichment)),
        auto_fix=bool(options.get("autoFix", base.auto_fix)),
        generate_missing_ids=bool(
            options.get("generateMissingIds", base.generate_missing_ids)
        ),
    )


def create_pptx2json_handler(
    engine: DocumentEngine,
    storage: StorageBackend | None = None,
    config: ConversionConfig | None = None,
) -> JobHandler:
    """Create the handler for ``pptx2json`` jobs.

    Payload fields: ``filePath`` (required), ``originalName`` and
    ``options`` (``enableEnrichment``, ``autoFix``, ``generateMissingIds``,
    ``overrides``).
    """
    base_config = config or ConversionConfig()

    async def handle(context: JobContext, payload: dict[str, Any]) -> dict[str, Any]:
        file_path = str(require(payload, "filePath"))
        options = options_of(payload)
        graph = build_conversion_graph(engine, _config_for(base_config, options))

        state: dict[str, Any] = {}
        async for state in graph.astream(
            {
                "file_path": file_path,
                "original_name": payload.get("originalName") or Path(file_path).name,
                "overrides": options.get("overrides") or {},
                "document_id": context.job_id,
                "conversion_id": context.job_id,
            },
            stream_mode="values",
        ):
            step = state.get("current_step")
            if step in STEP_PROGRESS and not state.get("errors"):
                await context.report_progress(STEP_PROGRESS[step])

        errors = state.get("errors") or []
        if errors:
            raise error_for_code(state.get("error_code"), errors[0])

        document = state["document_json"]
        validation = state["validation"]
        stats = document.get("conversionMetadata", {}).get("processingStats", {})
        result: dict[str, Any] = {
            "documentId": document.get("id"),
            "slideCount": document["metadata"]["slideCount"],
            "processingStats": stats,
            "validation": {
                "isValid": validation.is_valid,
                "errorCount": len(validation.errors),
                "warningCount": len(validation.warnings),
                "fixesApplied": validation.fixes_applied,
            },
        }

        if storage is not None and context.is_owner:
            await context.report_progress(STORE_PROGRESS)
            await storage.create_document(DOCUMENTS_COLLECTION, context.job_id, document)
            result["documentKey"] = f"{DOCUMENTS_COLLECTION}/{context.job_id}"
        else:
            result["document"] = document

        logger.info(
            "document_converted",
            job_id=context.job_id,
            slides=result["slideCount"],
            is_valid=validation.is_valid,
        )
        return result

    return handle
