"""Read document-level metadata without converting slides."""

from __future__ import annotations

import asyncio
from typing import Any

import structlog

from deckschema_core.engine.base import DocumentEngine
from deckschema_core.pipeline.extractor import (
    extract_presentation_info,
    open_document,
    validate_presentation_file,
)
from deckschema_core.schemas.universal import utc_now

from runner.orchestrator import JobContext, JobHandler
from runner.storage import StorageBackend
from runner.tasks.helpers import METADATA_COLLECTION, options_of, require

logger = structlog.get_logger()


def read_metadata(
    engine: DocumentEngine, file_path: str, include_statistics: bool = True
) -> dict[str, Any]:
    """Collect properties, slide size, counts and theme for one file."""
    file_info = validate_presentation_file(file_path)
    with open_document(engine, file_path) as handle:
        info = extract_presentation_info(handle)
        shape_counts: list[int] = []
        if include_statistics:
            for index in range(info.slide_count):
                try:
                    shape_counts.append(len(handle.slide(index).shapes()))
                except Exception as e:
                    logger.warning("slide_unreadable", slide_index=index, error=str(e))

    metadata = {
        "file": file_info.to_json_dict(),
        "documentProperties": info.model_dump(mode="json")["document_properties"],
        "slideSize": info.slide_size.to_json_dict() if info.slide_size else None,
        "slideCount": info.slide_count,
        "masterSlideCount": len(info.master_slides),
        "layoutSlideCount": len(info.layout_slides),
        "theme": info.theme.to_json_dict() if info.theme else None,
    }
    if include_statistics:
        metadata["statistics"] = {
            "totalShapes": sum(shape_counts),
            "maxShapesPerSlide": max(shape_counts, default=0),
            "unreadableSlides": info.slide_count - len(shape_counts),
        }
    return metadata


def create_extract_metadata_handler(
    engine: DocumentEngine, storage: StorageBackend | None = None
) -> JobHandler:
    """Create the handler for ``extract-metadata`` jobs.

    Payload fields: ``filePath`` (required), ``originalName``, ``options``
    (``includeStatistics``, ``includeTheme``).
    """

    async def handle(context: JobContext, payload: dict[str, Any]) -> dict[str, Any]:
        file_path = str(require(payload, "filePath"))
        options = options_of(payload)

        await context.report_progress(30)
        metadata = await asyncio.to_thread(
            read_metadata,
            engine,
            file_path,
            options.get("includeStatistics", True) is not False,
        )
        if options.get("includeTheme", True) is False:
            metadata.pop("theme", None)
        await context.report_progress(80)

        result: dict[str, Any] = {"metadata": metadata}
        if storage is not None and context.is_owner:
            await storage.create_document(
                METADATA_COLLECTION,
                context.job_id,
                {
                    "jobId": context.job_id,
                    "originalFilename": payload.get("originalName"),
                    "userId": context.user_id,
                    "extractedAt": utc_now().isoformat(),
                    "metadata": metadata,
                },
            )
            result["metadataDocId"] = context.job_id

        logger.info(
            "metadata_extracted", job_id=context.job_id, slides=metadata["slideCount"]
        )
        return result

    return handle
