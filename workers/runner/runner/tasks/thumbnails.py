"""Render one thumbnail image per slide."""

from __future__ import annotations

import asyncio
from typing import Any

import structlog

from deckschema_core.engine.base import DocumentEngine

from runner.orchestrator import JobContext, JobHandler
from runner.storage import StorageBackend
from runner.tasks.helpers import (
    describe_asset,
    options_of,
    render_file,
    require,
    upload_assets,
)

logger = structlog.get_logger()

DEFAULT_DPI = 96


def create_thumbnails_handler(
    engine: DocumentEngine, storage: StorageBackend | None = None
) -> JobHandler:
    """Create the handler for ``thumbnails`` jobs.

    Payload fields: ``filePath`` (required), ``options.dpi``.
    """

    async def handle(context: JobContext, payload: dict[str, Any]) -> dict[str, Any]:
        file_path = str(require(payload, "filePath"))
        options = options_of(payload)

        await context.report_progress(20)
        images = await asyncio.to_thread(
            render_file,
            engine,
            file_path,
            "png",
            {"dpi": int(options.get("dpi", DEFAULT_DPI))},
        )
        await context.report_progress(60)

        upload_errors: list[str] = []
        if storage is not None and images and context.is_owner:
            records, upload_errors = await upload_assets(
                storage, images, f"thumbnails/{context.job_id}", context, 60, 90
            )
        else:
            records = [describe_asset(image) for image in images]

        logger.info("thumbnails_rendered", job_id=context.job_id, count=len(images))
        return {
            "thumbnails": records,
            "count": len(images),
            "uploadErrors": upload_errors,
        }

    return handle
