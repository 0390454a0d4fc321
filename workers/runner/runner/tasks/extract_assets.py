"""Extract embedded media from a presentation."""

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
    summarize_assets,
    upload_assets,
)

logger = structlog.get_logger()


def create_extract_assets_handler(
    engine: DocumentEngine, storage: StorageBackend | None = None
) -> JobHandler:
    """Create the handler for ``extract-assets`` jobs.

    Payload fields: ``filePath`` (required), ``options.assetTypes`` to keep
    only some asset kinds (``image``, ``media``).
    """

    async def handle(context: JobContext, payload: dict[str, Any]) -> dict[str, Any]:
        file_path = str(require(payload, "filePath"))
        options = options_of(payload)

        await context.report_progress(20)
        assets = await asyncio.to_thread(render_file, engine, file_path, "assets")
        kinds = options.get("assetTypes")
        if kinds:
            assets = [asset for asset in assets if asset.kind in set(kinds)]
        await context.report_progress(60)

        upload_errors: list[str] = []
        if storage is not None and assets and context.is_owner:
            records, upload_errors = await upload_assets(
                storage, assets, f"extracted-assets/{context.job_id}", context, 60, 90
            )
        else:
            records = [describe_asset(asset) for asset in assets]

        summary = summarize_assets(assets)
        summary["uploaded"] = sum(1 for record in records if "objectKey" in record)
        logger.info(
            "assets_extracted",
            job_id=context.job_id,
            total=summary["totalAssets"],
            uploaded=summary["uploaded"],
        )
        return {"assets": records, "summary": summary, "uploadErrors": upload_errors}

    return handle
