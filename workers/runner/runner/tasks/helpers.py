"""Shared helpers for job handlers."""

from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import Any

import structlog

from deckschema_core.engine.base import DocumentEngine, RenderedAsset
from deckschema_core.errors import EngineCapabilityError, InputValidationError
from deckschema_core.pipeline.extractor import open_document, validate_presentation_file

from runner.orchestrator import JobContext
from runner.storage import StorageBackend

logger = structlog.get_logger()

DOCUMENTS_COLLECTION = "documents"
METADATA_COLLECTION = "extracted_metadata"


def require(payload: dict[str, Any], key: str) -> Any:
    """Return ``payload[key]`` or reject the request."""
    value = payload.get(key)
    if value is None or value == "":
        raise InputValidationError(f"Missing required field: {key}")
    return value


def options_of(payload: dict[str, Any]) -> dict[str, Any]:
    options = payload.get("options") or {}
    if not isinstance(options, dict):
        raise InputValidationError("options must be an object")
    return options


def render_file(
    engine: DocumentEngine, path: str | Path, fmt: str, options: dict[str, Any] | None = None
) -> list[RenderedAsset]:
    """Open ``path``, render it and dispose the handle.

    Runs synchronously; call it through ``asyncio.to_thread``.
    """
    validate_presentation_file(path)
    with open_document(engine, path) as handle:
        rendered = handle.render(fmt, options)  # type: ignore[arg-type]
    if not isinstance(rendered, list):
        raise EngineCapabilityError(f"Engine returned raw bytes for {fmt} render")
    return rendered


def summarize_assets(assets: list[RenderedAsset]) -> dict[str, Any]:
    """Count assets by kind and total their size."""
    by_kind = Counter(asset.kind for asset in assets)
    return {
        "totalAssets": len(assets),
        "byType": dict(sorted(by_kind.items())),
        "totalSize": sum(len(asset.data) for asset in assets),
    }


def describe_asset(asset: RenderedAsset, object_key: str | None = None) -> dict[str, Any]:
    record: dict[str, Any] = {
        "name": asset.name,
        "contentType": asset.content_type,
        "kind": asset.kind,
        "size": len(asset.data),
        "slideIndex": asset.slide_index,
    }
    if object_key is not None:
        record["objectKey"] = object_key
    return record


async def upload_assets(
    storage: StorageBackend,
    assets: list[RenderedAsset],
    prefix: str,
    context: JobContext,
    start_progress: int,
    end_progress: int,
) -> tuple[list[dict[str, Any]], list[str]]:
    """Upload each asset, containing per-asset failures.

    Progress advances from ``start_progress`` to ``end_progress`` as assets
    are uploaded.

    Returns:
        Tuple of (asset records, upload error messages)
    """
    records: list[dict[str, Any]] = []
    errors: list[str] = []
    for position, asset in enumerate(assets, start=1):
        object_key = f"{prefix}/{asset.name}"
        try:
            await storage.upload_file(
                object_key,
                asset.data,
                asset.content_type,
                metadata={
                    "job-id": context.job_id,
                    "asset-kind": asset.kind,
                    "slide-index": str(asset.slide_index),
                },
            )
            records.append(describe_asset(asset, object_key))
        except Exception as e:
            logger.warning(
                "asset_upload_failed", job_id=context.job_id, asset=asset.name, error=str(e)
            )
            errors.append(f"{asset.name}: {e}")
            records.append(describe_asset(asset))

        span = end_progress - start_progress
        await context.report_progress(start_progress + round(position / len(assets) * span))
    return records, errors
