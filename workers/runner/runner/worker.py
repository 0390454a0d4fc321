"""Main worker process that takes submissions from a Redis list."""

import asyncio
import json
import logging
import signal
from typing import Any

import redis.asyncio as redis
import structlog

from deckschema_core.errors import DeckSchemaError

from runner.config import Settings, settings
from runner.service import ConversionService

logger = structlog.get_logger()

QUEUE_NAME = "deckschema:submissions"
REPLY_TTL_SECONDS = 60 * 60

FILE_JOB_KINDS = {
    "pptx2json": "submit_extraction_job",
    "extract-assets": "submit_asset_job",
    "extract-metadata": "submit_metadata_job",
    "thumbnails": "submit_thumbnail_job",
}


async def dequeue_submission(
    client: redis.Redis, timeout: int = 5
) -> dict[str, Any] | None:
    """Block until a submission is available or timeout occurs."""
    result = await client.blpop(QUEUE_NAME, timeout=timeout)
    if not result:
        return None
    _, data = result
    try:
        payload = json.loads(data)
    except json.JSONDecodeError:
        logger.warning("invalid_submission", payload=data)
        return None
    if not isinstance(payload, dict):
        logger.warning("unexpected_submission", payload=payload)
        return None
    return payload


async def handle_submission(
    service: ConversionService, payload: dict[str, Any]
) -> str | None:
    """Submit or cancel a job as described by ``payload``.

    Submissions carry a ``kind`` (a job type or ``cancel``) and the fields
    the matching service call takes, in camelCase.

    Returns:
        The new job id, or None for cancellations and unknown kinds
    """
    kind = payload.get("kind")
    common = {
        "user_id": payload.get("userId"),
        "timeout": payload.get("timeout"),
    }

    if kind in FILE_JOB_KINDS:
        submit = getattr(service, FILE_JOB_KINDS[kind])
        return await submit(
            payload.get("filePath"),
            original_name=payload.get("originalName"),
            options=payload.get("options"),
            **common,
        )

    if kind == "json2pptx":
        return await service.submit_reconstruction_job(
            payload.get("document"),
            payload.get("outputPath"),
            options=payload.get("options"),
            **common,
        )

    if kind == "cancel":
        job_id = payload.get("jobId")
        if not isinstance(job_id, str):
            logger.warning("missing_job_id", payload=payload)
            return None
        cancelled = await service.cancel_job(job_id)
        logger.info("cancel_requested", job_id=job_id, found=cancelled)
        return None

    logger.warning("unknown_submission_kind", kind=kind)
    return None


async def _reply(client: redis.Redis, payload: dict[str, Any], body: dict[str, Any]) -> None:
    reply_to = payload.get("replyTo")
    if not isinstance(reply_to, str):
        return
    await client.rpush(reply_to, json.dumps(body))
    await client.expire(reply_to, REPLY_TTL_SECONDS)


async def run(config: Settings = settings) -> None:
    """Run the worker until SIGINT or SIGTERM."""
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(signum, stop.set)

    logger.info(
        "starting_worker",
        worker_id=config.worker_id,
        redis_url=config.redis_url,
        log_level=config.log_level,
        queue=QUEUE_NAME,
        max_concurrent_jobs=config.max_concurrent_jobs,
    )

    client = redis.from_url(config.redis_url)
    service = await ConversionService.from_settings(config)
    await service.start()
    logger.info("worker_ready")

    try:
        while not stop.is_set():
            payload = await dequeue_submission(client)
            if not payload:
                continue

            try:
                logger.info("submission_received", kind=payload.get("kind"))
                job_id = await handle_submission(service, payload)
                if job_id is not None:
                    await _reply(client, payload, {"jobId": job_id})
            except DeckSchemaError as exc:
                logger.warning("submission_rejected", error=exc.message, code=exc.code)
                await _reply(client, payload, {"error": exc.message, "code": exc.code})
            except Exception as exc:
                # Never crash the entire worker on a single bad submission
                logger.exception("submission_failed", error=str(exc))
    finally:
        logger.info("stopping_worker")
        await service.stop()
        await client.aclose()


def main() -> None:
    """Main entry point for the worker."""
    level = logging.getLevelName(settings.log_level.upper())
    if isinstance(level, int):
        structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(level))
    asyncio.run(run())


if __name__ == "__main__":
    main()
