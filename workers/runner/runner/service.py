"""Conversion service: the entry point callers use to submit and track jobs."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel

from deckschema_core.engine.base import DocumentEngine
from deckschema_core.engine.pptx import PptxEngine
from deckschema_core.errors import InputValidationError
from deckschema_core.pipeline.validator import SchemaValidator
from deckschema_core.schemas.jobs import Job, JobType
from deckschema_core.schemas.validation import (
    AutoFixOptions,
    ComplianceReport,
    ValidationResult,
)

from runner.config import Settings
from runner.jobs import InMemoryJobRepository, JobRepository, SqlJobRepository
from runner.orchestrator import JobOrchestrator, QueueStats
from runner.payloads import InMemoryPayloadStore, PayloadStore, RedisPayloadStore
from runner.storage import StorageBackend, create_storage
from runner.tasks import build_handlers

logger = structlog.get_logger()


def _check_options(options: dict[str, Any] | None) -> dict[str, Any]:
    if options is None:
        return {}
    if not isinstance(options, dict):
        raise InputValidationError("options must be an object")
    return options


def _check_file_path(file_path: str | Path) -> str:
    if not str(file_path or "").strip():
        raise InputValidationError("file_path is required")
    return str(file_path)


class ConversionService:
    """Submit conversion work as background jobs and query its state."""

    def __init__(
        self,
        orchestrator: JobOrchestrator,
        validator: SchemaValidator | None = None,
        storage: StorageBackend | None = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.validator = validator or SchemaValidator()
        self.storage = storage

    @classmethod
    async def from_settings(
        cls, settings: Settings, engine: DocumentEngine | None = None
    ) -> ConversionService:
        """Build a service with the backends selected in ``settings``."""
        engine = engine or PptxEngine(convert_timeout=settings.engine_convert_timeout_seconds)

        repository: JobRepository
        if settings.job_store == "sql":
            repository = SqlJobRepository(settings.database_url)
            await repository.init()
        else:
            repository = InMemoryJobRepository()

        payloads: PayloadStore
        if settings.payload_store == "redis":
            payloads = RedisPayloadStore(settings.redis_url)
        else:
            payloads = InMemoryPayloadStore()

        storage = create_storage(settings)
        validator = SchemaValidator()
        orchestrator = JobOrchestrator(
            repository=repository,
            payloads=payloads,
            handlers=build_handlers(engine, storage, validator=validator),
            max_concurrent_jobs=settings.max_concurrent_jobs,
            default_timeout=settings.default_job_timeout_seconds,
            dispatch_interval=settings.dispatch_interval_seconds,
            queue_health_limit=settings.queue_health_limit,
        )
        logger.info(
            "service_configured",
            engine=engine.name,
            job_store=settings.job_store,
            payload_store=settings.payload_store,
            object_storage=storage is not None,
        )
        return cls(orchestrator, validator=validator, storage=storage)

    # Lifecycle ------------------------------------------------------------

    async def start(self) -> None:
        await self.orchestrator.start()

    async def stop(self) -> None:
        """Stop the orchestrator and release backend connections."""
        await self.orchestrator.stop()
        await self.orchestrator.payloads.close()
        await self.orchestrator.repository.close()

    # Submission -----------------------------------------------------------

    async def _submit_file_job(
        self,
        job_type: JobType,
        file_path: str | Path,
        original_name: str | None,
        options: dict[str, Any] | None,
        user_id: str | None,
        timeout: float | None,
    ) -> str:
        path = _check_file_path(file_path)
        checked = _check_options(options)
        name = original_name or Path(path).name
        return await self.orchestrator.enqueue(
            job_type,
            {"filePath": path, "originalName": name, "options": checked},
            timeout=timeout,
            user_id=user_id,
            metadata={"originalFilename": name, "options": checked},
        )

    async def submit_extraction_job(
        self,
        file_path: str | Path,
        original_name: str | None = None,
        options: dict[str, Any] | None = None,
        user_id: str | None = None,
        timeout: float | None = None,
    ) -> str:
        """Queue a presentation-to-Universal-document conversion.

        Args:
            file_path: Source presentation on local disk
            original_name: Display name, defaults to the file name
            options: ``enableEnrichment``, ``autoFix``, ``generateMissingIds``
                and ``overrides`` for document metadata
            user_id: Submitting user, if known
            timeout: Time budget in seconds

        Returns:
            The job id
        """
        return await self._submit_file_job(
            JobType.PPTX_TO_JSON, file_path, original_name, options, user_id, timeout
        )

    async def submit_reconstruction_job(
        self,
        document: BaseModel | dict[str, Any],
        output_path: str | Path,
        options: dict[str, Any] | None = None,
        user_id: str | None = None,
        timeout: float | None = None,
    ) -> str:
        """Queue writing ``document`` to a presentation file at ``output_path``."""
        if isinstance(document, BaseModel):
            document = document.model_dump(mode="json", by_alias=True, exclude_none=True)
        if not isinstance(document, dict):
            raise InputValidationError("document must be an object")
        if not str(output_path or "").strip():
            raise InputValidationError("output_path is required")
        checked = _check_options(options)
        return await self.orchestrator.enqueue(
            JobType.JSON_TO_PPTX,
            {"document": document, "outputPath": str(output_path), "options": checked},
            timeout=timeout,
            user_id=user_id,
            metadata={"outputPath": str(output_path), "options": checked},
        )

    async def submit_asset_job(
        self,
        file_path: str | Path,
        original_name: str | None = None,
        options: dict[str, Any] | None = None,
        user_id: str | None = None,
        timeout: float | None = None,
    ) -> str:
        """Queue extraction of embedded images and media."""
        return await self._submit_file_job(
            JobType.EXTRACT_ASSETS, file_path, original_name, options, user_id, timeout
        )

    async def submit_metadata_job(
        self,
        file_path: str | Path,
        original_name: str | None = None,
        options: dict[str, Any] | None = None,
        user_id: str | None = None,
        timeout: float | None = None,
    ) -> str:
        """Queue extraction of document-level metadata."""
        return await self._submit_file_job(
            JobType.EXTRACT_METADATA, file_path, original_name, options, user_id, timeout
        )

    async def submit_thumbnail_job(
        self,
        file_path: str | Path,
        original_name: str | None = None,
        options: dict[str, Any] | None = None,
        user_id: str | None = None,
        timeout: float | None = None,
    ) -> str:
        """Queue rendering of one thumbnail per slide."""
        return await self._submit_file_job(
            JobType.THUMBNAILS, file_path, original_name, options, user_id, timeout
        )

    # Queries --------------------------------------------------------------

    async def get_job(self, job_id: str) -> Job | None:
        return await self.orchestrator.get_status(job_id)

    async def cancel_job(self, job_id: str) -> bool:
        return await self.orchestrator.cancel(job_id)

    async def wait_for_job(self, job_id: str, timeout: float | None = None) -> Job:
        return await self.orchestrator.wait_for(job_id, timeout=timeout)

    def queue_stats(self) -> QueueStats:
        return self.orchestrator.queue_stats()

    async def health(self) -> dict[str, Any]:
        health = await self.orchestrator.health()
        if self.storage is not None:
            health["storage"] = await self.storage.ping()
            health["overall"] = health["overall"] and health["storage"]
        return health

    # Synchronous validation -----------------------------------------------

    def validate_document(
        self,
        document: Any,
        options: AutoFixOptions | dict[str, Any] | None = None,
    ) -> ValidationResult:
        """Validate, and optionally repair, a Universal document without a job."""
        if isinstance(options, dict):
            options = AutoFixOptions.model_validate(options)
        return self.validator.validate(document, options)

    def compliance_report(self, document: Any) -> ComplianceReport:
        return self.validator.compliance_report(document)
