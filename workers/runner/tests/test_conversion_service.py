"""End-to-end tests for the conversion service."""

from pathlib import Path

import pytest

from deckschema_core.errors import InputValidationError
from deckschema_core.schemas.jobs import JobStatus, JobType

from runner.config import Settings
from runner.jobs import InMemoryJobRepository
from runner.payloads import InMemoryPayloadStore
from runner.service import ConversionService
from runner.storage import InMemoryStorage


class TestSubmission:
    """Tests for submitting jobs through the service."""

    @pytest.mark.asyncio
    async def test_extraction_job_completes(
        self, service: ConversionService, storage: InMemoryStorage, deck_path: Path
    ) -> None:
        """A conversion runs to completion and stores its document."""
        job_id = await service.submit_extraction_job(deck_path, user_id="u1")

        job = await service.wait_for_job(job_id, timeout=20)

        assert job.status == JobStatus.COMPLETED, job.error
        assert job.type == JobType.PPTX_TO_JSON
        assert job.progress == 100
        assert job.user_id == "u1"
        assert job.metadata["originalFilename"] == "runner-deck.pptx"
        assert job.metadata["result"]["slideCount"] == 2
        assert job.processing_time_ms is not None
        assert job_id in storage.documents["documents"]

    @pytest.mark.asyncio
    async def test_missing_file_fails_job(
        self, plain_service: ConversionService, tmp_path: Path
    ) -> None:
        """A missing file is accepted at submission and fails the job."""
        job_id = await plain_service.submit_extraction_job(tmp_path / "gone.pptx")

        job = await plain_service.wait_for_job(job_id, timeout=20)

        assert job.status == JobStatus.FAILED
        assert job.error_code == "file_error"
        assert "does not exist" in job.error

    @pytest.mark.asyncio
    async def test_metadata_and_asset_jobs(
        self, service: ConversionService, deck_path: Path
    ) -> None:
        """Side jobs run alongside each other."""
        metadata_id = await service.submit_metadata_job(deck_path, original_name="q3.pptx")
        assets_id = await service.submit_asset_job(deck_path)

        metadata_job = await service.wait_for_job(metadata_id, timeout=20)
        assets_job = await service.wait_for_job(assets_id, timeout=20)

        assert metadata_job.status == JobStatus.COMPLETED, metadata_job.error
        assert metadata_job.metadata["originalFilename"] == "q3.pptx"
        assert metadata_job.metadata["result"]["metadataDocId"] == metadata_id
        assert assets_job.status == JobStatus.COMPLETED, assets_job.error
        assert assets_job.metadata["result"]["summary"]["uploaded"] == 1

    @pytest.mark.asyncio
    async def test_reconstruction_job(
        self, plain_service: ConversionService, deck_path: Path, tmp_path: Path
    ) -> None:
        """A converted document can be written back to a presentation."""
        extract_id = await plain_service.submit_extraction_job(deck_path)
        extracted = await plain_service.wait_for_job(extract_id, timeout=20)
        document = extracted.metadata["result"]["document"]
        output = tmp_path / "roundtrip.pptx"

        rebuild_id = await plain_service.submit_reconstruction_job(document, output)
        rebuilt = await plain_service.wait_for_job(rebuild_id, timeout=20)

        assert rebuilt.status == JobStatus.COMPLETED, rebuilt.error
        assert rebuilt.metadata["outputPath"] == str(output)
        assert rebuilt.metadata["result"]["slideCount"] == 2
        assert output.is_file()

    @pytest.mark.asyncio
    async def test_rejects_bad_input(self, service: ConversionService, tmp_path: Path) -> None:
        """Malformed requests are rejected before a job is created."""
        with pytest.raises(InputValidationError):
            await service.submit_extraction_job("")
        with pytest.raises(InputValidationError):
            await service.submit_asset_job(tmp_path / "a.pptx", options=["dpi"])
        with pytest.raises(InputValidationError):
            await service.submit_reconstruction_job("not a document", tmp_path / "x.pptx")
        with pytest.raises(InputValidationError):
            await service.submit_reconstruction_job({"slides": []}, "")
        with pytest.raises(InputValidationError):
            await service.submit_thumbnail_job(tmp_path / "a.pptx", timeout=-1)

        assert service.queue_stats().queue_length == 0

    @pytest.mark.asyncio
    async def test_cancel_unknown_job(self, service: ConversionService) -> None:
        """Cancelling an unknown id reports not found."""
        assert await service.cancel_job("missing") is False
        assert await service.get_job("missing") is None


class TestValidation:
    """Tests for synchronous validation."""

    def test_validate_with_dict_options(self, storage: InMemoryStorage) -> None:
        """Options may be passed as a camelCase mapping."""
        service = ConversionService(object(), storage=storage)  # type: ignore[arg-type]
        document = {
            "metadata": {"slideCount": 5},
            "slides": [{"slideIndex": 0, "shapes": []}],
        }

        result = service.validate_document(document, {"enableAutoFix": True})

        assert result.fixed_document is not None
        assert result.fixed_document["metadata"]["slideCount"] == 1

    def test_compliance_report(self) -> None:
        """A compliance report is produced without a job."""
        service = ConversionService(object())  # type: ignore[arg-type]

        report = service.compliance_report({"slides": "nope"})

        assert report.error_count > 0
        assert report.overall_score < 100


class TestHealth:
    """Tests for health reporting."""

    @pytest.mark.asyncio
    async def test_health_includes_storage(self, service: ConversionService) -> None:
        """Storage health is folded into the overall flag."""
        health = await service.health()

        assert health["service"] is True
        assert health["storage"] is True
        assert health["overall"] is True


class TestFromSettings:
    """Tests for building a service from settings."""

    @pytest.mark.asyncio
    async def test_memory_backends(self) -> None:
        """The default settings need no external services."""
        settings = Settings(
            _env_file=None,
            job_store="memory",
            payload_store="memory",
            use_object_storage=False,
            max_concurrent_jobs=2,
        )

        service = await ConversionService.from_settings(settings)

        assert isinstance(service.orchestrator.repository, InMemoryJobRepository)
        assert isinstance(service.orchestrator.payloads, InMemoryPayloadStore)
        assert service.storage is None
        assert service.orchestrator.max_concurrent_jobs == 2
        assert service.queue_stats().max_concurrent == 2
