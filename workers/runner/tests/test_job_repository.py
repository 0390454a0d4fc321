"""Tests for job record persistence."""

from collections.abc import AsyncIterator
from pathlib import Path

import pytest
import pytest_asyncio

from deckschema_core.schemas.jobs import Job, JobStatus, JobType

from runner.jobs import (
    InMemoryJobRepository,
    JobRepository,
    JobTransitionError,
    SqlJobRepository,
    next_record,
)


def _job(job_id: str = "job-1") -> Job:
    return Job(
        id=job_id,
        type=JobType.PPTX_TO_JSON,
        user_id="u1",
        metadata={"originalFilename": "deck.pptx"},
        timeout_seconds=60,
    )


@pytest_asyncio.fixture(params=["memory", "sql"])
async def repository(request, tmp_path: Path) -> AsyncIterator[JobRepository]:
    if request.param == "memory":
        yield InMemoryJobRepository()
        return
    repo = SqlJobRepository(f"sqlite+aiosqlite:///{tmp_path / 'jobs.db'}")
    await repo.init()
    yield repo
    await repo.close()


class TestNextRecord:
    """Tests for building replacement records."""

    def test_progress_is_clamped(self) -> None:
        """Progress stays within 0-100."""
        assert next_record(_job(), progress=150).progress == 100
        assert next_record(_job(), progress=-3).progress == 0

    def test_progress_does_not_decrease_while_processing(self) -> None:
        """Lower progress on a processing job keeps the current value."""
        processing = next_record(_job(), status=JobStatus.PROCESSING, progress=10)
        ahead = next_record(processing, progress=60)

        assert next_record(ahead, progress=20).progress == 60
        assert next_record(ahead, progress=75).progress == 75
        failed = next_record(ahead, status=JobStatus.FAILED, progress=0)
        assert failed.progress == 0

    def test_completed_at_set_on_terminal(self) -> None:
        """completed_at is stamped when the job finishes and not before."""
        processing = next_record(_job(), status=JobStatus.PROCESSING)
        assert processing.completed_at is None
        done = next_record(processing, status=JobStatus.COMPLETED)
        assert done.completed_at is not None
        assert done.updated_at >= processing.updated_at

    def test_backward_transition_rejected(self) -> None:
        """A finished job cannot return to processing."""
        done = next_record(
            next_record(_job(), status=JobStatus.PROCESSING), status=JobStatus.COMPLETED
        )
        with pytest.raises(JobTransitionError):
            next_record(done, status=JobStatus.PROCESSING)

    def test_original_is_untouched(self) -> None:
        """The source record is not mutated."""
        job = _job()
        next_record(job, status=JobStatus.PROCESSING, metadata={"x": 1})
        assert job.status == JobStatus.PENDING
        assert job.metadata == {"originalFilename": "deck.pptx"}


class TestRepositories:
    """Behaviour shared by every repository."""

    @pytest.mark.asyncio
    async def test_create_and_get(self, repository: JobRepository) -> None:
        """A created record reads back unchanged."""
        job = _job()
        await repository.create(job)
        stored = await repository.get(job.id)
        assert stored.id == job.id
        assert stored.type == JobType.PPTX_TO_JSON
        assert stored.status == JobStatus.PENDING
        assert stored.metadata == {"originalFilename": "deck.pptx"}
        assert stored.created_at == job.created_at
        assert await repository.get("missing") is None

    @pytest.mark.asyncio
    async def test_replace_whole_record(self, repository: JobRepository) -> None:
        """Replacement writes every field."""
        job = _job()
        await repository.create(job)
        processing = next_record(job, status=JobStatus.PROCESSING, progress=10)
        await repository.replace(processing)
        done = next_record(
            processing,
            status=JobStatus.COMPLETED,
            progress=100,
            metadata={**processing.metadata, "result": {"slideCount": 2}},
            processing_time_ms=12.5,
        )
        await repository.replace(done)

        stored = await repository.get(job.id)
        assert stored.status == JobStatus.COMPLETED
        assert stored.progress == 100
        assert stored.metadata["result"] == {"slideCount": 2}
        assert stored.processing_time_ms == 12.5
        assert stored.completed_at is not None

    @pytest.mark.asyncio
    async def test_finished_record_is_frozen(self, repository: JobRepository) -> None:
        """Writes to a terminated job are refused."""
        job = _job()
        await repository.create(job)
        processing = next_record(job, status=JobStatus.PROCESSING)
        await repository.replace(processing)
        await repository.replace(next_record(processing, status=JobStatus.FAILED, error="x"))

        with pytest.raises(JobTransitionError):
            await repository.replace(next_record(processing, status=JobStatus.COMPLETED))

        stored = await repository.get(job.id)
        assert stored.status == JobStatus.FAILED

    @pytest.mark.asyncio
    async def test_replace_missing(self, repository: JobRepository) -> None:
        """Replacing an unknown job is an error."""
        with pytest.raises(KeyError):
            await repository.replace(_job("nope"))

    @pytest.mark.asyncio
    async def test_list_filters(self, repository: JobRepository) -> None:
        """Listing filters by status and honours the limit."""
        for n in range(3):
            await repository.create(_job(f"job-{n}"))
        first = await repository.get("job-0")
        await repository.replace(next_record(first, status=JobStatus.PROCESSING))

        assert len(await repository.list()) == 3
        pending = await repository.list(status=JobStatus.PENDING)
        assert {job.id for job in pending} == {"job-1", "job-2"}
        assert len(await repository.list(limit=2)) == 2

    @pytest.mark.asyncio
    async def test_ping(self, repository: JobRepository) -> None:
        """A reachable store reports healthy."""
        assert await repository.ping() is True
