"""Job record persistence.

Records are replaced whole on every write. Repositories refuse writes that
would move a job backwards or touch a job that has already terminated, so a
late writer can never resurrect a finished job.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import JSON, DateTime, Float, Integer, String, Text, select, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from deckschema_core.schemas.jobs import Job, JobStatus, JobType, can_transition
from deckschema_core.schemas.universal import utc_now

logger = structlog.get_logger()


class JobTransitionError(ValueError):
    """A write would break the job lifecycle."""


def check_replace(stored: Job, incoming: Job) -> None:
    """Raise if ``incoming`` may not replace ``stored``."""
    if stored.status.is_terminal:
        raise JobTransitionError(
            f"Job {stored.id} already finished with status {stored.status.value}"
        )
    if incoming.status != stored.status and not can_transition(
        stored.status, incoming.status
    ):
        raise JobTransitionError(
            f"Job {stored.id} cannot move from {stored.status.value} "
            f"to {incoming.status.value}"
        )


def next_record(job: Job, **changes: Any) -> Job:
    """Return a copy of ``job`` with ``changes`` applied.

    ``updated_at`` is always refreshed and ``completed_at`` is stamped the
    first time the job reaches a terminal status.
    Progress is clamped to 0-100 and never decreases while the job stays in
    processing.
    """
    status = changes.get("status", job.status)
    if status != job.status and not can_transition(job.status, status):
        raise JobTransitionError(
            f"Job {job.id} cannot move from {job.status.value} to {status.value}"
        )
    if "progress" in changes:
        changes["progress"] = max(0, min(100, int(changes["progress"])))
        if status == job.status == JobStatus.PROCESSING:
            changes["progress"] = max(job.progress, changes["progress"])

    now = utc_now()
    changes["updated_at"] = now
    if status.is_terminal and job.completed_at is None:
        changes["completed_at"] = now
    return job.model_copy(update=changes, deep=True)


class JobRepository(ABC):
    """Storage for job records."""

    @abstractmethod
    async def create(self, job: Job) -> Job:
        """Insert a new record."""

    @abstractmethod
    async def get(self, job_id: str) -> Job | None:
        """Return the record for ``job_id``, if any."""

    @abstractmethod
    async def replace(self, job: Job) -> Job:
        """Replace the stored record with ``job``.

        Raises:
            KeyError: If no record exists
            JobTransitionError: If the write breaks the lifecycle
        """

    @abstractmethod
    async def list(
        self, status: JobStatus | None = None, limit: int | None = None
    ) -> list[Job]:
        """Return records, oldest first."""

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


class InMemoryJobRepository(JobRepository):
    """Process-local repository for tests and single-instance use."""

    def __init__(self) -> None:
        self._jobs: dict[str, Job] = {}

    async def create(self, job: Job) -> Job:
        if job.id in self._jobs:
            raise KeyError(f"Job already exists: {job.id}")
        self._jobs[job.id] = job.model_copy(deep=True)
        return job

    async def get(self, job_id: str) -> Job | None:
        job = self._jobs.get(job_id)
        return job.model_copy(deep=True) if job else None

    async def replace(self, job: Job) -> Job:
        stored = self._jobs.get(job.id)
        if stored is None:
            raise KeyError(f"Job not found: {job.id}")
        check_replace(stored, job)
        self._jobs[job.id] = job.model_copy(deep=True)
        return job

    async def list(
        self, status: JobStatus | None = None, limit: int | None = None
    ) -> list[Job]:
        jobs = sorted(self._jobs.values(), key=lambda j: j.created_at)
        if status is not None:
            jobs = [j for j in jobs if j.status == status]
        if limit is not None:
            jobs = jobs[:limit]
        return [j.model_copy(deep=True) for j in jobs]


class Base(DeclarativeBase):
    """Base class for runner tables."""

    pass


class JobRecord(Base):
    """One row per job."""

    __tablename__ = "deckschema_jobs"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    job_type: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    progress: Mapped[int] = mapped_column(Integer, default=0)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_code: Mapped[str | None] = mapped_column(String(32), nullable=True)
    user_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    metadata_json: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    timeout_seconds: Mapped[float | None] = mapped_column(Float, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    processing_time_ms: Mapped[float | None] = mapped_column(Float, nullable=True)


def _aware(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo on the way back
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_job(record: JobRecord) -> Job:
    return Job(
        id=record.id,
        type=JobType(record.job_type),
        status=JobStatus(record.status),
        progress=record.progress,
        error=record.error,
        error_code=record.error_code,
        user_id=record.user_id,
        metadata=dict(record.metadata_json or {}),
        timeout_seconds=record.timeout_seconds,
        created_at=_aware(record.created_at),
        updated_at=_aware(record.updated_at),
        completed_at=_aware(record.completed_at),
        processing_time_ms=record.processing_time_ms,
    )


def _apply(record: JobRecord, job: Job) -> None:
    record.job_type = job.type.value
    record.status = job.status.value
    record.progress = job.progress
    record.error = job.error
    record.error_code = job.error_code
    record.user_id = job.user_id
    # Round-trip through pydantic so datetimes inside metadata stay JSON-safe
    record.metadata_json = job.model_dump(mode="json")["metadata"]
    record.timeout_seconds = job.timeout_seconds
    record.created_at = job.created_at
    record.updated_at = job.updated_at
    record.completed_at = job.completed_at
    record.processing_time_ms = job.processing_time_ms


class SqlJobRepository(JobRepository):
    """Repository backed by SQLAlchemy's async engine."""

    def __init__(
        self,
        database_url: str | None = None,
        engine: AsyncEngine | None = None,
    ) -> None:
        if engine is None:
            if database_url is None:
                raise ValueError("database_url or engine is required")
            engine = create_async_engine(database_url)
        self._engine = engine
        self._session_maker = async_sessionmaker(engine, expire_on_commit=False)

    async def init(self) -> None:
        """Create the jobs table if it does not exist."""
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def create(self, job: Job) -> Job:
        async with self._session_maker() as session:
            record = JobRecord(id=job.id)
            _apply(record, job)
            session.add(record)
            await session.commit()
        return job

    async def get(self, job_id: str) -> Job | None:
        async with self._session_maker() as session:
            record = await session.get(JobRecord, job_id)
            return _to_job(record) if record else None

    async def replace(self, job: Job) -> Job:
        async with self._session_maker() as session:
            record = await self._locked(session, job.id)
            if record is None:
                raise KeyError(f"Job not found: {job.id}")
            check_replace(_to_job(record), job)
            _apply(record, job)
            await session.commit()
        return job

    async def list(
        self, status: JobStatus | None = None, limit: int | None = None
    ) -> list[Job]:
        query = select(JobRecord).order_by(JobRecord.created_at)
        if status is not None:
            query = query.where(JobRecord.status == status.value)
        if limit is not None:
            query = query.limit(limit)
        async with self._session_maker() as session:
            result = await session.execute(query)
            return [_to_job(record) for record in result.scalars()]

    async def ping(self) -> bool:
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning("job_store_unreachable", error=str(e))
            return False

    async def close(self) -> None:
        await self._engine.dispose()

    async def _locked(self, session: AsyncSession, job_id: str) -> JobRecord | None:
        query = select(JobRecord).where(JobRecord.id == job_id)
        # Row locks are a no-op on SQLite and serialise writers on Postgres
        if self._engine.dialect.name != "sqlite":
            query = query.with_for_update()
        result = await session.execute(query)
        return result.scalar_one_or_none()
