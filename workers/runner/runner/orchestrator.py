"""Bounded, time-limited execution of background jobs.

A single dispatch loop starts queued jobs in FIFO order while fewer than
``max_concurrent_jobs`` are in flight. Each started job is watched by a
timeout task. A job is *owned* from the moment it starts until its timeout
fires, it is cancelled, or it finishes; only the owner may write progress or
a final result, so work that outlives its job can never overwrite the
failure recorded for it.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from pydantic import Field

from deckschema_core.errors import (
    DeckSchemaError,
    InputValidationError,
    JobCancelledError,
    JobTimeoutError,
)
from deckschema_core.schemas.base import SchemaModel
from deckschema_core.schemas.jobs import Job, JobStatus, JobType
from deckschema_core.schemas.universal import utc_now

from runner.jobs import (
    InMemoryJobRepository,
    JobRepository,
    JobTransitionError,
    next_record,
)
from runner.payloads import InMemoryPayloadStore, PayloadStore

logger = structlog.get_logger()

DEFAULT_MAX_CONCURRENT_JOBS = 3
DEFAULT_TIMEOUT_SECONDS = 300.0
DEFAULT_DISPATCH_INTERVAL = 1.0
DEFAULT_QUEUE_HEALTH_LIMIT = 100

START_PROGRESS = 10

TIMEOUT_MESSAGE = "Job timed out - processing took too long"
CANCELLED_MESSAGE = "Job cancelled by caller"
STOPPED_MESSAGE = "Job cancelled - worker stopped"
MISSING_PAYLOAD_MESSAGE = "Job data not found"


class QueueStats(SchemaModel):
    """Snapshot of the dispatcher's queue."""

    queue_length: int
    processing_count: int
    max_concurrent: int
    active_job_ids: list[str] = Field(default_factory=list)


class JobContext:
    """Handle given to a job handler for the duration of one run."""

    def __init__(self, orchestrator: JobOrchestrator, job: Job) -> None:
        self._orchestrator = orchestrator
        self.job_id = job.id
        self.job_type = job.type
        self.user_id = job.user_id

    @property
    def is_owner(self) -> bool:
        """Whether this run may still write to the job record."""
        return self._orchestrator.owns(self.job_id)

    async def report_progress(self, progress: int) -> bool:
        """Record a progress checkpoint.

        Returns:
            False if the write was dropped because the job is no longer owned
        """
        return await self._orchestrator.report_progress(self.job_id, progress)


JobHandler = Callable[[JobContext, dict[str, Any]], Awaitable[dict[str, Any]]]


class JobOrchestrator:
    """Queue, run and track background jobs."""

    def __init__(
        self,
        repository: JobRepository | None = None,
        payloads: PayloadStore | None = None,
        handlers: dict[JobType, JobHandler] | None = None,
        max_concurrent_jobs: int = DEFAULT_MAX_CONCURRENT_JOBS,
        default_timeout: float = DEFAULT_TIMEOUT_SECONDS,
        dispatch_interval: float = DEFAULT_DISPATCH_INTERVAL,
        queue_health_limit: int = DEFAULT_QUEUE_HEALTH_LIMIT,
    ) -> None:
        if max_concurrent_jobs < 1:
            raise ValueError("max_concurrent_jobs must be at least 1")
        self.repository = repository if repository is not None else InMemoryJobRepository()
        self.payloads = payloads if payloads is not None else InMemoryPayloadStore()
        self.max_concurrent_jobs = max_concurrent_jobs
        self.default_timeout = default_timeout
        self.dispatch_interval = dispatch_interval
        self.queue_health_limit = queue_health_limit

        self._handlers: dict[JobType, JobHandler] = dict(handlers or {})
        self._queue: deque[str] = deque()
        # job id -> timeout task; membership means the job is owned
        self._active: dict[str, asyncio.Task[None]] = {}
        self._running_tasks: set[asyncio.Task[None]] = set()
        self._processing_count = 0
        self._dispatcher: asyncio.Task[None] | None = None

    # Registration ---------------------------------------------------------

    def register(self, job_type: JobType, handler: JobHandler) -> None:
        """Register the handler that runs jobs of ``job_type``."""
        self._handlers[JobType(job_type)] = handler

    # Public API -----------------------------------------------------------

    async def enqueue(
        self,
        job_type: JobType | str,
        payload: dict[str, Any],
        timeout: float | None = None,
        user_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Create a pending job and queue it.

        Returns as soon as the job is recorded; the work runs later on the
        dispatch loop.

        Args:
            job_type: Kind of work
            payload: Request data handed to the handler
            timeout: Time budget in seconds, defaults to ``default_timeout``
            user_id: Submitting user, if known
            metadata: Request details stored on the job record

        Returns:
            The new job id

        Raises:
            InputValidationError: If the type has no handler or the timeout
                is not positive
        """
        try:
            job_type = JobType(job_type)
        except ValueError:
            raise InputValidationError(f"Unknown job type: {job_type}") from None
        if job_type not in self._handlers:
            raise InputValidationError(f"No handler registered for {job_type.value}")
        if timeout is not None and timeout <= 0:
            raise InputValidationError("Job timeout must be positive")

        budget = timeout or self.default_timeout
        job = Job(
            id=str(uuid.uuid4()),
            type=job_type,
            user_id=user_id,
            timeout_seconds=budget,
            metadata={
                **(metadata or {}),
                "timeoutSeconds": budget,
                "queuedAt": utc_now().isoformat(),
            },
        )
        await self.repository.create(job)
        await self.payloads.put(job.id, payload)
        self._queue.append(job.id)

        logger.info(
            "job_queued",
            job_id=job.id,
            job_type=job_type.value,
            user_id=user_id,
            queue_length=len(self._queue),
        )
        return job.id

    async def get_status(self, job_id: str) -> Job | None:
        """Return the current job record, if any."""
        return await self.repository.get(job_id)

    async def cancel(self, job_id: str) -> bool:
        """Cancel a queued or running job.

        Cancelling a job that already finished is a successful no-op.

        Returns:
            False only if the job does not exist
        """
        watchdog = self._active.pop(job_id, None)
        if watchdog is not None:
            watchdog.cancel()
        was_queued = job_id in self._queue
        if was_queued:
            self._queue.remove(job_id)

        job = await self.repository.get(job_id)
        if job is None:
            return False
        if job.status.is_terminal:
            return True

        await self._fail(job_id, JobCancelledError(CANCELLED_MESSAGE))
        if was_queued:
            await self.payloads.delete(job_id)
        logger.info("job_cancelled", job_id=job_id, was_queued=was_queued)
        return True

    def queue_stats(self) -> QueueStats:
        """Return a snapshot of the queue."""
        return QueueStats(
            queue_length=len(self._queue),
            processing_count=self._processing_count,
            max_concurrent=self.max_concurrent_jobs,
            active_job_ids=list(self._active),
        )

    def owns(self, job_id: str) -> bool:
        return job_id in self._active

    async def wait_for(
        self, job_id: str, timeout: float | None = None, poll_interval: float = 0.05
    ) -> Job:
        """Poll until ``job_id`` reaches a terminal status.

        Raises:
            KeyError: If the job does not exist
            asyncio.TimeoutError: If ``timeout`` elapses first
        """

        async def _poll() -> Job:
            while True:
                job = await self.repository.get(job_id)
                if job is None:
                    raise KeyError(f"Job not found: {job_id}")
                if job.status.is_terminal:
                    return job
                await asyncio.sleep(poll_interval)

        return await asyncio.wait_for(_poll(), timeout)

    # Lifecycle ------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._dispatcher is not None and not self._dispatcher.done()

    async def start(self) -> None:
        """Start the dispatch loop."""
        if self.is_running:
            return
        self._dispatcher = asyncio.create_task(self._dispatch_loop())
        logger.info(
            "dispatcher_started",
            max_concurrent_jobs=self.max_concurrent_jobs,
            default_timeout=self.default_timeout,
            dispatch_interval=self.dispatch_interval,
        )

    async def stop(self) -> None:
        """Stop dispatching and cancel work in flight.

        Jobs that were running are failed so none is left processing
        without a timeout behind it. Queued jobs stay pending.
        """
        if self._dispatcher is not None:
            self._dispatcher.cancel()
            await asyncio.gather(self._dispatcher, return_exceptions=True)
            self._dispatcher = None

        for job_id in list(self._active):
            self._active.pop(job_id).cancel()
            await self._fail(job_id, JobCancelledError(STOPPED_MESSAGE))

        tasks = list(self._running_tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        logger.info("dispatcher_stopped", pending_jobs=len(self._queue))

    async def health(self) -> dict[str, Any]:
        """Report dispatcher, queue and backend health."""
        stats = self.queue_stats()
        queue_ok = stats.queue_length < self.queue_health_limit
        job_store_ok = await self.repository.ping()
        payload_store_ok = await self.payloads.ping()
        return {
            "service": self.is_running,
            "queue": queue_ok,
            "jobStore": job_store_ok,
            "payloadStore": payload_store_ok,
            "overall": self.is_running and queue_ok and job_store_ok and payload_store_ok,
            "stats": stats.to_json_dict(),
        }

    # Dispatch -------------------------------------------------------------

    def dispatch_pending(self) -> int:
        """Start queued jobs while capacity allows.

        Returns:
            Number of jobs started
        """
        started = 0
        while self._queue and self._processing_count < self.max_concurrent_jobs:
            job_id = self._queue.popleft()
            self._processing_count += 1
            task = asyncio.create_task(self._run_job(job_id))
            self._running_tasks.add(task)
            task.add_done_callback(self._running_tasks.discard)
            started += 1
        return started

    async def _dispatch_loop(self) -> None:
        while True:
            self.dispatch_pending()
            await asyncio.sleep(self.dispatch_interval)

    async def _run_job(self, job_id: str) -> None:
        started = time.perf_counter()
        try:
            await self._process(job_id, started)
        except Exception as e:
            # Bookkeeping failures must not take down the dispatch loop
            logger.exception("job_processing_failed", job_id=job_id, error=str(e))
        finally:
            self._processing_count -= 1
            await self.payloads.delete(job_id)

    async def _process(self, job_id: str, started: float) -> None:
        job = await self.repository.get(job_id)
        if job is None:
            logger.warning("job_not_found", job_id=job_id)
            return
        if job.status != JobStatus.PENDING:
            logger.info("job_skipped", job_id=job_id, status=job.status.value)
            return

        payload = await self.payloads.get(job_id)
        if payload is None:
            await self._write(
                job_id, status=JobStatus.FAILED, error=MISSING_PAYLOAD_MESSAGE
            )
            return

        timeout = job.timeout_seconds or self.default_timeout
        self._active[job_id] = asyncio.create_task(self._watchdog(job_id, timeout))
        job = await self._write(
            job_id, status=JobStatus.PROCESSING, progress=START_PROGRESS
        )
        if job is None:
            # Cancelled between dequeue and start
            watchdog = self._active.pop(job_id, None)
            if watchdog is not None:
                watchdog.cancel()
            return

        logger.info("job_started", job_id=job_id, job_type=job.type.value, timeout=timeout)
        handler = self._handlers[job.type]
        try:
            result = await handler(JobContext(self, job), payload)
        except DeckSchemaError as e:
            logger.warning("job_failed", job_id=job_id, error=e.message, error_code=e.code)
            await self._finish(job_id, started, error=e.message, error_code=e.code)
        except Exception as e:
            logger.exception("job_failed", job_id=job_id, error=str(e))
            await self._finish(job_id, started, error=str(e) or "Unknown error")
        else:
            await self._finish(job_id, started, result=result)

    async def _finish(
        self,
        job_id: str,
        started: float,
        result: dict[str, Any] | None = None,
        error: str | None = None,
        error_code: str | None = None,
    ) -> None:
        watchdog = self._active.pop(job_id, None)
        if watchdog is None:
            logger.warning("late_result_discarded", job_id=job_id, failed=error is not None)
            return
        watchdog.cancel()

        current = await self.repository.get(job_id)
        metadata = dict(current.metadata) if current else {}
        if result is not None:
            metadata["result"] = result
        elapsed_ms = (time.perf_counter() - started) * 1000

        job = await self._write(
            job_id,
            status=JobStatus.FAILED if error else JobStatus.COMPLETED,
            progress=100,
            error=error,
            error_code=error_code,
            metadata=metadata,
            processing_time_ms=round(elapsed_ms, 2),
        )
        if job is not None:
            logger.info(
                "job_finished",
                job_id=job_id,
                status=job.status.value,
                processing_time_ms=job.processing_time_ms,
            )

    async def _watchdog(self, job_id: str, timeout: float) -> None:
        await asyncio.sleep(timeout)
        if self._active.pop(job_id, None) is None:
            return
        logger.warning("job_timed_out", job_id=job_id, timeout=timeout)
        await self._fail(job_id, JobTimeoutError(TIMEOUT_MESSAGE))

    async def report_progress(self, job_id: str, progress: int) -> bool:
        if not self.owns(job_id):
            logger.debug("progress_dropped", job_id=job_id, progress=progress)
            return False
        job = await self._write(job_id, progress=progress)
        return job is not None

    async def _fail(self, job_id: str, error: DeckSchemaError) -> None:
        await self._write(
            job_id,
            status=JobStatus.FAILED,
            progress=0,
            error=error.message,
            error_code=error.code,
        )

    async def _write(self, job_id: str, **changes: Any) -> Job | None:
        """Apply ``changes`` to the stored record.

        Returns:
            The new record, or None if the job is gone or already finished
        """
        current = await self.repository.get(job_id)
        if current is None:
            return None
        try:
            return await self.repository.replace(next_record(current, **changes))
        except JobTransitionError as e:
            logger.info("job_write_rejected", job_id=job_id, reason=str(e))
            return None
