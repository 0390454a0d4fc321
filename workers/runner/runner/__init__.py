"""Background job runner for presentation conversion.

The worker takes submissions from Redis and runs them through a
:class:`~runner.orchestrator.JobOrchestrator` with bounded concurrency and
per-job timeouts. :class:`~runner.service.ConversionService` is the entry
point for callers embedding the runner in-process.
"""

__version__ = "0.1.0"
