"""Retry helpers for calls to storage and queue backends.

Only transport failures are retried. Classified conversion errors and
anything else propagate from the first attempt.
"""

import asyncio
from collections.abc import Callable
from typing import Any

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from deckschema_core.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_MIN_WAIT = 1  # seconds
DEFAULT_MAX_WAIT = 10  # seconds

TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    ConnectionError,
    TimeoutError,
    asyncio.TimeoutError,
)


def describe_error(error: BaseException | None) -> str:
    """One-line description of ``error`` including its cause and code."""
    if error is None:
        return "unknown error"
    text = str(error).strip() or type(error).__name__
    cause = error.__cause__
    if cause is not None and str(cause).strip():
        text = f"{text} (caused by: {str(cause).strip()})"
    code = getattr(error, "code", None)
    if isinstance(code, (str, int)):
        text = f"[{code}] {text}"
    return text


def _log_before_sleep(operation_name: str, max_attempts: int) -> Callable[[RetryCallState], None]:
    def before_sleep(state: RetryCallState) -> None:
        error = state.outcome.exception() if state.outcome else None
        delay = state.next_action.sleep if state.next_action else 0.0
        logger.warning(
            f"{operation_name} failed (attempt {state.attempt_number}/{max_attempts}): "
            f"{describe_error(error)}; retrying in {delay:.1f}s"
        )

    return before_sleep


async def with_retry(
    func: Callable[..., Any],
    *args: Any,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    min_wait: float = DEFAULT_MIN_WAIT,
    max_wait: float = DEFAULT_MAX_WAIT,
    operation_name: str = "operation",
    retry_on: tuple[type[BaseException], ...] = TRANSIENT_ERRORS,
    **kwargs: Any,
) -> Any:
    """Await ``func(*args, **kwargs)``, retrying transient failures.

    Back-off is exponential between ``min_wait`` and ``max_wait`` seconds.

    Args:
        func: Async callable to run
        operation_name: Name used in log lines
        retry_on: Exception types that trigger another attempt

    Returns:
        Result of the call

    Raises:
        The last exception once attempts run out, or the first exception
        that is not in ``retry_on``
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(retry_on),
        before_sleep=_log_before_sleep(operation_name, max_attempts),
        reraise=True,
    )
    try:
        return await retrying(func, *args, **kwargs)
    except retry_on as e:
        logger.error(
            f"{operation_name} gave up after {max_attempts} attempts: {describe_error(e)}"
        )
        raise
