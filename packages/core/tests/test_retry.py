"""Tests for retry utilities."""

import pytest

from deckschema_core.errors import ServiceUnavailableError
from deckschema_core.utils.retry import describe_error, with_retry


class TestRetry:
    """Tests for retry logic around storage and queue calls."""

    @pytest.mark.asyncio
    async def test_success_on_first_try(self) -> None:
        """Test that successful calls don't retry."""
        call_count = 0

        async def upload() -> str:
            nonlocal call_count
            call_count += 1
            return "etag"

        result = await with_retry(upload, operation_name="upload")

        assert result == "etag"
        assert call_count == 1

    @pytest.mark.asyncio
    async def test_retry_on_connection_error(self) -> None:
        """Test that a dropped connection is retried with the same arguments."""
        seen: list[str] = []

        async def fetch(key: str) -> str:
            seen.append(key)
            if len(seen) < 2:
                raise ConnectionError("Connection reset")
            return f"payload:{key}"

        result = await with_retry(
            fetch,
            "job-1",
            max_attempts=3,
            min_wait=0,
            max_wait=0,
            operation_name="fetch payload",
        )

        assert result == "payload:job-1"
        assert seen == ["job-1", "job-1"]

    @pytest.mark.asyncio
    async def test_max_retries_exhausted(self) -> None:
        """Test that the last timeout is raised after max attempts."""
        call_count = 0

        async def always_timeout() -> str:
            nonlocal call_count
            call_count += 1
            raise TimeoutError("Timed out")

        with pytest.raises(TimeoutError):
            await with_retry(
                always_timeout,
                max_attempts=3,
                min_wait=0,
                max_wait=0,
                operation_name="test",
            )

        assert call_count == 3

    @pytest.mark.asyncio
    async def test_domain_error_not_retried(self) -> None:
        """Test that conversion errors propagate without retry."""
        call_count = 0

        async def unavailable() -> str:
            nonlocal call_count
            call_count += 1
            raise ServiceUnavailableError("Bucket missing")

        with pytest.raises(ServiceUnavailableError):
            await with_retry(unavailable, max_attempts=3, operation_name="test")

        assert call_count == 1


def test_describe_error_includes_code_and_cause() -> None:
    """Test that log descriptions carry the error code and the cause."""
    try:
        try:
            raise OSError("socket closed")
        except OSError as cause:
            raise ServiceUnavailableError("Object storage unreachable") from cause
    except ServiceUnavailableError as e:
        error = e

    assert describe_error(error) == (
        "[service_unavailable] Object storage unreachable (caused by: socket closed)"
    )
    assert describe_error(TimeoutError()) == "TimeoutError"
    assert describe_error(None) == "unknown error"
