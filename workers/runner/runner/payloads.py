"""Key-value storage for request payloads of jobs that have not finished.

The orchestrator stores the request when a job is queued and drops it once
the job terminates. Any backend works as long as it can hold a JSON object
per job id.
"""

import json
from abc import ABC, abstractmethod
from typing import Any

import redis.asyncio as redis
import structlog
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from deckschema_core.utils.retry import TRANSIENT_ERRORS, with_retry

logger = structlog.get_logger()

PAYLOAD_KEY_PREFIX = "deckschema:payload:"
# Orphaned payloads expire after a day
DEFAULT_PAYLOAD_TTL_SECONDS = 24 * 60 * 60

REDIS_RETRYABLE = (RedisConnectionError, RedisTimeoutError, *TRANSIENT_ERRORS)


class PayloadStore(ABC):
    """Storage for not-yet-finished job requests."""

    @abstractmethod
    async def put(self, job_id: str, payload: dict[str, Any]) -> None:
        """Store ``payload`` for ``job_id``."""

    @abstractmethod
    async def get(self, job_id: str) -> dict[str, Any] | None:
        """Return the payload for ``job_id``, if any."""

    @abstractmethod
    async def delete(self, job_id: str) -> None:
        """Forget the payload for ``job_id``. Missing keys are ignored."""

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


class InMemoryPayloadStore(PayloadStore):
    """Process-local payload store."""

    def __init__(self) -> None:
        self._payloads: dict[str, dict[str, Any]] = {}

    async def put(self, job_id: str, payload: dict[str, Any]) -> None:
        self._payloads[job_id] = payload

    async def get(self, job_id: str) -> dict[str, Any] | None:
        return self._payloads.get(job_id)

    async def delete(self, job_id: str) -> None:
        self._payloads.pop(job_id, None)

    def __len__(self) -> int:
        return len(self._payloads)


class RedisPayloadStore(PayloadStore):
    """Payload store shared between worker instances through Redis."""

    def __init__(
        self,
        redis_url: str | None = None,
        client: redis.Redis | None = None,
        ttl_seconds: int = DEFAULT_PAYLOAD_TTL_SECONDS,
        key_prefix: str = PAYLOAD_KEY_PREFIX,
    ) -> None:
        if client is None:
            if redis_url is None:
                raise ValueError("redis_url or client is required")
            client = redis.from_url(redis_url)
        self._client = client
        self._ttl = ttl_seconds
        self._prefix = key_prefix

    def _key(self, job_id: str) -> str:
        return f"{self._prefix}{job_id}"

    async def put(self, job_id: str, payload: dict[str, Any]) -> None:
        await with_retry(
            self._client.set,
            self._key(job_id),
            json.dumps(payload),
            ex=self._ttl,
            operation_name="payload_put",
            retry_on=REDIS_RETRYABLE,
        )

    async def get(self, job_id: str) -> dict[str, Any] | None:
        data = await with_retry(
            self._client.get,
            self._key(job_id),
            operation_name="payload_get",
            retry_on=REDIS_RETRYABLE,
        )
        if data is None:
            return None
        try:
            payload = json.loads(data)
        except json.JSONDecodeError:
            logger.warning("invalid_payload", job_id=job_id)
            return None
        return payload if isinstance(payload, dict) else None

    async def delete(self, job_id: str) -> None:
        await with_retry(
            self._client.delete,
            self._key(job_id),
            operation_name="payload_delete",
            retry_on=REDIS_RETRYABLE,
        )

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except Exception as e:
            logger.warning("payload_store_unreachable", error=str(e))
            return False

    async def close(self) -> None:
        await self._client.aclose()
