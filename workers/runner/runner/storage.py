"""Object and document storage for job outputs.

Files (assets, thumbnails, rebuilt presentations) are stored as objects;
documents (converted Universal documents, extracted metadata) are JSON
objects under ``<collection>/<id>.json`` in the same bucket.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from io import BytesIO
from typing import Any

import structlog
from minio import Minio
from minio.error import S3Error

from deckschema_core.errors import ServiceUnavailableError
from deckschema_core.utils.retry import with_retry

from runner.config import Settings

logger = structlog.get_logger()

JSON_CONTENT_TYPE = "application/json"


def _matches(document: dict[str, Any], filters: dict[str, Any] | None) -> bool:
    return all(document.get(key) == value for key, value in (filters or {}).items())


class StorageBackend(ABC):
    """Operations job handlers need from a storage service."""

    @abstractmethod
    async def upload_file(
        self,
        object_key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        metadata: dict[str, str] | None = None,
    ) -> str:
        """Store ``data`` and return its object key."""

    @abstractmethod
    async def download_file(self, object_key: str) -> bytes:
        """Return the bytes stored at ``object_key``."""

    @abstractmethod
    async def create_document(
        self, collection: str, document_id: str, data: dict[str, Any]
    ) -> str:
        """Store a new JSON document and return its id."""

    @abstractmethod
    async def get_document(
        self, collection: str, document_id: str
    ) -> dict[str, Any] | None:
        """Return a stored document, if any."""

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Return documents whose top-level fields equal ``filters``."""

    async def update_document(
        self, collection: str, document_id: str, changes: dict[str, Any]
    ) -> dict[str, Any]:
        """Merge ``changes`` into a stored document.

        Raises:
            KeyError: If the document does not exist
        """
        current = await self.get_document(collection, document_id)
        if current is None:
            raise KeyError(f"Document not found: {collection}/{document_id}")
        updated = {**current, **changes}
        await self.create_document(collection, document_id, updated)
        return updated

    async def ping(self) -> bool:
        return True


class InMemoryStorage(StorageBackend):
    """Process-local storage for tests and single-instance use."""

    def __init__(self) -> None:
        self.objects: dict[str, tuple[bytes, str]] = {}
        self.documents: dict[str, dict[str, dict[str, Any]]] = {}

    async def upload_file(
        self,
        object_key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        metadata: dict[str, str] | None = None,
    ) -> str:
        self.objects[object_key] = (data, content_type)
        return object_key

    async def download_file(self, object_key: str) -> bytes:
        try:
            return self.objects[object_key][0]
        except KeyError:
            raise KeyError(f"Object not found: {object_key}") from None

    async def create_document(
        self, collection: str, document_id: str, data: dict[str, Any]
    ) -> str:
        self.documents.setdefault(collection, {})[document_id] = json.loads(
            json.dumps(data, default=str)
        )
        return document_id

    async def get_document(
        self, collection: str, document_id: str
    ) -> dict[str, Any] | None:
        return self.documents.get(collection, {}).get(document_id)

    async def query(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        found = [
            document
            for document in self.documents.get(collection, {}).values()
            if _matches(document, filters)
        ]
        return found[:limit] if limit is not None else found


class MinioStorage(StorageBackend):
    """Storage backed by a MinIO / S3 bucket."""

    def __init__(self, client: Minio, bucket: str) -> None:
        self._client = client
        self.bucket = bucket
        self._bucket_ready = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "MinioStorage":
        client = Minio(
            settings.minio_endpoint,
            access_key=settings.minio_access_key,
            secret_key=settings.minio_secret_key,
            secure=settings.minio_secure,
        )
        return cls(client, settings.minio_bucket)

    def _ensure_bucket(self) -> None:
        if self._bucket_ready:
            return
        try:
            if not self._client.bucket_exists(self.bucket):
                self._client.make_bucket(self.bucket)
        except S3Error as e:
            # Bucket might already exist
            if e.code != "BucketAlreadyOwnedByYou":
                raise
        self._bucket_ready = True

    async def _call(self, operation: str, func: Any, *args: Any, **kwargs: Any) -> Any:
        async def _run() -> Any:
            return await asyncio.to_thread(func, *args, **kwargs)

        try:
            return await with_retry(_run, operation_name=operation)
        except (ConnectionError, TimeoutError) as e:
            raise ServiceUnavailableError(f"Object storage unreachable: {e}") from e

    def _put(
        self,
        object_key: str,
        data: bytes,
        content_type: str,
        metadata: dict[str, str] | None,
    ) -> None:
        self._ensure_bucket()
        self._client.put_object(
            self.bucket,
            object_key,
            BytesIO(data),
            length=len(data),
            content_type=content_type,
            metadata=metadata,
        )

    def _get(self, object_key: str) -> bytes:
        response = self._client.get_object(self.bucket, object_key)
        try:
            return response.read()
        finally:
            response.close()
            response.release_conn()

    def _get_or_none(self, object_key: str) -> bytes | None:
        try:
            return self._get(object_key)
        except S3Error as e:
            if e.code in {"NoSuchKey", "NoSuchObject", "NoSuchBucket"}:
                return None
            raise

    def _list(self, prefix: str) -> list[str]:
        return [
            obj.object_name
            for obj in self._client.list_objects(self.bucket, prefix=prefix)
            if obj.object_name and obj.object_name.endswith(".json")
        ]

    @staticmethod
    def _document_key(collection: str, document_id: str) -> str:
        return f"{collection}/{document_id}.json"

    async def upload_file(
        self,
        object_key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        metadata: dict[str, str] | None = None,
    ) -> str:
        await self._call("upload_file", self._put, object_key, data, content_type, metadata)
        logger.debug("object_uploaded", object_key=object_key, size=len(data))
        return object_key

    async def download_file(self, object_key: str) -> bytes:
        data = await self._call("download_file", self._get_or_none, object_key)
        if data is None:
            raise KeyError(f"Object not found: {object_key}")
        return data

    async def create_document(
        self, collection: str, document_id: str, data: dict[str, Any]
    ) -> str:
        body = json.dumps(data, default=str).encode("utf-8")
        await self._call(
            "create_document",
            self._put,
            self._document_key(collection, document_id),
            body,
            JSON_CONTENT_TYPE,
            None,
        )
        return document_id

    async def get_document(
        self, collection: str, document_id: str
    ) -> dict[str, Any] | None:
        data = await self._call(
            "get_document", self._get_or_none, self._document_key(collection, document_id)
        )
        return json.loads(data) if data is not None else None

    async def query(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        keys = await self._call("query", self._list, f"{collection}/")
        found: list[dict[str, Any]] = []
        for key in keys:
            data = await self._call("query", self._get_or_none, key)
            if data is None:
                continue
            document = json.loads(data)
            if _matches(document, filters):
                found.append(document)
                if limit is not None and len(found) >= limit:
                    break
        return found

    async def ping(self) -> bool:
        try:
            return await asyncio.to_thread(self._client.bucket_exists, self.bucket)
        except Exception as e:
            logger.warning("object_storage_unreachable", error=str(e))
            return False


def create_storage(settings: Settings) -> StorageBackend | None:
    """Return the configured storage backend, or None when storage is off."""
    if not settings.use_object_storage:
        return None
    return MinioStorage.from_settings(settings)
