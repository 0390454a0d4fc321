"""Tests for object and document storage."""

from types import SimpleNamespace
from typing import Any

import pytest
from minio.error import S3Error

from runner.config import Settings
from runner.storage import InMemoryStorage, MinioStorage, create_storage


def _s3_error(code: str) -> S3Error:
    return S3Error(
        code=code,
        message=f"{code} raised",
        resource="resource",
        request_id="request-id",
        host_id="host-id",
        response=None,
    )


class StubMinio:
    """In-memory stand-in for the blocking ``minio.Minio`` client."""

    def __init__(self, bucket_exists: bool = False) -> None:
        self.buckets: set[str] = {"deckschema"} if bucket_exists else set()
        self.objects: dict[str, dict[str, Any]] = {}

    def bucket_exists(self, bucket: str) -> bool:
        return bucket in self.buckets

    def make_bucket(self, bucket: str) -> None:
        self.buckets.add(bucket)

    def put_object(
        self, bucket: str, key: str, data: Any, length: int, content_type: str, metadata: Any
    ) -> None:
        self.objects[key] = {
            "data": data.read(length),
            "content_type": content_type,
            "metadata": metadata,
        }

    def get_object(self, bucket: str, key: str) -> Any:
        if key not in self.objects:
            raise _s3_error("NoSuchKey")
        data = self.objects[key]["data"]
        return SimpleNamespace(
            read=lambda: data, close=lambda: None, release_conn=lambda: None
        )

    def list_objects(self, bucket: str, prefix: str = "") -> list[Any]:
        return [
            SimpleNamespace(object_name=key)
            for key in sorted(self.objects)
            if key.startswith(prefix)
        ]


class TestInMemoryStorage:
    """Tests for InMemoryStorage."""

    @pytest.mark.asyncio
    async def test_objects(self) -> None:
        """Uploaded bytes can be downloaded again."""
        storage = InMemoryStorage()
        await storage.upload_file("a/b.png", b"png", "image/png")

        assert await storage.download_file("a/b.png") == b"png"
        with pytest.raises(KeyError):
            await storage.download_file("a/missing.png")

    @pytest.mark.asyncio
    async def test_documents_query_and_update(self) -> None:
        """Documents can be filtered by field and merged."""
        storage = InMemoryStorage()
        await storage.create_document("meta", "1", {"userId": "u1", "slides": 3})
        await storage.create_document("meta", "2", {"userId": "u2", "slides": 5})
        await storage.create_document("meta", "3", {"userId": "u1", "slides": 1})

        found = await storage.query("meta", {"userId": "u1"})
        assert [doc["slides"] for doc in found] == [3, 1]
        assert len(await storage.query("meta", limit=2)) == 2
        assert await storage.query("other") == []

        updated = await storage.update_document("meta", "2", {"slides": 6})
        assert updated == {"userId": "u2", "slides": 6}
        assert (await storage.get_document("meta", "2"))["slides"] == 6
        with pytest.raises(KeyError):
            await storage.update_document("meta", "404", {})


class TestMinioStorage:
    """Tests for MinioStorage against a stub client."""

    @pytest.mark.asyncio
    async def test_upload_creates_bucket(self) -> None:
        """The bucket is created on first write."""
        client = StubMinio()
        storage = MinioStorage(client, "deckschema")  # type: ignore[arg-type]

        key = await storage.upload_file(
            "thumbs/1.png", b"data", "image/png", metadata={"job-id": "j1"}
        )

        assert key == "thumbs/1.png"
        assert "deckschema" in client.buckets
        assert client.objects["thumbs/1.png"]["content_type"] == "image/png"
        assert client.objects["thumbs/1.png"]["metadata"] == {"job-id": "j1"}
        assert await storage.download_file("thumbs/1.png") == b"data"

    @pytest.mark.asyncio
    async def test_missing_object(self) -> None:
        """Missing objects raise KeyError and missing documents read as None."""
        storage = MinioStorage(StubMinio(bucket_exists=True), "deckschema")  # type: ignore[arg-type]

        with pytest.raises(KeyError):
            await storage.download_file("nope.png")
        assert await storage.get_document("documents", "nope") is None

    @pytest.mark.asyncio
    async def test_documents_stored_as_json(self) -> None:
        """Documents live at <collection>/<id>.json and can be queried."""
        client = StubMinio(bucket_exists=True)
        storage = MinioStorage(client, "deckschema")  # type: ignore[arg-type]

        await storage.create_document("documents", "d1", {"title": "A", "owner": "u1"})
        await storage.create_document("documents", "d2", {"title": "B", "owner": "u2"})
        await storage.upload_file("documents/raw.bin", b"\x00")

        assert client.objects["documents/d1.json"]["content_type"] == "application/json"
        assert await storage.get_document("documents", "d1") == {"title": "A", "owner": "u1"}
        found = await storage.query("documents", {"owner": "u2"})
        assert found == [{"title": "B", "owner": "u2"}]

    @pytest.mark.asyncio
    async def test_ping(self) -> None:
        """Ping reports whether the bucket is reachable."""
        assert await MinioStorage(StubMinio(True), "deckschema").ping() is True  # type: ignore[arg-type]


def test_storage_disabled_by_default() -> None:
    """No backend is built unless object storage is turned on."""
    settings = Settings(_env_file=None, use_object_storage=False)

    assert create_storage(settings) is None
    assert isinstance(
        create_storage(Settings(_env_file=None, use_object_storage=True)), MinioStorage
    )
