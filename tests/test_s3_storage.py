from __future__ import annotations

from typing import Any

import pytest
from botocore.exceptions import ClientError

from notes_backend.integrations.storage.s3_storage import S3ObjectStorage


class _FakeBody:
    def __init__(self, data: bytes) -> None:
        self._data = data

    def read(self) -> bytes:
        return self._data


class _FakeS3Client:
    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.put_calls: list[dict[str, Any]] = []
        self.delete_calls: list[dict[str, Any]] = []
        self.head_error_code = "404"

    def put_object(self, **kwargs: Any) -> None:
        self.put_calls.append(dict(kwargs))
        self.objects[kwargs["Key"]] = kwargs["Body"]

    def get_object(self, *, Bucket: str, Key: str) -> dict[str, Any]:
        _ = Bucket
        return {"Body": _FakeBody(self.objects[Key])}

    def delete_object(self, *, Bucket: str, Key: str) -> None:
        self.delete_calls.append({"Bucket": Bucket, "Key": Key})
        self.objects.pop(Key, None)

    def head_object(self, *, Bucket: str, Key: str) -> dict[str, Any]:
        _ = Bucket
        if Key not in self.objects:
            raise ClientError(
                {"Error": {"Code": self.head_error_code, "Message": "head failed"}}, "HeadObject"
            )
        return {"ContentLength": len(self.objects[Key])}


def _make_storage(monkeypatch: pytest.MonkeyPatch, fake: _FakeS3Client, **overrides: Any):
    boto3_calls: list[dict[str, Any]] = []

    import boto3

    def _fake_client(service_name: str, **kwargs: Any):
        boto3_calls.append({"service_name": service_name, **kwargs})
        return fake

    async def _run_inline(fn, *args, **kwargs):  # type: ignore[no-untyped-def]
        return fn(*args, **kwargs)

    monkeypatch.setattr(boto3, "client", _fake_client)
    monkeypatch.setattr(
        "notes_backend.integrations.storage.s3_storage.run_in_threadpool", _run_inline
    )

    params: dict[str, Any] = {
        "endpoint_url": "http://localhost:9000",
        "region": "",
        "bucket": "bucket",
        "access_key_id": "ak",
        "secret_access_key": "sk",
        "force_path_style": True,
    }
    params.update(overrides)
    return S3ObjectStorage(**params), boto3_calls


@pytest.mark.anyio
async def test_s3_object_storage_put_get_exists_delete(monkeypatch: pytest.MonkeyPatch):
    fake = _FakeS3Client()
    s, boto3_calls = _make_storage(monkeypatch, fake)
    assert boto3_calls and boto3_calls[0]["service_name"] == "s3"
    assert boto3_calls[0]["region_name"] is None

    await s.put_bytes("7/a.png", b"data")
    await s.put_bytes("7/b.pdf", b"data2", content_type="application/pdf")

    assert fake.put_calls[0]["Bucket"] == "bucket"
    assert "ContentType" not in fake.put_calls[0]
    assert fake.put_calls[1]["ContentType"] == "application/pdf"

    assert await s.get_bytes("7/b.pdf") == b"data2"
    assert await s.exists("7/a.png") is True
    assert await s.exists("7/missing.png") is False

    await s.delete("7/a.png")
    assert fake.delete_calls == [{"Bucket": "bucket", "Key": "7/a.png"}]
    assert await s.exists("7/a.png") is False


@pytest.mark.anyio
async def test_s3_object_storage_exists_reraises_other_errors(monkeypatch: pytest.MonkeyPatch):
    fake = _FakeS3Client()
    fake.head_error_code = "AccessDenied"
    s, _ = _make_storage(monkeypatch, fake, region="us-east-1", force_path_style=False)

    with pytest.raises(ClientError):
        await s.exists("7/a.png")
