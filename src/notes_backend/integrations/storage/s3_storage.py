"""Attachment blobs in an S3-compatible bucket (AWS, MinIO, R2, ...)."""

from __future__ import annotations

from botocore.config import Config
from botocore.exceptions import ClientError
from starlette.concurrency import run_in_threadpool

_MISSING_OBJECT_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


class S3ObjectStorage:
    """boto3 is blocking, so each call is pushed to the threadpool."""

    def __init__(
        self,
        *,
        endpoint_url: str,
        region: str,
        bucket: str,
        access_key_id: str,
        secret_access_key: str,
        force_path_style: bool,
    ) -> None:
        import boto3

        self.bucket = bucket
        self._client = boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            region_name=region or None,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            config=Config(s3={"addressing_style": "path" if force_path_style else "virtual"}),
        )

    async def put_bytes(self, key: str, data: bytes, *, content_type: str | None = None) -> None:
        params: dict[str, object] = {"Bucket": self.bucket, "Key": key, "Body": data}
        if content_type:
            params["ContentType"] = content_type
        await run_in_threadpool(lambda: self._client.put_object(**params))

    async def get_bytes(self, key: str) -> bytes:
        def _download() -> bytes:
            body = self._client.get_object(Bucket=self.bucket, Key=key).get("Body")
            return body.read() if body is not None else b""

        return await run_in_threadpool(_download)

    async def delete(self, key: str) -> None:
        # DeleteObject on a missing key is a no-op on S3.
        await run_in_threadpool(lambda: self._client.delete_object(Bucket=self.bucket, Key=key))

    async def exists(self, key: str) -> bool:
        def _head() -> bool:
            try:
                self._client.head_object(Bucket=self.bucket, Key=key)
            except ClientError as exc:
                if str(exc.response.get("Error", {}).get("Code", "")) in _MISSING_OBJECT_CODES:
                    return False
                raise
            return True

        return await run_in_threadpool(_head)
