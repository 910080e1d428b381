"""S3 storage backend.

Files are streamed in 8 MiB parts through the multipart upload API, so only one
part is ever buffered. Files smaller than one part are sent with a single
`put_object`. boto3 is blocking; every call runs in a worker thread.
"""

import asyncio
import contextlib
from typing import Any

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from src.core.exceptions import StorageError, StreamReadError
from src.storage.base import ByteStream

PART_SIZE = 8 * 1024 * 1024  # 8 MiB, S3 minimum is 5 MiB


class S3Storage:
    def __init__(
        self,
        bucket: str,
        prefix: str = "uploads",
        region: str | None = None,
        client: Any = None,
        part_size: int = PART_SIZE,
    ) -> None:
        self.bucket = bucket
        self.prefix = prefix
        self.part_size = part_size
        self._s3 = client or boto3.client(
            "s3", region_name=region, config=Config(signature_version="s3v4")
        )

    def key_for(self, name: str) -> str:
        return f"{self.prefix}/{name}".removeprefix("/")

    async def save(self, name: str, data: ByteStream) -> None:
        key = self.key_for(name)
        buffer = bytearray()
        upload_id: str | None = None
        parts: list[dict[str, Any]] = []

        try:
            async for chunk in data:
                buffer.extend(chunk)
                while len(buffer) >= self.part_size:
                    if upload_id is None:
                        upload_id = await self._create_upload(key)
                    body = bytes(buffer[: self.part_size])
                    del buffer[: self.part_size]
                    parts.append(await self._upload_part(key, upload_id, len(parts) + 1, body))

            if upload_id is None:
                await asyncio.to_thread(
                    self._s3.put_object, Bucket=self.bucket, Key=key, Body=bytes(buffer)
                )
            else:
                if buffer:
                    parts.append(
                        await self._upload_part(key, upload_id, len(parts) + 1, bytes(buffer))
                    )
                await asyncio.to_thread(
                    self._s3.complete_multipart_upload,
                    Bucket=self.bucket,
                    Key=key,
                    UploadId=upload_id,
                    MultipartUpload={"Parts": parts},
                )
        except (BotoCoreError, ClientError) as e:
            await self._abort(key, upload_id)
            msg = f"Failed to upload s3://{self.bucket}/{key}: {e!s}"
            raise StorageError(message=msg) from e
        except StreamReadError:
            await self._abort(key, upload_id)
            raise
        except asyncio.CancelledError:
            # The abort must still reach S3 when the save is cancelled
            await asyncio.shield(self._abort(key, upload_id))
            raise

        logger.debug(f"PUT s3://{self.bucket}/{key} parts={len(parts) or 1}")

    async def _create_upload(self, key: str) -> str:
        resp = await asyncio.to_thread(
            self._s3.create_multipart_upload, Bucket=self.bucket, Key=key
        )
        return resp["UploadId"]

    async def _upload_part(
        self, key: str, upload_id: str, number: int, body: bytes
    ) -> dict[str, Any]:
        resp = await asyncio.to_thread(
            self._s3.upload_part,
            Bucket=self.bucket,
            Key=key,
            UploadId=upload_id,
            PartNumber=number,
            Body=body,
        )
        return {"PartNumber": number, "ETag": resp["ETag"]}

    async def _abort(self, key: str, upload_id: str | None) -> None:
        if upload_id is None:
            return
        logger.warning(f"Aborting multipart upload for s3://{self.bucket}/{key}")
        with contextlib.suppress(BotoCoreError, ClientError):
            await asyncio.to_thread(
                self._s3.abort_multipart_upload, Bucket=self.bucket, Key=key, UploadId=upload_id
            )
