"""
S3-Compatible Object Store Client
=================================

aioboto3 implementation of ObjectStoreClient for AWS S3, MinIO,
Cloudflare R2, and other S3-compatible services.

Design Principles:
------------------
1. **Streaming**: GET bodies are exposed as pull streams, never buffered
2. **Multipart Upload**: Bodies of unknown length are uploaded in parts
3. **Retry Logic**: Delegated to botocore (standard retry mode)
4. **Result Monad**: No exceptions for control flow
5. **Presigned URLs**: Direct client uploads/downloads

Algorithmic Complexity:
-----------------------
| Operation        | Time | Space    | Notes                         |
|------------------|------|----------|-------------------------------|
| head             | O(1) | O(1)     | Metadata only                 |
| get              | O(n) | O(chunk) | Pull stream over the body     |
| put              | O(n) | O(n)     | Bounded bodies only           |
| list             | O(k) | O(k)     | k = page size                 |
| copy             | O(1) | O(1)     | Server-side                   |
| multipart_upload | O(n) | O(parts) | Bounded in-flight parts       |

License: MIT
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import (
    Any,
    AsyncIterable,
    AsyncIterator,
    Dict,
    List,
    Optional,
    TYPE_CHECKING,
)

from bucketfs.core import constants as C
from bucketfs.core.errors import StoreError
from bucketfs.core.payload import Payload, PayloadKind
from bucketfs.core.types import ByteRange, Err, Ok, Result
from bucketfs.storage.config import S3Config
from bucketfs.storage.protocols import ListedObject, ListPage, ObjectHead

if TYPE_CHECKING:
    from types_aiobotocore_s3 import S3Client

logger = logging.getLogger(__name__)


# =============================================================================
# METRICS COLLECTOR
# =============================================================================
@dataclass(slots=True)
class S3Metrics:
    """Per-client request counters."""

    head_count: int = 0
    get_count: int = 0
    put_count: int = 0
    delete_count: int = 0
    list_count: int = 0
    copy_count: int = 0
    multipart_count: int = 0

    bytes_uploaded: int = 0
    put_latency_sum_ns: int = 0

    error_count: int = 0

    def record_upload(self, size_bytes: int, latency_ns: int) -> None:
        self.bytes_uploaded += size_bytes
        self.put_latency_sum_ns += latency_ns


async def _body_chunks(body: Any, chunk_size: int) -> AsyncIterator[bytes]:
    """Pull a botocore StreamingBody chunk by chunk, closing it when done."""
    async with body as stream:
        while True:
            chunk = await stream.read(chunk_size)
            if not chunk:
                return
            yield chunk


# =============================================================================
# S3 OBJECT STORE CLIENT
# =============================================================================
class S3ObjectStoreClient:
    """
    ObjectStoreClient backed by aioboto3.

    Example:
        >>> client = S3ObjectStoreClient(S3Config(bucket_name="my-bucket"))
        >>> await client.connect()
        >>> head = await client.head("repo/readme.md")
        >>> await client.close()
    """

    __slots__ = (
        "_config",
        "_client",
        "_session",
        "_metrics",
        "_read_chunk_size",
    )

    def __init__(
        self,
        config: S3Config,
        read_chunk_size: int = C.DEFAULT_READ_CHUNK_SIZE,
    ) -> None:
        self._config = config
        self._client: Optional["S3Client"] = None
        self._session: Any = None
        self._metrics = S3Metrics()
        self._read_chunk_size = read_chunk_size

    @property
    def bucket(self) -> str:
        return self._config.bucket_name

    @property
    def metrics(self) -> S3Metrics:
        return self._metrics

    # -------------------------------------------------------------------------
    # CONNECTION MANAGEMENT
    # -------------------------------------------------------------------------

    async def connect(self) -> Result[None, StoreError]:
        """
        Create the aioboto3 session and S3 client.

        Checks the bucket is reachable before reporting success.
        """
        if self._client is not None:
            return Ok(None)

        import aioboto3
        from botocore.config import Config

        endpoint = self._config.endpoint_url or f"s3.{self._config.region}"
        try:
            self._session = aioboto3.Session(**self._config.get_session_kwargs())

            config_kwargs: Dict[str, Any] = {
                "max_pool_connections": self._config.max_concurrency,
                "connect_timeout": self._config.connect_timeout_seconds,
                "read_timeout": self._config.read_timeout_seconds,
                "retries": {"max_attempts": self._config.max_retries, "mode": "standard"},
            }
            if self._config.force_path_style:
                config_kwargs["s3"] = {"addressing_style": "path"}

            client_kwargs = self._config.get_boto_config()
            client_kwargs["config"] = Config(**config_kwargs)

            self._client = await self._session.client("s3", **client_kwargs).__aenter__()
            await self._client.head_bucket(Bucket=self.bucket)
            logger.info("Connected to bucket %s at %s", self.bucket, endpoint)
            return Ok(None)

        except Exception as e:
            self._metrics.error_count += 1
            await self.close()
            return Err(StoreError.connection_failed(endpoint, cause=e))

    async def close(self) -> None:
        """Close S3 client and release resources. Safe to call multiple times."""
        client, self._client = self._client, None
        if client is not None:
            await client.__aexit__(None, None, None)

    def _require_client(self, operation: str, key: str) -> Result["S3Client", StoreError]:
        if self._client is None:
            return Err(StoreError.not_connected(operation, key))
        return Ok(self._client)

    def _error(self, operation: str, key: str, exc: BaseException) -> StoreError:
        """Convert a botocore/aiohttp failure into a StoreError."""
        from botocore.exceptions import ClientError

        self._metrics.error_count += 1
        if isinstance(exc, asyncio.TimeoutError):
            return StoreError.timeout(operation, key, cause=exc)
        if isinstance(exc, ClientError):
            error = exc.response.get("Error", {})
            status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
            return StoreError.request_failed(
                operation,
                key,
                store_code=str(error.get("Code", "")),
                status=status,
                cause=exc,
            )
        return StoreError.request_failed(operation, key, cause=exc)

    # -------------------------------------------------------------------------
    # CORE OPERATIONS
    # -------------------------------------------------------------------------

    async def head(self, key: str) -> Result[ObjectHead, StoreError]:
        """Get object metadata without downloading content."""
        client_result = self._require_client("head", key)
        if client_result.is_err():
            return client_result
        client = client_result.unwrap()

        try:
            response = await client.head_object(Bucket=self.bucket, Key=key)
            self._metrics.head_count += 1
            return Ok(ObjectHead(
                key=key,
                size=response.get("ContentLength", 0),
                last_modified=response.get("LastModified"),
                etag=response.get("ETag"),
                metadata=dict(response.get("Metadata", {})),
            ))
        except Exception as e:
            return Err(self._error("head", key, e))

    async def get(
        self,
        key: str,
        byte_range: Optional[ByteRange] = None,
    ) -> Result[Payload, StoreError]:
        """
        Download an object (or a byte range of it) as a pull stream.

        The returned stream owns the HTTP body; closing the stream
        releases the connection.
        """
        client_result = self._require_client("get", key)
        if client_result.is_err():
            return client_result
        client = client_result.unwrap()

        get_kwargs: Dict[str, Any] = {"Bucket": self.bucket, "Key": key}
        if byte_range is not None:
            get_kwargs["Range"] = byte_range.to_http_header()

        try:
            response = await client.get_object(**get_kwargs)
            self._metrics.get_count += 1
            return Ok(Payload.pull(_body_chunks(response["Body"], self._read_chunk_size)))
        except Exception as e:
            return Err(self._error("get", key, e))

    async def put(
        self,
        key: str,
        body: Payload,
        content_length: Optional[int] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> Result[None, StoreError]:
        """Single-shot upload with an explicit content length."""
        client_result = self._require_client("put", key)
        if client_result.is_err():
            return client_result
        client = client_result.unwrap()

        if body.kind is PayloadKind.BLOB:
            body.value.seek(0)
        elif body.kind is not PayloadKind.BOUNDED:
            return Err(StoreError.request_failed(
                "put", key, store_code="UnboundedBody",
            ))

        length = content_length if content_length is not None else body.size
        put_kwargs: Dict[str, Any] = {
            "Bucket": self.bucket,
            "Key": key,
            "Body": body.value,
            "ContentLength": length,
        }
        if metadata:
            put_kwargs["Metadata"] = metadata

        start_ns = time.perf_counter_ns()
        try:
            await client.put_object(**put_kwargs)
            self._metrics.put_count += 1
            self._metrics.record_upload(length or 0, time.perf_counter_ns() - start_ns)
            return Ok(None)
        except Exception as e:
            return Err(self._error("put", key, e))

    async def delete(self, key: str) -> Result[None, StoreError]:
        client_result = self._require_client("delete", key)
        if client_result.is_err():
            return client_result
        client = client_result.unwrap()

        try:
            await client.delete_object(Bucket=self.bucket, Key=key)
            self._metrics.delete_count += 1
            return Ok(None)
        except Exception as e:
            return Err(self._error("delete", key, e))

    # -------------------------------------------------------------------------
    # LIST OPERATIONS
    # -------------------------------------------------------------------------

    async def list(
        self,
        prefix: str,
        delimiter: Optional[str] = None,
        continuation_token: Optional[str] = None,
        max_keys: Optional[int] = None,
    ) -> Result[ListPage, StoreError]:
        """One ListObjectsV2 page."""
        client_result = self._require_client("list", prefix)
        if client_result.is_err():
            return client_result
        client = client_result.unwrap()

        list_kwargs: Dict[str, Any] = {"Bucket": self.bucket, "Prefix": prefix}
        if delimiter:
            list_kwargs["Delimiter"] = delimiter
        if continuation_token:
            list_kwargs["ContinuationToken"] = continuation_token
        if max_keys:
            list_kwargs["MaxKeys"] = max_keys

        try:
            response = await client.list_objects_v2(**list_kwargs)
            self._metrics.list_count += 1
            return Ok(ListPage(
                prefixes=[p["Prefix"] for p in response.get("CommonPrefixes", [])],
                objects=[
                    ListedObject(
                        key=obj["Key"],
                        size=obj.get("Size", 0),
                        last_modified=obj.get("LastModified"),
                        etag=obj.get("ETag"),
                    )
                    for obj in response.get("Contents", [])
                ],
                truncated=bool(response.get("IsTruncated", False)),
                next_token=response.get("NextContinuationToken"),
            ))
        except Exception as e:
            return Err(self._error("list", prefix, e))

    # -------------------------------------------------------------------------
    # COPY OPERATIONS
    # -------------------------------------------------------------------------

    async def copy(
        self,
        source_key: str,
        dest_key: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> Result[None, StoreError]:
        """
        Server-side copy of object.

        With metadata the copy uses the REPLACE directive, which is also
        what makes a self-copy (source == dest) legal.
        """
        client_result = self._require_client("copy", dest_key)
        if client_result.is_err():
            return client_result
        client = client_result.unwrap()

        copy_kwargs: Dict[str, Any] = {
            "Bucket": self.bucket,
            "Key": dest_key,
            "CopySource": {"Bucket": self.bucket, "Key": source_key},
        }
        if metadata is not None:
            copy_kwargs["Metadata"] = metadata
            copy_kwargs["MetadataDirective"] = "REPLACE"

        try:
            await client.copy_object(**copy_kwargs)
            self._metrics.copy_count += 1
            return Ok(None)
        except Exception as e:
            return Err(self._error("copy", source_key, e))

    # -------------------------------------------------------------------------
    # PRESIGNED URLS
    # -------------------------------------------------------------------------

    async def presign(
        self,
        operation: str,
        key: str,
        expires_in: int,
    ) -> Result[str, StoreError]:
        """Presigned URL for one client method on one key."""
        client_result = self._require_client("presign", key)
        if client_result.is_err():
            return client_result
        client = client_result.unwrap()

        try:
            url = await client.generate_presigned_url(
                ClientMethod=operation,
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires_in,
            )
            return Ok(url)
        except Exception as e:
            return Err(self._error("presign", key, e))

    # -------------------------------------------------------------------------
    # MULTIPART UPLOAD
    # -------------------------------------------------------------------------

    async def multipart_upload(
        self,
        key: str,
        chunks: AsyncIterable[bytes],
        metadata: Optional[Dict[str, str]] = None,
    ) -> Result[None, StoreError]:
        """
        Upload a body of unknown length in fixed-size parts.

        Bodies that end before filling one part go up as a single PUT.
        Parts upload concurrently, bounded by MAX_CONCURRENT_PARTS so at
        most that many parts are held in memory. Any failure aborts the
        upload, leaving the key untouched.
        """
        client_result = self._require_client("multipart_upload", key)
        if client_result.is_err():
            return client_result
        client = client_result.unwrap()

        part_size = self._config.multipart_chunksize_bytes
        buffer = bytearray()
        iterator = chunks.__aiter__()

        try:
            while len(buffer) < part_size:
                try:
                    buffer.extend(await iterator.__anext__())
                except StopAsyncIteration:
                    return await self.put(key, Payload.bounded(bytes(buffer)), metadata=metadata)
        except Exception as e:
            return Err(self._error("multipart_upload", key, e))

        start_ns = time.perf_counter_ns()
        try:
            create_response = await client.create_multipart_upload(
                Bucket=self.bucket,
                Key=key,
                Metadata=metadata or {},
            )
        except Exception as e:
            return Err(self._error("multipart_upload", key, e))

        upload_id = create_response["UploadId"]
        semaphore = asyncio.Semaphore(C.MAX_CONCURRENT_PARTS)
        tasks: List[asyncio.Task[Dict[str, Any]]] = []
        total = 0

        async def upload_part(part_num: int, part_data: bytes) -> Dict[str, Any]:
            try:
                response = await client.upload_part(
                    Bucket=self.bucket,
                    Key=key,
                    UploadId=upload_id,
                    PartNumber=part_num,
                    Body=part_data,
                )
                return {"PartNumber": part_num, "ETag": response["ETag"]}
            finally:
                semaphore.release()

        async def submit(part_data: bytes) -> None:
            await semaphore.acquire()
            tasks.append(asyncio.create_task(upload_part(len(tasks) + 1, part_data)))

        try:
            exhausted = False
            while True:
                while len(buffer) >= part_size:
                    part = bytes(buffer[:part_size])
                    del buffer[:part_size]
                    total += len(part)
                    await submit(part)
                if exhausted:
                    break
                try:
                    buffer.extend(await iterator.__anext__())
                except StopAsyncIteration:
                    exhausted = True
            if buffer:
                total += len(buffer)
                await submit(bytes(buffer))

            parts = await asyncio.gather(*tasks)
            parts.sort(key=lambda p: p["PartNumber"])

            await client.complete_multipart_upload(
                Bucket=self.bucket,
                Key=key,
                UploadId=upload_id,
                MultipartUpload={"Parts": parts},
            )
            self._metrics.multipart_count += 1
            self._metrics.record_upload(total, time.perf_counter_ns() - start_ns)
            return Ok(None)

        except Exception as e:
            for task in tasks:
                task.cancel()
            logger.warning("Aborting multipart upload %s for %s: %s", upload_id, key, e)
            try:
                await client.abort_multipart_upload(
                    Bucket=self.bucket,
                    Key=key,
                    UploadId=upload_id,
                )
            except Exception as abort_error:
                logger.error("Abort of multipart upload %s failed: %s", upload_id, abort_error)
            return Err(self._error("multipart_upload", key, e))


__all__ = [
    "S3ObjectStoreClient",
    "S3Metrics",
]
