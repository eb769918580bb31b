"""
In-Memory Object Store Client: Development and Testing Implementation

S3-semantics ObjectStoreClient kept entirely in process:
- Prefix/delimiter listing with max_keys pages and continuation tokens
- Byte-range GETs answered as blobs, pull streams or push streams
- User metadata, self-copy with metadata replacement
- Chunked uploads that are all-or-nothing

Design Principles:
    - Full protocol compliance for seamless production swap
    - Safe concurrent access via an asyncio lock
    - Optional fault injection for failure-path tests

Performance Characteristics:
    - head/get/put/delete/copy: O(1) average case
    - list: O(n log n) over the keys under the prefix

License: MIT
"""

from __future__ import annotations

import asyncio
import hashlib
import io
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import AsyncIterable, AsyncIterator, Callable, Dict, List, Optional, Tuple

from bucketfs.core import constants as C
from bucketfs.core.errors import StoreError
from bucketfs.core.payload import (
    ByteEmitter,
    Payload,
    PayloadKind,
    read_all,
)
from bucketfs.core.types import ByteRange, Err, Ok, Result
from bucketfs.storage.protocols import ListedObject, ListPage, ObjectHead

# (operation, key) -> error to fail that call with, or None to let it run
FaultInjector = Callable[[str, str], Optional[StoreError]]

DEFAULT_MAX_KEYS: int = 1000


@dataclass
class StoredObject:
    """
    Internal object record.

    ETag is the quoted MD5 of the content, as S3 reports it for
    single-part uploads.
    """
    data: bytes
    metadata: Dict[str, str] = field(default_factory=dict)
    last_modified: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    etag: str = ""

    def __post_init__(self) -> None:
        if not self.etag:
            self.etag = f'"{hashlib.md5(self.data).hexdigest()}"'


async def _chunked(data: bytes, chunk_size: int) -> AsyncIterator[bytes]:
    for offset in range(0, len(data), chunk_size):
        await asyncio.sleep(0)
        yield data[offset:offset + chunk_size]


# =============================================================================
# IN-MEMORY OBJECT STORE CLIENT
# =============================================================================
class InMemoryObjectStoreClient:
    """
    In-memory ObjectStoreClient.

    Example:
        client = InMemoryObjectStoreClient(body_shape=PayloadKind.PULL_STREAM)
        await client.connect()
        await client.put("repo/a.txt", Payload.bounded(b"hello"))
        result = await client.get("repo/a.txt", ByteRange(1, 3))
    """

    __slots__ = (
        "_objects",
        "_lock",
        "_connected",
        "bucket",
        "body_shape",
        "chunk_size",
        "part_size",
        "fault_injector",
        "connect_count",
        "close_count",
        "upload_parts",
    )

    def __init__(
        self,
        bucket: str = "memory",
        body_shape: PayloadKind = PayloadKind.BLOB,
        chunk_size: int = C.DEFAULT_READ_CHUNK_SIZE,
        part_size: int = C.MIN_MULTIPART_CHUNK,
        fault_injector: Optional[FaultInjector] = None,
    ) -> None:
        """
        Initialize in-memory store client.

        Args:
            bucket: Name used when rendering presigned URLs.
            body_shape: Shape GET answers with.
            chunk_size: Chunk size of streamed GET bodies.
            part_size: Part size of chunked uploads.
            fault_injector: Consulted before every operation.
        """
        self._objects: Dict[str, StoredObject] = {}
        self._lock = asyncio.Lock()
        self._connected = False
        self.bucket = bucket
        self.body_shape = body_shape
        self.chunk_size = chunk_size
        self.part_size = part_size
        self.fault_injector = fault_injector
        self.connect_count = 0
        self.close_count = 0
        # key -> number of parts of its last chunked upload
        self.upload_parts: Dict[str, int] = {}

    # -------------------------------------------------------------------------
    # TEST HELPERS
    # -------------------------------------------------------------------------

    def seed(
        self,
        key: str,
        data: bytes = b"",
        metadata: Optional[Dict[str, str]] = None,
    ) -> None:
        """Place an object directly, bypassing connection state."""
        self._objects[key] = StoredObject(data=bytes(data), metadata=dict(metadata or {}))

    def keys(self) -> List[str]:
        return sorted(self._objects)

    def data_of(self, key: str) -> Optional[bytes]:
        obj = self._objects.get(key)
        return obj.data if obj is not None else None

    def metadata_of(self, key: str) -> Optional[Dict[str, str]]:
        obj = self._objects.get(key)
        return dict(obj.metadata) if obj is not None else None

    def _check(self, operation: str, key: str) -> Optional[StoreError]:
        if not self._connected:
            return StoreError.not_connected(operation, key)
        if self.fault_injector is not None:
            return self.fault_injector(operation, key)
        return None

    # -------------------------------------------------------------------------
    # CONNECTION MANAGEMENT
    # -------------------------------------------------------------------------

    async def connect(self) -> Result[None, StoreError]:
        self.connect_count += 1
        if self.fault_injector is not None:
            error = self.fault_injector("connect", "")
            if error is not None:
                return Err(error)
        self._connected = True
        return Ok(None)

    async def close(self) -> None:
        if self._connected:
            self.close_count += 1
        self._connected = False

    # -------------------------------------------------------------------------
    # CORE OPERATIONS
    # -------------------------------------------------------------------------

    async def head(self, key: str) -> Result[ObjectHead, StoreError]:
        """Get object metadata without data."""
        error = self._check("head", key)
        if error is not None:
            return Err(error)
        async with self._lock:
            obj = self._objects.get(key)
            if obj is None:
                return Err(StoreError.not_found("head", key))
            return Ok(ObjectHead(
                key=key,
                size=len(obj.data),
                last_modified=obj.last_modified,
                etag=obj.etag,
                metadata=dict(obj.metadata),
            ))

    async def get(
        self,
        key: str,
        byte_range: Optional[ByteRange] = None,
    ) -> Result[Payload, StoreError]:
        """
        Retrieve object content in the configured body shape.

        Ranges past the end of the object are clipped, not rejected.
        """
        error = self._check("get", key)
        if error is not None:
            return Err(error)
        async with self._lock:
            obj = self._objects.get(key)
            if obj is None:
                return Err(StoreError.not_found("get", key))
            data = obj.data

        if byte_range is not None:
            stop = None if byte_range.end is None else byte_range.end + 1
            data = data[byte_range.start:stop]

        if self.body_shape is PayloadKind.BLOB:
            return Ok(Payload.blob(io.BytesIO(data), len(data)))
        if self.body_shape is PayloadKind.PULL_STREAM:
            return Ok(Payload.pull(_chunked(data, self.chunk_size)))
        if self.body_shape is PayloadKind.PUSH_STREAM:
            return Ok(Payload.push(ByteEmitter.from_chunks(_chunked(data, self.chunk_size))))
        return Ok(Payload.bounded(data))

    async def put(
        self,
        key: str,
        body: Payload,
        content_length: Optional[int] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> Result[None, StoreError]:
        """Store object with metadata. Computes ETag (MD5 hash)."""
        error = self._check("put", key)
        if error is not None:
            return Err(error)
        if body.is_stream:
            return Err(StoreError.request_failed("put", key, store_code="UnboundedBody"))

        data = await read_all(body)
        if content_length is not None and content_length != len(data):
            return Err(StoreError.request_failed(
                "put", key, store_code="IncompleteBody", status=400,
            ))
        async with self._lock:
            self._objects[key] = StoredObject(data=data, metadata=dict(metadata or {}))
        return Ok(None)

    async def delete(self, key: str) -> Result[None, StoreError]:
        """Delete object. Deleting a missing key succeeds, as on S3."""
        error = self._check("delete", key)
        if error is not None:
            return Err(error)
        async with self._lock:
            self._objects.pop(key, None)
        return Ok(None)

    async def list(
        self,
        prefix: str,
        delimiter: Optional[str] = None,
        continuation_token: Optional[str] = None,
        max_keys: Optional[int] = None,
    ) -> Result[ListPage, StoreError]:
        """
        List objects with prefix filter.

        Keys and common prefixes share one lexicographic sequence and both
        count toward max_keys; the continuation token is the offset into it.
        """
        error = self._check("list", prefix)
        if error is not None:
            return Err(error)

        async with self._lock:
            keys = sorted(k for k in self._objects if k.startswith(prefix))
            entries: List[Tuple[str, Optional[StoredObject]]] = []
            seen_prefixes = set()
            for key in keys:
                if delimiter:
                    cut = key.find(delimiter, len(prefix))
                    if cut != -1:
                        common = key[:cut + len(delimiter)]
                        if common not in seen_prefixes:
                            seen_prefixes.add(common)
                            entries.append((common, None))
                        continue
                entries.append((key, self._objects[key]))

        start_idx = 0
        if continuation_token:
            try:
                start_idx = int(continuation_token)
            except ValueError:
                return Err(StoreError.request_failed(
                    "list", prefix, store_code="InvalidArgument", status=400,
                ))

        end_idx = start_idx + (max_keys or DEFAULT_MAX_KEYS)
        page = entries[start_idx:end_idx]
        truncated = end_idx < len(entries)

        return Ok(ListPage(
            prefixes=[name for name, obj in page if obj is None],
            objects=[
                ListedObject(
                    key=name,
                    size=len(obj.data),
                    last_modified=obj.last_modified,
                    etag=obj.etag,
                )
                for name, obj in page
                if obj is not None
            ],
            truncated=truncated,
            next_token=str(end_idx) if truncated else None,
        ))

    async def copy(
        self,
        source_key: str,
        dest_key: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> Result[None, StoreError]:
        """Copy object to new key, replacing metadata when given."""
        error = self._check("copy", source_key)
        if error is not None:
            return Err(error)
        async with self._lock:
            source = self._objects.get(source_key)
            if source is None:
                return Err(StoreError.not_found("copy", source_key))
            self._objects[dest_key] = StoredObject(
                data=source.data,
                metadata=dict(source.metadata if metadata is None else metadata),
                etag=source.etag,
            )
        return Ok(None)

    async def presign(
        self,
        operation: str,
        key: str,
        expires_in: int,
    ) -> Result[str, StoreError]:
        error = self._check("presign", key)
        if error is not None:
            return Err(error)
        return Ok(f"memory://{self.bucket}/{key}?op={operation}&expires={expires_in}")

    async def multipart_upload(
        self,
        key: str,
        chunks: AsyncIterable[bytes],
        metadata: Optional[Dict[str, str]] = None,
    ) -> Result[None, StoreError]:
        """
        Collect parts of part_size bytes, then publish them at once.

        A failing chunk source leaves the key untouched.
        """
        error = self._check("multipart_upload", key)
        if error is not None:
            return Err(error)

        parts: List[bytes] = []
        buffer = bytearray()
        try:
            async for chunk in chunks:
                buffer.extend(chunk)
                while len(buffer) >= self.part_size:
                    parts.append(bytes(buffer[:self.part_size]))
                    del buffer[:self.part_size]
        except Exception as e:
            return Err(StoreError.request_failed("multipart_upload", key, cause=e))
        if buffer or not parts:
            parts.append(bytes(buffer))

        async with self._lock:
            self._objects[key] = StoredObject(
                data=b"".join(parts),
                metadata=dict(metadata or {}),
            )
            self.upload_parts[key] = len(parts)
        return Ok(None)


__all__ = [
    "InMemoryObjectStoreClient",
    "StoredObject",
    "FaultInjector",
]
