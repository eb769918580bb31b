"""
Object Store Client Protocol
============================

Structural subtyping protocol (PEP 544) for the flat key-value store the
filesystem is layered on. Implementations speak to a concrete service
(S3ObjectStoreClient) or keep objects in process (InMemoryObjectStoreClient).

Design Principles:
    - Zero-exception control flow via Result[T, StoreError]
    - Async-first for non-blocking I/O
    - Retries, timeouts and credentials belong to the implementation

License: MIT
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import (
    AsyncIterable,
    Dict,
    List,
    Optional,
    Protocol,
    runtime_checkable,
)

from bucketfs.core.errors import StoreError
from bucketfs.core.payload import Payload
from bucketfs.core.types import ByteRange, Result


# =============================================================================
# RESPONSE TYPES
# =============================================================================
@dataclass(frozen=True, slots=True)
class ObjectHead:
    """
    Result of a HEAD request.

    Attributes:
        key: Object key.
        size: Content length in bytes.
        last_modified: Store last-modified timestamp.
        etag: Entity tag as the store reports it.
        metadata: User-defined metadata.
    """
    key: str
    size: int
    last_modified: Optional[datetime] = None
    etag: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ListedObject:
    """One object of a listing page."""
    key: str
    size: int = 0
    last_modified: Optional[datetime] = None
    etag: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ListPage:
    """
    One page of a prefix listing.

    Attributes:
        prefixes: Common prefixes (one level below the query prefix).
        objects: Objects directly under the query prefix.
        truncated: More pages follow.
        next_token: Continuation token for the next page.
    """
    prefixes: List[str] = field(default_factory=list)
    objects: List[ListedObject] = field(default_factory=list)
    truncated: bool = False
    next_token: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.prefixes and not self.objects


# Presignable operations, named after the S3 client methods
PRESIGN_GET: str = "get_object"
PRESIGN_PUT: str = "put_object"
PRESIGN_DELETE: str = "delete_object"


# =============================================================================
# CLIENT PROTOCOL
# =============================================================================
@runtime_checkable
class ObjectStoreClient(Protocol):
    """
    Flat object store operations.

    Every method returns Ok on success and Err(StoreError) on failure;
    missing objects are reported with StoreError.is_not_found set.
    """

    async def connect(self) -> Result[None, StoreError]:
        """Open connections. Called once before any other operation."""
        ...

    async def close(self) -> None:
        """Release connections. Safe to call multiple times."""
        ...

    async def head(self, key: str) -> Result[ObjectHead, StoreError]:
        ...

    async def get(
        self,
        key: str,
        byte_range: Optional[ByteRange] = None,
    ) -> Result[Payload, StoreError]:
        """Fetch an object (or range) as a blob, pull stream or push stream."""
        ...

    async def put(
        self,
        key: str,
        body: Payload,
        content_length: Optional[int] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> Result[None, StoreError]:
        """Single-shot upload of a bounded body."""
        ...

    async def delete(self, key: str) -> Result[None, StoreError]:
        ...

    async def list(
        self,
        prefix: str,
        delimiter: Optional[str] = None,
        continuation_token: Optional[str] = None,
        max_keys: Optional[int] = None,
    ) -> Result[ListPage, StoreError]:
        ...

    async def copy(
        self,
        source_key: str,
        dest_key: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> Result[None, StoreError]:
        """Server-side copy; metadata, when given, replaces the source's."""
        ...

    async def presign(
        self,
        operation: str,
        key: str,
        expires_in: int,
    ) -> Result[str, StoreError]:
        ...

    async def multipart_upload(
        self,
        key: str,
        chunks: AsyncIterable[bytes],
        metadata: Optional[Dict[str, str]] = None,
    ) -> Result[None, StoreError]:
        """Chunked upload of a body of unknown length. All-or-nothing."""
        ...
