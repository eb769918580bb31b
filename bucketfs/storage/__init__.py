"""
Storage Module: Object Store Client Layer
=========================================

Provides:
- The ObjectStoreClient protocol the filesystem is written against
- An in-memory client for development/testing
- The aioboto3 client for S3-compatible services
- A factory selecting between them

Design Principles:
-----------------
1. **Backend Agnostic**: Same interface for in-memory and production
2. **Factory Pattern**: Runtime backend selection via configuration
3. **Lazy Loading**: Production dependencies loaded only when needed
4. **Result Monad**: No exceptions for control flow

Example:
    >>> # Development (in-memory)
    >>> client = create_object_store_client()

    >>> # Production (configured)
    >>> client = create_object_store_client(S3Config(bucket_name="my-bucket"))
"""

from __future__ import annotations

from typing import Optional, TYPE_CHECKING

# Protocol definitions
from bucketfs.storage.protocols import (
    ObjectStoreClient,
    ObjectHead,
    ListedObject,
    ListPage,
    PRESIGN_GET,
    PRESIGN_PUT,
    PRESIGN_DELETE,
)

# In-memory backend (always available)
from bucketfs.storage.memory_client import InMemoryObjectStoreClient

# Configuration
from bucketfs.storage.config import S3Config

from bucketfs.core import constants as C

# Lazy imports for production backends
if TYPE_CHECKING:
    from bucketfs.storage.s3_client import S3ObjectStoreClient


# =============================================================================
# FACTORY FUNCTIONS
# =============================================================================

def create_object_store_client(
    config: Optional[S3Config] = None,
    read_chunk_size: int = C.DEFAULT_READ_CHUNK_SIZE,
) -> ObjectStoreClient:
    """
    Create an object store client.

    Returns the in-memory implementation when no configuration is given.

    Args:
        config: Optional S3 configuration for production.
        read_chunk_size: Chunk size of streamed GET bodies.

    Returns:
        InMemoryObjectStoreClient: If config is None (development).
        S3ObjectStoreClient: If config is provided (production).
    """
    if config is not None:
        from bucketfs.storage.s3_client import S3ObjectStoreClient
        return S3ObjectStoreClient(config, read_chunk_size=read_chunk_size)

    return InMemoryObjectStoreClient(chunk_size=read_chunk_size)


__all__ = [
    # Protocols
    "ObjectStoreClient",
    "ObjectHead",
    "ListedObject",
    "ListPage",
    "PRESIGN_GET",
    "PRESIGN_PUT",
    "PRESIGN_DELETE",
    # Backends
    "InMemoryObjectStoreClient",
    "S3ObjectStoreClient",
    # Configuration
    "S3Config",
    # Factory
    "create_object_store_client",
]


def __getattr__(name: str):
    if name == "S3ObjectStoreClient":
        from bucketfs.storage.s3_client import S3ObjectStoreClient
        return S3ObjectStoreClient
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
