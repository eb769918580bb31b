"""
bucketfs: Hierarchical Filesystem over S3-Compatible Object Stores

Path-based files and directories on a flat key-value store:
- Directories as optional zero-length marker objects ending in "/"
- Stats from three concurrent existence probes
- Ranged reads, appends by merge, multipart uploads for streams
- Custom props as object user metadata, patched by self-copy
- Presigned URLs for direct access

License: MIT
"""

__version__ = "1.0.0"

# =============================================================================
# PUBLIC API EXPORTS
# =============================================================================
from bucketfs.core.types import (
    Result,
    Ok,
    Err,
    ByteRange,
    EntryKind,
    Stats,
    Entry,
)
from bucketfs.core.errors import (
    ErrorCode,
    BucketFSError,
    StoreError,
    FileSystemError,
)
from bucketfs.core.payload import (
    Payload,
    PayloadKind,
    PushSource,
    ByteEmitter,
)
from bucketfs.core.config import FileSystemConfig
from bucketfs.storage import (
    ObjectStoreClient,
    InMemoryObjectStoreClient,
    S3Config,
    create_object_store_client,
)
from bucketfs.fs import (
    PathKeyCodec,
    ReadOptions,
    ReadSession,
    WriteOptions,
    WriteSession,
    URLType,
    S3FileSystem,
)
from bucketfs.observability import StructuredLogger, LogLevel, setup_logging

__all__ = [
    # Version
    "__version__",
    # Core
    "Result",
    "Ok",
    "Err",
    "ByteRange",
    "EntryKind",
    "Stats",
    "Entry",
    "ErrorCode",
    "BucketFSError",
    "StoreError",
    "FileSystemError",
    "Payload",
    "PayloadKind",
    "PushSource",
    "ByteEmitter",
    "FileSystemConfig",
    # Storage
    "ObjectStoreClient",
    "InMemoryObjectStoreClient",
    "S3Config",
    "create_object_store_client",
    # Filesystem
    "PathKeyCodec",
    "ReadOptions",
    "ReadSession",
    "WriteOptions",
    "WriteSession",
    "URLType",
    "S3FileSystem",
    # Observability
    "StructuredLogger",
    "LogLevel",
    "setup_logging",
]
