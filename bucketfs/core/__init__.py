"""
Core module: Type definitions, error hierarchy, payloads and configuration.

This module provides the foundational abstractions for the filesystem:
- Result/Either monads for zero-exception control flow
- Error hierarchy separating store failures from filesystem failures
- Payload variant over bytes, blobs and streams
- Configuration management with validation
"""

from bucketfs.core.types import (
    Result,
    Ok,
    Err,
    Timestamp,
    ByteRange,
    EntryKind,
    Stats,
    Entry,
    RESERVED_PROPS,
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
    as_payload,
)
from bucketfs.core.config import FileSystemConfig

__all__ = [
    "Result",
    "Ok",
    "Err",
    "Timestamp",
    "ByteRange",
    "EntryKind",
    "Stats",
    "Entry",
    "RESERVED_PROPS",
    "ErrorCode",
    "BucketFSError",
    "StoreError",
    "FileSystemError",
    "Payload",
    "PayloadKind",
    "PushSource",
    "ByteEmitter",
    "as_payload",
    "FileSystemConfig",
]
