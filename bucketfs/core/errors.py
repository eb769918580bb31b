"""
Error Hierarchy for the Bucket Filesystem

Design Principles:
- Forbid exceptions for control flow (use Result types)
- Never surface raw store-client failures to callers
- Carry full error context for debugging and audit trails

Two layers:
- StoreError: what an ObjectStoreClient reports (status, store code).
- FileSystemError: what the filesystem reports, classified from a
  StoreError by whether the object is missing, else by whether the
  triggering operation read or wrote.

Usage:
    result = await fs.get_stats("/docs/readme.md")
    match result:
        case Ok(stats):
            show(stats)
        case Err(FileSystemError(code=ErrorCode.FS_NOT_FOUND)):
            create_it()
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from bucketfs.core.types import Timestamp


# =============================================================================
# ERROR CODE ENUMERATION
# =============================================================================
class ErrorCode(Enum):
    """
    Unique error codes for programmatic error handling.

    Codes are grouped by subsystem:
    - 1xxx: Object store (client) errors
    - 2xxx: Filesystem errors
    - 9xxx: Internal/unknown errors
    """

    # Object store errors (1xxx)
    STORE_NOT_FOUND = 1001
    STORE_REQUEST_FAILED = 1002
    STORE_CONNECTION_FAILED = 1003
    STORE_TIMEOUT = 1004
    STORE_NOT_CONNECTED = 1005

    # Filesystem errors (2xxx)
    FS_NOT_FOUND = 2001
    FS_NOT_READABLE = 2002
    FS_NO_MODIFICATION_ALLOWED = 2003
    FS_NOT_SUPPORTED = 2004

    # Internal errors (9xxx)
    INTERNAL_ERROR = 9001
    INTERNAL_CONFIGURATION_ERROR = 9002


# Store error codes that mean "the object is not there"
NOT_FOUND_CODES: frozenset[str] = frozenset({"NotFound", "NoSuchKey", "404"})


# =============================================================================
# BASE ERROR CLASS
# =============================================================================
@dataclass
class BucketFSError(Exception):
    """
    Base class for all bucketfs errors.

    Provides common infrastructure for error handling:
    - Unique error ID for correlation in logs
    - Error code for programmatic handling
    - Timestamp for correlation
    - Cause chain for root cause analysis
    """

    code: ErrorCode
    message: str
    error_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: Timestamp = field(default_factory=Timestamp.now)
    cause: Optional[BaseException] = None
    context: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.code.name}] {self.message} (id={self.error_id[:8]})"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"code={self.code.name}, "
            f"message={self.message!r}, "
            f"error_id={self.error_id!r})"
        )


# =============================================================================
# STORE ERRORS (CLIENT LAYER)
# =============================================================================
@dataclass
class StoreError(BucketFSError):
    """
    Failure reported by an ObjectStoreClient.

    `store_code` is the store's own error code (e.g. "NoSuchKey") and
    `status` the HTTP status when one is known.
    """

    operation: str = ""
    key: str = ""
    store_code: str = ""
    status: Optional[int] = None

    @property
    def is_not_found(self) -> bool:
        """True when the store reports the object as missing."""
        return (
            self.code == ErrorCode.STORE_NOT_FOUND
            or self.status == 404
            or self.store_code in NOT_FOUND_CODES
        )

    @classmethod
    def not_found(cls, operation: str, key: str) -> StoreError:
        """Object (or prefix) does not exist."""
        return cls(
            code=ErrorCode.STORE_NOT_FOUND,
            message=f"{operation} '{key}': not found",
            operation=operation,
            key=key,
            store_code="NotFound",
            status=404,
        )

    @classmethod
    def request_failed(
        cls,
        operation: str,
        key: str,
        store_code: str = "",
        status: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ) -> StoreError:
        """Store rejected or failed the request."""
        code = ErrorCode.STORE_REQUEST_FAILED
        if status == 404 or store_code in NOT_FOUND_CODES:
            code = ErrorCode.STORE_NOT_FOUND
        detail = store_code or (str(cause) if cause else "request failed")
        return cls(
            code=code,
            message=f"{operation} '{key}': {detail}",
            cause=cause,
            context={"status": status} if status is not None else {},
            operation=operation,
            key=key,
            store_code=store_code,
            status=status,
        )

    @classmethod
    def connection_failed(
        cls,
        endpoint: str,
        cause: Optional[BaseException] = None,
    ) -> StoreError:
        """Client could not be created or reach the endpoint."""
        return cls(
            code=ErrorCode.STORE_CONNECTION_FAILED,
            message=f"Failed to connect to object store at {endpoint}: {cause}",
            cause=cause,
            context={"endpoint": endpoint},
            operation="connect",
        )

    @classmethod
    def timeout(
        cls,
        operation: str,
        key: str,
        cause: Optional[BaseException] = None,
    ) -> StoreError:
        """Request timed out in the client."""
        return cls(
            code=ErrorCode.STORE_TIMEOUT,
            message=f"{operation} '{key}' timed out",
            cause=cause,
            operation=operation,
            key=key,
        )

    @classmethod
    def not_connected(cls, operation: str, key: str = "") -> StoreError:
        """Operation issued before connect() or after close()."""
        return cls(
            code=ErrorCode.STORE_NOT_CONNECTED,
            message=f"{operation} '{key}': client not connected",
            operation=operation,
            key=key,
        )


# =============================================================================
# FILESYSTEM ERRORS (CALLER-FACING)
# =============================================================================
@dataclass
class FileSystemError(BucketFSError):
    """
    Classified failure of a filesystem operation.

    Every store failure is converted into one of four kinds before it
    reaches a caller: NotFound, NotReadable, NoModificationAllowed,
    NotSupported.
    """

    repository: str = ""
    path: str = ""

    @property
    def is_not_found(self) -> bool:
        return self.code == ErrorCode.FS_NOT_FOUND

    @classmethod
    def not_found(
        cls,
        repository: str,
        path: str,
        cause: Optional[BaseException] = None,
    ) -> FileSystemError:
        """Target path does not exist."""
        return cls(
            code=ErrorCode.FS_NOT_FOUND,
            message=f"{repository}:{path} not found",
            cause=cause,
            context={"repository": repository, "path": path},
            repository=repository,
            path=path,
        )

    @classmethod
    def not_readable(
        cls,
        repository: str,
        path: str,
        cause: Optional[BaseException] = None,
    ) -> FileSystemError:
        """A read-flavored operation failed."""
        return cls(
            code=ErrorCode.FS_NOT_READABLE,
            message=f"{repository}:{path} is not readable: {cause}",
            cause=cause,
            context={"repository": repository, "path": path},
            repository=repository,
            path=path,
        )

    @classmethod
    def no_modification_allowed(
        cls,
        repository: str,
        path: str,
        cause: Optional[BaseException] = None,
    ) -> FileSystemError:
        """A write-flavored operation failed."""
        return cls(
            code=ErrorCode.FS_NO_MODIFICATION_ALLOWED,
            message=f"{repository}:{path} cannot be modified: {cause}",
            cause=cause,
            context={"repository": repository, "path": path},
            repository=repository,
            path=path,
        )

    @classmethod
    def not_supported(
        cls,
        repository: str,
        path: str,
        reason: str,
    ) -> FileSystemError:
        """Requested mode of operation is not supported."""
        return cls(
            code=ErrorCode.FS_NOT_SUPPORTED,
            message=f"{repository}:{path}: {reason}",
            context={"repository": repository, "path": path, "reason": reason},
            repository=repository,
            path=path,
        )

    @classmethod
    def classify(
        cls,
        error: BaseException,
        repository: str,
        path: str,
        write: bool,
    ) -> FileSystemError:
        """
        Convert any failure raised or returned below the filesystem.

        Already-classified errors pass through unchanged. Missing objects
        become NotFound; everything else is NoModificationAllowed for
        writes and NotReadable for reads.
        """
        if isinstance(error, FileSystemError):
            return error
        if isinstance(error, StoreError) and error.is_not_found:
            return cls.not_found(repository, path, cause=error)
        if write:
            return cls.no_modification_allowed(repository, path, cause=error)
        return cls.not_readable(repository, path, cause=error)
