"""
Core Type Definitions for the Bucket Filesystem

Implements Result/Either monads for zero-exception control flow and the
value types shared by every layer: byte ranges, entry kinds, Stats and
listing entries.

Design Principles:
- Never use null for absence (use Optional or Result)
- Enforce exhaustive pattern matching for all variants
- Values are computed per call and never cached across calls

Complexity: O(1) for all type operations
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import (
    Any,
    Callable,
    Dict,
    Generic,
    Literal,
    Optional,
    TypeVar,
    Union,
)

# =============================================================================
# TYPE VARIABLES FOR GENERIC CONTAINERS
# =============================================================================
T = TypeVar("T")  # Success type
E = TypeVar("E")  # Error type
U = TypeVar("U")  # Transform result type


# =============================================================================
# RESULT MONAD: ZERO-EXCEPTION CONTROL FLOW
# =============================================================================
@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """
    Success variant of Result monad.

    Immutable, hashable container for successful computation results.
    """

    value: T

    def is_ok(self) -> Literal[True]:
        return True

    def is_err(self) -> Literal[False]:
        return False

    def unwrap(self) -> T:
        """
        Extract value. Safe to call after is_ok() check.

        Returns:
            T: The wrapped success value
        """
        return self.value

    def unwrap_or(self, default: T) -> T:
        """Return value, ignoring default."""
        return self.value

    def map(self, fn: Callable[[T], U]) -> Ok[U]:
        """Apply transformation to success value."""
        return Ok(fn(self.value))

    def flat_map(self, fn: Callable[[T], Result[U, E]]) -> Result[U, E]:
        """Monadic bind for chaining fallible operations."""
        return fn(self.value)

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """
    Failure variant of Result monad.

    Immutable container for error information.
    Carries full error context for exhaustive handling.
    """

    error: E

    def is_ok(self) -> Literal[False]:
        return False

    def is_err(self) -> Literal[True]:
        return True

    def unwrap(self) -> Any:
        """
        Attempting to unwrap an error is a programming error.

        Raises:
            The wrapped error when it is an exception, otherwise
            RuntimeError with the error context.
        """
        if isinstance(self.error, BaseException):
            raise self.error
        raise RuntimeError(f"Called unwrap() on Err: {self.error}")

    def unwrap_or(self, default: T) -> T:
        """Return default value on error."""
        return default

    def map(self, fn: Callable[[Any], U]) -> Err[E]:
        """No-op on error variant - propagates error unchanged."""
        return self

    def flat_map(self, fn: Callable[[Any], Result[U, E]]) -> Err[E]:
        """Propagate error through monadic chain."""
        return self

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


# Union type for pattern matching
Result = Union[Ok[T], Err[E]]


# =============================================================================
# TIMESTAMP WITH NANOSECOND PRECISION
# =============================================================================
@dataclass(frozen=True, slots=True, order=True)
class Timestamp:
    """
    High-precision timestamp used to stamp errors and log records.

    Stores nanoseconds since Unix epoch.
    """

    nanos: int

    @classmethod
    def now(cls) -> Timestamp:
        """Capture current time with nanosecond precision."""
        return cls(nanos=time.time_ns())

    def __repr__(self) -> str:
        return f"Timestamp({self.nanos}ns)"


# =============================================================================
# BYTE RANGE FOR PARTIAL OBJECT READS
# =============================================================================
@dataclass(frozen=True, slots=True)
class ByteRange:
    """
    Represents a byte range for partial object reads.

    Rendered into the HTTP Range header of a GET. An absent end means
    "until the end of the object".

    Invariant: 0 <= start <= end (when end is set)
    """

    start: int
    end: Optional[int] = None

    def __post_init__(self) -> None:
        if self.start < 0:
            raise ValueError(f"start must be >= 0, got {self.start}")
        if self.end is not None and self.end < self.start:
            raise ValueError(f"end ({self.end}) must be >= start ({self.start})")

    @classmethod
    def from_bounds(
        cls,
        start: Optional[int],
        length: Optional[int],
    ) -> Optional[ByteRange]:
        """
        Build the range for a read starting at `start` spanning `length` bytes.

        Returns None when neither bound is given, so the whole object is
        fetched without a Range header. Callers short-circuit length == 0
        before asking for a range.
        """
        if start is None and length is None:
            return None
        s = start or 0
        if length is None:
            return cls(start=s)
        return cls(start=s, end=s + length - 1)

    @property
    def length(self) -> Optional[int]:
        """Number of bytes in range (inclusive), None when open-ended."""
        if self.end is None:
            return None
        return self.end - self.start + 1

    def to_http_header(self) -> str:
        """Convert to HTTP Range header value."""
        end = "" if self.end is None else str(self.end)
        return f"bytes={self.start}-{end}"

    def __repr__(self) -> str:
        return f"ByteRange({self.start}-{'' if self.end is None else self.end})"


# =============================================================================
# FILESYSTEM ENTITIES
# =============================================================================
class EntryKind(Enum):
    """Kind of filesystem entity a path may denote."""

    FILE = "file"
    DIRECTORY = "directory"


# Keys derived from store-native fields, never persisted as user metadata
RESERVED_PROPS: frozenset[str] = frozenset({"size", "etag", "modified"})


@dataclass(slots=True)
class Stats:
    """
    Attributes of a file or directory.

    `size` is set only for files; directory Stats leave it None. `props`
    holds custom string properties persisted as store user metadata.
    An all-empty Stats describes an implicit directory (nested objects,
    no marker).

    Attributes:
        size: Content length in bytes (files only).
        modified: Last-modified time reported by the store.
        etag: Store entity tag.
        props: Custom properties (reserved keys excluded).
    """

    size: Optional[int] = None
    modified: Optional[datetime] = None
    etag: Optional[str] = None
    props: Dict[str, str] = field(default_factory=dict)

    @property
    def is_file(self) -> bool:
        return self.size is not None

    @property
    def is_directory(self) -> bool:
        return self.size is None

    def to_props(self) -> Dict[str, Any]:
        """Flatten into one mapping, reserved keys included when set."""
        props: Dict[str, Any] = dict(self.props)
        if self.size is not None:
            props["size"] = self.size
        if self.modified is not None:
            props["modified"] = self.modified
        if self.etag is not None:
            props["etag"] = self.etag
        return props


@dataclass(frozen=True, slots=True)
class Entry:
    """
    One child produced by a directory listing.

    Directory entries carry a trailing separator in `path`.
    """

    path: str
    name: str
    is_directory: bool

    @property
    def kind(self) -> EntryKind:
        return EntryKind.DIRECTORY if self.is_directory else EntryKind.FILE
