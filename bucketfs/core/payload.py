"""
Payload Variant: Bounded Bytes, Blobs, Pull Streams and Push Streams
====================================================================

Request and response bodies travel through the filesystem as a closed
tagged variant. Callers may hand in any supported shape; `as_payload()`
normalizes it once at the boundary and every operation afterwards
dispatches on the tag through per-kind tables instead of inspecting
values again.

Kinds:
------
| Kind        | Value                          | Size known |
|-------------|--------------------------------|------------|
| BOUNDED     | bytes                          | yes        |
| BLOB        | seekable binary file object    | yes        |
| PULL_STREAM | async iterator of byte chunks  | no         |
| PUSH_STREAM | PushSource (event emitter)     | no         |

Merging two payloads yields the least memory-bounded kind present on
either side, in MERGE_PRIORITY order, so an unbounded input is never
materialized.

License: MIT
"""

from __future__ import annotations

import asyncio
import io
import logging
import tempfile
from dataclasses import dataclass
from enum import Enum
from typing import (
    Any,
    AsyncIterable,
    AsyncIterator,
    BinaryIO,
    Callable,
    Dict,
    List,
    Optional,
    Protocol,
    runtime_checkable,
)

from bucketfs.core import constants as C

logger = logging.getLogger(__name__)


# =============================================================================
# PUSH SOURCE PROTOCOL
# =============================================================================
@runtime_checkable
class PushSource(Protocol):
    """
    Event-driven byte source.

    Events:
        readable: data can be taken with read() (no arguments)
        error: the source failed (exception argument)
        end: the source is drained (no arguments)
    """

    def on(self, event: str, listener: Callable[..., None]) -> None: ...

    def off(self, event: str, listener: Callable[..., None]) -> None: ...

    def read(self, size: Optional[int] = None) -> Optional[bytes]: ...

    def destroy(self) -> None: ...


class ByteEmitter:
    """
    In-process PushSource.

    Producers call feed(), feed_eof() and set_exception(). When built over
    an async chunk iterator the emitter pulls one chunk at a time, only
    while a consumer is waiting for `readable`, so buffered data never
    exceeds one chunk ahead of the consumer.

    Example:
        emitter = ByteEmitter()
        emitter.feed(b"hello")
        emitter.feed_eof()
    """

    __slots__ = (
        "_listeners",
        "_buffer",
        "_eof",
        "_error",
        "_destroyed",
        "_chunks",
        "_pump_task",
        "_closing",
    )

    def __init__(self, chunks: Optional[AsyncIterable[bytes]] = None) -> None:
        self._listeners: Dict[str, List[Callable[..., None]]] = {
            "readable": [],
            "error": [],
            "end": [],
        }
        self._buffer = bytearray()
        self._eof = False
        self._error: Optional[BaseException] = None
        self._destroyed = False
        self._chunks: Optional[AsyncIterator[bytes]] = (
            chunks.__aiter__() if chunks is not None else None
        )
        self._pump_task: Optional[asyncio.Task[None]] = None
        self._closing: Optional[asyncio.Task[None]] = None

    @classmethod
    def from_chunks(cls, chunks: AsyncIterable[bytes]) -> ByteEmitter:
        """Lazy push source over an async chunk iterator."""
        return cls(chunks)

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    # -------------------------------------------------------------------------
    # CONSUMER SIDE
    # -------------------------------------------------------------------------

    def on(self, event: str, listener: Callable[..., None]) -> None:
        if self._destroyed:
            return
        self._listeners[event].append(listener)
        if event == "readable":
            if self._buffer:
                self._schedule("readable")
            else:
                self._maybe_pump()
        elif event == "end" and self._eof and not self._buffer:
            self._schedule("end")
        elif event == "error" and self._error is not None:
            self._schedule("error", self._error)

    def off(self, event: str, listener: Callable[..., None]) -> None:
        listeners = self._listeners.get(event, [])
        if listener in listeners:
            listeners.remove(listener)

    def remove_all_listeners(self) -> None:
        for listeners in self._listeners.values():
            listeners.clear()

    def read(self, size: Optional[int] = None) -> Optional[bytes]:
        """Take up to `size` buffered bytes, None when nothing is buffered."""
        if not self._buffer:
            if self._eof:
                self._schedule("end")
            else:
                self._maybe_pump()
            return None
        n = len(self._buffer) if size is None else min(size, len(self._buffer))
        chunk = bytes(self._buffer[:n])
        del self._buffer[:n]
        if not self._buffer and self._eof:
            self._schedule("end")
        return chunk

    def destroy(self) -> None:
        """
        Drop listeners, buffered data and any pending upstream pull.

        Pending readers are sent `end` first, so a waiting read_push()
        returns None instead of waiting forever. The upstream iterator is
        closed in the background; aclose() waits for that.
        """
        if self._destroyed:
            return
        self._destroyed = True
        self._emit("end")
        self.remove_all_listeners()
        self._buffer.clear()
        pump, self._pump_task = self._pump_task, None
        if pump is not None:
            pump.cancel()
        chunks, self._chunks = self._chunks, None
        if chunks is None or not hasattr(chunks, "aclose"):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop, upstream chunk iterator left to GC")
            return
        self._closing = loop.create_task(self._close_upstream(pump, chunks))
        self._closing.add_done_callback(_report_close)

    async def aclose(self) -> None:
        """Destroy the emitter and wait until its upstream iterator is closed."""
        self.destroy()
        closing, self._closing = self._closing, None
        if closing is not None:
            await closing

    @staticmethod
    async def _close_upstream(
        pump: Optional[asyncio.Task[None]],
        chunks: AsyncIterator[bytes],
    ) -> None:
        # a cancelled pump must leave __anext__ before the iterator can close
        if pump is not None:
            await asyncio.wait({pump})
        await chunks.aclose()

    # -------------------------------------------------------------------------
    # PRODUCER SIDE
    # -------------------------------------------------------------------------

    def feed(self, data: bytes) -> None:
        if self._destroyed or not data:
            return
        self._buffer.extend(data)
        self._emit("readable")

    def feed_eof(self) -> None:
        if self._destroyed:
            return
        self._eof = True
        if not self._buffer:
            self._emit("end")

    def set_exception(self, exc: BaseException) -> None:
        if self._destroyed:
            return
        self._error = exc
        self._emit("error", exc)

    # -------------------------------------------------------------------------
    # INTERNALS
    # -------------------------------------------------------------------------

    def _emit(self, event: str, *args: Any) -> None:
        for listener in list(self._listeners[event]):
            listener(*args)

    def _schedule(self, event: str, *args: Any) -> None:
        asyncio.get_running_loop().call_soon(self._emit, event, *args)

    def _maybe_pump(self) -> None:
        if (
            self._chunks is None
            or self._pump_task is not None
            or self._eof
            or self._error is not None
            or self._destroyed
        ):
            return
        self._pump_task = asyncio.get_running_loop().create_task(self._pump())

    async def _pump(self) -> None:
        assert self._chunks is not None
        while True:
            try:
                chunk = await self._chunks.__anext__()
            except StopAsyncIteration:
                self._pump_task = None
                self.feed_eof()
                return
            except Exception as exc:
                self._pump_task = None
                self.set_exception(exc)
                return
            if chunk:
                self._pump_task = None
                self.feed(chunk)
                return


def _report_close(task: asyncio.Task[None]) -> None:
    if not task.cancelled() and task.exception() is not None:
        logger.warning("Closing upstream chunk iterator failed: %s", task.exception())


async def release_push(source: PushSource) -> None:
    """Destroy a push source, waiting for its upstream when it can say so."""
    aclose = getattr(source, "aclose", None)
    if aclose is not None:
        await aclose()
    else:
        source.destroy()


async def read_push(source: PushSource, size: Optional[int] = None) -> Optional[bytes]:
    """
    Satisfy one read from a push source.

    Waits for the next readiness signal, takes up to `size` bytes and
    removes its listeners before returning, so no signal is delivered
    twice. Returns None at end of stream; re-raises the source's error.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future[Optional[bytes]] = loop.create_future()

    def on_readable() -> None:
        if future.done():
            return
        chunk = source.read(size)
        if chunk:
            future.set_result(chunk)

    def on_end() -> None:
        if not future.done():
            future.set_result(None)

    def on_error(exc: BaseException) -> None:
        if not future.done():
            future.set_exception(exc)

    source.on("readable", on_readable)
    source.on("end", on_end)
    source.on("error", on_error)
    try:
        return await future
    finally:
        source.off("readable", on_readable)
        source.off("end", on_end)
        source.off("error", on_error)


# =============================================================================
# PAYLOAD VARIANT
# =============================================================================
class PayloadKind(Enum):
    """Shape of a request/response body."""

    BOUNDED = "bounded"
    BLOB = "blob"
    PUSH_STREAM = "push_stream"
    PULL_STREAM = "pull_stream"

    @property
    def is_stream(self) -> bool:
        return self in (PayloadKind.PULL_STREAM, PayloadKind.PUSH_STREAM)


# Least memory-bounded first: the first kind present on either side of a
# merge determines the merged kind.
MERGE_PRIORITY: tuple[PayloadKind, ...] = (
    PayloadKind.PULL_STREAM,
    PayloadKind.PUSH_STREAM,
    PayloadKind.BLOB,
    PayloadKind.BOUNDED,
)


@dataclass(frozen=True, slots=True)
class Payload:
    """
    Tagged body value.

    Attributes:
        kind: Which representation `value` holds.
        value: bytes, BinaryIO, AsyncIterator[bytes] or PushSource.
        size: Byte length for BOUNDED and BLOB, None for streams.
    """

    kind: PayloadKind
    value: Any
    size: Optional[int] = None

    @classmethod
    def bounded(cls, data: bytes) -> Payload:
        return cls(PayloadKind.BOUNDED, bytes(data), len(data))

    @classmethod
    def blob(cls, handle: BinaryIO, size: Optional[int] = None) -> Payload:
        if size is None:
            position = handle.tell()
            size = handle.seek(0, io.SEEK_END)
            handle.seek(position)
        return cls(PayloadKind.BLOB, handle, size)

    @classmethod
    def pull(cls, chunks: AsyncIterable[bytes]) -> Payload:
        return cls(PayloadKind.PULL_STREAM, chunks.__aiter__())

    @classmethod
    def push(cls, source: PushSource) -> Payload:
        return cls(PayloadKind.PUSH_STREAM, source)

    @classmethod
    def empty(cls) -> Payload:
        return cls.bounded(b"")

    @property
    def is_stream(self) -> bool:
        return self.kind.is_stream


def as_payload(data: Any) -> Payload:
    """
    Normalize a caller-supplied body into a Payload.

    Accepts Payload, bytes-like, str (UTF-8), PushSource, async iterables
    of bytes and seekable binary file objects.

    Raises:
        TypeError: For any other value.
    """
    if isinstance(data, Payload):
        return data
    if isinstance(data, (bytes, bytearray, memoryview)):
        return Payload.bounded(bytes(data))
    if isinstance(data, str):
        return Payload.bounded(data.encode("utf-8"))
    if isinstance(data, PushSource):
        return Payload.push(data)
    if hasattr(data, "__aiter__"):
        return Payload.pull(data)
    if hasattr(data, "read") and hasattr(data, "seek"):
        return Payload.blob(data)
    raise TypeError(f"Unsupported payload type: {type(data).__name__}")


# =============================================================================
# CAPABILITY: SLICE
# =============================================================================
def slice_blob(payload: Payload, start: int, size: Optional[int]) -> bytes:
    """Read `[start, start+size)` of a BLOB (to the end when size is None)."""
    handle: BinaryIO = payload.value
    handle.seek(start)
    return handle.read(-1 if size is None else size)


# =============================================================================
# CAPABILITY: CHUNK ITERATION
# =============================================================================
async def _iter_bounded(payload: Payload, chunk_size: int) -> AsyncIterator[bytes]:
    data: bytes = payload.value
    for offset in range(0, len(data), chunk_size):
        yield data[offset:offset + chunk_size]


async def _iter_blob(payload: Payload, chunk_size: int) -> AsyncIterator[bytes]:
    handle: BinaryIO = payload.value
    handle.seek(0)
    while True:
        chunk = handle.read(chunk_size)
        if not chunk:
            return
        yield chunk


async def _iter_pull(payload: Payload, chunk_size: int) -> AsyncIterator[bytes]:
    async for chunk in payload.value:
        if chunk:
            yield chunk


async def _iter_push(payload: Payload, chunk_size: int) -> AsyncIterator[bytes]:
    source: PushSource = payload.value
    try:
        while True:
            chunk = await read_push(source, chunk_size)
            if chunk is None:
                return
            yield chunk
    finally:
        await release_push(source)


_ITERATORS: Dict[PayloadKind, Callable[[Payload, int], AsyncIterator[bytes]]] = {
    PayloadKind.BOUNDED: _iter_bounded,
    PayloadKind.BLOB: _iter_blob,
    PayloadKind.PULL_STREAM: _iter_pull,
    PayloadKind.PUSH_STREAM: _iter_push,
}


def iter_chunks(
    payload: Payload,
    chunk_size: int = C.DEFAULT_READ_CHUNK_SIZE,
) -> AsyncIterator[bytes]:
    """Lazily yield the payload's bytes in order."""
    return _ITERATORS[payload.kind](payload, chunk_size)


async def read_all(payload: Payload) -> bytes:
    """Materialize the whole payload. Consumes streams."""
    if payload.kind is PayloadKind.BOUNDED:
        return payload.value
    parts: List[bytes] = []
    async for chunk in iter_chunks(payload):
        parts.append(chunk)
    return b"".join(parts)


# =============================================================================
# CAPABILITY: LENGTH
# =============================================================================
def payload_length(payload: Payload) -> Optional[int]:
    """Exact byte length for BOUNDED and BLOB, None for streams."""
    if payload.kind.is_stream:
        return None
    return payload.size


# =============================================================================
# CAPABILITY: MERGE
# =============================================================================
async def _concat(parts: tuple[Payload, ...]) -> AsyncIterator[bytes]:
    for part in parts:
        async for chunk in iter_chunks(part):
            yield chunk


async def _merge_pull(parts: tuple[Payload, ...]) -> Payload:
    return Payload.pull(_concat(parts))


async def _merge_push(parts: tuple[Payload, ...]) -> Payload:
    return Payload.push(ByteEmitter.from_chunks(_concat(parts)))


async def _merge_blob(parts: tuple[Payload, ...]) -> Payload:
    spool = tempfile.SpooledTemporaryFile(max_size=C.SPOOL_MAX_MEMORY_BYTES)
    size = 0
    async for chunk in _concat(parts):
        spool.write(chunk)
        size += len(chunk)
    spool.seek(0)
    return Payload.blob(spool, size)  # type: ignore[arg-type]


async def _merge_bounded(parts: tuple[Payload, ...]) -> Payload:
    return Payload.bounded(b"".join(part.value for part in parts))


_MERGERS = {
    PayloadKind.PULL_STREAM: _merge_pull,
    PayloadKind.PUSH_STREAM: _merge_push,
    PayloadKind.BLOB: _merge_blob,
    PayloadKind.BOUNDED: _merge_bounded,
}


def merged_kind(*parts: Payload) -> PayloadKind:
    """Kind the concatenation of `parts` takes."""
    kinds = {part.kind for part in parts}
    for kind in MERGE_PRIORITY:
        if kind in kinds:
            return kind
    return PayloadKind.BOUNDED


async def merge(*parts: Payload) -> Payload:
    """
    Concatenate payloads in order.

    Streams are concatenated lazily; blobs spool to a temporary file;
    bounded inputs are joined in memory.
    """
    return await _MERGERS[merged_kind(*parts)](parts)
