"""
Read Session: Ranged, Incremental Reads of One File

A session issues at most one GET per position: the first read (or the
first read after a seek) requests `bytes=start-end` for the window still
to be read, then every later read is served from that body.

Body Shapes:
------------
| Shape       | read(size)                                         |
|-------------|----------------------------------------------------|
| BLOB        | slice [position, position + size), no re-fetch     |
| BOUNDED     | same as BLOB over bytes                            |
| PULL_STREAM | pull chunks until size is met, keep the excess     |
| PUSH_STREAM | wait for one readiness signal, listeners per read  |

Seeking or closing cancels a read still waiting on the body, then
releases it: pull streams are closed (aclose), push sources destroyed,
blobs left alone.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional

from bucketfs.core import constants as C
from bucketfs.core.errors import FileSystemError
from bucketfs.core.payload import Payload, PayloadKind, read_push, release_push, slice_blob
from bucketfs.core.types import ByteRange, Err, Ok, Result
from bucketfs.fs.keys import PathKeyCodec
from bucketfs.fs.resolver import ClientProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ReadOptions:
    """
    Window of a read.

    Attributes:
        start: First byte offset (None = from the beginning).
        length: Byte count (None = to the end of the file).
    """
    start: Optional[int] = None
    length: Optional[int] = None

    def __post_init__(self) -> None:
        if self.start is not None and self.start < 0:
            raise ValueError(f"start must be >= 0, got {self.start}")
        if self.length is not None and self.length < 0:
            raise ValueError(f"length must be >= 0, got {self.length}")


async def load(
    codec: PathKeyCodec,
    get_client: ClientProvider,
    path: str,
    options: Optional[ReadOptions] = None,
) -> Result[Payload, FileSystemError]:
    """
    Fetch a file's window as a Payload of whatever shape the store sends.

    A zero-length window returns an empty payload without contacting the
    store. The caller owns the returned body.
    """
    options = options or ReadOptions()
    if options.length == 0:
        return Ok(Payload.empty())

    client_result = await get_client()
    if client_result.is_err():
        return client_result
    client = client_result.unwrap()

    byte_range = ByteRange.from_bounds(options.start, options.length)
    result = await client.get(codec.file_key(path), byte_range)
    if result.is_err():
        return Err(FileSystemError.classify(result.error, codec.repository, path, write=False))
    return result


class ReadSession:
    """
    Incremental reader over one file.

    Example:
        async with fs.open_read("/logs/app.log", ReadOptions(start=100)) as session:
            while (chunk := (await session.read(4096)).unwrap()) is not None:
                handle(chunk)
    """

    __slots__ = (
        "_codec",
        "_get_client",
        "_path",
        "_options",
        "_chunk_size",
        "_start",
        "_consumed",
        "_source",
        "_source_offset",
        "_remaining",
        "_eof",
        "_closed",
        "_pending",
    )

    def __init__(
        self,
        codec: PathKeyCodec,
        get_client: ClientProvider,
        path: str,
        options: Optional[ReadOptions] = None,
        chunk_size: int = C.DEFAULT_READ_CHUNK_SIZE,
    ) -> None:
        self._codec = codec
        self._get_client = get_client
        self._path = path
        self._options = options or ReadOptions()
        self._chunk_size = chunk_size
        self._start: Optional[int] = self._options.start
        # bytes returned since the last (re)positioning
        self._consumed = 0
        self._source: Optional[Payload] = None
        # bytes taken from the current blob/bounded source
        self._source_offset = 0
        # pull-stream excess carried into the next read
        self._remaining = b""
        self._eof = False
        self._closed = False
        # in-flight read, cancelled by seek() and close()
        self._pending: Optional[asyncio.Task[Result[bytes, FileSystemError]]] = None

    @property
    def path(self) -> str:
        return self._path

    @property
    def position(self) -> int:
        """Absolute offset of the next byte to be read."""
        return (self._start or 0) + self._consumed

    @property
    def closed(self) -> bool:
        return self._closed

    def _budget(self) -> Optional[int]:
        if self._options.length is None:
            return None
        return max(self._options.length - self._consumed, 0)

    # -------------------------------------------------------------------------
    # READ
    # -------------------------------------------------------------------------

    async def read(self, size: Optional[int] = None) -> Result[Optional[bytes], FileSystemError]:
        """
        Up to `size` bytes (all remaining when None); None at end of file.

        A read still waiting when seek() or close() is called returns None.

        Raises:
            ValueError: If size is negative.
        """
        if size is not None and size < 0:
            raise ValueError(f"size must be >= 0, got {size}")
        if self._closed:
            return Err(FileSystemError.not_readable(
                self._codec.repository, self._path, cause=ValueError("read on closed session"),
            ))
        if size == 0:
            return Ok(b"")
        if self._eof:
            return Ok(None)

        budget = self._budget()
        if budget == 0:
            self._eof = True
            return Ok(b"" if self._consumed == 0 else None)

        want = budget if size is None else (size if budget is None else min(size, budget))

        task = asyncio.ensure_future(self._next_chunk(budget, want))
        self._pending = task
        try:
            result = await task
        except asyncio.CancelledError:
            if self._pending is task:
                # the caller itself was cancelled
                self._pending = None
                raise
            return Ok(None)
        except Exception as e:
            if self._pending is not task:
                return Ok(None)
            self._pending = None
            logger.warning("Read of %s failed at offset %d: %s", self._path, self.position, e)
            await self._close_source()
            return Err(FileSystemError.classify(e, self._codec.repository, self._path, write=False))

        if self._pending is not task:
            return Ok(None)
        self._pending = None
        if result.is_err():
            return result
        chunk = result.unwrap()
        if not chunk:
            self._eof = True
            return Ok(None)
        self._consumed += len(chunk)
        return Ok(chunk)

    async def read_all(self) -> Result[bytes, FileSystemError]:
        """Read everything left in the window."""
        parts: List[bytes] = []
        while True:
            result = await self.read(self._chunk_size)
            if result.is_err():
                return result
            chunk = result.unwrap()
            if chunk is None:
                return Ok(b"".join(parts))
            parts.append(chunk)
            if not chunk:
                return Ok(b"")

    async def _next_chunk(
        self,
        budget: Optional[int],
        want: Optional[int],
    ) -> Result[bytes, FileSystemError]:
        if self._source is None:
            opened = await self._open(budget)
            if opened.is_err():
                return opened
        return Ok(await self._take(want))

    async def _open(self, budget: Optional[int]) -> Result[Payload, FileSystemError]:
        start = None if self._start is None and self._consumed == 0 else self.position
        result = await load(
            self._codec,
            self._get_client,
            self._path,
            ReadOptions(start=start, length=budget),
        )
        if result.is_ok():
            self._source = result.unwrap()
            self._source_offset = 0
            self._remaining = b""
        return result

    async def _take(self, want: Optional[int]) -> bytes:
        source = self._source
        assert source is not None

        if source.kind in (PayloadKind.BLOB, PayloadKind.BOUNDED):
            if source.kind is PayloadKind.BLOB:
                chunk = slice_blob(source, self._source_offset, want)
            else:
                stop = None if want is None else self._source_offset + want
                chunk = source.value[self._source_offset:stop]
            self._source_offset += len(chunk)
            return chunk

        if source.kind is PayloadKind.PULL_STREAM:
            return await self._take_pull(source.value, want)

        return await read_push(source.value, want) or b""

    async def _take_pull(self, chunks: AsyncIterator[bytes], want: Optional[int]) -> bytes:
        buffer = bytearray(self._remaining)
        self._remaining = b""
        while want is None or len(buffer) < want:
            try:
                buffer.extend(await chunks.__anext__())
            except StopAsyncIteration:
                break
        chunk, self._remaining = self._split(bytes(buffer), want)
        return chunk

    @staticmethod
    def _split(data: bytes, want: Optional[int]) -> tuple[bytes, bytes]:
        if want is None or len(data) <= want:
            return data, b""
        return data[:want], data[want:]

    # -------------------------------------------------------------------------
    # POSITIONING AND LIFECYCLE
    # -------------------------------------------------------------------------

    async def seek(self, offset: int) -> None:
        """
        Move to an absolute offset.

        An in-flight read is cancelled first. The current body is released
        and the next read fetches the window starting at `offset` (length
        budget counted from there).
        """
        if offset < 0:
            raise ValueError(f"offset must be >= 0, got {offset}")
        await self._cancel_pending()
        await self._close_source()
        self._start = offset
        self._consumed = 0
        self._eof = False

    async def close(self) -> None:
        """Cancel any in-flight read and release the body. Idempotent."""
        if self._closed:
            return
        self._closed = True
        await self._cancel_pending()
        await self._close_source()

    async def _cancel_pending(self) -> None:
        task, self._pending = self._pending, None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait({task})

    async def _close_source(self) -> None:
        source, self._source = self._source, None
        self._remaining = b""
        if source is None:
            return
        if source.kind is PayloadKind.PULL_STREAM:
            aclose = getattr(source.value, "aclose", None)
            if aclose is not None:
                await aclose()
        elif source.kind is PayloadKind.PUSH_STREAM:
            await release_push(source.value)

    async def __aenter__(self) -> ReadSession:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"ReadSession({self._path!r}, position={self.position})"


__all__ = ["ReadOptions", "ReadSession", "load"]
