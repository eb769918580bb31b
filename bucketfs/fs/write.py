"""
Write Session: Whole-Object Writes, Appends and Buffered Writers

Object stores cannot modify an object in place, so every write replaces
the object:

1. Append: with previous stats, the current content is loaded as a prefix
   and merged with the new data (least memory-bounded kind wins, see
   bucketfs.core.payload.merge).
2. Metadata: custom props of the previous stats are carried over so an
   overwrite keeps them.
3. Upload: stream bodies go through the chunked multipart upload, bounded
   bodies through a single PUT with an explicit content length.

Failures are NoModificationAllowed (NotFound still reported as such) and
leave the previous object untouched.
"""

from __future__ import annotations

import logging
import tempfile
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from bucketfs.core import constants as C
from bucketfs.core.errors import FileSystemError
from bucketfs.core.payload import (
    Payload,
    PayloadKind,
    as_payload,
    iter_chunks,
    merge,
    payload_length,
    release_push,
)
from bucketfs.core.types import Err, Ok, RESERVED_PROPS, Result, Stats
from bucketfs.fs.keys import PathKeyCodec
from bucketfs.fs.read import load
from bucketfs.fs.resolver import ClientProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class WriteOptions:
    """
    Attributes:
        append: Keep the existing content and add the new data after it.
        create: Create the file when missing (False: it must exist).
    """
    append: bool = False
    create: bool = True


def to_metadata(props: Mapping[str, Any]) -> Dict[str, str]:
    """Store user metadata from props: reserved keys dropped, values as str."""
    return {
        key: str(value)
        for key, value in props.items()
        if key not in RESERVED_PROPS and value is not None
    }


async def _release(payload: Optional[Payload]) -> None:
    if payload is None:
        return
    if payload.kind is PayloadKind.PULL_STREAM:
        aclose = getattr(payload.value, "aclose", None)
        if aclose is not None:
            await aclose()
    elif payload.kind is PayloadKind.PUSH_STREAM:
        await release_push(payload.value)


class WriteSession:
    """
    Writes one file.

    `save()` replaces (or appends to) the file in one call. `write()`
    accumulates chunks in a spooled temporary file that `close()` saves
    as a single object.

    Example:
        async with fs.open_write("/out/report.csv") as session:
            await session.write(b"id,value\\n")
            await session.write(b"1,42\\n")
    """

    __slots__ = (
        "_codec",
        "_get_client",
        "_path",
        "_options",
        "_stats",
        "_chunk_size",
        "_spool",
        "_spooled",
        "_closed",
    )

    def __init__(
        self,
        codec: PathKeyCodec,
        get_client: ClientProvider,
        path: str,
        options: Optional[WriteOptions] = None,
        stats: Optional[Stats] = None,
        chunk_size: int = C.DEFAULT_READ_CHUNK_SIZE,
    ) -> None:
        self._codec = codec
        self._get_client = get_client
        self._path = path
        self._options = options or WriteOptions()
        self._stats = stats
        self._chunk_size = chunk_size
        self._spool: Optional[Any] = None
        self._spooled = 0
        self._closed = False

    @property
    def path(self) -> str:
        return self._path

    @property
    def options(self) -> WriteOptions:
        return self._options

    # -------------------------------------------------------------------------
    # SAVE
    # -------------------------------------------------------------------------

    async def save(
        self,
        data: Any,
        stats: Optional[Stats] = None,
    ) -> Result[None, FileSystemError]:
        """
        Replace the file with `data`, or append it when options.append is
        set and previous stats are known.
        """
        repository = self._codec.repository
        try:
            payload = as_payload(data)
        except TypeError as e:
            return Err(FileSystemError.not_supported(repository, self._path, str(e)))

        stats = stats if stats is not None else self._stats
        head: Optional[Payload] = None
        body = payload
        try:
            if self._options.append and stats is not None:
                head_result = await load(self._codec, self._get_client, self._path)
                if head_result.is_err():
                    return Err(FileSystemError.classify(
                        head_result.error, repository, self._path, write=True,
                    ))
                head = head_result.unwrap()
                body = await merge(head, payload)

            metadata = to_metadata(stats.props) if stats is not None else None
            return await self._upload(body, metadata)

        except Exception as e:
            logger.warning("Write of %s failed: %s", self._path, e)
            return Err(FileSystemError.classify(e, repository, self._path, write=True))
        finally:
            await _release(head)
            await _release(body)
            if body is not payload and body.kind is PayloadKind.BLOB:
                body.value.close()

    async def _upload(
        self,
        body: Payload,
        metadata: Optional[Dict[str, str]],
    ) -> Result[None, FileSystemError]:
        client_result = await self._get_client()
        if client_result.is_err():
            return Err(FileSystemError.classify(
                client_result.error, self._codec.repository, self._path, write=True,
            ))
        client = client_result.unwrap()

        key = self._codec.file_key(self._path)
        if body.is_stream:
            result = await client.multipart_upload(
                key,
                iter_chunks(body, self._chunk_size),
                metadata=metadata,
            )
        else:
            result = await client.put(
                key,
                body,
                content_length=payload_length(body),
                metadata=metadata,
            )

        if result.is_err():
            error = FileSystemError.classify(result.error, self._codec.repository, self._path, write=True)
            logger.warning("Upload of %s failed: %s", key, result.error)
            return Err(error)
        logger.debug("Uploaded %s (%s)", key, body.kind.value)
        return Ok(None)

    # -------------------------------------------------------------------------
    # BUFFERED WRITER
    # -------------------------------------------------------------------------

    async def write(self, chunk: Any) -> Result[int, FileSystemError]:
        """Buffer bytes (or str, UTF-8) for the save performed by close()."""
        if self._closed:
            return Err(FileSystemError.no_modification_allowed(
                self._codec.repository, self._path, cause=ValueError("write on closed session"),
            ))
        data = chunk.encode("utf-8") if isinstance(chunk, str) else bytes(chunk)
        if self._spool is None:
            self._spool = tempfile.SpooledTemporaryFile(max_size=C.SPOOL_MAX_MEMORY_BYTES)
        self._spool.write(data)
        self._spooled += len(data)
        return Ok(len(data))

    async def close(self) -> Result[None, FileSystemError]:
        """Save buffered chunks as one object. No-op when nothing was written."""
        if self._closed:
            return Ok(None)
        self._closed = True
        spool, self._spool = self._spool, None
        if spool is None:
            return Ok(None)
        try:
            spool.seek(0)
            return await self.save(Payload.blob(spool, self._spooled))
        finally:
            spool.close()

    def discard(self) -> None:
        """Drop buffered chunks without saving."""
        self._closed = True
        spool, self._spool = self._spool, None
        if spool is not None:
            spool.close()

    async def __aenter__(self) -> WriteSession:
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        if exc_type is not None:
            self.discard()
            return
        (await self.close()).unwrap()

    def __repr__(self) -> str:
        return f"WriteSession({self._path!r}, append={self._options.append})"


__all__ = ["WriteOptions", "WriteSession", "to_metadata"]
