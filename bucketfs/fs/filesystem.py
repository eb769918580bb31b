"""
S3 FileSystem: Hierarchical Files and Directories over an Object Store
======================================================================

Facade wiring the path codec, existence resolver, listing paginator,
read/write sessions, metadata patcher and signed URL issuer to one lazily
bootstrapped object store client.

Design Principles:
------------------
1. **Lazy Client**: The client is created, connected and the repository
   root marker ensured on first use, once, under a single-flight lock
2. **Result Monad**: Every fallible operation returns Result[T, FileSystemError]
3. **No Caching**: Keys and stats are computed per call
4. **Classified Errors**: Store failures never reach callers unclassified

Example:
    >>> config = FileSystemConfig(repository="docs", s3=S3Config(bucket_name="my-bucket"))
    >>> async with S3FileSystem(config) as fs:
    ...     (await fs.write("/notes/today.md", b"# Today")).unwrap()
    ...     stats = (await fs.get_stats("/notes/today.md")).unwrap()

License: MIT
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, List, Mapping, Optional, Union

from bucketfs.core.config import FileSystemConfig
from bucketfs.core.errors import FileSystemError
from bucketfs.core.payload import Payload
from bucketfs.core.types import Entry, EntryKind, Err, Ok, Result, Stats
from bucketfs.fs.keys import PathKeyCodec
from bucketfs.fs.listing import ListingPaginator
from bucketfs.fs.metadata import MetadataPatcher
from bucketfs.fs.read import ReadOptions, ReadSession
from bucketfs.fs.resolver import ExistenceResolver
from bucketfs.fs.urls import SignedURLIssuer, URLType
from bucketfs.fs.write import WriteOptions, WriteSession
from bucketfs.observability.logging import LogLevel, StructuredLogger
from bucketfs.storage import create_object_store_client
from bucketfs.storage.protocols import ObjectStoreClient

ClientFactory = Callable[[], ObjectStoreClient]


class S3FileSystem:
    """
    Path-based file and directory operations over a flat object store.

    Either `config.s3` or a `client_factory` must be provided; the factory
    wins when both are.
    """

    __slots__ = (
        "_config",
        "_codec",
        "_client_factory",
        "_client",
        "_client_lock",
        "_log",
        "_resolver",
        "_paginator",
        "_patcher",
        "_urls",
    )

    def __init__(
        self,
        config: FileSystemConfig,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        validation = config.validate()
        if validation.is_err():
            raise ValueError(validation.error)
        if client_factory is None:
            if config.s3 is None:
                raise ValueError("FileSystemConfig.s3 is required without a client_factory")
            client_factory = lambda: create_object_store_client(  # noqa: E731
                config.s3, read_chunk_size=config.read_chunk_size,
            )

        self._config = config
        self._codec = PathKeyCodec(config.repository)
        self._client_factory = client_factory
        self._client: Optional[ObjectStoreClient] = None
        self._client_lock = asyncio.Lock()
        self._log = StructuredLogger(__name__, LogLevel.from_name(config.log_level)).with_extra(
            repository=self._codec.repository,
        )

        self._resolver = ExistenceResolver(self._codec, self._get_client)
        self._paginator = ListingPaginator(self._codec, self._get_client, config.list_page_size)
        self._patcher = MetadataPatcher(self._codec, self._get_client)
        self._urls = SignedURLIssuer(self._codec, self._get_client, config.url_expires_seconds)

    @classmethod
    def from_env(cls) -> Result[S3FileSystem, str]:
        """Filesystem configured from BUCKETFS_* and S3_* variables."""
        config_result = FileSystemConfig.from_env()
        if config_result.is_err():
            return config_result
        config = config_result.unwrap()
        if config.s3 is None:
            return Err("Configuration error: S3_BUCKET is required")
        return Ok(cls(config))

    @property
    def repository(self) -> str:
        return self._codec.repository

    @property
    def codec(self) -> PathKeyCodec:
        return self._codec

    @property
    def config(self) -> FileSystemConfig:
        return self._config

    # -------------------------------------------------------------------------
    # CLIENT BOOTSTRAP
    # -------------------------------------------------------------------------

    async def _get_client(self) -> Result[ObjectStoreClient, FileSystemError]:
        """
        The connected client, bootstrapping it on first use.

        Bootstrap HEADs the root directory key and PUTs an empty marker
        when it is missing. A failed bootstrap closes the client and is
        not cached, so the next call starts over.
        """
        if self._client is not None:
            return Ok(self._client)

        async with self._client_lock:
            if self._client is not None:
                return Ok(self._client)

            client = self._client_factory()
            result = await self._bootstrap(client)
            if result.is_err():
                await client.close()
                self._log.error(
                    "Client bootstrap failed",
                    error_code=result.error.code.name,
                    error=result.error.message,
                )
                return result

            self._client = client
            return Ok(client)

    async def _bootstrap(self, client: ObjectStoreClient) -> Result[None, FileSystemError]:
        repository = self._codec.repository
        root = self._codec.root_key

        connected = await client.connect()
        if connected.is_err():
            return Err(FileSystemError.classify(connected.error, repository, "/", write=False))

        head = await client.head(root)
        if head.is_ok():
            self._log.debug("Root marker present", key=root)
            return Ok(None)
        if not head.error.is_not_found:
            return Err(FileSystemError.classify(head.error, repository, "/", write=False))

        created = await client.put(root, Payload.empty(), content_length=0)
        if created.is_err():
            return Err(FileSystemError.no_modification_allowed(repository, "/", cause=created.error))
        self._log.info("Created root marker", key=root)
        return Ok(None)

    async def dispose(self) -> None:
        """Close the client. A later call bootstraps a new one."""
        async with self._client_lock:
            client, self._client = self._client, None
        if client is not None:
            await client.close()
            self._log.debug("Client disposed")

    async def __aenter__(self) -> S3FileSystem:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.dispose()

    def _failed(self, operation: str, path: str, error: FileSystemError) -> None:
        if error.is_not_found:
            self._log.debug(f"{operation} found nothing", path=path)
        else:
            self._log.warning(
                f"{operation} failed",
                path=path,
                error_code=error.code.name,
                error_id=error.error_id,
            )

    # -------------------------------------------------------------------------
    # STATS AND LISTINGS
    # -------------------------------------------------------------------------

    async def get_stats(
        self,
        path: str,
        kind: Optional[EntryKind] = None,
    ) -> Result[Stats, FileSystemError]:
        """Stats of a file, explicit directory or implicit directory."""
        with StructuredLogger.operation("get_stats", path=path):
            result = await self._resolver.resolve(path, kind)
            if result.is_err():
                self._failed("get_stats", path, result.error)
            return result

    async def exists(
        self,
        path: str,
        kind: Optional[EntryKind] = None,
    ) -> Result[bool, FileSystemError]:
        result = await self._resolver.resolve(path, kind)
        if result.is_ok():
            return Ok(True)
        if result.error.is_not_found:
            return Ok(False)
        return result

    async def list_entries(self, path: str) -> Result[List[Entry], FileSystemError]:
        """Direct children of a directory, directories with a trailing "/"."""
        with StructuredLogger.operation("list", path=path):
            result = await self._paginator.list(path)
            if result.is_err():
                self._failed("list", path, result.error)
            return result

    async def list_children(self, path: str) -> Result[List[str], FileSystemError]:
        """Paths of the direct children of a directory."""
        return (await self.list_entries(path)).map(lambda entries: [e.path for e in entries])

    # -------------------------------------------------------------------------
    # READ
    # -------------------------------------------------------------------------

    def open_read(self, path: str, options: Optional[ReadOptions] = None) -> ReadSession:
        """Read session over a file. Nothing is fetched until the first read."""
        return ReadSession(
            self._codec,
            self._get_client,
            path,
            options,
            chunk_size=self._config.read_chunk_size,
        )

    async def read_bytes(
        self,
        path: str,
        options: Optional[ReadOptions] = None,
    ) -> Result[bytes, FileSystemError]:
        async with self.open_read(path, options) as session:
            result = await session.read_all()
        if result.is_err():
            self._failed("read", path, result.error)
        return result

    async def read_text(
        self,
        path: str,
        encoding: str = "utf-8",
    ) -> Result[str, FileSystemError]:
        return (await self.read_bytes(path)).map(lambda data: data.decode(encoding))

    # -------------------------------------------------------------------------
    # WRITE
    # -------------------------------------------------------------------------

    async def _previous_stats(
        self,
        path: str,
        options: WriteOptions,
    ) -> Result[Optional[Stats], FileSystemError]:
        result = await self._resolver.resolve(path, EntryKind.FILE)
        if result.is_ok():
            return result
        if result.error.is_not_found and options.create:
            return Ok(None)
        return result

    async def open_write(
        self,
        path: str,
        options: Optional[WriteOptions] = None,
    ) -> Result[WriteSession, FileSystemError]:
        """
        Write session over a file, primed with its current stats so custom
        props survive and appends see the existing content.
        """
        options = options or WriteOptions()
        stats = await self._previous_stats(path, options)
        if stats.is_err():
            self._failed("open_write", path, stats.error)
            return stats
        return Ok(WriteSession(
            self._codec,
            self._get_client,
            path,
            options,
            stats=stats.unwrap(),
            chunk_size=self._config.read_chunk_size,
        ))

    async def write(
        self,
        path: str,
        data: Any,
        options: Optional[WriteOptions] = None,
    ) -> Result[None, FileSystemError]:
        """
        Replace (or with options.append, extend) a file.

        `data` may be bytes, str, a seekable binary file, an async
        iterable of bytes, a PushSource or a Payload.
        """
        with StructuredLogger.operation("write", path=path):
            session_result = await self.open_write(path, options)
            if session_result.is_err():
                return session_result
            result = await session_result.unwrap().save(data)
            if result.is_err():
                self._failed("write", path, result.error)
            return result

    # -------------------------------------------------------------------------
    # DIRECTORIES AND DELETION
    # -------------------------------------------------------------------------

    async def make_directory(self, path: str) -> Result[None, FileSystemError]:
        """Create the directory marker (an empty object at the directory key)."""
        client_result = await self._get_client()
        if client_result.is_err():
            return client_result
        key = self._codec.directory_key(path)
        result = await client_result.unwrap().put(key, Payload.empty(), content_length=0)
        if result.is_err():
            error = FileSystemError.classify(result.error, self.repository, path, write=True)
            self._failed("make_directory", path, error)
            return Err(error)
        return Ok(None)

    async def remove_directory(
        self,
        path: str,
        recursive: bool = False,
    ) -> Result[None, FileSystemError]:
        """
        Delete the directory marker.

        With `recursive`, children are deleted first, depth-first. Without
        it, children are left in place and the directory stays implicit.
        """
        with StructuredLogger.operation("remove_directory", path=path, recursive=recursive):
            if recursive:
                entries = await self._paginator.list(path)
                if entries.is_err():
                    return entries
                for entry in entries.unwrap():
                    if entry.is_directory:
                        removed = await self.remove_directory(entry.path, recursive=True)
                    else:
                        removed = await self.remove_file(entry.path)
                    if removed.is_err():
                        return removed

            return await self._delete(path, is_directory=True)

    async def remove_file(self, path: str) -> Result[None, FileSystemError]:
        return await self._delete(path, is_directory=False)

    async def _delete(self, path: str, is_directory: bool) -> Result[None, FileSystemError]:
        client_result = await self._get_client()
        if client_result.is_err():
            return client_result
        key = self._codec.to_key(path, is_directory)
        result = await client_result.unwrap().delete(key)
        if result.is_err():
            error = FileSystemError.classify(result.error, self.repository, path, write=True)
            self._failed("delete", path, error)
            return Err(error)
        self._log.debug("Deleted", key=key)
        return Ok(None)

    # -------------------------------------------------------------------------
    # METADATA AND URLS
    # -------------------------------------------------------------------------

    async def patch_metadata(
        self,
        path: str,
        props: Union[Stats, Mapping[str, Any]],
    ) -> Result[None, FileSystemError]:
        """
        Replace the custom props of a file (props with a size) or a
        directory marker (props without one).
        """
        if isinstance(props, Stats):
            props = props.to_props()
        with StructuredLogger.operation("patch_metadata", path=path):
            result = await self._patcher.patch(path, props)
            if result.is_err():
                self._failed("patch_metadata", path, result.error)
            return result

    async def to_signed_url(
        self,
        path: str,
        url_type: Union[str, URLType] = URLType.GET,
        expires: Optional[int] = None,
    ) -> Result[str, FileSystemError]:
        return await self._urls.to_url(path, url_type, expires)

    def __repr__(self) -> str:
        return f"S3FileSystem(repository={self.repository!r})"


__all__ = ["S3FileSystem", "ClientFactory"]
