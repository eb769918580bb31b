"""
Shared test helpers: a call-recording client wrapper and filesystem builders.
"""

from __future__ import annotations

from typing import Any, AsyncIterator, Iterable, List, Optional, Tuple

from bucketfs.core.config import FileSystemConfig
from bucketfs.core.payload import PayloadKind
from bucketfs.fs.filesystem import S3FileSystem
from bucketfs.storage.memory_client import FaultInjector, InMemoryObjectStoreClient

REPOSITORY = "repo"

_RECORDED = frozenset({
    "connect",
    "head",
    "get",
    "put",
    "delete",
    "list",
    "copy",
    "presign",
    "multipart_upload",
})


class RecordingClient:
    """Forwards to an ObjectStoreClient, recording (operation, key) per call."""

    def __init__(self, inner: InMemoryObjectStoreClient) -> None:
        self.inner = inner
        self.calls: List[Tuple[str, str]] = []
        self.requests: List[Tuple[str, tuple, dict]] = []

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self.inner, name)
        if name not in _RECORDED:
            return attr

        async def recorded(*args: Any, **kwargs: Any) -> Any:
            self.calls.append((name, args[0] if args else ""))
            self.requests.append((name, args, kwargs))
            return await attr(*args, **kwargs)

        return recorded

    def requests_of(self, operation: str) -> List[Tuple[str, tuple, dict]]:
        return [request for request in self.requests if request[0] == operation]

    def ops(self, operation: Optional[str] = None) -> List[Tuple[str, str]]:
        if operation is None:
            return list(self.calls)
        return [call for call in self.calls if call[0] == operation]


def make_fs(
    body_shape: PayloadKind = PayloadKind.BLOB,
    list_page_size: int = 1000,
    part_size: int = 4,
    chunk_size: int = 3,
    fault_injector: Optional[FaultInjector] = None,
) -> Tuple[S3FileSystem, RecordingClient]:
    """Filesystem over a fresh in-memory store, plus the recorder in front of it."""
    inner = InMemoryObjectStoreClient(
        body_shape=body_shape,
        chunk_size=chunk_size,
        part_size=part_size,
        fault_injector=fault_injector,
    )
    recording = RecordingClient(inner)
    config = FileSystemConfig(
        repository=REPOSITORY,
        list_page_size=list_page_size,
        read_chunk_size=chunk_size,
    )
    return S3FileSystem(config, client_factory=lambda: recording), recording


async def chunks_of(parts: Iterable[bytes]) -> AsyncIterator[bytes]:
    for part in parts:
        yield part
