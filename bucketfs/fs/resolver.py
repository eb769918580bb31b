"""
Existence Resolver: Stats for a Path over a Flat Key Space

A path may denote a file (object at the file key), an explicit directory
(marker object at the directory key) or an implicit directory (objects
nested under the directory key, no marker). Three probes answer which:

| Priority | Probe             | Request                                   |
|----------|-------------------|-------------------------------------------|
| 1        | FILE_HEAD         | HEAD file key                             |
| 2        | DIRECTORY_HEAD    | HEAD directory key                        |
| 3        | DIRECTORY_LISTING | LIST prefix=directory key, "/", max 1 key |

All probes that run are issued concurrently and joined; the first
successful probe in priority order decides. A file therefore wins over a
stale marker at the same path.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from bucketfs.core.constants import SEPARATOR
from bucketfs.core.errors import FileSystemError, StoreError
from bucketfs.core.types import EntryKind, Err, Ok, RESERVED_PROPS, Result, Stats
from bucketfs.fs.keys import PathKeyCodec
from bucketfs.storage.protocols import ObjectHead, ObjectStoreClient

logger = logging.getLogger(__name__)

ClientProvider = Callable[[], Awaitable[Result[ObjectStoreClient, FileSystemError]]]


class Probe(Enum):
    """Existence probes in precedence order."""

    FILE_HEAD = 1
    DIRECTORY_HEAD = 2
    DIRECTORY_LISTING = 3


@dataclass(frozen=True, slots=True)
class ProbeOutcome:
    """Settled result of one probe; `result` is None when it was skipped."""

    probe: Probe
    result: Optional[Result[Any, StoreError]] = None

    @property
    def skipped(self) -> bool:
        return self.result is None

    @property
    def ok(self) -> bool:
        return self.result is not None and self.result.is_ok()

    @property
    def error(self) -> Optional[StoreError]:
        if self.result is not None and self.result.is_err():
            return self.result.error
        return None


def user_props(metadata: Dict[str, str]) -> Dict[str, str]:
    """Store user metadata minus keys derived from native fields."""
    return {k: v for k, v in metadata.items() if k not in RESERVED_PROPS}


def stats_from_head(head: ObjectHead, is_directory: bool) -> Stats:
    """Stats from a HEAD response; size is reported for files only."""
    return Stats(
        size=None if is_directory else head.size,
        modified=head.last_modified,
        etag=head.etag,
        props=user_props(head.metadata),
    )


async def _settle(probe: Probe, request: Awaitable[Result[Any, StoreError]], key: str) -> ProbeOutcome:
    try:
        return ProbeOutcome(probe, await request)
    except Exception as e:
        return ProbeOutcome(probe, Err(StoreError.request_failed(probe.name.lower(), key, cause=e)))


class ExistenceResolver:
    """
    Resolves a path to Stats.

    Example:
        resolver = ExistenceResolver(codec, get_client)
        match await resolver.resolve("/docs"):
            case Ok(stats) if stats.is_directory: ...
            case Err(error): ...
    """

    __slots__ = ("_codec", "_get_client")

    def __init__(self, codec: PathKeyCodec, get_client: ClientProvider) -> None:
        self._codec = codec
        self._get_client = get_client

    async def probe(
        self,
        path: str,
        kind: Optional[EntryKind] = None,
    ) -> Result[List[ProbeOutcome], FileSystemError]:
        """
        Run the probes `kind` allows, concurrently, and settle them all.

        Outcomes come back in precedence order, skipped probes included.
        """
        client_result = await self._get_client()
        if client_result.is_err():
            return client_result
        client = client_result.unwrap()

        file_key = self._codec.file_key(path)
        dir_key = self._codec.directory_key(path)
        run_file = kind is None or kind is EntryKind.FILE
        run_dir = kind is None or kind is EntryKind.DIRECTORY

        pending: List[Awaitable[ProbeOutcome]] = []
        if run_file:
            pending.append(_settle(Probe.FILE_HEAD, client.head(file_key), file_key))
        if run_dir:
            pending.append(_settle(Probe.DIRECTORY_HEAD, client.head(dir_key), dir_key))
            pending.append(_settle(
                Probe.DIRECTORY_LISTING,
                client.list(dir_key, delimiter=SEPARATOR, max_keys=1),
                dir_key,
            ))

        settled = {outcome.probe: outcome for outcome in await asyncio.gather(*pending)}
        return Ok([settled.get(probe, ProbeOutcome(probe)) for probe in Probe])

    async def resolve(
        self,
        path: str,
        kind: Optional[EntryKind] = None,
    ) -> Result[Stats, FileSystemError]:
        """
        Stats for `path`, or NotFound / NotReadable.

        Precedence: file head, then directory head, then a non-empty
        listing (implicit directory, all-empty Stats).
        """
        probe_result = await self.probe(path, kind)
        if probe_result.is_err():
            return probe_result
        file_head, dir_head, dir_list = probe_result.unwrap()

        if file_head.ok:
            return Ok(stats_from_head(file_head.result.unwrap(), is_directory=False))
        if dir_head.ok:
            return Ok(stats_from_head(dir_head.result.unwrap(), is_directory=True))
        if dir_list.ok and not dir_list.result.unwrap().is_empty:
            return Ok(Stats())

        return Err(self._failure(path, (file_head, dir_head, dir_list)))

    def _failure(self, path: str, outcomes: tuple[ProbeOutcome, ...]) -> FileSystemError:
        repository = self._codec.repository
        for outcome in outcomes:
            if outcome.error is not None:
                error = FileSystemError.classify(outcome.error, repository, path, write=False)
                if not error.is_not_found:
                    logger.warning("Stat of %s failed on %s: %s", path, outcome.probe.name, outcome.error)
                return error
        return FileSystemError.not_found(repository, path)


__all__ = [
    "ClientProvider",
    "ExistenceResolver",
    "Probe",
    "ProbeOutcome",
    "stats_from_head",
    "user_props",
]
