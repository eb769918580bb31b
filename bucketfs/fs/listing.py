"""
Listing Paginator: Direct Children of a Directory

LIST with prefix = directory key and delimiter "/" returns, per page,
common prefixes (subdirectories) and objects (files) one level down.
Truncated pages are followed sequentially with the continuation token,
so entries come back in the store's order.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from bucketfs.core import constants as C
from bucketfs.core.constants import SEPARATOR
from bucketfs.core.errors import FileSystemError
from bucketfs.core.types import Entry, Err, Ok, Result
from bucketfs.fs.keys import PathKeyCodec, join_paths
from bucketfs.fs.resolver import ClientProvider
from bucketfs.storage.protocols import ListPage

logger = logging.getLogger(__name__)


def _last_segment(key: str) -> str:
    segments = [s for s in key.split(SEPARATOR) if s]
    return segments[-1] if segments else ""


def page_entries(path: str, prefix: str, page: ListPage) -> List[Entry]:
    """
    Entries of one page.

    Directories first, then files, each in page order. The query prefix
    itself (as a common prefix or as the marker object) is skipped.
    """
    entries: List[Entry] = []
    for common in page.prefixes:
        if common == prefix:
            continue
        name = _last_segment(common[len(prefix):])
        if not name:
            continue
        entries.append(Entry(
            path=join_paths(path, name) + SEPARATOR,
            name=name,
            is_directory=True,
        ))
    for obj in page.objects:
        if obj.key == prefix:
            continue
        name = obj.key[len(prefix):].split(SEPARATOR)[-1]
        if not name:
            continue
        entries.append(Entry(
            path=join_paths(path, name),
            name=name,
            is_directory=False,
        ))
    return entries


class ListingPaginator:
    """Lists the direct children of a directory path."""

    __slots__ = ("_codec", "_get_client", "_page_size")

    def __init__(
        self,
        codec: PathKeyCodec,
        get_client: ClientProvider,
        page_size: int = C.DEFAULT_LIST_PAGE_SIZE,
    ) -> None:
        if not 0 < page_size <= C.MAX_LIST_PAGE_SIZE:
            raise ValueError(f"page_size must be in 1..{C.MAX_LIST_PAGE_SIZE}, got {page_size}")
        self._codec = codec
        self._get_client = get_client
        self._page_size = page_size

    @property
    def page_size(self) -> int:
        return self._page_size

    async def list(self, path: str) -> Result[List[Entry], FileSystemError]:
        """
        All direct children of `path`.

        A NotFound on the first page yields an empty list; any other
        failure is NotReadable.
        """
        client_result = await self._get_client()
        if client_result.is_err():
            return client_result
        client = client_result.unwrap()

        prefix = self._codec.directory_key(path)
        entries: List[Entry] = []
        token: Optional[str] = None
        pages = 0

        while True:
            page_result = await client.list(
                prefix,
                delimiter=SEPARATOR,
                continuation_token=token,
                max_keys=self._page_size,
            )
            if page_result.is_err():
                error = FileSystemError.classify(
                    page_result.error, self._codec.repository, path, write=False,
                )
                if error.is_not_found and pages == 0:
                    return Ok([])
                logger.warning("Listing %s failed after %d page(s): %s", path, pages, error)
                return Err(error)

            page = page_result.unwrap()
            pages += 1
            entries.extend(page_entries(path, prefix, page))

            if not page.truncated or not page.next_token:
                break
            token = page.next_token

        logger.debug("Listed %d entries of %s in %d page(s)", len(entries), path, pages)
        return Ok(entries)


__all__ = ["ListingPaginator", "page_entries"]
