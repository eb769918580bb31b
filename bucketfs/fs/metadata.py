"""
Metadata Patcher: Replace Custom Props by Self-Copy

Object stores cannot update metadata in place. The object is copied onto
itself with the REPLACE directive and the new metadata, which leaves the
content unchanged.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from bucketfs.core.errors import FileSystemError
from bucketfs.core.types import Err, Ok, Result
from bucketfs.fs.keys import PathKeyCodec
from bucketfs.fs.resolver import ClientProvider
from bucketfs.fs.write import to_metadata

logger = logging.getLogger(__name__)


class MetadataPatcher:
    """
    Replaces the custom props of a file or directory marker.

    The key flavor follows `props`: a non-None "size" means a file,
    anything else the directory marker.
    """

    __slots__ = ("_codec", "_get_client")

    def __init__(self, codec: PathKeyCodec, get_client: ClientProvider) -> None:
        self._codec = codec
        self._get_client = get_client

    async def patch(self, path: str, props: Mapping[str, Any]) -> Result[None, FileSystemError]:
        repository = self._codec.repository
        client_result = await self._get_client()
        if client_result.is_err():
            return Err(FileSystemError.classify(client_result.error, repository, path, write=True))
        client = client_result.unwrap()

        key = self._codec.to_key(path, is_directory=props.get("size") is None)
        result = await client.copy(key, key, metadata=to_metadata(props))
        if result.is_err():
            logger.warning("Metadata patch of %s failed: %s", key, result.error)
            return Err(FileSystemError.classify(result.error, repository, path, write=True))
        return Ok(None)
