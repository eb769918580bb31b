"""
Signed URL Issuer

Time-limited presigned URLs for direct client access to one file.

| URL type | Client method  |
|----------|----------------|
| GET      | get_object     |
| PUT      | put_object     |
| POST     | put_object     |
| DELETE   | delete_object  |
"""

from __future__ import annotations

from enum import Enum
from typing import Optional, Union

from bucketfs.core import constants as C
from bucketfs.core.errors import FileSystemError
from bucketfs.core.types import Err, Ok, Result
from bucketfs.fs.keys import PathKeyCodec
from bucketfs.fs.resolver import ClientProvider
from bucketfs.storage.protocols import PRESIGN_DELETE, PRESIGN_GET, PRESIGN_PUT


class URLType(Enum):
    """Kinds of signed URL."""

    GET = PRESIGN_GET
    PUT = PRESIGN_PUT
    POST = PRESIGN_PUT
    DELETE = PRESIGN_DELETE

    @classmethod
    def parse(cls, value: Union[str, URLType]) -> Optional[URLType]:
        """Case-insensitive lookup; None for unknown names."""
        if isinstance(value, URLType):
            return value
        return cls.__members__.get(str(value).upper())

    @property
    def operation(self) -> str:
        return self.value


class SignedURLIssuer:
    """Issues presigned URLs for file keys."""

    __slots__ = ("_codec", "_get_client", "_default_expires")

    def __init__(
        self,
        codec: PathKeyCodec,
        get_client: ClientProvider,
        default_expires: int = C.DEFAULT_URL_EXPIRES_SECONDS,
    ) -> None:
        self._codec = codec
        self._get_client = get_client
        self._default_expires = default_expires

    async def to_url(
        self,
        path: str,
        url_type: Union[str, URLType] = URLType.GET,
        expires: Optional[int] = None,
    ) -> Result[str, FileSystemError]:
        """
        Presigned URL for `path`.

        Unknown URL types fail NotSupported before the store is touched;
        any other failure is NotReadable.
        """
        repository = self._codec.repository
        parsed = URLType.parse(url_type)
        if parsed is None:
            return Err(FileSystemError.not_supported(
                repository, path, f"URL type {url_type!r} is not supported",
            ))

        client_result = await self._get_client()
        if client_result.is_err():
            return client_result
        client = client_result.unwrap()

        expires_in = self._default_expires if expires is None else expires
        result = await client.presign(parsed.operation, self._codec.file_key(path), expires_in)
        if result.is_err():
            return Err(FileSystemError.classify(result.error, repository, path, write=False))
        return Ok(result.unwrap())
