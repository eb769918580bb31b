"""
Configuration Management for the Bucket Filesystem

Provides validated configuration with sensible defaults.
Supports environment variable overrides.

Design:
- Immutable after validation
- Fail-fast on invalid configuration
- Type-safe with dataclasses
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from bucketfs.core import constants as C
from bucketfs.core.types import Err, Ok, Result
from bucketfs.storage.config import S3Config

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass(frozen=True)
class FileSystemConfig:
    """
    Root configuration for an S3FileSystem.

    `s3` may be omitted when the filesystem is given its own client
    factory (e.g. the in-memory client).
    """

    repository: str
    s3: Optional[S3Config] = None
    list_page_size: int = C.DEFAULT_LIST_PAGE_SIZE
    read_chunk_size: int = C.DEFAULT_READ_CHUNK_SIZE
    url_expires_seconds: int = C.DEFAULT_URL_EXPIRES_SECONDS
    log_level: str = "INFO"
    log_json: bool = False

    @classmethod
    def from_env(cls, prefix: str = "BUCKETFS") -> Result[FileSystemConfig, str]:
        """
        Load configuration from environment variables.

        Example: BUCKETFS_REPOSITORY, BUCKETFS_LIST_PAGE_SIZE. The S3
        section is read through S3Config.from_env() when S3_BUCKET is set.
        """
        try:
            repository = os.getenv(f"{prefix}_REPOSITORY", "")
            if not repository:
                return Err(f"Configuration error: {prefix}_REPOSITORY is required")

            s3 = S3Config.from_env() if os.getenv("S3_BUCKET") else None

            config = cls(
                repository=repository,
                s3=s3,
                list_page_size=int(os.getenv(
                    f"{prefix}_LIST_PAGE_SIZE", str(C.DEFAULT_LIST_PAGE_SIZE),
                )),
                read_chunk_size=int(os.getenv(
                    f"{prefix}_READ_CHUNK_SIZE", str(C.DEFAULT_READ_CHUNK_SIZE),
                )),
                url_expires_seconds=int(os.getenv(
                    f"{prefix}_URL_EXPIRES_SECONDS", str(C.DEFAULT_URL_EXPIRES_SECONDS),
                )),
                log_level=os.getenv(f"{prefix}_LOG_LEVEL", "INFO").upper(),
                log_json=os.getenv(f"{prefix}_LOG_JSON", "false").lower() in ("true", "1", "yes"),
            )
        except (ValueError, TypeError) as e:
            return Err(f"Configuration error: {e}")

        return config.validate().map(lambda _: config)

    def validate(self) -> Result[None, str]:
        """Validate configuration invariants."""
        if not self.repository.strip("/"):
            return Err("repository must name at least one path segment")
        if not 0 < self.list_page_size <= C.MAX_LIST_PAGE_SIZE:
            return Err(f"list_page_size must be in 1..{C.MAX_LIST_PAGE_SIZE}")
        if self.read_chunk_size <= 0:
            return Err("read_chunk_size must be > 0")
        if self.url_expires_seconds <= 0:
            return Err("url_expires_seconds must be > 0")
        if self.log_level not in _LOG_LEVELS:
            return Err(f"Unknown log_level: {self.log_level}")
        return Ok(None)
