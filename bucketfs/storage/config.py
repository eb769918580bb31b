"""
Object Store Client Configuration
=================================

Type-safe, immutable configuration for the S3-compatible store client.

Design Principles:
------------------
1. **Immutability**: Configs are frozen to prevent runtime mutation
2. **Validation**: Pre-conditions checked at construction time
3. **Defaults**: Sensible defaults for development; explicit for production
4. **Environment**: Supports loading from environment variables

License: MIT
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

from bucketfs.core import constants as C


@dataclass(frozen=True)
class S3Config:
    """
    S3-compatible object store configuration.

    Supports AWS S3, MinIO, Cloudflare R2, and other S3-compatible stores.

    Attributes:
        bucket_name: S3 bucket name (required).
        region: AWS region.
        endpoint_url: Custom endpoint for MinIO/R2 (None for AWS).
        access_key_id: AWS access key (None for the default credential chain).
        secret_access_key: AWS secret key (None for the default credential chain).
        session_token: Temporary session token for STS.
        multipart_chunksize_bytes: Part size for chunked uploads.
        max_concurrency: Connection pool size and parallel part uploads.
        connect_timeout_seconds: TCP connect timeout.
        read_timeout_seconds: Read operation timeout.
        max_retries: Retry attempts handled by botocore.
        use_ssl: Use HTTPS for connections.
        verify_ssl: Verify SSL certificates (disable for self-signed).
        force_path_style: Path-style addressing (MinIO and most self-hosted stores).
    """
    bucket_name: str
    region: str = "us-east-1"
    endpoint_url: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    session_token: Optional[str] = None

    multipart_chunksize_bytes: int = C.DEFAULT_MULTIPART_CHUNK

    max_concurrency: int = 10
    connect_timeout_seconds: int = 5
    read_timeout_seconds: int = 60
    max_retries: int = 3

    use_ssl: bool = True
    verify_ssl: bool = True
    force_path_style: bool = False

    def __post_init__(self) -> None:
        """
        Validate configuration invariants.

        Raises:
            ValueError: If any invariant is violated.
        """
        if not self.bucket_name or len(self.bucket_name) < 3:
            raise ValueError("bucket_name must be at least 3 characters")

        if self.multipart_chunksize_bytes < C.MIN_MULTIPART_CHUNK:
            raise ValueError(
                f"multipart_chunksize_bytes must be >= {C.MIN_MULTIPART_CHUNK}, "
                f"got {self.multipart_chunksize_bytes}"
            )

        if self.max_concurrency <= 0:
            raise ValueError(f"max_concurrency must be > 0, got {self.max_concurrency}")

        if self.connect_timeout_seconds <= 0:
            raise ValueError("connect_timeout_seconds must be > 0")
        if self.read_timeout_seconds <= 0:
            raise ValueError("read_timeout_seconds must be > 0")
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")

    @classmethod
    def from_env(cls, prefix: str = "S3") -> "S3Config":
        """
        Construct configuration from environment variables.

        Environment Variables:
        - {prefix}_BUCKET: Bucket name (required)
        - {prefix}_REGION: AWS region (default: us-east-1)
        - {prefix}_ENDPOINT_URL: Custom endpoint URL
        - {prefix}_ACCESS_KEY_ID: Access key ID (falls back to AWS_ACCESS_KEY_ID)
        - {prefix}_SECRET_ACCESS_KEY: Secret key (falls back to AWS_SECRET_ACCESS_KEY)
        - AWS_SESSION_TOKEN: STS session token
        - {prefix}_MULTIPART_CHUNKSIZE: Part size in bytes
        - {prefix}_MAX_CONCURRENCY: Parallel operations (default: 10)
        - {prefix}_USE_SSL / {prefix}_VERIFY_SSL: HTTPS settings (default: true)
        - {prefix}_FORCE_PATH_STYLE: Path-style addressing (default: false)

        Raises:
            ValueError: If required bucket_name is missing.
        """
        def _get(key: str, default: str = "") -> str:
            return os.environ.get(f"{prefix}_{key}", default)

        def _get_int(key: str, default: int) -> int:
            val = _get(key)
            return int(val) if val else default

        def _get_bool(key: str, default: bool) -> bool:
            val = _get(key).lower()
            if val in ("true", "1", "yes"):
                return True
            if val in ("false", "0", "no"):
                return False
            return default

        bucket = _get("BUCKET")
        if not bucket:
            raise ValueError(f"Environment variable {prefix}_BUCKET is required")

        return cls(
            bucket_name=bucket,
            region=_get("REGION", "us-east-1"),
            endpoint_url=_get("ENDPOINT_URL") or None,
            access_key_id=_get("ACCESS_KEY_ID") or os.environ.get("AWS_ACCESS_KEY_ID"),
            secret_access_key=_get("SECRET_ACCESS_KEY") or os.environ.get("AWS_SECRET_ACCESS_KEY"),
            session_token=os.environ.get("AWS_SESSION_TOKEN"),
            multipart_chunksize_bytes=_get_int("MULTIPART_CHUNKSIZE", C.DEFAULT_MULTIPART_CHUNK),
            max_concurrency=_get_int("MAX_CONCURRENCY", 10),
            connect_timeout_seconds=_get_int("CONNECT_TIMEOUT", 5),
            read_timeout_seconds=_get_int("READ_TIMEOUT", 60),
            max_retries=_get_int("MAX_RETRIES", 3),
            use_ssl=_get_bool("USE_SSL", True),
            verify_ssl=_get_bool("VERIFY_SSL", True),
            force_path_style=_get_bool("FORCE_PATH_STYLE", False),
        )

    def get_boto_config(self) -> Dict[str, Any]:
        """
        Generate client keyword arguments for aioboto3.

        Returns:
            Dict suitable for session.client('s3', **config) minus the
            botocore Config object, which the client builds itself.
        """
        config: Dict[str, Any] = {
            "region_name": self.region,
            "use_ssl": self.use_ssl,
        }

        if self.endpoint_url:
            config["endpoint_url"] = self.endpoint_url

        if not self.verify_ssl:
            config["verify"] = False

        return config

    def get_session_kwargs(self) -> Dict[str, Any]:
        """Credential arguments for aioboto3.Session."""
        kwargs: Dict[str, Any] = {}
        if self.access_key_id and self.secret_access_key:
            kwargs["aws_access_key_id"] = self.access_key_id
            kwargs["aws_secret_access_key"] = self.secret_access_key
        if self.session_token:
            kwargs["aws_session_token"] = self.session_token
        return kwargs
