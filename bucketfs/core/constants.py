"""
System-Wide Constants for the Bucket Filesystem

All magic numbers and configuration defaults centralized here.
"""

from typing import Final

# =============================================================================
# SIZE AND TIME UNITS
# =============================================================================
KB: Final[int] = 1024
MB: Final[int] = 1024 * KB

SECOND: Final[int] = 1
HOUR: Final[int] = 3600 * SECOND
DAY: Final[int] = 24 * HOUR

# =============================================================================
# PATHS AND KEYS
# =============================================================================
SEPARATOR: Final[str] = "/"
ROOT_PATH: Final[str] = "/"

# =============================================================================
# LISTING
# =============================================================================
DEFAULT_LIST_PAGE_SIZE: Final[int] = 1000
MAX_LIST_PAGE_SIZE: Final[int] = 1000

# =============================================================================
# READ / WRITE
# =============================================================================
DEFAULT_READ_CHUNK_SIZE: Final[int] = 64 * KB

# Below this a BLOB merge stays in memory before spilling to disk
SPOOL_MAX_MEMORY_BYTES: Final[int] = 8 * MB

# S3 minimum multipart part size (last part excepted)
MIN_MULTIPART_CHUNK: Final[int] = 5 * MB
DEFAULT_MULTIPART_CHUNK: Final[int] = 8 * MB
MAX_CONCURRENT_PARTS: Final[int] = 4

# =============================================================================
# SIGNED URLS
# =============================================================================
DEFAULT_URL_EXPIRES_SECONDS: Final[int] = DAY
