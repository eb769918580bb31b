#!/usr/bin/env python3
"""
bucketfs demo

Walks through the filesystem operations against a bucket configured from
the environment, or against the in-memory store when S3_BUCKET is unset.

Usage:
    python -m bucketfs

    # Against MinIO
    S3_BUCKET=scratch S3_ENDPOINT_URL=http://localhost:9000 \\
    S3_FORCE_PATH_STYLE=true BUCKETFS_REPOSITORY=demo python -m bucketfs
"""

from __future__ import annotations

import asyncio
import os
import sys

from bucketfs.core.config import FileSystemConfig
from bucketfs.core.types import Result
from bucketfs.fs.filesystem import S3FileSystem
from bucketfs.fs.write import WriteOptions
from bucketfs.observability.logging import LogLevel, setup_logging
from bucketfs.storage.memory_client import InMemoryObjectStoreClient


def _check(result: Result, what: str) -> object:
    if result.is_err():
        print(f"✗ {what}: {result.error}")
        sys.exit(1)
    print(f"✓ {what}")
    return result.unwrap()


async def demo() -> None:
    print("\n" + "=" * 60)
    print("bucketfs - Filesystem over an Object Store")
    print("=" * 60 + "\n")

    os.environ.setdefault("BUCKETFS_REPOSITORY", "demo")
    config = _check(FileSystemConfig.from_env(), "Configuration loaded and validated")
    setup_logging(LogLevel.from_name(config.log_level), json_output=config.log_json)

    if config.s3 is None:
        print("  Store: in-memory (set S3_BUCKET to use a real bucket)")
        fs = S3FileSystem(config, client_factory=InMemoryObjectStoreClient)
    else:
        print(f"  Store: s3://{config.s3.bucket_name}/{config.repository}")
        fs = S3FileSystem(config)

    async with fs:
        _check(await fs.make_directory("/notes"), "make_directory /notes")
        _check(await fs.write("/notes/today.md", b"# Today\n"), "write /notes/today.md")
        _check(
            await fs.write("/notes/today.md", b"- ship bucketfs\n", WriteOptions(append=True)),
            "append /notes/today.md",
        )
        _check(await fs.patch_metadata("/notes/today.md", {"size": 0, "owner": "demo"}), "patch_metadata")

        stats = _check(await fs.get_stats("/notes/today.md"), "get_stats /notes/today.md")
        print(f"  size={stats.size} etag={stats.etag} props={stats.props}")

        text = _check(await fs.read_text("/notes/today.md"), "read_text /notes/today.md")
        print("  " + text.replace("\n", "\n  ").rstrip())

        children = _check(await fs.list_children("/notes"), "list_children /notes")
        print(f"  {children}")

        url = _check(await fs.to_signed_url("/notes/today.md", "GET", 300), "to_signed_url GET")
        print(f"  {url[:80]}")

        _check(await fs.remove_directory("/notes", recursive=True), "remove_directory /notes")

    print("\n✓ Demo complete")
    print("=" * 60 + "\n")


async def main() -> None:
    """Main entry point."""
    try:
        await demo()
    except KeyboardInterrupt:
        print("\nInterrupted")


def run() -> None:
    """Synchronous entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
