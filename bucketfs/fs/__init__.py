"""
Filesystem module: hierarchical paths over a flat object store.

- PathKeyCodec: paths to file/directory keys
- ExistenceResolver: concurrent probes, strict precedence
- ListingPaginator: direct children across paginated listings
- ReadSession / WriteSession: ranged reads, appends, multipart writes
- MetadataPatcher: custom props by self-copy
- SignedURLIssuer: presigned URLs
- S3FileSystem: facade with lazy client bootstrap
"""

from bucketfs.fs.keys import (
    PathKeyCodec,
    normalize_path,
    join_paths,
    parent_path,
    basename,
)
from bucketfs.fs.resolver import ExistenceResolver, Probe, ProbeOutcome
from bucketfs.fs.listing import ListingPaginator
from bucketfs.fs.read import ReadOptions, ReadSession
from bucketfs.fs.write import WriteOptions, WriteSession
from bucketfs.fs.metadata import MetadataPatcher
from bucketfs.fs.urls import SignedURLIssuer, URLType
from bucketfs.fs.filesystem import S3FileSystem, ClientFactory

__all__ = [
    "PathKeyCodec",
    "normalize_path",
    "join_paths",
    "parent_path",
    "basename",
    "ExistenceResolver",
    "Probe",
    "ProbeOutcome",
    "ListingPaginator",
    "ReadOptions",
    "ReadSession",
    "WriteOptions",
    "WriteSession",
    "MetadataPatcher",
    "SignedURLIssuer",
    "URLType",
    "S3FileSystem",
    "ClientFactory",
]
