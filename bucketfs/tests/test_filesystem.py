"""
Unit Tests: S3FileSystem Facade

Tests:
    - Single-flight client bootstrap and root marker
    - Directory creation and removal
    - Metadata patching by self-copy
    - Signed URLs
"""

import asyncio

import pytest

from bucketfs.core.config import FileSystemConfig
from bucketfs.core.errors import ErrorCode, StoreError
from bucketfs.core.types import Stats
from bucketfs.fs.filesystem import S3FileSystem
from bucketfs.fs.urls import URLType
from bucketfs.tests.support import make_fs


class TestConstruction:
    """Tests for filesystem construction."""

    def test_invalid_config_rejected(self):
        with pytest.raises(ValueError):
            S3FileSystem(FileSystemConfig(repository="repo", list_page_size=0), client_factory=object)

    def test_client_source_required(self):
        with pytest.raises(ValueError):
            S3FileSystem(FileSystemConfig(repository="repo"))

    def test_repository_normalized(self):
        fs, _ = make_fs()
        assert fs.repository == "repo"
        assert fs.codec.root_key == "repo/"


class TestBootstrap:
    """Tests for lazy client bootstrap."""

    @pytest.mark.asyncio
    async def test_concurrent_first_calls_bootstrap_once(self):
        fs, recording = make_fs()

        results = await asyncio.gather(*(fs.exists(f"/p{i}") for i in range(8)))

        assert all(r.is_ok() for r in results)
        assert recording.inner.connect_count == 1
        assert recording.ops("put") == [("put", "repo/")]
        assert recording.inner.data_of("repo/") == b""

    @pytest.mark.asyncio
    async def test_existing_root_marker_kept(self):
        fs, recording = make_fs()
        recording.inner.seed("repo/", b"", {"owner": "ops"})

        (await fs.exists("/")).unwrap()

        assert recording.ops("put") == []
        assert recording.inner.metadata_of("repo/") == {"owner": "ops"}

    @pytest.mark.asyncio
    async def test_failed_bootstrap_is_retried(self):
        failures = []

        def flaky_root(operation, key):
            if operation == "head" and key == "repo/" and not failures:
                failures.append(key)
                return StoreError.request_failed(operation, key, status=503)
            return None

        fs, recording = make_fs(fault_injector=flaky_root)

        first = await fs.exists("/x")
        assert first.error.code == ErrorCode.FS_NOT_READABLE
        assert recording.inner.close_count == 1

        assert (await fs.exists("/x")).unwrap() is False
        assert recording.inner.connect_count == 2

    @pytest.mark.asyncio
    async def test_marker_put_failure(self):
        def deny_put(operation, key):
            if operation == "put":
                return StoreError.request_failed(operation, key, store_code="AccessDenied", status=403)
            return None

        fs, _ = make_fs(fault_injector=deny_put)
        result = await fs.list_children("/")
        assert result.error.code == ErrorCode.FS_NO_MODIFICATION_ALLOWED

    @pytest.mark.asyncio
    async def test_dispose_closes_and_rebootstraps(self):
        fs, recording = make_fs()
        async with fs:
            (await fs.exists("/")).unwrap()
        assert recording.inner.close_count == 1

        (await fs.exists("/")).unwrap()
        assert recording.inner.connect_count == 2


class TestDirectories:
    """Tests for directory creation and removal."""

    @pytest.mark.asyncio
    async def test_make_directory_writes_marker(self):
        fs, recording = make_fs()

        (await fs.make_directory("/d/e")).unwrap()

        assert recording.inner.data_of("repo/d/e/") == b""
        assert (await fs.get_stats("/d/e")).unwrap().is_directory
        assert (await fs.list_children("/d")).unwrap() == ["/d/e/"]

    @pytest.mark.asyncio
    async def test_remove_file(self):
        fs, recording = make_fs()
        recording.inner.seed("repo/f", b"x")

        (await fs.remove_file("/f")).unwrap()

        assert recording.inner.data_of("repo/f") is None
        assert (await fs.exists("/f")).unwrap() is False

    @pytest.mark.asyncio
    async def test_remove_missing_file_succeeds(self):
        fs, _ = make_fs()
        assert (await fs.remove_file("/never")).is_ok()

    @pytest.mark.asyncio
    async def test_remove_directory_keeps_children(self):
        fs, recording = make_fs()
        recording.inner.seed("repo/d/", b"")
        recording.inner.seed("repo/d/a", b"a")

        (await fs.remove_directory("/d")).unwrap()

        assert recording.inner.data_of("repo/d/") is None
        assert recording.inner.data_of("repo/d/a") == b"a"
        assert (await fs.get_stats("/d")).unwrap() == Stats()

    @pytest.mark.asyncio
    async def test_recursive_remove_empties_prefix(self):
        fs, recording = make_fs(list_page_size=2)
        for key in ("repo/d/", "repo/d/a", "repo/d/b/", "repo/d/b/c", "repo/d/b/e/f", "repo/keep"):
            recording.inner.seed(key, b"-")

        (await fs.remove_directory("/d", recursive=True)).unwrap()

        assert recording.inner.keys() == ["repo/", "repo/keep"]
        assert (await fs.exists("/d")).unwrap() is False

    @pytest.mark.asyncio
    async def test_delete_failure_is_no_modification(self):
        def deny_delete(operation, key):
            if operation == "delete":
                return StoreError.request_failed(operation, key, store_code="AccessDenied", status=403)
            return None

        fs, _ = make_fs(fault_injector=deny_delete)
        result = await fs.remove_file("/f")
        assert result.error.code == ErrorCode.FS_NO_MODIFICATION_ALLOWED


class TestPatchMetadata:
    """Tests for custom prop replacement."""

    @pytest.mark.asyncio
    async def test_props_without_size_patch_directory_marker(self):
        fs, recording = make_fs()
        recording.inner.seed("repo/d/", b"")

        (await fs.patch_metadata("/d", {"color": "red"})).unwrap()

        assert recording.ops("copy") == [("copy", "repo/d/")]
        assert recording.inner.metadata_of("repo/d/") == {"color": "red"}

    @pytest.mark.asyncio
    async def test_file_stats_patch_file_and_keep_content(self):
        fs, recording = make_fs()
        recording.inner.seed("repo/f", b"content", {"old": "1"})
        stats = (await fs.get_stats("/f")).unwrap()

        patched = Stats(size=stats.size, modified=stats.modified, etag=stats.etag, props={"new": "2"})
        (await fs.patch_metadata("/f", patched)).unwrap()

        assert recording.ops("copy") == [("copy", "repo/f")]
        assert recording.inner.metadata_of("repo/f") == {"new": "2"}
        assert recording.inner.data_of("repo/f") == b"content"

    @pytest.mark.asyncio
    async def test_missing_object_not_found(self):
        fs, _ = make_fs()
        result = await fs.patch_metadata("/nope", {"size": 1, "k": "v"})
        assert result.error.code == ErrorCode.FS_NOT_FOUND


class TestSignedURLs:
    """Tests for presigned URLs."""

    @pytest.mark.asyncio
    async def test_unknown_type_fails_before_store_contact(self):
        fs, recording = make_fs()

        result = await fs.to_signed_url("/f", "PATCH")

        assert result.error.code == ErrorCode.FS_NOT_SUPPORTED
        assert recording.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "url_type, operation",
        [
            ("get", "get_object"),
            ("PUT", "put_object"),
            ("post", "put_object"),
            (URLType.DELETE, "delete_object"),
        ],
    )
    async def test_url_types(self, url_type, operation):
        fs, _ = make_fs()

        url = (await fs.to_signed_url("/docs/a.txt", url_type)).unwrap()

        assert url == f"memory://memory/repo/docs/a.txt?op={operation}&expires=86400"

    @pytest.mark.asyncio
    async def test_custom_expiry(self):
        fs, _ = make_fs()
        url = (await fs.to_signed_url("/a", expires=60)).unwrap()
        assert url.endswith("expires=60")

    def test_post_is_put_alias(self):
        assert URLType.parse("POST") is URLType.PUT
        assert URLType.parse("bogus") is None
