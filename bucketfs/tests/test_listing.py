"""
Unit Tests: Directory Listing

Tests:
    - Child extraction from prefixes and objects
    - Pagination across truncated pages
    - Missing and failing listings
"""

import pytest

from bucketfs.core.errors import ErrorCode, StoreError
from bucketfs.core.types import Entry
from bucketfs.fs.listing import ListingPaginator, page_entries
from bucketfs.storage.protocols import ListedObject, ListPage
from bucketfs.tests.support import make_fs


def _seed_tree(client):
    client.seed("repo/d/", b"")
    client.seed("repo/d/a.txt", b"a")
    client.seed("repo/d/b/x.txt", b"x")
    client.seed("repo/d/b/y/z.txt", b"z")
    client.seed("repo/d/c.txt", b"c")
    client.seed("repo/d/e/", b"")
    client.seed("repo/other.txt", b"o")


class TestPageEntries:
    """Tests for per-page child extraction."""

    def test_prefixes_then_objects(self):
        page = ListPage(
            prefixes=["repo/d/sub/"],
            objects=[ListedObject(key="repo/d/f.txt")],
        )
        assert page_entries("/d", "repo/d/", page) == [
            Entry(path="/d/sub/", name="sub", is_directory=True),
            Entry(path="/d/f.txt", name="f.txt", is_directory=False),
        ]

    def test_query_prefix_skipped(self):
        page = ListPage(
            prefixes=["repo/d/"],
            objects=[ListedObject(key="repo/d/")],
        )
        assert page_entries("/d", "repo/d/", page) == []

    def test_root_listing_paths(self):
        page = ListPage(prefixes=["repo/a/"], objects=[ListedObject(key="repo/b")])
        entries = page_entries("/", "repo/", page)
        assert [e.path for e in entries] == ["/a/", "/b"]


class TestListingPaginator:
    """Tests for listings through the filesystem."""

    @pytest.mark.asyncio
    async def test_direct_children_only(self):
        fs, recording = make_fs()
        _seed_tree(recording.inner)

        children = (await fs.list_children("/d")).unwrap()

        assert sorted(children) == ["/d/a.txt", "/d/b/", "/d/c.txt", "/d/e/"]

    @pytest.mark.asyncio
    async def test_no_self_or_marker_entries(self):
        fs, recording = make_fs()
        _seed_tree(recording.inner)

        entries = (await fs.list_entries("/d")).unwrap()

        assert all(e.path not in ("/d", "/d/") for e in entries)
        assert all(e.path.endswith("/") == e.is_directory for e in entries)

    @pytest.mark.asyncio
    async def test_single_item_pages_equal_full_page(self):
        small, small_recording = make_fs(list_page_size=1)
        full, full_recording = make_fs(list_page_size=1000)
        _seed_tree(small_recording.inner)
        _seed_tree(full_recording.inner)

        paged = (await small.list_entries("/d")).unwrap()
        whole = (await full.list_entries("/d")).unwrap()

        assert sorted(e.path for e in paged) == sorted(e.path for e in whole)
        assert len(paged) == len(set(e.path for e in paged))
        assert len(small_recording.ops("list")) > len(full_recording.ops("list"))

    @pytest.mark.asyncio
    async def test_root_listing(self):
        fs, recording = make_fs()
        _seed_tree(recording.inner)

        assert sorted((await fs.list_children("/")).unwrap()) == ["/d/", "/other.txt"]

    @pytest.mark.asyncio
    async def test_missing_directory_lists_empty(self):
        fs, _ = make_fs()
        assert (await fs.list_children("/nothing")).unwrap() == []

    @pytest.mark.asyncio
    async def test_not_found_first_page_is_empty(self):
        def missing(operation, key):
            if operation == "list" and key == "repo/gone/":
                return StoreError.not_found(operation, key)
            return None

        fs, _ = make_fs(fault_injector=missing)
        assert (await fs.list_children("/gone")).unwrap() == []

    @pytest.mark.asyncio
    async def test_other_failures_not_readable(self):
        def denied(operation, key):
            if operation == "list":
                return StoreError.request_failed(operation, key, store_code="AccessDenied", status=403)
            return None

        fs, _ = make_fs(fault_injector=denied)
        result = await fs.list_children("/d")
        assert result.error.code == ErrorCode.FS_NOT_READABLE

    def test_page_size_validated(self):
        with pytest.raises(ValueError):
            ListingPaginator(None, None, page_size=0)
