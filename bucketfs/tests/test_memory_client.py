"""
Unit Tests: In-Memory Object Store Client
"""

import pytest
import pytest_asyncio

from bucketfs.core.errors import ErrorCode
from bucketfs.core.payload import Payload, PayloadKind, read_all
from bucketfs.core.types import ByteRange
from bucketfs.storage.memory_client import InMemoryObjectStoreClient
from bucketfs.tests.support import chunks_of


@pytest_asyncio.fixture
async def store():
    client = InMemoryObjectStoreClient(part_size=4, chunk_size=2)
    await client.connect()
    yield client
    await client.close()


class TestInMemoryObjectStoreClient:
    """Tests for the in-memory client."""

    @pytest.mark.asyncio
    async def test_requires_connect(self):
        client = InMemoryObjectStoreClient()
        result = await client.head("k")
        assert result.error.code == ErrorCode.STORE_NOT_CONNECTED

    @pytest.mark.asyncio
    async def test_put_head_get(self, store):
        (await store.put("k", Payload.bounded(b"hello"), metadata={"a": "1"})).unwrap()

        head = (await store.head("k")).unwrap()
        assert head.size == 5
        assert head.metadata == {"a": "1"}
        assert head.etag.startswith('"')

        body = (await store.get("k", ByteRange(1, 3))).unwrap()
        assert await read_all(body) == b"ell"

    @pytest.mark.asyncio
    async def test_range_past_end_clipped(self, store):
        store.seed("k", b"abc")
        body = (await store.get("k", ByteRange(2, 10))).unwrap()
        assert await read_all(body) == b"c"

    @pytest.mark.asyncio
    async def test_content_length_mismatch(self, store):
        result = await store.put("k", Payload.bounded(b"abc"), content_length=4)
        assert result.error.store_code == "IncompleteBody"
        assert store.data_of("k") is None

    @pytest.mark.asyncio
    async def test_list_with_delimiter_and_tokens(self, store):
        for key in ("p/a", "p/b/1", "p/b/2", "p/c", "q"):
            store.seed(key)

        first = (await store.list("p/", delimiter="/", max_keys=2)).unwrap()
        assert [o.key for o in first.objects] == ["p/a"]
        assert first.prefixes == ["p/b/"]
        assert first.truncated

        second = (await store.list("p/", delimiter="/", continuation_token=first.next_token)).unwrap()
        assert [o.key for o in second.objects] == ["p/c"]
        assert not second.truncated
        assert second.next_token is None

    @pytest.mark.asyncio
    async def test_copy_keeps_or_replaces_metadata(self, store):
        store.seed("src", b"x", {"a": "1"})

        (await store.copy("src", "kept")).unwrap()
        (await store.copy("src", "src", metadata={"b": "2"})).unwrap()

        assert store.metadata_of("kept") == {"a": "1"}
        assert store.metadata_of("src") == {"b": "2"}
        assert store.data_of("src") == b"x"

    @pytest.mark.asyncio
    async def test_multipart_parts(self, store):
        (await store.multipart_upload("k", chunks_of([b"abc", b"defgh", b"ij"]))).unwrap()
        assert store.data_of("k") == b"abcdefghij"
        assert store.upload_parts["k"] == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize("shape", [PayloadKind.PULL_STREAM, PayloadKind.PUSH_STREAM])
    async def test_streamed_body_shapes(self, shape):
        client = InMemoryObjectStoreClient(body_shape=shape, chunk_size=2)
        await client.connect()
        client.seed("k", b"abcde")

        body = (await client.get("k")).unwrap()

        assert body.kind is shape
        assert await read_all(body) == b"abcde"

    @pytest.mark.asyncio
    async def test_delete_missing_succeeds(self, store):
        assert (await store.delete("never")).is_ok()
