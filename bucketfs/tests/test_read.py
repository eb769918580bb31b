"""
Unit Tests: Read Sessions

Tests:
    - Ranged GETs derived from start/length
    - Incremental reads over blob, pull and push bodies
    - Seek and close semantics, including reads still in flight
    - Zero-length reads
"""

import asyncio

import pytest

from bucketfs.core.errors import ErrorCode
from bucketfs.core.payload import ByteEmitter, Payload, PayloadKind
from bucketfs.core.types import ByteRange, Ok
from bucketfs.fs.keys import PathKeyCodec
from bucketfs.fs.read import ReadOptions, ReadSession
from bucketfs.tests.support import make_fs

SHAPES = [
    PayloadKind.BLOB,
    PayloadKind.PULL_STREAM,
    PayloadKind.PUSH_STREAM,
    PayloadKind.BOUNDED,
]

CONTENT = b"0123456789abcdef"


class TestReadSession:
    """Tests for incremental reads."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("shape", SHAPES)
    async def test_read_whole_file(self, shape):
        fs, recording = make_fs(body_shape=shape)
        recording.inner.seed("repo/f", CONTENT)

        assert (await fs.read_bytes("/f")).unwrap() == CONTENT

    @pytest.mark.asyncio
    @pytest.mark.parametrize("shape", SHAPES)
    async def test_sized_reads_neither_lose_nor_duplicate(self, shape):
        fs, recording = make_fs(body_shape=shape)
        recording.inner.seed("repo/f", CONTENT)

        pieces = []
        async with fs.open_read("/f") as session:
            while True:
                chunk = (await session.read(5)).unwrap()
                if chunk is None:
                    break
                assert 0 < len(chunk) <= 5
                pieces.append(chunk)

        assert b"".join(pieces) == CONTENT
        assert len(recording.ops("get")) == 1

    @pytest.mark.asyncio
    async def test_pull_excess_carried_to_next_read(self):
        fs, recording = make_fs(body_shape=PayloadKind.PULL_STREAM, chunk_size=7)
        recording.inner.seed("repo/f", CONTENT)

        async with fs.open_read("/f") as session:
            assert (await session.read(2)).unwrap() == b"01"
            assert (await session.read(2)).unwrap() == b"23"
            assert (await session.read(10)).unwrap() == b"456789abcd"
            assert (await session.read()).unwrap() == b"ef"
            assert (await session.read()).unwrap() is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("shape", SHAPES)
    async def test_window_by_start_and_length(self, shape):
        fs, recording = make_fs(body_shape=shape)
        recording.inner.seed("repo/f", CONTENT)

        data = (await fs.read_bytes("/f", ReadOptions(start=4, length=6))).unwrap()

        assert data == b"456789"

    @pytest.mark.asyncio
    async def test_range_requested_from_store(self):
        fs, recording = make_fs()
        recording.inner.seed("repo/f", CONTENT)

        assert (await fs.read_bytes("/f", ReadOptions(start=3, length=2))).unwrap() == b"34"
        assert (await fs.read_bytes("/f", ReadOptions(start=10))).unwrap() == b"abcdef"
        assert (await fs.read_bytes("/f", ReadOptions(length=3))).unwrap() == b"012"
        assert (await fs.read_bytes("/f")).unwrap() == CONTENT

        ranges = [args[1] for _, args, _ in recording.requests_of("get")]
        assert ranges == [ByteRange(3, 4), ByteRange(10), ByteRange(0, 2), None]
        assert [r.to_http_header() for r in ranges[:3]] == ["bytes=3-4", "bytes=10-", "bytes=0-2"]

    @pytest.mark.asyncio
    async def test_zero_length_never_contacts_store(self):
        fs, recording = make_fs()
        recording.inner.seed("repo/f", CONTENT)

        async with fs.open_read("/f", ReadOptions(start=2, length=0)) as session:
            assert (await session.read()).unwrap() == b""
            assert (await session.read()).unwrap() is None

        async with fs.open_read("/f") as session:
            assert (await session.read(0)).unwrap() == b""

        assert recording.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("shape", SHAPES)
    async def test_seek_reopens_at_offset(self, shape):
        fs, recording = make_fs(body_shape=shape)
        recording.inner.seed("repo/f", CONTENT)

        async with fs.open_read("/f") as session:
            assert (await session.read(3)).unwrap() == b"012"
            await session.seek(10)
            assert session.position == 10
            assert (await session.read(3)).unwrap() == b"abc"

        assert len(recording.ops("get")) == 2

    @pytest.mark.asyncio
    async def test_missing_file_not_found(self):
        fs, _ = make_fs()
        result = await fs.read_bytes("/missing")
        assert result.error.code == ErrorCode.FS_NOT_FOUND

    @pytest.mark.asyncio
    async def test_read_after_close_fails(self):
        fs, recording = make_fs()
        recording.inner.seed("repo/f", CONTENT)
        session = fs.open_read("/f")
        await session.close()
        await session.close()
        assert session.closed
        assert (await session.read()).error.code == ErrorCode.FS_NOT_READABLE

    @pytest.mark.asyncio
    async def test_close_releases_push_source(self):
        fs, recording = make_fs(body_shape=PayloadKind.PUSH_STREAM)
        recording.inner.seed("repo/f", CONTENT)

        session = fs.open_read("/f")
        await session.read(2)
        source = session._source.value
        await session.close()

        assert source.destroyed

    @pytest.mark.asyncio
    async def test_close_cancels_pull_stream(self):
        fs, recording = make_fs(body_shape=PayloadKind.PULL_STREAM)
        recording.inner.seed("repo/f", CONTENT)

        session = fs.open_read("/f")
        await session.read(2)
        stream = session._source.value
        await session.close()

        with pytest.raises(StopAsyncIteration):
            await stream.__anext__()

    @pytest.mark.asyncio
    async def test_read_text(self):
        fs, recording = make_fs()
        recording.inner.seed("repo/t.txt", "héllo".encode("utf-8"))
        assert (await fs.read_text("/t.txt")).unwrap() == "héllo"


class ScriptedClient:
    """Hands out queued bodies in order and records the requested ranges."""

    def __init__(self, *payloads):
        self._payloads = list(payloads)
        self.ranges = []

    async def get(self, key, byte_range=None):
        self.ranges.append(byte_range)
        return Ok(self._payloads.pop(0))


def session_over(client):
    async def get_client():
        return Ok(client)

    return ReadSession(PathKeyCodec("repo"), get_client, "/f")


async def stalled_pull():
    yield b"ab"
    await asyncio.Event().wait()


async def settle():
    for _ in range(5):
        await asyncio.sleep(0)


class TestInterruptedReads:
    """Tests for seek and close while a read is waiting on the body."""

    @pytest.mark.asyncio
    async def test_seek_during_push_read(self):
        starved = ByteEmitter()
        starved.feed(b"01")
        fresh = ByteEmitter()
        fresh.feed(b"0123")
        fresh.feed_eof()
        client = ScriptedClient(Payload.push(starved), Payload.push(fresh))
        session = session_over(client)

        assert (await session.read(2)).unwrap() == b"01"
        pending = asyncio.ensure_future(session.read(2))
        await settle()
        assert not pending.done()

        await session.seek(0)
        done, _ = await asyncio.wait({pending}, timeout=1.0)

        assert pending in done
        assert pending.result().unwrap() is None
        assert starved.destroyed
        assert (await session.read(4)).unwrap() == b"0123"
        assert client.ranges == [None, ByteRange(0)]
        await session.close()

    @pytest.mark.asyncio
    async def test_close_during_pull_read(self):
        stream = stalled_pull()
        session = session_over(ScriptedClient(Payload.pull(stream)))

        pending = asyncio.ensure_future(session.read(100))
        await settle()
        assert not pending.done()

        await session.close()

        assert (await pending).unwrap() is None
        assert session.closed
        with pytest.raises(StopAsyncIteration):
            await stream.__anext__()

    @pytest.mark.asyncio
    async def test_close_during_push_read(self):
        starved = ByteEmitter()
        session = session_over(ScriptedClient(Payload.push(starved)))

        pending = asyncio.ensure_future(session.read())
        await settle()
        await session.close()

        assert (await asyncio.wait_for(pending, 1.0)).unwrap() is None
        assert starved.destroyed

    @pytest.mark.asyncio
    async def test_cancelling_the_reader_propagates(self):
        session = session_over(ScriptedClient(Payload.push(ByteEmitter())))

        pending = asyncio.ensure_future(session.read())
        await settle()
        pending.cancel()

        with pytest.raises(asyncio.CancelledError):
            await pending
        await session.close()

    @pytest.mark.asyncio
    async def test_negative_size_rejected(self):
        session = session_over(ScriptedClient())
        with pytest.raises(ValueError):
            await session.read(-1)
