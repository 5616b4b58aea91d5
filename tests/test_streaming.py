"""Tests for the stream normalizer."""

from contextlib import aclosing

import pytest

from simple_chat.streaming import Framing, iter_json_events

from conftest import TrackingSource


async def collect(source, framing):
    return [event async for event in iter_json_events(source, framing)]


class TestSSEFraming:
    """SSE records separated by blank lines."""

    @pytest.mark.asyncio
    async def test_parses_data_frames(self):
        source = TrackingSource([b'data: {"a": 1}\n\ndata: {"a": 2}\n\n'])
        assert await collect(source, Framing.SSE) == [{"a": 1}, {"a": 2}]

    @pytest.mark.asyncio
    async def test_record_split_across_reads(self):
        source = TrackingSource([b'data: {"te', b'xt": "hel', b'lo"}\n', b'\ndata: {"text": "x"}\n\n'])
        assert await collect(source, Framing.SSE) == [{"text": "hello"}, {"text": "x"}]

    @pytest.mark.asyncio
    async def test_multibyte_character_split_across_reads(self):
        encoded = 'data: {"text": "café"}\n\n'.encode()
        cut = encoded.index(b"\xc3") + 1
        source = TrackingSource([encoded[:cut], encoded[cut:]])
        assert await collect(source, Framing.SSE) == [{"text": "café"}]

    @pytest.mark.asyncio
    async def test_done_sentinel_is_dropped_and_ends_stream(self):
        source = TrackingSource([b'data: {"a": 1}\n\ndata: [DONE]\n\ndata: {"a": 2}\n\n'])
        assert await collect(source, Framing.SSE) == [{"a": 1}]

    @pytest.mark.asyncio
    async def test_crlf_line_endings(self):
        source = TrackingSource([b'data: {"a": 1}\r\n\r\ndata: {"a": 2}\r', b"\n\r\n"])
        assert await collect(source, Framing.SSE) == [{"a": 1}, {"a": 2}]

    @pytest.mark.asyncio
    async def test_comments_and_event_fields_ignored(self):
        source = TrackingSource([b': keep-alive\n\nevent: delta\nid: 7\ndata: {"a": 1}\n\n'])
        assert await collect(source, Framing.SSE) == [{"a": 1}]

    @pytest.mark.asyncio
    async def test_trailing_record_without_terminator(self):
        source = TrackingSource([b'data: {"a": 1}\n\ndata: {"a": 2}'])
        assert await collect(source, Framing.SSE) == [{"a": 1}, {"a": 2}]


class TestNDJSONFraming:
    """One JSON document per line."""

    @pytest.mark.asyncio
    async def test_parses_lines(self):
        source = TrackingSource([b'{"type": "message_start"}\n{"type": "message_stop"}\n'])
        events = await collect(source, Framing.NDJSON)
        assert [e["type"] for e in events] == ["message_start", "message_stop"]

    @pytest.mark.asyncio
    async def test_sse_shaped_lines_decode_the_same(self):
        source = TrackingSource([b'event: message_start\ndata: {"type": "message_start"}\n\n'])
        assert await collect(source, Framing.NDJSON) == [{"type": "message_start"}]


class TestMalformedRecords:
    """A bad record is skipped without aborting the stream."""

    @pytest.mark.asyncio
    async def test_one_malformed_record_among_three(self):
        source = TrackingSource([b'data: {"n": 1}\n\ndata: {not json\n\ndata: {"n": 3}\n\n'])
        events = await collect(source, Framing.SSE)
        assert events == [{"n": 1}, {"n": 3}]

    @pytest.mark.asyncio
    async def test_non_object_json_skipped(self):
        source = TrackingSource([b'[1, 2]\n"text"\n{"ok": true}\n'])
        assert await collect(source, Framing.NDJSON) == [{"ok": True}]


class TestResourceRelease:
    """The byte source is closed exactly once on every exit path."""

    @pytest.mark.asyncio
    async def test_closed_after_normal_end(self):
        source = TrackingSource([b'{"a": 1}\n'])
        await collect(source, Framing.NDJSON)
        assert source.close_count == 1

    @pytest.mark.asyncio
    async def test_closed_after_sentinel(self):
        source = TrackingSource([b"data: [DONE]\n\n", b'data: {"a": 1}\n\n'])
        await collect(source, Framing.SSE)
        assert source.close_count == 1

    @pytest.mark.asyncio
    async def test_closed_on_early_termination(self):
        source = TrackingSource([b'{"a": 1}\n{"a": 2}\n{"a": 3}\n'])
        async with aclosing(iter_json_events(source, Framing.NDJSON)) as events:
            async for _ in events:
                break
        assert source.close_count == 1

    @pytest.mark.asyncio
    async def test_closed_on_read_error(self):
        source = TrackingSource([b'{"a": 1}\n'], fail_after=1)
        with pytest.raises(ConnectionError):
            await collect(source, Framing.NDJSON)
        assert source.close_count == 1
