"""Unit tests for the SSE stream decoder."""

import asyncio
import json

import pytest

from tweetrater.llm.streaming import decode_sse_stream, extract_delta_content
from tweetrater.models.stream_events import StreamComplete, StreamDelta, StreamFailed
from tweetrater.services.exceptions import TransportError


def frame(content: str) -> str:
    return "data: " + json.dumps({"choices": [{"delta": {"content": content}}]}) + "\n"


async def chunks_from(*chunks: str, stall: float = 0.0):
    """Yield chunks, then optionally go silent for `stall` seconds."""
    for chunk in chunks:
        yield chunk
    if stall:
        await asyncio.sleep(stall)


async def collect(events):
    return [event async for event in events]


class TestExtractDeltaContent:
    """Test extract_delta_content()."""

    def test_reads_delta_content(self):
        """Test content is read from choices[0].delta.content."""
        assert extract_delta_content({"choices": [{"delta": {"content": "hi"}}]}) == "hi"

    @pytest.mark.parametrize("data", [
        {},
        {"choices": []},
        {"choices": [{"delta": {}}]},
        {"choices": [{"delta": {"content": None}}]},
        {"choices": [{"delta": {"role": "assistant"}}]},
    ])
    def test_missing_content_is_empty(self, data):
        """Test events without content contribute nothing."""
        assert extract_delta_content(data) == ""


class TestDecodeSSEStream:
    """Test decode_sse_stream()."""

    @pytest.mark.asyncio
    async def test_aggregate_is_concatenation_of_deltas(self):
        """Test the final content equals all deltas in arrival order."""
        deltas = ["The ", "post ", "is ", "fine. ", "SCORE_6"]
        chunks = [frame(d) for d in deltas] + ["data: [DONE]\n"]

        events = await collect(decode_sse_stream(chunks_from(*chunks)))

        emitted = [e.delta for e in events if isinstance(e, StreamDelta)]
        assert emitted == deltas
        final = events[-1]
        assert isinstance(final, StreamComplete)
        assert final.reason == "done"
        assert final.timed_out is False
        assert final.content == "".join(deltas)

    @pytest.mark.asyncio
    async def test_delta_carries_accumulated_content(self):
        """Test each delta event reports the content so far."""
        events = await collect(decode_sse_stream(chunks_from(frame("a"), frame("b"), "data: [DONE]\n")))

        assert [e.content for e in events if isinstance(e, StreamDelta)] == ["a", "ab"]

    @pytest.mark.asyncio
    async def test_frame_split_across_chunks(self):
        """Test a frame split mid-JSON is reassembled."""
        line = frame("hello")
        chunks = [line[:12], line[12:30], line[30:], "data: [DONE]\n"]

        events = await collect(decode_sse_stream(chunks_from(*chunks)))

        assert [e.delta for e in events if isinstance(e, StreamDelta)] == ["hello"]
        assert events[-1].content == "hello"

    @pytest.mark.asyncio
    async def test_several_frames_in_one_chunk(self):
        """Test one chunk may carry many frames."""
        chunk = frame("a") + frame("b") + frame("c") + "data: [DONE]\n"

        events = await collect(decode_sse_stream(chunks_from(chunk)))

        assert events[-1].content == "abc"

    @pytest.mark.asyncio
    async def test_malformed_line_is_skipped(self):
        """Test a malformed payload is skipped and decoding continues."""
        chunks = [frame("a"), "data: {not json\n", frame("b"), "data: [DONE]\n"]

        events = await collect(decode_sse_stream(chunks_from(*chunks)))

        assert isinstance(events[-1], StreamComplete)
        assert events[-1].content == "ab"

    @pytest.mark.asyncio
    async def test_non_data_lines_are_ignored(self):
        """Test comments and other SSE fields are ignored."""
        chunks = [": OPENROUTER PROCESSING\n", "event: message\n", frame("x"), "\n", "data: [DONE]\n"]

        events = await collect(decode_sse_stream(chunks_from(*chunks)))

        assert [e.delta for e in events if isinstance(e, StreamDelta)] == ["x"]

    @pytest.mark.asyncio
    async def test_end_of_source_without_done(self):
        """Test the stream completes when the source ends without [DONE]."""
        events = await collect(decode_sse_stream(chunks_from(frame("a"), frame("b"))))

        assert events[-1].reason == "eof"
        assert events[-1].content == "ab"

    @pytest.mark.asyncio
    async def test_final_line_without_newline_is_flushed(self):
        """Test a trailing frame lacking a newline is still decoded."""
        events = await collect(decode_sse_stream(chunks_from(frame("a"), frame("b").rstrip("\n"))))

        assert events[-1].content == "ab"

    @pytest.mark.asyncio
    async def test_inactivity_timeout_completes_with_aggregate(self):
        """Test silence after deltas yields a timed-out completion, not an error."""
        chunks = [frame("Good "), frame("tweet. "), frame("SCORE_9")]

        events = await collect(decode_sse_stream(chunks_from(*chunks, stall=10.0), inactivity_timeout=0.05))

        final = events[-1]
        assert isinstance(final, StreamComplete)
        assert final.timed_out is True
        assert final.reason == "timeout"
        assert final.content == "Good tweet. SCORE_9"

    @pytest.mark.asyncio
    async def test_three_empty_chunks_end_stream(self):
        """Test three consecutive whitespace-only chunks end the stream."""
        chunks = [frame("a"), " ", "\n", "  ", frame("never read")]

        events = await collect(decode_sse_stream(chunks_from(*chunks)))

        assert events[-1].reason == "empty_chunks"
        assert events[-1].content == "a"

    @pytest.mark.asyncio
    async def test_empty_chunk_count_resets_on_content(self):
        """Test the empty-chunk count only counts consecutive chunks."""
        chunks = [" ", " ", frame("a"), " ", " ", frame("b"), "data: [DONE]\n"]

        events = await collect(decode_sse_stream(chunks_from(*chunks)))

        assert events[-1].reason == "done"
        assert events[-1].content == "ab"

    @pytest.mark.asyncio
    async def test_transport_error_yields_failed(self):
        """Test a transport failure mid-stream ends with StreamFailed."""
        async def failing():
            yield frame("partial ")
            raise TransportError("connection reset")

        events = await collect(decode_sse_stream(failing()))

        final = events[-1]
        assert isinstance(final, StreamFailed)
        assert final.content == "partial "
        assert isinstance(final.error, TransportError)

    @pytest.mark.asyncio
    async def test_source_is_closed_after_done(self):
        """Test the chunk source is closed when [DONE] ends decoding early."""
        state = {"closed": False}

        async def source():
            try:
                yield frame("a")
                yield "data: [DONE]\n"
                yield frame("unreachable")
            finally:
                state["closed"] = True

        await collect(decode_sse_stream(source()))

        assert state["closed"] is True
