"""Server-sent events decoder for streaming chat completions.

Turns raw text chunks from the transport into tagged events:

    StreamDelta*  then exactly one of  StreamComplete | StreamFailed

Framing handled here:
- Lines not starting with "data:" are ignored (comments, keep-alives, event names)
- "data: [DONE]" ends the stream
- Malformed JSON payloads are logged and skipped, never fatal
- A line split across chunks is buffered until its newline arrives
"""

import asyncio
import json
from typing import Any, AsyncIterator, Optional

from tweetrater.models.stream_events import StreamComplete, StreamDelta, StreamEvent, StreamFailed
from tweetrater.services.exceptions import RatingError
from tweetrater.utils.logging import get_logger

logger = get_logger(__name__)

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"
MAX_EMPTY_CHUNKS = 3
DEFAULT_INACTIVITY_TIMEOUT = 10.0

_DONE = object()


def extract_delta_content(data: dict[str, Any]) -> str:
    """
    Extract the content fragment from an OpenAI-style streaming event.

    Events look like:
    {
        "choices": [{
            "delta": {"content": "..."},
            "finish_reason": null
        }]
    }

    Returns:
        Content string, or "" when the event carries none
    """
    try:
        choices = data.get("choices")
        if choices:
            delta = choices[0].get("delta") or {}
            content = delta.get("content")
            if isinstance(content, str):
                return content
    except (AttributeError, IndexError, TypeError):
        pass
    return ""


def _parse_line(line: str, line_number: int) -> Optional[Any]:
    """Parse one SSE line. Returns a payload dict, _DONE, or None to skip."""
    line = line.rstrip("\r")
    if not line.startswith(DATA_PREFIX):
        return None

    payload = line[len(DATA_PREFIX):]
    if payload.startswith(" "):
        payload = payload[1:]

    if payload.strip() == DONE_SENTINEL:
        return _DONE

    if not payload.strip():
        return None

    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        logger.warning(
            "stream_malformed_event",
            line_number=line_number,
            payload=payload[:200],
            error=e.msg,
            position=e.pos,
        )
        return None

    if not isinstance(data, dict):
        logger.warning(
            "stream_unexpected_event_type",
            line_number=line_number,
            event_type=type(data).__name__,
        )
        return None

    return data


async def decode_sse_stream(
    chunks: AsyncIterator[str],
    inactivity_timeout: float = DEFAULT_INACTIVITY_TIMEOUT,
) -> AsyncIterator[StreamEvent]:
    """
    Decode a chunked SSE completion stream into delta events.

    Completion rules:
    - "[DONE]" sentinel: normal completion (reason="done")
    - Chunk source exhausted: completion (reason="eof")
    - Three consecutive whitespace-only chunks: completion (reason="empty_chunks")
    - No non-empty chunk for `inactivity_timeout` seconds: completion with
      whatever has accumulated (timed_out=True, reason="timeout")
    - Transport error while reading: StreamFailed

    The chunk iterator is closed whenever decoding stops, including when the
    consumer abandons this generator early.

    Args:
        chunks: Async iterator of raw text chunks (e.g. CompletionTransport.stream)
        inactivity_timeout: Seconds of silence treated as end of stream

    Yields:
        StreamDelta for every parsed event, then one StreamComplete or StreamFailed
    """
    loop = asyncio.get_running_loop()
    iterator = chunks.__aiter__()

    content = ""
    last_data: Optional[dict[str, Any]] = None
    buffer = ""
    line_number = 0
    empty_chunks = 0
    reason = "eof"
    deadline = loop.time() + inactivity_timeout

    logger.debug("stream_decode_started", inactivity_timeout=inactivity_timeout)

    try:
        while True:
            remaining = deadline - loop.time()
            try:
                if remaining <= 0:
                    raise asyncio.TimeoutError()
                chunk = await asyncio.wait_for(iterator.__anext__(), timeout=remaining)
            except asyncio.TimeoutError:
                logger.warning(
                    "stream_timed_out",
                    inactivity_timeout=inactivity_timeout,
                    content_length=len(content),
                )
                yield StreamComplete(content=content, data=last_data, timed_out=True, reason="timeout")
                return
            except StopAsyncIteration:
                break
            except RatingError as e:
                logger.error("stream_failed", error=str(e), error_type=type(e).__name__)
                yield StreamFailed(message=f"Stream processing error: {e}", content=content, error=e)
                return

            is_empty = not chunk.strip()
            if not is_empty:
                empty_chunks = 0
                deadline = loop.time() + inactivity_timeout

            # Whitespace between frames is dropped; inside a partial line it is kept
            if not is_empty or buffer:
                buffer += chunk
            *lines, buffer = buffer.split("\n")

            for line in lines:
                line_number += 1
                parsed = _parse_line(line, line_number)
                if parsed is None:
                    continue
                if parsed is _DONE:
                    logger.debug("stream_done_sentinel", line_number=line_number)
                    yield StreamComplete(content=content, data=last_data, reason="done")
                    return

                last_data = parsed
                delta = extract_delta_content(parsed)
                content += delta
                yield StreamDelta(delta=delta, content=content, data=parsed)

            if is_empty:
                empty_chunks += 1
                if empty_chunks >= MAX_EMPTY_CHUNKS:
                    logger.debug("stream_empty_chunks_end", count=empty_chunks)
                    reason = "empty_chunks"
                    break

        # Flush a final line that arrived without a trailing newline
        if buffer.strip():
            line_number += 1
            parsed = _parse_line(buffer, line_number)
            if parsed is _DONE:
                reason = "done"
            elif parsed is not None:
                last_data = parsed
                delta = extract_delta_content(parsed)
                content += delta
                yield StreamDelta(delta=delta, content=content, data=parsed)

        logger.debug("stream_decode_complete", reason=reason, lines=line_number, content_length=len(content))
        yield StreamComplete(content=content, data=last_data, reason=reason)

    finally:
        aclose = getattr(iterator, "aclose", None)
        if aclose is not None:
            await aclose()
