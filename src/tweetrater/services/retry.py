"""Bounded retry loop around a single rating request."""

import asyncio
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, Union

from tweetrater.llm.streaming import DEFAULT_INACTIVITY_TIMEOUT, decode_sse_stream
from tweetrater.llm.transport import CompletionTransport
from tweetrater.models.rating import RatingRequest, RatingResult
from tweetrater.models.stream_events import StreamComplete, StreamDelta, StreamFailed
from tweetrater.services.exceptions import (
    RETRYABLE_ERRORS,
    MissingCredential,
    NoScoreFound,
    ParseError,
    SafetyFiltered,
    TransportError,
)
from tweetrater.services.rate_limiter import RateLimiter
from tweetrater.services.score import extract_score
from tweetrater.utils.logging import get_logger


logger = get_logger(__name__)

FALLBACK_SCORE = 5
FAILURE_CONTENT = "Failed to get valid rating after multiple attempts"

RatingEvent = Union[StreamDelta, RatingResult]


def _raise_for_empty_content(choice: Optional[dict[str, Any]]) -> None:
    """Classify an empty answer as a safety block or a plain missing score."""
    choice = choice or {}
    if choice.get("native_finish_reason") == "SAFETY" or choice.get("finish_reason") == "content_filter":
        raise SafetyFiltered("No content returned (SAFETY FILTER)")
    raise NoScoreFound("No content returned")


class RetryController:
    """
    Run up to max_retries rating attempts with quadratic backoff.

    Each attempt acquires the rate limiter, dispatches the identical request
    (streaming or not, per request.streaming), and looks for a SCORE_<n>
    token in the final text. Transport errors, timeouts, malformed bodies,
    missing scores and safety blocks all consume an attempt; only
    running out of attempts ends the run, with a fallback score of 5.

    Example:
        >>> controller = RetryController(transport, limiter, api_key="sk-...")
        >>> result = await controller.rate(request)
        >>> result.score, result.error
        (8, False)
    """

    def __init__(
        self,
        transport: CompletionTransport,
        rate_limiter: RateLimiter,
        api_key: str,
        max_retries: int = 3,
        request_timeout: Optional[float] = None,
        inactivity_timeout: float = DEFAULT_INACTIVITY_TIMEOUT,
        backoff_unit: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Args:
            transport: Completion transport
            rate_limiter: Shared rate limiter
            api_key: Bearer token; empty means no credential
            max_retries: Total attempts allowed (>= 1)
            request_timeout: Per-request timeout passed to the transport
            inactivity_timeout: Stream silence treated as completion
            backoff_unit: Seconds per backoff unit (attempt n waits n^2 units)
            sleep: Coroutine used for backoff waits
        """
        self.transport = transport
        self.rate_limiter = rate_limiter
        self.api_key = api_key
        self.max_retries = max(1, max_retries)
        self.request_timeout = request_timeout
        self.inactivity_timeout = inactivity_timeout
        self.backoff_unit = backoff_unit
        self._sleep = sleep

    def backoff_delay(self, attempt: int) -> float:
        """Delay before the attempt following `attempt` (1s, 4s, 9s, ... with unit 1.0)."""
        return attempt ** 2 * self.backoff_unit

    async def _complete_once(self, request: RatingRequest) -> tuple[str, dict[str, Any]]:
        response = await self.transport.complete(request, self.api_key, self.request_timeout)
        body = response.body

        choices = body.get("choices")
        if not isinstance(choices, list) or not choices:
            raise ParseError("Response contained no choices")

        choice = choices[0] if isinstance(choices[0], dict) else {}
        content = (choice.get("message") or {}).get("content")
        if not content:
            _raise_for_empty_content(choice)

        return content, body

    async def stream_rating(
        self,
        request: RatingRequest,
        item_id: Optional[str] = None,
    ) -> AsyncIterator[RatingEvent]:
        """
        Rate with retries, yielding streaming progress as it arrives.

        Yields:
            StreamDelta for every delta of every streaming attempt (tagged
            with its attempt number), then exactly one RatingResult

        Raises:
            MissingCredential: No API key; raised before any dispatch
        """
        if not self.api_key:
            raise MissingCredential("No API key configured")

        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_retries + 1):
            await self.rate_limiter.acquire()

            logger.info(
                "rating_attempt_started",
                item_id=item_id,
                attempt=attempt,
                max_retries=self.max_retries,
                streaming=request.streaming,
            )

            try:
                if request.streaming:
                    terminal: Optional[Union[StreamComplete, StreamFailed]] = None
                    chunks = self.transport.stream(request, self.api_key, self.request_timeout)
                    async for event in decode_sse_stream(chunks, self.inactivity_timeout):
                        if isinstance(event, StreamDelta):
                            yield event.model_copy(update={"attempt": attempt})
                        else:
                            terminal = event

                    if isinstance(terminal, StreamFailed):
                        raise terminal.error or TransportError(terminal.message)

                    content = terminal.content if terminal is not None else ""
                    raw = terminal.data if terminal is not None else None
                    if not content:
                        _raise_for_empty_content(((raw or {}).get("choices") or [None])[0])
                else:
                    content, raw = await self._complete_once(request)

                score = extract_score(content)
                if score is None:
                    raise NoScoreFound("Response did not contain a SCORE_<n> token")

                logger.info("rating_attempt_succeeded", item_id=item_id, attempt=attempt, score=score)
                yield RatingResult(score=score, content=content, error=False, raw=raw, attempts=attempt)
                return

            except RETRYABLE_ERRORS as e:
                last_error = e
                logger.warning(
                    "rating_attempt_failed",
                    item_id=item_id,
                    attempt=attempt,
                    max_retries=self.max_retries,
                    error=str(e),
                    error_type=type(e).__name__,
                )

            if attempt < self.max_retries:
                delay = self.backoff_delay(attempt)
                logger.info("rating_backoff", item_id=item_id, attempt=attempt, delay_seconds=delay)
                await self._sleep(delay)

        logger.error(
            "rating_retries_exhausted",
            item_id=item_id,
            attempts=self.max_retries,
            error=str(last_error) if last_error else None,
        )
        yield RatingResult(
            score=FALLBACK_SCORE,
            content=FAILURE_CONTENT,
            error=True,
            raw=None,
            attempts=self.max_retries,
            message=str(last_error) if last_error else "",
        )

    async def rate(self, request: RatingRequest, item_id: Optional[str] = None) -> RatingResult:
        """Rate with retries and return only the final result."""
        result: Optional[RatingResult] = None
        async for event in self.stream_rating(request, item_id=item_id):
            if isinstance(event, RatingResult):
                result = event
        assert result is not None
        return result
