"""Per-item scheduling, de-duplication and state tracking."""

import asyncio
from typing import Awaitable, Callable, Dict, Optional

from tweetrater.llm.model_catalog import ModelCatalog
from tweetrater.llm.requests import build_rating_request, extract_media_urls
from tweetrater.models.config import ModelConfig
from tweetrater.models.item import Item, ProcessingState
from tweetrater.models.rating import RatingResult
from tweetrater.models.stream_events import StreamDelta
from tweetrater.services.allow_list import ALLOW_LISTED_SCORE, AllowList
from tweetrater.services.collaborators import Presentation
from tweetrater.services.exceptions import ContextUnavailable, MissingCredential
from tweetrater.services.item_context import ItemContextBuilder
from tweetrater.services.result_cache import ResultCache
from tweetrater.services.retry import FALLBACK_SCORE, RetryController
from tweetrater.services.score import extract_score
from tweetrater.services.thread_context import ThreadContextAssembler
from tweetrater.utils.logging import get_logger, log_context


logger = get_logger(__name__)


class ItemProcessingCoordinator:
    """
    Decide, for each discovered item, whether and how it gets rated.

    schedule() resolves allow-listed authors and finalized cache entries
    on the spot. Everything else is marked in flight before any await, so
    a second schedule() for the same item is a no-op until the first
    pipeline ends, successfully or not.

    Every pipeline ends in rated or error; the in-flight marker is always
    cleared so an errored item can be scheduled again.
    """

    def __init__(
        self,
        allow_list: AllowList,
        cache: ResultCache,
        builder: ItemContextBuilder,
        threads: ThreadContextAssembler,
        retry: RetryController,
        catalog: ModelCatalog,
        settings: ModelConfig,
        presentation: Presentation,
        streaming: bool = False,
        processing_delay: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.allow_list = allow_list
        self.cache = cache
        self.builder = builder
        self.threads = threads
        self.retry = retry
        self.catalog = catalog
        self.settings = settings
        self.presentation = presentation
        self.streaming = streaming
        self.processing_delay = processing_delay
        self._sleep = sleep

        self._states: Dict[str, ProcessingState] = {}
        self._in_flight: set[str] = set()
        self._tasks: set[asyncio.Task] = set()

    def state(self, item_id: str) -> ProcessingState:
        return self._states.get(item_id, ProcessingState.UNSEEN)

    def is_in_flight(self, item_id: str) -> bool:
        return item_id in self._in_flight

    @property
    def active_tasks(self) -> int:
        return len(self._tasks)

    def _emit(self, item_id: str, state: ProcessingState, score: Optional[int], description: str = "") -> None:
        self._states[item_id] = state
        self.presentation.on_indicator_update(item_id, score, state.value, description)

    def schedule(self, item: Item) -> Optional[asyncio.Task]:
        """
        Resolve or start rating one item. Must be called from a running loop.

        Returns:
            The background task rating the item, or None if the item was
            resolved immediately or is already in flight
        """
        item_id = item.item_id

        if item.author_handle and self.allow_list.contains(item.author_handle):
            logger.debug("item_allow_listed", item_id=item_id, author=item.author_handle)
            self._emit(item_id, ProcessingState.BLACKLISTED, ALLOW_LISTED_SCORE, "Author is allow-listed")
            return None

        entry = self.cache.lookup(item_id)
        if entry is not None and not entry.streaming:
            logger.debug("item_cache_hit", item_id=item_id, score=entry.score)
            self._emit(item_id, ProcessingState.CACHED, entry.score, entry.description)
            return None

        if item_id in self._in_flight:
            logger.debug("item_schedule_deduplicated", item_id=item_id)
            return None

        self._in_flight.add(item_id)
        self._emit(item_id, ProcessingState.PENDING, None, "Rating in progress...")

        task = asyncio.create_task(self._process(item))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _build_context(self, item: Item) -> str:
        if not (item.text.strip() or item.media_urls or item.quoted_item):
            raise ContextUnavailable(f"Item {item.item_id} has no content")

        ancestors = None
        if item.conversation_id and not item.is_thread_root:
            ancestors = self.threads.ancestor_context(item.conversation_id, before_item_id=item.item_id)
        return await self.builder.build(item, ancestors)

    async def _process(self, item: Item) -> RatingResult:
        with log_context(item_id=item.item_id):
            return await self._rate_item(item)

    async def _rate_item(self, item: Item) -> RatingResult:
        item_id = item.item_id
        try:
            await self._sleep(self.processing_delay)

            if not self.retry.api_key:
                raise MissingCredential("No API key configured")

            context = await self._build_context(item)

            supports_images = self.catalog.supports_images(self.settings.model)
            request = build_rating_request(
                self.settings,
                item_id,
                context,
                extract_media_urls(context) if supports_images else [],
                supports_images,
                streaming=self.streaming,
            )

            result: Optional[RatingResult] = None
            async for event in self.retry.stream_rating(request, item_id=item_id):
                if isinstance(event, StreamDelta):
                    partial_score = extract_score(event.content)
                    self.cache.upsert_streaming(item_id, context, partial_score, event.content)
                    self._emit(item_id, ProcessingState.STREAMING, partial_score, event.content)
                else:
                    result = event

            if result is None or result.error:
                message = result.message if result is not None else "No rating result"
                self._emit(item_id, ProcessingState.ERROR, FALLBACK_SCORE, message)
                return result or RatingResult(score=FALLBACK_SCORE, error=True, message=message)

            self.cache.finalize(item_id, context, result.score, result.content)
            logger.info("item_rated", item_id=item_id, score=result.score, attempts=result.attempts)
            self._emit(item_id, ProcessingState.RATED, result.score, result.content)
            return result

        except Exception as e:
            logger.error(
                "item_processing_failed",
                item_id=item_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            self._emit(item_id, ProcessingState.ERROR, FALLBACK_SCORE, str(e))
            return RatingResult(score=FALLBACK_SCORE, error=True, message=str(e))

        finally:
            self._in_flight.discard(item_id)

    async def drain(self) -> list[RatingResult]:
        """Wait until no item is being rated. Returns the results collected."""
        results: list[RatingResult] = []
        seen: set[asyncio.Task] = set()
        while True:
            pending = [task for task in self._tasks if task not in seen]
            if not pending:
                return results
            seen.update(pending)
            results.extend(await asyncio.gather(*pending))
