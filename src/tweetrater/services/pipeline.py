"""Process-wide owner of the rating pipeline and its shared state."""

import asyncio
from typing import Awaitable, Callable, Optional

from tweetrater.llm.image_describer import ImageDescriber
from tweetrater.llm.model_catalog import ModelCatalog
from tweetrater.llm.transport import CompletionTransport
from tweetrater.models.config import Config
from tweetrater.models.item import Item
from tweetrater.services.allow_list import AllowList
from tweetrater.services.collaborators import ContentExtractor, KeyValueStore, Presentation
from tweetrater.services.coordinator import ItemProcessingCoordinator
from tweetrater.services.exceptions import RatingError
from tweetrater.services.item_context import ItemContextBuilder
from tweetrater.services.rate_limiter import RateLimiter
from tweetrater.services.result_cache import ResultCache
from tweetrater.services.retry import RetryController
from tweetrater.services.thread_context import ThreadContextAssembler
from tweetrater.utils.logging import get_logger


logger = get_logger(__name__)


class PipelineService:
    """
    Wire every pipeline component from one Config.

    Holds the state that must be shared across items: the rate limiter's
    last grant, the result cache, the allow-list, thread contexts, and the
    coordinator's in-flight set. Construct once per process.

    Example:
        >>> pipeline = PipelineService(config, store, extractor, presentation)
        >>> await pipeline.start()
        >>> await pipeline.discover(item)
        >>> await pipeline.drain()
        >>> await pipeline.aclose()
    """

    def __init__(
        self,
        config: Config,
        store: KeyValueStore,
        extractor: ContentExtractor,
        presentation: Presentation,
        transport: Optional[CompletionTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config
        api_key = config.api.api_key
        pipeline = config.pipeline

        self.transport = transport or CompletionTransport(config.api)
        self.rate_limiter = RateLimiter(min_interval=pipeline.min_request_interval, sleep=sleep)
        self.cache = ResultCache(store, debounce=pipeline.persist_debounce)
        self.allow_list = AllowList(store)
        self.catalog = ModelCatalog(self.transport, api_key, config.model.sort_order)

        self.describer = ImageDescriber(
            self.transport,
            self.rate_limiter,
            config.model,
            api_key,
            request_timeout=config.api.request_timeout,
        )
        self.builder = ItemContextBuilder(self.describer, pipeline.enable_image_descriptions)
        self.threads = ThreadContextAssembler(self.builder, self.cache, extractor)

        self.retry = RetryController(
            self.transport,
            self.rate_limiter,
            api_key,
            max_retries=pipeline.max_retries,
            request_timeout=config.api.request_timeout,
            inactivity_timeout=pipeline.stream_inactivity_timeout,
            backoff_unit=pipeline.backoff_unit,
            sleep=sleep,
        )

        self.coordinator = ItemProcessingCoordinator(
            self.allow_list,
            self.cache,
            self.builder,
            self.threads,
            self.retry,
            self.catalog,
            config.model,
            presentation,
            streaming=pipeline.streaming,
            processing_delay=pipeline.processing_delay,
            sleep=sleep,
        )

    async def start(self, refresh_models: bool = True) -> None:
        """Load the persisted cache and, with a key configured, the model list."""
        self.cache.load()

        if refresh_models and self.config.api.api_key:
            try:
                await self.catalog.refresh()
            except RatingError as e:
                logger.warning("model_catalog_refresh_failed", error=str(e))

    async def discover(self, item: Item) -> Optional[asyncio.Task]:
        """
        Handle a newly rendered item.

        Advances its conversation's thread context first, so that replies
        are rated with their ancestors, then schedules the item.
        """
        if item.conversation_id:
            while True:
                folded = await self.threads.observe(item.conversation_id)
                if folded is None:
                    break
                if folded.item_id != item.item_id:
                    self.coordinator.schedule(folded)

        return self.coordinator.schedule(item)

    async def drain(self):
        return await self.coordinator.drain()

    async def aclose(self) -> None:
        """Wait for in-flight items and write any debounced cache update."""
        await self.coordinator.drain()
        self.cache.flush()
