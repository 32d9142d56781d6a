"""Reply-chain context assembly, one conversation at a time."""

from enum import Enum
from typing import Dict, Optional

from tweetrater.models.item import Item
from tweetrater.services.collaborators import ContentExtractor
from tweetrater.services.item_context import REPLY_SEPARATOR, ItemContextBuilder
from tweetrater.services.result_cache import ResultCache
from tweetrater.utils.logging import get_logger


logger = get_logger(__name__)


class ThreadState(str, Enum):
    ABSENT = "absent"
    PENDING = "pending"
    READY = "ready"


class ThreadContextAssembler:
    """
    Grow the text of a reply chain as its items are discovered.

    Each conversation moves absent -> pending -> ready on its first
    observation (root assembled), then ready -> pending -> ready once per
    folded reply. Observations arriving while a conversation is pending
    are dropped, not queued. Segments are only ever appended.

    Example:
        >>> assembler = ThreadContextAssembler(builder, cache, extractor)
        >>> root = await assembler.observe("conv-1")   # assembles the root
        >>> await assembler.observe("conv-1")          # folds the next reply, if any
        >>> assembler.ancestor_context("conv-1", before_item_id="reply-2")
        '[TWEET root]\\n Author:@alice:\\n...\\n[REPLY]\\n[TWEET reply-1]...'
    """

    def __init__(self, builder: ItemContextBuilder, cache: ResultCache, extractor: ContentExtractor):
        self.builder = builder
        self.cache = cache
        self.extractor = extractor
        self._states: Dict[str, ThreadState] = {}
        self._segments: Dict[str, list[tuple[str, str]]] = {}

    def state(self, conversation_id: str) -> ThreadState:
        return self._states.get(conversation_id, ThreadState.ABSENT)

    def folded_item_ids(self, conversation_id: str) -> list[str]:
        return [item_id for item_id, _ in self._segments.get(conversation_id, [])]

    def ancestor_context(self, conversation_id: str, before_item_id: Optional[str] = None) -> Optional[str]:
        """
        Assembled text that precedes an item of the conversation.

        Segments stay readable while a later reply is being folded; only
        completed segments are included.

        Args:
            conversation_id: Conversation to read
            before_item_id: If this item has already been folded, only the
                segments before it are returned; otherwise all of them

        Returns:
            Joined segments, or None when nothing has been assembled yet or
            nothing precedes the item
        """
        return self._joined(conversation_id, before_item_id)

    def _joined(self, conversation_id: str, before_item_id: Optional[str]) -> Optional[str]:
        texts = []
        for item_id, text in self._segments.get(conversation_id, []):
            if item_id == before_item_id:
                break
            texts.append(text)
        return REPLY_SEPARATOR.join(texts) if texts else None

    async def observe(self, conversation_id: str) -> Optional[Item]:
        """
        Advance the conversation by one assembly step.

        Returns:
            The item whose context was appended (the root on first
            observation, then the folded reply), or None if nothing changed
        """
        state = self.state(conversation_id)

        if state is ThreadState.PENDING:
            logger.debug("thread_observe_dropped", conversation_id=conversation_id)
            return None

        if state is ThreadState.ABSENT:
            item = self.extractor.root_item(conversation_id)
            if item is None:
                return None
        else:
            next_id = self.extractor.find_next_unprocessed_sibling(conversation_id)
            if next_id is None or next_id in self.folded_item_ids(conversation_id):
                return None
            item = self.extractor.get_item(next_id)
            if item is None:
                self.extractor.release_sibling(conversation_id, next_id)
                return None

        self._states[conversation_id] = ThreadState.PENDING
        try:
            if state is ThreadState.ABSENT:
                text = await self.builder.build_own(item)
            else:
                text = await self._reply_segment(conversation_id, item)
        except Exception:
            self._states[conversation_id] = state
            if state is not ThreadState.ABSENT:
                self.extractor.release_sibling(conversation_id, item.item_id)
            raise

        self._segments.setdefault(conversation_id, []).append((item.item_id, text))
        self._states[conversation_id] = ThreadState.READY
        logger.info(
            "thread_segment_appended",
            conversation_id=conversation_id,
            item_id=item.item_id,
            segments=len(self._segments[conversation_id]),
        )
        return item

    async def _reply_segment(self, conversation_id: str, item: Item) -> str:
        """Own text of a reply, reusing the rated context when it is cached."""
        entry = self.cache.lookup(item.item_id)
        if entry is None or not entry.source_content:
            return await self.builder.build_own(item)

        # Cached context already carries the ancestors it was rated with
        prefix = self._joined(conversation_id, item.item_id)
        content = entry.source_content
        if prefix and content.startswith(prefix + REPLY_SEPARATOR):
            content = content[len(prefix) + len(REPLY_SEPARATOR):]
        return content
