"""Per-item rating cache with debounced persistence.

Persisted format (a JSON string stored under the "tweetRatings" key):
{
    "<item_id>": {
        "source_content": "...",
        "score": 8,
        "description": "...",
        "streaming": false,
        "timestamp": 1730000000.0
    },
    ...
}
"""

import json
import time
from typing import Callable, Dict, Optional

from pydantic import ValidationError

from tweetrater.models.rating import CacheEntry
from tweetrater.services.collaborators import KeyValueStore
from tweetrater.utils.logging import get_logger


logger = get_logger(__name__)

CACHE_KEY = "tweetRatings"

CacheObserver = Callable[[Optional[str]], None]


class ResultCache:
    """
    In-memory map of ItemID to CacheEntry, mirrored to a KeyValueStore.

    Finalized entries (streaming=False) are never rewritten by streaming
    updates. Streaming entries are the best score known so far and are
    replaced on finalize.

    Persistence during streaming is throttled to one write per debounce
    window; finalize() and clear() always write immediately.
    """

    def __init__(
        self,
        store: KeyValueStore,
        key: str = CACHE_KEY,
        debounce: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            store: Backing key-value store
            key: Store key holding the serialized cache
            debounce: Minimum seconds between non-forced writes
            clock: Monotonic time source for the debounce window
        """
        self.store = store
        self.key = key
        self.debounce = debounce
        self._clock = clock
        self.entries: Dict[str, CacheEntry] = {}
        self._last_persist: Optional[float] = None
        self._dirty = False
        self._observers: list[CacheObserver] = []

    def load(self) -> int:
        """
        Replace in-memory entries with the persisted cache.

        A malformed persisted cache is discarded with a warning.

        Returns:
            Number of entries loaded
        """
        raw = self.store.get(self.key)
        if not raw:
            self.entries = {}
            return 0

        try:
            self.entries = self.deserialize(raw)
        except ValueError as e:
            logger.warning("cache_load_failed", key=self.key, error=str(e))
            self.entries = {}
            return 0

        logger.info("cache_loaded", key=self.key, count=len(self.entries))
        self._notify(None)
        return len(self.entries)

    def lookup(self, item_id: str) -> Optional[CacheEntry]:
        return self.entries.get(item_id)

    def upsert_streaming(
        self,
        item_id: str,
        source_content: str,
        partial_score: Optional[int],
        partial_text: str,
    ) -> Optional[CacheEntry]:
        """
        Record the best result known so far for an item still streaming.

        Creates an entry only once a score has appeared; afterwards updates
        the description (and the score, when one is known) in place.

        Returns:
            The stored entry, or None if nothing was stored
        """
        existing = self.entries.get(item_id)

        if existing is None:
            if partial_score is None:
                return None
            entry = CacheEntry(
                item_id=item_id,
                source_content=source_content,
                score=partial_score,
                description=partial_text,
                streaming=True,
            )
        elif not existing.streaming:
            return existing
        else:
            entry = existing.model_copy(update={
                "source_content": source_content,
                "description": partial_text,
                "score": partial_score if partial_score is not None else existing.score,
            })

        self.entries[item_id] = entry
        self._notify(item_id)
        self.persist()
        return entry

    def finalize(self, item_id: str, source_content: str, score: int, text: str) -> CacheEntry:
        """Write the authoritative entry for an item and persist immediately."""
        entry = CacheEntry(
            item_id=item_id,
            source_content=source_content,
            score=score,
            description=text,
            streaming=False,
            timestamp=time.time(),
        )
        self.entries[item_id] = entry
        logger.debug("cache_entry_finalized", item_id=item_id, score=score)
        self._notify(item_id)
        self.persist(force=True)
        return entry

    def persist(self, force: bool = False) -> bool:
        """
        Write the cache to the store unless a write happened within the
        debounce window.

        Args:
            force: Write regardless of the debounce window

        Returns:
            True if a write happened
        """
        now = self._clock()
        if not force and self._last_persist is not None and now - self._last_persist < self.debounce:
            self._dirty = True
            return False

        self.store.set(self.key, self.serialize())
        self._last_persist = now
        self._dirty = False
        return True

    def flush(self) -> bool:
        """Write any update skipped by the debounce window."""
        if self._dirty:
            return self.persist(force=True)
        return False

    def clear(self) -> int:
        """Remove every entry. Returns the number removed."""
        count = len(self.entries)
        self.entries = {}
        self.persist(force=True)
        logger.info("cache_cleared", count=count)
        self._notify(None)
        return count

    def stats(self) -> Dict[str, int]:
        streaming = sum(1 for entry in self.entries.values() if entry.streaming)
        return {
            "total": len(self.entries),
            "finalized": len(self.entries) - streaming,
            "streaming": streaming,
        }

    def subscribe(self, observer: CacheObserver) -> Callable[[], None]:
        """
        Register a change observer.

        The observer receives the changed ItemID, or None after a bulk
        change (load or clear).

        Returns:
            Callable that unsubscribes the observer
        """
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _notify(self, item_id: Optional[str]) -> None:
        for observer in list(self._observers):
            observer(item_id)

    def serialize(self) -> str:
        return json.dumps({
            item_id: entry.model_dump(exclude={"item_id"})
            for item_id, entry in self.entries.items()
        })

    @staticmethod
    def deserialize(text: str) -> Dict[str, CacheEntry]:
        """
        Parse a serialized cache.

        Raises:
            ValueError: If text is not a JSON object of valid entries
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"Malformed cache: {e}") from e

        if not isinstance(data, dict):
            raise ValueError(f"Malformed cache: expected object, got {type(data).__name__}")

        entries: Dict[str, CacheEntry] = {}
        for item_id, fields in data.items():
            if not isinstance(fields, dict):
                raise ValueError(f"Malformed cache entry for {item_id}")
            try:
                entries[item_id] = CacheEntry(**{**fields, "item_id": item_id})
            except ValidationError as e:
                raise ValueError(f"Invalid cache entry for {item_id}: {e}") from e
        return entries
