"""Authors whose items skip rating and get the maximum score.

Stored under the historical key "blacklistedHandles" as one handle per line.
"""

from tweetrater.services.collaborators import KeyValueStore
from tweetrater.utils.logging import get_logger


logger = get_logger(__name__)

STORE_KEY = "blacklistedHandles"
ALLOW_LISTED_SCORE = 10


def normalize_handle(handle: str) -> str:
    return handle.strip().lstrip("@").strip()


class AllowList:
    """Case-insensitive set of author handles, persisted on every change."""

    def __init__(self, store: KeyValueStore):
        self.store = store
        raw = store.get(STORE_KEY, "") or ""
        self._handles: list[str] = [h for h in (normalize_handle(line) for line in raw.split("\n")) if h]

    @property
    def handles(self) -> list[str]:
        return list(self._handles)

    def contains(self, handle: str) -> bool:
        needle = normalize_handle(handle).lower()
        if not needle:
            return False
        return any(h.lower() == needle for h in self._handles)

    def add(self, handle: str) -> bool:
        """Add a handle. Returns False if it was empty or already present."""
        handle = normalize_handle(handle)
        if not handle or self.contains(handle):
            return False
        self._handles.append(handle)
        self._save()
        logger.info("allow_list_handle_added", handle=handle)
        return True

    def remove(self, handle: str) -> bool:
        """Remove a handle. Returns False if it was not present."""
        needle = normalize_handle(handle).lower()
        remaining = [h for h in self._handles if h.lower() != needle]
        if len(remaining) == len(self._handles):
            return False
        self._handles = remaining
        self._save()
        logger.info("allow_list_handle_removed", handle=normalize_handle(handle))
        return True

    def _save(self) -> None:
        self.store.set(STORE_KEY, "\n".join(self._handles))
