"""Interfaces the rating pipeline expects from its host environment."""

from typing import Any, Optional, Protocol

from tweetrater.models.item import Item


class ContentExtractor(Protocol):
    """Source of items and of the structure of the conversation they belong to."""

    def root_item(self, conversation_id: str) -> Optional[Item]:
        """Original post of a conversation, if it has been rendered."""
        ...

    def get_item(self, item_id: str) -> Optional[Item]:
        ...

    def find_next_unprocessed_sibling(self, conversation_id: str) -> Optional[str]:
        """ID of the next reply in the chain not yet handed out, if one is rendered."""
        ...

    def release_sibling(self, conversation_id: str, item_id: str) -> None:
        """Offer a handed-out reply again after it failed to fold."""
        ...


class KeyValueStore(Protocol):
    """Persistent string-keyed storage for JSON-compatible values."""

    def get(self, key: str, default: Any = None) -> Any:
        ...

    def set(self, key: str, value: Any) -> None:
        ...


class Presentation(Protocol):
    """Receiver of per-item indicator updates."""

    def on_indicator_update(
        self,
        item_id: str,
        score: Optional[int],
        status: str,
        description: str,
    ) -> None:
        ...
