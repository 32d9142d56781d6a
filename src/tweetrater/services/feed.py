"""File-backed item discovery for the command line.

Items are read from JSON lines, one Item per line, in the order they
would appear on screen:

    {"item_id": "1", "author_handle": "alice", "text": "...", "conversation_id": "c1", "is_thread_root": true}
    {"item_id": "2", "author_handle": "bob", "text": "...", "conversation_id": "c1"}
"""

from pathlib import Path
from typing import Dict, Optional

from pydantic import ValidationError

from tweetrater.models.item import Item


def load_items(path: Path) -> list[Item]:
    """
    Read items from a JSON lines file. Blank lines are skipped.

    Raises:
        ValueError: If a line is not a valid item
    """
    items = []
    for line_number, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
        if not line.strip():
            continue
        try:
            items.append(Item.model_validate_json(line))
        except ValidationError as e:
            raise ValueError(f"{path}:{line_number}: invalid item: {e}") from e
    return items


class FeedExtractor:
    """
    Content extractor over items revealed one at a time.

    A reply counts as ready to fold into its thread once a later reply of
    the same conversation has been revealed.
    """

    def __init__(self):
        self._items: Dict[str, Item] = {}
        self._roots: Dict[str, str] = {}
        self._replies: Dict[str, list[str]] = {}
        self._handed_out: set[str] = set()

    def reveal(self, item: Item) -> None:
        self._items[item.item_id] = item
        if not item.conversation_id:
            return
        if item.is_thread_root:
            self._roots.setdefault(item.conversation_id, item.item_id)
        else:
            replies = self._replies.setdefault(item.conversation_id, [])
            if item.item_id not in replies:
                replies.append(item.item_id)

    def root_item(self, conversation_id: str) -> Optional[Item]:
        item_id = self._roots.get(conversation_id)
        return self._items.get(item_id) if item_id else None

    def get_item(self, item_id: str) -> Optional[Item]:
        return self._items.get(item_id)

    def find_next_unprocessed_sibling(self, conversation_id: str) -> Optional[str]:
        replies = self._replies.get(conversation_id, [])
        for item_id in replies[:-1]:
            if item_id not in self._handed_out:
                self._handed_out.add(item_id)
                return item_id
        return None

    def release_sibling(self, conversation_id: str, item_id: str) -> None:
        self._handed_out.discard(item_id)
