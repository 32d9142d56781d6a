"""Key-value stores backing the rating cache and the allow-list.

JsonFileStore keeps every key in one JSON document:
{
    "tweetRatings": "{...serialized cache...}",
    "blacklistedHandles": "alice\\nbob",
    ...
}
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional


class JsonFileStore:
    """Key-value store persisted as a single JSON file.

    Every set() rewrites the file atomically (write to temp, then rename).
    """

    def __init__(self, path: Path):
        """Initialize store.

        Args:
            path: Path to store JSON file
        """
        self.path = path
        self.entries: Dict[str, Any] = {}

        if path.exists():
            self.load()

    def load(self) -> None:
        """Load entries from disk.

        Raises:
            ValueError: If store file is malformed
        """
        try:
            content = self.path.read_text(encoding="utf-8")
            entries = json.loads(content) if content.strip() else {}
        except json.JSONDecodeError as e:
            raise ValueError(f"Malformed store file: {e}") from e

        if not isinstance(entries, dict):
            raise ValueError(f"Malformed store file: expected object, got {type(entries).__name__}")
        self.entries = entries

    def save(self) -> None:
        """Save entries to disk, creating parent directories if needed."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

        temp_path = self.path.with_suffix(".tmp")
        try:
            temp_path.write_text(json.dumps(self.entries, indent=2, sort_keys=True), encoding="utf-8")
            temp_path.replace(self.path)
        except Exception as e:
            if temp_path.exists():
                temp_path.unlink()
            raise IOError(f"Failed to save store: {e}") from e

    def get(self, key: str, default: Any = None) -> Any:
        return self.entries.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.entries[key] = value
        self.save()

    def keys(self) -> list[str]:
        return list(self.entries.keys())


class MemoryStore:
    """In-process store, for tests and one-shot runs."""

    def __init__(self, entries: Optional[Dict[str, Any]] = None):
        self.entries: Dict[str, Any] = dict(entries or {})
        self.writes = 0

    def get(self, key: str, default: Any = None) -> Any:
        return self.entries.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.entries[key] = value
        self.writes += 1
