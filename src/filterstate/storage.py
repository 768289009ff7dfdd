"""
Persisted storage collaborators.

Fields flagged ``is_save_storage`` read their initial value from a
key/value store (JSON encoded under the field name) and are written back
when the group settles. Two stores are provided: an in-memory one for
headless use and tests, and a JSON file store for persistence across runs.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Protocol, Union

logger = logging.getLogger(__name__)


class KeyValueStorage(Protocol):
    """Minimal string store, shaped like browser localStorage."""

    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryStorage:
    """Process-local storage backed by a dict."""

    def __init__(self, items: Optional[Dict[str, str]] = None):
        self.items: Dict[str, str] = dict(items or {})

    def get_item(self, key: str) -> Optional[str]:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.items[key] = value

    def remove_item(self, key: str) -> None:
        self.items.pop(key, None)


class JsonFileStorage:
    """Storage persisted as a single JSON object on disk.

    The file is read lazily and rewritten on every change.
    """

    def __init__(self, filepath: Union[str, Path]):
        self.filepath = Path(filepath)
        self._items: Optional[Dict[str, str]] = None

    def _load(self) -> Dict[str, str]:
        if self._items is None:
            if self.filepath.exists():
                with open(self.filepath, 'r') as f:
                    self._items = json.load(f)
            else:
                self._items = {}
        return self._items

    def _save(self) -> None:
        self.filepath.parent.mkdir(parents=True, exist_ok=True)
        with open(self.filepath, 'w') as f:
            json.dump(self._load(), f, indent=2)

    def get_item(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        self._load()[key] = value
        self._save()

    def remove_item(self, key: str) -> None:
        if self._load().pop(key, None) is not None:
            self._save()


def read_stored_value(storage: KeyValueStorage, key: str) -> Any:
    """Decode a JSON value from storage; unreadable entries count as absent."""
    raw = storage.get_item(key)
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as e:
        logger.error(f"StorageError: {key}: {e}")
        return None


def write_stored_values(storage: KeyValueStorage, values: Mapping[str, Any]) -> None:
    """JSON-encode values into storage; ``None`` removes the entry."""
    for key, value in values.items():
        if value is None:
            storage.remove_item(key)
        else:
            storage.set_item(key, json.dumps(value))
