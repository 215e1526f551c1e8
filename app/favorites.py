"""Favorite projects, stored as a JSON array of project ids under a single key.

Writes are last-write-wins with no locking. Within one process the event
loop serializes them.
"""

import json
import logging
from pathlib import Path
from typing import Protocol

from app.config import FAVORITES_KEY, FAVORITES_PATH

log = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryStore:
    def __init__(self, initial: dict[str, str] | None = None):
        self._data = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileStore:
    """Key-value pairs kept in one JSON object on disk."""

    def __init__(self, path: Path = FAVORITES_PATH):
        self.path = Path(path)

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except (OSError, ValueError) as e:
            log.warning(f"Unreadable store {self.path.name}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2))


class Favorites:
    def __init__(self, store: KeyValueStore, key: str = FAVORITES_KEY):
        self.store = store
        self.key = key

    def ids(self) -> list[str]:
        raw = self.store.get(self.key)
        if not raw:
            return []
        try:
            ids = json.loads(raw)
        except ValueError:
            log.warning(f"Discarding malformed favorites under {self.key}")
            return []
        return [str(i) for i in ids] if isinstance(ids, list) else []

    def is_favorite(self, project_id: str) -> bool:
        return project_id in self.ids()

    def toggle(self, project_id: str) -> list[str]:
        """Add or remove ``project_id``; returns the new list."""
        current = self.ids()
        if project_id in current:
            updated = [i for i in current if i != project_id]
        else:
            updated = current + [project_id]
        self.store.set(self.key, json.dumps(updated))
        return updated
