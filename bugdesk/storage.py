"""
bugdesk Key-Value Storage

The tracker core treats persistence as an opaque key-value store holding one
JSON value per named slot. Every write replaces the whole slot: there are no
partial updates and no transactions spanning slots.
"""

import copy
import json
import logging
import os
import tempfile
from typing import Any, Dict, Optional

from .config import DEFAULT_KEY_PREFIX
from .errors import StorageError


logger = logging.getLogger(__name__)


class Slot:
    """Slot names of the persisted snapshot."""

    TICKETS = "tickets"
    COMMENTS = "comments"
    ACTIVITIES = "activities"
    USERS = "users"
    CURRENT_USER = "currentUser"


class KeyValueStore:
    """
    Base store. Subclasses implement `_read` / `_write` / `_remove` on fully
    prefixed keys; callers only ever see slot names.
    """

    def __init__(self, key_prefix: str = DEFAULT_KEY_PREFIX):
        self.key_prefix = key_prefix

    def _key(self, slot: str) -> str:
        return f"{self.key_prefix}{slot}"

    def get(self, slot: str, default: Any = None) -> Any:
        value = self._read(self._key(slot))
        if value is None:
            return default
        return value

    def set(self, slot: str, value: Any) -> None:
        self._write(self._key(slot), value)

    def delete(self, slot: str) -> None:
        self._remove(self._key(slot))

    def contains(self, slot: str) -> bool:
        """Whether the slot was ever written; an explicit null counts."""
        return self._contains(self._key(slot))

    def _read(self, key: str) -> Any:
        raise NotImplementedError

    def _write(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def _remove(self, key: str) -> None:
        raise NotImplementedError

    def _contains(self, key: str) -> bool:
        raise NotImplementedError


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store. Values are deep-copied in and out."""

    def __init__(self, key_prefix: str = DEFAULT_KEY_PREFIX):
        super().__init__(key_prefix)
        self._data: Dict[str, Any] = {}

    def _read(self, key: str) -> Any:
        return copy.deepcopy(self._data.get(key))

    def _write(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def _remove(self, key: str) -> None:
        self._data.pop(key, None)

    def _contains(self, key: str) -> bool:
        return key in self._data


class JsonFileKeyValueStore(KeyValueStore):
    """
    All slots in a single JSON document on disk.

    Each write rewrites the document through a temp file + os.replace, so a
    reader never observes a half-written file.
    """

    def __init__(self, path: str, key_prefix: str = DEFAULT_KEY_PREFIX):
        super().__init__(key_prefix)
        self.path = path

    def _load(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as fh:
            try:
                document = json.load(fh)
            except json.JSONDecodeError as exc:
                raise StorageError(f"Snapshot {self.path} is not valid JSON: {exc}") from exc
        if not isinstance(document, dict):
            raise StorageError(f"Snapshot {self.path} must hold a JSON object")
        return document

    def _dump(self, document: Dict[str, Any]) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(document, fh, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            os.unlink(tmp_path)
            raise

    def _read(self, key: str) -> Any:
        return self._load().get(key)

    def _write(self, key: str, value: Any) -> None:
        document = self._load()
        document[key] = value
        self._dump(document)
        logger.debug("Wrote slot %s to %s", key, self.path)

    def _remove(self, key: str) -> None:
        document = self._load()
        if key in document:
            del document[key]
            self._dump(document)

    def _contains(self, key: str) -> bool:
        return key in self._load()


def create_store(path: Optional[str] = None, key_prefix: str = DEFAULT_KEY_PREFIX) -> KeyValueStore:
    """JSON-file store when a path is configured, otherwise in-memory."""
    if path:
        return JsonFileKeyValueStore(path, key_prefix=key_prefix)
    return InMemoryKeyValueStore(key_prefix=key_prefix)
