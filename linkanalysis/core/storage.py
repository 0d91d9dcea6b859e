"""
Key-value store abstraction and a TTL cache with get-or-populate semantics
"""

import json
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Protocol, Union

from loguru import logger

MINUTE = 60
HOUR = 60 * MINUTE
DAY = 24 * HOUR
WEEK = 7 * DAY


class KeyValueStore(Protocol):
    """Narrow capability the core depends on for persistence"""

    def get(self, key: str) -> Optional[Any]:
        ...

    def set(self, key: str, value: Any) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class InMemoryStore:
    """Process-local store, the default when nothing is injected"""

    def __init__(self):
        self._data: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self):
        with self._lock:
            return list(self._data)


class JsonFileStore:
    """
    Store persisted as a single JSON document on disk.

    Values must be JSON-serializable. Every write rewrites the whole file,
    which is fine for the handful of saved analyses and settings it holds.
    """

    def __init__(self, filepath: Union[str, Path]):
        self.filepath = Path(filepath)
        self._lock = threading.Lock()
        self._data: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        if not self.filepath.exists():
            return {}
        try:
            with open(self.filepath, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Corrupted store file {self.filepath}: {e}")
            raise
        if not isinstance(data, dict):
            raise ValueError(f"Store file {self.filepath} must contain a JSON object")
        return data

    def _flush(self) -> None:
        self.filepath.parent.mkdir(parents=True, exist_ok=True)
        with open(self.filepath, "w", encoding="utf-8") as f:
            json.dump(self._data, f, indent=2, ensure_ascii=False, default=str)

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value
            self._flush()

    def delete(self, key: str) -> None:
        with self._lock:
            if self._data.pop(key, None) is not None:
                self._flush()


class TTLCache:
    """
    Cache with per-entry expiry on top of any KeyValueStore.

    Entries are stored as {"value": ..., "expires_at": ...}. An expired
    entry is evicted on access and treated as a miss.
    """

    def __init__(self, store: Optional[KeyValueStore] = None,
                 default_ttl: float = HOUR,
                 clock: Callable[[], float] = time.time):
        self.store = store if store is not None else InMemoryStore()
        self.default_ttl = default_ttl
        self.clock = clock
        self._keys: Dict[str, None] = {}
        self._lock = threading.RLock()

    def _entry(self, key: str) -> Optional[Dict[str, Any]]:
        entry = self.store.get(key)
        if entry is None:
            return None
        if self.clock() >= entry["expires_at"]:
            logger.debug(f"Cache entry expired: {key}")
            self.delete(key)
            return None
        return entry

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entry(key)
            return None if entry is None else entry["value"]

    def has(self, key: str) -> bool:
        with self._lock:
            return self._entry(key) is not None

    def set(self, key: str, value: Any, expires_in: Optional[float] = None) -> None:
        ttl = self.default_ttl if expires_in is None else expires_in
        with self._lock:
            self.store.set(key, {"value": value, "expires_at": self.clock() + ttl})
            self._keys[key] = None

    def delete(self, key: str) -> None:
        with self._lock:
            self.store.delete(key)
            self._keys.pop(key, None)

    def clear(self) -> None:
        """Remove every entry written through this cache"""
        with self._lock:
            for key in list(self._keys):
                self.store.delete(key)
            self._keys.clear()

    def get_or_set(self, key: str, factory: Callable[[], Any], expires_in: Optional[float] = None) -> Any:
        """Return the cached value, computing and storing it on a miss"""
        with self._lock:
            entry = self._entry(key)
            if entry is not None:
                return entry["value"]
        value = factory()
        self.set(key, value, expires_in)
        return value
