"""
Lifetime task counters.

Append-only tallies of tasks ever created and ever completed. They live
outside the task store, so deleting tasks never lowers them.
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from functools import lru_cache
from threading import RLock
from typing import Dict

from .settings import get_settings

logger = logging.getLogger(__name__)

_KEYS = ("tasks_created", "tasks_completed")


# PUBLIC_INTERFACE
class LifetimeCounter(ABC):
    """Monotonic counter contract with no decrement operation."""

    @abstractmethod
    def increment_created(self) -> int:
        """Record one task creation and return the new total."""

    @abstractmethod
    def increment_completed(self) -> int:
        """Record one completed transition and return the new total."""

    @abstractmethod
    def snapshot(self) -> Dict[str, int]:
        """Return ``{"tasks_created": n, "tasks_completed": m}``."""


class InMemoryLifetimeCounter(LifetimeCounter):
    """Process-local counters, used with the memory backend and in tests."""

    def __init__(self) -> None:
        self._lock = RLock()
        self._values: Dict[str, int] = {key: 0 for key in _KEYS}

    def _bump(self, key: str) -> int:
        with self._lock:
            self._values[key] += 1
            return self._values[key]

    def increment_created(self) -> int:
        return self._bump("tasks_created")

    def increment_completed(self) -> int:
        return self._bump("tasks_completed")

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._values)


class JsonFileLifetimeCounter(InMemoryLifetimeCounter):
    """
    Counters persisted to a small JSON file, rewritten atomically after every
    increment (temp file in the same directory, then os.replace).
    """

    def __init__(self, path: str) -> None:
        super().__init__()
        self._path = path
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        self._values.update(self._load())

    def _load(self) -> Dict[str, int]:
        if not os.path.exists(self._path):
            return {}
        with open(self._path, "r", encoding="utf-8") as f:
            raw = json.load(f)
        return {key: int(raw.get(key, 0)) for key in _KEYS}

    def _write(self) -> None:
        directory = os.path.dirname(self._path) or "."
        fd, tmp_path = tempfile.mkstemp(prefix=".counters-", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._values, f)
            os.replace(tmp_path, self._path)
        except OSError:
            logger.exception("Failed to persist lifetime counters to %s", self._path)
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def _bump(self, key: str) -> int:
        with self._lock:
            value = super()._bump(key)
            self._write()
            return value


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_lifetime_counter() -> LifetimeCounter:
    """
    Return the process-wide counter store. The sqlite backend persists counters
    to COUNTERS_PATH; the memory backend keeps them in memory.
    """
    settings = get_settings()
    if settings.persistence_backend == "sqlite":
        return JsonFileLifetimeCounter(settings.counters_path)
    return InMemoryLifetimeCounter()
