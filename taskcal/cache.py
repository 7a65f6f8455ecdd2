"""Per-task occurrence cache with change-driven invalidation.

Entries are keyed by task id and query range and tagged with the task's
version and the cache generation. ``invalidate(task_id)`` bumps that version
and ``clear()`` bumps the generation, so every entry computed before the
change is ignored from then on. There is no time-based expiry.
"""

from __future__ import annotations

import logging
import threading
from datetime import date
from typing import Callable, Hashable, Iterable, Tuple

from .ledger import TaskOccurrenceView

logger = logging.getLogger(__name__)

Occurrences = Tuple[TaskOccurrenceView, ...]


class OccurrenceCache:
    def __init__(self, max_size: int = 512):
        """Initialize the cache.

        Args:
            max_size: Maximum number of cached ranges (FIFO eviction when full)
        """
        self.max_size = max_size
        self._entries: dict[tuple, tuple[int, int, Occurrences]] = {}
        self._versions: dict[Hashable, int] = {}
        self._generation = 0
        self._lock = threading.Lock()
        self.stats = {
            "hits": 0,
            "misses": 0,
            "evictions": 0,
            "invalidations": 0,
        }

    def get_or_compute(
        self,
        task_id: Hashable,
        start: date,
        end: date,
        compute: Callable[[], Iterable[TaskOccurrenceView]],
    ) -> Occurrences:
        """Return the cached occurrences for a task and range, computing on a miss.

        Args:
            task_id: Identifier of the owning task
            start: First day of the range
            end: Last day of the range
            compute: Zero-argument callable producing the occurrences

        Returns:
            Immutable tuple of occurrence views
        """
        key = (task_id, start, end)
        with self._lock:
            stamp = (self._generation, self._versions.get(task_id, 0))
            entry = self._entries.get(key)
            if entry is not None and entry[:2] == stamp:
                self.stats["hits"] += 1
                return entry[2]
            self.stats["misses"] += 1

        value = tuple(compute())

        with self._lock:
            # A concurrent invalidate() or clear() means this value may already be stale.
            if (self._generation, self._versions.get(task_id, 0)) == stamp:
                self._entries[key] = (*stamp, value)
                if len(self._entries) > self.max_size:
                    oldest_key = next(iter(self._entries))
                    del self._entries[oldest_key]
                    self.stats["evictions"] += 1
                    logger.debug("Evicted oldest occurrence entry: %s", oldest_key)
        return value

    def invalidate(self, task_id: Hashable) -> None:
        """Drop everything cached for one task (call after any change to it)."""
        with self._lock:
            self._versions[task_id] = self._versions.get(task_id, 0) + 1
            self._entries = {key: entry for key, entry in self._entries.items() if key[0] != task_id}
            self.stats["invalidations"] += 1
        logger.debug("Invalidated occurrence cache for task %s", task_id)

    def clear(self) -> None:
        with self._lock:
            self._generation += 1
            self._entries = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
