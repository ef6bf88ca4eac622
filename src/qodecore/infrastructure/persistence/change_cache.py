"""Recent edits cache."""

import threading
from collections import OrderedDict

from qodecore.domain.entities import ChangeCacheEntry


class ChangeCache:
    """Fixed-capacity FIFO of recently edited lines.

    One entry per (path, line number); editing the same line again updates
    the snippet in place. When full, the oldest entry is dropped.
    """

    def __init__(self, capacity: int) -> None:
        """Initialize the cache.

        Args:
            capacity: Maximum number of entries.
        """
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._entries: OrderedDict[tuple[str, int], ChangeCacheEntry] = OrderedDict()
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        """Maximum number of entries."""
        return self._capacity

    def add(self, entry: ChangeCacheEntry) -> None:
        """Record an edited line."""
        key = (entry.path, entry.line_number)
        with self._lock:
            if key in self._entries:
                self._entries[key] = entry
                return
            self._entries[key] = entry
            while len(self._entries) > self._capacity:
                self._entries.popitem(last=False)

    def entries(self) -> list[ChangeCacheEntry]:
        """Entries, oldest first."""
        with self._lock:
            return list(self._entries.values())

    def recent_changes_context(self, exclude_path: str | None = None) -> str:
        """Edited lines from files other than ``exclude_path``, one per line.

        Args:
            exclude_path: File to leave out (usually the active document).

        Returns:
            Newline-terminated snippets, oldest first. Empty if none.
        """
        return "".join(
            f"{entry.snippet}\n"
            for entry in self.entries()
            if entry.path != exclude_path
        )

    def clear(self) -> None:
        """Remove all entries."""
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
