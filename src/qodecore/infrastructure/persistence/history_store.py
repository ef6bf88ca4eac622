"""Token-bounded conversation history."""

import logging
import threading
from collections.abc import Iterable

from qodecore.domain.entities import HistoryEntry
from qodecore.domain.exceptions import HistoryEntryOversizedError

logger = logging.getLogger(__name__)


class HistoryStore:
    """Chronological history with a running token total.

    After every mutation the total is within the limit. Appending evicts
    the oldest entries until the new entry fits; an entry that alone
    exceeds the limit is rejected and the store stays as it was.

    The store is shared between the request path and the UI thread, so
    mutations are serialized by a lock.
    """

    def __init__(self, token_limit: int) -> None:
        """Initialize the store.

        Args:
            token_limit: Maximum total token count.
        """
        if token_limit <= 0:
            raise ValueError(f"token_limit must be positive, got {token_limit}")
        self._token_limit = token_limit
        self._entries: list[HistoryEntry] = []
        self._total = 0
        self._lock = threading.Lock()

    @property
    def token_limit(self) -> int:
        """Maximum total token count."""
        return self._token_limit

    def append(self, entry: HistoryEntry) -> list[HistoryEntry]:
        """Append an entry, evicting from the head as needed.

        Args:
            entry: Entry to append.

        Returns:
            Evicted entries, oldest first.

        Raises:
            HistoryEntryOversizedError: If the entry alone exceeds the limit.
        """
        if entry.token_count > self._token_limit:
            raise HistoryEntryOversizedError(entry.token_count, self._token_limit)

        with self._lock:
            self._entries.append(entry)
            self._total += entry.token_count
            evicted: list[HistoryEntry] = []
            while self._total > self._token_limit:
                oldest = self._entries.pop(0)
                self._total -= oldest.token_count
                evicted.append(oldest)
            total = self._total

        if evicted:
            logger.debug(
                "Evicted %d history entries (%d tokens in use)",
                len(evicted),
                total,
            )
        return evicted

    def entries(self) -> list[HistoryEntry]:
        """Copy of the entries, oldest first."""
        with self._lock:
            return list(self._entries)

    def current_token_total(self) -> int:
        """Total token count of all entries."""
        with self._lock:
            return self._total

    def snapshot(self) -> tuple[HistoryEntry, ...]:
        """Capture the current entries for a later ``restore``."""
        with self._lock:
            return tuple(self._entries)

    def restore(self, snapshot: tuple[HistoryEntry, ...]) -> None:
        """Return to a captured state."""
        self.replace(snapshot)

    def replace(self, entries: Iterable[HistoryEntry]) -> list[HistoryEntry]:
        """Replace all entries.

        Entries beyond the limit are evicted from the head as in ``append``.

        Returns:
            Evicted entries, oldest first.

        Raises:
            HistoryEntryOversizedError: If one entry alone exceeds the limit.
                The store is unchanged in that case.
        """
        new_entries = list(entries)
        for entry in new_entries:
            if entry.token_count > self._token_limit:
                raise HistoryEntryOversizedError(entry.token_count, self._token_limit)

        total = sum(entry.token_count for entry in new_entries)
        evicted: list[HistoryEntry] = []
        while total > self._token_limit:
            oldest = new_entries.pop(0)
            total -= oldest.token_count
            evicted.append(oldest)

        with self._lock:
            self._entries = new_entries
            self._total = total
        return evicted

    def remove(self, entry: HistoryEntry) -> bool:
        """Remove one entry, matched by identity.

        Returns:
            Whether the entry was in the store.
        """
        with self._lock:
            for index, existing in enumerate(self._entries):
                if existing is entry:
                    del self._entries[index]
                    self._total -= entry.token_count
                    return True
        return False

    def clear(self) -> None:
        """Remove all entries."""
        with self._lock:
            self._entries.clear()
            self._total = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
