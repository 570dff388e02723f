"""Bounded, newest-first chat log."""

from __future__ import annotations

from collections import deque
from itertools import islice

from livecast.schemas.view_model import ChatEntry


class ChatLog:
    """Keeps the newest `capacity` entries; the first `rendered` are shown.

    Entries are never reordered or mutated after insertion. When full, the
    oldest entry is evicted.
    """

    def __init__(self, capacity: int = 50, rendered: int = 15):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._rendered = max(0, min(rendered, capacity))
        # Appended on the left so index 0 is always the newest entry
        self._entries: deque[ChatEntry] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._capacity

    def push(self, entry: ChatEntry) -> ChatEntry | None:
        """Insert `entry` as the newest. Returns the evicted entry, if any."""
        evicted = self._entries[-1] if len(self._entries) == self._capacity else None
        self._entries.appendleft(entry)
        return evicted

    def newest_first(self) -> tuple[ChatEntry, ...]:
        return tuple(self._entries)

    def rendered(self) -> tuple[ChatEntry, ...]:
        return tuple(islice(self._entries, self._rendered))

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
