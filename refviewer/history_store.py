"""
RefViewer undo history.
Bounded LIFO of prior CanonicalImage states for a single loaded image.
"""

from collections import deque

from refviewer.errors import HistoryEmpty

DEFAULT_LIMIT = 15


class HistoryStore:
    """Most recent entry first; pushing past `limit` evicts the oldest."""

    def __init__(self, limit=DEFAULT_LIMIT):
        if limit < 1:
            raise ValueError(f"History limit must be at least 1, got {limit}")
        self._entries = deque(maxlen=limit)

    @property
    def limit(self):
        return self._entries.maxlen

    def __len__(self):
        return len(self._entries)

    def push(self, image):
        """Insert at the front; returns the evicted oldest entry, if any."""
        evicted = None
        if len(self._entries) == self._entries.maxlen:
            evicted = self._entries[-1]
        # appendleft on a full deque drops the rightmost (oldest) entry
        self._entries.appendleft(image)
        return evicted

    def pop(self):
        try:
            return self._entries.popleft()
        except IndexError:
            raise HistoryEmpty() from None

    def unpush(self, evicted=None):
        """Undo the last push, putting back whatever it evicted."""
        image = self.pop()
        if evicted is not None:
            self._entries.append(evicted)
        return image

    def peek(self):
        return self._entries[0] if self._entries else None

    def flush(self):
        self._entries.clear()
