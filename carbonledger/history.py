"""Bounded operation history.

A newest-first log of human-readable action descriptions. Only successful
operations are recorded; failures surface through the transaction status
notifier instead. Nothing is persisted across sessions.
"""

import logging
from collections import deque
from datetime import datetime
from typing import Callable, List, Optional

from carbonledger.types import HistoryEntry

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 10


class OperationHistory:
    """Fixed-capacity ring of history entries, newest first."""

    def __init__(
        self,
        capacity: Optional[int] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        if capacity is None:
            from carbonledger.config import get_settings

            capacity = get_settings().history_capacity
        if capacity < 1:
            raise ValueError(f"History capacity must be positive, got {capacity}")
        self._entries: deque[HistoryEntry] = deque(maxlen=capacity)
        self._clock = clock

    @property
    def capacity(self) -> int:
        return self._entries.maxlen

    def append(self, text: str) -> HistoryEntry:
        """Record an action. The oldest entry drops once capacity is reached."""
        entry = HistoryEntry(timestamp=self._clock(), text=text)
        self._entries.appendleft(entry)
        logger.debug("History: %s", text)
        return entry

    @property
    def entries(self) -> List[HistoryEntry]:
        """Entries, newest first."""
        return list(self._entries)

    def lines(self) -> List[str]:
        """Entries formatted as ``HH:MM:SS: text``."""
        return [str(e) for e in self._entries]

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
