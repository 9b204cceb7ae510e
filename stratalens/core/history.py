"""Undo history for destructive edits.

The log only stores snapshots and moves a pointer. It knows nothing about
filters, sort or samples: callers must reset those after an undo, since
they may reference columns the restored snapshot does not have.
"""

import logging
from collections import deque
from typing import Deque, List, Optional, Sequence

import pandas as pd

from stratalens.config import settings
from stratalens.core.state import Snapshot

logger = logging.getLogger(__name__)


class MutationLog:
    """Bounded list of dataset snapshots with a current-position pointer.

    ``capacity`` counts the current state plus the undo steps behind it.
    """

    def __init__(self, data: pd.DataFrame, headers: Sequence[str], capacity: Optional[int] = None):
        self.capacity = max(1, capacity or settings.history_size)
        self._entries: List[Snapshot] = [Snapshot(data=data, headers=list(headers))]
        self._index = 0

    @property
    def current(self) -> Snapshot:
        return self._entries[self._index]

    @property
    def can_undo(self) -> bool:
        return self._index > 0

    def __len__(self) -> int:
        return len(self._entries)

    def push(self, data: pd.DataFrame, headers: Sequence[str]) -> Snapshot:
        """Commit a new snapshot at the current position."""
        entries = self._entries[: self._index + 1]
        entries.append(Snapshot(data=data, headers=list(headers)))
        if len(entries) > self.capacity:
            entries = entries[len(entries) - self.capacity:]
        self._entries = entries
        self._index = len(entries) - 1
        logger.debug(f"History push: {len(data)} rows × {len(headers)} cols (depth {len(entries)})")
        return self.current

    def undo(self) -> bool:
        """Step back one snapshot. Returns False (and does nothing) at the oldest entry."""
        if not self.can_undo:
            return False
        self._index -= 1
        logger.info(f"Undo → history position {self._index}")
        return True


class SampleLog:
    """Stack of earlier states of a drawn sample, for its own column deletions."""

    def __init__(self, capacity: Optional[int] = None):
        self.capacity = max(1, capacity or settings.sample_history_size)
        self._stack: Deque[Snapshot] = deque(maxlen=self.capacity)

    def __len__(self) -> int:
        return len(self._stack)

    @property
    def can_undo(self) -> bool:
        return bool(self._stack)

    def push(self, data: pd.DataFrame, headers: Sequence[str]) -> None:
        self._stack.append(Snapshot(data=data, headers=list(headers)))

    def undo(self) -> Optional[Snapshot]:
        """Pop the most recent earlier state, or None when there is nothing to undo."""
        if not self._stack:
            return None
        return self._stack.pop()

    def clear(self) -> None:
        self._stack.clear()
