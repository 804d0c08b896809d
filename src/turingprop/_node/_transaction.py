"""Undo journal backing `PropertyNode.transaction`."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Hashable

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class UndoJournal:
    """Pre-mutation state of every slot touched during one transaction.

    Only the first undo recorded for a slot is kept, so rollback restores the
    state from before the transaction started.
    """

    _entries: dict[Hashable, Callable[[], None]] = field(default_factory=dict)

    def record(self, slot: Hashable, undo: Callable[[], None]) -> None:
        self._entries.setdefault(slot, undo)

    def merge_into(self, outer: UndoJournal) -> None:
        """Hand the entries of a committed nested transaction to the enclosing one."""
        for slot, undo in self._entries.items():
            outer.record(slot, undo)

    def rollback(self) -> None:
        """Run the undos, most recent first."""
        logger.debug("Rolling back %d mutation(s)", len(self._entries))
        for undo in reversed(list(self._entries.values())):
            undo()
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
