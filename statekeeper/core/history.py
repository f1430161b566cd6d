# statekeeper/core/history.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

from typing import Any, Dict, List, Optional

Snapshot = Dict[str, Any]


class HistoryManager:
    """
    Keeps the undo and redo stacks of full state snapshots. Both stacks are
    unbounded and last-in-first-out.
    """

    def __init__(self) -> None:
        self._undo_stack: List[Snapshot] = []
        self._redo_stack: List[Snapshot] = []

    def record(self, snapshot: Snapshot) -> None:
        """
        Push the outgoing state of a forward commit. Any forward commit
        invalidates the redo history.

        :param snapshot: Copy of the state being replaced.
        """
        self._undo_stack.append(snapshot)
        self._redo_stack.clear()

    def undo(self, current: Snapshot) -> Optional[Snapshot]:
        """
        Pop the latest undo snapshot and park the current state on the redo stack.

        :param current: Copy of the current state.
        :return: The snapshot to make current, or None if there is nothing to undo.
        """
        if not self._undo_stack:
            return None
        previous = self._undo_stack.pop()
        self._redo_stack.append(current)
        return previous

    def redo(self, current: Snapshot) -> Optional[Snapshot]:
        """
        Mirror of undo() against the redo stack.
        """
        if not self._redo_stack:
            return None
        following = self._redo_stack.pop()
        self._undo_stack.append(current)
        return following

    def clear(self) -> None:
        self._undo_stack.clear()
        self._redo_stack.clear()

    @property
    def undo_size(self) -> int:
        return len(self._undo_stack)

    @property
    def redo_size(self) -> int:
        return len(self._redo_stack)
