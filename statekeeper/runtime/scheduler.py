# statekeeper/runtime/scheduler.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Set

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_DELAY = 0.2


class DebounceTimer:
    """
    Coalesces rapid requests: each schedule() cancels the previous not-yet-fired
    request, so only the last one inside the delay window runs.
    """

    def __init__(self, delay: float = DEFAULT_DEBOUNCE_DELAY) -> None:
        """
        :param delay: Seconds to wait after the last request before firing.
        """
        self.delay = delay
        self._handle: Optional[asyncio.TimerHandle] = None
        self._inflight: Set[asyncio.Task] = set()

    @property
    def delay(self) -> float:
        return self._delay

    @delay.setter
    def delay(self, value: float) -> None:
        if value < 0:
            raise ValueError("Debounce delay must not be negative")
        self._delay = value

    @property
    def pending(self) -> bool:
        """True while a scheduled request has not fired yet."""
        return self._handle is not None

    def schedule(self, action: Callable[[], Awaitable[Any]]) -> None:
        """
        Run action after the delay unless superseded. Must be called from a
        running event loop.

        :param action: Zero-argument coroutine function.
        """
        superseded = self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self._delay, self._fire, action)
        logger.debug(f"Debounced request scheduled in {self._delay}s (superseded={superseded})")

    def cancel(self) -> bool:
        """
        Drop the pending request, if any. Requests already fired keep running.

        :return: True if a pending request was cancelled.
        """
        if self._handle is None:
            return False
        self._handle.cancel()
        self._handle = None
        return True

    def _fire(self, action: Callable[[], Awaitable[Any]]) -> None:
        self._handle = None
        task = asyncio.ensure_future(action())
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def wait_idle(self) -> None:
        """Wait until every fired request has finished."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)


class BatchQueue:
    """
    Accumulates partial states between open() and close(); close() folds them
    left to right so later fragments win on key conflicts.
    """

    def __init__(self) -> None:
        self._active = False
        self._fragments: List[Dict[str, Any]] = []

    @property
    def active(self) -> bool:
        return self._active

    def open(self) -> None:
        """Start a batch, discarding anything queued by a previous unclosed batch."""
        self._active = True
        self._fragments = []

    def add(self, partial: Mapping[str, Any]) -> bool:
        """
        Queue a fragment.

        :return: False if no batch is open and the caller must apply it directly.
        """
        if not self._active:
            return False
        self._fragments.append(dict(partial))
        return True

    def close(self) -> Optional[Dict[str, Any]]:
        """
        End the batch.

        :return: The merged fragments, or None if nothing was queued.
        """
        self._active = False
        fragments, self._fragments = self._fragments, []
        if not fragments:
            return None
        merged: Dict[str, Any] = {}
        for fragment in fragments:
            merged.update(fragment)
        return merged

    def __len__(self) -> int:
        return len(self._fragments)
