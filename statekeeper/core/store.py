# statekeeper/core/store.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from statekeeper.core.copying import CopyMode
from statekeeper.core.errors import CommitError, ErrorHandler, ErrorReporter, StorageError
from statekeeper.core.history import HistoryManager
from statekeeper.core.middleware import Middleware, MiddlewareHandle, MiddlewarePipeline, MiddlewareRef
from statekeeper.core.notifications import EventCallback, Listener, Notifier, Unsubscribe
from statekeeper.core.storage import KeyValueStorage, NullStorage
from statekeeper.runtime.scheduler import DEFAULT_DEBOUNCE_DELAY, BatchQueue, DebounceTimer

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "statekeeper_state"

State = Dict[str, Any]


@dataclass(frozen=True)
class StoreStatus:
    """Point-in-time description of a store, as returned by StateStore.describe()."""

    state: State
    undo_stack_size: int
    redo_stack_size: int
    middleware_count: int
    listener_count: int
    deep_state_comparison: bool
    storage_key: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class StateStore:
    """
    Observable container for a single state mapping.

    Every mutation goes through one commit path: middleware, history,
    swap, notification, then a best-effort snapshot to key/value storage.
    Commits on one store are serialized; failures in middleware, listeners
    and storage are reported to the error handler and never raised.
    """

    def __init__(
        self,
        initial_state: Optional[Mapping[str, Any]] = None,
        *,
        copy_mode: CopyMode = CopyMode.SHALLOW,
        debounce_delay: float = DEFAULT_DEBOUNCE_DELAY,
        storage: Optional[KeyValueStorage] = None,
        storage_key: str = DEFAULT_STORAGE_KEY,
        error_handler: Optional[ErrorHandler] = None,
    ) -> None:
        """
        :param initial_state: Starting state; also the target of reset_state(). Defaults to {}.
        :param copy_mode: How state is cloned on reads and commits.
        :param debounce_delay: Seconds a debounced set_state waits before committing.
        :param storage: Key/value collaborator for automatic snapshots. Defaults to NullStorage.
        :param storage_key: Key the snapshot is stored under.
        :param error_handler: Receives every contained failure. Defaults to logging.
        """
        initial = dict(initial_state or {})
        self._copy_mode = copy_mode
        self._reporter = ErrorReporter(error_handler)
        self._state: State = initial
        self._initial_state: State = dict(initial)
        self._prev_state: State = dict(initial)

        self._pipeline = MiddlewarePipeline()
        self._history = HistoryManager()
        self._notifier = Notifier(self.handle_error)
        self._debounce = DebounceTimer(debounce_delay)
        self._batch = BatchQueue()
        self._commit_lock = asyncio.Lock()

        self._storage: KeyValueStorage = storage if storage is not None else NullStorage()
        self._storage_key = storage_key
        self._restore_from_storage()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_state(self) -> State:
        """
        Return a copy of the current state according to the copy mode.

        In deep mode, a state that cannot be cloned (e.g. one committed in
        shallow mode with non-JSON values) is reported as a CommitError and
        returned as a shallow copy instead.
        """
        return self._snapshot(self._state)

    def _copy(self, state: Mapping[str, Any]) -> State:
        return self._copy_mode.clone(state)

    def _snapshot(self, state: Mapping[str, Any]) -> State:
        try:
            return self._copy(state)
        except (TypeError, ValueError, RecursionError) as e:
            self.handle_error(CommitError(f"Cannot deep-copy state, falling back to a shallow copy: {e}", e))
            return dict(state)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def set_state(
        self, new_state: Mapping[str, Any], add_to_history: bool = True, use_debounce: bool = False
    ) -> None:
        """
        Replace the whole state.

        :param new_state: The next state.
        :param add_to_history: Record the outgoing state on the undo stack.
        :param use_debounce: Coalesce with other debounced calls; only the last
            call inside the delay window commits. Returns without waiting.
        """
        try:
            candidate = self._copy(new_state)
        except Exception as e:
            self.handle_error(CommitError(f"Cannot copy candidate state: {e}", e))
            return

        if use_debounce:
            self._debounce.schedule(lambda: self._commit(lambda: candidate, add_to_history))
        else:
            await self._commit(lambda: candidate, add_to_history)

    async def merge_state(self, partial_state: Mapping[str, Any], add_to_history: bool = False) -> None:
        """
        Shallow-merge partial_state over the current top-level keys and commit.
        Keys in partial_state win; other keys are preserved.
        """
        partial = dict(partial_state)
        await self._commit(lambda: self._copy({**self._state, **partial}), add_to_history)

    async def patch_state(self, partial_state: Mapping[str, Any], add_to_history: bool = False) -> None:
        """Alias of merge_state()."""
        await self.merge_state(partial_state, add_to_history)

    async def reset_state(self) -> None:
        """
        Commit the construction-time state again, through middleware and
        listeners, without touching history.
        """
        await self._commit(lambda: self._copy(self._initial_state), add_to_history=False)

    async def set_state_deferred(
        self, new_state: Mapping[str, Any], add_to_history: bool = True, delay: float = 0.1
    ) -> None:
        """
        Wait delay seconds, then set_state(new_state).
        """
        await asyncio.sleep(delay)
        await self.set_state(new_state, add_to_history)

    async def _commit(self, produce: Callable[[], State], add_to_history: bool) -> None:
        async with self._commit_lock:
            try:
                candidate = produce()
                await self._pipeline.run(self._prev_state, candidate, self.handle_error)

                if add_to_history:
                    self._history.record(self._snapshot(self._state))

                self._prev_state = self._snapshot(self._state)
                self._state = candidate
                logger.debug(f"Committed state with keys {sorted(candidate)}")

                self._notify()
                self._persist_to_storage()
            except Exception as e:
                self.handle_error(CommitError(f"Commit failed: {e}", e))

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def undo(self) -> bool:
        """
        Step back one committed state. Middleware is not run.

        :return: False if there was nothing to undo.
        """
        previous = self._history.undo(self._snapshot(self._state))
        if previous is None:
            return False
        self._state = previous
        logger.debug("Undo applied")
        self._notify()
        self._persist_to_storage()
        return True

    def redo(self) -> bool:
        """
        Re-apply the last undone state. Middleware is not run.

        :return: False if there was nothing to redo.
        """
        following = self._history.redo(self._snapshot(self._state))
        if following is None:
            return False
        self._state = following
        logger.debug("Redo applied")
        self._notify()
        self._persist_to_storage()
        return True

    def clear_history(self) -> None:
        self._history.clear()

    def get_undo_stack_size(self) -> int:
        return self._history.undo_size

    def get_redo_stack_size(self) -> int:
        return self._history.redo_size

    # ------------------------------------------------------------------
    # Subscriptions and events
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Unsubscribe:
        """
        Call listener with a copy of the state after every change.

        :return: Callable that removes the listener.
        """
        return self._notifier.subscribe(listener)

    def on(self, event_name: str, callback: EventCallback, bind_state_key: bool = True) -> Unsubscribe:
        """
        Listen to a named event.

        With bind_state_key, the callback also fires after every change whose
        state has a top-level key named event_name, receiving that key's value.

        :return: Callable that removes the callback.
        """
        return self._notifier.on(event_name, callback, bind_state_key)

    def trigger_event(self, event_name: str, event_data: Any = None) -> None:
        """Invoke every callback under event_name with event_data."""
        self._notifier.trigger(event_name, event_data)

    def get_listener_count(self) -> int:
        return self._notifier.listener_count

    def get_event_listener_count(self, event_name: str) -> int:
        return self._notifier.event_listener_count(event_name)

    def remove_all_listeners(self) -> None:
        self._notifier.remove_all_listeners()

    def remove_all_event_listeners(self, event_name: Optional[str] = None) -> None:
        self._notifier.remove_all_event_listeners(event_name)

    def _notify(self) -> None:
        self._notifier.notify(self._state, self.get_state, self._copy_mode.clone_value)

    # ------------------------------------------------------------------
    # Middleware
    # ------------------------------------------------------------------

    def apply_middleware(self, middleware: Middleware, options: Optional[Dict[str, Any]] = None) -> MiddlewareHandle:
        """
        Append a middleware run before every commit with (previous_state, next_state).

        Unlike failures inside a middleware, which are reported and never
        raised, a non-callable argument is rejected here.

        :param options: Free-form options stored with the entry; see get_middleware_options().
        :return: Handle that can enable, disable or remove this middleware.
        :raises TypeError: If middleware is not callable.
        """
        return self._pipeline.add(middleware, options)

    def get_middleware_options(self, ref: MiddlewareRef) -> Optional[Dict[str, Any]]:
        """
        Copy of the options stored with a middleware, by positional index or
        handle. None for unknown refs.
        """
        return self._pipeline.options(ref)

    def enable_middleware(self, ref: MiddlewareRef) -> None:
        """Enable by positional index or handle."""
        self._pipeline.enable(ref)

    def disable_middleware(self, ref: MiddlewareRef) -> None:
        """Disable by positional index or handle."""
        self._pipeline.disable(ref)

    def remove_middleware(self, ref: MiddlewareRef) -> bool:
        return self._pipeline.remove(ref)

    def remove_all_middlewares(self) -> None:
        self._pipeline.clear()

    def get_middleware_count(self) -> int:
        return len(self._pipeline)

    # ------------------------------------------------------------------
    # Debounce and batching
    # ------------------------------------------------------------------

    def set_debounce(self, delay: float) -> None:
        """
        :param delay: Seconds a debounced set_state waits before committing.
        """
        self._debounce.delay = delay

    @property
    def debounce_delay(self) -> float:
        return self._debounce.delay

    @property
    def has_pending_debounce(self) -> bool:
        return self._debounce.pending

    def cancel_debounce(self) -> bool:
        """
        Drop a scheduled debounced commit.

        :return: True if one was pending.
        """
        return self._debounce.cancel()

    async def wait_for_debounce(self) -> None:
        """Wait for debounced commits that have already fired to finish."""
        await self._debounce.wait_idle()

    def start_batch_update(self) -> None:
        self._batch.open()

    async def queue_batch_update(self, partial_state: Mapping[str, Any]) -> None:
        """
        Queue a fragment into the open batch, or merge it immediately if no
        batch is open.
        """
        if not self._batch.add(partial_state):
            await self.merge_state(partial_state)

    async def end_batch_update(self, merge: bool = False) -> None:
        """
        Close the batch and commit all queued fragments as one change,
        recorded in history.

        :param merge: If False, the folded fragments become the whole new
            state. If True, they are merged over the current state instead.
        """
        folded = self._batch.close()
        if folded is None:
            return
        logger.debug(f"Flushing batch with keys {sorted(folded)}")
        if merge:
            await self._commit(lambda: self._copy({**self._state, **folded}), add_to_history=True)
        else:
            await self._commit(lambda: self._copy(folded), add_to_history=True)

    def get_batch_size(self) -> int:
        """Number of fragments queued in the open batch."""
        return len(self._batch)

    @property
    def is_batching(self) -> bool:
        return self._batch.active

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def copy_mode(self) -> CopyMode:
        return self._copy_mode

    @copy_mode.setter
    def copy_mode(self, mode: CopyMode) -> None:
        self._copy_mode = CopyMode(mode)

    def enable_deep_state_comparison(self) -> None:
        self._copy_mode = CopyMode.DEEP

    def disable_deep_state_comparison(self) -> None:
        self._copy_mode = CopyMode.SHALLOW

    @property
    def deep_state_comparison(self) -> bool:
        return self._copy_mode is CopyMode.DEEP

    def set_storage_key(self, key: str) -> None:
        self._storage_key = key

    @property
    def storage_key(self) -> str:
        return self._storage_key

    def set_error_handler(self, handler: Optional[ErrorHandler]) -> None:
        self._reporter.set_handler(handler)

    def handle_error(self, error: BaseException) -> None:
        """Report a contained failure to the error handler, or log it."""
        self._reporter.report(error)

    def describe(self) -> StoreStatus:
        return StoreStatus(
            state=self.get_state(),
            undo_stack_size=self.get_undo_stack_size(),
            redo_stack_size=self.get_redo_stack_size(),
            middleware_count=self.get_middleware_count(),
            listener_count=self.get_listener_count(),
            deep_state_comparison=self.deep_state_comparison,
            storage_key=self._storage_key,
        )

    # ------------------------------------------------------------------
    # Key/value snapshots
    # ------------------------------------------------------------------

    def _persist_to_storage(self) -> None:
        if isinstance(self._storage, NullStorage):
            return
        try:
            self._storage.set(self._storage_key, json.dumps(self._state))
        except Exception as e:
            self.handle_error(StorageError(f"Cannot write snapshot under '{self._storage_key}': {e}", e))

    def _restore_from_storage(self) -> None:
        try:
            stored = self._storage.get(self._storage_key)
            if not stored:
                return
            restored = json.loads(stored)
            if not isinstance(restored, dict):
                raise ValueError(f"expected an object, got {type(restored).__name__}")
        except Exception as e:
            self.handle_error(StorageError(f"Cannot restore snapshot from '{self._storage_key}': {e}", e))
            return
        self._state = restored
        self._prev_state = dict(restored)
        logger.debug(f"Restored state from storage key '{self._storage_key}'")
