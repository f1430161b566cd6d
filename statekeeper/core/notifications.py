# statekeeper/core/notifications.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

from statekeeper.core.errors import ListenerError

Listener = Callable[[Dict[str, Any]], None]
EventCallback = Callable[[Any], None]
Unsubscribe = Callable[[], None]


@dataclass(eq=False)
class _EventSubscription:
    callback: EventCallback
    bind_state_key: bool = True


class Notifier:
    """
    Fans committed state out to plain listeners and named-event listeners.

    Plain listeners receive a fresh copy of the full state. Event listeners
    fire on trigger() and, when registered with bind_state_key, whenever a
    committed state carries a top-level key with the same name. Every
    callback is isolated: a failure is reported and the next one still runs.
    """

    def __init__(self, on_error: Callable[[BaseException], None]) -> None:
        self._on_error = on_error
        self._listeners: List[Listener] = []
        self._events: Dict[str, List[_EventSubscription]] = {}

    def subscribe(self, listener: Listener) -> Unsubscribe:
        """
        Register a listener for every committed state.

        :return: A callable detaching this listener. Safe to call repeatedly.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            self._listeners = [l for l in self._listeners if l is not listener]

        return unsubscribe

    def on(self, event_name: str, callback: EventCallback, bind_state_key: bool = True) -> Unsubscribe:
        """
        Register a callback under an event name.

        :param event_name: Channel name, also matched against top-level state keys.
        :param callback: Receives the event payload or the state value.
        :param bind_state_key: If False, the callback only fires on explicit trigger().
        :return: A callable detaching this callback. Safe to call repeatedly.
        """
        self._events.setdefault(event_name, []).append(_EventSubscription(callback, bind_state_key))

        def unsubscribe() -> None:
            subscriptions = self._events.get(event_name)
            if subscriptions is not None:
                self._events[event_name] = [s for s in subscriptions if s.callback is not callback]

        return unsubscribe

    def notify(
        self,
        state: Mapping[str, Any],
        read_state: Callable[[], Dict[str, Any]],
        read_value: Callable[[Any], Any],
    ) -> None:
        """
        Run the fan-out for a newly committed state.

        :param state: The internally held state, used to find matching event keys.
        :param read_state: Produces the copy handed to each plain listener.
        :param read_value: Produces the copy of a key's value handed to event listeners.
        """
        for listener in list(self._listeners):
            try:
                listener(read_state())
            except Exception as e:
                self._on_error(ListenerError(f"Listener {_name(listener)} failed: {e}", e))

        for event_name, subscriptions in list(self._events.items()):
            if event_name not in state:
                continue
            for subscription in list(subscriptions):
                if not subscription.bind_state_key:
                    continue
                self._invoke(event_name, subscription.callback, lambda: read_value(state[event_name]))

    def trigger(self, event_name: str, payload: Any = None) -> None:
        """
        Invoke every callback under event_name with the literal payload.
        """
        for subscription in list(self._events.get(event_name, [])):
            self._invoke(event_name, subscription.callback, lambda: payload)

    def _invoke(self, event_name: str, callback: EventCallback, produce: Callable[[], Any]) -> None:
        try:
            callback(produce())
        except Exception as e:
            self._on_error(ListenerError(f"Event listener {_name(callback)} for '{event_name}' failed: {e}", e))

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def event_listener_count(self, event_name: str) -> int:
        return len(self._events.get(event_name, []))

    def remove_all_listeners(self) -> None:
        self._listeners = []

    def remove_all_event_listeners(self, event_name: Optional[str] = None) -> None:
        """
        Drop the callbacks of one event, or of every event when no name is given.
        """
        if event_name is None:
            self._events = {}
        else:
            self._events[event_name] = []


def _name(fn: Callable[..., Any]) -> str:
    return getattr(fn, "__name__", type(fn).__name__)
