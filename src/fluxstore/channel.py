"""Notification channel — named-event publish/subscribe.

Listeners are kept per event name in registration order. emit() iterates a
copy of the listener list, so listeners may subscribe or unsubscribe while a
flush is in progress without disturbing it.

A listener that raises is logged and skipped; its siblings still run.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

logger = logging.getLogger("fluxstore.channel")

Listener = Callable[..., None]
Disposer = Callable[[], None]


class _NoPayload:
    """Marker for events that carry no payload. Listeners get no arguments."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "NO_PAYLOAD"


NO_PAYLOAD: Any = _NoPayload()


class EventChannel:
    """Publish/subscribe keyed by event name."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}

    def add_listener(self, event: str, callback: Listener) -> Disposer:
        """Register callback for event. Returns a function that removes it."""
        self._listeners.setdefault(event, []).append(callback)

        def _unsubscribe() -> None:
            self.remove_listener(event, callback)

        return _unsubscribe

    def remove_listener(self, event: str, callback: Listener) -> None:
        """Remove the most recent registration of callback. Unknown callbacks are ignored."""
        listeners = self._listeners.get(event)
        if not listeners:
            return
        for index in range(len(listeners) - 1, -1, -1):
            if listeners[index] == callback:
                del listeners[index]
                break
        if not listeners:
            del self._listeners[event]

    def remove_all_listeners(self, event: str | None = None) -> None:
        if event is None:
            self._listeners.clear()
        else:
            self._listeners.pop(event, None)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, ()))

    def events(self) -> list[str]:
        """Event names that currently have at least one listener."""
        return list(self._listeners)

    def emit(self, event: str, payload: Any = NO_PAYLOAD) -> int:
        """Call every listener of event in registration order.

        Returns the number of listeners that were called.
        """
        listeners = list(self._listeners.get(event, ()))
        for callback in listeners:
            try:
                if payload is NO_PAYLOAD:
                    callback()
                else:
                    callback(payload)
            except Exception:
                logger.exception("Listener %r failed while handling %r", callback, event)
        return len(listeners)
