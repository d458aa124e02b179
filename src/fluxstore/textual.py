"""Textual integration for fluxstore. Opt-in — requires textual.

Store listeners usually end up touching widgets. listen() wraps a listener
so that it is skipped while the widget tree is being replaced or the app is
not running, marshals calls from background threads onto the app thread,
and ignores NoMatches from widget queries. scheduler() defers notification
flushes onto the Textual message loop.

Usage:
    store = Store({"definition": {"user": {}}}, scheduler=stx.scheduler(app))
    stx.listen(app, store, "user:change", lambda event: app.query_one(UserPanel).refresh())
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Any, Callable

from textual.css.query import NoMatches

from fluxstore.channel import NO_PAYLOAD
from fluxstore.store import Store

# ids of apps whose store listeners are on hold; an id is present only inside pause().
_held: set[int] = set()


@contextmanager
def pause(app):
    """Hold store notifications for app while its screens are being rebuilt.

    Notifications delivered meanwhile are dropped, not replayed; listeners
    read the store again on the next change.
    """
    app_id = id(app)
    _held.add(app_id)
    try:
        yield
    finally:
        _held.discard(app_id)


def is_safe(app) -> bool:
    """True when app is running and not inside pause(), so listeners may query widgets."""
    return app.is_running and id(app) not in _held


def guard(app, callback: Callable[..., Any]) -> Callable[..., None]:
    """Wrap callback so it only runs while app is safe, on the app thread."""
    _main = threading.get_ident()

    def _guarded(payload: Any = NO_PAYLOAD) -> None:
        if not is_safe(app):
            return
        if threading.get_ident() != _main:
            app.call_from_thread(_safe, payload)
        else:
            _safe(payload)

    def _safe(payload: Any) -> None:
        try:
            if payload is NO_PAYLOAD:
                callback()
            else:
                callback(payload)
        except NoMatches:
            pass

    return _guarded


def listen(app, store: Store, event: str, callback: Callable[..., Any]) -> Callable[[], None]:
    """Subscribe a guarded callback to a store event. Returns the unsubscriber."""
    return store.add_listener(event, guard(app, callback))


def scheduler(app) -> Callable[[Callable[[], None]], Any]:
    """Flush scheduler that runs notifications after the app's pending messages."""

    def _schedule(fn: Callable[[], None]) -> Any:
        return app.call_later(fn)

    return _schedule
