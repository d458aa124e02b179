"""Dispatcher — serialized delivery of actions to registered callbacks.

Every registered callback sees every action, one action at a time. A
callback may call wait_for() to make sure other callbacks have handled the
current action first. Work registered with after_dispatch() runs once every
callback has seen the action, when dispatching again is allowed.
Dispatching from inside a dispatch is an error.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Iterable, Mapping
from typing import Any, Callable

from fluxstore.action import Action
from fluxstore.errors import DispatchError

logger = logging.getLogger("fluxstore.dispatcher")

Callback = Callable[[Action], Any]


class Dispatcher:
    """Central action hub. Register stores, then dispatch actions."""

    def __init__(self) -> None:
        self._callbacks: dict[str, Callback] = {}
        self._pending: dict[str, bool] = {}
        self._handled: dict[str, bool] = {}
        self._dispatching = False
        self._current: Action | None = None
        self._ids = itertools.count(1)
        self._after: list[Callable[[], None]] = []

    @property
    def is_dispatching(self) -> bool:
        return self._dispatching

    def register(self, callback: Callback) -> str:
        """Register callback. Returns the token used by unregister/wait_for."""
        token = f"ID_{next(self._ids)}"
        self._callbacks[token] = callback
        return token

    def after_dispatch(self, fn: Callable[[], None]) -> None:
        """Run fn once the current dispatch has reached every callback.

        Outside a dispatch fn runs right away. fn may dispatch a new action.
        """
        if self._dispatching:
            self._after.append(fn)
        else:
            fn()

    def unregister(self, token: str) -> None:
        if token not in self._callbacks:
            raise DispatchError(f"{token!r} does not map to a registered callback")
        del self._callbacks[token]

    def wait_for(self, tokens: Iterable[str]) -> None:
        """Run the callbacks for tokens before continuing the current one."""
        if not self._dispatching:
            raise DispatchError("wait_for() must be called while dispatching")
        for token in tokens:
            if self._pending.get(token):
                if not self._handled.get(token):
                    raise DispatchError(f"Circular dependency detected while waiting for {token!r}")
                continue
            if token not in self._callbacks:
                raise DispatchError(f"{token!r} does not map to a registered callback")
            self._invoke(token)

    def dispatch(self, action: Action | Mapping[str, Any]) -> None:
        """Deliver action to every registered callback, in registration order."""
        if self._dispatching:
            raise DispatchError("Cannot dispatch in the middle of a dispatch")
        action = Action.coerce(action)
        self._start(action)
        try:
            for token in list(self._callbacks):
                if self._pending.get(token) or token not in self._callbacks:
                    continue
                self._invoke(token)
        finally:
            self._stop()

    def _invoke(self, token: str) -> None:
        self._pending[token] = True
        self._callbacks[token](self._current)
        self._handled[token] = True

    def _start(self, action: Action) -> None:
        self._pending = {token: False for token in self._callbacks}
        self._handled = {token: False for token in self._callbacks}
        self._current = action
        self._dispatching = True
        logger.debug("Dispatching %r to %d callbacks", action.type, len(self._callbacks))

    def _stop(self) -> None:
        self._current = None
        self._dispatching = False
        after, self._after = self._after, []
        for fn in after:
            fn()


app_dispatcher = Dispatcher()
