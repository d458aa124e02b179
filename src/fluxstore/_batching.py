"""Notification queue — per-store batching of pending notifications.

Mutations push (event, payload) pairs. Outside a batch a notification is
delivered immediately. Inside a batch (a dispatch cycle, or Store.batch())
notifications accumulate; when the outermost batch exits the accumulated
list is detached and handed to the scheduler, so a later cycle never
delivers or drops an earlier cycle's notifications.
"""

from __future__ import annotations

from typing import Any, Callable

from fluxstore.channel import NO_PAYLOAD
from fluxstore.scheduler import Scheduler, resolve_scheduler

Notification = tuple[str, Any]


class NotificationQueue:
    """Store-private pending notifications plus batch depth."""

    __slots__ = ("_deliver", "_scheduler", "_fallback", "_pending", "_depth")

    def __init__(
        self,
        deliver: Callable[[list[Notification]], None],
        scheduler: Scheduler | None = None,
        fallback: Scheduler | None = None,
    ) -> None:
        self._deliver = deliver
        self._scheduler = scheduler
        self._fallback = fallback
        self._pending: list[Notification] = []
        self._depth = 0

    @property
    def batching(self) -> bool:
        return self._depth > 0

    @property
    def pending(self) -> list[Notification]:
        """Copy of the notifications waiting for the current batch to end."""
        return list(self._pending)

    def push(self, event: str, payload: Any = NO_PAYLOAD) -> None:
        self._pending.append((event, payload))
        if self._depth == 0:
            self.flush()

    def clear(self) -> None:
        self._pending.clear()

    def truncate(self, size: int) -> None:
        """Drop notifications queued after the first size entries."""
        del self._pending[size:]

    def begin(self) -> None:
        """Enter a batching scope. Nested scopes are supported."""
        self._depth += 1

    def end(self) -> None:
        """Exit a batching scope. The outermost exit schedules delivery."""
        self._depth -= 1
        if self._depth == 0 and self._pending:
            batch = self._detach()
            resolve_scheduler(self._scheduler, self._fallback)(lambda: self._deliver(batch))

    def flush(self) -> None:
        """Deliver everything pending right now, bypassing the scheduler."""
        if self._pending:
            self._deliver(self._detach())

    def _detach(self) -> list[Notification]:
        batch = self._pending
        self._pending = []
        return batch

    def __len__(self) -> int:
        return len(self._pending)
