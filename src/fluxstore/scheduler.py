"""Flush schedulers — decide when queued notifications are delivered.

A scheduler is any callable that takes a zero-argument function and arranges
for it to run once. Resolution order for a store:

1. the scheduler passed to the Store constructor,
2. the process-wide scheduler installed with set_scheduler(),
3. default_scheduler: loop.call_soon() when an asyncio event loop is running
   in the current thread, otherwise the fallback. A store's fallback is its
   dispatcher's after_dispatch(), so delivery waits until every store has
   handled the action; with no fallback the function runs inline.

Usage with an event loop other than asyncio:
    fluxstore.set_scheduler(app.call_later)
"""

from __future__ import annotations

import asyncio
import functools
from typing import Callable

Scheduler = Callable[[Callable[[], None]], object]

_scheduler: Scheduler | None = None


def set_scheduler(scheduler: Scheduler | None) -> None:
    """Install (or with None, remove) the process-wide flush scheduler."""
    global _scheduler
    _scheduler = scheduler


def get_scheduler() -> Scheduler | None:
    return _scheduler


def run_inline(fn: Callable[[], None]) -> None:
    fn()


def default_scheduler(fn: Callable[[], None], fallback: Scheduler = run_inline) -> None:
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        fallback(fn)
        return
    loop.call_soon(fn)


def resolve_scheduler(scheduler: Scheduler | None = None, fallback: Scheduler | None = None) -> Scheduler:
    if scheduler is not None:
        return scheduler
    if _scheduler is not None:
        return _scheduler
    if fallback is None:
        return default_scheduler
    return functools.partial(default_scheduler, fallback=fallback)
