# golive - live reload supervisor for Go programs
# Copyright (C) 2026 golive Authors
# SPDX-License-Identifier: Apache-2.0

"""Debounced restart scheduling.

Editors emit several write/rename events per logical save.  The
:class:`Debouncer` collapses such a burst into a single action that runs
once no qualifying event has arrived for the quiet period.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Awaitable, Callable

from golive.watcher import ChangeEvent, IgnorePolicy

logger = logging.getLogger(__name__)

# Quiet period (ms) before a burst of changes triggers a restart
DEBOUNCE_DELAY_MS = 500

SleepFunc = Callable[[float], Awaitable[None]]
Action = Callable[[], Awaitable[None]]


class DebounceTimer:
    """Single-slot replace-or-cancel timer.

    At most one timer is pending.  ``schedule()`` cancels the pending timer
    before arming a new one.  Once a timer fires its action is detached
    from the slot, so neither ``schedule()`` nor ``cancel_pending()`` can
    interrupt an action that has already started.

    Args:
        sleep: Coroutine function used to wait out the delay.  Defaults to
            ``asyncio.sleep``; tests inject a controllable clock.
    """

    def __init__(self, sleep: SleepFunc = asyncio.sleep) -> None:
        self._sleep = sleep
        self._pending: asyncio.Task | None = None
        self._inflight: set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    def schedule(self, delay: float, action: Action) -> None:
        self.cancel_pending()
        loop = asyncio.get_running_loop()
        self._pending = loop.create_task(self._fire(delay, action))

    def cancel_pending(self) -> bool:
        """Cancel the pending timer; return whether one was pending."""
        task, self._pending = self._pending, None
        if task is None or task.done():
            return False
        task.cancel()
        return True

    async def wait_inflight(self) -> None:
        """Wait for fired actions that are still running."""
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)

    async def _fire(self, delay: float, action: Action) -> None:
        await self._sleep(delay)

        task = asyncio.current_task()
        if self._pending is task:
            self._pending = None
        self._inflight.add(task)
        try:
            await action()
        except Exception:
            logger.exception("Debounced action failed")
        finally:
            self._inflight.discard(task)


class Debouncer:
    """Route change events to a debounced action.

    Metadata-only events and paths matching the ignore policy are dropped.
    Every other event re-arms the timer; the action receives the last
    event of the burst.
    """

    def __init__(
        self,
        action: Callable[[ChangeEvent], Awaitable[None]],
        quiet_period: float = DEBOUNCE_DELAY_MS / 1000.0,
        ignore: IgnorePolicy | None = None,
        timer: DebounceTimer | None = None,
    ) -> None:
        self.action = action
        self.quiet_period = quiet_period
        self.ignore = ignore or IgnorePolicy()
        self.timer = timer or DebounceTimer()

    def on_event(self, event: ChangeEvent) -> bool:
        """Feed one event; return True if a restart was (re)scheduled."""
        if event.op.is_metadata:
            return False
        if self.ignore.matches(event.path):
            logger.debug("Ignoring change: %s", event.path)
            return False

        self.timer.schedule(self.quiet_period, functools.partial(self.action, event))
        return True

    def cancel_pending(self) -> bool:
        return self.timer.cancel_pending()

    async def wait_inflight(self) -> None:
        await self.timer.wait_inflight()
