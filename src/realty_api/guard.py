"""Concurrency and debounce guard for expensive composite reads."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable, Hashable
from typing import TypeVar

from .types import SKIP, Skip

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _Ticket:
    __slots__ = ("abandoned",)

    def __init__(self) -> None:
        self.abandoned = False


class LoadGuard:
    """Skip loads that are already in flight or finished too recently.

    A skipped call returns ``SKIP`` instead of queuing. The in-flight flag is
    released on success, failure and cancellation. ``abandon`` marks a
    running load as torn down: its flag is released immediately and its
    result is discarded when it eventually resolves.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._in_flight: dict[Hashable, _Ticket] = {}
        self._completed_at: dict[Hashable, float] = {}

    def is_in_flight(self, key: Hashable) -> bool:
        return key in self._in_flight

    async def guard(
        self,
        key: Hashable,
        min_interval_ms: float,
        fn: Callable[[], Awaitable[T]],
    ) -> T | Skip:
        if key in self._in_flight:
            logger.debug("Load %r skipped: already in flight", key)
            return SKIP

        last = self._completed_at.get(key)
        if last is not None and (self._now_ms() - last) < min_interval_ms:
            logger.debug("Load %r skipped: finished less than %sms ago", key, min_interval_ms)
            return SKIP

        ticket = _Ticket()
        self._in_flight[key] = ticket
        try:
            result = await fn()
        except Exception:
            if ticket.abandoned:
                logger.debug("Load %r failed after teardown", key, exc_info=True)
                return SKIP
            raise
        finally:
            if self._in_flight.get(key) is ticket:
                del self._in_flight[key]
                self._completed_at[key] = self._now_ms()

        if ticket.abandoned:
            logger.debug("Load %r resolved after teardown; result discarded", key)
            return SKIP
        return result

    def abandon(self, key: Hashable) -> None:
        """Tear down the consumer of ``key``: release its flag and discard its result."""

        ticket = self._in_flight.pop(key, None)
        if ticket is not None:
            ticket.abandoned = True
        self._completed_at.pop(key, None)

    def invalidate_all(self) -> None:
        """Abandon every in-flight load and forget completion times."""

        for key in list(self._in_flight):
            self.abandon(key)
        self._completed_at.clear()

    def _now_ms(self) -> float:
        return self._clock() * 1000.0
