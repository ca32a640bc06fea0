"""Per-subscriber periodic spread alerts."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass
from typing import Awaitable, Callable, Protocol

from spread.engine import Spread, rank_spreads

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD_PERCENT = 10.0
DEFAULT_INTERVAL_SECONDS = 60.0
MIN_INTERVAL_SECONDS = 1.0

Notifier = Callable[[int, Spread, float], Awaitable[None]]


class SpreadSource(Protocol):
    async def scan_all(self) -> list[Spread]: ...


@dataclass
class SubscriberState:
    """Alert settings and the running task for one chat."""

    subscriber_id: int
    threshold_percent: float | None = None
    interval_seconds: float | None = None
    task: asyncio.Task[None] | None = None

    @property
    def active(self) -> bool:
        return self.task is not None and not self.task.done()


class AlertScheduler:
    """Run one independent periodic scan per subscriber.

    Every tick scans all groups, takes the single widest spread and notifies
    when it is at or above the subscriber's threshold. Alerts repeat on every
    tick for as long as the spread stays wide.
    """

    def __init__(
        self,
        engine: SpreadSource,
        notify: Notifier,
        *,
        default_threshold_percent: float = DEFAULT_THRESHOLD_PERCENT,
        default_interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        min_interval_seconds: float = MIN_INTERVAL_SECONDS,
    ) -> None:
        self._engine = engine
        self._notify = notify
        self.default_threshold_percent = default_threshold_percent
        self.default_interval_seconds = default_interval_seconds
        self.min_interval_seconds = min_interval_seconds
        self._states: dict[int, SubscriberState] = {}
        self._locks: dict[int, asyncio.Lock] = {}

    def state(self, subscriber_id: int) -> SubscriberState | None:
        return self._states.get(subscriber_id)

    def subscribers(self) -> list[SubscriberState]:
        return list(self._states.values())

    def is_active(self, subscriber_id: int) -> bool:
        state = self._states.get(subscriber_id)
        return state is not None and state.active

    def period_for(self, state: SubscriberState) -> float:
        interval = state.interval_seconds
        if interval is None:
            interval = self.default_interval_seconds
        return max(interval, self.min_interval_seconds)

    async def set_threshold(self, subscriber_id: int, percent: float) -> SubscriberState:
        """Set the alert threshold and (re)start the subscriber's schedule."""

        async with self._lock(subscriber_id):
            state = self._states.setdefault(subscriber_id, SubscriberState(subscriber_id))
            state.threshold_percent = percent
            await self._restart(state)
            return state

    async def set_interval(self, subscriber_id: int, seconds: float) -> SubscriberState:
        """Set the scan interval and (re)start the subscriber's schedule."""

        async with self._lock(subscriber_id):
            state = self._states.setdefault(subscriber_id, SubscriberState(subscriber_id))
            state.interval_seconds = seconds
            await self._restart(state)
            return state

    async def stop(self, subscriber_id: int) -> bool:
        """Cancel alerts for a subscriber and clear its threshold."""

        async with self._lock(subscriber_id):
            state = self._states.get(subscriber_id)
            if state is None:
                return False
            was_active = await self._cancel(state)
            state.threshold_percent = None
            logger.info("Alerts stopped for subscriber %s", subscriber_id)
            return was_active

    async def shutdown(self) -> None:
        """Cancel every subscriber task and forget all state."""

        for subscriber_id in list(self._states):
            async with self._lock(subscriber_id):
                state = self._states.pop(subscriber_id, None)
                if state is not None:
                    await self._cancel(state)

    async def evaluate(self, subscriber_id: int) -> Spread | None:
        """Run a single alert check; returns the spread that was notified, if any."""

        state = self._states.get(subscriber_id)
        if state is None or state.threshold_percent is None:
            return None
        try:
            spreads = await self._engine.scan_all()
            if not spreads:
                return None
            best = rank_spreads(spreads)[0]
            threshold = state.threshold_percent
            if best.spread_percent < threshold:
                return None
            await self._notify(subscriber_id, best, threshold)
            return best
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Alert tick for subscriber %s failed", subscriber_id)
            return None

    def _lock(self, subscriber_id: int) -> asyncio.Lock:
        return self._locks.setdefault(subscriber_id, asyncio.Lock())

    async def _restart(self, state: SubscriberState) -> None:
        if state.threshold_percent is None:
            state.threshold_percent = self.default_threshold_percent
        if state.interval_seconds is None:
            state.interval_seconds = self.default_interval_seconds
        await self._cancel(state)

        period = self.period_for(state)
        state.task = asyncio.create_task(
            self._run(state.subscriber_id, period),
            name=f"spread-alerts-{state.subscriber_id}",
        )
        logger.info(
            "Alerts scheduled for subscriber %s: threshold %.4f%%, every %.1fs",
            state.subscriber_id,
            state.threshold_percent,
            period,
        )

    async def _cancel(self, state: SubscriberState) -> bool:
        task, state.task = state.task, None
        if task is None or task.done():
            return False
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
        return True

    async def _run(self, subscriber_id: int, period: float) -> None:
        loop = asyncio.get_running_loop()
        next_run = loop.time()
        while True:
            await self.evaluate(subscriber_id)
            next_run += period
            delay = next_run - loop.time()
            if delay < 0:
                # Overran one or more periods; skip them instead of bursting.
                next_run = loop.time()
                delay = 0.0
            await asyncio.sleep(delay)


__all__ = [
    "AlertScheduler",
    "DEFAULT_INTERVAL_SECONDS",
    "DEFAULT_THRESHOLD_PERCENT",
    "MIN_INTERVAL_SECONDS",
    "Notifier",
    "SubscriberState",
]
