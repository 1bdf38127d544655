"""Event polling and in-memory feed state."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Coroutine, Iterable
from dataclasses import replace
from datetime import datetime
import logging
from typing import Any

from homeassistant.core import CALLBACK_TYPE, HomeAssistant, callback
from homeassistant.util import dt as dt_util

from .api import FrigateApiClient
from .const import (
    AUTO_REFRESH_BACKGROUND_SECONDS,
    AUTO_REFRESH_DELAY_SECONDS,
    AUTO_REFRESH_ERROR_WINDOW_SECONDS,
    AUTO_REFRESH_MIN_INTERVAL_SECONDS,
    DEFAULT_FAST_POLL_SECONDS,
    DEFAULT_SLOW_POLL_SECONDS,
    RECONCILE_RETRY_DELAYS_SECONDS,
    REFRESH_INDICATOR_DELAY_SECONDS,
)
from .exceptions import FrigateApiError
from .models import FilterSet, FrigateEvent, PollContext, PollingState, apply_filters
from .reconcile import ReconciliationController

_LOGGER = logging.getLogger(__name__)


class FrigateEventPoller:
    """Poll in-progress events quickly and the full event list slowly."""

    def __init__(
        self,
        hass: HomeAssistant,
        client: FrigateApiClient,
        context: PollContext,
        *,
        fast_interval: float = DEFAULT_FAST_POLL_SECONDS,
        slow_interval: float = DEFAULT_SLOW_POLL_SECONDS,
        refresh_delay: float = REFRESH_INDICATOR_DELAY_SECONDS,
        reconcile_delays: tuple[float, ...] = RECONCILE_RETRY_DELAYS_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = dt_util.utcnow,
    ) -> None:
        self.hass = hass
        self.client = client
        self.context = context
        self._fast_interval = fast_interval
        self._slow_interval = slow_interval
        self._refresh_delay = refresh_delay
        self._sleep = sleep
        self._clock = clock
        self._state = PollingState()
        self._listeners: list[CALLBACK_TYPE] = []
        self._tasks: set[asyncio.Task[Any]] = set()
        self._stopped = False
        self._last_auto_refresh_at: datetime | None = None
        self.reconciler = ReconciliationController(
            self._async_fetch_event_ids, sleep=sleep, retry_delays=reconcile_delays
        )

    @property
    def state(self) -> PollingState:
        return self._state

    @property
    def is_stopped(self) -> bool:
        return self._stopped

    async def async_start(self) -> None:
        """Run an initial refresh and start both polling loops."""
        self._stopped = False
        self._spawn(self.async_refresh(show_loading=True), "initial refresh")
        self._spawn(
            self._async_poll_loop(self._fast_interval, self.async_poll_in_progress),
            "in-progress poll",
        )
        self._spawn(
            self._async_poll_loop(self._slow_interval, self.async_poll_events),
            "event poll",
        )

    async def async_stop(self) -> None:
        """Cancel loops, refreshes and pending reconciliation."""
        self._stopped = True
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self._listeners.clear()
        self.reconciler.reset()

    @callback
    def async_add_listener(self, update_callback: CALLBACK_TYPE) -> CALLBACK_TYPE:
        """Call ``update_callback`` after every publish; returns an unsubscribe."""
        self._listeners.append(update_callback)

        @callback
        def _remove_listener() -> None:
            if update_callback in self._listeners:
                self._listeners.remove(update_callback)

        return _remove_listener

    def update_filters(self, filters: FilterSet) -> None:
        self.context.filters = filters
        self._notify()

    def filtered_events(self) -> list[FrigateEvent]:
        return apply_filters(self._state.events, self.context.filters)

    def filtered_in_progress(self) -> list[FrigateEvent]:
        return apply_filters(self._state.in_progress, self.context.filters)

    async def async_poll_in_progress(self) -> None:
        await self.async_fetch_in_progress(reconcile=True)

    async def async_poll_events(self) -> None:
        await self.async_fetch_events()
        await self.async_fetch_cameras()

    async def async_refresh(self, *, show_loading: bool = False) -> None:
        """Manual refresh: full list, then in-progress, then cameras."""
        self._publish(
            error_message=None,
            is_loading=show_loading or self._state.is_loading,
        )
        try:
            if self._refresh_delay > 0:
                await self._sleep(self._refresh_delay)
            await self.async_fetch_events()
            await self.async_fetch_in_progress(reconcile=False)
            await self.async_fetch_cameras()
        finally:
            if show_loading:
                self._publish(is_loading=False)

    @callback
    def async_request_refresh(self, *, show_loading: bool = False) -> None:
        """Schedule a manual refresh without waiting for it."""
        self._spawn(self.async_refresh(show_loading=show_loading), "manual refresh")

    async def async_handle_activation(self, background_since: datetime | None) -> bool:
        """Refresh after the client comes back to the foreground, when due."""
        now = self._clock()
        if not should_auto_refresh(
            now,
            last_error_at=self._state.last_error_at,
            background_since=background_since,
            last_auto_refresh_at=self._last_auto_refresh_at,
        ):
            _LOGGER.debug("No auto-refresh needed on activation")
            return False
        self._last_auto_refresh_at = now
        await self._sleep(AUTO_REFRESH_DELAY_SECONDS)
        await self.async_refresh(show_loading=False)
        return True

    async def async_fetch_events(self) -> bool:
        """Fetch the full event list; failures become the user visible error."""
        try:
            events = await self.client.async_fetch_events(limit=self.context.event_limit)
        except FrigateApiError as err:
            _LOGGER.warning("Error fetching Frigate events: %s", err)
            self._publish(last_error_at=self._clock(), error_message=str(err))
            return False
        self._publish(
            events=tuple(events),
            last_error_at=None,
            last_success_at=self._clock(),
            error_message=None,
            **self._grown_filters(events),
        )
        return True

    async def async_fetch_in_progress(self, *, reconcile: bool = True) -> bool:
        """Fetch in-progress events; failures are logged, never shown."""
        try:
            events = await self.client.async_fetch_events(
                limit=self.context.event_limit, in_progress=True
            )
        except FrigateApiError as err:
            _LOGGER.debug("Error fetching in-progress Frigate events: %s", err)
            self._publish(last_error_at=self._clock())
            return False
        if self._stopped:
            return False
        self._publish(in_progress=tuple(events), **self._grown_filters(events))
        finished = self.reconciler.observe((event.id for event in events), reconcile=reconcile)
        if finished:
            self._spawn(self.reconciler.async_reconcile(finished), "reconciliation")
        return True

    async def async_fetch_cameras(self) -> bool:
        try:
            cameras = await self.client.async_fetch_cameras()
        except FrigateApiError as err:
            _LOGGER.debug("Error fetching available cameras: %s", err)
            return False
        self._publish(
            cameras=tuple(cameras),
            available_cameras=_merge_sorted(self._state.available_cameras, cameras),
        )
        return True

    async def _async_fetch_event_ids(self) -> frozenset[str]:
        await self.async_fetch_events()
        return self._state.event_ids

    async def _async_poll_loop(
        self, interval: float, job: Callable[[], Awaitable[None]]
    ) -> None:
        while not self._stopped:
            await self._sleep(interval)
            try:
                await job()
            except asyncio.CancelledError:
                raise
            except Exception:  # noqa: BLE001
                _LOGGER.exception("Unexpected error in Frigate poll loop")

    def _grown_filters(self, events: Iterable[FrigateEvent]) -> dict[str, tuple[str, ...]]:
        events = list(events)
        return {
            "available_labels": _merge_sorted(
                self._state.available_labels, (event.label for event in events)
            ),
            "available_zones": _merge_sorted(
                self._state.available_zones,
                (zone for event in events for zone in event.zones),
            ),
        }

    def _publish(self, **changes: Any) -> None:
        if self._stopped:
            return
        self._state = replace(self._state, **changes)
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()

    def _spawn(self, target: Coroutine[Any, Any, Any], name: str) -> None:
        if self._stopped:
            target.close()
            return
        task = self.hass.async_create_background_task(target, f"frigate_events {name}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)


def should_auto_refresh(
    now: datetime,
    *,
    last_error_at: datetime | None,
    background_since: datetime | None,
    last_auto_refresh_at: datetime | None,
) -> bool:
    """Decide whether a client coming back to the foreground should refresh."""
    if (
        last_auto_refresh_at is not None
        and (now - last_auto_refresh_at).total_seconds() < AUTO_REFRESH_MIN_INTERVAL_SECONDS
    ):
        return False
    if (
        last_error_at is not None
        and (now - last_error_at).total_seconds() < AUTO_REFRESH_ERROR_WINDOW_SECONDS
    ):
        return True
    if background_since is None:
        return True
    return (now - background_since).total_seconds() > AUTO_REFRESH_BACKGROUND_SECONDS


def _merge_sorted(existing: Iterable[str], new_values: Iterable[str]) -> tuple[str, ...]:
    merged = set(existing)
    merged.update(value for value in new_values if value)
    return tuple(sorted(merged))
