"""Confirm that finished in-progress events reach the main event list."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
import logging

from .const import RECONCILE_RETRY_DELAYS_SECONDS

_LOGGER = logging.getLogger(__name__)

STATE_TRACKING = "tracking"
STATE_RECONCILING = "reconciling"


class ReconciliationController:
    """Track in-progress ids and re-fetch the full list when some disappear.

    ``fetch_event_ids`` re-fetches the full event list and returns the ids it
    now contains. Each delay in ``retry_delays`` is followed by one such fetch;
    reconciliation stops at the first fetch that contains every finished id.
    """

    def __init__(
        self,
        fetch_event_ids: Callable[[], Awaitable[frozenset[str]]],
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        retry_delays: tuple[float, ...] = RECONCILE_RETRY_DELAYS_SECONDS,
    ) -> None:
        self._fetch_event_ids = fetch_event_ids
        self._sleep = sleep
        self._retry_delays = retry_delays
        self._previous_ids: frozenset[str] = frozenset()
        self._active_batches = 0

    @property
    def state(self) -> str:
        return STATE_RECONCILING if self._active_batches else STATE_TRACKING

    @property
    def previous_ids(self) -> frozenset[str]:
        return self._previous_ids

    def observe(self, current_ids: Iterable[str], *, reconcile: bool = True) -> frozenset[str]:
        """Record the latest in-progress ids and return the ones that finished."""
        current = frozenset(current_ids)
        finished = self._previous_ids - current
        self._previous_ids = current
        if not reconcile:
            return frozenset()
        return finished

    def reset(self) -> None:
        self._previous_ids = frozenset()

    async def async_reconcile(self, finished: Iterable[str]) -> frozenset[str]:
        """Re-fetch until every finished id is listed; return the ids still missing."""
        missing = frozenset(finished)
        if not missing:
            return missing
        _LOGGER.debug("In-progress event(s) finished: %s", sorted(missing))
        self._active_batches += 1
        try:
            for attempt, delay_s in enumerate(self._retry_delays, start=1):
                await self._sleep(delay_s)
                event_ids = await self._fetch_event_ids()
                missing = missing - event_ids
                if not missing:
                    _LOGGER.debug(
                        "Finished events appeared in main list after %s fetch(es)", attempt
                    )
                    return missing
                _LOGGER.debug(
                    "Finished events not yet in main list after fetch %s/%s: %s",
                    attempt,
                    len(self._retry_delays),
                    sorted(missing),
                )
        finally:
            self._active_batches -= 1
        _LOGGER.info("Finished events still missing from main list: %s", sorted(missing))
        return missing
