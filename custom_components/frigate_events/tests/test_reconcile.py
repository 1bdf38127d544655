"""Unit tests for finished-event reconciliation."""

from __future__ import annotations

import asyncio

from custom_components.frigate_events.reconcile import (
    STATE_RECONCILING,
    STATE_TRACKING,
    ReconciliationController,
)


class _RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


class _ListFetcher:
    """Return successive id sets from ``batches``, repeating the last one."""

    def __init__(self, *batches: set[str]) -> None:
        self._batches = list(batches)
        self.calls = 0

    async def __call__(self) -> frozenset[str]:
        self.calls += 1
        index = min(self.calls, len(self._batches)) - 1
        return frozenset(self._batches[index])


def test_observe_reports_ids_that_left_the_in_progress_set() -> None:
    controller = ReconciliationController(_ListFetcher(set()))

    assert controller.observe(["e1", "e2"]) == frozenset()
    assert controller.observe(["e2", "e3"]) == frozenset({"e1"})
    assert controller.previous_ids == frozenset({"e2", "e3"})


def test_observe_without_reconcile_still_tracks() -> None:
    controller = ReconciliationController(_ListFetcher(set()))
    controller.observe(["e1"])

    assert controller.observe([], reconcile=False) == frozenset()
    assert controller.previous_ids == frozenset()
    assert controller.observe(["e2"]) == frozenset()


def test_missing_event_gets_exactly_two_extra_fetches() -> None:
    fetcher = _ListFetcher({"other"})
    sleep = _RecordingSleep()
    controller = ReconciliationController(fetcher, sleep=sleep)

    missing = asyncio.run(controller.async_reconcile({"e1"}))

    assert missing == frozenset({"e1"})
    assert fetcher.calls == 2
    assert sleep.delays == [0.5, 1.0]
    assert controller.state == STATE_TRACKING


def test_reconcile_stops_after_first_successful_fetch() -> None:
    fetcher = _ListFetcher({"e1", "e2"})
    sleep = _RecordingSleep()
    controller = ReconciliationController(fetcher, sleep=sleep)

    missing = asyncio.run(controller.async_reconcile({"e1", "e2"}))

    assert missing == frozenset()
    assert fetcher.calls == 1
    assert sleep.delays == [0.5]


def test_reconcile_succeeds_on_second_fetch() -> None:
    fetcher = _ListFetcher({"e2"}, {"e1", "e2"})
    controller = ReconciliationController(fetcher, sleep=_RecordingSleep())

    assert asyncio.run(controller.async_reconcile({"e1", "e2"})) == frozenset()
    assert fetcher.calls == 2


def test_reconcile_with_nothing_finished_does_not_fetch() -> None:
    fetcher = _ListFetcher(set())
    controller = ReconciliationController(fetcher, sleep=_RecordingSleep())

    assert asyncio.run(controller.async_reconcile(set())) == frozenset()
    assert fetcher.calls == 0


def test_custom_delays_bound_the_number_of_fetches() -> None:
    fetcher = _ListFetcher(set())
    sleep = _RecordingSleep()
    controller = ReconciliationController(fetcher, sleep=sleep, retry_delays=(0.1, 0.2, 0.3))

    asyncio.run(controller.async_reconcile({"e1"}))

    assert fetcher.calls == 3
    assert sleep.delays == [0.1, 0.2, 0.3]


def test_state_is_reconciling_while_waiting() -> None:
    seen: list[str] = []
    controller: ReconciliationController

    async def _fetch() -> frozenset[str]:
        seen.append(controller.state)
        return frozenset({"e1"})

    controller = ReconciliationController(_fetch, sleep=_RecordingSleep())

    asyncio.run(controller.async_reconcile({"e1"}))

    assert seen == [STATE_RECONCILING]
    assert controller.state == STATE_TRACKING
