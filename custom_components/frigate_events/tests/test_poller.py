"""Unit tests for the event poller."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

from aiohttp import ClientError

from custom_components.frigate_events.exceptions import FrigateNetworkError, InvalidResponseError
from custom_components.frigate_events.models import FilterSet, FrigateEvent, PollContext
from custom_components.frigate_events.poller import FrigateEventPoller, should_auto_refresh
from custom_components.frigate_events.reconcile import STATE_RECONCILING, STATE_TRACKING

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)


class _FakeHass:
    """Run background tasks on the current loop and keep them for awaiting."""

    def __init__(self) -> None:
        self.tasks: list[asyncio.Task] = []

    def async_create_background_task(self, target, name, eager_start=True):
        task = asyncio.get_running_loop().create_task(target, name=name)
        self.tasks.append(task)
        return task

    async def async_block_till_done(self) -> None:
        while pending := [task for task in self.tasks if not task.done()]:
            await asyncio.gather(*pending)


class _FakeClient:
    """Serve configurable event lists and record every request kind."""

    def __init__(self) -> None:
        self.events: list[FrigateEvent] = []
        self.in_progress: list[FrigateEvent] = []
        self.cameras: list[str] = []
        self.events_error: Exception | None = None
        self.in_progress_error: Exception | None = None
        self.calls: list[str] = []

    async def async_fetch_events(self, *, limit=50, in_progress=False, **_kwargs):
        self.calls.append("in_progress" if in_progress else "events")
        error = self.in_progress_error if in_progress else self.events_error
        if error is not None:
            raise error
        return list(self.in_progress if in_progress else self.events)

    async def async_fetch_cameras(self):
        self.calls.append("cameras")
        return list(self.cameras)


class _RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


class _BlockingSleep:
    """Sleep that never returns, so poll loops park until cancelled."""

    async def __call__(self, delay: float) -> None:
        await asyncio.Event().wait()


def _event(event_id: str, label: str = "person", camera: str = "front", zones=()) -> FrigateEvent:
    return FrigateEvent(
        id=event_id,
        camera=camera,
        label=label,
        start_time=1760000000.0,
        end_time=None,
        has_clip=True,
        has_snapshot=True,
        zones=tuple(zones),
    )


def _poller(client: _FakeClient, *, sleep=None, hass=None, refresh_delay: float = 0.5):
    return FrigateEventPoller(
        hass or _FakeHass(),
        client,
        PollContext(base_url="http://nvr.local:5000"),
        refresh_delay=refresh_delay,
        sleep=sleep or _RecordingSleep(),
        clock=lambda: NOW,
    )


def test_refresh_fetches_in_order_after_indicator_delay() -> None:
    client = _FakeClient()
    client.events = [_event("a")]
    client.cameras = ["front"]
    sleep = _RecordingSleep()
    poller = _poller(client, sleep=sleep)
    loading: list[bool] = []
    poller.async_add_listener(lambda: loading.append(poller.state.is_loading))

    asyncio.run(poller.async_refresh(show_loading=True))

    assert sleep.delays == [0.5]
    assert client.calls == ["events", "in_progress", "cameras"]
    assert loading[0] is True
    assert loading[-1] is False
    assert poller.state.cameras == ("front",)
    assert poller.state.available_cameras == ("front",)


def test_refresh_keeps_loading_flag_untouched_when_not_requested() -> None:
    poller = _poller(_FakeClient())
    loading: list[bool] = []
    poller.async_add_listener(lambda: loading.append(poller.state.is_loading))

    asyncio.run(poller.async_refresh())

    assert loading
    assert not any(loading)


def test_full_list_failure_surfaces_error() -> None:
    client = _FakeClient()
    client.events_error = InvalidResponseError(500)
    poller = _poller(client)

    assert asyncio.run(poller.async_fetch_events()) is False
    assert poller.state.last_error_at == NOW
    assert poller.state.error_message


def test_in_progress_failure_is_silent() -> None:
    client = _FakeClient()
    client.in_progress_error = FrigateNetworkError(ClientError("refused"))
    poller = _poller(client)

    assert asyncio.run(poller.async_fetch_in_progress()) is False
    assert poller.state.last_error_at == NOW
    assert poller.state.error_message is None
    assert poller.state.in_progress == ()


def test_successful_full_fetch_clears_previous_error() -> None:
    client = _FakeClient()
    client.events_error = InvalidResponseError(503)
    poller = _poller(client)

    async def _run() -> None:
        await poller.async_fetch_events()
        client.events_error = None
        client.events = [_event("a")]
        await poller.async_fetch_events()

    asyncio.run(_run())

    assert poller.state.error_message is None
    assert poller.state.last_error_at is None
    assert poller.state.last_success_at == NOW
    assert poller.state.event_ids == frozenset({"a"})


def test_available_filters_only_grow() -> None:
    client = _FakeClient()
    client.events = [_event("a", "person", zones=["porch"])]
    poller = _poller(client)

    async def _run() -> None:
        await poller.async_fetch_events()
        client.events = [_event("b", "car", zones=["driveway"])]
        await poller.async_fetch_events()

    asyncio.run(_run())

    assert poller.state.available_labels == ("car", "person")
    assert poller.state.available_zones == ("driveway", "porch")


def test_finished_event_triggers_reconciliation_fetches() -> None:
    client = _FakeClient()
    client.in_progress = [_event("e1")]
    sleep = _RecordingSleep()
    hass = _FakeHass()
    poller = _poller(client, sleep=sleep, hass=hass)

    async def _run() -> None:
        await poller.async_fetch_in_progress()
        client.in_progress = []
        client.calls.clear()
        await poller.async_fetch_in_progress()
        await hass.async_block_till_done()

    asyncio.run(_run())

    assert client.calls == ["in_progress", "events", "events"]
    assert sleep.delays == [0.5, 1.0]


def test_reconciliation_stops_once_event_is_listed() -> None:
    client = _FakeClient()
    client.in_progress = [_event("e1")]
    hass = _FakeHass()
    poller = _poller(client, hass=hass)

    async def _run() -> None:
        await poller.async_fetch_in_progress()
        client.in_progress = []
        client.events = [_event("e1")]
        client.calls.clear()
        await poller.async_fetch_in_progress()
        await hass.async_block_till_done()

    asyncio.run(_run())

    assert client.calls == ["in_progress", "events"]
    assert poller.state.event_ids == frozenset({"e1"})


def test_manual_refresh_does_not_reconcile() -> None:
    client = _FakeClient()
    client.in_progress = [_event("e1")]
    hass = _FakeHass()
    poller = _poller(client, hass=hass)

    async def _run() -> None:
        await poller.async_fetch_in_progress()
        client.in_progress = []
        client.calls.clear()
        await poller.async_refresh()
        await hass.async_block_till_done()

    asyncio.run(_run())

    assert client.calls == ["events", "in_progress", "cameras"]
    assert poller.reconciler.previous_ids == frozenset()


def test_stop_cancels_pending_reconciliation_without_side_effects() -> None:
    client = _FakeClient()
    client.in_progress = [_event("e1")]
    hass = _FakeHass()
    poller = _poller(client, sleep=_BlockingSleep(), hass=hass)

    async def _run():
        await poller.async_fetch_in_progress()
        client.in_progress = []
        client.calls.clear()
        await poller.async_fetch_in_progress()
        await asyncio.sleep(0)
        assert poller.reconciler.state == STATE_RECONCILING
        state_before_stop = poller.state
        await poller.async_stop()
        return state_before_stop

    state_before_stop = asyncio.run(_run())

    assert client.calls == ["in_progress"]
    assert poller.state is state_before_stop
    assert poller.reconciler.state == STATE_TRACKING
    assert poller.reconciler.previous_ids == frozenset()
    assert all(task.cancelled() for task in hass.tasks)


def test_update_filters_notifies_and_filters_lists() -> None:
    client = _FakeClient()
    client.events = [_event("a", "person"), _event("b", "car")]
    poller = _poller(client)
    notified: list[bool] = []

    asyncio.run(poller.async_fetch_events())
    poller.async_add_listener(lambda: notified.append(True))
    poller.update_filters(FilterSet.from_values(labels=["car"]))

    assert notified == [True]
    assert [event.id for event in poller.filtered_events()] == ["b"]
    assert len(poller.state.events) == 2


def test_listener_unsubscribe() -> None:
    poller = _poller(_FakeClient())
    calls: list[bool] = []
    unsubscribe = poller.async_add_listener(lambda: calls.append(True))

    unsubscribe()
    poller.update_filters(FilterSet())

    assert calls == []


def test_start_runs_initial_refresh_and_stop_freezes_state() -> None:
    client = _FakeClient()
    client.events = [_event("a")]
    hass = _FakeHass()
    poller = _poller(client, sleep=_BlockingSleep(), hass=hass, refresh_delay=0)

    async def _run() -> None:
        await poller.async_start()
        for _ in range(5):
            await asyncio.sleep(0)
        await poller.async_stop()
        client.events = [_event("z")]
        await poller.async_fetch_events()

    asyncio.run(_run())

    assert client.calls[:3] == ["events", "in_progress", "cameras"]
    assert poller.is_stopped
    assert poller.state.event_ids == frozenset({"a"})
    assert poller.state.is_loading is False
    assert all(task.done() for task in hass.tasks)


def test_activation_refreshes_once_within_minimum_interval() -> None:
    client = _FakeClient()
    sleep = _RecordingSleep()
    poller = _poller(client, sleep=sleep, refresh_delay=0)

    async def _run() -> tuple[bool, bool]:
        first = await poller.async_handle_activation(NOW - timedelta(hours=2))
        second = await poller.async_handle_activation(NOW - timedelta(hours=2))
        return first, second

    first, second = asyncio.run(_run())

    assert (first, second) == (True, False)
    assert client.calls == ["events", "in_progress", "cameras"]
    assert sleep.delays == [0.5]


def test_should_auto_refresh_rules() -> None:
    recent = NOW - timedelta(minutes=5)
    stale = NOW - timedelta(minutes=31)

    assert should_auto_refresh(NOW, last_error_at=None, background_since=None, last_auto_refresh_at=None)
    assert should_auto_refresh(NOW, last_error_at=None, background_since=stale, last_auto_refresh_at=None)
    assert not should_auto_refresh(
        NOW, last_error_at=None, background_since=recent, last_auto_refresh_at=None
    )
    assert should_auto_refresh(
        NOW, last_error_at=NOW - timedelta(hours=3), background_since=recent, last_auto_refresh_at=None
    )
    assert not should_auto_refresh(
        NOW, last_error_at=NOW - timedelta(days=2), background_since=recent, last_auto_refresh_at=None
    )
    assert not should_auto_refresh(
        NOW,
        last_error_at=NOW - timedelta(hours=1),
        background_since=stale,
        last_auto_refresh_at=NOW - timedelta(seconds=10),
    )
