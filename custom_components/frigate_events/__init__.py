"""Frigate events integration."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Any

import voluptuous as vol

from homeassistant.components import websocket_api
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, ServiceCall, callback
from homeassistant.helpers import config_validation as cv
from homeassistant.helpers.aiohttp_client import async_get_clientsession
from homeassistant.helpers.dispatcher import async_dispatcher_connect, async_dispatcher_send
from homeassistant.util import dt as dt_util

from .api import FrigateApiClient
from .config_flow import _coerce_int
from .const import (
    CONF_BASE_URL,
    CONF_EVENT_LIMIT,
    CONF_FAST_POLL_SECONDS,
    CONF_SELECTED_CAMERAS,
    CONF_SELECTED_LABELS,
    CONF_SELECTED_ZONES,
    CONF_SLOW_POLL_SECONDS,
    DEFAULT_EVENT_LIMIT,
    DEFAULT_FAST_POLL_SECONDS,
    DEFAULT_SLOW_POLL_SECONDS,
    DEFAULT_TIMEZONE,
    DOMAIN,
    MAX_EVENT_LIMIT,
    MAX_FAST_POLL_SECONDS,
    MAX_SLOW_POLL_SECONDS,
    MIN_EVENT_LIMIT,
    MIN_FAST_POLL_SECONDS,
    MIN_SLOW_POLL_SECONDS,
    SIGNAL_REFRESH,
)
from .media import MediaURLResolver
from .models import FilterSet, FrigateEvent, PollContext
from .poller import FrigateEventPoller

_LOGGER = logging.getLogger(__name__)
SERVICE_REFRESH = "refresh"


@dataclass(slots=True)
class FrigateEventsData:
    """Runtime data stored on the config entry."""

    poller: FrigateEventPoller
    media: MediaURLResolver
    poll_settings: tuple[int, int, int]
    unsubs: list[Callable[[], None]]


FrigateEventsConfigEntry = ConfigEntry[FrigateEventsData]


async def async_setup(hass: HomeAssistant, config: dict) -> bool:
    """Set up integration from YAML (none)."""
    return True


async def async_setup_entry(hass: HomeAssistant, entry: FrigateEventsConfigEntry) -> bool:
    """Set up Frigate event polling from a config entry."""
    session = async_get_clientsession(hass)
    poll_settings = _poll_settings_from_entry(entry)
    fast_s, slow_s, event_limit = poll_settings
    context = _poll_context_from_entry(hass, entry, event_limit)
    client = FrigateApiClient(session, context.base_url, time_zone=context.time_zone)
    poller = FrigateEventPoller(
        hass, client, context, fast_interval=fast_s, slow_interval=slow_s
    )
    await poller.async_start()

    @callback
    def _on_refresh_signal(show_loading: bool = False) -> None:
        poller.async_request_refresh(show_loading=show_loading)

    unsubs = [
        async_dispatcher_connect(hass, SIGNAL_REFRESH, _on_refresh_signal),
        entry.add_update_listener(_async_options_updated),
    ]
    entry.runtime_data = FrigateEventsData(
        poller=poller,
        media=MediaURLResolver(session, client.base_url),
        poll_settings=poll_settings,
        unsubs=unsubs,
    )
    _async_register_ws_commands(hass)
    _async_register_services(hass)
    return True


async def async_unload_entry(hass: HomeAssistant, entry: FrigateEventsConfigEntry) -> bool:
    """Unload the config entry."""
    for unsub in entry.runtime_data.unsubs:
        unsub()
    await entry.runtime_data.poller.async_stop()
    entry.runtime_data.media.clear()
    if not [
        other for other in hass.config_entries.async_entries(DOMAIN) if other.entry_id != entry.entry_id
    ]:
        hass.services.async_remove(DOMAIN, SERVICE_REFRESH)
    return True


async def _async_options_updated(hass: HomeAssistant, entry: FrigateEventsConfigEntry) -> None:
    """Apply filter changes in place; reload when polling settings changed."""
    if _poll_settings_from_entry(entry) != entry.runtime_data.poll_settings:
        await hass.config_entries.async_reload(entry.entry_id)
        return
    filters = _filter_set_from_entry(entry)
    _LOGGER.debug("Applying Frigate event filters: %s", filters.as_dict())
    entry.runtime_data.poller.update_filters(filters)


@callback
def _async_register_ws_commands(hass: HomeAssistant) -> None:
    if hass.data.get(f"{DOMAIN}_ws_registered"):
        return
    websocket_api.async_register_command(hass, ws_list_events)
    websocket_api.async_register_command(hass, ws_refresh)
    websocket_api.async_register_command(hass, ws_activate)
    websocket_api.async_register_command(hass, ws_resolve_media)
    websocket_api.async_register_command(hass, ws_probe_media)
    websocket_api.async_register_command(hass, ws_subscribe)
    hass.data[f"{DOMAIN}_ws_registered"] = True


@callback
def _async_register_services(hass: HomeAssistant) -> None:
    if hass.services.has_service(DOMAIN, SERVICE_REFRESH):
        return

    async def _handle_refresh(call: ServiceCall) -> None:
        async_dispatcher_send(hass, SIGNAL_REFRESH, call.data["show_loading"])

    hass.services.async_register(
        DOMAIN,
        SERVICE_REFRESH,
        _handle_refresh,
        schema=vol.Schema({vol.Optional("show_loading", default=False): cv.boolean}),
    )


def _loaded_entry(hass: HomeAssistant) -> FrigateEventsConfigEntry | None:
    for entry in hass.config_entries.async_entries(DOMAIN):
        if getattr(entry, "runtime_data", None) is not None:
            return entry
    return None


def _list_payload(poller: FrigateEventPoller) -> dict[str, Any]:
    state = poller.state
    base_url = poller.context.base_url
    return {
        "in_progress": [_event_payload(event, base_url) for event in poller.filtered_in_progress()],
        "events": [_event_payload(event, base_url) for event in poller.filtered_events()],
        "cameras": list(state.cameras),
        "available_labels": list(state.available_labels),
        "available_zones": list(state.available_zones),
        "available_cameras": list(state.available_cameras),
        "filters": poller.context.filters.as_dict(),
        "error": state.error_message,
        "loading": state.is_loading,
        "last_error_at": state.last_error_at.isoformat() if state.last_error_at else None,
        "last_success_at": state.last_success_at.isoformat() if state.last_success_at else None,
    }


def _event_payload(event: FrigateEvent, base_url: str) -> dict[str, Any]:
    payload = event.as_dict()
    payload["snapshot_url"] = event.snapshot_url(base_url) if event.has_snapshot else None
    payload["thumbnail_url"] = event.thumbnail_url(base_url)
    return payload


@websocket_api.websocket_command({"type": "frigate_events/list"})
@websocket_api.async_response
async def ws_list_events(
    hass: HomeAssistant, connection: websocket_api.ActiveConnection, msg: dict
) -> None:
    """Return filtered in-progress and finished events."""
    entry = _loaded_entry(hass)
    if entry is None:
        connection.send_error(msg["id"], "not_loaded", "frigate_events is not loaded")
        return
    connection.send_result(msg["id"], _list_payload(entry.runtime_data.poller))


@websocket_api.websocket_command(
    {
        "type": "frigate_events/refresh",
        vol.Optional("show_loading", default=True): cv.boolean,
    }
)
@websocket_api.async_response
async def ws_refresh(
    hass: HomeAssistant, connection: websocket_api.ActiveConnection, msg: dict
) -> None:
    """Pull-to-refresh: run a manual refresh and return the new lists."""
    entry = _loaded_entry(hass)
    if entry is None:
        connection.send_error(msg["id"], "not_loaded", "frigate_events is not loaded")
        return
    poller = entry.runtime_data.poller
    await poller.async_refresh(show_loading=msg["show_loading"])
    connection.send_result(msg["id"], _list_payload(poller))


@websocket_api.websocket_command(
    {
        "type": "frigate_events/activate",
        vol.Optional("background_since"): cv.string,
    }
)
@websocket_api.async_response
async def ws_activate(
    hass: HomeAssistant, connection: websocket_api.ActiveConnection, msg: dict
) -> None:
    """Client returned to the foreground; refresh if the last poll looks stale."""
    entry = _loaded_entry(hass)
    if entry is None:
        connection.send_error(msg["id"], "not_loaded", "frigate_events is not loaded")
        return
    try:
        background_since = _parse_background_since(msg.get("background_since"))
    except ValueError as err:
        connection.send_error(msg["id"], "invalid_format", str(err))
        return
    refreshed = await entry.runtime_data.poller.async_handle_activation(background_since)
    connection.send_result(msg["id"], {"refreshed": refreshed})


@websocket_api.websocket_command(
    {
        "type": "frigate_events/resolve_media",
        vol.Required("event_id"): cv.string,
        vol.Optional("restart", default=False): cv.boolean,
        vol.Optional("step", default=False): cv.boolean,
    }
)
@websocket_api.async_response
async def ws_resolve_media(
    hass: HomeAssistant, connection: websocket_api.ActiveConnection, msg: dict
) -> None:
    """Find a playable clip URL, one candidate or a whole cycle at a time."""
    entry = _loaded_entry(hass)
    if entry is None:
        connection.send_error(msg["id"], "not_loaded", "frigate_events is not loaded")
        return
    media = entry.runtime_data.media
    if msg["step"]:
        if msg["restart"]:
            media.reset(msg["event_id"])
        resolution = await media.async_try_next(msg["event_id"])
    else:
        resolution = await media.async_resolve(msg["event_id"], restart=msg["restart"])
    connection.send_result(msg["id"], resolution.as_dict())


@websocket_api.websocket_command(
    {
        "type": "frigate_events/probe_media",
        vol.Required("event_id"): cv.string,
    }
)
@websocket_api.async_response
async def ws_probe_media(
    hass: HomeAssistant, connection: websocket_api.ActiveConnection, msg: dict
) -> None:
    """Probe every candidate URL format for one event."""
    entry = _loaded_entry(hass)
    if entry is None:
        connection.send_error(msg["id"], "not_loaded", "frigate_events is not loaded")
        return
    results = await entry.runtime_data.media.async_debug_probe_all(msg["event_id"])
    connection.send_result(msg["id"], {"results": [result.as_dict() for result in results]})


@websocket_api.websocket_command({"type": "frigate_events/subscribe"})
@callback
def ws_subscribe(
    hass: HomeAssistant, connection: websocket_api.ActiveConnection, msg: dict
) -> None:
    """Push the list payload every time the poller publishes."""
    entry = _loaded_entry(hass)
    if entry is None:
        connection.send_error(msg["id"], "not_loaded", "frigate_events is not loaded")
        return
    poller = entry.runtime_data.poller

    @callback
    def _forward() -> None:
        connection.send_message(websocket_api.event_message(msg["id"], _list_payload(poller)))

    connection.subscriptions[msg["id"]] = poller.async_add_listener(_forward)
    connection.send_result(msg["id"])
    _forward()


def _parse_background_since(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = dt_util.parse_datetime(value)
    if parsed is None:
        raise ValueError(f"Invalid background_since timestamp: {value}")
    return dt_util.as_utc(parsed)


def _poll_context_from_entry(hass: HomeAssistant, entry: ConfigEntry, event_limit: int) -> PollContext:
    return PollContext(
        base_url=str(entry.data[CONF_BASE_URL]).rstrip("/"),
        filters=_filter_set_from_entry(entry),
        time_zone=str(hass.config.time_zone or DEFAULT_TIMEZONE),
        event_limit=event_limit,
    )


def _filter_set_from_entry(entry: ConfigEntry) -> FilterSet:
    return FilterSet.from_values(
        labels=_string_list(entry.options.get(CONF_SELECTED_LABELS)),
        zones=_string_list(entry.options.get(CONF_SELECTED_ZONES)),
        cameras=_string_list(entry.options.get(CONF_SELECTED_CAMERAS)),
    )


def _string_list(raw: Any) -> list[str]:
    if not isinstance(raw, (list, tuple, set, frozenset)):
        return []
    return [str(value) for value in raw if str(value).strip()]


def _poll_settings_from_entry(entry: ConfigEntry) -> tuple[int, int, int]:
    return (
        _coerce_int(
            entry.options.get(CONF_FAST_POLL_SECONDS),
            default=DEFAULT_FAST_POLL_SECONDS,
            minimum=MIN_FAST_POLL_SECONDS,
            maximum=MAX_FAST_POLL_SECONDS,
        ),
        _coerce_int(
            entry.options.get(CONF_SLOW_POLL_SECONDS),
            default=DEFAULT_SLOW_POLL_SECONDS,
            minimum=MIN_SLOW_POLL_SECONDS,
            maximum=MAX_SLOW_POLL_SECONDS,
        ),
        _coerce_int(
            entry.options.get(CONF_EVENT_LIMIT),
            default=DEFAULT_EVENT_LIMIT,
            minimum=MIN_EVENT_LIMIT,
            maximum=MAX_EVENT_LIMIT,
        ),
    )

