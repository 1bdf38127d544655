"""Config flow for Frigate events."""

from __future__ import annotations

from typing import Any

from homeassistant import config_entries
from homeassistant.data_entry_flow import SectionConfig, section
from homeassistant.helpers import config_validation as cv
from homeassistant.helpers import selector
from homeassistant.helpers.aiohttp_client import async_get_clientsession
import voluptuous as vol

from .api import FrigateApiClient, normalize_base_url
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
    DOMAIN,
    MAX_EVENT_LIMIT,
    MAX_FAST_POLL_SECONDS,
    MAX_SLOW_POLL_SECONDS,
    MIN_EVENT_LIMIT,
    MIN_FAST_POLL_SECONDS,
    MIN_SLOW_POLL_SECONDS,
    friendly_name,
)
from .exceptions import FrigateApiError, InvalidUrlError

SECTION_POLLING = "polling"


def _coerce_int(raw: Any, *, default: int, minimum: int, maximum: int) -> int:
    try:
        value = int(float(raw))
    except (TypeError, ValueError):
        value = default
    return max(minimum, min(maximum, value))


def _selection_options(available: tuple[str, ...] | list[str], selected: list[str]) -> dict[str, str]:
    """Multi-select choices: everything seen so far plus anything still selected."""
    values = sorted(set(available) | set(selected))
    return {value: friendly_name(value) for value in values}


class FrigateEventsConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    """Handle config flow for Frigate events."""

    VERSION = 1

    async def async_step_user(self, user_input=None):
        """Ask for the Frigate base URL and check that it answers."""
        if self._async_current_entries():
            return self.async_abort(reason="single_instance_allowed")
        errors: dict[str, str] = {}
        if user_input is not None:
            try:
                base_url = normalize_base_url(user_input[CONF_BASE_URL])
                client = FrigateApiClient(async_get_clientsession(self.hass), base_url)
                await client.async_fetch_version_body()
            except InvalidUrlError:
                errors["base"] = "invalid_url"
            except FrigateApiError:
                errors["base"] = "cannot_connect"
            else:
                await self.async_set_unique_id(base_url)
                self._abort_if_unique_id_configured()
                return self.async_create_entry(title=base_url, data={CONF_BASE_URL: base_url})

        return self.async_show_form(
            step_id="user",
            data_schema=vol.Schema({vol.Required(CONF_BASE_URL): cv.string}),
            errors=errors,
        )

    @staticmethod
    def async_get_options_flow(config_entry: config_entries.ConfigEntry) -> FrigateEventsOptionsFlow:
        """Get options flow."""
        return FrigateEventsOptionsFlow(config_entry)


class FrigateEventsOptionsFlow(config_entries.OptionsFlow):
    """Edit filters and polling settings."""

    def __init__(self, config_entry: config_entries.ConfigEntry) -> None:
        self._config_entry = config_entry

    async def async_step_init(self, user_input=None):
        """Manage options."""
        if user_input is not None:
            merged_input = dict(user_input)
            section_input = merged_input.pop(SECTION_POLLING, None)
            if isinstance(section_input, dict):
                merged_input.update(section_input)
            return self.async_create_entry(
                title="",
                data={
                    CONF_SELECTED_LABELS: list(merged_input.get(CONF_SELECTED_LABELS, [])),
                    CONF_SELECTED_ZONES: list(merged_input.get(CONF_SELECTED_ZONES, [])),
                    CONF_SELECTED_CAMERAS: list(merged_input.get(CONF_SELECTED_CAMERAS, [])),
                    CONF_FAST_POLL_SECONDS: _coerce_int(
                        merged_input.get(CONF_FAST_POLL_SECONDS),
                        default=DEFAULT_FAST_POLL_SECONDS,
                        minimum=MIN_FAST_POLL_SECONDS,
                        maximum=MAX_FAST_POLL_SECONDS,
                    ),
                    CONF_SLOW_POLL_SECONDS: _coerce_int(
                        merged_input.get(CONF_SLOW_POLL_SECONDS),
                        default=DEFAULT_SLOW_POLL_SECONDS,
                        minimum=MIN_SLOW_POLL_SECONDS,
                        maximum=MAX_SLOW_POLL_SECONDS,
                    ),
                    CONF_EVENT_LIMIT: _coerce_int(
                        merged_input.get(CONF_EVENT_LIMIT),
                        default=DEFAULT_EVENT_LIMIT,
                        minimum=MIN_EVENT_LIMIT,
                        maximum=MAX_EVENT_LIMIT,
                    ),
                },
            )

        options = self._config_entry.options
        selected_labels = list(options.get(CONF_SELECTED_LABELS, []))
        selected_zones = list(options.get(CONF_SELECTED_ZONES, []))
        selected_cameras = list(options.get(CONF_SELECTED_CAMERAS, []))
        runtime_data = getattr(self._config_entry, "runtime_data", None)
        poller = getattr(runtime_data, "poller", None)
        state = poller.state if poller is not None else None

        polling_section_schema = {
            vol.Required(
                CONF_FAST_POLL_SECONDS,
                default=_coerce_int(
                    options.get(CONF_FAST_POLL_SECONDS),
                    default=DEFAULT_FAST_POLL_SECONDS,
                    minimum=MIN_FAST_POLL_SECONDS,
                    maximum=MAX_FAST_POLL_SECONDS,
                ),
            ): selector.NumberSelector(
                selector.NumberSelectorConfig(
                    min=MIN_FAST_POLL_SECONDS,
                    max=MAX_FAST_POLL_SECONDS,
                    step=1,
                    mode=selector.NumberSelectorMode.BOX,
                )
            ),
            vol.Required(
                CONF_SLOW_POLL_SECONDS,
                default=_coerce_int(
                    options.get(CONF_SLOW_POLL_SECONDS),
                    default=DEFAULT_SLOW_POLL_SECONDS,
                    minimum=MIN_SLOW_POLL_SECONDS,
                    maximum=MAX_SLOW_POLL_SECONDS,
                ),
            ): selector.NumberSelector(
                selector.NumberSelectorConfig(
                    min=MIN_SLOW_POLL_SECONDS,
                    max=MAX_SLOW_POLL_SECONDS,
                    step=1,
                    mode=selector.NumberSelectorMode.BOX,
                )
            ),
            vol.Required(
                CONF_EVENT_LIMIT,
                default=_coerce_int(
                    options.get(CONF_EVENT_LIMIT),
                    default=DEFAULT_EVENT_LIMIT,
                    minimum=MIN_EVENT_LIMIT,
                    maximum=MAX_EVENT_LIMIT,
                ),
            ): selector.NumberSelector(
                selector.NumberSelectorConfig(
                    min=MIN_EVENT_LIMIT,
                    max=MAX_EVENT_LIMIT,
                    step=1,
                    mode=selector.NumberSelectorMode.BOX,
                )
            ),
        }

        return self.async_show_form(
            step_id="init",
            data_schema=vol.Schema(
                {
                    vol.Optional(CONF_SELECTED_LABELS, default=selected_labels): cv.multi_select(
                        _selection_options(state.available_labels if state else (), selected_labels)
                    ),
                    vol.Optional(CONF_SELECTED_ZONES, default=selected_zones): cv.multi_select(
                        _selection_options(state.available_zones if state else (), selected_zones)
                    ),
                    vol.Optional(CONF_SELECTED_CAMERAS, default=selected_cameras): cv.multi_select(
                        _selection_options(state.available_cameras if state else (), selected_cameras)
                    ),
                    vol.Optional(SECTION_POLLING): section(
                        vol.Schema(polling_section_schema),
                        SectionConfig({"collapsed": True}),
                    ),
                }
            ),
        )
