"""Unit tests for config flow helpers and the user step guard."""

from __future__ import annotations

import asyncio

import pytest

from custom_components.frigate_events.config_flow import (
    FrigateEventsConfigFlow,
    _coerce_int,
    _selection_options,
)
from custom_components.frigate_events.const import CONF_BASE_URL, DOMAIN


def test_coerce_int_clamps_and_defaults() -> None:
    assert _coerce_int("12", default=30, minimum=10, maximum=3600) == 12
    assert _coerce_int(5.7, default=2, minimum=1, maximum=60) == 5
    assert _coerce_int("bad", default=30, minimum=10, maximum=3600) == 30
    assert _coerce_int(None, default=50, minimum=1, maximum=500) == 50
    assert _coerce_int(0, default=2, minimum=1, maximum=60) == 1
    assert _coerce_int(9000, default=30, minimum=10, maximum=3600) == 3600


def test_selection_options_keep_selected_values_and_friendly_names() -> None:
    options = _selection_options(("person", "front_door"), ["old_zone"])

    assert options == {
        "front_door": "Front Door",
        "old_zone": "Old Zone",
        "person": "Person",
    }
    assert _selection_options((), []) == {}


def test_user_step_aborts_when_a_server_is_already_configured(monkeypatch: pytest.MonkeyPatch) -> None:
    flow = FrigateEventsConfigFlow()
    flow.handler = DOMAIN
    flow.flow_id = "flow-1"
    monkeypatch.setattr(flow, "_async_current_entries", lambda *args, **kwargs: [object()])

    result = asyncio.run(flow.async_step_user({CONF_BASE_URL: "http://other-nvr:5000"}))

    assert result["type"] == "abort"
    assert result["reason"] == "single_instance_allowed"
