"""Shape tolerant decoding of ``/api/events`` payloads.

Frigate has answered the event list endpoint with a bare array, with an array
wrapped in an object, and with arrays whose elements use slightly different
field names. Each shape is handled by its own strategy; strategies are tried
in order and the first one that succeeds wins.
"""

from __future__ import annotations

from collections.abc import Callable
import json
import logging
from typing import Any

from .const import EVENT_WRAPPER_KEYS
from .exceptions import FrigateDecodingError
from .models import EventData, FrigateEvent, ServerVersion

_LOGGER = logging.getLogger(__name__)

_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "has_clip": ("has_clip", "hasClip"),
    "has_snapshot": ("has_snapshot", "hasSnapshot"),
    "start_time": ("start_time", "startTime"),
    "end_time": ("end_time", "endTime"),
}


class _StrategyMismatch(ValueError):
    """The payload does not have the shape a strategy expects."""


def decode_events(raw: bytes | str, version: ServerVersion | None = None) -> list[FrigateEvent]:
    """Decode an event list payload into normalized events.

    ``version`` is passed to every strategy so version specific schemas can be
    added later; no strategy depends on it yet.
    """
    version = version or ServerVersion.lowest()
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as err:
        raise FrigateDecodingError(f"Event payload is not valid JSON: {err}") from err

    for strategy in DECODE_STRATEGIES:
        try:
            events = strategy(payload, version)
        except _StrategyMismatch as err:
            _LOGGER.debug("Event decode strategy %s did not match: %s", strategy.__name__, err)
            continue
        _LOGGER.debug("Decoded %s events with %s", len(events), strategy.__name__)
        return events

    raise FrigateDecodingError("Could not parse events data with any known format")


def decode_direct_list(payload: Any, version: ServerVersion) -> list[FrigateEvent]:
    """Payload is ``[event, ...]`` and every element is strictly typed."""
    if not isinstance(payload, list):
        raise _StrategyMismatch("payload is not a list")
    return [_strict_event(element) for element in payload]


def decode_wrapped(payload: Any, version: ServerVersion) -> list[FrigateEvent]:
    """Payload is ``{"events": [...]}`` (or ``data`` / ``results``)."""
    if not isinstance(payload, dict):
        raise _StrategyMismatch("payload is not an object")
    for key in EVENT_WRAPPER_KEYS:
        inner = payload.get(key)
        if not isinstance(inner, list):
            continue
        try:
            return decode_direct_list(inner, version)
        except _StrategyMismatch as err:
            _LOGGER.debug("Wrapper key %r holds events that failed strict decoding: %s", key, err)
    raise _StrategyMismatch("no wrapper key holds a decodable event list")


def decode_loose_list(payload: Any, version: ServerVersion) -> list[FrigateEvent]:
    """Payload is a list of maps; malformed elements are skipped one by one."""
    if not isinstance(payload, list):
        raise _StrategyMismatch("payload is not a list")
    if not all(isinstance(element, dict) for element in payload):
        raise _StrategyMismatch("payload is not a list of objects")
    events: list[FrigateEvent] = []
    for index, element in enumerate(payload):
        try:
            events.append(_loose_event(element))
        except _StrategyMismatch as err:
            _LOGGER.debug("Skipping event at index %s: %s", index, err)
    return events


DECODE_STRATEGIES: tuple[Callable[[Any, ServerVersion], list[FrigateEvent]], ...] = (
    decode_direct_list,
    decode_wrapped,
    decode_loose_list,
)


def _strict_event(element: Any) -> FrigateEvent:
    if not isinstance(element, dict):
        raise _StrategyMismatch("event is not an object")
    end_time = element.get("end_time")
    if end_time is not None:
        end_time = _require_number(element, "end_time")
    zones = element.get("zones")
    if zones is None:
        zones = []
    if not isinstance(zones, list) or not all(isinstance(zone, str) for zone in zones):
        raise _StrategyMismatch("zones is not a list of strings")
    data = element.get("data")
    if data is not None:
        data = _strict_event_data(data)
    retain = element.get("retain_indefinitely", False)
    if not isinstance(retain, bool):
        raise _StrategyMismatch("retain_indefinitely is not a bool")
    return FrigateEvent(
        id=_require_str(element, "id"),
        camera=_require_str(element, "camera"),
        label=_require_str(element, "label"),
        start_time=_require_number(element, "start_time"),
        end_time=end_time,
        has_clip=_require_bool(element, "has_clip"),
        has_snapshot=_require_bool(element, "has_snapshot"),
        zones=tuple(zones),
        data=data,
        box=_optional_numbers(element, "box", strict=True),
        false_positive=_optional_typed(element, "false_positive", bool, strict=True),
        plus_id=_optional_typed(element, "plus_id", str, strict=True),
        retain_indefinitely=retain,
        sub_label=_sub_label(element.get("sub_label"), strict=True),
        top_score=_optional_number(element, "top_score", strict=True),
    )


def _strict_event_data(data: Any) -> EventData:
    if not isinstance(data, dict):
        raise _StrategyMismatch("data is not an object")
    attributes = data.get("attributes") or []
    if not isinstance(attributes, list) or not all(isinstance(item, str) for item in attributes):
        raise _StrategyMismatch("data.attributes is not a list of strings")
    return EventData(
        score=_require_number(data, "score"),
        top_score=_require_number(data, "top_score"),
        type=_require_str(data, "type"),
        attributes=tuple(attributes),
        box=_optional_numbers(data, "box", strict=True) or (),
        region=_optional_numbers(data, "region", strict=True) or (),
    )


def _loose_event(element: Any) -> FrigateEvent:
    if not isinstance(element, dict):
        raise _StrategyMismatch("event is not an object")
    fields = {name: _first_present(element, aliases) for name, aliases in _FIELD_ALIASES.items()}
    end_time = fields["end_time"]
    zones = element.get("zones")
    retain = element.get("retain_indefinitely")
    return FrigateEvent(
        id=_require_str(element, "id"),
        camera=_require_str(element, "camera"),
        label=_require_str(element, "label"),
        start_time=_require_number(fields, "start_time"),
        end_time=_as_number(end_time),
        has_clip=_require_bool(fields, "has_clip"),
        has_snapshot=_require_bool(fields, "has_snapshot"),
        zones=tuple(zone for zone in zones if isinstance(zone, str)) if isinstance(zones, list) else (),
        data=_loose_event_data(element.get("data")),
        box=_optional_numbers(element, "box", strict=False),
        false_positive=_optional_typed(element, "false_positive", bool, strict=False),
        plus_id=_optional_typed(element, "plus_id", str, strict=False),
        retain_indefinitely=retain if isinstance(retain, bool) else False,
        sub_label=_sub_label(element.get("sub_label"), strict=False),
        top_score=_optional_number(element, "top_score", strict=False),
    )


def _loose_event_data(data: Any) -> EventData | None:
    if not isinstance(data, dict):
        return None
    score = _as_number(data.get("score"))
    top_score = _as_number(data.get("top_score"))
    kind = data.get("type")
    if score is None or top_score is None or not isinstance(kind, str):
        return None
    attributes = data.get("attributes")
    return EventData(
        score=score,
        top_score=top_score,
        type=kind,
        attributes=tuple(a for a in attributes if isinstance(a, str)) if isinstance(attributes, list) else (),
        box=_optional_numbers(data, "box", strict=False) or (),
        region=_optional_numbers(data, "region", strict=False) or (),
    )


def _first_present(element: dict[str, Any], aliases: tuple[str, ...]) -> Any:
    for alias in aliases:
        if element.get(alias) is not None:
            return element[alias]
    return None


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _require_str(source: dict[str, Any], key: str) -> str:
    value = source.get(key)
    if not isinstance(value, str):
        raise _StrategyMismatch(f"{key} is missing or not a string")
    return value


def _require_number(source: dict[str, Any], key: str) -> float:
    value = _as_number(source.get(key))
    if value is None:
        raise _StrategyMismatch(f"{key} is missing or not a number")
    return value


def _require_bool(source: dict[str, Any], key: str) -> bool:
    value = source.get(key)
    if not isinstance(value, bool):
        raise _StrategyMismatch(f"{key} is missing or not a bool")
    return value


def _optional_number(source: dict[str, Any], key: str, *, strict: bool) -> float | None:
    value = source.get(key)
    if value is None:
        return None
    number = _as_number(value)
    if number is None and strict:
        raise _StrategyMismatch(f"{key} is not a number")
    return number


def _optional_typed(source: dict[str, Any], key: str, kind: type, *, strict: bool) -> Any:
    value = source.get(key)
    if value is None or isinstance(value, kind):
        return value
    if strict:
        raise _StrategyMismatch(f"{key} is not a {kind.__name__}")
    return None


def _optional_numbers(source: dict[str, Any], key: str, *, strict: bool) -> tuple[float, ...] | None:
    value = source.get(key)
    if value is None:
        return None
    if isinstance(value, list):
        numbers = [_as_number(item) for item in value]
        if all(number is not None for number in numbers):
            return tuple(numbers)
    if strict:
        raise _StrategyMismatch(f"{key} is not a list of numbers")
    return None


def _sub_label(value: Any, *, strict: bool) -> str | None:
    # 0.13+ reports [name, score]; older servers a plain string.
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, list) and value and isinstance(value[0], str):
        return value[0]
    if strict:
        raise _StrategyMismatch("sub_label is neither a string nor [name, score]")
    return None
