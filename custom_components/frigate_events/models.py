"""Data models for the Frigate events integration."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
import re
from typing import Any

from .const import DEFAULT_EVENT_LIMIT, DEFAULT_TIMEZONE

_LEADING_DIGITS = re.compile(r"^\s*(\d+)")

MEDIA_STATUS_PLAYABLE = "playable"
MEDIA_STATUS_FAILED = "failed"
MEDIA_STATUS_NO_PLAYABLE_FORMAT = "no_playable_format"


@dataclass(slots=True, frozen=True)
class EventData:
    """Nested detection metadata reported by newer servers."""

    score: float
    top_score: float
    type: str
    attributes: tuple[str, ...] = ()
    box: tuple[float, ...] = ()
    region: tuple[float, ...] = ()

    def as_dict(self) -> dict[str, Any]:
        return {
            "attributes": list(self.attributes),
            "box": list(self.box),
            "region": list(self.region),
            "score": self.score,
            "top_score": self.top_score,
            "type": self.type,
        }


@dataclass(slots=True, frozen=True)
class FrigateEvent:
    """Normalized event, independent of the payload shape it came from."""

    id: str
    camera: str
    label: str
    start_time: float
    end_time: float | None
    has_clip: bool
    has_snapshot: bool
    zones: tuple[str, ...] = ()
    data: EventData | None = None
    box: tuple[float, ...] | None = None
    false_positive: bool | None = None
    plus_id: str | None = None
    retain_indefinitely: bool = False
    sub_label: str | None = None
    top_score: float | None = None

    @property
    def duration(self) -> float | None:
        if self.end_time is None:
            return None
        return max(0.0, self.end_time - self.start_time)

    def snapshot_url(self, base_url: str) -> str:
        return f"{base_url.rstrip('/')}/api/events/{self.id}/snapshot.jpg"

    def thumbnail_url(self, base_url: str) -> str:
        return f"{base_url.rstrip('/')}/api/events/{self.id}/thumbnail.jpg"

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "camera": self.camera,
            "label": self.label,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "has_clip": self.has_clip,
            "has_snapshot": self.has_snapshot,
            "zones": list(self.zones),
            "data": self.data.as_dict() if self.data else None,
            "box": list(self.box) if self.box is not None else None,
            "false_positive": self.false_positive,
            "plus_id": self.plus_id,
            "retain_indefinitely": self.retain_indefinitely,
            "sub_label": self.sub_label,
            "top_score": self.top_score,
        }


@dataclass(slots=True, frozen=True, order=True)
class ServerVersion:
    """Major/minor/patch triple of the remote server."""

    major: int = 0
    minor: int = 0
    patch: int = 0

    @classmethod
    def lowest(cls) -> ServerVersion:
        return cls(0, 0, 0)

    @classmethod
    def from_string(cls, value: str | None) -> ServerVersion:
        """Parse ``"0.14.1-abc"`` style strings; unparsable parts become 0."""
        parts = str(value or "").strip().split(".")
        numbers: list[int] = []
        for part in parts[:3]:
            match = _LEADING_DIGITS.match(part)
            numbers.append(int(match.group(1)) if match else 0)
        while len(numbers) < 3:
            numbers.append(0)
        return cls(*numbers)

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


@dataclass(slots=True, frozen=True)
class FilterSet:
    """User selected labels, zones and cameras; an empty set includes everything."""

    labels: frozenset[str] = frozenset()
    zones: frozenset[str] = frozenset()
    cameras: frozenset[str] = frozenset()

    @classmethod
    def from_values(
        cls,
        labels: Iterable[str] | None = None,
        zones: Iterable[str] | None = None,
        cameras: Iterable[str] | None = None,
    ) -> FilterSet:
        return cls(
            labels=frozenset(labels or ()),
            zones=frozenset(zones or ()),
            cameras=frozenset(cameras or ()),
        )

    @property
    def is_empty(self) -> bool:
        return not (self.labels or self.zones or self.cameras)

    def matches(self, event: FrigateEvent) -> bool:
        if self.labels and event.label not in self.labels:
            return False
        if self.zones and self.zones.isdisjoint(event.zones):
            return False
        if self.cameras and event.camera not in self.cameras:
            return False
        return True

    def as_dict(self) -> dict[str, list[str]]:
        return {
            "labels": sorted(self.labels),
            "zones": sorted(self.zones),
            "cameras": sorted(self.cameras),
        }


def apply_filters(events: Iterable[FrigateEvent], filters: FilterSet) -> list[FrigateEvent]:
    """Return the events matching every dimension of ``filters``, order kept."""
    if filters.is_empty:
        return list(events)
    return [event for event in events if filters.matches(event)]


@dataclass(slots=True)
class PollContext:
    """Settings the poller reads on every fetch; editable while polling."""

    base_url: str
    filters: FilterSet = field(default_factory=FilterSet)
    time_zone: str = DEFAULT_TIMEZONE
    event_limit: int = DEFAULT_EVENT_LIMIT


@dataclass(slots=True, frozen=True)
class PollingState:
    """Snapshot published by the poller. Replaced, never mutated."""

    events: tuple[FrigateEvent, ...] = ()
    in_progress: tuple[FrigateEvent, ...] = ()
    cameras: tuple[str, ...] = ()
    available_labels: tuple[str, ...] = ()
    available_zones: tuple[str, ...] = ()
    available_cameras: tuple[str, ...] = ()
    last_error_at: datetime | None = None
    last_success_at: datetime | None = None
    error_message: str | None = None
    is_loading: bool = False

    @property
    def event_ids(self) -> frozenset[str]:
        return frozenset(event.id for event in self.events)

    @property
    def in_progress_ids(self) -> frozenset[str]:
        return frozenset(event.id for event in self.in_progress)


@dataclass(slots=True, frozen=True)
class ProbeResult:
    """Outcome of a header-only request against one media URL."""

    url: str
    playable: bool
    status: int | None = None
    content_type: str | None = None
    error: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "playable": self.playable,
            "status": self.status,
            "content_type": self.content_type,
            "error": self.error,
        }


@dataclass(slots=True, frozen=True)
class MediaResolution:
    """Result of one step of media candidate selection."""

    event_id: str
    status: str
    url: str | None
    index: int
    attempts: int
    probe: ProbeResult | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (MEDIA_STATUS_PLAYABLE, MEDIA_STATUS_NO_PLAYABLE_FORMAT)

    def as_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "status": self.status,
            "url": self.url,
            "index": self.index,
            "attempts": self.attempts,
            "probe": self.probe.as_dict() if self.probe else None,
        }
