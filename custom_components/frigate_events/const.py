"""Constants for the Frigate events integration."""

from __future__ import annotations

DOMAIN = "frigate_events"
CONF_BASE_URL = "base_url"
CONF_SELECTED_LABELS = "selected_labels"
CONF_SELECTED_ZONES = "selected_zones"
CONF_SELECTED_CAMERAS = "selected_cameras"
CONF_FAST_POLL_SECONDS = "fast_poll_seconds"
CONF_SLOW_POLL_SECONDS = "slow_poll_seconds"
CONF_EVENT_LIMIT = "event_limit"
DEFAULT_FAST_POLL_SECONDS = 2
MIN_FAST_POLL_SECONDS = 1
MAX_FAST_POLL_SECONDS = 60
DEFAULT_SLOW_POLL_SECONDS = 30
MIN_SLOW_POLL_SECONDS = 10
MAX_SLOW_POLL_SECONDS = 3600
DEFAULT_EVENT_LIMIT = 50
MIN_EVENT_LIMIT = 1
MAX_EVENT_LIMIT = 500
DEFAULT_TIMEZONE = "America/New_York"
DEFAULT_SERVER_VERSION = "0.13.0"
REQUEST_TIMEOUT_SECONDS = 10
PROBE_TIMEOUT_SECONDS = 10
REFRESH_INDICATOR_DELAY_SECONDS = 0.5
RECONCILE_RETRY_DELAYS_SECONDS: tuple[float, ...] = (0.5, 1.0)
AUTO_REFRESH_DELAY_SECONDS = 0.5
AUTO_REFRESH_ERROR_WINDOW_SECONDS = 86400
AUTO_REFRESH_BACKGROUND_SECONDS = 1800
AUTO_REFRESH_MIN_INTERVAL_SECONDS = 30
SIGNAL_REFRESH = f"{DOMAIN}_refresh"
EVENT_WRAPPER_KEYS: tuple[str, ...] = ("events", "data", "results")
VERSION_RESPONSE_KEYS: tuple[str, ...] = (
    "version",
    "frigate_version",
    "server_version",
    "api_version",
)
MEDIA_CANDIDATE_PATHS: tuple[str, ...] = (
    "clip.mp4",
    "clip",
    "recording",
    "clip.mov",
)
PLAYABLE_CONTENT_TYPES: tuple[str, ...] = ("video/", "application/octet-stream")
EVENTS_QUERY_DEFAULTS: dict[str, str] = {
    "sub_labels": "all",
    "time_range": "00:00,24:00",
    "favorites": "0",
    "is_submitted": "-1",
    "include_thumbnails": "0",
}


def friendly_name(value: str | None) -> str:
    """Turn a Frigate identifier such as ``front_door`` into ``Front Door``."""
    if not value:
        return ""
    words = str(value).replace("-", "_").split("_")
    return " ".join(word.capitalize() for word in words if word)
