"""Thin Frigate REST client."""

from __future__ import annotations

import json
import logging
from typing import Any
from urllib.parse import urlsplit

from aiohttp import ClientError, ClientSession, ClientTimeout

from .const import (
    DEFAULT_EVENT_LIMIT,
    DEFAULT_TIMEZONE,
    EVENTS_QUERY_DEFAULTS,
    REQUEST_TIMEOUT_SECONDS,
)
from .decoder import decode_events
from .exceptions import FrigateDecodingError, FrigateNetworkError, InvalidResponseError, InvalidUrlError
from .models import FrigateEvent
from .version import ServerVersionProbe

_LOGGER = logging.getLogger(__name__)


def normalize_base_url(base_url: str) -> str:
    """Validate a user supplied base URL and strip trailing slashes."""
    candidate = str(base_url or "").strip().rstrip("/")
    try:
        parts = urlsplit(candidate)
    except ValueError as err:
        raise InvalidUrlError(candidate) from err
    if parts.scheme not in ("http", "https") or not parts.hostname:
        raise InvalidUrlError(candidate)
    return candidate


def build_events_params(
    *,
    camera: str | None = None,
    label: str | None = None,
    zone: str | None = None,
    limit: int | None = None,
    in_progress: bool = False,
    sort_by: str | None = None,
    time_zone: str = DEFAULT_TIMEZONE,
) -> dict[str, str]:
    """Query parameters for ``/api/events``."""
    params = {
        "cameras": camera or "all",
        "labels": label or "all",
        "zones": zone or "all",
        **EVENTS_QUERY_DEFAULTS,
        "timezone": time_zone,
        "in_progress": "1" if in_progress else "0",
        "limit": str(limit if limit is not None else DEFAULT_EVENT_LIMIT),
    }
    if sort_by:
        params["order_by"] = sort_by
    return params


class FrigateApiClient:
    """Issue requests against one Frigate server."""

    def __init__(
        self,
        session: ClientSession,
        base_url: str,
        *,
        time_zone: str = DEFAULT_TIMEZONE,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        self._session = session
        self._base_url = str(base_url or "").strip().rstrip("/")
        self._time_zone = time_zone
        self._timeout = ClientTimeout(total=timeout)
        self.version_probe = ServerVersionProbe(self.async_fetch_version_body)

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def session(self) -> ClientSession:
        return self._session

    def api_url(self, path: str) -> str:
        return f"{normalize_base_url(self._base_url)}/api/{path.lstrip('/')}"

    async def async_fetch_events(
        self,
        *,
        camera: str | None = None,
        label: str | None = None,
        zone: str | None = None,
        limit: int | None = None,
        in_progress: bool = False,
        sort_by: str | None = None,
    ) -> list[FrigateEvent]:
        """Fetch and decode one page of events."""
        url = self.api_url("events")
        params = build_events_params(
            camera=camera,
            label=label,
            zone=zone,
            limit=limit,
            in_progress=in_progress,
            sort_by=sort_by,
            time_zone=self._time_zone,
        )
        raw = await self._async_get_bytes(url, params)
        _LOGGER.debug("Events response (first 500 bytes): %s", raw[:500])
        version = await self.version_probe.async_get_version()
        return decode_events(raw, version)

    async def async_fetch_cameras(self) -> list[str]:
        """Return camera names from ``/api/config``, sorted."""
        raw = await self._async_get_bytes(self.api_url("config"))
        try:
            payload: Any = json.loads(raw)
        except ValueError as err:
            raise FrigateDecodingError(f"Config payload is not valid JSON: {err}") from err
        cameras = payload.get("cameras") if isinstance(payload, dict) else None
        if not isinstance(cameras, dict):
            return []
        return sorted(str(name) for name in cameras)

    async def async_fetch_version_body(self) -> str:
        raw = await self._async_get_bytes(self.api_url("version"))
        return raw.decode("utf-8", errors="replace")

    async def _async_get_bytes(self, url: str, params: dict[str, str] | None = None) -> bytes:
        try:
            async with self._session.get(url, params=params, timeout=self._timeout) as response:
                if response.status != 200:
                    raise InvalidResponseError(response.status, url)
                return await response.read()
        except (ClientError, TimeoutError) as err:
            raise FrigateNetworkError(err) from err

