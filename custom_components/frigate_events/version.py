"""Server version discovery with a process lifetime cache."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
import json
import logging
import re

from .const import DEFAULT_SERVER_VERSION, VERSION_RESPONSE_KEYS
from .exceptions import FrigateApiError, FrigateDecodingError
from .models import ServerVersion

_LOGGER = logging.getLogger(__name__)
_PLAIN_VERSION_PATTERN = re.compile(r"^\d+\.\d+(\.\d+.*)?")
_EMBEDDED_VERSION_PATTERN = re.compile(r'"version"\s*:\s*"([^"]+)"')


def parse_version_payload(body: str) -> str:
    """Extract a version string from a JSON or plain text ``/api/version`` body."""
    try:
        payload = json.loads(body)
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        for key in VERSION_RESPONSE_KEYS:
            value = payload.get(key)
            if isinstance(value, str) and value:
                _LOGGER.debug("Found server version %r under key %r", value, key)
                return value

    text = body.strip()
    if _PLAIN_VERSION_PATTERN.match(text):
        return text

    if match := _EMBEDDED_VERSION_PATTERN.search(body):
        version = match.group(1).strip()
        if version:
            return version

    raise FrigateDecodingError("Could not determine Frigate version from API response")


class ServerVersionProbe:
    """Fetch the server version once and reuse it.

    Concurrent first callers wait on a lock, so only one of them performs the
    request. Failures resolve to ``DEFAULT_SERVER_VERSION`` and are cached too.
    """

    def __init__(
        self,
        fetch_body: Callable[[], Awaitable[str]],
        default_version: str = DEFAULT_SERVER_VERSION,
    ) -> None:
        self._fetch_body = fetch_body
        self._default_version = default_version
        self._cached: str | None = None
        self._lock = asyncio.Lock()

    @property
    def version_string(self) -> str | None:
        return self._cached

    @property
    def is_cached(self) -> bool:
        return self._cached is not None

    async def async_get_version(self) -> ServerVersion:
        """Return the cached version, probing the server on first use."""
        if self._cached is None:
            async with self._lock:
                if self._cached is None:
                    self._cached = await self._async_probe()
        return ServerVersion.from_string(self._cached)

    def invalidate(self) -> None:
        """Forget the cached version so the next call probes again."""
        self._cached = None

    async def _async_probe(self) -> str:
        try:
            body = await self._fetch_body()
            version = parse_version_payload(body)
        except FrigateApiError as err:
            _LOGGER.warning(
                "Could not detect Frigate version, using default %s: %s",
                self._default_version,
                err,
            )
            return self._default_version
        _LOGGER.debug("Detected Frigate version %s", version)
        return version
