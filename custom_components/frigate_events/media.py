"""Find a playable clip URL for an event."""

from __future__ import annotations

from dataclasses import dataclass
import logging

from aiohttp import ClientError, ClientSession, ClientTimeout

from .const import MEDIA_CANDIDATE_PATHS, PLAYABLE_CONTENT_TYPES, PROBE_TIMEOUT_SECONDS
from .models import (
    MEDIA_STATUS_FAILED,
    MEDIA_STATUS_NO_PLAYABLE_FORMAT,
    MEDIA_STATUS_PLAYABLE,
    MediaResolution,
    ProbeResult,
)

_LOGGER = logging.getLogger(__name__)
_STATUS_ERRORS: dict[int, str] = {
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
}


@dataclass(slots=True)
class _Cursor:
    index: int = 0
    attempts: int = 0


def classify_probe(url: str, status: int, content_type: str | None) -> ProbeResult:
    """Decide whether a HEAD response describes playable media."""
    if status == 200:
        lowered = (content_type or "").lower()
        if any(marker in lowered for marker in PLAYABLE_CONTENT_TYPES):
            return ProbeResult(url, True, status, content_type)
        return ProbeResult(url, False, status, content_type, "invalid_content_type")
    return ProbeResult(url, False, status, content_type, _STATUS_ERRORS.get(status, f"http_{status}"))


class MediaURLResolver:
    """Probe the known clip path formats and remember where each event stands.

    Each event has a cursor over the candidate list. A failed probe advances
    the cursor; after every candidate failed once the cycle ends with
    ``no_playable_format`` and the next request starts over at candidate 0.
    """

    def __init__(
        self,
        session: ClientSession,
        base_url: str,
        *,
        timeout: float = PROBE_TIMEOUT_SECONDS,
    ) -> None:
        self._session = session
        self._base_url = base_url.rstrip("/")
        self._timeout = ClientTimeout(total=timeout)
        self._cursors: dict[str, _Cursor] = {}

    def candidate_urls(self, event_id: str) -> list[str]:
        return [f"{self._base_url}/api/events/{event_id}/{path}" for path in MEDIA_CANDIDATE_PATHS]

    def snapshot_url(self, event_id: str) -> str:
        return f"{self._base_url}/api/events/{event_id}/snapshot.jpg"

    def thumbnail_url(self, event_id: str) -> str:
        return f"{self._base_url}/api/events/{event_id}/thumbnail.jpg"

    async def async_probe(self, url: str) -> ProbeResult:
        """Issue a header-only request; never raises."""
        try:
            async with self._session.head(
                url, allow_redirects=True, timeout=self._timeout
            ) as response:
                result = classify_probe(url, response.status, response.headers.get("Content-Type"))
        except (ClientError, TimeoutError) as err:
            _LOGGER.debug("Media probe failed for %s: %s", url, err)
            return ProbeResult(url, False, error="request_error")
        _LOGGER.debug(
            "Media probe %s: HTTP %s content-type=%s",
            url,
            result.status,
            result.content_type or "-",
        )
        return result

    async def async_try_next(self, event_id: str) -> MediaResolution:
        """Probe the event's current candidate and advance on failure."""
        candidates = self.candidate_urls(event_id)
        cursor = self._cursors.setdefault(event_id, _Cursor())
        if cursor.attempts >= len(candidates):
            cursor.index = 0
            cursor.attempts = 0

        index = cursor.index
        url = candidates[index]
        probe = await self.async_probe(url)
        if probe.playable:
            attempts = cursor.attempts + 1
            cursor.attempts = 0
            return MediaResolution(event_id, MEDIA_STATUS_PLAYABLE, url, index, attempts, probe)

        cursor.attempts += 1
        cursor.index = (index + 1) % len(candidates)
        if cursor.attempts >= len(candidates):
            _LOGGER.debug("No playable media format for event %s", event_id)
            return MediaResolution(
                event_id, MEDIA_STATUS_NO_PLAYABLE_FORMAT, None, index, cursor.attempts, probe
            )
        return MediaResolution(event_id, MEDIA_STATUS_FAILED, url, index, cursor.attempts, probe)

    async def async_resolve(self, event_id: str, *, restart: bool = False) -> MediaResolution:
        """Advance through the remaining candidates until one plays or the cycle ends."""
        if restart:
            self.reset(event_id)
        while True:
            resolution = await self.async_try_next(event_id)
            if resolution.is_terminal:
                return resolution

    async def async_debug_probe_all(self, event_id: str) -> list[ProbeResult]:
        """Probe every candidate without touching the event's cursor."""
        return [await self.async_probe(url) for url in self.candidate_urls(event_id)]

    def reset(self, event_id: str) -> None:
        self._cursors.pop(event_id, None)

    def clear(self) -> None:
        self._cursors.clear()
