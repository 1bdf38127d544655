"""Errors raised while talking to a Frigate server."""

from __future__ import annotations

from homeassistant.exceptions import HomeAssistantError


class FrigateApiError(HomeAssistantError):
    """Base error for Frigate API failures."""


class InvalidUrlError(FrigateApiError):
    """The base URL or a constructed request URL is malformed."""

    def __init__(self, url: str) -> None:
        super().__init__(f"The URL for the Frigate API is invalid: {url!r}")
        self.url = url


class FrigateNetworkError(FrigateApiError):
    """Transport level failure; the cause is chained."""

    def __init__(self, err: BaseException) -> None:
        super().__init__(f"Network error: {err or type(err).__name__}")


class FrigateDecodingError(FrigateApiError):
    """No parsing strategy matched the payload."""


class InvalidResponseError(FrigateApiError):
    """The server answered with a status other than 200."""

    def __init__(self, status: int, url: str | None = None) -> None:
        super().__init__(f"Invalid response from the Frigate API (HTTP {status})")
        self.status = status
        self.url = url


class UnsupportedVersionError(FrigateApiError):
    """The server version is not supported."""

    def __init__(self, version: str) -> None:
        super().__init__(
            f"Unsupported Frigate version: {version}. Please upgrade to a supported version."
        )
        self.version = version
