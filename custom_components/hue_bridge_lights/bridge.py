"""Async client for the bridge's v1 REST, v2 CLIP and event stream APIs."""
from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
import logging
from typing import Any

import aiohttp

from homeassistant.util.json import json_loads

from .const import REQUEST_TIMEOUT, ApiVersion

_LOGGER = logging.getLogger(__name__)

HEADER_APP_KEY = "hue-application-key"
EVENT_STREAM_PATH = "/eventstream/clip/v2"


class HueBridgeError(Exception):
    """Base exception for bridge errors."""

    def __init__(self, message: str = "Failed") -> None:
        """Initialize the exception with a message."""
        self.message = message
        super().__init__(self.message)


class BridgeTransportError(HueBridgeError):
    """The bridge could not be reached or did not answer with JSON."""


class BridgeApplicationError(HueBridgeError):
    """The bridge answered, but rejected (part of) the request.

    Usually a stale device id or an unsupported value, not a connectivity
    problem.
    """

    def __init__(self, message: str, errors: list[Any] | None = None) -> None:
        """Initialize with the error entries the bridge returned."""
        super().__init__(message)
        self.errors = errors or []


class ValidationError(HueBridgeError):
    """A pushed resource is missing keys or carries values of the wrong type."""


@dataclass
class BridgeConnection:
    """Where the bridge lives and how to authenticate against it."""

    host: str
    app_key: str
    api_version: ApiVersion = ApiVersion.V1

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not self.host:
            raise HueBridgeError("No bridge host was provided.")
        if not self.app_key:
            raise HueBridgeError("No application key was provided.")
        self.api_version = ApiVersion(self.api_version)

    @property
    def v1_url(self) -> str:
        return f"http://{self.host}/api/{self.app_key}"

    @property
    def v2_url(self) -> str:
        return f"https://{self.host}/clip/v2"

    @property
    def event_stream_url(self) -> str:
        return f"https://{self.host}{EVENT_STREAM_PATH}"


def check_response(payload: Any, api: ApiVersion = ApiVersion.V1) -> None:
    """Raise BridgeApplicationError if a decoded response carries errors.

    v1 answers every request with a list of ``{"success": ...}`` or
    ``{"error": ...}`` entries; v2 answers with an object holding an
    ``errors`` list.
    """
    if api == ApiVersion.V2:
        errors = payload.get("errors") if isinstance(payload, dict) else None
        if errors:
            descriptions = [error.get("description", str(error)) for error in errors]
            raise BridgeApplicationError("; ".join(descriptions), errors)
        return

    if isinstance(payload, list):
        errors = [entry["error"] for entry in payload if isinstance(entry, dict) and "error" in entry]
        if errors:
            descriptions = [
                f"{error.get('address', '')}: {error.get('description', '')}" for error in errors
            ]
            raise BridgeApplicationError("; ".join(descriptions), errors)


class HueBridgeClient:
    """Bridge API client for Home Assistant."""

    def __init__(self, connection: BridgeConnection, web_session: aiohttp.ClientSession) -> None:
        """Initialize the client with an aiohttp session."""
        self.connection = connection
        self.web_session = web_session

    async def _request(
        self,
        method: str,
        url: str,
        payload: dict[str, Any] | None = None,
        api: ApiVersion = ApiVersion.V1,
    ) -> Any:
        """Make a request and return the decoded JSON body.

        Raises:
            BridgeTransportError: on connection failures, timeouts, non-2xx
                statuses and bodies that are not JSON.
        """
        kwargs: dict[str, Any] = {}
        if api == ApiVersion.V2:
            kwargs["headers"] = {HEADER_APP_KEY: self.connection.app_key}
            # The bridge uses a self-signed certificate
            kwargs["ssl"] = False

        _LOGGER.debug("Bridge [%s] %s %s", method, url, payload)
        try:
            async with asyncio.timeout(REQUEST_TIMEOUT):
                async with self.web_session.request(
                    method=method, url=url, json=payload, **kwargs
                ) as resp:
                    resp.raise_for_status()
                    data = await resp.json(content_type=None)
        except (aiohttp.ClientError, TimeoutError, ValueError) as err:
            _LOGGER.error("Bridge [%s] %s failed: %s", method, url, err)
            raise BridgeTransportError(f"[{method}] {url} failed: {err}") from err

        if data is None:
            raise BridgeTransportError(f"[{method}] {url} returned no JSON")
        _LOGGER.debug("Bridge [%s] %s returned %s", method, url, data)
        return data

    async def async_put_v1(self, path: str, body: dict[str, Any]) -> Any:
        """Send a v1 command, e.g. to ``/lights/3/state``."""
        data = await self._request("PUT", f"{self.connection.v1_url}{path}", body)
        check_response(data, ApiVersion.V1)
        return data

    async def async_put_v2(self, path: str, body: dict[str, Any]) -> Any:
        """Send a v2 command, e.g. to ``/resource/light/<rid>``."""
        data = await self._request("PUT", f"{self.connection.v2_url}{path}", body, ApiVersion.V2)
        check_response(data, ApiVersion.V2)
        return data

    async def async_get_lights(self) -> dict[str, dict[str, Any]]:
        data = await self._request("GET", f"{self.connection.v1_url}/lights")
        check_response(data, ApiVersion.V1)
        return data

    async def async_get_groups(self) -> dict[str, dict[str, Any]]:
        data = await self._request("GET", f"{self.connection.v1_url}/groups")
        check_response(data, ApiVersion.V1)
        return data

    async def async_get_group(self, group_id: str) -> dict[str, Any]:
        """Read one group; needed for group 0, which ``/groups`` leaves out."""
        data = await self._request("GET", f"{self.connection.v1_url}/groups/{group_id}")
        check_response(data, ApiVersion.V1)
        return data

    async def async_get_resources(self, resource_type: str) -> list[dict[str, Any]]:
        """Return the v2 resources of one type, e.g. ``light`` or ``grouped_light``."""
        data = await self._request(
            "GET", f"{self.connection.v2_url}/resource/{resource_type}", api=ApiVersion.V2
        )
        check_response(data, ApiVersion.V2)
        return data.get("data", []) if isinstance(data, dict) else []

    async def async_listen_event_stream(
        self,
        on_update: Callable[[list[dict[str, Any]]], None],
        on_connect: Callable[[], None] | None = None,
    ) -> None:
        """Read the v2 event stream until the bridge closes it.

        Each ``data:`` line holds a JSON list of messages; the resources of
        every ``update`` message are handed to ``on_update``.
        """
        headers = {HEADER_APP_KEY: self.connection.app_key, "Accept": "text/event-stream"}
        try:
            async with self.web_session.get(
                self.connection.event_stream_url,
                headers=headers,
                ssl=False,
                timeout=aiohttp.ClientTimeout(total=None, sock_connect=REQUEST_TIMEOUT),
            ) as resp:
                resp.raise_for_status()
                _LOGGER.info("Event stream connected to %s", self.connection.host)
                if on_connect is not None:
                    on_connect()
                async for raw_line in resp.content:
                    line = raw_line.decode("utf-8", errors="replace").strip()
                    if not line.startswith("data:"):
                        continue
                    try:
                        messages = parse_event_stream_data(line[len("data:"):])
                    except ValidationError as err:
                        _LOGGER.debug("Ignoring malformed event stream data: %s", err)
                        continue
                    for message in messages:
                        on_update(message)
        except (aiohttp.ClientError, TimeoutError) as err:
            raise BridgeTransportError(f"Event stream failed: {err}") from err


def parse_event_stream_data(text: str) -> list[list[dict[str, Any]]]:
    """Return the resource lists of the ``update`` messages in one data line."""
    try:
        messages = json_loads(text)
    except ValueError as err:
        raise ValidationError(f"not JSON: {err}") from err
    if not isinstance(messages, list):
        raise ValidationError(f"expected a list, got {type(messages).__name__}")
    return [
        message.get("data", [])
        for message in messages
        if isinstance(message, dict) and message.get("type") == "update"
    ]
