"""Command dispatch and acknowledgement handling."""
from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field
import logging
from typing import Any, Protocol

from .bridge import BridgeApplicationError, BridgeTransportError, HueBridgeClient
from .const import ApiVersion
from .events import CapabilityEvent, EventSynthesizer

_LOGGER = logging.getLogger(__name__)


class BridgeStatus(Protocol):
    """Bridge-wide connectivity bookkeeping."""

    def set_bridge_online(self, online: bool) -> None:
        ...

    def request_rediscovery(self) -> None:
        ...


@dataclass
class BridgeCommand:
    """A command in bridge units, addressed to one light or group."""

    path: str
    body: dict[str, Any] = field(default_factory=dict)
    api_version: ApiVersion = ApiVersion.V1


class CommandCoordinator:
    """Sends commands and turns acknowledgements into capability events.

    Events come from the command that was sent, once the bridge accepts it,
    never optimistically. Commands are not queued; when acknowledgements
    arrive out of order, an older one only applies the keys that no newer
    acknowledgement has set. Commands sent without events never take part.
    """

    def __init__(
        self,
        name: str,
        client: HueBridgeClient,
        status: BridgeStatus,
        synthesizer: EventSynthesizer,
        create_task: Callable[[Coroutine[Any, Any, Any]], asyncio.Task] = asyncio.create_task,
        on_acknowledged: Callable[[dict[str, Any], ApiVersion], None] | None = None,
    ) -> None:
        """Initialize the coordinator."""
        self.name = name
        self._client = client
        self._status = status
        self._synthesizer = synthesizer
        self._create_task = create_task
        self._on_acknowledged = on_acknowledged
        self._sequence = 0
        # bridge key -> sequence of the acknowledgement that last set it
        self._last_applied: dict[str, int] = {}

    def dispatch(self, command: BridgeCommand, create_events: bool = True) -> asyncio.Task:
        """Schedule a command and return without waiting for the bridge."""
        self._sequence += 1
        _LOGGER.debug("%s: sending %s to %s", self.name, command.body, command.path)
        return self._create_task(self._async_send(command, self._sequence, create_events))

    async def _async_send(
        self, command: BridgeCommand, sequence: int, create_events: bool
    ) -> list[CapabilityEvent]:
        try:
            if command.api_version == ApiVersion.V2:
                await self._client.async_put_v2(command.path, command.body)
            else:
                await self._client.async_put_v1(command.path, command.body)
        except BridgeApplicationError as err:
            _LOGGER.warning("%s: bridge rejected %s: %s", self.name, command.body, err)
            return []
        except BridgeTransportError as err:
            _LOGGER.error("%s: could not reach bridge: %s", self.name, err)
            self._status.set_bridge_online(False)
            self._status.request_rediscovery()
            return []

        self._status.set_bridge_online(True)
        if not create_events:
            return []

        body = self._drop_superseded(command.body, sequence)
        if not body:
            return []
        events = self._synthesizer.process(
            body, from_bridge=False, api_version=command.api_version
        )
        if self._on_acknowledged is not None:
            self._on_acknowledged(body, command.api_version)
        return events

    def _drop_superseded(self, body: dict[str, Any], sequence: int) -> dict[str, Any]:
        """Remove keys a newer acknowledgement already applied, and claim the rest."""
        current = {
            key: value
            for key, value in body.items()
            if self._last_applied.get(key, 0) < sequence
        }
        if len(current) < len(body):
            _LOGGER.debug(
                "%s: acknowledgement %d superseded for %s",
                self.name,
                sequence,
                sorted(set(body) - set(current)),
            )
        for key in current:
            self._last_applied[key] = sequence
        return current
