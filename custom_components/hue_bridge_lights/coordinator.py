"""Periodic v1 polling of the bridge's lights and groups."""
from __future__ import annotations

from datetime import timedelta
import logging
from typing import Any

from homeassistant.core import HomeAssistant
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator, UpdateFailed

from .bridge import BridgeApplicationError, BridgeTransportError
from .const import DOMAIN
from .hub import HueBridgeHub

_LOGGER = logging.getLogger(__name__)


class HueBridgeUpdateCoordinator(DataUpdateCoordinator[dict[str, dict[str, Any]]]):
    """Polls ``/lights`` and ``/groups`` and feeds the results to the hub.

    Poll results always count as bridge-sourced, so color mode suppression
    applies to them.
    """

    def __init__(self, hass: HomeAssistant, hub: HueBridgeHub, poll_interval: int) -> None:
        """Initialize the coordinator."""
        super().__init__(
            hass,
            _LOGGER,
            name=DOMAIN,
            update_interval=timedelta(seconds=poll_interval),
        )
        self.hub = hub

    async def _async_update_data(self) -> dict[str, dict[str, Any]]:
        try:
            lights, groups = await self.hub.async_poll()
        except BridgeTransportError as err:
            self.hub.set_bridge_online(False)
            self.hub.request_rediscovery()
            raise UpdateFailed(f"Error communicating with bridge: {err}") from err
        except BridgeApplicationError as err:
            _LOGGER.warning("Bridge rejected poll: %s", err)
            raise UpdateFailed(f"Bridge returned an error: {err}") from err

        self.hub.set_bridge_online(True)
        self.hub.apply_poll(lights, groups)
        _LOGGER.debug("Polled %d lights and %d groups", len(lights), len(groups))
        return {"lights": lights, "groups": groups}
