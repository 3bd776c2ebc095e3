"""Hue Bridge Lights integration for Home Assistant.

Keeps Home Assistant light entities in sync with the lights and groups of a
Hue bridge, over the v1 REST API (polling) and optionally the v2 event
stream.
"""
from __future__ import annotations

import logging

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import Platform
from homeassistant.core import HomeAssistant, ServiceCall
from homeassistant.exceptions import ConfigEntryNotReady
from homeassistant.helpers.aiohttp_client import async_get_clientsession
from homeassistant.helpers.typing import ConfigType

from .bridge import BridgeConnection, HueBridgeClient, HueBridgeError
from .const import (
    CONF_API_VERSION,
    CONF_APP_KEY,
    CONF_HOST,
    CONF_POLL_INTERVAL,
    DEFAULT_API_VERSION,
    DEFAULT_POLL_INTERVAL,
    DOMAIN,
    SERVICE_REFRESH,
    ApiVersion,
)
from .coordinator import HueBridgeUpdateCoordinator
from .hub import HueBridgeHub
from .state import LightSettings

_LOGGER = logging.getLogger(__name__)

PLATFORMS = [Platform.LIGHT]


async def async_setup(hass: HomeAssistant, config: ConfigType) -> bool:
    """Set up the Hue Bridge Lights component."""
    return True


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up Hue Bridge Lights from a config entry."""
    _LOGGER.info("Setting up Hue Bridge Lights for %s", entry.data[CONF_HOST])

    connection = BridgeConnection(
        entry.data[CONF_HOST],
        entry.data[CONF_APP_KEY],
        entry.data.get(CONF_API_VERSION, DEFAULT_API_VERSION),
    )
    client = HueBridgeClient(connection, async_get_clientsession(hass))
    hub = HueBridgeHub(hass, entry, client, LightSettings.from_options(dict(entry.options)))

    try:
        await hub.async_setup()
    except HueBridgeError as err:
        raise ConfigEntryNotReady(f"Bridge at {connection.host} not ready: {err}") from err

    coordinator = HueBridgeUpdateCoordinator(
        hass, hub, entry.options.get(CONF_POLL_INTERVAL, DEFAULT_POLL_INTERVAL)
    )
    await coordinator.async_config_entry_first_refresh()

    hass.data.setdefault(DOMAIN, {})
    hass.data[DOMAIN][entry.entry_id] = {
        "hub": hub,
        "coordinator": coordinator,
    }

    if connection.api_version == ApiVersion.V2:
        entry.async_create_background_task(
            hass, hub.async_run_event_stream(), f"{DOMAIN}_event_stream_{entry.entry_id}"
        )

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)
    entry.async_on_unload(entry.add_update_listener(_async_update_listener))

    if not hass.services.has_service(DOMAIN, SERVICE_REFRESH):
        _async_register_services(hass)

    _LOGGER.info("Hue Bridge Lights setup complete")
    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    _LOGGER.info("Unloading Hue Bridge Lights for %s", entry.data[CONF_HOST])

    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if not unload_ok:
        return False

    if DOMAIN in hass.data:
        hass.data[DOMAIN].pop(entry.entry_id, None)

        # Remove services if this was the last entry
        if not hass.data[DOMAIN] and hass.services.has_service(DOMAIN, SERVICE_REFRESH):
            hass.services.async_remove(DOMAIN, SERVICE_REFRESH)

    return True


async def _async_update_listener(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Reload when options or connection data change."""
    await hass.config_entries.async_reload(entry.entry_id)


def _async_register_services(hass: HomeAssistant) -> None:
    """Register integration-wide services."""

    async def refresh_service(call: ServiceCall) -> None:
        """Poll every configured bridge now."""
        _LOGGER.info("Refreshing all bridges")
        for data in hass.data.get(DOMAIN, {}).values():
            await data["coordinator"].async_request_refresh()

    hass.services.async_register(DOMAIN, SERVICE_REFRESH, refresh_service)
