"""Config flow for the Hue Bridge Lights integration."""
import logging
from typing import Any

import voluptuous as vol

from homeassistant.config_entries import (
    ConfigEntry,
    ConfigFlow,
    ConfigFlowResult,
    OptionsFlow,
)
from homeassistant.core import callback
from homeassistant.helpers.aiohttp_client import async_get_clientsession

from .bridge import (
    BridgeApplicationError,
    BridgeConnection,
    BridgeTransportError,
    HueBridgeClient,
)
from .const import (
    CONF_API_VERSION,
    CONF_APP_KEY,
    CONF_HI_REZ_HUE,
    CONF_HOST,
    CONF_LEVEL_CHANGE_RATE,
    CONF_POLL_INTERVAL,
    CONF_TRANSITION_TIME,
    CONF_UPDATE_BULBS,
    CONF_UPDATE_GROUPS,
    CONF_UPDATE_SCENES,
    DEFAULT_API_VERSION,
    DEFAULT_HI_REZ_HUE,
    DEFAULT_LEVEL_CHANGE_RATE,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_TRANSITION_TIME,
    DEFAULT_UPDATE_BULBS,
    DEFAULT_UPDATE_GROUPS,
    DEFAULT_UPDATE_SCENES,
    DOMAIN,
    LEVEL_CHANGE_RATES,
    ApiVersion,
)

_LOGGER = logging.getLogger(__name__)

API_VERSIONS = [version.value for version in ApiVersion]


def _connection_schema(defaults: dict[str, Any]) -> vol.Schema:
    return vol.Schema(
        {
            vol.Required(CONF_HOST, default=defaults.get(CONF_HOST, "")): str,
            vol.Required(CONF_APP_KEY, default=defaults.get(CONF_APP_KEY, "")): str,
            vol.Required(
                CONF_API_VERSION,
                default=defaults.get(CONF_API_VERSION, DEFAULT_API_VERSION),
            ): vol.In(API_VERSIONS),
        }
    )


async def _async_validate_connection(hass, data: dict[str, Any]) -> str | None:
    """Try to read the bridge's lights; return an error key on failure."""
    try:
        connection = BridgeConnection(data[CONF_HOST], data[CONF_APP_KEY], data[CONF_API_VERSION])
        client = HueBridgeClient(connection, async_get_clientsession(hass))
        await client.async_get_lights()
    except BridgeTransportError as err:
        _LOGGER.warning("Cannot connect to bridge at %s: %s", data[CONF_HOST], err)
        return "cannot_connect"
    except BridgeApplicationError as err:
        _LOGGER.warning("Bridge at %s rejected the application key: %s", data[CONF_HOST], err)
        return "invalid_auth"
    return None


class HueBridgeLightsConfigFlow(ConfigFlow, domain=DOMAIN):
    """Handle a config flow for Hue Bridge Lights."""

    VERSION = 1

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Handle the initial step."""
        errors: dict[str, str] = {}

        if user_input is not None:
            # One entry per bridge
            await self.async_set_unique_id(user_input[CONF_HOST])
            self._abort_if_unique_id_configured()

            error = await _async_validate_connection(self.hass, user_input)
            if error is None:
                return self.async_create_entry(
                    title=f"Hue Bridge ({user_input[CONF_HOST]})",
                    data=user_input,
                )
            errors["base"] = error

        return self.async_show_form(
            step_id="user",
            data_schema=_connection_schema(user_input or {}),
            errors=errors,
        )

    @staticmethod
    @callback
    def async_get_options_flow(
        config_entry: ConfigEntry,
    ) -> OptionsFlow:
        """Get the options flow for this handler."""
        return HueBridgeLightsOptionsFlow()


class HueBridgeLightsOptionsFlow(OptionsFlow):
    """Handle options flow for Hue Bridge Lights."""

    async def async_step_init(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Show the options menu."""
        return self.async_show_menu(
            step_id="init",
            menu_options=["settings", "connection"],
            description_placeholders={"host": self.config_entry.data.get(CONF_HOST, "")},
        )

    # ------------------------------------------------------------------
    # Light settings
    # ------------------------------------------------------------------

    async def async_step_settings(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Manage how commands are sent and which related devices are updated."""
        if user_input is not None:
            return self.async_create_entry(title="", data=user_input)

        options = self.config_entry.options
        data_schema = vol.Schema(
            {
                vol.Required(
                    CONF_TRANSITION_TIME,
                    default=options.get(CONF_TRANSITION_TIME, DEFAULT_TRANSITION_TIME),
                ): vol.All(vol.Coerce(int), vol.Range(min=0, max=60000)),
                vol.Required(
                    CONF_LEVEL_CHANGE_RATE,
                    default=options.get(CONF_LEVEL_CHANGE_RATE, DEFAULT_LEVEL_CHANGE_RATE),
                ): vol.In(LEVEL_CHANGE_RATES),
                vol.Required(
                    CONF_HI_REZ_HUE,
                    default=options.get(CONF_HI_REZ_HUE, DEFAULT_HI_REZ_HUE),
                ): bool,
                vol.Required(
                    CONF_UPDATE_GROUPS,
                    default=options.get(CONF_UPDATE_GROUPS, DEFAULT_UPDATE_GROUPS),
                ): bool,
                vol.Required(
                    CONF_UPDATE_BULBS,
                    default=options.get(CONF_UPDATE_BULBS, DEFAULT_UPDATE_BULBS),
                ): bool,
                vol.Required(
                    CONF_UPDATE_SCENES,
                    default=options.get(CONF_UPDATE_SCENES, DEFAULT_UPDATE_SCENES),
                ): bool,
                vol.Required(
                    CONF_POLL_INTERVAL,
                    default=options.get(CONF_POLL_INTERVAL, DEFAULT_POLL_INTERVAL),
                ): vol.All(vol.Coerce(int), vol.Range(min=1, max=3600)),
            }
        )

        return self.async_show_form(step_id="settings", data_schema=data_schema)

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    async def async_step_connection(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Change the bridge address, application key or API generation."""
        errors: dict[str, str] = {}

        if user_input is not None:
            error = await _async_validate_connection(self.hass, user_input)
            if error is None:
                new_data = dict(self.config_entry.data)
                new_data.update(user_input)
                self.hass.config_entries.async_update_entry(self.config_entry, data=new_data)
                return self.async_create_entry(title="", data=dict(self.config_entry.options))
            errors["base"] = error

        return self.async_show_form(
            step_id="connection",
            data_schema=_connection_schema(user_input or dict(self.config_entry.data)),
            errors=errors,
        )
