"""Light entities for bridge lights and groups."""
from __future__ import annotations

import logging
from typing import Any

import voluptuous as vol

from homeassistant.components.light import (
    ATTR_BRIGHTNESS,
    ATTR_COLOR_TEMP_KELVIN,
    ATTR_EFFECT,
    ATTR_FLASH,
    ATTR_HS_COLOR,
    ATTR_TRANSITION,
    FLASH_LONG,
    FLASH_SHORT,
    ColorMode,
    LightEntity,
    LightEntityFeature,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers import config_validation as cv, entity_platform
from homeassistant.helpers.dispatcher import async_dispatcher_connect
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .const import (
    DOMAIN,
    HUE_API_STATE_CT_MAX,
    HUE_API_STATE_CT_MIN,
    LIGHT_EFFECTS,
    SERVICE_FLASH,
    SERVICE_FLASH_OFF,
    SERVICE_FLASH_ONCE,
    SERVICE_PRESET_COLOR,
    SERVICE_PRESET_COLOR_TEMPERATURE,
    SERVICE_PRESET_LEVEL,
    SERVICE_START_LEVEL_CHANGE,
    SERVICE_STOP_LEVEL_CHANGE,
    SIGNAL_BRIDGE_STATUS,
)
from .coordinator import HueBridgeUpdateCoordinator
from .device import Capability, LightSession
from .events import CapabilityEvent
from .hub import HueBridgeHub
from .scaling import ct_from_bridge

_LOGGER = logging.getLogger(__name__)

MIN_COLOR_TEMP_KELVIN = ct_from_bridge(HUE_API_STATE_CT_MAX)
MAX_COLOR_TEMP_KELVIN = ct_from_bridge(HUE_API_STATE_CT_MIN)

ENTITY_SERVICES = {
    SERVICE_PRESET_LEVEL: (
        {vol.Required("level"): vol.All(vol.Coerce(int), vol.Range(min=1, max=100))},
        "async_preset_level",
    ),
    SERVICE_PRESET_COLOR_TEMPERATURE: (
        {
            vol.Required("kelvin"): vol.All(
                vol.Coerce(int), vol.Range(min=MIN_COLOR_TEMP_KELVIN, max=MAX_COLOR_TEMP_KELVIN)
            )
        },
        "async_preset_color_temperature",
    ),
    SERVICE_PRESET_COLOR: (
        {
            vol.Required("hue"): vol.All(vol.Coerce(float), vol.Range(min=0, max=360)),
            vol.Required("saturation"): vol.All(vol.Coerce(float), vol.Range(min=0, max=100)),
        },
        "async_preset_color",
    ),
    SERVICE_START_LEVEL_CHANGE: (
        {vol.Required("direction"): vol.In(["up", "down"])},
        "async_start_level_change",
    ),
    SERVICE_STOP_LEVEL_CHANGE: ({}, "async_stop_level_change"),
    SERVICE_FLASH: ({}, "async_flash"),
    SERVICE_FLASH_ONCE: ({}, "async_flash_once"),
    SERVICE_FLASH_OFF: ({}, "async_flash_off"),
}


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up light entities from a config entry."""
    data = hass.data[DOMAIN][entry.entry_id]
    hub: HueBridgeHub = data["hub"]
    coordinator: HueBridgeUpdateCoordinator = data["coordinator"]

    entities = [HueBridgeLight(coordinator, hub, session) for session in hub.sessions]
    async_add_entities(entities)
    _LOGGER.info("Light entities set up: %d devices", len(entities))

    platform = entity_platform.async_get_current_platform()
    for service, (schema, method) in ENTITY_SERVICES.items():
        platform.async_register_entity_service(service, cv.make_entity_service_schema(schema), method)


def hass_to_level(brightness: int) -> int:
    """Convert 0-255 brightness to a 1-100 level."""
    return max(1, min(100, round(brightness * 100 / 255)))


def level_to_hass(level: int) -> int:
    return max(0, min(255, round(level * 255 / 100)))


def degrees_to_hue(degrees: float, hi_rez: bool) -> float:
    """Convert a hue in degrees to hub units (percent unless hi-rez)."""
    return degrees if hi_rez else degrees / 3.6


def hue_to_degrees(hue: float, hi_rez: bool) -> float:
    return hue if hi_rez else hue * 3.6


class HueBridgeLight(CoordinatorEntity[HueBridgeUpdateCoordinator], LightEntity):
    """A bridge light or group, backed by its session."""

    _attr_min_color_temp_kelvin = MIN_COLOR_TEMP_KELVIN
    _attr_max_color_temp_kelvin = MAX_COLOR_TEMP_KELVIN

    def __init__(
        self,
        coordinator: HueBridgeUpdateCoordinator,
        hub: HueBridgeHub,
        session: LightSession,
    ) -> None:
        """Initialize the entity."""
        super().__init__(coordinator)
        self.hub = hub
        self.session = session
        kind = "group" if session.is_group else "light"
        self._attr_unique_id = f"{hub.config_entry.entry_id}_{kind}_{session.device_id}"
        self._attr_name = session.name

        modes: set[ColorMode] = set()
        if session.supports(Capability.COLOR):
            modes.add(ColorMode.HS)
        if session.supports(Capability.COLOR_TEMPERATURE):
            modes.add(ColorMode.COLOR_TEMP)
        if not modes:
            modes.add(
                ColorMode.BRIGHTNESS if session.supports(Capability.LEVEL) else ColorMode.ONOFF
            )
        self._attr_supported_color_modes = modes

        features = LightEntityFeature(0)
        if session.supports(Capability.LEVEL):
            features |= LightEntityFeature.TRANSITION
        if session.supports(Capability.FLASH):
            features |= LightEntityFeature.FLASH
        if session.supports(Capability.EFFECT):
            features |= LightEntityFeature.EFFECT
            self._attr_effect_list = list(LIGHT_EFFECTS.values())
        self._attr_supported_features = features

    async def async_added_to_hass(self) -> None:
        """Subscribe to session events and bridge status."""
        await super().async_added_to_hass()
        self.async_on_remove(self.session.add_listener(self._handle_capability_event))
        self.async_on_remove(
            async_dispatcher_connect(
                self.hass,
                SIGNAL_BRIDGE_STATUS.format(self.hub.config_entry.entry_id),
                self._handle_bridge_status,
            )
        )

    @callback
    def _handle_capability_event(self, event: CapabilityEvent) -> None:
        self.async_write_ha_state()

    @callback
    def _handle_bridge_status(self, online: bool) -> None:
        self.async_write_ha_state()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def available(self) -> bool:
        return (
            super().available
            and self.hub.online
            and self.session.snapshot.reachable is not False
        )

    @property
    def is_on(self) -> bool | None:
        if self.session.snapshot.switch is None:
            return None
        return self.session.snapshot.is_on

    @property
    def brightness(self) -> int | None:
        level = self.session.snapshot.level
        return level_to_hass(level) if level is not None else None

    @property
    def color_mode(self) -> ColorMode:
        modes = self.supported_color_modes
        snapshot_mode = self.session.snapshot.color_mode
        if snapshot_mode == "RGB" and ColorMode.HS in modes:
            return ColorMode.HS
        if snapshot_mode == "CT" and ColorMode.COLOR_TEMP in modes:
            return ColorMode.COLOR_TEMP
        if ColorMode.COLOR_TEMP in modes:
            return ColorMode.COLOR_TEMP
        return next(iter(modes))

    @property
    def color_temp_kelvin(self) -> int | None:
        return self.session.snapshot.color_temperature

    @property
    def hs_color(self) -> tuple[float, float] | None:
        snapshot = self.session.snapshot
        if snapshot.hue is None or snapshot.saturation is None:
            return None
        degrees = hue_to_degrees(snapshot.hue, self.session.settings.hi_rez_hue)
        return (float(degrees), float(snapshot.saturation))

    @property
    def effect(self) -> str | None:
        if not self.session.supports(Capability.EFFECT):
            return None
        return LIGHT_EFFECTS[1] if self.session.snapshot.effect == "colorloop" else LIGHT_EFFECTS[0]

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        snapshot = self.session.snapshot
        attributes: dict[str, Any] = {"device_id": self.session.device_id}
        for key in (
            "color_name",
            "level_preset",
            "color_temperature_preset",
            "hue_preset",
            "saturation_preset",
        ):
            value = getattr(snapshot, key)
            if value is not None:
                attributes[key] = value
        return attributes

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def async_turn_on(self, **kwargs: Any) -> None:
        """Turn on, applying at most one of color, temperature or brightness."""
        session = self.session
        transition = kwargs.get(ATTR_TRANSITION)
        level = hass_to_level(kwargs[ATTR_BRIGHTNESS]) if ATTR_BRIGHTNESS in kwargs else None

        if ATTR_FLASH in kwargs:
            if kwargs[ATTR_FLASH] == FLASH_LONG:
                session.flash()
            elif kwargs[ATTR_FLASH] == FLASH_SHORT:
                session.flash_once()
            return

        if ATTR_EFFECT in kwargs:
            session.set_effect(kwargs[ATTR_EFFECT])
        elif ATTR_HS_COLOR in kwargs:
            hue, saturation = kwargs[ATTR_HS_COLOR]
            color = {
                "hue": degrees_to_hue(hue, session.settings.hi_rez_hue),
                "saturation": saturation,
                "level": level,
                "rate": transition,
            }
            session.set_color(color)
        elif ATTR_COLOR_TEMP_KELVIN in kwargs:
            session.set_color_temperature(kwargs[ATTR_COLOR_TEMP_KELVIN], level, transition)
        elif level is not None:
            session.set_level(level, transition)
        else:
            session.turn_on(transition * 1000 if transition is not None else None)

    async def async_turn_off(self, **kwargs: Any) -> None:
        transition = kwargs.get(ATTR_TRANSITION)
        self.session.turn_off(transition * 1000 if transition is not None else None)

    async def async_preset_level(self, level: int) -> None:
        self.session.preset_level(level)

    async def async_preset_color_temperature(self, kelvin: int) -> None:
        self.session.preset_color_temperature(kelvin)

    async def async_preset_color(self, hue: float, saturation: float) -> None:
        """Preset a color; ``hue`` is in degrees, as in the service schema."""
        self.session.preset_color(
            {"hue": degrees_to_hue(hue, self.session.settings.hi_rez_hue), "saturation": saturation}
        )

    async def async_start_level_change(self, direction: str) -> None:
        self.session.start_level_change(direction)

    async def async_stop_level_change(self) -> None:
        self.session.stop_level_change()

    async def async_flash(self) -> None:
        self.session.flash()

    async def async_flash_once(self) -> None:
        self.session.flash_once()

    async def async_flash_off(self) -> None:
        self.session.flash_off()
