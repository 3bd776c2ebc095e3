"""Capability event synthesis from bridge state maps.

A state map is either the command we just sent (a local echo), a v1 poll
result, or a v2 event stream update. Each key is dispatched through a table
built once per synthesizer; an event is emitted only when the converted value
differs from the one already in the snapshot.
"""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
import logging
from typing import Any, Protocol

from .bridge import ValidationError
from .color_mode import ColorMode, arbitrate_v1, arbitrate_v2, channel_is_suppressed
from .const import ApiVersion
from .scaling import (
    bri_from_bridge,
    color_name_for_hue,
    color_name_for_temperature,
    ct_from_bridge,
    hue_from_bridge,
    sat_from_bridge,
)
from .state import DeviceStateSnapshot, LightSettings

_LOGGER = logging.getLogger(__name__)


class Attribute(str, Enum):
    """Capability attributes reported to the hub."""

    SWITCH = "switch"
    LEVEL = "level"
    COLOR_TEMPERATURE = "colorTemperature"
    HUE = "hue"
    SATURATION = "saturation"
    COLOR_MODE = "colorMode"
    COLOR_NAME = "colorName"
    EFFECT = "effect"
    REACHABLE = "reachable"
    LEVEL_PRESET = "levelPreset"
    COLOR_TEMPERATURE_PRESET = "colorTemperaturePreset"
    HUE_PRESET = "huePreset"
    SATURATION_PRESET = "saturationPreset"


# Snapshot field, value type and unit of every attribute
ATTRIBUTE_FIELDS = {
    Attribute.SWITCH: "switch",
    Attribute.LEVEL: "level",
    Attribute.COLOR_TEMPERATURE: "color_temperature",
    Attribute.HUE: "hue",
    Attribute.SATURATION: "saturation",
    Attribute.COLOR_MODE: "color_mode",
    Attribute.COLOR_NAME: "color_name",
    Attribute.EFFECT: "effect",
    Attribute.REACHABLE: "reachable",
    Attribute.LEVEL_PRESET: "level_preset",
    Attribute.COLOR_TEMPERATURE_PRESET: "color_temperature_preset",
    Attribute.HUE_PRESET: "hue_preset",
    Attribute.SATURATION_PRESET: "saturation_preset",
}

ATTRIBUTE_KINDS: dict[Attribute, type] = {
    Attribute.SWITCH: str,
    Attribute.LEVEL: int,
    Attribute.COLOR_TEMPERATURE: int,
    Attribute.HUE: int,
    Attribute.SATURATION: int,
    Attribute.COLOR_MODE: str,
    Attribute.COLOR_NAME: str,
    Attribute.EFFECT: str,
    Attribute.REACHABLE: bool,
    Attribute.LEVEL_PRESET: int,
    Attribute.COLOR_TEMPERATURE_PRESET: int,
    Attribute.HUE_PRESET: int,
    Attribute.SATURATION_PRESET: int,
}

ATTRIBUTE_UNITS = {
    Attribute.LEVEL: "%",
    Attribute.COLOR_TEMPERATURE: "K",
    Attribute.LEVEL_PRESET: "%",
    Attribute.COLOR_TEMPERATURE_PRESET: "K",
}


@dataclass(frozen=True)
class CapabilityEvent:
    """A changed capability value, typed per attribute."""

    attribute: Attribute
    value: bool | int | str
    unit: str | None = None
    description: str = ""

    def __post_init__(self):
        expected = ATTRIBUTE_KINDS[self.attribute]
        if type(self.value) is not expected:
            raise TypeError(
                f"{self.attribute.value} expects {expected.__name__}, "
                f"got {type(self.value).__name__}"
            )


class BridgeField(str, Enum):
    """Keys of a v1 state map."""

    ON = "on"
    ANY_ON = "any_on"
    BRI = "bri"
    CT = "ct"
    HUE = "hue"
    SAT = "sat"
    COLORMODE = "colormode"
    EFFECT = "effect"
    REACHABLE = "reachable"
    XY = "xy"
    ALERT = "alert"
    TRANSITIONTIME = "transitiontime"
    BRI_INC = "bri_inc"
    MODE = "mode"


class V2Field(str, Enum):
    """Keys of a v2 resource."""

    ON = "on"
    DIMMING = "dimming"
    COLOR_TEMPERATURE = "color_temperature"
    COLOR = "color"
    DYNAMICS = "dynamics"
    ID_V1 = "id_v1"
    STATUS = "status"


# v2 keys that carry the same values as the v1 keys a device filters
V1_TO_V2_FIELDS = {
    BridgeField.ON: V2Field.ON,
    BridgeField.BRI: V2Field.DIMMING,
    BridgeField.CT: V2Field.COLOR_TEMPERATURE,
}


class PushChannel(Protocol):
    """Tells whether bridge updates are currently arriving over the event stream."""

    def is_push_channel_active(self) -> bool:
        ...


@dataclass
class _Pass:
    """Bookkeeping for one processed map."""

    from_bridge: bool
    mode: ColorMode | None
    events: list[CapabilityEvent] = field(default_factory=list)
    ct_accepted: bool = False
    hs_accepted: bool = False
    switched_off: bool = False


class EventSynthesizer:
    """Turns bridge state maps into capability events for one device."""

    def __init__(
        self,
        name: str,
        snapshot: DeviceStateSnapshot,
        settings: LightSettings,
        push_channel: PushChannel,
        *,
        is_group: bool = False,
        push_filter_keys: frozenset[BridgeField] = frozenset(),
        on_event: Callable[[CapabilityEvent], None] | None = None,
        on_group_off: Callable[[], None] | None = None,
    ) -> None:
        """Initialize the synthesizer."""
        self.name = name
        self.snapshot = snapshot
        self.settings = settings
        self.id_v1: str | None = None
        self._push_channel = push_channel
        self._is_group = is_group
        self._push_filter_keys = {key.value for key in push_filter_keys}
        self._push_filter_keys_v2 = {
            V1_TO_V2_FIELDS[key].value for key in push_filter_keys if key in V1_TO_V2_FIELDS
        }
        self._on_event = on_event
        self._on_group_off = on_group_off

        self._v1_handlers: dict[BridgeField, Callable[[Any, _Pass], None]] = {
            BridgeField.ON: self._handle_on,
            BridgeField.ANY_ON: self._handle_any_on,
            BridgeField.BRI: self._handle_bri,
            BridgeField.CT: self._handle_ct,
            BridgeField.HUE: self._handle_hue,
            BridgeField.SAT: self._handle_sat,
            BridgeField.COLORMODE: self._handle_colormode,
            BridgeField.EFFECT: self._handle_effect,
            BridgeField.REACHABLE: self._handle_reachable,
        }
        self._v2_handlers: dict[V2Field, Callable[[Any, _Pass], None]] = {
            V2Field.ON: self._handle_v2_on,
            V2Field.DIMMING: self._handle_v2_dimming,
            V2Field.COLOR_TEMPERATURE: self._handle_v2_color_temperature,
            V2Field.ID_V1: self._handle_v2_id_v1,
            V2Field.STATUS: self._handle_v2_status,
        }

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def process(
        self,
        bridge_map: dict[str, Any],
        from_bridge: bool = False,
        api_version: ApiVersion = ApiVersion.V1,
    ) -> list[CapabilityEvent]:
        """Apply a state map and return the events it produced."""
        if not bridge_map:
            _LOGGER.debug("%s: empty state map, nothing to do", self.name)
            return []

        if api_version == ApiVersion.V2:
            return self._process_v2(bridge_map, from_bridge)
        return self._process_v1(bridge_map, from_bridge)

    def emit_preset(self, attribute: Attribute, value: int) -> CapabilityEvent | None:
        """Record a preset attribute value."""
        ctx = _Pass(from_bridge=False, mode=None)
        self._update(attribute, value, ctx)
        return ctx.events[0] if ctx.events else None

    def _process_v1(self, bridge_map: dict[str, Any], from_bridge: bool) -> list[CapabilityEvent]:
        bridge_map = self._apply_push_filter(bridge_map, from_bridge, self._push_filter_keys)
        ctx = _Pass(from_bridge, arbitrate_v1(bridge_map) if from_bridge else None)
        _LOGGER.debug(
            "%s: creating events from %s%s (color mode %s)",
            self.name,
            bridge_map,
            " from bridge" if from_bridge else "",
            ctx.mode,
        )
        for key, value in bridge_map.items():
            try:
                handler = self._v1_handlers.get(BridgeField(key))
            except ValueError:
                _LOGGER.debug("%s: unhandled key %s discarded", self.name, key)
                continue
            if handler is not None:
                handler(value, ctx)
        return self._finish(ctx)

    def _process_v2(self, data: dict[str, Any], from_bridge: bool) -> list[CapabilityEvent]:
        data = self._apply_push_filter(data, from_bridge, self._push_filter_keys_v2)
        ctx = _Pass(from_bridge, arbitrate_v2(data) if from_bridge else None)
        _LOGGER.debug("%s: creating events from v2 data %s", self.name, data)
        for key, value in data.items():
            try:
                handler = self._v2_handlers.get(V2Field(key))
            except ValueError:
                continue
            if handler is None:
                continue
            try:
                handler(value, ctx)
            except ValidationError as err:
                _LOGGER.debug("%s: skipping malformed %s: %s", self.name, key, err)
        return self._finish(ctx)

    def _apply_push_filter(
        self, bridge_map: dict[str, Any], from_bridge: bool, keys: set[str]
    ) -> dict[str, Any]:
        if from_bridge or not keys or not self._push_channel.is_push_channel_active():
            return bridge_map
        filtered = {key: value for key, value in bridge_map.items() if key not in keys}
        _LOGGER.debug("%s: map after ignored keys removed: %s", self.name, filtered)
        return filtered

    def _finish(self, ctx: _Pass) -> list[CapabilityEvent]:
        self._update_color_name(ctx)
        if self._is_group and ctx.switched_off and self._on_group_off is not None:
            self._on_group_off()
        return ctx.events

    # ------------------------------------------------------------------
    # v1 handlers
    # ------------------------------------------------------------------

    def _handle_on(self, value: Any, ctx: _Pass) -> None:
        # For groups the bridge's "on" only reflects the last command; any_on is the real state
        if self._is_group and ctx.from_bridge:
            return
        self._update(Attribute.SWITCH, "on" if value else "off", ctx)

    def _handle_any_on(self, value: Any, ctx: _Pass) -> None:
        if self._is_group:
            self._update(Attribute.SWITCH, "on" if value else "off", ctx)

    def _handle_bri(self, value: Any, ctx: _Pass) -> None:
        self._update(Attribute.LEVEL, bri_from_bridge(value, ApiVersion.V1), ctx)

    def _handle_colormode(self, value: Any, ctx: _Pass) -> None:
        if ctx.mode is not None:
            self._update(Attribute.COLOR_MODE, ctx.mode.value, ctx)

    def _handle_ct(self, value: Any, ctx: _Pass) -> None:
        kelvin = ct_from_bridge(value)
        if not kelvin:
            return
        self._set_channel(ColorMode.CT, Attribute.COLOR_TEMPERATURE, kelvin, ctx)

    def _handle_hue(self, value: Any, ctx: _Pass) -> None:
        self._set_channel(
            ColorMode.RGB, Attribute.HUE, hue_from_bridge(value, self.settings.hi_rez_hue), ctx
        )

    def _handle_sat(self, value: Any, ctx: _Pass) -> None:
        self._set_channel(ColorMode.RGB, Attribute.SATURATION, sat_from_bridge(value), ctx)

    def _handle_effect(self, value: Any, ctx: _Pass) -> None:
        self._update(Attribute.EFFECT, "colorloop" if value == "colorloop" else "none", ctx)

    def _handle_reachable(self, value: Any, ctx: _Pass) -> None:
        self._update(Attribute.REACHABLE, bool(value), ctx)

    # ------------------------------------------------------------------
    # v2 handlers
    # ------------------------------------------------------------------

    def _handle_v2_on(self, value: Any, ctx: _Pass) -> None:
        on = _require(value, "on", bool)
        self._update(Attribute.SWITCH, "on" if on else "off", ctx)

    def _handle_v2_dimming(self, value: Any, ctx: _Pass) -> None:
        brightness = _require(value, "brightness", (int, float))
        self._update(Attribute.LEVEL, bri_from_bridge(brightness, ApiVersion.V2), ctx)

    def _handle_v2_color_temperature(self, value: Any, ctx: _Pass) -> None:
        if not isinstance(value, dict):
            raise ValidationError(f"expected an object, got {value!r}")
        mirek = value.get("mirek")
        # null while the light is in xy mode
        if mirek is None:
            return
        if not isinstance(mirek, (int, float)) or isinstance(mirek, bool):
            raise ValidationError(f"invalid mirek {mirek!r}")
        kelvin = ct_from_bridge(mirek)
        if not kelvin:
            return
        if self._set_channel(ColorMode.CT, Attribute.COLOR_TEMPERATURE, kelvin, ctx):
            self._update(Attribute.COLOR_MODE, ColorMode.CT.value, ctx)

    def _handle_v2_id_v1(self, value: Any, ctx: _Pass) -> None:
        if not isinstance(value, str):
            raise ValidationError(f"invalid id_v1 {value!r}")
        self.id_v1 = value

    def _handle_v2_status(self, value: Any, ctx: _Pass) -> None:
        if not isinstance(value, str):
            raise ValidationError(f"invalid status {value!r}")
        self._update(Attribute.REACHABLE, value == "connected", ctx)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _set_channel(
        self, channel: ColorMode, attribute: Attribute, value: int, ctx: _Pass
    ) -> bool:
        """Report a value on one color channel unless the mode rules it out."""
        if channel_is_suppressed(channel, ctx.mode, ctx.from_bridge):
            _LOGGER.debug(
                "%s: skipping %s because light is not in %s mode",
                self.name,
                attribute.value,
                channel.value,
            )
            return False
        self._update(attribute, value, ctx)
        if channel == ColorMode.CT:
            ctx.ct_accepted = True
        else:
            ctx.hs_accepted = True
        if not ctx.from_bridge:
            self._update(Attribute.COLOR_MODE, channel.value, ctx)
        return True

    def _update_color_name(self, ctx: _Pass) -> None:
        snapshot = self.snapshot
        name = None
        if ctx.ct_accepted and snapshot.color_mode != ColorMode.RGB.value:
            name = color_name_for_temperature(snapshot.color_temperature)
        elif ctx.hs_accepted and snapshot.color_mode != ColorMode.CT.value:
            if snapshot.hue is not None:
                name = color_name_for_hue(
                    snapshot.hue, snapshot.saturation, self.settings.hi_rez_hue
                )
        if name is not None:
            self._update(Attribute.COLOR_NAME, name, ctx)

    def _update(self, attribute: Attribute, value: bool | int | str, ctx: _Pass) -> None:
        field_name = ATTRIBUTE_FIELDS[attribute]
        previous = getattr(self.snapshot, field_name)
        if previous == value:
            return
        setattr(self.snapshot, field_name, value)

        unit = ATTRIBUTE_UNITS.get(attribute)
        event = CapabilityEvent(
            attribute,
            value,
            unit,
            f"{self.name} {attribute.value} is {value}{unit or ''}",
        )
        _LOGGER.info("%s", event.description)
        ctx.events.append(event)
        if attribute == Attribute.SWITCH and previous == "on":
            ctx.switched_off = True
        if self._on_event is not None:
            self._on_event(event)


def _require(value: Any, key: str, kind) -> Any:
    """Return ``value[key]`` if it is present and of the right type."""
    if not isinstance(value, dict) or key not in value:
        raise ValidationError(f"missing {key} in {value!r}")
    result = value[key]
    if not isinstance(result, kind) or (kind is not bool and isinstance(result, bool)):
        raise ValidationError(f"invalid {key} {result!r}")
    return result
