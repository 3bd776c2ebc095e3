"""Light and group sessions: the command surface shared by every device type."""
from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from enum import Enum
import logging
import math
from typing import Any, Protocol

from homeassistant.util.json import json_loads

from .bridge import HueBridgeClient
from .command import BridgeCommand, BridgeStatus, CommandCoordinator
from .const import (
    DEFAULT_LEVEL_CHANGE_RATE,
    GROUP_DEFAULT_ATTRIBUTES,
    HUE_API_STATE_ALERT,
    HUE_API_STATE_BRI,
    HUE_API_STATE_BRI_INC,
    HUE_API_STATE_BRI_MAX,
    HUE_API_STATE_BRI_MIN,
    HUE_API_STATE_CT,
    HUE_API_STATE_EFFECT,
    HUE_API_STATE_HUE,
    HUE_API_STATE_ON,
    HUE_API_STATE_SAT,
    HUE_API_STATE_TRANSITION,
    HUE_TYPE_COLOR,
    HUE_TYPE_COLOR_TEMPERATURE,
    HUE_TYPE_DIMMABLE,
    HUE_TYPE_EXTENDED_COLOR,
    HUE_TYPE_ON_OFF,
    HUE_TYPE_ON_OFF_PLUG,
    HUE_V2_COLOR_TEMPERATURE,
    HUE_V2_DIMMING,
    HUE_V2_DIMMING_DELTA,
    HUE_V2_DYNAMICS,
    HUE_V2_IDENTIFY,
    HUE_V2_ON,
    HUE_V2_SIGNALING,
    LEVEL_CHANGE_TRANSITIONS,
    LIGHT_EFFECTS,
    ApiVersion,
)
from .events import BridgeField, CapabilityEvent, EventSynthesizer, PushChannel
from .prestage import PrestageComposer, merge_commands
from .scaling import (
    bri_to_bridge,
    ct_to_bridge,
    hue_to_bridge,
    sat_to_bridge,
    transition_ms_to_deciseconds,
    transition_to_deciseconds,
)
from .state import DeviceStateSnapshot, LightSettings, PrestageState

_LOGGER = logging.getLogger(__name__)

# Group 0 is the bridge's built-in group of all lights
ALL_LIGHTS_GROUP_ID = "0"

# Signal duration for a long flash over v2, in ms
V2_FLASH_DURATION = 15000


class Capability(Enum):
    """Command families a device type can accept."""

    SWITCH = "switch"
    LEVEL = "level"
    COLOR_TEMPERATURE = "color_temperature"
    COLOR = "color"
    EFFECT = "effect"
    FLASH = "flash"


class DeviceType(str, Enum):
    """Kinds of devices behind the bridge."""

    PLUG = "plug"
    DIMMABLE = "dimmable"
    CT = "ct"
    RGB = "rgb"
    RGBW = "rgbw"
    GROUP = "group"


_ALL_CAPABILITIES = frozenset(Capability)

DEVICE_CAPABILITIES: dict[DeviceType, frozenset[Capability]] = {
    DeviceType.PLUG: frozenset({Capability.SWITCH}),
    DeviceType.DIMMABLE: frozenset({Capability.SWITCH, Capability.LEVEL, Capability.FLASH}),
    DeviceType.CT: frozenset(
        {Capability.SWITCH, Capability.LEVEL, Capability.COLOR_TEMPERATURE, Capability.FLASH}
    ),
    DeviceType.RGB: frozenset(
        {Capability.SWITCH, Capability.LEVEL, Capability.COLOR, Capability.EFFECT, Capability.FLASH}
    ),
    DeviceType.RGBW: _ALL_CAPABILITIES,
    DeviceType.GROUP: _ALL_CAPABILITIES,
}

# Keys of local echoes that the event stream will report anyway
PUSH_FILTER_KEYS: dict[DeviceType, frozenset[BridgeField]] = {
    DeviceType.PLUG: frozenset({BridgeField.ON}),
    DeviceType.DIMMABLE: frozenset({BridgeField.ON, BridgeField.BRI}),
    DeviceType.CT: frozenset({BridgeField.ON, BridgeField.BRI}),
    DeviceType.RGB: frozenset({BridgeField.ON, BridgeField.BRI}),
    DeviceType.RGBW: frozenset({BridgeField.ON, BridgeField.BRI}),
    DeviceType.GROUP: frozenset({BridgeField.ON}),
}

_BRIDGE_TYPES = {
    HUE_TYPE_ON_OFF: DeviceType.PLUG,
    HUE_TYPE_ON_OFF_PLUG: DeviceType.PLUG,
    HUE_TYPE_DIMMABLE: DeviceType.DIMMABLE,
    HUE_TYPE_COLOR_TEMPERATURE: DeviceType.CT,
    HUE_TYPE_COLOR: DeviceType.RGB,
    HUE_TYPE_EXTENDED_COLOR: DeviceType.RGBW,
}


def device_type_from_bridge(bridge_type: str | None) -> DeviceType | None:
    """Map a v1 light ``type`` string to a device type."""
    return _BRIDGE_TYPES.get(bridge_type)


class BridgeLink(BridgeStatus, PushChannel, Protocol):
    """What a session needs from the bridge-wide hub."""

    def update_groups_from_bulb(self, states: dict[str, Any], bulb_id: str) -> None:
        ...

    def update_member_bulbs_from_group(
        self, states: dict[str, Any], member_ids: list[str], is_all_group: bool
    ) -> None:
        ...

    def mark_group_scenes_off(self, group_id: str) -> None:
        ...


class LightSession:
    """One light or group: its state, presets and command surface.

    Commands return immediately. Events follow once the bridge acknowledges
    the command, and are built from what was sent.
    """

    def __init__(
        self,
        device_id: str,
        name: str,
        device_type: DeviceType,
        client: HueBridgeClient,
        link: BridgeLink,
        settings: LightSettings,
        api_version: ApiVersion = ApiVersion.V1,
        *,
        v2_id: str | None = None,
        member_ids: list[str] | None = None,
        create_task: Callable[[Coroutine[Any, Any, Any]], asyncio.Task] = asyncio.create_task,
    ) -> None:
        """Initialize the session with fresh state."""
        self.device_id = device_id
        self.name = name
        self.device_type = device_type
        self.settings = settings
        self.api_version = ApiVersion(api_version)
        self.v2_id = v2_id
        self.member_ids = member_ids or []
        self.snapshot = DeviceStateSnapshot()
        self.prestage = PrestageState()
        self._link = link
        self._listeners: list[Callable[[CapabilityEvent], None]] = []

        self.synthesizer = EventSynthesizer(
            name,
            self.snapshot,
            settings,
            link,
            is_group=self.is_group,
            push_filter_keys=PUSH_FILTER_KEYS[device_type],
            on_event=self._notify,
            on_group_off=self._on_group_off,
        )
        self.composer = PrestageComposer(self.snapshot, self.prestage, self.synthesizer)
        self.coordinator = CommandCoordinator(
            name,
            client,
            link,
            self.synthesizer,
            create_task=create_task,
            on_acknowledged=self._propagate,
        )

    @property
    def is_group(self) -> bool:
        return self.device_type == DeviceType.GROUP

    @property
    def is_all_group(self) -> bool:
        return self.is_group and self.device_id == ALL_LIGHTS_GROUP_ID

    @property
    def capabilities(self) -> frozenset[Capability]:
        return DEVICE_CAPABILITIES[self.device_type]

    @property
    def command_api(self) -> ApiVersion:
        """API generation commands go out in; v2 needs the resource id."""
        if self.api_version == ApiVersion.V2 and self.v2_id:
            return ApiVersion.V2
        return ApiVersion.V1

    @property
    def id_v1(self) -> str | None:
        return self.synthesizer.id_v1

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def add_listener(self, listener: Callable[[CapabilityEvent], None]) -> Callable[[], None]:
        """Register a callback for emitted events; returns a remover."""
        self._listeners.append(listener)

        def _remove() -> None:
            self._listeners.remove(listener)

        return _remove

    # ------------------------------------------------------------------
    # Switch and level
    # ------------------------------------------------------------------

    def turn_on(self, transition_ms: float | None = None) -> asyncio.Task:
        transition = (
            transition_ms_to_deciseconds(transition_ms) if transition_ms is not None else None
        )
        return self._send(self._fragment(on=True, transition=transition), prestage=True)

    def turn_off(self, transition_ms: float | None = None) -> asyncio.Task:
        transition = (
            transition_ms_to_deciseconds(transition_ms) if transition_ms is not None else None
        )
        return self._send(self._fragment(on=False, transition=transition))

    def set_level(self, level: float, transition_sec: float | None = None) -> asyncio.Task | None:
        """Set brightness in percent; 0 turns the device off."""
        if not self._check(Capability.LEVEL, "set_level") or level is None:
            return None
        level = int(round(level))
        if level == 0:
            return self.turn_off(transition_sec * 1000 if transition_sec is not None else None)
        level = max(1, min(100, level))
        return self._send(
            self._fragment(on=True, level=level, transition=self._transition(transition_sec)),
            prestage=True,
        )

    def start_level_change(self, direction: str) -> asyncio.Task | None:
        """Start dimming up or down; stop_level_change ends it."""
        if not self._check(Capability.LEVEL, "start_level_change"):
            return None
        up = direction == "up"
        if self.command_api == ApiVersion.V2:
            body = {
                HUE_V2_DIMMING_DELTA: {
                    "action": "up" if up else "down",
                    "brightness_delta": 100,
                }
            }
        else:
            body = {
                HUE_API_STATE_BRI: HUE_API_STATE_BRI_MAX if up else HUE_API_STATE_BRI_MIN,
                HUE_API_STATE_TRANSITION: LEVEL_CHANGE_TRANSITIONS.get(
                    self.settings.level_change_rate,
                    LEVEL_CHANGE_TRANSITIONS[DEFAULT_LEVEL_CHANGE_RATE],
                ),
            }
        return self._send(body, create_events=False)

    def stop_level_change(self) -> asyncio.Task | None:
        if not self._check(Capability.LEVEL, "stop_level_change"):
            return None
        if self.command_api == ApiVersion.V2:
            body = {HUE_V2_DIMMING_DELTA: {"action": "stop"}}
        else:
            body = {HUE_API_STATE_BRI_INC: 0}
        return self._send(body, create_events=False)

    # ------------------------------------------------------------------
    # Color temperature and color
    # ------------------------------------------------------------------

    def set_color_temperature(
        self,
        kelvin: float,
        level: float | None = None,
        transition_sec: float | None = None,
    ) -> asyncio.Task | None:
        if not self._check(Capability.COLOR_TEMPERATURE, "set_color_temperature"):
            return None
        if kelvin is None or kelvin <= 0:
            _LOGGER.warning("%s: ignoring invalid color temperature %s", self.name, kelvin)
            return None
        if level is not None:
            level = max(1, min(100, int(round(level))))
        return self._send(
            self._fragment(
                on=True, level=level, kelvin=kelvin, transition=self._transition(transition_sec)
            ),
            prestage=True,
        )

    def set_color(self, color: dict[str, Any]) -> asyncio.Task | None:
        """Set hue and saturation, plus level and rate (seconds) if given."""
        if not self._check_color("set_color"):
            return None
        hue = color.get("hue")
        saturation = color.get("saturation")
        if _missing(hue) or _missing(saturation):
            _LOGGER.debug("%s: no hue and/or saturation set, ignoring set_color", self.name)
            return None
        body: dict[str, Any] = {
            HUE_API_STATE_ON: True,
            HUE_API_STATE_HUE: hue_to_bridge(hue, self.settings.hi_rez_hue),
            HUE_API_STATE_SAT: sat_to_bridge(saturation),
        }
        level = color.get("level")
        if not _missing(level):
            body[HUE_API_STATE_BRI] = bri_to_bridge(max(1, min(100, level)))
        transition = self._transition(color.get("rate"))
        if transition is not None:
            body[HUE_API_STATE_TRANSITION] = transition
        return self._send(body, prestage=True)

    def set_hue(self, hue: float) -> asyncio.Task | None:
        if not self._check_color("set_hue") or _missing(hue):
            return None
        body = {
            HUE_API_STATE_ON: True,
            HUE_API_STATE_HUE: hue_to_bridge(hue, self.settings.hi_rez_hue),
        }
        return self._send(self._with_transition(body), prestage=True)

    def set_saturation(self, saturation: float) -> asyncio.Task | None:
        if not self._check_color("set_saturation") or _missing(saturation):
            return None
        body = {HUE_API_STATE_ON: True, HUE_API_STATE_SAT: sat_to_bridge(saturation)}
        return self._send(self._with_transition(body), prestage=True)

    # ------------------------------------------------------------------
    # Presets
    # ------------------------------------------------------------------

    def preset_level(self, level: float) -> asyncio.Task | None:
        """Set the level to use the next time the device turns on."""
        if not self._check(Capability.LEVEL, "preset_level"):
            return None
        level = max(1, min(100, int(round(level))))
        self.composer.stage(level=level, pending=not self.snapshot.is_on)
        if self.snapshot.is_on:
            return self.set_level(level)
        return None

    def preset_color_temperature(self, kelvin: float) -> asyncio.Task | None:
        if not self._check(Capability.COLOR_TEMPERATURE, "preset_color_temperature"):
            return None
        if kelvin is None or kelvin <= 0:
            _LOGGER.warning("%s: ignoring invalid color temperature %s", self.name, kelvin)
            return None
        kelvin = int(round(kelvin))
        self.composer.stage(color_temperature=kelvin, pending=not self.snapshot.is_on)
        if self.snapshot.is_on:
            return self.set_color_temperature(kelvin)
        return None

    def preset_color(self, color: dict[str, Any] | str) -> asyncio.Task | None:
        """Set hue/saturation to use the next time the device turns on.

        Accepts a map or its JSON text, e.g. ``{"hue": 10, "saturation": 50}``.
        """
        if not self._check_color("preset_color"):
            return None
        if isinstance(color, str):
            color = json_loads(color)
        hue = color.get("hue")
        saturation = color.get("saturation")
        self.composer.stage(
            hue=None if _missing(hue) else int(round(hue)),
            saturation=None if _missing(saturation) else int(round(saturation)),
            pending=not self.snapshot.is_on,
        )
        if self.snapshot.is_on:
            return self.set_color(color)
        return None

    # ------------------------------------------------------------------
    # Effects and alerts
    # ------------------------------------------------------------------

    def set_effect(self, effect: int | str) -> asyncio.Task | None:
        """Set an effect by number or name (see LIGHT_EFFECTS)."""
        if not self._check_color("set_effect", Capability.EFFECT):
            return None
        effect_id = _effect_id(effect)
        if effect_id is None:
            _LOGGER.warning("%s: unknown effect %s", self.name, effect)
            return None
        value = "colorloop" if effect_id == 1 else "none"
        return self._send({HUE_API_STATE_EFFECT: value, HUE_API_STATE_ON: True}, prestage=True)

    def set_next_effect(self) -> asyncio.Task | None:
        return self.set_effect((self._current_effect_id() + 1) % len(LIGHT_EFFECTS))

    def set_previous_effect(self) -> asyncio.Task | None:
        return self.set_effect((self._current_effect_id() - 1) % len(LIGHT_EFFECTS))

    def flash(self) -> asyncio.Task | None:
        """Flash for about 15 seconds."""
        if not self._check(Capability.FLASH, "flash"):
            return None
        if self.command_api == ApiVersion.V2:
            body = {HUE_V2_SIGNALING: {"signal": "on_off", "duration": V2_FLASH_DURATION}}
        else:
            body = {HUE_API_STATE_ALERT: "lselect"}
        return self._send(body, create_events=False)

    def flash_once(self) -> asyncio.Task | None:
        if not self._check(Capability.FLASH, "flash_once"):
            return None
        if self.command_api == ApiVersion.V2:
            body = {HUE_V2_IDENTIFY: {"action": "identify"}}
        else:
            body = {HUE_API_STATE_ALERT: "select"}
        return self._send(body, create_events=False)

    def flash_off(self) -> asyncio.Task | None:
        if not self._check(Capability.FLASH, "flash_off"):
            return None
        if self.command_api == ApiVersion.V2:
            body = {HUE_V2_SIGNALING: {"signal": "no_signal"}}
        else:
            body = {HUE_API_STATE_ALERT: "none"}
        return self._send(body, create_events=False)

    # ------------------------------------------------------------------
    # Inbound state
    # ------------------------------------------------------------------

    def apply_bridge_state(self, state: dict[str, Any]) -> list[CapabilityEvent]:
        """Apply a v1 poll result (``state`` of a light, ``action`` + ``state`` of a group)."""
        return self.synthesizer.process(state, from_bridge=True, api_version=ApiVersion.V1)

    def apply_push_update(self, data: dict[str, Any]) -> list[CapabilityEvent]:
        """Apply a resource from the v2 event stream."""
        return self.synthesizer.process(data, from_bridge=True, api_version=ApiVersion.V2)

    def apply_related_update(self, states: dict[str, Any]) -> list[CapabilityEvent]:
        """Apply states a sibling device just had acknowledged."""
        return self.synthesizer.process(states, from_bridge=False, api_version=ApiVersion.V1)

    def seed_default_attributes(self) -> list[CapabilityEvent]:
        """Give a new group sensible values until the first poll."""
        return self.synthesizer.process(
            dict(GROUP_DEFAULT_ATTRIBUTES), from_bridge=True, api_version=ApiVersion.V1
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def command_path(self) -> str:
        if self.command_api == ApiVersion.V2:
            resource = "grouped_light" if self.is_group else "light"
            return f"/resource/{resource}/{self.v2_id}"
        if self.is_group:
            return f"/groups/{self.device_id}/action"
        return f"/lights/{self.device_id}/state"

    def _send(
        self, body: dict[str, Any], prestage: bool = False, create_events: bool = True
    ) -> asyncio.Task:
        api = self.command_api
        if prestage:
            body = merge_commands(
                self.composer.get_prestaged_commands(api, self.settings.hi_rez_hue), body
            )
        return self.coordinator.dispatch(BridgeCommand(self.command_path, body, api), create_events)

    def _fragment(
        self,
        *,
        on: bool | None = None,
        level: int | None = None,
        kelvin: float | None = None,
        transition: int | None = None,
    ) -> dict[str, Any]:
        """Build a command in the units of the session's API generation.

        ``transition`` is in deciseconds.
        """
        body: dict[str, Any] = {}
        if self.command_api == ApiVersion.V2:
            if on is not None:
                body[HUE_V2_ON] = {"on": on}
            if level is not None:
                body[HUE_V2_DIMMING] = {"brightness": bri_to_bridge(level, ApiVersion.V2)}
            if kelvin is not None:
                body[HUE_V2_COLOR_TEMPERATURE] = {"mirek": ct_to_bridge(kelvin)}
            if transition is not None:
                body[HUE_V2_DYNAMICS] = {"duration": transition * 100}
            return body

        if on is not None:
            body[HUE_API_STATE_ON] = on
        if level is not None:
            body[HUE_API_STATE_BRI] = bri_to_bridge(level)
        if kelvin is not None:
            body[HUE_API_STATE_CT] = ct_to_bridge(kelvin)
        if transition is not None:
            body[HUE_API_STATE_TRANSITION] = transition
        return body

    def _transition(self, seconds: float | None) -> int | None:
        """Transition in deciseconds, from the argument or the default setting."""
        if not _missing(seconds):
            return transition_to_deciseconds(seconds)
        if self.settings.transition_time is not None:
            return transition_ms_to_deciseconds(self.settings.transition_time)
        return None

    def _with_transition(self, body: dict[str, Any]) -> dict[str, Any]:
        transition = self._transition(None)
        if transition is not None:
            body[HUE_API_STATE_TRANSITION] = transition
        return body

    def _check(self, capability: Capability, command: str) -> bool:
        if self.supports(capability):
            return True
        _LOGGER.warning(
            "%s: %s is not supported by %s devices", self.name, command, self.device_type.value
        )
        return False

    def _check_color(self, command: str, capability: Capability = Capability.COLOR) -> bool:
        if not self._check(capability, command):
            return False
        if self.command_api == ApiVersion.V2:
            # v2 only takes xy colors, which are not converted
            _LOGGER.warning("%s: %s is not available with the v2 API", self.name, command)
            return False
        return True

    def _current_effect_id(self) -> int:
        return 1 if self.snapshot.effect == "colorloop" else 0

    def _notify(self, event: CapabilityEvent) -> None:
        for listener in list(self._listeners):
            listener(event)

    def _on_group_off(self) -> None:
        if self.settings.update_scenes:
            self._link.mark_group_scenes_off(self.device_id)

    def _propagate(self, body: dict[str, Any], api_version: ApiVersion) -> None:
        """Pass the on/brightness part of an acknowledged command to related devices."""
        if api_version != ApiVersion.V1:
            return
        states = {
            key: value
            for key, value in body.items()
            if key in (HUE_API_STATE_ON, HUE_API_STATE_BRI)
        }
        if not states:
            return
        if self.is_group:
            if self.settings.update_bulbs:
                self._link.update_member_bulbs_from_group(
                    states, self.member_ids, self.is_all_group
                )
        elif self.settings.update_groups:
            self._link.update_groups_from_bulb(states, self.device_id)


def _missing(value: Any) -> bool:
    if value is None or value == "NaN":
        return True
    return isinstance(value, float) and math.isnan(value)


def _effect_id(effect: int | str) -> int | None:
    if isinstance(effect, int) and effect in LIGHT_EFFECTS:
        return effect
    if isinstance(effect, str):
        if effect.isdigit() and int(effect) in LIGHT_EFFECTS:
            return int(effect)
        normalized = effect.replace(" ", "").lower()
        for effect_id, name in LIGHT_EFFECTS.items():
            if name.replace(" ", "").lower() == normalized:
                return effect_id
    return None
