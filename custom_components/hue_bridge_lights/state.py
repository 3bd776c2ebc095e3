"""Per-device state held by a light session."""
from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any

from .const import (
    CONF_HI_REZ_HUE,
    CONF_LEVEL_CHANGE_RATE,
    CONF_TRANSITION_TIME,
    CONF_UPDATE_BULBS,
    CONF_UPDATE_GROUPS,
    CONF_UPDATE_SCENES,
    DEFAULT_HI_REZ_HUE,
    DEFAULT_LEVEL_CHANGE_RATE,
    DEFAULT_TRANSITION_TIME,
    DEFAULT_UPDATE_BULBS,
    DEFAULT_UPDATE_GROUPS,
    DEFAULT_UPDATE_SCENES,
)


@dataclass
class DeviceStateSnapshot:
    """Last reported capability values of one light or group.

    ``None`` means the attribute has never been reported. Only the event
    synthesizer writes to a snapshot.
    """

    switch: str | None = None
    level: int | None = None
    color_temperature: int | None = None
    hue: int | None = None
    saturation: int | None = None
    color_mode: str | None = None
    color_name: str | None = None
    effect: str | None = None
    reachable: bool | None = None
    level_preset: int | None = None
    color_temperature_preset: int | None = None
    hue_preset: int | None = None
    saturation_preset: int | None = None

    @property
    def is_on(self) -> bool:
        return self.switch == "on"

    def to_dict(self) -> dict[str, Any]:
        """Convert to a dictionary, leaving out unreported attributes."""
        return {key: value for key, value in asdict(self).items() if value is not None}


@dataclass
class PrestageState:
    """Which preset attributes are waiting to be sent with the next command."""

    level: bool = False
    color_temperature: bool = False
    hue: bool = False
    saturation: bool = False

    @property
    def pending(self) -> bool:
        return any(getattr(self, field.name) for field in fields(self))

    def clear(self) -> None:
        for field in fields(self):
            setattr(self, field.name, False)


@dataclass
class LightSettings:
    """User preferences that shape the commands a session sends."""

    transition_time: int | None = DEFAULT_TRANSITION_TIME  # ms
    level_change_rate: str = DEFAULT_LEVEL_CHANGE_RATE
    hi_rez_hue: bool = DEFAULT_HI_REZ_HUE
    update_groups: bool = DEFAULT_UPDATE_GROUPS
    update_bulbs: bool = DEFAULT_UPDATE_BULBS
    update_scenes: bool = DEFAULT_UPDATE_SCENES

    def __post_init__(self):
        if self.transition_time is not None and self.transition_time < 0:
            raise ValueError(f"Invalid transition time: {self.transition_time}")

    @classmethod
    def from_options(cls, options: dict[str, Any]) -> LightSettings:
        """Create settings from config entry options."""
        return cls(
            transition_time=options.get(CONF_TRANSITION_TIME, DEFAULT_TRANSITION_TIME),
            level_change_rate=options.get(CONF_LEVEL_CHANGE_RATE, DEFAULT_LEVEL_CHANGE_RATE),
            hi_rez_hue=options.get(CONF_HI_REZ_HUE, DEFAULT_HI_REZ_HUE),
            update_groups=options.get(CONF_UPDATE_GROUPS, DEFAULT_UPDATE_GROUPS),
            update_bulbs=options.get(CONF_UPDATE_BULBS, DEFAULT_UPDATE_BULBS),
            update_scenes=options.get(CONF_UPDATE_SCENES, DEFAULT_UPDATE_SCENES),
        )
