"""Deferred ("prestaged") attribute values for lights that are off."""
from __future__ import annotations

import logging
from typing import Any

from .const import (
    HUE_API_STATE_BRI,
    HUE_API_STATE_CT,
    HUE_API_STATE_HUE,
    HUE_API_STATE_SAT,
    HUE_V2_COLOR_TEMPERATURE,
    HUE_V2_DIMMING,
    ApiVersion,
)
from .events import Attribute, EventSynthesizer
from .scaling import bri_to_bridge, ct_to_bridge, hue_to_bridge, sat_to_bridge
from .state import DeviceStateSnapshot, PrestageState

_LOGGER = logging.getLogger(__name__)


class PrestageComposer:
    """Keeps preset values and merges them into the next real command.

    The values live in the snapshot's preset attributes; PrestageState only
    says which of them are still waiting to be sent.
    """

    def __init__(
        self,
        snapshot: DeviceStateSnapshot,
        prestage: PrestageState,
        synthesizer: EventSynthesizer,
    ) -> None:
        """Initialize the composer."""
        self.snapshot = snapshot
        self.prestage = prestage
        self._synthesizer = synthesizer

    def stage(
        self,
        *,
        level: int | None = None,
        color_temperature: int | None = None,
        hue: int | None = None,
        saturation: int | None = None,
        pending: bool = True,
    ) -> None:
        """Record preset values, and mark them pending if ``pending`` is set.

        Color temperature and hue/saturation presets exclude each other: a
        light can only preview one of the two channels.
        """
        if level is not None:
            self._synthesizer.emit_preset(Attribute.LEVEL_PRESET, level)
            if pending:
                self.prestage.level = True
        if color_temperature is not None:
            self._synthesizer.emit_preset(Attribute.COLOR_TEMPERATURE_PRESET, color_temperature)
            if pending:
                self.prestage.color_temperature = True
                self.prestage.hue = False
                self.prestage.saturation = False
        if hue is not None:
            self._synthesizer.emit_preset(Attribute.HUE_PRESET, hue)
        if saturation is not None:
            self._synthesizer.emit_preset(Attribute.SATURATION_PRESET, saturation)
        if pending and (hue is not None or saturation is not None):
            self.prestage.color_temperature = False
            if hue is not None:
                self.prestage.hue = True
            if saturation is not None:
                self.prestage.saturation = True

    def get_prestaged_commands(
        self, api_version: ApiVersion, hi_rez_hue: bool = False, consume: bool = True
    ) -> dict[str, Any]:
        """Return the pending presets as a bridge command fragment."""
        prestage = self.prestage
        snapshot = self.snapshot
        commands: dict[str, Any] = {}

        if prestage.level and snapshot.level_preset is not None:
            if api_version == ApiVersion.V2:
                commands[HUE_V2_DIMMING] = {
                    "brightness": bri_to_bridge(snapshot.level_preset, ApiVersion.V2)
                }
            else:
                commands[HUE_API_STATE_BRI] = bri_to_bridge(snapshot.level_preset)
        if prestage.color_temperature and snapshot.color_temperature_preset:
            mireds = ct_to_bridge(snapshot.color_temperature_preset)
            if api_version == ApiVersion.V2:
                commands[HUE_V2_COLOR_TEMPERATURE] = {"mirek": mireds}
            else:
                commands[HUE_API_STATE_CT] = mireds
        if api_version == ApiVersion.V1:
            if prestage.hue and snapshot.hue_preset is not None:
                commands[HUE_API_STATE_HUE] = hue_to_bridge(snapshot.hue_preset, hi_rez_hue)
            if prestage.saturation and snapshot.saturation_preset is not None:
                commands[HUE_API_STATE_SAT] = sat_to_bridge(snapshot.saturation_preset)
        elif prestage.hue or prestage.saturation:
            _LOGGER.debug("Hue/saturation presets cannot be sent with the v2 API, dropping them")

        if consume:
            prestage.clear()
        return commands


def merge_commands(prestaged: dict[str, Any], explicit: dict[str, Any]) -> dict[str, Any]:
    """Merge a prestaged fragment into a command; explicit fields win."""
    return {**prestaged, **explicit}
