"""Color mode arbitration between the color temperature and hue/saturation channels."""
from __future__ import annotations

from enum import Enum
from typing import Any

from .const import HUE_API_STATE_COLORMODE, HUE_V2_COLOR, HUE_V2_COLOR_TEMPERATURE


class ColorMode(str, Enum):
    """Active color channel of a light."""

    CT = "CT"
    RGB = "RGB"


# The bridge's xy color space is not converted; a light reporting xy is
# treated as if it were in color temperature mode.
XY_COLOR_MODE = ColorMode.CT

_V1_MODES = {
    "ct": ColorMode.CT,
    "hs": ColorMode.RGB,
    "xy": XY_COLOR_MODE,
}


def arbitrate_v1(bridge_map: dict[str, Any]) -> ColorMode | None:
    """Return the color mode named by a v1 ``colormode`` field, if any."""
    return _V1_MODES.get(bridge_map.get(HUE_API_STATE_COLORMODE))


def arbitrate_v2(data: dict[str, Any]) -> ColorMode | None:
    """Infer the color mode of a v2 resource from which color keys it carries.

    ``color_temperature`` only counts when it holds a valid mirek value; a
    light in xy mode reports ``mirek: null`` alongside its ``color``.
    """
    color_temperature = data.get(HUE_V2_COLOR_TEMPERATURE)
    if isinstance(color_temperature, dict) and color_temperature.get("mirek_valid", True):
        if color_temperature.get("mirek") is not None:
            return ColorMode.CT
    if HUE_V2_COLOR in data:
        return XY_COLOR_MODE
    return None


def channel_is_suppressed(
    channel: ColorMode, mode: ColorMode | None, from_bridge: bool
) -> bool:
    """Return True when a value on ``channel`` must not be reported.

    Only bridge-sourced values are ever suppressed, and only when the bridge
    says the light is on the other channel. Local commands state their
    intent and always pass.
    """
    if not from_bridge or mode is None:
        return False
    return channel != mode
