"""Unit conversion between hub capability values and bridge values.

Every ``*_to_bridge`` function clamps into the range the bridge accepts, and
every ``*_from_bridge`` function clamps into the hub's range. Rounding is
half-up, as the bridge's reference clients do, rather than Python's default
round-half-even.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from .const import (
    HUE_API_STATE_BRI_MAX,
    HUE_API_STATE_BRI_MIN,
    HUE_API_STATE_CT_MAX,
    HUE_API_STATE_CT_MIN,
    HUE_API_STATE_HUE_MAX,
    HUE_API_STATE_HUE_MIN,
    HUE_API_STATE_SAT_MAX,
    HUE_API_STATE_SAT_MIN,
    HUE_API_V2_BRI_MAX,
    HUE_API_V2_BRI_MIN,
    ApiVersion,
)

MIREDS_PER_KELVIN = 1_000_000

_ONE = Decimal(1)
_HUNDREDTH = Decimal("0.01")


def round_half_up(value: float | int | Decimal) -> int:
    """Round to the nearest integer, with .5 rounding away from zero."""
    return int(Decimal(str(value)).quantize(_ONE, rounding=ROUND_HALF_UP))


def _clamp(value, minimum, maximum):
    return max(minimum, min(maximum, value))


# ------------------------------------------------------------------
# Brightness
# ------------------------------------------------------------------


def bri_to_bridge(level: float, api: ApiVersion = ApiVersion.V1) -> int | float:
    """Scale a 1-100 hub level to bridge brightness.

    v1 uses 1-254. v2 uses a 0.0-100.0 percentage where 0.0 is still on, so
    the hub's 1% maps to the bridge minimum of 0.0.
    """
    if api == ApiVersion.V2:
        if level == 1:
            return 0.0
        scaled = Decimal(str(level)).quantize(_HUNDREDTH, rounding=ROUND_HALF_UP)
        return float(_clamp(scaled, Decimal(HUE_API_V2_BRI_MIN), Decimal(HUE_API_V2_BRI_MAX)))

    if level == 1:
        return HUE_API_STATE_BRI_MIN
    scaled = round_half_up(Decimal(str(level)) / 100 * HUE_API_STATE_BRI_MAX)
    return _clamp(scaled, HUE_API_STATE_BRI_MIN, HUE_API_STATE_BRI_MAX)


def bri_from_bridge(value: float, api: ApiVersion = ApiVersion.V1) -> int:
    """Scale bridge brightness to a hub level, never below 1."""
    if api == ApiVersion.V2:
        if 0.001 < value <= 1.49:
            return 1
        return _clamp(round_half_up(value), 1, 100)

    scaled = round_half_up(Decimal(str(value)) / HUE_API_STATE_BRI_MAX * 100)
    return _clamp(scaled, 1, 100)


# ------------------------------------------------------------------
# Color temperature
# ------------------------------------------------------------------


def ct_to_bridge(kelvin: float) -> int:
    """Convert Kelvin to mireds, clamped to the bridge's 153-500."""
    if kelvin is None or kelvin <= 0:
        raise ValueError(f"Invalid color temperature: {kelvin}")
    mireds = round_half_up(Decimal(MIREDS_PER_KELVIN) / Decimal(str(kelvin)))
    return _clamp(mireds, HUE_API_STATE_CT_MIN, HUE_API_STATE_CT_MAX)


def ct_from_bridge(mireds: float) -> int:
    """Convert mireds to Kelvin.

    A reading of 0 mireds means the bridge has no value; 0 is returned and
    must never be reported as a real temperature.
    """
    if not mireds:
        return 0
    return round_half_up(Decimal(MIREDS_PER_KELVIN) / Decimal(str(mireds)))


# ------------------------------------------------------------------
# Hue and saturation
# ------------------------------------------------------------------


def hue_to_bridge(hue: float, hi_rez: bool = False) -> int:
    """Scale hub hue (0-100, or 0-360 degrees with hi-rez) to 0-65535."""
    scale = 360 if hi_rez else 100
    scaled = round_half_up(Decimal(str(hue)) / scale * HUE_API_STATE_HUE_MAX)
    return _clamp(scaled, HUE_API_STATE_HUE_MIN, HUE_API_STATE_HUE_MAX)


def hue_from_bridge(value: float, hi_rez: bool = False) -> int:
    scale = 360 if hi_rez else 100
    scaled = round_half_up(Decimal(str(value)) / HUE_API_STATE_HUE_MAX * scale)
    return _clamp(scaled, 0, scale)


def sat_to_bridge(saturation: float) -> int:
    scaled = round_half_up(Decimal(str(saturation)) / 100 * HUE_API_STATE_SAT_MAX)
    return _clamp(scaled, HUE_API_STATE_SAT_MIN, HUE_API_STATE_SAT_MAX)


def sat_from_bridge(value: float) -> int:
    scaled = round_half_up(Decimal(str(value)) / HUE_API_STATE_SAT_MAX * 100)
    return _clamp(scaled, 0, 100)


# ------------------------------------------------------------------
# Transitions
# ------------------------------------------------------------------


def transition_to_deciseconds(seconds: float) -> int:
    """Convert a transition in seconds to the v1 ``transitiontime`` unit."""
    return max(0, round_half_up(Decimal(str(seconds)) * 10))


def transition_ms_to_deciseconds(milliseconds: float) -> int:
    return max(0, round_half_up(Decimal(str(milliseconds)) / 100))


# ------------------------------------------------------------------
# Color names
# ------------------------------------------------------------------

# (upper bound, inclusive?, name), checked in order
_TEMPERATURE_NAMES = (
    (2000, True, "Sodium"),
    (2100, True, "Starlight"),
    (2400, False, "Sunrise"),
    (2800, False, "Incandescent"),
    (3300, False, "Soft White"),
    (3500, False, "Warm White"),
    (4150, False, "Moonlight"),
    (5000, True, "Horizon"),
    (5500, False, "Daylight"),
    (6000, False, "Electronic"),
    (6500, True, "Skylight"),
    (20000, False, "Polar"),
)

# Upper bound (inclusive) of each 30-degree bucket
_HUE_NAMES = (
    (15, "Red"),
    (45, "Orange"),
    (75, "Yellow"),
    (105, "Chartreuse"),
    (135, "Green"),
    (165, "Spring"),
    (195, "Cyan"),
    (225, "Azure"),
    (255, "Blue"),
    (285, "Violet"),
    (315, "Magenta"),
    (345, "Rose"),
    (360, "Red"),
)


def color_name_for_temperature(kelvin: int) -> str | None:
    """Return the generic name for a color temperature, if it has one."""
    for bound, inclusive, name in _TEMPERATURE_NAMES:
        if kelvin < bound or (inclusive and kelvin == bound):
            return name
    return None


def color_name_for_hue(hue: int, saturation: int | None, hi_rez: bool = False) -> str | None:
    """Return the generic name for a hub hue value.

    ``hue`` is in hub units (percent, or degrees with hi-rez); a saturation
    below 1 is always "White".
    """
    if saturation is not None and saturation < 1:
        return "White"
    degrees = hue if hi_rez else int(Decimal(str(hue)) * Decimal("3.6"))
    for bound, name in _HUE_NAMES:
        if degrees <= bound:
            return name
    return None
