"""Tests for color mode arbitration."""
import pytest

from custom_components.hue_bridge_lights.color_mode import (
    XY_COLOR_MODE,
    ColorMode,
    arbitrate_v1,
    arbitrate_v2,
    channel_is_suppressed,
)


class TestArbitrateV1:
    @pytest.mark.parametrize(
        ("colormode", "expected"),
        [("ct", ColorMode.CT), ("hs", ColorMode.RGB), ("xy", XY_COLOR_MODE)],
    )
    def test_known_modes(self, colormode, expected):
        assert arbitrate_v1({"colormode": colormode, "on": True}) == expected

    def test_missing_or_unknown(self):
        assert arbitrate_v1({"on": True}) is None
        assert arbitrate_v1({"colormode": "rainbow"}) is None


class TestArbitrateV2:
    def test_valid_mirek_is_color_temperature(self):
        assert arbitrate_v2({"color_temperature": {"mirek": 300, "mirek_valid": True}}) == ColorMode.CT

    def test_null_mirek_with_color_is_xy(self):
        data = {
            "color_temperature": {"mirek": None, "mirek_valid": False},
            "color": {"xy": {"x": 0.3, "y": 0.3}},
        }
        assert arbitrate_v2(data) == XY_COLOR_MODE

    def test_invalid_mirek_ignored(self):
        assert arbitrate_v2({"color_temperature": {"mirek": 300, "mirek_valid": False}}) is None

    def test_no_color_keys(self):
        assert arbitrate_v2({"on": {"on": True}}) is None


class TestSuppression:
    """Only bridge-sourced values on the inactive channel are dropped."""

    def test_local_values_always_pass(self):
        assert not channel_is_suppressed(ColorMode.CT, ColorMode.RGB, from_bridge=False)
        assert not channel_is_suppressed(ColorMode.RGB, ColorMode.CT, from_bridge=False)

    def test_bridge_value_on_other_channel(self):
        assert channel_is_suppressed(ColorMode.CT, ColorMode.RGB, from_bridge=True)
        assert channel_is_suppressed(ColorMode.RGB, ColorMode.CT, from_bridge=True)

    def test_bridge_value_on_active_channel(self):
        assert not channel_is_suppressed(ColorMode.CT, ColorMode.CT, from_bridge=True)
        assert not channel_is_suppressed(ColorMode.RGB, ColorMode.RGB, from_bridge=True)

    def test_unknown_mode_passes(self):
        assert not channel_is_suppressed(ColorMode.CT, None, from_bridge=True)
