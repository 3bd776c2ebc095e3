"""Tests for the light entity's conversions between Home Assistant and hub units."""
from unittest.mock import MagicMock

import pytest

from custom_components.hue_bridge_lights.light import (
    HueBridgeLight,
    degrees_to_hue,
    hass_to_level,
    hue_to_degrees,
    level_to_hass,
)
from custom_components.hue_bridge_lights.state import LightSettings


def _entity(session):
    hub = MagicMock()
    hub.config_entry.entry_id = "entry1"
    return HueBridgeLight(MagicMock(), hub, session)


class TestConversions:
    @pytest.mark.parametrize(
        ("degrees", "hi_rez", "expected"),
        [(180, False, 50), (0, False, 0), (360, False, 100), (180, True, 180)],
    )
    def test_degrees_to_hue(self, degrees, hi_rez, expected):
        assert degrees_to_hue(degrees, hi_rez) == pytest.approx(expected)

    def test_hue_to_degrees(self):
        assert hue_to_degrees(50, False) == pytest.approx(180)
        assert hue_to_degrees(270, True) == 270

    def test_brightness(self):
        assert hass_to_level(255) == 100
        assert hass_to_level(1) == 1
        assert level_to_hass(40) == 102


class TestPresetColor:
    @pytest.mark.asyncio
    async def test_preset_color_takes_degrees(self, make_session, client):
        session = make_session()
        session.apply_bridge_state({"on": False})

        await _entity(session).async_preset_color(180, 100)
        assert session.snapshot.hue_preset == 50

        await session.turn_on()
        client.async_put_v1.assert_awaited_once_with(
            "/lights/1/state", {"hue": 32768, "sat": 254, "on": True}
        )

    @pytest.mark.asyncio
    async def test_preset_color_hi_rez(self, make_session, client):
        session = make_session(settings=LightSettings(transition_time=None, hi_rez_hue=True))
        session.apply_bridge_state({"on": False})

        await _entity(session).async_preset_color(180, 100)
        assert session.snapshot.hue_preset == 180

        await session.turn_on()
        client.async_put_v1.assert_awaited_once_with(
            "/lights/1/state", {"hue": 32768, "sat": 254, "on": True}
        )

    def test_hs_color_in_degrees(self, make_session):
        session = make_session()
        session.apply_bridge_state({"on": True, "colormode": "hs", "hue": 32768, "sat": 254})

        hue, saturation = _entity(session).hs_color
        assert hue == pytest.approx(180)
        assert saturation == 100
