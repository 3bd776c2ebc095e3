"""Tests for light and group sessions, from command to acknowledged events."""
import asyncio
from unittest.mock import MagicMock

import pytest

from custom_components.hue_bridge_lights.bridge import (
    BridgeApplicationError,
    BridgeTransportError,
)
from custom_components.hue_bridge_lights.const import ApiVersion
from custom_components.hue_bridge_lights.device import (
    DeviceType,
    device_type_from_bridge,
)
from custom_components.hue_bridge_lights.events import Attribute
from custom_components.hue_bridge_lights.state import LightSettings


def _pairs(events):
    return [(event.attribute, event.value) for event in events]


class TestDeviceTypes:
    @pytest.mark.parametrize(
        ("bridge_type", "expected"),
        [
            ("Extended color light", DeviceType.RGBW),
            ("Color light", DeviceType.RGB),
            ("Color temperature light", DeviceType.CT),
            ("Dimmable light", DeviceType.DIMMABLE),
            ("On/Off plug-in unit", DeviceType.PLUG),
            ("ZLLSwitch", None),
            (None, None),
        ],
    )
    def test_from_bridge(self, bridge_type, expected):
        assert device_type_from_bridge(bridge_type) == expected

    def test_command_paths(self, make_session):
        assert make_session().command_path == "/lights/1/state"
        assert make_session(DeviceType.GROUP, "4").command_path == "/groups/4/action"
        v2_light = make_session(api_version=ApiVersion.V2, v2_id="abc")
        assert v2_light.command_path == "/resource/light/abc"
        v2_group = make_session(DeviceType.GROUP, api_version=ApiVersion.V2, v2_id="def")
        assert v2_group.command_path == "/resource/grouped_light/def"

    def test_v2_without_resource_id_uses_v1(self, make_session):
        session = make_session(api_version=ApiVersion.V2)
        assert session.command_api == ApiVersion.V1


class TestSwitchAndLevel:
    @pytest.mark.asyncio
    async def test_turn_on_sends_pending_presets(self, make_session, client):
        """A level preset made while off goes out with the next turn on."""
        session = make_session()
        session.apply_bridge_state({"on": False})

        assert session.preset_level(40) is None
        client.async_put_v1.assert_not_called()
        assert session.snapshot.level_preset == 40

        events = await session.turn_on()

        client.async_put_v1.assert_awaited_once_with("/lights/1/state", {"bri": 102, "on": True})
        assert _pairs(events) == [(Attribute.LEVEL, 40), (Attribute.SWITCH, "on")]
        assert not session.prestage.pending

    @pytest.mark.asyncio
    async def test_preset_while_on_applies_now(self, make_session, client):
        session = make_session()
        session.apply_bridge_state({"on": True, "bri": 254})

        await session.preset_level(40)

        client.async_put_v1.assert_awaited_once_with("/lights/1/state", {"on": True, "bri": 102})
        assert session.snapshot.level == 40
        assert session.snapshot.level_preset == 40
        assert not session.prestage.pending

    @pytest.mark.asyncio
    async def test_turn_on_with_transition(self, make_session, client):
        await make_session().turn_on(1000)
        client.async_put_v1.assert_awaited_once_with(
            "/lights/1/state", {"on": True, "transitiontime": 10}
        )

    @pytest.mark.asyncio
    async def test_default_transition_setting(self, make_session, client):
        session = make_session(settings=LightSettings())
        await session.set_level(40)
        client.async_put_v1.assert_awaited_once_with(
            "/lights/1/state", {"on": True, "bri": 102, "transitiontime": 4}
        )

    @pytest.mark.asyncio
    async def test_level_zero_turns_off(self, make_session, client):
        events = await make_session().set_level(0)
        client.async_put_v1.assert_awaited_once_with("/lights/1/state", {"on": False})
        assert _pairs(events) == [(Attribute.SWITCH, "off")]

    @pytest.mark.asyncio
    async def test_level_clamped(self, make_session, client):
        await make_session().set_level(150)
        client.async_put_v1.assert_awaited_once_with("/lights/1/state", {"on": True, "bri": 254})

    def test_plug_has_no_level(self, make_session, client):
        assert make_session(DeviceType.PLUG).set_level(50) is None
        client.async_put_v1.assert_not_called()

    @pytest.mark.asyncio
    async def test_level_change_creates_no_events(self, make_session, client):
        session = make_session(settings=LightSettings(transition_time=None, level_change_rate="fast"))

        assert await session.start_level_change("up") == []
        client.async_put_v1.assert_awaited_with("/lights/1/state", {"bri": 254, "transitiontime": 30})

        assert await session.start_level_change("down") == []
        client.async_put_v1.assert_awaited_with("/lights/1/state", {"bri": 1, "transitiontime": 30})

        assert await session.stop_level_change() == []
        client.async_put_v1.assert_awaited_with("/lights/1/state", {"bri_inc": 0})
        assert session.snapshot.level is None

    @pytest.mark.asyncio
    async def test_level_change_rate_defaults_to_fast(self, make_session, client):
        session = make_session(settings=LightSettings())
        await session.start_level_change("up")
        client.async_put_v1.assert_awaited_with("/lights/1/state", {"bri": 254, "transitiontime": 30})

    @pytest.mark.asyncio
    async def test_unknown_level_change_rate_falls_back_to_fast(self, make_session, client):
        session = make_session(settings=LightSettings(transition_time=None, level_change_rate="warp"))
        await session.start_level_change("down")
        client.async_put_v1.assert_awaited_with("/lights/1/state", {"bri": 1, "transitiontime": 30})

    @pytest.mark.asyncio
    async def test_v2_level(self, make_session, client):
        session = make_session(api_version=ApiVersion.V2, v2_id="abc")

        events = await session.set_level(40)

        client.async_put_v2.assert_awaited_once_with(
            "/resource/light/abc", {"on": {"on": True}, "dimming": {"brightness": 40.0}}
        )
        client.async_put_v1.assert_not_called()
        assert _pairs(events) == [(Attribute.SWITCH, "on"), (Attribute.LEVEL, 40)]

    @pytest.mark.asyncio
    async def test_v2_level_change(self, make_session, client):
        session = make_session(api_version=ApiVersion.V2, v2_id="abc")
        await session.start_level_change("down")
        client.async_put_v2.assert_awaited_once_with(
            "/resource/light/abc",
            {"dimming_delta": {"action": "down", "brightness_delta": 100}},
        )


class TestColor:
    @pytest.mark.asyncio
    async def test_color_temperature_round_trip(self, make_session, client):
        session = make_session()

        events = await session.set_color_temperature(2700)

        client.async_put_v1.assert_awaited_once_with("/lights/1/state", {"on": True, "ct": 370})
        assert (Attribute.COLOR_TEMPERATURE, 2703) in _pairs(events)
        assert (Attribute.COLOR_MODE, "CT") in _pairs(events)

        # the same value pushed back by the bridge changes nothing
        assert session.apply_push_update({"color_temperature": {"mirek": 370}}) == []
        assert abs(session.snapshot.color_temperature - 2700) <= 5

    def test_invalid_color_temperature_ignored(self, make_session, client):
        session = make_session()
        assert session.set_color_temperature(0) is None
        assert session.preset_color_temperature(-10) is None
        client.async_put_v1.assert_not_called()

    @pytest.mark.asyncio
    async def test_set_color(self, make_session, client):
        session = make_session()

        events = await session.set_color({"hue": 50, "saturation": 100, "level": 40, "rate": 2})

        client.async_put_v1.assert_awaited_once_with(
            "/lights/1/state",
            {"on": True, "hue": 32768, "sat": 254, "bri": 102, "transitiontime": 20},
        )
        assert (Attribute.COLOR_MODE, "RGB") in _pairs(events)
        assert session.snapshot.color_name == "Cyan"

    @pytest.mark.parametrize(
        "color",
        [{"hue": 50}, {"hue": float("nan"), "saturation": 50}, {"hue": "NaN", "saturation": 50}],
    )
    def test_set_color_needs_hue_and_saturation(self, make_session, client, color):
        assert make_session().set_color(color) is None
        client.async_put_v1.assert_not_called()

    def test_color_not_sent_over_v2(self, make_session, client):
        session = make_session(api_version=ApiVersion.V2, v2_id="abc")
        assert session.set_color({"hue": 50, "saturation": 100}) is None
        assert session.set_effect("Color Loop") is None
        client.async_put_v2.assert_not_called()

    @pytest.mark.asyncio
    async def test_preset_color_from_json(self, make_session, client):
        session = make_session()
        session.apply_bridge_state({"on": False})
        session.preset_color_temperature(3000)

        assert session.preset_color('{"hue": 10, "saturation": 50}') is None
        assert session.prestage.hue and session.prestage.saturation
        assert not session.prestage.color_temperature

        await session.turn_on()
        client.async_put_v1.assert_awaited_once_with(
            "/lights/1/state", {"hue": 6554, "sat": 127, "on": True}
        )

    @pytest.mark.asyncio
    async def test_hue_and_saturation_alone(self, make_session, client):
        session = make_session()
        await session.set_hue(50)
        client.async_put_v1.assert_awaited_with("/lights/1/state", {"on": True, "hue": 32768})
        await session.set_saturation(50)
        client.async_put_v1.assert_awaited_with("/lights/1/state", {"on": True, "sat": 127})

    def test_ct_bulb_has_no_color(self, make_session, client):
        assert make_session(DeviceType.CT).set_color({"hue": 1, "saturation": 1}) is None
        client.async_put_v1.assert_not_called()


class TestEffectsAndFlash:
    @pytest.mark.asyncio
    async def test_effect_by_name_and_cycling(self, make_session, client):
        session = make_session()

        events = await session.set_effect("Color Loop")
        client.async_put_v1.assert_awaited_with("/lights/1/state", {"effect": "colorloop", "on": True})
        assert (Attribute.EFFECT, "colorloop") in _pairs(events)

        await session.set_next_effect()
        client.async_put_v1.assert_awaited_with("/lights/1/state", {"effect": "none", "on": True})
        assert session.snapshot.effect == "none"

        await session.set_previous_effect()
        assert session.snapshot.effect == "colorloop"

    def test_unknown_effect(self, make_session, client):
        assert make_session().set_effect("strobe") is None
        client.async_put_v1.assert_not_called()

    @pytest.mark.asyncio
    async def test_flash_commands_create_no_events(self, make_session, client):
        session = make_session()
        assert await session.flash() == []
        client.async_put_v1.assert_awaited_with("/lights/1/state", {"alert": "lselect"})
        assert await session.flash_once() == []
        client.async_put_v1.assert_awaited_with("/lights/1/state", {"alert": "select"})
        assert await session.flash_off() == []
        client.async_put_v1.assert_awaited_with("/lights/1/state", {"alert": "none"})

    @pytest.mark.asyncio
    async def test_v2_flash(self, make_session, client):
        session = make_session(api_version=ApiVersion.V2, v2_id="abc")
        await session.flash_once()
        client.async_put_v2.assert_awaited_with("/resource/light/abc", {"identify": {"action": "identify"}})
        await session.flash_off()
        client.async_put_v2.assert_awaited_with("/resource/light/abc", {"signaling": {"signal": "no_signal"}})

    def test_plug_cannot_flash(self, make_session):
        assert make_session(DeviceType.PLUG).flash() is None


class TestAcknowledgements:
    @pytest.mark.asyncio
    async def test_success_marks_bridge_online(self, make_session, link):
        await make_session().turn_on()
        assert link.online_calls == [True]

    @pytest.mark.asyncio
    async def test_transport_error(self, make_session, client, link):
        """An unreachable bridge goes offline; the snapshot is untouched."""
        client.async_put_v1.side_effect = BridgeTransportError("unreachable")
        session = make_session()
        session.apply_bridge_state({"on": False})

        assert await session.turn_on() == []

        assert link.online_calls == [False]
        assert link.rediscovery_requests == 1
        assert session.snapshot.switch == "off"

    @pytest.mark.asyncio
    async def test_application_error(self, make_session, client, link):
        client.async_put_v1.side_effect = BridgeApplicationError(
            "/lights/1/state/bri: invalid value", [{"type": 7}]
        )
        session = make_session()

        assert await session.set_level(40) == []

        assert link.online_calls == []
        assert link.rediscovery_requests == 0
        assert session.snapshot.level is None

    @pytest.mark.asyncio
    async def test_stale_acknowledgement_ignored(self, make_session, client):
        release_first = asyncio.Event()

        async def put(path, body):
            if body["bri"] == 102:
                await release_first.wait()
            return [{"success": {}}]

        client.async_put_v1.side_effect = put
        session = make_session()

        first = session.set_level(40)
        second = session.set_level(80)
        assert _pairs(await second) == [(Attribute.SWITCH, "on"), (Attribute.LEVEL, 80)]

        release_first.set()
        assert await first == []
        assert session.snapshot.level == 80

    @pytest.mark.asyncio
    async def test_older_acknowledgement_keeps_keys_not_superseded(self, make_session, client):
        """A later effect command only supersedes the keys it carried."""
        release_level = asyncio.Event()

        async def put(path, body):
            if body.get("bri") == 102:
                await release_level.wait()
            return [{"success": {}}]

        client.async_put_v1.side_effect = put
        session = make_session()
        session.apply_bridge_state({"on": True, "bri": 254})

        level = session.set_level(40)
        assert (Attribute.EFFECT, "colorloop") in _pairs(await session.set_effect("Color Loop"))

        release_level.set()
        assert (Attribute.LEVEL, 40) in _pairs(await level)
        assert session.snapshot.level == 40
        assert session.snapshot.effect == "colorloop"

    @pytest.mark.asyncio
    async def test_commands_without_events_supersede_nothing(self, make_session, client):
        release_level = asyncio.Event()

        async def put(path, body):
            if body.get("bri") == 102:
                await release_level.wait()
            return [{"success": {}}]

        client.async_put_v1.side_effect = put
        session = make_session()
        session.apply_bridge_state({"on": True, "bri": 254})

        level = session.set_level(40)
        assert await session.flash() == []
        assert await session.start_level_change("up") == []

        release_level.set()
        assert (Attribute.LEVEL, 40) in _pairs(await level)
        assert session.snapshot.level == 40

    @pytest.mark.asyncio
    async def test_listeners(self, make_session):
        session = make_session()
        listener = MagicMock()
        remove = session.add_listener(listener)

        events = await session.set_level(40)
        assert [call.args[0] for call in listener.call_args_list] == events

        remove()
        listener.reset_mock()
        await session.set_level(50)
        listener.assert_not_called()


class TestRelatedDevices:
    @pytest.mark.asyncio
    async def test_bulb_updates_groups(self, make_session, link):
        session = make_session(settings=LightSettings(transition_time=None, update_groups=True))
        await session.set_color_temperature(2700, level=40)
        assert link.group_updates == [({"on": True, "bri": 102}, "1")]

    @pytest.mark.asyncio
    async def test_group_updates_member_bulbs(self, make_session, link):
        group = make_session(
            DeviceType.GROUP,
            settings=LightSettings(transition_time=None, update_bulbs=True),
            member_ids=["1", "2"],
        )
        await group.turn_on()
        assert link.bulb_updates == [({"on": True}, ["1", "2"], False)]

    @pytest.mark.asyncio
    async def test_all_lights_group(self, make_session, link):
        group = make_session(
            DeviceType.GROUP, "0", settings=LightSettings(transition_time=None, update_bulbs=True)
        )
        assert group.is_all_group
        await group.turn_off()
        assert link.bulb_updates == [({"on": False}, [], True)]

    @pytest.mark.asyncio
    async def test_nothing_propagated_by_default(self, make_session, link):
        await make_session().set_level(40)
        assert link.group_updates == []

    @pytest.mark.asyncio
    async def test_no_propagation_without_events(self, make_session, link):
        session = make_session(settings=LightSettings(transition_time=None, update_groups=True))
        await session.start_level_change("up")
        assert link.group_updates == []

    @pytest.mark.asyncio
    async def test_group_off_marks_scenes_off_once(self, make_session, client, link):
        group = make_session(
            DeviceType.GROUP, settings=LightSettings(transition_time=None, update_scenes=True)
        )
        group.apply_bridge_state({"any_on": True})

        events = await group.turn_off()

        client.async_put_v1.assert_awaited_once_with("/groups/1/action", {"on": False})
        assert _pairs(events) == [(Attribute.SWITCH, "off")]
        assert link.scenes_off == ["1"]

        group.apply_related_update({"any_on": False})
        assert link.scenes_off == ["1"]

    def test_group_any_on_echo_switches_off(self, make_session, link):
        group = make_session(
            DeviceType.GROUP, settings=LightSettings(transition_time=None, update_scenes=True)
        )
        group.apply_bridge_state({"any_on": True})

        events = group.apply_related_update({"any_on": False})

        assert _pairs(events) == [(Attribute.SWITCH, "off")]
        assert link.scenes_off == ["1"]

    def test_default_settings(self):
        settings = LightSettings.from_options({})
        assert settings.level_change_rate == "fast"
        assert settings.update_bulbs
        assert settings.update_scenes
        assert not settings.update_groups
        assert settings == LightSettings()

    @pytest.mark.asyncio
    async def test_group_propagates_with_default_settings(self, make_session, link):
        group = make_session(DeviceType.GROUP, settings=LightSettings(), member_ids=["1", "2"])
        group.apply_bridge_state({"any_on": True})

        group.apply_related_update({"any_on": False})
        assert link.scenes_off == ["1"]

        await group.turn_on()
        assert link.bulb_updates[-1][1:] == (["1", "2"], False)
        assert link.bulb_updates[-1][0]["on"] is True

    def test_seeded_group_defaults(self, make_session):
        group = make_session(DeviceType.GROUP)
        group.seed_default_attributes()
        assert group.snapshot.switch == "off"
        assert group.snapshot.level == 100
        assert group.snapshot.color_temperature == 2703
