"""Shared fixtures for the light session tests."""
from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from custom_components.hue_bridge_lights.const import ApiVersion
from custom_components.hue_bridge_lights.device import DeviceType, LightSession
from custom_components.hue_bridge_lights.state import LightSettings


class FakeLink:
    """Records what sessions ask of the bridge hub."""

    def __init__(self) -> None:
        self.push_active = False
        self.online_calls: list[bool] = []
        self.rediscovery_requests = 0
        self.group_updates: list[tuple[dict[str, Any], str]] = []
        self.bulb_updates: list[tuple[dict[str, Any], list[str], bool]] = []
        self.scenes_off: list[str] = []

    def is_push_channel_active(self) -> bool:
        return self.push_active

    def set_bridge_online(self, online: bool) -> None:
        self.online_calls.append(online)

    def request_rediscovery(self) -> None:
        self.rediscovery_requests += 1

    def update_groups_from_bulb(self, states: dict[str, Any], bulb_id: str) -> None:
        self.group_updates.append((states, bulb_id))

    def update_member_bulbs_from_group(
        self, states: dict[str, Any], member_ids: list[str], is_all_group: bool
    ) -> None:
        self.bulb_updates.append((states, member_ids, is_all_group))

    def mark_group_scenes_off(self, group_id: str) -> None:
        self.scenes_off.append(group_id)


@pytest.fixture
def link() -> FakeLink:
    return FakeLink()


@pytest.fixture
def client() -> MagicMock:
    client = MagicMock()
    client.async_put_v1 = AsyncMock(return_value=[{"success": {}}])
    client.async_put_v2 = AsyncMock(return_value={"data": [], "errors": []})
    return client


@pytest.fixture
def make_session(client, link):
    """Build a session; no default transition so commands stay minimal."""

    def _make(
        device_type: DeviceType = DeviceType.RGBW,
        device_id: str = "1",
        settings: LightSettings | None = None,
        api_version: ApiVersion = ApiVersion.V1,
        **kwargs: Any,
    ) -> LightSession:
        return LightSession(
            device_id,
            "Test light",
            device_type,
            client,
            link,
            settings or LightSettings(transition_time=None),
            api_version,
            **kwargs,
        )

    return _make
