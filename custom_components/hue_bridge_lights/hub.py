"""Bridge-wide bookkeeping shared by all light and group sessions."""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.helpers.dispatcher import async_dispatcher_send

from .bridge import BridgeTransportError, HueBridgeClient
from .const import (
    SIGNAL_BRIDGE_STATUS,
    SIGNAL_GROUP_SCENES_OFF,
    SIGNAL_REDISCOVERY,
    ApiVersion,
)
from .device import (
    ALL_LIGHTS_GROUP_ID,
    DeviceType,
    LightSession,
    device_type_from_bridge,
)
from .state import LightSettings

_LOGGER = logging.getLogger(__name__)

EVENT_STREAM_RECONNECT_DELAY = 30

ALL_LIGHTS_GROUP_NAME = "All Hue Lights"

# v2 resource types whose updates we route to sessions
_ROUTED_RESOURCE_TYPES = {"light", "grouped_light", "zigbee_connectivity"}


class HueBridgeHub:
    """Owns the sessions of one bridge and the state they share.

    The online flag is advisory and last-write-wins: every session's
    response handler writes it, in whatever order acknowledgements arrive.
    """

    def __init__(
        self,
        hass: HomeAssistant,
        config_entry: ConfigEntry,
        client: HueBridgeClient,
        settings: LightSettings,
    ) -> None:
        """Initialize the hub."""
        self.hass = hass
        self.config_entry = config_entry
        self.client = client
        self.settings = settings
        self.api_version = client.connection.api_version

        self.lights: dict[str, LightSession] = {}
        self.groups: dict[str, LightSession] = {}
        # v2 resource id (light, grouped_light or owning device) -> session
        self._by_v2_id: dict[str, LightSession] = {}

        self._online = True
        self._push_active = False

    @property
    def online(self) -> bool:
        return self._online

    @property
    def sessions(self) -> list[LightSession]:
        return [*self.lights.values(), *self.groups.values()]

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    async def async_setup(self) -> None:
        """Create sessions for every light and group the bridge knows."""
        _LOGGER.info("Setting up bridge hub for %s", self.client.connection.host)
        lights, groups = await self.async_poll()

        for light_id, light in lights.items():
            device_type = device_type_from_bridge(light.get("type"))
            if device_type is None:
                _LOGGER.debug("Skipping light %s of unsupported type %s", light_id, light.get("type"))
                continue
            self.lights[light_id] = self._create_session(
                light_id, light.get("name", f"Light {light_id}"), device_type
            )

        for group_id, group in groups.items():
            session = self._create_session(
                group_id,
                group.get("name", f"Group {group_id}"),
                DeviceType.GROUP,
                member_ids=list(group.get("lights", [])),
            )
            session.seed_default_attributes()
            self.groups[group_id] = session

        if self.api_version == ApiVersion.V2:
            await self._async_map_v2_resources()

        _LOGGER.info(
            "Created %d light and %d group sessions", len(self.lights), len(self.groups)
        )
        self.apply_poll(lights, groups)

    async def async_poll(
        self,
    ) -> tuple[dict[str, dict[str, Any]], dict[str, dict[str, Any]]]:
        """Read all lights and groups, including the all-lights group 0."""
        lights = await self.client.async_get_lights()
        groups = dict(await self.client.async_get_groups())
        all_lights = await self.client.async_get_group(ALL_LIGHTS_GROUP_ID)
        groups[ALL_LIGHTS_GROUP_ID] = {**all_lights, "name": ALL_LIGHTS_GROUP_NAME}
        return lights, groups

    async def _async_map_v2_resources(self) -> None:
        """Link sessions to their v2 resource ids through ``id_v1``."""
        for resource_type in ("light", "grouped_light"):
            for resource in await self.client.async_get_resources(resource_type):
                session = _session_for_id_v1(resource.get("id_v1"), self.lights, self.groups)
                if session is None:
                    continue
                session.v2_id = resource["id"]
                self._by_v2_id[resource["id"]] = session
                owner = resource.get("owner") or {}
                if resource_type == "light" and owner.get("rid"):
                    self._by_v2_id[owner["rid"]] = session

    def _create_session(
        self,
        device_id: str,
        name: str,
        device_type: DeviceType,
        member_ids: list[str] | None = None,
    ) -> LightSession:
        _LOGGER.info("Created %s session: %s (ID: %s)", device_type.value, name, device_id)
        return LightSession(
            device_id,
            name,
            device_type,
            self.client,
            self,
            self.settings,
            self.api_version,
            member_ids=member_ids,
            create_task=self.hass.async_create_task,
        )

    # ------------------------------------------------------------------
    # Inbound state
    # ------------------------------------------------------------------

    def apply_poll(
        self, lights: dict[str, dict[str, Any]], groups: dict[str, dict[str, Any]]
    ) -> None:
        """Route a v1 poll of ``/lights`` and ``/groups`` to the sessions."""
        for light_id, light in lights.items():
            session = self.lights.get(light_id)
            if session is not None and "state" in light:
                session.apply_bridge_state(light["state"])
        for group_id, group in groups.items():
            session = self.groups.get(group_id)
            if session is None:
                continue
            if "action" in group:
                session.apply_bridge_state(group["action"])
            if "state" in group:
                session.apply_bridge_state(group["state"])

    def handle_push(self, resources: list[dict[str, Any]]) -> None:
        """Route the resources of one event stream update to the sessions."""
        for resource in resources:
            if not isinstance(resource, dict) or resource.get("type") not in _ROUTED_RESOURCE_TYPES:
                continue
            session = self._by_v2_id.get(resource.get("id"))
            if session is None:
                owner = resource.get("owner") or {}
                session = self._by_v2_id.get(owner.get("rid"))
            if session is None:
                session = _session_for_id_v1(resource.get("id_v1"), self.lights, self.groups)
            if session is None:
                _LOGGER.debug("No session for pushed resource %s", resource.get("id"))
                continue
            session.apply_push_update(resource)

    async def async_run_event_stream(self) -> None:
        """Keep the event stream open, reconnecting after a fixed delay."""
        while True:
            try:
                await self.client.async_listen_event_stream(
                    self.handle_push, on_connect=lambda: self._set_push_active(True)
                )
                _LOGGER.debug("Event stream closed by bridge")
            except BridgeTransportError as err:
                _LOGGER.warning("Event stream disconnected: %s", err)
            except Exception:
                _LOGGER.exception("Unexpected error in event stream")
            finally:
                self._set_push_active(False)
            await asyncio.sleep(EVENT_STREAM_RECONNECT_DELAY)

    def _set_push_active(self, active: bool) -> None:
        self._push_active = active

    # ------------------------------------------------------------------
    # Bridge link
    # ------------------------------------------------------------------

    def is_push_channel_active(self) -> bool:
        return self._push_active

    def set_bridge_online(self, online: bool) -> None:
        if online == self._online:
            return
        self._online = online
        _LOGGER.info("Bridge %s is %s", self.client.connection.host, "online" if online else "offline")
        async_dispatcher_send(
            self.hass, SIGNAL_BRIDGE_STATUS.format(self.config_entry.entry_id), online
        )

    def request_rediscovery(self) -> None:
        _LOGGER.warning("Bridge %s unreachable, rediscovery requested", self.client.connection.host)
        async_dispatcher_send(self.hass, SIGNAL_REDISCOVERY.format(self.config_entry.entry_id))

    def update_groups_from_bulb(self, states: dict[str, Any], bulb_id: str) -> None:
        """Update every group containing ``bulb_id`` after the bulb changed.

        A group is on when any member is, as the bridge reports it.
        """
        for group in self.groups.values():
            if bulb_id not in group.member_ids and not group.is_all_group:
                continue
            any_on = any(
                self.lights[member].snapshot.is_on
                for member in self._member_ids(group)
                if member in self.lights
            )
            _LOGGER.debug("Bulb %s found in group %s, updating", bulb_id, group.name)
            group.apply_related_update({**states, "on": any_on})

    def update_member_bulbs_from_group(
        self, states: dict[str, Any], member_ids: list[str], is_all_group: bool
    ) -> None:
        """Update member bulbs after a group changed."""
        if is_all_group:
            targets = [
                *self.lights.values(),
                *(group for group in self.groups.values() if not group.is_all_group),
            ]
        else:
            targets = [self.lights[member] for member in member_ids if member in self.lights]
        for session in targets:
            session.apply_related_update(dict(states))

    def mark_group_scenes_off(self, group_id: str) -> None:
        _LOGGER.debug("Marking scenes of group %s off", group_id)
        async_dispatcher_send(
            self.hass, SIGNAL_GROUP_SCENES_OFF.format(self.config_entry.entry_id), group_id
        )

    def _member_ids(self, group: LightSession) -> list[str]:
        if group.is_all_group:
            return list(self.lights)
        return group.member_ids


def _session_for_id_v1(
    id_v1: str | None,
    lights: dict[str, LightSession],
    groups: dict[str, LightSession],
) -> LightSession | None:
    """Find the session for a v1 path such as ``/lights/3`` or ``/groups/1``."""
    if not id_v1:
        return None
    kind, _, device_id = id_v1.strip("/").partition("/")
    if kind == "lights":
        return lights.get(device_id)
    if kind == "groups":
        return groups.get(device_id)
    return None
