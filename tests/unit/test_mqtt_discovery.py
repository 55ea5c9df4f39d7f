"""Unit tests for Home Assistant discovery configs."""

from __future__ import annotations

import dataclasses
import json
from unittest.mock import AsyncMock

import pytest

from actuator_bridge.exceptions import DiscoveryError
from actuator_bridge.mqtt.discovery import DiscoveryHelper
from actuator_bridge.structs import DeviceInfo, Entity, EntityKind


def _published_configs(transport: AsyncMock) -> dict[str, dict[str, object]]:
    """Map config topic -> decoded config document for every publish call."""
    return {call.args[0]: json.loads(call.args[1]) for call in transport.publish.await_args_list}


class TestBuildConfig:
    """Tests for discovery document contents."""

    def test_light_config(self, mock_transport: AsyncMock, light_device: DeviceInfo, light_entities: tuple[Entity, ...]):
        helper = DiscoveryHelper(mock_transport, light_device, light_entities)

        config = helper.build_config(light_entities[0])

        assert config["name"] == "REGEBELEEGHT"
        assert config["unique_id"] == "6xalj9_light"
        assert config["command_topic"] == "homeassistant/light/6xalj9_light/set"
        assert config["state_topic"] == "homeassistant/light/6xalj9_light/state"
        assert config["platform"] == "mqtt"
        assert config["schema"] == "json"
        assert config["brightness"] is True
        assert config["brightness_scale"] == 4095
        assert config["supported_color_modes"] == ["rgbw"]
        assert config["device"] == {
            "ids": ["6xalj9"],
            "name": "OngaroLight",
            "mf": "Ongaro",
            "mdl": "blingbling",
            "sw": "alpha",
            "sn": 124589,
        }

    def test_switch_config(self, mock_transport: AsyncMock, multi_device: DeviceInfo, multi_entities: tuple[Entity, ...]):
        helper = DiscoveryHelper(mock_transport, multi_device, multi_entities)

        config = helper.build_config(multi_entities[0])

        assert config == {
            "name": "Relay",
            "command_topic": "homeassistant/switch/ab12cdswitch/set",
            "state_topic": "homeassistant/switch/ab12cdswitch/state",
            "unique_id": "ab12cdswitch",
            "device": {
                "identifiers": ["ab12cd"],
                "name": "Workbench",
                "model": "relay-3",
                "manufacturer": "Acme",
            },
            "platform": "mqtt",
        }

    def test_number_config_has_range(
        self,
        mock_transport: AsyncMock,
        multi_device: DeviceInfo,
        entity_by_kind: dict[EntityKind, Entity],
    ):
        number = entity_by_kind[EntityKind.NUMBER]
        helper = DiscoveryHelper(mock_transport, multi_device, [number])

        config = helper.build_config(number)

        assert (config["min"], config["max"]) == (0, 100)

    def test_number_without_range_raises(
        self,
        mock_transport: AsyncMock,
        multi_device: DeviceInfo,
        entity_by_kind: dict[EntityKind, Entity],
    ):
        number = dataclasses.replace(entity_by_kind[EntityKind.NUMBER], min_value=None)
        helper = DiscoveryHelper(mock_transport, multi_device, [number])

        with pytest.raises(DiscoveryError):
            _ = helper.build_config(number)


class TestHomeassistantDiscovery:
    """Tests for announcing every entity."""

    @pytest.mark.asyncio
    async def test_one_retained_config_per_entity(
        self,
        mock_transport: AsyncMock,
        multi_device: DeviceInfo,
        multi_entities: tuple[Entity, ...],
    ):
        helper = DiscoveryHelper(mock_transport, multi_device, multi_entities)

        count = await helper.homeassistant_discovery()

        assert count == 3
        assert mock_transport.publish.await_count == 3
        for call in mock_transport.publish.await_args_list:
            assert call.kwargs["retain"] is True
        assert set(_published_configs(mock_transport)) == {entity.topics.config for entity in multi_entities}

    @pytest.mark.asyncio
    async def test_failed_build_skips_entity(
        self,
        mock_transport: AsyncMock,
        multi_device: DeviceInfo,
        multi_entities: tuple[Entity, ...],
    ):
        """A broken entity is skipped and the others are still announced."""
        # Arrange
        broken = dataclasses.replace(multi_entities[1], max_value=None)
        entities = (multi_entities[0], broken, multi_entities[2])
        helper = DiscoveryHelper(mock_transport, multi_device, entities)

        # Act
        count = await helper.homeassistant_discovery()

        # Assert
        assert count == 2
        assert broken.topics.config not in _published_configs(mock_transport)

    @pytest.mark.asyncio
    async def test_failed_publish_continues(
        self,
        mock_transport: AsyncMock,
        multi_device: DeviceInfo,
        multi_entities: tuple[Entity, ...],
    ):
        mock_transport.publish = AsyncMock(side_effect=[False, True, True])
        helper = DiscoveryHelper(mock_transport, multi_device, multi_entities)

        count = await helper.homeassistant_discovery()

        assert count == 2
        assert mock_transport.publish.await_count == 3
