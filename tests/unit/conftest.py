"""Shared fixtures for unit tests.

This module provides reusable fixtures for testing the actuator bridge components.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from actuator_bridge.mqtt.commands import CommandInterpreter
from actuator_bridge.mqtt.discovery import DiscoveryHelper
from actuator_bridge.mqtt.dispatcher import EventDispatcher
from actuator_bridge.mqtt.state_updates import StateUpdateHelper
from actuator_bridge.state import StateStore
from actuator_bridge.structs import BridgeVariant, DeviceInfo, Entity, EntityKind
from actuator_bridge.topics import build_entities

PREFIX = "homeassistant"
MULTI_DEVICE_ID = "ab12cd"
LIGHT_DEVICE_ID = "6xalj9"


@pytest.fixture
def mock_transport() -> AsyncMock:
    """Mock MQTT transport for testing.

    Returns an AsyncMock whose subscribe/publish calls succeed.
    """
    transport: AsyncMock = AsyncMock()
    transport.subscribe = AsyncMock(return_value=True)
    transport.publish = AsyncMock(return_value=True)
    return transport


@pytest.fixture
def light_entities() -> tuple[Entity, ...]:
    return build_entities(PREFIX, LIGHT_DEVICE_ID, BridgeVariant.LIGHT)


@pytest.fixture
def multi_entities() -> tuple[Entity, ...]:
    return build_entities(PREFIX, MULTI_DEVICE_ID, BridgeVariant.MULTI)


@pytest.fixture
def entity_by_kind(light_entities: tuple[Entity, ...], multi_entities: tuple[Entity, ...]) -> dict[EntityKind, Entity]:
    """Every entity kind, keyed by kind."""
    return {entity.kind: entity for entity in (*light_entities, *multi_entities)}


@pytest.fixture
def store() -> StateStore:
    return StateStore()


@pytest.fixture
def light_device() -> DeviceInfo:
    return DeviceInfo(identity=LIGHT_DEVICE_ID)


@pytest.fixture
def multi_device() -> DeviceInfo:
    return DeviceInfo(identity=MULTI_DEVICE_ID, name="Workbench", manufacturer="Acme", model="relay-3")


@pytest.fixture
def all_interpreter(
    light_entities: tuple[Entity, ...],
    multi_entities: tuple[Entity, ...],
    store: StateStore,
) -> CommandInterpreter:
    """Interpreter routing every entity kind into one store."""
    return CommandInterpreter((*light_entities, *multi_entities), store)


@pytest.fixture
def multi_dispatcher(
    mock_transport: AsyncMock,
    multi_entities: tuple[Entity, ...],
    multi_device: DeviceInfo,
    store: StateStore,
) -> EventDispatcher:
    """Dispatcher wired for the switch/number/text bridge."""
    return EventDispatcher(
        mock_transport,
        CommandInterpreter(multi_entities, store),
        DiscoveryHelper(mock_transport, multi_device, multi_entities),
        StateUpdateHelper(mock_transport),
    )


@pytest.fixture
def light_dispatcher(
    mock_transport: AsyncMock,
    light_entities: tuple[Entity, ...],
    light_device: DeviceInfo,
    store: StateStore,
) -> EventDispatcher:
    """Dispatcher wired for the single light bridge."""
    return EventDispatcher(
        mock_transport,
        CommandInterpreter(light_entities, store),
        DiscoveryHelper(mock_transport, light_device, light_entities),
        StateUpdateHelper(mock_transport),
    )
