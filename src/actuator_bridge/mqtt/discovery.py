"""Home Assistant MQTT discovery for the bridge entities.

One retained config document per entity is published on every connection.
Home Assistant de-duplicates retained configs, so re-announcing on reconnect
is harmless.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

from actuator_bridge.const import LIGHT_CHANNEL_MAX
from actuator_bridge.exceptions import DiscoveryError
from actuator_bridge.logging_abstraction import get_logger
from actuator_bridge.structs import DeviceInfo, Entity, EntityKind, TransportProtocol

__all__ = ["DiscoveryHelper"]

logger = get_logger(__name__)


class DiscoveryHelper:
    """Builds and publishes discovery config documents."""

    lp: str = "mqtt:hass:"

    def __init__(self, transport: TransportProtocol, device: DeviceInfo, entities: Sequence[Entity]) -> None:
        self.transport: TransportProtocol = transport
        self.device: DeviceInfo = device
        self.entities: tuple[Entity, ...] = tuple(entities)

    def _light_device_struct(self) -> dict[str, Any]:
        # abbreviated device registry keys
        struct: dict[str, Any] = {
            "ids": [self.device.identity],
            "name": self.device.name,
            "mf": self.device.manufacturer,
            "mdl": self.device.model,
            "sw": self.device.sw_version,
        }
        if self.device.serial_number is not None:
            struct["sn"] = self.device.serial_number
        return struct

    def _device_struct(self) -> dict[str, Any]:
        return {
            "identifiers": [self.device.identity],
            "name": self.device.name,
            "model": self.device.model,
            "manufacturer": self.device.manufacturer,
        }

    def build_config(self, entity: Entity) -> dict[str, Any]:
        """Return the discovery document for one entity.

        Raises:
            DiscoveryError: The entity is missing a constraint its platform needs

        """
        entity_registry_struct: dict[str, Any] = {
            "name": entity.name,
            "command_topic": entity.topics.command,
            "state_topic": entity.topics.state,
            "unique_id": entity.object_id,
        }
        if entity.kind is EntityKind.LIGHT:
            entity_registry_struct["platform"] = "mqtt"
            entity_registry_struct["device"] = self._light_device_struct()
            entity_registry_struct.update(
                {
                    "schema": "json",
                    "brightness": True,
                    "brightness_scale": LIGHT_CHANNEL_MAX,
                    "supported_color_modes": ["rgbw"],
                }
            )
            return entity_registry_struct

        entity_registry_struct["device"] = self._device_struct()
        entity_registry_struct["platform"] = "mqtt"
        if entity.kind is EntityKind.NUMBER:
            if entity.min_value is None or entity.max_value is None:
                raise DiscoveryError(entity.object_id, "number entity needs min and max")
            entity_registry_struct["min"] = entity.min_value
            entity_registry_struct["max"] = entity.max_value
        return entity_registry_struct

    async def publish_config(self, entity: Entity) -> bool:
        """Build and publish one entity's config; failures are logged, never raised."""
        lp = f"{self.lp}publish_config:"
        try:
            payload = json.dumps(self.build_config(entity), indent=2).encode()
        except Exception:
            logger.exception("%s Unable to build discovery config for %s, skipping...", lp, entity.object_id)
            return False

        published = await self.transport.publish(entity.topics.config, payload, retain=True)
        if not published:
            logger.warning("%s Publishing discovery config for %s failed", lp, entity.object_id)
            return False
        logger.info(
            "%s Registered %s entity: %s",
            lp,
            entity.kind,
            entity.name,
            extra={"topic": entity.topics.config},
        )
        return True

    async def homeassistant_discovery(self) -> int:
        """Announce every entity; returns how many configs were published."""
        lp = f"{self.lp}discovery:"
        logger.info("%s Starting device discovery for %d entities...", lp, len(self.entities))
        published = 0
        for entity in self.entities:
            if await self.publish_config(entity):
                published += 1
        logger.info("%s Published %d/%d discovery configs", lp, published, len(self.entities))
        return published
