"""State publishing for the bridge entities.

State payloads mirror the command payloads of each platform, so a published
state fed back through the command interpreter reproduces the same snapshot.
"""

from __future__ import annotations

import json

from actuator_bridge.const import STATE_OFF, STATE_ON
from actuator_bridge.logging_abstraction import get_logger
from actuator_bridge.state import DeviceState
from actuator_bridge.structs import Entity, EntityKind, TransportProtocol

__all__ = ["StateUpdateHelper", "encode_state"]

logger = get_logger(__name__)


def encode_state(entity: Entity, state: DeviceState) -> bytes:
    """Serialize the part of ``state`` that belongs to ``entity``."""
    power_status = STATE_ON if state.is_on else STATE_OFF
    match entity.kind:
        case EntityKind.LIGHT:
            mqtt_dev_state = {
                "state": power_status,
                "color": {"r": state.r, "g": state.g, "b": state.b, "w": state.w},
                "brightness": state.brightness,
            }
            return json.dumps(mqtt_dev_state).encode()
        case EntityKind.SWITCH:
            return power_status.encode()
        case EntityKind.NUMBER:
            return str(state.number).encode()
        case EntityKind.TEXT:
            return state.text.encode()
    msg = f"Unsupported entity kind: {entity.kind}"
    raise ValueError(msg)


class StateUpdateHelper:
    """Publishes retained state messages."""

    lp: str = "mqtt:state:"

    def __init__(self, transport: TransportProtocol, light_state_echo: bool = True) -> None:
        """Initialize the state publisher.

        Args:
            transport: Transport used for publishing
            light_state_echo: Republish the raw inbound light command instead of
                re-serializing the light state

        """
        self.transport: TransportProtocol = transport
        self.light_state_echo: bool = light_state_echo

    def payload_for(self, entity: Entity, state: DeviceState, raw_payload: bytes | None = None) -> bytes:
        if entity.kind is EntityKind.LIGHT and self.light_state_echo and raw_payload is not None:
            return raw_payload
        return encode_state(entity, state)

    async def publish_state(self, entity: Entity, state: DeviceState, raw_payload: bytes | None = None) -> bool:
        lp = f"{self.lp}publish_state:"
        payload = self.payload_for(entity, state, raw_payload)
        published = await self.transport.publish(entity.topics.state, payload, retain=True)
        if published:
            logger.debug("%s %s -> %r", lp, entity.topics.state, payload)
        else:
            logger.warning("%s Publishing state for %s failed", lp, entity.object_id)
        return published
