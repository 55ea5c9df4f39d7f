"""MQTT side of the actuator bridge.

- client.py: aiomqtt transport with the connection lifecycle
- events.py: channel events delivered by the transport
- dispatcher.py: control loop applying events to the bridge
- commands.py: inbound command decoding
- discovery.py: Home Assistant discovery configs
- state_updates.py: retained state publishing
"""

from .client import MQTTClient
from .commands import CommandInterpreter, CommandResult
from .discovery import DiscoveryHelper
from .dispatcher import EventDispatcher
from .state_updates import StateUpdateHelper

__all__ = [
    "CommandInterpreter",
    "CommandResult",
    "DiscoveryHelper",
    "EventDispatcher",
    "MQTTClient",
    "StateUpdateHelper",
]
