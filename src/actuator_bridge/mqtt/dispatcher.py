"""Event dispatcher: the control loop between the transport and the device state.

States::

    DISCONNECTED --connected--> CONNECTED --disconnected--> DISCONNECTED

On every ``Connected`` event each command topic is subscribed once and the
discovery configs are announced. Messages are routed to the command
interpreter and the resulting state is republished. Acks are logged, errors
are logged with their diagnostic chain; no event ever stops the dispatcher.
"""

from __future__ import annotations

import os

from actuator_bridge.correlation import correlation_context
from actuator_bridge.instrumentation import timed_async
from actuator_bridge.logging_abstraction import get_logger
from actuator_bridge.mqtt.commands import CommandInterpreter
from actuator_bridge.mqtt.discovery import DiscoveryHelper
from actuator_bridge.mqtt.events import (
    BridgeEvent,
    Connected,
    Disconnected,
    MessageReceived,
    Published,
    Subscribed,
    TransportError,
)
from actuator_bridge.mqtt.state_updates import StateUpdateHelper
from actuator_bridge.structs import LinkState, TransportProtocol

__all__ = ["EventDispatcher"]

logger = get_logger(__name__)


def _log_error_if_nonzero(lp: str, message: str, error_code: int) -> None:
    if error_code != 0:
        logger.error("%s Last error %s: 0x%x", lp, message, error_code)


class EventDispatcher:
    """Applies channel events to the bridge, one event at a time."""

    lp: str = "dispatcher:"

    def __init__(
        self,
        transport: TransportProtocol,
        interpreter: CommandInterpreter,
        discovery: DiscoveryHelper,
        state_updates: StateUpdateHelper,
    ) -> None:
        self.transport: TransportProtocol = transport
        self.interpreter: CommandInterpreter = interpreter
        self.discovery: DiscoveryHelper = discovery
        self.state_updates: StateUpdateHelper = state_updates
        self.link_state: LinkState = LinkState.DISCONNECTED

    async def dispatch(self, event: BridgeEvent) -> None:
        """Handle one event inside its own correlation scope; never raises."""
        lp = f"{self.lp}dispatch:"
        with correlation_context():
            try:
                match event:
                    case Connected():
                        await self._on_connected()
                    case Disconnected(reason=reason):
                        self._on_disconnected(reason)
                    case MessageReceived():
                        await self._on_message(event)
                    case Subscribed(msg_id=msg_id):
                        logger.info("%s SUBSCRIBED, msg_id=%s", lp, msg_id)
                    case Published(msg_id=msg_id):
                        logger.info("%s PUBLISHED, msg_id=%s", lp, msg_id)
                    case TransportError():
                        self._on_error(event)
                    case _:
                        logger.info("%s Other event: %r", lp, event)
            except Exception:
                logger.exception("%s Unhandled error while dispatching %s", lp, type(event).__name__)

    async def _on_connected(self) -> None:
        lp = f"{self.lp}connected:"
        self.link_state = LinkState.CONNECTED
        logger.info("%s CONNECTED", lp)
        for topic in self.interpreter.command_topics:
            _ = await self.transport.subscribe(topic)
        _ = await self.discovery.homeassistant_discovery()

    def _on_disconnected(self, reason: str | None) -> None:
        self.link_state = LinkState.DISCONNECTED
        logger.info("%s DISCONNECTED%s", f"{self.lp}disconnected:", f" ({reason})" if reason else "")

    @timed_async("mqtt_message")
    async def _on_message(self, event: MessageReceived) -> None:
        lp = f"{self.lp}message:"
        logger.info(
            "%s >>> MQTT MESSAGE RECEIVED: topic=%s, payload_len=%d",
            lp,
            event.topic,
            event.payload_len,
            extra={"payload": event.payload.decode(errors="replace")},
        )
        result = self.interpreter.handle(event.topic, event.payload)
        if result is None:
            return
        logger.debug("%s DEVICE_STATE=%s", lp, result.state.is_on)
        _ = await self.state_updates.publish_state(result.entity, result.state, result.raw_payload)

    def _on_error(self, event: TransportError) -> None:
        lp = f"{self.lp}error:"
        logger.warning("%s MQTT_EVENT_ERROR (%s): %s", lp, event.error_type, event.message)
        if event.error_type == "tcp_transport":
            _log_error_if_nonzero(lp, "reported from tls layer", event.tls_last_err)
            _log_error_if_nonzero(lp, "reported from tls stack", event.tls_stack_err)
            _log_error_if_nonzero(lp, "captured as transport's socket errno", event.sock_errno)
            if event.sock_errno:
                logger.info("%s Last errno string (%s)", lp, os.strerror(event.sock_errno))
        else:
            _log_error_if_nonzero(lp, "broker return code", event.return_code)
