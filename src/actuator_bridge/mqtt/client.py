"""MQTT transport for the actuator bridge.

Wraps ``aiomqtt.Client`` with the connection lifecycle: connect, deliver the
session's messages to the event dispatcher one at a time, and on loss of the
session report the failure and retry after ``BRIDGE_MQTT_CONN_DELAY`` seconds.
"""

from __future__ import annotations

import asyncio
import itertools
from collections import deque
from typing import TYPE_CHECKING

import aiomqtt

from actuator_bridge.logging_abstraction import get_logger
from actuator_bridge.mqtt.events import (
    BridgeEvent,
    Connected,
    Disconnected,
    MessageReceived,
    Published,
    Subscribed,
    TransportError,
)
from actuator_bridge.structs import GlobalObject
from actuator_bridge.utils import send_sigterm

if TYPE_CHECKING:
    from actuator_bridge.mqtt.dispatcher import EventDispatcher

__all__ = ["BAD_CREDENTIAL_CODES", "MQTTClient"]

logger = get_logger(__name__)
g = GlobalObject()

# MQTT 3.1.1 CONNACK 4/5 and MQTT 5 reason codes 134/135
BAD_CREDENTIAL_CODES = (4, 5, 134, 135)


def _payload_bytes(payload: object) -> bytes:
    match payload:
        case None:
            return b""
        case bytes():
            return payload
        case bytearray():
            return bytes(payload)
        case _:
            return str(payload).encode()


class MQTTClient:
    """aiomqtt-backed transport feeding channel events to the dispatcher."""

    lp: str = "mqtt:"
    start_task: asyncio.Task[None] | None = None
    client: aiomqtt.Client | None = None
    dispatcher: EventDispatcher | None = None

    def __init__(self, client_id: str, dispatcher: EventDispatcher | None = None) -> None:
        """Initialize the transport.

        Args:
            client_id: MQTT client identifier presented to the broker
            dispatcher: Receiver of every channel event; may be attached later

        """
        self.client_id: str = client_id
        self.dispatcher = dispatcher
        self._connected: bool = False
        self._msg_ids = itertools.count(1)
        self._pending_acks: deque[Subscribed | Published] = deque()

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def _emit(self, event: BridgeEvent) -> None:
        """Dispatch ``event``, then any acks queued while it was being handled."""
        if self.dispatcher is None:
            self._pending_acks.clear()
            return
        await self.dispatcher.dispatch(event)
        while self._pending_acks:
            await self.dispatcher.dispatch(self._pending_acks.popleft())

    def _queue_ack(self, ack: Subscribed | Published) -> None:
        # delivered by _emit once the event being dispatched has returned
        if self.dispatcher is not None:
            self._pending_acks.append(ack)

    def _get_connection_delay(self, lp: str) -> int:
        """Get connection retry delay, defaulting to 5 seconds."""
        delay = g.env.mqtt_conn_delay
        if delay <= 0:
            logger.debug(
                "%s MQTT connection delay is less than or equal to 0, which is probably a typo, setting to 5...",
                lp,
            )
            return 5
        return delay

    async def connect(self) -> bool:
        lp = f"{self.lp}connect:"
        self._connected = False
        g.reload_env()
        logger.debug("%s Connecting to MQTT broker %s:%s...", lp, g.env.mqtt_host, g.env.mqtt_port)
        self.client = aiomqtt.Client(
            hostname=g.env.mqtt_host,
            port=g.env.mqtt_port or 1883,
            username=g.env.mqtt_user,
            password=g.env.mqtt_pass,
            identifier=self.client_id,
        )
        try:
            _ = await self.client.__aenter__()
        except aiomqtt.MqttError as mqtt_err_exc:
            logger.warning("%s Connection failed [MqttError] -> %s", lp, mqtt_err_exc)
            error = TransportError.from_exception(mqtt_err_exc)
            await self._emit(error)
            if error.return_code in BAD_CREDENTIAL_CODES or "code:134" in str(mqtt_err_exc):
                logger.error(
                    "%s Bad username or password, check your MQTT credentials (username: %s)",
                    lp,
                    g.env.mqtt_user,
                )
                send_sigterm()
            return False

        self._connected = True
        logger.info("%s Connected to MQTT broker: %s port: %s", lp, g.env.mqtt_host, g.env.mqtt_port)
        await self._emit(Connected())
        return True

    async def _start_receiver(self) -> None:
        """Deliver every inbound message to the dispatcher, in arrival order."""
        lp = f"{self.lp}rcv:"
        assert self.client is not None, "client must be initialized"
        logger.debug("%s Waiting for MQTT messages...", lp)
        async for message in self.client.messages:
            await self._emit(MessageReceived(topic=message.topic.value, payload=_payload_bytes(message.payload)))

    async def start(self) -> None:
        lp = f"{self.lp}start:"
        try:
            while True:
                if await self.connect():
                    try:
                        await self._start_receiver()
                    except aiomqtt.MqttError as msg_err:
                        logger.warning("%s MQTT session lost: %s", lp, msg_err)
                        await self._emit(TransportError.from_exception(msg_err))
                    self._connected = False
                    await self._emit(Disconnected(reason="session lost"))
                delay = self._get_connection_delay(lp)
                logger.info(
                    "%s MQTT broker unavailable, sleeping for %s seconds before re-trying...",
                    lp,
                    delay,
                )
                await asyncio.sleep(delay)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("%s MQTT start() EXCEPTION", lp)

    async def stop(self) -> None:
        lp = f"{self.lp}stop:"
        try:
            if self.client is not None and self._connected:
                logger.debug("%s Disconnecting from broker...", lp)
                await self.client.__aexit__(None, None, None)
        except aiomqtt.MqttError as ce:
            logger.warning("%s MQTT disconnect failed: %s", lp, ce)
        else:
            logger.info("%s Disconnected from MQTT broker", lp)
        finally:
            self._connected = False
            if self.start_task and not self.start_task.done():
                logger.debug("%s FINISHING: Cancelling start task", lp)
                _ = self.start_task.cancel()

    async def subscribe(self, topic: str) -> bool:
        """Subscribe to ``topic`` at QoS 0."""
        lp = f"{self.lp}subscribe:"
        if not self._connected:
            return False
        assert self.client is not None, "client must be initialized"
        try:
            _ = await self.client.subscribe(topic, qos=0)
        except aiomqtt.MqttCodeError as mqtt_code_exc:
            logger.warning("%s [MqttCodeError] -> %s", lp, mqtt_code_exc)
        except aiomqtt.MqttError as mqtt_err:
            logger.warning("%s [MqttError] -> %s", lp, mqtt_err)
            self._connected = False
        else:
            logger.debug("%s Subscribed to %s", lp, topic)
            self._queue_ack(Subscribed(msg_id=next(self._msg_ids)))
            return True
        return False

    async def publish(self, topic: str, payload: bytes, retain: bool = False) -> bool:
        """Publish a message to the MQTT broker at QoS 0."""
        lp = f"{self.lp}publish:"
        if not self._connected:
            return False
        assert self.client is not None, "client must be initialized"
        try:
            _ = await self.client.publish(topic, payload, qos=0, retain=retain)
        except aiomqtt.MqttCodeError as mqtt_code_exc:
            logger.warning("%s [MqttCodeError] -> %s", lp, mqtt_code_exc)
            self._connected = False
        except aiomqtt.MqttError as mqtt_err:
            logger.warning("%s [MqttError] -> %s", lp, mqtt_err)
            self._connected = False
        else:
            self._queue_ack(Published(msg_id=next(self._msg_ids)))
            return True
        return False
