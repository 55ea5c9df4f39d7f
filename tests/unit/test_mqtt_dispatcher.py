"""Unit tests for the event dispatcher control loop."""

from __future__ import annotations

import errno
import json
from unittest.mock import AsyncMock, patch

import pytest

from actuator_bridge.mqtt.dispatcher import EventDispatcher
from actuator_bridge.mqtt.events import (
    Connected,
    Disconnected,
    MessageReceived,
    Published,
    Subscribed,
    TransportError,
)
from actuator_bridge.state import StateStore
from actuator_bridge.structs import Entity, LinkState


def _config_publishes(transport: AsyncMock) -> list[str]:
    return [call.args[0] for call in transport.publish.await_args_list if call.args[0].endswith("/config")]


class TestConnectedEvent:
    """Tests for subscription and discovery on connect."""

    @pytest.mark.asyncio
    async def test_subscribes_each_command_topic_once(
        self,
        multi_dispatcher: EventDispatcher,
        mock_transport: AsyncMock,
        multi_entities: tuple[Entity, ...],
    ):
        await multi_dispatcher.dispatch(Connected())

        subscribed = [call.args[0] for call in mock_transport.subscribe.await_args_list]
        assert sorted(subscribed) == sorted(entity.topics.command for entity in multi_entities)
        assert multi_dispatcher.link_state is LinkState.CONNECTED

    @pytest.mark.asyncio
    async def test_announces_each_entity_once(
        self,
        multi_dispatcher: EventDispatcher,
        mock_transport: AsyncMock,
        multi_entities: tuple[Entity, ...],
    ):
        await multi_dispatcher.dispatch(Connected())

        assert sorted(_config_publishes(mock_transport)) == sorted(entity.topics.config for entity in multi_entities)

    @pytest.mark.asyncio
    async def test_repeated_connects_repeat_the_announcement(
        self,
        multi_dispatcher: EventDispatcher,
        mock_transport: AsyncMock,
        multi_entities: tuple[Entity, ...],
    ):
        """Each connection re-subscribes and re-announces exactly once per entity."""
        for _ in range(3):
            await multi_dispatcher.dispatch(Connected())
            await multi_dispatcher.dispatch(Disconnected())

        assert mock_transport.subscribe.await_count == 3 * len(multi_entities)
        assert len(_config_publishes(mock_transport)) == 3 * len(multi_entities)
        assert multi_dispatcher.link_state is LinkState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_subscribes_before_announcing(self, light_dispatcher: EventDispatcher, mock_transport: AsyncMock):
        order: list[str] = []
        mock_transport.subscribe.side_effect = lambda topic: order.append("subscribe") or True
        mock_transport.publish.side_effect = lambda topic, payload, retain=False: order.append("publish") or True

        await light_dispatcher.dispatch(Connected())

        assert order == ["subscribe", "publish"]


class TestMessageEvent:
    """Tests for routing inbound messages."""

    @pytest.mark.asyncio
    async def test_number_message_updates_store_and_publishes_state(
        self,
        multi_dispatcher: EventDispatcher,
        mock_transport: AsyncMock,
        multi_entities: tuple[Entity, ...],
        store: StateStore,
    ):
        number = multi_entities[1]

        await multi_dispatcher.dispatch(MessageReceived(number.topics.command, b"42"))

        assert store.snapshot().number == 42
        mock_transport.publish.assert_awaited_once_with(number.topics.state, b"42", retain=True)

    @pytest.mark.asyncio
    async def test_text_message_publishes_truncated_value(
        self,
        multi_dispatcher: EventDispatcher,
        mock_transport: AsyncMock,
        multi_entities: tuple[Entity, ...],
    ):
        text = multi_entities[2]

        await multi_dispatcher.dispatch(MessageReceived(text.topics.command, b"z" * 100))

        mock_transport.publish.assert_awaited_once_with(text.topics.state, b"z" * 63, retain=True)

    @pytest.mark.asyncio
    async def test_light_message_echoes_command(
        self,
        light_dispatcher: EventDispatcher,
        mock_transport: AsyncMock,
        light_entities: tuple[Entity, ...],
        store: StateStore,
    ):
        light = light_entities[0]
        raw = json.dumps({"state": "ON", "brightness": 2000}).encode()

        await light_dispatcher.dispatch(MessageReceived(light.topics.command, raw))

        assert store.snapshot().is_on is True
        mock_transport.publish.assert_awaited_once_with(light.topics.state, raw, retain=True)

    @pytest.mark.asyncio
    async def test_malformed_light_message_is_dropped(
        self,
        light_dispatcher: EventDispatcher,
        mock_transport: AsyncMock,
        light_entities: tuple[Entity, ...],
        store: StateStore,
    ):
        before = store.snapshot()

        await light_dispatcher.dispatch(MessageReceived(light_entities[0].topics.command, b"{oops"))

        assert store.snapshot() is before
        mock_transport.publish.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_topic_is_ignored(self, multi_dispatcher: EventDispatcher, mock_transport: AsyncMock):
        await multi_dispatcher.dispatch(MessageReceived("some/other/topic", b"ON"))

        mock_transport.publish.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_publish_failure_does_not_raise(
        self,
        multi_dispatcher: EventDispatcher,
        mock_transport: AsyncMock,
        multi_entities: tuple[Entity, ...],
        store: StateStore,
    ):
        mock_transport.publish = AsyncMock(side_effect=RuntimeError("broker went away"))

        await multi_dispatcher.dispatch(MessageReceived(multi_entities[0].topics.command, b"ON"))

        assert store.snapshot().is_on is True


class TestOtherEvents:
    """Tests for acks and transport errors."""

    @pytest.mark.asyncio
    async def test_acks_are_only_logged(self, multi_dispatcher: EventDispatcher, mock_transport: AsyncMock):
        await multi_dispatcher.dispatch(Subscribed(msg_id=1))
        await multi_dispatcher.dispatch(Published(msg_id=2))

        mock_transport.subscribe.assert_not_awaited()
        mock_transport.publish.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_transport_error_logs_diagnostic_chain(self, multi_dispatcher: EventDispatcher):
        event = TransportError("tcp_transport", tls_last_err=0x2700, sock_errno=errno.ECONNREFUSED, message="refused")

        with patch("actuator_bridge.mqtt.dispatcher.logger") as mock_logger:
            await multi_dispatcher.dispatch(event)

        error_messages = [call.args[2] for call in mock_logger.error.call_args_list]
        assert "reported from tls layer" in error_messages
        assert "captured as transport's socket errno" in error_messages
        assert "reported from tls stack" not in error_messages
        mock_logger.info.assert_any_call("%s Last errno string (%s)", "dispatcher:error:", "Connection refused")

    @pytest.mark.asyncio
    async def test_connection_refused_logs_return_code(self, multi_dispatcher: EventDispatcher):
        with patch("actuator_bridge.mqtt.dispatcher.logger") as mock_logger:
            await multi_dispatcher.dispatch(TransportError("connection_refused", return_code=5))

        mock_logger.error.assert_called_once_with("%s Last error %s: 0x%x", "dispatcher:error:", "broker return code", 5)

    @pytest.mark.asyncio
    async def test_handler_failure_never_escapes(self, multi_dispatcher: EventDispatcher):
        with patch.object(multi_dispatcher.discovery, "homeassistant_discovery", AsyncMock(side_effect=ValueError)):
            await multi_dispatcher.dispatch(Connected())

    @pytest.mark.asyncio
    async def test_unknown_event_is_logged(self, multi_dispatcher: EventDispatcher, mock_transport: AsyncMock):
        await multi_dispatcher.dispatch("not-an-event")  # type: ignore[arg-type]

        mock_transport.publish.assert_not_awaited()
