"""Inbound command decoding.

Turns a (topic, payload) pair into a partial update of the device state. The
topic selects the entity through a lookup table built from the entity list;
each entity kind has its own decoder. Decoding is pure: the store is only
touched by ``CommandInterpreter.handle``.
"""

from __future__ import annotations

import codecs
import json
import math
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from json import JSONDecodeError
from typing import Any

from actuator_bridge.const import LIGHT_CHANNEL_MAX, STATE_ON, TEXT_MAX_BYTES
from actuator_bridge.logging_abstraction import get_logger
from actuator_bridge.state import DeviceState, StateStore
from actuator_bridge.structs import Entity, EntityKind

__all__ = [
    "CommandInterpreter",
    "CommandResult",
    "decode_light",
    "decode_number",
    "decode_switch",
    "decode_text",
    "parse_c_int",
]

logger = get_logger(__name__)

Decoder = Callable[[bytes], dict[str, Any] | None]

_LEADING_INT = re.compile(rb"^[ \t\n\v\f\r]*([+-]?\d+)")
_COLOR_CHANNELS = ("r", "g", "b", "w")


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Outcome of a successfully decoded command."""

    entity: Entity
    state: DeviceState
    update: dict[str, Any] = field(default_factory=dict)
    raw_payload: bytes = b""


def parse_c_int(payload: bytes) -> int:
    """Integer conversion with C ``atoi`` leniency.

    Leading whitespace and a sign are accepted, parsing stops at the first
    non-digit, and a payload without leading digits yields 0.
    """
    match = _LEADING_INT.match(payload)
    if match is None:
        return 0
    return int(match.group(1))


def _channel_value(value: object) -> int | None:
    # bool is an int subclass but JSON true/false is not a number
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return max(0, min(LIGHT_CHANNEL_MAX, int(value)))


def decode_light(payload: bytes) -> dict[str, Any] | None:
    """Decode a JSON-schema light command into a partial update.

    Returns None when the document cannot be parsed; in that case nothing at
    all is applied.
    """
    lp = "commands:light:"
    try:
        doc = json.loads(payload)
    except (JSONDecodeError, UnicodeDecodeError):
        logger.warning("%s bad json message: %r, skipping...", lp, payload)
        return None
    if not isinstance(doc, dict):
        logger.warning("%s expected a JSON object, got %s: %r", lp, type(doc).__name__, payload)
        return None

    update: dict[str, Any] = {}
    state = doc.get("state")
    if isinstance(state, str):
        update["is_on"] = state == STATE_ON

    color = doc.get("color")
    if isinstance(color, dict):
        for channel in _COLOR_CHANNELS:
            value = _channel_value(color.get(channel))
            if value is not None:
                update[channel] = value

    brightness = _channel_value(doc.get("brightness"))
    if brightness is not None:
        update["brightness"] = brightness
    return update


def decode_switch(payload: bytes) -> dict[str, Any]:
    return {"is_on": payload == STATE_ON.encode()}


def decode_number(payload: bytes) -> dict[str, Any]:
    return {"number": parse_c_int(payload)}


def decode_text(payload: bytes) -> dict[str, Any] | None:
    """Copy the payload, dropping bytes past the field size.

    A multi-byte character cut at the boundary is dropped with it. Any other
    invalid UTF-8 makes the command not applicable.
    """
    lp = "commands:text:"
    decoder = codecs.getincrementaldecoder("utf-8")()
    try:
        # a non-final decode holds back the incomplete trailing sequence
        text = decoder.decode(payload[:TEXT_MAX_BYTES], final=len(payload) <= TEXT_MAX_BYTES)
    except UnicodeDecodeError:
        logger.warning("%s invalid UTF-8 text: %r, skipping...", lp, payload)
        return None
    return {"text": text}


DECODERS: Mapping[EntityKind, Decoder] = {
    EntityKind.LIGHT: decode_light,
    EntityKind.SWITCH: decode_switch,
    EntityKind.NUMBER: decode_number,
    EntityKind.TEXT: decode_text,
}


class CommandInterpreter:
    """Routes command topics to their entity decoder and applies the result."""

    lp: str = "commands:"

    def __init__(self, entities: Iterable[Entity], store: StateStore) -> None:
        self.store: StateStore = store
        self.routes: dict[str, Entity] = {entity.topics.command: entity for entity in entities}

    @property
    def command_topics(self) -> list[str]:
        return list(self.routes)

    def interpret(self, topic: str, payload: bytes, prior: DeviceState) -> CommandResult | None:
        """Decode without side effects.

        Returns None ("not applicable") for unknown topics and malformed
        payloads.
        """
        entity = self.routes.get(topic)
        if entity is None:
            logger.debug("%s no entity for topic %s, ignoring", self.lp, topic)
            return None
        update = DECODERS[entity.kind](payload)
        if update is None:
            return None
        return CommandResult(entity=entity, state=prior.merged(update), update=update, raw_payload=payload)

    def handle(self, topic: str, payload: bytes) -> CommandResult | None:
        """Decode and apply a command to the store.

        The store is only written when decoding succeeds; the returned state is
        the snapshot produced by the store update.
        """
        result = self.interpret(topic, payload, self.store.snapshot())
        if result is None:
            return None
        new_state = self.store.apply(result.update)
        logger.info(
            "%s %s '%s' updated",
            self.lp,
            result.entity.kind,
            result.entity.name,
            extra={"topic": topic, "update": result.update},
        )
        return CommandResult(entity=result.entity, state=new_state, update=result.update, raw_payload=payload)
