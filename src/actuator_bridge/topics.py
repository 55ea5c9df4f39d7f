"""Device identity and MQTT topic naming.

Topics follow the Home Assistant discovery layout::

    <prefix>/<kind>/<object_id>/config
    <prefix>/<kind>/<object_id>/set
    <prefix>/<kind>/<object_id>/state
"""

from __future__ import annotations

import secrets
from collections.abc import Mapping

from actuator_bridge.const import (
    DEFAULT_NUMBER_MAX,
    DEFAULT_NUMBER_MIN,
    DEVICE_ID_ALPHABET,
    DEVICE_ID_LENGTH,
    LIGHT_CHANNEL_MAX,
    TEXT_MAX_BYTES,
)
from actuator_bridge.structs import DEFAULT_ENTITY_NAMES, BridgeVariant, Entity, EntityKind, EntityTopics

__all__ = [
    "build_entities",
    "build_entity",
    "entity_topics",
    "generate_device_id",
    "object_id_for",
]


def generate_device_id(length: int = DEVICE_ID_LENGTH) -> str:
    """Return a random lowercase alphanumeric device identity."""
    return "".join(secrets.choice(DEVICE_ID_ALPHABET) for _ in range(length))


def object_id_for(
    device_id: str, kind: EntityKind, variant: BridgeVariant, light_object_id: str | None = None
) -> str:
    """Derive the per-entity object id.

    Multi-entity bridges concatenate the device identity and the kind
    (``ab12cdswitch``); the single light bridge uses ``light_object_id``,
    or ``<device_id>_light`` when none is configured.
    """
    if variant is BridgeVariant.LIGHT:
        return light_object_id or f"{device_id}_{kind}"
    return f"{device_id}{kind}"


def entity_topics(prefix: str, kind: EntityKind, object_id: str) -> EntityTopics:
    base = f"{prefix}/{kind}/{object_id}"
    return EntityTopics(config=f"{base}/config", command=f"{base}/set", state=f"{base}/state")


def build_entity(
    prefix: str,
    device_id: str,
    kind: EntityKind,
    variant: BridgeVariant,
    name: str | None = None,
    *,
    light_object_id: str | None = None,
    number_range: tuple[int, int] = (DEFAULT_NUMBER_MIN, DEFAULT_NUMBER_MAX),
) -> Entity:
    object_id = object_id_for(device_id, kind, variant, light_object_id)
    topics = entity_topics(prefix, kind, object_id)
    name = name or DEFAULT_ENTITY_NAMES[kind]
    match kind:
        case EntityKind.LIGHT:
            return Entity(kind, name, object_id, topics, min_value=0, max_value=LIGHT_CHANNEL_MAX)
        case EntityKind.NUMBER:
            return Entity(kind, name, object_id, topics, min_value=number_range[0], max_value=number_range[1])
        case EntityKind.TEXT:
            return Entity(kind, name, object_id, topics, max_length=TEXT_MAX_BYTES)
        case _:
            return Entity(kind, name, object_id, topics)


def build_entities(
    prefix: str,
    device_id: str,
    variant: BridgeVariant,
    names: Mapping[EntityKind, str] | None = None,
    *,
    light_object_id: str | None = None,
    number_range: tuple[int, int] = (DEFAULT_NUMBER_MIN, DEFAULT_NUMBER_MAX),
) -> tuple[Entity, ...]:
    """Build every entity of a variant, in announcement order.

    Must run before any subscription is issued; the result never changes for
    the lifetime of the process.
    """
    names = names or {}
    return tuple(
        build_entity(
            prefix,
            device_id,
            kind,
            variant,
            names.get(kind),
            light_object_id=light_object_id,
            number_range=number_range,
        )
        for kind in variant.kinds
    )
