"""Unit tests for device identity and topic naming."""

from __future__ import annotations

from actuator_bridge.const import DEVICE_ID_ALPHABET
from actuator_bridge.structs import BridgeVariant, EntityKind
from actuator_bridge.topics import (
    build_entities,
    build_entity,
    entity_topics,
    generate_device_id,
    object_id_for,
)


class TestDeviceId:
    """Tests for random device identities."""

    def test_default_length_and_alphabet(self):
        """Generated ids are six lowercase alphanumerics."""
        device_id = generate_device_id()

        assert len(device_id) == 6
        assert set(device_id) <= set(DEVICE_ID_ALPHABET)

    def test_custom_length(self):
        assert len(generate_device_id(10)) == 10


class TestObjectIds:
    """Tests for per-entity object ids."""

    def test_multi_variant_concatenates_identity_and_kind(self):
        assert object_id_for("ab12cd", EntityKind.SWITCH, BridgeVariant.MULTI) == "ab12cdswitch"
        assert object_id_for("ab12cd", EntityKind.NUMBER, BridgeVariant.MULTI) == "ab12cdnumber"
        assert object_id_for("ab12cd", EntityKind.TEXT, BridgeVariant.MULTI) == "ab12cdtext"

    def test_light_variant_suffixes_light_identity(self):
        assert object_id_for("6xalj9", EntityKind.LIGHT, BridgeVariant.LIGHT) == "6xalj9_light"

    def test_light_variant_configured_object_id(self):
        """A configured light object id is used as is."""
        assert object_id_for("6xalj9", EntityKind.LIGHT, BridgeVariant.LIGHT, "porch_light") == "porch_light"

    def test_configured_light_object_id_ignored_by_multi(self):
        assert object_id_for("ab12cd", EntityKind.SWITCH, BridgeVariant.MULTI, "porch_light") == "ab12cdswitch"


class TestEntityTopics:
    """Tests for the discovery topic layout."""

    def test_topic_layout(self):
        topics = entity_topics("homeassistant", EntityKind.SWITCH, "ab12cdswitch")

        assert topics.config == "homeassistant/switch/ab12cdswitch/config"
        assert topics.command == "homeassistant/switch/ab12cdswitch/set"
        assert topics.state == "homeassistant/switch/ab12cdswitch/state"

    def test_custom_prefix(self):
        topics = entity_topics("ha-test", EntityKind.LIGHT, "6xalj9_light")

        assert topics.command == "ha-test/light/6xalj9_light/set"


class TestBuildEntities:
    """Tests for entity construction per variant."""

    def test_multi_variant_entities_in_order(self):
        entities = build_entities("homeassistant", "ab12cd", BridgeVariant.MULTI)

        assert [entity.kind for entity in entities] == [EntityKind.SWITCH, EntityKind.NUMBER, EntityKind.TEXT]
        assert [entity.object_id for entity in entities] == ["ab12cdswitch", "ab12cdnumber", "ab12cdtext"]

    def test_light_variant_single_entity(self):
        entities = build_entities("homeassistant", "6xalj9", BridgeVariant.LIGHT)

        assert len(entities) == 1
        assert entities[0].kind is EntityKind.LIGHT
        assert entities[0].name == "REGEBELEEGHT"
        assert entities[0].max_value == 4095

    def test_number_and_text_constraints(self):
        """Number entities carry min/max; text entities carry the byte limit."""
        number = build_entity("homeassistant", "ab12cd", EntityKind.NUMBER, BridgeVariant.MULTI)
        text = build_entity("homeassistant", "ab12cd", EntityKind.TEXT, BridgeVariant.MULTI)

        assert (number.min_value, number.max_value) == (0, 100)
        assert text.max_length == 63

    def test_number_range_and_light_object_id_passed_through(self):
        (number,) = build_entities("homeassistant", "ab12cd", BridgeVariant.MULTI, number_range=(-5, 5))[1:2]
        (light,) = build_entities("homeassistant", "6xalj9", BridgeVariant.LIGHT, light_object_id="porch_light")

        assert (number.min_value, number.max_value) == (-5, 5)
        assert light.topics.command == "homeassistant/light/porch_light/set"

    def test_names_override_defaults(self):
        entities = build_entities(
            "homeassistant",
            "ab12cd",
            BridgeVariant.MULTI,
            {EntityKind.SWITCH: "Pump"},
        )

        assert entities[0].name == "Pump"
        assert entities[1].name == "Level"

    def test_command_topics_are_distinct(self):
        entities = build_entities("homeassistant", "ab12cd", BridgeVariant.MULTI)

        assert len({entity.topics.command for entity in entities}) == len(entities)
