"""Exception types for the actuator bridge.

None of these are raised from the message path: malformed payloads, unknown
topics and transport faults are logged and absorbed by the dispatcher. They
are reserved for bootstrap and for building discovery documents.
"""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for actuator bridge errors."""


class ConfigError(BridgeError):
    """Invalid device configuration file.

    Attributes:
        path: Path of the offending file
        reason: Specific failure reason

    """

    def __init__(self, path: str, reason: str) -> None:
        self.path: str = path
        self.reason: str = reason
        super().__init__(f"Invalid device config {path}: {reason}")


class DiscoveryError(BridgeError):
    """A discovery config document could not be built for an entity.

    Attributes:
        object_id: Object id of the entity being announced
        reason: Specific failure reason

    """

    def __init__(self, object_id: str, reason: str) -> None:
        self.object_id: str = object_id
        self.reason: str = reason
        super().__init__(f"Cannot build discovery config for {object_id}: {reason}")
