"""In-memory device state with atomic partial updates.

The store has one writer (the command interpreter, driven by the dispatcher)
and several readers (the state publisher and the output sink). Snapshots are
frozen models; an update builds a new snapshot and swaps the reference under a
lock, so a reader sees either every field of an update or none of them.
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from actuator_bridge.const import LIGHT_CHANNEL_MAX
from actuator_bridge.logging_abstraction import get_logger

__all__ = ["DeviceState", "StateStore"]

logger = get_logger(__name__)


class DeviceState(BaseModel):
    """Snapshot of every controllable field of the device."""

    model_config = ConfigDict(frozen=True)

    is_on: bool = False
    r: int = Field(default=0, ge=0, le=LIGHT_CHANNEL_MAX)
    g: int = Field(default=0, ge=0, le=LIGHT_CHANNEL_MAX)
    b: int = Field(default=0, ge=0, le=LIGHT_CHANNEL_MAX)
    w: int = Field(default=0, ge=0, le=LIGHT_CHANNEL_MAX)
    brightness: int = Field(default=0, ge=0, le=LIGHT_CHANNEL_MAX)
    number: int = 0
    text: str = ""

    def merged(self, update: Mapping[str, Any]) -> DeviceState:
        """Return a copy with ``update`` applied; unknown keys are rejected."""
        unknown = set(update) - set(type(self).model_fields)
        if unknown:
            msg = f"Unknown device state field(s): {sorted(unknown)}"
            raise KeyError(msg)
        return self.model_copy(update=dict(update))


class StateStore:
    """Owner of the current ``DeviceState`` snapshot."""

    lp: str = "state:"

    def __init__(self, initial: DeviceState | None = None) -> None:
        self._lock = threading.Lock()
        self._state: DeviceState = initial or DeviceState()

    def snapshot(self) -> DeviceState:
        with self._lock:
            return self._state

    def apply(self, update: Mapping[str, Any]) -> DeviceState:
        """Apply a partial update atomically and return the new snapshot.

        Fields missing from ``update`` keep their last value.
        """
        with self._lock:
            new_state = self._state.merged(update)
            self._state = new_state
        if update:
            logger.debug("%s applied %s", self.lp, dict(update))
        return new_state
