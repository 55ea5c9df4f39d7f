"""Output sink: drives an output pin from the device state.

The sink runs as its own task and samples the state store once per tick; it
never writes to the store.
"""

from __future__ import annotations

import asyncio

from actuator_bridge.const import BRIDGE_OUTPUT_TICK_MS
from actuator_bridge.logging_abstraction import get_logger
from actuator_bridge.state import StateStore
from actuator_bridge.structs import OutputPin

__all__ = ["LoggingPin", "OutputSink"]

logger = get_logger(__name__)


class LoggingPin:
    """Simulated output pin that records its level and logs each change."""

    lp: str = "output:pin:"

    def __init__(self, name: str = "led") -> None:
        self.name: str = name
        self.level: bool = False
        self.configured: bool = False

    def setup(self) -> None:
        self.configured = True
        logger.debug("%s %s configured as output", self.lp, self.name)

    def set_level(self, level: bool) -> None:
        self.level = level
        logger.info("%s %s -> %s", self.lp, self.name, "HIGH" if level else "LOW")


class OutputSink:
    lp: str = "output:"
    start_task: asyncio.Task[None] | None = None

    def __init__(self, store: StateStore, pin: OutputPin, tick_ms: int = BRIDGE_OUTPUT_TICK_MS) -> None:
        self.store: StateStore = store
        self.pin: OutputPin = pin
        self.tick_ms: int = tick_ms if tick_ms > 0 else BRIDGE_OUTPUT_TICK_MS
        self._last_level: bool | None = None

    def sample(self) -> bool:
        """Read the power field once and drive the pin when it changed."""
        level = self.store.snapshot().is_on
        if level != self._last_level:
            self.pin.set_level(level)
            self._last_level = level
        return level

    async def start(self) -> None:
        lp = f"{self.lp}start:"
        self.pin.setup()
        logger.info("%s Sampling device state every %d ms", lp, self.tick_ms)
        try:
            while True:
                _ = self.sample()
                await asyncio.sleep(self.tick_ms / 1000)
        except asyncio.CancelledError:
            logger.debug("%s Output sink cancelled", lp)
            raise

    async def stop(self) -> None:
        lp = f"{self.lp}stop:"
        if self.start_task and not self.start_task.done():
            logger.debug("%s FINISHING: Cancelling start task", lp)
            _ = self.start_task.cancel()
