from __future__ import annotations

import asyncio
import os
import signal

from actuator_bridge.logging_abstraction import get_logger
from actuator_bridge.structs import GlobalObject

logger = get_logger(__name__)
g = GlobalObject()


def send_signal(signal_num: int):
    """Send a signal to the current process.

    Args:
        signal_num (int): The signal number to send.

    """
    try:
        logger.debug("Sending signal %s to process %s", signal_num, os.getpid())
        os.kill(os.getpid(), signal_num)
    except OSError:
        logger.exception("Failed to send signal %s to process", signal_num)
        raise


def send_sigterm():
    """Request termination of the bridge."""
    send_signal(signal.SIGTERM)


async def _async_signal_cleanup():
    logger.info("Actuator Bridge: Starting signal cleanup...")
    if g.output_sink:
        logger.debug("Stopping output_sink...")
        await g.output_sink.stop()
    if g.mqtt_client:
        logger.debug("Stopping mqtt_client...")
        await g.mqtt_client.stop()
    if g.loop:
        for task in g.tasks:
            if not task.done():
                logger.debug("Actuator Bridge: Cancelling task: %s", task.get_name())
                _ = task.cancel()
    logger.info("Actuator Bridge: Signal cleanup completed")


def signal_handler(signum):
    logger.info("Actuator Bridge: Intercepted signal: %s (%s)", signal.Signals(signum).name, signum)
    loop = g.loop or asyncio.get_event_loop()
    _ = loop.create_task(_async_signal_cleanup())
