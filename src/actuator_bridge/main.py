from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from functools import partial
from pathlib import Path
from typing import Any

import dotenv
import uvloop
import yaml

from actuator_bridge.const import (
    BRIDGE_DEBUG,
    BRIDGE_VERSION,
    MQTT_CLIENT_START_TASK_NAME,
    OUTPUT_SINK_START_TASK_NAME,
)
from actuator_bridge.correlation import correlation_context, ensure_correlation_id
from actuator_bridge.exceptions import BridgeError, ConfigError
from actuator_bridge.logging_abstraction import get_logger, set_log_context
from actuator_bridge.mqtt import (
    CommandInterpreter,
    DiscoveryHelper,
    EventDispatcher,
    MQTTClient,
    StateUpdateHelper,
)
from actuator_bridge.output import LoggingPin, OutputSink
from actuator_bridge.state import StateStore
from actuator_bridge.structs import BridgeVariant, DeviceInfo, Entity, EntityKind, GlobalObject
from actuator_bridge.topics import build_entities, generate_device_id
from actuator_bridge.utils import send_sigterm, signal_handler

logger = get_logger(__name__)

# Suppress verbose MQTT library warnings
for _name in ("mqtt", "aiomqtt"):
    _mqtt_logger = logging.getLogger(_name)
    _mqtt_logger.setLevel(logging.ERROR)
    _mqtt_logger.propagate = False

g = GlobalObject()

DEVICE_CONFIG_KEYS = ("name", "manufacturer", "model", "sw_version", "serial_number")


def _parse_device_section(config_file: Path, device_data: Any) -> dict[str, Any]:
    """Validate the optional ``device:`` mapping of a device file."""
    if device_data is None:
        return {}
    if not isinstance(device_data, dict):
        raise ConfigError(str(config_file), "'device' must be a mapping")

    overrides: dict[str, Any] = {}
    for key, value in device_data.items():
        if key not in DEVICE_CONFIG_KEYS:
            logger.warning("Unknown device key in %s: %s, skipping...", config_file, key)
            continue
        if key == "serial_number":
            try:
                overrides[key] = int(value) if value is not None else None
            except (TypeError, ValueError) as e:
                raise ConfigError(str(config_file), f"serial_number must be an integer, got {value!r}") from e
        else:
            overrides[key] = str(value)
    return overrides


def _parse_entities_section(config_file: Path, entities_data: Any) -> dict[EntityKind, str]:
    if entities_data is None:
        return {}
    if not isinstance(entities_data, dict):
        raise ConfigError(str(config_file), "'entities' must be a mapping of kind -> name")

    names: dict[EntityKind, str] = {}
    for kind, name in entities_data.items():
        try:
            entity_kind = EntityKind(str(kind).casefold())
        except ValueError:
            logger.warning("Unknown entity kind in %s: %s, skipping...", config_file, kind)
            continue
        names[entity_kind] = str(name)
    return names


def parse_config(config_file: Path) -> tuple[dict[str, Any], dict[EntityKind, str]]:
    """Parse a YAML device file.

    Args:
        config_file: Path to the YAML device file

    Returns:
        Tuple of (device_overrides, entity_names)

    Raises:
        ConfigError: If the file cannot be read or has the wrong shape

    """
    logger.debug("Parsing config file: %s", config_file)
    try:
        with config_file.open() as f:
            config_data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.exception("Failed to parse config file: %s", config_file)
        raise ConfigError(str(config_file), str(e)) from e

    if not config_data:
        logger.warning("Config file %s is empty, using defaults", config_file)
        return {}, {}
    if not isinstance(config_data, dict):
        raise ConfigError(str(config_file), "top level must be a mapping")

    device_overrides = _parse_device_section(config_file, config_data.get("device"))
    entity_names = _parse_entities_section(config_file, config_data.get("entities"))
    logger.info(
        "Parsed config: %d device overrides, %d entity names",
        len(device_overrides),
        len(entity_names),
    )
    return device_overrides, entity_names


def resolve_device_id(variant: BridgeVariant) -> str:
    """Identity of this bridge: fixed for the light, pinned or random otherwise."""
    if variant is BridgeVariant.LIGHT:
        return g.env.light_device_id
    if g.env.device_id:
        return g.env.device_id
    return generate_device_id()


class BridgeController:
    lp: str = "BridgeController:"
    config_file: Path | None = None
    _instance: BridgeController | None = None

    def __new__(cls, *args: object, **kwargs: object) -> BridgeController:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())
        g.loop = asyncio.new_event_loop()
        asyncio.set_event_loop(g.loop)

        logger.info(" Initializing Actuator Bridge", extra={"version": BRIDGE_VERSION})

        g.loop.add_signal_handler(signal.SIGINT, partial(signal_handler, signal.SIGINT))
        g.loop.add_signal_handler(signal.SIGTERM, partial(signal_handler, signal.SIGTERM))

        logger.debug("Signal handlers configured for SIGINT & SIGTERM")

        self.store: StateStore = StateStore()
        self.entities: tuple[Entity, ...] = ()
        self.device: DeviceInfo | None = None
        self.dispatcher: EventDispatcher | None = None

    def _variant(self) -> BridgeVariant:
        lp = f"{self.lp}variant:"
        requested = g.cli_args.variant if g.cli_args and g.cli_args.variant else g.env.variant
        try:
            return BridgeVariant(requested)
        except ValueError:
            logger.warning("%s Unknown variant %r, falling back to %s", lp, requested, BridgeVariant.LIGHT)
            return BridgeVariant.LIGHT

    def build(self) -> None:
        """Wire the entities, state store, MQTT side and output sink together."""
        device_overrides: dict[str, Any] = {}
        entity_names: dict[EntityKind, str] = {}
        if g.cli_args and g.cli_args.config:
            self.config_file = cfg_file = Path(g.cli_args.config).expanduser().resolve()
            logger.info(" Loading configuration", extra={"config_path": str(cfg_file)})
            device_overrides, entity_names = parse_config(cfg_file)

        variant = self._variant()
        device_id = resolve_device_id(variant)
        self.device = DeviceInfo(identity=device_id, **{**g.env.device_defaults(), **device_overrides})
        set_log_context(device_id=device_id, variant=str(variant))
        self.entities = build_entities(
            g.env.discovery_prefix,
            device_id,
            variant,
            entity_names,
            light_object_id=g.env.light_object_id,
            number_range=(g.env.number_min, g.env.number_max),
        )
        logger.info(" Bridge configured", extra={"entities": [entity.object_id for entity in self.entities]})

        g.mqtt_client = transport = MQTTClient(client_id=f"actuator_bridge_{device_id}")
        self.dispatcher = EventDispatcher(
            transport,
            CommandInterpreter(self.entities, self.store),
            DiscoveryHelper(transport, self.device, self.entities),
            StateUpdateHelper(transport, light_state_echo=g.env.light_state_echo),
        )
        transport.dispatcher = self.dispatcher
        g.output_sink = OutputSink(self.store, LoggingPin(), g.env.output_tick_ms)

    async def start(self):
        """Start the MQTT client and the output sink."""
        _ = ensure_correlation_id()
        self.build()

        g.mqtt_client.start_task = m_start = asyncio.Task(g.mqtt_client.start(), name=MQTT_CLIENT_START_TASK_NAME)
        g.output_sink.start_task = o_start = asyncio.Task(g.output_sink.start(), name=OUTPUT_SINK_START_TASK_NAME)
        g.tasks.extend([m_start, o_start])
        logger.info(" Starting MQTT client and output sink...")

        try:
            _ = await asyncio.gather(m_start, o_start, return_exceptions=True)
        except Exception as e:
            logger.exception(" Service startup failed", extra={"error": str(e)})
            await self.stop()
            raise

    async def stop(self):
        logger.info(" Shutting down Actuator Bridge...")
        send_sigterm()


def parse_cli(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Actuator Bridge: Home Assistant MQTT discovery device")
    _ = parser.add_argument(
        "--variant",
        choices=[variant.value for variant in BridgeVariant],
        default=None,
        help="Entity set to expose (overrides BRIDGE_VARIANT)",
    )
    _ = parser.add_argument("--config", help="Path to a YAML device file", default=None, type=Path)
    _ = parser.add_argument(
        "-D",
        "--debug",
        action="store_true",
        help="Enable debug mode",
    )
    _ = parser.add_argument("--env", help="Path to the environment file", default=None, type=Path)
    g.cli_args = args = parser.parse_args(argv)

    if args.debug:
        logger.set_level(logging.DEBUG)
        logger.info("Debug mode enabled via CLI argument")

    if args.env:
        env_path = args.env.expanduser().resolve()
        if not env_path.exists():
            logger.error("Environment file not found", extra={"path": str(env_path)})
        elif dotenv.load_dotenv(env_path, override=True):
            logger.info(" Environment variables loaded", extra={"source": str(env_path)})
        else:
            logger.warning("No environment variables loaded from file", extra={"path": str(env_path)})
    g.reload_env()
    return args


def main():
    """Main entry point for the actuator bridge."""
    exit_code = 0
    with correlation_context():
        logger.info("Starting Actuator Bridge", extra={"version": BRIDGE_VERSION})

        _ = parse_cli()

        if BRIDGE_DEBUG:
            logger.info("Debug logging enabled via configuration")
            logger.set_level(logging.DEBUG)

        g.controller = BridgeController()

        try:
            g.loop.run_until_complete(g.controller.start())
        except asyncio.CancelledError:
            logger.info("Actuator Bridge cancelled, shutting down...")
        except KeyboardInterrupt:
            logger.info("Keyboard interrupt received, shutting down...")
        except BridgeError as e:
            logger.error(" Fatal configuration error", extra={"error": str(e)})
            exit_code = 1
        except Exception as e:
            logger.exception(" Fatal error in main loop", extra={"error": str(e)})
            exit_code = 1
        else:
            logger.info(" Actuator Bridge stopped gracefully")
        finally:
            if g.loop is not None and not g.loop.is_closed():
                g.loop.close()
            logger.info("Actuator Bridge shutdown complete")
    if exit_code:
        sys.exit(exit_code)


if __name__ == "__main__":
    main()
