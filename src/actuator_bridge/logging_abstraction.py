"""Logging abstraction layer for the actuator bridge.

Provides dual-format logging (JSON + human-readable) with correlation tracking
and structured ``extra=`` context.

Handlers live on the top-level package logger; module loggers obtained from
``get_logger`` propagate to it, so ``set_level`` affects the whole bridge.
Once the bridge knows which device it is, ``set_log_context`` stamps every
record with that identity (``device_id``, ``variant``).
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import cast, override

__all__ = [
    "BridgeLogger",
    "DeviceContextFilter",
    "HumanReadableFormatter",
    "JSONFormatter",
    "clear_log_context",
    "get_log_context",
    "get_logger",
    "set_log_context",
]

_device_context: dict[str, object] = {}


def set_log_context(**fields: object) -> None:
    """Attach fields to every record logged from now on; ``None`` removes a field."""
    for key, value in fields.items():
        if value is None:
            _ = _device_context.pop(key, None)
        else:
            _device_context[key] = value


def clear_log_context() -> None:
    _device_context.clear()


def get_log_context() -> dict[str, object]:
    return dict(_device_context)


def _record_context(record: logging.LogRecord) -> dict[str, object]:
    """Device context merged with the record's own ``extra`` (the latter wins)."""
    merged: dict[str, object] = dict(cast("Mapping[str, object]", getattr(record, "device_context", {})))
    extra_data = getattr(record, "extra_data", None)
    if isinstance(extra_data, Mapping):
        merged.update(cast("Mapping[str, object]", extra_data))
    return merged


class DeviceContextFilter(logging.Filter):
    """Copies the process-wide device context onto each record."""

    @override
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "device_context"):
            record.device_context = dict(_device_context)
        return True


class JSONFormatter(logging.Formatter):
    """Formatter that outputs structured JSON logs."""

    @override
    def format(self, record: logging.LogRecord) -> str:
        # Import here to avoid circular dependency
        from actuator_bridge.correlation import get_correlation_id

        log_data: dict[str, object] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
            "correlation_id": get_correlation_id(),
        }

        context = _record_context(record)
        if context:
            log_data["context"] = context

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """Human-readable lines tagged with the device id and correlation id.

    Only the per-call ``extra`` is appended as ``| key=value``; from the
    device context just ``device_id`` is shown, as a ``<id>`` tag.
    """

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s.%(msecs)03d %(levelname)s [%(module)s:%(lineno)d] %(device_tag)s%(correlation_id)s > %(message)s",
            datefmt="%m/%d/%y %H:%M:%S",
        )

    @override
    def format(self, record: logging.LogRecord) -> str:
        from actuator_bridge.correlation import get_correlation_id

        correlation_id = get_correlation_id()
        record.correlation_id = f"[{correlation_id[:8]}]" if correlation_id else "[--------]"
        device_id = cast("Mapping[str, object]", getattr(record, "device_context", {})).get("device_id")
        record.device_tag = f"<{device_id}> " if device_id else ""

        formatted = super().format(record)

        extra_data = getattr(record, "extra_data", None)
        if isinstance(extra_data, Mapping) and extra_data:
            context_map = cast("Mapping[str, object]", extra_data)
            context_str = " | ".join(f"{k}={v}" for k, v in context_map.items())
            formatted = f"{formatted} | {context_str}"

        return formatted


def _human_handler(human_output: str | None) -> logging.Handler:
    match human_output or "stdout":
        case "stdout":
            return logging.StreamHandler(sys.stdout)
        case "stderr":
            return logging.StreamHandler(sys.stderr)
        case path:
            try:
                human_path = Path(path)
                human_path.parent.mkdir(parents=True, exist_ok=True)
                return logging.FileHandler(human_path, mode="a")
            except OSError as e:
                print(f"Warning: Failed to create human log file {path}: {e}", file=sys.stderr)
                return logging.StreamHandler(sys.stdout)


class BridgeLogger:
    """Module logger whose records flow to the package's shared handlers."""

    def __init__(
        self,
        name: str,
        log_format: str = "human",
        json_file: str | Path | None = None,
        human_output: str | None = "stdout",
    ) -> None:
        """Initialize BridgeLogger.

        Args:
            name: Logger name (typically module name)
            log_format: Output format - "json", "human", or "both"
            json_file: Path for JSON output file (None to disable file output)
            human_output: "stdout", "stderr", or file path for human-readable output

        """
        self.name: str = name
        self.logger: logging.Logger = logging.getLogger(name)
        self.log_format: str = log_format
        # handlers are shared per top-level package
        self.root: logging.Logger = logging.getLogger(name.partition(".")[0])

        if not self.root.handlers:
            from actuator_bridge.const import BRIDGE_DEBUG

            self.root.setLevel(logging.DEBUG if BRIDGE_DEBUG else logging.INFO)
            self.root.propagate = False
            self._configure_handlers(json_file, human_output)

    def _configure_handlers(self, json_file: str | Path | None, human_output: str | None) -> None:
        handlers: list[logging.Handler] = []

        if self.log_format in ("json", "both") and json_file:
            try:
                json_path = Path(json_file)
                json_path.parent.mkdir(parents=True, exist_ok=True)
                json_handler = logging.FileHandler(json_path, mode="a")
                json_handler.setFormatter(JSONFormatter())
                handlers.append(json_handler)
            except OSError as e:
                print(f"Warning: Failed to create JSON log file {json_file}: {e}", file=sys.stderr)

        if self.log_format in ("human", "both"):
            human_handler = _human_handler(human_output)
            human_handler.setFormatter(HumanReadableFormatter())
            handlers.append(human_handler)

        for handler in handlers:
            handler.setLevel(self.root.level)
            handler.addFilter(DeviceContextFilter())
            self.root.addHandler(handler)

    def _log(
        self,
        level: int,
        msg: str,
        *args: object,
        extra: Mapping[str, object] | None = None,
        exc_info: bool = False,
    ) -> None:
        extra_payload = {"extra_data": dict(extra)} if extra else None
        self.logger.log(level, msg, *args, extra=extra_payload, exc_info=exc_info, stacklevel=3)

    def debug(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.DEBUG, msg, *args, extra=extra)

    def info(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.INFO, msg, *args, extra=extra)

    def warning(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.WARNING, msg, *args, extra=extra)

    def error(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.ERROR, msg, *args, extra=extra)

    def exception(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        """Log at error level with the active exception's traceback."""
        self._log(logging.ERROR, msg, *args, extra=extra, exc_info=True)

    def set_level(self, level: int) -> None:
        """Set the level for the whole package, handlers included."""
        self.root.setLevel(level)
        for handler in self.root.handlers:
            handler.setLevel(level)

    @property
    def handlers(self) -> list[logging.Handler]:
        return self.root.handlers


def get_logger(
    name: str,
    log_format: str | None = None,
    json_file: str | Path | None = None,
    human_output: str | None = None,
) -> BridgeLogger:
    """Get or create a BridgeLogger instance.

    Output settings only apply to the first logger of a package; later
    loggers reuse its handlers.
    """
    from actuator_bridge.const import (
        BRIDGE_LOG_FORMAT,
        BRIDGE_LOG_HUMAN_OUTPUT,
        BRIDGE_LOG_JSON_FILE,
    )

    return BridgeLogger(
        name=name,
        log_format=log_format or BRIDGE_LOG_FORMAT,
        json_file=json_file or BRIDGE_LOG_JSON_FILE,
        human_output=human_output or BRIDGE_LOG_HUMAN_OUTPUT,
    )
