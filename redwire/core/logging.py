"""Structured ECS-style JSON logging."""

from __future__ import annotations

from datetime import UTC, datetime
import json
import logging
from pathlib import Path

from redwire.config.schema import LoggingConfig


def _strip_empty(value: object) -> object | None:
    if isinstance(value, dict):
        cleaned = {key: _strip_empty(item) for key, item in value.items()}
        return {key: item for key, item in cleaned.items() if item is not None} or None
    if isinstance(value, list):
        cleaned_list = [_strip_empty(item) for item in value]
        return [item for item in cleaned_list if item is not None] or None
    if value in ("", None):
        return None
    return value


class ECSJsonFormatter(logging.Formatter):
    def __init__(self, service_name: str = "redwire") -> None:
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, UTC).isoformat(timespec="microseconds")
        payload: dict[str, object] = {
            "@timestamp": timestamp,
            "message": record.getMessage(),
            "log": {
                "level": record.levelname.lower(),
                "logger": record.name,
            },
            "service": {
                "name": getattr(record, "service_name", self.service_name),
            },
            "event": {
                "kind": "event",
                "category": getattr(record, "event_category", "network"),
                "action": getattr(record, "event_action", None),
                "outcome": getattr(record, "event_outcome", None),
            },
            "server": {
                "address": getattr(record, "server_address", None),
                "port": getattr(record, "server_port", None),
            },
            "redwire": {
                "service": getattr(record, "service", None),
                "payload": getattr(record, "payload", None),
            },
        }
        if record.exc_info:
            payload["error"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
            }
        cleaned = _strip_empty(payload) or {}
        return json.dumps(cleaned, separators=(",", ":"), default=str)


class PlainJsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": datetime.fromtimestamp(record.created, UTC).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "payload": getattr(record, "payload", None),
        }
        return json.dumps(_strip_empty(payload) or {}, separators=(",", ":"), default=str)


def _formatter(config: LoggingConfig) -> logging.Formatter:
    if config.fmt == "json":
        return PlainJsonFormatter()
    return ECSJsonFormatter(service_name=config.service_name)


def _sink_handler(config: LoggingConfig, formatter: logging.Formatter) -> logging.Handler:
    if config.sink == "file":
        file_path = config.file_path or "logs/redwire.log"
        log_file = Path(file_path)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(log_file, encoding="utf-8")
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    return handler


def configure_logging(config: LoggingConfig, force: bool = False) -> None:
    root = logging.getLogger("redwire")
    if getattr(root, "_redwire_configured", False) and not force:
        return

    root.setLevel(config.level)
    for existing in list(root.handlers):
        existing.close()
    root.handlers.clear()
    root.addHandler(_sink_handler(config, _formatter(config)))
    root.propagate = False
    setattr(root, "_redwire_configured", True)


def get_logger(name: str, level: str = "INFO") -> logging.Logger:
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    # handlers for the package live on the "redwire" logger only, so a
    # later configure_logging call reaches loggers created before it
    if name == "redwire" or name.startswith("redwire."):
        logger.setLevel(logging.NOTSET)
        logger.propagate = True
        return logger

    handler = logging.StreamHandler()
    handler.setFormatter(ECSJsonFormatter())
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger
