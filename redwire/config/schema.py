"""Dataclasses for server and logging config."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Mapping

from redwire.protocol.reply import VALID_STRING_MODES


@dataclass(slots=True)
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 6379
    password: str | None = None
    db: int = 0
    connect_timeout_ms: int = 5000
    read_timeout_ms: int | None = None
    string_mode: str = "text"

    @property
    def connect_timeout_seconds(self) -> float:
        return self.connect_timeout_ms / 1000.0

    @property
    def read_timeout_seconds(self) -> float | None:
        if self.read_timeout_ms is None:
            return None
        return self.read_timeout_ms / 1000.0

    def merged(self, spec: Mapping[str, Any] | None) -> ServerConfig:
        """Overlay a partial server spec, validating the result."""
        if not spec:
            return replace(self)
        return parse_server_config(dict(spec), base=self)


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    fmt: str = "ecs_json"
    sink: str = "stdout"
    file_path: str | None = None
    service_name: str = "redwire"


@dataclass(slots=True)
class AppConfig:
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


VALID_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}
VALID_LOG_FORMATS = {"json", "ecs_json"}
VALID_LOG_SINKS = {"stdout", "file"}
SERVER_FIELDS = {
    "host",
    "port",
    "password",
    "db",
    "connect_timeout_ms",
    "read_timeout_ms",
    "string_mode",
}


def _parse_optional_timeout(raw: Any, *, field_name: str) -> int | None:
    if raw is None:
        return None
    value = int(raw)
    if value <= 0:
        raise ValueError(f"server {field_name} must be greater than zero")
    return value


def parse_server_config(data: dict[str, Any], base: ServerConfig | None = None) -> ServerConfig:
    base = base or ServerConfig()
    unknown = sorted(set(data) - SERVER_FIELDS)
    if unknown:
        raise ValueError(f"unknown server option(s): {', '.join(unknown)}")

    host = str(data.get("host", base.host)).strip()
    if not host:
        raise ValueError("server host must be non-empty")
    port = int(data.get("port", base.port))
    if port <= 0 or port > 65535:
        raise ValueError(f"invalid server port '{port}'")
    db = int(data.get("db", base.db))
    if db < 0:
        raise ValueError("server db must be zero or greater")
    connect_timeout_ms = _parse_optional_timeout(
        data.get("connect_timeout_ms", base.connect_timeout_ms),
        field_name="connect_timeout_ms",
    )
    if connect_timeout_ms is None:
        raise ValueError("server connect_timeout_ms is required")
    read_timeout_ms = _parse_optional_timeout(
        data.get("read_timeout_ms", base.read_timeout_ms),
        field_name="read_timeout_ms",
    )
    string_mode = str(data.get("string_mode", base.string_mode)).strip().lower()
    if string_mode not in VALID_STRING_MODES:
        raise ValueError(f"invalid string mode '{string_mode}'")
    password_raw = data.get("password", base.password)
    password = str(password_raw) if password_raw not in (None, "") else None

    return ServerConfig(
        host=host,
        port=port,
        password=password,
        db=db,
        connect_timeout_ms=connect_timeout_ms,
        read_timeout_ms=read_timeout_ms,
        string_mode=string_mode,
    )


def parse_config(data: Any) -> AppConfig:
    if not isinstance(data, dict):
        raise ValueError("config root must be a mapping")
    server_raw = data.get("server", {}) or {}
    if not isinstance(server_raw, dict):
        raise ValueError("'server' must be an object")
    server = parse_server_config(server_raw)

    logging_raw = data.get("logging", {}) or {}
    if not isinstance(logging_raw, dict):
        raise ValueError("'logging' must be an object")
    level = str(logging_raw.get("level", "INFO")).upper()
    if level not in VALID_LOG_LEVELS:
        raise ValueError(f"invalid log level '{level}'")
    fmt = str(logging_raw.get("format", "ecs_json"))
    if fmt not in VALID_LOG_FORMATS:
        raise ValueError(f"invalid log format '{fmt}'")
    sink = str(logging_raw.get("sink", "stdout"))
    if sink not in VALID_LOG_SINKS:
        raise ValueError(f"invalid log sink '{sink}'")
    file_path = logging_raw.get("file_path")
    logging_config = LoggingConfig(
        level=level,
        fmt=fmt,
        sink=sink,
        file_path=str(file_path) if file_path else None,
        service_name=str(logging_raw.get("service_name", "redwire")),
    )

    return AppConfig(server=server, logging=logging_config)
