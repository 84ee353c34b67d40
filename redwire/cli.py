"""CLI entry point for redwire."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any, Sequence

from redwire.catalog import default_registry
from redwire.config.loader import DEFAULT_CONFIG_PATH, initialize_config, load_config
from redwire.connection import connect
from redwire.core.logging import configure_logging
from redwire.protocol.errors import RedisError
from redwire.protocol.reply import ErrorReply


def _jsonable(value: Any) -> Any:
    if isinstance(value, ErrorReply):
        return {"error": value.message}
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="backslashreplace")
    if isinstance(value, list):
        return [_jsonable(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _jsonable(item) for key, item in value.items()}
    return value


def _add_server_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH)
    parser.add_argument("--host", type=str, default=None)
    parser.add_argument("--port", type=int, default=None)
    parser.add_argument("--db", type=int, default=None)
    parser.add_argument(
        "--binary",
        action="store_true",
        help="Keep bulk replies as raw bytes (printed with backslash escapes)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="redwire")
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser("init", help="Create starter config")
    init_parser.add_argument("--config", type=Path, default=Path("./config/redwire.yml"))
    init_parser.add_argument("--force", action="store_true")

    ping_parser = subparsers.add_parser("ping", help="Check that the server answers")
    _add_server_arguments(ping_parser)

    exec_parser = subparsers.add_parser("exec", help="Run one command and print the reply as JSON")
    _add_server_arguments(exec_parser)
    exec_parser.add_argument("name", type=str)
    exec_parser.add_argument("args", nargs="*")

    subparsers.add_parser("commands", help="List the commands in the default table")
    return parser


def _server_overrides(args: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    if args.host is not None:
        overrides["host"] = args.host
    if args.port is not None:
        overrides["port"] = args.port
    if args.db is not None:
        overrides["db"] = args.db
    if args.binary:
        overrides["string_mode"] = "binary"
    return overrides


def cmd_init(config_path: Path, force: bool) -> int:
    path = initialize_config(config_path, force=force)
    print(json.dumps({"config": str(path)}))
    return 0


def cmd_exec(args: argparse.Namespace, name: str, command_args: Sequence[str]) -> int:
    try:
        app_config = load_config(args.config)
        configure_logging(app_config.logging)
        with connect(_server_overrides(args), config=app_config.server) as connection:
            reply = connection.execute(name, *command_args)
    except (RedisError, TypeError, ValueError, FileNotFoundError) as exc:
        print(json.dumps({"error": str(exc), "type": type(exc).__name__}))
        return 1
    print(json.dumps({"command": name.upper(), "reply": _jsonable(reply)}))
    return 1 if isinstance(reply, ErrorReply) else 0


def cmd_commands() -> int:
    registry = default_registry()
    rows = []
    for name in registry.names():
        spec = registry.get(name).spec
        rows.append(
            {
                "name": spec.wire_name,
                "params": [*spec.fixed, *([f"*{spec.rest}"] if spec.rest else [])],
                "strategy": spec.strategy,
            }
        )
    print(json.dumps(rows, indent=2))
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "init":
        return cmd_init(args.config, args.force)
    if args.command == "ping":
        return cmd_exec(args, "ping", [])
    if args.command == "exec":
        return cmd_exec(args, args.name, args.args)
    if args.command == "commands":
        return cmd_commands()
    parser.error(f"unknown command: {args.command}")
    return 2
