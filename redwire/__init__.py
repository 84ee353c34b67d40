"""Client for the Redis wire protocol."""

from .catalog import default_registry
from .config.schema import ServerConfig
from .connection import Connection, connect, with_server
from .protocol.commands import CommandRegistry, CommandSpec, invoke_command
from .protocol.errors import ConnectionError, InvalidCommand, NotConnected, ProtocolError, RedisError
from .protocol.reply import ErrorReply, read_reply

__all__ = [
    "CommandRegistry",
    "CommandSpec",
    "Connection",
    "ConnectionError",
    "ErrorReply",
    "InvalidCommand",
    "NotConnected",
    "ProtocolError",
    "RedisError",
    "ServerConfig",
    "connect",
    "default_registry",
    "invoke_command",
    "read_reply",
    "with_server",
]
