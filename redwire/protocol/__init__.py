"""Wire codec: line framing, reply decoding, request encoding, command table."""

from .commands import Command, CommandRegistry, CommandSpec, invoke_command, parse_params
from .encoder import COMMAND_ENCODERS, bulk_command, encode, inline_command, sort_command
from .reply import ErrorReply, read_reply

__all__ = [
    "COMMAND_ENCODERS",
    "Command",
    "CommandRegistry",
    "CommandSpec",
    "ErrorReply",
    "bulk_command",
    "encode",
    "inline_command",
    "invoke_command",
    "parse_params",
    "read_reply",
    "sort_command",
]
