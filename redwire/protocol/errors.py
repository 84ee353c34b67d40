"""Error taxonomy for the Redis wire client."""

from __future__ import annotations


class RedisError(RuntimeError):
    """Base error for every failure raised by redwire."""


class ConnectionError(RedisError):  # noqa: A001
    """The socket could not be opened, authenticated or selected."""


class NotConnected(RedisError):
    """A command was issued on a connection that is not open."""

    def __init__(self, message: str = "not connected to a Redis server") -> None:
        super().__init__(message)


class ProtocolError(RedisError):
    """The server sent bytes that do not frame as a valid reply.

    The stream position is undefined afterwards, so the connection that
    produced the error must not be reused.
    """

    UNEXPECTED_EOF = "unexpected_eof"
    UNKNOWN_REPLY_TYPE = "unknown_reply_type"
    MALFORMED_INTEGER = "malformed_integer"
    MALFORMED_BULK = "malformed_bulk"
    LINE_TOO_LONG = "line_too_long"

    def __init__(self, kind: str, message: str) -> None:
        super().__init__(message)
        self.kind = kind


class InvalidCommand(RedisError):
    """The caller built a command that cannot be encoded; nothing was sent."""

    WRONG_COMMAND_NAME = "wrong_command_name"
    UNKNOWN_SORT_OPTION = "unknown_sort_option"
    INCOMPLETE_SORT_OPTION = "incomplete_sort_option"
    MISSING_PAYLOAD = "missing_payload"
    UNKNOWN_STRATEGY = "unknown_strategy"
    UNKNOWN_COMMAND = "unknown_command"

    def __init__(self, kind: str, message: str) -> None:
        super().__init__(message)
        self.kind = kind
