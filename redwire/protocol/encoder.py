"""Request encoders: inline, bulk and the SORT option composer."""

from __future__ import annotations

from typing import Any, Callable, Sequence

from redwire.protocol.errors import InvalidCommand
from redwire.protocol.framing import CRLF

# keyword -> number of operands that follow it
SORT_OPTIONS = {
    "by": 1,
    "limit": 2,
    "get": 1,
    "store": 1,
    "alpha": 0,
    "asc": 0,
    "desc": 0,
}


def _token(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    return str(value).encode("utf-8")


def _join(tokens: Sequence[Any]) -> bytes:
    return b" ".join(_token(token) for token in tokens)


def inline_command(name: str, *args: Any) -> bytes:
    """``NAME arg1 arg2 ...\\r\\n``; not binary safe."""
    return _join([name, *args]) + CRLF


def bulk_command(name: str, *args: Any) -> bytes:
    """``NAME arg1 ... <len>\\r\\n<payload>\\r\\n`` with the last arg as payload."""
    if not args:
        raise InvalidCommand(
            InvalidCommand.MISSING_PAYLOAD,
            f"bulk command '{name}' requires a payload argument",
        )
    payload = _token(args[-1])
    header = _join([name, *args[:-1], len(payload)])
    return b"".join([header, CRLF, payload, CRLF])


def _sort_keyword(option: Any) -> str:
    if isinstance(option, (bytes, bytearray)):
        option = bytes(option).decode("utf-8", errors="replace")
    return str(option).strip().lstrip(":").lower()


def sort_options(options: Sequence[Any]) -> list[Any]:
    """Translate a flat keyword/operand list into SORT wire tokens."""
    tokens: list[Any] = []
    index = 0
    while index < len(options):
        keyword = _sort_keyword(options[index])
        arity = SORT_OPTIONS.get(keyword)
        if arity is None:
            raise InvalidCommand(
                InvalidCommand.UNKNOWN_SORT_OPTION,
                f"error parsing SORT arguments: unknown argument: {options[index]!r}",
            )
        operands = list(options[index + 1 : index + 1 + arity])
        if len(operands) < arity:
            raise InvalidCommand(
                InvalidCommand.INCOMPLETE_SORT_OPTION,
                f"SORT option '{keyword}' expects {arity} argument(s), got {len(operands)}",
            )
        tokens.append(keyword.upper())
        tokens.extend(operands)
        index += 1 + arity
    return tokens


def sort_command(name: str, *args: Any) -> bytes:
    """``SORT key [BY ..] [LIMIT ..] [GET ..] [STORE ..] [ALPHA] [ASC|DESC]``."""
    if name != "SORT":
        raise InvalidCommand(
            InvalidCommand.WRONG_COMMAND_NAME,
            f"sort command name must be 'SORT', got '{name}'",
        )
    if not args:
        raise InvalidCommand(InvalidCommand.INCOMPLETE_SORT_OPTION, "SORT requires a key")
    key, options = args[0], args[1:]
    return _join(["SORT", key, *sort_options(options)]) + CRLF


COMMAND_ENCODERS: dict[str, Callable[..., bytes]] = {
    "inline": inline_command,
    "bulk": bulk_command,
    "sort": sort_command,
}


def encode(strategy: str, name: str, args: Sequence[Any] = ()) -> bytes:
    encoder = COMMAND_ENCODERS.get(strategy)
    if encoder is None:
        raise InvalidCommand(
            InvalidCommand.UNKNOWN_STRATEGY,
            f"unknown encoding strategy '{strategy}'",
        )
    return encoder(name, *args)
