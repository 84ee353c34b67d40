"""Reply decoding for the Redis wire protocol."""

from __future__ import annotations

import re
from typing import Any, BinaryIO, Callable

from redwire.protocol.errors import ProtocolError
from redwire.protocol.framing import CRLF, read_exact, read_line_text

ERROR_PREFIX = "Server error: "
VALID_STRING_MODES = {"text", "binary"}
_INTEGER_RE = re.compile(r"[+-]?[0-9]+")


class ErrorReply(str):
    """Error reply returned as a value.

    Compares and prints as ``"Server error: <message>"``; ``message`` keeps
    the text exactly as the server sent it.
    """

    message: str

    def __new__(cls, message: str) -> ErrorReply:
        value = super().__new__(cls, f"{ERROR_PREFIX}{message}")
        value.message = message
        return value

    def __getnewargs__(self) -> tuple[str]:
        return (self.message,)


def _parse_int(line: str, *, what: str) -> int:
    # int() alone would also take "1_000" and non-ASCII digits
    text = line.strip()
    if not _INTEGER_RE.fullmatch(text):
        raise ProtocolError(ProtocolError.MALFORMED_INTEGER, f"malformed {what}: {line!r}")
    return int(text)


def _read_error(stream: BinaryIO, string_mode: str) -> ErrorReply:
    return ErrorReply(read_line_text(stream))


def _read_status(stream: BinaryIO, string_mode: str) -> str:
    return read_line_text(stream)


def _read_integer(stream: BinaryIO, string_mode: str) -> int:
    return _parse_int(read_line_text(stream), what="integer reply")


def _read_bulk(stream: BinaryIO, string_mode: str) -> str | bytes | None:
    length = _parse_int(read_line_text(stream), what="bulk length")
    if length < 0:
        return None
    payload = read_exact(stream, length)
    terminator = read_exact(stream, 2)
    if terminator != CRLF:
        raise ProtocolError(
            ProtocolError.MALFORMED_BULK,
            f"bulk payload of {length} bytes not followed by CR/LF",
        )
    if string_mode == "binary":
        return payload
    return payload.decode("utf-8", errors="replace")


def _read_multi_bulk(stream: BinaryIO, string_mode: str) -> list[Any] | None:
    count = _parse_int(read_line_text(stream), what="multi-bulk count")
    if count < 0:
        return None
    return [read_reply(stream, string_mode=string_mode) for _ in range(count)]


_REPLY_READERS: dict[bytes, Callable[[BinaryIO, str], Any]] = {
    b"-": _read_error,
    b"+": _read_status,
    b":": _read_integer,
    b"$": _read_bulk,
    b"*": _read_multi_bulk,
}


def read_reply(stream: BinaryIO, *, string_mode: str = "text") -> Any:
    """Decode exactly one reply from ``stream``.

    Bulk payloads surface as ``str`` in text mode and ``bytes`` in binary
    mode. Nil bulk and nil multi-bulk replies decode to ``None``.
    """
    if string_mode not in VALID_STRING_MODES:
        raise ValueError(f"invalid string mode '{string_mode}'")
    tag = stream.read(1)
    if not tag:
        raise ProtocolError(ProtocolError.UNEXPECTED_EOF, "EOF reached before reply type")
    reader = _REPLY_READERS.get(tag)
    if reader is None:
        raise ProtocolError(ProtocolError.UNKNOWN_REPLY_TYPE, f"unknown reply type: {tag!r}")
    return reader(stream, string_mode)

