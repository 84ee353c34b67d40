"""CRLF line framing over a buffered byte stream."""

from __future__ import annotations

from typing import BinaryIO

from redwire.protocol.errors import ProtocolError

CRLF = b"\r\n"
MAX_LINE_LENGTH = 64 * 1024


def read_line_crlf(stream: BinaryIO, limit: int = MAX_LINE_LENGTH) -> bytes:
    """Read until exactly a CR+LF pair and return the line without it.

    A CR that is not followed by LF, or a lone LF, is payload and stays in
    the returned line. This differs from ``readline()`` on purpose: bulk
    data may carry bare CR or LF bytes. Lines longer than ``limit`` bytes
    raise ``ProtocolError(line_too_long)``.
    """
    line = bytearray()
    while len(line) < limit + len(CRLF):
        byte = stream.read(1)
        if not byte:
            raise ProtocolError(
                ProtocolError.UNEXPECTED_EOF,
                "error reading line: EOF reached before CR/LF sequence",
            )
        line.extend(byte)
        if len(line) >= 2 and line[-2:] == CRLF:
            return bytes(line[:-2])
    raise ProtocolError(ProtocolError.LINE_TOO_LONG, f"no CR/LF within {limit} bytes")


def read_line_text(stream: BinaryIO) -> str:
    return read_line_crlf(stream).decode("utf-8", errors="replace")


def read_exact(stream: BinaryIO, count: int) -> bytes:
    """Read exactly ``count`` bytes, looping over short reads."""
    data = bytearray()
    while len(data) < count:
        chunk = stream.read(count - len(data))
        if not chunk:
            raise ProtocolError(
                ProtocolError.UNEXPECTED_EOF,
                f"EOF after {len(data)} of {count} expected bytes",
            )
        data.extend(chunk)
    return bytes(data)
