from __future__ import annotations

from fnmatch import fnmatch
import socketserver
import threading
from typing import Any, BinaryIO, Iterator

import pytest

from redwire.config.schema import LoggingConfig
from redwire.core.logging import configure_logging


class _ThreadingTCPServer(socketserver.ThreadingMixIn, socketserver.TCPServer):
    daemon_threads = True
    allow_reuse_address = True


class FakeRedis:
    """In-process server speaking the inline/bulk request forms.

    ``script`` maps an uppercase command name to raw reply bytes that are
    sent instead of the built-in behaviour.
    """

    BULK_COMMANDS = {
        "APPEND",
        "ECHO",
        "GETSET",
        "LPUSH",
        "LREM",
        "LSET",
        "RPUSH",
        "SADD",
        "SET",
        "SETNX",
        "SISMEMBER",
        "SMOVE",
        "SREM",
    }

    def __init__(self, password: str | None = None) -> None:
        self.password = password
        self.requests: list[bytes] = []
        self.commands: list[list[Any]] = []
        self.script: dict[str, bytes] = {}
        self.store: dict[str, Any] = {}
        self.selected_db = 0
        self.connections = 0
        self.disconnections = 0
        self._lock = threading.Lock()
        self._server = _ThreadingTCPServer(("127.0.0.1", 0), self._build_handler())
        self.host = "127.0.0.1"
        self.port = int(self._server.server_address[1])
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._server.shutdown()
        self._server.server_close()
        self._thread.join(timeout=1.0)

    @property
    def spec(self) -> dict[str, Any]:
        return {"host": self.host, "port": self.port, "connect_timeout_ms": 2000, "read_timeout_ms": 2000}

    def _build_handler(self) -> type[socketserver.StreamRequestHandler]:
        fake = self

        class Handler(socketserver.StreamRequestHandler):
            def handle(self) -> None:
                with fake._lock:
                    fake.connections += 1
                try:
                    while True:
                        request = fake._read_request(self.rfile)
                        if request is None:
                            return
                        raw, name, args = request
                        with fake._lock:
                            fake.requests.append(raw)
                            fake.commands.append([name, *args])
                            reply = fake.script.get(name)
                            if reply is None:
                                reply = fake._execute(name, args)
                        self.wfile.write(reply)
                        self.wfile.flush()
                        if name == "QUIT":
                            return
                finally:
                    with fake._lock:
                        fake.disconnections += 1

        return Handler

    def _read_request(self, stream: BinaryIO) -> tuple[bytes, str, list[bytes]] | None:
        line = stream.readline()
        if not line or not line.endswith(b"\r\n"):
            return None
        tokens = line[:-2].split(b" ")
        name = tokens[0].decode("utf-8").upper()
        args = tokens[1:]
        raw = line
        if name in self.BULK_COMMANDS and args:
            length = int(args[-1])
            payload = stream.read(length)
            terminator = stream.read(2)
            raw += payload + terminator
            args = args[:-1] + [payload]
        return raw, name, args

    @staticmethod
    def _bulk(value: bytes | None) -> bytes:
        if value is None:
            return b"$-1\r\n"
        return b"$" + str(len(value)).encode() + b"\r\n" + value + b"\r\n"

    @classmethod
    def _array(cls, items: list[bytes] | None) -> bytes:
        if items is None:
            return b"*-1\r\n"
        return b"*" + str(len(items)).encode() + b"\r\n" + b"".join(cls._bulk(item) for item in items)

    def _execute(self, name: str, args: list[bytes]) -> bytes:
        keys = [arg.decode("utf-8", errors="replace") for arg in args]
        if name == "PING":
            return b"+PONG\r\n"
        if name == "QUIT":
            return b"+OK\r\n"
        if name == "AUTH":
            if self.password is not None and args and args[0].decode() == self.password:
                return b"+OK\r\n"
            return b"-ERR invalid password\r\n"
        if name == "SELECT":
            self.selected_db = int(keys[0])
            return b"+OK\r\n"
        if name == "ECHO":
            return self._bulk(args[0])
        if name == "SET":
            self.store[keys[0]] = args[1]
            return b"+OK\r\n"
        if name == "SETNX":
            if keys[0] in self.store:
                return b":0\r\n"
            self.store[keys[0]] = args[1]
            return b":1\r\n"
        if name == "GET":
            value = self.store.get(keys[0])
            if value is not None and not isinstance(value, bytes):
                return b"-ERR Operation against a key holding the wrong kind of value\r\n"
            return self._bulk(value)
        if name == "EXISTS":
            return b":1\r\n" if keys[0] in self.store else b":0\r\n"
        if name == "DEL":
            removed = sum(1 for key in keys if self.store.pop(key, None) is not None)
            return f":{removed}\r\n".encode()
        if name == "INCR":
            value = int(self.store.get(keys[0], b"0")) + 1
            self.store[keys[0]] = str(value).encode()
            return f":{value}\r\n".encode()
        if name == "KEYS":
            matched = sorted(key for key in self.store if fnmatch(key, keys[0]))
            return self._bulk(" ".join(matched).encode())
        if name == "MGET":
            return self._array([self.store.get(key) for key in keys])
        if name == "RPUSH":
            self.store.setdefault(keys[0], []).append(args[1])
            return f":{len(self.store[keys[0]])}\r\n".encode()
        if name == "LRANGE":
            values = self.store.get(keys[0], [])
            start, end = int(keys[1]), int(keys[2])
            stop = len(values) if end == -1 else end + 1
            return self._array(values[start:stop])
        if name == "SADD":
            members = self.store.setdefault(keys[0], set())
            added = args[1] not in members
            members.add(args[1])
            return b":1\r\n" if added else b":0\r\n"
        if name == "SMEMBERS":
            return self._array(sorted(self.store.get(keys[0], set())))
        if name == "SORT":
            values = list(self.store.get(keys[0], []))
            ordered = sorted(values, key=lambda item: float(item), reverse="DESC" in keys[1:])
            return self._array(ordered)
        if name == "INFO":
            return self._bulk(b"# Server\r\nredis_version:1.2.6\r\nconnected_clients:1\r\n")
        if name == "DBSIZE":
            return f":{len(self.store)}\r\n".encode()
        return f"-ERR unknown command '{name}'\r\n".encode()


@pytest.fixture(autouse=True)
def _file_logging(tmp_path) -> None:
    # keep handlers off pytest capture streams that close between tests
    configure_logging(
        LoggingConfig(level="DEBUG", sink="file", file_path=str(tmp_path / "redwire.log")),
        force=True,
    )


@pytest.fixture
def fake_redis() -> Iterator[FakeRedis]:
    server = FakeRedis()
    server.start()
    try:
        yield server
    finally:
        server.stop()


@pytest.fixture
def fake_redis_with_password() -> Iterator[FakeRedis]:
    server = FakeRedis(password="hunter2")
    server.start()
    try:
        yield server
    finally:
        server.stop()
