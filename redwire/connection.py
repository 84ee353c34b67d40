"""Connection handle and scoped server sessions."""

from __future__ import annotations

from contextlib import contextmanager
import socket
from typing import Any, BinaryIO, Callable, Iterator, Mapping, TypeVar

from redwire.catalog import default_registry
from redwire.config.schema import ServerConfig
from redwire.core.logging import get_logger
from redwire.protocol.commands import CommandRegistry
from redwire.protocol.encoder import inline_command
from redwire.protocol.errors import ConnectionError, NotConnected, ProtocolError
from redwire.protocol.reply import ErrorReply, read_reply

T = TypeVar("T")


class Connection:
    """One socket to one server, used by one caller at a time.

    ``socket`` and ``stream`` are set together by :meth:`open` and cleared
    together by :meth:`close`.
    """

    def __init__(self, config: ServerConfig | None = None, registry: CommandRegistry | None = None) -> None:
        self.config = config or ServerConfig()
        self.logger = get_logger("redwire.connection")
        self._registry = registry
        self.socket: socket.socket | None = None
        self.stream: BinaryIO | None = None

    @property
    def registry(self) -> CommandRegistry:
        if self._registry is None:
            self._registry = default_registry()
        return self._registry

    @property
    def connected(self) -> bool:
        return self.socket is not None

    def open(self) -> Connection:
        if self.connected:
            return self
        address = (self.config.host, self.config.port)
        try:
            sock = socket.create_connection(address, timeout=self.config.connect_timeout_seconds)
        except OSError as exc:
            self.logger.warning(
                "connection failed",
                extra=self._log_extra(action="connect", outcome="failure", payload={"error": str(exc)}),
            )
            raise ConnectionError(
                f"could not connect to {self.config.host}:{self.config.port}: {exc}"
            ) from exc
        try:
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
            sock.settimeout(self.config.read_timeout_seconds)
            stream = sock.makefile("rb")
        except OSError as exc:
            sock.close()
            raise ConnectionError(f"could not configure socket: {exc}") from exc

        self.socket = sock
        self.stream = stream
        self.logger.info("connection opened", extra=self._log_extra(action="connect", outcome="success"))
        try:
            self._handshake()
        except BaseException:
            self.close()
            raise
        return self

    def _handshake(self) -> None:
        if self.config.password:
            self._setup_command("AUTH", self.config.password)
        if self.config.db:
            self._setup_command("SELECT", self.config.db)

    def _setup_command(self, name: str, *args: Any) -> None:
        self.send(inline_command(name, *args), command=name, strategy="inline")
        reply = self.read_reply()
        if isinstance(reply, ErrorReply):
            raise ConnectionError(f"{name} rejected by server: {reply.message}")

    def close(self) -> None:
        stream, sock = self.stream, self.socket
        self.stream = None
        self.socket = None
        if sock is None:
            return
        try:
            if stream is not None:
                stream.close()
        finally:
            try:
                sock.close()
            except OSError:
                pass
        self.logger.info("connection closed", extra=self._log_extra(action="disconnect"))

    def send(self, data: bytes, *, command: str | None = None, strategy: str | None = None) -> None:
        if self.socket is None:
            raise NotConnected()
        self.logger.debug(
            "command sent",
            extra=self._log_extra(
                action="command",
                payload={"command": command, "strategy": strategy, "bytes": len(data)},
            ),
        )
        try:
            self.socket.sendall(data)
        except OSError as exc:
            self.close()
            raise ConnectionError(f"write to {self.config.host}:{self.config.port} failed: {exc}") from exc

    def read_reply(self) -> Any:
        if self.stream is None:
            raise NotConnected()
        try:
            return read_reply(self.stream, string_mode=self.config.string_mode)
        except ProtocolError as exc:
            self.logger.error(
                "protocol error",
                extra=self._log_extra(action="read_reply", outcome="failure", payload={"kind": exc.kind}),
            )
            self.close()
            raise
        except OSError as exc:
            self.close()
            raise ConnectionError(f"read from {self.config.host}:{self.config.port} failed: {exc}") from exc

    def execute(self, name: str, *args: Any) -> Any:
        if not self.connected:
            raise NotConnected()
        return self.registry.invoke(self, name, *args)

    def _log_extra(
        self,
        *,
        action: str,
        outcome: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        return {
            "service": "connection",
            "event_action": action,
            "event_outcome": outcome,
            "server_address": self.config.host,
            "server_port": self.config.port,
            "payload": payload,
        }

    def __enter__(self) -> Connection:
        return self.open()

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "connected" if self.connected else "disconnected"
        return f"Connection({self.config.host}:{self.config.port}, db={self.config.db}, {state})"


@contextmanager
def connect(
    server_spec: Mapping[str, Any] | None = None,
    *,
    config: ServerConfig | None = None,
    registry: CommandRegistry | None = None,
    **overrides: Any,
) -> Iterator[Connection]:
    """Open a connection for the duration of a ``with`` block.

    ``server_spec`` and keyword overrides are merged over ``config`` (or the
    built-in defaults). The socket is closed on every exit path.
    """
    spec = dict(server_spec or {})
    spec.update(overrides)
    merged = (config or ServerConfig()).merged(spec)
    connection = Connection(merged, registry=registry)
    connection.open()
    try:
        yield connection
    finally:
        connection.close()


def with_server(
    server_spec: Mapping[str, Any] | None,
    body: Callable[[Connection], T],
    *,
    config: ServerConfig | None = None,
    registry: CommandRegistry | None = None,
) -> T:
    with connect(server_spec, config=config, registry=registry) as connection:
        return body(connection)

