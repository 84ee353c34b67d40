import socket
import time

import pytest

from redwire.config.schema import ServerConfig
from redwire.connection import Connection, connect, with_server
from redwire.protocol.commands import CommandRegistry
from redwire.protocol.errors import ConnectionError, NotConnected, ProtocolError
from redwire.protocol.reply import ErrorReply


def _wait_for(predicate, timeout_seconds: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout_seconds
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def _unused_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return int(sock.getsockname()[1])


def test_set_get_round_trip(fake_redis) -> None:
    with connect(fake_redis.spec) as conn:
        assert conn.execute("set", "greeting", "hello world") is True
        assert conn.execute("get", "greeting") == "hello world"
        assert conn.execute("get", "missing") is None
        assert conn.execute("exists", "greeting") is True
    assert fake_redis.requests[0] == b"SET greeting 11\r\nhello world\r\n"
    assert fake_redis.requests[1] == b"GET greeting\r\n"


def test_binary_payload_round_trip(fake_redis) -> None:
    payload = bytes([0x61, 0x0D, 0x62, 0x0A, 0x00, 0xFF])
    with connect(fake_redis.spec, string_mode="binary") as conn:
        conn.execute("set", "blob", payload)
        assert conn.execute("get", "blob") == payload


def test_multi_bulk_and_variadic_commands(fake_redis) -> None:
    with connect(fake_redis.spec) as conn:
        conn.execute("set", "a", "1")
        conn.execute("set", "b", "2")
        assert conn.execute("mget", "a", "missing", "b") == ["1", None, "2"]
        assert conn.execute("del", "a", "b", "c") == 2
        assert conn.execute("dbsize") == 0


def test_sort_command_on_the_wire(fake_redis) -> None:
    with connect(fake_redis.spec) as conn:
        for value in ("3", "10", "1"):
            conn.execute("rpush", "scores", value)
        assert conn.execute("sort", "scores", "by", "weight_*", "limit", 0, 10, "desc") == ["10", "3", "1"]
    assert fake_redis.requests[-1] == b"SORT scores BY weight_* LIMIT 0 10 DESC\r\n"


def test_error_reply_is_a_value(fake_redis) -> None:
    with connect(fake_redis.spec) as conn:
        reply = conn.execute("flushall")
        assert isinstance(reply, ErrorReply)
        assert reply.message == "ERR unknown command 'FLUSHALL'"
        assert conn.execute("ping") == "PONG"


def test_transforms_from_catalog(fake_redis) -> None:
    with connect(fake_redis.spec) as conn:
        conn.execute("set", "user:1", "x")
        conn.execute("set", "user:2", "y")
        assert conn.execute("keys", "user:*") == ["user:1", "user:2"]
        assert conn.execute("info")["redis_version"] == "1.2.6"
        assert conn.execute("sadd", "tags", "red") is True
        assert conn.execute("sadd", "tags", "red") is False
        assert conn.execute("smembers", "tags") == ["red"]


def test_custom_registry(fake_redis) -> None:
    registry = CommandRegistry()
    registry.define("echo", ["message"], "bulk", str.upper)
    with connect(fake_redis.spec, registry=registry) as conn:
        assert conn.execute("echo", "shout") == "SHOUT"


def test_socket_closed_after_normal_exit(fake_redis) -> None:
    with connect(fake_redis.spec) as conn:
        assert conn.connected
        raw_socket = conn.socket
    assert not conn.connected
    assert conn.stream is None
    assert raw_socket.fileno() == -1
    with pytest.raises(NotConnected):
        conn.execute("ping")
    assert _wait_for(lambda: fake_redis.disconnections == 1)


def test_socket_closed_after_decode_failure(fake_redis) -> None:
    fake_redis.script["GET"] = b"?garbage\r\n"
    with pytest.raises(ProtocolError) as excinfo:
        with connect(fake_redis.spec) as conn:
            conn.execute("get", "k")
    assert excinfo.value.kind == ProtocolError.UNKNOWN_REPLY_TYPE
    assert conn.socket is None and conn.stream is None
    with pytest.raises(NotConnected):
        conn.execute("get", "k")
    assert _wait_for(lambda: fake_redis.disconnections == 1)


def test_socket_closed_when_body_raises(fake_redis) -> None:
    def body(conn: Connection) -> None:
        conn.execute("ping")
        raise RuntimeError("caller failure")

    with pytest.raises(RuntimeError, match="caller failure"):
        with_server(fake_redis.spec, body)
    assert _wait_for(lambda: fake_redis.disconnections == 1)


def test_with_server_returns_body_result(fake_redis) -> None:
    result = with_server(fake_redis.spec, lambda conn: conn.execute("incr", "counter"))
    assert result == 1


def test_connection_refused() -> None:
    with pytest.raises(ConnectionError):
        with connect({"host": "127.0.0.1", "port": _unused_port(), "connect_timeout_ms": 500}):
            pass


def test_unopened_connection_is_not_connected() -> None:
    conn = Connection(ServerConfig())
    with pytest.raises(NotConnected):
        conn.send(b"PING\r\n")
    with pytest.raises(NotConnected):
        conn.read_reply()
    with pytest.raises(NotConnected):
        conn.execute("ping")
    conn.close()


def test_auth_and_select_on_open(fake_redis_with_password) -> None:
    spec = {**fake_redis_with_password.spec, "password": "hunter2", "db": 2}
    with connect(spec) as conn:
        assert conn.execute("ping") == "PONG"
    assert fake_redis_with_password.commands[0] == ["AUTH", b"hunter2"]
    assert fake_redis_with_password.commands[1] == ["SELECT", b"2"]
    assert fake_redis_with_password.selected_db == 2


def test_rejected_auth_closes_connection(fake_redis_with_password) -> None:
    spec = {**fake_redis_with_password.spec, "password": "wrong"}
    with pytest.raises(ConnectionError, match="AUTH rejected"):
        with connect(spec):
            pass
    assert _wait_for(lambda: fake_redis_with_password.disconnections == 1)


def test_connection_as_context_manager(fake_redis) -> None:
    conn = Connection(ServerConfig().merged(fake_redis.spec))
    with conn:
        assert conn.execute("ping") == "PONG"
    assert not conn.connected


def test_independent_connections_do_not_share_state(fake_redis) -> None:
    with connect(fake_redis.spec) as first, connect(fake_redis.spec) as second:
        assert first.socket is not second.socket
        first.execute("set", "k", "v")
        assert second.execute("get", "k") == "v"
    assert _wait_for(lambda: fake_redis.disconnections == 2)
