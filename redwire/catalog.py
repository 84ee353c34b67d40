"""Default command table.

Each row is ``(name, params, strategy[, reply_fn])``; ``params`` names the
fixed arguments and an optional trailing ``*rest`` collector.
"""

from __future__ import annotations

from typing import Any

from redwire.protocol.commands import CommandRegistry
from redwire.protocol.reply import ErrorReply


def int_to_bool(reply: Any) -> Any:
    if isinstance(reply, int) and not isinstance(reply, bool):
        return reply == 1
    return reply


def string_to_seq(reply: Any) -> Any:
    """Split a space separated bulk reply (old-style KEYS) into a list."""
    if isinstance(reply, ErrorReply) or reply is None:
        return reply
    if isinstance(reply, list):
        return reply
    if isinstance(reply, bytes):
        return reply.split()
    return str(reply).split()


def string_to_map(reply: Any) -> Any:
    """Parse INFO's ``field:value`` lines into a dict; comments are skipped."""
    if isinstance(reply, ErrorReply) or reply is None:
        return reply
    text = reply.decode("utf-8", errors="replace") if isinstance(reply, bytes) else str(reply)
    info: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        field, sep, value = line.partition(":")
        if sep:
            info[field] = value
    return info


def status_ok(reply: Any) -> Any:
    if isinstance(reply, ErrorReply):
        return reply
    return reply == "OK"


COMMANDS: list[tuple[Any, ...]] = [
    # connection
    ("auth", ["password"], "inline", status_ok),
    ("quit", [], "inline"),
    ("ping", [], "inline"),
    ("echo", ["message"], "bulk"),
    ("select", ["index"], "inline", status_ok),
    # keys
    ("exists", ["key"], "inline", int_to_bool),
    ("del", ["*keys"], "inline"),
    ("type", ["key"], "inline"),
    ("keys", ["pattern"], "inline", string_to_seq),
    ("randomkey", [], "inline"),
    ("rename", ["oldkey", "newkey"], "inline", status_ok),
    ("renamenx", ["oldkey", "newkey"], "inline", int_to_bool),
    ("dbsize", [], "inline"),
    ("expire", ["key", "seconds"], "inline", int_to_bool),
    ("ttl", ["key"], "inline"),
    ("move", ["key", "dbindex"], "inline", int_to_bool),
    # strings
    ("set", ["key", "value"], "bulk", status_ok),
    ("get", ["key"], "inline"),
    ("getset", ["key", "value"], "bulk"),
    ("setnx", ["key", "value"], "bulk", int_to_bool),
    ("append", ["key", "value"], "bulk"),
    ("incr", ["key"], "inline"),
    ("incrby", ["key", "increment"], "inline"),
    ("decr", ["key"], "inline"),
    ("decrby", ["key", "decrement"], "inline"),
    ("mget", ["key", "*keys"], "inline"),
    # lists
    ("rpush", ["key", "value"], "bulk"),
    ("lpush", ["key", "value"], "bulk"),
    ("llen", ["key"], "inline"),
    ("lrange", ["key", "start", "end"], "inline"),
    ("ltrim", ["key", "start", "end"], "inline", status_ok),
    ("lindex", ["key", "index"], "inline"),
    ("lset", ["key", "index", "value"], "bulk", status_ok),
    ("lrem", ["key", "count", "value"], "bulk"),
    ("lpop", ["key"], "inline"),
    ("rpop", ["key"], "inline"),
    # sets
    ("sadd", ["key", "member"], "bulk", int_to_bool),
    ("srem", ["key", "member"], "bulk", int_to_bool),
    ("spop", ["key"], "inline"),
    ("smove", ["srckey", "destkey", "member"], "bulk", int_to_bool),
    ("scard", ["key"], "inline"),
    ("sismember", ["key", "member"], "bulk", int_to_bool),
    ("sinter", ["key", "*keys"], "inline"),
    ("sinterstore", ["destkey", "key", "*keys"], "inline"),
    ("sunion", ["key", "*keys"], "inline"),
    ("sunionstore", ["destkey", "key", "*keys"], "inline"),
    ("sdiff", ["key", "*keys"], "inline"),
    ("sdiffstore", ["destkey", "key", "*keys"], "inline"),
    ("smembers", ["key"], "inline"),
    # sorting
    ("sort", ["key", "*options"], "sort"),
    # persistence and server
    ("save", [], "inline", status_ok),
    ("bgsave", [], "inline"),
    ("lastsave", [], "inline"),
    ("flushdb", [], "inline", status_ok),
    ("flushall", [], "inline", status_ok),
    ("info", [], "inline", string_to_map),
]


def default_registry() -> CommandRegistry:
    registry = CommandRegistry()
    registry.define_many(COMMANDS)
    return registry
