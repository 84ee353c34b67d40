"""Declarative command definitions backed by a lookup table."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Iterable, Sequence

from redwire.protocol.encoder import COMMAND_ENCODERS
from redwire.protocol.errors import InvalidCommand

if TYPE_CHECKING:
    from redwire.connection import Connection


def _identity(reply: Any) -> Any:
    return reply


def parse_params(params: Sequence[str]) -> tuple[tuple[str, ...], str | None]:
    """Split ``("key", "*values")`` into fixed names and the variadic name."""
    fixed: list[str] = []
    rest: str | None = None
    for param in params:
        name = str(param).strip()
        if rest is not None:
            raise ValueError(f"variadic parameter '*{rest}' must be the last parameter")
        if name.startswith("*"):
            rest = name[1:]
            if not rest:
                raise ValueError("variadic parameter requires a name")
            continue
        if not name:
            raise ValueError("parameter names must be non-empty")
        fixed.append(name)
    return tuple(fixed), rest


@dataclass(frozen=True, slots=True)
class CommandSpec:
    name: str
    fixed: tuple[str, ...]
    rest: str | None
    strategy: str
    reply_fn: Callable[[Any], Any] = field(default=_identity)

    @property
    def wire_name(self) -> str:
        return self.name.upper()

    def build_args(self, args: Sequence[Any]) -> list[Any]:
        """Validate call arity and splice variadic values after the fixed ones."""
        if len(args) < len(self.fixed) or (self.rest is None and len(args) > len(self.fixed)):
            expected = f"{len(self.fixed)}" if self.rest is None else f"at least {len(self.fixed)}"
            signature = ", ".join([*self.fixed, *([f"*{self.rest}"] if self.rest else [])])
            raise TypeError(
                f"{self.name}({signature}) takes {expected} argument(s) but {len(args)} were given"
            )
        return list(args)


def invoke_command(connection: Connection, spec: CommandSpec, args: Sequence[Any]) -> Any:
    """Encode ``spec`` with ``args``, send it, read one reply and transform it."""
    request = COMMAND_ENCODERS[spec.strategy](spec.wire_name, *spec.build_args(args))
    connection.send(request, command=spec.wire_name, strategy=spec.strategy)
    return spec.reply_fn(connection.read_reply())


class Command:
    """Callable bound to a :class:`CommandSpec`; takes the connection first."""

    __slots__ = ("spec",)

    def __init__(self, spec: CommandSpec) -> None:
        self.spec = spec

    def __call__(self, connection: Connection, *args: Any) -> Any:
        return invoke_command(connection, self.spec, args)

    def __repr__(self) -> str:
        return f"Command({self.spec.wire_name}, strategy={self.spec.strategy!r})"


class CommandRegistry:
    def __init__(self) -> None:
        self._commands: dict[str, Command] = {}

    def define(
        self,
        name: str,
        params: Sequence[str],
        strategy: str,
        reply_fn: Callable[[Any], Any] | None = None,
    ) -> Command:
        normalized = str(name).strip().lower()
        if not normalized:
            raise ValueError("command name must be non-empty")
        if strategy not in COMMAND_ENCODERS:
            raise InvalidCommand(
                InvalidCommand.UNKNOWN_STRATEGY,
                f"unknown encoding strategy '{strategy}' for command '{normalized}'",
            )
        fixed, rest = parse_params(params)
        command = Command(
            CommandSpec(
                name=normalized,
                fixed=fixed,
                rest=rest,
                strategy=strategy,
                reply_fn=reply_fn or _identity,
            )
        )
        self._commands[normalized] = command
        return command

    def define_many(self, rows: Iterable[tuple[Any, ...]]) -> None:
        for row in rows:
            self.define(*row)

    def get(self, name: str) -> Command:
        command = self._commands.get(str(name).strip().lower())
        if command is None:
            raise InvalidCommand(InvalidCommand.UNKNOWN_COMMAND, f"unknown command '{name}'")
        return command

    def invoke(self, connection: Connection, name: str, *args: Any) -> Any:
        return self.get(name)(connection, *args)

    def names(self) -> list[str]:
        return sorted(self._commands)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.strip().lower() in self._commands

    def __len__(self) -> int:
        return len(self._commands)
