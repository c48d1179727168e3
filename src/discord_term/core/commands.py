"""Command registry and input dispatch.

// [LAW:one-source-of-truth] CommandRegistry is the only name→handler table;
//   /help, tab completion and dispatch all read it.
// [LAW:single-enforcer] Arity is validated in CommandRegistry.invoke(), not in handlers.
"""

from __future__ import annotations

import enum
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterator, Optional, Union

from rich.markup import escape

from discord_term.core.errors import UsageError

logger = logging.getLogger(__name__)

Handler = Callable[[list, Any], Union[None, Awaitable[None]]]


class CommandStatus(enum.Enum):
    OK = "ok"
    NOOP = "noop"
    USAGE_ERROR = "usage_error"
    UNKNOWN_COMMAND = "unknown_command"
    FAILURE = "failure"
    BLOCKED = "blocked"


@dataclass(frozen=True)
class CommandResult:
    status: CommandStatus
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status in (CommandStatus.OK, CommandStatus.NOOP)


OK = CommandResult(CommandStatus.OK)
NOOP = CommandResult(CommandStatus.NOOP)


@dataclass(frozen=True)
class Command:
    name: str
    handler: Handler
    min_args: int = 0
    usage: str = ""
    summary: str = ""


class CommandRegistry:
    """Ordered name→Command table. Registration order drives completion."""

    def __init__(self):
        self._commands: dict[str, Command] = {}

    def register(
        self,
        name: str,
        handler: Handler,
        *,
        min_args: int = 0,
        usage: str = "",
        summary: str = "",
    ) -> Command:
        if not name or " " in name:
            raise ValueError(f"invalid command name: {name!r}")
        if name in self._commands:
            raise ValueError(f"command already registered: {name}")
        command = Command(name, handler, min_args, usage, summary)
        self._commands[name] = command
        return command

    def command(self, name: str, **kwargs) -> Callable[[Handler], Handler]:
        """Decorator form of register()."""
        def _decorate(handler: Handler) -> Handler:
            self.register(name, handler, **kwargs)
            return handler
        return _decorate

    def get(self, name: str) -> Optional[Command]:
        return self._commands.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._commands

    def __iter__(self) -> Iterator[Command]:
        return iter(self._commands.values())

    def __len__(self) -> int:
        return len(self._commands)

    def names(self) -> list[str]:
        return list(self._commands)

    def first_match(self, partial: str) -> Optional[str]:
        for name in self._commands:
            if name.startswith(partial):
                return name
        return None

    async def invoke(self, name: str, args: list[str], app) -> CommandResult:
        """Validate arity and run a handler. Errors come back as results, never raised."""
        command = self._commands.get(name)
        if command is None:
            return CommandResult(CommandStatus.UNKNOWN_COMMAND, f"Unknown command: {escape(name)}")

        if len(args) < command.min_args:
            return CommandResult(CommandStatus.USAGE_ERROR, usage_line(app.options.command_prefix, command))

        try:
            outcome = command.handler(args, app)
            if inspect.isawaitable(outcome):
                await outcome
        except UsageError as e:
            return CommandResult(CommandStatus.USAGE_ERROR, str(e) or usage_line(app.options.command_prefix, command))
        except Exception as e:
            logger.exception("Command %r failed", name)
            return CommandResult(CommandStatus.FAILURE, f"Command '{escape(name)}' failed: {escape(str(e))}")
        return OK


def usage_line(prefix: str, command: Command) -> str:
    return f"Usage: {prefix}{command.name} {escape(command.usage)}".rstrip()


class CommandDispatcher:
    """Routes one line of operator input to a command or an outgoing message."""

    def __init__(self, registry: CommandRegistry, app):
        self.registry = registry
        self._app = app

    @property
    def prefix(self) -> str:
        return self._app.options.command_prefix

    def parse(self, raw: str) -> Optional[tuple[str, list[str]]]:
        """Split a substituted, prefixed line into (name, args); None if not a command."""
        if not raw.startswith(self.prefix):
            return None
        parts = raw[len(self.prefix):].split()
        if not parts:
            return "", []
        return parts[0], parts[1:]

    async def dispatch(self, raw: str) -> CommandResult:
        line = self._app.tags.substitute(raw)
        if not line:
            return NOOP

        parsed = self.parse(line)
        if parsed is None:
            return await self._app.send_message(line)

        name, args = parsed
        result = await self.registry.invoke(name, args, self._app)
        if not result.ok and result.detail:
            self._app.message.system(result.detail)
        return result

    def complete(self, raw: str) -> Optional[str]:
        """Completed input for a partial command name, or None."""
        if not raw.startswith(self.prefix):
            return None
        partial = raw[len(self.prefix):]
        if len(partial) < 2 or " " in partial:
            return None
        name = self.registry.first_match(partial)
        if name is None:
            return None
        return f"{self.prefix}{name} "
