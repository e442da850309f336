from dataclasses import dataclass
from typing import Callable

from PipeShell.status import UnknownCommand


@dataclass(frozen=True)
class Command:
    """A registered command. Handlers are called as handler(io, args)."""
    name: str
    description: str
    handler: Callable
    # Run in the shell process itself when dispatched on its own (cd, exit, ...)
    in_process: bool = False

    def execute(self, io, args):
        return self.handler(io, list(args))


class CommandRegistry:
    """Name -> Command table. Read-only once the shell starts reading input."""

    def __init__(self):
        self._commands = {}

    def register(self, name, description, handler, in_process=False):
        """Store a command; an existing entry with the same name is replaced."""
        command = Command(name, description, handler, in_process)
        self._commands[name] = command
        return command

    def get(self, name):
        return self._commands.get(name)

    def resolve(self, name):
        """Return the handler registered under name, or raise UnknownCommand."""
        command = self._commands.get(name)
        if command is None:
            raise UnknownCommand(name)
        return command.handler

    def execute(self, name, io, args=()):
        command = self._commands.get(name)
        if command is None:
            raise UnknownCommand(name)
        return command.execute(io, args)

    def names(self):
        return sorted(self._commands)

    def commands(self):
        return [self._commands[name] for name in self.names()]

    def __contains__(self, name):
        return name in self._commands

    def __len__(self):
        return len(self._commands)
