"""A small interactive command loop driven by whitespace-separated tokens."""

from __future__ import annotations

import sys
from abc import ABC, abstractmethod
from collections import deque
from typing import Any, Deque, Dict, Optional, TextIO

from bearpe.util import CustomError

PROMPT = "$ "


class CommandError(CustomError):
    """Raised when the command loop is misused."""


class CmdContext:
    """State shared by commands: the streams and whether the loop should stop."""

    def __init__(self, stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None,
                 stderr: Optional[TextIO] = None):
        self.stdin = stdin if stdin is not None else sys.stdin
        self.stdout = stdout if stdout is not None else sys.stdout
        self.stderr = stderr if stderr is not None else sys.stderr
        self.end_processing = False
        self._pending: Deque[str] = deque()

    def stop_processing(self) -> None:
        """Ask the command loop to finish."""
        self.end_processing = True

    def read_token(self) -> Optional[str]:
        """Next whitespace-separated token from the input, or None at its end."""
        while not self._pending:
            line = self.stdin.readline()
            if not line:
                return None
            self._pending.extend(line.split())
        return self._pending.popleft()


class Command(ABC):
    """An action run by name from the command loop."""

    def __init__(self, description: str = ""):
        self.description = description

    def fetch_params(self, line: str) -> Any:
        """Arguments following the command name in ``line``, or None if there are none."""
        args = line.split()[1:]
        return args or None

    @abstractmethod
    def execute(self, params: Any, context: Optional[CmdContext]) -> None:
        """Run the command."""


class QuitCommand(Command):
    """Stops the command loop."""

    def __init__(self):
        super().__init__("Quit")

    def execute(self, params: Any, context: Optional[CmdContext]) -> None:
        if context is None:
            return
        context.stop_processing()


class Commander:
    """Reads command names and runs the matching commands until told to stop."""

    def __init__(self, context: Optional[CmdContext]):
        if context is None:
            raise CommandError("Uninitialized commander context!")
        self.context = context
        self.commands: Dict[str, Command] = {}
        self.add_command("q", QuitCommand())

    def add_command(self, name: str, command: Command, overwrite: bool = True) -> bool:
        """Register ``command`` under ``name``; False if taken and not overwriting."""
        if name in self.commands and not overwrite:
            return False
        self.commands[name] = command
        return True

    def get_command(self, line: str) -> Optional[Command]:
        """The command named by ``line``, or None after reporting it is unknown."""
        command = self.commands.get(line)
        if command is None:
            print("No such command", file=self.context.stderr)
        return command

    def print_help(self) -> None:
        """List the available commands in name order."""
        out = self.context.stdout
        print(f"Available commands: {len(self.commands)}", file=out)
        for name in sorted(self.commands):
            command = self.commands[name]
            if command is None:
                continue
            print(f"{name} \t- {command.description}", file=out)

    def parse_commands(self) -> None:
        """Run the main loop until a command stops it or the input ends."""
        while True:
            if self.context is None:
                raise CommandError("Uninitialized commander context!")
            if self.context.end_processing:
                break
            out = self.context.stdout
            out.write(PROMPT)
            out.flush()
            line = self.context.read_token()
            if line is None:
                self.context.stop_processing()
                break
            command = self.get_command(line)
            if command is None:
                self.print_help()
                continue
            try:
                params = command.fetch_params(line)
                command.execute(params, self.context)
            except CustomError as exc:
                print(f"ERROR: {exc}", file=self.context.stderr)