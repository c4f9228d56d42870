"""
CommandRegistry - Interactive console commands

Bounded Context: Operator command registration and dispatch
Responsibilities:
  - Register console commands (and short aliases) with handlers
  - Parse an input line into command + arguments
  - Reject unknown commands before anything runs
  - Render help text

Threading: Registration is lock-protected; dispatch reads a snapshot
Pattern: Registry with explicit registration
"""

import shlex
import threading
from typing import Any, Callable, Dict, List, Optional, Sequence, Set, Tuple


class CommandNotAvailableError(Exception):
    """Raised when attempting to execute an unregistered command"""
    pass


def parse_command_line(line: str) -> Tuple[str, List[str]]:
    """
    Split an operator input line.

    Returns:
        (command, args) with the command lowercased; ("", []) for blank input

    Raises:
        ValueError: Unbalanced quotes
    """
    parts = shlex.split(line)
    if not parts:
        return "", []
    return parts[0].lower(), parts[1:]


class CommandRegistry:
    """
    Registry for operator commands with explicit registration.

    Handlers are called with the positional string arguments that followed
    the command on the input line; their return value is handed back to the
    caller of execute().

    Example:
        registry = CommandRegistry()
        registry.register('pause', client.pause_streaming, "Pause processing", aliases=('p',))
        registry.register('download', lambda fmt='json': client.download_results(fmt),
                          "Download results [json|csv]")

        try:
            registry.execute_line("download csv")
        except CommandNotAvailableError as e:
            print(e)
    """

    def __init__(self):
        self._commands: Dict[str, Callable[..., Any]] = {}
        self._descriptions: Dict[str, str] = {}
        self._aliases: Dict[str, str] = {}
        self._lock = threading.Lock()

    def register(
        self,
        command: str,
        handler: Callable[..., Any],
        description: str,
        aliases: Sequence[str] = (),
    ) -> None:
        """
        Register a command with its handler function.

        Args:
            command: Command name (lowercase, no spaces)
            handler: Callable receiving the command's string arguments
            description: One-line help text
            aliases: Alternative short names

        Raises:
            ValueError: Name or alias already taken, or name malformed
        """
        names = [command, *aliases]
        for name in names:
            if not name or name != name.lower() or any(c.isspace() for c in name):
                raise ValueError(f"Invalid command name '{name}'")
        if not callable(handler):
            raise TypeError(f"Handler for '{command}' must be callable")

        with self._lock:
            for name in names:
                if name in self._commands or name in self._aliases:
                    raise ValueError(f"Command '{name}' already registered")

            self._commands[command] = handler
            self._descriptions[command] = description
            for alias in aliases:
                self._aliases[alias] = command

    def resolve(self, command: str) -> Optional[str]:
        """Canonical name for a command or alias, None if unknown."""
        if command in self._commands:
            return command
        return self._aliases.get(command)

    def execute(self, command: str, args: Sequence[str] = ()) -> Any:
        """
        Execute a registered command.

        Raises:
            CommandNotAvailableError: If command not registered
            TypeError: If the handler does not accept the given arguments
        """
        name = self.resolve(command)
        if name is None:
            raise CommandNotAvailableError(
                f"Command '{command}' not available. "
                f"Available commands: {', '.join(sorted(self.available_commands))}"
            )
        return self._commands[name](*args)

    def execute_line(self, line: str) -> Any:
        """Parse and execute one input line; blank lines do nothing."""
        command, args = parse_command_line(line)
        if not command:
            return None
        return self.execute(command, args)

    def is_available(self, command: str) -> bool:
        return self.resolve(command) is not None

    @property
    def available_commands(self) -> Set[str]:
        """Canonical command names (snapshot)."""
        return set(self._commands.keys())

    def get_help(self) -> Dict[str, str]:
        """Command → description (snapshot)."""
        return dict(self._descriptions)

    def format_help(self) -> str:
        """Aligned help listing, aliases in brackets."""
        aliases_by_command: Dict[str, List[str]] = {}
        for alias, command in self._aliases.items():
            aliases_by_command.setdefault(command, []).append(alias)

        rows = []
        for command in sorted(self._descriptions):
            alias_text = ",".join(sorted(aliases_by_command.get(command, [])))
            label = f"{command} [{alias_text}]" if alias_text else command
            rows.append((label, self._descriptions[command]))

        width = max((len(label) for label, _ in rows), default=0)
        return "\n".join(f"  {label.ljust(width)}  {text}" for label, text in rows)

    def count(self) -> int:
        return len(self._commands)
