"""Command contract, registry and the script-block capability.

A command receives a CommandContext (pipeline input, named parameters,
positional arguments) and a ScriptBlockInvoker, and returns a list of
output values.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable

from posh_runtime.exceptions import InvalidOperationError
from posh_runtime.types import CaseInsensitiveDict, ScriptBlock, display, type_name

logger = logging.getLogger(__name__)

_TRUE_WORDS = ("true", "t", "1", "yes", "y")
_FALSE_WORDS = ("false", "f", "0", "no", "n")


@dataclass
class CommandContext:
    """Per-invocation input bundle handed to a command."""
    pipeline_input: list = field(default_factory=list)
    parameters: dict[str, Any] = field(default_factory=dict)
    arguments: list = field(default_factory=list)

    def with_parameter(self, name: str, value: Any) -> "CommandContext":
        self.parameters[name] = value
        return self

    def with_arguments(self, arguments: list) -> "CommandContext":
        self.arguments = list(arguments)
        return self

    def get_parameter(self, name: str, default: Any = None) -> Any:
        """Case-insensitive named-parameter lookup."""
        if name in self.parameters:
            return self.parameters[name]
        folded = name.casefold()
        for key, value in self.parameters.items():
            if key.casefold() == folded:
                return value
        return default

    def has_parameter(self, name: str) -> bool:
        folded = name.casefold()
        return any(key.casefold() == folded for key in self.parameters)

    def get_argument(self, index: int, default: Any = None) -> Any:
        if 0 <= index < len(self.arguments):
            return self.arguments[index]
        return default

    def get_switch(self, name: str) -> bool:
        """Read a switch parameter: absent is False; strings like 'yes'/'no' accepted."""
        value = self.get_parameter(name)
        if value is None:
            return False
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return value != 0
        if isinstance(value, str):
            word = value.strip().lower()
            if word in _TRUE_WORDS:
                return True
            if word in _FALSE_WORDS:
                return False
        raise InvalidOperationError(f"Invalid boolean value for -{name}: {display(value)}")

    def get_property_names(self, name: str = "Property", use_arguments: bool = True) -> list[str]:
        """Property names from ``-Property`` or, failing that, positional strings.

        ``-Property Name, CPU`` binds only ``Name`` to the parameter; the
        names after the comma arrive as positional strings and are appended.
        """
        value = self.get_parameter(name)
        positional = [arg for arg in self.arguments if isinstance(arg, str)] if use_arguments else []
        if value is None:
            return positional
        if isinstance(value, list):
            return [item for item in value if isinstance(item, str)]
        return [display(value)] + positional


class Command(ABC):
    """A named unit of behaviour dispatched from a call or pipeline stage."""

    name: str = ""

    @abstractmethod
    def execute(self, context: CommandContext, invoker: "ScriptBlockInvoker") -> list:
        """Run the command and return its output values."""

    def __repr__(self) -> str:
        return f"<Command {self.name}>"


class FunctionCommand(Command):
    """Adapter turning a plain ``fn(context, invoker) -> list`` into a Command."""

    def __init__(self, name: str, fn: Callable[[CommandContext, "ScriptBlockInvoker"], list]) -> None:
        self.name = name
        self.fn = fn

    def execute(self, context: CommandContext, invoker: "ScriptBlockInvoker") -> list:
        return list(self.fn(context, invoker))


def command(name: str):
    """Decorator: ``@command("Write-Output")`` wraps a function as a Command."""
    def decorator(fn):
        return FunctionCommand(name, fn)
    return decorator


class CommandRegistry:
    """Case-insensitive name -> Command table. Later registrations win."""

    def __init__(self) -> None:
        self._commands: CaseInsensitiveDict = CaseInsensitiveDict()

    def register(self, cmd: Command) -> None:
        if cmd.name in self._commands:
            # Replace outright so the new command's spelling is kept
            del self._commands[cmd.name]
        self._commands[cmd.name] = cmd
        logger.debug("registered command %s", cmd.name)

    def get(self, name: str) -> Command | None:
        if name in self._commands:
            return self._commands[name]
        return None

    def contains(self, name: str) -> bool:
        return name in self._commands

    def names(self) -> list[str]:
        return sorted(self._commands)

    def __contains__(self, name: str) -> bool:
        return self.contains(name)

    def __len__(self) -> int:
        return len(self._commands)


class ScriptBlockInvoker:
    """The one capability a command gets into the evaluator.

    It can only invoke a script block with a pipeline item bound to
    ``$_``.  An invoker is live only while the command it was created
    for is executing; using it afterwards raises InvalidOperationError.
    """

    def __init__(self, evaluator) -> None:
        self._evaluator = evaluator
        self._active = False

    def __enter__(self) -> "ScriptBlockInvoker":
        self._active = True
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._active = False
        self._evaluator = None

    @property
    def active(self) -> bool:
        return self._active

    def invoke(self, block: Any, item: Any = None) -> Any:
        """Run *block* with ``$_`` bound to *item* and return its value."""
        if not self._active or self._evaluator is None:
            raise InvalidOperationError("Script block invoker used after its command returned")
        if not isinstance(block, ScriptBlock):
            raise InvalidOperationError(f"Expected a ScriptBlock, got {type_name(block)}")
        return self._evaluator.execute_script_block(block, item)
