"""Posh Runtime — value model, scopes, command contract and built-in commands."""

import logging

from posh_runtime.commands import (
    Command,
    CommandContext,
    CommandRegistry,
    FunctionCommand,
    ScriptBlockInvoker,
    command,
)
from posh_runtime.config import get_config, get_setting
from posh_runtime.data import DATA_COMMANDS
from posh_runtime.pipeline import PIPELINE_COMMANDS
from posh_runtime.scope import Scope, ScopeStack
from posh_runtime.types import PoshFunction, PoshObject, ScriptBlock, display
from posh_runtime.exceptions import (
    PoshRuntimeError,
    UndefinedVariableError,
    UndefinedCommandError,
    TypeMismatchError,
    DivisionByZeroError,
    InvalidOperationError,
    InvalidPropertyAccessError,
    ReturnOutsideFunctionError,
    CallDepthExceededError,
)

logger = logging.getLogger(__name__)

BUILTIN_COMMANDS = PIPELINE_COMMANDS + DATA_COMMANDS


def register_builtins(registry: CommandRegistry, disabled=()) -> CommandRegistry:
    """Register every built-in command whose name is not in *disabled*."""
    skip = {name.casefold() for name in disabled}
    for cmd in BUILTIN_COMMANDS:
        if cmd.name.casefold() in skip:
            logger.warning("command %s is disabled by configuration", cmd.name)
            continue
        registry.register(cmd)
    return registry


def default_registry() -> CommandRegistry:
    """A registry with the built-ins, honouring ``commands.disabled`` from posh.config."""
    disabled = get_setting("commands.disabled", []) or []
    return register_builtins(CommandRegistry(), disabled)


__all__ = [
    "Command", "CommandContext", "CommandRegistry", "FunctionCommand",
    "ScriptBlockInvoker", "command", "register_builtins", "default_registry",
    "BUILTIN_COMMANDS", "get_config", "get_setting", "Scope", "ScopeStack",
    "PoshFunction", "PoshObject", "ScriptBlock", "display",
    "PoshRuntimeError", "UndefinedVariableError", "UndefinedCommandError",
    "TypeMismatchError", "DivisionByZeroError", "InvalidOperationError",
    "InvalidPropertyAccessError", "ReturnOutsideFunctionError", "CallDepthExceededError",
]
