"""Variable scopes.

A ScopeStack is an ordered list of Scope objects, index 0 being the
global scope.  Lookups walk innermost to outermost; the global scope is
never popped.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator

from posh_runtime.types import CaseInsensitiveDict

logger = logging.getLogger(__name__)

MISSING = object()

GLOBAL_QUALIFIERS = ("global", "script")
LOCAL_QUALIFIER = "local"


class Scope:
    """One case-insensitive variable environment."""

    def __init__(self) -> None:
        self.variables = CaseInsensitiveDict()

    def get(self, name: str, default: Any = None) -> Any:
        if name in self.variables:
            return self.variables[name]
        return default

    def set(self, name: str, value: Any) -> None:
        self.variables[name] = value

    def contains(self, name: str) -> bool:
        return name in self.variables

    def define(self, name: str, value: Any) -> None:
        self.variables[name] = value

    def names(self) -> list[str]:
        return list(self.variables)

    def __repr__(self) -> str:
        return f"Scope({dict(self.variables.items())!r})"


def parse_scope_qualifier(name: str) -> tuple[str | None, str]:
    """Split ``global:x`` into ``("global", "x")``.

    Unknown prefixes (``env:x``) are not qualifiers; the whole text is
    returned as the variable name.
    """
    qualifier, sep, base = name.partition(":")
    if sep and qualifier.lower() in GLOBAL_QUALIFIERS + (LOCAL_QUALIFIER,):
        return qualifier.lower(), base
    return None, name


class ScopeStack:
    """Nested scopes; the innermost is the current scope."""

    def __init__(self) -> None:
        self.scopes: list[Scope] = [Scope()]

    # -- Structure ---------------------------------------------------------

    @property
    def depth(self) -> int:
        return len(self.scopes)

    @property
    def global_scope(self) -> Scope:
        return self.scopes[0]

    @property
    def current(self) -> Scope:
        return self.scopes[-1]

    def push_scope(self) -> Scope:
        scope = Scope()
        self.scopes.append(scope)
        logger.debug("push scope (depth %d)", len(self.scopes))
        return scope

    def pop_scope(self) -> Scope | None:
        """Remove and return the innermost scope; the global scope stays."""
        if len(self.scopes) <= 1:
            return None
        scope = self.scopes.pop()
        logger.debug("pop scope (depth %d)", len(self.scopes))
        return scope

    @contextmanager
    def new_scope(self) -> Iterator[Scope]:
        """Push a scope for the duration of a ``with`` block.

        The scope is popped on every exit path, including exceptions.
        """
        scope = self.push_scope()
        try:
            yield scope
        finally:
            self.pop_scope()

    # -- Unqualified access ------------------------------------------------

    def get_variable(self, name: str, default: Any = None) -> Any:
        for scope in reversed(self.scopes):
            if scope.contains(name):
                return scope.get(name)
        return default

    def has_variable(self, name: str) -> bool:
        return any(scope.contains(name) for scope in self.scopes)

    def set_variable(self, name: str, value: Any) -> None:
        """Update the nearest existing binding, else bind in the current scope."""
        for scope in reversed(self.scopes):
            if scope.contains(name):
                scope.set(name, value)
                return
        self.current.set(name, value)

    def define_variable(self, name: str, value: Any) -> None:
        """Bind in the current scope, shadowing any outer binding."""
        self.current.define(name, value)

    # -- Qualified access --------------------------------------------------

    def _target_scope(self, qualifier: str) -> Scope:
        if qualifier in GLOBAL_QUALIFIERS:
            return self.global_scope
        return self.current

    def get_variable_qualified(self, name: str, default: Any = None) -> Any:
        qualifier, base = parse_scope_qualifier(name)
        if qualifier is None:
            return self.get_variable(base, default)
        return self._target_scope(qualifier).get(base, default)

    def set_variable_qualified(self, name: str, value: Any) -> None:
        qualifier, base = parse_scope_qualifier(name)
        if qualifier is None:
            self.set_variable(base, value)
        else:
            self._target_scope(qualifier).set(base, value)
