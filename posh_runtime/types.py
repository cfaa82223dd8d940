"""Posh runtime value model.

Values are plain Python objects:

    Null        -> None
    Boolean     -> bool
    Number      -> float (ints coming from commands are accepted too)
    String      -> str
    Object      -> PoshObject
    Array       -> list
    Function    -> PoshFunction
    ScriptBlock -> ScriptBlock

CaseInsensitiveDict is shared by PoshObject and by variable scopes.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass, field
from typing import Any, Iterator

_MISSING = object()


class CaseInsensitiveDict(MutableMapping):
    """A mapping with case-insensitive keys.

    Entries are stored under ``key.casefold()`` together with the key
    as first written; later writes through a differently-cased key
    update the value but keep the original spelling.
    """

    def __init__(self, data=None, **kwargs) -> None:
        object.__setattr__(self, "_store", {})
        if data is not None:
            self.update(data)
        if kwargs:
            self.update(kwargs)

    def __getitem__(self, key: str) -> Any:
        return self._store[key.casefold()][1]

    def __setitem__(self, key: str, value: Any) -> None:
        folded = key.casefold()
        existing = self._store.get(folded)
        original = existing[0] if existing is not None else key
        self._store[folded] = (original, value)

    def __delitem__(self, key: str) -> None:
        del self._store[key.casefold()]

    def __iter__(self) -> Iterator[str]:
        return (original for original, _ in self._store.values())

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.casefold() in self._store

    def original_key(self, key: str) -> str | None:
        """Return the stored spelling of *key*, or None if absent."""
        entry = self._store.get(key.casefold())
        return entry[0] if entry is not None else None

    def copy(self):
        return type(self)(self)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Mapping):
            return dict(self.items()) == dict(other.items())
        return NotImplemented

    def __ne__(self, other: object) -> bool:
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    __hash__ = None  # mutable

    def __repr__(self) -> str:
        return f"{type(self).__name__}({dict(self.items())!r})"


class PoshObject(CaseInsensitiveDict):
    """An Object value: a property map that also supports attribute access."""

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self[name]
        except KeyError:
            raise AttributeError(f"No property '{name}'")

    def __setattr__(self, name, value):
        self[name] = value


@dataclass
class PoshFunction:
    """A user-defined function bound by ``function Name(...) { ... }``."""
    name: str
    params: list = field(default_factory=list)
    body: list = field(default_factory=list)


@dataclass
class ScriptBlock:
    """An anonymous block of statements used as a value."""
    body: list = field(default_factory=list)


# ---------------------------------------------------------------------------
# Coercion and formatting
# ---------------------------------------------------------------------------

def is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def type_name(value) -> str:
    """Name of the value's kind, used in error messages."""
    if value is None:
        return "Null"
    if isinstance(value, bool):
        return "Boolean"
    if is_number(value):
        return "Number"
    if isinstance(value, str):
        return "String"
    if isinstance(value, Mapping):
        return "Object"
    if isinstance(value, list):
        return "Array"
    if isinstance(value, PoshFunction):
        return "Function"
    if isinstance(value, ScriptBlock):
        return "ScriptBlock"
    return type(value).__name__


def to_bool(value) -> bool:
    """Truthiness: Null, "", 0 and @() are false; objects and blocks are true."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if is_number(value):
        return value != 0
    if isinstance(value, (str, list)):
        return len(value) > 0
    return True


def to_number(value) -> float | None:
    """Coerce to a float, or return None if the value has no numeric form."""
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if is_number(value):
        return float(value)
    if isinstance(value, str):
        if not value or "_" in value or value != value.strip():
            return None
        try:
            return float(value)
        except ValueError:
            return None
    return None


def format_number(number: float) -> str:
    if math.isfinite(number) and float(number).is_integer():
        return str(int(number))
    return str(float(number))


def display(value) -> str:
    """The display string used for output and string concatenation."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if is_number(value):
        return format_number(value)
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        parts = sorted(f"{key}={display(val)}" for key, val in value.items())
        return "@{" + "; ".join(parts) + "}"
    if isinstance(value, list):
        return "@(" + ", ".join(display(item) for item in value) + ")"
    if isinstance(value, PoshFunction):
        return value.name
    if isinstance(value, ScriptBlock):
        return "{...}"
    return str(value)


def values_equal(left, right) -> bool:
    """``-eq`` semantics: same-kind scalars only, strings case-insensitive."""
    if left is None or right is None:
        return left is None and right is None
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if is_number(left) and is_number(right):
        return float(left) == float(right)
    if isinstance(left, str) and isinstance(right, str):
        return left.casefold() == right.casefold()
    return False


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------

def get_property(value, name: str, default=_MISSING):
    """Read property *name* from *value* (case-insensitive).

    Objects expose their keys; arrays expose ``Count``/``Length`` and
    strings ``Length``.  Raises KeyError when absent and no *default*
    is given.
    """
    if isinstance(value, Mapping):
        if isinstance(value, CaseInsensitiveDict):
            if name in value:
                return value[name]
        else:
            for key, val in value.items():
                if key.casefold() == name.casefold():
                    return val
    else:
        folded = name.casefold()
        if isinstance(value, list) and folded in ("count", "length"):
            return float(len(value))
        if isinstance(value, str) and folded == "length":
            return float(len(value))
    if default is _MISSING:
        raise KeyError(name)
    return default


def set_property(value, name: str, new_value) -> None:
    """Write property *name* on an Object, keeping an existing key's casing."""
    if not isinstance(value, MutableMapping):
        raise TypeError(f"Cannot set property on {type_name(value)}")
    value[name] = new_value


def to_posh_value(obj):
    """Recursively convert JSON-like Python data into Posh values."""
    if isinstance(obj, Mapping) and not isinstance(obj, PoshObject):
        return PoshObject({str(k): to_posh_value(v) for k, v in obj.items()})
    if isinstance(obj, (list, tuple)):
        return [to_posh_value(item) for item in obj]
    if isinstance(obj, int) and not isinstance(obj, bool):
        return float(obj)
    return obj


def to_plain_value(value):
    """Convert Posh values back into plain ``dict``/``list`` data (for JSON)."""
    if isinstance(value, Mapping):
        return {key: to_plain_value(val) for key, val in value.items()}
    if isinstance(value, list):
        return [to_plain_value(item) for item in value]
    if isinstance(value, (PoshFunction, ScriptBlock)):
        return display(value)
    return value


def fold_results(results: list):
    """Fold a result sequence: none -> Null, one -> that value, more -> Array."""
    if not results:
        return None
    if len(results) == 1:
        return results[0]
    return list(results)
