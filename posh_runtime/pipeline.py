"""Posh object-pipeline commands.

Write-Output, Where-Object, ForEach-Object, Select-Object, Sort-Object
and Group-Object.  Each is a plain function wrapped as a Command by the
``@command`` decorator.
"""

from __future__ import annotations

from collections.abc import Mapping
from functools import cmp_to_key

from posh_runtime.commands import CommandContext, ScriptBlockInvoker, command
from posh_runtime.exceptions import InvalidOperationError
from posh_runtime.types import (
    PoshObject,
    ScriptBlock,
    display,
    get_property,
    to_bool,
    to_number,
)


def unroll(values: list) -> list:
    """Flatten one level of Array values into a flat item list."""
    items: list = []
    for value in values:
        if isinstance(value, list):
            items.extend(value)
        else:
            items.append(value)
    return items


def _input_items(context: CommandContext) -> list:
    """Pipeline input if there is any, otherwise the unrolled positional arguments."""
    if context.pipeline_input:
        return list(context.pipeline_input)
    return unroll(context.arguments)


def _find_script_block(context: CommandContext, *param_names: str) -> ScriptBlock | None:
    for name in param_names:
        value = context.get_parameter(name)
        if isinstance(value, ScriptBlock):
            return value
    first = context.get_argument(0)
    if isinstance(first, ScriptBlock):
        return first
    return None


def _count_parameter(context: CommandContext, name: str) -> int | None:
    value = context.get_parameter(name)
    if value is None:
        return None
    number = to_number(value)
    if number is None or number < 0:
        raise InvalidOperationError(f"-{name} must be a non-negative number, got: {display(value)}")
    return int(number)


def compare_values(left, right) -> int:
    """Ordering used by Sort-Object.

    Nulls sort first; two values that both coerce to numbers compare
    numerically; anything else compares by case-insensitive display
    string.
    """
    if left is None and right is None:
        return 0
    if left is None:
        return -1
    if right is None:
        return 1

    lnum, rnum = to_number(left), to_number(right)
    if lnum is not None and rnum is not None:
        return (lnum > rnum) - (lnum < rnum)

    lstr, rstr = display(left).lower(), display(right).lower()
    return (lstr > rstr) - (lstr < rstr)


# -- Commands ----------------------------------------------------------------

@command("Write-Output")
def write_output(context: CommandContext, invoker: ScriptBlockInvoker) -> list:
    """Emit pipeline input (or the arguments), unrolling arrays."""
    if context.pipeline_input:
        return unroll(context.pipeline_input)
    return unroll(context.arguments)


@command("Where-Object")
def where_object(context: CommandContext, invoker: ScriptBlockInvoker) -> list:
    """Keep items for which the filter script (or ``-Property``) is truthy."""
    block = _find_script_block(context, "FilterScript")
    if block is not None:
        return [item for item in context.pipeline_input if to_bool(invoker.invoke(block, item))]

    prop = context.get_parameter("Property")
    if prop is not None:
        name = display(prop)
        return [
            item for item in context.pipeline_input
            if to_bool(get_property(item, name, None))
        ]

    return list(context.pipeline_input)


@command("ForEach-Object")
def foreach_object(context: CommandContext, invoker: ScriptBlockInvoker) -> list:
    """Run a script block per item, or project ``-MemberName`` from each item."""
    block = _find_script_block(context, "Process")
    if block is not None:
        return [invoker.invoke(block, item) for item in context.pipeline_input]

    member = context.get_parameter("MemberName")
    if member is not None:
        name = display(member)
        return [get_property(item, name, None) for item in context.pipeline_input]

    return list(context.pipeline_input)


@command("Select-Object")
def select_object(context: CommandContext, invoker: ScriptBlockInvoker) -> list:
    """Project properties and/or take the first or last N items."""
    items = list(context.pipeline_input)

    properties = context.get_property_names()
    if properties:
        projected = []
        for item in items:
            if isinstance(item, Mapping):
                projected.append(
                    PoshObject((name, get_property(item, name, None)) for name in properties)
                )
            else:
                projected.append(item)
        items = projected

    first = _count_parameter(context, "First")
    if first is not None:
        return items[:first]

    last = _count_parameter(context, "Last")
    if last is not None:
        return items[len(items) - last:] if last else []

    return items


@command("Sort-Object")
def sort_object(context: CommandContext, invoker: ScriptBlockInvoker) -> list:
    """Sort items, optionally by one or more properties; ``-Descending`` reverses."""
    descending = context.get_switch("Descending")
    properties = context.get_property_names(use_arguments=bool(context.pipeline_input))
    items = _input_items(context)

    if properties:
        def compare(left, right) -> int:
            for name in properties:
                order = compare_values(get_property(left, name, None), get_property(right, name, None))
                if order:
                    return order
            return 0
    else:
        compare = compare_values

    return sorted(items, key=cmp_to_key(compare), reverse=descending)


def _group_info(name: str, group: list, no_element: bool) -> PoshObject:
    info = PoshObject()
    info["Count"] = float(len(group))
    info["Name"] = name
    if not no_element:
        info["Group"] = group
    return info


@command("Group-Object")
def group_object(context: CommandContext, invoker: ScriptBlockInvoker) -> list:
    """Group items by display value or by properties; groups come out sorted by name."""
    no_element = context.get_switch("NoElement")
    as_hash_table = context.get_switch("AsHashTable")
    properties = context.get_property_names(use_arguments=bool(context.pipeline_input))

    groups: dict[str, list] = {}
    for item in _input_items(context):
        if properties:
            key = ",".join(display(get_property(item, name, None)) for name in properties)
        else:
            key = display(item)
        groups.setdefault(key, []).append(item)

    infos = [_group_info(key, groups[key], no_element) for key in sorted(groups)]

    if as_hash_table:
        table = PoshObject()
        for info in infos:
            table[info["Name"]] = info
        return [table]
    return infos


PIPELINE_COMMANDS = [
    write_output,
    where_object,
    foreach_object,
    select_object,
    sort_object,
    group_object,
]
