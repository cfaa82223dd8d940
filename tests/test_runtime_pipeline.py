"""Tests for posh_runtime.pipeline — the object-pipeline commands."""

import pytest

from posh.evaluator import Evaluator
from posh_runtime.commands import CommandContext, ScriptBlockInvoker
from posh_runtime.exceptions import InvalidOperationError
from posh_runtime.pipeline import (
    PIPELINE_COMMANDS,
    compare_values,
    foreach_object,
    group_object,
    select_object,
    sort_object,
    unroll,
    where_object,
    write_output,
)
from posh_runtime.types import PoshObject


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def procs():
    return [
        PoshObject(Name="chrome", CPU=45.2),
        PoshObject(Name="code", CPU=23.1),
        PoshObject(Name="pwsh", CPU=5.0),
    ]


def invoke(cmd, context: CommandContext, evaluator: Evaluator | None = None) -> list:
    evaluator = evaluator or Evaluator()
    with ScriptBlockInvoker(evaluator) as invoker:
        return cmd.execute(context, invoker)


def block(source: str):
    """Evaluate a script block literal such as ``{ $_ * 2 }``."""
    return Evaluator().eval_source(source)


def names(items: list) -> list:
    return [item["Name"] for item in items]


# ---------------------------------------------------------------------------
# Write-Output
# ---------------------------------------------------------------------------

class TestWriteOutput:
    def test_passes_input_through(self):
        assert invoke(write_output, CommandContext(pipeline_input=[1.0, 2.0])) == [1.0, 2.0]

    def test_unrolls_arguments(self):
        ctx = CommandContext(arguments=[[1.0, 2.0], "x"])
        assert invoke(write_output, ctx) == [1.0, 2.0, "x"]

    def test_unroll_is_one_level(self):
        assert unroll([[1.0, [2.0]]]) == [1.0, [2.0]]


# ---------------------------------------------------------------------------
# Where-Object / ForEach-Object
# ---------------------------------------------------------------------------

class TestWhereObject:
    def test_positional_block(self):
        ctx = CommandContext(pipeline_input=procs(), arguments=[block("{ $_.CPU -gt 10 }")])
        assert names(invoke(where_object, ctx)) == ["chrome", "code"]

    def test_filter_script_parameter(self):
        ctx = CommandContext(
            pipeline_input=[1.0, 2.0, 3.0],
            parameters={"FilterScript": block("{ $_ -ne 2 }")},
        )
        assert invoke(where_object, ctx) == [1.0, 3.0]

    def test_property_truthiness(self):
        items = [PoshObject(Name="a", Active=True), PoshObject(Name="b", Active=False)]
        ctx = CommandContext(pipeline_input=items, parameters={"Property": "Active"})
        assert names(invoke(where_object, ctx)) == ["a"]

    def test_no_filter_keeps_everything(self):
        assert invoke(where_object, CommandContext(pipeline_input=[1.0])) == [1.0]


class TestForEachObject:
    def test_block(self):
        ctx = CommandContext(pipeline_input=[1.0, 2.0], arguments=[block("{ $_ + 1 }")])
        assert invoke(foreach_object, ctx) == [2.0, 3.0]

    def test_process_parameter(self):
        ctx = CommandContext(pipeline_input=["a"], parameters={"Process": block("{ $_ + '!' }")})
        assert invoke(foreach_object, ctx) == ["a!"]

    def test_member_name(self):
        ctx = CommandContext(pipeline_input=procs(), parameters={"MemberName": "name"})
        assert invoke(foreach_object, ctx) == ["chrome", "code", "pwsh"]

    def test_member_name_missing_gives_null(self):
        ctx = CommandContext(pipeline_input=[1.0], parameters={"MemberName": "Name"})
        assert invoke(foreach_object, ctx) == [None]


# ---------------------------------------------------------------------------
# Select-Object
# ---------------------------------------------------------------------------

class TestSelectObject:
    def test_projection(self):
        ctx = CommandContext(pipeline_input=procs(), arguments=["Name"])
        result = invoke(select_object, ctx)
        assert result[0] == {"Name": "chrome"}

    def test_missing_property_is_null(self):
        ctx = CommandContext(pipeline_input=procs()[:1], arguments=["Name", "Id"])
        assert invoke(select_object, ctx) == [{"Name": "chrome", "Id": None}]

    def test_projection_keeps_requested_spelling(self):
        ctx = CommandContext(pipeline_input=procs()[:1], arguments=["cpu"])
        assert list(invoke(select_object, ctx)[0]) == ["cpu"]

    def test_scalars_pass_through_projection(self):
        ctx = CommandContext(pipeline_input=[5.0], arguments=["Name"])
        assert invoke(select_object, ctx) == [5.0]

    def test_first(self):
        ctx = CommandContext(pipeline_input=procs(), parameters={"First": 2.0})
        assert names(invoke(select_object, ctx)) == ["chrome", "code"]

    def test_last(self):
        ctx = CommandContext(pipeline_input=procs(), parameters={"Last": 1.0})
        assert names(invoke(select_object, ctx)) == ["pwsh"]

    def test_last_zero(self):
        ctx = CommandContext(pipeline_input=procs(), parameters={"Last": 0.0})
        assert invoke(select_object, ctx) == []

    def test_negative_count(self):
        ctx = CommandContext(pipeline_input=procs(), parameters={"First": -1.0})
        with pytest.raises(InvalidOperationError):
            invoke(select_object, ctx)


# ---------------------------------------------------------------------------
# Sort-Object
# ---------------------------------------------------------------------------

class TestSortObject:
    def test_numbers(self):
        ctx = CommandContext(pipeline_input=[3.0, 1.0, 2.0])
        assert invoke(sort_object, ctx) == [1.0, 2.0, 3.0]

    def test_descending(self):
        ctx = CommandContext(pipeline_input=[1.0, 3.0, 2.0], parameters={"Descending": True})
        assert invoke(sort_object, ctx) == [3.0, 2.0, 1.0]

    def test_by_property(self):
        ctx = CommandContext(pipeline_input=procs(), arguments=["CPU"])
        assert names(invoke(sort_object, ctx)) == ["pwsh", "code", "chrome"]

    def test_strings_ignore_case(self):
        ctx = CommandContext(pipeline_input=["b", "A", "c"])
        assert invoke(sort_object, ctx) == ["A", "b", "c"]

    def test_stable(self):
        items = [PoshObject(K=1.0, N="x"), PoshObject(K=0.0, N="y"), PoshObject(K=1.0, N="z")]
        ctx = CommandContext(pipeline_input=items, parameters={"Property": "K"})
        assert [i["N"] for i in invoke(sort_object, ctx)] == ["y", "x", "z"]

    def test_arguments_without_input_are_items(self):
        ctx = CommandContext(arguments=[[2.0, 1.0]])
        assert invoke(sort_object, ctx) == [1.0, 2.0]

    def test_compare_values(self):
        assert compare_values(None, 1.0) == -1
        assert compare_values("10", 9.0) == 1
        assert compare_values("a", "A") == 0


# ---------------------------------------------------------------------------
# Group-Object
# ---------------------------------------------------------------------------

class TestGroupObject:
    def items(self):
        return [
            PoshObject(Name="apple", Kind="fruit"),
            PoshObject(Name="carrot", Kind="vegetable"),
            PoshObject(Name="banana", Kind="fruit"),
        ]

    def test_groups_sorted_by_name(self):
        ctx = CommandContext(pipeline_input=self.items(), parameters={"Property": "Kind"})
        groups = invoke(group_object, ctx)
        assert [g["Name"] for g in groups] == ["fruit", "vegetable"]
        assert groups[0]["Count"] == 2.0
        assert names(groups[0]["Group"]) == ["apple", "banana"]

    def test_no_element(self):
        ctx = CommandContext(
            pipeline_input=self.items(),
            parameters={"Property": "Kind", "NoElement": True},
        )
        assert "Group" not in invoke(group_object, ctx)[0]

    def test_as_hash_table(self):
        ctx = CommandContext(
            pipeline_input=self.items(),
            parameters={"Property": "Kind", "AsHashTable": True},
        )
        [table] = invoke(group_object, ctx)
        assert table["vegetable"]["Count"] == 1.0

    def test_scalars_group_by_display(self):
        ctx = CommandContext(pipeline_input=[1.0, 2.0, 1.0])
        groups = invoke(group_object, ctx)
        assert [(g["Name"], g["Count"]) for g in groups] == [("1", 2.0), ("2", 1.0)]


def test_pipeline_command_names():
    assert [cmd.name for cmd in PIPELINE_COMMANDS] == [
        "Write-Output", "Where-Object", "ForEach-Object",
        "Select-Object", "Sort-Object", "Group-Object",
    ]
