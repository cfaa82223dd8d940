"""Tests for the Posh evaluator — expressions, scopes, functions and pipelines."""

import logging

import pytest

from posh.evaluator import Evaluator
from posh_runtime import CommandRegistry, register_builtins
from posh_runtime.commands import FunctionCommand
from posh_runtime.exceptions import (
    CallDepthExceededError,
    DivisionByZeroError,
    InvalidPropertyAccessError,
    ReturnOutsideFunctionError,
    TypeMismatchError,
    UndefinedCommandError,
    UndefinedVariableError,
)
from posh_runtime.types import PoshFunction, PoshObject, ScriptBlock


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def make(strict: bool = False) -> Evaluator:
    return Evaluator(register_builtins(CommandRegistry()), strict_variables=strict)


def run(source: str, strict: bool = False):
    """Evaluate *source* in a fresh evaluator with the built-in commands."""
    return make(strict).eval_source(source)


# ---------------------------------------------------------------------------
# Expressions
# ---------------------------------------------------------------------------

class TestArithmetic:
    def test_addition(self):
        assert run("5 + 3") == 8.0

    def test_precedence(self):
        assert run("2 + 3 * 4") == 14.0

    def test_grouping(self):
        assert run("(2 + 3) * 4") == 20.0

    def test_division(self):
        assert run("10 / 4") == 2.5

    def test_modulo(self):
        assert run("7 % 3") == 1.0

    def test_unary_minus(self):
        assert run("-5 + 2") == -3.0

    def test_division_by_zero(self):
        with pytest.raises(DivisionByZeroError):
            run("10 / 0")

    def test_modulo_by_zero(self):
        with pytest.raises(DivisionByZeroError):
            run("10 % 0")

    def test_numeric_string_operand(self):
        assert run("5 - '2'") == 3.0

    def test_type_mismatch(self):
        with pytest.raises(TypeMismatchError) as exc_info:
            run("'x' * 2")
        assert exc_info.value.operation == "multiplication"

    def test_negating_text(self):
        with pytest.raises(TypeMismatchError):
            run("-'abc'")


class TestStringsAndComparison:
    def test_concatenation(self):
        assert run("'a' + 1") == "a1"

    def test_interpolation(self):
        assert run('$name = "World"\n"Hello $name!"') == "Hello World!"

    def test_interpolation_of_missing_variable(self):
        assert run('"[$nope]"') == "[]"

    def test_string_equality_ignores_case(self):
        assert run("'abc' -eq 'ABC'") is True

    def test_ne(self):
        assert run("1 -ne 2") is True

    @pytest.mark.parametrize("source,expected", [
        ("3 -gt 2", True),
        ("3 -lt 2", False),
        ("2 -ge 2", True),
        ("2 -le 1", False),
    ])
    def test_ordering(self, source, expected):
        assert run(source) is expected

    def test_not(self):
        assert run("!$false") is True
        assert run("!1") is False


class TestCollections:
    def test_array(self):
        assert run("@(1, 2, 3)") == [1.0, 2.0, 3.0]

    def test_comma_list(self):
        assert run("$a = 1, 2, 3\n$a.Count") == 3.0

    def test_array_concatenation(self):
        assert run("@(1) + @(2, 3)") == [1.0, 2.0, 3.0]

    def test_array_unrolls_command_output(self):
        assert run("@(Get-Process -Name c)") == run("Get-Process -Name c")

    def test_hashtable(self):
        value = run("@{Name = 'chrome'; CPU = 45.2}")
        assert isinstance(value, PoshObject)
        assert value["name"] == "chrome"

    def test_member_access_ignores_case(self):
        assert run("$p = @{Name = 'x'}\n$p.NAME") == "x"

    def test_missing_property(self):
        with pytest.raises(InvalidPropertyAccessError):
            run("$p = @{Name = 'x'}\n$p.Nope")

    def test_property_of_null(self):
        with pytest.raises(InvalidPropertyAccessError):
            run("$nothing.Name")


# ---------------------------------------------------------------------------
# Variables and scopes
# ---------------------------------------------------------------------------

class TestVariables:
    def test_assignment(self):
        assert run("$x = 5\n$x") == 5.0

    def test_assignment_has_no_value(self):
        assert run("$x = 5") is None

    def test_names_ignore_case(self):
        assert run("$Total = 1\n$TOTAL") == 1.0

    def test_automatic_variables(self):
        assert run("$true") is True
        assert run("$null") is None

    def test_undefined_is_null(self):
        assert run("$missing") is None

    def test_undefined_in_strict_mode(self):
        with pytest.raises(UndefinedVariableError):
            run("$missing", strict=True)

    def test_if_updates_outer_variable(self):
        assert run("$x = 0\nif (true) { $x = 5 }\n$x") == 5.0

    def test_if_block_variables_are_scoped(self):
        assert run("if (true) { $y = 1 }\n$y") is None

    def test_global_qualifier_from_function(self):
        source = "function Bump { $global:n = 7 }\nBump\n$n"
        assert run(source) == 7.0

    def test_get_and_set_variable(self):
        ev = make()
        ev.set_variable("global:x", 3.0)
        assert ev.get_variable("X") == 3.0


# ---------------------------------------------------------------------------
# Control flow and functions
# ---------------------------------------------------------------------------

class TestIf:
    @pytest.mark.parametrize("n,expected", [(12, "big"), (7, "medium"), (1, "small")])
    def test_elseif_chain(self, n, expected):
        source = (
            f"$n = {n}\n"
            "if ($n -gt 10) { 'big' } elseif ($n -gt 5) { 'medium' } else { 'small' }"
        )
        assert run(source) == expected

    def test_false_without_else(self):
        assert run("if (0) { 1 }") is None


class TestFunctions:
    def test_add(self):
        assert run("function Add($a, $b) { return $a + $b }\nAdd 5 10") == 15.0

    def test_default_parameter(self):
        source = "function Greet($name = 'World') { \"Hello $name\" }\nGreet"
        assert run(source) == "Hello World"

    def test_missing_argument_is_null(self):
        assert run("function F($a, $b) { $b }\nF 1") is None

    def test_extra_arguments_in_args(self):
        assert run("function F($a) { $args }\nF 1 2 3") == [2.0, 3.0]

    def test_pipeline_input_in_input(self):
        source = "function Count-Input { $input.Count }\n@(1, 2, 3) | Count-Input"
        assert run(source) == 3.0

    def test_return_stops_function(self):
        assert run("function F { return 1\n 2 }\nF") == 1.0

    def test_return_from_nested_if(self):
        source = "function F($x) { if ($x) { return 'yes' }\n'no' }\nF 1"
        assert run(source) == "yes"

    def test_recursion(self):
        source = (
            "function Fact($n) { if ($n -le 1) { return 1 }; return $n * (Fact ($n - 1)) }\n"
            "Fact 5"
        )
        assert run(source) == 120.0

    def test_parameters_do_not_leak(self):
        assert run("function F($a) { $a }\nF 1\n$a") is None

    def test_function_is_a_value(self):
        value = run("function F { 1 }\n$F")
        assert isinstance(value, PoshFunction)

    def test_named_argument_is_ignored_with_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="posh.evaluator"):
            result = run("function F($a) { $a }\nF -a 5")
        assert result is None
        assert "not supported" in caplog.text

    def test_return_at_top_level(self):
        with pytest.raises(ReturnOutsideFunctionError):
            run("return 5")

    def test_undefined_command(self):
        with pytest.raises(UndefinedCommandError) as exc_info:
            run("Get-Nothing")
        assert "'Get-Nothing' is not recognized" in str(exc_info.value)

    def test_function_shadows_command(self):
        assert run("function Get-Process { 'mine' }\nGet-Process") == "mine"

    def test_error_inside_function_releases_scopes(self):
        ev = make()
        with pytest.raises(DivisionByZeroError):
            ev.eval_source("function F($a) { if ($true) { $a / 0 } }\nF 1")
        assert ev.scopes.depth == 1
        assert ev.eval_source("$a") is None

    def test_runaway_recursion_is_a_runtime_error(self):
        ev = make()
        with pytest.raises(CallDepthExceededError) as exc_info:
            ev.eval_source("function F($n) { F ($n + 1) }\nF 0")
        assert "'F'" in str(exc_info.value)
        assert ev.scopes.depth == 1
        assert ev.eval_source("1 + 1") == 2.0


# ---------------------------------------------------------------------------
# Pipelines
# ---------------------------------------------------------------------------

class TestPipelines:
    def test_sort_descending(self):
        assert run("@(1,2,3) | Sort-Object -Descending true") == [3.0, 2.0, 1.0]

    def test_where(self):
        assert run("@(1, 2, 3, 4) | Where-Object { $_ -gt 2 }") == [3.0, 4.0]

    def test_foreach(self):
        assert run("@(1, 2) | ForEach-Object { $_ * 10 }") == [10.0, 20.0]

    def test_expression_stage_binds_item(self):
        assert run("@(1, 2) | $_ + 1") == [2.0, 3.0]

    def test_script_block_stage(self):
        assert run("@(1, 2) | { $_ * 3 }") == [3.0, 6.0]

    def test_script_block_return(self):
        assert run("@(1, 2) | ForEach-Object { return $_ * 2 }") == [2.0, 4.0]

    def test_single_result_is_unwrapped(self):
        assert run("@(5) | Write-Output") == 5.0

    def test_empty_result_is_null(self):
        assert run("@(1) | Where-Object { $false }") is None

    def test_pipeline_assignment(self):
        assert run("$x = @(3, 1, 2) | Sort-Object\n$x") == [1.0, 2.0, 3.0]

    def test_pipeline_in_parentheses(self):
        assert run("(1 | Write-Output) + 1") == 2.0

    def test_select_property_list(self):
        value = run("Get-Process -Name chrome | Select-Object -Property Name, CPU")
        assert isinstance(value, PoshObject)
        assert len(value) == 2
        assert (value["Name"], value["CPU"]) == ("chrome", 45.2)

    def test_item_variable_is_restored(self):
        assert run("$_ = 'outer'\n@(1) | ForEach-Object { $_ }\n$_") == "outer"

    def test_command_receives_context(self):
        seen = {}

        def capture(context, invoker):
            seen["input"] = context.pipeline_input
            seen["args"] = context.arguments
            seen["params"] = context.parameters
            return ["done"]

        registry = CommandRegistry()
        registry.register(FunctionCommand("Capture-It", capture))
        result = Evaluator(registry).eval_source("@(1, 2) | Capture-It 'a' -Flag -Size 3")
        assert result == "done"
        assert seen == {"input": [1.0, 2.0], "args": ["a"], "params": {"Flag": True, "Size": 3.0}}


class TestScriptBlocks:
    def test_block_is_a_value(self):
        assert isinstance(run("{ 1 }"), ScriptBlock)

    def test_execute_script_block(self):
        ev = make()
        block = ev.eval_source("{ $_ * 2 }")
        assert ev.execute_script_block(block, 4.0) == 8.0
        assert ev.scopes.depth == 1
