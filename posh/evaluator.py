"""Posh evaluator — walks the AST and executes it.

Statements produce a ``Completion`` record rather than raising for
``return``: a completion whose ``returned`` flag is set unwinds the
enclosing statement lists until a function call or script-block
invocation turns it back into a plain value.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any

from posh.ast_nodes import (
    Program,
    NumberLiteral,
    StringLiteral,
    InterpolatedString,
    BooleanLiteral,
    NullLiteral,
    Variable,
    BinaryOp,
    UnaryOp,
    Call,
    MemberAccess,
    ScriptBlockExpr,
    HashtableLiteral,
    ArrayLiteral,
    Pipeline,
    ExpressionStatement,
    Assignment,
    FunctionDef,
    IfStatement,
    ReturnStatement,
)
from posh_runtime.commands import CommandContext, CommandRegistry, ScriptBlockInvoker
from posh_runtime.exceptions import (
    CallDepthExceededError,
    DivisionByZeroError,
    InvalidPropertyAccessError,
    PoshRuntimeError,
    ReturnOutsideFunctionError,
    TypeMismatchError,
    UndefinedCommandError,
    UndefinedVariableError,
)
from posh_runtime.scope import MISSING, ScopeStack
from posh_runtime.types import (
    PoshFunction,
    PoshObject,
    ScriptBlock,
    display,
    fold_results,
    get_property,
    to_bool,
    to_number,
    type_name,
    values_equal,
)

logger = logging.getLogger(__name__)

OPERATION_NAMES = {
    "+": "addition",
    "-": "subtraction",
    "*": "multiplication",
    "/": "division",
    "%": "modulo",
    "-gt": "comparison (-gt)",
    "-lt": "comparison (-lt)",
    "-ge": "comparison (-ge)",
    "-le": "comparison (-le)",
}


@dataclass
class Completion:
    """Outcome of running a statement: its value, and whether it was a ``return``."""
    value: Any = None
    returned: bool = False


class Evaluator:
    """Tree-walking interpreter owning one ScopeStack and a CommandRegistry."""

    def __init__(self, registry: CommandRegistry | None = None, strict_variables: bool = False) -> None:
        self.registry = registry if registry is not None else CommandRegistry()
        self.scopes = ScopeStack()
        self.strict_variables = strict_variables

        # Automatic variables
        self.scopes.define_variable("true", True)
        self.scopes.define_variable("false", False)
        self.scopes.define_variable("null", None)

    # -- Public entry points -----------------------------------------------

    def eval(self, program: Program) -> Any:
        """Run *program* and return the value of its last statement."""
        completion = self._exec_statements(program.body)
        if completion.returned:
            raise ReturnOutsideFunctionError()
        return completion.value

    def eval_source(self, source: str) -> Any:
        """Tokenize, parse and evaluate *source* in this evaluator."""
        from posh.lexer import tokenize
        from posh.parser import parse

        return self.eval(parse(tokenize(source)))

    def get_variable(self, name: str, default: Any = None) -> Any:
        return self.scopes.get_variable_qualified(name, default)

    def set_variable(self, name: str, value: Any) -> None:
        self.scopes.set_variable_qualified(name, value)

    def execute_script_block(self, block: ScriptBlock, item: Any = None) -> Any:
        """Invoke *block* once with ``$_`` bound to *item*."""
        with self.scopes.new_scope():
            self.scopes.define_variable("_", item)
            completion = self._exec_statements(block.body)
        return completion.value

    # -- Statements --------------------------------------------------------

    def _exec_statements(self, statements: list) -> Completion:
        value = None
        for stmt in statements:
            completion = self._exec_statement(stmt)
            if completion.returned:
                return completion
            value = completion.value
        return Completion(value)

    def _exec_statement(self, node) -> Completion:
        """Dispatch a statement node."""
        if isinstance(node, ExpressionStatement):
            return Completion(self._eval(node.expression))
        if isinstance(node, Assignment):
            self.scopes.set_variable_qualified(node.target, self._eval(node.value))
            return Completion(None)
        if isinstance(node, Pipeline):
            return Completion(fold_results(self.run_pipeline(node)))
        if isinstance(node, IfStatement):
            return self._exec_if(node)
        if isinstance(node, FunctionDef):
            logger.debug("define function %s (%d params)", node.name, len(node.params))
            self.scopes.define_variable(node.name, PoshFunction(node.name, node.params, node.body))
            return Completion(None)
        if isinstance(node, ReturnStatement):
            value = self._eval(node.value) if node.value is not None else None
            return Completion(value, returned=True)
        # Bare expression nodes are accepted as statements too
        return Completion(self._eval(node))

    def _exec_if(self, node: IfStatement) -> Completion:
        if to_bool(self._eval(node.condition)):
            branch = node.body
        elif node.else_body is not None:
            branch = node.else_body
        else:
            return Completion(None)
        with self.scopes.new_scope():
            return self._exec_statements(branch)

    # -- Expressions -------------------------------------------------------

    def _eval(self, node) -> Any:
        """Evaluate an expression node to a value."""
        if isinstance(node, NumberLiteral):
            return node.value
        if isinstance(node, StringLiteral):
            return node.value
        if isinstance(node, BooleanLiteral):
            return node.value
        if isinstance(node, NullLiteral):
            return None
        if isinstance(node, InterpolatedString):
            return self._eval_interpolated(node)
        if isinstance(node, Variable):
            return self._read_variable(node.name)
        if isinstance(node, BinaryOp):
            return self._eval_binary(node)
        if isinstance(node, UnaryOp):
            return self._eval_unary(node)
        if isinstance(node, MemberAccess):
            return self._eval_member(node)
        if isinstance(node, Call):
            return fold_results(self._call(node, []))
        if isinstance(node, ScriptBlockExpr):
            return ScriptBlock(node.body)
        if isinstance(node, HashtableLiteral):
            obj = PoshObject()
            for key, value_node in node.pairs:
                obj[key] = self._eval(value_node)
            return obj
        if isinstance(node, ArrayLiteral):
            return self._eval_array(node)
        if isinstance(node, Pipeline):
            return fold_results(self.run_pipeline(node))
        raise PoshRuntimeError(f"Cannot evaluate {type(node).__name__}")

    def _read_variable(self, name: str) -> Any:
        value = self.scopes.get_variable_qualified(name, MISSING)
        if value is MISSING:
            if self.strict_variables:
                raise UndefinedVariableError(name)
            return None
        return value

    def _eval_interpolated(self, node: InterpolatedString) -> str:
        pieces: list[str] = []
        for part in node.parts:
            if part.is_variable:
                pieces.append(display(self.scopes.get_variable_qualified(part.text, None)))
            else:
                pieces.append(part.text)
        return "".join(pieces)

    def _eval_member(self, node: MemberAccess) -> Any:
        target = self._eval(node.object)
        try:
            return get_property(target, node.member)
        except KeyError:
            raise InvalidPropertyAccessError(node.member, type_name(target)) from None

    def _eval_array(self, node: ArrayLiteral) -> list:
        items: list = []
        for element in node.elements:
            # Command output is unrolled into the array: @(Get-Process)
            if isinstance(element, Call):
                items.extend(self._call(element, []))
            elif isinstance(element, Pipeline):
                items.extend(self.run_pipeline(element))
            else:
                items.append(self._eval(element))
        return items

    # -- Operators ---------------------------------------------------------

    def _eval_binary(self, node: BinaryOp) -> Any:
        left = self._eval(node.left)
        right = self._eval(node.right)
        op = node.op

        if op == "+":
            return self._add(left, right)
        if op == "-eq":
            return values_equal(left, right)
        if op == "-ne":
            return not values_equal(left, right)

        lhs, rhs = self._numeric_operands(left, right, OPERATION_NAMES[op])
        if op == "-":
            return lhs - rhs
        if op == "*":
            return lhs * rhs
        if op == "/":
            if rhs == 0:
                raise DivisionByZeroError()
            return lhs / rhs
        if op == "%":
            if rhs == 0:
                raise DivisionByZeroError()
            return math.fmod(lhs, rhs)
        if op == "-gt":
            return lhs > rhs
        if op == "-lt":
            return lhs < rhs
        if op == "-ge":
            return lhs >= rhs
        if op == "-le":
            return lhs <= rhs
        raise PoshRuntimeError(f"Unknown operator {op}")

    def _add(self, left: Any, right: Any) -> Any:
        if isinstance(left, str) or isinstance(right, str):
            return display(left) + display(right)
        if isinstance(left, list):
            return left + (right if isinstance(right, list) else [right])
        lhs, rhs = self._numeric_operands(left, right, OPERATION_NAMES["+"])
        return lhs + rhs

    @staticmethod
    def _numeric_operands(left: Any, right: Any, operation: str) -> tuple[float, float]:
        lhs = to_number(left)
        if lhs is None:
            raise TypeMismatchError("Number", type_name(left), operation)
        rhs = to_number(right)
        if rhs is None:
            raise TypeMismatchError("Number", type_name(right), operation)
        return lhs, rhs

    def _eval_unary(self, node: UnaryOp) -> Any:
        operand = self._eval(node.operand)
        if node.op == "!":
            return not to_bool(operand)
        number = to_number(operand)
        if number is None:
            raise TypeMismatchError("Number", type_name(operand), "negation")
        return -number

    # -- Pipelines and calls -----------------------------------------------

    def run_pipeline(self, pipeline: Pipeline) -> list:
        """Thread a value sequence through each stage; return the final sequence."""
        items: list = []
        for stage in pipeline.stages:
            items = self._run_stage(stage, items)
        return items

    def _run_stage(self, stage, items: list) -> list:
        if isinstance(stage, Call):
            return self._call(stage, items)

        if isinstance(stage, ScriptBlockExpr):
            block = ScriptBlock(stage.body)
            if not items:
                return [block]
            return [self.execute_script_block(block, item) for item in items]

        if not items:
            value = self._eval(stage)
            if isinstance(value, list):
                return list(value)
            return [value]

        results = []
        for item in items:
            with self.scopes.new_scope():
                self.scopes.define_variable("_", item)
                results.append(self._eval(stage))
        return results

    def _call(self, node: Call, items: list) -> list:
        """Call a user function or registered command; return its output sequence."""
        target = self.scopes.get_variable(node.name)
        if isinstance(target, PoshFunction):
            return self._call_function(target, node, items)

        cmd = self.registry.get(node.name)
        if cmd is None:
            raise UndefinedCommandError(node.name)

        context = CommandContext(pipeline_input=list(items))
        for arg in node.args:
            value = self._eval(arg.value)
            if arg.is_named:
                context.parameters[arg.name] = value
            else:
                context.arguments.append(value)

        logger.debug(
            "dispatch %s (input=%d, args=%d, params=%s)",
            cmd.name, len(items), len(context.arguments), sorted(context.parameters),
        )
        with ScriptBlockInvoker(self) as invoker:
            results = cmd.execute(context, invoker)
        return list(results)

    def _call_function(self, fn: PoshFunction, node: Call, items: list) -> list:
        positional = []
        for arg in node.args:
            if arg.is_named:
                logger.warning(
                    "Named argument -%s is not supported for function %s; ignored",
                    arg.name, fn.name,
                )
                continue
            positional.append(self._eval(arg.value))

        depth = self.scopes.depth
        try:
            with self.scopes.new_scope():
                for index, param in enumerate(fn.params):
                    if index < len(positional):
                        value = positional[index]
                    elif param.default is not None:
                        value = self._eval(param.default)
                    else:
                        value = None
                    self.scopes.define_variable(param.name, value)
                self.scopes.define_variable("args", positional[len(fn.params):])
                self.scopes.define_variable("input", list(items))
                completion = self._exec_statements(fn.body)
        except RecursionError as e:
            # the interpreter stack ran out mid-call; unwind scopes it left behind
            while self.scopes.depth > depth:
                self.scopes.pop_scope()
            raise CallDepthExceededError(fn.name) from e

        value = completion.value
        if value is None:
            return []
        if isinstance(value, list):
            return list(value)
        return [value]
