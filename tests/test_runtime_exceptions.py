"""Tests for posh_runtime exception hierarchy."""

import pytest

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
from posh.errors import (
    PoshError,
    LexerError,
    ParseError,
    UnexpectedTokenError,
    UnexpectedEofError,
)
from posh.lexer import Token, TokenType


@pytest.mark.parametrize("cls", [
    UndefinedVariableError,
    UndefinedCommandError,
    TypeMismatchError,
    DivisionByZeroError,
    InvalidOperationError,
    InvalidPropertyAccessError,
    ReturnOutsideFunctionError,
    CallDepthExceededError,
])
def test_runtime_errors_inherit_base(cls):
    assert issubclass(cls, PoshRuntimeError)


def test_undefined_variable_message():
    err = UndefinedVariableError("count")
    assert err.name == "count"
    assert "$count" in str(err)


def test_undefined_command_message():
    assert str(UndefinedCommandError("Get-Foo")) == (
        "The term 'Get-Foo' is not recognized as the name of a cmdlet, function, or script."
    )


def test_type_mismatch_fields():
    err = TypeMismatchError("Number", "String", "subtraction")
    assert (err.expected, err.got, err.operation) == ("Number", "String", "subtraction")
    assert "subtraction" in str(err)


def test_division_by_zero_message():
    assert str(DivisionByZeroError()) == "Attempted to divide by zero."


def test_property_access_message():
    err = InvalidPropertyAccessError("Nope", "Object")
    assert str(err) == "Property 'Nope' not found on Object"


def test_errors_are_catchable_as_runtime_error():
    try:
        raise InvalidOperationError("file locked")
    except PoshRuntimeError as e:
        assert "file locked" in str(e)


def test_front_end_errors_carry_position():
    err = UnexpectedEofError("RPAREN", 3, 7)
    assert isinstance(err, ParseError)
    assert isinstance(err, PoshError)
    assert (err.line, err.column) == (3, 7)
    assert str(err) == "Line 3, Col 7: Unexpected end of input, expected RPAREN"


def test_unexpected_token_message():
    tok = Token(TokenType.NUMBER, "5", 1, 3)
    err = UnexpectedTokenError("end of statement", tok, 1, 3)
    assert err.found is tok
    assert "NUMBER" in str(err)


def test_lexer_and_parse_errors_are_distinct():
    assert not issubclass(LexerError, ParseError)
    assert not issubclass(ParseError, LexerError)


def test_call_depth_message():
    err = CallDepthExceededError("Walk")
    assert err.function_name == "Walk"
    assert str(err) == "Call depth exceeded in function 'Walk'"
