"""Posh runtime exception types.

Raised by the evaluator and by commands; the front end renders any of
them as ``Runtime error: <message>``.
"""


class PoshRuntimeError(Exception):
    """Base runtime error."""
    pass


class UndefinedVariableError(PoshRuntimeError):
    """Reading a variable that is not bound (strict mode only)."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"The variable '${name}' cannot be retrieved because it has not been set.")


class UndefinedCommandError(PoshRuntimeError):
    """Calling a name that is neither a function nor a registered command."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(
            f"The term '{name}' is not recognized as the name of a cmdlet, function, or script."
        )


class TypeMismatchError(PoshRuntimeError):
    """An operand could not be coerced to the kind an operation needs."""

    def __init__(self, expected: str, got: str, operation: str):
        self.expected = expected
        self.got = got
        self.operation = operation
        super().__init__(f"Type mismatch in {operation}: expected {expected}, got {got}")


class DivisionByZeroError(PoshRuntimeError):
    """Division or modulo by a zero-valued right operand."""

    def __init__(self):
        super().__init__("Attempted to divide by zero.")


class InvalidOperationError(PoshRuntimeError):
    """Catch-all for failures reported by commands (I/O, bad arguments)."""
    pass


class InvalidPropertyAccessError(PoshRuntimeError):
    """Member access on a value that has no such property."""

    def __init__(self, property_name: str, type_name: str):
        self.property_name = property_name
        self.type_name = type_name
        super().__init__(f"Property '{property_name}' not found on {type_name}")


class ReturnOutsideFunctionError(PoshRuntimeError):
    """A ``return`` statement reached the top level of a program."""

    def __init__(self):
        super().__init__("'return' is only valid inside a function or script block")


class CallDepthExceededError(PoshRuntimeError):
    """Function calls nested deeper than the interpreter can follow."""

    def __init__(self, function_name: str):
        self.function_name = function_name
        super().__init__(f"Call depth exceeded in function '{function_name}'")
