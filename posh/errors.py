"""Posh front-end error types with source location info."""


class PoshError(Exception):
    def __init__(self, message: str, line: int = 0, column: int = 0):
        self.message = message
        self.line = line
        self.column = column
        super().__init__(f"Line {line}, Col {column}: {message}")


# -- Lexer -----------------------------------------------------------------

class LexerError(PoshError):
    pass


class UnexpectedCharacterError(LexerError):
    def __init__(self, char: str, line: int = 0, column: int = 0):
        self.char = char
        super().__init__(f"Unexpected character {char!r}", line, column)


class UnterminatedStringError(LexerError):
    def __init__(self, line: int = 0, column: int = 0):
        super().__init__("Unterminated string literal", line, column)


class InvalidNumberError(LexerError):
    def __init__(self, text: str, line: int = 0, column: int = 0):
        self.text = text
        super().__init__(f"Invalid number {text!r}", line, column)


class InvalidTokenError(LexerError):
    def __init__(self, text: str, line: int = 0, column: int = 0):
        self.text = text
        super().__init__(f"Invalid token {text!r}", line, column)


# -- Parser ----------------------------------------------------------------

class ParseError(PoshError):
    pass


class UnexpectedTokenError(ParseError):
    def __init__(self, expected: str, found, line: int = 0, column: int = 0):
        self.expected = expected
        self.found = found
        super().__init__(
            f"Expected {expected} but got {found.type.name} ({found.value!r})",
            line,
            column,
        )


class UnexpectedEofError(ParseError):
    def __init__(self, expected: str, line: int = 0, column: int = 0):
        self.expected = expected
        super().__init__(f"Unexpected end of input, expected {expected}", line, column)


class InvalidExpressionError(ParseError):
    pass


class InvalidStatementError(ParseError):
    pass


class InvalidOperatorError(ParseError):
    def __init__(self, operator, line: int = 0, column: int = 0):
        self.operator = operator
        super().__init__(f"Invalid operator {operator.value!r}", line, column)
