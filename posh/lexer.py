"""Posh lexer — scans source text into a flat list of tokens."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Any

from posh.errors import (
    InvalidNumberError,
    InvalidTokenError,
    UnexpectedCharacterError,
    UnterminatedStringError,
)


# ---------------------------------------------------------------------------
# Token types
# ---------------------------------------------------------------------------

class TokenType(Enum):
    # Literals
    NUMBER = auto()
    STRING = auto()
    INTERPOLATED_STRING = auto()
    BOOLEAN = auto()

    # Names
    IDENTIFIER = auto()
    VARIABLE = auto()

    # Keywords
    IF = auto()
    ELSE = auto()
    ELSEIF = auto()
    FUNCTION = auto()
    RETURN = auto()

    # Arithmetic operators
    PLUS = auto()          # +
    MINUS = auto()         # -
    STAR = auto()          # *
    SLASH = auto()         # /
    PERCENT = auto()       # %

    # Comparison operators
    EQ = auto()            # -eq
    NE = auto()            # -ne
    GT = auto()            # -gt
    LT = auto()            # -lt
    GE = auto()            # -ge
    LE = auto()            # -le

    NOT = auto()           # !

    # Delimiters
    LPAREN = auto()        # (
    RPAREN = auto()        # )
    LBRACE = auto()        # {
    RBRACE = auto()        # }
    LBRACKET = auto()      # [
    RBRACKET = auto()      # ]
    AT_LPAREN = auto()     # @(
    AT_LBRACE = auto()     # @{
    COMMA = auto()         # ,
    DOT = auto()           # .
    PIPE = auto()          # |
    ASSIGN = auto()        # =
    SEMICOLON = auto()     # ;

    # Structure
    NEWLINE = auto()
    EOF = auto()


# ---------------------------------------------------------------------------
# Keyword / operator lookup (both case-insensitive)
# ---------------------------------------------------------------------------

KEYWORDS: dict[str, TokenType] = {
    "if": TokenType.IF,
    "else": TokenType.ELSE,
    "elseif": TokenType.ELSEIF,
    "function": TokenType.FUNCTION,
    "return": TokenType.RETURN,
    "true": TokenType.BOOLEAN,
    "false": TokenType.BOOLEAN,
}

COMPARISON_OPERATORS: dict[str, TokenType] = {
    "eq": TokenType.EQ,
    "ne": TokenType.NE,
    "gt": TokenType.GT,
    "lt": TokenType.LT,
    "ge": TokenType.GE,
    "le": TokenType.LE,
}

SINGLE_CHAR_TOKENS: dict[str, TokenType] = {
    "+": TokenType.PLUS,
    "*": TokenType.STAR,
    "/": TokenType.SLASH,
    "%": TokenType.PERCENT,
    "!": TokenType.NOT,
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    "{": TokenType.LBRACE,
    "}": TokenType.RBRACE,
    "[": TokenType.LBRACKET,
    "]": TokenType.RBRACKET,
    ",": TokenType.COMMA,
    ".": TokenType.DOT,
    "|": TokenType.PIPE,
    "=": TokenType.ASSIGN,
    ";": TokenType.SEMICOLON,
}

ESCAPES: dict[str, str] = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "\\": "\\",
    '"': '"',
    "'": "'",
    "$": "$",
}

OPENERS = (TokenType.LPAREN, TokenType.LBRACE, TokenType.LBRACKET,
           TokenType.AT_LPAREN, TokenType.AT_LBRACE)
CLOSERS = (TokenType.RPAREN, TokenType.RBRACE, TokenType.RBRACKET)
SEGMENT_BREAKS = (TokenType.NEWLINE, TokenType.SEMICOLON, TokenType.PIPE)


# ---------------------------------------------------------------------------
# Token dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StringPart:
    """One piece of an interpolated string: literal text or a variable name."""
    text: str
    is_variable: bool = False


@dataclass
class Token:
    type: TokenType
    value: Any
    line: int
    column: int

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, L{self.line}:{self.column})"


def _is_name_char(ch: str) -> bool:
    return ch != "" and (ch.isalnum() or ch == "_")


# ---------------------------------------------------------------------------
# Lexer
# ---------------------------------------------------------------------------

class Lexer:
    """Scans Posh source text and produces a flat list of Token objects.

    The lexer keeps a small amount of state beyond position: a stack of
    "command mode" flags, one per bracket depth.  A segment is in command
    mode once a bare identifier (a command name) has been emitted in it;
    only then is ``-Name`` read as a named-parameter marker rather than
    rejected as an unknown operator.
    """

    def __init__(self, source: str) -> None:
        self.source = source
        self.pos: int = 0
        self.line: int = 1
        self.col: int = 1
        self.tokens: list[Token] = []
        self._command_mode: list[bool] = [False]

    # -- Character-level helpers -------------------------------------------

    def _current(self) -> str:
        """Return the character at the current position, or '' at EOF."""
        if self.pos < len(self.source):
            return self.source[self.pos]
        return ""

    def peek(self, offset: int = 1) -> str:
        """Look ahead *offset* characters without consuming."""
        idx = self.pos + offset
        if idx < len(self.source):
            return self.source[idx]
        return ""

    def advance(self) -> str:
        """Consume and return the current character, advancing position."""
        ch = self._current()
        self.pos += 1
        if ch == "\n":
            self.line += 1
            self.col = 1
        else:
            self.col += 1
        return ch

    # -- Token emission ----------------------------------------------------

    def _emit(self, token_type: TokenType, value: Any, line: int, col: int) -> None:
        """Append a token and update the command-mode stack."""
        previous = self.tokens[-1].type if self.tokens else None
        self.tokens.append(Token(token_type, value, line, col))

        if token_type in OPENERS:
            self._command_mode.append(False)
        elif token_type in CLOSERS:
            if len(self._command_mode) > 1:
                self._command_mode.pop()
        elif token_type in SEGMENT_BREAKS:
            self._command_mode[-1] = False
        elif token_type == TokenType.IDENTIFIER and previous not in (TokenType.DOT, TokenType.MINUS):
            self._command_mode[-1] = True

    # -- Main entry point --------------------------------------------------

    def tokenize(self) -> list[Token]:
        """Scan the entire source and return a list of tokens ending with EOF."""
        while self.pos < len(self.source):
            ch = self._current()
            line, col = self.line, self.col

            # Skip spaces, tabs and carriage returns (but NOT newlines)
            if ch in (" ", "\t", "\r"):
                self.advance()
                continue

            if ch == "\n":
                self.advance()
                self._emit(TokenType.NEWLINE, "\n", line, col)
                continue

            # Comments: # to end of line
            if ch == "#":
                self._skip_comment()
                continue

            if ch == '"':
                self._read_double_quoted()
                continue

            if ch == "'":
                text = self._read_quoted("'")
                self._emit(TokenType.STRING, text, line, col)
                continue

            if ch == "$":
                self._read_variable()
                continue

            if ch.isdigit():
                self._read_number()
                continue

            if ch.isalpha() or ch == "_":
                self._read_identifier()
                continue

            if ch == "-":
                self._read_minus()
                continue

            if ch == "@":
                nxt = self.peek()
                if nxt == "(":
                    self.advance()
                    self.advance()
                    self._emit(TokenType.AT_LPAREN, "@(", line, col)
                    continue
                if nxt == "{":
                    self.advance()
                    self.advance()
                    self._emit(TokenType.AT_LBRACE, "@{", line, col)
                    continue
                raise UnexpectedCharacterError(ch, line, col)

            token_type = SINGLE_CHAR_TOKENS.get(ch)
            if token_type is not None:
                self.advance()
                self._emit(token_type, ch, line, col)
                continue

            raise UnexpectedCharacterError(ch, line, col)

        self.tokens.append(Token(TokenType.EOF, "", self.line, self.col))
        return self.tokens

    # -- Token readers -----------------------------------------------------

    def _skip_comment(self) -> None:
        """Consume from # to end of line (or end of source)."""
        while self.pos < len(self.source) and self._current() != "\n":
            self.advance()
        # The newline itself is left for the main loop.

    def _read_escape(self) -> str:
        """Consume a backslash escape and return its decoded text."""
        self.advance()  # consume backslash
        escaped = self.advance()
        return ESCAPES.get(escaped, "\\" + escaped)

    def _read_quoted(self, quote: str) -> str:
        """Read a single-quoted string. No interpolation, escapes still decoded."""
        start_line = self.line
        start_col = self.col
        self.advance()  # consume opening quote

        chars: list[str] = []
        while self.pos < len(self.source):
            ch = self._current()
            if ch == quote:
                if self.peek() == quote:
                    # Doubled quote is a literal quote character
                    self.advance()
                    self.advance()
                    chars.append(quote)
                    continue
                self.advance()  # consume closing quote
                return "".join(chars)
            if ch == "\\" and self.peek() != "":
                chars.append(self._read_escape())
                continue
            chars.append(self.advance())

        raise UnterminatedStringError(start_line, start_col)

    def _read_double_quoted(self) -> None:
        """Read a double-quoted string, splitting out ``$name`` references.

        Emits a plain STRING token when no variable part is present, and an
        INTERPOLATED_STRING token carrying a tuple of StringPart otherwise.
        """
        start_line = self.line
        start_col = self.col
        self.advance()  # consume opening "

        parts: list[StringPart] = []
        literal: list[str] = []

        while self.pos < len(self.source):
            ch = self._current()
            if ch == '"':
                if self.peek() == '"':
                    self.advance()
                    self.advance()
                    literal.append('"')
                    continue
                self.advance()  # consume closing "
                if literal:
                    parts.append(StringPart("".join(literal)))
                if any(p.is_variable for p in parts):
                    self._emit(TokenType.INTERPOLATED_STRING, tuple(parts), start_line, start_col)
                else:
                    text = "".join(p.text for p in parts)
                    self._emit(TokenType.STRING, text, start_line, start_col)
                return
            if ch == "$" and _is_name_char(self.peek()):
                if literal:
                    parts.append(StringPart("".join(literal)))
                    literal = []
                self.advance()  # consume $
                parts.append(StringPart(self._read_variable_name(), is_variable=True))
                continue
            if ch == "\\" and self.peek() != "":
                literal.append(self._read_escape())
                continue
            literal.append(self.advance())

        raise UnterminatedStringError(start_line, start_col)

    def _read_variable_name(self) -> str:
        """Read ``name`` or ``qualifier:name`` after a consumed ``$``."""
        chars: list[str] = []
        while _is_name_char(self._current()):
            chars.append(self.advance())
        if chars and self._current() == ":" and _is_name_char(self.peek()):
            chars.append(self.advance())  # consume ':'
            while _is_name_char(self._current()):
                chars.append(self.advance())
        return "".join(chars)

    def _read_variable(self) -> None:
        """Read a variable reference: ``$name``."""
        line, col = self.line, self.col
        self.advance()  # consume $
        name = self._read_variable_name()
        if not name:
            raise InvalidTokenError("$", line, col)
        self._emit(TokenType.VARIABLE, name, line, col)

    def _read_number(self) -> None:
        """Read a numeric literal: digits with at most one decimal point."""
        line, col = self.line, self.col
        chars: list[str] = []

        while self._current().isdigit() or self._current() == ".":
            # A dot not followed by a digit ends the number: `5.Name`
            if self._current() == "." and not self.peek().isdigit():
                break
            chars.append(self.advance())

        text = "".join(chars)
        if text.count(".") > 1:
            raise InvalidNumberError(text, line, col)
        self._emit(TokenType.NUMBER, text, line, col)

    def _read_word(self) -> str:
        """Read [A-Za-z0-9_-]* from the current position."""
        chars: list[str] = []
        while _is_name_char(self._current()) or self._current() == "-":
            chars.append(self.advance())
        return "".join(chars)

    def _read_identifier(self) -> None:
        """Read an identifier or keyword. Hyphens join multi-word command names."""
        line, col = self.line, self.col
        word = self._read_word()
        token_type = KEYWORDS.get(word.lower())
        if token_type is None:
            self._emit(TokenType.IDENTIFIER, word, line, col)
        elif token_type == TokenType.BOOLEAN:
            self._emit(TokenType.BOOLEAN, word.lower() == "true", line, col)
        else:
            self._emit(token_type, word, line, col)

    def _read_minus(self) -> None:
        """Read ``-``: a comparison operator, a parameter marker, or minus."""
        line, col = self.line, self.col
        if not self.peek().isalpha():
            self.advance()
            self._emit(TokenType.MINUS, "-", line, col)
            return

        self.advance()  # consume '-'
        word_line, word_col = self.line, self.col
        word = self._read_word()

        operator = COMPARISON_OPERATORS.get(word.lower())
        if operator is not None:
            self._emit(operator, "-" + word, line, col)
            return

        if self._command_mode[-1]:
            self._emit(TokenType.MINUS, "-", line, col)
            self._emit(TokenType.IDENTIFIER, word, word_line, word_col)
            return

        raise InvalidTokenError("-" + word, line, col)


def tokenize(source: str) -> list[Token]:
    """Convenience wrapper: ``Lexer(source).tokenize()``."""
    return Lexer(source).tokenize()
