"""Posh parser — recursive-descent statements, precedence climbing for expressions."""

from __future__ import annotations

from posh.lexer import Token, TokenType
from posh.errors import (
    InvalidExpressionError,
    InvalidOperatorError,
    InvalidStatementError,
    UnexpectedEofError,
    UnexpectedTokenError,
)
from posh.ast_nodes import (
    Program,
    NumberLiteral,
    StringLiteral,
    InterpolatedString,
    BooleanLiteral,
    Variable,
    BinaryOp,
    UnaryOp,
    Argument,
    Call,
    MemberAccess,
    ScriptBlockExpr,
    HashtableLiteral,
    ArrayLiteral,
    Pipeline,
    ExpressionStatement,
    Assignment,
    Parameter,
    FunctionDef,
    IfStatement,
    ReturnStatement,
)


# Binary operators by precedence level (low to high).
COMPARISON_OPS: dict[TokenType, str] = {
    TokenType.EQ: "-eq",
    TokenType.NE: "-ne",
    TokenType.GT: "-gt",
    TokenType.LT: "-lt",
    TokenType.GE: "-ge",
    TokenType.LE: "-le",
}
ADDITIVE_OPS: dict[TokenType, str] = {
    TokenType.PLUS: "+",
    TokenType.MINUS: "-",
}
MULTIPLICATIVE_OPS: dict[TokenType, str] = {
    TokenType.STAR: "*",
    TokenType.SLASH: "/",
    TokenType.PERCENT: "%",
}
BINARY_OPS = {**COMPARISON_OPS, **ADDITIVE_OPS, **MULTIPLICATIVE_OPS}

STATEMENT_END = (TokenType.NEWLINE, TokenType.SEMICOLON, TokenType.EOF)
CLOSERS = (TokenType.RPAREN, TokenType.RBRACE, TokenType.RBRACKET)
OPENERS = (TokenType.LPAREN, TokenType.LBRACE, TokenType.LBRACKET,
           TokenType.AT_LPAREN, TokenType.AT_LBRACE)

# Tokens after which an identifier is *not* followed by call arguments.
NO_ARGS_AFTER = STATEMENT_END + CLOSERS + (
    TokenType.COMMA,
    TokenType.PIPE,
    TokenType.DOT,
    TokenType.ASSIGN,
)

# Keyword tokens that may still be used as member names: ``$x.Return``.
MEMBER_NAME_TYPES = (
    TokenType.IDENTIFIER,
    TokenType.IF,
    TokenType.ELSE,
    TokenType.ELSEIF,
    TokenType.FUNCTION,
    TokenType.RETURN,
)


class Parser:
    """Recursive-descent parser for the Posh language.

    Consumes a flat list of tokens (from the Lexer) and produces an AST
    rooted at a ``Program`` node.
    """

    def __init__(self, tokens: list[Token]) -> None:
        self.tokens = tokens
        self.pos: int = 0

    # -- Navigation helpers ------------------------------------------------

    def current(self) -> Token:
        """Return the token at the current position, or an EOF token if past end."""
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        # Synthesise an EOF token so callers never crash
        last = self.tokens[-1] if self.tokens else Token(TokenType.EOF, "", 1, 1)
        return Token(TokenType.EOF, "", last.line, last.column)

    def peek(self, offset: int = 1) -> Token:
        """Look ahead *offset* tokens without consuming."""
        idx = self.pos + offset
        if idx < len(self.tokens):
            return self.tokens[idx]
        last = self.tokens[-1] if self.tokens else Token(TokenType.EOF, "", 1, 1)
        return Token(TokenType.EOF, "", last.line, last.column)

    def advance(self) -> Token:
        """Consume and return the current token, then increment pos."""
        tok = self.current()
        self.pos += 1
        return tok

    def expect(self, token_type: TokenType) -> Token:
        """Consume the current token if it matches *token_type*, else raise."""
        tok = self.current()
        if tok.type != token_type:
            if tok.type == TokenType.EOF:
                raise UnexpectedEofError(token_type.name, tok.line, tok.column)
            raise UnexpectedTokenError(token_type.name, tok, tok.line, tok.column)
        return self.advance()

    def match(self, *types: TokenType) -> Token | None:
        """If the current token matches any of *types*, consume and return it; else None."""
        if self.current().type in types:
            return self.advance()
        return None

    def skip_newlines(self) -> None:
        """Skip any NEWLINE tokens at the current position."""
        while self.current().type == TokenType.NEWLINE:
            self.advance()

    def skip_separators(self, *extra: TokenType) -> None:
        """Skip NEWLINE and SEMICOLON tokens (plus any *extra* types)."""
        while self.current().type in (TokenType.NEWLINE, TokenType.SEMICOLON) + extra:
            self.advance()

    def at_end(self) -> bool:
        """Check whether the current token is EOF."""
        return self.current().type == TokenType.EOF

    def _unexpected(self, expected: str):
        """Raise the error for finding the wrong token where *expected* was due."""
        tok = self.current()
        if tok.type == TokenType.EOF:
            raise UnexpectedEofError(expected, tok.line, tok.column)
        raise UnexpectedTokenError(expected, tok, tok.line, tok.column)

    # -- Top-level ---------------------------------------------------------

    def parse(self) -> Program:
        """Parse the full token stream into a ``Program`` AST node."""
        body: list = []
        self.skip_separators()
        while not self.at_end():
            body.append(self.parse_statement())
            self._expect_statement_end()
            self.skip_separators()
        return Program(body=body, line=1, col=1)

    def _expect_statement_end(self) -> None:
        tok = self.current()
        if tok.type not in STATEMENT_END and tok.type != TokenType.RBRACE:
            raise UnexpectedTokenError("end of statement", tok, tok.line, tok.column)

    # -- Statement parsing -------------------------------------------------

    def parse_statement(self):
        """Parse a single statement.

        Keywords route to their own parsers; ``$var = ...`` is an
        assignment; a ``|`` at nesting depth zero makes a pipeline;
        anything else is a bare expression statement.
        """
        self.skip_separators()
        tok = self.current()

        if tok.type == TokenType.IF:
            return self.parse_if()
        if tok.type == TokenType.FUNCTION:
            return self.parse_function_def()
        if tok.type == TokenType.RETURN:
            return self.parse_return()
        if tok.type in (TokenType.ELSE, TokenType.ELSEIF):
            raise InvalidStatementError(
                f"'{tok.value}' without a matching 'if'", tok.line, tok.column
            )

        if tok.type == TokenType.VARIABLE and self.peek().type == TokenType.ASSIGN:
            return self.parse_assignment()

        if self._contains_pipeline():
            return self.parse_pipeline()

        expr = self.parse_array_expression()
        return ExpressionStatement(expression=expr, line=tok.line, col=tok.column)

    def _contains_pipeline(self) -> bool:
        """Scan ahead to the end of the statement for a ``|`` at depth zero."""
        depth = 0
        idx = self.pos
        while idx < len(self.tokens):
            tok_type = self.tokens[idx].type
            if tok_type in OPENERS:
                depth += 1
            elif tok_type in CLOSERS:
                depth -= 1
                if depth < 0:
                    return False  # end of the enclosing block
            elif depth == 0 and tok_type in STATEMENT_END:
                return False
            elif depth == 0 and tok_type == TokenType.PIPE:
                return True
            idx += 1
        return False

    def parse_assignment(self):
        """Parse ``$name = <expression or pipeline>``."""
        tok = self.expect(TokenType.VARIABLE)
        self.expect(TokenType.ASSIGN)
        self.skip_newlines()
        value = self._parse_pipeline_expression()
        return Assignment(target=tok.value, value=value, line=tok.line, col=tok.column)

    def parse_pipeline(self) -> Pipeline:
        """Parse ``stage | stage | ...`` (at least one pipe)."""
        tok = self.current()
        first = self.parse_array_expression()
        if self.current().type != TokenType.PIPE:
            self._unexpected("PIPE")
        return self._parse_pipeline_from(first, tok)

    def _parse_pipeline_from(self, first, tok: Token) -> Pipeline:
        stages = [first]
        while self.match(TokenType.PIPE):
            self.skip_newlines()
            stages.append(self.parse_array_expression())
        return Pipeline(stages=stages, line=tok.line, col=tok.column)

    def _parse_pipeline_expression(self):
        """An expression that may continue into a pipeline."""
        tok = self.current()
        expr = self.parse_array_expression()
        if self.current().type == TokenType.PIPE:
            return self._parse_pipeline_from(expr, tok)
        return expr

    def parse_block(self) -> list:
        """Parse ``{ statements }`` and return the statement list."""
        self.expect(TokenType.LBRACE)
        stmts: list = []
        self.skip_separators()
        while self.current().type != TokenType.RBRACE:
            if self.at_end():
                tok = self.current()
                raise UnexpectedEofError("RBRACE", tok.line, tok.column)
            stmts.append(self.parse_statement())
            self._expect_statement_end()
            self.skip_separators()
        self.expect(TokenType.RBRACE)
        return stmts

    def parse_if(self):
        """Parse ``if (cond) {...} [elseif (cond) {...}]* [else {...}]``.

        Also entered at an ELSEIF token; elseif chains become a nested
        IfStatement in ``else_body``.
        """
        tok = self.advance()  # IF or ELSEIF
        self.expect(TokenType.LPAREN)
        self.skip_newlines()
        condition = self._parse_pipeline_expression()
        self.skip_newlines()
        self.expect(TokenType.RPAREN)
        self.skip_newlines()
        body = self.parse_block()

        else_body: list | None = None

        # Newlines may separate the closing brace from else/elseif
        saved = self.pos
        self.skip_newlines()
        if self.current().type == TokenType.ELSEIF:
            else_body = [self.parse_if()]
        elif self.current().type == TokenType.ELSE:
            self.advance()  # consume ELSE
            if self.current().type == TokenType.IF:
                # `else if` reads as `elseif`
                else_body = [self.parse_if()]
            else:
                self.skip_newlines()
                else_body = self.parse_block()
        else:
            self.pos = saved

        return IfStatement(
            condition=condition,
            body=body,
            else_body=else_body,
            line=tok.line,
            col=tok.column,
        )

    def parse_function_def(self):
        """Parse a function definition.

        ::

            function Name($a, $b = <default>) { <body> }
        """
        tok = self.expect(TokenType.FUNCTION)
        name_tok = self.expect(TokenType.IDENTIFIER)

        params: list[Parameter] = []
        if self.match(TokenType.LPAREN):
            self.skip_newlines()
            while self.current().type != TokenType.RPAREN:
                param_tok = self.expect(TokenType.VARIABLE)
                default = None
                if self.match(TokenType.ASSIGN):
                    default = self.parse_expression()
                params.append(
                    Parameter(name=param_tok.value, default=default,
                              line=param_tok.line, col=param_tok.column)
                )
                self.skip_newlines()
                if not self.match(TokenType.COMMA):
                    break
                self.skip_newlines()
            self.expect(TokenType.RPAREN)

        self.skip_newlines()
        body = self.parse_block()

        return FunctionDef(
            name=name_tok.value,
            params=params,
            body=body,
            line=tok.line,
            col=tok.column,
        )

    def parse_return(self):
        """Parse ``return [<expression>]``."""
        tok = self.expect(TokenType.RETURN)
        value = None
        if self.current().type not in STATEMENT_END + (TokenType.RBRACE,):
            value = self._parse_pipeline_expression()
        return ReturnStatement(value=value, line=tok.line, col=tok.column)

    # -- Expression parsing ------------------------------------------------

    def parse_array_expression(self):
        """Parse ``expr[, expr]*``; a comma list becomes an ArrayLiteral."""
        tok = self.current()
        first = self.parse_expression()
        if self.current().type != TokenType.COMMA:
            return first
        elements = [first]
        while self.match(TokenType.COMMA):
            self.skip_newlines()
            elements.append(self.parse_expression())
        return ArrayLiteral(elements=elements, line=tok.line, col=tok.column)

    def parse_expression(self):
        """Entry point for expression parsing — lowest precedence."""
        return self.parse_comparison()

    def _parse_binary_level(self, ops: dict[TokenType, str], operand):
        left = operand()
        while self.current().type in ops:
            op_tok = self.advance()
            self.skip_newlines()
            right = operand()
            left = BinaryOp(left=left, op=ops[op_tok.type], right=right,
                            line=op_tok.line, col=op_tok.column)
        return left

    def parse_comparison(self):
        """Parse ``-eq -ne -gt -lt -ge -le`` (precedence 1)."""
        return self._parse_binary_level(COMPARISON_OPS, self.parse_additive)

    def parse_additive(self):
        """Parse ``+`` and ``-`` (precedence 2)."""
        return self._parse_binary_level(ADDITIVE_OPS, self.parse_multiplicative)

    def parse_multiplicative(self):
        """Parse ``*``, ``/``, ``%`` (precedence 3)."""
        return self._parse_binary_level(MULTIPLICATIVE_OPS, self.parse_unary)

    def parse_unary(self):
        """Parse unary ``-`` and ``!`` prefixes."""
        if self.current().type == TokenType.MINUS:
            op_tok = self.advance()
            operand = self.parse_unary()
            return UnaryOp(op="-", operand=operand, line=op_tok.line, col=op_tok.column)
        if self.current().type == TokenType.NOT:
            op_tok = self.advance()
            operand = self.parse_unary()
            return UnaryOp(op="!", operand=operand, line=op_tok.line, col=op_tok.column)
        return self.parse_postfix()

    def parse_postfix(self):
        """Parse a primary followed by any number of ``.member`` accesses."""
        node = self.parse_primary()
        return self._parse_member_chain(node)

    def _parse_member_chain(self, node):
        while (
            self.current().type == TokenType.DOT
            and self.peek().type in MEMBER_NAME_TYPES
        ):
            self.advance()  # consume '.'
            member_tok = self.advance()
            node = MemberAccess(
                object=node,
                member=member_tok.value,
                line=member_tok.line,
                col=member_tok.column,
            )
        return node

    def parse_primary(self):
        """Parse primary (atomic) expressions."""
        tok = self.current()

        if tok.type == TokenType.NUMBER:
            self.advance()
            return NumberLiteral(value=float(tok.value), line=tok.line, col=tok.column)

        if tok.type == TokenType.STRING:
            self.advance()
            return StringLiteral(value=tok.value, line=tok.line, col=tok.column)

        if tok.type == TokenType.INTERPOLATED_STRING:
            self.advance()
            return InterpolatedString(parts=tok.value, line=tok.line, col=tok.column)

        if tok.type == TokenType.BOOLEAN:
            self.advance()
            return BooleanLiteral(value=tok.value, line=tok.line, col=tok.column)

        if tok.type == TokenType.VARIABLE:
            self.advance()
            return Variable(name=tok.value, line=tok.line, col=tok.column)

        if tok.type == TokenType.IDENTIFIER:
            return self._parse_call()

        # Grouped expression: ( expr ) or ( pipeline )
        if tok.type == TokenType.LPAREN:
            self.advance()
            self.skip_newlines()
            node = self._parse_pipeline_expression()
            self.skip_newlines()
            self.expect(TokenType.RPAREN)
            return node

        # Script block: { statements }
        if tok.type == TokenType.LBRACE:
            body = self.parse_block()
            return ScriptBlockExpr(body=body, line=tok.line, col=tok.column)

        if tok.type == TokenType.AT_LPAREN:
            return self._parse_array_literal()

        if tok.type == TokenType.AT_LBRACE:
            return self._parse_hashtable_literal()

        if tok.type in BINARY_OPS:
            raise InvalidOperatorError(tok, tok.line, tok.column)

        if tok.type == TokenType.EOF:
            raise UnexpectedEofError("expression", tok.line, tok.column)

        raise InvalidExpressionError(
            f"Unexpected token {tok.type.name} ({tok.value!r}) in expression",
            tok.line,
            tok.column,
        )

    # -- Calls -------------------------------------------------------------

    def _is_named_argument(self) -> bool:
        return (
            self.current().type == TokenType.MINUS
            and self.peek().type == TokenType.IDENTIFIER
        )

    def _at_argument_end(self) -> bool:
        tok_type = self.current().type
        if tok_type in STATEMENT_END + CLOSERS or tok_type == TokenType.PIPE:
            return True
        # A binary operator other than minus ends the argument list: `Foo 1 -eq 2`
        return tok_type in BINARY_OPS and tok_type != TokenType.MINUS

    def _parse_call(self) -> Call:
        """Parse ``Name [arg | -Param [value]]*``."""
        name_tok = self.expect(TokenType.IDENTIFIER)
        args: list[Argument] = []

        nxt = self.current().type
        if nxt in NO_ARGS_AFTER:
            return Call(name=name_tok.value, args=args, line=name_tok.line, col=name_tok.column)
        if nxt in BINARY_OPS and not self._is_named_argument():
            # `Get-Count + 1`, `Get-Count -eq 5`: no arguments
            return Call(name=name_tok.value, args=args, line=name_tok.line, col=name_tok.column)

        while not self._at_argument_end():
            if self.match(TokenType.COMMA):
                continue
            if self._is_named_argument():
                dash = self.advance()
                param = self.advance()
                if self._at_argument_end() or self._is_named_argument() \
                        or self.current().type == TokenType.COMMA:
                    value = BooleanLiteral(value=True, line=param.line, col=param.column)
                else:
                    value = self._parse_argument_value()
                args.append(Argument(value=value, name=param.value, line=dash.line, col=dash.column))
                continue
            arg_tok = self.current()
            value = self._parse_argument_value()
            args.append(Argument(value=value, line=arg_tok.line, col=arg_tok.column))

        return Call(name=name_tok.value, args=args, line=name_tok.line, col=name_tok.column)

    def _parse_argument_value(self):
        """One argument value: a bareword string, or a primary with postfixes."""
        tok = self.current()
        if tok.type == TokenType.IDENTIFIER:
            self.advance()
            return StringLiteral(value=tok.value, line=tok.line, col=tok.column)
        if tok.type == TokenType.MINUS:
            self.advance()
            operand = self._parse_argument_value()
            return UnaryOp(op="-", operand=operand, line=tok.line, col=tok.column)
        if tok.type == TokenType.NOT:
            self.advance()
            operand = self._parse_argument_value()
            return UnaryOp(op="!", operand=operand, line=tok.line, col=tok.column)
        return self.parse_postfix()

    # -- Collection literals -----------------------------------------------

    def _parse_array_literal(self) -> ArrayLiteral:
        """Parse ``@( elem, elem ... )``; commas, newlines and semicolons separate."""
        tok = self.expect(TokenType.AT_LPAREN)
        elements: list = []
        self.skip_separators(TokenType.COMMA)
        while self.current().type != TokenType.RPAREN:
            if self.at_end():
                raise UnexpectedEofError("RPAREN", tok.line, tok.column)
            elem_tok = self.current()
            elem = self.parse_expression()
            if self.current().type == TokenType.PIPE:
                elem = self._parse_pipeline_from(elem, elem_tok)
            elements.append(elem)
            if self.current().type not in (
                TokenType.COMMA, TokenType.NEWLINE, TokenType.SEMICOLON, TokenType.RPAREN
            ):
                self._unexpected("COMMA or RPAREN")
            self.skip_separators(TokenType.COMMA)
        self.expect(TokenType.RPAREN)
        return ArrayLiteral(elements=elements, line=tok.line, col=tok.column)

    def _parse_hashtable_key(self) -> str:
        """Parse a hashtable key — accepts IDENTIFIER, STRING or NUMBER tokens."""
        tok = self.current()
        if tok.type in (TokenType.IDENTIFIER, TokenType.STRING, TokenType.NUMBER):
            self.advance()
            return tok.value
        if tok.type == TokenType.EOF:
            raise UnexpectedEofError("hashtable key", tok.line, tok.column)
        raise UnexpectedTokenError("hashtable key", tok, tok.line, tok.column)

    def _parse_hashtable_literal(self) -> HashtableLiteral:
        """Parse ``@{ key = value; key = value ... }``."""
        tok = self.expect(TokenType.AT_LBRACE)
        pairs: list[tuple[str, object]] = []
        self.skip_separators(TokenType.COMMA)
        while self.current().type != TokenType.RBRACE:
            key = self._parse_hashtable_key()
            self.expect(TokenType.ASSIGN)
            self.skip_newlines()
            value = self.parse_expression()
            pairs.append((key, value))
            if self.current().type not in (
                TokenType.COMMA, TokenType.NEWLINE, TokenType.SEMICOLON, TokenType.RBRACE
            ):
                self._unexpected("';' or RBRACE")
            self.skip_separators(TokenType.COMMA)
        self.expect(TokenType.RBRACE)
        return HashtableLiteral(pairs=pairs, line=tok.line, col=tok.column)


def parse(tokens: list[Token]) -> Program:
    """Convenience wrapper: ``Parser(tokens).parse()``."""
    return Parser(tokens).parse()
