"""Posh CLI — posh run, posh check, posh repl, posh -c."""
import logging
import os
import sys

from posh.lexer import Lexer
from posh.parser import Parser
from posh.evaluator import Evaluator
from posh.errors import LexerError, ParseError
from posh_runtime import default_registry, display, get_setting
from posh_runtime.exceptions import PoshRuntimeError

USAGE = """Usage: posh <command> [file.ps1]
Commands: run, check, repl
       posh -c "<source>"
Options: --verbose  log debug output to stderr"""


def configure_logging(verbose: bool = False) -> None:
    level = "DEBUG" if verbose else str(get_setting("logging.level", "WARNING")).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def make_evaluator() -> Evaluator:
    """An evaluator with the built-in commands, configured from posh.config."""
    return Evaluator(
        default_registry(),
        strict_variables=bool(get_setting("evaluator.strict_variables", False)),
    )


def format_result(value) -> list[str]:
    """Lines to print for a result: Null prints nothing, arrays one item per line."""
    if value is None:
        return []
    if isinstance(value, list):
        return [display(item) for item in value if item is not None]
    return [display(value)]


def execute(source: str, evaluator: Evaluator) -> int:
    """Run *source*, print its result or the error; return an exit status."""
    try:
        tokens = Lexer(source).tokenize()
    except LexerError as e:
        print(f"Lexer error: {e}", file=sys.stderr)
        return 1
    try:
        tree = Parser(tokens).parse()
    except ParseError as e:
        print(f"Parse error: {e}", file=sys.stderr)
        return 1
    try:
        result = evaluator.eval(tree)
    except PoshRuntimeError as e:
        print(f"Runtime error: {e}", file=sys.stderr)
        return 1

    for line in format_result(result):
        print(line)
    return 0


def check(source: str) -> int:
    """Lex and parse only."""
    try:
        Parser(Lexer(source).tokenize()).parse()
    except LexerError as e:
        print(f"Lexer error: {e}", file=sys.stderr)
        return 1
    except ParseError as e:
        print(f"Parse error: {e}", file=sys.stderr)
        return 1
    return 0


def is_incomplete(source: str) -> bool:
    """True while brackets or a quote are still open, so the REPL keeps reading."""
    depth = 0
    quote = None
    i = 0
    while i < len(source):
        ch = source[i]
        if quote:
            if ch == "\\":
                i += 1
            elif ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
        elif ch == "#":
            while i < len(source) and source[i] != "\n":
                i += 1
            continue
        elif ch in "({[":
            depth += 1
        elif ch in ")}]":
            depth -= 1
        i += 1
    return quote is not None or depth > 0


def repl(evaluator: Evaluator) -> None:
    prompt = get_setting("shell.prompt", "PS > ")
    continuation = get_setting("shell.continuation_prompt", ">> ")
    buffer: list[str] = []

    while True:
        try:
            line = input(continuation if buffer else prompt)
        except EOFError:
            print()
            break
        except KeyboardInterrupt:
            print()
            buffer = []
            continue

        if not buffer and line.strip().lower() == "exit":
            break

        buffer.append(line)
        source = "\n".join(buffer)
        if is_incomplete(source):
            continue
        buffer = []
        if source.strip():
            # Errors are reported and the loop continues
            execute(source, evaluator)


def _read_script(filepath: str) -> str:
    if not os.path.exists(filepath):
        print(f"Error: file not found: {filepath}", file=sys.stderr)
        sys.exit(1)
    with open(filepath) as f:
        return f.read()


def main():
    args = sys.argv[1:]
    verbose = "--verbose" in args
    args = [arg for arg in args if arg != "--verbose"]

    if not args:
        print(USAGE, file=sys.stderr)
        sys.exit(1)

    configure_logging(verbose)
    command = args[0]

    if command == "-c":
        if len(args) < 2:
            print('Usage: posh -c "<source>"', file=sys.stderr)
            sys.exit(1)
        sys.exit(execute(args[1], make_evaluator()))

    if command == "repl":
        repl(make_evaluator())
        sys.exit(0)

    if command in ("run", "check"):
        if len(args) < 2:
            print(f"Usage: posh {command} <file.ps1>", file=sys.stderr)
            sys.exit(1)
        filepath = args[1]
        source = _read_script(filepath)

        if command == "check":
            status = check(source)
            if status == 0:
                print(f"OK: {filepath}")
            sys.exit(status)

        sys.exit(execute(source, make_evaluator()))

    print(f"Unknown command: {command}", file=sys.stderr)
    sys.exit(1)


if __name__ == "__main__":
    main()
