"""Posh MCP Server — exposes Posh script tools via MCP protocol."""

import os

from mcp.server.fastmcp import FastMCP

from posh.lexer import Lexer
from posh.parser import Parser
from posh.errors import LexerError, ParseError
from posh.cli import format_result, make_evaluator
from posh_runtime.exceptions import PoshRuntimeError

mcp = FastMCP("posh")

SCRIPT_EXTENSION = ".ps1"


def _read_source(filepath: str) -> tuple[str | None, str | None]:
    """Return (source, error_message)."""
    try:
        with open(filepath) as f:
            return f.read(), None
    except FileNotFoundError:
        return None, f"Error: file not found: {filepath}"
    except OSError as e:
        return None, f"Error reading file: {e}"


def _parse(source: str):
    """Parse *source*; return (tree, error_message)."""
    try:
        tokens = Lexer(source).tokenize()
    except LexerError as e:
        return None, f"Lexer error: {e}"
    try:
        return Parser(tokens).parse(), None
    except ParseError as e:
        return None, f"Parse error: {e}"


@mcp.tool()
def posh_write(filepath: str, source: str) -> str:
    """Write a Posh script to a file. Use this to create new .ps1 scripts.

    Args:
        filepath: Path to the .ps1 file to create (e.g. "report.ps1")
        source: The script source to write
    """
    return write_script_file(filepath, source)


def write_script_file(filepath: str, source: str) -> str:
    """Core logic for writing a script file — testable without MCP."""
    if not filepath.endswith(SCRIPT_EXTENSION):
        return f"Error: filepath must end with {SCRIPT_EXTENSION}"
    try:
        os.makedirs(os.path.dirname(filepath) if os.path.dirname(filepath) else ".", exist_ok=True)
        with open(filepath, "w") as f:
            f.write(source)
        return f"Saved: {filepath}"
    except OSError as e:
        return f"Error writing file: {e}"


@mcp.tool()
def posh_check(filepath: str) -> str:
    """Check script syntax without running it.

    Args:
        filepath: Path to the .ps1 file to check
    """
    return check_script_file(filepath)


def check_script_file(filepath: str) -> str:
    """Core logic for checking a script — testable without MCP."""
    source, error = _read_source(filepath)
    if error:
        return error
    _, error = _parse(source)
    return error or f"OK: {filepath}"


@mcp.tool()
def posh_run(filepath: str) -> str:
    """Run a Posh script and return its output, one value per line.

    Args:
        filepath: Path to the .ps1 file to run
    """
    return run_script_file(filepath)


def run_script_file(filepath: str) -> str:
    """Core logic for running a script — testable without MCP."""
    source, error = _read_source(filepath)
    if error:
        return error
    tree, error = _parse(source)
    if error:
        return error

    try:
        result = make_evaluator().eval(tree)
    except PoshRuntimeError as e:
        return f"Runtime error: {e}"

    lines = format_result(result)
    return "\n".join(lines) if lines else "(script produced no output)"


POSH_LANGUAGE_GUIDE = """\
# Writing Posh Scripts

Posh is a small PowerShell-style object-pipeline language. Values flow
through `|` from one stage to the next. Use posh_write to create .ps1
files, posh_check to validate them and posh_run to execute them.

## Variables
```
$name = "Austin"
$count = 3
$global:total = 0      # scope qualifiers: global:, local:, script:
```
Variable names are case-insensitive: `$Name` and `$name` are the same.

## Strings
```
'single quotes: no interpolation'
"double quotes: hello $name"
"escapes: \\n \\t \\" and doubled quotes: ""quoted""\"
```

## Operators
```
1 + 2 * 3        # arithmetic: + - * / %
"a" + 1          # string concatenation
$x -eq 5         # comparison: -eq -ne -gt -lt -ge -le
!$flag           # not
```
`-eq` on strings is case-insensitive.

## Arrays and hashtables
```
$items = @(1, 2, 3)
$p = @{ Name = "chrome"; CPU = 45.2 }
$p.Name
$items.Count
```

## Conditionals
```
if ($x -gt 10) {
    "big"
} elseif ($x -gt 5) {
    "medium"
} else {
    "small"
}
```

## Functions
```
function Add($a, $b = 1) {
    return $a + $b
}
Add 5 10
```

## Pipelines and commands
```
Get-Process | Where-Object { $_.CPU -gt 10 } | Sort-Object CPU -Descending
@(3, 1, 2) | ForEach-Object { $_ * 2 }
$procs | Select-Object Name, CPU -First 2
Get-Process | Group-Object -Property Name
```
Built-in commands: Write-Output, Where-Object, ForEach-Object,
Select-Object, Sort-Object, Group-Object, Get-Content, Set-Content,
Test-Path, New-Item, Remove-Item, Get-ChildItem, Get-Process,
Invoke-RestMethod.

## Important Rules
1. Variables start with `$`; `$_` is the current pipeline item
2. Named parameters are written `-Name value`; a bare `-Switch` means true
3. Comments start with `#`
4. Blocks use braces `{ }`; statements are separated by newlines or `;`
5. Files must end with .ps1 extension
"""


@mcp.prompt()
def posh_guide() -> str:
    """Complete guide to writing Posh scripts. Use this when writing .ps1 files."""
    return POSH_LANGUAGE_GUIDE


if __name__ == "__main__":
    mcp.run(transport="stdio")
