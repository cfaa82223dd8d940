"""Posh data commands — file system, processes, HTTP.

Expected failures (missing files, bad arguments, HTTP errors) are
reported as InvalidOperationError, never as raw library exceptions.
"""

from __future__ import annotations

import codecs
import json
import logging
import os
import shutil
from collections import deque
from collections.abc import Mapping

import httpx

from posh_runtime.commands import CommandContext, ScriptBlockInvoker, command
from posh_runtime.config import get_setting
from posh_runtime.exceptions import InvalidOperationError
from posh_runtime.types import PoshObject, display, to_number, to_plain_value, to_posh_value

logger = logging.getLogger(__name__)

ENCODINGS = {
    "utf8": "utf-8",
    "utf-8": "utf-8",
    "utf8bom": "utf-8-sig",
    "ascii": "ascii",
    "us-ascii": "ascii",
    "unicode": "utf-16-le",
    "utf16": "utf-16-le",
    "utf-16": "utf-16-le",
    "utf-16le": "utf-16-le",
    "bigendianunicode": "utf-16-be",
    "utf-16be": "utf-16-be",
}

# Fixed sample table served by Get-Process: (Name, Id, CPU, WorkingSet)
SAMPLE_PROCESSES = [
    ("System", 4, 0.0, 1024),
    ("explorer", 1234, 15.5, 102400),
    ("chrome", 5678, 45.2, 512000),
    ("code", 9012, 23.1, 256000),
    ("pwsh", 3456, 5.0, 51200),
]


# -- Argument helpers --------------------------------------------------------

def _resolve_path(path: str) -> str:
    return os.path.abspath(os.path.expanduser(path))


def _require_path(context: CommandContext, command_name: str, param: str = "Path") -> str:
    """Path from ``-Path`` or the first positional argument."""
    value = context.get_parameter(param)
    if value is None:
        value = context.get_argument(0)
    if not isinstance(value, str) or not value:
        raise InvalidOperationError(f"{command_name} requires a path")
    return _resolve_path(value)


def _count_parameter(context: CommandContext, name: str) -> int | None:
    value = context.get_parameter(name)
    if value is None:
        return None
    number = to_number(value)
    if number is None or number < 0 or not float(number).is_integer():
        raise InvalidOperationError(f"{name} must be a non-negative integer, got: {display(value)}")
    return int(number)


def _encoding(context: CommandContext) -> str | None:
    value = context.get_parameter("Encoding")
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidOperationError(f"Encoding must be a string, got: {display(value)}")
    label = value.strip().lower()
    if not label:
        return None
    if label in ENCODINGS:
        return ENCODINGS[label]
    raise InvalidOperationError(f"Unsupported encoding: {value}")


def _lines_of(value) -> list[str]:
    if isinstance(value, list):
        return [display(item) for item in value]
    return [display(value)]


def _sniff_encoding(path: str) -> str:
    """Pick an encoding from a byte-order mark, defaulting to UTF-8."""
    with open(path, "rb") as f:
        head = f.read(4)
    if head.startswith(codecs.BOM_UTF8):
        return "utf-8-sig"
    if head.startswith(codecs.BOM_UTF16_LE) or head.startswith(codecs.BOM_UTF16_BE):
        return "utf-16"
    return "utf-8"


def _item_object(path: str, item_type: str) -> PoshObject:
    item = PoshObject()
    item["FullName"] = path
    item["Name"] = os.path.basename(path.rstrip(os.sep)) or path
    item["ItemType"] = item_type
    item["Directory"] = item_type == "Directory"
    return item


# -- File system ------------------------------------------------------------

@command("Get-Content")
def get_content(context: CommandContext, invoker: ScriptBlockInvoker) -> list:
    """Read a text file as one String per line (``-TotalCount`` / ``-Tail``)."""
    encoding = _encoding(context)
    total_count = _count_parameter(context, "TotalCount")
    tail = _count_parameter(context, "Tail")
    path = _require_path(context, "Get-Content")

    if total_count is not None and tail is not None:
        raise InvalidOperationError(
            "Get-Content does not support using -TotalCount and -Tail together"
        )
    if total_count == 0 or tail == 0:
        return []

    try:
        with open(path, encoding=encoding or _sniff_encoding(path), newline=None) as f:
            lines = (line.rstrip("\n") for line in f)
            if tail is not None:
                return list(deque(lines, maxlen=tail))
            out = []
            for line in lines:
                if total_count is not None and len(out) >= total_count:
                    break
                out.append(line)
            return out
    except (OSError, UnicodeDecodeError) as e:
        raise InvalidOperationError(f"Failed to read file '{path}': {e}") from e


@command("Set-Content")
def set_content(context: CommandContext, invoker: ScriptBlockInvoker) -> list:
    """Write values to a file, one per line; ``-Value`` wins over pipeline input."""
    path = _require_path(context, "Set-Content")

    if context.has_parameter("Value"):
        lines = _lines_of(context.get_parameter("Value"))
    elif context.pipeline_input:
        lines = []
        for value in context.pipeline_input:
            lines.extend(_lines_of(value))
    elif len(context.arguments) > 1:
        lines = _lines_of(context.get_argument(1))
    else:
        raise InvalidOperationError(
            "Set-Content requires a value to write (use -Value or pipeline input)"
        )

    data = "\n".join(lines) + "\n" if lines else ""
    try:
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(data)
    except OSError as e:
        raise InvalidOperationError(f"Failed to write file '{path}': {e}") from e
    logger.debug("wrote %d lines to %s", len(lines), path)
    return []


@command("Test-Path")
def test_path(context: CommandContext, invoker: ScriptBlockInvoker) -> list:
    """Return True if the path exists."""
    path = _require_path(context, "Test-Path")
    return [os.path.exists(path)]


@command("New-Item")
def new_item(context: CommandContext, invoker: ScriptBlockInvoker) -> list:
    """Create a file or directory (``-ItemType File|Directory``, ``-Force``)."""
    path = _require_path(context, "New-Item")

    item_type = context.get_parameter("Type")
    if item_type is None:
        item_type = context.get_parameter("ItemType")
    if item_type is None:
        item_type = context.get_argument(1)
    if item_type is None:
        raise InvalidOperationError("New-Item requires -Type (File or Directory)")
    kind = display(item_type).strip().lower()
    force = context.get_switch("Force")

    if kind in ("directory", "dir", "folder"):
        if os.path.exists(path):
            if not force:
                raise InvalidOperationError(f"Path already exists: {path}")
        else:
            try:
                os.makedirs(path)
            except OSError as e:
                raise InvalidOperationError(f"Failed to create directory '{path}': {e}") from e
        return [_item_object(path, "Directory")]

    if kind == "file":
        parent = os.path.dirname(path)
        if parent and not os.path.isdir(parent):
            raise InvalidOperationError(f"Parent directory does not exist: {parent}")
        if os.path.exists(path) and not force:
            raise InvalidOperationError(f"Path already exists: {path}")
        try:
            with open(path, "w"):
                pass
        except OSError as e:
            raise InvalidOperationError(f"Failed to create file '{path}': {e}") from e
        return [_item_object(path, "File")]

    raise InvalidOperationError(f"Unsupported -Type for New-Item: {display(item_type)}")


@command("Remove-Item")
def remove_item(context: CommandContext, invoker: ScriptBlockInvoker) -> list:
    """Delete a file, or a directory (non-empty ones need ``-Recurse``)."""
    path = _require_path(context, "Remove-Item")
    recurse = context.get_switch("Recurse")

    if not os.path.lexists(path):
        raise InvalidOperationError(f"Failed to access path '{path}': no such file or directory")
    try:
        if os.path.isdir(path) and not os.path.islink(path):
            if recurse:
                shutil.rmtree(path)
            else:
                os.rmdir(path)
        else:
            os.remove(path)
    except OSError as e:
        raise InvalidOperationError(f"Failed to remove '{path}': {e}") from e
    return []


@command("Get-ChildItem")
def get_child_item(context: CommandContext, invoker: ScriptBlockInvoker) -> list:
    """List a directory (default: the working directory), sorted by name."""
    value = context.get_parameter("Path")
    if value is None:
        value = context.get_argument(0)
    directory = _resolve_path(value) if isinstance(value, str) and value else os.getcwd()

    try:
        entries = sorted(os.scandir(directory), key=lambda entry: entry.name)
    except OSError as e:
        raise InvalidOperationError(f"Failed to read directory '{directory}': {e}") from e

    items = []
    for entry in entries:
        try:
            is_dir = entry.is_dir()
            size = 0 if is_dir else entry.stat().st_size
        except OSError:
            # dangling symlink: report the link itself
            is_dir = False
            size = entry.stat(follow_symlinks=False).st_size if entry.is_symlink() else 0
        item = PoshObject()
        item["Name"] = entry.name
        item["FullName"] = entry.path
        item["Length"] = float(size)
        item["Directory"] = is_dir
        items.append(item)
    return items


# -- Processes ---------------------------------------------------------------

@command("Get-Process")
def get_process(context: CommandContext, invoker: ScriptBlockInvoker) -> list:
    """Return the sample process table, optionally filtered by ``-Name`` substring."""
    processes = []
    for name, pid, cpu, working_set in SAMPLE_PROCESSES:
        proc = PoshObject()
        proc["Name"] = name
        proc["Id"] = float(pid)
        proc["CPU"] = cpu
        proc["WorkingSet"] = float(working_set)
        processes.append(proc)

    name_filter = context.get_parameter("Name")
    if name_filter is None:
        name_filter = context.get_argument(0)
    if name_filter is not None:
        needle = display(name_filter).lower()
        processes = [p for p in processes if needle in p["Name"].lower()]
    return processes


# -- HTTP --------------------------------------------------------------------

@command("Invoke-RestMethod")
def invoke_rest_method(context: CommandContext, invoker: ScriptBlockInvoker) -> list:
    """Make an HTTP request. JSON responses become objects, anything else text."""
    url = context.get_parameter("Uri")
    if url is None:
        url = context.get_argument(0)
    if not isinstance(url, str) or not url:
        raise InvalidOperationError("Invoke-RestMethod requires -Uri")

    method = display(context.get_parameter("Method", "GET")).upper()
    headers = dict(get_setting("http.headers", {}) or {})
    extra_headers = context.get_parameter("Headers")
    if extra_headers is not None:
        if not isinstance(extra_headers, Mapping):
            raise InvalidOperationError("-Headers must be a hashtable")
        headers.update({k: display(v) for k, v in extra_headers.items()})

    body = context.get_parameter("Body")
    kwargs = {}
    if isinstance(body, (Mapping, list)):
        kwargs["json"] = to_plain_value(body)
    elif body is not None:
        kwargs["content"] = display(body)

    timeout = get_setting("http.timeout", 30)
    logger.debug("%s %s", method, url)
    try:
        response = httpx.request(method, url, headers=headers, timeout=timeout, **kwargs)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise InvalidOperationError(f"HTTP {e.response.status_code}: {url}") from e
    except httpx.RequestError as e:
        raise InvalidOperationError(f"Request failed: {url}: {e}") from e
    except httpx.InvalidURL as e:
        raise InvalidOperationError(f"Invalid URI: {url}: {e}") from e
    except (UnicodeEncodeError, TypeError) as e:
        raise InvalidOperationError(f"Invalid request for {url}: {e}") from e

    content_type = response.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            data = response.json()
        except json.JSONDecodeError as e:
            raise InvalidOperationError(f"Invalid JSON from {url}: {e}") from e
        result = to_posh_value(data)
        if isinstance(result, list):
            return result
        return [result]
    return [response.text]


DATA_COMMANDS = [
    get_content,
    set_content,
    test_path,
    new_item,
    remove_item,
    get_child_item,
    get_process,
    invoke_rest_method,
]
