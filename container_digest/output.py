"""Render digest results as JSON or Nix with sorted keys"""
import json
from operator import itemgetter
from pathlib import Path

import click

from container_digest.digests import NestedDigestResult

# registry, repository, tag, architecture
DEPTH = 4

NIX_FUNCTION_HEADER = "{pkgs, ...}: "

FORMAT_NAMES = {"json": "JSON", "nix": "Nix"}


class SerializationError(Exception):
    """Raised when the results do not have the expected nested shape."""


def _sorted_items(node, level: int) -> list[tuple[str, object]]:
    """Return the items of one mapping level sorted by key

    Keys are compared by code point. Non string keys, non mapping
    levels and empty or non string leaves are rejected.
    """
    if not isinstance(node, dict):
        raise SerializationError(
            f"Expected a mapping at level {level}, got {type(node).__name__}"
        )
    for key, value in node.items():
        if not isinstance(key, str):
            raise SerializationError(
                f"Expected a string key at level {level}, got {key!r}"
            )
        if level == DEPTH - 1 and not (isinstance(value, str) and value):
            raise SerializationError(f"Expected a non-empty string for {key!r}")
    return sorted(node.items(), key=itemgetter(0))


def _check_shape(node, level: int = 0):
    for _, value in _sorted_items(node, level):
        if level < DEPTH - 1:
            _check_shape(value, level + 1)


def escape_nix_string(value: str) -> str:
    """Escape a string for use inside a double quoted Nix string"""
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("$", "\\$")


def format_json(results: NestedDigestResult) -> str:
    _check_shape(results)
    return json.dumps(results, indent=2, sort_keys=True, ensure_ascii=False)


def _nix_lines(node, level: int, lines: list[str]):
    indent = "  " * (level + 1)
    for key, value in _sorted_items(node, level):
        key = escape_nix_string(key)
        if level == DEPTH - 1:
            lines.append(f'{indent}"{key}" = "{escape_nix_string(value)}";')
            continue
        lines.append(f'{indent}"{key}" = {{')
        _nix_lines(value, level + 1, lines)
        lines.append(f"{indent}}};")


def format_nix(results: NestedDigestResult, wrapper: bool = True) -> str:
    """Render the results as a Nix attribute set

    With `wrapper` the attribute set is the body of a `{pkgs, ...}:` function.
    """
    lines = [f"{NIX_FUNCTION_HEADER}{{" if wrapper else "{"]
    _nix_lines(results, 0, lines)
    lines.append("}")
    return "\n".join(lines)


def serialize(
    results: NestedDigestResult, output_format: str, nix_wrapper: bool = True
) -> bytes:
    if output_format == "json":
        text = format_json(results)
    elif output_format == "nix":
        text = format_nix(results, wrapper=nix_wrapper)
    else:
        raise ValueError(
            f"unsupported output format: {output_format} "
            f"(supported formats: {', '.join(FORMAT_NAMES)})"
        )
    return text.encode("utf-8")


def write_output(data: bytes, path: Path | None = None):
    """Write to stdout or overwrite `path`, creating parent directories"""
    if path is None:
        click.echo(data)
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data + b"\n")
