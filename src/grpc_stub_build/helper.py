"""Helper functionality that is used in other modules of this package."""

from __future__ import annotations

from collections.abc import Sequence

INDENT = "    "


def indent_lines(lines: Sequence[str], depth: int = 1) -> list[str]:
    """Indent lines by a number of levels.

    Empty lines stay empty, so that no trailing whitespace is generated.

    Args:
        lines (Sequence[str]): The lines to indent.
        depth (int): The number of indentation levels.

    Returns:
        list[str]: The indented lines.
    """
    prefix = INDENT * depth
    return [f"{prefix}{line}" if line else "" for line in lines]


def format_docstring(comments: Sequence[str], fallback: str = "") -> list[str]:
    """Format documentation comments from a schema as the lines of a docstring.

    Backslashes and triple quotes within the comments are escaped.

    Args:
        comments (Sequence[str]): Comment blocks, as found in the schema.
        fallback (str): The docstring to use if there are no comments.

    Returns:
        list[str]: The docstring lines, or an empty list if there is nothing to document.
    """
    lines: list[str] = []

    for block in comments:
        block_lines = [line.rstrip() for line in block.strip("\n").splitlines()]

        # Schema comments usually keep the space after `//`.
        block_lines = [line[1:] if line.startswith(" ") else line for line in block_lines]

        if lines and block_lines:
            lines.append("")
        lines.extend(block_lines)

    while lines and not lines[-1]:
        lines.pop()

    if not lines:
        if not fallback:
            return []
        lines = [fallback]

    lines = [line.replace("\\", "\\\\").replace('"""', '\\"\\"\\"') for line in lines]

    # A quote right before the closing quotes would end the string early.
    if lines[-1].endswith('"'):
        lines[-1] = lines[-1][:-1] + '\\"'

    if len(lines) == 1:
        return [f'"""{lines[0]}"""']

    return [f'"""{lines[0]}', *lines[1:], '"""']
