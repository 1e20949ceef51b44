"""Windows command-line quoting.

native-tool-launcher quoting module v0.1.0

Native launchers on Windows receive a single flat command-line string and
the child re-splits it with the Microsoft C runtime rules:

- space/tab outside quotes separate arguments
- backslashes are only special directly before a double quote
- 2n backslashes + quote -> n backslashes, quote toggles quoted mode
- 2n+1 backslashes + quote -> n backslashes and a literal quote

``quote_argument`` / ``join_arguments`` encode an argument vector so that
``split_command_line`` (and the child) recovers it unchanged.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

__all__ = [
    "quote_argument",
    "join_arguments",
    "split_command_line",
]

_NEEDS_QUOTING = re.compile(r'[ \t"]')
_WHITESPACE = " \t"


def quote_argument(arg: str) -> str:
    """Escape one argument for a Windows command line.

    Args:
        arg: Logical argument (may be empty or contain any character)

    Returns:
        Encoded form; simple tokens are returned unchanged
    """
    if not arg:
        return '""'
    if not _NEEDS_QUOTING.search(arg):
        return arg

    parts = ['"']
    backslashes = 0
    for ch in arg:
        if ch == "\\":
            backslashes += 1
            continue
        if ch == '"':
            # Run must survive the escaped quote that follows it
            parts.append("\\" * (backslashes * 2 + 1))
        else:
            parts.append("\\" * backslashes)
        parts.append(ch)
        backslashes = 0

    # Trailing run precedes the closing quote
    parts.append("\\" * (backslashes * 2))
    parts.append('"')
    return "".join(parts)


def join_arguments(args: Iterable[str]) -> str:
    """Encode an argument vector as one space-separated command line."""
    return " ".join(quote_argument(arg) for arg in args)


def split_command_line(command_line: str) -> list[str]:
    """Split a command line the way the Microsoft C runtime does.

    Only argument rules apply: the string must not start with the program
    name (argv[0] is parsed differently by the runtime).

    Args:
        command_line: Flat command line

    Returns:
        Decoded argument vector
    """
    args: list[str] = []
    current: list[str] = []
    in_arg = False
    in_quotes = False
    i = 0
    length = len(command_line)

    while i < length:
        ch = command_line[i]

        if ch in _WHITESPACE and not in_quotes:
            if in_arg:
                args.append("".join(current))
                current = []
                in_arg = False
            i += 1
            continue

        in_arg = True

        if ch == "\\":
            end = i
            while end < length and command_line[end] == "\\":
                end += 1
            count = end - i
            if end < length and command_line[end] == '"':
                current.append("\\" * (count // 2))
                if count % 2:
                    current.append('"')
                    end += 1
            else:
                current.append("\\" * count)
            i = end
            continue

        if ch == '"':
            if in_quotes and i + 1 < length and command_line[i + 1] == '"':
                # "" inside quotes is a literal quote
                current.append('"')
                i += 2
                continue
            in_quotes = not in_quotes
            i += 1
            continue

        current.append(ch)
        i += 1

    if in_arg:
        args.append("".join(current))
    return args
