"""Small string helpers for rewriting command lines."""

from __future__ import annotations


def replace_at(command: str, start: int, count: int, value: str) -> str:
    """Replace ``count`` characters of ``command`` from ``start`` with ``value``."""
    if start < 0 or count < 0 or start + count > len(command):
        raise IndexError("replacement range lies outside the command")
    return command[:start] + value + command[start + count:]


def replace_key(command: str, key: str, value: str) -> str:
    """Replace the first occurrence of ``key`` in ``command`` with ``value``.

    The command is returned unchanged when the key does not occur.
    """
    position = command.find(key)
    if position < 0:
        return command
    return replace_at(command, position, len(key), value)