"""Command history kept by the shell."""

from __future__ import annotations

from collections.abc import Iterator


class History:
    """An ordered record of the command lines the shell has run."""

    def __init__(self) -> None:
        self._entries: list[str] = []

    def add(self, line: str) -> None:
        """Append a command line to the end of the history."""
        self._entries.append(line)

    def get(self, index: int) -> str | None:
        """Return the entry at a zero-based index, or None if out of range."""
        if 0 <= index < len(self._entries):
            return self._entries[index]
        return None

    def delete(self, index: int) -> None:
        """Remove the entry at a zero-based index; out-of-range does nothing."""
        if 0 <= index < len(self._entries):
            del self._entries[index]

    def listing(self) -> list[str]:
        """Entries to show for a bare ``history`` command.

        The newest entry is the ``history`` command itself, so it is left out.
        """
        return self._entries[:-1]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)