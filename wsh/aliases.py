"""Alias table mapping command names to replacement command text."""

from __future__ import annotations


class AliasTable:
    """A mapping of alias names to the commands they stand for."""

    def __init__(self) -> None:
        self._aliases: dict[str, str] = {}

    def put(self, name: str, command: str) -> None:
        """Add an alias or replace the command of an existing one."""
        self._aliases[name] = command

    def get(self, name: str) -> str | None:
        """Return the command for an alias, or None if it is not defined."""
        return self._aliases.get(name)

    def delete(self, name: str) -> None:
        """Remove an alias; removing an unknown name does nothing."""
        self._aliases.pop(name, None)

    def reset(self) -> None:
        """Remove every alias."""
        self._aliases.clear()

    def format_sorted(self) -> str:
        """Render every alias as ``name = 'command'`` lines, sorted by name."""
        return "".join(
            f"{name} = '{self._aliases[name]}'\n" for name in sorted(self._aliases)
        )

    def __contains__(self, name: object) -> bool:
        return name in self._aliases

    def __len__(self) -> int:
        return len(self._aliases)