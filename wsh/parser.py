"""Splitting command lines into pipeline segments and argument lists."""

from __future__ import annotations

from collections.abc import Sequence

MAX_LINE = 1024
MAX_ARGS = 128

MISSING_CLOSING_QUOTE = "Missing Closing Quote"
EMPTY_PIPE_SEGMENT = "Empty command segment in pipeline"


class ParseError(ValueError):
    """A command line could not be parsed."""

    message = "Invalid command line"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message if message is not None else self.message)


class MissingClosingQuoteError(ParseError):
    """A single-quoted argument was opened but never closed."""

    message = MISSING_CLOSING_QUOTE


class EmptyPipeSegmentError(ParseError):
    """A pipeline holds a segment with no command in it."""

    message = EMPTY_PIPE_SEGMENT


def parse_line(cmdline: str | None) -> list[str]:
    """Split a command line into arguments.

    Arguments are separated by spaces only. An argument that starts with a
    single quote runs up to the next single quote and may contain spaces.
    A trailing newline is treated as a separator.
    """
    if cmdline is None:
        return []
    buf = (cmdline[:-1] if cmdline.endswith("\n") else cmdline) + " "
    size = len(buf)
    pos = size - len(buf.lstrip(" "))
    tokens: list[str] = []

    while pos < size:
        if buf[pos] == "'":
            end = buf.find("'", pos + 1)
            if end < 0:
                raise MissingClosingQuoteError()
            tokens.append(buf[pos + 1:end])
        else:
            end = buf.find(" ", pos)
            if end < 0:
                break
            tokens.append(buf[pos:end])
        pos = end + 1
        while pos < size and buf[pos] == " ":
            pos += 1

    return tokens


def split_pipeline(cmdline: str) -> list[str]:
    """Split a command line at ``|`` into pipeline segments.

    A line without ``|`` comes back as a single segment, unchecked. Each
    segment of a pipeline must hold something other than spaces, or
    EmptyPipeSegmentError is raised. At most MAX_ARGS segments are kept;
    anything beyond them is dropped.
    """
    if "|" not in cmdline:
        return [cmdline]

    *leading, last = cmdline.split("|")
    segments: list[str] = []
    for part in leading:
        if len(segments) >= MAX_ARGS:
            break
        if not part.lstrip(" "):
            raise EmptyPipeSegmentError()
        segments.append(part)

    if len(segments) < MAX_ARGS:
        rest = last.lstrip(" ")
        if not rest or rest.startswith("\n"):
            raise EmptyPipeSegmentError()
        segments.append(last)

    return segments


def expand_alias(argv: Sequence[str], alias_command: str) -> list[str]:
    """Replace the command name in ``argv`` with an alias and re-parse.

    The alias text is followed by the remaining arguments joined with single
    spaces, and the resulting line is parsed again, so quoting of the
    original arguments is not preserved.
    """
    line = " ".join([alias_command, *argv[1:]])
    return parse_line(line)