"""The command shell: builtins, external commands, pipelines and run modes."""

from __future__ import annotations

import copy
import io
import os
import re
import subprocess
import sys
import tempfile
import threading
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from typing import IO, TextIO, Union

from wsh.aliases import AliasTable
from wsh.history import History
from wsh.parser import (
    EMPTY_PIPE_SEGMENT,
    MAX_LINE,
    EmptyPipeSegmentError,
    MissingClosingQuoteError,
    expand_alias,
    parse_line,
    split_pipeline,
)

EXIT_SUCCESS = 0
EXIT_FAILURE = 1

PROMPT = "wsh> "
DEFAULT_PATH = "/bin:/usr/bin"

INVALID_WSH_USE = "Invalid usage of wsh. Correct format: wsh | wsh batch_file"
CMD_NOT_FOUND = "Command not found or not an executable: {}"
EMPTY_PATH = "PATH empty or not set"

INVALID_PATH_USE = "Incorrect usage of path. Correct format: path dir1:dir2:...:dirN"
INVALID_EXIT_USE = "Incorrect usage of exit. Too many arguments"
INVALID_ALIAS_USE = (
    "Incorrect usage of alias. Correct format: alias | alias name = 'command'"
)
INVALID_UNALIAS_USE = "Incorrect usage of unalias. Correct format: unalias name"
INVALID_WHICH_USE = "Incorrect usage of which. Correct format: which name"
INVALID_CD_USE = "Incorrect usage of cd. Correct format: cd | cd directory"
INVALID_HISTORY_USE = "Incorrect usage of history. Correct format: history | history n"

WHICH_ALIAS = "{}: aliased to '{}'"
WHICH_BUILTIN = "{}: wsh builtin"
WHICH_EXTERNAL = "{}: found at {}"
WHICH_NOT_FOUND = "{}: not found"

CD_NO_HOME = "cd: HOME not set"
HISTORY_INVALID_ARG = "Invalid argument passed to history"

BUILTINS = ("exit", "alias", "unalias", "which", "path", "cd", "history")

_INTEGER = re.compile(r"[ \t\n\v\f\r]*[+-]?[0-9]+")

_Upstream = Union[IO[bytes], bytes, None]


class ShellExit(Exception):
    """Raised when the shell is asked to terminate with a status code."""

    def __init__(self, code: int) -> None:
        super().__init__(f"shell exited with status {code}")
        self.code = code


def _is_explicit_path(name: str) -> bool:
    return name.startswith("/") or name.startswith("./")


def find_executable(command_name: str, path: str) -> str | None:
    """Locate an executable by explicit path or by searching ``path``.

    Names starting with ``/`` or ``./`` are checked as given; other names are
    looked up in each non-empty ``:``-separated directory of ``path``.
    """
    if _is_explicit_path(command_name):
        return command_name if os.access(command_name, os.X_OK) else None
    if not path:
        return None
    for directory in filter(None, path.split(":")):
        candidate = f"{directory}/{command_name}"
        if os.access(candidate, os.X_OK):
            return candidate
    return None


def _fileno(stream: IO) -> int | None:
    try:
        return stream.fileno()
    except (AttributeError, OSError, ValueError):
        return None


def _exit_status(returncode: int) -> int:
    return returncode if returncode >= 0 else EXIT_FAILURE


def _close(upstream: _Upstream) -> None:
    if upstream is not None and not isinstance(upstream, bytes):
        upstream.close()


def _feed(pipe: IO[bytes], data: bytes) -> threading.Thread:
    def write() -> None:
        try:
            pipe.write(data)
        except BrokenPipeError:
            pass
        finally:
            try:
                pipe.close()
            except BrokenPipeError:
                pass

    thread = threading.Thread(target=write, daemon=True)
    thread.start()
    return thread


def _chunks(line: str) -> Iterator[str]:
    """Split a line into the pieces a fixed-size line reader would return."""
    size = MAX_LINE - 1
    while len(line) > size:
        yield line[:size]
        line = line[size:]
    if line:
        yield line


class Shell:
    """A small shell with aliases, history, builtins and pipelines."""

    def __init__(self, stdout: TextIO | None = None, stderr: TextIO | None = None) -> None:
        self.stdout = stdout if stdout is not None else sys.stdout
        self.stderr = stderr if stderr is not None else sys.stderr
        self.rc = EXIT_SUCCESS
        self.aliases = AliasTable()
        self.history = History()
        self._builtins: dict[str, Callable[[Sequence[str]], int]] = {
            "exit": self.builtin_exit,
            "alias": self.builtin_alias,
            "unalias": self.builtin_unalias,
            "which": self.builtin_which,
            "path": self.builtin_path,
            "cd": self.builtin_cd,
            "history": self.builtin_history,
        }

    # Output helpers

    def warn(self, message: str) -> None:
        """Report a problem on stderr and mark the last status as failed."""
        self._note(message)
        self.rc = EXIT_FAILURE

    def _note(self, message: str) -> None:
        self.stderr.write(message + "\n")
        self.stderr.flush()

    def _say(self, text: str) -> None:
        self.stdout.write(text)
        self.stdout.flush()

    def _flush(self) -> None:
        self.stdout.flush()
        self.stderr.flush()

    @contextmanager
    def _stdout_target(self) -> Iterator[int | IO[bytes]]:
        fd = _fileno(self.stdout)
        if fd is not None:
            yield fd
            return
        with tempfile.TemporaryFile() as sink:
            yield sink
            sink.seek(0)
            self._say(sink.read().decode(errors="replace"))

    @contextmanager
    def _stderr_target(self) -> Iterator[int | IO[bytes]]:
        fd = _fileno(self.stderr)
        if fd is not None:
            yield fd
            return
        with tempfile.TemporaryFile() as sink:
            yield sink
            sink.seek(0)
            self.stderr.write(sink.read().decode(errors="replace"))
            self.stderr.flush()

    def _parse(self, line: str) -> list[str]:
        try:
            return parse_line(line)
        except MissingClosingQuoteError as exc:
            self.warn(str(exc))
            return []

    # Command execution

    def execute_command(self, cmdline: str) -> int:
        """Record and run one command line; return 0 on success, 1 on failure."""
        body = cmdline[:-1] if cmdline.endswith("\n") else cmdline
        if body.strip(" \t"):
            self.history.add(cmdline)
        if "|" in cmdline:
            return self._execute_pipeline_line(cmdline)
        return self._execute_simple(cmdline)

    def _execute_simple(self, cmdline: str) -> int:
        argv = self._parse(cmdline)
        if not argv:
            return EXIT_SUCCESS

        alias_command = self.aliases.get(argv[0])
        if alias_command is not None:
            try:
                argv = expand_alias(argv, alias_command)
            except MissingClosingQuoteError as exc:
                self.warn(str(exc))
                argv = []
            if not argv:
                return EXIT_SUCCESS

        name = argv[0]
        if name == "exit":
            if len(argv) > 1:
                self.warn(INVALID_EXIT_USE)
                return EXIT_FAILURE
            raise ShellExit(self.rc)

        builtin = self._builtins.get(name)
        if builtin is not None:
            self.rc = builtin(argv)
            return EXIT_SUCCESS if self.rc == EXIT_SUCCESS else EXIT_FAILURE
        return self.run_external(argv)

    def _execute_pipeline_line(self, cmdline: str) -> int:
        try:
            segments = split_pipeline(cmdline)
        except EmptyPipeSegmentError as exc:
            self.warn(str(exc))
            return EXIT_FAILURE

        path = os.environ.get("PATH", "")
        prepared: list[str] = []
        for segment in segments:
            argv = self._parse(segment)
            if argv:
                alias_command = self.aliases.get(argv[0])
                if alias_command is not None:
                    segment = " ".join([alias_command, *argv[1:]])
                    argv = self._parse(segment)
            if not argv:
                self.warn(EMPTY_PIPE_SEGMENT)
                return EXIT_FAILURE
            name = argv[0]
            if name not in self._builtins and find_executable(name, path) is None:
                self.warn(CMD_NOT_FOUND.format(name))
                return EXIT_FAILURE
            prepared.append(segment)

        return self.run_pipeline(prepared)

    def run_external(self, argv: Sequence[str]) -> int:
        """Run an external program and wait for it.

        Returns 1 when the program cannot be found; otherwise 0, with the
        program's exit status stored in ``rc``.
        """
        name = argv[0]
        path = os.environ.get("PATH", "")
        executable = find_executable(name, path)
        if executable is None:
            if not _is_explicit_path(name) and not path:
                self.warn(EMPTY_PATH)
            else:
                self.warn(CMD_NOT_FOUND.format(name))
            return EXIT_FAILURE

        self._flush()
        with self._stdout_target() as out_target, self._stderr_target() as err_target:
            try:
                completed = subprocess.run(
                    list(argv), executable=executable, stdout=out_target, stderr=err_target
                )
            except OSError:
                self.warn(CMD_NOT_FOUND.format(name))
                return EXIT_SUCCESS
        self.rc = _exit_status(completed.returncode)
        return EXIT_SUCCESS

    def _run_builtin_isolated(self, argv: Sequence[str]) -> tuple[int, str]:
        """Run a builtin the way a pipeline stage would, without lasting effects."""
        buffer = io.StringIO()
        child = Shell(buffer, self.stderr)
        child.aliases = copy.deepcopy(self.aliases)
        child.history = copy.deepcopy(self.history)
        child.rc = self.rc
        saved_cwd = os.getcwd()
        saved_path = os.environ.get("PATH")
        try:
            code = child._builtins[argv[0]](argv)
        except ShellExit as exc:
            code = exc.code
        finally:
            os.chdir(saved_cwd)
            if saved_path is None:
                os.environ.pop("PATH", None)
            else:
                os.environ["PATH"] = saved_path
        return code, buffer.getvalue()

    def _parse_stage(self, segment: str) -> list[str]:
        try:
            return parse_line(segment)
        except MissingClosingQuoteError as exc:
            self._note(str(exc))
            return []

    def run_pipeline(self, segments: Sequence[str]) -> int:
        """Run pipeline segments concurrently, each feeding the next.

        The status of the last segment becomes ``rc``; the return value is 0
        when it succeeded and 1 otherwise.
        """
        if not segments:
            return EXIT_SUCCESS

        self._flush()
        path = os.environ.get("PATH", "")
        processes: list[subprocess.Popen] = []
        feeders: list[threading.Thread] = []
        last_process: subprocess.Popen | None = None
        last_code = EXIT_FAILURE
        upstream: _Upstream = None
        final = len(segments) - 1

        with self._stdout_target() as out_target, self._stderr_target() as err_target:
            for position, segment in enumerate(segments):
                is_last = position == final
                argv = self._parse_stage(segment)

                if argv and argv[0] in self._builtins:
                    _close(upstream)
                    upstream = None
                    code, output = self._run_builtin_isolated(argv)
                    if is_last:
                        self._say(output)
                        last_code = code
                    else:
                        upstream = output.encode()
                    continue

                executable = find_executable(argv[0], path) if argv else None
                process: subprocess.Popen | None = None
                if executable is None:
                    if argv:
                        self._note(CMD_NOT_FOUND.format(argv[0]))
                else:
                    stdin = subprocess.PIPE if isinstance(upstream, bytes) else upstream
                    try:
                        process = subprocess.Popen(
                            argv,
                            executable=executable,
                            stdin=stdin,
                            stdout=out_target if is_last else subprocess.PIPE,
                            stderr=err_target,
                        )
                    except OSError:
                        self._note(CMD_NOT_FOUND.format(argv[0]))

                if process is None:
                    _close(upstream)
                    upstream = b""
                    if is_last:
                        last_code = EXIT_FAILURE
                    continue

                if isinstance(upstream, bytes):
                    feeders.append(_feed(process.stdin, upstream))
                else:
                    _close(upstream)
                processes.append(process)
                if is_last:
                    last_process = process
                    upstream = None
                else:
                    upstream = process.stdout

            if last_process is not None:
                last_code = _exit_status(last_process.wait())
            for process in processes:
                process.wait()
            for feeder in feeders:
                feeder.join()

        self.rc = last_code
        return EXIT_SUCCESS if last_code == EXIT_SUCCESS else EXIT_FAILURE

    # Modes of execution

    def run_interactive(self, stream: TextIO | None = None) -> int:
        """Prompt for and run commands until end of input; return the status."""
        stream = stream if stream is not None else sys.stdin
        try:
            while True:
                self._say(PROMPT)
                try:
                    line = stream.readline(MAX_LINE - 1)
                except OSError:
                    self.stderr.write("fgets error\n")
                    self.stderr.flush()
                    return self.rc
                if not line:
                    return self.rc
                self.execute_command(line)
        except ShellExit as exc:
            return exc.code

    def run_batch(self, script_file: str | os.PathLike) -> int:
        """Run every line of a script; return the result of the last command."""
        try:
            handle = open(script_file, encoding="utf-8", errors="surrogateescape", newline="\n")
        except OSError as exc:
            self.stderr.write(f"fopen: {exc.strerror or exc}\n")
            self.stderr.flush()
            self.rc = EXIT_FAILURE
            return EXIT_FAILURE

        result = EXIT_SUCCESS
        try:
            with handle:
                for line in handle:
                    for chunk in _chunks(line):
                        result = self.execute_command(chunk)
        except ShellExit as exc:
            self.rc = exc.code
            return exc.code
        self.rc = result
        return result

    # Builtins

    def builtin_exit(self, argv: Sequence[str]) -> int:
        """Terminate the shell with the last status."""
        if len(argv) > 1:
            self.warn(INVALID_EXIT_USE)
            return EXIT_FAILURE
        raise ShellExit(self.rc)

    def builtin_alias(self, argv: Sequence[str]) -> int:
        """List aliases, or define one as ``alias name = 'command'``."""
        if len(argv) == 1:
            self._say(self.aliases.format_sorted())
            return EXIT_SUCCESS
        if len(argv) > 4 or len(argv) < 3 or argv[2] != "=":
            self.warn(INVALID_ALIAS_USE)
            return EXIT_FAILURE
        name = argv[1]
        command = argv[3] if len(argv) == 4 else " "
        if not name:
            self.warn(INVALID_ALIAS_USE)
            return EXIT_FAILURE
        self.aliases.put(name, command)
        return EXIT_SUCCESS

    def builtin_unalias(self, argv: Sequence[str]) -> int:
        """Remove an alias."""
        if len(argv) != 2:
            self.warn(INVALID_UNALIAS_USE)
            return EXIT_FAILURE
        self.aliases.delete(argv[1])
        return EXIT_SUCCESS

    def builtin_which(self, argv: Sequence[str]) -> int:
        """Tell whether a name is an alias, a builtin or an executable."""
        if len(argv) != 2:
            self.warn(INVALID_WHICH_USE)
            return EXIT_FAILURE
        name = argv[1]

        alias_command = self.aliases.get(name)
        if alias_command is not None:
            self._say(WHICH_ALIAS.format(name, alias_command) + "\n")
            return EXIT_SUCCESS
        if name in self._builtins:
            self._say(WHICH_BUILTIN.format(name) + "\n")
            return EXIT_SUCCESS

        if name.startswith((".", "/")):
            full_path = name if os.access(name, os.X_OK) else None
        else:
            full_path = find_executable(name, os.environ.get("PATH", ""))

        if full_path is not None:
            self._say(WHICH_EXTERNAL.format(name, full_path) + "\n")
            return EXIT_SUCCESS
        self._say(WHICH_NOT_FOUND.format(name) + "\n")
        return EXIT_FAILURE

    def builtin_path(self, argv: Sequence[str]) -> int:
        """Show PATH, or replace it with the given value."""
        if len(argv) > 2:
            self.warn(INVALID_PATH_USE)
            return EXIT_FAILURE
        if len(argv) == 1:
            current = os.environ.get("PATH")
            if current is not None:
                self._say(current + "\n")
            return EXIT_SUCCESS
        try:
            os.environ["PATH"] = argv[1]
        except ValueError as exc:
            self._note(f"setenv: {exc}")
            return EXIT_FAILURE
        return EXIT_SUCCESS

    def builtin_cd(self, argv: Sequence[str]) -> int:
        """Change the working directory, to HOME when no directory is given."""
        if len(argv) > 2:
            self.warn(INVALID_CD_USE)
            return EXIT_FAILURE
        if len(argv) == 1:
            target = os.environ.get("HOME")
            if target is None:
                self.warn(CD_NO_HOME)
                return EXIT_FAILURE
        else:
            target = argv[1]
        try:
            os.chdir(target)
        except OSError as exc:
            self._note(f"cd: {exc.strerror or exc}")
            return EXIT_FAILURE
        return EXIT_SUCCESS

    def builtin_history(self, argv: Sequence[str]) -> int:
        """List earlier commands, or show the n-th one."""
        if len(argv) > 2:
            self.warn(INVALID_HISTORY_USE)
            return EXIT_FAILURE
        if len(argv) == 1:
            self._say("".join(self.history.listing()))
            return EXIT_SUCCESS

        argument = argv[1]
        if not _INTEGER.fullmatch(argument):
            self.warn(HISTORY_INVALID_ARG)
            return EXIT_FAILURE
        number = int(argument)
        if number <= 0 or number > len(self.history):
            self.warn(HISTORY_INVALID_ARG)
            return EXIT_FAILURE
        self._say(self.history.get(number - 1) or "")
        return EXIT_SUCCESS


def main(argv: Sequence[str] | None = None) -> int:
    """Start the shell: interactive with no arguments, batch with a script."""
    args = sys.argv[1:] if argv is None else list(argv)
    shell = Shell(sys.stdout, sys.stderr)
    os.environ["PATH"] = DEFAULT_PATH
    if len(args) > 1:
        shell.warn(INVALID_WSH_USE)
        return EXIT_FAILURE
    if args:
        return shell.run_batch(args[0])
    return shell.run_interactive(sys.stdin)