import io
import os
from pathlib import Path

import pytest

from wsh.shell import (
    CD_NO_HOME,
    CMD_NOT_FOUND,
    EMPTY_PATH,
    HISTORY_INVALID_ARG,
    INVALID_ALIAS_USE,
    INVALID_CD_USE,
    INVALID_EXIT_USE,
    INVALID_HISTORY_USE,
    INVALID_PATH_USE,
    INVALID_UNALIAS_USE,
    INVALID_WHICH_USE,
    INVALID_WSH_USE,
    PROMPT,
    Shell,
    ShellExit,
    find_executable,
    main,
)


def _script(directory, name, body):
    path = directory / name
    path.write_text(f"#!/bin/sh\n{body}\n")
    path.chmod(0o755)
    return path


@pytest.fixture
def bindir(tmp_path, monkeypatch):
    directory = tmp_path / "bin"
    directory.mkdir()
    _script(directory, "say", 'echo "$@"')
    _script(directory, "prefix", 'while read line; do echo "got:$line"; done')
    _script(directory, "fail3", "exit 3")
    monkeypatch.setenv("PATH", str(directory))
    return directory


@pytest.fixture
def shell(bindir):
    return Shell(io.StringIO(), io.StringIO())


def out(shell):
    return shell.stdout.getvalue()


def err(shell):
    return shell.stderr.getvalue()


# find_executable

def test_find_executable_searches_path(bindir):
    assert find_executable("say", str(bindir)) == f"{bindir}/say"


def test_find_executable_skips_empty_entries(bindir, tmp_path):
    path = f"::{tmp_path / 'nothing'}::{bindir}"
    assert find_executable("say", path) == f"{bindir}/say"


def test_find_executable_missing_and_empty_path(bindir):
    assert find_executable("nosuch", str(bindir)) is None
    assert find_executable("say", "") is None


def test_find_executable_explicit_path(bindir):
    explicit = str(bindir / "say")
    assert find_executable(explicit, "") == explicit
    plain = bindir / "plain"
    plain.write_text("data")
    plain.chmod(0o644)
    assert find_executable(str(plain), str(bindir)) is None


# external commands

def test_external_command_output(shell):
    assert shell.execute_command("say hello world\n") == 0
    assert out(shell) == "hello world\n"
    assert shell.rc == 0


def test_external_command_status_goes_to_rc(shell):
    assert shell.execute_command("fail3\n") == 0
    assert shell.rc == 3


def test_quoted_argument_keeps_spaces(shell):
    shell.execute_command("say 'a  b'\n")
    assert out(shell) == "a  b\n"


def test_missing_closing_quote(shell):
    assert shell.execute_command("say 'abc\n") == 0
    assert err(shell) == "Missing Closing Quote\n"
    assert out(shell) == ""


def test_command_not_found(shell):
    assert shell.execute_command("nosuch arg\n") == 1
    assert err(shell) == CMD_NOT_FOUND.format("nosuch") + "\n"
    assert shell.rc == 1


def test_empty_path_reported(shell, monkeypatch):
    monkeypatch.setenv("PATH", "")
    assert shell.execute_command("say x\n") == 1
    assert err(shell) == EMPTY_PATH + "\n"


def test_explicit_path_runs_without_path(shell, bindir, monkeypatch):
    monkeypatch.setenv("PATH", "")
    assert shell.execute_command(f"{bindir}/say hi\n") == 0
    assert out(shell) == "hi\n"


def test_run_external_directly(shell):
    assert shell.run_external(["say", "direct"]) == 0
    assert out(shell) == "direct\n"


# aliases

def test_alias_expands_command(shell):
    shell.execute_command("alias greet = 'say hi'\n")
    shell.execute_command("greet there\n")
    assert out(shell) == "hi there\n"


def test_alias_listing_is_sorted(shell):
    shell.execute_command("alias b = 'y'\n")
    shell.execute_command("alias a = 'x'\n")
    shell.execute_command("alias\n")
    assert out(shell) == "a = 'x'\nb = 'y'\n"


def test_alias_without_command_is_blank(shell):
    assert shell.execute_command("alias e =\n") == 0
    assert shell.aliases.get("e") == " "


def test_alias_invalid_usage(shell):
    assert shell.execute_command("alias x y\n") == 1
    assert err(shell) == INVALID_ALIAS_USE + "\n"
    assert shell.rc == 1
    assert "x" not in shell.aliases


def test_unalias(shell):
    shell.execute_command("alias ll = 'say l'\n")
    assert shell.execute_command("unalias ll\n") == 0
    assert "ll" not in shell.aliases
    assert shell.execute_command("unalias\n") == 1
    assert err(shell) == INVALID_UNALIAS_USE + "\n"


# which

def test_which_builtin(shell):
    assert shell.execute_command("which cd\n") == 0
    assert out(shell) == "cd: wsh builtin\n"


def test_which_alias(shell):
    shell.execute_command("alias ll = 'ls -l'\n")
    shell.execute_command("which ll\n")
    assert out(shell) == "ll: aliased to 'ls -l'\n"


def test_which_external(shell, bindir):
    assert shell.execute_command("which say\n") == 0
    assert out(shell) == f"say: found at {bindir}/say\n"


def test_which_not_found(shell):
    assert shell.execute_command("which nosuch\n") == 1
    assert out(shell) == "nosuch: not found\n"
    assert err(shell) == ""


def test_which_usage(shell):
    assert shell.execute_command("which\n") == 1
    assert err(shell) == INVALID_WHICH_USE + "\n"


# path

def test_path_shows_and_sets(shell, bindir):
    shell.execute_command("path\n")
    assert out(shell) == f"{bindir}\n"
    assert shell.execute_command("path /a:/b\n") == 0
    assert os.environ["PATH"] == "/a:/b"


def test_path_usage(shell):
    assert shell.execute_command("path a b\n") == 1
    assert err(shell) == INVALID_PATH_USE + "\n"


# cd

def test_cd_changes_directory(shell, bindir, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert shell.execute_command(f"cd {bindir}\n") == 0
    assert Path.cwd().resolve() == bindir.resolve()


def test_cd_goes_home(shell, bindir, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(bindir))
    assert shell.execute_command("cd\n") == 0
    assert Path.cwd().resolve() == bindir.resolve()


def test_cd_without_home(shell, monkeypatch):
    monkeypatch.delenv("HOME", raising=False)
    assert shell.execute_command("cd\n") == 1
    assert err(shell) == CD_NO_HOME + "\n"


def test_cd_missing_directory(shell, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert shell.execute_command(f"cd {tmp_path / 'missing'}\n") == 1
    assert err(shell).startswith("cd: ")
    assert Path.cwd().resolve() == tmp_path.resolve()


def test_cd_usage(shell):
    assert shell.execute_command("cd a b\n") == 1
    assert err(shell) == INVALID_CD_USE + "\n"


# history

def test_history_lists_earlier_commands(shell):
    shell.execute_command("alias a = 'b'\n")
    shell.execute_command("history\n")
    assert out(shell) == "alias a = 'b'\n"
    assert len(shell.history) == 2


def test_history_single_entry(shell):
    shell.execute_command("say one\n")
    shell.execute_command("history 1\n")
    assert out(shell) == "one\nsay one\n"


@pytest.mark.parametrize("argument", ["0", "5", "abc", "-1", "1x"])
def test_history_invalid_argument(shell, argument):
    assert shell.execute_command(f"history {argument}\n") == 1
    assert err(shell) == HISTORY_INVALID_ARG + "\n"


def test_history_usage(shell):
    assert shell.execute_command("history 1 2\n") == 1
    assert err(shell) == INVALID_HISTORY_USE + "\n"


def test_blank_lines_are_not_recorded(shell):
    shell.execute_command("   \t\n")
    shell.execute_command("\n")
    assert len(shell.history) == 0


# exit

def test_exit_raises_with_last_status(shell):
    shell.execute_command("fail3\n")
    with pytest.raises(ShellExit) as info:
        shell.execute_command("exit\n")
    assert info.value.code == 3


def test_exit_with_argument_warns(shell):
    assert shell.execute_command("exit 2\n") == 1
    assert err(shell) == INVALID_EXIT_USE + "\n"


# pipelines

def test_pipeline_passes_output(shell):
    assert shell.execute_command("say hello | prefix\n") == 0
    assert out(shell) == "got:hello\n"


def test_pipeline_of_three(shell):
    shell.execute_command("say a | prefix | prefix\n")
    assert out(shell) == "got:got:a\n"


def test_pipeline_status_from_last_stage(shell):
    assert shell.execute_command("say a | fail3\n") == 1
    assert shell.rc == 3


@pytest.mark.parametrize("line", ["say a | | prefix\n", "say a |\n", "| say a\n"])
def test_pipeline_empty_segment(shell, line):
    assert shell.execute_command(line) == 1
    assert err(shell) == "Empty command segment in pipeline\n"


def test_pipeline_unknown_command(shell):
    assert shell.execute_command("say a | nosuch\n") == 1
    assert err(shell) == CMD_NOT_FOUND.format("nosuch") + "\n"
    assert out(shell) == ""


def test_pipeline_builtin_feeds_next_stage(shell):
    shell.execute_command("alias a = 'b'\n")
    shell.execute_command("alias | prefix\n")
    assert out(shell) == "got:a = 'b'\n"


def test_pipeline_uses_aliases(shell):
    shell.execute_command("alias greet = 'say hi'\n")
    shell.execute_command("greet you | prefix\n")
    assert out(shell) == "got:hi you\n"


def test_pipeline_builtin_has_no_lasting_effect(shell, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    shell.execute_command("cd / | prefix\n")
    shell.execute_command("alias z = 'y' | prefix\n")
    assert Path.cwd().resolve() == tmp_path.resolve()
    assert "z" not in shell.aliases


def test_pipeline_exit_does_not_stop_shell(shell):
    assert shell.execute_command("say a | exit\n") == 0
    assert shell.rc == 0


# run modes

def test_run_batch_returns_last_result(shell, tmp_path):
    script = tmp_path / "script.wsh"
    script.write_text("say one\nnosuch\n")
    assert shell.run_batch(script) == 1
    assert out(shell) == "one\n"


def test_run_batch_exit_returns_status(shell, tmp_path):
    script = tmp_path / "script.wsh"
    script.write_text("fail3\nexit\nsay never\n")
    assert shell.run_batch(script) == 3
    assert out(shell) == ""


def test_run_batch_missing_file(shell, tmp_path):
    assert shell.run_batch(tmp_path / "missing.wsh") == 1
    assert err(shell).startswith("fopen: ")
    assert shell.rc == 1


def test_run_interactive_prompts_each_line(shell):
    assert shell.run_interactive(io.StringIO("say hi\n")) == 0
    assert out(shell) == f"{PROMPT}hi\n{PROMPT}"


def test_run_interactive_exit(shell):
    code = shell.run_interactive(io.StringIO("fail3\nexit\nsay never\n"))
    assert code == 3
    assert out(shell) == PROMPT * 2


def test_main_rejects_extra_arguments(monkeypatch, capsys):
    monkeypatch.setenv("PATH", "/bin")
    assert main(["one", "two"]) == 1
    assert capsys.readouterr().err == INVALID_WSH_USE + "\n"


def test_main_missing_batch_file(monkeypatch, capsys, tmp_path):
    monkeypatch.setenv("PATH", "/bin")
    assert main([str(tmp_path / "missing.wsh")]) == 1
    assert capsys.readouterr().err.startswith("fopen: ")