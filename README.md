# wsh

`wsh` is a small command shell for POSIX systems. It reads commands either
interactively from a prompt or line by line from a script file. It supports:

- running external programs found on `PATH`, or given as `/abs/path` or `./rel/path`
- pipelines joined with `|`, whose stages run at the same time
- single-quoted arguments that may contain spaces
- aliases, expanded on the first word of a command
- a numbered command history

When started with the `wsh` command, `PATH` is set to `/bin:/usr/bin`.

## Installation

```
pip install .
```

## Usage

Interactive mode shows the prompt `wsh> ` and runs each line you enter until
end of input or `exit`:

```
wsh
```

Batch mode runs every line of a script file and then exits with the result of
the last command:

```
wsh script.wsh
```

Giving more than one argument is an error.

## Command lines

- Arguments are separated by spaces (tabs are not separators).
- An argument starting with `'` runs to the next `'` and may hold spaces. A
  quote that is never closed is reported as `Missing Closing Quote`.
- `|` splits a line into pipeline stages. A stage that holds nothing but
  spaces is reported as `Empty command segment in pipeline`. Every stage's
  command must be a builtin or be found on `PATH` before anything runs.
- If the first word is an alias, it is replaced by the alias text followed by
  the remaining arguments joined with single spaces, and the result is parsed
  again.
- Every non-blank line is added to the history.

## Built-in commands

| Command | Effect |
|---|---|
| `exit` | Leave the shell with the status of the last command. |
| `alias` | List all aliases, sorted by name, as `name = 'command'`. |
| `alias name = 'command'` | Define or replace an alias. |
| `unalias name` | Remove an alias. |
| `which name` | Report whether `name` is an alias, a builtin, or an executable found on `PATH`. |
| `path` | Print the current `PATH`. |
| `path dir1:dir2:...` | Replace `PATH`. |
| `cd [directory]` | Change directory; without an argument go to `$HOME`. |
| `history` | Print every earlier command. |
| `history n` | Print the `n`th command entered. |

A builtin used as a pipeline stage runs on a copy of the shell's state, so
`cd`, `path` or `alias` inside a pipeline has no lasting effect.

## Example

```
wsh> alias ll = 'ls -l'
wsh> ll /tmp | wc -l
wsh> which ll
ll: aliased to 'ls -l'
wsh> history 1
alias ll = 'ls -l'
wsh> exit
```

## Using it from Python

```python
import io
from wsh.shell import Shell

out = io.StringIO()
shell = Shell(out, io.StringIO())
shell.execute_command("alias greet = 'echo hi'\n")
shell.execute_command("which greet\n")
print(out.getvalue())   # greet: aliased to 'echo hi'
```

`Shell.execute_command` returns 0 on success and 1 on failure; the status of
the last command is kept in `shell.rc`. The `exit` builtin raises
`wsh.shell.ShellExit`, whose `code` holds the status. The modules
`wsh.parser` (`parse_line`, `split_pipeline`, `expand_alias`),
`wsh.aliases` (`AliasTable`), `wsh.history` (`History`) and
`wsh.textutils` (`replace_at`, `replace_key`) can also be used on their own.

## What it does not do

There is no input or output redirection, no variable expansion, no globbing,
no double quotes or backslash escapes, no command substitution, no job control
and no background commands.

## Running the tests

```
pip install .[test]
pytest
```