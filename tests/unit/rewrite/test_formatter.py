"""Tests for formatter invocation."""

import shlex
import sys

import pytest

from histfmt.core.errors import FormatCommandError
from histfmt.rewrite.formatter import FormatCommandRunner

PYTHON = shlex.quote(sys.executable)


def test_invocation_without_targets(tmp_path):
    runner = FormatCommandRunner(tmp_path, "black -q")
    assert runner.invocation == "black -q"


def test_invocation_quotes_targets(tmp_path):
    runner = FormatCommandRunner(
        tmp_path, "black -q", ["src", "docs/my file.py"]
    )
    assert runner.invocation == "black -q src 'docs/my file.py'"


def test_run_formats_in_place(tmp_path):
    (tmp_path / "a.txt").write_text("hello\n")
    script = (
        "import pathlib; p = pathlib.Path('a.txt'); "
        "p.write_text(p.read_text().upper())"
    )
    command = f"{PYTHON} -c {shlex.quote(script)}"

    FormatCommandRunner(tmp_path, command).run()

    assert (tmp_path / "a.txt").read_text() == "HELLO\n"


def test_run_passes_targets(tmp_path):
    script = (
        "import pathlib, sys; "
        "pathlib.Path('args').write_text(' '.join(sys.argv[1:]))"
    )
    command = f"{PYTHON} -c {shlex.quote(script)}"

    FormatCommandRunner(tmp_path, command, ["one", "two"]).run()

    assert (tmp_path / "args").read_text() == "one two"


def test_run_failure_raises(tmp_path):
    script = "import sys; print('bad syntax'); sys.exit(3)"
    command = f"{PYTHON} -c {shlex.quote(script)}"

    with pytest.raises(FormatCommandError) as exc_info:
        FormatCommandRunner(tmp_path, command).run()

    assert exc_info.value.exited == 3
    assert "bad syntax" in exc_info.value.output
    assert "bad syntax" in str(exc_info.value)
