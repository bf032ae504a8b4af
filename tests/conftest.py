"""Pytest configuration and fixtures for histfmt tests."""

import shlex
import subprocess
import sys
import tempfile
from pathlib import Path

import pytest

from histfmt.core.log import ConsoleSink, setup_logger

# Deterministic and idempotent: uppercases every *.txt file and leaves an
# untracked upcase.cache behind. Exits 2 while the flag file next to it
# exists.
FORMATTER = '''\
import pathlib
import sys

if pathlib.Path({flag!r}).exists():
    print("formatter refused to run", file=sys.stderr)
    sys.exit(2)

for path in sorted(pathlib.Path(".").rglob("*.txt")):
    if ".git" in path.parts:
        continue
    text = path.read_text()
    if text.upper() != text:
        path.write_text(text.upper())

pathlib.Path("upcase.cache").write_text("seen")
'''


@pytest.fixture(autouse=True, scope="session")
def configure_logging():
    """Console-only debug logging for the whole test session."""
    test_log_root = Path(tempfile.gettempdir()) / "histfmt-tests"
    setup_logger(
        log_root=test_log_root,
        run_name="test",
        console=ConsoleSink(level="debug"),
    )


@pytest.fixture
def mock_argv():
    """Save and restore sys.argv."""
    original = sys.argv.copy()
    yield
    sys.argv = original


@pytest.fixture(scope="session")
def test_config():
    """Configuration loaded from the packaged defaults.

    sys.argv is replaced while State parses it, so pytest's own
    options are not mistaken for ours.
    """
    from histfmt.core.config import State

    old_argv = sys.argv
    sys.argv = ['histfmt']
    try:
        state = State()
        return state.config
    finally:
        sys.argv = old_argv


class Repo:
    """Throwaway git repository driven through the git binary."""

    def __init__(self, path: Path):
        self.path = path

    def git(self, *args, check=True, strip=True) -> str:
        result = subprocess.run(
            ["git", *args],
            cwd=self.path,
            capture_output=True,
            text=True,
        )
        if check and result.returncode != 0:
            raise AssertionError(
                f"git {' '.join(args)} failed:\n{result.stderr}"
            )
        return result.stdout.strip() if strip else result.stdout

    def write(self, name: str, content: str) -> None:
        target = self.path / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)

    def commit(self, message: str, files: dict | None = None) -> str:
        """Write files (path -> content) and commit everything; returns
        the new hash."""
        for name, content in (files or {}).items():
            self.write(name, content)
        self.git("add", "--all")
        self.git("commit", "--quiet", "--allow-empty", "-m", message)
        return self.head()

    def head(self) -> str:
        return self.git("rev-parse", "HEAD")

    def show(self, ref: str, name: str) -> str:
        """File content at ref, byte for byte."""
        return self.git("show", f"{ref}:{name}", strip=False)

    def files(self, ref: str) -> list[str]:
        return self.git("ls-tree", "-r", "--name-only", ref).split()

    def log(self, upstream: str, tip: str = "HEAD") -> list[str]:
        """Subjects of upstream..tip, oldest first."""
        return self.git(
            "log", "--reverse", "--format=%s", f"{upstream}..{tip}"
        ).splitlines()

    def rev_list(self, upstream: str, tip: str = "HEAD") -> list[str]:
        return self.git(
            "rev-list", "--reverse", f"{upstream}..{tip}"
        ).split()


@pytest.fixture
def repo(tmp_path, monkeypatch):
    """Empty repository in tmp_path/repo with a local identity; the
    process works from inside it."""
    path = tmp_path / "repo"
    path.mkdir()
    r = Repo(path)
    r.git("init", "--quiet")
    r.git("config", "user.name", "Ada Tester")
    r.git("config", "user.email", "ada@example.com")
    r.git("config", "commit.gpgsign", "false")
    monkeypatch.chdir(path)
    return r


@pytest.fixture
def formatter(tmp_path):
    """Formatter command kept outside the repository.

    Returns (command, flag): while flag exists the formatter fails.
    """
    tools = tmp_path / "tools"
    tools.mkdir()
    flag = tools / "refuse"
    script = tools / "upcase.py"
    script.write_text(FORMATTER.format(flag=str(flag)))
    command = f"{shlex.quote(sys.executable)} {shlex.quote(str(script))}"
    return command, flag


@pytest.fixture
def make_state(tmp_path, monkeypatch, mock_argv):
    """Build a State for the given formatter command, non-interactive
    unless asked.

    Rebase callbacks run as separate processes, so settings they need
    are passed through the environment as well.
    """
    from histfmt.core.config import State

    log_root = tmp_path / "logs"
    monkeypatch.setenv("HISTFMT_CONFIG__LOG_ROOT", str(log_root))
    monkeypatch.setenv("HISTFMT_CONFIG__INTERACTIVE", "false")
    monkeypatch.setenv("GIT_EDITOR", "true")

    def _make(command=None, verify=True, interactive=False):
        sys.argv = ['histfmt']
        fmt = {"verify": verify}
        if command:
            fmt["command"] = command
        return State(
            config={
                "interactive": interactive,
                "log_root": str(log_root),
                "format": fmt,
            }
        )

    return _make
