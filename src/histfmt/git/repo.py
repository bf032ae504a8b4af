"""Git operations used by the rewrite phases.

Every command is a template from config.commands["git"], filled with
shell-quoted arguments and run through Runner.
"""

from __future__ import annotations

import shlex
from pathlib import Path

from invoke import Result

from histfmt.core.errors import GitError
from histfmt.core.log import logger
from histfmt.core.runner import Runner


class Git:
    """A git repository driven through configured command templates."""

    def __init__(self, workdir: Path, commands: dict[str, str]):
        """
        Args:
            workdir: Any directory inside the repository
            commands: The "git" section of config.commands
        """
        self.commands = commands
        self.runner = Runner()
        self.workdir = Path(workdir)
        self.workdir = Path(self._output("toplevel"))

    def render(self, name: str, **params) -> str:
        """Render a command template with shell-quoted parameters."""
        quoted = {key: shlex.quote(str(value)) for key, value in params.items()}
        return self.commands[name].format(**quoted)

    def execute(
        self,
        name: str,
        check: bool = True,
        env: dict[str, str] | None = None,
        log_level: str | None = None,
        **params,
    ) -> Result:
        """Run a named command in the repository root.

        Raises:
            GitError: If check is True and the command fails
        """
        command = self.render(name, **params)
        logger.debug(f"git {name}", command=command)
        result = self.runner.execute(
            command,
            cwd=self.workdir,
            check=False,
            env=env,
            log_level=log_level,
        )
        if check and result.exited != 0:
            raise GitError(command, result.exited, result.stdout, result.stderr)
        return result

    def _output(self, name: str, **params) -> str:
        return self.execute(name, **params).stdout.strip()

    def _succeeds(self, name: str, **params) -> bool:
        return self.execute(name, check=False, **params).exited == 0

    # -- queries ------------------------------------------------------

    @property
    def git_dir(self) -> Path:
        return Path(self._output("git_dir"))

    def head(self) -> str:
        return self._output("rev_parse", ref="HEAD")

    def rev_parse(self, ref: str) -> str | None:
        """Full hash of ref, or None if it does not resolve."""
        result = self.execute("rev_parse", check=False, ref=ref)
        return result.stdout.strip() if result.exited == 0 else None

    def resolve_commit(self, ref: str) -> str | None:
        """Full hash of the commit ref names, or None."""
        result = self.execute("resolve_commit", check=False, ref=ref)
        return result.stdout.strip() if result.exited == 0 else None

    def tree_of(self, ref: str) -> str:
        return self._output("tree_of", ref=ref)

    def is_empty_commit(self, ref: str) -> bool:
        """True when ref has the same tree as its first parent."""
        return self.tree_of(ref) == self.tree_of(f"{ref}~1")

    def symbolic_name(self, ref: str) -> str:
        """Full ref name ref abbreviates ('refs/heads/main'), or '' for
        a plain hash."""
        result = self.execute("symbolic_full_name", check=False, ref=ref)
        return result.stdout.strip() if result.exited == 0 else ""

    def is_detached(self) -> bool:
        return not self._succeeds("symbolic_head")

    def status(self) -> list[str]:
        """Porcelain status lines, submodules and untracked files
        included."""
        return [
            line for line in self._output("status").splitlines()
            if line.strip()
        ]

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        return self._succeeds(
            "is_ancestor", ancestor=ancestor, descendant=descendant
        )

    def rev_list(self, upstream: str, tip: str) -> list[str]:
        """Commits in upstream..tip, oldest first."""
        return self._output(
            "rev_list", upstream=upstream, tip=tip
        ).split()

    def merge_commits(self, upstream: str, tip: str) -> list[str]:
        return self._output(
            "merge_commits", upstream=upstream, tip=tip
        ).split()

    def messages(self, upstream: str, tip: str) -> dict[str, str]:
        """Commit hash -> full message for upstream..tip."""
        fields = self.execute(
            "messages", upstream=upstream, tip=tip
        ).stdout.split("\0")
        result = {}
        for sha, body in zip(fields[0::2], fields[1::2]):
            if sha.strip():
                result[sha.strip()] = body
        return result

    def grep_history(self, pattern: str) -> list[str]:
        """Commits in any ref or reflog whose message contains pattern."""
        return self.execute(
            "grep_history", check=False, pattern=pattern
        ).stdout.split()

    def config_get(self, key: str) -> str | None:
        result = self.execute("config_get", check=False, key=key)
        return result.stdout.strip() if result.exited == 0 else None

    def config_set(self, key: str, value: str) -> None:
        self.execute("config_set", key=key, value=value)

    def rebase_in_progress(self) -> bool:
        git_dir = self.git_dir
        return (
            (git_dir / "rebase-merge").exists()
            or (git_dir / "rebase-apply").exists()
        )

    # -- mutations ----------------------------------------------------

    def checkout(self, ref: str) -> None:
        self.execute("checkout", ref=ref)

    def add_tracked(self) -> None:
        """Stage changes to tracked files only."""
        self.execute("add_tracked")

    def discard_changes(self) -> None:
        """Reset the index and working tree to HEAD and delete untracked
        files, leaving ignored ones alone."""
        self.reset("hard")
        self.execute("clean")

    def commit(self, message: str) -> str:
        """Commit the index (empty allowed) and return the new hash."""
        self.execute("commit", message=message)
        return self.head()

    def commit_reuse(self, ref: str) -> str:
        """Commit the index with ref's message and authorship."""
        self.execute("commit_reuse", ref=ref)
        return self.head()

    def commit_amend(self) -> str:
        """Amend HEAD with the index, keeping its message."""
        self.execute("commit_amend")
        return self.head()

    def commit_tree(self, ref: str, message: str) -> str:
        """Create an empty child of ref without touching HEAD."""
        return self._output("commit_tree", ref=ref, message=message)

    def reset(self, mode: str, ref: str = "HEAD") -> None:
        self.execute("reset", mode=mode, ref=ref)

    def revert_no_commit(self, ref: str) -> None:
        self.execute("revert", ref=ref)

    def rebase(self, upstream: str) -> Result:
        """Plain rebase of HEAD onto upstream; result is not checked."""
        return self.execute(
            "rebase", check=False, log_level="info", upstream=upstream
        )

    def rebase_todo_command(
        self, onto: str, upstream: str, branch: str
    ) -> str:
        return self.render(
            "rebase_todo", onto=onto, upstream=upstream, branch=branch
        )

    def rebase_todo(
        self, onto: str, upstream: str, branch: str, todo: Path
    ) -> Result:
        """Interactive rebase whose todo list is replaced by the file
        at todo; result is not checked."""
        editor = self.render("sequence_editor", todo=todo.as_posix())
        return self.execute(
            "rebase_todo",
            check=False,
            env={"GIT_SEQUENCE_EDITOR": editor},
            log_level="info",
            onto=onto,
            upstream=upstream,
            branch=branch,
        )
