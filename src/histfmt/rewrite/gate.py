"""Safety preconditions and human checkpoints.

Nothing is mutated until validate() has passed, and every later
failure leaves the recorded starting hashes as a way back.
"""

from __future__ import annotations

import re

from invoke import Result
from pydantic import BaseModel, ConfigDict

from histfmt.core.errors import GitError, PreconditionError
from histfmt.core.log import logger
from histfmt.git.repo import Git

_HASH = re.compile(r"^[0-9a-fA-F]{4,64}$")


class CommitRange(BaseModel):
    """common_root..branch_tip as full commit hashes."""

    common_root: str
    branch_tip: str

    model_config = ConfigDict(frozen=True)


class RecoveryGate:
    """Checks a repository before a run starts or resumes."""

    def __init__(self, git: Git):
        self.git = git

    def validate(self, commits: list[str]) -> CommitRange:
        """Check the repository and resolve the requested range.

        Args:
            commits: [branch_tip] or [common_root, branch_tip]; with a
                single hash, the current HEAD is the common root

        Raises:
            PreconditionError: If any precondition fails
        """
        self.require_detached_head()
        self.require_clean_worktree()
        self.require_no_rebase()

        if len(commits) == 1:
            common_root = self.git.head()
            branch_tip = self.resolve_hash(commits[0], "branch tip")
        elif len(commits) == 2:
            common_root = self.resolve_hash(commits[0], "common root")
            branch_tip = self.resolve_hash(commits[1], "branch tip")
        else:
            raise PreconditionError(
                "Expected [COMMON_ROOT] BRANCH_TIP, got "
                f"{len(commits)} commit argument(s)"
            )

        commit_range = CommitRange(
            common_root=common_root, branch_tip=branch_tip
        )
        self.check_range(commit_range)
        logger.info(
            "Preconditions passed",
            common_root=common_root,
            branch_tip=branch_tip,
        )
        return commit_range

    def resolve_hash(self, arg: str, role: str) -> str:
        """Full hash for a commit given as a hash, never as a ref name.

        Branch and tag names move when history is rewritten; a hash is
        what the human checks out to recover.
        """
        if not _HASH.match(arg):
            raise PreconditionError(
                f"The {role} must be a commit hash, not {arg!r}"
            )
        if self.git.symbolic_name(arg):
            raise PreconditionError(
                f"The {role} {arg!r} is also a ref name; pass an "
                f"unambiguous commit hash"
            )
        sha = self.git.resolve_commit(arg)
        if not sha:
            raise PreconditionError(f"The {role} {arg!r} is not a commit")
        return sha

    def require_detached_head(self) -> None:
        if not self.git.is_detached():
            raise PreconditionError(
                "HEAD is on a branch; run 'git checkout --detach' first "
                "so no branch is rewritten underneath you"
            )

    def require_clean_worktree(self) -> None:
        dirty = self.git.status()
        if dirty:
            shown = "\n".join(dirty[:10])
            raise PreconditionError(
                f"Working tree is not clean ({len(dirty)} entries):\n{shown}"
            )

    def require_no_rebase(self) -> None:
        if self.git.rebase_in_progress():
            raise PreconditionError(
                "A rebase is in progress; finish it with "
                "'git rebase --continue' or 'git rebase --abort' first"
            )

    def check_range(self, commit_range: CommitRange) -> None:
        root, tip = commit_range.common_root, commit_range.branch_tip
        if root == tip or not self.git.is_ancestor(root, tip):
            raise PreconditionError(
                f"{root} is not a proper ancestor of {tip}"
            )
        merges = self.git.merge_commits(root, tip)
        if merges:
            raise PreconditionError(
                f"Range contains {len(merges)} merge commit(s), "
                f"first {merges[0]}; only linear history is supported"
            )


RESUME_HINT = (
    "Resolve it, run 'git rebase --continue' until the rebase "
    "completes, then run 'histfmt resume'. To give up, run "
    "'git rebase --abort' and 'histfmt reset'."
)


def rebase_finished(git: Git, result: Result, what: str) -> bool:
    """Classify the outcome of a rebase.

    Returns:
        True if the rebase completed, False if git stopped for the
        human (conflict or failed callback)

    Raises:
        GitError: If the rebase failed without leaving one in progress
    """
    if result.exited == 0:
        return True
    if git.rebase_in_progress():
        logger.warn(f"{what} stopped for manual intervention")
        logger.info(RESUME_HINT)
        return False
    raise GitError(
        result.command, result.exited, result.stdout, result.stderr
    )


def checkpoint(message: str, interactive: bool, command: str | None = None):
    """Show what is about to happen and wait for enter.

    Raises:
        PreconditionError: If interactive and stdin is closed
    """
    if command:
        logger.info(message, command=command)
    else:
        logger.info(message)
    if not interactive:
        return
    try:
        input("Press enter to continue (Ctrl-C to stop)... ")
    except EOFError:
        raise PreconditionError(
            "Checkpoint needs a terminal; set interactive: false in "
            "histfmt.yaml or HISTFMT_CONFIG__INTERACTIVE=false"
        ) from None
