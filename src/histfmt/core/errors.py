"""Exception hierarchy for history reformatting."""

from __future__ import annotations


class HistfmtError(Exception):
    """Base class for every error this package raises on purpose."""


class PreconditionError(HistfmtError):
    """A run cannot start: dirty worktree, attached HEAD, branch names
    instead of commit hashes, bad range, or a run already recorded."""


class MarkerCollisionError(PreconditionError):
    """The run marker already appears in the repository history."""

    def __init__(self, marker: str, commit: str):
        self.marker = marker
        self.commit = commit
        super().__init__(
            f"Run marker {marker!r} already appears in commit {commit}"
        )


class GitError(HistfmtError):
    """A git command exited non-zero where success was required."""

    def __init__(
        self,
        command: str,
        exited: int,
        stdout: str = "",
        stderr: str = "",
    ):
        self.command = command
        self.exited = exited
        self.stdout = stdout
        self.stderr = stderr
        detail = stderr.strip() or stdout.strip()
        message = f"Command failed ({exited}): {command}"
        if detail:
            message += f"\n{detail}"
        super().__init__(message)


class FoldError(GitError):
    """A collapse fold matched its predicate but could not be applied."""


class FormatCommandError(HistfmtError):
    """The formatter exited non-zero."""

    def __init__(self, command: str, exited: int, output: str = ""):
        self.command = command
        self.exited = exited
        self.output = output
        message = f"Formatter failed ({exited}): {command}"
        if output.strip():
            message += f"\n{output.strip()}"
        super().__init__(message)


class RecoveryError(HistfmtError):
    """The recorded run state does not match the repository."""


class ResidueError(RecoveryError):
    """A transient commit survived the collapse phase."""


class FixedPointError(RecoveryError):
    """Re-running the formatter on the final tip changed the tree."""


__all__ = [
    "HistfmtError",
    "PreconditionError",
    "MarkerCollisionError",
    "GitError",
    "FoldError",
    "FormatCommandError",
    "RecoveryError",
    "ResidueError",
    "FixedPointError",
]
