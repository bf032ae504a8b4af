"""Persisted state of one rewrite run.

The run outlives any single process: git runs the per-commit callbacks
as separate processes, and a human may resolve a conflict and resume
later. Everything needed to continue is kept in a JSON file under the
repository's git directory.
"""

from __future__ import annotations

import shlex
import sys
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from histfmt.core.errors import RecoveryError
from histfmt.core.log import logger


class Phase(str, Enum):
    PREPARED = "prepared"
    LINEARIZING = "linearizing"
    INTERLEAVING = "interleaving"
    INTERLEAVED = "interleaved"
    COLLAPSING = "collapsing"
    COMPLETE = "complete"


class CommitKind(str, Enum):
    ORIGINAL = "original"
    FORMAT = "format"
    REVERT = "revert"
    BASE_REVERT = "base_revert"


class CommitRecord(BaseModel):
    """Side-table entry for a commit of the interleaved history."""

    kind: CommitKind
    index: int = Field(description="Position i of the original commit")
    source: str | None = Field(
        default=None,
        description="Linearized commit an original was replayed from",
    )


class RunState(BaseModel):
    """Everything a run records between processes."""

    marker: str
    common_root: str
    branch_tip: str
    format_command: str
    targets: list[str] = Field(default_factory=list)
    phase: Phase = Phase.PREPARED

    linear_tip: str | None = None
    originals: list[str] = Field(
        default_factory=list,
        description="Linearized commits to replay, oldest first",
    )
    base_revert: str | None = None

    commits: dict[str, CommitRecord] = Field(
        default_factory=dict,
        description="Interleaved commit hash -> kind and index",
    )
    sequence: list[str] = Field(
        default_factory=list,
        description="Interleaved history in order, base revert first",
    )
    processed: list[str] = Field(
        default_factory=list,
        description="Originals whose interleave step has finished",
    )
    interleaved_tip: str | None = None
    folded: list[str] = Field(
        default_factory=list,
        description="Interleaved commits whose collapse step has finished",
    )
    fold_heads: dict[str, str] = Field(
        default_factory=dict,
        description=(
            "Interleaved commit -> HEAD right after git replayed it, "
            "recorded before any fold moves HEAD"
        ),
    )
    final_tip: str | None = None

    @property
    def tag_format(self) -> str:
        from histfmt.rewrite.marker import tag_format
        return tag_format(self.marker)

    @property
    def tag_revert(self) -> str:
        from histfmt.rewrite.marker import tag_revert
        return tag_revert(self.marker)

    def record(
        self,
        sha: str,
        kind: CommitKind,
        index: int,
        source: str | None = None,
    ) -> None:
        """Add sha to the side table and the interleaved sequence."""
        self.commits[sha] = CommitRecord(kind=kind, index=index, source=source)
        if sha not in self.sequence:
            self.sequence.append(sha)

    def kind_of(self, sha: str) -> CommitRecord | None:
        return self.commits.get(sha)

    def original_index(self, source: str) -> int:
        """1-based position of a linearized commit in the range."""
        try:
            return self.originals.index(source) + 1
        except ValueError:
            raise RecoveryError(
                f"Commit {source} is not part of this run's range"
            ) from None

    def predecessor(self, sha: str) -> CommitRecord | None:
        """Side-table entry of the commit before sha in the sequence."""
        pos = self.sequence.index(sha)
        if pos == 0:
            return None
        return self.commits[self.sequence[pos - 1]]


class RunStore:
    """Reads and writes the run state and rebase todo files.

    Files live in <git-dir>/histfmt/.
    """

    def __init__(self, git_dir: Path):
        self.directory = Path(git_dir) / "histfmt"
        self.path = self.directory / "run.json"

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> RunState:
        if not self.exists():
            raise RecoveryError(
                f"No histfmt run recorded in {self.directory}"
            )
        return RunState.model_validate_json(
            self.path.read_text(encoding="utf-8")
        )

    def save(self, run: RunState) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        tmp.write_text(run.model_dump_json(indent=2), encoding="utf-8")
        tmp.replace(self.path)
        logger.spew("Run state saved", phase=run.phase.value)

    def clear(self) -> None:
        for name in ("run.json", "interleave-todo", "collapse-todo"):
            (self.directory / name).unlink(missing_ok=True)

    def todo_path(self, phase: str) -> Path:
        return self.directory / f"{phase}-todo"

    def write_todo(self, phase: str, commits: list[str]) -> Path:
        """Write a todo list that picks each commit and then runs the
        callback for it."""
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.todo_path(phase)
        path.write_text(render_todo(phase, commits), encoding="utf-8")
        return path


def step_command(phase: str, sha: str) -> str:
    """Shell command git runs after picking sha."""
    return (
        f"{shlex.quote(sys.executable)} -m histfmt step "
        f"--phase {phase} --commit {sha}"
    )


def render_todo(phase: str, commits: list[str]) -> str:
    lines = []
    for sha in commits:
        lines.append(f"pick {sha}")
        lines.append(f"exec {step_command(phase, sha)}")
    return "\n".join(lines) + "\n"
