"""Collapse phase: fold transient commits back into the originals.

The interleaved history B, O1, F1, R1, O2, F2, ..., ON, FN is replayed
onto the common root without B. After each pick two independent
folds are tried:

- fold down: an original preceded by a revert absorbs it, so
  Ri + O(i+1) becomes one commit carrying O(i+1)'s message;
- fold up: a format commit is absorbed into the commit before it,
  which keeps its own message.

The result is N commits whose trees are exactly the trees of F1..FN.
"""

from __future__ import annotations

from histfmt.core.errors import (
    FixedPointError,
    FoldError,
    FormatCommandError,
    GitError,
    RecoveryError,
    ResidueError,
)
from histfmt.core.log import logger
from histfmt.git.repo import Git
from histfmt.rewrite.formatter import FormatCommandRunner
from histfmt.rewrite.gate import checkpoint, rebase_finished
from histfmt.rewrite.run_state import (
    CommitKind,
    CommitRecord,
    Phase,
    RunState,
    RunStore,
)


class CollapsePhase:
    """Drives the collapse rebase and implements its callback."""

    def __init__(self, git: Git, store: RunStore):
        self.git = git
        self.store = store

    def start(self, run: RunState, interactive: bool) -> bool:
        """Replay the interleaved history onto the common root.

        Returns:
            True if the rebase completed, False if it paused
        """
        replayed = run.sequence[1:]
        todo = self.store.write_todo("collapse", replayed)
        command = self.git.rebase_todo_command(
            onto=run.common_root,
            upstream=run.base_revert,
            branch=run.interleaved_tip,
        )
        checkpoint(
            "About to start the collapse rebase",
            interactive,
            command=command,
        )

        run.phase = Phase.COLLAPSING
        self.store.save(run)

        with logger.span("Collapse", commits=len(replayed)):
            result = self.git.rebase_todo(
                onto=run.common_root,
                upstream=run.base_revert,
                branch=run.interleaved_tip,
                todo=todo,
            )
        return rebase_finished(self.git, result, "Collapse rebase")

    def step(self, sha: str) -> None:
        """Callback after interleaved commit sha has been replayed.

        When git reschedules the callback after a failure, HEAD is first
        moved back to where the replay left it, so a fold never runs
        twice.

        Raises:
            FoldError: If a fold matched but git could not apply it
            RecoveryError: If sha is not part of this run
        """
        run = self.store.load()
        if sha in run.folded:
            logger.info(f"Commit {sha[:12]} already collapsed")
            return

        record = run.kind_of(sha)
        if record is None:
            raise RecoveryError(f"Commit {sha} is not part of this run")

        head = self.git.head()
        replayed = run.fold_heads.get(sha)
        if replayed is None:
            run.fold_heads[sha] = head
            self.store.save(run)
        elif head != replayed:
            logger.info(
                f"Moving HEAD back to {replayed[:12]} before folding "
                f"{sha[:12]} again"
            )
            self.git.reset("soft", replayed)

        with logger.span(
            f"Collapse step {record.kind.value} {record.index}",
            commit=sha,
        ):
            self.fold_down(record, run.predecessor(sha))
            self.fold_up(record)

        run.folded.append(sha)
        self.store.save(run)

    def fold_down(
        self, record: CommitRecord, previous: CommitRecord | None
    ) -> bool:
        """Merge the preceding revert into this original commit.

        Returns:
            False when the predicate does not match (nothing done)
        """
        if (
            record.kind != CommitKind.ORIGINAL
            or previous is None
            or previous.kind != CommitKind.REVERT
        ):
            return False

        head = self.git.head()
        try:
            self.git.reset("soft", "HEAD~2")
            folded = self.git.commit_reuse(head)
        except GitError as e:
            self._restore(head)
            raise FoldError(e.command, e.exited, e.stdout, e.stderr) from e
        logger.debug(
            f"Folded revert {previous.index} down into commit "
            f"{record.index}",
            commit=folded,
        )
        return True

    def fold_up(self, record: CommitRecord) -> bool:
        """Merge this format commit into the commit before it.

        Returns:
            False when the predicate does not match (nothing done)
        """
        if record.kind != CommitKind.FORMAT:
            return False

        head = self.git.head()
        try:
            self.git.reset("soft", "HEAD~1")
            folded = self.git.commit_amend()
        except GitError as e:
            self._restore(head)
            raise FoldError(e.command, e.exited, e.stdout, e.stderr) from e
        logger.debug(
            f"Folded formatting up into commit {record.index}",
            commit=folded,
        )
        return True

    def _restore(self, head: str) -> None:
        """Put HEAD back after a fold failed halfway; the index already
        holds the tree of head."""
        try:
            self.git.reset("soft", head)
        except GitError as e:
            logger.error(f"Could not move HEAD back to {head}: {e}")

    def finish(self, verify: bool) -> RunState:
        """Check the collapsed history and mark the run complete.

        Empty commits are kept, so a run over N originals ends with
        exactly N commits even where formatting changed nothing.

        Raises:
            RecoveryError: If the rebase skipped commits
            ResidueError: If a transient commit survived
            FixedPointError: If verify is set and the formatter still
                changes the final tree
        """
        run = self.store.load()
        pending = [sha for sha in run.sequence[1:] if sha not in run.folded]
        if pending:
            raise RecoveryError(
                f"{len(pending)} commit(s) were never collapsed "
                f"(first {pending[0]}); was the rebase aborted?"
            )

        head = self.git.head()
        messages = self.git.messages(run.common_root, head)
        residue = [sha for sha, body in messages.items() if run.marker in body]
        if residue:
            raise ResidueError(
                f"{len(residue)} transient commit(s) left in the final "
                f"history, first {residue[0]}"
            )
        if len(messages) > len(run.originals):
            raise RecoveryError(
                f"Collapsed history has {len(messages)} commits, "
                f"expected at most {len(run.originals)}"
            )

        if verify:
            self.verify_fixed_point(run)

        run.final_tip = head
        run.phase = Phase.COMPLETE
        self.store.save(run)
        return run

    def verify_fixed_point(self, run: RunState) -> None:
        """Re-run the formatter on HEAD and require no change."""
        formatter = FormatCommandRunner(
            self.git.workdir, run.format_command, run.targets
        )
        try:
            formatter.run()
            # Untracked output such as caches is not part of the tree
            changed = [
                line for line in self.git.status()
                if not line.startswith("??")
            ]
        except FormatCommandError:
            self.git.discard_changes()
            raise
        self.git.discard_changes()
        if changed:
            raise FixedPointError(
                "Formatter still changes the final tree: "
                + ", ".join(changed[:10])
            )
        logger.debug("Final tree is a formatter fixed point")
