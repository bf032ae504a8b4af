"""Interleave phase: follow every original commit with a format commit
and its revert.

For originals O1..ON the history becomes

    B, O1, F1, R1, O2, F2, R2, ..., ON, FN

where B is an empty base revert on the common root, Fi holds the
formatter's changes to the tree of Oi and Ri undoes them. Every Oi is
therefore replayed against unformatted content, exactly as it was
written. The trailing RN protects nothing and is trimmed.
"""

from __future__ import annotations

from histfmt.core.errors import FormatCommandError, RecoveryError
from histfmt.core.log import logger
from histfmt.git.repo import Git
from histfmt.rewrite.formatter import FormatCommandRunner
from histfmt.rewrite.gate import checkpoint, rebase_finished
from histfmt.rewrite.run_state import CommitKind, Phase, RunState, RunStore


class InterleavePhase:
    """Drives the interleave rebase and implements its callback."""

    def __init__(self, git: Git, store: RunStore):
        self.git = git
        self.store = store

    def linearize(self, run: RunState) -> bool:
        """Rebase branch_tip onto common_root.

        Conflicts here predate this tool and are left to the human.

        Returns:
            True if the rebase completed, False if it paused
        """
        run.phase = Phase.LINEARIZING
        self.store.save(run)

        self.git.checkout(run.branch_tip)
        with logger.span("Linearize", upstream=run.common_root):
            result = self.git.rebase(run.common_root)
        return rebase_finished(self.git, result, "Linearizing rebase")

    def start(self, run: RunState, interactive: bool) -> bool:
        """Create the base revert and replay the range on top of it.

        Returns:
            True if the rebase completed, False if it paused
        """
        linear_tip = self.git.head()
        if not self.git.is_ancestor(run.common_root, linear_tip):
            raise RecoveryError(
                f"HEAD {linear_tip} does not descend from common root "
                f"{run.common_root}; was the linearizing rebase aborted?"
            )
        run.linear_tip = linear_tip
        run.originals = self.git.rev_list(run.common_root, linear_tip)
        if not run.originals:
            raise RecoveryError(
                "Nothing left to reformat after linearizing "
                f"{run.common_root}..{run.branch_tip}"
            )
        # HEAD stays put until the rebase starts
        base = self.git.commit_tree(run.common_root, run.tag_revert)
        checkpoint(
            f"About to interleave {len(run.originals)} commit(s) "
            f"with formatting from {run.format_command!r}",
            interactive,
            command=self.git.rebase_todo_command(
                onto=base, upstream=run.common_root, branch=linear_tip
            ),
        )

        run.base_revert = base
        run.record(base, CommitKind.BASE_REVERT, 0)

        todo = self.store.write_todo("interleave", run.originals)
        run.phase = Phase.INTERLEAVING
        self.store.save(run)

        with logger.span("Interleave", commits=len(run.originals)):
            result = self.git.rebase_todo(
                onto=base,
                upstream=run.common_root,
                branch=linear_tip,
                todo=todo,
            )
        return rebase_finished(self.git, result, "Interleave rebase")

    def step(self, source: str) -> None:
        """Callback after original commit source has been replayed.

        Commits the formatter's output, then its revert. When git
        reschedules the callback after a failure, it picks up from the
        last commit it recorded.

        Raises:
            FormatCommandError: If the formatter fails; the working
                tree is reset first so the rebase can continue cleanly
            RecoveryError: If HEAD is not where this step left it
        """
        run = self.store.load()
        if source in run.processed:
            logger.info(f"Commit {source[:12]} already interleaved")
            return

        index = run.original_index(source)
        head = self.git.head()
        record = run.kind_of(head)
        if record is not None and record.index != index:
            raise RecoveryError(
                f"HEAD {head} belongs to commit {record.index}, "
                f"expected commit {index}"
            )

        with logger.span(
            f"Interleave step {index}/{len(run.originals)}",
            source=source,
        ):
            if record is None or record.kind == CommitKind.ORIGINAL:
                run.record(head, CommitKind.ORIGINAL, index, source=source)
                self.store.save(run)
                head = self._format(run, index)
                record = run.kind_of(head)

            if record.kind == CommitKind.FORMAT:
                self._revert(run, index, head)

            run.processed.append(source)
            self.store.save(run)

    def _format(self, run: RunState, index: int) -> str:
        formatter = FormatCommandRunner(
            self.git.workdir, run.format_command, run.targets
        )
        try:
            formatter.run()
        except FormatCommandError:
            self.git.discard_changes()
            raise

        self.git.add_tracked()
        head = self.git.commit(run.tag_format)
        run.record(head, CommitKind.FORMAT, index)
        self.store.save(run)
        if self.git.is_empty_commit(head):
            logger.debug(f"Formatter left commit {index} unchanged")
        return head

    def _revert(self, run: RunState, index: int, format_commit: str) -> str:
        # Drop anything the formatter left behind outside the index
        self.git.discard_changes()
        if not self.git.is_empty_commit(format_commit):
            self.git.revert_no_commit(format_commit)
        head = self.git.commit(run.tag_revert)
        run.record(head, CommitKind.REVERT, index)
        return head

    def trim(self) -> RunState:
        """Check the finished interleave and drop the trailing revert.

        Raises:
            RecoveryError: If the rebase did not process every commit
        """
        run = self.store.load()
        missing = [sha for sha in run.originals if sha not in run.processed]
        if missing:
            raise RecoveryError(
                f"{len(missing)} commit(s) were never interleaved "
                f"(first {missing[0]}); was the rebase aborted?"
            )

        head = self.git.head()
        if head != run.sequence[-1]:
            raise RecoveryError(
                f"HEAD {head} is not the last interleaved commit "
                f"{run.sequence[-1]}"
            )

        if run.commits[head].kind == CommitKind.REVERT:
            logger.debug(f"Trimming trailing revert {head[:12]}")
            self.git.reset("hard", "HEAD~1")
            run.sequence.pop()
            del run.commits[head]

        # B, F1..FN and R1..R(N-1)
        expected = 2 * len(run.originals)
        transient = [
            sha for sha in run.sequence
            if run.commits[sha].kind != CommitKind.ORIGINAL
        ]
        if len(transient) != expected or (
            len(run.sequence) != expected + len(run.originals)
        ):
            raise RecoveryError(
                f"Interleaved history has {len(transient)} transient "
                f"commits out of {len(run.sequence)}, expected {expected} "
                f"out of {expected + len(run.originals)}"
            )

        run.interleaved_tip = self.git.head()
        run.phase = Phase.INTERLEAVED
        self.store.save(run)
        logger.info(
            f"Interleaved history ready ({len(run.sequence)} commits)",
            tip=run.interleaved_tip,
        )
        return run
