"""Reset command - discard the persisted run."""

from pydantic import BaseModel

from histfmt.core.errors import HistfmtError
from histfmt.core.log import logger


class ResetCommand(BaseModel):
    """Forget the recorded run so a new one can start.

    Does not touch history; prints the starting hashes so the human
    can check out the original branch tip.
    """

    async def run_workflow(self, state: "State") -> int:
        """Returns:
            Exit code (0=success)
        """
        from histfmt.command.run import bind_repository

        try:
            bind_repository(state)
        except HistfmtError as e:
            logger.error(str(e))
            return 1

        rewrite = state.runtime.rewrite
        store = rewrite.store
        if not store.exists():
            logger.warn("No histfmt run recorded; nothing to reset")
            return 0

        try:
            run = store.load()
        except ValueError as e:
            logger.warn(f"Run state is unreadable, discarding it: {e}")
        else:
            logger.info(
                f"Discarding run {run.marker} in phase {run.phase.value}",
                common_root=run.common_root,
                branch_tip=run.branch_tip,
            )
            if rewrite.git.rebase_in_progress():
                logger.warn(
                    "A rebase is still in progress; run 'git rebase --abort'"
                )
            logger.info(
                f"The original history is still at {run.branch_tip}; "
                f"'git checkout {run.branch_tip}' returns to it"
            )

        store.clear()
        rewrite.status = "reset"
        logger.info("Reset complete")
        return 0
