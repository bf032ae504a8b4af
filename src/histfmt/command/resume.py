"""Resume command - continue a run after the human finished a rebase."""

from pydantic import BaseModel

from histfmt.core.errors import HistfmtError
from histfmt.core.log import logger


class ResumeCommand(BaseModel):
    """Continue a paused run.

    Finish the stopped rebase first with 'git rebase --continue'.
    """

    async def run_workflow(self, state: "State") -> int:
        """Returns:
            Exit code (0=complete, 1=failure, 3=paused again)
        """
        from histfmt.command.run import bind_repository
        from histfmt.rewrite.gate import RecoveryGate
        from histfmt.workflow.graph import (
            EXIT_FAILED,
            execute_workflow,
            resume_node,
        )

        try:
            bind_repository(state)
            rewrite = state.runtime.rewrite
            RecoveryGate(rewrite.git).require_no_rebase()
            run = rewrite.store.load()
        except HistfmtError as e:
            logger.error(str(e))
            return EXIT_FAILED

        rewrite.run = run
        node = resume_node(run.phase)
        logger.info(
            f"Resuming run {run.marker} from phase {run.phase.value}",
            node=type(node).__name__,
        )
        return await execute_workflow(node, state)
