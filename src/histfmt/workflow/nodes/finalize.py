"""Finalize node - check the collapsed history and report the new tip."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic_graph import BaseNode, End, GraphRunContext

from histfmt.core.config import State
from histfmt.core.log import logger


@dataclass
class Finalize(BaseNode[State, None, int]):
    """Verify the result and discard the persisted run."""

    async def run(self, ctx: GraphRunContext[State]) -> End[int]:
        """Returns:
            End[int]: EXIT_OK with HEAD detached at the new tip
        """
        from histfmt.rewrite.collapse import CollapsePhase
        from histfmt.workflow.graph import EXIT_OK

        rewrite = ctx.state.runtime.rewrite
        phase = CollapsePhase(rewrite.git, rewrite.store)
        run = phase.finish(ctx.state.config.format.verify)

        rewrite.run = run
        rewrite.final_tip = run.final_tip
        rewrite.status = "complete"
        rewrite.store.clear()

        logger.info(
            f"Reformatted {len(run.originals)} commit(s); HEAD is now "
            f"{run.final_tip}",
            original_tip=run.branch_tip,
        )
        logger.info(
            f"Point your branch at it with 'git branch -f <name> "
            f"{run.final_tip}', or go back with 'git checkout "
            f"{run.branch_tip}'"
        )
        return End(EXIT_OK)
