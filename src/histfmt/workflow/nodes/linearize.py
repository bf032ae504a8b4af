"""Linearize node - rebase the range onto its common root."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic_graph import BaseNode, End, GraphRunContext

from histfmt.core.config import State


@dataclass
class Linearize(BaseNode[State, None, int]):
    """Replay branch_tip onto common_root so the range is linear."""

    async def run(
        self, ctx: GraphRunContext[State]
    ) -> "Interleave | End[int]":
        """Returns:
            Interleave: Rebase finished
            End: Paused on a conflict (EXIT_PAUSED)
        """
        from histfmt.rewrite.interleave import InterleavePhase
        from histfmt.workflow.graph import EXIT_PAUSED
        from histfmt.workflow.nodes.interleave import Interleave

        rewrite = ctx.state.runtime.rewrite
        run = rewrite.store.load()

        phase = InterleavePhase(rewrite.git, rewrite.store)
        if not phase.linearize(run):
            rewrite.status = "paused"
            return End(EXIT_PAUSED)
        return Interleave()
