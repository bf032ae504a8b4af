"""Interleave node - add a format commit and its revert after every
original commit."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic_graph import BaseNode, End, GraphRunContext

from histfmt.core.config import State


@dataclass
class Interleave(BaseNode[State, None, int]):
    """Run the interleave rebase; git calls 'histfmt step' per commit."""

    async def run(self, ctx: GraphRunContext[State]) -> "Trim | End[int]":
        """Returns:
            Trim: Rebase finished
            End: Paused on a failed callback (EXIT_PAUSED)
        """
        from histfmt.rewrite.interleave import InterleavePhase
        from histfmt.workflow.graph import EXIT_PAUSED
        from histfmt.workflow.nodes.trim import Trim

        rewrite = ctx.state.runtime.rewrite
        run = rewrite.store.load()

        phase = InterleavePhase(rewrite.git, rewrite.store)
        finished = phase.start(run, ctx.state.config.interactive)
        rewrite.run = rewrite.store.load()
        if not finished:
            rewrite.status = "paused"
            return End(EXIT_PAUSED)
        return Trim()
