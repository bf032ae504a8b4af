"""Collapse node - fold transient commits into the originals."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic_graph import BaseNode, End, GraphRunContext

from histfmt.core.config import State


@dataclass
class Collapse(BaseNode[State, None, int]):
    """Run the collapse rebase; git calls 'histfmt step' per commit."""

    async def run(
        self, ctx: GraphRunContext[State]
    ) -> "Finalize | End[int]":
        """Returns:
            Finalize: Rebase finished
            End: Paused on a failed callback (EXIT_PAUSED)
        """
        from histfmt.rewrite.collapse import CollapsePhase
        from histfmt.workflow.graph import EXIT_PAUSED
        from histfmt.workflow.nodes.finalize import Finalize

        rewrite = ctx.state.runtime.rewrite
        run = rewrite.store.load()

        phase = CollapsePhase(rewrite.git, rewrite.store)
        finished = phase.start(run, ctx.state.config.interactive)
        rewrite.run = rewrite.store.load()
        if not finished:
            rewrite.status = "paused"
            return End(EXIT_PAUSED)
        return Finalize()
