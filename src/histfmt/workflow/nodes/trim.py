"""Trim node - drop the trailing revert of the interleaved history."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic_graph import BaseNode, GraphRunContext

from histfmt.core.config import State


@dataclass
class Trim(BaseNode[State, None, int]):
    async def run(self, ctx: GraphRunContext[State]) -> "Collapse":
        from histfmt.rewrite.interleave import InterleavePhase
        from histfmt.workflow.nodes.collapse import Collapse

        rewrite = ctx.state.runtime.rewrite
        phase = InterleavePhase(rewrite.git, rewrite.store)
        rewrite.run = phase.trim()
        return Collapse()
