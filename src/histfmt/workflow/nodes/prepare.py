"""Prepare node - check the repository and record a new run."""

from __future__ import annotations

from dataclasses import dataclass, field

from pydantic_graph import BaseNode, GraphRunContext

from histfmt.core.config import State
from histfmt.core.errors import PreconditionError
from histfmt.core.log import logger


@dataclass
class Prepare(BaseNode[State, None, int]):
    """Validate preconditions, pick a marker and persist the run."""

    commits: list[str] = field(default_factory=list)

    async def run(self, ctx: GraphRunContext[State]) -> "Linearize":
        """Nothing in the repository changes before this node returns.

        Returns:
            Linearize: Next node to rebase the range onto its root
        """
        from histfmt.rewrite.gate import RecoveryGate
        from histfmt.rewrite.marker import MarkerTagger
        from histfmt.rewrite.run_state import RunState
        from histfmt.workflow.nodes.linearize import Linearize

        rewrite = ctx.state.runtime.rewrite
        fmt = ctx.state.config.format

        if rewrite.store.exists():
            raise PreconditionError(
                "A histfmt run is already recorded for this repository; "
                "use 'histfmt resume' to continue it or 'histfmt reset' "
                "to discard it"
            )
        if not fmt.command:
            raise PreconditionError(
                "No formatter configured; set format.command in "
                "histfmt.yaml or pass --config.format.command"
            )

        commit_range = RecoveryGate(rewrite.git).validate(self.commits)
        marker = MarkerTagger(rewrite.git).generate(
            commit_range.common_root,
            commit_range.branch_tip,
            fmt.command,
            fmt.targets,
        )

        run = RunState(
            marker=marker,
            common_root=commit_range.common_root,
            branch_tip=commit_range.branch_tip,
            format_command=fmt.command,
            targets=fmt.targets,
        )
        rewrite.store.save(run)
        rewrite.run = run

        logger.info(
            f"Recorded run {marker}; to undo at any point, run "
            f"'git rebase --abort' if a rebase is in progress, then "
            f"'git checkout {run.branch_tip}'",
            common_root=run.common_root,
            branch_tip=run.branch_tip,
        )
        return Linearize()
