"""Step command - per-commit callback run by git during a rebase."""

from typing import Literal

from pydantic import BaseModel, Field

from histfmt.core.errors import HistfmtError
from histfmt.core.log import logger


class StepCommand(BaseModel):
    """Process one replayed commit (invoked from the rebase todo list).

    Not meant to be run by hand.
    """

    phase: Literal["interleave", "collapse"] = Field(
        description="Rebase the callback belongs to"
    )
    commit: str = Field(
        description="Hash of the commit git has just replayed"
    )

    async def run_workflow(self, state: "State") -> int:
        """Returns:
            Exit code; non-zero makes git stop the rebase and reschedule
            this callback
        """
        from histfmt.command.run import bind_repository
        from histfmt.rewrite.collapse import CollapsePhase
        from histfmt.rewrite.interleave import InterleavePhase

        try:
            bind_repository(state)
            rewrite = state.runtime.rewrite
            if self.phase == "interleave":
                InterleavePhase(rewrite.git, rewrite.store).step(self.commit)
            else:
                CollapsePhase(rewrite.git, rewrite.store).step(self.commit)
        except HistfmtError as e:
            logger.error(str(e), phase=self.phase, commit=self.commit)
            return 1
        return 0
