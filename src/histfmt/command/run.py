"""Run command - rewrite a range of history with formatting applied."""

from pathlib import Path

from pydantic import BaseModel
from pydantic_settings import CliPositionalArg

from histfmt.core.errors import HistfmtError
from histfmt.core.log import logger


def bind_repository(state: "State") -> None:
    """Attach git and the run store for the current directory to state."""
    from histfmt.git.repo import Git
    from histfmt.rewrite.run_state import RunStore

    rewrite = state.runtime.rewrite
    rewrite.git = Git(Path.cwd(), state.config.commands.get("git", {}))
    rewrite.store = RunStore(rewrite.git.git_dir)


class RunCommand(BaseModel):
    """Reformat every commit of a linear range as if the formatter had
    always been used.

    Pass [COMMON_ROOT] BRANCH_TIP as commit hashes; with only
    BRANCH_TIP, the detached HEAD is the common root. HEAD is left
    detached at the rewritten tip and no branch is moved.
    """

    commits: CliPositionalArg[list[str]]

    async def run_workflow(self, state: "State") -> int:
        """Run the rewrite workflow.

        Returns:
            Exit code (0=complete, 1=failure, 3=paused for the human)
        """
        from histfmt.workflow.graph import EXIT_FAILED, execute_workflow
        from histfmt.workflow.nodes.prepare import Prepare

        try:
            bind_repository(state)
        except HistfmtError as e:
            logger.error(str(e))
            return EXIT_FAILED

        logger.info(f"Starting rewrite of {' '.join(self.commits)}")
        return await execute_workflow(Prepare(commits=self.commits), state)
