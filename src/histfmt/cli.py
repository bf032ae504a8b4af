"""histfmt command line."""

import asyncio

from pydantic_settings import CliApp, CliSubCommand, get_subcommand

from histfmt.command.reset import ResetCommand
from histfmt.command.resume import ResumeCommand
from histfmt.command.run import RunCommand
from histfmt.command.step import StepCommand
from histfmt.core.config import State
from histfmt.core.log import logger


class CliState(State):
    """State with CLI subcommand support.

    When run via CliApp.run(CliState), pydantic-settings will:
    1. Parse CLI arguments
    2. Load config from YAML/env
    3. Instantiate CliState
    4. Call cli_cmd() method
    5. Dispatch to the active subcommand
    """

    run: CliSubCommand[RunCommand]
    resume: CliSubCommand[ResumeCommand]
    step: CliSubCommand[StepCommand]
    reset: CliSubCommand[ResetCommand]

    def cli_cmd(self):
        """Dispatch to the active subcommand and exit with its code."""
        subcommand = get_subcommand(self, is_required=False)
        if subcommand is None:
            logger.error(
                "No command given; expected one of run, resume, step, "
                "reset (see --help)"
            )
            raise SystemExit(1)

        with logger:
            exit_code = asyncio.run(subcommand.run_workflow(self))
        raise SystemExit(exit_code)


def main():
    CliApp.run(CliState)


if __name__ == "__main__":
    main()
