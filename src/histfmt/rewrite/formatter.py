"""Formatter invocation."""

from __future__ import annotations

import shlex
from pathlib import Path

from histfmt.core.errors import FormatCommandError
from histfmt.core.log import logger
from histfmt.core.runner import Runner


class FormatCommandRunner:
    """Runs the formatter over the working tree.

    The tree is modified in place; staging and committing are left to
    the caller.
    """

    def __init__(
        self,
        workdir: Path,
        command: str,
        targets: list[str] | None = None,
        runner: Runner | None = None,
    ):
        self.workdir = Path(workdir)
        self.command = command
        self.targets = list(targets or [])
        self.runner = runner or Runner()

    @property
    def invocation(self) -> str:
        """The shell command actually run: command plus quoted targets."""
        if not self.targets:
            return self.command
        quoted = " ".join(shlex.quote(target) for target in self.targets)
        return f"{self.command} {quoted}"

    def run(self) -> None:
        """Format the working tree.

        Raises:
            FormatCommandError: If the formatter exits non-zero
        """
        logger.debug("Running formatter", command=self.invocation)
        result = self.runner.execute(
            self.invocation,
            cwd=self.workdir,
            check=False,
            log_level="spew",
        )
        if result.exited != 0:
            raise FormatCommandError(
                self.invocation,
                result.exited,
                result.stdout + result.stderr,
            )
