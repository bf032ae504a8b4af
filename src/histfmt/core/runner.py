"""Command execution on top of invoke."""

import contextlib
import io
import os
import platform
from pathlib import Path

from invoke import Context, Result
from invoke.exceptions import CommandTimedOut

from histfmt.core.log import logger


class Runner(Context):
    """invoke.Context with a single execute() entry point.

    Every git command and every formatter invocation goes through
    execute(), so output capture and logging behave the same for all
    of them.
    """

    def kill(self) -> None:
        """Kill the running subprocess.

        invoke calls os.kill(pid, signal.SIGKILL), and Windows has no
        signal.SIGKILL. os.kill() on Windows passes the number to
        TerminateProcess(), so 9 works there.
        """
        if platform.system() == "Windows":
            pid = self.pid if self.using_pty else self.process.pid
            with contextlib.suppress(ProcessLookupError):
                os.kill(pid, 9)
            return
        super().kill()

    def execute(
        self,
        command: str,
        cwd: Path | None = None,
        timeout: int | None = None,
        stdin: str | None = None,
        log_file: Path | None = None,
        log_level: str | None = None,
        check: bool = True,
        env: dict[str, str] | None = None,
    ) -> Result:
        """Run a shell command and capture its output.

        Args:
            command: Command string to execute
            cwd: Working directory for command execution
            timeout: Maximum execution time in seconds
            stdin: String to send to command's stdin
            log_file: Path to write combined stdout/stderr output
            log_level: Level at which to log each output line
            check: If True, raise on non-zero exit code
            env: Variables added on top of os.environ

        Returns:
            invoke.Result with stdout, stderr, exited (return code);
            a timed out command reports exited == -1

        Raises:
            invoke.UnexpectedExit: If check=True and the command
                returns non-zero
        """
        kwargs = {
            "hide": True,
            "warn": not check,
            "in_stream": False,
        }
        if timeout:
            kwargs["timeout"] = timeout
        if stdin:
            kwargs["in_stream"] = io.StringIO(stdin)
        if env:
            kwargs["env"] = env

        logger.spew("exec", command=command, cwd=str(cwd) if cwd else None)

        try:
            if cwd:
                with self.cd(str(cwd)):
                    result = self.run(command, **kwargs)
            else:
                result = self.run(command, **kwargs)
        except CommandTimedOut as e:
            result = e.result
            result.exited = -1

        if log_file:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            log_file.write_text(result.stdout + result.stderr)

        if log_level:
            for line in (result.stdout + result.stderr).splitlines():
                if line.strip():
                    logger.log(log_level, "{line}", line=line.rstrip())

        return result
