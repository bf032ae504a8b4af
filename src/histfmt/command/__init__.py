"""CLI command modules for histfmt."""

from histfmt.command.reset import ResetCommand
from histfmt.command.resume import ResumeCommand
from histfmt.command.run import RunCommand
from histfmt.command.step import StepCommand

__all__ = ["RunCommand", "ResumeCommand", "StepCommand", "ResetCommand"]
