"""Workflow nodes for the rewrite graph."""

from histfmt.workflow.nodes.collapse import Collapse
from histfmt.workflow.nodes.finalize import Finalize
from histfmt.workflow.nodes.interleave import Interleave
from histfmt.workflow.nodes.linearize import Linearize
from histfmt.workflow.nodes.prepare import Prepare
from histfmt.workflow.nodes.trim import Trim

__all__ = [
    "Prepare",
    "Linearize",
    "Interleave",
    "Trim",
    "Collapse",
    "Finalize",
]
