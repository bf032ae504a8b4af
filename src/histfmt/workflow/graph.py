"""Graph workflow definition."""

from pydantic_graph import BaseNode, End, Graph

from histfmt.core.config import State
from histfmt.core.errors import HistfmtError
from histfmt.core.log import logger

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_PAUSED = 3


def create_workflow():
    """Create the rewrite workflow graph.

    Prepare -> Linearize -> Interleave -> Trim -> Collapse -> Finalize

    Linearize, Interleave and Collapse end the run with EXIT_PAUSED
    when their rebase stops for the human; resume_node() picks the
    graph up again from the persisted phase.
    """
    logger.debug("Building workflow graph")

    from histfmt.workflow.nodes.collapse import Collapse
    from histfmt.workflow.nodes.finalize import Finalize
    from histfmt.workflow.nodes.interleave import Interleave
    from histfmt.workflow.nodes.linearize import Linearize
    from histfmt.workflow.nodes.prepare import Prepare
    from histfmt.workflow.nodes.trim import Trim

    return Graph(
        nodes=(Prepare, Linearize, Interleave, Trim, Collapse, Finalize),
        state_type=State,
    )


def resume_node(phase) -> BaseNode:
    """Node that continues a run persisted in the given phase."""
    from histfmt.rewrite.run_state import Phase
    from histfmt.workflow.nodes.collapse import Collapse
    from histfmt.workflow.nodes.finalize import Finalize
    from histfmt.workflow.nodes.interleave import Interleave
    from histfmt.workflow.nodes.linearize import Linearize
    from histfmt.workflow.nodes.trim import Trim

    return {
        Phase.PREPARED: Linearize,
        Phase.LINEARIZING: Interleave,
        Phase.INTERLEAVING: Trim,
        Phase.INTERLEAVED: Collapse,
        Phase.COLLAPSING: Finalize,
        Phase.COMPLETE: Finalize,
    }[phase]()


async def execute_workflow(start: BaseNode, state: State) -> int:
    """Run the graph from start and return a process exit code."""
    workflow = create_workflow()
    state.runtime.rewrite.status = "running"

    try:
        async with workflow.iter(start, state=state) as run:
            async for node in run:
                if isinstance(node, End):
                    return node.data
    except HistfmtError as e:
        state.runtime.rewrite.status = "failed"
        logger.error(str(e), error=type(e).__name__)
        return EXIT_FAILED

    logger.error("Workflow ended unexpectedly")
    return EXIT_FAILED
