"""Graph assembly — builds and compiles the RentalState graph with all nodes and edges."""

from functools import partial

from langgraph.graph import StateGraph, START, END
from langgraph.checkpoint.memory import MemorySaver

from graph.state import RentalState
from graph.router import router
from graph.journey_nodes import wizard_step_node, sub_flow_step_node
from graph.verification_nodes import verification_node, submit_node, finish_node
from services.application_service import ApplicationService


def build_graph(checkpointer=None, application_service_factory=ApplicationService):
    """
    Assemble the rental application graph.
    Returns a compiled graph ready for invoke/stream.
    """
    builder = StateGraph(RentalState)

    # ── Register nodes ──────────────────────────────────────────────
    builder.add_node("wizard_step", wizard_step_node)
    builder.add_node("sub_flow_step", sub_flow_step_node)
    builder.add_node("verification_node", verification_node)

    # The service factory is bound here so tests can swap in a fake backend
    submit = partial(submit_node, service_factory=application_service_factory)
    submit.__name__ = "submit_node"
    builder.add_node("submit_node", submit)

    builder.add_node("finish", finish_node)

    # ── Entry edge: resuming a checkpoint lands wherever the router says ──
    builder.add_conditional_edges(START, router)

    # ── Conditional edges: every working node → router ──────────────
    for node_name in ("wizard_step", "sub_flow_step", "verification_node", "submit_node"):
        builder.add_conditional_edges(node_name, router)

    # ── Finish → END ────────────────────────────────────────────────
    builder.add_edge("finish", END)

    # ── Compile with checkpointer (required for interrupt) ──────────
    if checkpointer is None:
        checkpointer = MemorySaver()

    return builder.compile(checkpointer=checkpointer)
