"""Deterministic router — NO LLM calls, pure rule-based branching."""

from typing import Literal
from graph.state import RentalState
from graph.steps import StepKind, describe_step
from config import MAX_STEPS_GUARD


# All valid destinations for add_conditional_edges
RouterDest = Literal[
    "wizard_step",
    "sub_flow_step",
    "verification_node",
    "submit_node",
    "finish",
]


def router(state: RentalState) -> RouterDest:
    """
    Rule-based router.  Priority: termination > submission > verification > next step.
    Called via add_conditional_edges after every node.
    """
    # Guard: hard terminate if exceeded
    if state["max_steps_guard"] > MAX_STEPS_GUARD:
        return "finish"

    # Already done (submitted or closed)
    if state["finished"]:
        return "finish"

    # Priority 1: a user-initiated submit is pending
    if state["submit_requested"]:
        return "submit_node"

    # Top-level steps before the occupation sub-flow
    step = describe_step(state["current_step"], state["draft"])
    if step.kind != StepKind.OCCUPATION_FLOW:
        return "wizard_step"

    # Priority 2: identity verification in progress
    if state["verification"] is not None:
        return "verification_node"

    return "sub_flow_step"
