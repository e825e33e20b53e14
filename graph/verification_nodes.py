"""Verification and submission nodes.

The router sends the user to ``verification_node`` as soon as the last
sub-step of an occupation flow passes its gate. The node mounts the identity
widget through interrupt(), feeds the widget's events to the sequencer and,
once every pass is complete, flags the application for submission.
"""

import logging
from typing import Any, Callable, Dict, List

from langchain_core.runnables import RunnableConfig
from langgraph.types import interrupt

from graph.errors import RentalFlowError, VerificationConfigError
from graph.journey_nodes import close_update, thread_of
from graph.llm import generate_step_message
from graph.state import RentalState, empty_draft, merge_draft
from graph.steps import describe_step, progress_dots
from graph.verification import (
    VerificationPass,
    VerificationResult,
    VerificationSequencer,
    WidgetEvent,
)
from config import METAMAP_CLIENT_ID, METAMAP_FLOW_ID
from workers.staging import discard_staged
from workers.submission import friendly_submission_error, submit_draft


def _restore(state: RentalState, completed: List[VerificationResult]) -> VerificationSequencer:
    return VerificationSequencer.restore(
        state["verification"],
        client_id=METAMAP_CLIENT_ID,
        flow_id=METAMAP_FLOW_ID,
        on_complete=completed.append,
    )


def _retry_submission(state: RentalState, thread_id: str) -> Dict[str, Any]:
    """Verification is done but the last submission failed; offer a retry."""
    response = interrupt({
        "type": "submit_retry",
        "notice": state["notice"],
        "message": "Your identity is verified. Retry to submit your application.",
    })
    response = response if isinstance(response, dict) else {}
    action = str(response.get("action") or "retry").lower()
    tick = state["max_steps_guard"] + 1
    if action == "close":
        return close_update(state, thread_id)
    if action == "back":
        return {"max_steps_guard": tick, "verification": None, "notice": None}
    return {"max_steps_guard": tick, "submit_requested": True, "notice": None}


async def verification_node(state: RentalState, config: RunnableConfig) -> Dict[str, Any]:
    """One widget mount per visit; events come back through Command(resume=...)."""
    completed: List[VerificationResult] = []
    sequencer = _restore(state, completed)
    if sequencer.is_complete:
        return _retry_submission(state, thread_of(config))

    draft = state["draft"]
    guardian_pass = sequencer.current == VerificationPass.GUARDIAN
    message = await generate_step_message("guardian_verification" if guardian_pass else "identity_verification")

    notice = state["notice"]
    widget = None
    try:
        widget = sequencer.widget_config()
    except VerificationConfigError as e:
        logging.error(f"Verification widget not configured: {e}")
        notice = {"level": "error", "title": "Configuration Error", "message": str(e)}

    response = interrupt({
        "type": "identity_verification",
        "pass": sequencer.current.value,
        "needs_guardian": sequencer.needs_guardian,
        "widget": widget,
        "widget_hidden": sequencer.widget_hidden,
        "step": state["current_step"],
        "total_steps": describe_step(state["current_step"], draft).total,
        "progress": progress_dots(state["current_step"], draft),
        "notice": notice,
        "message": message,
    })

    # ── Runs only on resume (after interrupt returns) ──
    response = response if isinstance(response, dict) else {}
    result: Dict[str, Any] = {"max_steps_guard": state["max_steps_guard"] + 1, "notice": None}

    action = str(response.get("action") or "").lower()
    if action == "close":
        return close_update(state, thread_of(config))
    if action == "back":
        # Leaving the widget drops any partial pass; the last sub-step shows again
        result["verification"] = None
        return result

    if widget is None:
        result["notice"] = notice
        return result

    try:
        event = WidgetEvent(str(response.get("event") or ""))
    except ValueError:
        logging.error(f"Unknown verification widget event: {response.get('event')}")
        result["notice"] = notice
        return result

    event_notice = sequencer.handle(event, response.get("detail"))
    result["verification"] = sequencer.snapshot()
    if event_notice is not None:
        result["notice"] = event_notice.model_dump()

    if completed:
        result["draft"] = merge_draft(draft, {"verification": completed[0].model_dump(mode="json")})
        result["submit_requested"] = True
    return result


async def submit_node(state: RentalState, config: RunnableConfig, service_factory: Callable[[], Any]) -> Dict[str, Any]:
    """Upload every pending document, assemble the payload, submit once."""
    tick = state["max_steps_guard"] + 1
    try:
        async with service_factory() as service:
            application = await submit_draft(
                state["draft"], state["property_id"], service, state["profile_phone"],
            )
    except RentalFlowError as e:
        logging.error(f"Application submission error: {e}")
        return {
            "max_steps_guard": tick,
            "submit_requested": False,
            "notice": {"level": "error", "title": "Submission Failed", "message": friendly_submission_error(e)},
        }

    logging.info(f"Application submitted for property {state['property_id']}")
    discard_staged(thread_of(config))
    return {
        "max_steps_guard": tick,
        "application": application,
        "draft": empty_draft(state["profile_phone"]),
        "submit_requested": False,
        "verification": None,
        "finished": True,
        "notice": {
            "level": "info",
            "title": "Application Submitted!",
            "message": "Your rental application has been submitted successfully. You'll receive an update soon.",
        },
    }


def finish_node(state: RentalState) -> dict:
    """Terminal node — marks the wizard as complete."""
    return {"finished": True}
