"""Journey nodes — top-level wizard steps and occupation sub-flow steps.

Every node interrupts at most once. The client answers with
``{"action": "next" | "back" | "close", "data": {...}}``; a rejected answer
comes back to the same node with a notice, and the router re-enters it.
"""

from typing import Any, Dict, Tuple

from langchain_core.runnables import RunnableConfig
from langgraph.types import interrupt

from graph.errors import StepValidationError
from graph.flows import (
    SubStepKind,
    advance_sub_step,
    describe_sub_step,
    retreat_sub_step,
    step_errors as sub_step_errors,
)
from graph.llm import generate_step_message
from graph.state import RentalState, empty_draft, merge_draft
from graph.steps import (
    STEP_FIELDS,
    StepKind,
    describe_step,
    next_step,
    previous_step,
    progress_dots,
    step_errors,
)
from graph.validators import GUARDIAN_RELATIONSHIPS, INCOME_RANGES, cap_income_documents
from graph.verification import VerificationSequencer
from workers.staging import discard_staged, trust_file_fields

ACTIONS = ("next", "back", "close")

PAYMENT_OPTIONS = [
    {"id": "student", "title": "I will make the payments", "description": "I have my own income to cover the rent"},
    {"id": "guardian", "title": "A guardian will make the payments", "description": "A relative or guardian will cover the payments"},
]


# ── Helpers ─────────────────────────────────────────────────────────────
def parse_response(response: Any) -> Tuple[str, Dict[str, Any]]:
    """Normalise an interrupt answer into (action, data)."""
    if not isinstance(response, dict):
        return "next", {}
    action = str(response.get("action") or "next").lower()
    if action not in ACTIONS:
        action = "next"
    data = response.get("data")
    if data is None:
        data = {k: v for k, v in response.items() if k != "action"}
    return action, dict(data or {})


def _coerce(field: str, value: Any) -> Any:
    if field == "contract_duration" and isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    if field in ("income_documents", "guardian_income_documents"):
        return cap_income_documents(value)
    if isinstance(value, str) and field not in ("phone", "guardian_phone"):
        return value.strip()
    return value


def _patch_for(fields, data: Dict[str, Any]) -> Dict[str, Any]:
    """Only the fields the mounted step owns may change the draft."""
    return {name: _coerce(name, data[name]) for name in fields if name in data}


def _tick(state: RentalState) -> Dict[str, Any]:
    return {"max_steps_guard": state["max_steps_guard"] + 1}


def _error_notice(errors: Dict[str, str]) -> Dict[str, Any]:
    return {
        "level": "error",
        "title": "Please review this step",
        "message": "; ".join(errors.values()),
        "fields": errors,
    }


def thread_of(config: RunnableConfig) -> str:
    return config["configurable"]["thread_id"]


def close_update(state: RentalState, thread_id: str) -> Dict[str, Any]:
    """Closing the wizard throws the draft and its staged files away."""
    discard_staged(thread_id)
    return {
        **_tick(state),
        "draft": empty_draft(state["profile_phone"]),
        "current_step": 1,
        "sub_step": 1,
        "verification": None,
        "submit_requested": False,
        "notice": None,
        "finished": True,
    }


# ── Top-level steps ─────────────────────────────────────────────────────
async def wizard_step_node(state: RentalState, config: RunnableConfig) -> Dict[str, Any]:
    """Contract duration, occupancy date, occupation type and (if needed) phone."""
    draft = state["draft"]
    step = describe_step(state["current_step"], draft)
    fields = STEP_FIELDS[step.kind]
    message = await generate_step_message(step.kind.value)

    options: Dict[str, Any] = {}
    if step.kind == StepKind.CONTRACT_DURATION:
        options["contract_duration"] = state["contract_options"]
    elif step.kind == StepKind.OCCUPATION_TYPE:
        options["occupation_type"] = ["professional", "entrepreneur", "student"]

    response = interrupt({
        "type": "wizard_step",
        "kind": step.kind.value,
        "step": step.ordinal,
        "total_steps": step.total,
        "progress": progress_dots(step.ordinal, draft),
        "fields": list(fields),
        "options": options,
        "values": {name: draft.get(name) for name in fields},
        "notice": state["notice"],
        "message": message,
    })

    # ── Runs only on resume (after interrupt returns) ──
    action, data = parse_response(response)
    if action == "close":
        return close_update(state, thread_of(config))

    draft = merge_draft(draft, _patch_for(fields, data))
    result: Dict[str, Any] = {**_tick(state), "draft": draft, "notice": None}

    if action == "back":
        result["current_step"] = previous_step(step.ordinal, draft)
        return result

    errors = step_errors(step, draft, state["contract_options"])
    if errors:
        result["notice"] = _error_notice(errors)
        return result

    result["current_step"] = next_step(step.ordinal)
    result["sub_step"] = 1
    return result


# ── Occupation sub-flow steps ───────────────────────────────────────────
def _sub_step_options(kind: SubStepKind) -> Dict[str, Any]:
    if kind == SubStepKind.PAYMENT_RESPONSIBLE:
        return {"payment_responsible": PAYMENT_OPTIONS}
    if kind == SubStepKind.GUARDIAN_INFO:
        return {"guardian_relationship": GUARDIAN_RELATIONSHIPS}
    if kind == SubStepKind.INCOME:
        return {"income_range": INCOME_RANGES}
    return {}


async def sub_flow_step_node(state: RentalState, config: RunnableConfig) -> Dict[str, Any]:
    """One sub-step of the student / professional / entrepreneur flow."""
    draft = state["draft"]
    sub = describe_sub_step(state["sub_step"], draft)
    copy_kind = sub.kind.value
    if sub.kind == SubStepKind.INCOME and sub.party == "guardian":
        copy_kind = "guardian_income"
    message = await generate_step_message(copy_kind)

    response = interrupt({
        "type": "sub_flow_step",
        "flow": sub.flow,
        "kind": sub.kind.value,
        "party": sub.party,
        "step": state["current_step"],
        "total_steps": describe_step(state["current_step"], draft).total,
        "progress": progress_dots(state["current_step"], draft),
        "sub_step": sub.ordinal,
        "total_sub_steps": sub.total,
        "fields": list(sub.fields),
        "options": _sub_step_options(sub.kind),
        "values": {name: draft.get(name) for name in sub.fields},
        "resolved_urls": {name: draft.get(f"{name}_url") for name in sub.fields if f"{name}_url" in draft},
        "missing": list(sub_step_errors(sub, draft)),
        "notice": state["notice"],
        "message": message,
    })

    # ── Runs only on resume (after interrupt returns) ──
    action, data = parse_response(response)
    if action == "close":
        return close_update(state, thread_of(config))

    try:
        patch = trust_file_fields(thread_of(config), _patch_for(sub.fields, data))
    except StepValidationError as e:
        # Draft stays untouched; the same sub-step shows again
        return {**_tick(state), "notice": _error_notice({field: str(e) for field in e.missing})}

    draft = merge_draft(draft, patch)
    result: Dict[str, Any] = {**_tick(state), "draft": draft, "notice": None}

    if action == "back":
        previous = retreat_sub_step(sub.ordinal)
        if previous is None:
            # Hand control back to the top-level sequencer
            result["current_step"] = previous_step(state["current_step"], draft)
            result["sub_step"] = 1
        else:
            result["sub_step"] = previous
        return result

    errors = sub_step_errors(sub, draft)
    if errors:
        result["notice"] = _error_notice(errors)
        return result

    if sub.is_last:
        # Shared completion: every sub-flow ends in identity verification
        sequencer = VerificationSequencer(
            draft.get("occupation_type"),
            draft.get("payment_responsible"),
        )
        result["verification"] = sequencer.snapshot()
        return result

    result["sub_step"] = advance_sub_step(sub, draft)
    return result

