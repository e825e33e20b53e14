"""Top-level step sequencer.

The step list is never stored. It is recomputed from the draft on every call,
because the same ordinal means different things depending on whether a phone
number is already known:

    needs phone:  1 duration, 2 date, 3 occupation, 4 contact info, 5 occupation flow
    phone known:  1 duration, 2 date, 3 occupation, 4 occupation flow
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List

from graph.state import ApplicationDraft, OCCUPATION_TYPES, PHONE_PLACEHOLDER
from graph.validators import validate_contract_duration, validate_occupancy_date, validate_phone


class StepKind(str, Enum):
    CONTRACT_DURATION = "contract_duration"
    OCCUPANCY_DATE = "occupancy_date"
    OCCUPATION_TYPE = "occupation_type"
    CONTACT_INFO = "contact_info"
    OCCUPATION_FLOW = "occupation_flow"


@dataclass(frozen=True)
class StepDescriptor:
    kind: StepKind
    ordinal: int
    total: int


_FIXED_STEPS = {
    1: StepKind.CONTRACT_DURATION,
    2: StepKind.OCCUPANCY_DATE,
    3: StepKind.OCCUPATION_TYPE,
}


def needs_phone(draft: ApplicationDraft) -> bool:
    phone = draft.get("phone") or ""
    return not phone.strip() or phone.strip() == PHONE_PLACEHOLDER


def total_steps(draft: ApplicationDraft) -> int:
    return 5 if needs_phone(draft) else 4


def describe_step(current_step: int, draft: ApplicationDraft) -> StepDescriptor:
    """Map an ordinal to its meaning under the current draft."""
    step = max(1, current_step)
    total = total_steps(draft)
    if step in _FIXED_STEPS:
        kind = _FIXED_STEPS[step]
    elif step == 4 and needs_phone(draft):
        kind = StepKind.CONTACT_INFO
    else:
        kind = StepKind.OCCUPATION_FLOW
    return StepDescriptor(kind=kind, ordinal=step, total=total)


def next_step(current_step: int) -> int:
    return current_step + 1


def previous_step(current_step: int, draft: ApplicationDraft) -> int:
    """
    Floor-clamped at 1. Leaving the occupation flow lands on the step before
    it: once the phone is known, step 4 is the flow itself, so going back from
    step 5 skips straight to step 3.
    """
    leaving = describe_step(current_step, draft).kind
    step = max(1, current_step - 1)
    if leaving == StepKind.OCCUPATION_FLOW:
        while step > 1 and describe_step(step, draft).kind == StepKind.OCCUPATION_FLOW:
            step -= 1
    return step


def progress_dots(current_step: int, draft: ApplicationDraft) -> List[bool]:
    """One dot per step, lit up to the current step."""
    return [i <= current_step for i in range(1, total_steps(draft) + 1)]


# draft fields each fixed step owns
STEP_FIELDS = {
    StepKind.CONTRACT_DURATION: ("contract_duration",),
    StepKind.OCCUPANCY_DATE: ("occupancy_date",),
    StepKind.OCCUPATION_TYPE: ("occupation_type",),
    StepKind.CONTACT_INFO: ("phone",),
    StepKind.OCCUPATION_FLOW: (),
}


def step_errors(descriptor: StepDescriptor, draft: ApplicationDraft, contract_options: List[int]) -> Dict[str, str]:
    """field → message for everything blocking Continue on a top-level step."""
    kind = descriptor.kind
    problem = None
    if kind == StepKind.CONTRACT_DURATION:
        problem = validate_contract_duration(draft.get("contract_duration"), contract_options)
    elif kind == StepKind.OCCUPANCY_DATE:
        problem = validate_occupancy_date(draft.get("occupancy_date"))
    elif kind == StepKind.OCCUPATION_TYPE:
        if draft.get("occupation_type") not in OCCUPATION_TYPES:
            problem = "Please choose an occupation"
    elif kind == StepKind.CONTACT_INFO:
        problem = validate_phone(draft.get("phone"))
    if problem:
        return {STEP_FIELDS[kind][0]: problem}
    return {}
