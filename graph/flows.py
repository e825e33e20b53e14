"""Occupation sub-flows: student, professional and entrepreneur.

Each sub-flow has its own 1-based sub-step counter. Like the top-level
sequencer, a sub-step's meaning is computed from the draft (the student's
third step is either an income-source question or a guardian form). Sub-flows
never move the top-level step; backing out of sub-step 1 hands control back.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from graph.errors import StepValidationError
from graph.state import PAYMENT_RESPONSIBLES, ApplicationDraft
from graph.validators import (
    GUARDIAN_RELATIONSHIPS,
    INCOME_RANGES,
    is_blank,
    validate_email,
    validate_file,
    validate_phone,
    validate_work_start_date,
)
from config import MAX_INCOME_DOCUMENTS


class SubStepKind(str, Enum):
    UNIVERSITY_INFO = "university_info"
    PAYMENT_RESPONSIBLE = "payment_responsible"
    INCOME_SOURCE = "income_source"
    GUARDIAN_INFO = "guardian_info"
    WORK_INFO = "work_info"
    BUSINESS_INFO = "business_info"
    INCOME = "income"
    KYC = "kyc"                                    # documents, then identity verification
    IDENTITY_VERIFICATION = "identity_verification"


@dataclass(frozen=True)
class SubStepDescriptor:
    flow: str
    kind: SubStepKind
    ordinal: int
    total: int
    party: str = "applicant"                       # whose data the step collects
    fields: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_last(self) -> bool:
        return self.ordinal >= self.total

    @property
    def verifies_identity(self) -> bool:
        return self.kind in (SubStepKind.KYC, SubStepKind.IDENTITY_VERIFICATION)


def is_guardian_paid(draft: ApplicationDraft) -> bool:
    return draft.get("occupation_type") == "student" and draft.get("payment_responsible") == "guardian"


def income_fields(draft: ApplicationDraft) -> Tuple[str, str]:
    """(range field, documents field) of whoever pays the rent."""
    if is_guardian_paid(draft):
        return "guardian_income_range", "guardian_income_documents"
    return "income_range", "income_documents"


def kyc_fields(draft: ApplicationDraft) -> Tuple[str, ...]:
    if is_guardian_paid(draft):
        return ("id_document", "video_selfie", "guardian_id_document")
    return ("id_document", "video_selfie")


def _student_step(sub_step: int, draft: ApplicationDraft) -> Tuple[SubStepKind, str, Tuple[str, ...]]:
    party = "guardian" if is_guardian_paid(draft) else "student"
    if sub_step == 1:
        return SubStepKind.UNIVERSITY_INFO, "student", ("university", "university_email")
    if sub_step == 2:
        return SubStepKind.PAYMENT_RESPONSIBLE, "student", ("payment_responsible",)
    if sub_step == 3:
        if draft.get("payment_responsible") == "guardian":
            return SubStepKind.GUARDIAN_INFO, "guardian", (
                "guardian_name", "guardian_phone", "guardian_email", "guardian_relationship",
            )
        return SubStepKind.INCOME_SOURCE, "student", ("income_source",)
    if sub_step == 4:
        return SubStepKind.INCOME, party, income_fields(draft)
    return SubStepKind.KYC, party, kyc_fields(draft)


def _professional_step(sub_step: int, draft: ApplicationDraft) -> Tuple[SubStepKind, str, Tuple[str, ...]]:
    if sub_step == 1:
        return SubStepKind.WORK_INFO, "applicant", ("company", "start_date", "role", "work_email")
    if sub_step == 2:
        return SubStepKind.INCOME, "applicant", income_fields(draft)
    return SubStepKind.IDENTITY_VERIFICATION, "applicant", ()


def _entrepreneur_step(sub_step: int, draft: ApplicationDraft) -> Tuple[SubStepKind, str, Tuple[str, ...]]:
    if sub_step == 1:
        return SubStepKind.BUSINESS_INFO, "applicant", ("business_name", "business_description", "business_website")
    if sub_step == 2:
        return SubStepKind.INCOME, "applicant", income_fields(draft)
    return SubStepKind.KYC, "applicant", kyc_fields(draft)


SUB_FLOWS = {
    "student": (5, _student_step),
    "professional": (3, _professional_step),
    "entrepreneur": (3, _entrepreneur_step),
}


def describe_sub_step(sub_step: int, draft: ApplicationDraft) -> SubStepDescriptor:
    flow = draft.get("occupation_type")
    if flow not in SUB_FLOWS:
        raise StepValidationError(["occupation_type"], "Occupation type must be chosen before its sub-flow")
    total, describe = SUB_FLOWS[flow]
    ordinal = min(max(1, sub_step), total)
    kind, party, fields = describe(ordinal, draft)
    return SubStepDescriptor(flow=flow, kind=kind, ordinal=ordinal, total=total, party=party, fields=fields)


def step_errors(descriptor: SubStepDescriptor, draft: ApplicationDraft) -> Dict[str, str]:
    """field → message for everything blocking the Continue action."""
    errors: Dict[str, str] = {}
    kind = descriptor.kind

    if kind == SubStepKind.IDENTITY_VERIFICATION:
        return errors

    if kind == SubStepKind.INCOME:
        range_field, docs_field = descriptor.fields
        if draft.get(range_field) not in INCOME_RANGES:
            errors[range_field] = "Please choose an income range"
        documents = draft.get(docs_field) or []
        if not documents:
            errors[docs_field] = "Please upload at least one proof of income"
        elif len(documents) > MAX_INCOME_DOCUMENTS:
            errors[docs_field] = f"Upload at most {MAX_INCOME_DOCUMENTS} documents"
        else:
            for document in documents:
                problem = validate_file(docs_field, document)
                if problem:
                    errors[docs_field] = problem
                    break
        return errors

    if kind == SubStepKind.KYC:
        for name in descriptor.fields:
            if is_blank(draft.get(name)) and is_blank(draft.get(f"{name}_url")):
                errors[name] = "Required"
            else:
                problem = validate_file(name, draft.get(name))
                if problem:
                    errors[name] = problem
        return errors

    optional = {"business_website"}
    for name in descriptor.fields:
        if name not in optional and is_blank(draft.get(name)):
            errors[name] = "Required"

    if kind == SubStepKind.PAYMENT_RESPONSIBLE and "payment_responsible" not in errors:
        if draft.get("payment_responsible") not in PAYMENT_RESPONSIBLES:
            errors["payment_responsible"] = "Please choose who pays the rent"
    elif kind == SubStepKind.GUARDIAN_INFO:
        if "guardian_relationship" not in errors and draft.get("guardian_relationship") not in GUARDIAN_RELATIONSHIPS:
            errors["guardian_relationship"] = "Please choose a relationship"
        if "guardian_phone" not in errors:
            problem = validate_phone(draft.get("guardian_phone"))
            if problem:
                errors["guardian_phone"] = problem
        if "guardian_email" not in errors:
            problem = validate_email(draft.get("guardian_email"))
            if problem:
                errors["guardian_email"] = problem
    elif kind == SubStepKind.WORK_INFO:
        if "start_date" not in errors:
            problem = validate_work_start_date(draft.get("start_date"))
            if problem:
                errors["start_date"] = problem
        if "work_email" not in errors:
            problem = validate_email(draft.get("work_email"))
            if problem:
                errors["work_email"] = problem
    elif kind == SubStepKind.UNIVERSITY_INFO and "university_email" not in errors:
        problem = validate_email(draft.get("university_email"))
        if problem:
            errors["university_email"] = problem
    return errors


def missing_fields(descriptor: SubStepDescriptor, draft: ApplicationDraft) -> List[str]:
    return list(step_errors(descriptor, draft))


def advance_sub_step(descriptor: SubStepDescriptor, draft: ApplicationDraft) -> int:
    """Next sub-step ordinal. Raises StepValidationError while the gate is closed."""
    errors = step_errors(descriptor, draft)
    if errors:
        raise StepValidationError(list(errors), "; ".join(f"{k}: {v}" for k, v in errors.items()))
    return min(descriptor.ordinal + 1, descriptor.total)


def retreat_sub_step(sub_step: int) -> Optional[int]:
    """Previous sub-step, or None when backing out of the sub-flow to the parent."""
    if sub_step <= 1:
        return None
    return sub_step - 1
