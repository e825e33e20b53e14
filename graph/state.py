"""RentalState schema — single source of truth for the wizard graph state."""

from typing import TypedDict, Any, List, Dict, Optional, Literal

from config import DEFAULT_CONTRACT_OPTIONS


OccupationType = Literal["student", "professional", "entrepreneur"]
PaymentResponsible = Literal["student", "guardian"]

OCCUPATION_TYPES = ("student", "professional", "entrepreneur")
PAYMENT_RESPONSIBLES = ("student", "guardian")
PHONE_PLACEHOLDER = "N/A"


class FileHandle(TypedDict):
    """A file picked in the wizard, staged locally until the upload batch runs."""

    name: str
    path: str
    content_type: str
    size: int


class ApplicationDraft(TypedDict, total=False):
    # Basic info
    contract_duration: Optional[int]
    occupancy_date: Optional[str]          # ISO date
    occupation_type: Optional[OccupationType]
    phone: str

    # Student
    university: str
    university_email: str
    payment_responsible: PaymentResponsible
    income_source: str
    income_range: str
    income_documents: List[FileHandle]

    # Guardian (students paid by a guardian)
    guardian_name: str
    guardian_phone: str
    guardian_email: str
    guardian_relationship: str
    guardian_income_range: str
    guardian_income_documents: List[FileHandle]

    # Professional
    company: str
    start_date: str                        # ISO date
    role: str
    work_email: str

    # Entrepreneur
    business_name: str
    business_description: str
    business_website: str

    # KYC documents and their resolved URLs
    id_document: FileHandle
    video_selfie: FileHandle
    guardian_id_document: FileHandle
    id_document_url: str
    video_selfie_url: str
    guardian_id_document_url: str

    # Combined identity verification result
    verification: Dict[str, Any]


# file field → URL counterpart
FILE_URL_FIELDS: Dict[str, str] = {
    "id_document": "id_document_url",
    "video_selfie": "video_selfie_url",
    "guardian_id_document": "guardian_id_document_url",
}


class RentalState(TypedDict):
    """Flat state dict for one open application wizard."""

    # Identity
    user_id: str
    property_id: str
    profile_phone: str
    contract_options: List[int]

    # Wizard tracking
    current_step: int           # top-level ordinal, see graph.steps
    sub_step: int               # ordinal inside the occupation sub-flow
    max_steps_guard: int        # Incremented every node; terminate if exceeded
    finished: bool

    # Collected answers (mutated only through merge_draft)
    draft: ApplicationDraft

    # Identity verification sequencer snapshot (None until verification starts)
    verification: Optional[Dict[str, Any]]

    # Submission lifecycle
    submit_requested: bool
    application: Optional[Dict[str, Any]]
    notice: Optional[Dict[str, str]]     # {"level": ..., "message": ...}


def clean_phone(phone: Optional[str]) -> str:
    """Profile phones use "N/A" as a placeholder; treat it as absent."""
    if not phone or phone.strip() == PHONE_PLACEHOLDER:
        return ""
    return phone


def empty_draft(phone: Optional[str] = "") -> ApplicationDraft:
    return ApplicationDraft(
        contract_duration=None,
        occupancy_date=None,
        occupation_type=None,
        phone=clean_phone(phone),
    )


def merge_draft(draft: ApplicationDraft, patch: Dict[str, Any]) -> ApplicationDraft:
    """
    The only way the draft changes. Returns a new dict; the input is untouched.
    Replacing a file without naming its URL drops the stale URL, so a URL is
    only ever present for the file that was actually uploaded.
    """
    merged: Dict[str, Any] = {**draft, **patch}
    for file_field, url_field in FILE_URL_FIELDS.items():
        if file_field in patch and url_field not in patch:
            if patch[file_field] != draft.get(file_field):
                merged.pop(url_field, None)
    return ApplicationDraft(**merged)


def parse_contract_options(standard_options: Optional[List[Any]]) -> List[int]:
    """Property-configured durations (strings or ints), positive and sorted; defaults otherwise."""
    options = []
    for option in standard_options or []:
        try:
            months = int(str(option).strip())
        except ValueError:
            continue
        if months > 0:
            options.append(months)
    return sorted(options) if options else list(DEFAULT_CONTRACT_OPTIONS)


def initial_state(
    user_id: str,
    property_id: str,
    contract_options: Optional[List[Any]] = None,
    profile_phone: Optional[str] = None,
) -> RentalState:
    """Factory — returns a clean starting state."""
    phone = clean_phone(profile_phone)
    return RentalState(
        user_id=user_id,
        property_id=property_id,
        profile_phone=phone,
        contract_options=parse_contract_options(contract_options),
        current_step=1,
        sub_step=1,
        max_steps_guard=0,
        finished=False,
        draft=empty_draft(phone),
        verification=None,
        submit_requested=False,
        application=None,
        notice=None,
    )
