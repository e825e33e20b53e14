"""Submission assembler — turns a finished draft into the backend payload and submits it once."""

import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from graph.errors import DocumentUploadError, MissingApplicationDataError, MissingPhoneError
from graph.state import ApplicationDraft, clean_phone
from graph.validators import parse_iso_date
from workers.uploads import upload_pending_documents

logger = logging.getLogger(__name__)

GENERIC_SUBMIT_ERROR = "Failed to submit application. Please try again."
UPLOAD_SUBMIT_ERROR = "Failed to upload documents. Please check your files and try again."
NETWORK_SUBMIT_ERROR = "Network error. Please check your connection and try again."


class ApplicationPayload(BaseModel):
    """Backend submission shape; serialised with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    property_id: str
    contract_duration: int
    occupancy_date: str
    occupation_type: str
    phone: str

    # Student
    university: Optional[str] = None
    university_email: Optional[str] = None
    payment_responsible: Optional[str] = None
    income_source: Optional[str] = None
    income_range: Optional[str] = None
    income_documents: Optional[List[str]] = None

    # Guardian
    guardian_name: Optional[str] = None
    guardian_phone: Optional[str] = None
    guardian_email: Optional[str] = None
    guardian_relationship: Optional[str] = None
    guardian_income_range: Optional[str] = None
    guardian_income_documents: Optional[List[str]] = None
    guardian_id_document: Optional[str] = None

    # Professional
    company: Optional[str] = None
    work_start_date: Optional[str] = None
    role: Optional[str] = None
    work_email: Optional[str] = None

    # Entrepreneur
    business_name: Optional[str] = None
    business_description: Optional[str] = None
    business_website: Optional[str] = None

    # KYC documents (URLs)
    id_document: Optional[str] = None
    video_selfie: Optional[str] = None

    # Identity verification
    metamap_verification_id: Optional[str] = None
    metamap_identity_id: Optional[str] = None
    metamap_verification_status: Optional[str] = None
    metamap_verification_data: Optional[Dict[str, Any]] = None
    metamap_guardian_verification_id: Optional[str] = None
    metamap_guardian_identity_id: Optional[str] = None
    metamap_guardian_verification_status: Optional[str] = None
    metamap_guardian_verification_data: Optional[Dict[str, Any]] = None

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def require_submittable(draft: ApplicationDraft, profile_phone: Optional[str] = None) -> str:
    """Checks that run before any upload. Returns the phone to submit."""
    if not draft.get("contract_duration") or not draft.get("occupancy_date") or not draft.get("occupation_type"):
        raise MissingApplicationDataError()
    phone = clean_phone(draft.get("phone")) or clean_phone(profile_phone)
    if not phone.strip():
        raise MissingPhoneError()
    return phone.strip()


def _verification_fields(draft: ApplicationDraft) -> Dict[str, Any]:
    result = draft.get("verification")
    if not result:
        return {}
    fields = {
        "metamap_verification_id": result.get("verification_id"),
        "metamap_identity_id": result.get("identity_id"),
        "metamap_verification_status": result.get("status"),
        "metamap_verification_data": result.get("metadata"),
    }
    guardian = (result.get("metadata") or {}).get("guardian_verification")
    if guardian:
        fields.update({
            "metamap_guardian_verification_id": guardian.get("verification_id"),
            "metamap_guardian_identity_id": guardian.get("identity_id"),
            "metamap_guardian_verification_status": guardian.get("status"),
            "metamap_guardian_verification_data": guardian.get("metadata"),
        })
    return fields


def _iso(value: Any) -> Optional[str]:
    parsed = parse_iso_date(value)
    return parsed.isoformat() if parsed else None


def assemble_submission(
    draft: ApplicationDraft,
    property_id: str,
    uploaded_files: Optional[Dict[str, Any]] = None,
    profile_phone: Optional[str] = None,
) -> ApplicationPayload:
    """Pure transform. A URL already on the draft wins over a fresh upload of the same field."""
    phone = require_submittable(draft, profile_phone)
    uploaded = uploaded_files or {}

    return ApplicationPayload(
        property_id=property_id,
        contract_duration=draft["contract_duration"],
        occupancy_date=_iso(draft["occupancy_date"]) or str(draft["occupancy_date"]),
        occupation_type=draft["occupation_type"],
        phone=phone,
        university=draft.get("university"),
        university_email=draft.get("university_email"),
        payment_responsible=draft.get("payment_responsible"),
        income_source=draft.get("income_source"),
        income_range=draft.get("income_range"),
        income_documents=uploaded.get("income_documents") or None,
        guardian_name=draft.get("guardian_name"),
        guardian_phone=draft.get("guardian_phone"),
        guardian_email=draft.get("guardian_email"),
        guardian_relationship=draft.get("guardian_relationship"),
        guardian_income_range=draft.get("guardian_income_range"),
        guardian_income_documents=uploaded.get("guardian_income_documents") or None,
        guardian_id_document=draft.get("guardian_id_document_url") or uploaded.get("guardian_id_document"),
        company=draft.get("company"),
        work_start_date=_iso(draft.get("start_date")),
        role=draft.get("role"),
        work_email=draft.get("work_email"),
        business_name=draft.get("business_name"),
        business_description=draft.get("business_description"),
        business_website=draft.get("business_website"),
        id_document=draft.get("id_document_url") or uploaded.get("id_document"),
        video_selfie=draft.get("video_selfie_url") or uploaded.get("video_selfie"),
        **_verification_fields(draft),
    )


async def submit_draft(
    draft: ApplicationDraft,
    property_id: str,
    service,
    profile_phone: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Validate → upload every pending file (all-or-nothing) → assemble → one
    submit_application call. Never retries on its own.
    """
    require_submittable(draft, profile_phone)
    uploaded = await upload_pending_documents(draft, service.upload_document)
    payload = assemble_submission(draft, property_id, uploaded, profile_phone)
    logger.info(f"Submitting {payload.occupation_type} application for property {property_id}")
    return await service.submit_application(payload.to_wire())


def friendly_submission_error(error: BaseException) -> str:
    """Light substring classification into a user-facing message."""
    message = str(error or "")
    lowered = message.lower()
    if isinstance(error, DocumentUploadError):
        if error.file_name:
            return f"Failed to upload documents ({error.file_name}). Please check your files and try again."
        return UPLOAD_SUBMIT_ERROR
    if "upload" in lowered:
        return UPLOAD_SUBMIT_ERROR
    if "network" in lowered or "fetch" in lowered:
        return NETWORK_SUBMIT_ERROR
    if message:
        return message
    return GENERIC_SUBMIT_ERROR
