"""Field validators for wizard answers. Pure functions, no I/O."""

import re
from datetime import date
from typing import Any, List, Optional

from config import (
    MAX_INCOME_DOCUMENTS,
    MAX_ID_DOCUMENT_BYTES,
    MAX_VIDEO_SELFIE_BYTES,
    MAX_INCOME_DOCUMENT_BYTES,
)

PHONE_RE = re.compile(r"^\+?[0-9\s\-()]{10,}$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

INCOME_RANGES = [
    "$10,000 - $20,000",
    "$20,000 - $30,000",
    "$30,000 - $50,000",
    "$50,000 - $80,000",
    "$80,000 - $100,000",
    "Más de $100,000",
]

GUARDIAN_RELATIONSHIPS = ["padre", "madre", "tio", "otro"]

DOCUMENT_EXTENSIONS = (".pdf", ".jpg", ".jpeg", ".png")

# file field → max size in bytes
FILE_SIZE_LIMITS = {
    "id_document": MAX_ID_DOCUMENT_BYTES,
    "guardian_id_document": MAX_ID_DOCUMENT_BYTES,
    "video_selfie": MAX_VIDEO_SELFIE_BYTES,
    "income_documents": MAX_INCOME_DOCUMENT_BYTES,
    "guardian_income_documents": MAX_INCOME_DOCUMENT_BYTES,
}


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


def validate_phone(phone: Optional[str]) -> Optional[str]:
    """Return an error message, or None when the phone is acceptable."""
    if is_blank(phone):
        return "Phone number is required"
    if not PHONE_RE.match(phone.strip()):
        return "Please enter a valid phone number"
    return None


def validate_email(email: Optional[str]) -> Optional[str]:
    if is_blank(email):
        return "Email is required"
    if not EMAIL_RE.match(email.strip()):
        return "Please enter a valid email address"
    return None


def parse_iso_date(value: Any) -> Optional[date]:
    if isinstance(value, date):
        return value
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def validate_occupancy_date(value: Any, today: Optional[date] = None) -> Optional[str]:
    parsed = parse_iso_date(value)
    if parsed is None:
        return "Please choose a move-in date"
    if parsed < (today or date.today()):
        return "The move-in date cannot be in the past"
    return None


def validate_work_start_date(value: Any, today: Optional[date] = None) -> Optional[str]:
    parsed = parse_iso_date(value)
    if parsed is None:
        return "Please choose your start date"
    if parsed > (today or date.today()):
        return "The start date cannot be in the future"
    return None


def validate_contract_duration(value: Any, options: List[int]) -> Optional[str]:
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        return "Please choose a contract duration"
    if options and value not in options:
        return f"Contract duration must be one of: {', '.join(str(o) for o in options)} months"
    return None


def validate_file(field: str, handle: Optional[dict]) -> Optional[str]:
    """Size and type checks for a staged file handle."""
    if not handle:
        return None
    limit = FILE_SIZE_LIMITS.get(field)
    if limit and int(handle.get("size") or 0) > limit:
        return f"{handle.get('name', 'File')} exceeds the {limit // (1024 * 1024)} MB limit"
    name = str(handle.get("name", "")).lower()
    if field == "video_selfie":
        if not str(handle.get("content_type", "")).startswith("video/"):
            return f"{handle.get('name', 'File')} is not a video"
    elif not name.endswith(DOCUMENT_EXTENSIONS):
        return f"{handle.get('name', 'File')} must be a PDF, JPG or PNG"
    return None


def cap_income_documents(documents: Optional[list]) -> list:
    """At most MAX_INCOME_DOCUMENTS are kept; extra files are dropped."""
    return list(documents or [])[:MAX_INCOME_DOCUMENTS]
