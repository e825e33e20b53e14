"""Local staging of picked files, one directory per wizard thread.

Handles are issued here and checked here. A handle that comes back in resume
data is only trusted when its path resolves inside the thread's staging
directory; size is re-read from disk, never taken from the client.
"""

import logging
import mimetypes
import shutil
import uuid
from pathlib import Path
from typing import Any, Dict, Optional

from graph.errors import StepValidationError
from graph.state import FileHandle
from config import UPLOAD_DIR

SINGLE_FILE_FIELDS = ("id_document", "video_selfie", "guardian_id_document")
LIST_FILE_FIELDS = ("income_documents", "guardian_income_documents")


def staging_dir(thread_id: str) -> Path:
    if not thread_id or Path(thread_id).name != thread_id or thread_id in (".", ".."):
        raise ValueError(f"Invalid thread id: {thread_id!r}")
    return Path(UPLOAD_DIR) / thread_id


def stage_file(thread_id: str, file_name: Optional[str], content: bytes, content_type: Optional[str] = None) -> FileHandle:
    """Write one picked file and return the handle the client sends back."""
    target_dir = staging_dir(thread_id)
    target_dir.mkdir(parents=True, exist_ok=True)
    name = Path(file_name or "upload").name
    target = target_dir / f"{uuid.uuid4().hex[:8]}_{name}"
    target.write_bytes(content)
    logging.info(f"Staged {name} ({len(content)} bytes) for thread {thread_id}")
    return FileHandle(
        name=name,
        path=str(target),
        content_type=content_type or mimetypes.guess_type(name)[0] or "application/octet-stream",
        size=len(content),
    )


def trusted_handle(thread_id: str, field: str, handle: Any) -> FileHandle:
    """Re-derive a handle from disk. Raises StepValidationError for anything not staged here."""
    if not isinstance(handle, dict) or not handle.get("path"):
        raise StepValidationError([field], f"{field}: not a staged file")
    root = staging_dir(thread_id).resolve()
    path = Path(str(handle["path"])).resolve()
    if root not in path.parents or not path.is_file():
        logging.warning(f"Rejected {field} handle outside staging for thread {thread_id}: {handle.get('path')}")
        raise StepValidationError([field], f"{field}: file was not uploaded through this application")
    # Staged files are written as "<8 hex>_<original name>"
    name = path.name.split("_", 1)[-1]
    return FileHandle(
        name=name,
        path=str(path),
        content_type=str(handle.get("content_type") or mimetypes.guess_type(name)[0] or ""),
        size=path.stat().st_size,
    )


def trust_file_fields(thread_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
    """Replace every file handle in a draft patch with its server-side version."""
    trusted = dict(patch)
    for field in SINGLE_FILE_FIELDS:
        if patch.get(field):
            trusted[field] = trusted_handle(thread_id, field, patch[field])
    for field in LIST_FILE_FIELDS:
        if field in patch:
            trusted[field] = [trusted_handle(thread_id, field, h) for h in patch[field] or []]
    return trusted


def discard_staged(thread_id: str) -> None:
    """Drop every file staged for the thread (wizard closed or application submitted)."""
    shutil.rmtree(staging_dir(thread_id), ignore_errors=True)
