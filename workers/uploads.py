"""Upload coordinator — one upload per pending file, joined all-or-nothing.

Every non-empty file field (and every element of both income-document lists)
becomes one upload coroutine. They all run concurrently and are joined with
asyncio.gather. If any single upload fails, the whole batch fails and no
partial URL map is handed back: the caller re-runs the full batch, including
files that had already uploaded.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from graph.errors import DocumentUploadError
from graph.state import ApplicationDraft, FileHandle

logger = logging.getLogger(__name__)

# field → upload kind
SINGLE_FILE_FIELDS: Dict[str, str] = {
    "id_document": "id",
    "video_selfie": "video",
    "guardian_id_document": "guardian-id",
}
LIST_FILE_FIELDS: Dict[str, str] = {
    "income_documents": "income",
    "guardian_income_documents": "income",
}

Uploader = Callable[[FileHandle, str], Awaitable[str]]


@dataclass(frozen=True)
class UploadJob:
    field: str
    index: Optional[int]       # position inside a list field, None for single files
    file: Dict[str, Any]
    kind: str


def pending_uploads(draft: ApplicationDraft) -> List[UploadJob]:
    jobs: List[UploadJob] = []
    for field, kind in SINGLE_FILE_FIELDS.items():
        handle = draft.get(field)
        if handle:
            jobs.append(UploadJob(field=field, index=None, file=handle, kind=kind))
    for field, kind in LIST_FILE_FIELDS.items():
        for i, handle in enumerate(draft.get(field) or []):
            if handle:
                jobs.append(UploadJob(field=field, index=i, file=handle, kind=kind))
    return jobs


async def _upload_one(job: UploadJob, uploader: Uploader) -> str:
    try:
        return await uploader(job.file, job.kind)
    except Exception as e:
        name = job.file.get("name")
        logger.error(f"Failed to upload {job.field} ({name}): {e}")
        raise DocumentUploadError(job.field, name, cause=e) from e


async def upload_pending_documents(draft: ApplicationDraft, uploader: Uploader) -> Dict[str, Any]:
    """
    Returns {single_field: url, list_field: [urls in draft order]}.
    Raises DocumentUploadError for the first failure seen; nothing else is returned.
    """
    jobs = pending_uploads(draft)
    if not jobs:
        return {}

    logger.info(f"Uploading {len(jobs)} document(s)")
    urls = await asyncio.gather(*(_upload_one(job, uploader) for job in jobs))

    uploaded: Dict[str, Any] = {}
    for job, url in zip(jobs, urls):
        if job.index is None:
            uploaded[job.field] = url
        else:
            uploaded.setdefault(job.field, []).append(url)
    return uploaded
