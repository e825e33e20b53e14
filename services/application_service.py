"""Client for the applications endpoints (document upload, submission)."""

import mimetypes
from pathlib import Path
from typing import Any, Dict

from graph.state import FileHandle
from services.api import ApiClient, ApiError

UPLOAD_KINDS = ("id", "video", "guardian-id", "income")


class ApplicationService(ApiClient):

    async def upload_document(self, file: FileHandle, kind: str) -> str:
        """Upload one staged file; returns the stored document URL."""
        if kind not in UPLOAD_KINDS:
            raise ValueError(f"Unknown document kind: {kind}")
        path = Path(file["path"])
        content_type = file.get("content_type") or mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        content = path.read_bytes()
        data = await self.request(
            "POST",
            "/applications/upload-document",
            "Failed to upload document",
            files={"document": (file.get("name") or path.name, content, content_type)},
            data={"type": kind},
        )
        url = ((data or {}).get("data") or {}).get("url")
        if not url:
            raise ApiError("Upload response did not include a document URL")
        return url

    async def submit_application(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self.request("POST", "/applications", "Failed to submit application", json=payload)
