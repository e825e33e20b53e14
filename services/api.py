"""Shared async HTTP plumbing for the backend REST API."""

import logging
from typing import Any, Optional

import httpx

from config import API_BASE_URL, API_TOKEN, HTTP_TIMEOUT_S
from graph.errors import RentalFlowError

logger = logging.getLogger(__name__)


class ApiError(RentalFlowError):
    """Non-2xx response (or transport failure) from the backend."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class ApiClient:
    """
    Thin wrapper over httpx.AsyncClient: base URL, bearer token, and the
    backend's error convention (`{"message": ...}` on failure).
    """

    def __init__(
        self,
        base_url: str = API_BASE_URL,
        token: Optional[str] = API_TOKEN,
        timeout: float = HTTP_TIMEOUT_S,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def request(self, method: str, path: str, fallback_error: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Network error calling {method} {path}: {e}")
            raise ApiError(f"Network error: {e}") from e

        data = _json_or_none(response)
        if response.is_error:
            message = fallback_error
            if isinstance(data, dict) and data.get("message"):
                message = str(data["message"])
            logger.error(f"{method} {path} failed ({response.status_code}): {message}")
            raise ApiError(message, status_code=response.status_code)
        return data

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None
