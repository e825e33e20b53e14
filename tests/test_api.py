"""REST surface tests with FastAPI's TestClient."""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

import main
from workers import staging
from services.api import ApiError
from signing.models import Contract

CONTRACT = {
    "id": "c-1",
    "tenant": {"id": "t-1", "name": "Tina", "email": "tina@mail.com", "role": "tenant"},
    "hoster": {"id": "h-1", "name": "Hugo", "role": "hoster"},
    "guarantors": [
        {"id": "g-1", "name": "Gus", "email": "gus@mail.com", "role": "guarantor"},
        {"id": "g-2", "name": "Gil", "email": "gil@mail.com", "role": "guarantor"},
    ],
    "signatures": {"tenantSigned": True},
}


@pytest.fixture
def contract_service(monkeypatch):
    service = MagicMock()
    service.get_contract = AsyncMock(return_value=Contract.model_validate(CONTRACT))
    service.sign_contract = AsyncMock()

    @asynccontextmanager
    async def factory():
        yield service

    monkeypatch.setattr(main, "contract_service_factory", factory)
    return service


@pytest.fixture
def api():
    return TestClient(main.app)


class TestJourneyEndpoints:

    def test_start_returns_first_step(self, api):
        response = api.post("/journey/start", json={"user_id": "u-1", "property_id": "p-1", "phone": "N/A"})
        assert response.status_code == 200
        body = response.json()
        assert body["interrupt"]["kind"] == "contract_duration"
        assert body["interrupt"]["total_steps"] == 5

    def test_resume_unknown_thread(self, api):
        response = api.post("/journey/resume", json={"thread_id": "missing", "data": {}})
        assert response.status_code == 404

    def test_stage_file(self, api, tmp_path, monkeypatch):
        monkeypatch.setattr(staging, "UPLOAD_DIR", str(tmp_path))
        thread_id = api.post("/journey/start", json={"user_id": "u-1", "property_id": "p-1"}).json()["thread_id"]

        response = api.post(
            f"/journey/{thread_id}/files",
            files={"file": ("pay.pdf", b"%PDF-1.4", "application/pdf")},
        )
        handle = response.json()
        assert handle["name"] == "pay.pdf"
        assert handle["size"] == 8
        assert handle["content_type"] == "application/pdf"
        assert handle["path"].startswith(str(tmp_path))


class TestContractEndpoints:

    def test_progress(self, api, contract_service):
        body = api.get("/contracts/c-1/progress", params={"user_id": "x", "email": "GUS@mail.com"}).json()
        assert (body["completed"], body["total"], body["percentage"]) == (1, 4, 25)
        assert body["signable_slots"] == ["guarantor-g-1"]

    def test_signing_someone_elses_slot_is_forbidden(self, api, contract_service):
        response = api.post(
            "/contracts/c-1/signatures",
            json={"user_id": "x", "email": "gus@mail.com", "signatures": {"hoster": "img"}},
        )
        assert response.status_code == 403
        contract_service.sign_contract.assert_not_called()

    def test_backend_error_is_bad_gateway(self, api, contract_service):
        contract_service.get_contract.side_effect = ApiError("Failed to fetch contract", 500)
        response = api.get("/contracts/c-1/progress")
        assert response.status_code == 502
        assert response.json()["detail"] == "Failed to fetch contract"
