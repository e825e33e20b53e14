"""
End-to-end wizard tests through the compiled graph.

Tests verify:
1. Each step is one interrupt, answered with Command(resume=...)
2. Invalid answers re-prompt the same step with a notice
3. Back out of the sub-flow returns to the top-level steps
4. Verification completion submits exactly once
5. Close discards the draft
"""

from contextlib import asynccontextmanager
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from langgraph.checkpoint.memory import MemorySaver
from langgraph.types import Command

from graph import verification_nodes
from graph.builder import build_graph
from graph.router import router
from graph.state import initial_state
from services.api import ApiError

CONFIG = {"configurable": {"thread_id": "test-thread"}}


@pytest.fixture
def service():
    svc = MagicMock()
    svc.upload_document = AsyncMock(side_effect=lambda file, kind: f"https://files/{file['name']}")
    svc.submit_application = AsyncMock(return_value={"id": "app-1"})
    return svc


@pytest.fixture
def graph(service, staged, monkeypatch):
    monkeypatch.setattr(verification_nodes, "METAMAP_CLIENT_ID", "client")
    monkeypatch.setattr(verification_nodes, "METAMAP_FLOW_ID", "flow")

    @asynccontextmanager
    async def factory():
        yield service

    return build_graph(checkpointer=MemorySaver(), application_service_factory=factory)


def pending(graph):
    snapshot = graph.get_state(CONFIG)
    for task in snapshot.tasks:
        if task.interrupts:
            return task.interrupts[0].value
    return None


async def answer(graph, data=None, action="next"):
    await graph.ainvoke(Command(resume={"action": action, "data": data or {}}), CONFIG)
    return pending(graph)


async def start(graph, phone="5512345678"):
    await graph.ainvoke(initial_state("u-1", "p-1", ["6", "12"], phone), CONFIG)
    return pending(graph)


async def reach_occupation_flow(graph, future_date, occupation="professional"):
    await start(graph)
    await answer(graph, {"contract_duration": "6"})
    await answer(graph, {"occupancy_date": future_date})
    return await answer(graph, {"occupation_type": occupation})


class TestRouter:

    def test_guard_terminates(self):
        state = initial_state("u", "p")
        state["max_steps_guard"] = 10_000
        assert router(state) == "finish"

    def test_submit_takes_priority(self):
        state = initial_state("u", "p")
        state["submit_requested"] = True
        assert router(state) == "submit_node"

    def test_verification_inside_flow(self):
        state = initial_state("u", "p", profile_phone="5512345678")
        state["current_step"] = 4
        state["draft"]["occupation_type"] = "professional"
        assert router(state) == "sub_flow_step"
        state["verification"] = {"current": "applicant"}
        assert router(state) == "verification_node"


class TestWizardGraph:

    @pytest.mark.asyncio
    async def test_first_interrupt_is_contract_duration(self, graph):
        payload = await start(graph)
        assert payload["type"] == "wizard_step"
        assert payload["kind"] == "contract_duration"
        assert payload["options"]["contract_duration"] == [6, 12]
        assert payload["total_steps"] == 4

    @pytest.mark.asyncio
    async def test_missing_phone_adds_contact_step(self, graph, future_date):
        await start(graph, phone="N/A")
        await answer(graph, {"contract_duration": 6})
        await answer(graph, {"occupancy_date": future_date})
        payload = await answer(graph, {"occupation_type": "student"})
        assert payload["kind"] == "contact_info"
        assert payload["total_steps"] == 5

        payload = await answer(graph, {"phone": "5512345678"})
        assert payload["type"] == "sub_flow_step"
        assert payload["kind"] == "university_info"
        assert payload["total_steps"] == 4

    @pytest.mark.asyncio
    async def test_invalid_answer_reprompts_with_notice(self, graph):
        await start(graph)
        payload = await answer(graph, {"contract_duration": 3})
        assert payload["kind"] == "contract_duration"
        assert payload["notice"]["level"] == "error"
        assert "contract_duration" in payload["notice"]["fields"]

    @pytest.mark.asyncio
    async def test_back_from_sub_flow_returns_to_occupation(self, graph, future_date):
        payload = await reach_occupation_flow(graph, future_date)
        assert payload["kind"] == "work_info"

        payload = await answer(graph, action="back")
        assert payload["type"] == "wizard_step"
        assert payload["kind"] == "occupation_type"
        assert payload["values"]["occupation_type"] == "professional"

    @pytest.mark.asyncio
    async def test_professional_flow_submits_once(self, graph, service, future_date, past_date, staged):
        await reach_occupation_flow(graph, future_date)
        await answer(graph, {"company": "Acme", "start_date": past_date, "role": "Dev", "work_email": "a@acme.com"})
        payload = await answer(graph, {
            "income_range": "$30,000 - $50,000",
            "income_documents": [staged("pay.pdf")],
        })
        assert payload["kind"] == "identity_verification"

        payload = await answer(graph)
        assert payload["type"] == "identity_verification"
        assert payload["pass"] == "applicant"
        assert payload["widget"]["client_id"] == "client"

        await graph.ainvoke(Command(resume={"event": "finished", "detail": {"verificationId": "v-1"}}), CONFIG)

        state = graph.get_state(CONFIG).values
        assert state["finished"]
        assert state["application"] == {"id": "app-1"}
        service.submit_application.assert_awaited_once()
        body = service.submit_application.call_args.args[0]
        assert body["contractDuration"] == 6
        assert body["metamapVerificationId"] == "v-1"
        assert body["incomeDocuments"] == ["https://files/pay.pdf"]

    @pytest.mark.asyncio
    async def test_failed_submission_offers_retry(self, graph, service, future_date, past_date, staged):
        service.submit_application.side_effect = [ApiError("Property not available", 409), {"id": "app-2"}]

        await reach_occupation_flow(graph, future_date)
        await answer(graph, {"company": "Acme", "start_date": past_date, "role": "Dev", "work_email": "a@acme.com"})
        await answer(graph, {"income_range": "$30,000 - $50,000", "income_documents": [staged("pay.pdf")]})
        await answer(graph)
        await graph.ainvoke(Command(resume={"event": "finished", "detail": {"verificationId": "v-1"}}), CONFIG)

        payload = pending(graph)
        assert payload["type"] == "submit_retry"
        assert payload["notice"]["message"] == "Property not available"

        await graph.ainvoke(Command(resume={"action": "retry"}), CONFIG)
        state = graph.get_state(CONFIG).values
        assert state["application"] == {"id": "app-2"}
        assert service.submit_application.await_count == 2

    @pytest.mark.asyncio
    async def test_cancelled_verification_stays_on_widget(self, graph, service, future_date, past_date, staged):
        await reach_occupation_flow(graph, future_date)
        await answer(graph, {"company": "Acme", "start_date": past_date, "role": "Dev", "work_email": "a@acme.com"})
        await answer(graph, {"income_range": "$30,000 - $50,000", "income_documents": [staged("pay.pdf")]})
        first = await answer(graph)

        await graph.ainvoke(Command(resume={"event": "cancelled"}), CONFIG)
        payload = pending(graph)
        assert payload["type"] == "identity_verification"
        assert payload["notice"]["title"] == "Verification Cancelled"
        assert payload["widget"]["mount_key"] == first["widget"]["mount_key"]
        service.submit_application.assert_not_called()

    @pytest.mark.asyncio
    async def test_close_discards_draft(self, graph, future_date):
        await start(graph)
        await answer(graph, {"contract_duration": 6})
        payload = await answer(graph, action="close")
        assert payload is None
        state = graph.get_state(CONFIG).values
        assert state["finished"]
        assert state["draft"]["contract_duration"] is None

    @pytest.mark.asyncio
    async def test_guardian_pass_then_applicant_submits_once(self, graph, service, future_date, staged):
        await reach_occupation_flow(graph, future_date, occupation="student")
        await answer(graph, {"university": "UNAM", "university_email": "ana@unam.mx"})
        await answer(graph, {"payment_responsible": "guardian"})
        await answer(graph, {
            "guardian_name": "Rosa",
            "guardian_phone": "5587654321",
            "guardian_email": "rosa@mail.com",
            "guardian_relationship": "madre",
        })
        await answer(graph, {
            "guardian_income_range": "$30,000 - $50,000",
            "guardian_income_documents": [staged("rosa-pay.pdf")],
        })
        first = await answer(graph, {
            "id_document": staged("ine.png", "image/png"),
            "video_selfie": staged("selfie.mp4", "video/mp4"),
            "guardian_id_document": staged("rosa-ine.pdf"),
        })
        assert first["type"] == "identity_verification"
        assert first["pass"] == "guardian"
        assert first["needs_guardian"]

        await graph.ainvoke(Command(resume={"event": "cancelled"}), CONFIG)
        payload = pending(graph)
        assert payload["pass"] == "guardian"
        assert payload["notice"]["title"] == "Verification Cancelled"
        assert payload["widget"]["mount_key"] == first["widget"]["mount_key"]

        await graph.ainvoke(Command(resume={"event": "finished", "detail": {"verificationId": "g-1"}}), CONFIG)
        payload = pending(graph)
        assert payload["pass"] == "applicant"
        assert payload["widget"]["mount_key"] != first["widget"]["mount_key"]
        service.submit_application.assert_not_called()

        await graph.ainvoke(Command(resume={"event": "finished", "detail": {"verificationId": "s-1"}}), CONFIG)
        assert graph.get_state(CONFIG).values["finished"]
        service.submit_application.assert_awaited_once()
        body = service.submit_application.call_args.args[0]
        assert body["metamapVerificationId"] == "s-1"
        assert body["metamapGuardianVerificationId"] == "g-1"
        assert body["guardianIncomeDocuments"] == ["https://files/rosa-pay.pdf"]


class TestStagedFiles:

    @pytest.mark.asyncio
    async def test_handle_outside_staging_is_rejected(self, graph, service, future_date, past_date, make_file):
        await reach_occupation_flow(graph, future_date)
        await answer(graph, {"company": "Acme", "start_date": past_date, "role": "Dev", "work_email": "a@acme.com"})

        outside = make_file("secrets.pdf")
        outside["size"] = 1
        payload = await answer(graph, {"income_range": "$30,000 - $50,000", "income_documents": [outside]})

        assert payload["kind"] == "income"
        assert "income_documents" in payload["notice"]["fields"]
        assert payload["values"]["income_documents"] is None
        state = graph.get_state(CONFIG).values
        assert "income_range" not in state["draft"]
        service.upload_document.assert_not_called()

    @pytest.mark.asyncio
    async def test_size_comes_from_disk(self, graph, future_date, past_date, staged):
        await reach_occupation_flow(graph, future_date)
        await answer(graph, {"company": "Acme", "start_date": past_date, "role": "Dev", "work_email": "a@acme.com"})

        handle = staged("pay.pdf", content=b"x" * 64)
        handle["size"] = 1
        await answer(graph, {"income_range": "$30,000 - $50,000", "income_documents": [handle]})

        document = graph.get_state(CONFIG).values["draft"]["income_documents"][0]
        assert document["size"] == 64

    @pytest.mark.asyncio
    async def test_close_removes_staged_files(self, graph, future_date, staged):
        await reach_occupation_flow(graph, future_date)
        handle = staged("pay.pdf")
        folder = Path(handle["path"]).parent
        assert folder.is_dir()

        await answer(graph, action="close")
        assert not folder.exists()

    @pytest.mark.asyncio
    async def test_submission_removes_staged_files(self, graph, service, future_date, past_date, staged):
        await reach_occupation_flow(graph, future_date)
        await answer(graph, {"company": "Acme", "start_date": past_date, "role": "Dev", "work_email": "a@acme.com"})
        handle = staged("pay.pdf")
        await answer(graph, {"income_range": "$30,000 - $50,000", "income_documents": [handle]})
        await answer(graph)
        await graph.ainvoke(Command(resume={"event": "finished", "detail": {"verificationId": "v-1"}}), CONFIG)

        service.submit_application.assert_awaited_once()
        assert not Path(handle["path"]).parent.exists()

    @pytest.mark.asyncio
    async def test_failed_submission_keeps_staged_files(self, graph, service, future_date, past_date, staged):
        service.submit_application.side_effect = ApiError("Property not available", 409)
        await reach_occupation_flow(graph, future_date)
        await answer(graph, {"company": "Acme", "start_date": past_date, "role": "Dev", "work_email": "a@acme.com"})
        handle = staged("pay.pdf")
        await answer(graph, {"income_range": "$30,000 - $50,000", "income_documents": [handle]})
        await answer(graph)
        await graph.ainvoke(Command(resume={"event": "finished", "detail": {"verificationId": "v-1"}}), CONFIG)

        assert pending(graph)["type"] == "submit_retry"
        assert Path(handle["path"]).exists()
