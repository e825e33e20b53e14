"""FastAPI entrypoint — exposes the LangGraph rental application wizard and contract signing via REST."""

import logging
import uuid
from typing import Any

from fastapi import FastAPI, File, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from langgraph.types import Command

from config import HOST, PORT, LOG_LEVEL
from graph.errors import SignatureNotAllowedError, SignatureSubmissionError, StepValidationError
from graph.state import initial_state
from workers import staging
from graph.builder import build_graph
from services.api import ApiError
from services.contract_service import ContractService
from signing.aggregator import Viewer, signable_slots, signature_progress, submit_signatures
from langsmith_tracing import flow_trace, continue_flow_trace, clear_flow_trace

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

# ── App + graph ─────────────────────────────────────────────────────────
app = FastAPI(title="Rental Application", version="1.0.0")
graph = build_graph()
contract_service_factory = ContractService


# ── Request / Response models ───────────────────────────────────────────
class StartRequest(BaseModel):
    user_id: str
    property_id: str
    contract_options: list[Any] | None = None  # property's standard options, strings or ints
    phone: str | None = None                   # profile phone, "N/A" means none


class ResumeRequest(BaseModel):
    thread_id: str
    data: dict | None = None  # user input passed via Command(resume=...)


class SignatureRequest(BaseModel):
    user_id: str
    email: str = ""
    signatures: dict[str, str] = Field(default_factory=dict)  # slot -> signature image (data URL)


# ── Error mapping ───────────────────────────────────────────────────────
@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    return JSONResponse(status_code=502, content={"detail": str(exc), "upstream_status": exc.status_code})


@app.exception_handler(SignatureNotAllowedError)
async def not_allowed_handler(request: Request, exc: SignatureNotAllowedError):
    return JSONResponse(status_code=403, content={"detail": str(exc)})


@app.exception_handler(StepValidationError)
async def validation_handler(request: Request, exc: StepValidationError):
    return JSONResponse(status_code=422, content={"detail": str(exc), "missing": exc.missing})


@app.exception_handler(SignatureSubmissionError)
async def signature_submission_handler(request: Request, exc: SignatureSubmissionError):
    contract = exc.contract.model_dump(mode="json", by_alias=True) if exc.contract else None
    return JSONResponse(
        status_code=502,
        content={"detail": str(exc), "signed_slots": exc.signed_slots, "contract": contract},
    )


# ── Wizard endpoints ────────────────────────────────────────────────────

@app.post("/journey/start")
async def start_journey(req: StartRequest):
    """Open a new application wizard thread and run until the first interrupt."""
    thread_id = str(uuid.uuid4())
    config = {"configurable": {"thread_id": thread_id}}
    state = initial_state(req.user_id, req.property_id, req.contract_options, req.phone)

    with flow_trace(thread_id, req.user_id, req.property_id):
        result = await graph.ainvoke(state, config)

    return {
        "thread_id": thread_id,
        "state": result,
        "interrupt": _get_interrupt(config),
    }


@app.post("/journey/resume")
async def resume_journey(req: ResumeRequest):
    """Resume the wizard after an interrupt with the user's answer or widget event."""
    config = {"configurable": {"thread_id": req.thread_id}}

    # Check there is a pending interrupt
    snapshot = graph.get_state(config)
    if not snapshot or not snapshot.tasks:
        raise HTTPException(404, "No pending interrupt for this thread.")

    with continue_flow_trace(req.thread_id):
        result = await graph.ainvoke(Command(resume=req.data), config)

    # Clear trace when the wizard is complete
    if result.get("finished"):
        clear_flow_trace(req.thread_id)

    return {
        "thread_id": req.thread_id,
        "state": result,
        "interrupt": _get_interrupt(config),
    }


@app.get("/journey/state/{thread_id}")
def get_journey_state(thread_id: str):
    """Retrieve current state for a thread."""
    config = {"configurable": {"thread_id": thread_id}}
    snapshot = graph.get_state(config)
    if not snapshot or not snapshot.values:
        raise HTTPException(404, "Thread not found.")
    return {
        "thread_id": thread_id,
        "state": snapshot.values,
        "interrupt": _get_interrupt(config),
    }


@app.post("/journey/{thread_id}/files")
async def stage_file(thread_id: str, file: UploadFile = File(...)):
    """
    Stage a picked file on disk and return its handle. The handle goes back in
    the resume data; the actual upload happens at submission time.
    """
    snapshot = graph.get_state({"configurable": {"thread_id": thread_id}})
    if not snapshot or not snapshot.values:
        raise HTTPException(404, "Thread not found.")

    content = await file.read()
    return staging.stage_file(thread_id, file.filename, content, file.content_type)


# ── Contract signing endpoints ──────────────────────────────────────────

@app.get("/contracts/{contract_id}/progress")
async def get_signature_progress(contract_id: str, user_id: str | None = None, email: str = ""):
    """Signature progress, plus the slots the given viewer may still sign."""
    async with contract_service_factory() as service:
        contract = await service.get_contract(contract_id)
    progress = signature_progress(contract)
    return {
        "contract_id": contract.id,
        "completed": progress.completed,
        "total": progress.total,
        "percentage": progress.percentage,
        "signable_slots": signable_slots(contract, Viewer(user_id, email)) if user_id else [],
    }


@app.post("/contracts/{contract_id}/signatures")
async def sign_contract(contract_id: str, req: SignatureRequest):
    """Submit the viewer's signatures one by one; returns the latest contract."""
    async with contract_service_factory() as service:
        contract = await service.get_contract(contract_id)
        latest = await submit_signatures(contract, req.signatures, service, Viewer(req.user_id, req.email))
    progress = signature_progress(latest)
    return {
        "contract": latest.model_dump(mode="json", by_alias=True),
        "completed": progress.completed,
        "total": progress.total,
        "percentage": progress.percentage,
    }


# ── Helpers ─────────────────────────────────────────────────────────────
def _get_interrupt(config: dict) -> dict | None:
    """Extract the pending interrupt payload, if any."""
    snapshot = graph.get_state(config)
    if snapshot and snapshot.tasks:
        for task in snapshot.tasks:
            if hasattr(task, "interrupts") and task.interrupts:
                return task.interrupts[0].value
    return None


# ── Run ─────────────────────────────────────────────────────────────────
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host=HOST, port=PORT, reload=True)
