"""Streamlit UI — form-based wizard for the rental application, plus contract signing."""

import asyncio
import logging
import uuid
from datetime import date

import streamlit as st
from langgraph.types import Command
from langgraph.checkpoint.memory import MemorySaver

from config import LOG_LEVEL
from graph.state import FileHandle, initial_state
from workers.staging import discard_staged, stage_file
from graph.builder import build_graph
from graph.llm import clear_prompt_cache, clear_llm_instance
from graph.validators import parse_iso_date
from prompts.step_prompts import copy_for
from services.api import ApiError
from services.contract_service import ContractService
from signing.aggregator import Viewer, signable_slots, signature_progress, submit_signatures
from graph.errors import RentalFlowError, SignatureSubmissionError
from langsmith_tracing import flow_trace, continue_flow_trace, clear_flow_trace

logging.basicConfig(level=LOG_LEVEL)

# ── Page config ─────────────────────────────────────────────────────────
st.set_page_config(page_title="Rental Application", page_icon="🏠", layout="centered")

# ── Custom CSS ──────────────────────────────────────────────────────────
st.markdown("""
<style>
    .stApp { max-width: 800px; margin: 0 auto; }
    .dot { display: inline-block; width: 12px; height: 12px; border-radius: 50%; margin: 0 4px; }
    .dot-on  { background: #2563EB; }
    .dot-off { background: #E5E7EB; }
</style>
""", unsafe_allow_html=True)

TEXT_AREAS = {"income_source", "business_description"}
DATE_FIELDS = {"occupancy_date", "start_date"}
MULTI_FILE_FIELDS = {"income_documents", "guardian_income_documents"}
SINGLE_FILE_FIELDS = {"id_document", "guardian_id_document", "video_selfie"}
WIDGET_EVENTS = ["started", "finished", "cancelled", "error", "auth_error"]


# ── Session state init ──────────────────────────────────────────────────
def _init_session():
    if "graph" not in st.session_state:
        # Async nodes need a checkpointer with async support
        st.session_state.graph = build_graph(checkpointer=MemorySaver())
        st.session_state.thread_id = f"streamlit-{uuid.uuid4().hex[:8]}"
        st.session_state.config = {"configurable": {"thread_id": st.session_state.thread_id}}
        st.session_state.started = False

_init_session()

graph = st.session_state.graph
config = st.session_state.config
thread_id = st.session_state.thread_id


def get_interrupt():
    snapshot = graph.get_state(config)
    if snapshot and snapshot.tasks:
        for task in snapshot.tasks:
            if hasattr(task, "interrupts") and task.interrupts:
                return task.interrupts[0].value
    return None


def get_state_values():
    snapshot = graph.get_state(config)
    return snapshot.values if snapshot else {}


def _reset():
    clear_prompt_cache()
    clear_llm_instance()
    clear_flow_trace(thread_id)
    discard_staged(thread_id)
    for key in list(st.session_state.keys()):
        del st.session_state[key]


# ── Graph runner ────────────────────────────────────────────────────────
async def run_graph(input_data, resume: bool):
    """Run the graph to the next interrupt inside the wizard's LangSmith trace."""
    # Each asyncio.run() creates a new loop; a cached LLM holds HTTP clients tied to the old loop
    clear_llm_instance()
    if resume:
        ctx = continue_flow_trace(thread_id)
    else:
        ctx = flow_trace(thread_id, user_id=st.session_state.get("user_id", ""), property_id=st.session_state.get("property_id"))
    with ctx:
        return await graph.ainvoke(input_data, config)


def resume_with(data: dict):
    asyncio.run(run_graph(Command(resume=data), resume=True))
    st.rerun()


def stage_upload(uploaded) -> FileHandle:
    """Stage a picked file for this thread; it is uploaded at submission."""
    return stage_file(thread_id, uploaded.name, uploaded.getvalue(), uploaded.type)


# ── Field widgets ───────────────────────────────────────────────────────
def _label(field: str) -> str:
    return field.replace("_", " ").capitalize()


def render_field(field: str, value, options: dict):
    """Draw one input; returns (present, value). File inputs are absent when nothing new was picked."""
    key = f"field-{field}"
    choices = options.get(field)

    if field == "contract_duration":
        index = choices.index(value) if value in choices else 0
        return True, st.selectbox("Contract duration", choices, index=index, format_func=lambda m: f"{m} months", key=key)
    if field == "payment_responsible":
        ids = [c["id"] for c in choices]
        picked = st.radio(
            "Who will make the payments?", ids,
            index=ids.index(value) if value in ids else 0,
            format_func=lambda i: next(c["title"] for c in choices if c["id"] == i),
            key=key,
        )
        return True, picked
    if choices:
        index = choices.index(value) if value in choices else 0
        return True, st.selectbox(_label(field), choices, index=index, key=key)
    if field in DATE_FIELDS:
        return True, st.date_input(_label(field), value=parse_iso_date(value) or date.today(), key=key).isoformat()
    if field in TEXT_AREAS:
        return True, st.text_area(_label(field), value=value or "", key=key)
    if field in MULTI_FILE_FIELDS:
        if value:
            st.caption("Current: " + ", ".join(f["name"] for f in value))
        picked = st.file_uploader(_label(field), type=["pdf", "jpg", "jpeg", "png"], accept_multiple_files=True, key=key)
        return bool(picked), [stage_upload(f) for f in picked or []]
    if field in SINGLE_FILE_FIELDS:
        if value:
            st.caption(f"Current: {value['name']}")
        types = ["mp4", "mov", "webm"] if field == "video_selfie" else ["pdf", "jpg", "jpeg", "png"]
        picked = st.file_uploader(_label(field), type=types, key=key)
        return picked is not None, stage_upload(picked) if picked is not None else None
    return True, st.text_input(_label(field), value=value or "", key=key)


def render_progress(payload: dict):
    dots = "".join(
        f'<span class="dot {"dot-on" if lit else "dot-off"}"></span>' for lit in payload.get("progress", [])
    )
    st.markdown(dots, unsafe_allow_html=True)
    caption = f"Step {payload['step']} of {payload['total_steps']}"
    if payload.get("sub_step"):
        caption += f" · {payload['sub_step']}/{payload['total_sub_steps']}"
    st.caption(caption)


def render_notice(notice: dict | None):
    if not notice:
        return
    show = {"info": st.success, "warning": st.warning}.get(notice.get("level"), st.error)
    show(f"**{notice.get('title', '')}** {notice.get('message', '')}")


def render_step_form(payload: dict):
    copy = copy_for(payload["kind"])
    st.subheader(copy["title"])
    st.write(payload.get("message") or copy["template"])

    with st.form(f"form-{payload['kind']}-{payload.get('sub_step', 0)}"):
        data = {}
        for field in payload["fields"]:
            present, value = render_field(field, payload["values"].get(field), payload.get("options", {}))
            if present:
                data[field] = value
        back, cont, close = st.columns(3)
        if back.form_submit_button("Back"):
            resume_with({"action": "back", "data": data})
        if cont.form_submit_button("Continue", type="primary"):
            resume_with({"action": "next", "data": data})
        if close.form_submit_button("Close"):
            resume_with({"action": "close"})


def render_verification(payload: dict):
    who = "Guardian" if payload["pass"] == "guardian" else "Applicant"
    st.subheader(f"{who} identity verification")
    st.write(payload.get("message", ""))
    widget = payload.get("widget")
    if widget:
        st.caption(f"Widget mount `{widget['mount_key']}` · flow `{widget['flow_id']}`")
        # The widget runs client-side; its events are relayed here
        with st.form(f"widget-{widget['mount_key']}"):
            event = st.selectbox("Widget event", WIDGET_EVENTS, index=1)
            verification_id = st.text_input("Verification id")
            identity_id = st.text_input("Identity id")
            if st.form_submit_button("Send event", type="primary"):
                detail = {"verificationId": verification_id, "identityId": identity_id}
                resume_with({"event": event, "detail": detail})
    back, close = st.columns(2)
    if back.button("Back"):
        resume_with({"action": "back"})
    if close.button("Close"):
        resume_with({"action": "close"})


def render_wizard():
    if not st.session_state.started:
        with st.form("start"):
            user_id = st.text_input("User id", value="streamlit-user")
            property_id = st.text_input("Property id")
            options = st.text_input("Property contract options (comma separated)", value="")
            phone = st.text_input("Profile phone", value="N/A")
            if st.form_submit_button("🚀 Start Application", type="primary", use_container_width=True):
                st.session_state.user_id = user_id
                st.session_state.property_id = property_id
                contract_options = [o for o in options.split(",") if o.strip()]
                asyncio.run(run_graph(initial_state(user_id, property_id, contract_options, phone), resume=False))
                st.session_state.started = True
                st.rerun()
        return

    values = get_state_values()
    payload = get_interrupt()
    if values.get("finished") or payload is None:
        clear_flow_trace(thread_id)
        render_notice(values.get("notice"))
        if values.get("application"):
            st.balloons()
        return

    render_notice(payload.get("notice"))
    if payload["type"] == "identity_verification":
        render_progress(payload)
        render_verification(payload)
    elif payload["type"] == "submit_retry":
        st.write(payload["message"])
        if st.button("Retry submission", type="primary"):
            resume_with({"action": "retry"})
    else:
        render_progress(payload)
        render_step_form(payload)


# ── Signing view ────────────────────────────────────────────────────────
async def _load_contract(contract_id: str):
    async with ContractService() as service:
        return await service.get_contract(contract_id)


async def _sign(contract, signatures: dict, viewer: Viewer):
    async with ContractService() as service:
        return await submit_signatures(contract, signatures, service, viewer)


def render_signing():
    contract_id = st.text_input("Contract id")
    user_id = st.text_input("Your user id")
    email = st.text_input("Your email")
    if not contract_id:
        return
    try:
        contract = asyncio.run(_load_contract(contract_id))
    except ApiError as e:
        st.error(str(e))
        return

    progress = signature_progress(contract)
    st.progress(progress.percentage / 100, text=f"{progress.completed}/{progress.total} signatures")
    viewer = Viewer(user_id, email)
    slots = signable_slots(contract, viewer) if user_id else []
    if not slots:
        st.caption("There is nothing left for you to sign on this contract.")
        return

    with st.form("sign"):
        signatures = {}
        for slot in slots:
            image = st.text_input(f"Signature for {slot} (data URL)", key=f"sig-{slot}")
            if image.strip():
                signatures[slot] = image.strip()
        if st.form_submit_button("Sign", type="primary"):
            try:
                latest = asyncio.run(_sign(contract, signatures, viewer))
                st.success(f"Signed. {signature_progress(latest).percentage}% complete.")
            except SignatureSubmissionError as e:
                st.error(f"{e} (already signed: {', '.join(e.signed_slots) or 'none'})")
            except RentalFlowError as e:
                st.error(str(e))


# ── Main ────────────────────────────────────────────────────────────────
with st.sidebar:
    st.markdown("### 🏠 Rental Application")
    vals = get_state_values()
    if vals:
        if vals.get("finished"):
            st.success("✅ Complete!")
        else:
            st.caption(f"Guard: {vals.get('max_steps_guard', 0)}")
        draft = vals.get("draft", {})
        with st.expander("📝 Collected Data", expanded=False):
            for key, val in draft.items():
                if val not in (None, "", []):
                    st.caption(f"**{key}**: {val}")
    if st.button("🔄 Reset"):
        _reset()
        st.rerun()

st.title("🏠 Rental Application")
wizard_tab, signing_tab = st.tabs(["Application", "Contract signing"])
with wizard_tab:
    render_wizard()
with signing_tab:
    render_signing()
