"""LangSmith tracing — one rental application = one trace across interrupts."""

import logging
import os
from contextlib import contextmanager
from typing import Optional

import langsmith as ls
from langsmith.run_trees import RunTree

from config import LANGSMITH_TRACING, LANGSMITH_PROJECT

TRACE_TAGS = ["rental-application", "wizard"]

# In-memory store: thread_id -> parent RunTree (for REST API stateless resume)
_thread_trace_store: dict[str, RunTree] = {}


def _ensure_env():
    """Ensure LangSmith env vars are set when tracing is enabled."""
    if LANGSMITH_TRACING:
        os.environ.setdefault("LANGCHAIN_TRACING_V2", "true")
        os.environ.setdefault("LANGCHAIN_PROJECT", LANGSMITH_PROJECT)


@contextmanager
def flow_trace(thread_id: str, user_id: str = "", property_id: Optional[str] = None):
    """
    Create a parent trace for one application wizard. Every graph invoke inside
    this context is grouped under one trace; start and all resumes share the
    thread_id.
    """
    if not LANGSMITH_TRACING:
        yield None
        return

    _ensure_env()
    metadata = {"thread_id": thread_id, "user_id": user_id or thread_id, "property_id": property_id}
    root = RunTree(name="rental_application_flow", run_type="chain")
    root.add_metadata(metadata)
    root.add_tags(TRACE_TAGS)
    root.post()
    _thread_trace_store[thread_id] = root

    with ls.tracing_context(
        project_name=LANGSMITH_PROJECT,
        enabled=True,
        parent=root,
        metadata=metadata,
        tags=TRACE_TAGS,
    ):
        yield str(root.id)


@contextmanager
def continue_flow_trace(thread_id: str):
    """Continue the flow trace stored when the wizard started (resume invokes)."""
    root = _thread_trace_store.get(thread_id) if LANGSMITH_TRACING else None
    if root is None:
        yield
        return

    _ensure_env()
    with ls.tracing_context(
        project_name=LANGSMITH_PROJECT,
        enabled=True,
        parent=root,
        metadata={"thread_id": thread_id},
        tags=TRACE_TAGS + ["resume"],
    ):
        yield


def clear_flow_trace(thread_id: str) -> None:
    """End the root run and remove it from the store when the wizard finishes."""
    root = _thread_trace_store.pop(thread_id, None)
    if root is None:
        return
    try:
        root.end()
        root.patch()
    except Exception as e:
        logging.error(f"Failed to close trace for {thread_id}: {e}")
