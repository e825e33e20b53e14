"""Shared fixtures for the rental application tests."""

from datetime import date, timedelta

import pytest

from graph import llm
from graph.state import FileHandle
from workers import staging


@pytest.fixture(autouse=True)
def no_llm(monkeypatch):
    """Step copy always comes from the static templates in tests."""
    monkeypatch.setattr(llm, "GOOGLE_API_KEY", "")
    llm.clear_llm_instance()
    llm.clear_prompt_cache()
    yield
    llm.clear_prompt_cache()


@pytest.fixture
def future_date():
    return (date.today() + timedelta(days=30)).isoformat()


@pytest.fixture
def past_date():
    return (date.today() - timedelta(days=365)).isoformat()


@pytest.fixture
def make_file(tmp_path):
    """Stage a small file on disk and return its handle."""

    def _make(name="doc.pdf", content_type="application/pdf", size=None, content=b"%PDF-1.4 test"):
        path = tmp_path / name
        path.write_bytes(content)
        return FileHandle(
            name=name,
            path=str(path),
            content_type=content_type,
            size=len(content) if size is None else size,
        )

    return _make


@pytest.fixture
def professional_draft(future_date, past_date):
    return {
        "contract_duration": 6,
        "occupancy_date": future_date,
        "occupation_type": "professional",
        "phone": "+5215512345678",
        "company": "Acme",
        "start_date": past_date,
        "role": "Engineer",
        "work_email": "ana@acme.com",
    }


@pytest.fixture
def staged(tmp_path, monkeypatch):
    """Stage files the way the file endpoint does, under a per-test upload dir."""
    monkeypatch.setattr(staging, "UPLOAD_DIR", str(tmp_path / "uploads"))

    def _stage(name="doc.pdf", content_type="application/pdf", content=b"%PDF-1.4 test", thread_id="test-thread"):
        return staging.stage_file(thread_id, name, content, content_type)

    return _stage
