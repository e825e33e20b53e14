"""App-wide configuration and environment settings."""

import os
try:
    import streamlit as st
except ImportError:
    st = None
from dotenv import load_dotenv

load_dotenv()  # Load from .env file

def get_secret(key, default=None):
    """Try st.secrets first, then os.getenv."""
    if st is not None:
        try:
            # Accessing st.secrets might raise FileNotFoundError if no secrets.toml on local
            if key in st.secrets:
                return st.secrets[key]
        except (FileNotFoundError, AttributeError, KeyError):
            pass
    return os.getenv(key, default)


def _int_list(raw: str) -> list[int]:
    return [int(part) for part in raw.split(",") if part.strip().isdigit()]


# Backend REST API
API_BASE_URL = get_secret("API_BASE_URL", "http://localhost:5000/api").strip().rstrip("/")
API_TOKEN = get_secret("API_TOKEN", "")
HTTP_TIMEOUT_S = float(get_secret("HTTP_TIMEOUT_S", "10"))

# Identity verification widget (MetaMap)
METAMAP_CLIENT_ID = get_secret("METAMAP_CLIENT_ID", "")
METAMAP_FLOW_ID = get_secret("METAMAP_FLOW_ID", "")

# Local staging for files picked in the wizard before upload
UPLOAD_DIR = get_secret("UPLOAD_DIR", "uploads")

# Wizard rules
DEFAULT_CONTRACT_OPTIONS = _int_list(get_secret("DEFAULT_CONTRACT_OPTIONS", "3,6,12"))
MAX_INCOME_DOCUMENTS = 3
MAX_ID_DOCUMENT_BYTES = 5 * 1024 * 1024
MAX_VIDEO_SELFIE_BYTES = 10 * 1024 * 1024
MAX_INCOME_DOCUMENT_BYTES = 5 * 1024 * 1024
MAX_STEPS_GUARD = 200  # Hard terminate if exceeded (back-navigation counts too)

# LLM (Google Gemini) for step copy
GOOGLE_API_KEY = get_secret("GOOGLE_API_KEY", "")
LLM_MODEL = get_secret("LLM_MODEL", "gemini-2.5-flash-lite")

# LangSmith
LANGSMITH_TRACING = os.getenv("LANGSMITH_TRACING", "false").lower() in ("true", "1")
LANGSMITH_PROJECT = os.getenv("LANGSMITH_PROJECT", "rental-application")

# Server
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
