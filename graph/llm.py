"""LLM client — phrases the prompt shown at each wizard step.

The LLM is used ONLY for:
  ✅ Generating user-facing step messages (short, warm, professional)
  ❌ NOT for routing, validation or flow control (that's the sequencers' job)

Without an API key, or on any LLM error, the static templates are used.
"""

import logging

from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_core.messages import SystemMessage, HumanMessage

from config import GOOGLE_API_KEY, LLM_MODEL
from prompts.step_prompts import copy_for


# ── LLM instance (singleton) ───────────────────────────────────────────
_llm_instance = None


def _get_llm():
    """Lazy singleton — creates the LLM once, reuses on every call."""
    global _llm_instance
    if _llm_instance is not None:
        return _llm_instance
    if not GOOGLE_API_KEY:
        return None
    _llm_instance = ChatGoogleGenerativeAI(
        model=LLM_MODEL,
        google_api_key=GOOGLE_API_KEY,
        temperature=0.7,
    )
    return _llm_instance


# ── Prompt cache (avoids repeated LLM call on interrupt replay) ────────
_prompt_cache: dict[str, str] = {}


async def generate_step_message(kind: str) -> str:
    """A one or two sentence prompt for the step (Async)."""
    if kind in _prompt_cache:
        return _prompt_cache[kind]

    copy = copy_for(kind)
    llm = _get_llm()
    if not llm:
        return copy["template"]

    system = (
        "You write the helper text of a rental application form. "
        "RULES:\n"
        "- One or two short sentences, friendly and professional\n"
        "- NEVER mention step numbers or field names\n"
        "- No bullet points, no emojis"
    )
    human = f"The applicant now needs to provide: {copy['ask']}."
    try:
        response = await llm.ainvoke([SystemMessage(content=system), HumanMessage(content=human)])
        result = str(response.content).strip() or copy["template"]
    except Exception as e:
        logging.error(f"Error generating step message: {e}")
        result = copy["template"]

    _prompt_cache[kind] = result
    return result


def clear_prompt_cache():
    """Clear the prompt cache (used on session reset)."""
    _prompt_cache.clear()


def clear_llm_instance():
    """
    Reset the LLM singleton. Use before each asyncio.run() in Streamlit to avoid
    'Event loop is closed' errors: the cached LLM holds HTTP clients tied to a
    previous event loop that gets closed between reruns.
    """
    global _llm_instance
    _llm_instance = None
