"""
Backend endpoint and authentication configuration.

This is the AUTHORITATIVE source for backend configuration.
src/engine/config.py imports from here; do not maintain parallel copies.

Credentials are never read from this module.  Callers pass API keys
explicitly through ``EngineSettings``; the environment variable names below
are only consulted by the opt-in ``settings_from_env`` adapter.

ENVIRONMENT VARIABLES (adapter only):
    USE_MOCK_ENGINE   "true" forces the offline mock engine
    LLM_ENGINE        "gemini" | "groq" | "openai"
    GEMINI_API_KEY    Gemini (Google Generative Language API)
    GROQ_API_KEY      Groq (OpenAI-compatible chat completions)
    GROQ_MODEL        optional Groq model override
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Backend configuration: one entry per remote engine
# ---------------------------------------------------------------------------
#
# Fields:
#   endpoint     : URL template; ``{model_id}`` is substituted at call time
#   model_id     : default provider-specific model identifier
#   auth_type    : 'bearer'        → Authorization: Bearer <key> header
#                  'api_key_param' → key= URL query parameter (Google)
#   api_family   : wire format used by the executor and decoder
#   api_key_env  : environment variable read by settings_from_env only

BACKEND_CONFIG: dict[str, dict] = {
    "gemini": {
        "endpoint": (
            "https://generativelanguage.googleapis.com"
            "/v1beta/models/{model_id}:generateContent"
        ),
        "model_id": "gemini-2.0-flash-exp",
        "auth_type": "api_key_param",
        "api_family": "google",
        "api_key_env": "GEMINI_API_KEY",
    },
    "groq": {
        "endpoint": "https://api.groq.com/openai/v1/chat/completions",
        "model_id": "llama-3.3-70b-versatile",
        "auth_type": "bearer",
        "api_family": "openai_compatible",
        "api_key_env": "GROQ_API_KEY",
    },
}

# ---------------------------------------------------------------------------
# Engine registry
# ---------------------------------------------------------------------------

ENGINE_TYPES: list[str] = ["mock", "gemini", "groq"]

# Recognized but not implemented; the factory rejects it explicitly.
PLANNED_ENGINE_TYPES: list[str] = ["openai"]

DEFAULT_ENGINE_TYPE: str = "mock"

# ---------------------------------------------------------------------------
# Environment adapter variable names
# ---------------------------------------------------------------------------

USE_MOCK_ENV: str = "USE_MOCK_ENGINE"
ENGINE_TYPE_ENV: str = "LLM_ENGINE"
GROQ_MODEL_ENV: str = "GROQ_MODEL"
