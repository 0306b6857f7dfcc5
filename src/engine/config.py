"""
Engine package constants.

Backend and parameter constants are imported from the top-level ``config``
package (the authoritative source); decoder and fallback constants that only
this package uses are defined here.
"""

from config.api_config import (  # noqa: F401  (re-exported)
    BACKEND_CONFIG,
    DEFAULT_ENGINE_TYPE,
    ENGINE_TYPE_ENV,
    ENGINE_TYPES,
    GROQ_MODEL_ENV,
    PLANNED_ENGINE_TYPES,
    USE_MOCK_ENV,
)
from config.model_params import (  # noqa: F401  (re-exported)
    CHARS_PER_WORD,
    DEFAULT_ENGINE_CONFIGS,
    MAX_ATTEMPTS,
    MOCK_CALL_LATENCY_MS,
    MOCK_EXCLAMATION_BOOST,
    MOCK_KEYWORD_WEIGHT,
    MOCK_MAX_EXCLAMATIONS,
    MOCK_PER_COMMENT_LATENCY_MS,
    MOCK_SARCASM_FLOOR,
    PARAM_MAPPING,
    RETRY_BACKOFF_SECONDS,
    STANDARD_PARAMS,
    TOKENS_PER_WORD,
)

# ---------------------------------------------------------------------------
# Decoder
# ---------------------------------------------------------------------------

# Diagnostic excerpts attached to DecodeError are cut to this length.
EXCERPT_LIMIT: int = 500

# Wrapper keys tried, in order, when the decoded reply is an object.
RECORD_WRAPPER_KEYS: tuple[str, ...] = ("comments", "analyses", "results", "judgments")

# ---------------------------------------------------------------------------
# Prompt limits
# ---------------------------------------------------------------------------

DESCRIPTION_LIMIT: int = 500
TRANSCRIPT_LIMIT: int = 3000
SUMMARY_FALLBACK_LIMIT: int = 200

# ---------------------------------------------------------------------------
# Fallback judgments
# ---------------------------------------------------------------------------

DEFAULT_CONFIDENCE: float = 0.5
MISSING_EVIDENCE: str = "No analysis available"
QUOTA_EVIDENCE: str = "Backend quota exceeded"
