"""
Generation parameters, engine defaults, and execution constants.

This is the AUTHORITATIVE source for all parameter and execution constants.
src/engine/config.py imports from here; do not maintain parallel copies.

Notes:
- Temperature is 0 for every backend.
- max_tokens covers a 20-comment batch reply.
- PARAM_MAPPING handles provider-specific parameter naming differences
  and silently drops unsupported parameters (None → omitted).
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Standardized generation parameters
# ---------------------------------------------------------------------------

STANDARD_PARAMS: dict[str, int | float] = {
    "temperature": 0,     # repeatable labels
    "max_tokens": 8192,   # room for a full batch reply
    "top_p": 1.0,
}

# ---------------------------------------------------------------------------
# Provider-specific parameter name mapping
# ---------------------------------------------------------------------------
# For each API family, maps universal parameter name → provider name.
# None means the parameter is not supported; executor will omit it silently.

PARAM_MAPPING: dict[str, dict[str, str | None]] = {
    "openai_compatible": {
        "temperature": "temperature",
        "max_tokens":  "max_tokens",
        "top_p":       "top_p",
    },
    "google": {
        # Gemini uses generationConfig sub-object with camelCase names
        "temperature": "temperature",
        "max_tokens":  "maxOutputTokens",
        "top_p":       "topP",
    },
}

# ---------------------------------------------------------------------------
# Default engine configurations
# ---------------------------------------------------------------------------
# batch_size  : comments judged by one outbound call
# max_comments: upper bound on comments accepted per analysis run
# timeout_ms  : advisory transport timeout

DEFAULT_ENGINE_CONFIGS: dict[str, dict[str, int]] = {
    "mock":   {"batch_size": 50, "max_comments": 500, "timeout_ms": 5000},
    "gemini": {"batch_size": 20, "max_comments": 500, "timeout_ms": 30000},
    "groq":   {"batch_size": 20, "max_comments": 500, "timeout_ms": 30000},
}

# ---------------------------------------------------------------------------
# Retry schedule
# ---------------------------------------------------------------------------
# Seconds to wait after the Nth failed attempt.  Quota errors are never
# retried; they degrade to a partial result instead.

MAX_ATTEMPTS: int = 3
RETRY_BACKOFF_SECONDS: dict[int, int] = {1: 2, 2: 5, 3: 10}

# ---------------------------------------------------------------------------
# Token estimation
# ---------------------------------------------------------------------------
# Used when a backend does not report usage: ceil(chars / 5 * 1.3).

CHARS_PER_WORD: int = 5
TOKENS_PER_WORD: float = 1.3

# ---------------------------------------------------------------------------
# Mock engine constants
# ---------------------------------------------------------------------------

MOCK_CALL_LATENCY_MS: int = 40        # fixed cost of one simulated call
MOCK_PER_COMMENT_LATENCY_MS: int = 5  # marginal cost per comment
MOCK_KEYWORD_WEIGHT: float = 0.4
MOCK_EXCLAMATION_BOOST: float = 0.1   # per "!", capped below
MOCK_MAX_EXCLAMATIONS: int = 5
MOCK_SARCASM_FLOOR: float = 0.5       # sarcastic text scores at most -0.5
