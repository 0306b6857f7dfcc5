"""
Resilient decoding of backend replies into validated judgment records.

Backends frequently wrap JSON in prose or code fences and emit small
syntax slips.  The repair pipeline is a fixed sequence of pure text
transforms, each a no-op on text that does not need it:

1. strip whitespace and code fences
2. slice to the outermost bracket span (drops preamble and epilogue)
3. drop ``+`` signs in front of numbers
4. unquote ``"true"`` / ``"false"`` values
5. insert a missing colon in ``"key" value``
6. drop trailing commas before ``]`` / ``}``

followed by a parse, a line-filter fallback parse, and finally a
:class:`~src.engine.errors.DecodeError` with bounded excerpts.  Stages 3 and
6 never touch the inside of string literals.

No I/O occurs here apart from the diagnostic print on failure.
"""

from __future__ import annotations

import json
import math
import re

from .config import EXCERPT_LIMIT, RECORD_WRAPPER_KEYS
from .errors import DecodeError
from .records import EMOTION_TAGS, ReplyRelation, SpeechAct, StanceLabel

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```[ \t]*(?:\n|$)", re.IGNORECASE)
_STRAY_FENCE = re.compile(r"^```(?:json)?|```$", re.IGNORECASE)
_STRING_LITERAL = re.compile(r'"(?:[^"\\]|\\.)*"')

_PLUS_SIGN = re.compile(r"([:\[,]\s*)\+(?=\.?\d)")
_QUOTED_BOOLEAN = re.compile(r'(:\s*)"(true|false)"(?=\s*(?:[,}\]]|$))', re.IGNORECASE)
_KEY_WITHOUT_COLON = re.compile(
    r'([{,]\s*)("(?:[^"\\]|\\.)*")(\s*)(?=(?:null|true|false)\b|[-\d.\[{])'
)
_TRAILING_COMMA = re.compile(r",\s*([\]}])")

_STRUCTURAL_LINES = frozenset({"{", "}", "[", "]", "},", "],"})


class RecordValidationError(ValueError):
    """A decoded record does not match the judgment shape."""


# ---------------------------------------------------------------------------
# Repair stages
# ---------------------------------------------------------------------------


def _apply_outside_strings(text: str, pattern: re.Pattern, repl: str) -> str:
    """Apply ``pattern.sub`` to the spans of ``text`` between string literals."""
    pieces: list[str] = []
    last = 0
    for match in _STRING_LITERAL.finditer(text):
        pieces.append(pattern.sub(repl, text[last:match.start()]))
        pieces.append(match.group(0))
        last = match.end()
    pieces.append(pattern.sub(repl, text[last:]))
    return "".join(pieces)


def strip_code_fences(text: str) -> str:
    """
    Strip surrounding whitespace and Markdown code fences.

    When a complete fenced block is present its body is returned; otherwise
    an unterminated opening or closing fence marker is removed.  Text that
    already opens with ``[`` or ``{`` is never searched for a block, and a
    closing fence must end its line, so backticks quoted inside JSON string
    values are left alone.
    """
    text = text.strip()
    if not text.startswith(("[", "{")):
        match = _FENCED_BLOCK.search(text)
        if match:
            return match.group(1).strip()
    return _STRAY_FENCE.sub("", text).strip()


def slice_to_json_span(text: str) -> str:
    """
    Cut prose before the first ``[``/``{`` and after the last ``]``/``}``.

    Text that already starts and ends with brackets is returned unchanged,
    as is text with no usable bracket span.
    """
    if text.startswith(("[", "{")) and text.endswith(("]", "}")):
        return text

    openings = [idx for idx in (text.find("["), text.find("{")) if idx != -1]
    end = max(text.rfind("]"), text.rfind("}"))
    if not openings or end <= min(openings):
        return text
    return text[min(openings):end + 1]


def strip_plus_signs(text: str) -> str:
    """``"score": +0.8`` → ``"score": 0.8``."""
    return _apply_outside_strings(text, _PLUS_SIGN, r"\1")


def unquote_booleans(text: str) -> str:
    """``"isSarcasm": "False"`` → ``"isSarcasm": false``."""
    return _QUOTED_BOOLEAN.sub(lambda m: m.group(1) + m.group(2).lower(), text)


def insert_missing_colons(text: str) -> str:
    """
    ``{"score" 0.5}`` → ``{"score": 0.5}``.

    Only a string in key position (after ``{`` or ``,``) directly followed
    by a bare literal is repaired; valid JSON never has that shape.
    """
    return _KEY_WITHOUT_COLON.sub(r"\1\2:\3", text)


def remove_trailing_commas(text: str) -> str:
    """``[1, 2, ]`` → ``[1, 2]``."""
    return _apply_outside_strings(text, _TRAILING_COMMA, r"\1")


def filter_structural_lines(text: str) -> str:
    """
    Keep only lines that look like JSON structure or key/value fragments.

    Last-resort repair for replies where the model interleaved commentary
    lines with the JSON body.
    """
    kept = []
    for line in text.split("\n"):
        stripped = line.strip()
        if stripped in _STRUCTURAL_LINES:
            kept.append(line)
        elif ":" in stripped or stripped.endswith((",", "}", "]")):
            kept.append(line)
    return "\n".join(kept)


def clean_model_output(raw: str) -> str:
    """Run repair stages 1–6 over a raw backend reply."""
    text = strip_code_fences(raw)
    text = slice_to_json_span(text)
    text = strip_plus_signs(text)
    text = unquote_booleans(text)
    text = insert_missing_colons(text)
    return remove_trailing_commas(text)


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def decode_model_json(raw: str, engine: str | None = None) -> dict | list:
    """
    Repair and parse a backend reply into a JSON object or array.

    Args:
        raw: Raw text returned by the backend.
        engine: Engine name, attached to the error for diagnostics.

    Returns:
        The decoded ``dict`` or ``list``.

    Raises:
        DecodeError: The reply is empty, cannot be parsed after every
            repair stage, or decodes to a scalar.
    """
    if not raw or not raw.strip():
        raise DecodeError("Backend returned an empty reply", engine=engine)

    cleaned = clean_model_output(raw)
    try:
        decoded = json.loads(cleaned)
    except json.JSONDecodeError as first_error:
        try:
            decoded = json.loads(filter_structural_lines(cleaned))
        except json.JSONDecodeError:
            print(f"  Failed to parse backend JSON. Raw text: {raw[:EXCERPT_LIMIT]}")
            print(f"  Cleaned text: {cleaned[:EXCERPT_LIMIT]}")
            raise DecodeError(
                f"Could not parse backend reply as JSON: {first_error}",
                raw_excerpt=raw[:EXCERPT_LIMIT],
                cleaned_excerpt=cleaned[:EXCERPT_LIMIT],
                cause=first_error,
                engine=engine,
            ) from first_error

    if not isinstance(decoded, (dict, list)):
        raise DecodeError(
            f"Expected a JSON object or array, got {type(decoded).__name__}",
            raw_excerpt=raw[:EXCERPT_LIMIT],
            cleaned_excerpt=cleaned[:EXCERPT_LIMIT],
            engine=engine,
        )
    return decoded


def extract_judgment_records(decoded: dict | list) -> list:
    """
    Normalize the top-level decoded value to a list of candidate records.

    Bare arrays are returned as-is; objects are unwrapped from the first of
    ``RECORD_WRAPPER_KEYS`` holding a list, else treated as a single record.
    """
    if isinstance(decoded, list):
        return decoded
    for key in RECORD_WRAPPER_KEYS:
        value = decoded.get(key)
        if isinstance(value, list):
            return value
    return [decoded]


# ---------------------------------------------------------------------------
# Record validation
# ---------------------------------------------------------------------------


def _pick(record: dict, *keys: str):
    for key in keys:
        if key in record and record[key] is not None:
            return record[key]
    return None


def _is_number(value) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _optional_text(record: dict, field_name: str, *keys: str) -> str | None:
    value = _pick(record, *keys)
    if value is not None and not isinstance(value, str):
        raise RecordValidationError(f"'{field_name}' must be a string, got {value!r}")
    return value


def _normalize_label(value) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        for label in StanceLabel.ALL:
            if value.strip().lower() == label.lower():
                return label
    raise RecordValidationError(f"Unknown stance label {value!r}")


def _normalize_emotions(value) -> list[str]:
    if value is None:
        return ["neutral"]
    if not isinstance(value, list):
        raise RecordValidationError(f"'emotions' must be a list, got {value!r}")
    emotions: list[str] = []
    for tag in value:
        if isinstance(tag, str):
            tag = tag.strip().lower()
            if tag in EMOTION_TAGS and tag not in emotions:
                emotions.append(tag)
    return emotions or ["neutral"]


def _normalize_choice(value, choices: tuple[str, ...]) -> str | None:
    if isinstance(value, str) and value.strip().lower() in choices:
        return value.strip().lower()
    return None


def validate_judgment_record(record, require_score: bool = True) -> dict:
    """
    Validate one decoded record against the judgment shape.

    Structural problems reject the record; open vocabulary slips do not:
    unknown emotion tags are dropped (falling back to ``["neutral"]``) and
    unknown reply relations or speech acts are discarded.

    Args:
        record: One element from :func:`extract_judgment_records`.
        require_score: When False (axis analysis) a missing score is allowed
            provided a label is present.

    Returns:
        Dict with snake_case keys ``comment_id``, ``score`` (may be None),
        ``label``, ``confidence``, ``is_sarcasm``, ``emotions``, ``reason``,
        ``axis_evidence``, ``reply_relation``, ``speech_act``.

    Raises:
        RecordValidationError: The record cannot be used.
    """
    if not isinstance(record, dict):
        raise RecordValidationError(f"Expected an object, got {type(record).__name__}")

    comment_id = _pick(record, "commentId", "comment_id")
    if isinstance(comment_id, int) and not isinstance(comment_id, bool):
        comment_id = str(comment_id)
    if not isinstance(comment_id, str) or not comment_id:
        raise RecordValidationError(f"Missing or invalid commentId: {comment_id!r}")

    score = _pick(record, "score")
    if score is not None and not _is_number(score):
        raise RecordValidationError(f"'score' must be a number, got {score!r}")

    label = _normalize_label(_pick(record, "label", "stance"))
    if score is None and (require_score or label is None):
        raise RecordValidationError(f"Record for {comment_id} has no score")

    confidence = _pick(record, "confidence")
    if confidence is not None:
        if not _is_number(confidence):
            raise RecordValidationError(f"'confidence' must be a number, got {confidence!r}")
        confidence = max(0.0, min(1.0, float(confidence)))

    is_sarcasm = _pick(record, "isSarcasm", "is_sarcasm")
    if is_sarcasm is None:
        is_sarcasm = False
    elif not isinstance(is_sarcasm, bool):
        raise RecordValidationError(f"'isSarcasm' must be a boolean, got {is_sarcasm!r}")

    return {
        "comment_id": comment_id,
        "score": float(score) if score is not None else None,
        "label": label,
        "confidence": confidence,
        "is_sarcasm": is_sarcasm,
        "emotions": _normalize_emotions(_pick(record, "emotions")),
        "reason": _optional_text(record, "reason", "reason"),
        "axis_evidence": _optional_text(record, "axisEvidence", "axisEvidence", "axis_evidence"),
        "reply_relation": _normalize_choice(
            _pick(record, "replyRelation", "reply_relation"), ReplyRelation.ALL
        ),
        "speech_act": _normalize_choice(_pick(record, "speechAct", "speech_act"), SpeechAct.ALL),
    }


# ---------------------------------------------------------------------------
# Wire formats
# ---------------------------------------------------------------------------


def extract_response_content(response_json: dict, backend: str) -> str:
    """
    Extract the generated text from a raw API response dict.

    Handles both wire formats used by the remote engines:
    - OpenAI-compatible (Groq): ``choices[0].message.content``
    - Google Gemini: ``candidates[0].content.parts[*].text``

    Raises:
        ValueError: If the response structure matches neither format.
        KeyError, IndexError: If a known envelope is missing its text.
    """
    if "choices" in response_json:
        return response_json["choices"][0]["message"].get("content") or ""

    if "candidates" in response_json:
        parts = response_json["candidates"][0]["content"]["parts"]
        return "".join(part.get("text", "") for part in parts)

    raise ValueError(
        f"Unrecognized API response format for backend '{backend}'. "
        f"Top-level keys present: {list(response_json.keys())}"
    )


def get_total_tokens(response_json: dict) -> int:
    """
    Extract the total token count from an API response, or 0 if absent.

    - OpenAI-compatible: ``usage.total_tokens``
    - Gemini: ``usageMetadata.totalTokenCount``
    """
    if "usage" in response_json:
        usage = response_json["usage"] or {}
        return usage.get("total_tokens") or (
            usage.get("prompt_tokens", 0) + usage.get("completion_tokens", 0)
        )

    if "usageMetadata" in response_json:
        usage = response_json["usageMetadata"] or {}
        return usage.get("totalTokenCount") or (
            usage.get("promptTokenCount", 0) + usage.get("candidatesTokenCount", 0)
        )

    return 0
