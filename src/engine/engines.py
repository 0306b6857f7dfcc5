"""
Analysis engines: one interface, interchangeable backends.

Every engine exposes ``analyze_one``, ``analyze_batch``, ``get_config`` /
``update_config`` and ``generate_axis_profile``.  Callers pick a variant once
(see ``src.engine.factory``) and never branch on engine type afterwards.

Variants:
- :class:`MockEngine`: deterministic, network-free lexical scorer used in
  tests and as the default engine.
- :class:`GeminiEngine` / :class:`GroqEngine`: remote backends reached over
  REST via ``src.engine.executor``.

Guarantees shared by all variants:
- ``analyze_batch([])`` returns an empty, zero-cost result with no backend call.
- ``analyze_batch`` returns exactly one judgment per input comment, in the
  caller's order; comments the backend skipped get a neutral fallback.
- Scores and weighted scores are clamped to [-1, 1].
- A quota refusal yields all-fallback judgments with ``is_partial=True``;
  an unrepairable reply raises :class:`~src.engine.errors.DecodeError`.
"""

from __future__ import annotations

import math
import re
import time
from dataclasses import fields, replace
from datetime import datetime, timezone

import requests

from .config import (
    BACKEND_CONFIG,
    CHARS_PER_WORD,
    DEFAULT_CONFIDENCE,
    DEFAULT_ENGINE_CONFIGS,
    MAX_ATTEMPTS,
    MISSING_EVIDENCE,
    MOCK_CALL_LATENCY_MS,
    MOCK_EXCLAMATION_BOOST,
    MOCK_KEYWORD_WEIGHT,
    MOCK_MAX_EXCLAMATIONS,
    MOCK_PER_COMMENT_LATENCY_MS,
    MOCK_SARCASM_FLOOR,
    QUOTA_EVIDENCE,
    SUMMARY_FALLBACK_LIMIT,
    TOKENS_PER_WORD,
)
from .decoder import (
    RecordValidationError,
    decode_model_json,
    extract_judgment_records,
    validate_judgment_record,
)
from .errors import AnalysisError, ConfigurationError
from .executor import execute_generation
from .prompts import (
    AXIS_PROFILE_SYSTEM_PROMPT,
    AXIS_SYSTEM_PROMPT,
    CONTEXT_SUMMARY_SYSTEM_PROMPT,
    SYSTEM_PROMPT,
    create_axis_batch_prompt,
    create_axis_profile_prompt,
    create_batch_prompt,
    create_context_summary_prompt,
    create_single_comment_prompt,
)
from .records import (
    AxisProfile,
    BatchResult,
    Comment,
    EngineConfig,
    ReplyRelation,
    SpeechAct,
    StanceJudgment,
    StanceLabel,
    VideoContext,
)
from .retry import APIError, call_with_retry, response_text_of
from .synthesis import (
    apply_stance_synthesis,
    label_to_score,
    score_to_label,
    sort_comments_by_thread_order,
)

QUOTA_REASON = "Backend quota exceeded; comment was not analyzed"

# ---------------------------------------------------------------------------
# Scoring helpers
# ---------------------------------------------------------------------------


def clamp_score(score: float) -> float:
    return max(-1.0, min(1.0, float(score)))


def calculate_weighted_score(score: float, like_count: int) -> float:
    """
    Scale a score by engagement: ``clamp(score * (1 + log10(likes + 1)) / 7)``.

    The divisor 7 approximates the weight at about a million likes, so the
    weighted score stays on the same scale as the raw score.
    """
    weight = 1 + math.log10(max(like_count, 0) + 1)
    return clamp_score(score * weight / 7)


def estimate_tokens(text: str) -> int:
    """Rough token count for backends that report no usage."""
    return math.ceil(len(text) / CHARS_PER_WORD * TOKENS_PER_WORD)


def create_fallback_judgment(
    comment: Comment,
    reason: str,
    axis: bool = False,
    evidence: str = MISSING_EVIDENCE,
) -> StanceJudgment:
    """Neutral stand-in for a comment the backend did not judge."""
    judgment = StanceJudgment(
        comment_id=comment.comment_id,
        score=0.0,
        weighted_score=0.0,
        emotions=["neutral"],
        is_sarcasm=False,
        reason=reason,
    )
    if axis:
        judgment.label = StanceLabel.UNKNOWN
        judgment.confidence = 0.0
        judgment.axis_evidence = evidence
    return judgment


def build_judgment(comment: Comment, item: dict, axis: bool) -> StanceJudgment:
    """
    Turn a validated record into a judgment for ``comment``.

    In axis mode a missing score is derived from the label and a missing
    label from the score.
    """
    score = item["score"]
    label = item["label"]
    if axis:
        if score is None:
            score = label_to_score(label)
        if label is None:
            label = score_to_label(score)

    score = clamp_score(score)
    judgment = StanceJudgment(
        comment_id=comment.comment_id,
        score=score,
        weighted_score=calculate_weighted_score(score, comment.like_count),
        emotions=item["emotions"],
        is_sarcasm=item["is_sarcasm"],
        reason=item["reason"] or "No reason provided",
    )
    if axis:
        judgment.label = label
        confidence = item["confidence"]
        judgment.confidence = DEFAULT_CONFIDENCE if confidence is None else confidence
        judgment.axis_evidence = item["axis_evidence"] or ""
        judgment.reply_relation = item["reply_relation"]
        judgment.speech_act = item["speech_act"]
    return judgment


def map_records_to_comments(
    comments: list[Comment],
    records: list,
    axis: bool,
    engine_name: str,
) -> list[StanceJudgment]:
    """
    Align decoded records with ``comments`` by comment ID.

    The first valid record per ID wins; records for unknown IDs are
    ignored; comments without a valid record get a fallback judgment whose
    reason says whether the record was missing or rejected.
    """
    accepted: dict[str, dict] = {}
    rejected: dict[str, str] = {}

    for record in records:
        try:
            item = validate_judgment_record(record, require_score=not axis)
        except RecordValidationError as exc:
            comment_id = record.get("commentId") if isinstance(record, dict) else None
            if isinstance(comment_id, str):
                rejected.setdefault(comment_id, str(exc))
            print(f"  [{engine_name}] Rejected record: {exc}")
            continue
        accepted.setdefault(item["comment_id"], item)

    judgments = []
    for comment in comments:
        item = accepted.get(comment.comment_id)
        if item is not None:
            judgments.append(build_judgment(comment, item, axis))
        elif comment.comment_id in rejected:
            reason = f"Backend returned an invalid record: {rejected[comment.comment_id]}"
            judgments.append(create_fallback_judgment(comment, reason, axis=axis))
        else:
            reason = f"{engine_name} skipped this comment in batch analysis"
            judgments.append(create_fallback_judgment(comment, reason, axis=axis))
    return judgments


def finalize_axis_judgments(
    judgments: list[StanceJudgment],
    ordered_comments: list[Comment],
) -> list[StanceJudgment]:
    """Run stance synthesis, then recompute every weighted score."""
    likes = {c.comment_id: c.like_count for c in ordered_comments}
    return [
        replace(
            judgment,
            weighted_score=calculate_weighted_score(judgment.score, likes.get(judgment.comment_id, 0)),
        )
        for judgment in apply_stance_synthesis(judgments, ordered_comments)
    ]


def restore_input_order(
    judgments: list[StanceJudgment],
    comments: list[Comment],
) -> list[StanceJudgment]:
    by_id = {j.comment_id: j for j in judgments}
    return [by_id[c.comment_id] for c in comments]


def fallback_axis_profile(video_id: str, video: VideoContext) -> AxisProfile:
    return AxisProfile(
        video_id=video_id,
        main_axis=f"Discussion about: {video.title}",
        creator_position=f"The creator's perspective on {video.title}",
        generated_at=_utc_now(),
    )


def fallback_context_summary(video: VideoContext) -> str:
    if video.description:
        return video.description[:SUMMARY_FALLBACK_LIMIT]
    return f"Video about {video.title}"


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _elapsed_ms(start: float) -> int:
    return int(round((time.monotonic() - start) * 1000))


def _text_or(value, default: str | None) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------


class AnalysisEngine:
    """
    Common interface and configuration handling for all engines.

    Subclasses set ``name`` and ``engine_type`` (a key of
    ``DEFAULT_ENGINE_CONFIGS``) and implement the analysis methods.
    """

    name = "AnalysisEngine"
    engine_type = ""

    def __init__(self, config: EngineConfig | None = None) -> None:
        self._config = config or self.default_config()

    @classmethod
    def default_config(cls) -> EngineConfig:
        return EngineConfig(**DEFAULT_ENGINE_CONFIGS[cls.engine_type])

    def get_config(self) -> EngineConfig:
        return self._config

    def update_config(self, **changes) -> EngineConfig:
        """
        Install a new config merged from the current one and ``changes``.

        ``None`` values leave the current setting in place.  The previous
        ``EngineConfig`` object is never modified.

        Raises:
            ConfigurationError: Unknown field or invalid value.
        """
        known = {f.name for f in fields(EngineConfig)}
        unknown = sorted(set(changes) - known)
        if unknown:
            raise ConfigurationError(f"Unknown engine config field(s): {unknown}", engine=self.name)
        updates = {key: value for key, value in changes.items() if value is not None}
        self._config = replace(self._config, **updates)
        return self._config

    def analyze_one(
        self,
        comment: Comment,
        video_context: VideoContext | None = None,
    ) -> StanceJudgment:
        raise NotImplementedError

    def analyze_batch(
        self,
        comments: list[Comment],
        axis_profile: AxisProfile | None = None,
        video_context: VideoContext | None = None,
    ) -> BatchResult:
        raise NotImplementedError

    def generate_axis_profile(self, video_id: str, video: VideoContext) -> AxisProfile:
        raise NotImplementedError

    def generate_context_summary(self, video: VideoContext) -> str:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# Offline mock
# ---------------------------------------------------------------------------

POSITIVE_WORDS = (
    "amazing", "awesome", "best", "brilliant", "excellent", "fantastic",
    "good", "great", "helpful", "love", "nice", "perfect", "thank", "wonderful",
)
NEGATIVE_WORDS = (
    "awful", "bad", "boring", "confusing", "disappointing", "hate", "horrible",
    "poor", "terrible", "useless", "waste", "worst", "wrong",
)
IRONIC_PHRASES = (
    "oh wonderful", "oh great", "oh joy", "yeah right",
    "just what we needed", "thanks for nothing",
)

_POSITIVE_PATTERN = re.compile(r"\b(?:" + "|".join(POSITIVE_WORDS) + r")")
_NEGATIVE_PATTERN = re.compile(r"\b(?:" + "|".join(NEGATIVE_WORDS) + r")")
_INDEED = re.compile(r"\bindeed\b")


def select_emotions(score: float, is_sarcasm: bool) -> list[str]:
    if is_sarcasm:
        return ["sarcasm", "critical"]
    if score > 0.6:
        return ["joy", "enthusiastic", "supportive"]
    if score > 0.2:
        return ["grateful", "supportive"]
    if score > -0.2:
        return ["neutral"]
    if score > -0.6:
        return ["disappointed", "critical"]
    return ["anger", "frustrated"]


class MockEngine(AnalysisEngine):
    """
    Deterministic lexical scorer with simulated cost.

    Score = 0.4 × (positive hits − negative hits), amplified by 10% per
    exclamation mark (up to five).  Ironic praise ("Oh wonderful...",
    positive words with "indeed") flips the score to at most -0.5.

    ``elapsed_ms`` reports a simulated latency of a fixed per-call cost plus
    a per-comment cost, so one batch is always cheaper than one call per
    comment.  Set ``simulate_delay`` to actually sleep for that long.
    """

    name = "MockEngine"
    engine_type = "mock"

    def __init__(self, config: EngineConfig | None = None, simulate_delay: bool = False) -> None:
        super().__init__(config)
        self.simulate_delay = simulate_delay

    @staticmethod
    def simulated_latency_ms(comment_count: int) -> int:
        return MOCK_CALL_LATENCY_MS + MOCK_PER_COMMENT_LATENCY_MS * comment_count

    def _wait(self, comment_count: int) -> int:
        latency = self.simulated_latency_ms(comment_count)
        if self.simulate_delay:
            time.sleep(latency / 1000)
        return latency

    def _judge(self, comment: Comment, axis: bool) -> StanceJudgment:
        lowered = comment.text.lower()
        positive = len(_POSITIVE_PATTERN.findall(lowered))
        negative = len(_NEGATIVE_PATTERN.findall(lowered))
        exclamations = min(
            comment.text.count("!") + comment.text.count("！"), MOCK_MAX_EXCLAMATIONS
        )
        is_sarcasm = any(phrase in lowered for phrase in IRONIC_PHRASES) or (
            positive > 0 and bool(_INDEED.search(lowered))
        )

        raw = MOCK_KEYWORD_WEIGHT * (positive - negative)
        raw *= 1 + MOCK_EXCLAMATION_BOOST * exclamations
        if is_sarcasm:
            raw = -max(abs(raw), MOCK_SARCASM_FLOOR)
        score = clamp_score(raw)

        reason = (
            f"Lexical cues: {positive} positive, {negative} negative, "
            f"{exclamations} exclamation(s)"
        )
        if is_sarcasm:
            reason += "; ironic praise detected"

        judgment = StanceJudgment(
            comment_id=comment.comment_id,
            score=score,
            weighted_score=calculate_weighted_score(score, comment.like_count),
            emotions=select_emotions(score, is_sarcasm),
            is_sarcasm=is_sarcasm,
            reason=reason,
        )
        if axis:
            is_question = comment.text.rstrip().endswith(("?", "？"))
            judgment.label = score_to_label(score)
            judgment.confidence = round(min(1.0, 0.5 + abs(score) / 2), 2)
            judgment.axis_evidence = f'Keyword cues in "{comment.text[:60]}"'
            if comment.is_reply:
                if is_question:
                    judgment.reply_relation = ReplyRelation.QUESTION
                elif score > 0.2:
                    judgment.reply_relation = ReplyRelation.AGREE
                elif score < -0.2:
                    judgment.reply_relation = ReplyRelation.DISAGREE
                else:
                    judgment.reply_relation = ReplyRelation.CLARIFY
            if is_sarcasm:
                judgment.speech_act = SpeechAct.SARCASM
            elif is_question:
                judgment.speech_act = SpeechAct.QUESTION
            elif score > 0.6:
                judgment.speech_act = SpeechAct.PRAISE
            else:
                judgment.speech_act = SpeechAct.ASSERTION
        return judgment

    def analyze_one(self, comment, video_context=None):
        self._wait(1)
        return self._judge(comment, axis=False)

    def analyze_batch(self, comments, axis_profile=None, video_context=None):
        if not comments:
            return BatchResult(judgments=[], elapsed_ms=0, tokens_used=0)

        axis = axis_profile is not None
        ordered = sort_comments_by_thread_order(comments) if axis else list(comments)
        judgments = [self._judge(comment, axis) for comment in ordered]
        if axis:
            judgments = finalize_axis_judgments(judgments, ordered)

        return BatchResult(
            judgments=restore_input_order(judgments, comments),
            elapsed_ms=self._wait(len(comments)),
            tokens_used=estimate_tokens("".join(c.text for c in comments)),
        )

    def generate_axis_profile(self, video_id, video):
        return fallback_axis_profile(video_id, video)

    def generate_context_summary(self, video):
        return fallback_context_summary(video)


# ---------------------------------------------------------------------------
# Remote engines
# ---------------------------------------------------------------------------


class RemoteEngine(AnalysisEngine):
    """
    Engine backed by a REST language-model API.

    Args:
        api_key: Backend credential.  Required; checked immediately.
        config: Batching limits; defaults per engine type.
        model_id: Overrides the backend's default model.
        max_attempts: Attempts per request for transient failures.
        sleep: Sleep function used between retries.

    Raises:
        ConfigurationError: ``api_key`` is missing.
    """

    backend_name = ""

    def __init__(
        self,
        api_key: str,
        config: EngineConfig | None = None,
        model_id: str | None = None,
        max_attempts: int = MAX_ATTEMPTS,
        sleep=time.sleep,
    ) -> None:
        if not api_key:
            raise ConfigurationError(f"{self.name} requires an API key.", engine=self.name)
        super().__init__(config)
        self._api_key = api_key
        self.backend = BACKEND_CONFIG[self.backend_name]
        self.model_id = model_id or self.backend["model_id"]
        self.max_attempts = max_attempts
        self._sleep = sleep

    def _generate(self, system_prompt: str, user_prompt: str, json_mode: bool = True) -> dict:
        return call_with_retry(
            lambda: execute_generation(
                self.backend,
                self._api_key,
                system_prompt,
                user_prompt,
                model_id=self.model_id,
                timeout_seconds=self._config.timeout_seconds,
                json_mode=json_mode,
            ),
            max_attempts=self.max_attempts,
            label=self.name,
            sleep=self._sleep,
        )

    def _recover_failed_generation(self, error: requests.RequestException) -> str | None:
        """Return usable text salvaged from an error response, if the backend offers any."""
        return None

    def _request(
        self,
        system_prompt: str,
        user_prompt: str,
        json_mode: bool = True,
    ) -> tuple[str | None, int]:
        """
        Issue one backend call.

        Returns:
            ``(raw_text, tokens_used)``, or ``(None, 0)`` when the backend
            refused the call for quota reasons.

        Raises:
            AnalysisError: ``BACKEND_ERROR`` for other request failures,
                ``INVALID_RESPONSE`` for an unrecognizable response envelope.
        """
        try:
            response = self._generate(system_prompt, user_prompt, json_mode)
        except requests.RequestException as exc:
            recovered = self._recover_failed_generation(exc)
            if recovered is not None:
                print(f"[{self.name}] Recovering output from a failed JSON validation")
                return recovered, estimate_tokens(user_prompt + recovered)

            category, message = APIError.categorize(exc, response_text_of(exc))
            if category == APIError.RATE_LIMIT:
                print(f"[{self.name}] Quota exceeded, returning fallback results: {message[:120]}")
                return None, 0
            raise AnalysisError(
                f"Backend request failed [{category}]: {message}",
                code="BACKEND_ERROR",
                cause=exc,
                engine=self.name,
            ) from exc
        except (KeyError, IndexError, ValueError) as exc:
            raise AnalysisError(
                f"Unrecognized backend response: {exc}",
                code="INVALID_RESPONSE",
                cause=exc,
                engine=self.name,
            ) from exc

        content = response["content"]
        tokens = response["tokens_used"] or estimate_tokens(user_prompt + content)
        return content, tokens

    def analyze_one(self, comment, video_context=None):
        """
        Judge a single comment with its own backend call.

        Raises:
            DecodeError: The reply could not be repaired into JSON.
            AnalysisError: ``INVALID_RECORD`` when the reply holds no usable
                record, or a request failure other than quota.
        """
        prompt = create_single_comment_prompt(comment, video_context)
        raw, _ = self._request(SYSTEM_PROMPT, prompt)
        if raw is None:
            return create_fallback_judgment(comment, QUOTA_REASON)

        records = extract_judgment_records(decode_model_json(raw, engine=self.name))
        if not records or not isinstance(records[0], dict):
            raise AnalysisError("Backend reply holds no judgment record", code="INVALID_RECORD", engine=self.name)
        # A single-comment reply is about this comment whatever ID it echoes
        record = {**records[0], "commentId": comment.comment_id}
        try:
            item = validate_judgment_record(record, require_score=True)
        except RecordValidationError as exc:
            raise AnalysisError(
                f"Backend returned an invalid record: {exc}",
                code="INVALID_RECORD",
                cause=exc,
                engine=self.name,
            ) from exc
        return build_judgment(comment, item, axis=False)

    def analyze_batch(self, comments, axis_profile=None, video_context=None):
        """
        Judge ``comments`` with a single backend call.

        With an axis profile, comments are sent parents-first and replies
        are reconciled with their parents by stance synthesis before the
        results are put back into the caller's order.

        Raises:
            DecodeError: The reply could not be repaired into JSON.
            AnalysisError: A request failure other than quota.
        """
        start = time.monotonic()
        if not comments:
            return BatchResult(judgments=[], elapsed_ms=0, tokens_used=0)

        axis = axis_profile is not None
        if axis:
            ordered = sort_comments_by_thread_order(comments)
            system_prompt = AXIS_SYSTEM_PROMPT
            prompt = create_axis_batch_prompt(ordered, axis_profile, video_context)
        else:
            ordered = list(comments)
            system_prompt = SYSTEM_PROMPT
            prompt = create_batch_prompt(ordered, video_context)

        print(f"[{self.name}] Analyzing batch of {len(comments)} comments...")
        raw, tokens = self._request(system_prompt, prompt)
        if raw is None:
            judgments = [
                create_fallback_judgment(c, QUOTA_REASON, axis=axis, evidence=QUOTA_EVIDENCE)
                for c in comments
            ]
            return BatchResult(judgments=judgments, elapsed_ms=_elapsed_ms(start), tokens_used=0, is_partial=True)

        records = extract_judgment_records(decode_model_json(raw, engine=self.name))
        print(f"[{self.name}] Parsed {len(records)} records for {len(comments)} comments")

        judgments = map_records_to_comments(ordered, records, axis=axis, engine_name=self.name)
        if axis:
            judgments = finalize_axis_judgments(judgments, ordered)

        return BatchResult(
            judgments=restore_input_order(judgments, comments),
            elapsed_ms=_elapsed_ms(start),
            tokens_used=tokens,
        )

    def generate_axis_profile(self, video_id, video):
        """
        Ask the backend for the video's axis profile.

        Falls back to a generic profile built from the title when the call
        fails, is rate limited, or returns nothing usable.
        """
        decoded = None
        try:
            raw, _ = self._request(AXIS_PROFILE_SYSTEM_PROMPT, create_axis_profile_prompt(video))
            if raw is not None:
                decoded = decode_model_json(raw, engine=self.name)
        except AnalysisError as exc:
            print(f"[{self.name}] Axis profile generation failed: {exc}")

        if not isinstance(decoded, dict):
            return fallback_axis_profile(video_id, video)

        return AxisProfile(
            video_id=video_id,
            main_axis=_text_or(decoded.get("mainAxis"), f"General discussion about {video.title}"),
            creator_position=_text_or(decoded.get("creatorPosition"), "The creator's perspective"),
            target_of_criticism=_text_or(decoded.get("targetOfCriticism"), None),
            supported_values=_text_or(decoded.get("supportedValues"), None),
            generated_at=_utc_now(),
        )

    def generate_context_summary(self, video):
        """Free-text stance summary of the video, or a description-based fallback."""
        try:
            raw, _ = self._request(
                CONTEXT_SUMMARY_SYSTEM_PROMPT,
                create_context_summary_prompt(video),
                json_mode=False,
            )
        except AnalysisError as exc:
            print(f"[{self.name}] Summary failed: {exc}")
            return fallback_context_summary(video)
        if raw is None:
            return fallback_context_summary(video)
        return raw.strip() or "Summary unavailable."


class GeminiEngine(RemoteEngine):
    name = "GeminiEngine"
    engine_type = "gemini"
    backend_name = "gemini"


class GroqEngine(RemoteEngine):
    """
    Groq chat-completions backend.

    With JSON mode on, Groq rejects malformed output with HTTP 400
    ``json_validate_failed`` but includes the text it generated; that text
    is fed through the decoder like a normal reply.
    """

    name = "GroqEngine"
    engine_type = "groq"
    backend_name = "groq"

    def _recover_failed_generation(self, error):
        response = getattr(error, "response", None)
        if response is None or response.status_code != 400:
            return None
        try:
            body = response.json()
        except ValueError:
            return None
        details = body.get("error") if isinstance(body, dict) else None
        if isinstance(details, dict) and details.get("code") == "json_validate_failed":
            return details.get("failed_generation") or None
        return None
