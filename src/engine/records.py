"""
Record model shared by the engine, synthesis, and scoring packages.

Comments, video context, and axis profiles are caller-owned and frozen.
StanceJudgment is produced by an engine and may be replaced (never mutated
in caller-visible collections) by stance synthesis.  Evaluation records are
derived values with no further lifecycle.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .errors import ConfigurationError

# ---------------------------------------------------------------------------
# Closed vocabularies
# ---------------------------------------------------------------------------


class StanceLabel:
    """Stance of a comment relative to the document's axis."""

    SUPPORT = "Support"
    OPPOSE = "Oppose"
    NEUTRAL = "Neutral"
    UNKNOWN = "Unknown"

    # Canonical order used for confusion matrices and reports
    ALL: tuple[str, ...] = (SUPPORT, OPPOSE, NEUTRAL, UNKNOWN)
    POLAR: frozenset[str] = frozenset({SUPPORT, OPPOSE})


class ReplyRelation:
    """Discourse function of a reply relative to its parent comment."""

    AGREE = "agree"
    DISAGREE = "disagree"
    CLARIFY = "clarify"
    QUESTION = "question"
    UNRELATED = "unrelated"

    ALL: tuple[str, ...] = (AGREE, DISAGREE, CLARIFY, QUESTION, UNRELATED)


class SpeechAct:
    ASSERTION = "assertion"
    QUESTION = "question"
    JOKE = "joke"
    SARCASM = "sarcasm"
    INSULT = "insult"
    PRAISE = "praise"
    OTHER = "other"

    ALL: tuple[str, ...] = (ASSERTION, QUESTION, JOKE, SARCASM, INSULT, PRAISE, OTHER)


EMOTION_TAGS: tuple[str, ...] = (
    "anger", "joy", "sadness", "fear", "surprise", "disgust", "empathy",
    "supportive", "funny", "critical", "grateful", "frustrated",
    "enthusiastic", "analytical", "sarcasm", "confused", "neutral",
    "disappointed", "excited",
)

# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Comment:
    """A user comment, optionally a reply to another comment."""

    comment_id: str
    text: str
    author: str = ""
    like_count: int = 0
    published_at: str | None = None
    parent_id: str | None = None
    parent_text: str | None = None  # Denormalized so prompts need no lookup

    @property
    def is_reply(self) -> bool:
        return self.parent_id is not None


@dataclass(frozen=True)
class VideoContext:
    """Metadata about the document the comments belong to."""

    title: str
    channel_name: str = ""
    description: str | None = None
    summary: str | None = None
    transcript: str | None = None


@dataclass(frozen=True)
class AxisProfile:
    """Central claim of a document and its creator's position on it.

    Produced once per document and reused for every batch of its comments.
    """

    video_id: str
    main_axis: str
    creator_position: str
    target_of_criticism: str | None = None
    supported_values: str | None = None
    generated_at: str = ""


@dataclass(frozen=True)
class EngineConfig:
    """Batching limits for an engine.  Replace, never mutate."""

    batch_size: int
    max_comments: int | None = None
    timeout_ms: int | None = None

    def __post_init__(self) -> None:
        for name in ("batch_size", "max_comments", "timeout_ms"):
            value = getattr(self, name)
            if value is None and name != "batch_size":
                continue
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ConfigurationError(
                    f"EngineConfig.{name} must be a positive integer, got {value!r}"
                )

    @property
    def timeout_seconds(self) -> float | None:
        return self.timeout_ms / 1000 if self.timeout_ms else None


# ---------------------------------------------------------------------------
# Engine outputs
# ---------------------------------------------------------------------------


@dataclass
class StanceJudgment:
    """Engine verdict for a single comment.

    ``score`` and ``weighted_score`` are always within [-1, 1].  The axis
    fields (``label`` onward) are only populated by axis-aware analysis.
    """

    comment_id: str
    score: float
    weighted_score: float
    emotions: list[str] = field(default_factory=lambda: ["neutral"])
    is_sarcasm: bool = False
    reason: str | None = None
    label: str | None = None
    confidence: float | None = None
    axis_evidence: str | None = None
    reply_relation: str | None = None
    speech_act: str | None = None


@dataclass
class BatchResult:
    """Outcome of one ``analyze_batch`` call.

    ``is_partial`` is True when every judgment is a fallback because the
    backend refused the call for quota reasons.
    """

    judgments: list[StanceJudgment]
    elapsed_ms: int
    tokens_used: int | None = None
    is_partial: bool = False


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GroundTruthItem:
    comment_id: str
    text: str
    expected_label: str
    notes: str | None = None


@dataclass
class CriticalError:
    """A mislabelled comment severe enough to be reported on its own."""

    comment_id: str
    text: str
    expected: str
    predicted: str
    severity: str  # 'high' | 'medium' | 'low'
    reason: str = "No reason provided"


@dataclass
class LabelMetrics:
    label: str
    precision: float
    recall: float
    f1_score: float


@dataclass
class EvaluationResult:
    """Scores of a set of judgments against labelled ground truth.

    ``confusion_matrix[expected][predicted]`` counts scored pairs.
    """

    total_samples: int
    correct_predictions: int
    accuracy: float
    confusion_matrix: dict[str, dict[str, int]]
    critical_errors: list[CriticalError] = field(default_factory=list)
    per_label_metrics: list[LabelMetrics] = field(default_factory=list)
