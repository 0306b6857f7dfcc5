"""
Stance accuracy against labelled ground truth.

Scoring rules:
- Only judgments that carry a label AND have a ground-truth entry are
  scored; everything else is left out of the denominator.
- Accuracy is correct / scored, and 0.0 (never NaN) when nothing is scored.
- ``confusion_matrix[expected][predicted]`` counts every scored pair.
- Mismatches are tiered: Support↔Oppose is ``high``, a polar label against
  Neutral is ``medium``, anything involving Unknown is ``low``.

Ground truth can be built in code, taken from :func:`create_sample_test_set`,
or loaded from CSV with :func:`load_ground_truth`.  :func:`create_mock_dataset`
builds synthetic comments for offline runs with the mock engine.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path

import numpy as np
import pandas as pd
from scipy import stats

from src.engine.records import (
    Comment,
    CriticalError,
    EvaluationResult,
    GroundTruthItem,
    LabelMetrics,
    StanceJudgment,
    StanceLabel,
    VideoContext,
)

from .config import (
    CONFIDENCE_LEVEL,
    GROUND_TRUTH_COLUMNS,
    LABEL_ORDER,
    MOCK_CHANNEL_NAMES,
    MOCK_COMMENT_TEXTS,
    MOCK_MAX_HOURS,
    MOCK_MAX_LIKES,
    MOCK_PUBLISHED_AT,
    MOCK_VIDEO_TITLES,
    SEVERITY_HIGH,
    SEVERITY_LOW,
    SEVERITY_MEDIUM,
)

# ---------------------------------------------------------------------------
# Ground truth
# ---------------------------------------------------------------------------


def create_sample_test_set() -> list[GroundTruthItem]:
    """Five hand-labelled comments covering every stance label, including sarcasm."""
    return [
        GroundTruthItem(
            comment_id="test1",
            text="完全に同意します！実践が大切ですね",
            expected_label=StanceLabel.SUPPORT,
            notes="Direct agreement with creator's values",
        ),
        GroundTruthItem(
            comment_id="test2",
            text="理論も重要だと思います",
            expected_label=StanceLabel.OPPOSE,
            notes="Defends what creator criticizes",
        ),
        GroundTruthItem(
            comment_id="test3",
            text="この本はどこで買えますか？",
            expected_label=StanceLabel.NEUTRAL,
            notes="On-topic but no stance",
        ),
        GroundTruthItem(
            comment_id="test4",
            text="初見です",
            expected_label=StanceLabel.UNKNOWN,
            notes="No clear relation to topic",
        ),
        GroundTruthItem(
            comment_id="test5",
            text="さすが！理論なしで成功できるなんて天才ですね（笑）",
            expected_label=StanceLabel.OPPOSE,
            notes="Sarcastic praise = opposition",
        ),
    ]


def create_mock_dataset(
    comment_count: int = 20,
    seed: int | None = None,
) -> tuple[VideoContext, list[Comment]]:
    """
    Build a synthetic video and its top-level comments for offline runs.

    Texts, titles and channel names are drawn from fixed pools, and comments
    are spread over the first ``MOCK_MAX_HOURS`` after publication.

    Args:
        comment_count: Number of comments to generate.
        seed: Random seed; the same seed always yields the same dataset.

    Returns:
        Tuple of (video context, comments).

    Raises:
        ValueError: ``comment_count`` is negative.
    """
    if comment_count < 0:
        raise ValueError(f"comment_count must be >= 0, got {comment_count}")

    rng = np.random.default_rng(seed)
    video = VideoContext(
        title=str(rng.choice(MOCK_VIDEO_TITLES)),
        channel_name=str(rng.choice(MOCK_CHANNEL_NAMES)),
        description="A comprehensive tutorial covering everything you need to know.",
    )

    published = datetime.fromisoformat(MOCK_PUBLISHED_AT.replace("Z", "+00:00"))
    comments = []
    for i in range(comment_count):
        posted = published + timedelta(hours=int(rng.integers(0, MOCK_MAX_HOURS)))
        comments.append(Comment(
            comment_id=f"mock{i + 1}",
            text=str(rng.choice(MOCK_COMMENT_TEXTS)),
            author=f"User{int(rng.integers(0, 10000))}",
            like_count=int(rng.integers(0, MOCK_MAX_LIKES)),
            published_at=posted.strftime("%Y-%m-%dT%H:%M:%SZ"),
        ))
    return video, comments


def load_ground_truth(path: Path) -> list[GroundTruthItem]:
    """
    Load labelled comments from a CSV file.

    Required columns: ``comment_id``, ``text``, ``expected_label``; an
    optional ``notes`` column is carried through.

    Args:
        path: CSV file path.

    Returns:
        Ground-truth items in file order.

    Raises:
        FileNotFoundError: ``path`` does not exist.
        ValueError: A required column is missing or a label is not one of
            the four stance labels.
    """
    if not path.exists():
        raise FileNotFoundError(f"Ground truth file not found: {path}")

    df = pd.read_csv(path, dtype={"comment_id": str}, keep_default_na=False)
    missing = [col for col in GROUND_TRUTH_COLUMNS if col not in df.columns]
    if missing:
        raise ValueError(f"Ground truth file {path.name} is missing columns: {missing}")

    invalid = sorted(set(df["expected_label"]) - set(LABEL_ORDER))
    if invalid:
        raise ValueError(f"Unknown stance labels in {path.name}: {invalid}")

    items = [
        GroundTruthItem(
            comment_id=str(row["comment_id"]),
            text=str(row["text"]),
            expected_label=row["expected_label"],
            notes=(row.get("notes") or None) if "notes" in df.columns else None,
        )
        for _, row in df.iterrows()
    ]

    counts = df["expected_label"].value_counts()
    print(f"Ground truth loaded: {path.name}")
    print(f"  Items: {len(items)}")
    for label in LABEL_ORDER:
        print(f"  {label + ':':<9}{int(counts.get(label, 0))}")

    return items


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------


def classify_error_severity(expected: str, predicted: str) -> str | None:
    """
    Severity tier of a mismatch, or ``None`` when it is not critical.

    Matching labels are never critical.
    """
    if expected == predicted:
        return None
    pair = {expected, predicted}
    if pair == StanceLabel.POLAR:
        return SEVERITY_HIGH
    if StanceLabel.NEUTRAL in pair and pair & StanceLabel.POLAR:
        return SEVERITY_MEDIUM
    if StanceLabel.UNKNOWN in pair:
        return SEVERITY_LOW
    return None


def empty_confusion_matrix() -> dict[str, dict[str, int]]:
    return {expected: {predicted: 0 for predicted in LABEL_ORDER} for expected in LABEL_ORDER}


def calculate_label_metrics(matrix: dict[str, dict[str, int]]) -> list[LabelMetrics]:
    """
    Per-label precision, recall and F1 from a confusion matrix.

    Any ratio with a zero denominator is reported as 0.0.
    """
    metrics = []
    for label in LABEL_ORDER:
        tp = matrix[label][label]
        fp = sum(matrix[other][label] for other in LABEL_ORDER if other != label)
        fn = sum(matrix[label][other] for other in LABEL_ORDER if other != label)

        precision = tp / (tp + fp) if tp + fp else 0.0
        recall = tp / (tp + fn) if tp + fn else 0.0
        f1 = 2 * precision * recall / (precision + recall) if precision + recall else 0.0
        metrics.append(LabelMetrics(label=label, precision=precision, recall=recall, f1_score=f1))
    return metrics


def _scored_pairs(
    judgments: list[StanceJudgment],
    ground_truth: list[GroundTruthItem],
) -> list[tuple[StanceJudgment, GroundTruthItem]]:
    truth_by_id = {item.comment_id: item for item in ground_truth}
    return [
        (judgment, truth_by_id[judgment.comment_id])
        for judgment in judgments
        if judgment.label is not None and judgment.comment_id in truth_by_id
    ]


def evaluate_accuracy(
    judgments: list[StanceJudgment],
    ground_truth: list[GroundTruthItem],
) -> EvaluationResult:
    """
    Score stance judgments against ground truth.

    Args:
        judgments: Engine output; unlabeled judgments are ignored.
        ground_truth: Expected labels keyed by comment ID.

    Returns:
        :class:`EvaluationResult` with accuracy, confusion matrix, critical
        errors (in judgment order) and per-label metrics.
    """
    matrix = empty_confusion_matrix()
    critical_errors: list[CriticalError] = []
    correct = 0

    pairs = _scored_pairs(judgments, ground_truth)
    for judgment, truth in pairs:
        expected, predicted = truth.expected_label, judgment.label
        matrix[expected][predicted] += 1

        if expected == predicted:
            correct += 1
            continue

        severity = classify_error_severity(expected, predicted)
        if severity is not None:
            critical_errors.append(
                CriticalError(
                    comment_id=judgment.comment_id,
                    text=truth.text,
                    expected=expected,
                    predicted=predicted,
                    severity=severity,
                    reason=judgment.reason or "No reason provided",
                )
            )

    total = len(pairs)
    return EvaluationResult(
        total_samples=total,
        correct_predictions=correct,
        accuracy=correct / total if total else 0.0,
        confusion_matrix=matrix,
        critical_errors=critical_errors,
        per_label_metrics=calculate_label_metrics(matrix),
    )


# ---------------------------------------------------------------------------
# Agreement statistics
# ---------------------------------------------------------------------------


def _wilson_ci(
    proportion: float,
    n: int,
    confidence: float = CONFIDENCE_LEVEL,
) -> tuple[float, float]:
    """
    Compute Wilson score confidence interval for a proportion.

    Args:
        proportion: Observed proportion of successes.
        n: Sample size (must be positive).
        confidence: Confidence level.

    Returns:
        Tuple of (lower_bound, upper_bound).
    """
    z = stats.norm.ppf((1 + confidence) / 2)
    denom = 1 + z**2 / n
    center = (proportion + z**2 / (2 * n)) / denom
    margin = z * np.sqrt(proportion * (1 - proportion) / n + z**2 / (4 * n**2)) / denom
    return (float(center - margin), float(center + margin))


def calculate_agreement_statistics(
    judgments: list[StanceJudgment],
    ground_truth: list[GroundTruthItem],
    confidence: float = CONFIDENCE_LEVEL,
) -> dict:
    """
    Confidence interval on accuracy and chance-corrected agreement.

    Uses the same scored pairs as :func:`evaluate_accuracy`.

    Returns:
        Dict with keys ``sample_size``, ``accuracy``, ``ci_lower``,
        ``ci_upper`` and ``kappa`` (Cohen's kappa).  Interval bounds and
        kappa are ``None`` when nothing is scored; kappa is also ``None``
        when it is undefined (a single label on both sides).
    """
    from sklearn.metrics import cohen_kappa_score

    pairs = _scored_pairs(judgments, ground_truth)
    n = len(pairs)
    if n == 0:
        return {"sample_size": 0, "accuracy": 0.0, "ci_lower": None, "ci_upper": None, "kappa": None}

    expected = np.array([truth.expected_label for _, truth in pairs])
    predicted = np.array([judgment.label for judgment, _ in pairs])
    accuracy = float((expected == predicted).mean())
    ci_lower, ci_upper = _wilson_ci(accuracy, n, confidence)

    kappa = None
    if len(set(expected) | set(predicted)) > 1:
        value = cohen_kappa_score(expected, predicted, labels=list(LABEL_ORDER))
        kappa = None if np.isnan(value) else round(float(value), 3)

    return {
        "sample_size": n,
        "accuracy": accuracy,
        "ci_lower": ci_lower,
        "ci_upper": ci_upper,
        "kappa": kappa,
    }


# ---------------------------------------------------------------------------
# Tabular views
# ---------------------------------------------------------------------------


def confusion_matrix_frame(result: EvaluationResult) -> pd.DataFrame:
    """Confusion matrix as a DataFrame: rows expected, columns predicted."""
    frame = pd.DataFrame(
        [[result.confusion_matrix[e][p] for p in LABEL_ORDER] for e in LABEL_ORDER],
        index=list(LABEL_ORDER),
        columns=list(LABEL_ORDER),
    )
    frame.index.name = "expected"
    return frame


def critical_errors_frame(result: EvaluationResult) -> pd.DataFrame:
    columns = ["comment_id", "severity", "expected", "predicted", "text", "reason"]
    return pd.DataFrame(
        [{col: getattr(err, col) for col in columns} for err in result.critical_errors],
        columns=columns,
    )
