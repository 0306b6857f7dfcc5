"""
Human-readable evaluation report.

The layout is fixed so two reports of the same result are byte-identical;
all numbers come straight from the :class:`EvaluationResult`.
"""

from __future__ import annotations

from src.engine.records import EvaluationResult

from .config import (
    LABEL_ORDER,
    MATRIX_CELL_WIDTH,
    MATRIX_LABEL_WIDTH,
    REPORT_TEXT_EXCERPT,
    REPORT_TOP_ERRORS,
    SEVERITY_HIGH,
)


def _percent(value: float) -> str:
    return f"{value * 100:.2f}%"


def generate_evaluation_report(result: EvaluationResult) -> str:
    """
    Render overall accuracy, per-label metrics, the confusion matrix and the
    top high-severity errors as plain text.
    """
    lines = [
        "=== Stance Analysis Evaluation Report ===",
        "",
        f"Total Samples: {result.total_samples}",
        f"Correct Predictions: {result.correct_predictions}",
        f"Accuracy: {_percent(result.accuracy)}",
        "",
        "--- Per-Label Metrics ---",
    ]
    for metric in result.per_label_metrics:
        lines += [
            f"{metric.label}:",
            f"  Precision: {_percent(metric.precision)}",
            f"  Recall: {_percent(metric.recall)}",
            f"  F1-Score: {_percent(metric.f1_score)}",
        ]

    header = " " * MATRIX_LABEL_WIDTH + " " + "".join(
        label.rjust(MATRIX_CELL_WIDTH) for label in LABEL_ORDER
    )
    lines += ["", "--- Confusion Matrix ---", " " * MATRIX_LABEL_WIDTH + " Predicted:", header]
    for expected in LABEL_ORDER:
        row = "".join(
            str(result.confusion_matrix[expected][predicted]).rjust(MATRIX_CELL_WIDTH)
            for predicted in LABEL_ORDER
        )
        lines.append(f"{expected.ljust(MATRIX_LABEL_WIDTH)} {row}")

    if result.critical_errors:
        lines += ["", "--- Critical Errors ---", f"Total: {len(result.critical_errors)}"]
        high = [err for err in result.critical_errors if err.severity == SEVERITY_HIGH]
        if high:
            lines += ["", f"High Severity (Reversals): {len(high)}"]
            for err in high[:REPORT_TOP_ERRORS]:
                lines.append(f"  - [{err.comment_id}] Expected: {err.expected}, Got: {err.predicted}")
                lines.append(f'    Text: "{err.text[:REPORT_TEXT_EXCERPT]}..."')

    return "\n".join(lines)


def print_evaluation_summary(result: EvaluationResult, agreement: dict | None = None) -> None:
    """Print the report, followed by agreement statistics when given."""
    print(generate_evaluation_report(result))
    if agreement and agreement.get("sample_size"):
        print("\n--- Agreement ---")
        if agreement["ci_lower"] is not None:
            print(
                f"Accuracy 95% CI: [{_percent(agreement['ci_lower'])}, "
                f"{_percent(agreement['ci_upper'])}]"
            )
        kappa = agreement.get("kappa")
        print(f"Cohen's kappa: {kappa:.3f}" if kappa is not None else "Cohen's kappa: n/a")
