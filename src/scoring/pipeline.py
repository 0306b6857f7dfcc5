"""
Orchestrates the analyze-and-evaluate pipeline.

This module is the single entry point for scoring an engine against labelled
comments.  It runs the engine over the comments, scores the judgments, and
writes every artefact to one output directory.

Pipeline steps:
  Step 1: Stance analysis (src.engine.batch, sequential thread-safe batches)
  Step 2: Accuracy, confusion matrix and critical errors (evaluation module)
  Step 3: Agreement statistics: Wilson CI and Cohen's kappa (evaluation module)
  Step 4: Exports: judgments, matrix, errors, text report
"""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from pathlib import Path

import pandas as pd

from src.engine.batch import analyze_comments, calculate_distribution
from src.engine.engines import AnalysisEngine
from src.engine.records import AxisProfile, Comment, GroundTruthItem, VideoContext

from .config import (
    CONFUSION_MATRIX_FILE,
    CRITICAL_ERRORS_FILE,
    JUDGMENTS_FILE,
    REPORT_FILE,
    RESULTS_DIR,
)
from .evaluation import (
    calculate_agreement_statistics,
    confusion_matrix_frame,
    critical_errors_frame,
    evaluate_accuracy,
)
from .report import generate_evaluation_report, print_evaluation_summary


def run_evaluation_pipeline(
    engine: AnalysisEngine,
    comments: list[Comment],
    ground_truth: list[GroundTruthItem],
    axis_profile: AxisProfile | None = None,
    video_context: VideoContext | None = None,
    output_dir: Path = RESULTS_DIR,
) -> dict:
    """
    Analyze ``comments`` with ``engine`` and score the result.

    Args:
        engine: Any analysis engine.
        comments: Comments to analyze; those with ground truth are scored.
        ground_truth: Expected stance labels.
        axis_profile: Enables axis-aware analysis (required for labels).
        video_context: Optional video metadata passed to the prompts.
        output_dir: Directory for the CSV exports and the text report.

    Returns:
        Dict with keys ``evaluation`` (EvaluationResult), ``agreement``,
        ``distribution``, ``is_partial``, ``elapsed_ms``, ``tokens_used``
        and ``outputs`` (name → Path).
    """
    pipeline_start = datetime.now()
    sep = "=" * 70

    print(f"\n{sep}")
    print("EVALUATION PIPELINE — START")
    print(f"  Engine:       {engine.name}")
    print(f"  Comments:     {len(comments)}")
    print(f"  Ground truth: {len(ground_truth)}")
    print(f"{sep}\n")

    # ------------------------------------------------------------------
    # Step 1: Stance analysis
    # ------------------------------------------------------------------
    print("STEP 1: Stance analysis")
    batch = analyze_comments(engine, comments, axis_profile=axis_profile, video_context=video_context)
    if batch.is_partial:
        print("  WARNING: backend quota hit; some judgments are fallbacks")

    # ------------------------------------------------------------------
    # Step 2: Accuracy
    # ------------------------------------------------------------------
    print("\nSTEP 2: Accuracy against ground truth")
    evaluation = evaluate_accuracy(batch.judgments, ground_truth)

    # ------------------------------------------------------------------
    # Step 3: Agreement statistics
    # ------------------------------------------------------------------
    print("\nSTEP 3: Agreement statistics")
    agreement = calculate_agreement_statistics(batch.judgments, ground_truth)
    print_evaluation_summary(evaluation, agreement)

    # ------------------------------------------------------------------
    # Step 4: Exports
    # ------------------------------------------------------------------
    print("\nSTEP 4: Exports")
    output_dir.mkdir(parents=True, exist_ok=True)
    outputs = {
        "judgments": output_dir / JUDGMENTS_FILE,
        "confusion_matrix": output_dir / CONFUSION_MATRIX_FILE,
        "critical_errors": output_dir / CRITICAL_ERRORS_FILE,
        "report": output_dir / REPORT_FILE,
    }

    judgments_df = pd.DataFrame([asdict(j) for j in batch.judgments])
    if not judgments_df.empty:
        judgments_df["emotions"] = judgments_df["emotions"].apply(";".join)
    judgments_df.to_csv(outputs["judgments"], index=False)
    confusion_matrix_frame(evaluation).to_csv(outputs["confusion_matrix"])
    critical_errors_frame(evaluation).to_csv(outputs["critical_errors"], index=False)
    outputs["report"].write_text(generate_evaluation_report(evaluation) + "\n", encoding="utf-8")

    for name, path in outputs.items():
        print(f"  {name:<17} → {path}")

    elapsed = datetime.now() - pipeline_start
    print(f"\n{sep}")
    print("EVALUATION PIPELINE — COMPLETE")
    print(f"  Accuracy: {evaluation.accuracy:.1%} ({evaluation.correct_predictions}/{evaluation.total_samples})")
    print(f"  Elapsed:  {elapsed}")
    print(f"{sep}\n")

    return {
        "evaluation": evaluation,
        "agreement": agreement,
        "distribution": calculate_distribution(batch.judgments, comments),
        "is_partial": batch.is_partial,
        "elapsed_ms": batch.elapsed_ms,
        "tokens_used": batch.tokens_used,
        "outputs": outputs,
    }
