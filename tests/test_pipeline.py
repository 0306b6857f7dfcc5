"""
End-to-end test of src/scoring/pipeline.py with the offline mock engine.
"""

from __future__ import annotations

import pandas as pd

from src.engine.engines import MockEngine
from src.engine.records import GroundTruthItem, StanceLabel
from src.scoring.pipeline import run_evaluation_pipeline

from .conftest import ENTHUSIASTIC_TEXT, FRUSTRATED_TEXT, PLAIN_TEXT, build_comment


class TestRunEvaluationPipeline:

    def test_pipeline_writes_every_artefact(self, tmp_path, axis_profile):
        comments = [
            build_comment("a", ENTHUSIASTIC_TEXT, author="u1"),
            build_comment("b", FRUSTRATED_TEXT, author="u2"),
            build_comment("c", PLAIN_TEXT, author="u1"),
        ]
        ground_truth = [
            GroundTruthItem("a", ENTHUSIASTIC_TEXT, StanceLabel.SUPPORT),
            GroundTruthItem("b", FRUSTRATED_TEXT, StanceLabel.SUPPORT),
            GroundTruthItem("c", PLAIN_TEXT, StanceLabel.NEUTRAL),
        ]

        summary = run_evaluation_pipeline(
            MockEngine(), comments, ground_truth, axis_profile=axis_profile, output_dir=tmp_path / "out"
        )

        evaluation = summary["evaluation"]
        assert evaluation.total_samples == 3
        assert evaluation.correct_predictions == 2
        assert [e.severity for e in evaluation.critical_errors] == ["high"]
        assert summary["is_partial"] is False
        assert summary["tokens_used"] > 0
        assert summary["distribution"]["unique_authors"] == 2

        outputs = summary["outputs"]
        assert all(path.exists() for path in outputs.values())

        judgments = pd.read_csv(outputs["judgments"], dtype={"comment_id": str})
        assert list(judgments["comment_id"]) == ["a", "b", "c"]
        assert list(judgments["label"]) == ["Support", "Oppose", "Neutral"]

        errors = pd.read_csv(outputs["critical_errors"], dtype={"comment_id": str})
        assert list(errors["comment_id"]) == ["b"]

        report = outputs["report"].read_text(encoding="utf-8")
        assert report.startswith("=== Stance Analysis Evaluation Report ===")
        assert "Accuracy: 66.67%" in report

    def test_pipeline_without_axis_profile_scores_nothing(self, tmp_path):
        comments = [build_comment("a", ENTHUSIASTIC_TEXT)]
        ground_truth = [GroundTruthItem("a", ENTHUSIASTIC_TEXT, StanceLabel.SUPPORT)]
        summary = run_evaluation_pipeline(MockEngine(), comments, ground_truth, output_dir=tmp_path)
        assert summary["evaluation"].total_samples == 0
        assert summary["evaluation"].accuracy == 0.0
        assert summary["agreement"]["kappa"] is None
