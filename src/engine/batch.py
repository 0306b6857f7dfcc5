"""
Multi-batch orchestration for comment collections larger than one call.

Engines judge one batch per backend call.  This module splits a collection
into batches that never separate a reply from its thread (stance synthesis
only works within a batch), runs them strictly in sequence, and stitches
the results back into the caller's order.
"""

from __future__ import annotations

from collections import Counter

from .engines import AnalysisEngine, restore_input_order
from .records import AxisProfile, BatchResult, Comment, StanceJudgment, StanceLabel, VideoContext


def group_comment_threads(comments: list[Comment]) -> list[list[Comment]]:
    """
    Group comments by thread, in order of each thread's first appearance.

    A thread is keyed by its top-most comment present in ``comments``;
    replies whose parent is absent are grouped by that parent's ID so that
    siblings still travel together.
    """
    parents = {c.comment_id: c.parent_id for c in comments}

    def thread_key(comment_id: str) -> str:
        seen = set()
        while parents.get(comment_id) in parents and comment_id not in seen:
            seen.add(comment_id)
            comment_id = parents[comment_id]
        return parents.get(comment_id) or comment_id

    threads: dict[str, list[Comment]] = {}
    for comment in comments:
        threads.setdefault(thread_key(comment.comment_id), []).append(comment)
    return list(threads.values())


def plan_comment_batches(
    comments: list[Comment],
    batch_size: int,
    max_comments: int | None = None,
) -> list[list[Comment]]:
    """
    Split comments into thread-preserving batches.

    Args:
        comments: Comments in caller order.
        batch_size: Maximum comments per batch.
        max_comments: Only the first ``max_comments`` comments are planned.

    Returns:
        List of batches.  Whole threads are packed greedily; a thread longer
        than ``batch_size`` is split across consecutive batches.
    """
    if max_comments is not None and len(comments) > max_comments:
        print(f"Limiting analysis to the first {max_comments} of {len(comments)} comments")
        comments = comments[:max_comments]

    batches: list[list[Comment]] = []
    current: list[Comment] = []

    for thread in group_comment_threads(comments):
        if len(thread) > batch_size:
            print(
                f"  WARNING: thread of {len(thread)} comments exceeds batch size "
                f"{batch_size}; replies may be synthesized without their parent"
            )
            if current:
                batches.append(current)
                current = []
            for start in range(0, len(thread), batch_size):
                batches.append(thread[start:start + batch_size])
            continue

        if len(current) + len(thread) > batch_size:
            batches.append(current)
            current = []
        current.extend(thread)

    if current:
        batches.append(current)
    return batches


def analyze_comments(
    engine: AnalysisEngine,
    comments: list[Comment],
    axis_profile: AxisProfile | None = None,
    video_context: VideoContext | None = None,
) -> BatchResult:
    """
    Analyze a whole comment collection with sequential batch calls.

    Batch limits come from ``engine.get_config()``.  Decode and backend
    errors propagate from the failing batch; quota fallbacks mark the
    combined result partial.

    Returns:
        Combined :class:`BatchResult` with one judgment per planned comment
        in caller order, summed elapsed time and tokens.
    """
    config = engine.get_config()
    batches = plan_comment_batches(comments, config.batch_size, config.max_comments)
    planned = [comment for batch in batches for comment in batch]
    planned_ids = {c.comment_id for c in planned}

    judgments: list[StanceJudgment] = []
    elapsed_ms = 0
    tokens_used = 0
    is_partial = False

    for i, batch in enumerate(batches, start=1):
        print(f"[{i}/{len(batches)}] {engine.name}: {len(batch)} comments")
        result = engine.analyze_batch(batch, axis_profile=axis_profile, video_context=video_context)
        judgments.extend(result.judgments)
        elapsed_ms += result.elapsed_ms
        tokens_used += result.tokens_used or 0
        is_partial = is_partial or result.is_partial

    ordered = [c for c in comments if c.comment_id in planned_ids]
    return BatchResult(
        judgments=restore_input_order(judgments, ordered),
        elapsed_ms=elapsed_ms,
        tokens_used=tokens_used,
        is_partial=is_partial,
    )


def calculate_distribution(
    judgments: list[StanceJudgment],
    comments: list[Comment] | None = None,
) -> dict:
    """
    Summarize judgments into sentiment bands and stance label counts.

    Bands: positive (score > 0.2), negative (score < -0.2), neutral otherwise.

    Returns:
        Dict with keys ``positive``, ``neutral``, ``negative``, ``total``,
        ``labels`` (count per stance label, all four present) and, when
        ``comments`` is given, ``unique_authors``.
    """
    positive = sum(1 for j in judgments if j.score > 0.2)
    negative = sum(1 for j in judgments if j.score < -0.2)
    label_counts = Counter(j.label for j in judgments if j.label is not None)

    distribution = {
        "positive": positive,
        "neutral": len(judgments) - positive - negative,
        "negative": negative,
        "total": len(judgments),
        "labels": {label: label_counts.get(label, 0) for label in StanceLabel.ALL},
    }
    if comments is not None:
        distribution["unique_authors"] = len({c.author for c in comments})
    return distribution
