"""
Thread-aware stance synthesis.

A reply's stance toward the axis follows from its parent's stance and the
reply's relation to the parent: agreeing with an Oppose comment is itself
Oppose, disagreeing with it is Support, and so on.  The functions here are
pure; :func:`apply_stance_synthesis` returns new judgment objects and
leaves its inputs untouched.

Parents must be judged before their replies.  Use
:func:`sort_comments_by_thread_order` before building the prompt so the
backend sees (and returns) top-level comments first.
"""

from __future__ import annotations

from dataclasses import replace

from .records import Comment, ReplyRelation, StanceJudgment, StanceLabel

LABEL_SCORES: dict[str, float] = {
    StanceLabel.SUPPORT: 0.85,
    StanceLabel.OPPOSE: -0.85,
    StanceLabel.NEUTRAL: 0.0,
    StanceLabel.UNKNOWN: 0.0,
}

# Relations that carry no stance of their own
_STANCELESS_RELATIONS = frozenset(
    {ReplyRelation.UNRELATED, ReplyRelation.CLARIFY, ReplyRelation.QUESTION}
)

_REVERSED = {
    StanceLabel.SUPPORT: StanceLabel.OPPOSE,
    StanceLabel.OPPOSE: StanceLabel.SUPPORT,
    StanceLabel.NEUTRAL: StanceLabel.NEUTRAL,
}


def synthesize_stance(parent_label: str, reply_relation: str | None) -> str:
    """
    Derive a reply's label from its parent's label and their relation.

    | relation                      | result                                  |
    |-------------------------------|-----------------------------------------|
    | unrelated, clarify, question  | Neutral                                 |
    | disagree                      | Support↔Oppose, Neutral→Neutral, else Unknown |
    | agree                         | parent label                            |
    | anything else / None          | Unknown                                 |
    """
    if reply_relation in _STANCELESS_RELATIONS:
        return StanceLabel.NEUTRAL
    if reply_relation == ReplyRelation.DISAGREE:
        return _REVERSED.get(parent_label, StanceLabel.UNKNOWN)
    if reply_relation == ReplyRelation.AGREE:
        return parent_label
    return StanceLabel.UNKNOWN


def label_to_score(label: str) -> float:
    """
    Canonical score for a stance label.

    Raises:
        ValueError: ``label`` is not one of the four stance labels.
    """
    try:
        return LABEL_SCORES[label]
    except KeyError:
        raise ValueError(f"Unknown stance label: {label!r}") from None


def score_to_label(score: float) -> str:
    """Map a score to a label; only used when the backend gave no label."""
    if score >= 0.7:
        return StanceLabel.SUPPORT
    if score <= -0.7:
        return StanceLabel.OPPOSE
    if abs(score) < 0.3:
        return StanceLabel.NEUTRAL
    return StanceLabel.UNKNOWN


def sort_comments_by_thread_order(comments: list[Comment]) -> list[Comment]:
    """Stable partition: top-level comments first, then replies."""
    top_level = [c for c in comments if not c.is_reply]
    replies = [c for c in comments if c.is_reply]
    return top_level + replies


def apply_stance_synthesis(
    judgments: list[StanceJudgment],
    comments: list[Comment],
) -> list[StanceJudgment]:
    """
    Reconcile each reply's label with its parent's finalized label.

    Judgments are processed in list order, so a parent judged earlier in the
    same pass is seen with its own synthesized label.  Only direct
    parent→child edges are used.  A reply is passed through unchanged when
    its parent has no judgment or no label, or when the reply has no
    ``reply_relation``.

    For a synthesized reply the label is overwritten, the score reset from
    :data:`LABEL_SCORES`, and a provenance note appended to both
    ``axis_evidence`` and ``reason``.  ``weighted_score`` is NOT recomputed
    here; callers holding like counts must do that afterwards.

    Args:
        judgments: Engine output, one per comment.
        comments: The comments the judgments belong to.

    Returns:
        New list of judgments in the same order as ``judgments``.
    """
    comments_by_id = {c.comment_id: c for c in comments}
    finalized: dict[str, StanceJudgment] = {}
    result: list[StanceJudgment] = []

    for judgment in judgments:
        comment = comments_by_id.get(judgment.comment_id)
        parent = finalized.get(comment.parent_id) if comment and comment.parent_id else None

        if parent is None or parent.label is None or judgment.reply_relation is None:
            finalized[judgment.comment_id] = judgment
            result.append(judgment)
            continue

        original = judgment.label or "None"
        synthesized = synthesize_stance(parent.label, judgment.reply_relation)
        relation = judgment.reply_relation

        if judgment.axis_evidence:
            evidence = (
                f"{judgment.axis_evidence} "
                f"[Thread context: parent was {parent.label}, reply {relation}]"
            )
        else:
            evidence = f"Synthesized from parent ({parent.label}) + {relation}"
        note = (
            f"Original: {original} -> Synthesized: {synthesized} "
            f"(Parent: {parent.label}, Relation: {relation})"
        )
        reason = f"{judgment.reason} | {note}" if judgment.reason else note

        updated = replace(
            judgment,
            label=synthesized,
            score=label_to_score(synthesized),
            axis_evidence=evidence,
            reason=reason,
        )
        finalized[judgment.comment_id] = updated
        result.append(updated)

    return result
