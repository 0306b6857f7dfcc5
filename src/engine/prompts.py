"""
Prompt construction for stance and sentiment analysis.

All functions are pure: identical inputs render byte-identical text (no
timestamps, no randomness, stable JSON key order), so every prompt can be
asserted against directly in unit tests.  Nothing here touches the network.
"""

from __future__ import annotations

import json

from .config import DESCRIPTION_LIMIT, TRANSCRIPT_LIMIT
from .records import EMOTION_TAGS, AxisProfile, Comment, VideoContext

_EMOTION_LIST = ", ".join(f'"{tag}"' for tag in EMOTION_TAGS)

# ---------------------------------------------------------------------------
# System prompts
# ---------------------------------------------------------------------------

SYSTEM_PROMPT = f"""You analyze comments posted under an online video.

For each comment decide how it aligns with the video creator, using the
video context when it is provided.

### ROLES
- Creator: the channel owner.
- Opponent: any person, group, or idea the creator argues against.
- Topic: the general subject of the video.

### ALIGNMENT
- Agreeing with the creator's message, or attacking what the creator
  attacks, is POSITIVE (up to +1.0).
- Attacking the creator, defending what the creator attacks, or praising
  someone else to mock the creator is NEGATIVE (down to -1.0).
- Questioning the creator's standing to speak ("look who's talking") is
  NEGATIVE.
- A general remark about the topic is NEUTRAL (0.0).

### SARCASM
Praise used ironically to highlight a failure is sarcasm: set
"isSarcasm" to true and score the real meaning, not the surface words.

### SCHEMA RULES
- "score": a plain number between -1.0 and 1.0. Write 0.8, never +0.8.
- "isSarcasm": a bare boolean. Write true, never "true".
- "emotions": one or more of {_EMOTION_LIST}.
- "reason": one line, no double quotes or backslashes inside.
- No trailing commas and no extra closing brackets.

Return ONLY this JSON, without preamble:
{{
  "comments": [
    {{
      "commentId": "...",
      "reason": "Target: [Creator/Opponent/Topic/Other]. Reason: ...",
      "score": 0.8,
      "emotions": ["supportive"],
      "isSarcasm": false
    }}
  ]
}}"""

AXIS_SYSTEM_PROMPT = f"""You classify the stance of video comments toward the video's MAIN AXIS.

The main axis is the central claim or question the video takes a position
on.  Judge the commenter's position on that claim, not their feelings
about the creator as a person.

### LABELS
- "Support": agrees with the creator's position on the axis.
- "Oppose": disagrees with the creator's position on the axis.
- "Neutral": on topic, but takes no clear position.
- "Unknown": off topic, unclear, or not enough context. Prefer this over
  guessing.

### REPLIES
When a comment has "parentText", first decide its relation to the parent:
- "agree": affirms or builds on the parent's point.
- "disagree": contradicts or argues against the parent.
- "clarify": adds context or explanation.
- "question": asks for more information.
- "unrelated": changes the subject.

### SCORE
Keep "score" consistent with the label: Support 0.7 to 1.0, Neutral -0.3
to 0.3, Oppose -1.0 to -0.7, Unknown 0.0.

### RULES
1. Positive words used to mock mean "Oppose" with "isSarcasm": true.
2. Quote the phrases that justify the label in "axisEvidence".
3. "confidence" is a number from 0.0 to 1.0 reflecting how clear the
   stance is.
4. "emotions" uses only {_EMOTION_LIST}.

Return ONLY valid JSON in this shape, without preamble or trailing commas:
{{
  "comments": [
    {{
      "commentId": "...",
      "label": "Support",
      "confidence": 0.85,
      "axisEvidence": "Says '...' which echoes the creator's position",
      "replyRelation": "agree",
      "speechAct": "assertion",
      "score": 0.8,
      "emotions": ["supportive"],
      "isSarcasm": false,
      "reason": "Brief explanation"
    }}
  ]
}}

"speechAct" is one of "assertion", "question", "joke", "sarcasm",
"insult", "praise", "other"."""

AXIS_PROFILE_SYSTEM_PROMPT = (
    "You extract the stance profile of a video so that its comments can be "
    "classified for or against the video's central claim."
)

CONTEXT_SUMMARY_SYSTEM_PROMPT = "You summarize what a video argues and whom it argues against."

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _serialize_comments(comments: list[Comment], include_parent_id: bool = False) -> str:
    payload = []
    for comment in comments:
        item = {
            "commentId": comment.comment_id,
            "author": comment.author,
            "text": comment.text,
            "parentText": comment.parent_text,
        }
        if include_parent_id:
            item["parentId"] = comment.parent_id
        payload.append(item)
    return json.dumps(payload, indent=2, ensure_ascii=False)


def _video_context_block(video_context: VideoContext | None) -> str:
    if video_context is None:
        return ""
    summary = video_context.summary or "No summary available."
    return (
        "### VIDEO CONTEXT (READ THIS FIRST)\n"
        f'Creator: "{video_context.channel_name}"\n'
        f'Title: "{video_context.title}"\n\n'
        "--- VIDEO SUMMARY & STANCE ---\n"
        f"{summary}\n"
        "------------------------------\n\n"
    )


# ---------------------------------------------------------------------------
# Comment prompts
# ---------------------------------------------------------------------------


def create_batch_prompt(
    comments: list[Comment],
    video_context: VideoContext | None = None,
) -> str:
    """
    Render the user prompt for a plain (non-axis) batch call.

    Args:
        comments: Comments to judge, in the order they should be listed.
        video_context: Optional video metadata shown before the comments.

    Returns:
        Prompt text asking for one record per ``commentId``.
    """
    return (
        f"{_video_context_block(video_context)}"
        f"Analyze {len(comments)} comments.\n\n"
        "Use the video summary to identify the creator's opponents. "
        "Support for those opponents MUST be scored as negative.\n\n"
        "Return one entry per comment, keyed by its commentId.\n\n"
        "Comments to analyze:\n"
        f"{_serialize_comments(comments)}\n\n"
        f"Emotion tags: {_EMOTION_LIST}"
    )


def create_single_comment_prompt(
    comment: Comment,
    video_context: VideoContext | None = None,
) -> str:
    """Render the user prompt for judging one comment on its own."""
    context = ""
    if video_context is not None:
        context = (
            f'Creator: "{video_context.channel_name}"\n'
            f'Video: "{video_context.title}"\n\n'
        )
    parent = ""
    if comment.parent_text:
        parent = f"In reply to: {json.dumps(comment.parent_text, ensure_ascii=False)}\n"

    return (
        f"{context}Analyze this comment:\n\n"
        f"Author: {comment.author}\n"
        f"{parent}"
        f"Text: {json.dumps(comment.text, ensure_ascii=False)}\n\n"
        'Return a JSON object, writing "reason" before "score":\n'
        "{\n"
        f'  "commentId": {json.dumps(comment.comment_id, ensure_ascii=False)},\n'
        '  "reason": "<what the comment targets and why>",\n'
        '  "score": <-1.0 to 1.0>,\n'
        '  "emotions": [<emotion tags>],\n'
        '  "isSarcasm": <boolean>\n'
        "}\n\n"
        f"Emotion tags: {_EMOTION_LIST}\n\n"
        "Return only the JSON object."
    )


def create_axis_batch_prompt(
    comments: list[Comment],
    axis_profile: AxisProfile,
    video_context: VideoContext | None = None,
) -> str:
    """
    Render the user prompt for an axis-aware batch call.

    The axis profile is the primary reference; video metadata is secondary.
    Callers should pass comments already ordered parents-first.

    Args:
        comments: Comments to judge, parents before replies.
        axis_profile: The document's central claim and creator position.
        video_context: Optional video metadata.

    Returns:
        Prompt text asking for one stance record per ``commentId``.
    """
    lines = [
        "### AXIS PROFILE (PRIMARY REFERENCE)",
        f"Video ID: {axis_profile.video_id}",
        f'Main Axis: "{axis_profile.main_axis}"',
        f'Creator\'s Position: "{axis_profile.creator_position}"',
    ]
    if axis_profile.target_of_criticism:
        lines.append(f'Target of Criticism: "{axis_profile.target_of_criticism}"')
    if axis_profile.supported_values:
        lines.append(f'Supported Values: "{axis_profile.supported_values}"')

    channel = video_context.channel_name if video_context and video_context.channel_name else "Unknown"
    title = video_context.title if video_context else "Unknown"
    lines += [
        "",
        "### VIDEO METADATA",
        f'Creator: "{channel}"',
        f'Title: "{title}"',
    ]
    if video_context is not None and video_context.summary:
        lines.append(f"Summary: {video_context.summary}")

    lines += [
        "",
        f"Analyze {len(comments)} comments by their stance toward the MAIN AXIS.",
        "",
        "TASK:",
        "1. Decide whether each commenter supports or opposes the creator's position on the axis.",
        "2. For replies (parentText is set), decide replyRelation to the parent first.",
        "3. Quote the comment in axisEvidence.",
        "4. Set confidence from 0.0 to 1.0 by how clear the stance is.",
        "",
        "Comments to analyze:",
        _serialize_comments(comments, include_parent_id=True),
        "",
        "Return JSON following the schema in the system prompt.",
    ]
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Document prompts
# ---------------------------------------------------------------------------


def create_axis_profile_prompt(video: VideoContext) -> str:
    """Render the prompt that extracts an axis profile from video metadata."""
    description = (video.description or "")[:DESCRIPTION_LIMIT] or "N/A"
    transcript = (video.transcript or "")[:TRANSCRIPT_LIMIT] or "N/A"
    return (
        "Extract the axis profile of this video for stance analysis.\n\n"
        "Video information:\n"
        f"- Title: {video.title}\n"
        f"- Creator: {video.channel_name}\n"
        f"- Description: {description}\n"
        f"- Transcript snippet: {transcript}\n\n"
        "Identify:\n"
        "1. mainAxis: the central claim or question the video addresses\n"
        "2. creatorPosition: the creator's position on that claim\n"
        "3. targetOfCriticism: who or what the creator criticizes, if anyone\n"
        "4. supportedValues: the values or behaviours the creator promotes\n\n"
        "Return JSON in exactly this shape:\n"
        "{\n"
        '  "mainAxis": "...",\n'
        '  "creatorPosition": "...",\n'
        '  "targetOfCriticism": "...",\n'
        '  "supportedValues": "..."\n'
        "}"
    )


def create_context_summary_prompt(video: VideoContext) -> str:
    """Render the free-text prompt for a short stance summary of a video."""
    transcript = (video.transcript or "")[:TRANSCRIPT_LIMIT] or "N/A"
    return (
        "Describe the stance profile of this video.\n"
        f"Title: {video.title}\n"
        f"Creator: {video.channel_name}\n"
        "1. Main message\n"
        "2. Which behaviour or people the creator is attacking\n"
        "3. Which values the creator is supporting\n"
        f"Transcript snippet: {transcript}"
    )
